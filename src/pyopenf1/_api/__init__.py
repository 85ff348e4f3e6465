"""Internal query building and response classification helpers."""
