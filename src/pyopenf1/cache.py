"""JSON file store: one pretty-printed file per key.

Reads are read-through: a missing, unreadable or corrupt file is a miss,
never an error.  Writes go to a temporary file that is then renamed over
the destination, so readers never observe a half-written file.  Two
writers racing on the same key both succeed and the last rename wins.
"""

from __future__ import annotations

import contextlib
import dataclasses
import json
import logging
import os
import re
import secrets
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

_logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_\-.]")
_SUFFIX = ".json"
_TMP_SUFFIX = ".tmp"


def sanitize_key(key: str) -> str:
    """Map *key* onto the safe filename alphabet.

    Lossy: ``"a/b"`` and ``"a:b"`` both become ``"a_b"``.
    """
    return _UNSAFE_KEY_CHARS.sub("_", key)


@dataclasses.dataclass(frozen=True)
class CacheStat:
    path: Path
    size: int
    mtime: float

    @property
    def modified_at(self) -> datetime:
        return datetime.fromtimestamp(self.mtime, tz=UTC)


class FileCache:
    """Key/value store backed by a directory of JSON files."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        return self._root / f"{sanitize_key(key)}{_SUFFIX}"

    def write(self, key: str, value: Any) -> Path:
        """Serialize *value* and atomically replace the entry for *key*.

        Raises ``TypeError`` for values JSON cannot encode, ``ValueError``
        for NaN or infinite floats and ``OSError`` for filesystem failures;
        the previous entry is left intact in every case.
        """
        self._root.mkdir(parents=True, exist_ok=True)
        dest = self.path_for(key)
        payload = json.dumps(value, indent=2, ensure_ascii=False, allow_nan=False)
        # Unique per writer so concurrent writes never share a temp file.
        tmp = dest.with_name(f"{dest.name}.{os.getpid()}.{secrets.token_hex(4)}{_TMP_SUFFIX}")
        try:
            with tmp.open("w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, dest)
        except BaseException:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise
        _logger.debug("Wrote %s (%d bytes)", dest, len(payload))
        return dest

    def read(self, key: str) -> Any | None:
        """Return the stored value, or ``None`` on any kind of miss."""
        path = self.path_for(key)
        try:
            text = path.read_text(encoding="utf-8")
            return json.loads(text)
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError, RecursionError, json.JSONDecodeError) as exc:
            _logger.debug("Cache read of %s failed: %s", path, exc)
            return None

    def list(self) -> list[str]:
        """Stored keys (sanitized form), sorted; ``[]`` if the directory is missing."""
        try:
            names = [entry.name for entry in self._root.iterdir() if entry.is_file()]
        except OSError:
            return []
        return sorted(name[: -len(_SUFFIX)] for name in names if name.endswith(_SUFFIX))

    def stat(self, key: str) -> CacheStat | None:
        path = self.path_for(key)
        try:
            st = path.stat()
        except OSError:
            return None
        return CacheStat(path=path, size=st.st_size, mtime=st.st_mtime)

    def delete(self, key: str) -> bool:
        """Remove one entry; ``False`` when it did not exist or could not be removed."""
        try:
            self.path_for(key).unlink()
        except OSError:
            return False
        return True

    def clear(self) -> int:
        """Remove every entry, best-effort.  Returns how many were removed."""
        removed = 0
        for key in self.list():
            if self.delete(key):
                removed += 1
            else:
                _logger.debug("Could not remove cache entry %s", key)
        return removed
