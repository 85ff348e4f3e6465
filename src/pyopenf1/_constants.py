"""Internal constants shared across the library."""

BASE_URL = "https://api.openf1.org/v1"
USER_AGENT = "pyopenf1"

# ------------------------------------------------------------------
# Query field names
# ------------------------------------------------------------------

SESSION_KEY = "session_key"
DRIVER_NUMBER = "driver_number"
DATE_FIELD = "date"

# ------------------------------------------------------------------
# Resources
# ------------------------------------------------------------------

SESSIONS = "/sessions"
DRIVERS = "/drivers"
LOCATION = "/location"
CAR_DATA = "/car_data"

# Substring the API puts in ``detail`` when a query spans too many rows.
TOO_MUCH_DATA_MARKER = "too much"

RETRY_AFTER_HEADER = "Retry-After"
