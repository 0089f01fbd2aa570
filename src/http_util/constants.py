"""Constants for the HTTP request wrapper.

Centralizes defaults so the models and the send engine agree on them.
"""

# Request defaults
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_RETRIES = 0

# Backoff defaults: delay = base * (exponential_base ^ attempt)
DEFAULT_BACKOFF_BASE_DELAY_MS = 50
DEFAULT_BACKOFF_EXPONENTIAL_BASE = 2.0

# Body content types
CONTENT_TYPE_FORM_MULTIPART = "multipart/form-data"
CONTENT_TYPE_FORM_URLENCODED = "application/x-www-form-urlencoded"
CONTENT_TYPE_HEADER = "Content-Type"
SET_COOKIE_HEADER = "Set-Cookie"

# Separators used when flattening key-value data
PAIR_SEPARATOR = "&"
KEY_VALUE_SEPARATOR = "="
QUERY_SEPARATOR = "?"
HEADER_VALUE_SEPARATOR = ";"


# HTTP Status Code Ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300

# Allowed URL schemes
SUPPORTED_SCHEMES = frozenset({"http", "https"})
