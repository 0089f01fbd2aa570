"""HTTP request wrapper with retries and exponential backoff.

This module provides:
- A request configuration with query parameters, headers and form/raw bodies
- A send engine that retries on transport errors or on a caller predicate
- Responses exposed as plain bytes, cookie and header dictionaries
- Structured logging and metrics for observability
"""

from http_util.client import HttpClient
from http_util.config import RequestConfig, link_pairs
from http_util.constants import (
    CONTENT_TYPE_FORM_MULTIPART,
    CONTENT_TYPE_FORM_URLENCODED,
    DEFAULT_BACKOFF_BASE_DELAY_MS,
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT_SECONDS,
)
from http_util.errors import (
    ConstructionError,
    DecodeError,
    HttpUtilError,
    ReadError,
    ResponseSizeExceededError,
    TransportError,
)
from http_util.metrics import ClientMetrics
from http_util.models import (
    BackoffPolicy,
    Body,
    ContentType,
    KeyValueMap,
    Response,
    ResponsePredicate,
    SerializedBody,
    accept_success_status,
    always_accept,
)
from http_util.redact import redact_headers, redact_url_credentials


__all__ = [
    # Client
    "HttpClient",
    # Config
    "RequestConfig",
    "link_pairs",
    # Models
    "BackoffPolicy",
    "Body",
    "ContentType",
    "KeyValueMap",
    "Response",
    "ResponsePredicate",
    "SerializedBody",
    "accept_success_status",
    "always_accept",
    # Errors
    "HttpUtilError",
    "ConstructionError",
    "TransportError",
    "ReadError",
    "ResponseSizeExceededError",
    "DecodeError",
    # Constants
    "CONTENT_TYPE_FORM_MULTIPART",
    "CONTENT_TYPE_FORM_URLENCODED",
    "DEFAULT_BACKOFF_BASE_DELAY_MS",
    "DEFAULT_RETRIES",
    "DEFAULT_TIMEOUT_SECONDS",
    # Metrics
    "ClientMetrics",
    # Redaction
    "redact_headers",
    "redact_url_credentials",
]
