"""Error types raised by the HTTP request wrapper."""


class HttpUtilError(Exception):
    """Base class for all request wrapper errors.

    Attributes:
        url: Request URL with credentials redacted, if known.
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class ConstructionError(HttpUtilError):
    """The request could not be built (bad method or URL)."""


class TransportError(HttpUtilError):
    """Network failure: timeout, refused connection, DNS or protocol error."""


class ReadError(HttpUtilError):
    """The response body could not be read or parsed."""


class ResponseSizeExceededError(ReadError):
    """Raised when response size exceeds the configured limit."""

    def __init__(self, limit: int, read: int, url: str | None = None) -> None:
        super().__init__(
            f"Response size exceeded limit of {limit} bytes (read {read} bytes)",
            url=url,
        )
        self.limit = limit
        self.read = read


class DecodeError(HttpUtilError):
    """The response body is not valid JSON for the requested target."""
