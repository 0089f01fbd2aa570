"""Send engine: one request, sequential attempts, exponential backoff."""

import re
import time
from http.cookies import CookieError, SimpleCookie
from io import BytesIO
from typing import TYPE_CHECKING

import httpx
import structlog

from http_util.constants import (
    CONTENT_TYPE_HEADER,
    HEADER_VALUE_SEPARATOR,
    SET_COOKIE_HEADER,
    SUPPORTED_SCHEMES,
)
from http_util.errors import (
    ConstructionError,
    HttpUtilError,
    ReadError,
    ResponseSizeExceededError,
    TransportError,
)
from http_util.metrics import ClientMetrics
from http_util.models import KeyValueMap, Response, SerializedBody
from http_util.redact import redact_headers, redact_url_credentials


if TYPE_CHECKING:
    from http_util.config import RequestConfig


logger = structlog.get_logger()

# RFC 9110 token characters, used for methods and header names
_TOKEN_PATTERN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_FORBIDDEN_HEADER_VALUE_CHARS = re.compile(r"[\r\n\x00]")


class HttpClient:
    """Sends a RequestConfig with retries.

    Each attempt works on its own clone of the configuration and its own
    ``httpx.Client``. An attempt is final when it raised no transport error
    and the configuration's retry check accepts the response. Transport
    errors and rejected responses are retried with exponential backoff until
    ``retries + 1`` attempts have been made; construction and read errors
    are raised immediately.
    """

    def __init__(self, transport: httpx.BaseTransport | None = None) -> None:
        """Initialize the send engine.

        Args:
            transport: Optional httpx transport, e.g. ``httpx.MockTransport``.
        """
        self._transport = transport
        self._metrics = ClientMetrics.get_instance()
        self._log = logger.bind(component="http_util")

    def send(self, config: "RequestConfig") -> Response:
        """Send a request, retrying as configured.

        Args:
            config: Request to send. It is never modified.

        Returns:
            Response of the last attempt, even if the retry check rejected it.

        Raises:
            ConstructionError: If the method, URL or headers are invalid.
            TransportError: If the last attempt failed on the network or
                ran past its timeout.
            ReadError: If a response body could not be read.
        """
        start_time_ns = time.perf_counter_ns()
        max_attempts = config.retries + 1
        log = self._log.bind(
            method=config.method,
            url=redact_url_credentials(config.url),
            max_attempts=max_attempts,
        )

        outcome: Response | TransportError
        attempt = 0

        for attempt in range(max_attempts):
            attempt_config = config.clone()
            self._metrics.record_attempt()

            try:
                outcome = self._send_once(attempt_config, log.bind(attempt=attempt))
            except TransportError as e:
                outcome = e
                log.debug("attempt_failed", attempt=attempt, error=str(e))
            except HttpUtilError as e:
                self._record_outcome(start_time_ns, error=e)
                log.warning(
                    "send_failed",
                    attempt=attempt,
                    error_kind=type(e).__name__,
                    error=str(e),
                )
                raise
            else:
                if attempt_config.retry_check(outcome):
                    break
                log.debug(
                    "retry_check_rejected",
                    attempt=attempt,
                    status_code=outcome.status_code,
                )

            if attempt < max_attempts - 1:
                delay_ms = config.backoff.get_delay_ms(attempt)
                self._metrics.record_retry()
                log.debug("retry_backoff", attempt=attempt, delay_ms=delay_ms)
                time.sleep(delay_ms / 1000.0)

        if isinstance(outcome, TransportError):
            self._record_outcome(start_time_ns, error=outcome)
            log.warning(
                "send_failed",
                attempts=attempt + 1,
                error_kind=type(outcome).__name__,
                error=str(outcome),
            )
            raise outcome

        duration_ms = self._record_outcome(start_time_ns)
        log.info(
            "send_complete",
            status_code=outcome.status_code,
            attempts=attempt + 1,
            bytes=len(outcome.body),
            duration_ms=round(duration_ms, 2),
        )
        return outcome

    def _record_outcome(
        self,
        start_time_ns: int,
        error: HttpUtilError | None = None,
    ) -> float:
        """Record duration and failure metrics for a finished send call.

        Returns:
            Duration in milliseconds.
        """
        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_duration(duration_ms)
        if error is not None:
            self._metrics.record_failure(type(error).__name__)
        return duration_ms

    def _send_once(
        self,
        config: "RequestConfig",
        log: structlog.stdlib.BoundLogger,
    ) -> Response:
        """Execute a single HTTP request.

        The configured timeout is a deadline for the whole attempt, from
        connecting until the last body byte.

        Args:
            config: Private clone of the configuration for this attempt.
            log: Bound logger.

        Returns:
            Parsed response.
        """
        deadline = time.monotonic() + config.timeout_seconds
        serialized = config.serialize_body()
        request = self._build_request(config, serialized)
        url = redact_url_credentials(str(request.url))

        log.debug(
            "send_attempt",
            headers=redact_headers(dict(request.headers)),
            content_type=serialized.content_type,
            body_bytes=len(serialized.content),
        )

        try:
            with httpx.Client(
                timeout=_remaining_seconds(deadline, url),
                follow_redirects=config.follow_redirects,
                transport=self._transport,
            ) as client:
                http_response = client.send(request, stream=True)
                try:
                    return self._parse_response(
                        http_response, config, serialized.content_type, deadline
                    )
                finally:
                    http_response.close()

        except httpx.TimeoutException as e:
            msg = f"Request timed out: {e}"
            raise TransportError(msg, url=url) from e

        except httpx.RequestError as e:
            msg = f"Request failed: {e}"
            raise TransportError(msg, url=url) from e

    def _build_request(
        self,
        config: "RequestConfig",
        serialized: SerializedBody,
    ) -> httpx.Request:
        """Build the outbound request.

        Caller headers are applied first; a non-empty serialized content type
        then replaces any Content-Type the caller set.

        Raises:
            ConstructionError: If the method, URL or headers cannot be used.
        """
        raw_url = config.build_url()
        safe_url = redact_url_credentials(raw_url)

        if not _TOKEN_PATTERN.match(config.method):
            msg = f"Invalid HTTP method: {config.method!r}"
            raise ConstructionError(msg, url=safe_url)

        try:
            url = httpx.URL(raw_url)
        except httpx.InvalidURL as e:
            msg = f"Invalid URL: {e}"
            raise ConstructionError(msg, url=safe_url) from e

        if url.scheme not in SUPPORTED_SCHEMES or not url.host:
            msg = f"Unsupported URL: {safe_url!r}"
            raise ConstructionError(msg, url=safe_url)

        for name, value in config.headers.items():
            if not _TOKEN_PATTERN.match(name):
                msg = f"Invalid header name: {name!r}"
                raise ConstructionError(msg, url=safe_url)
            if _FORBIDDEN_HEADER_VALUE_CHARS.search(value):
                msg = f"Invalid value for header {name!r}"
                raise ConstructionError(msg, url=safe_url)

        try:
            headers = httpx.Headers(config.headers)
            if serialized.content_type:
                headers[CONTENT_TYPE_HEADER] = serialized.content_type
            return httpx.Request(
                config.method,
                url,
                headers=headers,
                content=serialized.content or None,
            )
        except UnicodeEncodeError as e:
            msg = f"Invalid request headers: {e}"
            raise ConstructionError(msg, url=safe_url) from e

    def _parse_response(
        self,
        http_response: httpx.Response,
        config: "RequestConfig",
        sent_content_type: str,
        deadline: float,
    ) -> Response:
        """Read the body and flatten cookies and headers.

        Raises:
            TransportError: If the attempt deadline passes during the read.
            ReadError: If the body cannot be read or parsed.
        """
        url = redact_url_credentials(str(http_response.url))

        try:
            body = self._read_body_with_limit(
                http_response, config.max_response_size_bytes, url, deadline
            )
            cookies = _parse_cookies(http_response.headers)
            headers = _flatten_headers(http_response.headers)
        except HttpUtilError:
            raise
        except Exception as e:  # noqa: BLE001
            msg = f"Failed to read response: {e}"
            raise ReadError(msg, url=url) from e

        self._metrics.record_request(http_response.status_code, len(body))

        return Response(
            status_code=http_response.status_code,
            url=str(http_response.url),
            body=body,
            cookies=cookies,
            headers=headers,
            sent_content_type=sent_content_type,
        )

    def _read_body_with_limit(
        self,
        http_response: httpx.Response,
        max_size: int | None,
        url: str,
        deadline: float,
    ) -> bytes:
        """Read the whole response body before the deadline.

        Chunks are taken as they arrive so the deadline is checked after
        every network read.

        Raises:
            TransportError: If the deadline passes before the body is complete.
            ResponseSizeExceededError: If max_size is exceeded.
        """
        buffer = BytesIO()
        total_read = 0

        _remaining_seconds(deadline, url)
        for chunk in http_response.iter_bytes():
            _remaining_seconds(deadline, url)
            total_read += len(chunk)
            if max_size is not None and total_read > max_size:
                raise ResponseSizeExceededError(max_size, total_read, url=url)
            buffer.write(chunk)

        return buffer.getvalue()


def _remaining_seconds(deadline: float, url: str) -> float:
    """Time left before the attempt deadline.

    Raises:
        TransportError: If the deadline has passed.
    """
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        msg = "Request timed out: attempt deadline exceeded"
        raise TransportError(msg, url=url)
    return remaining


def _parse_cookies(headers: httpx.Headers) -> KeyValueMap:
    """Read every Set-Cookie header in order; a later name replaces an earlier one.

    No cookie acceptance policy is applied. Headers that cannot be parsed
    are skipped.
    """
    cookies: KeyValueMap = {}
    for header in headers.get_list(SET_COOKIE_HEADER):
        parsed: SimpleCookie = SimpleCookie()
        try:
            parsed.load(header)
        except CookieError as e:
            logger.debug("set_cookie_skipped", error=str(e))
            continue
        for name, morsel in parsed.items():
            cookies[name] = morsel.value
    return cookies


def _flatten_headers(headers: httpx.Headers) -> KeyValueMap:
    """Collapse repeated headers into one ``;``-joined value per name."""
    grouped: dict[str, list[str]] = {}
    for key, value in headers.multi_items():
        grouped.setdefault(key.lower(), []).append(value)
    return {key: HEADER_VALUE_SEPARATOR.join(values) for key, values in grouped.items()}
