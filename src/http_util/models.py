"""Data models for the HTTP request wrapper."""

import json
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from http_util.constants import (
    CONTENT_TYPE_FORM_MULTIPART,
    CONTENT_TYPE_FORM_URLENCODED,
    DEFAULT_BACKOFF_BASE_DELAY_MS,
    DEFAULT_BACKOFF_EXPONENTIAL_BASE,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
)
from http_util.errors import DecodeError


T = TypeVar("T")

# Query parameters, headers, cookies and form fields
KeyValueMap = dict[str, str]


class ContentType(str, Enum):
    """Body encodings with dedicated serialization.

    Any other content type (including the empty string) sends the
    raw body unchanged.
    """

    FORM_MULTIPART = CONTENT_TYPE_FORM_MULTIPART
    FORM_URLENCODED = CONTENT_TYPE_FORM_URLENCODED


class Body(BaseModel):
    """Request payload tagged by content type.

    Form encodings read ``data``; everything else sends ``raw``.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    content_type: str = ""
    data: KeyValueMap = Field(default_factory=dict)
    raw: str = ""


class SerializedBody(BaseModel):
    """Encoded request body together with the content type it was encoded as."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    content: bytes = b""
    content_type: str = ""


class BackoffPolicy(BaseModel):
    """Delay schedule between failed attempts.

    Uses exponential backoff: delay = base_delay_ms * (exponential_base ^ attempt)
    The defaults give 50ms, 100ms, 200ms, ... with no cap and no jitter.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_delay_ms: Annotated[int, Field(ge=0)] = DEFAULT_BACKOFF_BASE_DELAY_MS
    exponential_base: Annotated[float, Field(ge=1.0)] = DEFAULT_BACKOFF_EXPONENTIAL_BASE
    max_delay_ms: Annotated[int | None, Field(ge=0)] = None
    jitter_factor: Annotated[float, Field(ge=0.0, le=1.0)] = 0.0

    def get_delay_ms(self, attempt: int) -> int:
        """Calculate the delay after a failed attempt.

        Args:
            attempt: Index of the attempt that just failed (0-indexed).

        Returns:
            Delay in milliseconds.
        """
        delay = self.base_delay_ms * (self.exponential_base**attempt)
        if self.max_delay_ms is not None:
            delay = min(delay, self.max_delay_ms)

        if self.jitter_factor:
            delay += delay * self.jitter_factor * random.random()  # noqa: S311
        return int(delay)


@dataclass(frozen=True)
class Response:
    """Parsed result of a single request attempt.

    Attributes:
        status_code: HTTP status code.
        url: Final URL after redirects.
        body: Raw response body.
        cookies: Cookie name to value; the last cookie seen wins.
        headers: Lower-cased header name to value; repeated headers are
            joined with ``;``.
        sent_content_type: Content-Type the request body was sent with.
    """

    status_code: int
    url: str
    body: bytes = b""
    cookies: KeyValueMap = field(default_factory=dict)
    headers: KeyValueMap = field(default_factory=dict)
    sent_content_type: str = ""

    @property
    def text(self) -> str:
        """Body decoded as UTF-8, empty string when there is no body."""
        if not self.body:
            return ""
        return self.body.decode("utf-8", errors="replace")

    @property
    def is_success(self) -> bool:
        """Check if the status code is 2xx."""
        return HTTP_STATUS_OK_MIN <= self.status_code < HTTP_STATUS_OK_MAX

    def json(self, target: type[T] | None = None) -> T | Any:
        """Decode the body as JSON.

        Args:
            target: Optional type to validate the document against, e.g. a
                pydantic model or ``list[int]``. Without it the plain
                ``json.loads`` result is returned.

        Returns:
            Decoded document.

        Raises:
            DecodeError: If the body is not valid JSON or does not fit target.
        """
        try:
            if target is None:
                return json.loads(self.body)
            return TypeAdapter(target).validate_json(self.body)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
            msg = f"Failed to decode JSON response: {exc}"
            raise DecodeError(msg, url=self.url) from exc


ResponsePredicate = Callable[[Response], bool]


def always_accept(response: Response) -> bool:  # noqa: ARG001
    """Default retry check: any response without a transport error is final."""
    return True


def accept_success_status(response: Response) -> bool:
    """Retry check that only accepts 2xx responses."""
    return response.is_success
