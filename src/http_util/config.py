"""Request configuration: what to send and how hard to try."""

from typing import TYPE_CHECKING, Annotated

from pydantic import BaseModel, ConfigDict, Field
from urllib3 import encode_multipart_formdata

from http_util.constants import (
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT_SECONDS,
    KEY_VALUE_SEPARATOR,
    PAIR_SEPARATOR,
    QUERY_SEPARATOR,
)
from http_util.models import (
    BackoffPolicy,
    Body,
    ContentType,
    KeyValueMap,
    Response,
    ResponsePredicate,
    SerializedBody,
    always_accept,
)


if TYPE_CHECKING:
    from http_util.client import HttpClient


def link_pairs(data: KeyValueMap) -> str:
    """Join key-value pairs as ``k1=v1&k2=v2``.

    Keys and values are inserted verbatim, without percent-encoding.
    """
    return PAIR_SEPARATOR.join(
        f"{key}{KEY_VALUE_SEPARATOR}{value}" for key, value in data.items()
    )


class RequestConfig(BaseModel):
    """Everything needed to send one request, including its retry behavior.

    Construct it, adjust fields, then call :meth:`send` once. Sending never
    modifies the configuration; every attempt works on a :meth:`clone`.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    url: Annotated[str, Field(min_length=1)]
    method: Annotated[str, Field(min_length=1)] = "GET"
    query_params: KeyValueMap = Field(default_factory=dict)
    headers: KeyValueMap = Field(default_factory=dict)
    body: Body = Field(default_factory=Body)
    timeout_seconds: Annotated[float, Field(gt=0)] = DEFAULT_TIMEOUT_SECONDS
    retries: Annotated[int, Field(ge=0)] = DEFAULT_RETRIES
    retry_check: ResponsePredicate = Field(
        default=always_accept,
        description="Returns False when a response must be retried",
    )
    backoff: BackoffPolicy = Field(default_factory=BackoffPolicy)
    follow_redirects: bool = True
    max_response_size_bytes: Annotated[int | None, Field(ge=1)] = None

    def clone(self) -> "RequestConfig":
        """Copy the configuration with independent key-value maps.

        The retry check is shared by reference.
        """
        return self.model_copy(
            update={
                "query_params": dict(self.query_params),
                "headers": dict(self.headers),
                "body": self.body.model_copy(update={"data": dict(self.body.data)}),
            }
        )

    def build_url(self) -> str:
        """Return the URL with query parameters appended, if there are any."""
        if self.query_params:
            return f"{self.url}{QUERY_SEPARATOR}{link_pairs(self.query_params)}"
        return self.url

    def serialize_body(self) -> SerializedBody:
        """Encode the body according to its content type.

        Returns:
            The encoded bytes and the Content-Type they must be sent with.
            Raw bodies resolve to an empty content type.
        """
        content_type = self.body.content_type

        if content_type == ContentType.FORM_URLENCODED:
            return SerializedBody(
                content=link_pairs(self.body.data).encode("utf-8"),
                content_type=ContentType.FORM_URLENCODED.value,
            )

        if content_type == ContentType.FORM_MULTIPART:
            content, multipart_type = encode_multipart_formdata(self.body.data)
            return SerializedBody(content=content, content_type=multipart_type)

        return SerializedBody(content=self.body.raw.encode("utf-8"), content_type="")

    def send(self, client: "HttpClient | None" = None) -> Response:
        """Send the request with retries.

        Args:
            client: Send engine to use; a fresh HttpClient by default.

        Returns:
            Response of the last attempt.
        """
        if client is None:
            from http_util.client import HttpClient

            client = HttpClient()
        return client.send(self)
