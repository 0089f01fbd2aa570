"""Command line entry point for sending a single request."""

import json
import logging
import sys
import uuid

import click
import structlog

from http_util.config import RequestConfig
from http_util.constants import DEFAULT_RETRIES, DEFAULT_TIMEOUT_SECONDS
from http_util.errors import HttpUtilError
from http_util.models import Body, ContentType, KeyValueMap
from http_util.observability.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
)


logger = structlog.get_logger()


def _parse_pairs(
    ctx: click.Context,  # noqa: ARG001
    param: click.Parameter,
    values: tuple[str, ...],
) -> KeyValueMap:
    """Turn repeated ``key=value`` options into a dictionary."""
    pairs: KeyValueMap = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            msg = f"Expected key=value, got {item!r}"
            raise click.BadParameter(msg, param=param)
        pairs[key] = value
    return pairs


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """HTTP request wrapper CLI."""


@cli.command()
@click.argument("url")
@click.option("--method", "-X", default="GET", help="HTTP method (default: GET).")
@click.option(
    "--query",
    "-q",
    "query_params",
    multiple=True,
    callback=_parse_pairs,
    help="Query parameter as key=value (repeatable).",
)
@click.option(
    "--header",
    "-H",
    "headers",
    multiple=True,
    callback=_parse_pairs,
    help="Request header as key=value (repeatable).",
)
@click.option(
    "--form",
    "-f",
    "form_fields",
    multiple=True,
    callback=_parse_pairs,
    help="Form field as key=value (repeatable); sent urlencoded by default.",
)
@click.option(
    "--multipart",
    is_flag=True,
    help="Send form fields as multipart/form-data.",
)
@click.option("--data", "raw_body", default="", help="Raw request body.")
@click.option(
    "--timeout",
    "timeout_seconds",
    type=float,
    default=DEFAULT_TIMEOUT_SECONDS,
    help=f"Per-attempt timeout in seconds (default: {DEFAULT_TIMEOUT_SECONDS}).",
)
@click.option(
    "--retries",
    type=click.IntRange(min=0),
    default=DEFAULT_RETRIES,
    help="Additional attempts after the first (default: 0).",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=True,
    help="Use JSON format for logs (default: true).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
def send(  # noqa: PLR0913
    url: str,
    method: str,
    query_params: KeyValueMap,
    headers: KeyValueMap,
    form_fields: KeyValueMap,
    multipart: bool,
    raw_body: str,
    timeout_seconds: float,
    retries: int,
    json_logs: bool,
    verbose: bool,
) -> None:
    """Send one request to URL and print its body, cookies and headers."""
    configure_logging(
        level=logging.DEBUG if verbose else logging.WARNING,
        json_format=json_logs,
    )

    if form_fields and raw_body:
        click.echo("Error: --form and --data are mutually exclusive", err=True)
        sys.exit(1)

    body = Body(raw=raw_body)
    if form_fields:
        content_type = (
            ContentType.FORM_MULTIPART if multipart else ContentType.FORM_URLENCODED
        )
        body = Body(content_type=content_type.value, data=form_fields)

    config = RequestConfig(
        url=url,
        method=method,
        query_params=query_params,
        headers=headers,
        body=body,
        timeout_seconds=timeout_seconds,
        retries=retries,
    )

    request_id = str(uuid.uuid4())
    bind_request_context(request_id)
    try:
        response = config.send()
    except HttpUtilError as e:
        logger.debug("cli_send_failed", error_kind=type(e).__name__)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        clear_request_context()

    click.echo(response.text)
    click.echo(json.dumps(response.cookies, ensure_ascii=False))
    click.echo(json.dumps(response.headers, ensure_ascii=False))


def main() -> None:
    """Entry point for the ``http-util`` script."""
    cli()


if __name__ == "__main__":
    main()
