"""Signed HTTP calls against the platform REST API and the firehose."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Final

import httpx
from loguru import logger

from hull_client.core.errors import TransportError, UnsupportedMethod
from hull_client.core.services.rest.retry import RetryPolicy
from hull_client.version import __version__

if TYPE_CHECKING:
    from hull_client.core.configuration import Configuration
    from hull_client.runtime.logging import ClientLogger

DEFAULT_TIMEOUT: Final = 10.0
DEFAULT_HEADERS: Final = {
    "Content-Type": "application/json",
    "User-Agent": f"Hull Python Client version: {__version__}",
}

METHODS: Final = {
    "get": "GET",
    "post": "POST",
    "put": "PUT",
    "delete": "DELETE",
    "del": "DELETE",
}

_ABSOLUTE_URL: Final = re.compile(r"^https?://")


def normalize_method(method: str) -> str:
    """Return the HTTP verb for ``method`` or raise ``UnsupportedMethod``."""
    verb = METHODS.get(str(method).lower())
    if verb is None:
        raise UnsupportedMethod(f"Unsupported method {method}")
    return verb


def is_absolute(url: str) -> bool:
    return bool(_ABSOLUTE_URL.match(url))


def format_url(config: Configuration, url: str) -> str:
    """Resolve a path against ``protocol://organization + prefix``."""
    if is_absolute(url):
        return url
    return f"{config.get('protocol')}://{config.get('organization')}{config.get('prefix')}/{url.lstrip('/')}"


def build_headers(config: Configuration, extra: Mapping[str, str] | None = None) -> dict[str, str]:
    """Identity headers for a request made as the configured connector."""
    if config.get("sudo"):
        token = config.get("secret")
    else:
        token = config.get("access_token") or config.get("secret")

    headers = {
        **DEFAULT_HEADERS,
        "Hull-App-Id": config.get("id"),
        "Hull-Access-Token": token,
        "Hull-Organization": config.get("organization"),
    }
    user_id = config.get("user_id")
    if isinstance(user_id, str) and user_id:
        headers["Hull-User-Id"] = user_id
    if extra:
        headers.update(extra)
    return headers


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class RestApiService:
    """Performs REST calls with a bounded retry on timeouts and 5xx responses.

    Args:
        transport: Optional httpx transport, used to stub the network in tests
        retry_policy: Policy applied when the caller does not pass one
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._transport = transport
        self._retry_policy = retry_policy or RetryPolicy()

    async def call(
        self,
        config: Configuration,
        url: str,
        method: str = "get",
        params: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
        client_logger: ClientLogger | None = None,
    ) -> Any:
        """Perform one API call and return the decoded response body.

        Args:
            config: Configuration providing credentials and base URL
            url: Path relative to the API prefix, or an absolute URL
            method: get, post, put or delete
            params: Query parameters for GET, JSON body otherwise
            options: ``timeout`` (seconds), ``retry`` (backoff seconds),
                ``headers`` (extra request headers) and ``retry_policy``

        Raises:
            UnsupportedMethod: If ``method`` is not a known verb
            TransportError: When the request fails after all retries
        """
        verb = normalize_method(method)
        options = options or {}
        path = format_url(config, url)
        headers = build_headers(config, options.get("headers"))
        timeout = float(options.get("timeout") or DEFAULT_TIMEOUT)

        policy = options.get("retry_policy") or self._retry_policy
        if options.get("retry") is not None:
            policy = RetryPolicy(
                max_attempts=policy.max_attempts,
                backoff=float(options["retry"]),
                is_retryable=policy.is_retryable,
            )

        def on_retry(error: Exception, retry_count: int, delay: float) -> None:
            if isinstance(error, TransportError) and error.timeout:
                event, data = "client.timeout", {"timeout": timeout}
            else:
                event, data = "client.fail", {"statusCode": getattr(error, "status_code", None)}
            data.update(retryCount=retry_count, path=path, method=verb.lower())
            if client_logger is not None:
                client_logger.debug(event, data)
            else:
                logger.debug(f"{event} {data}")

        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:

            async def send() -> Any:
                try:
                    if verb == "GET":
                        response = await client.request(
                            verb, path, params=dict(params or {}), headers=headers
                        )
                    else:
                        response = await client.request(
                            verb, path, json=dict(params or {}), headers=headers
                        )
                    response.raise_for_status()
                except httpx.TimeoutException as e:
                    raise TransportError(
                        f"{verb} {path} timed out after {timeout}s", cause=e, timeout=True
                    ) from e
                except httpx.HTTPStatusError as e:
                    raise TransportError(
                        f"{verb} {path} failed with status {e.response.status_code}",
                        status_code=e.response.status_code,
                        cause=e,
                    ) from e
                except httpx.HTTPError as e:
                    raise TransportError(f"{verb} {path} failed: {e}", cause=e) from e
                return _parse_body(response)

            try:
                return await policy.run(send, on_retry=on_retry)
            except TransportError as e:
                if client_logger is not None:
                    client_logger.debug("client.error", {"err": str(e)})
                raise
