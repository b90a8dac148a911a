"""Shared aiohttp request handling for registry and gateway adapters."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from .exceptions import AuthError, NetworkError, ProviderError, ValidationError

_LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=30)
AUTH_FAILURE_STATUSES = frozenset({401, 403})
# Only idempotent reads are repeated after a transport failure.
RETRYABLE_METHODS = frozenset({"GET"})


class HttpAdapter:
    """Base class for adapters that talk to a remote JSON API.

    Subclasses pass relative paths to ``_request_json`` and override
    ``_error_message_from_response`` to surface the remote service's own
    error text. Failures are raised as ``ProviderError`` subclasses tagged
    with ``provider_name``.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        provider_name: str,
        base_url: str | None = None,
        api_uri: str | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        retry_count: int = 0,
    ) -> None:
        if session is None:
            raise ValidationError("An aiohttp session is required.")
        self._session = session
        self._provider_name = provider_name
        self._base_url = self._normalize_base_url(base_url)
        self._api_uri = self._normalize_api_uri(api_uri)
        self._timeout = timeout or DEFAULT_TIMEOUT
        self._retry_count = retry_count if retry_count > 0 else 0

    def _build_url(self, path: str) -> str:
        if not path or not isinstance(path, str):
            raise ValidationError("Request path must be a non-empty string.")
        if "://" in path:
            raise ValidationError(f"Request path {path!r} must be relative to the base URL.")
        if self._base_url is None:
            raise ValidationError(f"{self._provider_name} has no base_url configured.")
        return f"{self._base_url}{self._api_uri}/{path.lstrip('/')}"

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        return await self._request(method, self._build_url(path), expect_json=True, **kwargs)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        expect_json: bool,
        allow_not_found: bool = False,
        **kwargs: Any,
    ) -> Any:
        """Send a request and decode its body.

        A 404 returns ``None`` when ``allow_not_found`` is set. Transport
        failures are retried ``retry_count`` times for GET requests only.
        """
        attempts = 1 + (self._retry_count if method.upper() in RETRYABLE_METHODS else 0)
        kwargs["timeout"] = kwargs.get("timeout") or self._timeout
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._send_once(
                    method,
                    url,
                    expect_json=expect_json,
                    allow_not_found=allow_not_found,
                    **kwargs,
                )
            except (aiohttp.ClientError, TimeoutError) as exc:
                _LOGGER.debug(
                    "%s %s attempt %s of %s failed: %s",
                    self._provider_name,
                    method,
                    attempt,
                    attempts,
                    type(exc).__name__,
                )
                if attempt >= attempts:
                    raise NetworkError(
                        "Network request failed.",
                        provider=self._provider_name,
                    ) from exc

    async def _send_once(
        self,
        method: str,
        url: str,
        *,
        expect_json: bool,
        allow_not_found: bool,
        **kwargs: Any,
    ) -> Any:
        async with self._session.request(method, url, ssl=True, **kwargs) as response:
            if response.status == 404 and allow_not_found:
                return None
            await self._raise_for_status(response)
            if not expect_json:
                return await response.text()
            try:
                return await response.json()
            except (aiohttp.ContentTypeError, ValueError) as exc:
                raise ProviderError(
                    "Response body was not JSON.",
                    provider=self._provider_name,
                ) from exc

    async def _raise_for_status(self, response: aiohttp.ClientResponse) -> None:
        status = response.status
        if 200 <= status < 300:
            return
        if status in AUTH_FAILURE_STATUSES:
            raise AuthError("Authentication failed.", provider=self._provider_name)
        message = await self._error_message_from_response(response)
        raise ProviderError(
            message or f"Request failed with status {status}.",
            provider=self._provider_name,
            detail=f"status {status}",
        )

    async def _error_message_from_response(self, response: aiohttp.ClientResponse) -> str | None:
        """Human readable error text from a failed response, if the service sends any."""
        return None

    def _normalize_base_url(self, base_url: str | None) -> str | None:
        if base_url is None:
            return None
        cleaned = base_url.strip().rstrip("/") if isinstance(base_url, str) else ""
        if not cleaned:
            raise ValidationError("base_url must be a non-empty string.")
        return cleaned

    def _normalize_api_uri(self, api_uri: str | None) -> str:
        if api_uri is None:
            return ""
        if not isinstance(api_uri, str):
            raise ValidationError("api_uri must be a string.")
        segment = api_uri.strip().strip("/")
        return f"/{segment}" if segment else ""
