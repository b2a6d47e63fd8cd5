"""HTTP client for the content-fetch gateway (debrid provider)."""

import logging
from typing import Any, cast

import httpx

from riffsync.config.settings import ContentFetchSettings
from riffsync.domain.exceptions import (
    ConfigurationError,
    ProviderError,
    RateLimitExceededError,
)
from riffsync.domain.ports import IContentFetchClient
from riffsync.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

PROVIDER_NAME = "content_fetch"


class ContentFetchClient(IContentFetchClient):
    """Talks to the gateway that fronts the debrid API.

    The gateway takes one POST per call with a JSON body naming the ``action``
    and carrying the user's ``apiKey``. It answers 200 even for logical errors
    and puts them in an ``error`` field of the body, so callers must look at the
    payload and not only at the status code.
    """

    # Hey future me - the credential travels in the body, never in a header or
    # query string, so it stays out of access logs. Don't log request bodies here!
    def __init__(
        self,
        settings: ContentFetchSettings,
        client: httpx.AsyncClient | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """
        Initialize the gateway client.

        Args:
            settings: Gateway configuration
            client: Optional preconfigured httpx client (shared pool, custom transport)
            rate_limiter: Optional limiter, defaults to one built from settings
        """
        self.settings = settings
        self._client = client
        self._owns_client = client is None
        self._rate_limiter = rate_limiter or RateLimiter.for_content_fetch(
            max_requests_per_second=settings.max_requests_per_second,
            burst=settings.burst,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            if not self.settings.base_url:
                raise ConfigurationError("content_fetch.base_url is not configured")
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.timeout),
                headers={"Accept": "application/json"},
                http2=True,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _call(self, action: str, credential: str, **params: Any) -> dict[str, Any]:
        """POST one action to the gateway and return the decoded body.

        Raises:
            RateLimitExceededError: Gateway answered 429 (after backing off)
            ProviderError: Transport failure, non-2xx status or non-JSON body
        """
        client = await self._get_client()
        body = {"action": action, "apiKey": credential, **params}

        async with self._rate_limiter:
            try:
                response = await client.post(self.settings.base_url, json=body)
            except httpx.HTTPError as e:
                raise ProviderError(PROVIDER_NAME, f"{action} failed: {e}") from e

            if response.status_code == 429:
                retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                await self._rate_limiter.handle_rate_limit_response(retry_after)
                raise RateLimitExceededError(PROVIDER_NAME, retry_after)

            if response.is_error:
                raise ProviderError(
                    PROVIDER_NAME,
                    f"{action} returned HTTP {response.status_code}",
                    status_code=response.status_code,
                )

            try:
                payload = response.json()
            except ValueError as e:
                raise ProviderError(PROVIDER_NAME, f"{action} returned invalid JSON") from e

        if not isinstance(payload, dict):
            raise ProviderError(PROVIDER_NAME, f"{action} returned unexpected payload")
        return cast(dict[str, Any], payload)

    async def search(self, credential: str, query: str) -> dict[str, Any]:
        """
        Search bundles for a free-text query.

        Args:
            credential: User's debrid API key
            query: Usually "<album> <artist>"

        Returns:
            Raw payload with a ``torrents`` list
        """
        logger.debug(f"Gateway search: {query!r}")
        return await self._call("search", credential, query=query)

    async def select_files(
        self, credential: str, bundle_id: str, file_ids: list[int]
    ) -> dict[str, Any]:
        """
        Select files inside a bundle and ask for direct links.

        Calling it again for the same files is how the gateway is polled.

        Returns:
            Raw payload with ``status``, ``progress``, ``streams`` and maybe ``error``
        """
        return await self._call(
            "selectFiles", credential, torrentId=bundle_id, fileIds=file_ids
        )


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


__all__ = ["ContentFetchClient", "PROVIDER_NAME"]
