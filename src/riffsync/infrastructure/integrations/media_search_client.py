"""HTTP client for the media-search fallback provider (Piped API)."""

import logging
from typing import Any

import httpx

from riffsync.config.settings import MediaSearchSettings
from riffsync.domain.exceptions import ProviderError
from riffsync.domain.ports import IMediaSearchClient
from riffsync.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

PROVIDER_NAME = "media_search"


class MediaSearchClient(IMediaSearchClient):
    """Searches playable videos across a list of Piped instances.

    Public Piped instances come and go. Each search walks the configured
    instances in order and, per instance, tries the videos-only filter before
    the unfiltered search. The first response with playable items wins.
    """

    # Hey future me - "playable" means item.type == "stream" with a duration
    # strictly between 0 and max_duration_seconds. Live streams report -1,
    # shorts/channels/playlists have other types. Albums-as-one-video are the
    # usual offenders for the upper bound (a 45 minute "full album" upload is not
    # a track).
    def __init__(
        self,
        settings: MediaSearchSettings,
        client: httpx.AsyncClient | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.settings = settings
        self._client = client
        self._owns_client = client is None
        self._rate_limiter = rate_limiter or RateLimiter.for_media_search()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
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

    def _is_playable(self, item: dict[str, Any]) -> bool:
        duration = item.get("duration") or 0
        return (
            item.get("type") == "stream"
            and isinstance(duration, int | float)
            and 0 < duration < self.settings.max_duration_seconds
        )

    async def search(self, query: str) -> list[dict[str, Any]]:
        """
        Search playable items for ``query``.

        Returns:
            Up to ``max_results`` raw Piped items in provider order, possibly empty

        Raises:
            ProviderError: Every instance failed at the transport/HTTP level
        """
        client = await self._get_client()
        answered = False
        last_error: str | None = None

        for instance in self.settings.instances:
            base = instance.rstrip("/")
            for params in ({"q": query, "filter": "videos"}, {"q": query}):
                try:
                    async with self._rate_limiter:
                        response = await client.get(f"{base}/search", params=params)
                except httpx.HTTPError as e:
                    last_error = f"{base}: {e}"
                    logger.debug(f"Piped instance {base} failed: {e}")
                    break

                if response.status_code == 429:
                    await self._rate_limiter.handle_rate_limit_response(None)
                    last_error = f"{base}: rate limited"
                    break
                if response.is_error:
                    last_error = f"{base}: HTTP {response.status_code}"
                    continue

                try:
                    data = response.json()
                except ValueError:
                    last_error = f"{base}: invalid JSON"
                    continue

                answered = True
                items = data.get("items") if isinstance(data, dict) else None
                if not isinstance(items, list):
                    continue

                playable = [
                    item for item in items
                    if isinstance(item, dict) and self._is_playable(item)
                ]
                if playable:
                    logger.debug(
                        f"Piped {base}: {len(playable)} playable of {len(items)} items"
                    )
                    return playable[: self.settings.max_results]

        if not answered and last_error is not None:
            raise ProviderError(PROVIDER_NAME, f"no instance answered ({last_error})")
        return []


def video_id_from_url(url: str) -> str:
    """Piped item urls look like "/watch?v=<id>"; keep only the id."""
    return url.replace("/watch?v=", "").replace("watch?v=", "").split("&")[0]


__all__ = ["MediaSearchClient", "PROVIDER_NAME", "video_id_from_url"]
