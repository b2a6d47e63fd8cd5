"""Media-search fallback resolver.

Picks one alternate playable reference per track from the Piped search results
and stores it as a FallbackMapping.
"""

import logging
from typing import Any

from rapidfuzz import fuzz

from riffsync.domain.entities import FallbackMapping, FallbackReference
from riffsync.domain.ports import IFallbackResolver, IMappingRepository, IMediaSearchClient
from riffsync.domain.value_objects.track_matching import normalize
from riffsync.infrastructure.integrations.media_search_client import video_id_from_url

logger = logging.getLogger(__name__)


class MediaSearchFallbackResolver(IFallbackResolver):
    """Secondary resolution path backed by the media-search provider."""

    def __init__(
        self,
        client: IMediaSearchClient,
        repository: IMappingRepository,
    ) -> None:
        self._client = client
        self._repository = repository

    async def search(self, query: str) -> FallbackReference | None:
        """
        Return the best playable reference for ``query``.

        Candidates are ranked by token-set similarity between the normalized
        query and title. Equal scores keep provider order, so the provider's own
        relevance ranking breaks ties.

        Raises:
            ProviderError: No provider instance could be reached
        """
        items = await self._client.search(query)

        best: FallbackReference | None = None
        best_score = -1.0
        normalized_query = normalize(query)

        for item in items:
            reference = _to_reference(item)
            if reference is None:
                continue
            similarity = fuzz.token_set_ratio(normalized_query, normalize(reference.title))
            if similarity > best_score:
                best, best_score = reference, similarity

        if best is None:
            logger.info(f"Fallback search {query!r}: no playable result")
        else:
            logger.debug(
                f"Fallback search {query!r}: picked {best.external_id} "
                f"({best.title!r}, score {best_score:.0f})"
            )
        return best

    async def persist(self, track_id: str, reference: FallbackReference) -> None:
        """Upsert the FallbackMapping for ``track_id``."""
        await self._repository.upsert_fallback_mapping(
            FallbackMapping(
                track_id=track_id,
                external_reference_id=reference.external_id,
                title=reference.title,
                duration_seconds=reference.duration_seconds,
                uploader_label=reference.uploader_label,
            )
        )


def _to_reference(item: dict[str, Any]) -> FallbackReference | None:
    external_id = video_id_from_url(str(item.get("url") or ""))
    if not external_id:
        return None
    return FallbackReference(
        external_id=external_id,
        title=str(item.get("title") or "Unknown"),
        duration_seconds=int(item.get("duration") or 0),
        uploader_label=str(item.get("uploaderName") or "Unknown"),
    )


__all__ = ["MediaSearchFallbackResolver"]
