"""Provider adapters.

Hey future me - these are the IMPLEMENTATIONS of the resolver ports:

    ContentFetchSourceResolver  → primary path (debrid gateway)
    MediaSearchFallbackResolver → secondary path (Piped search)

Architecture:
    domain/ports/__init__.py       ← ISourceResolver / IFallbackResolver
    infrastructure/integrations/   ← raw HTTP clients
    infrastructure/providers/      ← translation into domain entities
"""

from riffsync.infrastructure.providers.fallback_resolver import (
    MediaSearchFallbackResolver,
)
from riffsync.infrastructure.providers.source_resolver import (
    CONTENT_FETCH_STATE_MAPPING,
    ContentFetchSourceResolver,
    map_status,
)

__all__ = [
    "CONTENT_FETCH_STATE_MAPPING",
    "ContentFetchSourceResolver",
    "MediaSearchFallbackResolver",
    "map_status",
]
