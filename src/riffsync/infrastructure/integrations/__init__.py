"""External integration client implementations."""

from riffsync.infrastructure.integrations.content_fetch_client import ContentFetchClient
from riffsync.infrastructure.integrations.media_search_client import MediaSearchClient

__all__ = [
    "ContentFetchClient",
    "MediaSearchClient",
]
