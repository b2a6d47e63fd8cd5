"""Dependency injection for API endpoints.

Long-lived objects (database, repositories, HTTP clients, status repository)
are built once in the lifespan and hang off ``app.state``. Everything
per-request (resolvers, pipeline, use cases) is assembled here from them.
"""

import logging
from typing import cast

from fastapi import Depends, Header, HTTPException, Request

from riffsync.application.services import (
    FallbackSearchResolver,
    PrimaryBundleResolver,
    TrackStatusRepository,
)
from riffsync.application.services.sync_pipeline import SyncPipeline
from riffsync.application.use_cases import (
    SaveAlbumMappingUseCase,
    SyncAlbumUseCase,
    SyncTrackUseCase,
)
from riffsync.config import Settings, get_settings
from riffsync.domain.exceptions import ConfigurationError
from riffsync.domain.ports import (
    IContentFetchClient,
    IFallbackResolver,
    IMappingRepository,
    IMediaSearchClient,
    ISourceResolver,
    ITrackPacer,
    ITrackResolver,
)
from riffsync.infrastructure.providers import (
    ContentFetchSourceResolver,
    MediaSearchFallbackResolver,
)
from riffsync.infrastructure.rate_limiter import (
    FixedIntervalPacer,
    RateLimiter,
    TokenBucketPacer,
)

logger = logging.getLogger(__name__)


def _from_state(request: Request, name: str) -> object:
    if not hasattr(request.app.state, name):
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return getattr(request.app.state, name)


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with, else the cached environment settings."""
    settings = getattr(request.app.state, "settings", None)
    return cast(Settings, settings) if settings is not None else get_settings()


def get_mapping_repository(request: Request) -> IMappingRepository:
    return cast(IMappingRepository, _from_state(request, "repository"))


def get_status_repository(request: Request) -> TrackStatusRepository:
    return cast(TrackStatusRepository, _from_state(request, "status"))


def get_content_fetch_client(request: Request) -> IContentFetchClient:
    return cast(IContentFetchClient, _from_state(request, "content_fetch_client"))


def get_media_search_client(request: Request) -> IMediaSearchClient:
    return cast(IMediaSearchClient, _from_state(request, "media_search_client"))


# Hey future me - the debrid API key belongs to the USER, not the server. The client
# sends it on every sync call; we never store it. Missing header is not an auth
# error here: the use case turns a missing credential into a 400 before any I/O.
def get_credential(
    x_debrid_token: str | None = Header(default=None, alias="X-Debrid-Token"),
) -> str | None:
    return x_debrid_token or None


def get_source_resolver(
    settings: Settings = Depends(get_app_settings),
    client: IContentFetchClient = Depends(get_content_fetch_client),
) -> ISourceResolver:
    """Build the content-fetch resolver.

    Raises:
        ConfigurationError: Gateway URL is not configured
    """
    if not settings.content_fetch.base_url:
        raise ConfigurationError(
            "Content-fetch gateway is not configured. "
            "Set RIFFSYNC_CONTENT_FETCH__BASE_URL."
        )
    return ContentFetchSourceResolver(
        client,
        poll_interval_seconds=settings.sync.poll_interval_seconds,
        stall_timeout_seconds=settings.sync.stall_timeout_seconds,
    )


def get_fallback_resolver(
    client: IMediaSearchClient = Depends(get_media_search_client),
    repository: IMappingRepository = Depends(get_mapping_repository),
) -> IFallbackResolver:
    return MediaSearchFallbackResolver(client, repository)


def get_sync_pipeline(
    settings: Settings = Depends(get_app_settings),
    source_resolver: ISourceResolver = Depends(get_source_resolver),
    fallback_resolver: IFallbackResolver = Depends(get_fallback_resolver),
    repository: IMappingRepository = Depends(get_mapping_repository),
    status: TrackStatusRepository = Depends(get_status_repository),
) -> SyncPipeline:
    """Assemble the resolver chain: bundle file first, then media-search fallback."""
    strategies: list[ITrackResolver] = [
        PrimaryBundleResolver(
            source_resolver,
            repository,
            poll_max_wait_ms=int(settings.sync.poll_max_wait_seconds * 1000),
        )
    ]
    if settings.sync.fallback_enabled:
        strategies.append(FallbackSearchResolver(fallback_resolver))

    return SyncPipeline(
        source_resolver,
        repository,
        status,
        strategies,
        bundle_coverage_ratio=settings.sync.bundle_coverage_ratio,
    )


def get_track_pacer(settings: Settings = Depends(get_app_settings)) -> ITrackPacer:
    """Pacing between the tracks of one album run, per ``sync.pacing``."""
    sync = settings.sync
    if sync.pacing == "token_bucket" and sync.inter_track_delay_seconds > 0:
        return TokenBucketPacer(
            RateLimiter.for_track_pacing(sync.inter_track_delay_seconds, sync.pacing_burst)
        )
    return FixedIntervalPacer(delay_seconds=sync.inter_track_delay_seconds)


def get_sync_album_use_case(
    credential: str | None = Depends(get_credential),
    pipeline: SyncPipeline = Depends(get_sync_pipeline),
    pacer: ITrackPacer = Depends(get_track_pacer),
) -> SyncAlbumUseCase:
    return SyncAlbumUseCase(credential, pipeline, pacer=pacer)


def get_sync_track_use_case(
    credential: str | None = Depends(get_credential),
    pipeline: SyncPipeline = Depends(get_sync_pipeline),
) -> SyncTrackUseCase:
    return SyncTrackUseCase(credential, pipeline)


def get_save_album_mapping_use_case(
    repository: IMappingRepository = Depends(get_mapping_repository),
    status: TrackStatusRepository = Depends(get_status_repository),
) -> SaveAlbumMappingUseCase:
    return SaveAlbumMappingUseCase(repository, status)
