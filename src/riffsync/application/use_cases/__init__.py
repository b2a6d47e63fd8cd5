"""Application use cases - sync orchestration."""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

TRequest = TypeVar("TRequest")
TResponse = TypeVar("TResponse")


class UseCase(ABC, Generic[TRequest, TResponse]):
    """Base class for all use cases following command pattern."""

    @abstractmethod
    async def execute(self, request: TRequest) -> TResponse:
        """Execute the use case with the given request."""
        pass


# Import concrete use cases (after UseCase definition to avoid circular imports)
from riffsync.application.use_cases.save_album_mapping import (  # noqa: E402
    SaveAlbumMappingRequest,
    SaveAlbumMappingUseCase,
)
from riffsync.application.use_cases.sync_album import (  # noqa: E402
    LoggingSyncReporter,
    SyncAlbumRequest,
    SyncAlbumUseCase,
)
from riffsync.application.use_cases.sync_track import (  # noqa: E402
    SyncTrackRequest,
    SyncTrackUseCase,
)

__all__ = [
    "UseCase",
    "LoggingSyncReporter",
    "SaveAlbumMappingRequest",
    "SaveAlbumMappingUseCase",
    "SyncAlbumRequest",
    "SyncAlbumUseCase",
    "SyncTrackRequest",
    "SyncTrackUseCase",
]
