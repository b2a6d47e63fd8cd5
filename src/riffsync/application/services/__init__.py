"""Application services."""

from riffsync.application.services.resolver_strategies import (
    FallbackSearchResolver,
    PrimaryBundleResolver,
)
from riffsync.application.services.status_broadcaster import (
    StatusSnapshot,
    TrackStatusRepository,
)

__all__ = [
    "FallbackSearchResolver",
    "PrimaryBundleResolver",
    "StatusSnapshot",
    "TrackStatusRepository",
]
