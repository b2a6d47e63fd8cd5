"""Application lifecycle management for startup and shutdown tasks."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from sqlalchemy.engine import make_url

from riffsync.application.services import TrackStatusRepository
from riffsync.config import Settings, get_settings
from riffsync.domain.exceptions import ConfigurationError
from riffsync.infrastructure.integrations import ContentFetchClient, MediaSearchClient
from riffsync.infrastructure.observability import configure_logging
from riffsync.infrastructure.persistence import Database, MappingRepository

logger = logging.getLogger(__name__)


def _ensure_sqlite_directory(settings: Settings) -> None:
    """Create the parent directory of a file-based SQLite database."""
    url = make_url(settings.database.url)
    if not url.drivername.startswith("sqlite") or not url.database:
        return
    if url.database == ":memory:":
        return

    parent = Path(url.database).parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to create SQLite database directory '{parent}': {exc}. "
            "Update RIFFSYNC_DATABASE__URL or adjust directory permissions."
        ) from exc


# Hey future me - everything before `yield` is STARTUP, everything after is SHUTDOWN.
# The status repository is in-memory on purpose: after a restart nothing is syncing,
# and "synced" is rebuilt from the mapping tables the first time a run looks at a track.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup: logging, database (tables created if missing), mapping repository,
    status repository and the two provider HTTP clients on ``app.state``.
    Shutdown: close the HTTP clients, dispose the engine.
    """
    settings: Settings = getattr(app.state, "settings", None) or get_settings()
    app.state.settings = settings

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.log_json,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    db: Database | None = None
    content_fetch_client: ContentFetchClient | None = None
    media_search_client: MediaSearchClient | None = None
    try:
        _ensure_sqlite_directory(settings)
        db = Database(settings.database)
        await db.create_tables()
        app.state.db = db
        app.state.repository = MappingRepository(db)
        logger.info("Database initialized: %s", settings.database.url)

        app.state.status = TrackStatusRepository()

        content_fetch_client = ContentFetchClient(settings.content_fetch)
        media_search_client = MediaSearchClient(settings.media_search)
        app.state.content_fetch_client = content_fetch_client
        app.state.media_search_client = media_search_client

        if not settings.content_fetch.base_url:
            logger.warning(
                "Content-fetch gateway URL is empty; sync endpoints will answer 503 "
                "until RIFFSYNC_CONTENT_FETCH__BASE_URL is set"
            )

        yield
    except Exception as e:
        logger.exception("Error during application startup: %s", e)
        raise
    finally:
        logger.info("Shutting down application")
        if content_fetch_client is not None:
            await content_fetch_client.close()
        if media_search_client is not None:
            await media_search_client.close()
        if db is not None:
            await db.close()
        logger.info("Application shutdown complete")
