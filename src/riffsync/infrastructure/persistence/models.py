"""SQLAlchemy ORM models for riffsync."""

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# Hey future me, every timestamp is UTC. SQLite hands datetimes back naive, so
# compare through ensure_utc_aware() and never against datetime.now() without tz.
def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class AlbumBundleMappingModel(Base):
    """Album -> provider bundle association.

    One row per album. Re-syncing an album against a different bundle deletes
    this row and the delete cascades to every TrackFileMappingModel under it.
    """

    __tablename__ = "album_bundle_mappings"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    album_id: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    album_title: Mapped[str] = mapped_column(
        String(512), nullable=False, default="", server_default=""
    )
    artist_name: Mapped[str] = mapped_column(
        String(512), nullable=False, default="", server_default=""
    )
    bundle_id: Mapped[str] = mapped_column(String(255), nullable=False)
    bundle_title: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    track_mappings: Mapped[list["TrackFileMappingModel"]] = relationship(
        "TrackFileMappingModel",
        back_populates="album_mapping",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class TrackFileMappingModel(Base):
    """Track -> file inside the album's bundle.

    direct_link stays NULL while the provider is still preparing the file.
    """

    __tablename__ = "track_file_mappings"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    album_mapping_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("album_bundle_mappings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    track_id: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    track_title: Mapped[str] = mapped_column(
        String(512), nullable=False, default="", server_default=""
    )
    track_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    file_id: Mapped[int] = mapped_column(Integer, nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    direct_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    album_mapping: Mapped["AlbumBundleMappingModel"] = relationship(
        "AlbumBundleMappingModel", back_populates="track_mappings"
    )


class FallbackTrackMappingModel(Base):
    """Track -> alternate reference from the media-search provider."""

    __tablename__ = "fallback_track_mappings"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    track_id: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    external_reference_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    duration_seconds: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    uploader_label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )
