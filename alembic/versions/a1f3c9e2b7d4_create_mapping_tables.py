"""create album, track and fallback mapping tables

Revision ID: a1f3c9e2b7d4
Revises:
Create Date: 2026-10-18 09:00:00.000000

Hey future me - the three tables of the sync engine:

- album_bundle_mappings: one row per album, the bundle it was synced against
- track_file_mappings: one row per track, the file inside that bundle plus the
  direct link once the provider has it ready (NULL while still preparing)
- fallback_track_mappings: one row per track resolved through media search

Deleting an album mapping cascades to its track mappings (that is how an album
is re-pointed at another bundle). Fallback rows are independent on purpose.
"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "a1f3c9e2b7d4"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the mapping tables."""
    op.create_table(
        "album_bundle_mappings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("album_id", sa.String(255), nullable=False),
        sa.Column("album_title", sa.String(512), nullable=False, server_default=""),
        sa.Column("artist_name", sa.String(512), nullable=False, server_default=""),
        sa.Column("bundle_id", sa.String(255), nullable=False),
        sa.Column("bundle_title", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_album_bundle_mappings_album_id",
        "album_bundle_mappings",
        ["album_id"],
        unique=True,
    )

    op.create_table(
        "track_file_mappings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "album_mapping_id",
            sa.String(36),
            sa.ForeignKey("album_bundle_mappings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("track_id", sa.String(255), nullable=False),
        sa.Column("track_title", sa.String(512), nullable=False, server_default=""),
        sa.Column("track_position", sa.Integer(), nullable=True),
        sa.Column("file_id", sa.Integer(), nullable=False),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("direct_link", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_track_file_mappings_album_mapping_id",
        "track_file_mappings",
        ["album_mapping_id"],
    )
    op.create_index(
        "ix_track_file_mappings_track_id",
        "track_file_mappings",
        ["track_id"],
        unique=True,
    )

    op.create_table(
        "fallback_track_mappings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("track_id", sa.String(255), nullable=False),
        sa.Column("external_reference_id", sa.String(64), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("uploader_label", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_fallback_track_mappings_track_id",
        "fallback_track_mappings",
        ["track_id"],
        unique=True,
    )


def downgrade() -> None:
    """Drop the mapping tables."""
    op.drop_index("ix_fallback_track_mappings_track_id", table_name="fallback_track_mappings")
    op.drop_table("fallback_track_mappings")
    op.drop_index("ix_track_file_mappings_track_id", table_name="track_file_mappings")
    op.drop_index("ix_track_file_mappings_album_mapping_id", table_name="track_file_mappings")
    op.drop_table("track_file_mappings")
    op.drop_index("ix_album_bundle_mappings_album_id", table_name="album_bundle_mappings")
    op.drop_table("album_bundle_mappings")
