"""Structured log message templates.

Hey future me - the multi-line messages that matter when reading a sync run after
the fact come from here, so they look the same everywhere:

    🔄 Album Sync Started
    ├─ Album: Abbey Road - The Beatles
    ├─ Tracks: 17 (3 already synced)
    └─ Bundle: The Beatles - Abbey Road (2019 Remaster) [FLAC]

Layout: icon, title, tree of fields, optional 💡 hint as the last line.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class LogTemplate:
    """A reusable log message template with {placeholders}."""

    icon: str
    title: str
    fields: dict[str, str]
    hint: str | None = None

    def format(self, **kwargs: Any) -> str:
        """Render the template; unknown placeholders show as <missing: name>."""
        lines = [f"{self.icon} {self.title}"]

        items = list(self.fields.items())
        for i, (key, value_template) in enumerate(items):
            prefix = "└─" if i == len(items) - 1 and not self.hint else "├─"
            try:
                value = value_template.format(**kwargs)
            except KeyError as e:
                value = f"<missing: {e}>"
            lines.append(f"{prefix} {key}: {value}")

        if self.hint:
            try:
                hint_text = self.hint.format(**kwargs)
            except KeyError as e:
                hint_text = f"<missing: {e}>"
            lines.append(f"└─ 💡 {hint_text}")

        return "\n".join(lines)


class LogMessages:
    """Standardized log messages for sync runs and provider trouble."""

    # === Sync runs ===

    @staticmethod
    def album_sync_started(
        album_title: str,
        artist_name: str,
        total: int,
        already_synced: int,
    ) -> str:
        return LogTemplate(
            icon="🔄",
            title="Album Sync Started",
            fields={
                "Album": "{album} - {artist}",
                "Tracks": "{total} ({already} already synced)",
            },
        ).format(album=album_title, artist=artist_name, total=total, already=already_synced)

    @staticmethod
    def bundle_selected(bundle_title: str, file_count: int, track_count: int) -> str:
        return LogTemplate(
            icon="📦",
            title="Bundle Selected",
            fields={"Bundle": "{title}", "Audio files": "{files} for {tracks} tracks"},
        ).format(title=bundle_title, files=file_count, tracks=track_count)

    @staticmethod
    def no_bundle(query: str, reason: str | None = None) -> str:
        fields = {"Query": "{query}"}
        if reason:
            fields["Reason"] = "{reason}"
        return LogTemplate(
            icon="⚠️",
            title="No Usable Bundle",
            fields=fields,
            hint="Every track goes straight to the fallback search",
        ).format(query=query, reason=reason)

    @staticmethod
    def album_sync_completed(
        album_id: str | None,
        outcome: str,
        message: str,
        synced_primary: int,
        synced_fallback: int,
        failed: int,
        duration_seconds: float,
    ) -> str:
        icon = {"success": "✅", "partial": "⚠️"}.get(outcome, "❌")
        return LogTemplate(
            icon=icon,
            title="Album Sync Finished",
            fields={
                "Album": "{album_id}",
                "Result": "{message}",
                "Primary": "{primary}",
                "Fallback": "{fallback}",
                "Failed": "{failed}",
                "Duration": "{duration:.1f}s",
            },
        ).format(
            album_id=album_id or "-",
            message=message,
            primary=synced_primary,
            fallback=synced_fallback,
            failed=failed,
            duration=duration_seconds,
        )

    # === Per track ===

    @staticmethod
    def track_failed(track_title: str, track_id: str, error: str) -> str:
        return LogTemplate(
            icon="❌",
            title="Track Sync Failed",
            fields={"Track": "{title} ({track_id})", "Reason": "{error}"},
            hint="The run continues with the next track",
        ).format(title=track_title, track_id=track_id, error=error)

    # === Providers ===

    @staticmethod
    def provider_failed(provider: str, operation: str, error: str, hint: str | None = None) -> str:
        return LogTemplate(
            icon="🔴",
            title=f"{provider} Request Failed",
            fields={"Operation": "{operation}", "Reason": "{error}"},
            hint=hint or f"Check that {provider} is reachable and the credential is valid",
        ).format(operation=operation, error=error)


__all__ = ["LogMessages", "LogTemplate"]
