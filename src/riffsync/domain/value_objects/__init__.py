"""Domain value objects and pure matching rules."""

from riffsync.domain.value_objects.track_matching import (
    extract_track_number,
    find_candidate,
    match_tracks_to_files,
    matches,
    matches_file,
    normalize,
    score,
    select_bundle,
    significant_words,
)

__all__ = [
    "normalize",
    "significant_words",
    "matches",
    "matches_file",
    "score",
    "extract_track_number",
    "find_candidate",
    "match_tracks_to_files",
    "select_bundle",
]
