"""Track title <-> bundle filename matching.

Hey future me - bundle files are named by whoever packed them, so titles arrive as
"01 - Come Together.mp3", "Beatles - Abbey Road [FLAC]/01. come together.flac",
"CD1/Something (Remastered 2009).mp3" and worse. Everything here is pure and
deterministic: no I/O, no logging, no randomness. The same functions serve the
one-shot bulk pass over a whole bundle (match_tracks_to_files) and the
single-track lookups inside the sequential sync loop (find_candidate).

Rules of thumb:
- normalize() is idempotent, so normalizing twice is always safe.
- matches() trades precision for recall depending on title length.
- score() is the 0-1 confidence reported to callers.

Examples:
    >>> normalize("Café del Mar (Remastered)")
    'cafe del mar'
    >>> significant_words("01 - The Sound of Silence.flac")
    ['sound', 'silence']
    >>> matches("03 - Here Comes the Sun.mp3", "Here Comes The Sun")
    True
"""

import re
import unicodedata
from collections.abc import Iterable, Sequence

from riffsync.domain.entities import (
    BundleSearchResult,
    CandidateFile,
    CanonicalTrack,
    TrackMatch,
)

# English + Italian function words, plus container/format labels that show up
# as tokens once the extension dot is turned into a space.
STOP_WORDS: frozenset[str] = frozenset(
    {
        # English
        "a", "an", "the", "of", "to", "and", "or", "for",
        # Italian
        "e", "i", "o", "u", "il", "la", "lo", "le", "gli", "un", "una", "uno",
        "di", "da", "in", "con", "su", "per", "tra", "fra", "del", "della",
        "dei", "degli", "al", "alla",
    }
)

FORMAT_LABELS: frozenset[str] = frozenset(
    {"mp3", "flac", "wav", "m4a", "aac", "ogg"}
)

_APOSTROPHES_RE = re.compile(r"['‘’`]")
_PARENTHETICAL_RE = re.compile(r"\([^)]*\)")
_BRACKETED_RE = re.compile(r"\[[^\]]*\]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_WS_RE = re.compile(r"\s+")

_TRACK_NUMBER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(\d{1,2})[.\-_\s]"),
    re.compile(r"track\s*(\d{1,2})", re.IGNORECASE),
    re.compile(r"\[(\d{1,2})\]"),
    re.compile(r"\((\d{1,2})\)"),
)

# Minimum normalized length for substring containment to count as a match.
_MIN_CONTAINMENT_LENGTH = 3

_BULK_POSITION_CONFIDENCE = 0.8
_BULK_SIMILARITY_THRESHOLD = 0.4


def normalize(text: str) -> str:
    """Normalize text for matching.

    Lowercases, strips diacritics, drops (...) and [...] annotations and
    punctuation, collapses whitespace.

    Examples:
        >>> normalize("  Beyoncé  -  Halo [Live]  ")
        'beyonce halo'
        >>> normalize("Don't Stop Me Now")
        'dont stop me now'
    """
    text = unicodedata.normalize("NFD", text.lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = _APOSTROPHES_RE.sub("", text)
    text = _PARENTHETICAL_RE.sub("", text)
    text = _BRACKETED_RE.sub("", text)
    text = _NON_ALNUM_RE.sub(" ", text)
    return _WS_RE.sub(" ", text).strip()


def significant_words(text: str) -> list[str]:
    """Tokens of ``normalize(text)`` that carry meaning.

    Single characters, stop words, pure digits (track numbers, years) and
    format labels are discarded. Order is preserved, duplicates are kept.
    """
    return [
        word
        for word in normalize(text).split()
        if len(word) > 1
        and word not in STOP_WORDS
        and word not in FORMAT_LABELS
        and not word.isdigit()
    ]


def _contains_either_way(a: str, b: str) -> bool:
    if not a or not b:
        return False
    shorter = a if len(a) <= len(b) else b
    if len(shorter) <= _MIN_CONTAINMENT_LENGTH:
        return False
    return a in b or b in a


def matches(candidate_name: str, track_title: str) -> bool:
    """Decide whether a candidate name (filename or path) is the track.

    True if any of:
    (a) normalized containment either way, shorter side longer than 3 chars
    (b) every significant title word appears in the candidate
    (c) 4+ significant title words and at least 3 present
    (d) up to 3 significant title words and all present
    (e) 2+ significant candidate words and at least 80% (min 2) of them are
        title words
    """
    normalized_candidate = normalize(candidate_name)
    normalized_title = normalize(track_title)

    if _contains_either_way(normalized_candidate, normalized_title):
        return True

    title_words = significant_words(track_title)
    if not title_words:
        return False

    present = [word for word in title_words if word in normalized_candidate]

    if len(present) == len(title_words):
        return True
    if len(title_words) >= 4 and len(present) >= 3:
        return True
    if len(title_words) <= 3 and len(present) == len(title_words):
        return True

    candidate_words = significant_words(candidate_name)
    if len(candidate_words) >= 2:
        title_word_set = set(title_words)
        in_title = [word for word in candidate_words if word in title_word_set]
        if len(in_title) >= len(candidate_words) * 0.8 and len(in_title) >= 2:
            return True

    return False


def matches_file(candidate: CandidateFile, track_title: str) -> bool:
    """Apply matches() against both the filename and the parent path."""
    return matches(candidate.filename, track_title) or matches(
        candidate.path, track_title
    )


def score(title: str, filename: str) -> float:
    """Confidence in [0, 1] that ``filename`` is ``title``.

    1.0 exact normalized match, 0.9 containment, otherwise the share of
    overlapping significant words over the larger word set.
    """
    normalized_title = normalize(title)
    normalized_file = normalize(filename)

    if normalized_title == normalized_file:
        return 1.0 if (normalized_title or title == filename) else 0.0
    if normalized_title and normalized_file and (
        normalized_title in normalized_file or normalized_file in normalized_title
    ):
        return 0.9

    title_words = set(significant_words(title))
    file_words = set(significant_words(filename))
    if not title_words or not file_words:
        return 0.0
    return len(title_words & file_words) / max(len(title_words), len(file_words))


def extract_track_number(filename: str) -> int | None:
    """Pull a track number out of a filename.

    Recognizes "01 - x", "01. x", "Track 01", "[01]" and "(01)".
    """
    for pattern in _TRACK_NUMBER_PATTERNS:
        match = pattern.search(filename)
        if match:
            return int(match.group(1))
    return None


def find_candidate(
    track: CanonicalTrack,
    files: Iterable[CandidateFile],
    claimed: set[int] | None = None,
) -> tuple[CandidateFile, float] | None:
    """Find the first unclaimed file matching the track title.

    Filenames are tried before paths so that a title track whose name is also
    the bundle folder does not swallow the first file of the album.

    Returns:
        (file, confidence) or None when nothing matches
    """
    claimed = claimed or set()
    available = [f for f in files if f.id not in claimed]

    for candidate in available:
        if matches(candidate.filename, track.title):
            return candidate, _confidence(track.title, candidate)
    for candidate in available:
        if matches(candidate.path, track.title):
            return candidate, _confidence(track.title, candidate)
    return None


def _confidence(title: str, candidate: CandidateFile) -> float:
    return max(score(title, candidate.filename), score(title, candidate.path))


def match_tracks_to_files(
    tracks: Sequence[CanonicalTrack],
    files: Sequence[CandidateFile],
) -> list[TrackMatch]:
    """Bulk-pair a whole track list with a bundle's files.

    Pass 1 pairs by track number == album position. Pass 2 gives every
    still-unpaired track the best remaining file by score() above 0.4.
    Each file is assigned at most once.
    """
    results = [TrackMatch(track_id=track.id) for track in tracks]
    used: set[int] = set()

    for track, result in zip(tracks, results, strict=True):
        for candidate in files:
            if candidate.id in used:
                continue
            if extract_track_number(candidate.filename) == track.position:
                similarity = score(track.title, candidate.filename)
                _assign(result, candidate, max(_BULK_POSITION_CONFIDENCE, similarity))
                used.add(candidate.id)
                break

    for track, result in zip(tracks, results, strict=True):
        if result.file_id is not None:
            continue
        best: CandidateFile | None = None
        best_similarity = _BULK_SIMILARITY_THRESHOLD
        for candidate in files:
            if candidate.id in used:
                continue
            similarity = score(track.title, candidate.filename)
            if similarity > best_similarity:
                best, best_similarity = candidate, similarity
        if best is not None:
            _assign(result, best, best_similarity)
            used.add(best.id)

    return results


def _assign(result: TrackMatch, candidate: CandidateFile, confidence: float) -> None:
    result.file_id = candidate.id
    result.file_name = candidate.filename
    result.file_path = candidate.path
    result.confidence = min(1.0, max(0.0, confidence))


def select_bundle(
    bundles: Sequence[BundleSearchResult],
    track_count: int,
    coverage_ratio: float = 0.5,
) -> BundleSearchResult | None:
    """Pick the bundle to sync an album from.

    First bundle covering at least ``coverage_ratio`` of the tracks, else the
    first bundle with any files, else None.
    """
    for bundle in bundles:
        if bundle.candidate_files and bundle.file_count >= track_count * coverage_ratio:
            return bundle
    for bundle in bundles:
        if bundle.candidate_files:
            return bundle
    return None


__all__ = [
    "STOP_WORDS",
    "FORMAT_LABELS",
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
