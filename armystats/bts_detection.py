"""
bts_detection.py — BTS Affiliation & Member Attribution
=========================================================
Stateless classification of tracks via alias-table substring matching.

Matching is case-insensitive on whitespace-trimmed strings and uses plain
substring containment with no word-boundary check.  Short aliases such as
``"v"`` or ``"jk"`` therefore match inside unrelated names; aliased
collaboration credits rely on this looseness, so tightening it is a
behaviour change, not a bug fix.

All functions accept ``Track`` objects or raw Last.fm track mappings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from armystats.models import MEMBERS, MemberPreference, Track, normalize_track

GROUP = "group"
SOLO = "solo"

# Declaration order is the tie-break order for attribution.
BTS_MEMBER_ALIASES: Dict[str, Tuple[str, ...]] = {
    "RM": (
        "rm",
        "rap monster",
        "rapmonster",
        "rap mon",
        "kim namjoon",
        "namjoon",
        "kim nam-joon",
        "kim nam joon",
    ),
    "Jin": (
        "jin",
        "seokjin",
        "kim seokjin",
        "kim seok-jin",
        "kim seok jin",
    ),
    "Suga": (
        "suga",
        "agust d",
        "agustd",
        "august d",
        "min yoongi",
        "yoongi",
        "min yoon-gi",
        "min yoon gi",
        "daechwita",
    ),
    "J-Hope": (
        "j-hope",
        "jhope",
        "j hope",
        "hobi",
        "jung hoseok",
        "hoseok",
        "jung ho-seok",
        "jung ho seok",
        "hope world",
    ),
    "Jimin": (
        "jimin",
        "park jimin",
        "park ji-min",
        "park ji min",
    ),
    "V": (
        "v",
        "kim taehyung",
        "taehyung",
        "kim tae-hyung",
        "kim tae hyung",
        "tae",
        "taetae",
    ),
    "Jungkook": (
        "jungkook",
        "jung kook",
        "jeon jungkook",
        "jeon jung-kook",
        "jeon jung kook",
        "jk",
        "kookie",
        "golden",
    ),
}

BTS_GROUP_IDENTIFIERS: Tuple[str, ...] = (
    "bts",
    "방탄소년단",
    "bangtan",
    "bangtan sonyeondan",
    "beyond the scene",
    "bulletproof boy scouts",
    "bangtan boys",
)

_FEATURE_MARKERS = ("ft. ", "feat. ")


@dataclass(frozen=True)
class BTSTrackSplit:
    group_tracks: List[Track]
    solo_tracks: List[Track]
    all_bts_tracks: List[Track]


# ── matching primitives ─────────────────────────────────────────────────────

def _normalize(text: str) -> str:
    return text.lower().strip()


def _contains_any(text: str, aliases: Iterable[str]) -> bool:
    return any(alias in text for alias in aliases)


def _features_any(title: str, aliases: Iterable[str]) -> bool:
    """True if ``title`` credits any alias as ``ft. <alias>`` / ``feat. <alias>``."""
    return any(
        f"{marker}{alias}" in title
        for alias in aliases
        for marker in _FEATURE_MARKERS
    )


def _all_member_aliases() -> Iterable[str]:
    for aliases in BTS_MEMBER_ALIASES.values():
        yield from aliases


def _fields(track: Any) -> Tuple[Track, str, str]:
    t = normalize_track(track)
    return t, _normalize(t.artist), _normalize(t.name)


# ═════════════════════════════════════════════════════════════════════════════
#  CLASSIFICATION
# ═════════════════════════════════════════════════════════════════════════════

def is_bts_track(track: Any) -> Optional[str]:
    """
    Classify a track as ``"group"``, ``"solo"`` or ``None``.

    Order: group alias in artist, member alias in artist, then featured
    credits in the title (group before members).  First match wins.
    """
    _, artist, title = _fields(track)

    if _contains_any(artist, BTS_GROUP_IDENTIFIERS):
        return GROUP
    if _contains_any(artist, _all_member_aliases()):
        return SOLO
    if _features_any(title, BTS_GROUP_IDENTIFIERS):
        return GROUP
    if _features_any(title, _all_member_aliases()):
        return SOLO
    return None


def detect_member(track: Any) -> Optional[str]:
    """Attribute a track to one member; first member in table order wins."""
    _, artist, title = _fields(track)

    for member, aliases in BTS_MEMBER_ALIASES.items():
        if _contains_any(artist, aliases):
            return member
    for member, aliases in BTS_MEMBER_ALIASES.items():
        if _features_any(title, aliases):
            return member
    return None


def filter_bts_tracks(tracks: Iterable[Any]) -> BTSTrackSplit:
    """Partition a batch; non-BTS tracks are dropped."""
    group: List[Track] = []
    solo: List[Track] = []
    for raw in tracks:
        track = normalize_track(raw)
        kind = is_bts_track(track)
        if kind == GROUP:
            group.append(track)
        elif kind == SOLO:
            solo.append(track)
    return BTSTrackSplit(group_tracks=group, solo_tracks=solo, all_bts_tracks=group + solo)


# ═════════════════════════════════════════════════════════════════════════════
#  AGGREGATION
# ═════════════════════════════════════════════════════════════════════════════

def _member_counts(tracks: Iterable[Any]) -> Dict[str, int]:
    """Weighted plays per member over solo tracks, in first-seen order."""
    counts: Dict[str, int] = {}
    for raw in tracks:
        track = normalize_track(raw)
        if is_bts_track(track) != SOLO:
            continue
        member = detect_member(track)
        if member is None:
            continue
        counts[member] = counts.get(member, 0) + track.weight
    return counts


def calculate_member_preference(tracks: Iterable[Any]) -> List[MemberPreference]:
    """
    Plays per member, all seven always present, most-played first.

    Ties keep member declaration order.
    """
    counts = _member_counts(tracks)
    prefs = [MemberPreference(member=m, plays=counts.get(m, 0)) for m in MEMBERS]
    return sorted(prefs, key=lambda p: p.plays, reverse=True)


def detect_top_member(tracks: Iterable[Any]) -> Optional[str]:
    """Most-played member among solo tracks, or None when there are none."""
    top: Optional[str] = None
    best = 0
    for member, plays in _member_counts(tracks).items():
        if plays > best:
            best = plays
            top = member
    return top


def _album_counts(tracks: Iterable[Any]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for raw in tracks:
        track = normalize_track(raw)
        if not track.album or is_bts_track(track) is None:
            continue
        counts[track.album] = counts.get(track.album, 0) + track.weight
    return counts


def get_favorite_bts_album(tracks: Iterable[Any]) -> str:
    """Album with the most weighted BTS plays, ``"Unknown"`` if none."""
    favorite = "Unknown"
    best = 0
    for album, plays in _album_counts(tracks).items():
        if plays > best:
            best = plays
            favorite = album
    return favorite


def album_plays(tracks: Iterable[Any], album: str) -> int:
    """Weighted BTS plays on one album."""
    return _album_counts(tracks).get(album, 0)


def calculate_bts_plays(tracks: Iterable[Any]) -> int:
    total = 0
    for raw in tracks:
        track = normalize_track(raw)
        if is_bts_track(track) is not None:
            total += track.weight
    return total


def calculate_bts_percentage(bts_plays: int, total_plays: int) -> int:
    """Share of listening that is BTS, as a rounded 0-100 integer."""
    if total_plays <= 0:
        return 0
    pct = int(bts_plays * 100 / total_plays + 0.5)
    return max(0, min(pct, 100))
