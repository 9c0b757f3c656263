"""
models.py — Canonical Value Records
=====================================
Last.fm returns the same concepts in different shapes depending on the
endpoint: an artist may be a plain string, ``{"name": ...}`` (top tracks,
extended recent tracks) or ``{"#text": ...}`` (recent tracks, weekly
charts).  Everything is normalised here, once, at the API boundary, so
detection and timeline code only ever see a ``Track`` with ``artist: str``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Mapping, Optional, TypeVar

from armystats.utils import as_list, parse_int, utc_from_timestamp

T = TypeVar("T")

MEMBERS = ("RM", "Jin", "Suga", "J-Hope", "Jimin", "V", "Jungkook")


# ── shape helpers ───────────────────────────────────────────────────────────

def _ref_name(ref: Any) -> str:
    """Extract a display name from a string / {name} / {#text} reference."""
    if ref is None:
        return ""
    if isinstance(ref, str):
        return ref
    if isinstance(ref, Mapping):
        for key in ("name", "#text"):
            value = ref.get(key)
            if isinstance(value, str) and value:
                return value
    return ""


def _images(raw: Any) -> List[Dict[str, str]]:
    return [img for img in as_list(raw) if isinstance(img, Mapping)]


# ═════════════════════════════════════════════════════════════════════════════
#  TRACKS & CHARTS
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Track:
    """One scrobbled / charted track in canonical shape."""

    name: str
    artist: str
    album: Optional[str] = None
    playcount: Optional[int] = None
    date: Optional[datetime] = None
    url: str = ""
    now_playing: bool = False
    rank: Optional[int] = None
    images: List[Dict[str, str]] = field(default_factory=list, repr=False, compare=False)

    @property
    def weight(self) -> int:
        """Plays this record stands for; recent-track rows count once."""
        if self.playcount is not None:
            return self.playcount
        return 1


def normalize_track(raw: Any) -> Track:
    """
    Coerce any upstream track record into a ``Track``.

    Accepts an existing ``Track`` (returned as-is) or a mapping from the
    recent-tracks, top-tracks or weekly-chart endpoints.
    """
    if isinstance(raw, Track):
        return raw
    if not isinstance(raw, Mapping):
        raise TypeError(f"Cannot normalise track record of type {type(raw).__name__}")

    album = _ref_name(raw.get("album")) or None
    attr = raw.get("@attr") if isinstance(raw.get("@attr"), Mapping) else {}
    date_ref = raw.get("date")
    if isinstance(date_ref, Mapping):
        date = utc_from_timestamp(date_ref.get("uts"))
    elif isinstance(date_ref, datetime):
        date = date_ref
    else:
        date = utc_from_timestamp(date_ref)

    name = raw.get("name")
    return Track(
        name=name if isinstance(name, str) else "",
        artist=_ref_name(raw.get("artist")),
        album=album,
        playcount=parse_int(raw.get("playcount")),
        date=date,
        url=raw.get("url") or "",
        now_playing=str(attr.get("nowplaying", "")).lower() == "true",
        rank=parse_int(attr.get("rank")),
        images=_images(raw.get("image")),
    )


@dataclass(frozen=True)
class WeeklyChart:
    """One contiguous reporting week, bounds in unix seconds."""

    from_ts: int
    to_ts: int

    @property
    def start(self) -> datetime:
        return datetime.fromtimestamp(self.from_ts, tz=timezone.utc)

    @property
    def end(self) -> datetime:
        return datetime.fromtimestamp(self.to_ts, tz=timezone.utc)

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> "WeeklyChart":
        return cls(from_ts=parse_int(raw.get("from"), 0), to_ts=parse_int(raw.get("to"), 0))


# ═════════════════════════════════════════════════════════════════════════════
#  PROFILE & TOP LISTS
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class UserProfile:
    name: str
    realname: str
    url: str
    playcount: int
    registered: Optional[datetime]
    country: str = ""
    images: List[Dict[str, str]] = field(default_factory=list, repr=False)

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> "UserProfile":
        registered = raw.get("registered")
        if isinstance(registered, Mapping):
            registered_at = utc_from_timestamp(
                registered.get("unixtime") or registered.get("#text")
            )
        else:
            registered_at = utc_from_timestamp(registered)
        return cls(
            name=raw.get("name") or "",
            realname=raw.get("realname") or "",
            url=raw.get("url") or "",
            playcount=parse_int(raw.get("playcount"), 0),
            registered=registered_at,
            country=raw.get("country") or "",
            images=_images(raw.get("image")),
        )


@dataclass(frozen=True)
class TopArtist:
    name: str
    playcount: int
    rank: Optional[int]
    url: str = ""
    images: List[Dict[str, str]] = field(default_factory=list, repr=False)

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> "TopArtist":
        attr = raw.get("@attr") if isinstance(raw.get("@attr"), Mapping) else {}
        return cls(
            name=_ref_name(raw),
            playcount=parse_int(raw.get("playcount"), 0),
            rank=parse_int(attr.get("rank")),
            url=raw.get("url") or "",
            images=_images(raw.get("image")),
        )


@dataclass(frozen=True)
class TopAlbum:
    name: str
    artist: str
    playcount: int
    rank: Optional[int]
    url: str = ""
    images: List[Dict[str, str]] = field(default_factory=list, repr=False)

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> "TopAlbum":
        attr = raw.get("@attr") if isinstance(raw.get("@attr"), Mapping) else {}
        return cls(
            name=_ref_name(raw),
            artist=_ref_name(raw.get("artist")),
            playcount=parse_int(raw.get("playcount"), 0),
            rank=parse_int(attr.get("rank")),
            url=raw.get("url") or "",
            images=_images(raw.get("image")),
        )


# ═════════════════════════════════════════════════════════════════════════════
#  ANALYTICS RESULTS
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MemberPreference:
    member: str
    plays: int


@dataclass(frozen=True)
class TimelineEntry:
    date: datetime
    plays: int
    top_track: Optional[str]
    top_member: Optional[str]


@dataclass(frozen=True)
class PeakPeriod:
    date: datetime
    plays: int


@dataclass(frozen=True)
class FavoriteEra:
    album: str
    plays: int


@dataclass(frozen=True)
class BTSTimeline:
    """
    Aggregate BTS listening history.

    ``first_play is None`` means no BTS listening was found, in which
    case ``evolution`` is always empty.
    """

    first_play: Optional[datetime]
    evolution: List[TimelineEntry]
    total_plays: int
    peak_period: Optional[PeakPeriod]
    favorite_era: Optional[FavoriteEra]

    def __post_init__(self) -> None:
        if self.first_play is None and self.evolution:
            raise ValueError("evolution must be empty when first_play is None")

    @classmethod
    def empty(cls) -> "BTSTimeline":
        return cls(
            first_play=None,
            evolution=[],
            total_plays=0,
            peak_period=None,
            favorite_era=None,
        )

    def to_dict(self) -> Dict[str, Any]:
        def _iso(dt: Optional[datetime]) -> Optional[str]:
            return dt.isoformat() if dt is not None else None

        return {
            "first_play": _iso(self.first_play),
            "evolution": [
                {
                    "date": _iso(e.date),
                    "plays": e.plays,
                    "top_track": e.top_track,
                    "top_member": e.top_member,
                }
                for e in self.evolution
            ],
            "total_plays": self.total_plays,
            "peak_period": (
                {"date": _iso(self.peak_period.date), "plays": self.peak_period.plays}
                if self.peak_period else None
            ),
            "favorite_era": (
                {"album": self.favorite_era.album, "plays": self.favorite_era.plays}
                if self.favorite_era else None
            ),
        }


@dataclass(frozen=True)
class SkippedWeek:
    """A sampled week that did not make it into the evolution series."""

    chart: WeeklyChart
    reason: str


@dataclass(frozen=True)
class PartialResult(Generic[T]):
    """A best-effort aggregate plus the data points that were dropped."""

    value: T
    skipped: List[SkippedWeek] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.skipped
