"""
dashboard.py — Music Dashboard Aggregation
============================================
Collects everything the ARMY music dashboard renders for one Last.fm user:
profile, overview numbers, recent and top lists, BTS analytics over the
top tracks, and the cheap single-request BTS timeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd

from armystats.bts_detection import (
    calculate_bts_percentage,
    calculate_bts_plays,
    calculate_member_preference,
    filter_bts_tracks,
    get_favorite_bts_album,
)
from armystats.lastfm_client import VALID_PERIODS, LastFmClient, LastFmError
from armystats.models import BTSTimeline, MemberPreference, TopAlbum, TopArtist, Track
from armystats.timeline import build_simple_bts_timeline
from armystats.utils import get_logger

logger = get_logger("armystats.dashboard")

DEFAULT_AVATAR = "/default-avatar.png"
AVERAGE_TRACK_MINUTES = 3
BTS_LIST_CAP = 20


@dataclass(frozen=True)
class DashboardOverview:
    total_tracks: int
    total_artists: int
    total_listening_hours: int
    bts_plays: int
    bts_percentage: int
    account_age: str


@dataclass(frozen=True)
class BTSAnalytics:
    total_bts_plays: int
    favorite_bts_album: str
    member_preference: List[MemberPreference]
    bts_tracks: List[Track]
    solo_tracks: List[Track]


@dataclass(frozen=True)
class MusicDashboard:
    username: str
    realname: str
    profile_url: str
    image: str
    playcount: int
    registered: Optional[datetime]
    overview: DashboardOverview
    recent_tracks: List[Track] = field(repr=False)
    top_tracks: List[Track] = field(repr=False)
    top_artists: List[TopArtist] = field(repr=False)
    top_albums: List[TopAlbum] = field(repr=False)
    bts_analytics: BTSAnalytics = field(repr=False)
    bts_timeline: Optional[BTSTimeline] = None

    def to_dict(self) -> Dict[str, Any]:
        def _track(t: Track) -> Dict[str, Any]:
            return {
                "name": t.name,
                "artist": t.artist,
                "album": t.album,
                "playcount": t.playcount,
                "date": t.date.isoformat() if t.date else None,
                "now_playing": t.now_playing,
                "url": t.url,
            }

        return {
            "user_profile": {
                "name": self.username,
                "realname": self.realname,
                "url": self.profile_url,
                "image": self.image,
                "playcount": self.playcount,
                "registered": self.registered.isoformat() if self.registered else None,
                "account_age": self.overview.account_age,
            },
            "overview": {
                "total_tracks": self.overview.total_tracks,
                "total_artists": self.overview.total_artists,
                "total_listening_hours": self.overview.total_listening_hours,
                "bts_plays": self.overview.bts_plays,
                "bts_percentage": self.overview.bts_percentage,
            },
            "recent_tracks": [_track(t) for t in self.recent_tracks],
            "top_tracks": [_track(t) for t in self.top_tracks],
            "top_artists": [
                {"name": a.name, "playcount": a.playcount, "rank": a.rank}
                for a in self.top_artists
            ],
            "top_albums": [
                {"name": a.name, "artist": a.artist, "playcount": a.playcount, "rank": a.rank}
                for a in self.top_albums
            ],
            "bts_analytics": {
                "total_bts_plays": self.bts_analytics.total_bts_plays,
                "favorite_bts_album": self.bts_analytics.favorite_bts_album,
                "member_preference": [
                    {"member": p.member, "plays": p.plays}
                    for p in self.bts_analytics.member_preference
                ],
                "bts_tracks": [_track(t) for t in self.bts_analytics.bts_tracks],
                "solo_tracks": [_track(t) for t in self.bts_analytics.solo_tracks],
            },
            "bts_timeline": self.bts_timeline.to_dict() if self.bts_timeline else None,
        }


def calculate_account_age(registered: datetime, now: datetime | None = None) -> str:
    """Human account age: days under a month, months under a year, else years."""
    now = now or datetime.now(timezone.utc)
    days = max((now - registered).days, 0)

    if days < 30:
        return f"{days} days"
    if days < 365:
        months = days // 30
        return f"{months} month{'s' if months > 1 else ''}"
    years = days // 365
    return f"{years} year{'s' if years > 1 else ''}"


def build_dashboard(
    username: str,
    client: LastFmClient,
    period: str = "overall",
) -> MusicDashboard:
    """
    Fetch and aggregate the dashboard for ``username``.

    Profile and list fetches propagate their errors; only the timeline is
    best-effort.
    """
    if period not in VALID_PERIODS:
        logger.warning("Unknown period %r — using 'overall'", period)
        period = "overall"

    user = client.get_user_info(username)
    recent = client.get_recent_tracks(username, limit=50)
    top_tracks = client.get_top_tracks(username, limit=200, period=period)
    top_artists = client.get_top_artists(username, limit=50, period=period)
    top_albums = client.get_top_albums(username, limit=50, period=period)

    split = filter_bts_tracks(top_tracks.items)
    bts_plays = calculate_bts_plays(top_tracks.items)

    try:
        bts_timeline: Optional[BTSTimeline] = build_simple_bts_timeline(username, client)
    except LastFmError as exc:
        logger.error("Error building BTS timeline for %s: %s", username, exc)
        bts_timeline = None

    account_age = calculate_account_age(user.registered) if user.registered else "unknown"

    return MusicDashboard(
        username=user.name,
        realname=user.realname,
        profile_url=user.url,
        image=LastFmClient.get_image_url(user.images, DEFAULT_AVATAR),
        playcount=user.playcount,
        registered=user.registered,
        overview=DashboardOverview(
            total_tracks=top_tracks.total,
            total_artists=top_artists.total,
            total_listening_hours=(user.playcount * AVERAGE_TRACK_MINUTES) // 60,
            bts_plays=bts_plays,
            bts_percentage=calculate_bts_percentage(bts_plays, user.playcount),
            account_age=account_age,
        ),
        recent_tracks=recent.tracks[:50],
        top_tracks=top_tracks.items,
        top_artists=top_artists.items,
        top_albums=top_albums.items,
        bts_analytics=BTSAnalytics(
            total_bts_plays=bts_plays,
            favorite_bts_album=get_favorite_bts_album(top_tracks.items),
            member_preference=calculate_member_preference(top_tracks.items),
            bts_tracks=split.group_tracks[:BTS_LIST_CAP],
            solo_tracks=split.solo_tracks[:BTS_LIST_CAP],
        ),
        bts_timeline=bts_timeline,
    )


def preference_to_frame(preferences: List[MemberPreference]) -> pd.DataFrame:
    """Member preference as a DataFrame with a ``share`` column (0-1)."""
    frame = pd.DataFrame(
        [{"member": p.member, "plays": p.plays} for p in preferences],
        columns=["member", "plays"],
    )
    total = frame["plays"].sum()
    frame["share"] = frame["plays"] / total if total else 0.0
    return frame
