"""
timeline.py — BTS Listening-Timeline Reconstruction
=====================================================
Rebuilds a user's BTS listening history from Last.fm weekly charts
without fetching every week.

Strategy
--------
1. Fetch the list of weekly chart boundaries (oldest first).
2. **Binary search** for the earliest week containing any BTS track:
   O(log n) weekly-chart fetches instead of O(n).  A probe that errors
   is treated as "no BTS" *for direction purposes only* and the search
   keeps going left, biasing towards earlier history.
3. Sample every ``interval``-th week from that point, always including
   the most recent week.
4. Fetch each sampled week, aggregate weighted BTS plays, top track and
   top member.  A week that fails is skipped and reported in
   ``PartialResult.skipped``; it is never zero-filled.

Everything is sequential: each probe decides the next one, and all
requests share the client's single token bucket.

The chart-list fetch itself is not caught — callers typically fall back
to ``build_simple_bts_timeline`` when it fails.
"""

from __future__ import annotations

import time
from typing import Any, Callable, List, Optional, Sequence

import pandas as pd

from armystats.bts_detection import (
    album_plays,
    detect_top_member,
    get_favorite_bts_album,
    is_bts_track,
)
from armystats.lastfm_client import LastFmError
from armystats.models import (
    BTSTimeline,
    FavoriteEra,
    PartialResult,
    PeakPeriod,
    SkippedWeek,
    TimelineEntry,
    Track,
    WeeklyChart,
)
from armystats.utils import get_logger

logger = get_logger("armystats.timeline")

DEFAULT_SAMPLE_INTERVAL = 4
SIMPLE_TOP_TRACKS_LIMIT = 200


class TimelineDeadlineExceeded(LastFmError):
    """Raised when the time budget runs out before the first BTS week is known."""


class _Deadline:
    """Monotonic-clock budget; ``None`` seconds means unlimited."""

    def __init__(
        self,
        seconds: Optional[float],
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._clock = clock or time.monotonic
        self._expires_at = self._clock() + seconds if seconds else None

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and self._clock() >= self._expires_at


# ═════════════════════════════════════════════════════════════════════════════
#  SEARCH & SAMPLING
# ═════════════════════════════════════════════════════════════════════════════

def sample_weeks(
    charts: Sequence[WeeklyChart],
    start_index: int = 0,
    interval: int = DEFAULT_SAMPLE_INTERVAL,
) -> List[WeeklyChart]:
    """Every ``interval``-th chart from ``start_index``, plus the last chart."""
    if not charts:
        return []
    if interval < 1:
        raise ValueError(f"interval must be >= 1, got {interval}")

    sampled = [charts[i] for i in range(start_index, len(charts), interval)]
    last = charts[-1]
    if not sampled or sampled[-1] != last:
        sampled.append(last)
    return sampled


def find_first_bts_week(
    client: Any,
    username: str,
    charts: Sequence[WeeklyChart],
    *,
    deadline: Optional[_Deadline] = None,
) -> int:
    """
    Index of the earliest chart containing a BTS track.

    Returns ``len(charts)`` when no probed week had BTS content.
    """
    left, right = 0, len(charts) - 1
    first = len(charts)

    while left <= right:
        if deadline is not None and deadline.expired:
            raise TimelineDeadlineExceeded(
                f"Deadline exceeded while searching {len(charts)} weeks for {username}"
            )

        mid = (left + right) // 2
        chart = charts[mid]
        try:
            tracks = client.get_weekly_track_chart(username, chart.from_ts, chart.to_ts)
        except LastFmError as exc:
            logger.warning(
                "Probe at week %d (%s) failed — searching earlier: %s",
                mid, chart.start.date(), exc,
            )
            right = mid - 1
            continue

        if any(is_bts_track(t) is not None for t in tracks):
            first = mid
            right = mid - 1
        else:
            left = mid + 1

    return first


# ═════════════════════════════════════════════════════════════════════════════
#  TIMELINE BUILDERS
# ═════════════════════════════════════════════════════════════════════════════

def _summarise_week(chart: WeeklyChart, bts_tracks: List[Track]) -> TimelineEntry:
    return TimelineEntry(
        date=chart.start,
        plays=sum(t.weight for t in bts_tracks),
        top_track=bts_tracks[0].name if bts_tracks else None,
        top_member=detect_top_member(bts_tracks),
    )


def _favorite_era(tracks: List[Track]) -> Optional[FavoriteEra]:
    album = get_favorite_bts_album(tracks)
    if album == "Unknown":
        return None
    return FavoriteEra(album=album, plays=album_plays(tracks, album))


def build_bts_timeline(
    username: str,
    client: Any,
    *,
    interval: int = DEFAULT_SAMPLE_INTERVAL,
    deadline: Optional[float] = None,
    clock: Optional[Callable[[], float]] = None,
) -> PartialResult[BTSTimeline]:
    """
    Reconstruct the BTS listening timeline for ``username``.

    Parameters
    ----------
    client
        Anything with ``get_weekly_chart_list`` and ``get_weekly_track_chart``
        (normally a ``LastFmClient``).
    interval : int
        Weeks between samples.
    deadline : float, optional
        Overall time budget in seconds.  Running out during the search
        raises ``TimelineDeadlineExceeded``; running out while sampling
        skips the remaining weeks.
    clock : callable, optional
        Monotonic time source for the deadline; defaults to ``time.monotonic``.
    """
    budget = _Deadline(deadline, clock)

    charts = client.get_weekly_chart_list(username)
    if not charts:
        logger.info("%s has no weekly charts", username)
        return PartialResult(BTSTimeline.empty())

    first_index = find_first_bts_week(client, username, charts, deadline=budget)
    if first_index >= len(charts):
        logger.info("No BTS content found in %d weeks for %s", len(charts), username)
        return PartialResult(BTSTimeline.empty())

    sampled = sample_weeks(charts, first_index, interval)
    logger.info(
        "First BTS week for %s: %s (index %d/%d) — sampling %d weeks",
        username, charts[first_index].start.date(), first_index, len(charts), len(sampled),
    )

    evolution: List[TimelineEntry] = []
    collected: List[Track] = []
    skipped: List[SkippedWeek] = []

    for week in sampled:
        if budget.expired:
            skipped.append(SkippedWeek(week, "deadline exceeded"))
            continue
        try:
            tracks = client.get_weekly_track_chart(username, week.from_ts, week.to_ts)
        except LastFmError as exc:
            logger.error(
                "Error fetching week %s–%s — skipping: %s",
                week.start.date(), week.end.date(), exc,
            )
            skipped.append(SkippedWeek(week, str(exc)))
            continue

        bts_tracks = [t for t in tracks if is_bts_track(t) is not None]
        evolution.append(_summarise_week(week, bts_tracks))
        collected.extend(bts_tracks)

    if skipped:
        logger.warning(
            "Timeline for %s is partial: %d of %d sampled weeks skipped",
            username, len(skipped), len(sampled),
        )

    peak: Optional[PeakPeriod] = None
    for entry in evolution:
        if entry.plays > (peak.plays if peak else 0):
            peak = PeakPeriod(date=entry.date, plays=entry.plays)

    timeline = BTSTimeline(
        first_play=evolution[0].date if evolution else None,
        evolution=evolution,
        total_plays=sum(e.plays for e in evolution),
        peak_period=peak,
        favorite_era=_favorite_era(collected),
    )
    return PartialResult(timeline, skipped)


def build_simple_bts_timeline(username: str, client: Any) -> BTSTimeline:
    """
    Single-request fallback from all-time top tracks.

    No temporal data: ``first_play`` is always None and ``evolution`` empty.
    """
    page = client.get_top_tracks(
        username, period="overall", limit=SIMPLE_TOP_TRACKS_LIMIT,
    )
    bts_tracks = [t for t in page.items if is_bts_track(t) is not None]
    if not bts_tracks:
        return BTSTimeline.empty()

    return BTSTimeline(
        first_play=None,
        evolution=[],
        total_plays=sum(t.playcount or 0 for t in bts_tracks),
        peak_period=None,
        favorite_era=_favorite_era(bts_tracks),
    )


# ── tabular export ──────────────────────────────────────────────────────────

def timeline_to_frame(timeline: BTSTimeline) -> pd.DataFrame:
    """Evolution series as a DataFrame (one row per sampled week)."""
    columns = ["date", "plays", "top_track", "top_member"]
    if not timeline.evolution:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(
        [
            {
                "date": e.date,
                "plays": e.plays,
                "top_track": e.top_track,
                "top_member": e.top_member,
            }
            for e in timeline.evolution
        ],
        columns=columns,
    )
