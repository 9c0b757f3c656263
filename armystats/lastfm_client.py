"""
lastfm_client.py — Last.fm REST API Client
============================================
Typed access to the handful of ``user.*`` methods the analytics engine
needs, behind a token-bucket rate limiter.

Error Semantics
---------------
Last.fm answers logical failures with **HTTP 200** and a body of the form
``{"error": 6, "message": "User not found"}``.  Every decoded body is
checked for an ``error`` key and converted to ``LastFmAPIError`` carrying
the numeric code, so callers can tell "no such user" (6) apart from
"invalid API key" (10) without string matching.

Transport failures and undecodable bodies are retried with exponential
backoff and then surface as ``LastFmFetchError``.

Response Shapes
---------------
List fields (``track``, ``artist``, ``album``, ``chart``) may come back as
a list, a single bare object, or be missing entirely.  They are always
normalised to lists before leaving this module.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Mapping, Sequence, TypeVar

import requests

from armystats.config import Settings, load_settings
from armystats.models import (
    TopAlbum,
    TopArtist,
    Track,
    UserProfile,
    WeeklyChart,
    normalize_track,
)
from armystats.rate_limiter import TokenBucket
from armystats.utils import as_list, get_logger, parse_int

logger = get_logger("armystats.lastfm")

T = TypeVar("T")

VALID_PERIODS = ("overall", "7day", "1month", "3month", "6month", "12month")

# Codes Last.fm documents as transient: operation failed, service offline,
# temporarily unavailable, rate limit exceeded.
_TEMPORARY_ERROR_CODES = frozenset({8, 11, 16, 29})
_USER_NOT_FOUND = 6
_INVALID_API_KEY = 10

_IMAGE_SIZE_PRIORITY = ("extralarge", "large", "medium", "small")


class LastFmError(Exception):
    """Base class for everything this client raises."""


class LastFmFetchError(LastFmError):
    """Raised on network failure or a non-JSON response."""


class LastFmAPIError(LastFmError):
    """Raised when Last.fm returns an ``{"error": code}`` payload."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"Last.fm API Error {code}: {message}")

    @property
    def is_user_not_found(self) -> bool:
        return self.code == _USER_NOT_FOUND

    @property
    def is_invalid_api_key(self) -> bool:
        return self.code == _INVALID_API_KEY

    @property
    def is_temporary(self) -> bool:
        return self.code in _TEMPORARY_ERROR_CODES


@dataclass(frozen=True)
class RecentTracksPage:
    tracks: List[Track]
    total: int
    total_pages: int


@dataclass(frozen=True)
class TopItemsPage(Generic[T]):
    items: List[T]
    total: int


class LastFmClient:
    """
    Last.fm API client with a per-instance token bucket.

    Parameters
    ----------
    api_key : str, optional
        Overrides ``settings.lastfm_api_key``.
    settings : Settings, optional
        If not supplied, loaded from ``.env`` automatically.
    session : requests.Session, optional
        Injected for tests.
    rate_limiter : TokenBucket, optional
        Defaults to a bucket sized from settings.
    """

    def __init__(
        self,
        api_key: str | None = None,
        settings: Settings | None = None,
        *,
        session: requests.Session | None = None,
        rate_limiter: TokenBucket | None = None,
        timeout: float | None = None,
        retries: int | None = None,
    ) -> None:
        self._settings = settings or load_settings()
        self._api_key = api_key or self._settings.lastfm_api_key
        self._base_url = self._settings.lastfm_base_url
        self._timeout = timeout if timeout is not None else self._settings.request_timeout
        self._retries = retries if retries is not None else self._settings.request_retries
        self._rate_limiter = rate_limiter or TokenBucket(
            capacity=self._settings.rate_limit_capacity,
            refill_rate=self._settings.rate_limit_per_second,
        )
        self._session = session or requests.Session()
        self._session.headers.update({
            "User-Agent": "ArmyStatsEngine/1.0 (+https://www.last.fm/api)",
            "Accept": "application/json",
        })

        if not self._api_key:
            logger.warning("Last.fm API key not provided. API calls will fail.")

    @property
    def rate_limiter(self) -> TokenBucket:
        return self._rate_limiter

    # ═════════════════════════════════════════════════════════════════════
    #  HTTP
    # ═════════════════════════════════════════════════════════════════════

    def _request(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        """Rate-limited GET with error-payload detection & exponential backoff."""
        query: Dict[str, Any] = {"api_key": self._api_key, "format": "json"}
        query.update({k: v for k, v in params.items() if v is not None})
        method = query.get("method", "?")

        last_error = ""
        for attempt in range(1 + self._retries):
            if attempt > 0:
                backoff = min(2 ** attempt, 30)
                logger.info(
                    "Retry %d/%d for %s — waiting %ds...",
                    attempt, self._retries, method, backoff,
                )
                time.sleep(backoff)

            self._rate_limiter.acquire()

            try:
                resp = self._session.get(
                    self._base_url, params=query, timeout=self._timeout,
                )
            except requests.RequestException as exc:
                last_error = str(exc)[:500]
                logger.error(
                    "[API ERROR] Network failure on %s (attempt %d/%d): %s",
                    method, attempt + 1, self._retries + 1, last_error,
                )
                continue

            try:
                data = resp.json()
            except ValueError:
                last_error = f"HTTP {resp.status_code}, non-JSON body: {resp.text[:200]}"
                logger.error(
                    "[API ERROR] Undecodable response on %s (attempt %d/%d): %s",
                    method, attempt + 1, self._retries + 1, last_error,
                )
                if resp.status_code >= 500:
                    continue
                raise LastFmFetchError(
                    f"Failed to fetch from Last.fm API: {last_error}"
                ) from None

            if isinstance(data, Mapping) and "error" in data:
                error = LastFmAPIError(
                    parse_int(data.get("error"), 0),
                    str(data.get("message", "")),
                )
                if error.is_temporary and attempt < self._retries:
                    last_error = str(error)
                    logger.warning("[API ERROR] %s on %s — retrying", error, method)
                    continue
                raise error

            if resp.status_code >= 500:
                last_error = f"HTTP {resp.status_code}"
                logger.error(
                    "[API ERROR] Server %d on %s (attempt %d/%d)",
                    resp.status_code, method, attempt + 1, self._retries + 1,
                )
                continue

            if not isinstance(data, Mapping):
                raise LastFmFetchError(
                    f"Failed to fetch from Last.fm API: unexpected payload for {method}"
                )

            return dict(data)

        raise LastFmFetchError(
            f"Failed to fetch from Last.fm API after {self._retries + 1} "
            f"attempts ({method}): {last_error}"
        )

    @staticmethod
    def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
        section = data.get(key)
        if not isinstance(section, Mapping):
            raise LastFmFetchError(
                f"Failed to fetch from Last.fm API: response has no '{key}' section"
            )
        return section

    @staticmethod
    def _attr(section: Mapping[str, Any]) -> Mapping[str, Any]:
        attr = section.get("@attr")
        return attr if isinstance(attr, Mapping) else {}

    @staticmethod
    def _check_period(period: str) -> str:
        if period not in VALID_PERIODS:
            raise ValueError(
                f"period must be one of {', '.join(VALID_PERIODS)}; got {period!r}"
            )
        return period

    # ═════════════════════════════════════════════════════════════════════
    #  User
    # ═════════════════════════════════════════════════════════════════════

    def get_user_info(self, username: str) -> UserProfile:
        data = self._request({"method": "user.getinfo", "user": username})
        return UserProfile.from_api(self._section(data, "user"))

    def get_recent_tracks(
        self,
        username: str,
        *,
        limit: int = 50,
        page: int = 1,
        from_ts: int | None = None,
        to_ts: int | None = None,
        extended: bool = False,
    ) -> RecentTracksPage:
        """Scrobbles, newest first.  Includes a now-playing row when active."""
        data = self._request({
            "method": "user.getrecenttracks",
            "user": username,
            "limit": limit,
            "page": page,
            "extended": int(extended),
            "from": from_ts,
            "to": to_ts,
        })
        section = self._section(data, "recenttracks")
        attr = self._attr(section)
        total_pages = parse_int(attr.get("totalPages"), 1)
        return RecentTracksPage(
            tracks=[normalize_track(t) for t in as_list(section.get("track"))],
            total=parse_int(attr.get("total"), 0),
            total_pages=total_pages if total_pages and total_pages > 0 else 1,
        )

    # ═════════════════════════════════════════════════════════════════════
    #  Top charts
    # ═════════════════════════════════════════════════════════════════════

    def _top(self, method: str, section_key: str, item_key: str, username: str,
             period: str, limit: int, page: int) -> tuple[List[Any], int]:
        data = self._request({
            "method": method,
            "user": username,
            "period": self._check_period(period),
            "limit": limit,
            "page": page,
        })
        section = self._section(data, section_key)
        total = parse_int(self._attr(section).get("total"), 0)
        return as_list(section.get(item_key)), total

    def get_top_tracks(
        self, username: str, *, period: str = "overall", limit: int = 50, page: int = 1,
    ) -> TopItemsPage[Track]:
        raw, total = self._top(
            "user.gettoptracks", "toptracks", "track", username, period, limit, page,
        )
        return TopItemsPage(items=[normalize_track(t) for t in raw], total=total)

    def get_top_artists(
        self, username: str, *, period: str = "overall", limit: int = 50, page: int = 1,
    ) -> TopItemsPage[TopArtist]:
        raw, total = self._top(
            "user.gettopartists", "topartists", "artist", username, period, limit, page,
        )
        return TopItemsPage(
            items=[TopArtist.from_api(a) for a in raw if isinstance(a, Mapping)],
            total=total,
        )

    def get_top_albums(
        self, username: str, *, period: str = "overall", limit: int = 50, page: int = 1,
    ) -> TopItemsPage[TopAlbum]:
        raw, total = self._top(
            "user.gettopalbums", "topalbums", "album", username, period, limit, page,
        )
        return TopItemsPage(
            items=[TopAlbum.from_api(a) for a in raw if isinstance(a, Mapping)],
            total=total,
        )

    # ═════════════════════════════════════════════════════════════════════
    #  Weekly charts
    # ═════════════════════════════════════════════════════════════════════

    def get_weekly_chart_list(self, username: str) -> List[WeeklyChart]:
        """All reporting weeks for the user, oldest first."""
        data = self._request({"method": "user.getweeklychartlist", "user": username})
        section = self._section(data, "weeklychartlist")
        charts = [
            WeeklyChart.from_api(c)
            for c in as_list(section.get("chart"))
            if isinstance(c, Mapping)
        ]
        charts.sort(key=lambda c: c.from_ts)
        return charts

    def get_weekly_track_chart(
        self, username: str, from_ts: int | str, to_ts: int | str,
    ) -> List[Track]:
        """Tracks scrobbled in one week with per-track playcount; ``[]`` if none."""
        data = self._request({
            "method": "user.getweeklytrackchart",
            "user": username,
            "from": from_ts,
            "to": to_ts,
        })
        section = data.get("weeklytrackchart")
        if not isinstance(section, Mapping):
            return []
        return [
            normalize_track(t)
            for t in as_list(section.get("track"))
            if isinstance(t, Mapping)
        ]

    # ═════════════════════════════════════════════════════════════════════
    #  Helpers
    # ═════════════════════════════════════════════════════════════════════

    @staticmethod
    def get_image_url(images: Sequence[Mapping[str, str]] | None, fallback: str = "") -> str:
        """Pick the largest available image URL, else ``fallback``."""
        if not images:
            return fallback
        for size in _IMAGE_SIZE_PRIORITY:
            for img in images:
                if img.get("size") == size and img.get("#text"):
                    return img["#text"]
        return fallback


def create_lastfm_client(settings: Settings | None = None) -> LastFmClient:
    """Build a client from settings; the caller owns its lifetime."""
    return LastFmClient(settings=settings or load_settings())
