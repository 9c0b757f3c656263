"""
utils.py — Shared helpers for the ARMY analytics engine
========================================================
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, List

if TYPE_CHECKING:
    from armystats.models import BTSTimeline


# ── structured logger ───────────────────────────────────────────────────────

def get_logger(name: str = "armystats", level: int = logging.INFO) -> logging.Logger:
    """
    Return a consistently-formatted logger.

    Format: ``[2026-02-10 08:15:23 UTC] [INFO] module — message``
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            fmt="[%(asctime)s UTC] [%(levelname)s] %(name)s — %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        formatter.converter = lambda *_: datetime.now(timezone.utc).timetuple()
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger


# ── upstream value coercion ─────────────────────────────────────────────────

def parse_int(value: Any, default: int | None = None) -> int | None:
    """
    Parse Last.fm's stringly-typed integers (``"42"``, ``42``, ``"4.0"``).

    Returns ``default`` for ``None``, empty strings and garbage.
    """
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default


def as_list(value: Any) -> List[Any]:
    """
    Last.fm collapses one-element arrays into a bare object and omits
    empty ones.  Always hand back a list.
    """
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    return [value]


def utc_from_timestamp(value: Any) -> datetime | None:
    """Unix seconds (int or numeric string) → aware UTC datetime."""
    ts = parse_int(value)
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


# ── report formatting ───────────────────────────────────────────────────────

def format_timeline_report(username: str, timeline: BTSTimeline, skipped: int = 0) -> str:
    """Return a multi-line report string suitable for logging / stdout."""
    first = timeline.first_play.strftime("%Y-%m-%d") if timeline.first_play else "—"
    if timeline.peak_period is not None:
        peak = (
            f"{timeline.peak_period.date:%Y-%m-%d} "
            f"({timeline.peak_period.plays:,} plays)"
        )
    else:
        peak = "—"
    if timeline.favorite_era is not None:
        era = f"{timeline.favorite_era.album} ({timeline.favorite_era.plays:,} plays)"
    else:
        era = "—"

    lines = [
        "=" * 64,
        f"  BTS LISTENING TIMELINE — {username}",
        "=" * 64,
        f"  First BTS week        : {first:>24}",
        f"  Sampled weeks         : {len(timeline.evolution):>24}",
        f"  Total sampled plays   : {timeline.total_plays:>24,}",
        f"  Peak period           : {peak:>24}",
        f"  Favorite era          : {era}",
    ]
    if skipped:
        lines.append(f"  Skipped weeks         : {skipped:>24}")
    lines.append("-" * 64)
    for entry in timeline.evolution:
        lines.append(
            f"  {entry.date:%Y-%m-%d}  {entry.plays:>6}  "
            f"{(entry.top_member or '-'):<9} {entry.top_track or '-'}"
        )
    lines.append("=" * 64)
    return "\n".join(lines)
