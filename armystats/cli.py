"""
cli.py — ARMY Analytics Engine: Entry Point
=============================================

Modes
-----
    armystats <user>                      # Weekly-chart timeline (falls back to simple)
    armystats <user> --mode simple        # One-request timeline from top tracks
    armystats <user> --mode dashboard     # Full dashboard aggregate as JSON
    armystats <user> --csv evolution.csv  # Also export the evolution series
    armystats <user> --log runs.jsonl     # Append the result to a JSON-lines log

Results are never cached by the engine itself; ``--log`` is the only
persistence, and it is append-only.
"""

from __future__ import annotations

import argparse
import datetime
import json
import pathlib
import sys
from typing import Any, Dict

from armystats.config import load_settings
from armystats.dashboard import build_dashboard
from armystats.lastfm_client import LastFmAPIError, LastFmError, create_lastfm_client
from armystats.models import BTSTimeline
from armystats.timeline import (
    build_bts_timeline,
    build_simple_bts_timeline,
    timeline_to_frame,
)
from armystats.utils import format_timeline_report, get_logger

logger = get_logger("armystats.cli")


def append_run_log(path: pathlib.Path, record: Dict[str, Any]) -> pathlib.Path:
    """Append one JSON record per line; creates parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    record["logged_at"] = (
        datetime.datetime.now(datetime.timezone.utc)
        .strftime("%Y-%m-%dT%H:%M:%SZ")
    )
    with open(path, "a") as f:
        f.write(json.dumps(record, default=str) + "\n")
    logger.info("Run logged → %s", path)
    return path


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="BTS listening analytics from Last.fm scrobbles",
    )
    parser.add_argument("username", help="Last.fm username")
    parser.add_argument(
        "--mode",
        choices=("full", "simple", "dashboard"),
        default="full",
        help="full = weekly-chart timeline, simple = top-tracks only, "
             "dashboard = complete dashboard JSON (default: full).",
    )
    parser.add_argument(
        "--period",
        default="overall",
        help="Top-chart period for dashboard mode (default: overall).",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Weeks between timeline samples (default: TIMELINE_SAMPLE_INTERVAL or 4).",
    )
    parser.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Overall time budget in seconds for a full timeline (0 = none).",
    )
    parser.add_argument(
        "--csv",
        type=pathlib.Path,
        default=None,
        help="Write the evolution series to this CSV file.",
    )
    parser.add_argument(
        "--log",
        type=pathlib.Path,
        default=None,
        help="Append the JSON result to this JSON-lines file.",
    )
    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> Dict[str, Any]:
    settings = load_settings()
    client = create_lastfm_client(settings)
    username = args.username

    if args.mode == "dashboard":
        dashboard = build_dashboard(username, client, period=args.period)
        result = dashboard.to_dict()
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return {"mode": "dashboard", "username": username, "result": result}

    skipped = 0
    mode = args.mode
    if mode == "full":
        interval = args.interval or settings.sample_interval
        deadline = args.deadline if args.deadline is not None else settings.timeline_deadline
        try:
            partial = build_bts_timeline(
                username, client, interval=interval, deadline=deadline or None,
            )
            timeline: BTSTimeline = partial.value
            skipped = len(partial.skipped)
        except LastFmAPIError:
            raise
        except LastFmError as exc:
            logger.warning("Weekly timeline unavailable (%s) — using simple timeline", exc)
            timeline = build_simple_bts_timeline(username, client)
            mode = "simple"
    else:
        timeline = build_simple_bts_timeline(username, client)

    print(format_timeline_report(username, timeline, skipped=skipped))

    if args.csv is not None:
        timeline_to_frame(timeline).to_csv(args.csv, index=False)
        logger.info("Evolution written → %s", args.csv)

    return {
        "mode": mode,
        "username": username,
        "skipped_weeks": skipped,
        "result": timeline.to_dict(),
    }


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        record = run(args)
    except LastFmAPIError as exc:
        if exc.is_user_not_found:
            logger.error("Last.fm user not found: %s", args.username)
        elif exc.is_invalid_api_key:
            logger.error("Last.fm API configuration error: %s", exc.message)
        else:
            logger.error("%s", exc)
        return 1
    except LastFmError as exc:
        logger.error("%s", exc)
        return 1

    if args.log is not None:
        append_run_log(args.log, record)
    return 0


if __name__ == "__main__":
    sys.exit(main())
