"""
config.py — Environment Configuration Loader
==============================================
Reads the Last.fm API key and runtime parameters from a ``.env`` file
(via python-dotenv) so that credentials never appear in source code.

Usage
-----
>>> from armystats.config import load_settings
>>> load_settings().lastfm_base_url
'https://ws.audioscrobbler.com/2.0/'
"""

from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass

from dotenv import load_dotenv


# ── locate .env relative to project root ────────────────────────────────────

_PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
_ENV_PATH = _PROJECT_ROOT / ".env"

load_dotenv(dotenv_path=_ENV_PATH)


# ── typed settings object ───────────────────────────────────────────────────

@dataclass(frozen=True)
class Settings:
    """Immutable container for all environment-sourced config."""

    lastfm_api_key: str = ""
    lastfm_base_url: str = "https://ws.audioscrobbler.com/2.0/"

    # HTTP behaviour
    request_timeout: float = 15.0       # seconds, per request
    request_retries: int = 2

    # Token bucket (Last.fm allows ~5 req/s per key)
    rate_limit_capacity: int = 5
    rate_limit_per_second: float = 5.0

    # Timeline reconstruction
    sample_interval: int = 4            # weeks between samples
    timeline_deadline: float = 120.0    # seconds; 0 disables

    # Paths
    project_root: pathlib.Path = _PROJECT_ROOT


def _env_number(name: str, default: float, cast: type = float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_settings(*, require_api_key: bool = False) -> Settings:
    """
    Build a ``Settings`` instance from the environment.

    Parameters
    ----------
    require_api_key : bool
        If True, raise if ``LASTFM_API_KEY`` is missing.  The default is
        False: the client only warns, and calls fail at request time.
    """
    api_key = os.getenv("LASTFM_API_KEY", "")

    if require_api_key and not api_key:
        raise EnvironmentError(
            "Missing LASTFM_API_KEY. "
            "Copy .env.example → .env and fill in your Last.fm API key."
        )

    return Settings(
        lastfm_api_key=api_key,
        lastfm_base_url=os.getenv("LASTFM_BASE_URL", Settings.lastfm_base_url),
        request_timeout=_env_number("LASTFM_TIMEOUT", Settings.request_timeout),
        request_retries=int(_env_number("LASTFM_RETRIES", Settings.request_retries, int)),
        rate_limit_capacity=int(
            _env_number("LASTFM_RATE_CAPACITY", Settings.rate_limit_capacity, int)
        ),
        rate_limit_per_second=_env_number(
            "LASTFM_RATE_PER_SECOND", Settings.rate_limit_per_second,
        ),
        sample_interval=int(
            _env_number("TIMELINE_SAMPLE_INTERVAL", Settings.sample_interval, int)
        ),
        timeline_deadline=_env_number("TIMELINE_DEADLINE", Settings.timeline_deadline),
    )
