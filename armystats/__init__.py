"""BTS listening analytics over the Last.fm API."""

__version__ = "1.0.0"
