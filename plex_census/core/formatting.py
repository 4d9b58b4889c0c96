"""Formatting helpers shared by the library scrapers."""
import re
from typing import List, Union

GIB = 1073741824
MIB = 1048576

RESOLUTIONS = {
    "480": "SD",
    "576": "SD",
    "720": "HD",
    "1080": "Full HD",
    "2160": "4K UHD",
    "4k": "4K UHD",
    "4320": "8K UHD",
}

AUDIO_CODECS = {
    "truehd": "DOLBY TRUEHD",
    "dts": "DTS",
    "dca": "DTS-HD MA",
    "ac3": "DOLBY DIGITAL",
    "eac3": "DOLBY DIGITAL PLUS",
    "flac": "FLAC",
    "aac": "AAC",
}

WATCH_NONE = 0
WATCH_PARTIAL = 1
WATCH_FULL = 2

_COUNTRY_PREFIX = re.compile(r"^[A-Z]{2}-")
_DIGITS = re.compile(r"(\d+)")


def format_duration(duration_ms: Union[int, float]) -> str:
    """Milliseconds to HH:MM:SS. Hours keep counting past 24."""
    seconds = int(duration_ms / 1000 + 0.5) if duration_ms > 0 else 0
    if seconds <= 0:
        return "00:00:00"
    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_size_gb(size_bytes: Union[int, float]) -> str:
    return f"{size_bytes / GIB:.2f}" if size_bytes > 0 else "0.00"


def format_size_mb(size_bytes: Union[int, float]) -> str:
    """Used for music tracks, where GB rounds everything to 0.01."""
    return f"{size_bytes / MIB:.2f}" if size_bytes > 0 else "0.00"


def classify_resolution(resolution: str) -> str:
    return RESOLUTIONS.get((resolution or "").lower(), "Unknown")


def audio_codec_label(codec: str) -> str:
    codec = codec or ""
    label = AUDIO_CODECS.get(codec.lower(), codec.upper())
    return label or "Unknown"


def sanitize_content_rating(raw_rating: str) -> str:
    """Normalise a Plex content rating so it can name an icon file.

    "gb/12a" -> "12A", "HK-IIB" -> "IIB", "Not Rated" -> "NOT-RATED".
    """
    if not raw_rating:
        return ""
    rating = raw_rating.upper().replace("/", "-")
    rating = _COUNTRY_PREFIX.sub("", rating)
    return rating.replace(" ", "-")


def item_watch_status(view_count: int, view_offset: int) -> int:
    """Watch status for a single movie or episode."""
    if view_count > 0 and view_offset == 0:
        return WATCH_FULL
    if view_offset > 0:
        return WATCH_PARTIAL
    return WATCH_NONE


def show_watch_status(viewed_leaf_count: int, leaf_count: int) -> int:
    """Watch status for a whole show from its watched/total episode counts."""
    if viewed_leaf_count > 0 and viewed_leaf_count == leaf_count:
        return WATCH_FULL
    if viewed_leaf_count > 0:
        return WATCH_PARTIAL
    return WATCH_NONE


def natural_sort_key(text: str) -> List[Union[int, str]]:
    """Sort key ordering 'Vol 2' before 'Vol 10'."""
    return [int(part) if part.isdigit() else part for part in _DIGITS.split(text or "")]


def library_slug(title: str) -> str:
    return title.lower().replace(" ", "-")
