"""Validation of raw snip request fields into a ``ClipRequest``."""

import math
from typing import Any, Optional
from urllib.parse import urlparse

from video_snipper.exceptions import ValidationException
from video_snipper.models import (
    CLIP_DURATION_SECONDS,
    ClipRequest,
    RemoteSource,
    StoredSource,
)

MISSING_PARAMETERS_MESSAGE = (
    "Missing required parameters: either video_url or video_id, and timestamp"
)

REMOTE_SCHEMES = ("http", "https")


def _coerce_timestamp(timestamp: Any) -> float:
    if isinstance(timestamp, bool):
        raise ValidationException("Timestamp must be a number", field="timestamp", value=timestamp)
    try:
        value = float(timestamp)
    except (TypeError, ValueError):
        raise ValidationException("Timestamp must be a number", field="timestamp", value=timestamp)
    if not math.isfinite(value):
        raise ValidationException("Timestamp must be a finite number", field="timestamp", value=timestamp)
    return value


def _check_video_url(video_url: str) -> str:
    url = video_url.strip()
    try:
        parsed = urlparse(url)
        # Port is read for its range check
        valid = parsed.scheme.lower() in REMOTE_SCHEMES and bool(parsed.hostname) and parsed.port != 0
    except ValueError:
        valid = False
    if not valid:
        raise ValidationException("Invalid video URL", field="video_url", value=video_url)
    return url


def validate_clip_request(
    video_url: Optional[str] = None,
    video_id: Optional[str] = None,
    timestamp: Optional[Any] = None,
    clip_duration: float = CLIP_DURATION_SECONDS,
) -> ClipRequest:
    """
    Check the raw request fields and build a ``ClipRequest``.

    Rules are checked in order: a source reference and a timestamp must be
    present, then the timestamp must leave room for a full clip of
    ``clip_duration`` seconds before it, then a remote link must be an
    absolute http(s) URL. The end of the source is checked only once it has
    been fetched.

    Raises:
        ValidationException: naming the first violated rule.
    """
    video_url = video_url or None
    video_id = video_id or None

    if (video_url is None and video_id is None) or timestamp is None or timestamp == "":
        raise ValidationException(MISSING_PARAMETERS_MESSAGE)

    if video_url is not None and video_id is not None:
        raise ValidationException(
            "Provide either video_url or video_id, not both",
            field="video_url",
        )

    seconds = _coerce_timestamp(timestamp)
    if seconds < clip_duration:
        raise ValidationException(
            f"Timestamp must be at least {clip_duration:g} seconds",
            field="timestamp",
            value=timestamp,
        )

    if video_url is not None:
        source = RemoteSource(url=_check_video_url(video_url))
    else:
        source = StoredSource(video_id=video_id)
    return ClipRequest(source=source, timestamp=seconds, duration=clip_duration)
