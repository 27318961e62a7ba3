"""Domain models shared by the clip pipeline components."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Union

# Default clip length, and therefore the default minimum marked timestamp.
CLIP_DURATION_SECONDS = 60.0


@dataclass(frozen=True)
class UploadedVideo:
    """A user-submitted video held in memory for one browser session."""

    video_id: str
    session_id: str
    data: bytes = field(repr=False)
    mime_type: str
    original_name: str
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class RemoteSource:
    url: str


@dataclass(frozen=True)
class StoredSource:
    video_id: str


VideoSource = Union[RemoteSource, StoredSource]


@dataclass(frozen=True)
class ClipWindow:
    """The ``[start, start + duration)`` range of the source to extract."""

    start: float
    duration: float = CLIP_DURATION_SECONDS

    @property
    def end(self) -> float:
        return self.start + self.duration

    @classmethod
    def ending_at(cls, timestamp: float, duration: float = CLIP_DURATION_SECONDS) -> "ClipWindow":
        return cls(start=max(timestamp - duration, 0.0), duration=duration)


@dataclass(frozen=True)
class ClipRequest:
    """A validated intent to extract the clip that ends at ``timestamp``."""

    source: VideoSource
    timestamp: float
    duration: float = CLIP_DURATION_SECONDS

    @property
    def window(self) -> ClipWindow:
        return ClipWindow.ending_at(self.timestamp, self.duration)

    @property
    def suggested_filename(self) -> str:
        return f"clip_{int(self.timestamp)}s.mp4"
