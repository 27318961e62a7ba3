"""
In-memory store for uploaded videos, keyed by video id.

Uploads live only for the lifetime of the process and each client session
keeps at most one of them: a new upload for a session evicts the previous
one. All operations hold a single lock so a ``put`` racing a ``get`` or
``delete_by_session`` never observes a half-updated table.
"""

import threading
import uuid
from typing import Dict, List

from video_snipper.exceptions import VideoNotFoundException
from video_snipper.logging_config import get_logger
from video_snipper.models import UploadedVideo

logger = get_logger(__name__)


class SessionVideoStore:
    """Process-wide table of ``UploadedVideo`` entries."""

    def __init__(self):
        self._videos: Dict[str, UploadedVideo] = {}
        self._lock = threading.Lock()

    def put(self, session_id: str, data: bytes, mime_type: str, original_name: str) -> str:
        """Store an upload and evict any older upload of the same session."""
        video = UploadedVideo(
            video_id=str(uuid.uuid4()),
            session_id=session_id,
            data=bytes(data),
            mime_type=mime_type,
            original_name=original_name,
        )

        with self._lock:
            self._videos[video.video_id] = video
            evicted = [
                key for key, stored in self._videos.items()
                if stored.session_id == session_id and key != video.video_id
            ]
            for key in evicted:
                del self._videos[key]

        for key in evicted:
            logger.info("Cleaned up old video", extra={"video_id": key, "session_id": session_id})

        return video.video_id

    def get(self, video_id: str) -> UploadedVideo:
        with self._lock:
            video = self._videos.get(video_id)
        if video is None:
            raise VideoNotFoundException(video_id)
        return video

    def delete_by_session(self, session_id: str) -> int:
        """Remove every upload of a session. Returns the number removed."""
        with self._lock:
            keys = [key for key, video in self._videos.items() if video.session_id == session_id]
            for key in keys:
                del self._videos[key]
        return len(keys)

    def clear(self) -> int:
        with self._lock:
            count = len(self._videos)
            self._videos.clear()
        return count

    def session_ids(self) -> List[str]:
        with self._lock:
            return sorted({video.session_id for video in self._videos.values()})

    def __len__(self) -> int:
        with self._lock:
            return len(self._videos)

    def __contains__(self, video_id: object) -> bool:
        with self._lock:
            return video_id in self._videos
