"""Unit tests for the in-memory session video store."""

import threading

import pytest

from video_snipper.exceptions import VideoNotFoundException
from video_snipper.services.session_store import SessionVideoStore


class TestSessionVideoStore:
    """Test storage, eviction and session cleanup."""

    def test_put_and_get(self, store):
        video_id = store.put("session-a", b"video-bytes", "video/mp4", "a.mp4")

        video = store.get(video_id)
        assert video.session_id == "session-a"
        assert video.data == b"video-bytes"
        assert video.mime_type == "video/mp4"
        assert video.original_name == "a.mp4"
        assert video.size == len(b"video-bytes")

    def test_unknown_video(self, store):
        with pytest.raises(VideoNotFoundException) as exc_info:
            store.get("missing")

        assert exc_info.value.message == "Uploaded video not found in session"
        assert exc_info.value.details == {"video_id": "missing"}

    def test_new_upload_evicts_previous_in_same_session(self, store):
        """Test that a session holds at most one upload."""
        first = store.put("session-a", b"one", "video/mp4", "1.mp4")
        second = store.put("session-a", b"two", "video/mp4", "2.mp4")

        assert first != second
        assert first not in store
        assert second in store
        assert len(store) == 1
        with pytest.raises(VideoNotFoundException):
            store.get(first)

    def test_sessions_are_isolated(self, store):
        a = store.put("session-a", b"one", "video/mp4", "1.mp4")
        b = store.put("session-b", b"two", "video/mp4", "2.mp4")

        assert store.delete_by_session("session-a") == 1
        assert a not in store
        assert store.get(b).data == b"two"
        assert store.session_ids() == ["session-b"]

    def test_delete_by_session_is_idempotent(self, store):
        store.put("session-a", b"one", "video/mp4", "1.mp4")

        assert store.delete_by_session("session-a") == 1
        assert store.delete_by_session("session-a") == 0
        assert store.delete_by_session("never-seen") == 0

    def test_clear(self, store):
        store.put("session-a", b"one", "video/mp4", "1.mp4")
        store.put("session-b", b"two", "video/mp4", "2.mp4")

        assert store.clear() == 2
        assert len(store) == 0

    def test_stores_a_copy_of_mutable_data(self, store):
        buffer = bytearray(b"abc")
        video_id = store.put("session-a", buffer, "video/mp4", "a.mp4")
        buffer[0] = ord("z")

        assert store.get(video_id).data == b"abc"

    def test_concurrent_uploads_keep_one_per_session(self):
        """Test that racing uploads for one session never leave two entries."""
        store = SessionVideoStore()

        def upload(n):
            store.put("shared", bytes([n]), "video/mp4", f"{n}.mp4")

        threads = [threading.Thread(target=upload, args=(n,)) for n in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(store) == 1
