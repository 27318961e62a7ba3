"""Unit tests for snip request validation."""

import math

import pytest

from video_snipper.exceptions import ErrorCode, ValidationException
from video_snipper.models import ClipWindow, RemoteSource, StoredSource
from video_snipper.services.request_validator import (
    MISSING_PARAMETERS_MESSAGE,
    validate_clip_request,
)


class TestValidateClipRequest:
    """Test the ordered validation rules."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {},
            {"timestamp": 90},
            {"video_url": "https://example.com/v.mp4"},
            {"video_id": "abc"},
            {"video_url": "", "timestamp": 90},
            {"video_id": "abc", "timestamp": ""},
        ],
    )
    def test_missing_parameters(self, kwargs):
        """Test that a missing source or timestamp is rejected first."""
        with pytest.raises(ValidationException) as exc_info:
            validate_clip_request(**kwargs)

        assert exc_info.value.message == MISSING_PARAMETERS_MESSAGE
        assert exc_info.value.error_code == ErrorCode.VALIDATION_ERROR

    def test_missing_parameters_checked_before_range(self):
        """Test that presence is checked before the timestamp range."""
        with pytest.raises(ValidationException) as exc_info:
            validate_clip_request(timestamp=10)

        assert exc_info.value.message == MISSING_PARAMETERS_MESSAGE

    @pytest.mark.parametrize("timestamp", [0, 10, 59.999, -5])
    def test_timestamp_below_clip_length(self, timestamp):
        """Test that timestamps leaving no room for a full clip are rejected."""
        with pytest.raises(ValidationException) as exc_info:
            validate_clip_request(video_id="abc", timestamp=timestamp)

        assert exc_info.value.message == "Timestamp must be at least 60 seconds"
        assert exc_info.value.details["field"] == "timestamp"

    def test_both_sources_rejected(self):
        with pytest.raises(ValidationException):
            validate_clip_request(video_url="https://example.com/v.mp4", video_id="abc", timestamp=90)

    @pytest.mark.parametrize("timestamp", ["abc", math.inf, math.nan, True])
    def test_non_numeric_timestamp(self, timestamp):
        with pytest.raises(ValidationException):
            validate_clip_request(video_id="abc", timestamp=timestamp)

    def test_remote_request(self):
        request = validate_clip_request(video_url="https://example.com/v.mp4", timestamp=90)

        assert request.source == RemoteSource(url="https://example.com/v.mp4")
        assert request.timestamp == 90.0
        assert request.window == ClipWindow(start=30.0, duration=60.0)

    def test_stored_request_with_string_timestamp(self):
        request = validate_clip_request(video_id="abc", timestamp="125.5")

        assert request.source == StoredSource(video_id="abc")
        assert request.window.start == pytest.approx(65.5)
        assert request.window.end == pytest.approx(125.5)

    def test_boundary_timestamp(self):
        """Test that exactly 60 seconds yields a clip starting at zero."""
        request = validate_clip_request(video_id="abc", timestamp=60)

        assert request.window.start == 0.0
        assert request.window.duration == 60.0

    def test_no_upper_bound(self):
        request = validate_clip_request(video_id="abc", timestamp=10 ** 7)

        assert request.window.end == 10 ** 7

    def test_suggested_filename_truncates(self):
        request = validate_clip_request(video_id="abc", timestamp=125.9)

        assert request.suggested_filename == "clip_125s.mp4"

    @pytest.mark.parametrize(
        "video_url",
        ["not a url", "ftp://x/y.mp4", "http://[invalid", "http://host:99999/v.mp4", "https:///v.mp4", "file:///etc/passwd"],
    )
    def test_invalid_video_url(self, video_url):
        """Test that only absolute http and https links are accepted."""
        with pytest.raises(ValidationException) as exc_info:
            validate_clip_request(video_url=video_url, timestamp=90)

        assert exc_info.value.message == "Invalid video URL"
        assert exc_info.value.details["field"] == "video_url"

    def test_timestamp_checked_before_url(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_clip_request(video_url="not a url", timestamp=10)

        assert exc_info.value.message == "Timestamp must be at least 60 seconds"

    def test_video_url_is_stripped(self):
        request = validate_clip_request(video_url="  HTTPS://example.com/v.mp4 ", timestamp=90)

        assert request.source == RemoteSource(url="HTTPS://example.com/v.mp4")


class TestConfiguredClipDuration:
    """Test that a configured clip length drives both the rule and the window."""

    def test_window_uses_duration(self):
        request = validate_clip_request(video_id="abc", timestamp=45, clip_duration=30)

        assert request.duration == 30
        assert request.window == ClipWindow(start=15.0, duration=30.0)

    def test_minimum_follows_duration(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_clip_request(video_id="abc", timestamp=20, clip_duration=30)

        assert exc_info.value.message == "Timestamp must be at least 30 seconds"

    def test_fractional_duration_message(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_clip_request(video_id="abc", timestamp=1, clip_duration=2.5)

        assert exc_info.value.message == "Timestamp must be at least 2.5 seconds"
