"""Unit tests for feed format detection."""
import pytest

from household_calendar.formats import ContentTypeDetector, FeedKind


class TestContentTypeDetector:
    """Test cases for content-type based format detection."""

    @pytest.mark.parametrize("content_type", [
        "application/json",
        "application/json; charset=UTF-8",
        "Application/JSON",
        "application/vnd.api+json",
    ])
    def test_json_media_types_are_cloud(self, content_type):
        """Test JSON content types select the cloud normalizer."""
        assert ContentTypeDetector().detect(content_type) is FeedKind.CLOUD_JSON

    @pytest.mark.parametrize("content_type", [
        "text/calendar",
        "text/calendar; charset=utf-8",
        "text/plain",
        "application/octet-stream",
        "",
        None,
    ])
    def test_everything_else_is_icalendar(self, content_type):
        """Test non-JSON or missing content types fall back to iCalendar."""
        assert ContentTypeDetector().detect(content_type) is FeedKind.ICALENDAR
