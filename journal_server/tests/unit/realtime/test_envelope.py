"""
Tests for outbound envelopes and topic naming.
"""

import json
import uuid

import pytest

from journal_server.error_types import ErrorType
from journal_server.realtime.envelope import build_error_event, build_event, encode_event, utc_now_z
from journal_server.realtime.exceptions import NotSubscribedError
from journal_server.realtime.topics import game_topic, is_game_topic, journal_topic, parse_topic, user_topic


class TestEnvelope:
    """Test event envelope construction."""

    def test_timestamp_is_utc_with_z(self):
        stamp = utc_now_z()
        assert stamp.endswith("Z")
        assert "+00:00" not in stamp

    def test_fields_sit_next_to_type(self):
        event = build_event("user_typing", userId="u1", isTyping=True)
        assert event["type"] == "user_typing"
        assert event["userId"] == "u1"
        assert event["isTyping"] is True
        assert event["timestamp"].endswith("Z")

    def test_reserved_keys_cannot_be_overridden(self):
        event = build_event("new_message", **{"type": "spoofed", "timestamp": "yesterday", "id": 1})
        assert event["type"] == "new_message"
        assert event["timestamp"] != "yesterday"
        assert event["id"] == 1

    def test_error_event_shape(self):
        event = build_error_event(NotSubscribedError("journal:42"))
        assert event["type"] == "error"
        assert event["error_type"] == ErrorType.NOT_SUBSCRIBED.value
        assert event["message"] == "Not subscribed to journal:42"
        assert event["details"] == {"topic_id": "journal:42"}
        assert "user_friendly" in event

    def test_encode_handles_uuid(self):
        value = uuid.uuid4()
        assert json.loads(encode_event(build_event("x", id=value)))["id"] == str(value)


class TestTopics:
    """Test topic id helpers."""

    def test_builders(self):
        assert journal_topic("42") == "journal:42"
        assert user_topic("u1") == "user:u1"
        assert game_topic("c1") == "game:c1"

    def test_parse_topic(self):
        assert parse_topic("journal:42") == ("journal", "42")
        assert is_game_topic("game:c1")
        assert not is_game_topic("journal:c1")

    @pytest.mark.parametrize("topic_id", ["journal", "journal:", "room:1", ":1"])
    def test_parse_topic_rejects_invalid(self, topic_id):
        with pytest.raises(ValueError):
            parse_topic(topic_id)
