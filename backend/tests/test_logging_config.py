"""
Tests for log context propagation.
"""

from minichat.core.logging_config import (
    add_request_context,
    generate_request_id,
    set_chat_id,
    set_request_id,
)


class TestRequestContext:
    """Test ids copied into log events."""

    def teardown_method(self):
        set_request_id(None)
        set_chat_id(None)

    def test_ids_added(self):
        set_request_id("abcd1234")
        set_chat_id("chat-1")

        event = add_request_context(None, "info", {"event": "Message sent"})

        assert event["request_id"] == "abcd1234"
        assert event["chat_id"] == "chat-1"

    def test_explicit_chat_id_wins(self):
        set_chat_id("chat-1")

        event = add_request_context(None, "info", {"event": "x", "chat_id": "chat-2"})

        assert event["chat_id"] == "chat-2"

    def test_nothing_bound(self):
        assert add_request_context(None, "info", {"event": "x"}) == {"event": "x"}

    def test_request_ids_are_short_and_distinct(self):
        ids = {generate_request_id() for _ in range(50)}

        assert len(ids) == 50
        assert all(len(i) == 8 for i in ids)


class TestRequestContextMiddleware:
    """Test the request id header."""

    def test_each_response_gets_its_own_id(self, client):
        first = client.get("/api/health").headers["x-request-id"]
        second = client.get("/api/health").headers["x-request-id"]

        assert len(first) == 8
        assert first != second
