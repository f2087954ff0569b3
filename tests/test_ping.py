"""
Tests for opkit.ping module.

Tests cover:
- Plain-text pong
- Timer suffix
- Session keep-alive
"""

import re

from opkit.context import RequestContext
from opkit.http import Request
from opkit.ping import PingOperation
from opkit.registry import get_registry


class TestPing:
    """Tests for PingOperation."""

    def test_registered(self):
        assert get_registry().get("core", "ping") is PingOperation

    def test_pong(self, dispatcher):
        response = dispatcher.handle(Request("/api/core/ping"))

        headers, body = response.finalize()

        assert response.rc == "pong"
        assert body == "pong"
        assert headers["Content-Type"] == "text/plain; charset=utf-8"

    def test_timer(self, dispatcher):
        """Test that the timer parameter appends the elapsed time."""
        response = dispatcher.handle(Request.from_url("/api/core/ping?timer"))
        assert re.fullmatch(r"pong, in \d+\.\d{3} ms\.", response.rc)

    def test_touches_session(self, dispatcher, session):
        dispatcher.handle(Request("/api/core/ping", context=RequestContext(session=session)))
        assert session.touched == 1

    def test_xhr_is_still_text(self, dispatcher):
        response = dispatcher.handle(Request("/api/core/ping.json"))
        assert response.content_type == "text/plain"
