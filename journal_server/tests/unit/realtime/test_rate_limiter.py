"""
Tests for per-connection inbound rate limiting.
"""

from journal_server.realtime.rate_limiter import MessageRateLimiter


class TestMessageRateLimiter:
    """Test the sliding-window counter."""

    def test_allows_up_to_limit(self):
        limiter = MessageRateLimiter(max_messages_per_window=3, window_seconds=60)

        assert [limiter.check_message_rate_limit("c1") for _ in range(4)] == [True, True, True, False]
        assert limiter.retry_after("c1") > 0

    def test_limits_are_per_connection(self):
        limiter = MessageRateLimiter(max_messages_per_window=1, window_seconds=60)

        assert limiter.check_message_rate_limit("c1")
        assert limiter.check_message_rate_limit("c2")
        assert not limiter.check_message_rate_limit("c1")

    def test_info_and_cleanup(self):
        limiter = MessageRateLimiter(max_messages_per_window=5, window_seconds=60)
        limiter.check_message_rate_limit("c1")

        info = limiter.get_message_rate_limit_info("c1")
        assert info["attempts"] == 1
        assert info["attempts_remaining"] == 4

        limiter.remove_connection_message_data("c1")
        assert limiter.get_stats()["tracked_connections"] == 0
        assert limiter.retry_after("c1") == 0
