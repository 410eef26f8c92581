"""
Tests for the persisted token bucket
"""
from rate_limiter import TokenBucketRateLimiter


class TestTokenBucket:
    """Refill, denial and retry_after behaviour"""

    def test_second_call_in_same_instant_is_denied(self, app, clock):
        limiter = TokenBucketRateLimiter(clock=clock)

        first = limiter.attempt('rawg', 1, 1)
        second = limiter.attempt('rawg', 1, 1)

        assert first.allowed is True
        assert first.retry_after == 0
        assert second.allowed is False
        assert second.retry_after == 1

    def test_token_comes_back_after_waiting(self, app, clock):
        limiter = TokenBucketRateLimiter(clock=clock)
        limiter.attempt('rawg', 1, 1)
        assert limiter.attempt('rawg', 1, 1).allowed is False

        clock.advance(1)

        assert limiter.attempt('rawg', 1, 1).allowed is True

    def test_missing_row_starts_with_full_burst(self, app, clock):
        limiter = TokenBucketRateLimiter(clock=clock)

        decisions = [limiter.attempt('itad', 1, 3).allowed for _ in range(4)]

        assert decisions == [True, True, True, False]

    def test_retry_after_scales_with_rate(self, app, clock):
        limiter = TokenBucketRateLimiter(clock=clock)
        limiter.attempt('giantbomb', 0.5, 1)

        denied = limiter.attempt('giantbomb', 0.5, 1)

        assert denied.allowed is False
        assert denied.retry_after == 2

    def test_refill_is_capped_at_burst(self, app, clock):
        limiter = TokenBucketRateLimiter(clock=clock)
        limiter.attempt('nexarda', 1, 2)

        clock.advance(3600)
        limiter.attempt('nexarda', 1, 2)

        assert limiter.peek('nexarda') == 1.0

    def test_buckets_are_per_provider(self, app, clock):
        limiter = TokenBucketRateLimiter(clock=clock)
        limiter.attempt('rawg', 1, 1)

        assert limiter.attempt('rawg', 1, 1).allowed is False
        assert limiter.attempt('thegamesdb', 1, 1).allowed is True

    def test_peek_unknown_provider(self, app):
        assert TokenBucketRateLimiter().peek('unknown') is None
