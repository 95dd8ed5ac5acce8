from __future__ import annotations

from datetime import timedelta

from platebot.services.rate_limiter import RateLimiter


def _limiter(clock, window=60, max_requests=3) -> RateLimiter:
    return RateLimiter(
        window=timedelta(seconds=window),
        max_requests=max_requests,
        clock=clock,
        autostart=False,
    )


def test_admits_up_to_limit_then_rejects(clock):
    limiter = _limiter(clock)

    results = [limiter.check("user-1") for _ in range(3)]
    assert [r.allowed for r in results] == [True, True, True]
    assert [r.remaining for r in results] == [2, 1, 0]

    rejected = limiter.check("user-1")
    assert not rejected.allowed
    assert rejected.remaining == 0
    assert rejected.limit == 3
    assert rejected.retry_after == 60


def test_retry_after_counts_down_from_oldest_request(clock):
    limiter = _limiter(clock, window=60, max_requests=2)
    limiter.check("u")
    clock.advance(10)
    limiter.check("u")
    clock.advance(15.5)

    decision = limiter.check("u")

    assert not decision.allowed
    assert decision.retry_after == 35
    assert decision.reset_at == clock.now + timedelta(seconds=34.5)


def test_rejections_are_not_recorded(clock):
    limiter = _limiter(clock, max_requests=1)
    limiter.check("u")
    for _ in range(5):
        assert not limiter.check("u").allowed

    clock.advance(60)

    assert limiter.check("u").allowed


def test_window_slides(clock):
    limiter = _limiter(clock, window=60, max_requests=2)
    limiter.check("u")
    clock.advance(30)
    limiter.check("u")
    clock.advance(30)

    # first request is now exactly one window old
    assert limiter.check("u").allowed
    assert not limiter.check("u").allowed


def test_identities_are_independent(clock):
    limiter = _limiter(clock, max_requests=1)

    assert limiter.check(1).allowed
    assert limiter.check(2).allowed
    assert not limiter.check(1).allowed


def test_reset_identity(clock):
    limiter = _limiter(clock, max_requests=1)
    limiter.check("u")
    limiter.reset_identity("u")

    assert limiter.check("u").allowed


def test_cleanup_drops_identities_idle_two_windows(clock):
    limiter = _limiter(clock, window=60)
    limiter.check("idle")
    clock.advance(90)
    limiter.check("active")

    assert limiter.cleanup() == 0
    assert len(limiter) == 2

    clock.advance(30)

    assert limiter.cleanup() == 1
    assert len(limiter) == 1


def test_stats_count_active_requests(clock):
    limiter = _limiter(clock)
    limiter.check("a")
    limiter.check("a")
    limiter.check("b")

    stats = limiter.get_stats()

    assert stats["total_users"] == 2
    assert stats["active_users"] == 2
    assert stats["total_active_requests"] == 3
    assert stats["average_requests_per_user"] == 1.5


def test_destroy_clears_state(clock):
    limiter = _limiter(clock)
    limiter.check("a")
    limiter.destroy()

    assert len(limiter) == 0
