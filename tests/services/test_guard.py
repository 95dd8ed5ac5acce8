from __future__ import annotations

import pytest

from platebot.services.guard import SearchGuard


def test_make_key_combines_requester_and_query():
    assert SearchGuard.make_key(42, "1234567") == "42_1234567"


def test_second_acquire_is_rejected_until_release():
    guard = SearchGuard()
    key = SearchGuard.make_key(1, "1234567")

    assert guard.try_acquire(key)
    assert not guard.try_acquire(key)
    assert guard.is_held(key)

    guard.release(key)

    assert not guard.is_held(key)
    assert guard.try_acquire(key)


def test_keys_are_per_requester():
    guard = SearchGuard()

    assert guard.try_acquire(SearchGuard.make_key(1, "1234567"))
    assert guard.try_acquire(SearchGuard.make_key(2, "1234567"))
    assert guard.get_in_flight_count() == 2


def test_release_of_unheld_key_is_noop():
    guard = SearchGuard()
    guard.release("nobody_1234567")
    assert guard.get_in_flight_count() == 0


def test_hold_releases_when_block_raises():
    guard = SearchGuard()

    with pytest.raises(RuntimeError):
        with guard.hold("1_1234567") as acquired:
            assert acquired
            raise RuntimeError("lookup blew up")

    assert not guard.is_held("1_1234567")


def test_rejected_hold_does_not_release_the_owner():
    guard = SearchGuard()

    with guard.hold("1_1234567") as first:
        with guard.hold("1_1234567") as second:
            assert first and not second
        assert guard.is_held("1_1234567")

    assert not guard.is_held("1_1234567")


def test_stats():
    guard = SearchGuard()
    guard.try_acquire("k")
    guard.try_acquire("k")

    stats = guard.get_stats().to_dict()

    assert stats == {"acquired": 1, "rejected": 1, "in_flight": 1}
