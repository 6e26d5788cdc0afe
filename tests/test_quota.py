"""Tests for the fixed-window QuotaTracker."""
import threading

import pytest

from repobot.bot.quota import QuotaTracker


class TestFixedWindow:
    def test_first_five_admitted_sixth_denied(self, clock):
        quota = QuotaTracker(limit=5, window_seconds=60, clock=clock)

        results = [quota.admit("alice") for _ in range(6)]

        assert results == [True] * 5 + [False]

    def test_denied_request_does_not_increment_count(self, clock):
        quota = QuotaTracker(limit=5, window_seconds=60, clock=clock)
        for _ in range(8):
            quota.admit("alice")

        assert quota.window("alice").count == 5

    def test_still_denied_just_before_reset(self, clock):
        quota = QuotaTracker(limit=5, window_seconds=60, clock=clock)
        for _ in range(5):
            quota.admit("alice")

        clock.advance(59.999)

        assert quota.admit("alice") is False

    def test_admits_at_reset_boundary_and_restarts_count(self, clock):
        quota = QuotaTracker(limit=5, window_seconds=60, clock=clock)
        for _ in range(6):
            quota.admit("alice")

        clock.advance(60)

        assert quota.admit("alice") is True
        window = quota.window("alice")
        assert window.count == 1
        assert window.reset_at == clock.now + 60

    def test_window_is_not_extended_by_requests(self, clock):
        quota = QuotaTracker(limit=5, window_seconds=60, clock=clock)
        quota.admit("alice")
        first_reset = quota.window("alice").reset_at

        clock.advance(30)
        quota.admit("alice")

        assert quota.window("alice").reset_at == first_reset


class TestIsolation:
    def test_identities_have_independent_windows(self, clock):
        quota = QuotaTracker(limit=5, window_seconds=60, clock=clock)
        for _ in range(6):
            quota.admit("alice")

        assert quota.admit("alice") is False
        assert quota.admit("bob") is True
        assert quota.remaining("bob") == 4

    def test_unknown_identity_has_full_quota(self, clock):
        quota = QuotaTracker(limit=3, window_seconds=60, clock=clock)

        assert quota.remaining("nobody") == 3
        assert quota.window("nobody") is None


class TestConcurrency:
    def test_parallel_threads_never_admit_past_limit(self):
        quota = QuotaTracker(limit=5, window_seconds=60)
        results: list[bool] = []
        lock = threading.Lock()
        barrier = threading.Barrier(20)

        def worker():
            barrier.wait()
            admitted = quota.admit("alice")
            with lock:
                results.append(admitted)

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 5
        assert results.count(False) == 15


@pytest.mark.parametrize("limit, window", [(0, 60), (5, 0), (5, -1)])
def test_rejects_invalid_settings(limit, window):
    with pytest.raises(ValueError):
        QuotaTracker(limit=limit, window_seconds=window)
