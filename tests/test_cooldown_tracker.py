"""Tests for per-slot image edit cooldowns."""

import pytest

from classes.cooldown_tracker import CooldownTracker
from classes.errors import CooldownActiveError


@pytest.fixture()
def tracker(clock):
    return CooldownTracker(window_seconds=60, clock=clock)


class TestCooldownTracker:
    def test_same_operation_same_slot_cools_down(self, tracker, clock):
        tracker.begin(0, "clarify")
        tracker.finish(0, "clarify")

        with pytest.raises(CooldownActiveError) as excinfo:
            tracker.begin(0, "clarify")
        assert excinfo.value.remaining_seconds == pytest.approx(60)

        clock.advance(59)
        assert not tracker.is_available(0, "clarify")
        clock.advance(1)
        assert tracker.is_available(0, "clarify")

    def test_other_operations_and_slots_stay_available(self, tracker):
        tracker.begin(0, "clean")
        tracker.finish(0, "clean")
        assert tracker.is_available(0, "clarify")
        assert tracker.is_available(1, "clean")

    def test_slot_busy_while_any_operation_runs(self, tracker):
        tracker.begin(2, "remove_background")
        with pytest.raises(CooldownActiveError):
            tracker.begin(2, "clarify")
        assert tracker.is_available(3, "clarify")

    def test_snapshot_reports_remaining_per_operation(self, tracker, clock):
        tracker.begin(0, "clean")
        tracker.finish(0, "clean")
        clock.advance(15)
        assert tracker.snapshot(0) == {"remove_background": 0.0, "clean": 45.0, "clarify": 0.0}

    def test_sweep_expired(self, tracker, clock):
        for op in ("clean", "clarify"):
            tracker.begin(0, op)
            tracker.finish(0, op)
        clock.advance(61)
        assert tracker.sweep_expired() == 2
