"""Tests for BlinkScheduler."""

from __future__ import annotations

import random

import pytest

from grump_engine.animation.blink import INTERVAL_MODIFIERS, BlinkScheduler
from grump_engine.core.scheduler import ManualScheduler
from grump_engine.core.snapshot import BlinkState
from grump_engine.core.states import BLINK_DURATIONS_MS, BlinkType, EmotionalState


class StateBox:
    def __init__(self, state: EmotionalState = EmotionalState.IDLE) -> None:
        self.state = state

    def __call__(self) -> EmotionalState:
        return self.state


@pytest.fixture
def sched():
    return ManualScheduler()


@pytest.fixture
def box():
    return StateBox()


@pytest.fixture
def blinker(sched, box):
    return BlinkScheduler(sched, BlinkState(), box, rng=random.Random(42))


def _record(blinker):
    events: list[tuple[BlinkType, float]] = []
    blinker.on_blink(lambda t, start: events.append((t, start)))
    return events


# ── Interval and type selection ──────────────────────────────────


class TestSelection:
    @pytest.mark.parametrize("state", list(EmotionalState))
    def test_interval_within_scaled_bounds(self, blinker, state):
        mod = INTERVAL_MODIFIERS.get(state, 1.0)
        for _ in range(200):
            ms = blinker.next_interval_ms(state)
            assert 3000 * mod <= ms < 6000 * mod

    def test_state_blink_types(self, blinker):
        assert blinker.blink_type_for(EmotionalState.SLEEPY) == BlinkType.SLOW
        assert blinker.blink_type_for(EmotionalState.ANNOYED) == BlinkType.HEAVY
        assert blinker.blink_type_for(EmotionalState.SKEPTICAL) == BlinkType.HALF
        assert blinker.blink_type_for(EmotionalState.IDLE) == BlinkType.STANDARD

    def test_impressed_usually_standard(self, blinker):
        types = {blinker.blink_type_for(EmotionalState.IMPRESSED) for _ in range(50)}
        assert types <= {BlinkType.STANDARD, BlinkType.WINK}


# ── Cycle ────────────────────────────────────────────────────────


class TestCycle:
    def test_blinks_within_first_window(self, blinker, sched):
        events = _record(blinker)
        blinker.start()
        sched.advance(6000)
        assert len(events) == 1
        assert events[0][0] == BlinkType.STANDARD
        assert 3000 <= events[0][1] < 6000

    def test_blink_held_for_type_duration(self, blinker, sched, box):
        box.state = EmotionalState.ANNOYED
        events = _record(blinker)
        blinker.start()
        while not events:
            sched.advance(10)
        assert blinker.is_blinking
        sched.advance(BLINK_DURATIONS_MS[BlinkType.HEAVY])
        assert not blinker.is_blinking

    def test_no_overlap_with_forced_triggers(self, sched, box):
        rng = random.Random(7)
        blinker = BlinkScheduler(sched, BlinkState(), box, rng=random.Random(3))
        events = _record(blinker)
        blinker.start()
        states = list(EmotionalState)
        elapsed = 0
        while elapsed < 60_000:
            step = rng.randint(5, 400)
            sched.advance(step)
            elapsed += step
            roll = rng.random()
            if roll < 0.2:
                blinker.trigger(rng.choice(list(BlinkType)))
            elif roll < 0.3:
                prev = box.state
                box.state = rng.choice(states)
                blinker.on_state_change(prev, box.state)

        assert len(events) > 10
        for (t0, s0), (_, s1) in zip(events, events[1:]):
            assert s1 >= s0 + BLINK_DURATIONS_MS[t0]

    def test_trigger_refused_while_blinking(self, blinker):
        assert blinker.trigger(BlinkType.SLOW)
        assert not blinker.trigger(BlinkType.STANDARD)
        assert not blinker.trigger_wink()

    def test_wink_uses_left_eye(self, blinker, sched):
        blinker.trigger_wink()
        assert blinker._blink.blink_eye == "left"
        sched.advance(BLINK_DURATIONS_MS[BlinkType.WINK])
        assert blinker._blink.blink_eye is None
        blinker.trigger_surprise()
        assert blinker._blink.blink_eye == "both"
        assert blinker._blink.blink_type == BlinkType.QUICK_DOUBLE

    def test_skeptical_trigger_is_half_blink(self, blinker):
        assert blinker.trigger_skeptical()
        assert blinker._blink.blink_type == BlinkType.HALF

    def test_manual_trigger_rearms_when_running(self, blinker, sched):
        events = _record(blinker)
        blinker.start()
        blinker.trigger_annoyed()
        sched.advance(BLINK_DURATIONS_MS[BlinkType.HEAVY] + 6000)
        assert len(events) == 2

    def test_state_change_keeps_pending_timer(self, blinker, sched, box):
        events = _record(blinker)
        blinker.start()
        for _ in range(40):
            sched.advance(500)
            blinker.on_state_change(box.state, EmotionalState.LISTENING)
            box.state = EmotionalState.LISTENING
        assert len(events) >= 3
        assert sched.pending == 1

    def test_stop_cancels_everything(self, blinker, sched):
        events = _record(blinker)
        blinker.start()
        blinker.trigger_slow()
        blinker.stop()
        assert not blinker.is_blinking
        assert sched.pending == 0
        sched.advance(20_000)
        assert len(events) == 1


class TestPhase:
    def test_phase_wraps(self, blinker):
        blinker.advance_phase(3900)
        assert blinker.advance_phase(200) == pytest.approx(100)
