"""BlinkScheduler: randomized-interval blinks layered on the current state.

Each cycle arms one timer of uniform[3000, 6000) ms scaled by a per-state
modifier.  When it fires the blink type is chosen from the state, the
blink is held for that type's duration, then the next cycle is armed.
Nothing is armed while a blink is held, so blink windows never overlap.
"""

from __future__ import annotations

import logging
import random
from typing import Callable, Final

from grump_engine.core.scheduler import CancelToken, Scheduler
from grump_engine.core.snapshot import BlinkState
from grump_engine.core.states import BLINK_DURATIONS_MS, BlinkType, EmotionalState

log = logging.getLogger(__name__)

_S = EmotionalState

BASE_INTERVAL_MIN_MS = 3000.0
BASE_INTERVAL_SPAN_MS = 3000.0
TIMER_PHASE_WRAP_MS = 4000.0
WINK_PROBABILITY = 0.001

INTERVAL_MODIFIERS: Final[dict[EmotionalState, float]] = {
    _S.SLEEPY: 1.5,
    _S.SOFT_MODE: 1.5,
    _S.ANNOYED: 0.7,
    _S.MAXIMUM_GRUMP: 0.7,
    _S.PROCESSING: 0.8,
    _S.THINKING_DEEP: 0.8,
    _S.SLEEP: 3.0,
}

STATE_BLINK_TYPES: Final[dict[EmotionalState, BlinkType]] = {
    _S.SLEEPY: BlinkType.SLOW,
    _S.SOFT_MODE: BlinkType.SLOW,
    _S.SLEEP: BlinkType.SLOW,
    _S.ANNOYED: BlinkType.HEAVY,
    _S.SKEPTICAL: BlinkType.HALF,
}

BlinkListener = Callable[[BlinkType, float], None]


class BlinkScheduler:
    """Writes only ``snapshot.blink``."""

    def __init__(
        self,
        scheduler: Scheduler,
        blink: BlinkState,
        current_state: Callable[[], EmotionalState],
        rng: random.Random | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._blink = blink
        self._current_state = current_state
        self._rng = rng or random.Random()
        self._arm_token: CancelToken | None = None
        self._hold_token: CancelToken | None = None
        self._running = False
        self._listeners: list[BlinkListener] = []

    @property
    def is_blinking(self) -> bool:
        return self._blink.is_blinking

    def on_blink(self, cb: BlinkListener) -> None:
        """Called with (blink_type, start_ms) whenever a blink begins."""
        self._listeners.append(cb)

    # -- Lifecycle ----------------------------------------------------------

    def start(self) -> None:
        self._running = True
        if not self._blink.is_blinking:
            self._arm()

    def stop(self) -> None:
        self._running = False
        self._cancel_arm()
        if self._hold_token is not None:
            self._hold_token.cancel()
            self._hold_token = None
        self._blink.is_blinking = False
        self._blink.blink_eye = None

    def on_state_change(self, prev: EmotionalState, new: EmotionalState) -> None:
        # The pending cycle keeps its draw; the new modifier applies from the next arm.
        if self._running and not self._blink.is_blinking and self._arm_token is None:
            self._arm()

    # -- Interval / type selection -----------------------------------------

    def next_interval_ms(self, state: EmotionalState | None = None) -> float:
        state = state if state is not None else self._current_state()
        base = BASE_INTERVAL_MIN_MS + self._rng.random() * BASE_INTERVAL_SPAN_MS
        return base * INTERVAL_MODIFIERS.get(state, 1.0)

    def blink_type_for(self, state: EmotionalState | None = None) -> BlinkType:
        state = state if state is not None else self._current_state()
        if state == _S.IMPRESSED:
            return BlinkType.WINK if self._rng.random() < WINK_PROBABILITY else BlinkType.STANDARD
        return STATE_BLINK_TYPES.get(state, BlinkType.STANDARD)

    # -- Cycle --------------------------------------------------------------

    def _cancel_arm(self) -> None:
        if self._arm_token is not None:
            self._arm_token.cancel()
            self._arm_token = None

    def _arm(self) -> None:
        self._cancel_arm()
        self._arm_token = self._scheduler.schedule(self.next_interval_ms(), self._on_fire)

    def _on_fire(self) -> None:
        self._arm_token = None
        if self._blink.is_blinking:
            return
        self._begin(self.blink_type_for())

    def _begin(self, blink_type: BlinkType) -> None:
        b = self._blink
        b.is_blinking = True
        b.blink_type = blink_type
        b.blink_eye = "left" if blink_type == BlinkType.WINK else "both"
        start = self._scheduler.now_ms()
        self._hold_token = self._scheduler.schedule(BLINK_DURATIONS_MS[blink_type], self._end)
        for cb in self._listeners:
            cb(blink_type, start)

    def _end(self) -> None:
        self._hold_token = None
        self._blink.is_blinking = False
        self._blink.blink_eye = None
        if self._running:
            self._arm()

    # -- Manual triggers ----------------------------------------------------

    def trigger(self, blink_type: BlinkType | str = BlinkType.STANDARD) -> bool:
        """Blink now unless a blink is already held.  Returns whether it fired."""
        if self._blink.is_blinking:
            return False
        self._cancel_arm()
        self._begin(BlinkType(blink_type))
        return True

    def trigger_surprise(self) -> bool:
        return self.trigger(BlinkType.QUICK_DOUBLE)

    def trigger_annoyed(self) -> bool:
        return self.trigger(BlinkType.HEAVY)

    def trigger_slow(self) -> bool:
        return self.trigger(BlinkType.SLOW)

    def trigger_skeptical(self) -> bool:
        return self.trigger(BlinkType.HALF)

    def trigger_wink(self) -> bool:
        return self.trigger(BlinkType.WINK)

    # -- Frame --------------------------------------------------------------

    def advance_phase(self, dt_ms: float) -> float:
        self._blink.timer_phase = (self._blink.timer_phase + dt_ms) % TIMER_PHASE_WRAP_MS
        return self._blink.timer_phase
