"""MicroMovementDriver: organic jitter from seeded noise.

Runs only in calm states (idle, listening, responding, softMode).
  pupil drift     ±2     5 s cycle
  eyebrows        ±1     8 s cycle
  head tilt       ±0.5   10 s cycle
  mouth w/depth   ±1/0.5 6 s cycle
Outside those states every offset is held at zero.
"""

from __future__ import annotations

import logging
from typing import Callable

from grump_engine.animation.noise import NoiseChannels, sample, sample_2d
from grump_engine.core.scheduler import CancelToken, Scheduler
from grump_engine.core.snapshot import MicroMovementLayer
from grump_engine.core.states import MICRO_MOVEMENT_STATES, EmotionalState

log = logging.getLogger(__name__)

PUPIL_FREQ, PUPIL_AMP = 0.2, 2.0
EYEBROW_FREQ, EYEBROW_AMP = 0.125, 1.0
HEAD_FREQ, HEAD_AMP = 0.1, 0.5
MOUTH_FREQ, MOUTH_WIDTH_AMP, MOUTH_DEPTH_AMP = 0.167, 1.0, 0.5


class MicroMovementDriver:
    """Writes only ``snapshot.micro``."""

    def __init__(
        self,
        scheduler: Scheduler,
        layer: MicroMovementLayer,
        channels: NoiseChannels,
        current_state: Callable[[], EmotionalState],
        frame_hz: float = 60.0,
    ) -> None:
        self._scheduler = scheduler
        self._layer = layer
        self._noise = channels
        self._current_state = current_state
        self._frame_ms = 1000.0 / frame_hz
        self._token: CancelToken | None = None
        self._t0_ms = 0.0
        self._running = False

    @property
    def animating(self) -> bool:
        return self._token is not None

    def start(self) -> None:
        self._running = True
        if self._current_state() in MICRO_MOVEMENT_STATES:
            self._start_frames()

    def stop(self) -> None:
        self._running = False
        self._stop_frames()

    def on_state_change(self, prev: EmotionalState, new: EmotionalState) -> None:
        if new in MICRO_MOVEMENT_STATES:
            if self._running and self._token is None:
                self._start_frames()
        else:
            self._stop_frames()

    def _start_frames(self) -> None:
        self._t0_ms = self._scheduler.now_ms()
        self._token = self._scheduler.schedule_interval(self._frame_ms, self._frame)
        self._frame()

    def _stop_frames(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None
        self._layer.zero()

    def _frame(self) -> None:
        if self._current_state() not in MICRO_MOVEMENT_STATES:
            self._stop_frames()
            return
        t = (self._scheduler.now_ms() - self._t0_ms) / 1000.0
        self.sample(t)

    def sample(self, t: float) -> MicroMovementLayer:
        """Write the offsets for elapsed time *t* (seconds)."""
        n, layer = self._noise, self._layer
        layer.pupil_drift_x, layer.pupil_drift_y = sample_2d(n.pupil, t, PUPIL_FREQ, PUPIL_AMP)
        layer.left_eyebrow_rotation = sample(n.eyebrow, t, EYEBROW_FREQ, EYEBROW_AMP)
        layer.left_eyebrow_y = sample(n.eyebrow, t + 1, EYEBROW_FREQ, EYEBROW_AMP)
        layer.right_eyebrow_rotation = sample(n.eyebrow, t + 2, EYEBROW_FREQ, EYEBROW_AMP)
        layer.right_eyebrow_y = sample(n.eyebrow, t + 3, EYEBROW_FREQ, EYEBROW_AMP)
        layer.head_tilt = sample(n.head, t, HEAD_FREQ, HEAD_AMP)
        layer.mouth_width = sample(n.mouth, t, MOUTH_FREQ, MOUTH_WIDTH_AMP)
        layer.mouth_depth = sample(n.mouth, t + 1, MOUTH_FREQ, MOUTH_DEPTH_AMP)
        return layer
