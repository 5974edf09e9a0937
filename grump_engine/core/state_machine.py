"""EmotionalStateMachine: the single authoritative emotional state.

Owns the AnimationSnapshot.  ``transition_to`` is total: every state is a
valid target at any time, and an unknown name falls back to idle.  A
transition rewrites only the base face/glow fields from the state's
config; blink, eye-roll, micro-movement and particle sub-records belong
to their drivers and are left alone.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable

from grump_engine.core.scheduler import CancelToken, Scheduler
from grump_engine.core.snapshot import AnimationSnapshot
from grump_engine.core.states import (
    AccessoryType,
    EmotionalState,
    annoyance_for,
    get_state_config,
    normalize_state,
)

log = logging.getLogger(__name__)

StateListener = Callable[[EmotionalState, EmotionalState], None]

BREATHING_AMPLITUDE = 0.02
EYE_TRACKING_LIMIT = 6.0
SCREEN_SHAKE_MS = 300.0


class EmotionalStateMachine:
    def __init__(self, scheduler: Scheduler, snapshot: AnimationSnapshot | None = None) -> None:
        self._scheduler = scheduler
        self._snapshot = snapshot or AnimationSnapshot()
        self._listeners: list[StateListener] = []
        self._shake_token: CancelToken | None = None
        self._snapshot.last_state_change_ms = scheduler.now_ms()

    @property
    def snapshot(self) -> AnimationSnapshot:
        return self._snapshot

    @property
    def current_state(self) -> EmotionalState:
        return self._snapshot.current_state

    @property
    def annoyance_level(self) -> int:
        return annoyance_for(self._snapshot.current_state)

    def on_change(self, cb: StateListener) -> None:
        """Register a listener called with (previous, new) after each transition."""
        self._listeners.append(cb)

    def transition_to(self, state: EmotionalState | str | None) -> EmotionalState:
        new = normalize_state(state)
        cfg = get_state_config(new)
        snap = self._snapshot
        prev = snap.current_state

        snap.face.left_eyebrow_rotation = cfg.left_eyebrow_rotation
        snap.face.right_eyebrow_rotation = cfg.right_eyebrow_rotation
        snap.face.mouth_state = cfg.mouth_state
        snap.glow.intensity = cfg.glow_intensity
        snap.glow.pulse_rate = cfg.glow_pulse_rate
        snap.glow.color = cfg.glow_color
        snap.current_state = new
        snap.last_state_change_ms = self._scheduler.now_ms()

        log.debug("state: %s -> %s", prev.value, new.value)
        for cb in list(self._listeners):
            try:
                cb(prev, new)
            except Exception:
                log.exception("state: listener failed on %s -> %s", prev.value, new.value)
        return new

    # -- Base-layer helpers -------------------------------------------------

    def update_breathing(self, elapsed_s: float) -> float:
        scale = 1.0 + math.sin(elapsed_s * (math.pi / 3.0)) * BREATHING_AMPLITUDE
        self._snapshot.breathing_scale = scale
        return scale

    def update_eye_tracking(self, position: float) -> None:
        x = max(-EYE_TRACKING_LIMIT, min(EYE_TRACKING_LIMIT, float(position)))
        self._snapshot.face.left_pupil_x = x
        self._snapshot.face.right_pupil_x = x

    def trigger_screen_shake(self, intensity: float = 0.5) -> None:
        shake = self._snapshot.screen_shake
        shake.active = True
        shake.intensity = intensity
        if self._shake_token is not None:
            self._shake_token.cancel()
        self._shake_token = self._scheduler.schedule(SCREEN_SHAKE_MS, self._end_shake)

    def _end_shake(self) -> None:
        self._snapshot.screen_shake.active = False
        self._shake_token = None

    def set_accessory(self, accessory: AccessoryType | str | None) -> None:
        acc = self._snapshot.accessory
        if accessory is None:
            acc.visible = False
            acc.accessory_type = None
            return
        acc.accessory_type = AccessoryType(accessory)
        acc.visible = True

    def update_context(self, **fields: Any) -> None:
        ctx = self._snapshot.context
        for key, value in fields.items():
            if not hasattr(ctx, key):
                log.warning("state: ignoring unknown context field %r", key)
                continue
            setattr(ctx, key, value)

    def tick_idle(self) -> float:
        snap = self._snapshot
        snap.idle_time_ms = self._scheduler.now_ms() - snap.last_state_change_ms
        return snap.idle_time_ms

    def stop(self) -> None:
        if self._shake_token is not None:
            self._shake_token.cancel()
            self._shake_token = None
        self._snapshot.screen_shake.active = False
