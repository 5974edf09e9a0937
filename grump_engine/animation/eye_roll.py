"""EyeRollChoreographer: multi-phase eye-roll curves.

The roll is written as an offset layer (``snapshot.eye_roll``) so it
composes with the base face and with micro-movement instead of
overwriting either.  60 steps over the variation's duration; on
completion every offset returns to zero.
"""

from __future__ import annotations

import logging
import math

from grump_engine.core.scheduler import CancelToken, Scheduler
from grump_engine.core.snapshot import (
    RESTING_EYELID_BOTTOM_Y,
    RESTING_EYELID_TOP_Y,
    EyeRollLayer,
)
from grump_engine.core.states import EYE_ROLL_PROFILES, EyeRollVariation

log = logging.getLogger(__name__)

STEPS = 60
PUPIL_RADIUS = 4.0

EYELID_TOP_PEAK_Y = -14.0
EYELID_BOTTOM_PEAK_Y = 15.0
EYEBROW_RAISE_DEG = 5.0
EYEBROW_RAISE_Y = 2.0
HEAD_TILT_DEG = 2.0


# ── Curves (pure, progress ∈ [0, 1]) ─────────────────────────────


def pupil_offset(progress: float, rotation_deg: float) -> tuple[float, float]:
    angle = math.radians(progress * rotation_deg)
    return (math.cos(angle) * PUPIL_RADIUS, math.sin(angle) * PUPIL_RADIUS)


def eyelid_positions(progress: float) -> tuple[float, float]:
    """Absolute (top, bottom) lid Y: rise, squint, relax, rest."""
    phase = progress % 1.0
    rise_top = EYELID_TOP_PEAK_Y - RESTING_EYELID_TOP_Y
    rise_bottom = RESTING_EYELID_BOTTOM_Y - EYELID_BOTTOM_PEAK_Y
    if phase < 0.25:
        return (
            RESTING_EYELID_TOP_Y + phase * 4 * rise_top,
            RESTING_EYELID_BOTTOM_Y - phase * 4 * rise_bottom,
        )
    if phase < 0.5:
        return (EYELID_TOP_PEAK_Y, EYELID_BOTTOM_PEAK_Y)
    if phase < 0.75:
        return (
            EYELID_TOP_PEAK_Y - (phase - 0.5) * 4 * rise_top,
            EYELID_BOTTOM_PEAK_Y + (phase - 0.5) * 4 * rise_bottom,
        )
    return (RESTING_EYELID_TOP_Y, RESTING_EYELID_BOTTOM_Y)


def eyelid_offsets(progress: float) -> tuple[float, float]:
    top, bottom = eyelid_positions(progress)
    return (top - RESTING_EYELID_TOP_Y, bottom - RESTING_EYELID_BOTTOM_Y)


def _raise_settle(progress: float) -> float:
    """0 → 1 over [0, .3), hold to .6, 1 → 0 over [.6, 1)."""
    phase = progress % 1.0
    if phase < 0.3:
        return phase / 0.3
    if phase < 0.6:
        return 1.0
    return 1.0 - (phase - 0.6) / 0.4


def eyebrow_offsets(progress: float) -> tuple[float, float]:
    """(rotation, y) offset applied to both brows."""
    k = _raise_settle(progress)
    return (-EYEBROW_RAISE_DEG * k, -EYEBROW_RAISE_Y * k)


def head_tilt(progress: float) -> float:
    return -HEAD_TILT_DEG * _raise_settle(progress)


# ── Choreographer ────────────────────────────────────────────────


class EyeRollChoreographer:
    """Writes only ``snapshot.eye_roll``; one roll at a time."""

    def __init__(self, scheduler: Scheduler, layer: EyeRollLayer) -> None:
        self._scheduler = scheduler
        self._layer = layer
        self._token: CancelToken | None = None
        self._step = 0
        self._rotation = 0.0

    @property
    def active(self) -> bool:
        return self._layer.active

    def trigger(self, variation: EyeRollVariation | str = EyeRollVariation.FULL) -> bool:
        """Start a roll.  Ignored (returns False) while one is already running."""
        if self._layer.active:
            log.debug("eye roll: %s ignored, roll in progress", variation)
            return False
        variation = EyeRollVariation(variation)
        rotation, duration_ms = EYE_ROLL_PROFILES[variation]
        self._rotation = rotation
        self._step = 0

        layer = self._layer
        layer.active = True
        layer.progress = 0.0
        layer.variation = variation
        self._apply(0.0)

        self._token = self._scheduler.schedule_interval(duration_ms / STEPS, self._tick)
        log.debug("eye roll: %s (%.0f deg over %.0f ms)", variation.value, rotation, duration_ms)
        return True

    def _tick(self) -> None:
        self._step += 1
        if self._step >= STEPS:
            self._finish()
            return
        progress = self._step / STEPS
        self._layer.progress = progress
        self._apply(progress)

    def _apply(self, progress: float) -> None:
        layer = self._layer
        layer.pupil_x, layer.pupil_y = pupil_offset(progress, self._rotation)
        layer.eyelid_top, layer.eyelid_bottom = eyelid_offsets(progress)
        rot, y = eyebrow_offsets(progress)
        layer.left_eyebrow_rotation = layer.right_eyebrow_rotation = rot
        layer.left_eyebrow_y = layer.right_eyebrow_y = y
        layer.head_tilt = head_tilt(progress)

    def _finish(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None
        layer = self._layer
        layer.active = False
        layer.progress = 0.0
        layer.variation = None
        layer.clear_offsets()

    def stop(self) -> None:
        self._finish()
