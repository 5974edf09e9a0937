"""Closed vocabularies and fixed lookup tables for the Grump face.

Every table here is total over its enum.  Wire values are the camelCase
names the renderer and chat shell already speak.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final


# ── Enums ────────────────────────────────────────────────────────


class EmotionalState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    RESPONDING = "responding"
    SKEPTICAL = "skeptical"
    ANNOYED = "annoyed"
    IMPRESSED = "impressed"
    SUSPICIOUS = "suspicious"
    SOFT_MODE = "softMode"
    MAXIMUM_GRUMP = "maximumGrump"
    SLEEPY = "sleepy"
    ERROR = "error"
    THINKING_DEEP = "thinkingDeep"
    SMUG = "smug"
    EXASPERATED_SIGH = "exasperatedSigh"
    RELUCTANT_AGREEMENT = "reluctantAgreement"
    SLEEP = "sleep"
    JUMPSCARE = "jumpscare"
    BIRTHDAY = "birthday"
    THREE_AM = "threeAM"


class BlinkType(str, Enum):
    STANDARD = "standard"
    SLOW = "slow"
    HEAVY = "heavy"
    QUICK_DOUBLE = "quickDouble"
    HALF = "half"
    WINK = "wink"


class ParticleType(str, Enum):
    SLEEP_Z = "sleepZ"
    CONFETTI = "confetti"
    COFFEE_STEAM = "coffeeSteam"
    ANGER = "angerParticle"
    SPARKLE = "sparkle"
    GLITCH_RECTANGLE = "glitchRectangle"


class AccessoryType(str, Enum):
    COFFEE_MUG = "coffeeMug"
    PARTY_HAT = "partyHat"


class MouthState(str, Enum):
    FLAT = "flat"
    FROWN = "frown"
    SLIGHT_FROWN = "slightFrown"
    SMIRK = "smirk"
    OPEN = "open"
    PURSED = "pursed"
    TIGHT = "tight"
    ALMOST_SMILE = "almostSmile"
    PART = "part"
    MUTTERING = "muttering"
    EXAGGERATED_FROWN = "exaggeratedFrown"
    NEUTRAL = "neutral"
    WAVY = "wavy"


class GlowColor(str, Enum):
    RED = "red"
    ORANGE = "orange"
    SOFT = "soft"
    INTENSE = "intense"


class EyeRollVariation(str, Enum):
    FULL = "full"
    HALF = "half"
    DOUBLE = "double"
    SLOW = "slow"
    QUICK = "quick"


# ── Per-state face config ────────────────────────────────────────


@dataclass(slots=True, frozen=True)
class StateConfig:
    """Baseline face/glow parameters owned by the state machine."""

    left_eyebrow_rotation: float
    right_eyebrow_rotation: float
    mouth_state: MouthState
    glow_intensity: float
    glow_pulse_rate: float
    glow_color: GlowColor


_S = EmotionalState
_M = MouthState
_G = GlowColor

# (left brow°, right brow°, mouth, glow intensity, pulse s, glow color)
STATE_CONFIGS: Final[dict[EmotionalState, StateConfig]] = {
    _S.IDLE: StateConfig(-5, 5, _M.FLAT, 0.4, 2.0, _G.RED),
    _S.LISTENING: StateConfig(-3, 3, _M.OPEN, 0.6, 1.0, _G.ORANGE),
    _S.PROCESSING: StateConfig(-12, 12, _M.PURSED, 0.5, 1.5, _G.ORANGE),
    _S.RESPONDING: StateConfig(-5, 5, _M.OPEN, 0.3, 2.0, _G.RED),
    _S.SKEPTICAL: StateConfig(-5, -18, _M.SMIRK, 0.4, 1.5, _G.RED),
    _S.ANNOYED: StateConfig(-18, 18, _M.TIGHT, 0.6, 1.2, _G.RED),
    _S.MAXIMUM_GRUMP: StateConfig(-25, 25, _M.EXAGGERATED_FROWN, 0.8, 0.8, _G.INTENSE),
    _S.IMPRESSED: StateConfig(2, -2, _M.ALMOST_SMILE, 0.5, 1.8, _G.ORANGE),
    _S.SUSPICIOUS: StateConfig(-20, -8, _M.TIGHT, 0.4, 1.8, _G.RED),
    _S.SOFT_MODE: StateConfig(5, -5, _M.FLAT, 0.2, 2.5, _G.SOFT),
    _S.SLEEPY: StateConfig(8, -8, _M.FLAT, 0.2, 4.0, _G.SOFT),
    _S.ERROR: StateConfig(-10, 15, _M.FROWN, 0.6, 0.5, _G.INTENSE),
    _S.THINKING_DEEP: StateConfig(-15, 15, _M.PURSED, 0.5, 1.2, _G.ORANGE),
    _S.SMUG: StateConfig(-5, -20, _M.SMIRK, 0.5, 1.5, _G.RED),
    _S.EXASPERATED_SIGH: StateConfig(-8, 8, _M.OPEN, 0.4, 2.0, _G.RED),
    _S.RELUCTANT_AGREEMENT: StateConfig(-3, 3, _M.FLAT, 0.3, 2.0, _G.RED),
    _S.SLEEP: StateConfig(10, -10, _M.FLAT, 0.1, 5.0, _G.SOFT),
    _S.JUMPSCARE: StateConfig(0, 0, _M.OPEN, 0.8, 0.3, _G.INTENSE),
    _S.BIRTHDAY: StateConfig(-15, 15, _M.TIGHT, 0.5, 1.5, _G.ORANGE),
    _S.THREE_AM: StateConfig(5, -5, _M.FLAT, 0.2, 3.0, _G.SOFT),
}

# Coarse, lossy: only gates cosmetic unlocks.
ANNOYANCE_LEVELS: Final[dict[EmotionalState, int]] = {
    _S.MAXIMUM_GRUMP: 100,
    _S.ERROR: 80,
    _S.ANNOYED: 60,
    _S.SUSPICIOUS: 40,
    _S.SKEPTICAL: 30,
}


def normalize_state(value: EmotionalState | str | None) -> EmotionalState:
    """Coerce a state or wire name to an EmotionalState; unknown → IDLE."""
    if isinstance(value, EmotionalState):
        return value
    try:
        return EmotionalState(value)
    except ValueError:
        return EmotionalState.IDLE


def get_state_config(state: EmotionalState | str | None) -> StateConfig:
    return STATE_CONFIGS.get(normalize_state(state), STATE_CONFIGS[_S.IDLE])


def annoyance_for(state: EmotionalState | str | None) -> int:
    return ANNOYANCE_LEVELS.get(normalize_state(state), 0)


# ── Blink / eye-roll timing ──────────────────────────────────────

BLINK_DURATIONS_MS: Final[dict[BlinkType, float]] = {
    BlinkType.STANDARD: 150.0,
    BlinkType.SLOW: 400.0,
    BlinkType.HEAVY: 600.0,
    BlinkType.QUICK_DOUBLE: 250.0,
    BlinkType.HALF: 100.0,
    BlinkType.WINK: 200.0,
}

# (total rotation degrees, total duration ms)
EYE_ROLL_PROFILES: Final[dict[EyeRollVariation, tuple[float, float]]] = {
    EyeRollVariation.FULL: (360.0, 1000.0),
    EyeRollVariation.HALF: (180.0, 1000.0),
    EyeRollVariation.DOUBLE: (720.0, 1000.0),
    EyeRollVariation.SLOW: (360.0, 2000.0),
    EyeRollVariation.QUICK: (360.0, 500.0),
}

MICRO_MOVEMENT_STATES: Final[frozenset[EmotionalState]] = frozenset(
    {_S.IDLE, _S.LISTENING, _S.RESPONDING, _S.SOFT_MODE}
)
