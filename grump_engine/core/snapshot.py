"""AnimationSnapshot: the single record the renderer reads once per paint.

The snapshot is partitioned by owner.  Each sub-animation is handed only
its own sub-record:

  face / glow / breathing / shake / accessory / context → EmotionalStateMachine
  blink       → BlinkScheduler
  eye_roll    → EyeRollChoreographer   (offset layer)
  micro       → MicroMovementDriver    (offset layer)
  particles   → ParticleSpawner

Eye-roll and micro-movement never touch ``face``; the renderer-facing
``composed_*`` values add both offset layers on top of the base geometry.
"""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass, field, is_dataclass
from enum import Enum
from typing import Any

from grump_engine.core.states import (
    AccessoryType,
    BlinkType,
    EmotionalState,
    EyeRollVariation,
    GlowColor,
    MouthState,
    ParticleType,
)

CONVERSATION_HISTORY_MAX = 50

RESTING_EYELID_TOP_Y = -24.0
RESTING_EYELID_BOTTOM_Y = 20.0


# ── Base layer (state machine) ───────────────────────────────────


@dataclass(slots=True)
class FaceGeometry:
    left_eyebrow_rotation: float = -5.0
    right_eyebrow_rotation: float = 5.0
    left_eyebrow_x: float = 0.0
    right_eyebrow_x: float = 0.0
    left_eyebrow_y: float = 0.0
    right_eyebrow_y: float = 0.0

    left_eye_scale_x: float = 1.0
    left_eye_scale_y: float = 1.0
    right_eye_scale_x: float = 1.0
    right_eye_scale_y: float = 1.0

    left_pupil_x: float = 0.0
    left_pupil_y: float = 0.0
    left_pupil_size: float = 12.0
    right_pupil_x: float = 0.0
    right_pupil_y: float = 0.0
    right_pupil_size: float = 12.0

    left_eyelid_top_y: float = RESTING_EYELID_TOP_Y
    right_eyelid_top_y: float = RESTING_EYELID_TOP_Y
    left_eyelid_bottom_y: float = RESTING_EYELID_BOTTOM_Y
    right_eyelid_bottom_y: float = RESTING_EYELID_BOTTOM_Y

    mouth_state: MouthState = MouthState.FLAT
    mouth_width: float = 40.0
    mouth_height: float = 2.0
    mouth_curve_depth: float = 0.0


@dataclass(slots=True)
class GlowState:
    intensity: float = 0.4
    pulse_rate: float = 2.0
    color: GlowColor = GlowColor.RED


@dataclass(slots=True)
class ScreenShakeState:
    active: bool = False
    intensity: float = 0.5


@dataclass(slots=True)
class AccessoryState:
    visible: bool = False
    accessory_type: AccessoryType | None = None


# ── Blink layer ──────────────────────────────────────────────────


@dataclass(slots=True)
class BlinkState:
    is_blinking: bool = False
    blink_type: BlinkType = BlinkType.STANDARD
    blink_eye: str | None = None  # "both" | "left" | None
    timer_phase: float = 0.0  # ms, wraps at 4000


# ── Offset layers ────────────────────────────────────────────────


@dataclass(slots=True)
class EyeRollLayer:
    active: bool = False
    progress: float = 0.0
    variation: EyeRollVariation | None = None

    pupil_x: float = 0.0
    pupil_y: float = 0.0
    eyelid_top: float = 0.0
    eyelid_bottom: float = 0.0
    left_eyebrow_rotation: float = 0.0
    right_eyebrow_rotation: float = 0.0
    left_eyebrow_y: float = 0.0
    right_eyebrow_y: float = 0.0
    head_tilt: float = 0.0

    def clear_offsets(self) -> None:
        self.pupil_x = 0.0
        self.pupil_y = 0.0
        self.eyelid_top = 0.0
        self.eyelid_bottom = 0.0
        self.left_eyebrow_rotation = 0.0
        self.right_eyebrow_rotation = 0.0
        self.left_eyebrow_y = 0.0
        self.right_eyebrow_y = 0.0
        self.head_tilt = 0.0


@dataclass(slots=True)
class MicroMovementLayer:
    pupil_drift_x: float = 0.0
    pupil_drift_y: float = 0.0
    left_eyebrow_rotation: float = 0.0
    left_eyebrow_y: float = 0.0
    right_eyebrow_rotation: float = 0.0
    right_eyebrow_y: float = 0.0
    head_tilt: float = 0.0
    mouth_width: float = 0.0
    mouth_depth: float = 0.0

    def zero(self) -> None:
        self.pupil_drift_x = 0.0
        self.pupil_drift_y = 0.0
        self.left_eyebrow_rotation = 0.0
        self.left_eyebrow_y = 0.0
        self.right_eyebrow_rotation = 0.0
        self.right_eyebrow_y = 0.0
        self.head_tilt = 0.0
        self.mouth_width = 0.0
        self.mouth_depth = 0.0


# ── Particles ────────────────────────────────────────────────────


@dataclass(slots=True)
class Particle:
    id: str
    kind: ParticleType
    x: float  # percent of container
    y: float
    rotation: float
    scale: float
    born_ms: float
    lifetime_ms: float
    origin_x: float = 0.0
    origin_y: float = 0.0
    base_rotation: float = 0.0
    base_scale: float = 1.0
    opacity: float = 1.0
    color: str | None = None
    drift: float = 0.0  # kind-specific: confetti sideways travel, steam phase


@dataclass(slots=True)
class ParticleState:
    particle_type: ParticleType | None = None
    particles: list[Particle] = field(default_factory=list)


# ── Context ──────────────────────────────────────────────────────


@dataclass(slots=True)
class TimeContext:
    hour: int = 0
    day_of_week: int = 0  # Monday == 0
    is_3am: bool = False
    is_monday: bool = False
    time_based_state: EmotionalState | None = None


@dataclass(slots=True)
class ConversationEntry:
    sender: str  # "user" | "grump"
    content: str
    timestamp_ms: float


@dataclass(slots=True)
class DetectedPatterns:
    repeat_questions: int = 0
    sentiment_score: float = 0.0
    keyword_matches: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ContextState:
    time: TimeContext = field(default_factory=TimeContext)
    session_length_ms: float = 0.0
    message_count: int = 0
    last_message_ms: float = 0.0
    conversation_history: deque[ConversationEntry] = field(
        default_factory=lambda: deque(maxlen=CONVERSATION_HISTORY_MAX)
    )
    detected_patterns: DetectedPatterns = field(default_factory=DetectedPatterns)


# ── Snapshot ─────────────────────────────────────────────────────


@dataclass(slots=True)
class AnimationSnapshot:
    current_state: EmotionalState = EmotionalState.IDLE
    last_state_change_ms: float = 0.0

    blink: BlinkState = field(default_factory=BlinkState)
    face: FaceGeometry = field(default_factory=FaceGeometry)
    glow: GlowState = field(default_factory=GlowState)
    breathing_scale: float = 1.0
    eye_roll: EyeRollLayer = field(default_factory=EyeRollLayer)
    screen_shake: ScreenShakeState = field(default_factory=ScreenShakeState)
    particles: ParticleState = field(default_factory=ParticleState)
    accessory: AccessoryState = field(default_factory=AccessoryState)
    micro: MicroMovementLayer = field(default_factory=MicroMovementLayer)
    context: ContextState = field(default_factory=ContextState)

    idle_time_ms: float = 0.0

    # -- Composed (base + eye-roll + micro) ---------------------------------

    def composed_pupil(self, side: str) -> tuple[float, float]:
        f, er, mm = self.face, self.eye_roll, self.micro
        if side == "left":
            bx, by = f.left_pupil_x, f.left_pupil_y
        else:
            bx, by = f.right_pupil_x, f.right_pupil_y
        return (bx + er.pupil_x + mm.pupil_drift_x, by + er.pupil_y + mm.pupil_drift_y)

    def composed_eyebrow(self, side: str) -> tuple[float, float]:
        """(rotation, y) for one eyebrow."""
        f, er, mm = self.face, self.eye_roll, self.micro
        if side == "left":
            return (
                f.left_eyebrow_rotation + er.left_eyebrow_rotation + mm.left_eyebrow_rotation,
                f.left_eyebrow_y + er.left_eyebrow_y + mm.left_eyebrow_y,
            )
        return (
            f.right_eyebrow_rotation + er.right_eyebrow_rotation + mm.right_eyebrow_rotation,
            f.right_eyebrow_y + er.right_eyebrow_y + mm.right_eyebrow_y,
        )

    def composed_eyelids(self, side: str) -> tuple[float, float]:
        """(top_y, bottom_y) for one eye."""
        f, er = self.face, self.eye_roll
        if side == "left":
            return (f.left_eyelid_top_y + er.eyelid_top, f.left_eyelid_bottom_y + er.eyelid_bottom)
        return (f.right_eyelid_top_y + er.eyelid_top, f.right_eyelid_bottom_y + er.eyelid_bottom)

    @property
    def composed_head_tilt(self) -> float:
        return self.eye_roll.head_tilt + self.micro.head_tilt

    @property
    def composed_mouth(self) -> tuple[float, float]:
        """(width, curve_depth)."""
        return (
            self.face.mouth_width + self.micro.mouth_width,
            self.face.mouth_curve_depth + self.micro.mouth_depth,
        )

    def to_dict(self) -> dict[str, Any]:
        d = _plain(asdict(self))
        lp = self.composed_pupil("left")
        rp = self.composed_pupil("right")
        lb = self.composed_eyebrow("left")
        rb = self.composed_eyebrow("right")
        ll = self.composed_eyelids("left")
        rl = self.composed_eyelids("right")
        mw, md = self.composed_mouth
        d["composed"] = {
            "left_pupil": {"x": lp[0], "y": lp[1]},
            "right_pupil": {"x": rp[0], "y": rp[1]},
            "left_eyebrow": {"rotation": lb[0], "y": lb[1]},
            "right_eyebrow": {"rotation": rb[0], "y": rb[1]},
            "left_eyelid": {"top": ll[0], "bottom": ll[1]},
            "right_eyelid": {"top": rl[0], "bottom": rl[1]},
            "head_tilt": self.composed_head_tilt,
            "mouth": {"width": mw, "curve_depth": md},
        }
        return d


def _plain(value: Any) -> Any:
    """Make asdict() output JSON-safe (enums → wire values, deques → lists)."""
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return _plain(asdict(value))
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, deque)):
        return [_plain(v) for v in value]
    return value
