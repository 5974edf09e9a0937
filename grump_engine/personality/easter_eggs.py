"""Easter-egg arbitration.

A fixed, ordered list of rules; the first rule to return a trigger wins.

  1. Monday morning   (time)
  2. 3AM              (time)
  3. Birthday         (message only)
  4. Love confession  (message only)
  5. The stare        (~60 s of silence)
  6. Heart eyes       (p = 0.001 per evaluation, 5 s cooldown)
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable, Final

from grump_engine.core.scheduler import CancelToken, Scheduler
from grump_engine.core.snapshot import TimeContext
from grump_engine.core.states import AccessoryType, EmotionalState, ParticleType

log = logging.getLogger(__name__)

STARE_SILENCE_MS = 30_000.0
STARE_HOLD_MS = 30_000.0
HEART_EYES_PROBABILITY = 0.001
HEART_EYES_COOLDOWN_MS = 5_000.0

BIRTHDAY_KEYWORDS: Final = ("birthday", "born", "birth date", "my birthday is", "turned")
LOVE_KEYWORDS: Final = ("i love you", "love you", "i'm in love", "i love grump")


@dataclass(slots=True, frozen=True)
class EasterEggTrigger:
    name: str
    state: EmotionalState
    particle_type: ParticleType | None = None
    accessory_type: AccessoryType | None = None
    message: str | None = None


MONDAY_MORNING = EasterEggTrigger(
    name="Monday Morning",
    state=EmotionalState.MAXIMUM_GRUMP,
    message="My condolences. It's Monday.",
)
THREE_AM = EasterEggTrigger(
    name="3AM Grump",
    state=EmotionalState.THREE_AM,
    particle_type=ParticleType.COFFEE_STEAM,
    accessory_type=AccessoryType.COFFEE_MUG,
    message="Why are either of us awake right now.",
)
BIRTHDAY = EasterEggTrigger(
    name="Birthday Grump",
    state=EmotionalState.BIRTHDAY,
    particle_type=ParticleType.CONFETTI,
    accessory_type=AccessoryType.PARTY_HAT,
    message="Fine. Happy birthday. I guess.",
)
LOVE_CONFESSION = EasterEggTrigger(
    name="Love Confession",
    state=EmotionalState.SUSPICIOUS,
    message="That's concerning.",
)
THE_STARE = EasterEggTrigger(name="The Stare", state=EmotionalState.IDLE, message="...")
HEART_EYES = EasterEggTrigger(
    name="Heart Eyes",
    state=EmotionalState.IMPRESSED,
    particle_type=ParticleType.SPARKLE,
    message="...",
)


class EasterEggArbiter:
    """Evaluates the rule list against time, silence and an optional message."""

    def __init__(
        self,
        scheduler: Scheduler,
        time_context: Callable[[], TimeContext],
        rng: random.Random | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._time_context = time_context
        self._rng = rng or random.Random()
        self._last_interaction_ms = scheduler.now_ms()
        self._stare_start_ms: float | None = None
        self._heart_eyes_armed = True
        self._heart_eyes_token: CancelToken | None = None

    # -- Rules --------------------------------------------------------------

    def check_monday_morning(self) -> EasterEggTrigger | None:
        tc = self._time_context()
        if tc.is_monday and 8 <= tc.hour < 10:
            return MONDAY_MORNING
        return None

    def check_3am(self) -> EasterEggTrigger | None:
        if self._time_context().is_3am:
            return THREE_AM
        return None

    @staticmethod
    def check_birthday(message: str | None) -> EasterEggTrigger | None:
        if not message:
            return None
        lower = message.lower()
        if any(k in lower for k in BIRTHDAY_KEYWORDS):
            return BIRTHDAY
        return None

    @staticmethod
    def check_love_confession(message: str | None) -> EasterEggTrigger | None:
        if not message:
            return None
        lower = message.lower()
        if any(k in lower for k in LOVE_KEYWORDS):
            return LOVE_CONFESSION
        return None

    def check_the_stare(self) -> EasterEggTrigger | None:
        now = self._scheduler.now_ms()
        if now - self._last_interaction_ms > STARE_SILENCE_MS:
            if self._stare_start_ms is None:
                self._stare_start_ms = now
            if now - self._stare_start_ms > STARE_HOLD_MS:
                return THE_STARE
        else:
            self._stare_start_ms = None
        return None

    def check_heart_eyes(self) -> EasterEggTrigger | None:
        if not self._heart_eyes_armed:
            return None
        if self._rng.random() < HEART_EYES_PROBABILITY:
            self._heart_eyes_armed = False
            self._heart_eyes_token = self._scheduler.schedule(
                HEART_EYES_COOLDOWN_MS, self._rearm_heart_eyes
            )
            return HEART_EYES
        return None

    def _rearm_heart_eyes(self) -> None:
        self._heart_eyes_armed = True
        self._heart_eyes_token = None

    # -- Arbitration --------------------------------------------------------

    def evaluate(self, message: str | None = None) -> EasterEggTrigger | None:
        """Return the first matching trigger in priority order, or None."""
        checks = (
            self.check_monday_morning,
            self.check_3am,
            lambda: self.check_birthday(message),
            lambda: self.check_love_confession(message),
            self.check_the_stare,
            self.check_heart_eyes,
        )
        for check in checks:
            trigger = check()
            if trigger is not None:
                log.debug("easter egg: %s", trigger.name)
                return trigger
        return None

    def update_interaction(self) -> None:
        self._last_interaction_ms = self._scheduler.now_ms()
        self._stare_start_ms = None

    def reset(self) -> None:
        self.update_interaction()
        if self._heart_eyes_token is not None:
            self._heart_eyes_token.cancel()
            self._heart_eyes_token = None
        self._heart_eyes_armed = True

    def stop(self) -> None:
        if self._heart_eyes_token is not None:
            self._heart_eyes_token.cancel()
            self._heart_eyes_token = None
        self._heart_eyes_armed = True

    @property
    def heart_eyes_armed(self) -> bool:
        return self._heart_eyes_armed
