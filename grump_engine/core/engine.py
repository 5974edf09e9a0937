"""GrumpEngine: owns and wires every component of the animation engine.

  chat event → ContextAnalyzer → EasterEggArbiter → reaction rules
             → EmotionalStateMachine.transition_to
             → blink / eye roll / micro-movement / particles (own timers)
             → ProgressionTracker (observes every transition)
             → renderer reads get_snapshot()

Two recurring ticks run while started: the context tick (1 s) refreshes
time/session facts and evaluates the ambient easter eggs; the frame tick
(frame_hz) advances breathing, the blink phase and particles.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Any, Callable

from grump_engine.animation.blink import BlinkScheduler
from grump_engine.animation.eye_roll import EyeRollChoreographer
from grump_engine.animation.micro_movement import MicroMovementDriver
from grump_engine.animation.noise import NoiseChannels
from grump_engine.animation.particles import ParticleSpawner
from grump_engine.config import EngineConfig
from grump_engine.core.scheduler import AsyncioScheduler, CancelToken, Scheduler
from grump_engine.core.snapshot import AnimationSnapshot
from grump_engine.core.state_machine import EmotionalStateMachine
from grump_engine.core.states import (
    AccessoryType,
    BlinkType,
    EmotionalState,
    EyeRollVariation,
    ParticleType,
)
from grump_engine.personality.context import ContextAnalyzer, MessageAnalysis
from grump_engine.personality.easter_eggs import EasterEggArbiter, EasterEggTrigger
from grump_engine.personality.progression import ProgressionTracker
from grump_engine.personality.store import KeyValueStore, MemoryStore

log = logging.getLogger(__name__)

_S = EmotionalState

ANGER_SHAKE_INTENSITY = 0.5
ANGER_CLEAR_MS = 500.0
ERROR_SHAKE_INTENSITY = 0.3
SPARKLE_PROBABILITY = 0.05
SPARKLE_CLEAR_MS = 400.0
SESSION_SLEEP_Z_MS = 45 * 60 * 1000
EYE_TRACKING_RANGE = 6.0


class GrumpEngine:
    def __init__(
        self,
        config: EngineConfig | None = None,
        scheduler: Scheduler | None = None,
        store: KeyValueStore | None = None,
        clock: Callable[[], datetime] = datetime.now,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.scheduler = scheduler or AsyncioScheduler()
        self._rng = rng or random.Random(self.config.seed)
        anim = self.config.animation
        seeds = self.config.noise

        self.state_machine = EmotionalStateMachine(self.scheduler, AnimationSnapshot())
        snap = self.state_machine.snapshot

        self.context = ContextAnalyzer(clock=clock, now_ms=self.scheduler.now_ms)
        self.easter_eggs = EasterEggArbiter(
            self.scheduler, self.context.get_time_context, rng=self._rng
        )
        self.blink = BlinkScheduler(self.scheduler, snap.blink, self._current_state, rng=self._rng)
        self.eye_roll = EyeRollChoreographer(self.scheduler, snap.eye_roll)
        self.micro = MicroMovementDriver(
            self.scheduler,
            snap.micro,
            NoiseChannels(
                seeds.pupil_seed, seeds.eyebrow_seed, seeds.head_seed, seeds.mouth_seed
            ),
            self._current_state,
            frame_hz=anim.frame_hz,
        )
        self.particles = ParticleSpawner(self.scheduler, snap.particles, rng=self._rng)
        self.progression = ProgressionTracker(
            self.scheduler,
            store if store is not None else MemoryStore(),
            on_reset=lambda: self.state_machine.transition_to(_S.IDLE),
            save_debounce_ms=self.config.persistence.save_debounce_ms,
        )

        self.state_machine.on_change(self.blink.on_state_change)
        self.state_machine.on_change(self.micro.on_state_change)
        self.state_machine.on_change(self.progression.on_state_change)

        self._context_token: CancelToken | None = None
        self._frame_token: CancelToken | None = None
        self._hold_token: CancelToken | None = None
        self._reaction_token: CancelToken | None = None
        self._started_ms = 0.0
        self._last_frame_ms = 0.0
        self._last_ambient: str | None = None
        self._running = False

    # -- Lifecycle ----------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        now = self.scheduler.now_ms()
        self._started_ms = now
        self._last_frame_ms = now
        self.blink.start()
        self.micro.start()
        anim = self.config.animation
        self._context_token = self.scheduler.schedule_interval(
            anim.context_poll_ms, self._context_tick
        )
        self._frame_token = self.scheduler.schedule_interval(
            1000.0 / anim.frame_hz, self._frame_tick
        )
        self._context_tick()
        log.info("engine started (frame %d Hz, context poll %d ms)",
                 anim.frame_hz, anim.context_poll_ms)

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        for token in (self._context_token, self._frame_token, self._hold_token,
                      self._reaction_token):
            if token is not None:
                token.cancel()
        self._context_token = self._frame_token = None
        self._hold_token = self._reaction_token = None
        self.blink.stop()
        self.eye_roll.stop()
        self.micro.stop()
        self.particles.stop()
        self.easter_eggs.stop()
        self.state_machine.stop()
        self.progression.stop()
        log.info("engine stopped")

    # -- Read side ----------------------------------------------------------

    def get_snapshot(self) -> AnimationSnapshot:
        return self.state_machine.snapshot

    @property
    def current_state(self) -> EmotionalState:
        return self.state_machine.current_state

    def _current_state(self) -> EmotionalState:
        return self.state_machine.current_state

    def snapshot_dict(self) -> dict[str, Any]:
        d = self.get_snapshot().to_dict()
        d["annoyance_level"] = self.state_machine.annoyance_level
        return d

    def progression_dict(self) -> dict[str, Any]:
        return self.progression.state.to_dict()

    def context_dict(self) -> dict[str, Any]:
        tc = self.context.get_time_context()
        sc = self.context.get_session_context()
        patterns = self.context.get_conversation_patterns()
        return {
            "time": {
                "hour": tc.hour,
                "day_of_week": tc.day_of_week,
                "is_3am": tc.is_3am,
                "is_monday": tc.is_monday,
                "time_based_state": tc.time_based_state.value if tc.time_based_state else None,
            },
            "session": {
                "session_length_ms": sc.session_length_ms,
                "message_count": sc.message_count,
                "average_response_time_ms": sc.average_response_time_ms,
                "session_based_state": (
                    sc.session_based_state.value if sc.session_based_state else None
                ),
            },
            "patterns": {
                "repeat_questions": patterns.repeat_questions,
                "sentiment_trajectory": patterns.sentiment_trajectory,
                "advice_followed": patterns.advice_followed,
            },
        }

    # -- Inbound chat events ------------------------------------------------

    def on_user_message(self, text: str) -> MessageAnalysis:
        """Analyse, record and react to a message the user sent."""
        self._cancel_hold()
        self.easter_eggs.update_interaction()
        analysis = self.context.analyze_message(text)
        entry = self.context.add_message("user", text)
        self.progression.record_interaction(analysis)

        dp = self.get_snapshot().context.detected_patterns
        dp.repeat_questions = self.context.get_conversation_patterns().repeat_questions
        dp.sentiment_score = analysis.sentiment_score
        dp.keyword_matches = list(analysis.keyword_matches)
        self.state_machine.update_context(last_message_ms=entry.timestamp_ms)
        self._sync_history()

        trigger = self.easter_eggs.evaluate(text)
        if trigger is not None:
            self.apply_trigger(trigger)
        elif analysis.emotional_state is not None:
            self._react(analysis.emotional_state)
        else:
            self.state_machine.transition_to(_S.PROCESSING)
        return analysis

    def on_assistant_reply(self, text: str) -> None:
        """Record the assistant's reply, show responding, then settle to idle."""
        self.context.add_message("grump", text)
        self._sync_history()
        self.state_machine.transition_to(_S.RESPONDING)
        self._cancel_hold()
        self._hold_token = self.scheduler.schedule(
            self.config.animation.responding_hold_ms, self._end_responding
        )

    def _end_responding(self) -> None:
        self._hold_token = None
        if self.state_machine.current_state == _S.RESPONDING:
            self.state_machine.transition_to(_S.IDLE)

    def on_typing(self, active: bool, cursor: int | None = None, length: int | None = None) -> None:
        """User is composing (or cleared) a message.  Eyes follow the cursor."""
        self.on_interaction()
        if active:
            if cursor is not None and length:
                pos = (cursor / length) * (2 * EYE_TRACKING_RANGE) - EYE_TRACKING_RANGE
                self.state_machine.update_eye_tracking(pos)
            self.state_machine.transition_to(_S.LISTENING)
        else:
            self.state_machine.update_eye_tracking(0.0)
            self.state_machine.transition_to(_S.IDLE)

    def on_interaction(self) -> None:
        self.easter_eggs.update_interaction()

    def on_chat_error(self) -> None:
        self.state_machine.transition_to(_S.ERROR)
        self.particles.set_particle_type(ParticleType.GLITCH_RECTANGLE)
        self.state_machine.trigger_screen_shake(ERROR_SHAKE_INTENSITY)

    # -- Reactions ----------------------------------------------------------

    def apply_trigger(self, trigger: EasterEggTrigger) -> None:
        log.debug("engine: easter egg %s -> %s", trigger.name, trigger.state.value)
        self.state_machine.transition_to(trigger.state)
        if trigger.particle_type is not None:
            self.particles.set_particle_type(trigger.particle_type)
        if trigger.accessory_type is not None:
            self.state_machine.set_accessory(trigger.accessory_type)

    def _react(self, state: EmotionalState) -> None:
        self.state_machine.transition_to(state)
        if state == _S.MAXIMUM_GRUMP:
            self.state_machine.trigger_screen_shake(ANGER_SHAKE_INTENSITY)
            self._flash_particles(ParticleType.ANGER, ANGER_CLEAR_MS)
        elif state == _S.SKEPTICAL:
            self.eye_roll.trigger(EyeRollVariation.HALF)
        elif state == _S.IMPRESSED:
            if self._rng.random() < SPARKLE_PROBABILITY:
                self._flash_particles(ParticleType.SPARKLE, SPARKLE_CLEAR_MS)

    def _flash_particles(self, kind: ParticleType, clear_after_ms: float) -> None:
        self.particles.set_particle_type(kind)
        if self._reaction_token is not None:
            self._reaction_token.cancel()

        def _clear() -> None:
            self._reaction_token = None
            if self.particles.particle_type == kind:
                self.particles.set_particle_type(None)

        self._reaction_token = self.scheduler.schedule(clear_after_ms, _clear)

    def _cancel_hold(self) -> None:
        if self._hold_token is not None:
            self._hold_token.cancel()
            self._hold_token = None

    def _sync_history(self) -> None:
        ctx = self.get_snapshot().context
        ctx.conversation_history.clear()
        ctx.conversation_history.extend(self.context.history)
        ctx.message_count = len(ctx.conversation_history)

    # -- Ticks --------------------------------------------------------------

    def _context_tick(self) -> None:
        tc = self.context.get_time_context()
        sc = self.context.get_session_context()
        self.state_machine.update_context(time=tc, session_length_ms=sc.session_length_ms)
        self.state_machine.tick_idle()

        trigger = self.easter_eggs.evaluate()
        if trigger is not None:
            if trigger.name != self._last_ambient:
                self._last_ambient = trigger.name
                self.apply_trigger(trigger)
            return

        if tc.time_based_state is not None:
            key = f"time:{tc.time_based_state.value}"
            if key != self._last_ambient:
                self._last_ambient = key
                self.state_machine.transition_to(tc.time_based_state)
                if tc.is_3am:
                    self.particles.set_particle_type(ParticleType.COFFEE_STEAM)
                    self.state_machine.set_accessory(AccessoryType.COFFEE_MUG)
        elif sc.session_based_state is not None:
            weary = sc.session_length_ms > SESSION_SLEEP_Z_MS
            key = f"session:{sc.session_based_state.value}:{weary}"
            if key != self._last_ambient:
                self._last_ambient = key
                self.state_machine.transition_to(sc.session_based_state)
                if weary:
                    self.particles.set_particle_type(ParticleType.SLEEP_Z)
        else:
            self._last_ambient = None

    def _frame_tick(self) -> None:
        now = self.scheduler.now_ms()
        dt = now - self._last_frame_ms
        self._last_frame_ms = now
        self.state_machine.update_breathing((now - self._started_ms) / 1000.0)
        self.blink.advance_phase(dt)
        self.particles.update(now)

    # -- Manual actions -----------------------------------------------------

    def trigger_eye_roll(self, variation: EyeRollVariation | str = EyeRollVariation.FULL) -> bool:
        return self.eye_roll.trigger(variation)

    def trigger_blink(self, blink_type: BlinkType | str = BlinkType.STANDARD) -> bool:
        return self.blink.trigger(blink_type)

    def trigger_screen_shake(self, intensity: float = 0.5) -> None:
        self.state_machine.trigger_screen_shake(intensity)

    def set_particle_type(self, kind: ParticleType | str | None) -> None:
        self.particles.set_particle_type(kind)

    def set_accessory(self, accessory: AccessoryType | str | None) -> None:
        self.state_machine.set_accessory(accessory)

    def transition_to(self, state: EmotionalState | str | None) -> EmotionalState:
        return self.state_machine.transition_to(state)

    def reset_progression(self) -> None:
        self.progression.reset()

    def reset_session(self) -> None:
        self.context.reset_session()
        self.easter_eggs.reset()
        self._last_ambient = None
        self._sync_history()
        self.state_machine.transition_to(_S.IDLE)
