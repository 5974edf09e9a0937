"""Context analysis: message keywords and sentiment, time of day, session.

Turns raw chat text and ambient context into an emotional signal.  All
operations are total: any string (including empty) yields a valid
MessageAnalysis.
"""

from __future__ import annotations

import logging
import re
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Final

from grump_engine.core.snapshot import (
    CONVERSATION_HISTORY_MAX,
    ConversationEntry,
    TimeContext,
)
from grump_engine.core.states import EmotionalState

log = logging.getLogger(__name__)

_S = EmotionalState

QUESTION_HISTORY_MAX = 10
REPEAT_SIMILARITY = 0.7
SOFT_MODE_SENTIMENT = -0.3

SESSION_TIRED_MS = 30 * 60 * 1000

# ── Keyword table ────────────────────────────────────────────────
# Order is priority: the first keyword found in the message sets the state.
# Flavour targets without a face of their own are folded onto the nearest
# renderable state.

KEYWORD_STATES: Final[tuple[tuple[str, EmotionalState], ...]] = (
    ("really?", _S.SKEPTICAL),
    ("seriously?", _S.SKEPTICAL),
    ("are you sure", _S.SKEPTICAL),
    ("that simple", _S.SKEPTICAL),
    ("again", _S.ANNOYED),
    ("same thing", _S.ANNOYED),
    ("you just said", _S.ANNOYED),
    ("repeat", _S.ANNOYED),
    ("you're great", _S.SUSPICIOUS),
    ("i love you", _S.SUSPICIOUS),
    ("you're amazing", _S.SUSPICIOUS),
    ("thank you so much", _S.SUSPICIOUS),
    ("compliment", _S.SUSPICIOUS),
    ("sad", _S.SOFT_MODE),
    ("depressed", _S.SOFT_MODE),
    ("anxious", _S.SOFT_MODE),
    ("worried", _S.SOFT_MODE),
    ("scared", _S.SOFT_MODE),
    ("lonely", _S.SOFT_MODE),
    ("struggling", _S.SOFT_MODE),
    ("help me", _S.SOFT_MODE),
    ("crisis", _S.SOFT_MODE),
    ("monday", _S.MAXIMUM_GRUMP),
    ("worst day", _S.MAXIMUM_GRUMP),
    ("terrible", _S.MAXIMUM_GRUMP),
    ("hate this", _S.MAXIMUM_GRUMP),
    ("furious", _S.MAXIMUM_GRUMP),  # furious
    ("angry", _S.MAXIMUM_GRUMP),
    ("bored", _S.SLEEPY),  # bored
    ("boring", _S.SLEEPY),
    ("nothing to do", _S.SLEEPY),
    ("confused", _S.SKEPTICAL),  # confused
    ("what?", _S.SKEPTICAL),
    ("huh?", _S.SKEPTICAL),
    ("explain", _S.SKEPTICAL),
    ("yay", _S.IMPRESSED),  # ecstatic
    ("awesome", _S.IMPRESSED),
    ("amazing", _S.IMPRESSED),
    ("best day", _S.IMPRESSED),
    ("omg", _S.ERROR),  # panicked
    ("help!", _S.ERROR),
    ("broken", _S.ERROR),
    ("crash", _S.ERROR),
    ("emergency", _S.ERROR),
    ("i did it", _S.IMPRESSED),  # triumphant
    ("solved", _S.IMPRESSED),
    ("fixed", _S.IMPRESSED),
    ("winner", _S.IMPRESSED),
    ("judge me", _S.SMUG),  # judging
    ("rate this", _S.SMUG),
    ("opinion", _S.SMUG),
    ("lol", _S.SMUG),  # mocking
    ("lmao", _S.SMUG),
    ("funny", _S.SMUG),
    ("yeah right", _S.EXASPERATED_SIGH),  # sarcastic
    ("sure", _S.EXASPERATED_SIGH),
    ("whatever", _S.EXASPERATED_SIGH),
    ("meh", _S.RELUCTANT_AGREEMENT),  # deadpan
    ("okay", _S.RELUCTANT_AGREEMENT),
    ("fine", _S.RELUCTANT_AGREEMENT),
    ("coffee", _S.LISTENING),  # caffeinated
    ("caffeine", _S.LISTENING),
    ("energy", _S.LISTENING),  # wired
    ("fast", _S.LISTENING),
    ("life", _S.THINKING_DEEP),  # existential dread
    ("meaning", _S.THINKING_DEEP),
    ("why are we here", _S.THINKING_DEEP),
    ("universe", _S.THINKING_DEEP),
    ("calm", _S.SOFT_MODE),  # zen
    ("peace", _S.SOFT_MODE),
    ("relax", _S.SOFT_MODE),
    ("slow", _S.SLEEPY),
    ("too slow", _S.SLEEPY),
    ("hurry", _S.ANNOYED),
    ("faster", _S.LISTENING),
    ("joke", _S.SKEPTICAL),
    ("roast", _S.SMUG),
    ("code", _S.THINKING_DEEP),  # code review
    ("bug", _S.THINKING_DEEP),  # debug mode
    ("fix", _S.THINKING_DEEP),
)

POSITIVE_WORDS: Final = (
    "happy", "great", "good", "awesome", "wonderful",
    "excited", "love", "thanks", "thank you",
)
NEGATIVE_WORDS: Final = (
    "sad", "bad", "terrible", "awful", "hate", "angry",
    "frustrated", "annoyed", "worried", "anxious",
    # sarcasm
    "obviously", "whatever", "clearly", "yeah right",
)
SOFT_WORDS: Final = frozenset({"sad", "depressed", "anxious", "worried"})

POSITIVE_WEIGHT = 0.1
NEGATIVE_WEIGHT = 0.2

_PUNCT_RE = re.compile(r"[^\w\s]")


# ── Result types ─────────────────────────────────────────────────


@dataclass(slots=True)
class MessageAnalysis:
    emotional_state: EmotionalState | None = None
    sentiment_score: float = 0.0
    keyword_matches: list[str] = field(default_factory=list)
    is_repeat_question: bool = False
    requires_soft_mode: bool = False


@dataclass(slots=True)
class SessionContext:
    session_length_ms: float
    message_count: int
    average_response_time_ms: float
    session_based_state: EmotionalState | None


@dataclass(slots=True)
class ConversationPatterns:
    repeat_questions: int
    sentiment_trajectory: list[float]
    advice_followed: bool


# ── Helpers ──────────────────────────────────────────────────────


def word_set(text: str) -> frozenset[str]:
    return frozenset(_PUNCT_RE.sub("", text.lower()).split())


def jaccard(a: frozenset[str], b: frozenset[str]) -> float:
    union = a | b
    if not union:
        return 1.0
    return len(a & b) / len(union)


def classify_time(now: datetime) -> TimeContext:
    """Time-of-day facts; priority 3AM > Monday morning > late night."""
    hour = now.hour
    dow = now.weekday()
    is_3am = 2 <= hour < 5
    is_monday = dow == 0

    state: EmotionalState | None = None
    if is_3am:
        state = _S.THREE_AM
    elif is_monday and 8 <= hour < 10:
        state = _S.MAXIMUM_GRUMP
    elif hour >= 22 or hour < 6:
        state = _S.SLEEPY

    return TimeContext(
        hour=hour,
        day_of_week=dow,
        is_3am=is_3am,
        is_monday=is_monday,
        time_based_state=state,
    )


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


# ── Analyzer ─────────────────────────────────────────────────────


class ContextAnalyzer:
    """Keyword/sentiment classifier plus time and session context.

    ``clock`` supplies wall-clock time for the time-of-day rules and
    ``now_ms`` a monotonic millisecond counter for session length and
    message timestamps.  Both are injectable so tests can pin them.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        now_ms: Callable[[], float] = _monotonic_ms,
    ) -> None:
        self._clock = clock
        self._now_ms = now_ms
        self._session_start_ms = now_ms()
        self._history: deque[ConversationEntry] = deque(maxlen=CONVERSATION_HISTORY_MAX)
        self._questions: deque[str] = deque(maxlen=QUESTION_HISTORY_MAX)

    # -- Message analysis ---------------------------------------------------

    def analyze_message(self, text: str) -> MessageAnalysis:
        """Classify *text* and record it in the question history."""
        result = self._score(text)
        result.is_repeat_question = self._check_repeat(text)
        return result

    def _score(self, text: str) -> MessageAnalysis:
        lower = (text or "").lower()
        result = MessageAnalysis()

        for keyword, state in KEYWORD_STATES:
            if keyword in lower:
                result.keyword_matches.append(keyword)
                if result.emotional_state is None:
                    result.emotional_state = state

        soft = False
        for word in POSITIVE_WORDS:
            if word in lower:
                result.sentiment_score += POSITIVE_WEIGHT
        for word in NEGATIVE_WORDS:
            if word in lower:
                result.sentiment_score -= NEGATIVE_WEIGHT
                if word in SOFT_WORDS:
                    soft = True

        if soft or result.sentiment_score < SOFT_MODE_SENTIMENT:
            result.requires_soft_mode = True
            if result.emotional_state is None:
                result.emotional_state = _S.SOFT_MODE
        return result

    def _check_repeat(self, text: str) -> bool:
        normalized = (text or "").lower().strip()
        words = word_set(normalized)
        is_repeat = any(jaccard(words, word_set(q)) > REPEAT_SIMILARITY for q in self._questions)
        if not is_repeat:
            self._questions.append(normalized)
        return is_repeat

    # -- Ambient context ----------------------------------------------------

    def get_time_context(self) -> TimeContext:
        return classify_time(self._clock())

    def session_length_ms(self) -> float:
        return self._now_ms() - self._session_start_ms

    def get_session_context(self) -> SessionContext:
        length = self.session_length_ms()
        state: EmotionalState | None = None
        # The 45 min tier resolves to sleepy as well.
        if length > SESSION_TIRED_MS:
            state = _S.SLEEPY
        return SessionContext(
            session_length_ms=length,
            message_count=len(self._history),
            average_response_time_ms=self._average_response_time(),
            session_based_state=state,
        )

    def _average_response_time(self) -> float:
        total = 0.0
        count = 0
        entries = list(self._history)
        for prev, curr in zip(entries, entries[1:]):
            if prev.sender == "user" and curr.sender == "grump":
                total += curr.timestamp_ms - prev.timestamp_ms
                count += 1
        return total / count if count else 0.0

    # -- Conversation -------------------------------------------------------

    def add_message(self, sender: str, content: str) -> ConversationEntry:
        entry = ConversationEntry(sender=sender, content=content, timestamp_ms=self._now_ms())
        self._history.append(entry)
        return entry

    @property
    def history(self) -> list[ConversationEntry]:
        return list(self._history)

    def get_conversation_patterns(self) -> ConversationPatterns:
        repeats = len(self._questions) - len(set(self._questions))
        trajectory = [
            self._score(m.content).sentiment_score for m in self._history if m.sender == "user"
        ]

        advice_followed = False
        entries = list(self._history)
        grump_count = sum(1 for m in entries if m.sender == "grump")
        user_count = len(entries) - grump_count
        if grump_count > 0 and user_count > 1:
            last_grump = max(i for i, m in enumerate(entries) if m.sender == "grump")
            if last_grump < len(entries) - 1:
                nxt = entries[last_grump + 1]
                if nxt.sender == "user":
                    advice_followed = self._score(nxt.content).sentiment_score > 0.1

        return ConversationPatterns(
            repeat_questions=repeats,
            sentiment_trajectory=trajectory,
            advice_followed=advice_followed,
        )

    def get_recommended_state(self, message: str | None = None) -> EmotionalState | None:
        """Time-based > message analysis > session-based."""
        time_state = self.get_time_context().time_based_state
        if time_state is not None:
            return time_state
        if message:
            state = self._score(message).emotional_state
            if state is not None:
                return state
        return self.get_session_context().session_based_state

    def reset_session(self) -> None:
        self._session_start_ms = self._now_ms()
        self._history.clear()
        self._questions.clear()
        log.info("context: session reset")
