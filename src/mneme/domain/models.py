"""
Domain models for questions, review state, and study sessions.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Any

from .constants import (
    DEFAULT_DIFFICULTY,
    DEFAULT_EASE,
    MAX_DIFFICULTY,
    MAX_EASE,
    MIN_DIFFICULTY,
    MIN_EASE,
)
from .errors import StateInvariantViolation


class QuestionType(str, Enum):
    BOOLEAN = "BOOLEAN"
    SHORT = "SHORT"
    KEYWORD = "KEYWORD"
    ESSAY = "ESSAY"


class Grade(IntEnum):
    """Learner's self-reported recall quality."""

    AGAIN = 0
    HARD = 1
    GOOD = 2
    EASY = 3


class Provenance(str, Enum):
    """Why an item was admitted into a session queue, in priority order."""

    DUE = "due"
    NEW = "new"
    LOW = "low"
    REST = "rest"


PROVENANCE_ORDER = (Provenance.DUE, Provenance.NEW, Provenance.LOW, Provenance.REST)


class DifficultyLevel(IntEnum):
    BEGINNER = 1
    EASY = 2
    MEDIUM = 3
    HARD = 4
    EXPERT = 5


# ---------- Questions (tagged union) ----------


@dataclass(frozen=True)
class BooleanQuestion:
    id: str
    deck_id: str
    prompt: str
    answer: str  # "true" / "false"
    tags: tuple[str, ...] = ()
    explain: str | None = None

    @property
    def type(self) -> QuestionType:
        return QuestionType.BOOLEAN


@dataclass(frozen=True)
class ShortQuestion:
    id: str
    deck_id: str
    prompt: str
    answer: str
    synonyms: tuple[str, ...] = ()
    fuzzy_enabled: bool = True
    regexes: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    explain: str | None = None

    @property
    def type(self) -> QuestionType:
        return QuestionType.SHORT


@dataclass(frozen=True)
class KeywordQuestion:
    """
    N-of-M keyword question.

    Attributes:
        keywords: Raw keyword spec. A list, a delimited string, a JSON array
            string, or a mapping; each entry may hold "a|b" alternatives.
        threshold: Required hits. An int, a "n/d" fraction, or None for the default.
    """

    id: str
    deck_id: str
    prompt: str
    keywords: Any
    threshold: int | str | None = None
    tags: tuple[str, ...] = ()
    explain: str | None = None

    @property
    def type(self) -> QuestionType:
        return QuestionType.KEYWORD


@dataclass(frozen=True)
class EssayQuestion:
    """Free-text essay; graded by keywords locally, optionally escalated."""

    id: str
    deck_id: str
    prompt: str
    reference_answer: str
    keywords: Any = None
    threshold: int | str | None = None
    tags: tuple[str, ...] = ()
    explain: str | None = None

    @property
    def type(self) -> QuestionType:
        return QuestionType.ESSAY


Question = BooleanQuestion | ShortQuestion | KeywordQuestion | EssayQuestion


# ---------- Review state ----------


@dataclass(frozen=True)
class PerformanceEntry:
    correct: bool
    difficulty: int
    timestamp: datetime


@dataclass
class ReviewState:
    """
    Scheduling and performance state for one question.

    Invariants: MIN_EASE <= ease <= MAX_EASE, interval >= 0,
    MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY.
    """

    question_id: str
    due: date
    ease: float = DEFAULT_EASE
    interval: int = 0
    count: int = 0
    correct: int = 0
    again_count: int = 0
    last_result: str | None = None  # "ok" / "ng"
    difficulty: int = DEFAULT_DIFFICULTY
    difficulty_updated_at: datetime | None = None
    difficulty_reason: str = ""
    recent_performance: list[PerformanceEntry] = field(default_factory=list)

    def copy(self) -> "ReviewState":
        return replace(self, recent_performance=list(self.recent_performance))

    def clamped(self) -> tuple["ReviewState", list[str]]:
        """
        Return a copy with every bounded field forced back into range,
        plus a description of each violation found.
        """
        violations: list[str] = []
        fixed = self.copy()

        if not MIN_EASE <= fixed.ease <= MAX_EASE:
            violations.append(f"ease={fixed.ease}")
            fixed.ease = min(MAX_EASE, max(MIN_EASE, fixed.ease))
        if fixed.interval < 0:
            violations.append(f"interval={fixed.interval}")
            fixed.interval = 0
        if not MIN_DIFFICULTY <= fixed.difficulty <= MAX_DIFFICULTY:
            violations.append(f"difficulty={fixed.difficulty}")
            fixed.difficulty = min(MAX_DIFFICULTY, max(MIN_DIFFICULTY, fixed.difficulty))
        if fixed.count < 0:
            violations.append(f"count={fixed.count}")
            fixed.count = 0
        if fixed.correct < 0 or fixed.correct > fixed.count:
            violations.append(f"correct={fixed.correct}")
            fixed.correct = min(fixed.count, max(0, fixed.correct))

        return fixed, violations

    def check_bounds(self) -> None:
        """
        Raises:
            StateInvariantViolation: If any bounded field is out of range.
        """
        _, violations = self.clamped()
        if violations:
            raise StateInvariantViolation(self.question_id, violations)


@dataclass
class DailyStats:
    date: date
    reviews_done: int = 0
    total_done: int = 0

    def rolled_over(self, today: date) -> "DailyStats":
        """Return fresh stats when the stored date is not today."""
        if self.date != today:
            return DailyStats(date=today)
        return self


# ---------- Grading ----------


@dataclass
class GradingResult:
    """
    Outcome of grading one answer.

    Attributes:
        source: "local", "escalated", or "local-fallback" when the remote
            grader failed and the local grade stands in for it.
    """

    correct: bool
    score: float
    hits: list[str] = field(default_factory=list)
    misses: list[str] = field(default_factory=list)
    notes: str | None = None
    source: str = "local"


@dataclass(frozen=True)
class GradingMetric:
    """One graded answer as seen by the grading service."""

    source: str
    score: float
    timestamp: datetime


@dataclass(frozen=True)
class EssayVerdict:
    score: float
    rationale: str


# ---------- Session ----------


@dataclass(frozen=True)
class QueueEntry:
    question: Question
    src: Provenance


@dataclass
class PendingAnswer:
    entry: QueueEntry
    raw_answer: str
    result: GradingResult


@dataclass
class Session:
    id: str
    deck_id: str | None
    queue: list[QueueEntry]
    daily_limit_remaining: int
    daily_limit_reached: bool = False
    index: int = 0
    ok: int = 0
    ng: int = 0
    score: int = 0
    session_repeats: dict[str, int] = field(default_factory=dict)
    active: bool = True
    pending: PendingAnswer | None = None
    started_at: datetime | None = None

    @property
    def current(self) -> QueueEntry | None:
        if not self.active or self.index >= len(self.queue):
            return None
        return self.queue[self.index]

    @property
    def is_complete(self) -> bool:
        return self.current is None

    @property
    def total(self) -> int:
        return len(self.queue)


@dataclass(frozen=True)
class GradeOutcome:
    """What happened after the learner picked a grade."""

    state: ReviewState
    requeued: bool
    next_entry: QueueEntry | None
    session_complete: bool
