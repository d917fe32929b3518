"""
Adaptive difficulty controller.

Tracks per-question accuracy and nudges a 1-5 difficulty level:
- accuracy >= 80%: one level harder
- accuracy <= 50%: one level easier
- otherwise (or already at a bound): unchanged
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from mneme.domain.buffer import BoundedBuffer
from mneme.domain.constants import (
    DECREASE_ACCURACY,
    DEFAULT_DIFFICULTY_TOLERANCE,
    INCREASE_ACCURACY,
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    NEUTRAL_ACCURACY,
    RECENT_PERFORMANCE_SIZE,
    SWEET_SPOT_ACCURACY,
    TREND_WINDOW,
)
from mneme.domain.models import (
    BooleanQuestion,
    DifficultyLevel,
    EssayQuestion,
    KeywordQuestion,
    PerformanceEntry,
    Question,
    ReviewState,
    ShortQuestion,
)

logger = logging.getLogger(__name__)

DIFFICULTY_NAMES = {
    DifficultyLevel.BEGINNER: "beginner",
    DifficultyLevel.EASY: "easy",
    DifficultyLevel.MEDIUM: "medium",
    DifficultyLevel.HARD: "hard",
    DifficultyLevel.EXPERT: "expert",
}


@dataclass(frozen=True)
class DifficultyShift:
    should_adjust: bool
    new_level: int
    reason: str


@dataclass(frozen=True)
class DifficultyStats:
    level: int
    level_name: str
    recent_accuracy: int  # percent
    trend: str  # "increasing" / "decreasing" / "stable"


def _clamp_level(level: int) -> int:
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, int(level)))


def calculate_accuracy(state: ReviewState | None) -> float:
    """correct / count, or a neutral 0.5 for an unreviewed item."""
    if state is None or state.count <= 0:
        return NEUTRAL_ACCURACY
    return state.correct / state.count


def current_difficulty(state: ReviewState | None) -> int:
    if state is None:
        return int(DifficultyLevel.MEDIUM)
    return _clamp_level(state.difficulty)


def decide_difficulty_shift(accuracy: float, current_level: int) -> DifficultyShift:
    pct = round(accuracy * 100)

    if accuracy >= INCREASE_ACCURACY:
        if current_level < MAX_DIFFICULTY:
            return DifficultyShift(
                True, current_level + 1, f"High accuracy ({pct}%) - increasing difficulty"
            )
        return DifficultyShift(False, current_level, "Already at maximum difficulty level")

    if accuracy <= DECREASE_ACCURACY:
        if current_level > MIN_DIFFICULTY:
            return DifficultyShift(
                True, current_level - 1, f"Low accuracy ({pct}%) - decreasing difficulty"
            )
        return DifficultyShift(False, current_level, "Already at minimum difficulty level")

    return DifficultyShift(False, current_level, "Performance within stable range")


def record_outcome(
    question_id: str,
    state: ReviewState,
    was_correct: bool,
    now: datetime | None = None,
) -> ReviewState:
    """
    Tally one answer and shift the difficulty if accuracy warrants it.

    Increments count/correct, re-evaluates accuracy, and appends to the
    bounded recent-performance history. Returns a new state.
    """
    now = now or datetime.now(timezone.utc)
    updated = state.copy()

    updated.count += 1
    if was_correct:
        updated.correct += 1
    updated.difficulty = _clamp_level(updated.difficulty)

    shift = decide_difficulty_shift(calculate_accuracy(updated), updated.difficulty)
    if shift.should_adjust:
        updated.difficulty = shift.new_level
        updated.difficulty_updated_at = now
        updated.difficulty_reason = shift.reason
        logger.info(f"[difficulty] {question_id}: {shift.reason}")

    history = BoundedBuffer(RECENT_PERFORMANCE_SIZE, updated.recent_performance)
    history.append(
        PerformanceEntry(correct=bool(was_correct), difficulty=updated.difficulty, timestamp=now)
    )
    updated.recent_performance = history.to_list()
    return updated


def default_difficulty(question: Question) -> int:
    """Type-based difficulty for items with no tracked state."""
    if isinstance(question, BooleanQuestion):
        return int(DifficultyLevel.EASY)
    if isinstance(question, ShortQuestion):
        if len(question.synonyms) > 3:
            return int(DifficultyLevel.HARD)
        return int(DifficultyLevel.MEDIUM)
    if isinstance(question, (KeywordQuestion, EssayQuestion)):
        return int(DifficultyLevel.HARD)
    return int(DifficultyLevel.MEDIUM)


def select_by_difficulty(
    items: Sequence[Question],
    states: Mapping[str, ReviewState],
    target: int,
    tolerance: int = DEFAULT_DIFFICULTY_TOLERANCE,
) -> list[Question]:
    """
    Keep items within `tolerance` of `target` and order them by closeness to
    the target, then by how near their accuracy is to the 65% sweet spot.
    """
    low = max(MIN_DIFFICULTY, target - tolerance)
    high = min(MAX_DIFFICULTY, target + tolerance)

    scored = []
    for q in items:
        state = states.get(q.id)
        level = current_difficulty(state) if state is not None else default_difficulty(q)
        if low <= level <= high:
            accuracy = calculate_accuracy(state)
            scored.append((abs(level - target), abs(accuracy - SWEET_SPOT_ACCURACY), q))

    # Stable sort keeps the incoming order among exact ties
    scored.sort(key=lambda t: (t[0], t[1]))
    return [q for _, _, q in scored]


def session_difficulty(results: Iterable[PerformanceEntry]) -> int:
    """Learner level implied by a batch of recent outcomes."""
    results = list(results)
    if not results:
        return int(DifficultyLevel.MEDIUM)

    accuracy = sum(1 for r in results if r.correct) / len(results)
    avg_level = round(sum(r.difficulty for r in results) / len(results))
    shift = decide_difficulty_shift(accuracy, _clamp_level(avg_level))
    return shift.new_level if shift.should_adjust else _clamp_level(avg_level)


def difficulty_stats(state: ReviewState | None) -> DifficultyStats:
    level = current_difficulty(state)
    recent_accuracy = NEUTRAL_ACCURACY
    trend = "stable"

    if state is not None and state.recent_performance:
        recent = BoundedBuffer(RECENT_PERFORMANCE_SIZE, state.recent_performance).tail(TREND_WINDOW)
        recent_accuracy = sum(1 for r in recent if r.correct) / len(recent)
        if len(recent) > 1:
            if recent[-1].difficulty > recent[0].difficulty:
                trend = "increasing"
            elif recent[-1].difficulty < recent[0].difficulty:
                trend = "decreasing"

    return DifficultyStats(
        level=level,
        level_name=DIFFICULTY_NAMES[DifficultyLevel(level)],
        recent_accuracy=round(recent_accuracy * 100),
        trend=trend,
    )


def reset_difficulty(state: ReviewState, now: datetime | None = None) -> ReviewState:
    updated = state.copy()
    updated.difficulty = int(DifficultyLevel.MEDIUM)
    updated.difficulty_updated_at = now or datetime.now(timezone.utc)
    updated.difficulty_reason = "Reset to default difficulty"
    updated.recent_performance = []
    return updated
