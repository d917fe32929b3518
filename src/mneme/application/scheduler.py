"""
SM-2 variant scheduler.

Two strategies share one interface:
1. GradedStrategy: four-button grades (Again/Hard/Good/Easy). Used by new sessions.
2. LegacyStrategy: correct/incorrect outcome. Kept so state written by the
   old boolean mode still replays the way it was produced.

All functions are pure: they return a new ReviewState and never mutate input.
"""

import math
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Generic, TypeVar

from mneme.domain.constants import (
    AGAIN_EASE_PENALTY,
    DEFAULT_EASE,
    EASY_EASE_BONUS,
    EASY_INTERVAL_BONUS,
    GOOD_EASE_PENALTY,
    HARD_EASE_PENALTY,
    HARD_INTERVAL_FACTOR,
    LEGACY_RIGHT_EASE_BONUS,
    LEGACY_WRONG_EASE_PENALTY,
    MAX_EASE,
    MIN_EASE,
)
from mneme.domain.models import Grade, ReviewState

O = TypeVar("O")


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def new_review_state(question_id: str, today: date | None = None) -> ReviewState:
    """State for a question that has never been reviewed."""
    return ReviewState(question_id=question_id, due=today or date.today(), ease=DEFAULT_EASE)


class SchedulingStrategy(ABC, Generic[O]):
    """Turns a review outcome into the next interval/ease/due date."""

    name: str = ""

    def apply(self, state: ReviewState, outcome: O, today: date | None = None) -> ReviewState:
        """Count the review, then reschedule."""
        counted = state.copy()
        counted.count += 1
        return self.reschedule(counted, outcome, today)

    def reschedule(self, state: ReviewState, outcome: O, today: date | None = None) -> ReviewState:
        """Update interval, ease and due date without touching the review count."""
        updated = state.copy()
        self._transition(updated, outcome)
        updated.due = (today or date.today()) + timedelta(days=updated.interval)
        return updated

    @abstractmethod
    def _transition(self, state: ReviewState, outcome: O) -> None:
        """Mutate interval and ease of a private copy."""
        pass


class GradedStrategy(SchedulingStrategy[Grade]):
    name = "graded"

    def _transition(self, state: ReviewState, outcome: Grade) -> None:
        grade = Grade(outcome)

        if grade == Grade.AGAIN:
            state.interval = 0  # due again today
            state.ease = max(MIN_EASE, state.ease - AGAIN_EASE_PENALTY)
            return

        if state.interval <= 0:
            state.interval = 4 if grade == Grade.EASY else 1
        elif state.interval == 1:
            state.interval = 3 if grade == Grade.HARD else 6
        else:
            if grade == Grade.HARD:
                factor = HARD_INTERVAL_FACTOR
            elif grade == Grade.GOOD:
                factor = state.ease
            else:
                factor = state.ease * EASY_INTERVAL_BONUS
            state.interval = _round_half_up(state.interval * factor)

        if grade == Grade.HARD:
            state.ease = max(MIN_EASE, state.ease - HARD_EASE_PENALTY)
        elif grade == Grade.GOOD:
            state.ease = max(MIN_EASE, state.ease - GOOD_EASE_PENALTY)
        else:
            state.ease = min(MAX_EASE, state.ease + EASY_EASE_BONUS)


class LegacyStrategy(SchedulingStrategy[bool]):
    name = "legacy"

    def _transition(self, state: ReviewState, outcome: bool) -> None:
        if not outcome:
            state.interval = 1
            state.ease = max(MIN_EASE, state.ease - LEGACY_WRONG_EASE_PENALTY)
            return

        if state.interval <= 0:
            state.interval = 1
        elif state.interval == 1:
            state.interval = 3
        else:
            state.interval = _round_half_up(state.interval * state.ease)
        state.ease = min(MAX_EASE, state.ease + LEGACY_RIGHT_EASE_BONUS)


GRADED = GradedStrategy()
LEGACY = LegacyStrategy()


def apply_grade(state: ReviewState, grade: Grade | int, today: date | None = None) -> ReviewState:
    return GRADED.apply(state, Grade(grade), today)


def apply_correct(state: ReviewState, correct: bool, today: date | None = None) -> ReviewState:
    """Legacy two-outcome transition."""
    return LEGACY.apply(state, bool(correct), today)


def simulate_interval(
    state: ReviewState | None, grade: Grade | int, today: date | None = None
) -> int:
    """Interval the state would get for `grade`, without mutating it."""
    base = state if state is not None else new_review_state("", today)
    return apply_grade(base, grade, today).interval


def simulate_due_date(
    state: ReviewState | None, grade: Grade | int, today: date | None = None
) -> date:
    base = state if state is not None else new_review_state("", today)
    return apply_grade(base, grade, today).due


def is_due(state: ReviewState | None, today: date | None = None) -> bool:
    if state is None:
        return False
    return state.due <= (today or date.today())


def format_interval(days: int) -> str:
    if days <= 0:
        return "today"
    if days == 1:
        return "1 day"
    return f"{days} days"
