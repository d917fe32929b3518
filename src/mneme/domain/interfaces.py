"""
Ports (interfaces) for storage and grading collaborators.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from datetime import date

from .models import DailyStats, EssayVerdict, Question, ReviewState


class StudyRepository(ABC):
    """
    Port for reading questions and reading/writing review state.

    Implementations:
        - InMemoryStudyRepository: dict-backed, for tests and embedding.
        - YamlStudyRepository: single YAML file on disk.
    """

    @abstractmethod
    async def get_questions(self, deck_id: str | None = None) -> list[Question]:
        """
        Fetch all questions, optionally restricted to one deck.
        """
        pass

    @abstractmethod
    async def get_question(self, question_id: str) -> Question:
        """
        Fetch one question.

        Raises:
            NotFoundError: If no content record exists for the id.
        """
        pass

    @abstractmethod
    async def get_review_state(self, question_id: str) -> ReviewState | None:
        """
        Fetch the review state for a question, or None if never reviewed.
        """
        pass

    @abstractmethod
    async def put_review_state(self, question_id: str, state: ReviewState) -> None:
        pass

    @abstractmethod
    async def get_due_review_states(self, as_of: date) -> list[ReviewState]:
        """
        Fetch every review state whose due date is on or before `as_of`.
        """
        pass


class DailyStatsStore(ABC):
    """Port for the per-day completion counters."""

    @abstractmethod
    async def get_daily_stats(self) -> DailyStats | None:
        pass

    @abstractmethod
    async def put_daily_stats(self, stats: DailyStats) -> None:
        pass


class EssayGrader(ABC):
    """
    Port for an optional remote grader used on ambiguous essay answers.

    Implementations must raise EscalationFailure on any transport or parse error.
    """

    @abstractmethod
    async def grade_essay(
        self, prompt: str, reference_answer: str, student_answer: str
    ) -> EssayVerdict:
        pass
