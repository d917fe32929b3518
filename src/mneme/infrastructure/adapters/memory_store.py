from collections.abc import Iterable
from datetime import date

from mneme.domain.errors import NotFoundError
from mneme.domain.interfaces import DailyStatsStore, StudyRepository
from mneme.domain.models import DailyStats, Question, ReviewState


class InMemoryStudyRepository(StudyRepository, DailyStatsStore):
    """Process-local store. States are copied in and out so callers never share them."""

    def __init__(
        self,
        questions: Iterable[Question] = (),
        states: dict[str, ReviewState] | None = None,
        daily_stats: DailyStats | None = None,
    ):
        self._questions: dict[str, Question] = {q.id: q for q in questions}
        self._states: dict[str, ReviewState] = {
            k: v.copy() for k, v in (states or {}).items()
        }
        self._daily_stats = daily_stats

    def add_question(self, question: Question) -> None:
        self._questions[question.id] = question

    async def get_questions(self, deck_id: str | None = None) -> list[Question]:
        return [q for q in self._questions.values() if deck_id is None or q.deck_id == deck_id]

    async def get_question(self, question_id: str) -> Question:
        try:
            return self._questions[question_id]
        except KeyError:
            raise NotFoundError(question_id) from None

    async def get_review_state(self, question_id: str) -> ReviewState | None:
        state = self._states.get(question_id)
        return state.copy() if state else None

    async def put_review_state(self, question_id: str, state: ReviewState) -> None:
        self._states[question_id] = state.copy()

    async def get_due_review_states(self, as_of: date) -> list[ReviewState]:
        return [s.copy() for s in self._states.values() if s.due <= as_of]

    async def get_daily_stats(self) -> DailyStats | None:
        if self._daily_stats is None:
            return None
        s = self._daily_stats
        return DailyStats(date=s.date, reviews_done=s.reviews_done, total_done=s.total_done)

    async def put_daily_stats(self, stats: DailyStats) -> None:
        self._daily_stats = DailyStats(
            date=stats.date, reviews_done=stats.reviews_done, total_done=stats.total_done
        )
