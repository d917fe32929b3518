"""
Study Session Controller: application layer orchestrator.

Owns the single active session and threads it explicitly through every
call. Storage is awaited only at repository boundaries; all scheduling and
grading math in between is synchronous.
"""

import asyncio
import logging
import random
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from ulid import ULID

from mneme.application.difficulty import record_outcome, session_difficulty
from mneme.application.grading.service import GradingService
from mneme.application.queue_builder import build_queue
from mneme.application.scheduler import GRADED, new_review_state, simulate_due_date
from mneme.domain.buffer import BoundedBuffer
from mneme.domain.constants import (
    CORRECT_SCORE_GAIN,
    DEFAULT_DAILY_REVIEW_LIMIT,
    DEFAULT_DIFFICULTY_TOLERANCE,
    DEFAULT_SESSION_SIZE,
    EASE_LOW_THRESHOLD,
    MAX_AGAIN_REPEATS,
    RECENT_PERFORMANCE_SIZE,
    WRONG_SCORE_GAIN,
)
from mneme.domain.errors import NotFoundError, StateInvariantViolation
from mneme.domain.interfaces import DailyStatsStore, StudyRepository
from mneme.domain.models import (
    DailyStats,
    Grade,
    GradeOutcome,
    GradingResult,
    PendingAnswer,
    PerformanceEntry,
    Provenance,
    Question,
    QueueEntry,
    ReviewState,
    Session,
)

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    return f"session_{ULID()}"


@dataclass(frozen=True)
class SessionPolicy:
    daily_review_limit: int = DEFAULT_DAILY_REVIEW_LIMIT
    ease_low_threshold: float = EASE_LOW_THRESHOLD
    max_again_repeats: int = MAX_AGAIN_REPEATS
    adaptive_difficulty: bool = False
    difficulty_tolerance: int = DEFAULT_DIFFICULTY_TOLERANCE

    @classmethod
    def from_config(cls, config: Any) -> "SessionPolicy":
        return cls(
            daily_review_limit=config.daily_review_limit,
            ease_low_threshold=config.ease_low_threshold,
            max_again_repeats=config.max_again_repeats,
            adaptive_difficulty=config.adaptive_difficulty,
            difficulty_tolerance=config.difficulty_tolerance,
        )


@dataclass(frozen=True)
class SessionSummary:
    completed: int
    ok: int
    ng: int
    accuracy: int  # percent
    score: int
    total: int


class StudySessionController:
    """
    Drives study sessions against a StudyRepository.

    At most one session is active; starting another discards the previous one.
    """

    def __init__(
        self,
        repo: StudyRepository,
        grading: GradingService | None = None,
        policy: SessionPolicy | None = None,
        stats_store: DailyStatsStore | None = None,
        today_fn: Callable[[], date] = date.today,
        now_fn: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ):
        """
        Args:
            repo: Question and review-state storage (port).
            grading: Grading service; local-only if not provided.
            policy: Quota and session knobs.
            stats_store: Daily counters store; defaults to `repo` if it
                implements DailyStatsStore, else kept in memory.
            today_fn: Calendar source for due checks.
            now_fn: Timestamp source for performance history.
            rng: Random source for queue shuffling.
        """
        self._repo = repo
        self._grading = grading or GradingService()
        self.policy = policy or SessionPolicy()
        if stats_store is None and isinstance(repo, DailyStatsStore):
            stats_store = repo
        self._stats_store = stats_store
        self._today = today_fn
        self._now = now_fn or (lambda: datetime.now(timezone.utc))
        self._rng = rng or random.Random()

        self._session: Session | None = None
        self._memory_stats: DailyStats | None = None
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._recent: BoundedBuffer[PerformanceEntry] = BoundedBuffer(RECENT_PERFORMANCE_SIZE)

    @property
    def current_session(self) -> Session | None:
        return self._session

    # ---------- Session lifecycle ----------

    async def start_session(
        self, deck_id: str | None = None, count: int = DEFAULT_SESSION_SIZE
    ) -> Session:
        """
        Build a queue for the deck and make it the active session.

        An empty queue yields a session that is already complete.
        """
        if self._session is not None:
            logger.info(f"Discarding in-flight session {self._session.id}")
            self._discard(self._session)

        today = self._today()
        pool = await self._repo.get_questions(deck_id)
        states = await self._load_states(pool)
        stats = await self.get_daily_stats()

        target = None
        if self.policy.adaptive_difficulty:
            target = self._learner_level(states)

        result = build_queue(
            pool,
            states,
            today,
            daily_review_limit=self.policy.daily_review_limit,
            reviews_done_today=stats.reviews_done,
            count=count,
            ease_low_threshold=self.policy.ease_low_threshold,
            rng=self._rng,
            target_difficulty=target,
            difficulty_tolerance=self.policy.difficulty_tolerance,
        )

        session = Session(
            id=generate_session_id(),
            deck_id=deck_id,
            queue=list(result.entries),
            daily_limit_remaining=max(0, self.policy.daily_review_limit - stats.reviews_done),
            daily_limit_reached=result.daily_limit_reached,
            started_at=self._now(),
        )
        self._session = session

        logger.info(
            f"Started {session.id}: {session.total} item(s) "
            f"({result.due_count} due) from {len(pool)} in deck {deck_id or '*'}"
        )
        if not session.queue:
            logger.info("Nothing to study for this deck")
        return session

    def stop_session(self, session: Session | None = None) -> None:
        """Cooperatively cancel a session. Later grading calls become no-ops for it."""
        session = session or self._session
        if session is None:
            return
        self._discard(session)
        if self._session is session:
            self._session = None
        logger.info(f"Stopped {session.id}")

    def _discard(self, session: Session) -> None:
        session.active = False
        session.queue.clear()
        session.pending = None

    # ---------- Answering ----------

    async def submit_answer(self, session: Session, raw_answer: str | None) -> GradingResult:
        """Grade the current item. Does not advance the queue."""
        entry = session.current
        if entry is None:
            return GradingResult(correct=False, score=0.0, notes="No active question")

        result = await self._grading.grade(entry.question, raw_answer)

        if not session.active or session.current is not entry:
            logger.debug(f"Session {session.id} moved on while grading; result not recorded")
            return result

        session.pending = PendingAnswer(entry=entry, raw_answer=raw_answer or "", result=result)
        return result

    async def grade_answer(self, session: Session, grade: Grade | int) -> GradeOutcome | None:
        """
        Apply the learner's grade to the current item, persist its review
        state, and advance the queue.

        Returns None if the session has no current item or was cancelled.
        """
        grade = Grade(grade)
        entry = session.current
        if entry is None:
            return None

        pending = session.pending if session.pending and session.pending.entry is entry else None
        if pending is None:
            logger.warning(f"Grade for {entry.question.id} without a submitted answer; counting as incorrect")
            correct = False
        else:
            correct = pending.result.correct

        question_id = entry.question.id
        today = self._today()
        now = self._now()

        async with self._locks[question_id]:
            stored = await self._repo.get_review_state(question_id)
            if not session.active:
                logger.debug(f"Session {session.id} cancelled; dropping grade for {question_id}")
                return None

            state = self._clamp(stored) if stored else new_review_state(question_id, today)
            state = record_outcome(question_id, state, correct, now)
            state = GRADED.reschedule(state, grade, today)
            state.last_result = "ok" if correct else "ng"
            if grade == Grade.AGAIN:
                state.again_count += 1

            await self._repo.put_review_state(question_id, state)

        if not session.active:
            return None

        session.pending = None
        self._recent.append(
            PerformanceEntry(correct=correct, difficulty=state.difficulty, timestamp=now)
        )

        requeued = False
        if grade == Grade.AGAIN:
            repeats = session.session_repeats.get(question_id, 0)
            if repeats < self.policy.max_again_repeats:
                session.queue.append(entry)
                session.session_repeats[question_id] = repeats + 1
                requeued = True
            else:
                logger.debug(f"{question_id} hit the again cap; not re-queued")
        else:
            if correct:
                session.ok += 1
                session.score += CORRECT_SCORE_GAIN
            else:
                session.ng += 1
                session.score += WRONG_SCORE_GAIN
            await self._record_completion(session, entry)

        session.index += 1
        next_entry = session.current
        if next_entry is None:
            summary = self.summary(session)
            logger.info(
                f"Completed {session.id}: {summary.ok}/{summary.completed} correct "
                f"({summary.accuracy}%)"
            )

        return GradeOutcome(
            state=state,
            requeued=requeued,
            next_entry=next_entry,
            session_complete=next_entry is None,
        )

    def skip_question(self, session: Session) -> QueueEntry | None:
        """Move past the current item without touching its review state."""
        if session.current is None:
            return None
        session.pending = None
        session.index += 1
        return session.current

    # ---------- Previews & reporting ----------

    def preview_next_due(self, state: ReviewState | None, grade: Grade | int) -> date:
        return simulate_due_date(state, grade, self._today())

    def preview_all(self, state: ReviewState | None) -> dict[Grade, date]:
        return {g: self.preview_next_due(state, g) for g in Grade}

    def summary(self, session: Session) -> SessionSummary:
        completed = session.ok + session.ng
        accuracy = round(session.ok / completed * 100) if completed else 0
        return SessionSummary(
            completed=completed,
            ok=session.ok,
            ng=session.ng,
            accuracy=accuracy,
            score=session.score,
            total=session.total,
        )

    async def due_questions(self, as_of: date | None = None) -> list[tuple[Question, ReviewState]]:
        """Due review states joined with their questions; orphans are skipped."""
        as_of = as_of or self._today()
        due: list[tuple[Question, ReviewState]] = []
        for state in await self._repo.get_due_review_states(as_of):
            try:
                question = await self._repo.get_question(state.question_id)
            except NotFoundError as e:
                logger.warning(f"Skipping orphaned review state: {e}")
                continue
            due.append((question, self._clamp(state)))
        return due

    async def get_review_state(self, question_id: str) -> ReviewState | None:
        stored = await self._repo.get_review_state(question_id)
        return self._clamp(stored) if stored else None

    async def get_daily_stats(self) -> DailyStats:
        today = self._today()
        stored = None
        if self._stats_store is not None:
            stored = await self._stats_store.get_daily_stats()
        else:
            stored = self._memory_stats
        if stored is None:
            return DailyStats(date=today)
        return stored.rolled_over(today)

    # ---------- Internals ----------

    async def _load_states(self, pool: list[Question]) -> dict[str, ReviewState]:
        states: dict[str, ReviewState] = {}
        for q in pool:
            state = await self._repo.get_review_state(q.id)
            if state is not None:
                states[q.id] = self._clamp(state)
        return states

    def _clamp(self, state: ReviewState) -> ReviewState:
        try:
            state.check_bounds()
        except StateInvariantViolation as e:
            logger.warning(f"Clamping stored value: {e}")
        fixed, _ = state.clamped()
        return fixed

    def _learner_level(self, states: dict[str, ReviewState]) -> int:
        history = list(self._recent)
        if not history:
            for state in states.values():
                history.extend(state.recent_performance)
            history.sort(key=lambda e: e.timestamp)
            history = history[-RECENT_PERFORMANCE_SIZE:]
        return session_difficulty(history)

    async def _record_completion(self, session: Session, entry: QueueEntry) -> None:
        stats = await self.get_daily_stats()
        stats.total_done += 1
        if entry.src == Provenance.DUE:
            stats.reviews_done += 1
            session.daily_limit_remaining = max(0, session.daily_limit_remaining - 1)

        if self._stats_store is not None:
            await self._stats_store.put_daily_stats(stats)
        else:
            self._memory_stats = stats
