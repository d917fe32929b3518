"""
Grading Service: local grading with optional essay escalation.

Essay answers whose local score lands in the escalation band are sent to an
EssayGrader when one is configured. Any escalation failure falls back to the
local result, annotated so callers can tell an authoritative grade from a
degraded one.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from mneme.application.grading.grader import NO_KEYWORDS_NOTE, GradingPolicy, grade
from mneme.application.utils.text import normalize
from mneme.domain.buffer import BoundedBuffer
from mneme.domain.constants import (
    ESCALATION_MAX_SCORE,
    ESCALATION_MIN_SCORE,
    ESCALATION_PASS_SCORE,
    GRADING_METRICS_SIZE,
)
from mneme.domain.errors import EscalationFailure
from mneme.domain.interfaces import EssayGrader
from mneme.domain.models import EssayQuestion, GradingMetric, GradingResult, Question

logger = logging.getLogger(__name__)


class GradingService:
    """
    Application service for grading answers.

    Depends on the EssayGrader abstraction, not on a concrete HTTP client.
    """

    def __init__(
        self,
        policy: GradingPolicy | None = None,
        essay_grader: EssayGrader | None = None,
        pass_score: float = ESCALATION_PASS_SCORE,
        escalation_band: tuple[float, float] = (ESCALATION_MIN_SCORE, ESCALATION_MAX_SCORE),
        metrics_size: int = GRADING_METRICS_SIZE,
        now_fn: Callable[[], datetime] | None = None,
    ):
        """
        Args:
            policy: Local grading thresholds.
            essay_grader: Optional remote grader for ambiguous essays.
            pass_score: Escalated score at or above which an essay counts as correct.
            escalation_band: Local essay scores in [low, high) are escalated.
            metrics_size: How many recent grading metrics to keep.
            now_fn: Timestamp source for metrics.
        """
        self.policy = policy or GradingPolicy()
        self._essay_grader = essay_grader
        self._pass_score = pass_score
        self._band_low, self._band_high = escalation_band
        self._now = now_fn or (lambda: datetime.now(timezone.utc))
        self._metrics: BoundedBuffer[GradingMetric] = BoundedBuffer(metrics_size)

    @property
    def metrics(self) -> list[GradingMetric]:
        """Most recent grading outcomes, oldest first."""
        return self._metrics.to_list()

    def grade_local(self, question: Question, raw_answer: str | None) -> GradingResult:
        return grade(question, raw_answer, self.policy)

    def is_ambiguous(self, question: Question, raw_answer: str | None, local: GradingResult) -> bool:
        """
        An essay answer is ambiguous when it has content and the local score
        falls inside the escalation band, or there are no keywords to grade
        against at all.
        """
        if not isinstance(question, EssayQuestion):
            return False
        if not normalize(raw_answer):
            return False
        if local.notes == NO_KEYWORDS_NOTE:
            return True
        return self._band_low <= local.score < self._band_high

    async def grade(self, question: Question, raw_answer: str | None) -> GradingResult:
        result = await self._grade(question, raw_answer)
        self._metrics.append(
            GradingMetric(source=result.source, score=result.score, timestamp=self._now())
        )
        return result

    async def _grade(self, question: Question, raw_answer: str | None) -> GradingResult:
        local = self.grade_local(question, raw_answer)

        if self._essay_grader is None or not self.is_ambiguous(question, raw_answer, local):
            return local

        try:
            verdict = await self._essay_grader.grade_essay(
                question.prompt, question.reference_answer, raw_answer or ""
            )
        except EscalationFailure as e:
            logger.warning(f"Essay escalation failed for {question.id}: {e}")
            return self._fallback(local, str(e))
        except Exception as e:
            logger.warning(f"Unexpected essay grader error for {question.id}: {e}", exc_info=True)
            return self._fallback(local, str(e))

        score = max(0.0, min(1.0, verdict.score))
        return GradingResult(
            correct=score >= self._pass_score,
            score=score,
            hits=list(local.hits),
            misses=list(local.misses),
            notes=verdict.rationale,
            source="escalated",
        )

    @staticmethod
    def _fallback(local: GradingResult, reason: str) -> GradingResult:
        note = f"local-fallback: {reason}" if reason else "local-fallback"
        if local.notes:
            note = f"{local.notes} ({note})"
        return GradingResult(
            correct=local.correct,
            score=local.score,
            hits=list(local.hits),
            misses=list(local.misses),
            notes=note,
            source="local-fallback",
        )
