"""
Local answer grader.

Scores a raw answer against a question's declared type. Never raises on
bad content: malformed specs and invalid patterns grade as "no match".
"""

import logging
import re
from dataclasses import dataclass
from typing import Any

from mneme.application.grading.keywords import (
    KeywordGroup,
    build_keyword_groups,
    parse_threshold,
)
from mneme.application.utils.text import normalize, similarity, tokenize
from mneme.domain.constants import (
    EASY_SCORE,
    GOOD_SCORE,
    KEYWORD_DEFAULT_RATIO,
    KEYWORD_FUZZY_THRESHOLD,
    SHORT_FUZZY_THRESHOLD,
)
from mneme.domain.models import (
    BooleanQuestion,
    EssayQuestion,
    Grade,
    GradingResult,
    KeywordQuestion,
    Question,
    ShortQuestion,
)

logger = logging.getLogger(__name__)

NO_ANSWER_NOTE = "No answer provided"
NO_REFERENCE_NOTE = "Question has no answer"
NO_KEYWORDS_NOTE = "No keywords defined"
UNKNOWN_TYPE_NOTE = "Unknown question type"


@dataclass(frozen=True)
class GradingPolicy:
    """Tunable grading heuristics."""

    short_fuzzy_threshold: float = SHORT_FUZZY_THRESHOLD
    keyword_fuzzy_threshold: float = KEYWORD_FUZZY_THRESHOLD
    keyword_default_ratio: float = KEYWORD_DEFAULT_RATIO

    @classmethod
    def from_config(cls, config: Any) -> "GradingPolicy":
        return cls(
            short_fuzzy_threshold=config.short_fuzzy_threshold,
            keyword_fuzzy_threshold=config.keyword_fuzzy_threshold,
            keyword_default_ratio=config.keyword_default_ratio,
        )


@dataclass
class KeywordMatch:
    matched: int
    total: int
    threshold: int
    hits: list[str]
    misses: list[str]

    @property
    def passed(self) -> bool:
        return self.total > 0 and self.matched >= self.threshold

    @property
    def score(self) -> float:
        return self.matched / self.total if self.total else 0.0


def grade(question: Question, raw_answer: str | None, policy: GradingPolicy | None = None) -> GradingResult:
    """
    Grade an answer against a question.

    Args:
        question: Any Question variant.
        raw_answer: The learner's input as typed.
        policy: Thresholds; defaults if omitted.

    Returns:
        GradingResult with correct flag, score in [0, 1], and hit/miss labels.
    """
    policy = policy or GradingPolicy()

    if not isinstance(raw_answer, str) or not normalize(raw_answer):
        return GradingResult(correct=False, score=0.0, notes=NO_ANSWER_NOTE)

    if isinstance(question, BooleanQuestion):
        return _grade_boolean(question, raw_answer)
    if isinstance(question, ShortQuestion):
        return _grade_short(question, raw_answer, policy)
    if isinstance(question, KeywordQuestion):
        return _grade_keywords(question.keywords, question.threshold, raw_answer, policy)
    if isinstance(question, EssayQuestion):
        return _grade_keywords(question.keywords, question.threshold, raw_answer, policy)

    logger.warning(f"Unknown question variant {type(question).__name__}")
    return GradingResult(correct=False, score=0.0, notes=UNKNOWN_TYPE_NOTE)


def _binary(correct: bool, answer: str) -> GradingResult:
    return GradingResult(
        correct=correct,
        score=1.0 if correct else 0.0,
        hits=[answer] if correct else [],
        misses=[] if correct else [answer],
    )


def _grade_boolean(question: BooleanQuestion, raw_answer: str) -> GradingResult:
    expected = normalize(question.answer)
    if not expected:
        logger.warning(f"Question {question.id} has an empty boolean answer")
        return GradingResult(correct=False, score=0.0, notes=NO_REFERENCE_NOTE)
    return _binary(normalize(raw_answer) == expected, question.answer)


def check_short_answer(question: ShortQuestion, raw_answer: str, threshold: float) -> bool:
    user_norm = normalize(raw_answer)

    for pattern in question.regexes:
        try:
            if re.search(pattern, raw_answer, re.IGNORECASE):
                return True
        except re.error as e:
            logger.warning(f"Skipping invalid regex on question {question.id}: {e}")

    for candidate in (question.answer, *question.synonyms):
        cand_norm = normalize(candidate)
        if not cand_norm:
            continue
        if cand_norm == user_norm:
            return True
        if question.fuzzy_enabled and similarity(cand_norm, user_norm) >= threshold:
            return True

    return False


def _grade_short(question: ShortQuestion, raw_answer: str, policy: GradingPolicy) -> GradingResult:
    if not normalize(question.answer) and not question.synonyms and not question.regexes:
        logger.warning(f"Question {question.id} has no reference answer")
        return GradingResult(correct=False, score=0.0, notes=NO_REFERENCE_NOTE)
    correct = check_short_answer(question, raw_answer, policy.short_fuzzy_threshold)
    return _binary(correct, question.answer)


def _group_hit(group: KeywordGroup, raw_answer: str, answer_norm: str, tokens: list[str], threshold: float) -> bool:
    for pattern in group.patterns:
        if pattern.search(raw_answer):
            return True
    for alt in group.texts:
        if alt in answer_norm:
            return True
        for token in tokens:
            if similarity(alt, token) >= threshold:
                return True
    return False


def match_keywords(
    groups: list[KeywordGroup], raw_answer: str, threshold: int, fuzzy_threshold: float
) -> KeywordMatch:
    answer_norm = normalize(raw_answer)
    tokens = tokenize(raw_answer)

    hits: list[str] = []
    misses: list[str] = []
    for group in groups:
        if _group_hit(group, raw_answer, answer_norm, tokens, fuzzy_threshold):
            hits.append(group.label)
        else:
            misses.append(group.label)

    return KeywordMatch(
        matched=len(hits), total=len(groups), threshold=threshold, hits=hits, misses=misses
    )


def _grade_keywords(
    keywords: Any, raw_threshold: Any, raw_answer: str, policy: GradingPolicy
) -> GradingResult:
    groups = build_keyword_groups(keywords)
    if not groups:
        return GradingResult(correct=False, score=0.0, notes=NO_KEYWORDS_NOTE)

    threshold = parse_threshold(raw_threshold, len(groups), policy.keyword_default_ratio)
    match = match_keywords(groups, raw_answer, threshold, policy.keyword_fuzzy_threshold)
    return GradingResult(
        correct=match.passed,
        score=match.score,
        hits=match.hits,
        misses=match.misses,
    )


def suggest_grade(result: GradingResult) -> Grade:
    """Map a grading result onto a default self-grade."""
    if not result.correct:
        return Grade.AGAIN
    if result.score >= EASY_SCORE:
        return Grade.EASY
    if result.score >= GOOD_SCORE:
        return Grade.GOOD
    return Grade.HARD


def format_feedback(result: GradingResult) -> str:
    parts = []
    if result.hits:
        parts.append(f"Matched: {', '.join(result.hits)}")
    if result.misses:
        parts.append(f"Missing: {', '.join(result.misses)}")
    if result.notes:
        parts.append(f"Notes: {result.notes}")
    return " | ".join(parts)
