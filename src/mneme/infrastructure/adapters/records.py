"""
Record mapping between stored dictionaries and domain models.

Accepts both snake_case and the camelCase field names older stores used.
Range checks are deliberately absent: out-of-bounds review state is clamped
by the application layer on read, not rejected here.
"""

from datetime import date, datetime, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from mneme.domain.constants import DEFAULT_DIFFICULTY, DEFAULT_EASE
from mneme.domain.errors import ValidationError
from mneme.domain.models import (
    BooleanQuestion,
    DailyStats,
    EssayQuestion,
    KeywordQuestion,
    PerformanceEntry,
    Question,
    QuestionType,
    ReviewState,
    ShortQuestion,
)

# Type names used by older exports
_TYPE_ALIASES = {"OX": "BOOLEAN", "TF": "BOOLEAN", "BOOL": "BOOLEAN"}


def _as_str_list(v: Any) -> list[str]:
    if v is None:
        return []
    if isinstance(v, str):
        return [v]
    return [str(x) for x in v if x is not None]


class QuestionRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    deck_id: str = Field(default="default", validation_alias=AliasChoices("deck_id", "deckId", "deck"))
    type: QuestionType
    prompt: str = ""
    answer: str | None = None
    synonyms: list[str] = Field(default_factory=list)
    fuzzy_enabled: bool = Field(
        default=True, validation_alias=AliasChoices("fuzzy_enabled", "fuzzyEnabled", "shortFuzzy")
    )
    regexes: list[str] = Field(default_factory=list)
    keywords: Any = None
    threshold: int | str | None = Field(
        default=None, validation_alias=AliasChoices("threshold", "keywordThreshold")
    )
    reference_answer: str | None = Field(
        default=None, validation_alias=AliasChoices("reference_answer", "referenceAnswer")
    )
    tags: list[str] = Field(default_factory=list)
    explain: str | None = None

    @field_validator("id", "deck_id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().upper()
            return _TYPE_ALIASES.get(v, v)
        return v

    @field_validator("answer", mode="before")
    @classmethod
    def stringify_answer(cls, v: Any) -> Any:
        if isinstance(v, bool):
            return "true" if v else "false"
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @field_validator("synonyms", "regexes", "tags", mode="before")
    @classmethod
    def coerce_lists(cls, v: Any) -> list[str]:
        return _as_str_list(v)

    def to_domain(self) -> Question:
        common = {
            "id": self.id,
            "deck_id": self.deck_id,
            "prompt": self.prompt,
            "tags": tuple(self.tags),
            "explain": self.explain,
        }
        if self.type == QuestionType.BOOLEAN:
            return BooleanQuestion(answer=self.answer or "", **common)
        if self.type == QuestionType.SHORT:
            return ShortQuestion(
                answer=self.answer or "",
                synonyms=tuple(self.synonyms),
                fuzzy_enabled=self.fuzzy_enabled,
                regexes=tuple(self.regexes),
                **common,
            )
        if self.type == QuestionType.KEYWORD:
            return KeywordQuestion(keywords=self.keywords, threshold=self.threshold, **common)
        return EssayQuestion(
            reference_answer=self.reference_answer or self.answer or "",
            keywords=self.keywords,
            threshold=self.threshold,
            **common,
        )


def question_from_record(raw: Any) -> Question:
    """
    Raises:
        ValidationError: If the record cannot be read as a question.
    """
    if not isinstance(raw, dict):
        raise ValidationError(f"Question record must be a mapping, got {type(raw).__name__}")
    try:
        return QuestionRecord.model_validate(raw).to_domain()
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid question record {raw.get('id')!r}: {e}") from e


def question_to_record(q: Question) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": q.id,
        "deck_id": q.deck_id,
        "type": q.type.value,
        "prompt": q.prompt,
    }
    if isinstance(q, (BooleanQuestion, ShortQuestion)):
        record["answer"] = q.answer
    if isinstance(q, ShortQuestion):
        record["synonyms"] = list(q.synonyms)
        record["fuzzy_enabled"] = q.fuzzy_enabled
        if q.regexes:
            record["regexes"] = list(q.regexes)
    if isinstance(q, (KeywordQuestion, EssayQuestion)):
        record["keywords"] = q.keywords
        if q.threshold is not None:
            record["threshold"] = q.threshold
    if isinstance(q, EssayQuestion):
        record["reference_answer"] = q.reference_answer
    if q.tags:
        record["tags"] = list(q.tags)
    if q.explain:
        record["explain"] = q.explain
    return record


# ---------- Review state ----------


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


class PerformanceRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    correct: bool
    difficulty: int = DEFAULT_DIFFICULTY
    timestamp: datetime


class ReviewStateRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    due: date
    ease: float = DEFAULT_EASE
    interval: int = 0
    count: int = 0
    correct: int = 0
    again_count: int = Field(default=0, validation_alias=AliasChoices("again_count", "againCount"))
    last_result: str | None = Field(
        default=None, validation_alias=AliasChoices("last_result", "lastResult")
    )
    difficulty: int = DEFAULT_DIFFICULTY
    difficulty_updated_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "difficulty_updated_at", "difficultyUpdatedAt", "difficultyUpdated"
        ),
    )
    difficulty_reason: str = Field(
        default="", validation_alias=AliasChoices("difficulty_reason", "difficultyReason")
    )
    recent_performance: list[PerformanceRecord] = Field(
        default_factory=list,
        validation_alias=AliasChoices("recent_performance", "recentPerformance"),
    )

    @field_validator("due", mode="before")
    @classmethod
    def date_only(cls, v: Any) -> Any:
        # Older stores kept full ISO timestamps
        if isinstance(v, datetime):
            return v.date()
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        return v


def review_state_from_record(question_id: str, raw: Any) -> ReviewState:
    """
    Raises:
        ValidationError: If the record cannot be read as a review state.
    """
    if not isinstance(raw, dict):
        raise ValidationError(f"Review record for {question_id} must be a mapping")
    try:
        rec = ReviewStateRecord.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid review record for {question_id}: {e}") from e

    return ReviewState(
        question_id=question_id,
        due=rec.due,
        ease=rec.ease,
        interval=rec.interval,
        count=rec.count,
        correct=rec.correct,
        again_count=rec.again_count,
        last_result=rec.last_result,
        difficulty=rec.difficulty,
        difficulty_updated_at=_aware(rec.difficulty_updated_at) if rec.difficulty_updated_at else None,
        difficulty_reason=rec.difficulty_reason,
        recent_performance=[
            PerformanceEntry(correct=p.correct, difficulty=p.difficulty, timestamp=_aware(p.timestamp))
            for p in rec.recent_performance
        ],
    )


def review_state_to_record(state: ReviewState) -> dict[str, Any]:
    return {
        "due": state.due.isoformat(),
        "ease": state.ease,
        "interval": state.interval,
        "count": state.count,
        "correct": state.correct,
        "again_count": state.again_count,
        "last_result": state.last_result,
        "difficulty": state.difficulty,
        "difficulty_updated_at": (
            state.difficulty_updated_at.isoformat() if state.difficulty_updated_at else None
        ),
        "difficulty_reason": state.difficulty_reason,
        "recent_performance": [
            {"correct": p.correct, "difficulty": p.difficulty, "timestamp": p.timestamp.isoformat()}
            for p in state.recent_performance
        ],
    }


def daily_stats_from_record(raw: Any) -> DailyStats | None:
    if not isinstance(raw, dict) or "date" not in raw:
        return None
    try:
        day = raw["date"] if isinstance(raw["date"], date) else date.fromisoformat(str(raw["date"]))
    except ValueError:
        return None
    return DailyStats(
        date=day,
        reviews_done=int(raw.get("reviews_done", raw.get("reviewsDone", 0)) or 0),
        total_done=int(raw.get("total_done", raw.get("totalDone", 0)) or 0),
    )


def daily_stats_to_record(stats: DailyStats) -> dict[str, Any]:
    return {
        "date": stats.date.isoformat(),
        "reviews_done": stats.reviews_done,
        "total_done": stats.total_done,
    }
