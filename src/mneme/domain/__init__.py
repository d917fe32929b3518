# Domain Package
from .errors import (
    EscalationFailure,
    MnemeError,
    NotFoundError,
    StateInvariantViolation,
    ValidationError,
)
from .interfaces import DailyStatsStore, EssayGrader, StudyRepository
from .models import (
    BooleanQuestion,
    DailyStats,
    EssayQuestion,
    Grade,
    GradingResult,
    KeywordQuestion,
    Provenance,
    Question,
    QuestionType,
    ReviewState,
    Session,
    ShortQuestion,
)

__all__ = [
    "BooleanQuestion",
    "DailyStats",
    "DailyStatsStore",
    "EscalationFailure",
    "EssayGrader",
    "EssayQuestion",
    "Grade",
    "GradingResult",
    "KeywordQuestion",
    "MnemeError",
    "NotFoundError",
    "Provenance",
    "Question",
    "QuestionType",
    "ReviewState",
    "Session",
    "ShortQuestion",
    "StateInvariantViolation",
    "StudyRepository",
    "ValidationError",
]
