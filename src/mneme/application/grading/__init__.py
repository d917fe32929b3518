# Application Grading Package
from .grader import GradingPolicy, format_feedback, grade, suggest_grade
from .keywords import build_keyword_groups, coerce_keyword_list, parse_threshold
from .service import GradingService

__all__ = [
    "GradingPolicy",
    "GradingService",
    "build_keyword_groups",
    "coerce_keyword_list",
    "format_feedback",
    "grade",
    "parse_threshold",
    "suggest_grade",
]
