"""Centralized constants for the Mneme study engine.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Scheduler (SM-2 variant) ----------
DEFAULT_EASE = 2.5
MIN_EASE = 1.3
MAX_EASE = 2.5

AGAIN_EASE_PENALTY = 0.8
HARD_EASE_PENALTY = 0.15
GOOD_EASE_PENALTY = 0.02
EASY_EASE_BONUS = 0.15
HARD_INTERVAL_FACTOR = 1.2
EASY_INTERVAL_BONUS = 1.3

LEGACY_WRONG_EASE_PENALTY = 0.2
LEGACY_RIGHT_EASE_BONUS = 0.13

# ---------- Grading ----------
DEFAULT_FUZZY_THRESHOLD = 0.8
SHORT_FUZZY_THRESHOLD = 0.85
KEYWORD_FUZZY_THRESHOLD = 0.85
KEYWORD_DEFAULT_RATIO = 0.75
ESCALATION_PASS_SCORE = 0.75
# Local essay scores in [min, max) are escalated to the remote grader
ESCALATION_MIN_SCORE = 0.6
ESCALATION_MAX_SCORE = 0.8
GRADING_METRICS_SIZE = 100

# suggest_grade() cut-offs
EASY_SCORE = 0.9
GOOD_SCORE = 0.7

# ---------- Adaptive Difficulty ----------
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5
DEFAULT_DIFFICULTY = 3
INCREASE_ACCURACY = 0.8
DECREASE_ACCURACY = 0.5
NEUTRAL_ACCURACY = 0.5
SWEET_SPOT_ACCURACY = 0.65
RECENT_PERFORMANCE_SIZE = 10
TREND_WINDOW = 5
DEFAULT_DIFFICULTY_TOLERANCE = 1

# ---------- Queue Builder ----------
DEFAULT_DAILY_REVIEW_LIMIT = 30
DEFAULT_SESSION_SIZE = 20
EASE_LOW_THRESHOLD = 1.5
GROUP_TAG_PREFIX = "group:"
SOLO_GROUP_PREFIX = "solo:"

# ---------- Session ----------
MAX_AGAIN_REPEATS = 2
CORRECT_SCORE_GAIN = 10
WRONG_SCORE_GAIN = 2

# ---------- Essay escalation / HTTP ----------
ESCALATION_TIMEOUT = 10.0
ESCALATION_RETRY_DELAYS = (0.25, 0.75, 1.5)  # seconds
DEFAULT_ESCALATION_MODEL = "gpt-4o-mini"
