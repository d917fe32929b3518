import pytest

from mneme.application.grading.grader import (
    NO_ANSWER_NOTE,
    NO_KEYWORDS_NOTE,
    NO_REFERENCE_NOTE,
    GradingPolicy,
    format_feedback,
    grade,
    suggest_grade,
)
from mneme.domain.models import (
    BooleanQuestion,
    EssayQuestion,
    Grade,
    GradingResult,
    KeywordQuestion,
    ShortQuestion,
)


# ---------- Empty input ----------


@pytest.mark.parametrize("raw", [None, "", "   ", "?!", 42])
def test_empty_answer_is_incorrect(short_q, raw):
    result = grade(short_q, raw)
    assert not result.correct
    assert result.score == 0.0
    assert result.notes == NO_ANSWER_NOTE


# ---------- BOOLEAN ----------


def test_boolean_exact(bool_q):
    assert grade(bool_q, "TRUE").correct
    assert not grade(bool_q, "false").correct


def test_boolean_without_reference():
    q = BooleanQuestion(id="b", deck_id="d", prompt="p", answer="")
    result = grade(q, "true")
    assert not result.correct
    assert result.notes == NO_REFERENCE_NOTE


# ---------- SHORT ----------


def test_short_exact_and_synonym(short_q):
    assert grade(short_q, "Atomicity").correct
    assert grade(short_q, "원자성").correct


def test_short_fuzzy_typo(short_q):
    result = grade(short_q, "atomicty")
    assert result.correct
    assert result.score == 1.0
    assert result.hits == ["atomicity"]


def test_short_fuzzy_disabled():
    q = ShortQuestion(id="s", deck_id="d", prompt="p", answer="atomicity", fuzzy_enabled=False)
    assert not grade(q, "atomicty").correct
    assert grade(q, "atomicity").correct


def test_short_wrong(short_q):
    result = grade(short_q, "durability")
    assert not result.correct
    assert result.misses == ["atomicity"]


def test_short_regex_alternative():
    q = ShortQuestion(id="s", deck_id="d", prompt="p", answer="2", regexes=(r"^\s*two\b",))
    assert grade(q, "Two, obviously").correct


def test_short_invalid_regex_grades_as_no_match():
    q = ShortQuestion(id="s", deck_id="d", prompt="p", answer="yes", regexes=("[",))
    assert not grade(q, "nope").correct
    assert grade(q, "yes").correct


def test_short_threshold_from_policy(short_q):
    strict = GradingPolicy(short_fuzzy_threshold=0.95)
    assert not grade(short_q, "atomicty", strict).correct


# ---------- KEYWORD ----------


def test_keyword_partial_below_threshold(keyword_q):
    result = grade(keyword_q, "TCP는 연결지향 프로토콜")
    assert result.score == pytest.approx(2 / 3, abs=1e-3)
    assert not result.correct
    assert result.hits == ["tcp", "연결지향"]
    assert result.misses == ["신뢰성"]


def test_keyword_all_hit(keyword_q):
    result = grade(keyword_q, "tcp 연결지향 신뢰성")
    assert result.correct
    assert result.score == 1.0


def test_keyword_explicit_threshold():
    q = KeywordQuestion(id="k", deck_id="d", prompt="p", keywords="a, b, c, d", threshold="1/2")
    assert grade(q, "a b").correct
    assert not grade(q, "a").correct


def test_keyword_fuzzy_token():
    q = KeywordQuestion(id="k", deck_id="d", prompt="p", keywords=["semaphore"], threshold=1)
    assert grade(q, "use a semaphor here").correct


def test_keyword_alternatives_and_regex():
    q = KeywordQuestion(
        id="k", deck_id="d", prompt="p", keywords=["process|프로세스", "/dead ?lock/"], threshold=2
    )
    result = grade(q, "프로세스 간 dead lock")
    assert result.correct
    assert result.hits == ["process", "/dead ?lock/"]


def test_keyword_none_defined():
    q = KeywordQuestion(id="k", deck_id="d", prompt="p", keywords=None)
    result = grade(q, "anything")
    assert not result.correct
    assert result.notes == NO_KEYWORDS_NOTE


def test_keyword_score_and_threshold_bounds():
    q = KeywordQuestion(id="k", deck_id="d", prompt="p", keywords=["x", "y"], threshold=99)
    result = grade(q, "x y z")
    assert 0.0 <= result.score <= 1.0
    assert result.correct


# ---------- ESSAY ----------


def test_essay_graded_by_keywords(essay_q):
    result = grade(essay_q, "Each address goes through the page table to a physical frame")
    assert result.correct
    assert result.score == 1.0


def test_essay_without_keywords():
    q = EssayQuestion(id="e", deck_id="d", prompt="p", reference_answer="r")
    assert grade(q, "an essay").notes == NO_KEYWORDS_NOTE


# ---------- Suggestions & feedback ----------


@pytest.mark.parametrize(
    "correct,score,expected",
    [
        (False, 0.9, Grade.AGAIN),
        (True, 1.0, Grade.EASY),
        (True, 0.9, Grade.EASY),
        (True, 0.75, Grade.GOOD),
        (True, 0.5, Grade.HARD),
    ],
)
def test_suggest_grade(correct, score, expected):
    assert suggest_grade(GradingResult(correct=correct, score=score)) == expected


def test_format_feedback():
    result = GradingResult(correct=False, score=0.5, hits=["a"], misses=["b", "c"], notes="close")
    assert format_feedback(result) == "Matched: a | Missing: b, c | Notes: close"
    assert format_feedback(GradingResult(correct=True, score=1.0)) == ""
