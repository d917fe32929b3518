from datetime import date, datetime, timezone

import pytest

from mneme.domain.models import (
    BooleanQuestion,
    EssayQuestion,
    KeywordQuestion,
    ReviewState,
    ShortQuestion,
)
from mneme.infrastructure.adapters.memory_store import InMemoryStudyRepository

TODAY = date(2024, 5, 1)
NOW = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config/store
    monkeypatch.setenv("HOME", str(home))
    for var in (
        "MNEME_STORE_PATH",
        "MNEME_DAILY_REVIEW_LIMIT",
        "MNEME_ESCALATION_URL",
        "MNEME_VERBOSE",
    ):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def short_q():
    return ShortQuestion(
        id="s1",
        deck_id="db",
        prompt="Which ACID property guarantees all-or-nothing?",
        answer="atomicity",
        synonyms=("원자성",),
    )


@pytest.fixture
def bool_q():
    return BooleanQuestion(id="b1", deck_id="db", prompt="SQL is declarative.", answer="true")


@pytest.fixture
def keyword_q():
    return KeywordQuestion(
        id="k1",
        deck_id="net",
        prompt="Describe TCP.",
        keywords=["tcp", "연결지향", "신뢰성"],
    )


@pytest.fixture
def essay_q():
    return EssayQuestion(
        id="e1",
        deck_id="os",
        prompt="Explain virtual memory.",
        reference_answer="Virtual memory maps process addresses to physical frames via page tables.",
        keywords=["page table", "physical|frame", "address"],
    )


@pytest.fixture
def make_state():
    def _make(question_id="q", **kwargs):
        kwargs.setdefault("due", TODAY)
        return ReviewState(question_id=question_id, **kwargs)

    return _make


@pytest.fixture
def memory_repo(short_q, bool_q, keyword_q, essay_q):
    return InMemoryStudyRepository([short_q, bool_q, keyword_q, essay_q])
