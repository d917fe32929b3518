from datetime import date, timedelta

import pytest

from mneme.domain.errors import NotFoundError
from mneme.domain.models import DailyStats, ReviewState
from mneme.infrastructure.adapters.memory_store import InMemoryStudyRepository

TODAY = date(2024, 5, 1)


@pytest.mark.asyncio
async def test_get_questions_by_deck(memory_repo):
    assert {q.id for q in await memory_repo.get_questions("db")} == {"s1", "b1"}
    assert len(await memory_repo.get_questions()) == 4


@pytest.mark.asyncio
async def test_get_question_missing(memory_repo):
    with pytest.raises(NotFoundError) as exc:
        await memory_repo.get_question("nope")
    assert exc.value.question_id == "nope"
    assert str(exc.value) == "Question not found: nope"


@pytest.mark.asyncio
async def test_states_are_copied(memory_repo):
    state = ReviewState(question_id="s1", due=TODAY)
    await memory_repo.put_review_state("s1", state)
    state.ease = 1.3
    loaded = await memory_repo.get_review_state("s1")
    assert loaded.ease == 2.5
    loaded.interval = 99
    assert (await memory_repo.get_review_state("s1")).interval == 0


@pytest.mark.asyncio
async def test_due_states(memory_repo):
    await memory_repo.put_review_state("s1", ReviewState(question_id="s1", due=TODAY))
    await memory_repo.put_review_state(
        "b1", ReviewState(question_id="b1", due=TODAY + timedelta(days=1))
    )
    assert [s.question_id for s in await memory_repo.get_due_review_states(TODAY)] == ["s1"]


@pytest.mark.asyncio
async def test_daily_stats_roundtrip(memory_repo):
    assert await memory_repo.get_daily_stats() is None
    await memory_repo.put_daily_stats(DailyStats(date=TODAY, reviews_done=2, total_done=3))
    assert await memory_repo.get_daily_stats() == DailyStats(date=TODAY, reviews_done=2, total_done=3)


@pytest.mark.asyncio
async def test_empty_repository():
    repo = InMemoryStudyRepository()
    assert await repo.get_questions() == []
    assert await repo.get_review_state("x") is None
