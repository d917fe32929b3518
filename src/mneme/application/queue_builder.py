"""
Queue builder for quota-aware study sessions.

Builds a bounded study queue by:
1. Classifying items into due / new / low / rest buckets
2. Grouping items that share a `group:*` tag into atomic units
3. Shuffling groups within each priority tier
4. Admitting whole groups in tier order under capacity and daily due quota
5. Optionally reordering toward the learner's difficulty level
"""

import logging
import random
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date

from mneme.application.difficulty import select_by_difficulty
from mneme.application.scheduler import is_due
from mneme.domain.constants import (
    DEFAULT_DIFFICULTY_TOLERANCE,
    EASE_LOW_THRESHOLD,
    GROUP_TAG_PREFIX,
    SOLO_GROUP_PREFIX,
)
from mneme.domain.models import PROVENANCE_ORDER, Provenance, Question, QueueEntry, ReviewState

logger = logging.getLogger(__name__)


@dataclass
class QueueGroup:
    """Items that enter a queue together or not at all."""

    key: str
    members: list[QueueEntry] = field(default_factory=list)
    counts: dict[Provenance, int] = field(
        default_factory=lambda: {p: 0 for p in PROVENANCE_ORDER}
    )

    @property
    def tier(self) -> Provenance:
        """Highest-priority bucket present among the members."""
        for p in PROVENANCE_ORDER:
            if self.counts[p] > 0:
                return p
        return Provenance.REST

    @property
    def size(self) -> int:
        return len(self.members)


@dataclass
class QueueBuildResult:
    """Result of queue building operation."""

    entries: list[QueueEntry]
    daily_limit_reached: bool  # Due groups were held back by the daily quota
    due_remaining: int  # Quota left after admission
    quota_skipped: list[str] = field(default_factory=list)  # Group keys held back by quota
    capacity_skipped: list[str] = field(default_factory=list)  # Group keys too big to fit
    reordered: bool = False  # Difficulty reorder was applied

    @property
    def due_count(self) -> int:
        return sum(1 for e in self.entries if e.src == Provenance.DUE)


def group_key(question: Question) -> str:
    for tag in question.tags:
        if isinstance(tag, str) and tag.startswith(GROUP_TAG_PREFIX):
            return tag
    return f"{SOLO_GROUP_PREFIX}{question.id}"


def classify(
    question: Question,
    states: Mapping[str, ReviewState],
    today: date,
    ease_low_threshold: float = EASE_LOW_THRESHOLD,
) -> Provenance:
    state = states.get(question.id)
    if state is None:
        return Provenance.NEW
    if is_due(state, today):
        return Provenance.DUE
    if state.ease <= ease_low_threshold:
        return Provenance.LOW
    return Provenance.REST


def group_items(
    pool: Sequence[Question],
    states: Mapping[str, ReviewState],
    today: date,
    ease_low_threshold: float = EASE_LOW_THRESHOLD,
) -> list[QueueGroup]:
    """
    Group the pool by group key. Members are ordered due, new, low, rest,
    each bucket keeping pool order.
    """
    buckets: dict[str, dict[Provenance, list[QueueEntry]]] = {}
    groups: dict[str, QueueGroup] = {}

    for q in pool:
        key = group_key(q)
        if key not in groups:
            groups[key] = QueueGroup(key=key)
            buckets[key] = {p: [] for p in PROVENANCE_ORDER}
        src = classify(q, states, today, ease_low_threshold)
        buckets[key][src].append(QueueEntry(question=q, src=src))
        groups[key].counts[src] += 1

    for key, group in groups.items():
        for p in PROVENANCE_ORDER:
            group.members.extend(buckets[key][p])

    return list(groups.values())


def build_queue(
    pool: Sequence[Question],
    states: Mapping[str, ReviewState],
    today: date,
    daily_review_limit: int,
    reviews_done_today: int,
    count: int,
    ease_low_threshold: float = EASE_LOW_THRESHOLD,
    rng: random.Random | None = None,
    target_difficulty: int | None = None,
    difficulty_tolerance: int = DEFAULT_DIFFICULTY_TOLERANCE,
) -> QueueBuildResult:
    """
    Assemble a bounded study queue.

    Args:
        pool: All questions of the deck.
        states: Review state per question id (absent = never reviewed).
        today: Calendar date used for the due check.
        daily_review_limit: Max due reviews per day.
        reviews_done_today: Due reviews already completed today.
        count: Max queue length.
        ease_low_threshold: Ease at or below which a non-due item is "low".
        rng: Random source for tier shuffling (default: module random).
        target_difficulty: If set, reorder toward this level after quota enforcement.
        difficulty_tolerance: Allowed distance from the target level.

    Returns:
        QueueBuildResult with the ordered entries and quota diagnostics.
    """
    rng = rng or random.Random()
    groups = group_items(pool, states, today, ease_low_threshold)

    tiers: dict[Provenance, list[QueueGroup]] = {p: [] for p in PROVENANCE_ORDER}
    for g in groups:
        tiers[g.tier].append(g)
    for p in PROVENANCE_ORDER:
        rng.shuffle(tiers[p])

    slots = max(0, count)
    due_remaining = max(0, daily_review_limit - reviews_done_today)
    entries: list[QueueEntry] = []
    quota_skipped: list[str] = []
    capacity_skipped: list[str] = []

    for p in PROVENANCE_ORDER:
        for g in tiers[p]:
            if slots <= 0:
                break
            if g.size > slots:
                capacity_skipped.append(g.key)
                continue
            due_members = g.counts[Provenance.DUE]
            if p == Provenance.DUE and due_members > due_remaining:
                quota_skipped.append(g.key)
                continue
            entries.extend(g.members)
            slots -= g.size
            if p == Provenance.DUE:
                due_remaining -= due_members

    if quota_skipped:
        logger.info(
            f"Daily review limit reached: {len(quota_skipped)} due group(s) held back"
        )

    result = QueueBuildResult(
        entries=entries,
        daily_limit_reached=bool(quota_skipped),
        due_remaining=due_remaining,
        quota_skipped=quota_skipped,
        capacity_skipped=capacity_skipped,
    )

    if target_difficulty is not None and entries:
        reordered = reorder_by_difficulty(entries, states, target_difficulty, difficulty_tolerance)
        if reordered:
            result.entries = reordered
            result.reordered = True
        else:
            logger.info("Difficulty reorder selected nothing; keeping unordered queue")

    return result


def reorder_by_difficulty(
    entries: Sequence[QueueEntry],
    states: Mapping[str, ReviewState],
    target: int,
    tolerance: int = DEFAULT_DIFFICULTY_TOLERANCE,
) -> list[QueueEntry]:
    """
    Reorder an admitted queue toward a difficulty level, keeping groups whole.

    A group is kept if any member is selected, positioned by its best-ranked
    member. Groups with no selected member are dropped. Returns [] if nothing
    is selected.
    """
    selected = select_by_difficulty([e.question for e in entries], states, target, tolerance)
    if not selected:
        return []

    by_group: dict[str, list[QueueEntry]] = {}
    for e in entries:
        by_group.setdefault(group_key(e.question), []).append(e)

    ordered: list[QueueEntry] = []
    seen: set[str] = set()
    for q in selected:
        key = group_key(q)
        if key in seen:
            continue
        seen.add(key)
        ordered.extend(by_group[key])
    return ordered
