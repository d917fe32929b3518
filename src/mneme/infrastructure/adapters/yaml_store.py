"""
YAML-file adapter for questions, review state and daily counters.

Layout of the store file:

    questions:
      - {id: q1, deck_id: os, type: SHORT, prompt: ..., answer: ...}
    reviews:
      q1: {due: 2024-05-01, ease: 2.5, interval: 6, ...}
    daily_stats: {date: 2024-05-01, reviews_done: 3, total_done: 7}
"""

import logging
import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from mneme.domain.errors import NotFoundError, ValidationError
from mneme.domain.interfaces import DailyStatsStore, StudyRepository
from mneme.domain.models import DailyStats, Question, ReviewState
from mneme.infrastructure.adapters.records import (
    daily_stats_from_record,
    daily_stats_to_record,
    question_from_record,
    question_to_record,
    review_state_from_record,
    review_state_to_record,
)

logger = logging.getLogger(__name__)


class YamlStudyRepository(StudyRepository, DailyStatsStore):
    """
    Single-file store. The document is read once and rewritten whole on
    every write.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        self._doc: dict[str, Any] | None = None
        self._questions: dict[str, Question] | None = None

    # ---------- Loading ----------

    def _load(self) -> dict[str, Any]:
        if self._doc is not None:
            return self._doc

        if not self.path.exists():
            logger.debug(f"Store {self.path} does not exist yet; starting empty")
            doc: Any = {}
        else:
            try:
                doc = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
            except yaml.YAMLError as e:
                raise ValidationError(f"Store {self.path} is not valid YAML: {e}") from e

        if not isinstance(doc, dict):
            raise ValidationError(f"Store {self.path} must contain a mapping at the top level")

        doc["questions"] = doc.get("questions") or []
        if not isinstance(doc["questions"], list):
            logger.warning(f"Ignoring malformed 'questions' section in {self.path}")
            doc["questions"] = []

        reviews = doc.get("reviews") or {}
        if not isinstance(reviews, dict):
            logger.warning(f"Ignoring malformed 'reviews' section in {self.path}")
            reviews = {}
        doc["reviews"] = self._normalize_review_keys(reviews)
        self._doc = doc
        return doc

    def _normalize_review_keys(self, reviews: dict[Any, Any]) -> dict[str, Any]:
        # Question ids are strings in the domain; YAML reads `1:` as an int key
        normalized: dict[str, Any] = {}
        for key, raw in reviews.items():
            qid = str(key)
            if qid in normalized:
                logger.warning(f"Duplicate review state for {qid}; keeping the first")
                continue
            normalized[qid] = raw
        return normalized

    def _question_index(self) -> dict[str, Question]:
        if self._questions is not None:
            return self._questions

        index: dict[str, Question] = {}
        for raw in self._load()["questions"]:
            try:
                q = question_from_record(raw)
            except ValidationError as e:
                logger.warning(f"Skipping question: {e}")
                continue
            if q.id in index:
                logger.warning(f"Duplicate question id {q.id}; keeping the first")
                continue
            index[q.id] = q
        self._questions = index
        return index

    def _save(self) -> None:
        doc = self._load()
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Write-then-rename so a crash never leaves a half-written store
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".mneme-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(doc, f, allow_unicode=True, sort_keys=False)
            os.replace(tmp, self.path)
        except Exception:
            Path(tmp).unlink(missing_ok=True)
            raise

    def reload(self) -> None:
        self._doc = None
        self._questions = None

    # ---------- Questions ----------

    async def get_questions(self, deck_id: str | None = None) -> list[Question]:
        return [
            q for q in self._question_index().values() if deck_id is None or q.deck_id == deck_id
        ]

    async def get_question(self, question_id: str) -> Question:
        q = self._question_index().get(str(question_id))
        if q is None:
            raise NotFoundError(question_id)
        return q

    async def add_questions(self, questions: list[Question]) -> int:
        """Append questions whose ids are not stored yet. Returns how many were added."""
        index = self._question_index()
        doc = self._load()
        added = 0
        for q in questions:
            if q.id in index:
                logger.debug(f"Question {q.id} already stored; skipping")
                continue
            doc["questions"].append(question_to_record(q))
            index[q.id] = q
            added += 1
        if added:
            self._save()
        return added

    # ---------- Review state ----------

    def _read_state(self, question_id: str, raw: Any) -> ReviewState | None:
        try:
            return review_state_from_record(question_id, raw)
        except ValidationError as e:
            logger.warning(f"Ignoring review state: {e}")
            return None

    async def get_review_state(self, question_id: str) -> ReviewState | None:
        raw = self._load()["reviews"].get(str(question_id))
        if raw is None:
            return None
        return self._read_state(str(question_id), raw)

    async def put_review_state(self, question_id: str, state: ReviewState) -> None:
        self._load()["reviews"][str(question_id)] = review_state_to_record(state)
        self._save()

    async def get_due_review_states(self, as_of: date) -> list[ReviewState]:
        due = []
        for qid, raw in self._load()["reviews"].items():
            state = self._read_state(qid, raw)
            if state is not None and state.due <= as_of:
                due.append(state)
        return due

    # ---------- Daily stats ----------

    async def get_daily_stats(self) -> DailyStats | None:
        return daily_stats_from_record(self._load().get("daily_stats"))

    async def put_daily_stats(self, stats: DailyStats) -> None:
        self._load()["daily_stats"] = daily_stats_to_record(stats)
        self._save()
