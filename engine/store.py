# engine/store.py
"""Durable snapshots keyed by storage key.

A snapshot is written as one JSON document (camelCase, the same shape the
browser client keeps in localStorage) into the ``saved_sessions`` table.
Nothing here raises to the caller: write failures are logged and swallowed,
and anything that does not validate on the way back in is deleted and
reported as "no saved state".
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import StrictInt, ValidationError, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from db import SessionLocal
from engine.evaluator import RecordedAnswer
from engine.question import Question, WireModel
from engine.timer import TimerMode
from models import Attempt, Preference, SavedSession

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class SessionSnapshot(WireModel):
    current_question_index: StrictInt
    score: int = 0
    shuffled_questions: List[Question]
    user_answers: List[Optional[RecordedAnswer]]
    timer_mode: TimerMode = TimerMode.NONE
    time_left: int = 0
    initial_time: int = 0
    total_time_spent: float = 0.0
    last_attempt_timestamp: Optional[int] = None
    attempt_id: Optional[int] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "SessionSnapshot":
        n = len(self.shuffled_questions)
        if n == 0:
            raise ValueError("snapshot has no questions")
        if len(self.user_answers) != n:
            raise ValueError(f"userAnswers has {len(self.user_answers)} entries for {n} questions")
        if not 0 <= self.current_question_index < n:
            raise ValueError(f"currentQuestionIndex {self.current_question_index} out of range")
        return self

    @property
    def answered_count(self) -> int:
        return sum(1 for a in self.user_answers if a is not None)

    @property
    def is_finished(self) -> bool:
        return self.answered_count >= len(self.shuffled_questions)


class SnapshotStore:
    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        *,
        now_ms: Callable[[], int] = _now_ms,
    ) -> None:
        self._session_factory = session_factory
        self._now_ms = now_ms

    # --- snapshots ---

    def save(self, key: str, snapshot: SessionSnapshot) -> Optional[SessionSnapshot]:
        """Write ``snapshot`` stamped with the current time; returns the stamped copy, or None on failure."""
        stamped = snapshot.model_copy(update={"last_attempt_timestamp": self._now_ms()})
        try:
            payload = stamped.model_dump_json(by_alias=True)
            with self._session_factory() as db:
                row = db.get(SavedSession, key)
                if row is None:
                    db.add(SavedSession(storage_key=key, payload=payload))
                else:
                    row.payload = payload
                db.commit()
        except (SQLAlchemyError, ValueError, TypeError):
            logger.error("Could not save session snapshot %r", key, exc_info=True)
            return None
        return stamped

    def load(self, key: str) -> Optional[SessionSnapshot]:
        try:
            with self._session_factory() as db:
                row = db.get(SavedSession, key)
                payload = row.payload if row is not None else None
        except SQLAlchemyError:
            logger.error("Could not read session snapshot %r", key, exc_info=True)
            return None
        if payload is None:
            return None
        try:
            return SessionSnapshot.model_validate_json(payload)
        except ValidationError as e:
            logger.warning(
                "Discarding corrupt session snapshot %r (%d problem(s)): %s",
                key,
                e.error_count(),
                e.errors(include_url=False)[0]["msg"],
            )
            self.clear(key)
            return None

    def exists(self, key: str) -> bool:
        try:
            with self._session_factory() as db:
                return db.get(SavedSession, key) is not None
        except SQLAlchemyError:
            logger.error("Could not read session snapshot %r", key, exc_info=True)
            return False

    def clear(self, key: str) -> bool:
        try:
            with self._session_factory() as db:
                row = db.get(SavedSession, key)
                if row is not None:
                    db.delete(row)
                    db.commit()
        except SQLAlchemyError:
            logger.error("Could not clear session snapshot %r", key, exc_info=True)
            return False
        return True

    def progress(self, key: str, total_questions: int) -> Dict[str, Any]:
        """Summary for a quiz card: how far the saved session got."""
        out: Dict[str, Any] = {
            "hasProgress": False,
            "isFinished": False,
            "answeredCount": 0,
            "totalQuestions": total_questions,
            "score": 0,
            "percentage": 0,
            "lastAttemptTimestamp": 0,
        }
        if total_questions <= 0:
            return out
        snapshot = self.load(key)
        if snapshot is None:
            return out
        total = len(snapshot.shuffled_questions)
        answered = snapshot.answered_count
        out.update(
            hasProgress=True,
            isFinished=answered >= total,
            answeredCount=answered,
            totalQuestions=total,
            score=snapshot.score,
            percentage=int(answered / total * 100 + 0.5),
            lastAttemptTimestamp=snapshot.last_attempt_timestamp or 0,
        )
        return out

    # --- preferences ---

    def get_preference(self, key: str, default: str) -> str:
        try:
            with self._session_factory() as db:
                row = db.get(Preference, key)
                return row.value if row is not None else default
        except SQLAlchemyError:
            logger.error("Could not read preference %r", key, exc_info=True)
            return default

    def set_preference(self, key: str, value: str) -> bool:
        try:
            with self._session_factory() as db:
                row = db.get(Preference, key)
                if row is None:
                    db.add(Preference(key=key, value=value))
                else:
                    row.value = value
                db.commit()
        except SQLAlchemyError:
            logger.error("Could not save preference %r", key, exc_info=True)
            return False
        return True

    # --- attempts ---

    def record_attempt(
        self,
        key: str,
        *,
        title: str,
        total: int,
        correct: int,
        duration_ms: Optional[int],
        categories: Dict[str, Any],
        answers: Sequence[Optional[RecordedAnswer]],
    ) -> Optional[int]:
        items = {
            "categories": categories,
            "answers": [a.model_dump(mode="json", by_alias=True) if a else None for a in answers],
        }
        try:
            with self._session_factory() as db:
                attempt = Attempt(
                    storage_key=key,
                    title=title,
                    total=total,
                    correct=correct,
                    items=items,
                    duration_ms=duration_ms,
                )
                db.add(attempt)
                db.commit()
                db.refresh(attempt)
                return attempt.id
        except SQLAlchemyError:
            logger.error("Could not record attempt for %r", key, exc_info=True)
            return None

