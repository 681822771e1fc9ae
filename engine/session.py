# engine/session.py
"""The session state machine.

One :class:`SessionEngine` drives one quiz run: it owns the shuffled working
copy of the questions and the answer slots, drives the timer, evaluates
answers, checkpoints after every change and builds the report at the end.

Invalid calls never raise. Every operation returns an :class:`ActionResult`;
a refused call has ``ok=False`` and one of the ``E_*`` codes and leaves the
state untouched.

Submission and timeout both go through :meth:`SessionEngine.evaluate_current`.
Whichever reaches the current question first records its answer; the other
finds the slot filled and is refused with ``already_answered``.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError

from engine.analytics import SessionReport, build_report
from engine.config import (
    OVERALL_SECONDS_PER_QUESTION,
    PER_QUESTION_SECONDS,
    SOUND_PREFERENCE_KEY,
)
from engine.evaluator import EvaluationReason, RecordedAnswer, evaluate, record, timeout_verdict
from engine.question import Question, shuffle_questions
from engine.store import SessionSnapshot, SnapshotStore
from engine.timer import (
    AsyncioScheduler,
    Clock,
    MonotonicClock,
    Scheduler,
    TimerMode,
    TimerService,
)

logger = logging.getLogger(__name__)

E_NOT_IN_PROGRESS = "not_in_progress"
E_ALREADY_ANSWERED = "already_answered"
E_UNANSWERED = "unanswered"
E_AT_FIRST_QUESTION = "at_first_question"
E_LAST_UNANSWERED = "last_unanswered"
E_NO_QUESTION_AFTER = "no_question_after"
E_NOT_COMPLETED = "not_completed"
E_NOT_REVIEWING = "not_reviewing"
E_NO_QUESTIONS = "no_questions"
E_NO_SAVED_STATE = "no_saved_state"
E_CORRUPT_SNAPSHOT = "corrupt_snapshot"


class SessionStatus(str, Enum):
    NOT_STARTED = "notStarted"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    REVIEWING = "reviewing"


@dataclass(frozen=True)
class ActionResult:
    ok: bool
    error: Optional[str] = None
    answer: Optional[RecordedAnswer] = None
    sound: Optional[str] = None


_OK = ActionResult(ok=True)


class SessionEngine:
    def __init__(
        self,
        store: Optional[SnapshotStore] = None,
        *,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        per_question_seconds: int = PER_QUESTION_SECONDS,
        overall_seconds_per_question: int = OVERALL_SECONDS_PER_QUESTION,
    ) -> None:
        self.store = store or SnapshotStore()
        self._clock = clock or MonotonicClock()
        self._rng = rng or random.Random()
        self._per_question_seconds = per_question_seconds
        self._overall_seconds_per_question = overall_seconds_per_question
        self.timer = TimerService(scheduler or AsyncioScheduler(), self._on_timeout)
        self.sound_enabled = self.store.get_preference(SOUND_PREFERENCE_KEY, "true") == "true"
        self._reset()

    def _reset(self) -> None:
        self.status = SessionStatus.NOT_STARTED
        self.storage_key = ""
        self.title = ""
        self.questions: List[Question] = []
        self.answers: List[Optional[RecordedAnswer]] = []
        self.current_index = 0
        self.score = 0
        self.timer_mode = TimerMode.NONE
        self.custom_duration: Optional[int] = None
        self.total_time_spent = 0.0
        self.last_attempt_timestamp: Optional[int] = None
        self.attempt_id: Optional[int] = None
        self._segment_started_at: Optional[float] = None

    # --- queries ---------------------------------------------------------------------

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def answered_count(self) -> int:
        return sum(1 for a in self.answers if a is not None)

    @property
    def is_finished(self) -> bool:
        """All answer slots filled, wherever the cursor is."""
        return bool(self.questions) and self.answered_count >= len(self.questions)

    @property
    def current_question(self) -> Optional[Question]:
        if not self.questions:
            return None
        return self.questions[self.current_index]

    @property
    def current_answer(self) -> Optional[RecordedAnswer]:
        if not self.answers:
            return None
        return self.answers[self.current_index]

    def timer_display(self) -> Optional[str]:
        if self.timer_mode is TimerMode.NONE:
            return None
        return self.timer.display()

    def report(self) -> Optional[SessionReport]:
        if not self.questions:
            return None
        open_segment = 0.0
        if self._segment_started_at is not None:
            open_segment = max(0.0, self._clock.now() - self._segment_started_at)
        return build_report(
            title=self.title,
            answers=self.answers,
            score=self.score,
            timer_mode=self.timer_mode,
            initial_time=self.timer.state.initial_time,
            time_left=self.timer.state.time_left,
            total_time_spent=self.total_time_spent,
            open_segment=open_segment,
        )

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            current_question_index=self.current_index,
            score=self.score,
            shuffled_questions=list(self.questions),
            user_answers=list(self.answers),
            timer_mode=self.timer_mode,
            time_left=self.timer.state.time_left,
            initial_time=self.timer.state.initial_time,
            total_time_spent=round(self.total_time_spent, 3),
            last_attempt_timestamp=self.last_attempt_timestamp,
            attempt_id=self.attempt_id,
        )

    # --- lifecycle -------------------------------------------------------------------

    def start(
        self,
        questions: Iterable[Any],
        storage_key: str,
        title: str = "",
        timer_mode: Union[TimerMode, str] = TimerMode.NONE,
        custom_duration: Optional[int] = None,
    ) -> ActionResult:
        """Begin a fresh session, discarding anything saved under ``storage_key``."""
        self.timer.stop()
        self.store.clear(storage_key)
        working = shuffle_questions(questions, self._rng)
        if not working:
            self._reset()
            return self._refuse(E_NO_QUESTIONS)

        self._reset()
        self.storage_key = storage_key
        self.title = title
        self.questions = working
        self.answers = [None] * len(working)
        self.timer_mode = TimerMode(timer_mode)
        self.custom_duration = custom_duration
        self.status = SessionStatus.IN_PROGRESS
        self._segment_started_at = self._clock.now()

        if self.timer_mode is TimerMode.OVERALL:
            self.timer.start(TimerMode.OVERALL, self._overall_duration())
        elif self.timer_mode is TimerMode.PER_QUESTION:
            self.timer.start(TimerMode.PER_QUESTION, self._per_question_duration())
        else:
            self.timer.start(TimerMode.NONE, 0)

        self.checkpoint()
        logger.info(
            "Session %r started: %d question(s), timer=%s",
            storage_key,
            len(working),
            self.timer_mode.value,
        )
        return _OK

    def resume(
        self,
        storage_key: str,
        *,
        questions: Optional[Iterable[Any]] = None,
        title: Optional[str] = None,
        timer_mode: Union[TimerMode, str] = TimerMode.NONE,
        custom_duration: Optional[int] = None,
        snapshot: Optional[Any] = None,
    ) -> ActionResult:
        """Rebuild the session saved under ``storage_key`` (or from ``snapshot``).

        When there is nothing valid to resume the saved record is discarded and,
        if ``questions`` were given, a fresh session is started with them. The
        result is then refused with ``no_saved_state``/``corrupt_snapshot`` so the
        caller can tell the user they are starting over.
        """
        loaded, error = self._load(storage_key, snapshot)
        if loaded is None:
            if questions is not None:
                started = self.start(questions, storage_key, title or "", timer_mode, custom_duration)
                if not started.ok:
                    return started
            return self._refuse(error)

        self._restore(storage_key, loaded, title, custom_duration)
        if loaded.is_finished:
            self.status = SessionStatus.COMPLETED
            self._segment_started_at = None
            logger.info("Session %r resumed as completed", storage_key)
            return _OK

        self.status = SessionStatus.IN_PROGRESS
        self._segment_started_at = self._clock.now()
        if self.timer_mode is TimerMode.OVERALL:
            if loaded.time_left <= 0:
                self._complete()
                return _OK
            self.timer.restart(loaded.time_left, mode=TimerMode.OVERALL, initial_time=loaded.initial_time)
        elif self.timer_mode is TimerMode.PER_QUESTION and self.current_answer is None:
            duration = self._per_question_duration()
            remaining = loaded.time_left if loaded.time_left > 0 else duration
            self.timer.restart(
                remaining,
                mode=TimerMode.PER_QUESTION,
                initial_time=loaded.initial_time or duration,
            )
        logger.info(
            "Session %r resumed at question %d/%d (score %d)",
            storage_key,
            self.current_index + 1,
            len(self.questions),
            self.score,
        )
        return _OK

    def view_results(
        self,
        storage_key: str,
        *,
        title: Optional[str] = None,
        snapshot: Optional[Any] = None,
    ) -> ActionResult:
        """Show the report for a saved session without resuming it."""
        loaded, error = self._load(storage_key, snapshot)
        if loaded is None:
            return self._refuse(error)
        self._restore(storage_key, loaded, title, None)
        self.status = SessionStatus.COMPLETED
        self._segment_started_at = None
        return _OK

    def discard(self, storage_key: Optional[str] = None) -> ActionResult:
        self.timer.stop()
        self.store.clear(storage_key or self.storage_key)
        self._reset()
        return _OK

    # --- answering & navigation --------------------------------------------------------

    def submit(self, user_input: Any) -> ActionResult:
        return self.evaluate_current("user", user_input)

    def evaluate_current(self, reason: EvaluationReason, user_input: Any = None) -> ActionResult:
        if self.status is not SessionStatus.IN_PROGRESS:
            return self._refuse(E_NOT_IN_PROGRESS)
        if self.answers[self.current_index] is not None:
            return self._refuse(E_ALREADY_ANSWERED)

        question = self.questions[self.current_index]
        verdict = evaluate(question, user_input) if reason == "user" else timeout_verdict(question)
        answer = record(question, verdict, reason)
        self.answers[self.current_index] = answer
        if answer.is_correct:
            self.score += 1
        if self.timer_mode is TimerMode.PER_QUESTION:
            self.timer.stop()
        self.checkpoint()

        sound = None
        if self.sound_enabled:
            sound = "correct" if answer.is_correct else "incorrect"
        return ActionResult(ok=True, answer=answer, sound=sound)

    def advance(self) -> ActionResult:
        if self.status is not SessionStatus.IN_PROGRESS:
            return self._refuse(E_NOT_IN_PROGRESS)
        if self.answers[self.current_index] is None:
            return self._refuse(E_UNANSWERED)
        if self.current_index >= len(self.questions) - 1:
            self._complete()
            return _OK
        self.current_index += 1
        self._enter_question()
        self.checkpoint()
        return _OK

    def retreat(self) -> ActionResult:
        if self.status is not SessionStatus.IN_PROGRESS:
            return self._refuse(E_NOT_IN_PROGRESS)
        if self.current_index == 0:
            return self._refuse(E_AT_FIRST_QUESTION)
        if self.timer_mode is TimerMode.PER_QUESTION:
            self.timer.stop()
        self.current_index -= 1
        self.checkpoint()
        return _OK

    def skip(self) -> ActionResult:
        """Move the current unanswered question to the end of the working order."""
        if self.status is not SessionStatus.IN_PROGRESS:
            return self._refuse(E_NOT_IN_PROGRESS)
        if self.answers[self.current_index] is not None:
            return self._refuse(E_ALREADY_ANSWERED)
        unanswered = len(self.answers) - self.answered_count
        if unanswered <= 1:
            return self._refuse(E_LAST_UNANSWERED)
        if self.current_index >= len(self.questions) - 1:
            return self._refuse(E_NO_QUESTION_AFTER)

        i = self.current_index
        self.questions.append(self.questions.pop(i))
        self.answers.append(self.answers.pop(i))
        self._enter_question()
        self.checkpoint()
        return _OK

    def request_hint(self) -> Optional[str]:
        if self.status is not SessionStatus.IN_PROGRESS or self.current_question is None:
            return None
        return self.current_question.hint

    def toggle_sound_preference(self) -> bool:
        self.sound_enabled = not self.sound_enabled
        self.store.set_preference(SOUND_PREFERENCE_KEY, "true" if self.sound_enabled else "false")
        return self.sound_enabled

    # --- review ----------------------------------------------------------------------

    def enter_review(self) -> ActionResult:
        if self.status is SessionStatus.REVIEWING:
            return _OK
        if self.status is not SessionStatus.COMPLETED:
            return self._refuse(E_NOT_COMPLETED)
        self.status = SessionStatus.REVIEWING
        return _OK

    def leave_review(self) -> ActionResult:
        if self.status is not SessionStatus.REVIEWING:
            return self._refuse(E_NOT_REVIEWING)
        self.status = SessionStatus.COMPLETED
        return _OK

    def review_items(self, show_all: bool = False, main_category: Optional[str] = None) -> List[RecordedAnswer]:
        if self.status not in (SessionStatus.COMPLETED, SessionStatus.REVIEWING):
            return []
        items = [a for a in self.answers if a is not None and (show_all or not a.is_correct)]
        if main_category:
            items = [a for a in items if a.category.main == main_category]
        return items

    def review_categories(self) -> List[str]:
        """Main categories that have at least one incorrect answer."""
        return sorted({a.category.main for a in self.answers if a is not None and not a.is_correct})

    # --- persistence -----------------------------------------------------------------

    def checkpoint(self) -> Optional[SessionSnapshot]:
        """Close the open time segment and save. Returns the saved snapshot or None."""
        if not self.questions:
            return None
        if self._segment_started_at is not None:
            now = self._clock.now()
            self.total_time_spent += max(0.0, now - self._segment_started_at)
            self._segment_started_at = now if self.status is SessionStatus.IN_PROGRESS else None
        saved = self.store.save(self.storage_key, self.snapshot())
        if saved is not None:
            self.last_attempt_timestamp = saved.last_attempt_timestamp
        return saved

    # --- internals -------------------------------------------------------------------

    def _refuse(self, code: str) -> ActionResult:
        logger.debug("Session %r refused operation: %s", self.storage_key, code)
        return ActionResult(ok=False, error=code)

    def _per_question_duration(self) -> int:
        if self.custom_duration and self.custom_duration > 0:
            return int(self.custom_duration)
        return self._per_question_seconds

    def _overall_duration(self) -> int:
        if self.custom_duration and self.custom_duration > 0:
            return int(self.custom_duration)
        return len(self.questions) * self._overall_seconds_per_question

    def _enter_question(self) -> None:
        # The overall countdown spans navigation; only a per-question timer restarts.
        if self.timer_mode is not TimerMode.PER_QUESTION:
            return
        if self.answers[self.current_index] is None:
            self.timer.start(TimerMode.PER_QUESTION, self._per_question_duration())
        else:
            self.timer.stop()

    def _on_timeout(self, mode: TimerMode) -> None:
        if self.status is not SessionStatus.IN_PROGRESS:
            return
        if mode is TimerMode.PER_QUESTION:
            self.evaluate_current("timeout")
        elif mode is TimerMode.OVERALL:
            logger.info("Session %r ran out of time", self.storage_key)
            self._complete()

    def _complete(self) -> None:
        self.timer.stop()
        self.status = SessionStatus.COMPLETED
        self.checkpoint()
        report = self.report()
        if report is None:
            return
        if self.attempt_id is None:
            self.attempt_id = self.store.record_attempt(
                self.storage_key,
                title=self.title,
                total=report.total_questions,
                correct=report.correct,
                duration_ms=int(report.elapsed_seconds * 1000),
                categories={k: v.to_dict() for k, v in report.categories.items()},
                answers=self.answers,
            )
            # Saved with the snapshot; a resumed completed session never records again
            if self.attempt_id is not None:
                self.checkpoint()
        logger.info(
            "Session %r completed: %d/%d (%d%%)",
            self.storage_key,
            report.correct,
            report.total_questions,
            report.percentage,
        )

    def _load(
        self, storage_key: str, snapshot: Optional[Any]
    ) -> Tuple[Optional[SessionSnapshot], Optional[str]]:
        if snapshot is None:
            if not self.store.exists(storage_key):
                return None, E_NO_SAVED_STATE
            loaded = self.store.load(storage_key)
            return (loaded, None) if loaded is not None else (None, E_CORRUPT_SNAPSHOT)
        if isinstance(snapshot, SessionSnapshot):
            return snapshot, None
        try:
            return SessionSnapshot.model_validate(snapshot), None
        except ValidationError as e:
            logger.warning("Discarding corrupt snapshot for %r: %s", storage_key, e.errors(include_url=False)[0]["msg"])
            self.store.clear(storage_key)
            return None, E_CORRUPT_SNAPSHOT

    def _restore(
        self,
        storage_key: str,
        loaded: SessionSnapshot,
        title: Optional[str],
        custom_duration: Optional[int],
    ) -> None:
        self.timer.stop()
        self._reset()
        self.storage_key = storage_key
        self.title = title or ""
        self.questions = list(loaded.shuffled_questions)
        self.answers = list(loaded.user_answers)
        self.current_index = loaded.current_question_index
        self.score = loaded.score
        self.timer_mode = loaded.timer_mode
        self.custom_duration = custom_duration
        self.total_time_spent = loaded.total_time_spent
        self.last_attempt_timestamp = loaded.last_attempt_timestamp
        self.attempt_id = loaded.attempt_id
        self.timer.load(loaded.timer_mode, loaded.time_left, loaded.initial_time)

