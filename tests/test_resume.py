import json

from conftest import make_questions
from engine.session import SessionStatus
from engine.timer import TimerMode
from models import Attempt, SavedSession


def test_resume_restores_cursor_score_and_answers(make_engine, sched):
    first = make_engine()
    first.start(make_questions(4), "k", "Quiz")
    first.submit("A")
    first.advance()
    first.submit("B")
    order = [q.id for q in first.questions]

    second = make_engine()
    r = second.resume("k", title="Quiz")
    assert r.ok
    assert second.status is SessionStatus.IN_PROGRESS
    assert [q.id for q in second.questions] == order
    assert second.current_index == 1
    assert second.score == 1
    assert second.answered_count == 2
    assert second.title == "Quiz"


def test_resume_without_saved_state_starts_fresh(make_engine):
    engine = make_engine()
    r = engine.resume("nothing", questions=make_questions(3), title="Fresh")
    assert not r.ok and r.error == "no_saved_state"
    assert engine.status is SessionStatus.IN_PROGRESS
    assert engine.answered_count == 0


def test_resume_corrupt_snapshot_discards_and_starts_fresh(make_engine, store, session_factory):
    with session_factory() as db:
        db.add(SavedSession(storage_key="k", payload=json.dumps({"currentQuestionIndex": 0})))
        db.commit()

    engine = make_engine()
    r = engine.resume("k", questions=make_questions(2))
    assert r.error == "corrupt_snapshot"
    assert engine.status is SessionStatus.IN_PROGRESS
    assert engine.total_questions == 2


def test_resume_corrupt_snapshot_without_questions(make_engine):
    engine = make_engine()
    bad = {"currentQuestionIndex": 0, "shuffledQuestions": [{"type": "single-choice"}], "userAnswers": []}
    r = engine.resume("k", snapshot=bad)
    assert r.error == "corrupt_snapshot"
    assert engine.status is SessionStatus.NOT_STARTED


def test_resume_accumulates_elapsed_time(make_engine, sched):
    first = make_engine()
    first.start(make_questions(2), "k")
    sched.advance(20)
    first.submit("A")

    # time while the app was closed does not count
    sched.advance(1000)
    second = make_engine()
    second.resume("k")
    assert second.total_time_spent == 20
    sched.advance(5)
    second.advance()
    second.submit("A")
    assert second.total_time_spent == 25


def test_resume_per_question_uses_saved_remaining(make_engine, sched):
    first = make_engine()
    first.start(make_questions(3), "k", timer_mode=TimerMode.PER_QUESTION, custom_duration=30)
    sched.advance(10)
    first.checkpoint()
    first.timer.stop()

    second = make_engine()
    second.resume("k", custom_duration=30)
    assert second.timer.running
    assert second.timer.state.time_left == 20
    assert second.timer.state.initial_time == 30


def test_resume_overall_out_of_time_completes(make_engine, sched):
    first = make_engine()
    first.start(make_questions(2), "k", timer_mode=TimerMode.OVERALL, custom_duration=5)
    first.submit("A")
    sched.advance(5)
    assert first.status is SessionStatus.COMPLETED
    # pretend the process died before completion was observed
    snap = first.snapshot().model_copy(update={"time_left": 0})

    second = make_engine()
    second.resume("k", snapshot=snap)
    assert second.status is SessionStatus.COMPLETED
    assert second.report().elapsed_seconds == 5


def test_resume_finished_snapshot_goes_to_completed(make_engine):
    first = make_engine()
    first.start(make_questions(2), "k")
    first.submit("A")
    first.advance()
    first.submit("A")

    second = make_engine()
    assert second.resume("k").ok
    assert second.status is SessionStatus.COMPLETED
    assert second.report().percentage == 100


def test_view_results_does_not_resume_timer(make_engine, sched):
    first = make_engine()
    first.start(make_questions(3), "k", timer_mode=TimerMode.OVERALL, custom_duration=60)
    first.submit("A")
    first.timer.stop()

    viewer = make_engine()
    assert viewer.view_results("k", title="Quiz").ok
    assert viewer.status is SessionStatus.COMPLETED
    assert not viewer.timer.running
    assert viewer.report().correct == 1
    assert make_engine().view_results("missing").error == "no_saved_state"


def test_resuming_timed_out_session_records_one_attempt(make_engine, sched, session_factory):
    first = make_engine()
    first.start(make_questions(3), "k", timer_mode=TimerMode.OVERALL, custom_duration=1)
    sched.advance(1)
    assert first.status is SessionStatus.COMPLETED
    attempt_id = first.attempt_id
    assert attempt_id is not None

    for _ in range(2):
        again = make_engine()
        assert again.resume("k").ok
        assert again.status is SessionStatus.COMPLETED
        assert again.attempt_id == attempt_id

    with session_factory() as db:
        assert db.query(Attempt).count() == 1
