from collections import Counter

from conftest import make_questions
from engine.session import SessionStatus
from engine.timer import TimerMode


def _answer_all(engine, correct_pattern):
    for ok in correct_pattern:
        r = engine.submit("A" if ok else "B")
        assert r.ok
        if engine.current_index < engine.total_questions - 1:
            assert engine.advance().ok


def test_start_initializes_session(make_engine, store):
    engine = make_engine()
    assert engine.start(make_questions(4), "quizState-t", "T").ok
    assert engine.status is SessionStatus.IN_PROGRESS
    assert engine.current_index == 0
    assert engine.answers == [None] * 4
    assert store.load("quizState-t") is not None


def test_start_without_questions_is_refused(make_engine):
    engine = make_engine()
    r = engine.start([], "quizState-empty")
    assert not r.ok and r.error == "no_questions"
    assert engine.status is SessionStatus.NOT_STARTED


def test_submit_twice_does_not_double_score(make_engine):
    engine = make_engine()
    engine.start(make_questions(3), "k")
    first = engine.submit("A")
    second = engine.submit("A")
    assert first.ok and first.answer.is_correct
    assert not second.ok and second.error == "already_answered"
    assert engine.score == 1


def test_seven_of_ten_is_seventy_percent_and_finished(make_engine):
    engine = make_engine()
    engine.start(make_questions(10), "k")
    _answer_all(engine, [True] * 7 + [False] * 3)
    # the last answer is in but advance() was not called yet
    assert engine.status is SessionStatus.IN_PROGRESS
    assert engine.is_finished
    assert engine.score == 7
    assert engine.report().percentage == 70

    assert engine.advance().ok
    assert engine.status is SessionStatus.COMPLETED
    assert engine.attempt_id is not None


def test_advance_requires_answer_and_retreat_is_read_only(make_engine):
    engine = make_engine()
    engine.start(make_questions(3), "k")
    assert engine.advance().error == "unanswered"
    assert engine.retreat().error == "at_first_question"

    engine.submit("A")
    engine.advance()
    assert engine.retreat().ok
    assert engine.current_index == 0
    again = engine.submit("B")
    assert again.error == "already_answered"
    assert engine.current_answer.is_correct
    assert engine.score == 1


def test_skip_reorders_without_losing_questions(make_engine):
    engine = make_engine()
    engine.start(make_questions(4), "k")
    engine.submit("A")
    engine.advance()
    before_ids = Counter(q.id for q in engine.questions)
    skipped = engine.current_question.id

    assert engine.skip().ok
    assert Counter(q.id for q in engine.questions) == before_ids
    assert engine.questions[-1].id == skipped
    assert engine.current_index == 1
    assert engine.answered_count == 1
    assert engine.answers[-1] is None


def test_skip_refused_for_last_unanswered(make_engine):
    engine = make_engine()
    engine.start(make_questions(2), "k")
    engine.submit("A")
    engine.advance()
    order = [q.id for q in engine.questions]
    r = engine.skip()
    assert not r.ok and r.error == "last_unanswered"
    assert [q.id for q in engine.questions] == order


def test_skip_refused_on_answered_question(make_engine):
    engine = make_engine()
    engine.start(make_questions(3), "k")
    engine.submit("A")
    assert engine.skip().error == "already_answered"


def test_per_question_timeout_records_incorrect_and_unlocks_advance(make_engine, sched):
    engine = make_engine()
    engine.start(make_questions(3), "k", timer_mode=TimerMode.PER_QUESTION, custom_duration=1)
    assert engine.advance().error == "unanswered"

    sched.advance(1)
    timed_out = engine.answers[0]
    assert timed_out is not None
    assert timed_out.is_correct is False
    assert timed_out.selected is None
    assert timed_out.reason == "timeout"

    # the user's late submit loses the race
    assert engine.submit("A").error == "already_answered"
    assert engine.score == 0
    assert engine.advance().ok
    assert engine.timer.running
    assert engine.timer.state.time_left == 1


def test_per_question_default_duration(make_engine):
    engine = make_engine(per_question_seconds=90)
    engine.start(make_questions(2), "k", timer_mode="perQuestion")
    assert engine.timer.state.initial_time == 90
    assert engine.timer_display() == "01:30"


def test_submit_stops_per_question_timer(make_engine, sched):
    engine = make_engine()
    engine.start(make_questions(2), "k", timer_mode=TimerMode.PER_QUESTION, custom_duration=5)
    engine.submit("A")
    sched.advance(30)
    assert engine.answers[1] is None
    assert engine.current_index == 0


def test_overall_timeout_completes_session(make_engine, sched):
    engine = make_engine(overall_seconds_per_question=75)
    engine.start(make_questions(2), "k", timer_mode=TimerMode.OVERALL)
    assert engine.timer.state.initial_time == 150

    engine.submit("A")
    engine.advance()
    sched.advance(150)
    assert engine.status is SessionStatus.COMPLETED
    # the question on screen stays unanswered
    assert engine.answers[1] is None
    report = engine.report()
    assert report.elapsed_seconds == 150
    assert report.correct == 1


def test_overall_timer_survives_navigation(make_engine, sched):
    engine = make_engine()
    engine.start(make_questions(3), "k", timer_mode=TimerMode.OVERALL, custom_duration=100)
    sched.advance(10)
    engine.submit("A")
    engine.advance()
    engine.retreat()
    assert engine.timer.state.time_left == 90
    assert engine.timer.running


def test_operations_refused_when_not_in_progress(make_engine):
    engine = make_engine()
    assert engine.submit("A").error == "not_in_progress"
    assert engine.advance().error == "not_in_progress"
    assert engine.skip().error == "not_in_progress"
    assert engine.enter_review().error == "not_completed"


def test_hint_and_sound_cues(make_engine, store):
    engine = make_engine()
    questions = make_questions(1)
    questions[0]["hint"] = "Think of the first letter"
    engine.start(questions, "k")
    assert engine.request_hint() == "Think of the first letter"

    assert engine.toggle_sound_preference() is False
    assert store.get_preference("quizSoundEnabled", "true") == "false"
    r = engine.submit("A")
    assert r.sound is None

    engine.toggle_sound_preference()
    other = make_engine()
    assert other.sound_enabled is True


def test_review_mode(make_engine):
    engine = make_engine()
    engine.start(
        make_questions(2, prefix="g", category={"main": "Geology"})
        + make_questions(2, prefix="p", category={"main": "Physics"}),
        "k",
    )
    _answer_all(engine, [False, True, True, False])
    engine.advance()
    assert engine.enter_review().ok
    assert engine.status is SessionStatus.REVIEWING
    assert len(engine.review_items()) == 2
    assert len(engine.review_items(show_all=True)) == 4
    cats = engine.review_categories()
    assert cats == sorted(cats)
    for main in cats:
        assert all(a.category.main == main for a in engine.review_items(main_category=main))
    assert engine.leave_review().ok
    assert engine.status is SessionStatus.COMPLETED


def test_discard_clears_store(make_engine, store):
    engine = make_engine()
    engine.start(make_questions(2), "k")
    assert engine.discard().ok
    assert engine.status is SessionStatus.NOT_STARTED
    assert store.load("k") is None


def test_elapsed_time_accumulates_across_checkpoints(make_engine, sched):
    engine = make_engine()
    engine.start(make_questions(2), "k")
    sched.advance(12)
    engine.submit("A")
    assert engine.total_time_spent == 12
    sched.advance(3)
    assert engine.report().elapsed_seconds == 15
