# routers/sessions.py
from __future__ import annotations

import uuid
from typing import Annotated, Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException

from bank import get_quiz
from deps.sessions import SessionRegistry, get_registry
from engine.config import SOUND_PREFERENCE_KEY, STORAGE_KEY_PREFIX
from engine.question import flatten_bank
from engine.session import ActionResult, SessionEngine
from schemas.questions import QuestionOut
from schemas.sessions import (
    ActionOut,
    HintOut,
    RecordedAnswerOut,
    ReportOut,
    ResumeRequest,
    ReviewOut,
    ReviewRequest,
    SessionStateOut,
    SoundPreferenceOut,
    StartSessionRequest,
    SubmitRequest,
    TimerOut,
    ViewResultsRequest,
)

router = APIRouter(tags=["sessions"])

Registry = Annotated[SessionRegistry, Depends(get_registry)]


# --- Helpers ----------------------------------------------------------------------


def _engine_or_404(registry: SessionRegistry, storage_key: str) -> SessionEngine:
    engine = registry.get(storage_key)
    if engine is None:
        raise HTTPException(status_code=404, detail="session not found")
    return engine


def _quiz_or_404(quiz_id: str):
    quiz = get_quiz(quiz_id)
    if quiz is None:
        raise HTTPException(status_code=404, detail="quiz not found")
    return quiz


def _state(engine: SessionEngine) -> SessionStateOut:
    question = engine.current_question
    answer = engine.current_answer
    timer = engine.timer
    return SessionStateOut(
        status=engine.status.value,
        storage_key=engine.storage_key,
        title=engine.title,
        current_index=engine.current_index,
        total_questions=engine.total_questions,
        answered_count=engine.answered_count,
        score=engine.score,
        finished=engine.is_finished,
        timer=TimerOut(
            mode=engine.timer_mode,
            display=engine.timer_display(),
            time_left=timer.state.time_left,
            initial_time=timer.state.initial_time,
            running=timer.running,
            urgency=timer.urgency(),
            pulse=timer.pulse,
        ),
        sound_enabled=engine.sound_enabled,
        question=QuestionOut.from_question(question) if question is not None else None,
        # Only answered questions reveal their verdict
        answer=RecordedAnswerOut.model_validate(answer) if answer is not None else None,
        attempt_id=engine.attempt_id,
    )


def _action(engine: SessionEngine, result: ActionResult) -> ActionOut:
    return ActionOut(
        ok=result.ok,
        error=result.error,
        sound=result.sound,
        answer=RecordedAnswerOut.model_validate(result.answer) if result.answer is not None else None,
        state=_state(engine),
    )


# --- Lifecycle --------------------------------------------------------------------


@router.post("/sessions", response_model=ActionOut)
async def start_session(req: StartSessionRequest, registry: Registry):
    questions: List[Any]
    if req.quiz_id:
        quiz = _quiz_or_404(req.quiz_id)
        questions = quiz.questions
        storage_key = req.storage_key or quiz.storage_key
        title = req.title or quiz.title
    elif req.questions is not None:
        title = req.title or "Custom quiz"
        questions = flatten_bank(req.questions, source_title=title)
        storage_key = req.storage_key or f"{STORAGE_KEY_PREFIX}custom-{uuid.uuid4().hex[:12]}"
    else:
        raise HTTPException(status_code=422, detail="quiz_id or questions required")

    engine = registry.create(storage_key, seed=req.seed)
    result = engine.start(questions, storage_key, title, req.timer_mode, req.custom_duration)
    return _action(engine, result)


@router.get("/sessions/{storage_key}", response_model=SessionStateOut)
async def get_session(storage_key: str, registry: Registry):
    return _state(_engine_or_404(registry, storage_key))


@router.post("/sessions/{storage_key}/resume", response_model=ActionOut)
async def resume_session(storage_key: str, req: ResumeRequest, registry: Registry):
    title = req.title
    questions: Optional[List[Any]] = None
    if req.quiz_id:
        quiz = _quiz_or_404(req.quiz_id)
        title = title or quiz.title
        if req.start_fresh:
            questions = quiz.questions

    engine = registry.create(storage_key)
    result = engine.resume(
        storage_key,
        questions=questions,
        title=title,
        timer_mode=req.timer_mode,
        custom_duration=req.custom_duration,
        snapshot=req.snapshot,
    )
    return _action(engine, result)


@router.post("/sessions/{storage_key}/view-results", response_model=ActionOut)
async def view_results(storage_key: str, req: ViewResultsRequest, registry: Registry):
    title = req.title
    if req.quiz_id:
        title = title or _quiz_or_404(req.quiz_id).title
    engine = registry.create(storage_key)
    result = engine.view_results(storage_key, title=title, snapshot=req.snapshot)
    return _action(engine, result)


@router.delete("/sessions/{storage_key}")
async def discard_session(storage_key: str, registry: Registry):
    engine = registry.get(storage_key)
    if engine is not None:
        engine.discard(storage_key)
        registry.drop(storage_key)
    else:
        registry.store.clear(storage_key)
    return {"ok": True}


# --- Answering & navigation -------------------------------------------------------


@router.post("/sessions/{storage_key}/submit", response_model=ActionOut)
async def submit_answer(storage_key: str, req: SubmitRequest, registry: Registry):
    engine = _engine_or_404(registry, storage_key)
    return _action(engine, engine.submit(req.answer))


@router.post("/sessions/{storage_key}/advance", response_model=ActionOut)
async def advance(storage_key: str, registry: Registry):
    engine = _engine_or_404(registry, storage_key)
    return _action(engine, engine.advance())


@router.post("/sessions/{storage_key}/retreat", response_model=ActionOut)
async def retreat(storage_key: str, registry: Registry):
    engine = _engine_or_404(registry, storage_key)
    return _action(engine, engine.retreat())


@router.post("/sessions/{storage_key}/skip", response_model=ActionOut)
async def skip(storage_key: str, registry: Registry):
    engine = _engine_or_404(registry, storage_key)
    return _action(engine, engine.skip())


@router.post("/sessions/{storage_key}/hint", response_model=HintOut)
async def hint(storage_key: str, registry: Registry):
    engine = _engine_or_404(registry, storage_key)
    text = engine.request_hint()
    return {"ok": text is not None, "hint": text}


# --- Results ----------------------------------------------------------------------


@router.get("/sessions/{storage_key}/report", response_model=ReportOut)
async def report(storage_key: str, registry: Registry):
    engine = _engine_or_404(registry, storage_key)
    rep = engine.report()
    if rep is None:
        raise HTTPException(status_code=404, detail="no report for this session")
    return rep.to_dict()


@router.post("/sessions/{storage_key}/review", response_model=ReviewOut)
async def review(storage_key: str, req: ReviewRequest, registry: Registry):
    engine = _engine_or_404(registry, storage_key)
    result = engine.enter_review()
    if not result.ok:
        return ReviewOut(ok=False, error=result.error, state=_state(engine))
    items = engine.review_items(show_all=req.show_all, main_category=req.main_category)
    return ReviewOut(
        ok=True,
        categories=engine.review_categories(),
        items=[RecordedAnswerOut.model_validate(a) for a in items],
        state=_state(engine),
    )


@router.post("/sessions/{storage_key}/review/leave", response_model=ActionOut)
async def leave_review(storage_key: str, registry: Registry):
    engine = _engine_or_404(registry, storage_key)
    return _action(engine, engine.leave_review())


# --- Preferences ------------------------------------------------------------------


@router.post("/sessions/{storage_key}/sound/toggle", response_model=SoundPreferenceOut)
async def toggle_sound(storage_key: str, registry: Registry):
    engine = _engine_or_404(registry, storage_key)
    enabled = engine.toggle_sound_preference()
    registry.sync_sound(enabled)
    return {"sound_enabled": enabled}


@router.get("/preferences/sound", response_model=SoundPreferenceOut)
async def sound_preference(registry: Registry):
    return {"sound_enabled": registry.store.get_preference(SOUND_PREFERENCE_KEY, "true") == "true"}
