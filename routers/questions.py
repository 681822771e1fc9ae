from __future__ import annotations

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from bank import Quiz, get_quiz, get_quizzes
from deps.sessions import SessionRegistry, get_registry
from schemas.questions import QuestionOut, QuizOut, QuizProgressOut, QuizSummaryOut

router = APIRouter(tags=["quizzes"])

Registry = Annotated[SessionRegistry, Depends(get_registry)]


def _summary(quiz: Quiz) -> dict:
    return {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "category": quiz.category,
        "storage_key": quiz.storage_key,
        "question_count": len(quiz.questions),
    }


def _progress(registry: SessionRegistry, quiz: Quiz) -> QuizProgressOut:
    p = registry.store.progress(quiz.storage_key, len(quiz.questions))
    return QuizProgressOut(
        quiz_id=quiz.id,
        title=quiz.title,
        storage_key=quiz.storage_key,
        has_progress=p["hasProgress"],
        is_finished=p["isFinished"],
        answered_count=p["answeredCount"],
        total_questions=p["totalQuestions"],
        score=p["score"],
        percentage=p["percentage"],
        last_attempt_timestamp=p["lastAttemptTimestamp"],
    )


@router.get("/quizzes", response_model=List[QuizSummaryOut])
def list_quizzes(
    category: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=100),
):
    qs = get_quizzes()

    if category:
        qs = [q for q in qs if q.category == category]

    if limit is not None:
        qs = qs[:limit]

    return [_summary(q) for q in qs]


@router.get("/quizzes/{quiz_id}", response_model=QuizOut)
def get_quiz_detail(quiz_id: str):
    quiz = get_quiz(quiz_id)
    if not quiz:
        raise HTTPException(status_code=404, detail="quiz not found")
    return {**_summary(quiz), "questions": [QuestionOut.from_question(q) for q in quiz.questions]}


@router.get("/quizzes/{quiz_id}/progress", response_model=QuizProgressOut)
def quiz_progress(quiz_id: str, registry: Registry):
    quiz = get_quiz(quiz_id)
    if not quiz:
        raise HTTPException(status_code=404, detail="quiz not found")
    return _progress(registry, quiz)


@router.get("/progress", response_model=List[QuizProgressOut])
def all_progress(registry: Registry):
    # most recently played first, untouched quizzes last
    rows = [_progress(registry, q) for q in get_quizzes()]
    rows.sort(key=lambda r: r.last_attempt_timestamp, reverse=True)
    return rows
