from __future__ import annotations

from fastapi import APIRouter

from bank import get_quiz
from engine.evaluator import LEN_LIMIT, evaluate, parse_number
from schemas.marking import EvaluateRequest, EvaluateResponse, MarkRequest, MarkResponse

_NOT_A_NUMBER_MSG = (
    "Only numbers or numeric expressions using digits, spaces, + - * / ^ . and parentheses are allowed."
)

router = APIRouter(tags=["marking"])


@router.post("/evaluate", response_model=EvaluateResponse)
def evaluate_expr(req: EvaluateRequest):
    if not req.expr.strip():
        return {"ok": False, "value": None, "feedback": "Answer required."}
    if len(req.expr) > LEN_LIMIT:
        return {"ok": False, "value": None, "feedback": f"Answer too long (> {LEN_LIMIT})."}
    value = parse_number(req.expr)
    if value is None:
        return {"ok": False, "value": None, "feedback": _NOT_A_NUMBER_MSG}
    return {"ok": True, "value": value}


@router.post("/mark", response_model=MarkResponse)
def mark(req: MarkRequest):
    """Stateless check of one bank question; nothing is recorded."""
    quiz = get_quiz(req.quiz_id)
    q = next((qq for qq in quiz.questions if qq.id == req.question_id), None) if quiz else None
    if not q:
        return {"ok": False, "correct": False, "score": 0, "feedback": "unknown question id"}

    verdict = evaluate(q, req.answer)
    feedback = ""
    if q.type == "fill-in-numeric" and verdict.selected is None:
        feedback = _NOT_A_NUMBER_MSG
    return {
        "ok": True,
        "correct": verdict.is_correct,
        "score": 1 if verdict.is_correct else 0,
        "feedback": feedback,
        "selected": verdict.selected,
        "expected": verdict.correct,
        "explanation": q.explanation,
    }
