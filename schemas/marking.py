# schemas/marking.py
from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel

Answer = Union[str, List[str], float, None]

# ---------- Evaluate ----------


class EvaluateRequest(BaseModel):
    expr: str


class EvaluateResponse(BaseModel):
    ok: bool
    value: Optional[float] = None
    feedback: Optional[str] = None


# ---------- Mark single ----------


class MarkRequest(BaseModel):
    quiz_id: str
    question_id: str
    answer: Answer = None


class MarkResponse(BaseModel):
    ok: bool
    correct: bool
    score: int
    feedback: str = ""
    selected: Union[str, List[str], None] = None
    expected: Union[str, List[str], None] = None
    explanation: Optional[str] = None
