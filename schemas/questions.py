# schemas/questions.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from engine.question import Question


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    main: str
    specific: List[str] = []


class QuestionOut(BaseModel):
    """A question as shown to the player: no correct answer, no explanation."""

    id: Optional[str] = None
    text: str
    type: str
    options: List[str] = []
    unit: Optional[str] = None
    decimal_places: Optional[int] = None
    has_hint: bool = False
    category: CategoryOut
    source_title: Optional[str] = None
    scenario_title: Optional[str] = None
    scenario_description: Optional[str] = None

    @classmethod
    def from_question(cls, q: Question) -> "QuestionOut":
        return cls(
            id=q.id,
            text=q.text,
            type=q.type,
            options=list(q.options),
            unit=q.unit,
            decimal_places=q.decimal_places,
            has_hint=bool(q.hint),
            category=CategoryOut.model_validate(q.category),
            source_title=q.source_title,
            scenario_title=q.scenario_title,
            scenario_description=q.scenario_description,
        )


class QuizSummaryOut(BaseModel):
    id: str
    title: str
    description: str = ""
    category: Optional[str] = None
    storage_key: str
    question_count: int


class QuizOut(QuizSummaryOut):
    questions: List[QuestionOut]


class QuizProgressOut(BaseModel):
    quiz_id: str
    title: str
    storage_key: str
    has_progress: bool
    is_finished: bool
    answered_count: int
    total_questions: int
    score: int
    percentage: int
    last_attempt_timestamp: int
