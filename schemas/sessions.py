# schemas/sessions.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from engine.timer import TimerMode
from schemas.marking import Answer
from schemas.questions import CategoryOut, QuestionOut

# ---------- Requests ----------


class StartSessionRequest(BaseModel):
    # Either a bank quiz or inline questions (custom quiz)
    quiz_id: Optional[str] = None
    questions: Optional[List[Any]] = None
    storage_key: Optional[str] = Field(default=None, max_length=128)
    title: Optional[str] = None
    timer_mode: TimerMode = TimerMode.NONE
    custom_duration: Optional[int] = Field(default=None, ge=0)
    seed: Optional[int] = None


class SubmitRequest(BaseModel):
    answer: Answer = None


class ResumeRequest(BaseModel):
    quiz_id: Optional[str] = None
    title: Optional[str] = None
    # Start over with the quiz's questions when nothing valid is saved
    start_fresh: bool = True
    timer_mode: TimerMode = TimerMode.NONE
    custom_duration: Optional[int] = Field(default=None, ge=0)
    snapshot: Optional[Dict[str, Any]] = None


class ViewResultsRequest(BaseModel):
    quiz_id: Optional[str] = None
    title: Optional[str] = None
    snapshot: Optional[Dict[str, Any]] = None


class ReviewRequest(BaseModel):
    show_all: bool = False
    main_category: Optional[str] = None


# ---------- Responses ----------


class TimerOut(BaseModel):
    mode: TimerMode
    display: Optional[str] = None
    time_left: int
    initial_time: int
    running: bool
    urgency: str
    pulse: bool


class RecordedAnswerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    question_ref: str
    question: str
    selected: Union[str, List[str], None] = None
    correct: Union[str, List[str]]
    is_correct: bool
    category: CategoryOut
    explanation: Optional[str] = None
    reason: str
    source_title: Optional[str] = None


class SessionStateOut(BaseModel):
    status: str
    storage_key: str
    title: str
    current_index: int
    total_questions: int
    answered_count: int
    score: int
    finished: bool
    timer: TimerOut
    sound_enabled: bool
    question: Optional[QuestionOut] = None
    answer: Optional[RecordedAnswerOut] = None
    attempt_id: Optional[int] = None


class ActionOut(BaseModel):
    ok: bool
    error: Optional[str] = None
    sound: Optional[str] = None
    answer: Optional[RecordedAnswerOut] = None
    state: SessionStateOut


class HintOut(BaseModel):
    ok: bool
    hint: Optional[str] = None


class ReviewOut(BaseModel):
    ok: bool
    error: Optional[str] = None
    categories: List[str] = []
    items: List[RecordedAnswerOut] = []
    state: SessionStateOut


class BandOut(BaseModel):
    key: str
    title: str
    message: str


class ReportOut(BaseModel):
    title: str
    total_questions: int
    correct: int
    incorrect: int
    answered: int
    percentage: int
    elapsed_seconds: float
    formatted_time: str
    average_seconds_per_question: float
    categories: Dict[str, Any]
    best_topic: Optional[str] = None
    worst_topic: Optional[str] = None
    band: BandOut


class SoundPreferenceOut(BaseModel):
    ok: bool = True
    sound_enabled: bool
