# engine/evaluator.py
"""Answer evaluation: one pure function per question type.

Every evaluator takes ``(question, user_input)`` and returns a :class:`Verdict`.
:func:`record` turns a verdict into the :class:`RecordedAnswer` that gets
persisted; keeping the score and the answer list is the session engine's job.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Literal, Optional, Union, assert_never

from pydantic import Field
from sympy import nan, oo, preorder_traversal, zoo
from sympy.core.power import Pow
from sympy.parsing.sympy_parser import convert_xor, parse_expr, standard_transformations

from engine.question import Category, Question, WireModel

Selected = Union[str, List[str], None]
EvaluationReason = Literal["user", "timeout"]

# --- Numeric parsing guards ----------------------------------------------------------
LEN_LIMIT = 100
_ALLOWED_RE = re.compile(r"^[0-9+\-*/^().\s]{1,100}$")

# No implicit multiplication: "9 8" or "9..8" must not become a product
TRANSFORMS = standard_transformations + (convert_xor,)

# A number followed by a unit or other text, e.g. "9.8 m/s^2"
_LEADING_NUMBER_RE = re.compile(r"\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")

_MAX_OPS = 200
_MAX_INT_DIGITS = 200
_MAX_EXPONENT_ABS = 2000
_MAX_POWERS = 2

# Absorbs float representation error when comparing against a tolerance.
_FLOAT_SLACK = 1e-9


@dataclass(frozen=True)
class Verdict:
    is_correct: bool
    selected: Selected
    correct: Union[str, List[str]]


# --- Low-level helpers ---------------------------------------------------------------


def _num_to_clean_str(x: float) -> str:
    if math.isfinite(x) and abs(x - round(x)) < 1e-12:
        return str(int(round(x)))
    return str(x)


def _assert_expr_complexity(sym: Any) -> None:
    if getattr(sym, "is_number", False) is not True:
        raise ValueError("not a number")
    if sym.count_ops() > _MAX_OPS:
        raise ValueError("too complex")
    for node in preorder_traversal(sym):
        if getattr(node, "is_Integer", False) and len(str(abs(int(node)))) > _MAX_INT_DIGITS:
            raise ValueError("too complex")
        if isinstance(node, Pow) and getattr(node.exp, "is_number", False):
            if abs(float(node.exp)) > _MAX_EXPONENT_ABS:
                raise ValueError("too complex")


def parse_number(value: Any) -> Optional[float]:
    """Parse a user-typed number or simple numeric expression.

    Accepts ints/floats, plain numeric strings (fast path) and short arithmetic
    expressions such as ``49/5``. Returns ``None`` for anything else; never raises.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if not isinstance(value, str):
        return None

    s = value.strip()
    if not s or len(s) > LEN_LIMIT:
        return None

    try:
        f = float(s)
        return f if math.isfinite(f) else None
    except ValueError:
        pass

    if _ALLOWED_RE.fullmatch(s) is None:
        return None
    if s.count("^") + s.count("**") > _MAX_POWERS:
        return None

    try:
        sym = parse_expr(s, transformations=TRANSFORMS, evaluate=True)
        _assert_expr_complexity(sym)
        if sym in (oo, -oo, zoo, nan):
            return None
        f = float(sym.evalf())
    except Exception:
        # sympy raises a zoo of exception types for bad input; all mean "not a number"
        return None
    return f if math.isfinite(f) else None


def numeric_value(value: Any) -> Optional[float]:
    """Like :func:`parse_number`, but also reads the number at the start of text
    that carries a unit ("9.8 m/s^2" gives 9.8).

    The text after the number must not start with another digit or a dot, so
    "9 8" and "1.2.3" stay unparseable.
    """
    parsed = parse_number(value)
    if parsed is not None or not isinstance(value, str) or len(value) > LEN_LIMIT:
        return parsed
    m = _LEADING_NUMBER_RE.match(value)
    if m is None:
        return None
    rest = value[m.end():].lstrip()
    if not rest or rest[0].isdigit() or rest[0] == ".":
        return None
    f = float(m.group(1))
    return f if math.isfinite(f) else None


def _as_choice(user_input: Any) -> str:
    if user_input is None:
        return ""
    if isinstance(user_input, (list, tuple)):
        user_input = user_input[0] if user_input else ""
    return str(user_input).strip()


def _as_selection(user_input: Any) -> List[str]:
    if user_input is None:
        return []
    if isinstance(user_input, str):
        items: Iterable[Any] = [user_input]
    elif isinstance(user_input, (list, tuple, set, frozenset)):
        items = user_input
    else:
        items = [user_input]
    selected: List[str] = []
    for item in items:
        value = str(item).strip()
        if value and value not in selected:
            selected.append(value)
    return selected


def _correct_list(question: Question) -> List[str]:
    answer = question.correct_answer
    if isinstance(answer, list):
        return [a.strip() for a in answer]
    return [answer.strip()] if answer.strip() else []


def expected_display(question: Question) -> Union[str, List[str]]:
    """The normalized correct answer recorded alongside a verdict."""
    if question.type in ("multi-select", "fill-in-text"):
        return _correct_list(question)
    if question.type == "fill-in-numeric":
        value = numeric_value(question.correct_answer)
        shown = _num_to_clean_str(value) if value is not None else str(question.correct_answer)
        return f"{shown} {question.unit or ''}".strip()
    answer = question.correct_answer
    return answer.strip() if isinstance(answer, str) else ", ".join(answer)


# --- Evaluators ----------------------------------------------------------------------


def evaluate_single_choice(question: Question, user_input: Any) -> Verdict:
    selected = _as_choice(user_input)
    correct = expected_display(question)
    return Verdict(is_correct=bool(selected) and selected == correct, selected=selected, correct=correct)


def evaluate_multi_select(question: Question, user_input: Any) -> Verdict:
    selected = _as_selection(user_input)
    correct = _correct_list(question)
    return Verdict(is_correct=set(selected) == set(correct), selected=selected, correct=correct)


def evaluate_fill_in_text(question: Question, user_input: Any) -> Verdict:
    typed = "" if user_input is None else str(user_input)
    accepted = {a.lower() for a in _correct_list(question)}
    is_correct = bool(typed.strip()) and typed.strip().lower() in accepted
    return Verdict(is_correct=is_correct, selected=typed, correct=_correct_list(question))


def evaluate_fill_in_numeric(question: Question, user_input: Any) -> Verdict:
    value = numeric_value(user_input)
    expected = numeric_value(question.correct_answer)
    is_correct = (
        value is not None
        and expected is not None
        and abs(value - expected) <= question.tolerance + _FLOAT_SLACK
    )
    selected = None if value is None else str(user_input).strip()
    return Verdict(is_correct=is_correct, selected=selected, correct=expected_display(question))


def evaluate(question: Question, user_input: Any) -> Verdict:
    """Dispatch to the evaluator for ``question.type``."""
    match question.type:
        case "single-choice":
            return evaluate_single_choice(question, user_input)
        case "multi-select":
            return evaluate_multi_select(question, user_input)
        case "fill-in-text":
            return evaluate_fill_in_text(question, user_input)
        case "fill-in-numeric":
            return evaluate_fill_in_numeric(question, user_input)
        case _:
            assert_never(question.type)


def timeout_verdict(question: Question) -> Verdict:
    """Verdict for a question whose time ran out: nothing selected, incorrect."""
    selected: Selected = [] if question.type == "multi-select" else None
    return Verdict(is_correct=False, selected=selected, correct=expected_display(question))


# --- Recorded answers ----------------------------------------------------------------


class RecordedAnswer(WireModel):
    question_ref: str
    question: str = ""
    selected: Selected = None
    correct: Union[str, List[str]] = ""
    is_correct: bool = False
    category: Category = Field(default_factory=Category)
    explanation: Optional[str] = None
    reason: EvaluationReason = "user"
    source_title: Optional[str] = None


def record(question: Question, verdict: Verdict, reason: EvaluationReason = "user") -> RecordedAnswer:
    return RecordedAnswer(
        question_ref=question.ref,
        question=question.text,
        selected=verdict.selected,
        correct=verdict.correct,
        is_correct=verdict.is_correct,
        category=question.category,
        explanation=question.explanation,
        reason=reason,
        source_title=question.source_title,
    )
