# engine/question.py
"""Question model: one internal shape for every question record.

Question banks in the wild mix several generations of the record format
(``question``/``text``, ``answer``/``correctAnswer``, string or structured
``subCategory``). :func:`normalize` folds all of them into :class:`Question`
and never raises: a malformed record becomes a best-effort question instead of
aborting the whole session.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Dict, Iterable, List, Literal, Optional, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from engine.config import UNCATEGORIZED

logger = logging.getLogger(__name__)

QuestionType = Literal["single-choice", "multi-select", "fill-in-text", "fill-in-numeric"]
QUESTION_TYPES = get_args(QuestionType)

# Older banks used these names for the same variants.
_LEGACY_TYPES = {
    "multiple-choice": "single-choice",
    "single": "single-choice",
    "multiple-select": "multi-select",
    "fill-in": "fill-in-text",
    "fill-in-number": "fill-in-numeric",
}


class WireModel(BaseModel):
    """Base for everything that is persisted: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Category(WireModel):
    main: str = UNCATEGORIZED
    specific: List[str] = Field(default_factory=list)


class Question(WireModel):
    id: Optional[str] = None
    text: str = ""
    type: QuestionType = "single-choice"
    options: List[str] = Field(default_factory=list)
    correct_answer: Union[str, List[str]] = ""
    tolerance: float = 0.0
    unit: Optional[str] = None
    decimal_places: Optional[int] = None
    explanation: Optional[str] = None
    hint: Optional[str] = None
    category: Category = Field(default_factory=Category)
    source_title: Optional[str] = None
    scenario_title: Optional[str] = None
    scenario_description: Optional[str] = None

    @property
    def ref(self) -> str:
        """Stable reference used in recorded answers: the id, else the text."""
        return self.id if self.id else self.text


# --- Field coercion ----------------------------------------------------------------


def _first(raw: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = _as_text(value)
    return text if text.strip() else None


def _normalize_type(value: Any) -> QuestionType:
    if value is None:
        return "single-choice"
    name = str(value).strip().lower()
    if name in QUESTION_TYPES:
        return name  # type: ignore[return-value]
    if name in _LEGACY_TYPES:
        return _LEGACY_TYPES[name]  # type: ignore[return-value]
    logger.warning("Unrecognized question type %r; treating it as single-choice", value)
    return "single-choice"


def _normalize_options(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        logger.warning("Question options are not a list (%s); using no options", type(value).__name__)
        return []
    return [_as_text(o) for o in value if o is not None]


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return [_as_text(v).strip() for v in value if v is not None]
    return [_as_text(value).strip()]


def _normalize_correct(qtype: QuestionType, value: Any) -> Union[str, List[str]]:
    if qtype in ("multi-select", "fill-in-text"):
        return [v for v in _as_list(value) if v]
    # Single-valued types: a list here is a bank mistake, keep its first entry.
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    return _as_text(value).strip()


def _as_tolerance(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return abs(float(value))
    except (TypeError, ValueError):
        logger.warning("Invalid tolerance %r; using exact match", value)
        return 0.0


def _as_decimal_places(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# --- Public API --------------------------------------------------------------------


def category_names(value: Any) -> Category:
    """Classify a string or ``{main, specific}`` category into a :class:`Category`."""
    if isinstance(value, Category):
        return value
    if isinstance(value, str):
        return Category(main=value) if value.strip() else Category()
    if isinstance(value, dict) and value.get("main"):
        specific = value.get("specific")
        if isinstance(specific, (list, tuple)):
            names = [_as_text(s) for s in specific if s]
        elif specific:
            names = [_as_text(specific)]
        else:
            names = []
        return Category(main=_as_text(value["main"]), specific=names)
    if value:
        logger.warning("Unrecognized category %r; using %s", value, UNCATEGORIZED)
    return Category()


def normalize(raw: Any) -> Question:
    """Return a :class:`Question` for any record shape. Never raises."""
    if isinstance(raw, Question):
        return raw
    if not isinstance(raw, dict):
        logger.warning("Question record is not an object (%s); using an empty question", type(raw).__name__)
        return Question()

    qtype = _normalize_type(raw.get("type"))
    fields: Dict[str, Any] = {
        "id": _as_optional_text(raw.get("id")),
        "text": _as_text(_first(raw, "text", "question")),
        "type": qtype,
        "options": _normalize_options(_first(raw, "options", "choices")),
        "correct_answer": _normalize_correct(
            qtype, _first(raw, "correctAnswer", "correct_answer", "answer")
        ),
        "tolerance": _as_tolerance(raw.get("tolerance")),
        "unit": _as_optional_text(raw.get("unit")),
        "decimal_places": _as_decimal_places(_first(raw, "decimalPlaces", "decimal_places")),
        "explanation": _as_optional_text(raw.get("explanation")),
        "hint": _as_optional_text(raw.get("hint")),
        "category": category_names(_first(raw, "category", "subCategory")),
        "source_title": _as_optional_text(_first(raw, "sourceTitle", "sourceQuizTitle")),
        "scenario_title": _as_optional_text(raw.get("scenarioTitle")),
        "scenario_description": _as_optional_text(raw.get("scenarioDescription")),
    }
    try:
        return Question(**fields)
    except ValidationError as e:
        logger.warning("Question %r could not be fully normalized: %s", fields["id"] or fields["text"][:40], e)
        return Question(text=fields["text"], type=qtype, category=fields["category"])


def flatten_bank(
    items: Iterable[Any],
    default_category: Any = None,
    source_title: Optional[str] = None,
) -> List[Question]:
    """Expand scenario wrappers and normalize every question.

    Scenario children inherit the scenario's category, then ``default_category``,
    when they carry none of their own. Null entries are dropped.
    """
    out: List[Question] = []
    for item in items or []:
        if not item:
            continue
        if (
            isinstance(item, dict)
            and item.get("type") == "scenario"
            and isinstance(item.get("questions"), list)
        ):
            inherited = _first(item, "category", "subCategory") or default_category
            for child in item["questions"]:
                if not child:
                    continue
                if isinstance(child, dict):
                    child = _with_defaults(child, inherited, source_title)
                    child.setdefault("scenarioTitle", item.get("title"))
                    child.setdefault("scenarioDescription", item.get("description"))
                out.append(normalize(child))
            continue
        if isinstance(item, dict):
            item = _with_defaults(item, default_category, source_title)
        out.append(normalize(item))
    return out


def _with_defaults(raw: Dict[str, Any], category: Any, source_title: Optional[str]) -> Dict[str, Any]:
    merged = dict(raw)
    if category and not _first(merged, "category", "subCategory"):
        merged["category"] = category
    if source_title and not _first(merged, "sourceTitle", "sourceQuizTitle"):
        merged["sourceTitle"] = source_title
    return merged


def shuffle_options(question: Question, rng: Optional[random.Random] = None) -> Question:
    if len(question.options) < 2:
        return question
    options = list(question.options)
    (rng or random).shuffle(options)
    return question.model_copy(update={"options": options})


def shuffle_questions(questions: Iterable[Any], rng: Optional[random.Random] = None) -> List[Question]:
    """Shuffled working copy of a bank: question order and each option list.

    The source sequence is never mutated.
    """
    rng = rng or random.Random()
    working = [normalize(q) for q in questions if q is not None]
    rng.shuffle(working)
    return [shuffle_options(q, rng) for q in working]
