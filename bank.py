# bank.py

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from engine.config import QUESTION_DATA_DIR, STORAGE_KEY_PREFIX
from engine.question import Question, flatten_bank
from questions import QUIZZES

logger = logging.getLogger(__name__)


@dataclass
class Quiz:
    id: str
    title: str
    description: str = ""
    category: Optional[str] = None
    storage_key: str = ""
    questions: List[Question] = field(default_factory=list)


def _iter_jsonl(p: Path) -> Iterable[Any]:
    with p.open("r", encoding="utf-8") as f:
        for idx, line in enumerate(f, 1):
            s = line.strip()
            if not s or s.startswith("#") or s.startswith("//"):
                continue
            try:
                yield json.loads(s)
            except json.JSONDecodeError:
                # Skip malformed rows instead of dropping the whole quiz
                logger.warning("Skipping malformed line %d in %s", idx, p.name)
                continue


def _read_json(p: Path) -> Any:
    with p.open("r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError:
            logger.warning("Skipping malformed quiz file %s", p.name)
            return None


def _build_quiz(quiz_id: str, data: Any) -> Optional[Quiz]:
    if isinstance(data, list):
        meta: Dict[str, Any] = {}
        items: Any = data
    elif isinstance(data, dict):
        meta = data
        items = data.get("items") or data.get("questions") or []
    else:
        return None
    if not isinstance(items, list):
        logger.warning("Quiz %r has no item list; skipping", quiz_id)
        return None

    title = str(meta.get("title") or quiz_id)
    category = meta.get("category")
    questions = flatten_bank(items, default_category=category, source_title=title)
    if not questions:
        return None
    return Quiz(
        id=quiz_id,
        title=title,
        description=str(meta.get("description") or ""),
        category=category if isinstance(category, str) else None,
        storage_key=str(meta.get("storageKey") or f"{STORAGE_KEY_PREFIX}{quiz_id}"),
        questions=questions,
    )


class QuizBank:
    _quizzes: Dict[str, Quiz] = {}
    data_dir: Path = QUESTION_DATA_DIR

    @classmethod
    def load(cls) -> Dict[str, Quiz]:
        if not cls._quizzes:
            cls.reload()
        return cls._quizzes

    @classmethod
    def reload(cls) -> int:
        quizzes: Dict[str, Quiz] = {}

        if cls.data_dir.exists():
            for p in sorted(cls.data_dir.rglob("*")):
                if not p.is_file():
                    continue
                suf = p.suffix.lower()
                if suf == ".jsonl":
                    data: Any = list(_iter_jsonl(p))
                elif suf == ".json":
                    data = _read_json(p)
                else:
                    continue
                quiz = _build_quiz(p.stem, data)
                if quiz is not None:
                    quizzes[quiz.id] = quiz

        # Fall back to the built-in sample quizzes if nothing valid loaded
        if not quizzes:
            for quiz_id, data in QUIZZES.items():
                quiz = _build_quiz(quiz_id, data)
                if quiz is not None:
                    quizzes[quiz.id] = quiz

        cls._quizzes = quizzes
        logger.info("Loaded %d quiz(zes)", len(quizzes))
        return len(cls._quizzes)


# Public API
def get_quizzes() -> List[Quiz]:
    return list(QuizBank.load().values())


def get_quiz(quiz_id: str) -> Optional[Quiz]:
    return QuizBank.load().get(quiz_id)


def reload_bank() -> int:
    return QuizBank.reload()
