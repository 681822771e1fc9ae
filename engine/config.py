# engine/config.py
"""Tunables for the quiz session engine.

Every value can be overridden from the environment; unparseable overrides
fall back to the default instead of failing at import.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, NamedTuple


def _parse_int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# --- Timer -----------------------------------------------------------------------
PER_QUESTION_SECONDS = _parse_int_env("QUIZ_PER_QUESTION_SECONDS", 90)
OVERALL_SECONDS_PER_QUESTION = _parse_int_env("QUIZ_OVERALL_SECONDS_PER_QUESTION", 75)
TICK_INTERVAL_SECONDS = _parse_float_env("QUIZ_TICK_INTERVAL_SECONDS", 1.0)
LOW_TIME_SECONDS = 10

# --- Categories ------------------------------------------------------------------
UNCATEGORIZED = "Uncategorized"
NO_SPECIFIC = "—"  # bucket for answers with only a main category

# --- Storage ---------------------------------------------------------------------
STORAGE_KEY_PREFIX = "quizState-"
SOUND_PREFERENCE_KEY = "quizSoundEnabled"
QUESTION_DATA_DIR = Path(os.environ.get("QUIZ_DATA_DIR", Path.cwd() / "data" / "quizzes"))


# --- Result bands ----------------------------------------------------------------
class ResultBand(NamedTuple):
    min_percentage: int
    key: str
    title: str
    message: str


# Checked top-down; the first band whose threshold is met wins.
RESULT_BANDS: List[ResultBand] = [
    ResultBand(90, "perfect", "Outstanding!", "A near-perfect score. Your understanding is excellent."),
    ResultBand(75, "great", "Great job!", "Great work, your knowledge is solid."),
    ResultBand(50, "good", "Well done!", "Good effort. A little more review and you'll have it."),
    ResultBand(0, "effort", "Nice try!", "Don't give up. Review the explanations and try again."),
]

# --- HTTP ------------------------------------------------------------------------
CORS_ORIGINS = [
    o.strip()
    for o in os.environ.get(
        "QUIZ_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    ).split(",")
    if o.strip()
]
