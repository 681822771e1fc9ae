# engine/analytics.py
"""End-of-session scoring: elapsed time, category breakdown, best/worst topic."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from engine.config import NO_SPECIFIC, RESULT_BANDS, ResultBand
from engine.evaluator import RecordedAnswer
from engine.timer import TimerMode


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def percent(correct: int, total: int) -> int:
    return round_half_up(correct / total * 100) if total > 0 else 0


@dataclass
class CategoryStat:
    correct: int = 0
    total: int = 0
    subcategories: Dict[str, "CategoryStat"] = field(default_factory=dict)

    @property
    def percentage(self) -> int:
        return percent(self.correct, self.total)

    def add(self, is_correct: bool) -> None:
        self.total += 1
        if is_correct:
            self.correct += 1

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "correct": self.correct,
            "total": self.total,
            "percentage": self.percentage,
        }
        if self.subcategories:
            out["subcategories"] = {k: v.to_dict() for k, v in self.subcategories.items()}
        return out


@dataclass
class SessionReport:
    title: str
    total_questions: int
    correct: int
    incorrect: int
    answered: int
    percentage: int
    elapsed_seconds: float
    formatted_time: str
    average_seconds_per_question: float
    categories: Dict[str, CategoryStat]
    best_topic: Optional[str]
    worst_topic: Optional[str]
    band: ResultBand

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "total_questions": self.total_questions,
            "correct": self.correct,
            "incorrect": self.incorrect,
            "answered": self.answered,
            "percentage": self.percentage,
            "elapsed_seconds": self.elapsed_seconds,
            "formatted_time": self.formatted_time,
            "average_seconds_per_question": self.average_seconds_per_question,
            "categories": {k: v.to_dict() for k, v in self.categories.items()},
            "best_topic": self.best_topic,
            "worst_topic": self.worst_topic,
            "band": {"key": self.band.key, "title": self.band.title, "message": self.band.message},
        }


def elapsed_seconds(
    timer_mode: TimerMode,
    initial_time: int,
    time_left: int,
    total_time_spent: float,
    open_segment: float = 0.0,
) -> float:
    """Seconds spent on the session.

    An overall countdown is its own stopwatch; every other mode sums the
    segments accumulated across save/resume plus the one still open.
    """
    if timer_mode is TimerMode.OVERALL and initial_time > 0:
        elapsed = float(initial_time - time_left)
    else:
        elapsed = float(total_time_spent) + float(open_segment)
    return max(0.0, elapsed)


def format_time(seconds: float) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def category_stats(answers: Iterable[Optional[RecordedAnswer]]) -> Dict[str, CategoryStat]:
    stats: Dict[str, CategoryStat] = {}
    for answer in answers:
        if answer is None:
            continue
        main = stats.setdefault(answer.category.main, CategoryStat())
        main.add(answer.is_correct)
        for name in answer.category.specific or [NO_SPECIFIC]:
            main.subcategories.setdefault(name, CategoryStat()).add(answer.is_correct)
    return stats


def best_and_worst(stats: Dict[str, CategoryStat]) -> Tuple[Optional[str], Optional[str]]:
    """Names of the strongest and weakest specific subcategory.

    Requires at least two named subcategories and a real spread between them;
    a flat profile reports nothing.
    """
    scored: List[Tuple[float, str]] = []
    for main in stats.values():
        for name, sub in main.subcategories.items():
            if name != NO_SPECIFIC and sub.total > 0:
                scored.append((sub.correct / sub.total * 100, name))
    if len(scored) <= 1:
        return None, None
    scored.sort(key=lambda item: item[0])
    if scored[-1][0] > scored[0][0]:
        return scored[-1][1], scored[0][1]
    return None, None


def result_band(percentage: int, bands: Sequence[ResultBand] = RESULT_BANDS) -> ResultBand:
    for band in bands:
        if percentage >= band.min_percentage:
            return band
    return bands[-1]


def build_report(
    *,
    title: str,
    answers: Sequence[Optional[RecordedAnswer]],
    score: int,
    timer_mode: TimerMode,
    initial_time: int,
    time_left: int,
    total_time_spent: float,
    open_segment: float = 0.0,
) -> SessionReport:
    total = len(answers)
    answered = sum(1 for a in answers if a is not None)
    elapsed = elapsed_seconds(timer_mode, initial_time, time_left, total_time_spent, open_segment)
    pct = percent(score, total)
    categories = category_stats(answers)
    best, worst = best_and_worst(categories)
    return SessionReport(
        title=title,
        total_questions=total,
        correct=score,
        incorrect=total - score,
        answered=answered,
        percentage=pct,
        elapsed_seconds=round(elapsed, 3),
        formatted_time=format_time(elapsed),
        average_seconds_per_question=round(elapsed / total, 1) if total else 0.0,
        categories=categories,
        best_topic=best,
        worst_topic=worst,
        band=result_band(pct),
    )
