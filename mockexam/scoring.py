"""
Scoring: exact label match, +1 per correct answer, no negative marking or partial credit.
Pure functions; safe to call again on retry with the same inputs.
"""
from dataclasses import dataclass
from typing import Dict, Mapping, Sequence

from mockexam.engine import PASS_PERCENTAGE
from mockexam.models import Question


@dataclass(frozen=True)
class ScoreSummary:
    score: int
    total_possible: int

    def __post_init__(self):
        if not 0 <= self.score <= self.total_possible:
            raise ValueError(f"score {self.score} outside 0..{self.total_possible}")

    @property
    def percentage(self) -> int:
        if self.total_possible == 0:
            return 0
        return round(self.score / self.total_possible * 100)

    @property
    def passed(self) -> bool:
        return self.percentage >= PASS_PERCENTAGE


def score(active_set: Sequence[Question], ledger: Mapping[int, str]) -> ScoreSummary:
    """Count questions whose recorded label equals the correct label (case-sensitive)."""
    correct = sum(1 for q in active_set if ledger.get(q.id) == q.correct_answer)
    return ScoreSummary(score=correct, total_possible=len(active_set))


def subject_breakdown(active_set: Sequence[Question], ledger: Mapping[int, str]) -> Dict[str, Dict[str, int]]:
    """
    Per-subject totals for the result statement.

    Returns:
        {subject: {"total", "answered", "correct"}} in order of first appearance
    """
    stats: Dict[str, Dict[str, int]] = {}
    for q in active_set:
        row = stats.setdefault(q.subject.value, {"total": 0, "answered": 0, "correct": 0})
        row["total"] += 1
        chosen = ledger.get(q.id)
        if chosen is not None:
            row["answered"] += 1
            if chosen == q.correct_answer:
                row["correct"] += 1
    return stats
