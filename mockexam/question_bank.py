"""
Question bank: load the static JSONL table, validate it, and select the active set per track.
The bank is read-only configuration data; it is loaded once and never mutated.
"""
import json
import logging
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from mockexam.engine import BIOLOGICAL_ID_RANGE, COMMON_ID_RANGES, ENGINEERING_ID_RANGE
from mockexam.errors import QuestionBankError
from mockexam.models import Option, Question, Subject, Track

logger = logging.getLogger(__name__)

DEFAULT_BANK_PATH = Path(__file__).resolve().parent / "data" / "questions.jsonl"

TRACK_ID_RANGES = {
    Track.BIOLOGICAL: BIOLOGICAL_ID_RANGE,
    Track.ENGINEERING: ENGINEERING_ID_RANGE,
}


def _in_range(qid: int, bounds: tuple[int, int]) -> bool:
    lo, hi = bounds
    return lo <= qid <= hi


def _check_ranges_disjoint():
    ranges = list(COMMON_ID_RANGES) + list(TRACK_ID_RANGES.values())
    ordered = sorted(ranges)
    for (_, prev_hi), (lo, _) in zip(ordered, ordered[1:]):
        if lo <= prev_hi:
            raise QuestionBankError(f"Question id ranges overlap: {ordered}")


_check_ranges_disjoint()


def is_common(qid: int) -> bool:
    return any(_in_range(qid, r) for r in COMMON_ID_RANGES)


def applies_to(question: Question, track: Track) -> bool:
    """Track-applicability rule: common ranges for everyone, plus the track's own block."""
    return is_common(question.id) or _in_range(question.id, TRACK_ID_RANGES[track])


def parse_question(raw: dict, line_no: int = 0) -> Question:
    """Build a Question from one decoded row. Raises QuestionBankError on any schema problem."""
    where = f"line {line_no}" if line_no else "row"
    try:
        qid = int(raw["id"])
        subject = Subject(raw["subject"])
        text = str(raw["text"]).strip()
        options = tuple(Option(label=str(o["label"]), text=str(o["text"])) for o in raw["options"])
        correct = str(raw["correct_answer"])
    except (KeyError, TypeError, ValueError) as e:
        raise QuestionBankError(f"Malformed question at {where}: {e}") from e

    if qid <= 0:
        raise QuestionBankError(f"Question id must be positive at {where}: {qid}")
    if not text:
        raise QuestionBankError(f"Question {qid} has empty text")
    labels = [o.label for o in options]
    if len(options) < 2:
        raise QuestionBankError(f"Question {qid} needs at least two options")
    if len(set(labels)) != len(labels):
        raise QuestionBankError(f"Question {qid} has duplicate option labels: {labels}")
    if correct not in labels:
        raise QuestionBankError(f"Question {qid} correct answer {correct!r} not among {labels}")
    return Question(id=qid, subject=subject, text=text, options=options, correct_answer=correct)


def iter_questions(path: Path) -> Iterator[Question]:
    """Read JSONL and yield validated questions. Blank lines are skipped."""
    with path.open("r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                raw = json.loads(line)
            except json.JSONDecodeError as e:
                raise QuestionBankError(f"Invalid JSON at line {line_no}: {e}") from e
            yield parse_question(raw, line_no)


class QuestionBank:
    """Immutable, id-ordered collection of questions."""

    def __init__(self, questions: Iterable[Question]):
        by_id: dict[int, Question] = {}
        for q in questions:
            if q.id in by_id:
                raise QuestionBankError(f"Duplicate question id {q.id}")
            by_id[q.id] = q
        self._questions: tuple[Question, ...] = tuple(by_id[k] for k in sorted(by_id))
        self._by_id = by_id

    @classmethod
    def from_jsonl(cls, path: Path | str | None = None) -> "QuestionBank":
        path = Path(path) if path else DEFAULT_BANK_PATH
        if not path.exists():
            raise QuestionBankError(f"Question bank not found: {path}")
        bank = cls(iter_questions(path))
        logger.info("Loaded %d questions from %s", len(bank), path)
        return bank

    def __len__(self) -> int:
        return len(self._questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    def __contains__(self, qid: object) -> bool:
        return qid in self._by_id

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._questions

    def get(self, qid: int) -> Question | None:
        return self._by_id.get(qid)

    def subject_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for q in self._questions:
            counts[q.subject.value] = counts.get(q.subject.value, 0) + 1
        return counts


def active_question_set(bank: QuestionBank | Sequence[Question], track: Track) -> tuple[Question, ...]:
    """
    Ordered questions active for a session on the given track.

    Common-range questions plus the track's own range, ascending by id. Pure: the same
    bank and track always give the same tuple, and the other track's block never appears.
    """
    track = Track(track)
    return tuple(sorted((q for q in bank if applies_to(q, track)), key=lambda q: q.id))
