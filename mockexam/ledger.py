"""Per-session answer ledger: question id -> selected option label."""
import logging
from typing import Iterable, Iterator

from mockexam.errors import SessionStateError
from mockexam.models import Question

logger = logging.getLogger(__name__)


class AnswerLedger:
    """
    Last-write-wins mapping of answers for the active question set.

    Only ids from the active set are accepted, and only labels that belong to the
    question. Once frozen (on entry to finalization) every further write is refused.
    """

    def __init__(self, questions: Iterable[Question] = ()):
        self._questions = {q.id: q for q in questions}
        self._answers: dict[int, str] = {}
        self._frozen = False

    def record(self, question_id: int, label: str) -> None:
        if self._frozen:
            raise SessionStateError("Answers are closed for this session")
        question = self._questions.get(question_id)
        if question is None:
            raise KeyError(f"Question {question_id} is not in the active set")
        if not question.has_label(label):
            raise ValueError(f"Option {label!r} is not valid for question {question_id}")
        previous = self._answers.get(question_id)
        self._answers[question_id] = label
        logger.debug("Answer Q%d: %s -> %s", question_id, previous, label)

    def get(self, question_id: int) -> str | None:
        return self._answers.get(question_id)

    def is_answered(self, question_id: int) -> bool:
        return question_id in self._answers

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def snapshot(self) -> dict[int, str]:
        """Copy of the current answers; later writes never reach it."""
        return dict(self._answers)

    def __len__(self) -> int:
        return len(self._answers)

    def __iter__(self) -> Iterator[int]:
        return iter(self._answers)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._answers
