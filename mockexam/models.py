"""Data model: subjects, tracks, questions, persisted results."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

logger = logging.getLogger(__name__)


class Subject(str, Enum):
    ENG = "Use of English"
    CHM = "Chemistry"
    PHY = "Physics"
    BIO = "Biology"
    MTH = "Mathematics"


class Track(str, Enum):
    BIOLOGICAL = "Biological Sciences"
    ENGINEERING = "Engineering & Applied Sciences"

    @property
    def short_name(self) -> str:
        return "Biological" if self is Track.BIOLOGICAL else "Engineering"


class Step(str, Enum):
    WELCOME = "welcome"
    IN_PROGRESS = "exam"
    FINALIZING = "finalizing"
    COMPLETE = "result"
    ADMIN_LOGIN = "admin-login"
    ADMIN_PANEL = "admin-panel"


@dataclass(frozen=True)
class Option:
    label: str
    text: str


@dataclass(frozen=True)
class Question:
    id: int
    subject: Subject
    text: str
    options: tuple[Option, ...]
    correct_answer: str

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(o.label for o in self.options)

    def has_label(self, label: str) -> bool:
        return label in self.labels


@dataclass(frozen=True)
class Result:
    """A scored attempt. Created once per completed session, never mutated."""

    id: str
    name: str
    course: str
    track: Track
    access_code: str
    score: int
    total_possible: int
    timestamp: int  # epoch milliseconds
    answers: Mapping[int, str] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        # Read-only copy
        object.__setattr__(self, "answers", MappingProxyType(dict(self.answers)))

    @property
    def percentage(self) -> int:
        if not self.total_possible:
            return 0
        return round(self.score / self.total_possible * 100)

    def to_dict(self) -> dict:
        """Wire format shared with every store backend (camelCase, JSON-safe)."""
        return {
            "id": self.id,
            "name": self.name,
            "course": self.course,
            "track": self.track.value,
            "accessCode": self.access_code,
            "score": self.score,
            "totalPossible": self.total_possible,
            "timestamp": self.timestamp,
            "answers": {str(k): v for k, v in self.answers.items()},
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "Result":
        answers = raw.get("answers") or {}
        return cls(
            id=str(raw["id"]),
            name=raw.get("name", ""),
            course=raw.get("course", ""),
            track=Track(raw["track"]),
            access_code=raw.get("accessCode", ""),
            score=int(raw.get("score", 0)),
            total_possible=int(raw.get("totalPossible", 0)),
            timestamp=int(raw.get("timestamp", 0)),
            answers={int(k): str(v) for k, v in answers.items()},
        )


@dataclass(frozen=True)
class StoreSnapshot:
    results: tuple[Result, ...] = ()
    used_codes: tuple[str, ...] = ()

    def code_is_used(self, code: str) -> bool:
        return code in self.used_codes or any(r.access_code == code for r in self.results)

    def to_dict(self) -> dict:
        return {
            "results": [r.to_dict() for r in self.results],
            "usedCodes": list(self.used_codes),
        }

    @classmethod
    def from_dict(cls, raw: dict | None) -> "StoreSnapshot":
        """
        Parse a stored document. Records that cannot be read are skipped, but an
        access code found on one still counts as used.
        """
        raw = raw or {}
        results = []
        used_codes = list(raw.get("usedCodes") or [])
        for entry in raw.get("results") or []:
            try:
                results.append(Result.from_dict(entry))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable stored result: %s", e)
                code = entry.get("accessCode") if isinstance(entry, dict) else None
                if isinstance(code, str) and code and code not in used_codes:
                    used_codes.append(code)
        return cls(results=tuple(results), used_codes=tuple(used_codes))
