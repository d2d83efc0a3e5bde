"""
Access gate: deadline, allow-list and single-use checks before a session may start.

Outcomes are values (Admitted / Rejected), never exceptions. The used-code lookup
is a plain read: nothing is reserved at admission, so two devices presenting the
same code at the same moment can both pass. The code only becomes used once a
Result carrying it is written.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from mockexam import engine
from mockexam.errors import StoreError
from mockexam.settings import ExamSettings
from mockexam.store import ResultStore

logger = logging.getLogger(__name__)


class RejectReason(str, Enum):
    MISSING_DETAILS = "missing_details"
    REGISTRATION_CLOSED = "registration_closed"
    INVALID_CODE = "invalid_code"
    CODE_ALREADY_USED = "code_already_used"
    NETWORK_FAILURE = "network_failure"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    RejectReason.MISSING_DETAILS: "ENTER NAME, COURSE AND ACCESS CODE",
    RejectReason.REGISTRATION_CLOSED: "REGISTRATION CLOSED",
    RejectReason.INVALID_CODE: "INVALID ACCESS CODE",
    RejectReason.CODE_ALREADY_USED: "CODE ALREADY USED",
    RejectReason.NETWORK_FAILURE: "COULD NOT VERIFY CODE, TRY AGAIN",
}


@dataclass(frozen=True)
class Admitted:
    code: str
    name: str
    course: str
    verified: bool = True  # False when the used-code lookup failed and the gate failed open

    admitted = True


@dataclass(frozen=True)
class Rejected:
    reason: RejectReason

    admitted = False

    @property
    def message(self) -> str:
        return self.reason.message


Admission = Union[Admitted, Rejected]


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccessGate:
    def __init__(
        self,
        store: ResultStore,
        allowed_codes: Iterable[str] = engine.ALLOWED_CODES,
        closes_at: Optional[datetime] = None,
        timeout: float = engine.CODE_CHECK_TIMEOUT_SECONDS,
        fail_open: bool = engine.CODE_CHECK_FAIL_OPEN,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.allowed_codes = frozenset(normalize_code(c) for c in allowed_codes)
        self.closes_at = closes_at
        self.timeout = timeout
        self.fail_open = fail_open
        self._clock = clock

    @classmethod
    def from_settings(cls, store: ResultStore, settings: ExamSettings, **kwargs) -> "AccessGate":
        return cls(
            store,
            allowed_codes=settings.allowed_codes,
            closes_at=settings.closes_at,
            timeout=settings.code_check_timeout,
            fail_open=settings.fail_open,
            **kwargs,
        )

    def registration_open(self, now: Optional[datetime] = None) -> bool:
        """Checked against the current time on every call, not cached."""
        if self.closes_at is None:
            return True
        now = now or self._clock()
        return now < self.closes_at

    async def admit(self, code: str, candidate_name: str, course: str, now: Optional[datetime] = None) -> Admission:
        code = normalize_code(code)
        name = (candidate_name or "").strip()
        course = (course or "").strip()
        if not (code and name and course):
            return Rejected(RejectReason.MISSING_DETAILS)

        if not self.registration_open(now):
            logger.info("Admission refused for %s: registration closed", code)
            return Rejected(RejectReason.REGISTRATION_CLOSED)

        if code not in self.allowed_codes:
            logger.info("Admission refused: %s is not an issued code", code)
            return Rejected(RejectReason.INVALID_CODE)

        try:
            used = await asyncio.wait_for(self.store.is_code_used(code), timeout=self.timeout)
        except (StoreError, asyncio.TimeoutError) as e:
            return self._unverified(code, name, course, str(e) or type(e).__name__)
        except Exception as e:
            logger.exception("Unexpected error checking code %s", code)
            return self._unverified(code, name, course, f"{type(e).__name__}: {e}")

        if used:
            logger.info("Admission refused: %s already has a result", code)
            return Rejected(RejectReason.CODE_ALREADY_USED)

        logger.info("Admitted %s with code %s", name, code)
        return Admitted(code=code, name=name, course=course)

    def _unverified(self, code: str, name: str, course: str, why: str) -> Admission:
        if not self.fail_open:
            logger.warning("Code check for %s failed (%s); failing closed", code, why)
            return Rejected(RejectReason.NETWORK_FAILURE)
        logger.warning("Code check for %s failed (%s); admitting without verification", code, why)
        return Admitted(code=code, name=name, course=course, verified=False)
