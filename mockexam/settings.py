"""Exam settings from environment (.env supported), falling back to the constants in engine."""
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from mockexam import engine

logger = logging.getLogger(__name__)


def parse_deadline(value: str | None) -> Optional[datetime]:
    """ISO-8601 cutoff; a value without an offset is taken as UTC. Empty disables the cutoff."""
    if not value:
        return None
    dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ExamSettings:
    duration_seconds: int = engine.EXAM_DURATION_SECONDS
    closes_at: Optional[datetime] = field(default_factory=lambda: parse_deadline(engine.REGISTRATION_CLOSES_AT))
    allowed_codes: frozenset = frozenset(engine.ALLOWED_CODES)
    code_check_timeout: float = engine.CODE_CHECK_TIMEOUT_SECONDS
    fail_open: bool = engine.CODE_CHECK_FAIL_OPEN
    admin_password: Optional[str] = None
    question_bank_path: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "ExamSettings":
        load_dotenv()
        codes = os.environ.get("EXAM_ACCESS_CODES")
        allowed = (
            frozenset(c.strip().upper() for c in codes.split(",") if c.strip())
            if codes
            else frozenset(engine.ALLOWED_CODES)
        )
        closes_raw = os.environ.get("EXAM_CLOSES_AT", engine.REGISTRATION_CLOSES_AT)
        odd = sorted(c for c in allowed if not re.match(engine.ACCESS_CODE_PATTERN, c))
        if odd:
            logger.warning("Access codes not in NV-NNNN-LL form: %s", ", ".join(odd))
        bank = os.environ.get("QUESTION_BANK_PATH")
        settings = cls(
            duration_seconds=int(os.environ.get("EXAM_DURATION_SECONDS", engine.EXAM_DURATION_SECONDS)),
            closes_at=parse_deadline(closes_raw),
            allowed_codes=allowed,
            code_check_timeout=float(os.environ.get("CODE_CHECK_TIMEOUT", engine.CODE_CHECK_TIMEOUT_SECONDS)),
            fail_open=_env_bool("CODE_CHECK_FAIL_OPEN", engine.CODE_CHECK_FAIL_OPEN),
            admin_password=os.environ.get("ADMIN_PASSWORD") or None,
            question_bank_path=Path(bank) if bank else None,
        )
        logger.info(
            "Exam settings: %d codes, closes %s, fail_open=%s",
            len(settings.allowed_codes), settings.closes_at, settings.fail_open,
        )
        return settings
