"""
Exam session: the state machine that drives one candidate attempt.

Steps: welcome -> exam -> finalizing -> result, plus admin-login / admin-panel off welcome.
All work runs on one event loop; the only suspension points are store calls
(code check, result append, results listing).
"""
import asyncio
import hmac
import logging
import time
from typing import Callable, List, Optional, Sequence
from uuid import uuid4

from mockexam.clock import SessionClock
from mockexam.engine import EXAM_DURATION_SECONDS, RESULT_ID_LENGTH
from mockexam.errors import DuplicateSubmitAttempt, SessionStateError, StoreError
from mockexam.gate import AccessGate, Admission, Admitted
from mockexam.ledger import AnswerLedger
from mockexam.models import Question, Result, Step, Track
from mockexam.question_bank import QuestionBank, active_question_set
from mockexam.scoring import ScoreSummary, score, subject_breakdown
from mockexam.settings import ExamSettings
from mockexam.store import ResultStore

logger = logging.getLogger(__name__)

GENERIC_RETRY_MESSAGE = "There was an error submitting your exam. Please try again."


def new_result_id() -> str:
    return uuid4().hex[:RESULT_ID_LENGTH].upper()


def epoch_ms() -> int:
    return int(time.time() * 1000)


class ExamSession:
    """One candidate attempt, from the welcome form to the result statement."""

    def __init__(
        self,
        bank: QuestionBank | Sequence[Question],
        gate: AccessGate,
        store: Optional[ResultStore] = None,
        duration_seconds: int = EXAM_DURATION_SECONDS,
        admin_password: Optional[str] = None,
        id_factory: Callable[[], str] = new_result_id,
        time_ms: Callable[[], int] = epoch_ms,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.bank = bank
        self.gate = gate
        self.store = store or gate.store
        self.admin_password = admin_password
        self._id_factory = id_factory
        self._time_ms = time_ms
        self.clock = SessionClock(duration_seconds, on_expire=self._on_clock_expired, monotonic=monotonic)

        self.step = Step.WELCOME
        self.track = Track.BIOLOGICAL
        self.active_questions: tuple[Question, ...] = active_question_set(bank, self.track)
        self._reset_fields()
        self.welcome_error: Optional[str] = None
        self.admin_error: Optional[str] = None
        self._generation = 0
        self._submitting = False
        self._auto_submit: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, bank: QuestionBank, store: ResultStore, settings: ExamSettings, **kwargs) -> "ExamSession":
        return cls(
            bank,
            AccessGate.from_settings(store, settings),
            store=store,
            duration_seconds=settings.duration_seconds,
            admin_password=settings.admin_password,
            **kwargs,
        )

    def _reset_fields(self) -> None:
        self.candidate_name = ""
        self.course = ""
        self.access_code = ""
        self.position = 0
        self.ledger = AnswerLedger(self.active_questions)
        self.result: Optional[Result] = None
        self.last_error: Optional[str] = None
        self._pending_id: Optional[str] = None
        self._pending_timestamp: Optional[int] = None

    def _require(self, *steps: Step) -> None:
        if self.step not in steps:
            allowed = ", ".join(s.value for s in steps)
            raise SessionStateError(f"Not allowed in step {self.step.value!r} (needs {allowed})")

    def _set_step(self, step: Step) -> None:
        logger.info("Session step %s -> %s", self.step.value, step.value)
        self.step = step

    # ============= Welcome =============

    def select_track(self, track: Track) -> None:
        """Switch track before the exam starts; the active set is recomputed, never cached stale."""
        self._require(Step.WELCOME)
        self.track = Track(track)
        self.active_questions = active_question_set(self.bank, self.track)

    def registration_open(self, now=None) -> bool:
        return self.gate.registration_open(now)

    async def start(self, candidate_name: str, course: str, access_code: str, now=None) -> Optional[Admission]:
        """
        Run the access gate and, if admitted, begin the exam.

        Returns:
            The gate outcome, or None when the session moved on while the code
            check was in flight (the late answer is discarded).
        """
        self._require(Step.WELCOME)
        generation = self._generation
        admission = await self.gate.admit(access_code, candidate_name, course, now=now)
        if generation != self._generation or self.step is not Step.WELCOME:
            logger.info("Discarding stale admission for %s", access_code)
            return None
        if isinstance(admission, Admitted):
            self._begin(admission)
        else:
            self.welcome_error = admission.message
        return admission

    def _begin(self, admission: Admitted) -> None:
        self._generation += 1
        self.active_questions = active_question_set(self.bank, self.track)
        self._reset_fields()
        self.candidate_name = admission.name
        self.course = admission.course
        self.access_code = admission.code
        self.welcome_error = None
        self.clock.start()
        self._set_step(Step.IN_PROGRESS)
        logger.info(
            "Exam started for %s (%s, %d questions, %ds)",
            self.candidate_name, self.track.short_name, len(self.active_questions), self.clock.total_seconds,
        )

    # ============= Exam =============

    @property
    def current_question(self) -> Optional[Question]:
        if not self.active_questions:
            return None
        return self.active_questions[self.position]

    @property
    def answered_count(self) -> int:
        return len(self.ledger)

    @property
    def total_questions(self) -> int:
        return len(self.active_questions)

    def select_option(self, label: str, question_id: Optional[int] = None) -> None:
        """Record the candidate's choice; re-selecting overwrites the earlier one."""
        self._require(Step.IN_PROGRESS)
        if question_id is None:
            question = self.current_question
            if question is None:
                raise SessionStateError("No question to answer")
            question_id = question.id
        self.ledger.record(question_id, label)

    def go_to(self, index: int) -> bool:
        """Move to a question. Out-of-range targets are ignored (no wrap-around)."""
        self._require(Step.IN_PROGRESS)
        if not 0 <= index < len(self.active_questions):
            return False
        self.position = index
        return True

    def next_question(self) -> bool:
        return self.go_to(self.position + 1)

    def previous_question(self) -> bool:
        return self.go_to(self.position - 1)

    def tick(self) -> bool:
        return self.clock.tick()

    def sync_clock(self, now: Optional[float] = None) -> int:
        return self.clock.sync(now)

    async def run_clock(self, interval: float = 1.0) -> None:
        """Drive the countdown on this loop; returns once the exam leaves progress."""
        await self.clock.drive(interval)
        if self._auto_submit is not None:
            await self._auto_submit

    def _on_clock_expired(self) -> None:
        if self.step is not Step.IN_PROGRESS:
            return
        logger.info("Time up for %s; forcing submission", self.candidate_name)
        self._enter_finalizing("timeout")
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Poll-driven front ends call submit() themselves on their next pass
            return
        self._auto_submit = loop.create_task(self.submit(confirmed=True))

    async def wait_for_auto_submit(self) -> Optional[Result]:
        if self._auto_submit is None:
            return None
        return await self._auto_submit

    # ============= Finalizing =============

    def _enter_finalizing(self, trigger: str) -> None:
        self.clock.stop()
        self.ledger.freeze()
        self._pending_id = self._id_factory()
        self._pending_timestamp = self._time_ms()
        self._set_step(Step.FINALIZING)
        logger.info(
            "Finalizing (%s): %d/%d answered, %s left",
            trigger, len(self.ledger), len(self.active_questions), self.clock.remaining,
        )

    def _claim_submission(self) -> None:
        if self._submitting:
            raise DuplicateSubmitAttempt("A submission is already in flight")
        self._submitting = True

    def compose_result(self) -> Result:
        """Score a fresh snapshot of the (frozen) ledger into a Result. Safe to repeat on retry."""
        self._require(Step.FINALIZING)
        answers = self.ledger.snapshot()
        summary = score(self.active_questions, answers)
        return Result(
            id=self._pending_id,
            name=self.candidate_name,
            course=self.course,
            track=self.track,
            access_code=self.access_code,
            score=summary.score,
            total_possible=summary.total_possible,
            timestamp=self._pending_timestamp,
            answers=answers,
        )

    async def submit(self, confirmed: bool = True) -> Optional[Result]:
        """
        Finalize the attempt: score, persist, and move to the result step.

        An unconfirmed call does nothing. A call while another submission is in flight
        is dropped. A failed write keeps the session in finalizing with last_error set,
        and calling submit() again retries with the same answers.

        Returns:
            The persisted Result, or None if nothing was persisted by this call.
        """
        if not confirmed:
            return None
        if self.step is Step.COMPLETE:
            logger.info("Submit after completion ignored; result %s already saved", self.result.id)
            return self.result
        try:
            self._claim_submission()
        except DuplicateSubmitAttempt:
            logger.info("Duplicate submit suppressed for %s", self.access_code)
            return None
        try:
            if self.step is Step.IN_PROGRESS:
                self._enter_finalizing("manual")
            else:
                self._require(Step.FINALIZING)
            try:
                result = self.compose_result()
                await self.store.append(result)
            except StoreError as e:
                logger.error("Saving result for %s failed: %s", self.access_code, e)
                self.last_error = f"Could not save your result ({e}). Your answers are kept; please retry."
                return None
            except Exception:
                logger.exception("Unexpected error while finalizing %s", self.access_code)
                self.last_error = GENERIC_RETRY_MESSAGE
                return None
        finally:
            self._submitting = False

        self.result = result
        self.last_error = None
        self._set_step(Step.COMPLETE)
        logger.info(
            "Result %s: %s scored %d/%d", result.id, result.name, result.score, result.total_possible
        )
        return result

    # ============= Result =============

    @property
    def score_summary(self) -> Optional[ScoreSummary]:
        if self.result is None:
            return None
        return ScoreSummary(self.result.score, self.result.total_possible)

    def breakdown(self) -> dict:
        answers = self.result.answers if self.result is not None else self.ledger.snapshot()
        return subject_breakdown(self.active_questions, answers)

    def return_to_welcome(self) -> None:
        """Leave the result (or admin) screens; every candidate field goes back to its default."""
        self._require(Step.COMPLETE, Step.ADMIN_LOGIN, Step.ADMIN_PANEL)
        self._generation += 1
        self.clock.reset()
        self._auto_submit = None
        self.track = Track.BIOLOGICAL
        self.active_questions = active_question_set(self.bank, self.track)
        self._reset_fields()
        self.welcome_error = None
        self.admin_error = None
        self._set_step(Step.WELCOME)

    # ============= Admin =============

    def open_admin(self) -> None:
        self._require(Step.WELCOME)
        self.admin_error = None
        self._set_step(Step.ADMIN_LOGIN)

    def admin_login(self, password: str) -> bool:
        self._require(Step.ADMIN_LOGIN)
        expected = self.admin_password
        if not expected or not hmac.compare_digest((password or "").encode(), expected.encode()):
            logger.warning("Admin login denied")
            self.admin_error = "DENIED"
            return False
        self.admin_error = None
        self._set_step(Step.ADMIN_PANEL)
        return True

    async def load_admin_results(self) -> Optional[List[Result]]:
        """Read-only listing for the admin panel. None if the panel was left before the read returned."""
        self._require(Step.ADMIN_PANEL)
        generation = self._generation
        results = await self.store.list_all()
        if generation != self._generation or self.step is not Step.ADMIN_PANEL:
            logger.info("Discarding stale results listing")
            return None
        return results

    def leave_admin(self) -> None:
        self._require(Step.ADMIN_LOGIN, Step.ADMIN_PANEL)
        self.return_to_welcome()
