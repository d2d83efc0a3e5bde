import itertools

import pytest

from mockexam.errors import NetworkFailure
from mockexam.gate import AccessGate
from mockexam.question_bank import QuestionBank
from mockexam.session import ExamSession
from mockexam.store import InMemoryResultStore

CODE = "NV-8821-XP"
OTHER_CODE = "NV-4732-LQ"


class FakeMonotonic:
    """Manually advanced clock for SessionClock.sync()."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FailingStore(InMemoryResultStore):
    """Raises NetworkFailure on the first `failures` calls of each kind, then behaves."""

    def __init__(self, failures: int = 1, fail_loads: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.failures = failures
        self.fail_loads = fail_loads
        self.failed_saves = 0

    async def load_all(self):
        if self.fail_loads:
            raise NetworkFailure("store unreachable")
        return await super().load_all()

    async def save_all(self, results, used_codes):
        if self.failed_saves < self.failures:
            self.failed_saves += 1
            raise NetworkFailure("connection reset")
        await super().save_all(results, used_codes)


@pytest.fixture(scope="session")
def bank():
    return QuestionBank.from_jsonl()


@pytest.fixture
def store():
    return InMemoryResultStore()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def make_session(bank, store, monotonic):
    """Build an ExamSession with deterministic ids, timestamps and clock."""

    def factory(store=store, gate=None, **kwargs):
        ids = (f"R{n:011d}" for n in itertools.count(1))
        kwargs.setdefault("id_factory", lambda: next(ids))
        kwargs.setdefault("time_ms", lambda: 1_700_000_000_000)
        kwargs.setdefault("monotonic", monotonic)
        gate = gate or AccessGate(store)
        return ExamSession(bank, gate, store=store, **kwargs)

    return factory
