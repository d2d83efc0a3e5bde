import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from conftest import CODE, FailingStore
from mockexam.gate import AccessGate, Admitted, RejectReason, Rejected, normalize_code
from mockexam.models import Result, Track
from mockexam.settings import ExamSettings
from mockexam.store import InMemoryResultStore, JsonFileResultStore


def _admit(gate, code=CODE, name="Ada Obi", course="Medicine", now=None):
    return asyncio.run(gate.admit(code, name, course, now=now))


def _stored_result(code):
    return Result(
        id="ABC123DEF456", name="Earlier", course="Law", track=Track.BIOLOGICAL,
        access_code=code, score=10, total_possible=80, timestamp=1,
    )


def test_admits_issued_unused_code():
    outcome = _admit(AccessGate(InMemoryResultStore()))
    assert outcome == Admitted(code=CODE, name="Ada Obi", course="Medicine")
    assert outcome.admitted and outcome.verified


@pytest.mark.parametrize(
    "store",
    [
        InMemoryResultStore(),
        InMemoryResultStore({"results": [], "usedCodes": ["NV-0000-ZZ"]}),
        FailingStore(fail_loads=True),
    ],
)
def test_unknown_code_always_invalid(store):
    outcome = _admit(AccessGate(store), code="NV-0000-ZZ")
    assert outcome == Rejected(RejectReason.INVALID_CODE)
    assert outcome.message == "INVALID ACCESS CODE"


def test_code_in_used_list_rejected():
    store = InMemoryResultStore({"results": [], "usedCodes": [CODE]})
    assert _admit(AccessGate(store)).reason is RejectReason.CODE_ALREADY_USED


def test_code_on_stored_result_rejected():
    store = InMemoryResultStore({"results": [_stored_result(CODE).to_dict()], "usedCodes": []})
    outcome = _admit(AccessGate(store))
    assert outcome.reason is RejectReason.CODE_ALREADY_USED
    assert outcome.message == "CODE ALREADY USED"


def test_missing_details():
    gate = AccessGate(InMemoryResultStore())
    assert _admit(gate, name="  ").reason is RejectReason.MISSING_DETAILS
    assert _admit(gate, course="").reason is RejectReason.MISSING_DETAILS
    assert _admit(gate, code="").reason is RejectReason.MISSING_DETAILS


def test_registration_closed_checked_at_call_time():
    closes = datetime(2026, 1, 31, 23, 59, tzinfo=timezone(timedelta(hours=1)))
    gate = AccessGate(InMemoryResultStore(), closes_at=closes)
    before = closes - timedelta(minutes=1)
    after = closes + timedelta(seconds=1)
    assert gate.registration_open(before)
    assert not gate.registration_open(after)
    assert _admit(gate, now=after).reason is RejectReason.REGISTRATION_CLOSED
    assert _admit(gate, now=before).admitted


def test_closed_registration_wins_over_invalid_code():
    gate = AccessGate(InMemoryResultStore(), closes_at=datetime(2020, 1, 1, tzinfo=timezone.utc))
    assert _admit(gate, code="BOGUS").reason is RejectReason.REGISTRATION_CLOSED


def test_code_is_normalized():
    assert normalize_code("  nv-8821-xp ") == CODE
    outcome = _admit(AccessGate(InMemoryResultStore()), code=" nv-8821-xp ")
    assert outcome.admitted and outcome.code == CODE


def test_store_failure_fails_open_by_default():
    outcome = _admit(AccessGate(FailingStore(fail_loads=True)))
    assert outcome.admitted
    assert outcome.verified is False


def test_store_failure_fails_closed_when_configured():
    outcome = _admit(AccessGate(FailingStore(fail_loads=True), fail_open=False))
    assert outcome == Rejected(RejectReason.NETWORK_FAILURE)


def test_slow_store_is_bounded_by_timeout():
    slow = InMemoryResultStore({"results": [], "usedCodes": [CODE]}, latency=1.0)
    gate = AccessGate(slow, timeout=0.01)
    outcome = _admit(gate)
    assert outcome.admitted and outcome.verified is False
    closed = AccessGate(slow, timeout=0.01, fail_open=False)
    assert _admit(closed).reason is RejectReason.NETWORK_FAILURE


def test_from_settings_uses_configured_codes():
    settings = ExamSettings(allowed_codes=frozenset({"NV-1111-AA"}), closes_at=None, fail_open=False)
    gate = AccessGate.from_settings(InMemoryResultStore(), settings)
    assert _admit(gate).reason is RejectReason.INVALID_CODE
    assert _admit(gate, code="nv-1111-aa").admitted
    assert gate.fail_open is False


def test_malformed_file_document_never_escapes_admit(tmp_path):
    path = tmp_path / "results.json"
    path.write_text('["not", "a", "document"]', encoding="utf-8")
    store = JsonFileResultStore(path)
    outcome = _admit(AccessGate(store))
    assert outcome.admitted and outcome.verified is False
    assert _admit(AccessGate(store, fail_open=False)).reason is RejectReason.NETWORK_FAILURE


def test_garbage_entries_do_not_block_code_check(tmp_path):
    path = tmp_path / "results.json"
    path.write_text(json.dumps({"results": ["garbage", {"accessCode": CODE}], "usedCodes": []}), encoding="utf-8")
    gate = AccessGate(JsonFileResultStore(path))
    assert _admit(gate).reason is RejectReason.CODE_ALREADY_USED
    assert _admit(gate, code="NV-4732-LQ").verified is True


def test_unexpected_store_error_applies_policy():
    class BrokenStore(InMemoryResultStore):
        async def is_code_used(self, code):
            raise AttributeError("'str' object has no attribute 'get'")

    outcome = _admit(AccessGate(BrokenStore()))
    assert outcome.admitted and outcome.verified is False
    assert _admit(AccessGate(BrokenStore(), fail_open=False)) == Rejected(RejectReason.NETWORK_FAILURE)
