"""Question bank loading, validation and per-track active sets."""
import json

import pytest

from mockexam.engine import BIOLOGICAL_ID_RANGE, ENGINEERING_ID_RANGE
from mockexam.errors import QuestionBankError
from mockexam.models import Subject, Track
from mockexam.question_bank import QuestionBank, active_question_set, is_common, parse_question


def _row(qid, subject="Chemistry", correct="a", labels=("a", "b", "c", "d")):
    return {
        "id": qid,
        "subject": subject,
        "text": f"Question {qid}?",
        "options": [{"label": l, "text": f"option {l}"} for l in labels],
        "correct_answer": correct,
    }


def _write_jsonl(path, rows):
    path.write_text("\n".join(r if isinstance(r, str) else json.dumps(r) for r in rows) + "\n", encoding="utf-8")
    return path


def test_bundled_bank_has_every_id_once(bank):
    assert len(bank) == 100
    assert [q.id for q in bank] == list(range(1, 101))


def test_bundled_bank_subject_blocks(bank):
    assert bank.subject_counts() == {
        "Use of English": 30,
        "Chemistry": 20,
        "Biology": 20,
        "Physics": 10,
        "Mathematics": 20,
    }
    assert bank.get(60).subject is Subject.BIO
    assert bank.get(90).subject is Subject.MTH


@pytest.mark.parametrize("track", list(Track))
def test_active_set_has_each_common_question_once(bank, track):
    active = active_question_set(bank, track)
    ids = [q.id for q in active]
    common = [q.id for q in bank if is_common(q.id)]
    assert len(ids) == len(set(ids))
    for qid in common:
        assert ids.count(qid) == 1
    assert ids == sorted(ids)


def test_active_sets_exclude_other_track_block(bank):
    bio = {q.id for q in active_question_set(bank, Track.BIOLOGICAL)}
    eng = {q.id for q in active_question_set(bank, Track.ENGINEERING)}
    lo, hi = ENGINEERING_ID_RANGE
    assert not any(lo <= qid <= hi for qid in bio)
    lo, hi = BIOLOGICAL_ID_RANGE
    assert not any(lo <= qid <= hi for qid in eng)
    assert len(bio) == len(eng) == 80


def test_active_set_is_stable(bank):
    assert active_question_set(bank, Track.ENGINEERING) == active_question_set(bank, "Engineering & Applied Sciences")


def test_parse_question_rejects_unknown_correct_label():
    with pytest.raises(QuestionBankError, match="not among"):
        parse_question(_row(1, correct="e"))


def test_parse_question_rejects_unknown_subject():
    with pytest.raises(QuestionBankError, match="Malformed"):
        parse_question(_row(1, subject="Geography"))


def test_parse_question_rejects_duplicate_labels():
    with pytest.raises(QuestionBankError, match="duplicate option labels"):
        parse_question(_row(1, labels=("a", "a", "b")))


def test_parse_question_needs_two_options():
    with pytest.raises(QuestionBankError, match="at least two"):
        parse_question(_row(1, labels=("a",)))


def test_from_jsonl_reports_bad_line(tmp_path):
    path = _write_jsonl(tmp_path / "bank.jsonl", [_row(1), "{not json"])
    with pytest.raises(QuestionBankError, match="line 2"):
        QuestionBank.from_jsonl(path)


def test_from_jsonl_rejects_duplicate_ids(tmp_path):
    path = _write_jsonl(tmp_path / "bank.jsonl", [_row(3), _row(3)])
    with pytest.raises(QuestionBankError, match="Duplicate question id 3"):
        QuestionBank.from_jsonl(path)


def test_from_jsonl_skips_blank_lines_and_sorts(tmp_path):
    path = _write_jsonl(tmp_path / "bank.jsonl", [_row(52, "Biology"), "", _row(2, "Use of English")])
    bank = QuestionBank.from_jsonl(path)
    assert [q.id for q in bank] == [2, 52]
    assert 52 in bank and 7 not in bank


def test_from_jsonl_missing_file(tmp_path):
    with pytest.raises(QuestionBankError, match="not found"):
        QuestionBank.from_jsonl(tmp_path / "nope.jsonl")
