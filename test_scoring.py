import pytest

from mockexam.models import Track
from mockexam.question_bank import active_question_set
from mockexam.scoring import ScoreSummary, score, subject_breakdown


def test_score_bounds_and_empty_ledger(bank):
    active = active_question_set(bank, Track.BIOLOGICAL)
    summary = score(active, {})
    assert summary.score == 0
    assert summary.total_possible == len(active)


def test_all_correct_biological(bank):
    active = active_question_set(bank, Track.BIOLOGICAL)
    answers = {q.id: q.correct_answer for q in active}
    summary = score(active, answers)
    assert summary.score == summary.total_possible == len(active)
    assert summary.percentage == 100
    assert summary.passed


def test_score_is_idempotent(bank):
    active = active_question_set(bank, Track.ENGINEERING)
    answers = {q.id: q.correct_answer for q in active[::3]}
    assert score(active, answers) == score(active, answers)


def test_exact_match_only(bank):
    active = active_question_set(bank, Track.BIOLOGICAL)
    q = active[0]
    assert score(active, {q.id: q.correct_answer.upper()}).score == 0


def test_answers_outside_active_set_ignored(bank):
    active = active_question_set(bank, Track.BIOLOGICAL)
    engineering_only = bank.get(90)
    assert score(active, {90: engineering_only.correct_answer}).score == 0


def test_pass_mark():
    assert ScoreSummary(40, 80).passed
    assert not ScoreSummary(39, 80).passed
    assert ScoreSummary(0, 0).percentage == 0


def test_subject_breakdown(bank):
    active = active_question_set(bank, Track.BIOLOGICAL)
    bio = [q for q in active if q.subject.value == "Biology"]
    answers = {bio[0].id: bio[0].correct_answer}
    wrong = next(l for l in bio[1].labels if l != bio[1].correct_answer)
    answers[bio[1].id] = wrong
    stats = subject_breakdown(active, answers)
    assert stats["Biology"] == {"total": 20, "answered": 2, "correct": 1}
    assert "Mathematics" not in stats
    assert sum(s["total"] for s in stats.values()) == len(active)


def test_score_summary_rejects_out_of_range():
    with pytest.raises(ValueError):
        ScoreSummary(81, 80)
    with pytest.raises(ValueError):
        ScoreSummary(-1, 80)
