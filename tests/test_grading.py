"""Tests for grading runs over stored exams."""
import pytest

from interview_tutor.errors import (
    ConcurrencyError, GradingServiceError, NotFoundError, ValidationError,
)
from interview_tutor.grading import GradingOrchestrator
from interview_tutor.models import ExamStatus


def test_grade_exam_scores_every_answer(store, make_exam, scripted_grader):
    store.append(make_exam("1", question_ids=(1, 2, 3)))
    grader = scripted_grader(scores=[90, 60, 75])
    graded = GradingOrchestrator(store, grader, timeout=7).grade_exam("1")

    assert graded.status == ExamStatus.GRADED
    assert graded.overall_score == pytest.approx(75.0)
    assert [a.evaluation.score for a in graded.answers] == [90, 60, 75]
    assert store.find_by_id("1").to_dict() == graded.to_dict()
    # question, user answer, reference answer and timeout reach the grader
    assert grader.calls[0] == ("Question 1?", "my answer 1", "Answer 1", 7)


def test_grade_exam_accepts_record(store, make_exam, scripted_grader):
    exam = make_exam("1")
    store.append(exam)
    graded = GradingOrchestrator(store, scripted_grader()).grade_exam(exam)
    assert graded.is_graded


def test_progress_reports_fractions(store, make_exam, scripted_grader):
    store.append(make_exam("1", question_ids=(1, 2, 3, 4)))
    seen = []
    GradingOrchestrator(store, scripted_grader()).grade_exam("1", on_progress=seen.append)
    assert seen == [0.25, 0.5, 0.75, 1.0]


def test_failure_midway_leaves_record_untouched(store, make_exam, scripted_grader):
    exam = make_exam("1", question_ids=(1, 2, 3))
    store.append(exam)
    grader = scripted_grader(fail_at=2)
    with pytest.raises(GradingServiceError):
        GradingOrchestrator(store, grader).grade_exam("1")
    assert len(grader.calls) == 2
    assert store.find_by_id("1").to_dict() == exam.to_dict()


def test_unexpected_grader_exception_is_wrapped(store, make_exam, scripted_grader):
    store.append(make_exam("1"))
    grader = scripted_grader(fail_at=1, error=RuntimeError("socket closed"))
    with pytest.raises(GradingServiceError) as exc:
        GradingOrchestrator(store, grader).grade_exam("1")
    assert exc.value.kind == "service_error"
    assert store.find_by_id("1").status == ExamStatus.PENDING


def test_already_evaluated_answers_are_kept(store, make_exam, scripted_grader):
    exam = make_exam("1", question_ids=(1, 2), scores=[40, 50])
    exam.answers[1].evaluation = None
    exam.overall_score = None
    exam.status = ExamStatus.PENDING
    store.append(exam)
    grader = scripted_grader(scores=[100])
    graded = GradingOrchestrator(store, grader).grade_exam("1")
    assert len(grader.calls) == 1
    assert [a.evaluation.score for a in graded.answers] == [40, 100]
    assert graded.overall_score == 70


def test_force_regrades_everything(store, make_exam, scripted_grader):
    store.append(make_exam("1", question_ids=(1, 2), scores=[40, 50]))
    grader = scripted_grader(scores=[80])
    graded = GradingOrchestrator(store, grader).grade_exam("1", force=True)
    assert len(grader.calls) == 2
    assert graded.overall_score == 80


def test_unknown_exam(store, scripted_grader):
    with pytest.raises(NotFoundError):
        GradingOrchestrator(store, scripted_grader()).grade_exam("404")


def test_exam_without_answers(store, make_exam, scripted_grader):
    store.append(make_exam("1", question_ids=()))
    with pytest.raises(ValidationError) as exc:
        GradingOrchestrator(store, scripted_grader()).grade_exam("1")
    assert exc.value.kind == "empty_exam"


def test_concurrent_change_is_detected(store, make_exam, scripted_grader):
    store.append(make_exam("1", question_ids=(1, 2)))
    grader = scripted_grader()
    real_evaluate = grader.evaluate

    def evaluate_while_someone_else_writes(*args, **kwargs):
        if len(grader.calls) == 1:
            store.replace("1", make_exam("1", question_ids=(1, 2), scores=[10, 10]))
        return real_evaluate(*args, **kwargs)

    grader.evaluate = evaluate_while_someone_else_writes
    with pytest.raises(ConcurrencyError):
        GradingOrchestrator(store, grader).grade_exam("1")
    assert store.find_by_id("1").overall_score == 10


def test_grade_pending_continues_after_failure(store, make_exam, scripted_grader):
    store.append(make_exam("old", timestamp="2026-01-01T00:00:00+00:00"))
    store.append(make_exam("new", timestamp="2026-01-02T00:00:00+00:00"))
    store.append(make_exam("done", timestamp="2026-01-03T00:00:00+00:00", scores=[70]))
    grader = scripted_grader(scores=[65], fail_at=1)
    progress = []
    outcomes = GradingOrchestrator(store, grader).grade_pending(
        on_progress=lambda exam_id, fraction: progress.append((exam_id, fraction))
    )
    assert [o.exam_id for o in outcomes] == ["old", "new"]
    assert not outcomes[0].ok
    assert outcomes[0].error.kind == "grading_failed"
    assert outcomes[1].ok
    assert outcomes[1].record.overall_score == 65
    assert progress == [("new", 1.0)]
    assert store.find_by_id("old").status == ExamStatus.PENDING
