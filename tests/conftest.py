import json

import pytest

from interview_tutor.errors import GradingServiceError
from interview_tutor.history import InMemoryHistoryStore
from interview_tutor.models import (
    AnswerRecord, Category, Evaluation, ExamRecord, ExamStatus, Question,
    RubricDimensions, Subject,
)


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_history.db")
    return db_path


@pytest.fixture
def store():
    return InMemoryHistoryStore()


@pytest.fixture
def make_subject():
    """Build a Subject with ``size`` questions numbered from 1, split over categories."""
    def _make(code="react", size=10, per_category=5, declared=None):
        categories = []
        for start in range(1, size + 1, per_category):
            ids = range(start, min(start + per_category, size + 1))
            categories.append(Category(
                id=f"cat{start}",
                title=f"Category {start}",
                questions=tuple(Question(i, f"Question {i}?", f"Answer {i}") for i in ids),
            ))
        return Subject(
            code=code,
            display_name=code.title(),
            total_questions_declared=size if declared is None else declared,
            categories=tuple(categories),
        )
    return _make


@pytest.fixture
def make_exam():
    """Build an ExamRecord answering the given question ids."""
    def _make(exam_id, subject_id="react", question_ids=(1,), timestamp="2026-01-01T10:00:00+00:00",
              scores=None):
        answers = []
        for n, qid in enumerate(question_ids):
            evaluation = None
            if scores is not None:
                evaluation = Evaluation(score=scores[n], grade="B")
            answers.append(AnswerRecord(qid, f"Question {qid}?", f"my answer {qid}", f"Answer {qid}",
                                        evaluation=evaluation))
        graded = scores is not None
        return ExamRecord(
            id=exam_id,
            subject_id=subject_id,
            timestamp=timestamp,
            answers=answers,
            total_questions=len(answers),
            overall_score=sum(scores) / len(scores) if graded else None,
            status=ExamStatus.GRADED if graded else ExamStatus.PENDING,
        )
    return _make


class ScriptedGrader:
    """Returns scores in order; raises on the ``fail_at``-th call (1-based)."""

    def __init__(self, scores=(80,), fail_at=None, error=None):
        self.scores = list(scores)
        self.fail_at = fail_at
        self.error = error
        self.calls = []

    def evaluate(self, question, user_answer, reference_answer, *, timeout=None):
        self.calls.append((question, user_answer, reference_answer, timeout))
        n = len(self.calls)
        if self.fail_at == n:
            raise self.error or GradingServiceError("grader exploded")
        score = self.scores[(n - 1) % len(self.scores)]
        return Evaluation(
            score=score,
            grade="B",
            dimensions=RubricDimensions(4, 4, 4, 4, 4, 4),
            feedback=f"feedback {n}",
            strengths=["clear"],
            improvements=["more depth"],
        )


@pytest.fixture
def scripted_grader():
    return ScriptedGrader


@pytest.fixture
def bank_dir(tmp_path):
    """A bank directory with a JSON 'react' subject (6 questions) and a YAML 'java' one (3)."""
    directory = tmp_path / "bank"
    directory.mkdir()
    react = {
        "subject": "React",
        "version": "1",
        "totalQuestions": 6,
        "categories": [
            {"id": "hooks", "title": "Hooks", "questions": [
                {"id": i, "question": f"React question {i}?", "answer": f"React answer {i}"}
                for i in range(1, 4)
            ]},
            {"id": "render", "title": "Rendering", "questions": [
                {"id": i, "question": f"React question {i}?", "answer": f"React answer {i}"}
                for i in range(4, 7)
            ]},
        ],
    }
    (directory / "react.json").write_text(json.dumps(react))
    (directory / "java.yaml").write_text(
        "subject: Java\n"
        "version: '2'\n"
        "totalQuestions: 3\n"
        "categories:\n"
        "  - id: core\n"
        "    title: Core\n"
        "    questions:\n"
        "      - id: 1\n"
        "        question: 'What is the JVM?'\n"
        "        answer: The Java virtual machine.\n"
        "      - id: 2\n"
        "        question: 'What is a record?'\n"
        "        answer: An immutable data carrier.\n"
        "      - id: 3\n"
        "        question: 'What is GC?'\n"
        "        answer: Automatic memory reclamation.\n"
    )
    return directory
