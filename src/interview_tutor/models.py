"""Data classes for the tutor domain model.

Exam records travel between installations as plain JSON, so every persisted
class knows how to turn itself into the camelCase dict shape used by the
export files (``to_dict``) and how to load it back (``from_dict``).
"""
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional


def _number(value, name: str) -> float:
    """Accept int or float only; bools and numeric strings are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    return value


class ExamStatus(str, Enum):
    PENDING = "pending"
    GRADED = "graded"


@dataclass(frozen=True)
class Question:
    id: int
    text: str
    reference_answer: str
    category: Optional[str] = None


@dataclass(frozen=True)
class Category:
    id: str
    title: str
    questions: tuple = ()


@dataclass(frozen=True)
class Subject:
    code: str
    display_name: str
    total_questions_declared: int
    categories: tuple = ()
    version: str = ""

    @property
    def bank_size(self) -> int:
        return sum(len(c.questions) for c in self.categories)

    @property
    def declared_mismatch(self) -> bool:
        return self.bank_size != self.total_questions_declared

    def questions(self) -> list[Question]:
        """Flatten the bank, tagging every question with its category title."""
        return [
            replace(q, category=cat.title)
            for cat in self.categories
            for q in cat.questions
        ]


# (attribute, wire key, weight)
RUBRIC = (
    ("conceptual_knowledge", "conceptualKnowledge", 0.25),
    ("accuracy", "accuracy", 0.25),
    ("depth_and_reasoning", "depthAndReasoning", 0.15),
    ("practical_application", "practicalApplication", 0.20),
    ("edge_cases", "edgeCases", 0.10),
    ("clarity", "clarity", 0.05),
)


@dataclass
class RubricDimensions:
    conceptual_knowledge: float = 0
    accuracy: float = 0
    depth_and_reasoning: float = 0
    practical_application: float = 0
    edge_cases: float = 0
    clarity: float = 0

    def weighted_score(self) -> float:
        """Final 0-100 score from the weighted 0-5 dimensions."""
        total = sum(getattr(self, attr) * weight for attr, _, weight in RUBRIC)
        return round(total * 20, 1)

    def to_dict(self) -> dict:
        return {key: getattr(self, attr) for attr, key, _ in RUBRIC}

    @classmethod
    def from_dict(cls, data: dict) -> "RubricDimensions":
        data = data or {}
        return cls(**{attr: _number(data.get(key, 0), key) for attr, key, _ in RUBRIC})


@dataclass
class Evaluation:
    score: float
    grade: str
    dimensions: RubricDimensions = field(default_factory=RubricDimensions)
    feedback: str = ""
    strengths: list[str] = field(default_factory=list)
    improvements: list[str] = field(default_factory=list)
    sample_answer: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "score": self.score,
            "grade": self.grade,
            "dimensions": self.dimensions.to_dict(),
            "feedback": self.feedback,
            "strengths": list(self.strengths),
            "improvements": list(self.improvements),
        }
        if self.sample_answer is not None:
            data["sampleAnswer"] = self.sample_answer
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Evaluation":
        return cls(
            score=_number(data.get("score"), "score"),
            grade=data.get("grade", ""),
            dimensions=RubricDimensions.from_dict(data.get("dimensions")),
            feedback=data.get("feedback", ""),
            strengths=list(data.get("strengths") or []),
            improvements=list(data.get("improvements") or []),
            sample_answer=data.get("sampleAnswer"),
        )


@dataclass
class AnswerRecord:
    question_id: int
    question_text: str
    user_answer: str
    correct_answer: str
    hint_used: bool = False
    evaluation: Optional[Evaluation] = None

    def to_dict(self) -> dict:
        data = {
            "questionId": self.question_id,
            "questionText": self.question_text,
            "userAnswer": self.user_answer,
            "correctAnswer": self.correct_answer,
            "hintUsed": self.hint_used,
        }
        if self.evaluation is not None:
            data["evaluation"] = self.evaluation.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "AnswerRecord":
        evaluation = data.get("evaluation")
        return cls(
            question_id=data.get("questionId"),
            question_text=data.get("questionText", ""),
            user_answer=data.get("userAnswer", ""),
            correct_answer=data.get("correctAnswer", ""),
            hint_used=bool(data.get("hintUsed", False)),
            evaluation=Evaluation.from_dict(evaluation) if evaluation else None,
        )


@dataclass
class ExamRecord:
    id: str
    subject_id: str
    timestamp: str
    answers: list[AnswerRecord] = field(default_factory=list)
    total_questions: int = 0
    overall_score: Optional[float] = None
    status: ExamStatus = ExamStatus.PENDING

    @property
    def is_graded(self) -> bool:
        return self.status == ExamStatus.GRADED

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "subjectId": self.subject_id,
            "timestamp": self.timestamp,
            "answers": [a.to_dict() for a in self.answers],
            "totalQuestions": self.total_questions,
        }
        if self.overall_score is not None:
            data["overallScore"] = self.overall_score
        data["status"] = ExamStatus(self.status).value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ExamRecord":
        """Load a transport dict. Raises ValueError (or KeyError/TypeError) on bad shapes."""
        answers = [AnswerRecord.from_dict(a) for a in data.get("answers") or []]
        timestamp = data.get("timestamp")
        if not isinstance(timestamp, str):
            raise ValueError(f"timestamp must be an ISO-8601 string, got {timestamp!r}")
        total = data.get("totalQuestions", len(answers))
        if isinstance(total, bool) or total != len(answers):
            raise ValueError(f"totalQuestions {total!r} does not match {len(answers)} answers")
        overall = data.get("overallScore")
        if overall is not None:
            overall = _number(overall, "overallScore")
        status = data.get("status")
        if not status:
            # Records written before grading existed carry no status
            status = ExamStatus.GRADED if overall is not None else ExamStatus.PENDING
        return cls(
            id=str(data["id"]),
            subject_id=data["subjectId"],
            timestamp=timestamp,
            answers=answers,
            total_questions=len(answers),
            overall_score=overall,
            status=ExamStatus(status),
        )


_id_lock = threading.Lock()
_last_ms = 0


def new_exam_id() -> str:
    """Time-derived exam id (epoch milliseconds), unique within this process."""
    global _last_ms
    with _id_lock:
        _last_ms = max(int(time.time() * 1000), _last_ms + 1)
        return str(_last_ms)
