"""Coverage and score statistics derived from exam history.

Everything here is recomputed from the history on demand and never stored.
"""
from dataclasses import dataclass, field
from typing import Iterable, Optional

from interview_tutor.models import ExamRecord


@dataclass
class SubjectStats:
    code: str
    name: str
    total_questions_in_bank: int
    unique_answered: int = 0
    total_attempts: int = 0

    @property
    def coverage(self) -> float:
        if self.total_questions_in_bank == 0:
            return 0.0
        return self.unique_answered / self.total_questions_in_bank * 100


@dataclass
class TrendPoint:
    timestamp: str
    overall_score: float
    total_questions: int


@dataclass
class SubjectTrend:
    subject_id: str
    exam_count: int = 0
    average_score: float = 0.0
    points: list[TrendPoint] = field(default_factory=list)


def get_score_label(score: Optional[float]) -> str:
    if score is None:
        return "PENDING"
    if score >= 80:
        return "STRONG"
    elif score >= 60:
        return "FAIR"
    return "WEAK"


def get_score_color(score: Optional[float]) -> str:
    if score is None:
        return "cyan"
    if score >= 80:
        return "green"
    elif score >= 60:
        return "yellow"
    return "red"


def get_subject_stats(history: Iterable[ExamRecord], subjects) -> list[SubjectStats]:
    """Per-subject coverage for every subject in the catalog, in catalog order.

    ``subjects`` is a sequence of SubjectSummary; records for subjects that
    are not in the catalog are ignored.
    """
    stats = {s.code: SubjectStats(s.code, s.name, s.total_questions) for s in subjects}
    seen: dict[str, set] = {code: set() for code in stats}
    for exam in history:
        entry = stats.get(exam.subject_id)
        if entry is None:
            continue
        for answer in exam.answers:
            seen[exam.subject_id].add(answer.question_id)
            entry.total_attempts += 1
    for code, entry in stats.items():
        entry.unique_answered = len(seen[code])
    return list(stats.values())


def get_subject_trend(history: Iterable[ExamRecord], subject_id: str) -> SubjectTrend:
    """Graded exams of one subject, oldest first.

    The average weighs every answer equally, so a one-question exam counts
    less than a ten-question one.
    """
    graded = sorted(
        (e for e in history if e.subject_id == subject_id and e.overall_score is not None),
        key=lambda e: e.timestamp,
    )
    points = 0.0
    answers = 0
    for exam in graded:
        for answer in exam.answers:
            points += answer.evaluation.score if answer.evaluation else 0
            answers += 1
    return SubjectTrend(
        subject_id=subject_id,
        exam_count=len(graded),
        average_score=round(points / answers, 1) if answers else 0.0,
        points=[TrendPoint(e.timestamp, e.overall_score, e.total_questions) for e in graded],
    )
