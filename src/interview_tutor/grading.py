"""Grading runs: score every answer of an exam, then commit in one write.

Answers are graded one at a time in their stored order. Nothing reaches the
history store until every answer has an evaluation, so a failed run leaves
the stored record exactly as it was.
"""
import copy
import logging
from dataclasses import dataclass
from statistics import fmean
from typing import Callable, Optional, Union

from interview_tutor.errors import GradingServiceError, NotFoundError, TutorError, ValidationError
from interview_tutor.models import AnswerRecord, Evaluation, ExamRecord, ExamStatus

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


@dataclass
class GradingOutcome:
    exam_id: str
    record: Optional[ExamRecord] = None
    error: Optional[TutorError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class GradingOrchestrator:
    def __init__(self, store, grader, timeout: Optional[float] = None) -> None:
        self.store = store
        self.grader = grader
        self.timeout = timeout

    def _evaluate(self, answer: AnswerRecord) -> Evaluation:
        try:
            return self.grader.evaluate(
                answer.question_text,
                answer.user_answer,
                answer.correct_answer,
                timeout=self.timeout,
            )
        except TutorError:
            raise
        except Exception as e:
            raise GradingServiceError(f"Grader failed: {e}", kind="service_error") from e

    def grade_exam(
        self,
        exam: Union[str, ExamRecord],
        force: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ExamRecord:
        """Grade one exam and store the result.

        With ``force`` every answer is re-graded; otherwise answers that
        already carry an evaluation are kept. Raises GradingServiceError
        (or ConfigurationError) on the first failing answer, and
        ConcurrencyError if the stored exam changed while grading.
        """
        exam_id = exam.id if isinstance(exam, ExamRecord) else exam
        original = self.store.find_by_id(exam_id)
        if original is None:
            raise NotFoundError(f"No exam with id {exam_id}")
        if not original.answers:
            raise ValidationError(f"Exam {exam_id} has no answers to grade", kind="empty_exam")

        graded = copy.deepcopy(original)
        total = len(graded.answers)
        logger.info("Grading exam %s (%d answers, force=%s)", exam_id, total, force)
        try:
            for done, answer in enumerate(graded.answers, 1):
                if force or answer.evaluation is None:
                    answer.evaluation = self._evaluate(answer)
                if on_progress:
                    on_progress(done / total)
        except TutorError as e:
            logger.warning("Grading exam %s aborted: %s", exam_id, e)
            raise

        graded.overall_score = fmean(a.evaluation.score for a in graded.answers)
        graded.status = ExamStatus.GRADED
        self.store.replace(exam_id, graded, expected=original)
        logger.info("Exam %s graded: %.1f", exam_id, graded.overall_score)
        return graded

    def grade_pending(
        self,
        on_progress: Optional[Callable[[str, float], None]] = None,
    ) -> list[GradingOutcome]:
        """Grade every pending exam, oldest first. One failure does not stop the rest."""
        pending = sorted(
            (r for r in self.store.list_all() if r.status == ExamStatus.PENDING),
            key=lambda r: r.timestamp,
        )
        outcomes = []
        for record in pending:
            callback = None
            if on_progress:
                callback = lambda fraction, exam_id=record.id: on_progress(exam_id, fraction)
            try:
                graded = self.grade_exam(record.id, on_progress=callback)
            except TutorError as e:
                outcomes.append(GradingOutcome(record.id, error=e))
            else:
                outcomes.append(GradingOutcome(record.id, record=graded))
        return outcomes
