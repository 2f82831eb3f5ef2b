"""Exam session state machine.

A session owns a fixed list of questions and one answer slot per question.
Navigation happens in two phases (exiting the current question, entering the
next one) so a presentation layer can animate between them; the machine
itself has no notion of time. Call ``step()`` to advance a pending
transition, or ``settle()`` to finish it at once.

A session is a throwaway value: to start over, build a new one.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Sequence, Union

from interview_tutor.errors import ValidationError
from interview_tutor.models import AnswerRecord, ExamRecord, ExamStatus, Question, new_exam_id

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    NEXT = "next"
    PREV = "prev"


class Phase(str, Enum):
    EXITING = "exiting"
    ENTERING = "entering"


@dataclass(frozen=True)
class AtQuestion:
    index: int


@dataclass(frozen=True)
class Transitioning:
    direction: Direction
    phase: Phase
    # source index while exiting, destination while entering
    index: int

    @property
    def target(self) -> int:
        if self.phase == Phase.ENTERING:
            return self.index
        return self.index + 1 if self.direction == Direction.NEXT else self.index - 1


@dataclass(frozen=True)
class Completed:
    record: ExamRecord


State = Union[AtQuestion, Transitioning, Completed]


@dataclass
class AnswerSlot:
    text: str = ""
    hint_used: bool = False
    answer: Optional[AnswerRecord] = None


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ExamSession:
    def __init__(
        self,
        subject_id: str,
        questions: Sequence[Question],
        history,
        clock: Optional[Callable[[], str]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        if not questions:
            raise ValidationError(
                f"No questions available for {subject_id}", kind="empty_selection"
            )
        self.subject_id = subject_id
        self.questions: tuple = tuple(questions)
        self.history = history
        self._clock = clock or _utc_now
        self._id_factory = id_factory or new_exam_id
        self.slots = [AnswerSlot() for _ in self.questions]
        self.state: State = AtQuestion(0)
        self.hint_visible = False
        self._text = ""
        self._hint_used = False

    @classmethod
    def start(cls, engine, subject_code: str, count: int, strategy="random", **kwargs) -> "ExamSession":
        """Draw questions once through a SelectionEngine and open a session.

        Raises NotFoundError for a subject code the bank does not know.
        """
        engine.bank.get_subject(subject_code)
        selection = engine.draw(subject_code, count, strategy)
        return cls(subject_code, selection.questions, engine.history, **kwargs)

    # -- views --------------------------------------------------------------

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def index(self) -> int:
        if isinstance(self.state, Completed):
            return self.total - 1
        return self.state.index

    @property
    def is_idle(self) -> bool:
        return isinstance(self.state, AtQuestion)

    @property
    def is_completed(self) -> bool:
        return isinstance(self.state, Completed)

    @property
    def is_last(self) -> bool:
        return self.index == self.total - 1

    @property
    def current_question(self) -> Question:
        return self.questions[self.index]

    @property
    def current_text(self) -> str:
        return self._text

    @property
    def hint_used(self) -> bool:
        return self._hint_used

    @property
    def can_advance(self) -> bool:
        return self.is_idle and bool(self._text.strip())

    @property
    def progress(self) -> float:
        """Fraction of questions already behind the current one."""
        if self.is_completed:
            return 1.0
        return self.index / self.total

    @property
    def record(self) -> Optional[ExamRecord]:
        return self.state.record if isinstance(self.state, Completed) else None

    # -- operations ---------------------------------------------------------

    def set_answer(self, text: str) -> bool:
        if not self.is_idle:
            return False
        self._text = text
        return True

    def show_hint(self) -> Optional[str]:
        if not self.is_idle:
            return None
        self.hint_visible = True
        self._hint_used = True
        return self.current_question.reference_answer

    def hide_hint(self) -> None:
        self.hint_visible = False

    def next(self) -> bool:
        if not self.can_advance:
            return False
        i = self.index
        self._persist(i)
        if i < self.total - 1:
            self.state = Transitioning(Direction.NEXT, Phase.EXITING, i)
        else:
            self._finalize()
        return True

    def prev(self) -> bool:
        if not self.is_idle or self.index == 0:
            return False
        i = self.index
        self._persist(i)
        self.state = Transitioning(Direction.PREV, Phase.EXITING, i)
        return True

    def step(self) -> State:
        state = self.state
        if not isinstance(state, Transitioning):
            return state
        if state.phase == Phase.EXITING:
            target = state.target
            self._restore(target)
            self.state = Transitioning(state.direction, Phase.ENTERING, target)
        else:
            self.state = AtQuestion(state.index)
        return self.state

    def settle(self) -> State:
        while isinstance(self.state, Transitioning):
            self.step()
        return self.state

    # -- internals ----------------------------------------------------------

    def _persist(self, i: int) -> None:
        # Always bind the slot to the question at i, never the one on screen next
        question = self.questions[i]
        slot = self.slots[i]
        slot.text = self._text
        slot.hint_used = self._hint_used
        slot.answer = AnswerRecord(
            question_id=question.id,
            question_text=question.text,
            user_answer=self._text,
            correct_answer=question.reference_answer,
            hint_used=self._hint_used,
        )

    def _restore(self, i: int) -> None:
        slot = self.slots[i]
        self._text = slot.text
        self._hint_used = slot.hint_used
        self.hint_visible = False

    def _answer_for(self, i: int) -> AnswerRecord:
        slot = self.slots[i]
        if slot.answer is not None:
            return slot.answer
        question = self.questions[i]
        return AnswerRecord(question.id, question.text, slot.text, question.reference_answer, slot.hint_used)

    def _finalize(self) -> None:
        record = ExamRecord(
            id=self._id_factory(),
            subject_id=self.subject_id,
            timestamp=self._clock(),
            answers=[self._answer_for(i) for i in range(self.total)],
            total_questions=self.total,
            status=ExamStatus.PENDING,
        )
        self.history.append(record)
        self.state = Completed(record)
        logger.info("Exam %s finished (%s, %d questions)", record.id, self.subject_id, self.total)
