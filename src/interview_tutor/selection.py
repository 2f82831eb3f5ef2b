"""Question selection strategies for building an exam.

All shuffling goes through an injected ``random.Random`` so a seeded
instance makes every draw reproducible.
"""
import logging
import random
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from interview_tutor.errors import ValidationError
from interview_tutor.models import ExamRecord, Question, Subject

logger = logging.getLogger(__name__)

_default_rng = random.Random()


class Strategy(str, Enum):
    RANDOM = "random"
    NOT_ANSWERED = "not_answered"
    LEAST_ANSWERED = "least_answered"


@dataclass
class Selection:
    questions: list[Question]
    strategy: Strategy
    # not_answered ran out of fresh questions and reused answered ones
    exhausted_unanswered: bool = False

    def __len__(self) -> int:
        return len(self.questions)


def parse_strategy(value) -> Strategy:
    try:
        return Strategy(value)
    except ValueError:
        choices = ", ".join(s.value for s in Strategy)
        raise ValidationError(f"Unknown strategy {value!r} (choose {choices})", kind="bad_strategy")


def usage_counts(subject_id: str, history: Iterable[ExamRecord]) -> Counter:
    """How many times each question id was answered in this subject's exams."""
    counts = Counter()
    for exam in history:
        if exam.subject_id != subject_id:
            continue
        for answer in exam.answers:
            counts[answer.question_id] += 1
    return counts


def _least_answered_order(questions: list[Question], counts: Counter, rng: random.Random) -> list[Question]:
    # Shuffle first; the stable sort then leaves ties in random order
    ordered = list(questions)
    rng.shuffle(ordered)
    ordered.sort(key=lambda q: counts[q.id])
    return ordered


def select_with_report(
    subject: Optional[Subject],
    count: int,
    strategy,
    history: Iterable[ExamRecord] = (),
    rng: Optional[random.Random] = None,
) -> Selection:
    """Pick up to ``count`` questions from the subject's bank.

    Returns an empty selection for an unknown subject or empty bank; callers
    must not start an exam from it.
    """
    strategy = parse_strategy(strategy)
    rng = rng or _default_rng
    count = max(0, int(count))
    if subject is None:
        return Selection([], strategy)

    bank = subject.questions()
    if strategy == Strategy.RANDOM:
        ordered = list(bank)
        rng.shuffle(ordered)
        return Selection(ordered[:count], strategy)

    counts = usage_counts(subject.code, history)
    if strategy == Strategy.LEAST_ANSWERED:
        return Selection(_least_answered_order(bank, counts, rng)[:count], strategy)

    fresh = [q for q in bank if counts[q.id] == 0]
    rng.shuffle(fresh)
    if len(fresh) >= count:
        return Selection(fresh[:count], strategy)

    used = _least_answered_order([q for q in bank if counts[q.id] > 0], counts, rng)
    chosen = fresh + used[:count - len(fresh)]
    exhausted = len(chosen) > len(fresh)
    if exhausted:
        logger.info(
            "Only %d unanswered questions left in %s; filling with least answered",
            len(fresh), subject.code,
        )
    return Selection(chosen, strategy, exhausted_unanswered=exhausted)


def select_questions(subject, count, strategy, history=(), rng=None) -> list[Question]:
    return select_with_report(subject, count, strategy, history, rng).questions


class SelectionEngine:
    """Binds a question bank and history store for repeated draws."""

    def __init__(self, bank, history, rng: Optional[random.Random] = None) -> None:
        self.bank = bank
        self.history = history
        self.rng = rng or _default_rng

    def draw(self, subject_code: str, count: int, strategy=Strategy.RANDOM) -> Selection:
        subject = self.bank.find_subject(subject_code)
        past = self.history.list_by_subject(subject_code) if subject else []
        return select_with_report(subject, count, strategy, past, self.rng)
