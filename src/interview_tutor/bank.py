"""Read-only access to the subject question banks on disk."""
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from interview_tutor.errors import NotFoundError, ValidationError
from interview_tutor.models import Category, Question, Subject

logger = logging.getLogger(__name__)

BANK_SUFFIXES = (".json", ".yaml", ".yml")


@dataclass(frozen=True)
class SubjectSummary:
    code: str
    name: str
    total_questions: int


def read_bank_document(path: Path) -> dict:
    """Parse a bank file; YAML and JSON share the same document shape."""
    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValidationError(f"Cannot parse question bank {path.name}: {e}", kind="bad_bank")
    if not isinstance(data, dict):
        raise ValidationError(f"Question bank {path.name} must be a mapping", kind="bad_bank")
    return data


def parse_subject(code: str, data: dict) -> Subject:
    try:
        categories = tuple(
            Category(
                id=str(cat["id"]),
                title=cat["title"],
                questions=tuple(
                    Question(id=int(q["id"]), text=q["question"], reference_answer=q["answer"])
                    for q in cat.get("questions") or []
                ),
            )
            for cat in data.get("categories") or []
        )
        declared = int(data.get("totalQuestions") or 0)
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Malformed question bank for {code}: {e!r}", kind="bad_bank")

    subject = Subject(
        code=code,
        display_name=data.get("subject") or code,
        total_questions_declared=declared,
        categories=categories,
        version=str(data.get("version") or ""),
    )
    if subject.declared_mismatch:
        logger.warning(
            "Bank %s declares %d questions but contains %d",
            code, subject.total_questions_declared, subject.bank_size,
        )
    return subject


class QuestionBank:
    """Subjects loaded lazily from ``<code>.json`` / ``<code>.yaml`` files."""

    def __init__(self, directory) -> None:
        self.directory = Path(directory)
        self._cache: dict[str, Subject] = {}

    def _path_for(self, code: str) -> Optional[Path]:
        for suffix in BANK_SUFFIXES:
            path = self.directory / f"{code}{suffix}"
            if path.is_file():
                return path
        return None

    def subject_codes(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted({
            p.stem for p in self.directory.iterdir()
            if p.is_file() and p.suffix.lower() in BANK_SUFFIXES
        })

    def find_subject(self, code: str) -> Optional[Subject]:
        if code in self._cache:
            return self._cache[code]
        path = self._path_for(code)
        if path is None:
            return None
        subject = parse_subject(code, read_bank_document(path))
        self._cache[code] = subject
        return subject

    def get_subject(self, code: str) -> Subject:
        subject = self.find_subject(code)
        if subject is None:
            raise NotFoundError(f"Unknown subject: {code}")
        return subject

    def catalog(self) -> list[SubjectSummary]:
        summaries = []
        for code in self.subject_codes():
            try:
                subject = self.get_subject(code)
            except ValidationError as e:
                logger.warning("Skipping question bank %s: %s", code, e)
                continue
            summaries.append(SubjectSummary(code, subject.display_name, subject.bank_size))
        return summaries
