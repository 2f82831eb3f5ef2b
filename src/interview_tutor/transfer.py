"""Export and import of exam history between installations.

The transport document is a flat JSON array of exam records, exactly the
shape ``ExamRecord.to_dict`` produces, with no envelope around it.
"""
import json
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from interview_tutor.errors import ValidationError
from interview_tutor.models import ExamRecord

logger = logging.getLogger(__name__)


class ImportMode(str, Enum):
    OVERRIDE = "override"
    ADD = "add"


class ImportOutcome(str, Enum):
    IMPORTED = "imported"
    NO_NEW_DATA = "no_new_data"


@dataclass
class ImportBatch:
    records: list[ExamRecord]
    dropped_invalid: int = 0
    discarded_other_subject: int = 0


@dataclass
class ImportResult:
    mode: ImportMode
    outcome: ImportOutcome
    imported: int
    dropped_invalid: int = 0
    discarded_other_subject: int = 0


def export_subject(store, subject_id: str) -> list[dict]:
    records = store.list_by_subject(subject_id)
    if not records:
        raise ValidationError(f"No history found for {subject_id} to export", kind="no_data")
    return [r.to_dict() for r in records]


def export_to_file(store, subject_id: str, directory, today: Optional[date] = None) -> Path:
    """Write ``exam_history_<subject>_<date>.json`` and return its path."""
    document = export_subject(store, subject_id)
    today = today or date.today()
    path = Path(directory) / f"exam_history_{subject_id}_{today.isoformat()}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Exported %d %s records to %s", len(document), subject_id, path)
    return path


def _is_candidate(item: Any) -> bool:
    return (
        isinstance(item, dict)
        and bool(item.get("id"))
        and bool(item.get("subjectId"))
        and isinstance(item.get("answers"), list)
    )


def parse_import(document: Any, expected_subject_id: str) -> ImportBatch:
    """Keep the well-formed records that belong to ``expected_subject_id``.

    Malformed entries and records of other subjects are skipped and counted,
    not fatal. Raises ValidationError when nothing usable remains.
    """
    if not isinstance(document, list):
        raise ValidationError("Invalid format: root must be an array", kind="not_a_list")

    batch = ImportBatch(records=[])
    for item in document:
        if not _is_candidate(item):
            batch.dropped_invalid += 1
            continue
        if item["subjectId"] != expected_subject_id:
            batch.discarded_other_subject += 1
            continue
        try:
            batch.records.append(ExamRecord.from_dict(item))
        except (KeyError, TypeError, ValueError, AttributeError):
            batch.dropped_invalid += 1

    if batch.discarded_other_subject:
        logger.warning(
            "Skipped %d records that do not belong to %s",
            batch.discarded_other_subject, expected_subject_id,
        )
    if not batch.records:
        raise ValidationError(
            f"No valid exam records for {expected_subject_id} in the file",
            kind="no_valid_records",
        )
    return batch


def import_records(store, document: Any, expected_subject_id: str, mode) -> ImportResult:
    """Merge an import document into the store.

    ``override`` replaces the subject's history with the batch; ``add``
    appends only records whose id is not in the store yet. Report figures
    computed before the import are stale afterwards.
    """
    try:
        mode = ImportMode(mode)
    except ValueError:
        raise ValidationError(f"Unknown import mode {mode!r}", kind="bad_mode")
    batch = parse_import(document, expected_subject_id)

    if mode == ImportMode.OVERRIDE:
        store.replace_subject(expected_subject_id, batch.records)
        imported = len(batch.records)
    else:
        imported = len(store.append_new(batch.records))

    outcome = ImportOutcome.IMPORTED if imported else ImportOutcome.NO_NEW_DATA
    logger.info("Import %s for %s: %d records (%s)", mode.value, expected_subject_id, imported, outcome.value)
    return ImportResult(
        mode=mode,
        outcome=outcome,
        imported=imported,
        dropped_invalid=batch.dropped_invalid,
        discarded_other_subject=batch.discarded_other_subject,
    )


def import_from_file(store, path, expected_subject_id: str, mode) -> ImportResult:
    text = Path(path).read_text(encoding="utf-8")
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON file: {e}", kind="invalid_json")
    return import_records(store, document, expected_subject_id, mode)
