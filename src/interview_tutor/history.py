"""Exam history storage.

Every store keeps the whole collection of exam records and makes each
operation a single atomic read-modify-write, so readers never observe a
half-applied change. Records are copied on the way in and out; callers can
mutate what they get back without touching the stored copy.
"""
import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterable, Optional, Protocol

import portalocker

from interview_tutor.db import get_connection, init_db
from interview_tutor.errors import ConcurrencyError, NotFoundError
from interview_tutor.models import ExamRecord

logger = logging.getLogger(__name__)


class HistoryStore(Protocol):
    def append(self, record: ExamRecord) -> None: ...

    def find_by_id(self, exam_id: str) -> Optional[ExamRecord]: ...

    def replace(self, exam_id: str, record: ExamRecord, expected: Optional[ExamRecord] = None) -> None: ...

    def list_by_subject(self, subject_id: str) -> list[ExamRecord]: ...

    def list_all(self) -> list[ExamRecord]: ...

    def replace_subject(self, subject_id: str, records: Iterable[ExamRecord]) -> None: ...

    def append_new(self, records: Iterable[ExamRecord]) -> list[ExamRecord]: ...


def _newest_first(records: list[ExamRecord]) -> list[ExamRecord]:
    return sorted(records, key=lambda r: r.timestamp, reverse=True)


def _check_expected(stored: dict, expected: Optional[ExamRecord], exam_id: str) -> None:
    if expected is not None and ExamRecord.from_dict(stored).to_dict() != expected.to_dict():
        raise ConcurrencyError(f"Exam {exam_id} was modified by another writer")


class _DocumentStore:
    """Shared logic for stores that hold the history as a list of dicts."""

    def _read(self) -> list[dict]:
        raise NotImplementedError

    def _mutate(self, modifier: Callable[[list[dict]], object]):
        raise NotImplementedError

    def append(self, record: ExamRecord) -> None:
        self._mutate(lambda docs: docs.append(record.to_dict()))

    def find_by_id(self, exam_id: str) -> Optional[ExamRecord]:
        for doc in self._read():
            if doc["id"] == exam_id:
                return ExamRecord.from_dict(doc)
        return None

    def replace(self, exam_id: str, record: ExamRecord, expected: Optional[ExamRecord] = None) -> None:
        def modifier(docs):
            for i, doc in enumerate(docs):
                if doc["id"] == exam_id:
                    _check_expected(doc, expected, exam_id)
                    docs[i] = record.to_dict()
                    return
            raise NotFoundError(f"No exam with id {exam_id}")

        self._mutate(modifier)

    def list_by_subject(self, subject_id: str) -> list[ExamRecord]:
        return [ExamRecord.from_dict(d) for d in self._read() if d["subjectId"] == subject_id]

    def list_all(self) -> list[ExamRecord]:
        return _newest_first([ExamRecord.from_dict(d) for d in self._read()])

    def replace_subject(self, subject_id: str, records: Iterable[ExamRecord]) -> None:
        incoming = [r.to_dict() for r in records]

        def modifier(docs):
            docs[:] = [d for d in docs if d["subjectId"] != subject_id] + incoming

        self._mutate(modifier)

    def append_new(self, records: Iterable[ExamRecord]) -> list[ExamRecord]:
        records = list(records)

        def modifier(docs):
            seen = {d["id"] for d in docs}
            added = []
            for record in records:
                if record.id in seen:
                    continue
                seen.add(record.id)
                docs.append(record.to_dict())
                added.append(record)
            return added

        return self._mutate(modifier)


class InMemoryHistoryStore(_DocumentStore):
    """History held in process memory. Used by tests and throwaway sessions."""

    def __init__(self, records: Iterable[ExamRecord] = ()) -> None:
        self._docs: list[dict] = [r.to_dict() for r in records]

    def _read(self) -> list[dict]:
        return json.loads(json.dumps(self._docs))

    def _mutate(self, modifier):
        docs = self._read()
        result = modifier(docs)
        self._docs = docs
        return result


class JsonFileHistoryStore(_DocumentStore):
    """History kept as a flat JSON array on disk, guarded by a file lock."""

    def __init__(self, path) -> None:
        self.path = Path(path)

    @contextmanager
    def _locked(self, lock_type):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Append mode creates a missing file and never truncates on open
        with open(self.path, "a+", encoding="utf-8") as f:
            portalocker.lock(f, lock_type)
            try:
                yield f
            finally:
                portalocker.unlock(f)

    @staticmethod
    def _load(f) -> list[dict]:
        f.seek(0)
        content = f.read()
        return json.loads(content) if content.strip() else []

    def _read(self) -> list[dict]:
        with self._locked(portalocker.LOCK_SH) as f:
            return self._load(f)

    def _mutate(self, modifier):
        with self._locked(portalocker.LOCK_EX) as f:
            docs = self._load(f)
            result = modifier(docs)
            f.seek(0)
            f.truncate()
            # Appending writes land at end of file, which is now offset 0
            json.dump(docs, f, indent=2, ensure_ascii=False)
        logger.debug("Wrote %d exam records to %s", len(docs), self.path.name)
        return result


class SqliteHistoryStore:
    """History kept in SQLite, one row per record with the JSON in ``payload``."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        init_db(db_path)

    @contextmanager
    def _transaction(self):
        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    @staticmethod
    def _insert(conn, record: ExamRecord) -> None:
        conn.execute(
            "INSERT INTO exam_records (id, subject_id, timestamp, payload) VALUES (?, ?, ?, ?)",
            (record.id, record.subject_id, record.timestamp, json.dumps(record.to_dict())),
        )

    def _select(self, where: str = "", params: tuple = ()) -> list[ExamRecord]:
        conn = get_connection(self.db_path)
        rows = conn.execute(
            f"SELECT payload FROM exam_records {where} ORDER BY seq", params
        ).fetchall()
        conn.close()
        return [ExamRecord.from_dict(json.loads(row["payload"])) for row in rows]

    def append(self, record: ExamRecord) -> None:
        with self._transaction() as conn:
            self._insert(conn, record)

    def find_by_id(self, exam_id: str) -> Optional[ExamRecord]:
        found = self._select("WHERE id = ?", (exam_id,))
        return found[0] if found else None

    def replace(self, exam_id: str, record: ExamRecord, expected: Optional[ExamRecord] = None) -> None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT seq, payload FROM exam_records WHERE id = ? ORDER BY seq LIMIT 1",
                (exam_id,),
            ).fetchone()
            if row is None:
                raise NotFoundError(f"No exam with id {exam_id}")
            _check_expected(json.loads(row["payload"]), expected, exam_id)
            conn.execute(
                "UPDATE exam_records SET id = ?, subject_id = ?, timestamp = ?, payload = ? WHERE seq = ?",
                (record.id, record.subject_id, record.timestamp,
                 json.dumps(record.to_dict()), row["seq"]),
            )

    def list_by_subject(self, subject_id: str) -> list[ExamRecord]:
        return self._select("WHERE subject_id = ?", (subject_id,))

    def list_all(self) -> list[ExamRecord]:
        return _newest_first(self._select())

    def replace_subject(self, subject_id: str, records: Iterable[ExamRecord]) -> None:
        records = list(records)
        with self._transaction() as conn:
            conn.execute("DELETE FROM exam_records WHERE subject_id = ?", (subject_id,))
            for record in records:
                self._insert(conn, record)

    def append_new(self, records: Iterable[ExamRecord]) -> list[ExamRecord]:
        added = []
        with self._transaction() as conn:
            seen = {row["id"] for row in conn.execute("SELECT id FROM exam_records")}
            for record in records:
                if record.id in seen:
                    continue
                seen.add(record.id)
                self._insert(conn, record)
                added.append(record)
        return added
