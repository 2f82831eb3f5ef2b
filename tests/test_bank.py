"""Tests for loading question banks from disk."""
import logging

import pytest

from interview_tutor.bank import QuestionBank, parse_subject, read_bank_document
from interview_tutor.config import DEFAULT_BANK_DIR
from interview_tutor.errors import NotFoundError, ValidationError


def test_subject_codes_from_json_and_yaml(bank_dir):
    bank = QuestionBank(bank_dir)
    assert bank.subject_codes() == ["java", "react"]


def test_load_json_subject(bank_dir):
    subject = QuestionBank(bank_dir).get_subject("react")
    assert subject.display_name == "React"
    assert subject.bank_size == 6
    assert subject.version == "1"
    questions = subject.questions()
    assert questions[0].text == "React question 1?"
    assert questions[0].reference_answer == "React answer 1"
    assert questions[3].category == "Rendering"


def test_load_yaml_subject(bank_dir):
    subject = QuestionBank(bank_dir).get_subject("java")
    assert subject.bank_size == 3
    assert subject.questions()[0].reference_answer == "The Java virtual machine."


def test_catalog_uses_actual_bank_size(bank_dir):
    catalog = QuestionBank(bank_dir).catalog()
    assert [(s.code, s.name, s.total_questions) for s in catalog] == [
        ("java", "Java", 3),
        ("react", "React", 6),
    ]


def test_unknown_subject(bank_dir):
    bank = QuestionBank(bank_dir)
    assert bank.find_subject("cobol") is None
    with pytest.raises(NotFoundError):
        bank.get_subject("cobol")


def test_missing_directory_is_empty(tmp_path):
    bank = QuestionBank(tmp_path / "nowhere")
    assert bank.subject_codes() == []
    assert bank.catalog() == []


def test_declared_count_mismatch_logs_warning(caplog):
    data = {
        "subject": "Go",
        "totalQuestions": 5,
        "categories": [{"id": "c", "title": "C", "questions": [
            {"id": 1, "question": "Q", "answer": "A"},
        ]}],
    }
    with caplog.at_level(logging.WARNING, logger="interview_tutor.bank"):
        subject = parse_subject("go", data)
    assert subject.bank_size == 1
    assert "declares 5 questions but contains 1" in caplog.text


def test_malformed_question_raises():
    data = {"categories": [{"id": "c", "title": "C", "questions": [{"id": 1, "question": "Q"}]}]}
    with pytest.raises(ValidationError) as exc:
        parse_subject("go", data)
    assert exc.value.kind == "bad_bank"


def test_unparseable_file_raises(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with pytest.raises(ValidationError) as exc:
        read_bank_document(path)
    assert exc.value.kind == "bad_bank"


def test_non_mapping_document_raises(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ValidationError):
        read_bank_document(path)


def test_bundled_banks_load():
    bank = QuestionBank(DEFAULT_BANK_DIR)
    catalog = bank.catalog()
    assert catalog
    for summary in catalog:
        subject = bank.get_subject(summary.code)
        assert not subject.declared_mismatch
        ids = [q.id for q in subject.questions()]
        assert len(ids) == len(set(ids))


def test_catalog_skips_unreadable_bank(bank_dir, caplog):
    (bank_dir / "broken.yaml").write_text("questions: [unclosed\n")
    with caplog.at_level(logging.WARNING, logger="interview_tutor.bank"):
        catalog = QuestionBank(bank_dir).catalog()
    assert [s.code for s in catalog] == ["java", "react"]
    assert "Skipping question bank broken" in caplog.text


def test_non_numeric_declared_count_raises():
    data = {"totalQuestions": "lots", "categories": []}
    with pytest.raises(ValidationError) as exc:
        parse_subject("go", data)
    assert exc.value.kind == "bad_bank"
