"""Tests for rule-based identity field parsing."""

import pytest

from verifier.extraction.field_parser import ExtractionResult, FieldParser


@pytest.fixture
def parser() -> FieldParser:
    return FieldParser()


class TestNameExtraction:
    """Tests for name label matching."""

    def test_student_name_stops_before_next_label(self, parser: FieldParser) -> None:
        result = parser.parse("Student Name: Jane Smith Roll No: 202310101110069")
        assert result.extracted_name == "Jane Smith"

    def test_full_name_label(self, parser: FieldParser) -> None:
        result = parser.parse(
            "ABC INSTITUTE\nFull Name - Ravi Kumar Sharma\nBranch CSE"
        )
        assert result.extracted_name == "Ravi Kumar Sharma"

    def test_plain_name_label_case_insensitive(self, parser: FieldParser) -> None:
        result = parser.parse("NAME: Priya Patel\nDOB: 01/02/2004")
        assert result.extracted_name == "Priya Patel"

    def test_multiline_name_is_collapsed(self, parser: FieldParser) -> None:
        result = parser.parse("Name:\n  Arjun\n   Mehta")
        assert result.extracted_name == "Arjun Mehta"

    def test_name_runs_into_capitalized_next_line(self, parser: FieldParser) -> None:
        result = parser.parse("Name: Jane Smith\nComputer Science")
        assert result.extracted_name == "Jane Smith Computer Science"

    def test_name_stops_at_label_on_next_line(self, parser: FieldParser) -> None:
        result = parser.parse("Name: Jane Smith\nDepartment Computer Science")
        assert result.extracted_name == "Jane Smith"

    def test_specific_label_preferred(self, parser: FieldParser) -> None:
        text = "Father Name: Suresh Rao\nStudent Name: Kiran Rao"
        assert parser.parse(text).extracted_name == "Kiran Rao"

    def test_names_resembling_labels_kept(self, parser: FieldParser) -> None:
        result = parser.parse("Name: Noah Regan")
        assert result.extracted_name == "Noah Regan"

    def test_no_name_label(self, parser: FieldParser) -> None:
        assert parser.parse("Jane Smith 202310101110069").extracted_name is None


class TestRollExtraction:
    """Tests for roll number matching."""

    def test_fifteen_digit_roll_without_label(self, parser: FieldParser) -> None:
        result = parser.parse("CSE Dept\n202310101110069\nValid till 2027")
        assert result.extracted_roll == "202310101110069"

    def test_fifteen_digit_roll_preferred_over_label(
        self, parser: FieldParser
    ) -> None:
        text = "Roll No: 1234567890\nReg 202310101110069"
        assert parser.parse(text).extracted_roll == "202310101110069"

    def test_labeled_roll_fallback(self, parser: FieldParser) -> None:
        assert parser.parse("Roll No: 1234567890").extracted_roll == "1234567890"
        assert parser.parse("roll number 98765432101").extracted_roll == (
            "98765432101"
        )

    def test_registration_and_enrollment_labels(self, parser: FieldParser) -> None:
        assert parser.parse("Registration No. 5566778899").extracted_roll == (
            "5566778899"
        )
        assert parser.parse("Enrolment No: 1122334455").extracted_roll == (
            "1122334455"
        )
        assert parser.parse("Enrollment No - 1122334456").extracted_roll == (
            "1122334456"
        )

    def test_short_numbers_ignored(self, parser: FieldParser) -> None:
        assert parser.parse("Roll No: 12345").extracted_roll is None

    def test_roll_embedded_in_longer_number_ignored(
        self, parser: FieldParser
    ) -> None:
        assert parser.parse("Phone 9202310101110069").extracted_roll is None


class TestCollegeIdExtraction:
    """Tests for institutional ID matching."""

    def test_college_id_upper_cased(self, parser: FieldParser) -> None:
        assert parser.parse("College ID: ab12cd").extracted_college_id == "AB12CD"

    def test_student_id(self, parser: FieldParser) -> None:
        result = parser.parse("Student ID No. stu0042")
        assert result.extracted_college_id == "STU0042"

    def test_id_number_label(self, parser: FieldParser) -> None:
        assert parser.parse("ID Number: xy99").extracted_college_id == "XY99"

    def test_card_no_label(self, parser: FieldParser) -> None:
        assert parser.parse("Card No: cn4521").extracted_college_id == "CN4521"


class TestParse:
    """Tests for whole-card parsing."""

    def test_fields_are_independent(self, parser: FieldParser) -> None:
        result = parser.parse("College ID: ZX81\nsome unreadable smudge")
        assert result.extracted_name is None
        assert result.extracted_roll is None
        assert result.extracted_college_id == "ZX81"

    def test_no_recognizable_fields(self, parser: FieldParser) -> None:
        text = "welcome to the campus library"
        assert parser.parse(text) == ExtractionResult(raw_text=text)

    def test_empty_text(self, parser: FieldParser) -> None:
        assert parser.parse("") == ExtractionResult(raw_text="")

    def test_full_card(self, parser: FieldParser) -> None:
        text = (
            "XYZ COLLEGE OF ENGINEERING\n"
            "Student Name: Jane Smith\n"
            "Roll No: 202310101110069\n"
            "College ID: jsm2023\n"
            "Valid Till: 2027"
        )
        result = parser.parse(text)
        assert result.raw_text == text
        assert result.extracted_name == "Jane Smith"
        assert result.extracted_roll == "202310101110069"
        assert result.extracted_college_id == "JSM2023"
