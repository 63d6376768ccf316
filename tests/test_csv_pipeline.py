"""
Тесты для разбора CSV пакетного выпуска
"""
import pytest

from core.csv_pipeline import CSV_HEADER, CSV_TEMPLATE, CSVIngestionPipeline
from core.exceptions import MalformedInputError, ValidationFailedError
from core.models import EventType
from core.validators import (
    CSVLineSplitter, EmailValidator, EventTypeValidator,
    MSG_EVENT_NAME_REQUIRED, MSG_EVENT_TYPE, MSG_INCOMPLETE_ROW,
    MSG_FIELD_TOO_LONG, MSG_INVALID_EMAIL, MSG_NAME_REQUIRED,
)


def make_csv(*rows: str) -> str:
    return "\n".join((CSV_HEADER,) + rows)


class TestCSVLineSplitter:
    """Тесты разбора строки с учетом кавычек"""

    @pytest.fixture
    def splitter(self):
        return CSVLineSplitter()

    def test_simple_line(self, splitter):
        assert splitter.split("a,b,c,d") == ["a", "b", "c", "d"]

    def test_fields_are_trimmed(self, splitter):
        assert splitter.split("  John Doe ,  john@x.com,workshop ,  Intro ") == [
            "John Doe", "john@x.com", "workshop", "Intro"
        ]

    def test_quoted_comma(self, splitter):
        """Запятая внутри кавычек не разделяет поля"""
        values = splitter.split('"Doe, John",john@x.com,workshop,"Intro, Part 1"')

        assert values == ["Doe, John", "john@x.com", "workshop", "Intro, Part 1"]

    def test_escaped_quote(self, splitter):
        """Удвоенная кавычка внутри кавычек - литеральная кавычка"""
        values = splitter.split('"John ""JD"" Doe",,course,Event')

        assert values == ['John "JD" Doe', "", "course", "Event"]

    def test_empty_fields(self, splitter):
        assert splitter.split(",,,") == ["", "", "", ""]


class TestValidators:
    """Тесты валидаторов полей"""

    def test_email_validator(self):
        validator = EmailValidator()

        assert validator.validate("john@example.com")
        assert validator.validate("first.last+tag@sub.example.org")

        assert not validator.validate("")
        assert not validator.validate("john")
        assert not validator.validate("john@example")
        assert not validator.validate("john doe@example.com")
        assert not validator.validate("john@@example.com")
        assert not validator.validate("john@example.com\n")

    def test_event_type_normalize(self):
        validator = EventTypeValidator()

        assert validator.normalize("Workshop") == "workshop"
        assert validator.normalize(" COURSE ") == "course"
        assert validator.normalize("webinar") is None
        assert validator.normalize("") is None


class TestCSVIngestionPipeline:
    """Тесты для класса CSVIngestionPipeline"""

    @pytest.fixture
    def pipeline(self):
        return CSVIngestionPipeline()

    def test_parse_valid_rows_in_order(self, pipeline):
        """N корректных строк дают N записей в исходном порядке"""
        raw = make_csv(
            "Alice,alice@example.com,workshop,Intro",
            "Bob,,course,Advanced",
            "Carol,carol@example.com,workshop,Intro",
        )

        result = pipeline.parse(raw)

        assert result.ok
        assert [row.recipient_name for row in result.records] == ["Alice", "Bob", "Carol"]
        assert [row.row_number for row in result.records] == [2, 3, 4]
        assert result.records[1].recipient_email is None

    def test_event_type_is_normalized(self, pipeline):
        """Workshop нормализуется в workshop"""
        result = pipeline.parse(make_csv("Alice,,Workshop,Intro"))

        assert result.records[0].event_type == EventType.WORKSHOP
        assert result.records[0].event_type.value == "workshop"

    def test_errors_are_collected_with_row_numbers(self, pipeline):
        """Все ошибки собираются, номера строк считаются с заголовка"""
        raw = make_csv(
            "Alice,alice@example.com,workshop,Intro",
            "Bob,bob@example.com,webinar,Intro",
            "Carol,not-an-email,course,Intro",
            "Dave,dave@example.com,course,Intro",
        )

        result = pipeline.parse(raw)

        assert len(result.errors) == 2
        assert [error.row_number for error in result.errors] == [3, 4]
        assert result.errors[0].message == MSG_EVENT_TYPE
        assert result.errors[1].message == MSG_INVALID_EMAIL
        assert len(result.records) == 2

    def test_first_violation_wins(self, pipeline):
        """Проверки выполняются по порядку, в ошибку попадает первая"""
        raw = make_csv(
            "Only,three,columns",
            ",bad-email,webinar,",
            "Name,bad-email,webinar,",
            "Name,bad-email,course,",
            "Name,bad-email,course,Event",
        )

        messages = [error.message for error in pipeline.parse(raw).errors]

        assert messages == [
            MSG_INCOMPLETE_ROW,
            MSG_NAME_REQUIRED,
            MSG_EVENT_TYPE,
            MSG_EVENT_NAME_REQUIRED,
            MSG_INVALID_EMAIL,
        ]

    def test_field_length_limit(self, pipeline):
        """Поля длиннее 255 символов отклоняются с номером строки"""
        raw = make_csv(
            "Alice,,workshop,Intro",
            f"{'B' * 300},,workshop,Intro",
            f"Carol,,course,{'E' * 256}",
            f"{'D' * 255},,course,Intro",
        )

        result = pipeline.parse(raw)

        assert [(error.row_number, error.message) for error in result.errors] == [
            (3, MSG_FIELD_TOO_LONG),
            (4, MSG_FIELD_TOO_LONG),
        ]
        assert [row.row_number for row in result.records] == [2, 5]

    def test_blank_line_keeps_row_numbers(self, pipeline):
        """Пустая строка пропускается и не сдвигает нумерацию"""
        raw = make_csv(
            "Alice,,workshop,Intro",
            "   ",
            "Bob,,workshop,webinar-typo",
            "Carol,,meetup,Intro",
        )

        result = pipeline.parse(raw)

        assert [row.row_number for row in result.records] == [2, 4]
        assert len(result.errors) == 1
        assert result.errors[0].row_number == 5

    def test_quoted_comma_row(self, pipeline):
        """Поле в кавычках с запятой дает 4 поля, а не 5"""
        result = pipeline.parse(make_csv('"Doe, John",john@x.com,workshop,"Intro, Part 1"'))

        assert result.ok
        row = result.records[0]
        assert row.recipient_name == "Doe, John"
        assert row.event_name == "Intro, Part 1"

    def test_windows_line_endings(self, pipeline):
        raw = "\r\n".join([CSV_HEADER, "Alice,,course,Intro", "Bob,,course,Intro"])

        result = pipeline.parse(raw)

        assert result.ok
        assert [row.event_name for row in result.records] == ["Intro", "Intro"]

    def test_extra_columns_are_ignored(self, pipeline):
        result = pipeline.parse(make_csv("Alice,,course,Intro,extra,values"))

        assert result.ok
        assert result.records[0].event_name == "Intro"

    @pytest.mark.parametrize("raw", ["", "   ", CSV_HEADER, f"\n\n{CSV_HEADER}\n\n"])
    def test_too_short_input(self, pipeline, raw):
        """Меньше двух строк - ошибка всего ввода"""
        with pytest.raises(MalformedInputError):
            pipeline.parse(raw)

    def test_run_raises_with_all_errors(self, pipeline):
        """run() отклоняет весь пакет со списком всех ошибок"""
        raw = make_csv(
            "Alice,,workshop,Intro",
            "Bob,,webinar,Intro",
            ",,course,Intro",
        )

        with pytest.raises(ValidationFailedError) as exc_info:
            pipeline.run(raw)

        errors = exc_info.value.errors
        assert [str(error) for error in errors] == [
            f"Row 3: {MSG_EVENT_TYPE}",
            f"Row 4: {MSG_NAME_REQUIRED}",
        ]
        assert "Row 3" in str(exc_info.value)

    def test_run_returns_records(self, pipeline):
        records = pipeline.run(CSV_TEMPLATE)

        assert [row.recipient_name for row in records] == ["John Doe", "Jane Smith"]
        assert records[1].to_request().event_type == EventType.COURSE
