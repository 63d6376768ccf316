"""
Разбор и валидация CSV для пакетного выпуска сертификатов.

Ожидаемый формат::

    recipient_name,recipient_email,event_type,event_name
    John Doe,john@example.com,workshop,Introduction to Web Development
"""

import logging
from typing import List, Optional, Tuple, Union

from .exceptions import MalformedInputError, ValidationFailedError
from .models import EventType, ParseResult, RowError, ValidatedRow
from .validators import (
    CSVLineSplitter, EmailValidator, EventTypeValidator,
    MSG_EVENT_NAME_REQUIRED, MSG_EVENT_TYPE, MSG_INCOMPLETE_ROW,
    MSG_FIELD_TOO_LONG, MSG_INVALID_EMAIL, MSG_NAME_REQUIRED, MAX_FIELD_LENGTH,
)

logger = logging.getLogger(__name__)

CSV_HEADER = "recipient_name,recipient_email,event_type,event_name"
CSV_TEMPLATE = (
    f"{CSV_HEADER}\n"
    "John Doe,john@example.com,workshop,Introduction to Web Development\n"
    "Jane Smith,jane@example.com,course,Advanced React Patterns\n"
)
EXPECTED_COLUMNS = 4


class CSVIngestionPipeline:
    """Превращает сырой CSV в список проверенных строк."""

    def __init__(self):
        self.splitter = CSVLineSplitter()
        self.email_validator = EmailValidator()
        self.event_type_validator = EventTypeValidator()

    def parse(self, raw_text: str) -> ParseResult:
        """
        Разбирает CSV, собирая все ошибки строк.

        Args:
            raw_text: Содержимое CSV (первая строка - заголовок)

        Returns:
            ParseResult: Проверенные строки и ошибки в исходном порядке

        Raises:
            MalformedInputError: Если меньше двух строк
        """
        lines = (raw_text or "").strip().split("\n")

        if len(lines) < 2:
            raise MalformedInputError("CSV must contain header row and at least one data row")

        result = ParseResult()

        # Заголовок пропускаем без проверки, нумерация строк с 1
        for row_number, line in enumerate(lines[1:], start=2):
            line = line.rstrip("\r")
            if not line.strip():
                continue

            row = self._validate_row(row_number, self.splitter.split(line))
            if isinstance(row, RowError):
                result.errors.append(row)
            else:
                result.records.append(row)

        logger.debug(
            f"CSV разобран: строк {len(result.records)}, ошибок {len(result.errors)}"
        )
        return result

    def run(self, raw_text: str) -> List[ValidatedRow]:
        """
        Разбирает CSV и применяет политику результата.

        Returns:
            List[ValidatedRow]: Все строки, если ошибок нет

        Raises:
            MalformedInputError: Если меньше двух строк
            ValidationFailedError: Если хотя бы одна строка некорректна
        """
        result = self.parse(raw_text)
        if result.errors:
            logger.info(f"CSV отклонен: {len(result.errors)} ошибочных строк")
            raise ValidationFailedError(result.errors)
        return result.records

    def _validate_row(self, row_number: int, values: List[str]) -> Union[ValidatedRow, RowError]:
        """Проверяет поля одной строки, первая ошибка побеждает."""
        error, normalized = self._check_fields(values)
        if error:
            return RowError(row_number=row_number, message=error)

        recipient_name, recipient_email, event_type, event_name = normalized
        return ValidatedRow(
            row_number=row_number,
            recipient_name=recipient_name,
            recipient_email=recipient_email,
            event_type=EventType(event_type),
            event_name=event_name,
        )

    def _check_fields(self, values: List[str]) -> Tuple[Optional[str], tuple]:
        if len(values) < EXPECTED_COLUMNS:
            return MSG_INCOMPLETE_ROW, ()

        recipient_name, recipient_email, event_type, event_name = values[:EXPECTED_COLUMNS]

        if not recipient_name:
            return MSG_NAME_REQUIRED, ()

        normalized_type = self.event_type_validator.normalize(event_type)
        if normalized_type is None:
            return MSG_EVENT_TYPE, ()

        if not event_name:
            return MSG_EVENT_NAME_REQUIRED, ()

        if recipient_email and not self.email_validator.validate(recipient_email):
            return MSG_INVALID_EMAIL, ()

        if any(len(value) > MAX_FIELD_LENGTH for value in (recipient_name, recipient_email, event_name)):
            return MSG_FIELD_TOO_LONG, ()

        return None, (recipient_name, recipient_email or None, normalized_type, event_name)
