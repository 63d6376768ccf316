"""
Модуль валидации входных данных для сертификатов.
"""

import re
from typing import List, Optional

# Сообщения об ошибках, которые видит пользователь
MSG_INCOMPLETE_ROW = "incomplete data, expected 4 columns"
MSG_NAME_REQUIRED = "recipient name is required"
MSG_EVENT_TYPE = "event type must be workshop or course"
MSG_EVENT_NAME_REQUIRED = "event name is required"
MSG_INVALID_EMAIL = "invalid email format"
MSG_FIELD_TOO_LONG = "field exceeds 255 characters"

MAX_FIELD_LENGTH = 255

EVENT_TYPES = ("workshop", "course")


class EmailValidator:
    """Нестрогий валидатор email вида local@domain.tld (не RFC 5322)."""

    def __init__(self):
        self.pattern = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

    def validate(self, email: str) -> bool:
        """
        Валидация email.

        Args:
            email: Адрес для проверки

        Returns:
            bool: True если адрес похож на email, False иначе
        """
        if not email:
            return False
        return bool(self.pattern.fullmatch(email))


class EventTypeValidator:
    """Валидатор типа мероприятия."""

    def normalize(self, event_type: Optional[str]) -> Optional[str]:
        """
        Приводит тип мероприятия к нижнему регистру.

        Returns:
            Optional[str]: 'workshop' / 'course' или None если тип недопустим
        """
        if not event_type:
            return None
        value = event_type.strip().lower()
        return value if value in EVENT_TYPES else None


class CSVLineSplitter:
    """Разбор одной строки CSV с учетом кавычек."""

    def __init__(self, delimiter: str = ",", quote: str = '"'):
        self.delimiter = delimiter
        self.quote = quote

    def split(self, line: str) -> List[str]:
        """
        Разбивает строку на поля.

        Разделитель внутри кавычек считается частью поля, удвоенная кавычка
        внутри кавычек дает литеральную кавычку, любая другая кавычка
        переключает режим. Поля обрезаются по краям.

        Args:
            line: Строка CSV без перевода строки

        Returns:
            List[str]: Список полей
        """
        values = []
        current = []
        in_quotes = False
        i = 0
        length = len(line)

        while i < length:
            char = line[i]

            if char == self.quote:
                if in_quotes and i + 1 < length and line[i + 1] == self.quote:
                    current.append(self.quote)
                    i += 1
                else:
                    in_quotes = not in_quotes
            elif char == self.delimiter and not in_quotes:
                values.append("".join(current).strip())
                current = []
            else:
                current.append(char)

            i += 1

        values.append("".join(current).strip())
        return values
