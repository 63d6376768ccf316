"""
Генератор уникальных номеров сертификатов.
"""

import random
import re
import string
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, Optional

from .exceptions import GenerationError


class CertificateIDGenerator:
    """Генератор ID сертификатов вида PREFIX-YYYYMMDD-XXXXX."""

    SUFFIX_LENGTH = 5

    def __init__(self, prefix: str = "GDGOC", tz: Optional[tzinfo] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            prefix: Фиксированный префикс ID
            tz: Часовой пояс развертывания (по умолчанию UTC)
            clock: Источник текущего времени, для тестов
        """
        # Символы для суффикса (латинские буквы в верхнем регистре + цифры)
        self.characters = string.ascii_uppercase + string.digits
        self.prefix = prefix
        self.tz = tz or timezone.utc
        self.clock = clock or (lambda: datetime.now(self.tz))
        self.pattern = re.compile(
            rf'{re.escape(prefix)}-(\d{{8}})-[A-Z0-9]{{{self.SUFFIX_LENGTH}}}'
        )

    def generate(self, now: Optional[datetime] = None) -> str:
        """
        Генерирует ID сертификата.

        Уникальность не гарантируется: 36^5 вариантов в сутки, окончательная
        проверка - уникальный индекс в БД.

        Args:
            now: Момент выпуска; по умолчанию берется из clock

        Returns:
            str: ID сертификата
        """
        today = (now or self.clock()).strftime("%Y%m%d")
        return f"{self.prefix}-{today}-{self._generate_suffix()}"

    def _generate_suffix(self) -> str:
        """Случайный суффикс из 5 символов."""
        return ''.join(random.choices(self.characters, k=self.SUFFIX_LENGTH))

    def extract_issue_date(self, certificate_id: str) -> date:
        """
        Извлекает дату выпуска из ID сертификата.

        Args:
            certificate_id: ID сертификата

        Returns:
            date: Дата из ID

        Raises:
            GenerationError: Если ID имеет неверный формат
        """
        match = self.pattern.fullmatch(certificate_id or "")
        if not match:
            raise GenerationError(f"Неверный формат ID сертификата: {certificate_id}")

        try:
            return datetime.strptime(match.group(1), "%Y%m%d").date()
        except ValueError as e:
            raise GenerationError(f"Не удалось извлечь дату из ID сертификата: {e}")

    def validate_id_format(self, certificate_id: str) -> bool:
        """
        Проверяет корректность формата ID сертификата.

        Args:
            certificate_id: ID для проверки

        Returns:
            bool: True если формат корректен, False иначе
        """
        try:
            self.extract_issue_date(certificate_id)
        except GenerationError:
            return False
        return True
