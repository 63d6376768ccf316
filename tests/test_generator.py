"""
Тесты для генератора ID сертификатов
"""
import re
from datetime import date, datetime, timedelta, timezone

import pytest

from core.exceptions import GenerationError
from core.generator import CertificateIDGenerator


class TestCertificateIDGenerator:
    """Тесты для класса CertificateIDGenerator"""

    def test_generate_matches_format(self, generator):
        """Тест формата сгенерированного ID"""
        cert_id = generator.generate()

        assert re.match(r'^GDGOC-\d{8}-[A-Z0-9]{5}$', cert_id)
        assert cert_id.startswith("GDGOC-20240315-")

    def test_generate_uses_current_date(self):
        """Дата в ID совпадает с датой часов генератора"""
        moments = [
            datetime(2023, 12, 31, 23, 59, tzinfo=timezone.utc),
            datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc),
        ]
        for moment in moments:
            generator = CertificateIDGenerator(clock=lambda: moment)
            cert_id = generator.generate()

            assert generator.extract_issue_date(cert_id) == moment.date()

    def test_generate_respects_timezone(self):
        """Дата берется в часовом поясе развертывания"""
        tz = timezone(timedelta(hours=3))
        utc_moment = datetime(2024, 3, 15, 22, 0, tzinfo=timezone.utc)
        generator = CertificateIDGenerator(tz=tz, clock=lambda: utc_moment.astimezone(tz))

        assert generator.generate().startswith("GDGOC-20240316-")

    def test_custom_prefix(self):
        """Тест пользовательского префикса"""
        generator = CertificateIDGenerator(prefix="TEST", clock=lambda: datetime(2024, 5, 1))

        cert_id = generator.generate()

        assert cert_id.startswith("TEST-20240501-")
        assert generator.validate_id_format(cert_id)
        assert not generator.validate_id_format("GDGOC-20240501-ABCDE")

    def test_generate_many_unique(self, generator):
        """Повторные вызовы дают разные суффиксы"""
        ids = {generator.generate() for _ in range(200)}

        # 36^5 вариантов, 200 ID почти наверняка различны
        assert len(ids) > 195

    def test_validate_id_format(self, generator):
        """Тест проверки формата ID"""
        assert generator.validate_id_format("GDGOC-20240101-A1B2C")
        assert generator.validate_id_format("GDGOC-20241231-00000")

        assert not generator.validate_id_format("")
        assert not generator.validate_id_format("GDGOC-20240101-a1b2c")  # Нижний регистр
        assert not generator.validate_id_format("GDGOC-20240101-A1B2")  # Короткий суффикс
        assert not generator.validate_id_format("GDGOC-2024011-A1B2C")  # Короткая дата
        assert not generator.validate_id_format("GDGOC_20240101_A1B2C")  # Неверные разделители
        assert not generator.validate_id_format("GDGOC-20241301-A1B2C")  # Нет 13-го месяца
        assert not generator.validate_id_format("GDGOC-20240101-A1B2C\n")  # Перевод строки в конце

    def test_extract_issue_date(self, generator):
        """Тест извлечения даты из ID"""
        assert generator.extract_issue_date("GDGOC-20240229-XYZ12") == date(2024, 2, 29)

    def test_extract_issue_date_invalid(self, generator):
        """Неверный ID вызывает GenerationError"""
        with pytest.raises(GenerationError):
            generator.extract_issue_date("NOT-AN-ID")

        with pytest.raises(GenerationError):
            generator.extract_issue_date("GDGOC-20240229-XYZ12\n")

        with pytest.raises(GenerationError):
            generator.extract_issue_date("GDGOC-20230229-XYZ12")
