"""
Кастомные исключения для системы сертификатов.
"""

from typing import List, Optional


class CertificateError(Exception):
    """Базовое исключение для всех ошибок сертификатов."""
    pass


class AuthenticationRequiredError(CertificateError):
    """Нет подтвержденной личности вызывающего."""
    pass


class AuthorizationDeniedError(CertificateError):
    """Нет нужной группы или аккаунт отключен."""
    pass


class ValidationError(CertificateError):
    """Ошибка валидации входных данных."""
    pass


class MalformedInputError(ValidationError):
    """CSV структурно слишком короткий."""
    pass


class ValidationFailedError(ValidationError):
    """Агрегированная ошибка валидации строк CSV."""

    def __init__(self, errors: List["RowError"], message: Optional[str] = None):
        self.errors = list(errors)
        if message is None:
            message = "CSV parsing errors:\n" + "\n".join(str(error) for error in self.errors)
        super().__init__(message)


class ProfileIncompleteError(CertificateError):
    """Организация лидера еще не указана."""
    pass


class CertificateNotFoundError(CertificateError):
    """Сертификат не найден."""
    pass


class LeaderNotFoundError(CertificateError):
    """Профиль лидера не найден."""
    pass


class DuplicateIdentifierError(CertificateError):
    """Сертификат с таким ID уже существует."""

    def __init__(self, unique_id: str):
        self.unique_id = unique_id
        super().__init__(f"Duplicate certificate identifier: {unique_id}")


class OrgNameAlreadySetError(CertificateError):
    """Название организации уже задано и не может быть изменено."""
    pass


class DatabaseError(CertificateError):
    """Ошибка работы с базой данных."""
    pass


class GenerationError(CertificateError):
    """Ошибка генерации или разбора ID сертификата."""
    pass


class NotificationError(CertificateError):
    """Ошибка отправки уведомления."""
    pass
