# core/models.py

"""
Pydantic модели для валидации и сериализации данных сертификатов.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .validators import (
    EmailValidator, MSG_EVENT_NAME_REQUIRED, MSG_EVENT_TYPE,
    MSG_INVALID_EMAIL, MSG_NAME_REQUIRED,
)

_email_validator = EmailValidator()


class EventType(str, Enum):
    """Тип мероприятия."""
    WORKSHOP = "workshop"
    COURSE = "course"


def _normalize_email(v: Optional[str]) -> Optional[str]:
    """Пустой email превращается в None, непустой проверяется."""
    if v is None:
        return None
    email = v.strip()
    if not email:
        return None
    if not _email_validator.validate(email):
        raise ValueError(MSG_INVALID_EMAIL)
    return email


class CertificateRequest(BaseModel):
    """Модель запроса на выпуск одного сертификата."""
    recipient_name: str = Field(..., max_length=255, description="Имя получателя")
    recipient_email: Optional[str] = Field(None, max_length=255, description="Email получателя")
    event_type: EventType = Field(..., description="Тип мероприятия")
    event_name: str = Field(..., max_length=255, description="Название мероприятия")
    pdf_url: Optional[str] = Field(None, description="Ссылка на готовый PDF")

    @field_validator('recipient_name')
    @classmethod
    def validate_recipient_name(cls, v):
        name = v.strip()
        if not name:
            raise ValueError(MSG_NAME_REQUIRED)
        return name

    @field_validator('event_name')
    @classmethod
    def validate_event_name(cls, v):
        name = v.strip()
        if not name:
            raise ValueError(MSG_EVENT_NAME_REQUIRED)
        return name

    @field_validator('event_type', mode='before')
    @classmethod
    def validate_event_type(cls, v):
        """Тип мероприятия принимается без учета регистра."""
        if isinstance(v, str):
            value = v.strip().lower()
            if value not in (EventType.WORKSHOP.value, EventType.COURSE.value):
                raise ValueError(MSG_EVENT_TYPE)
            return value
        return v

    @field_validator('recipient_email')
    @classmethod
    def validate_recipient_email(cls, v):
        return _normalize_email(v)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "recipient_name": "John Doe",
                "recipient_email": "john@example.com",
                "event_type": "workshop",
                "event_name": "Introduction to Web Development",
            }
        }
    )


class ValidatedRow(BaseModel):
    """Строка CSV, прошедшая валидацию."""
    row_number: int = Field(..., ge=2, description="Номер строки в исходном CSV (заголовок - 1)")
    recipient_name: str
    recipient_email: Optional[str] = None
    event_type: EventType
    event_name: str

    def to_request(self) -> CertificateRequest:
        """Конвертирует строку в запрос на выпуск."""
        return CertificateRequest(
            recipient_name=self.recipient_name,
            recipient_email=self.recipient_email,
            event_type=self.event_type,
            event_name=self.event_name,
        )


class RowError(BaseModel):
    """Ошибка валидации одной строки CSV."""
    row_number: int
    message: str

    def __str__(self) -> str:
        return f"Row {self.row_number}: {self.message}"


class ParseResult(BaseModel):
    """Результат разбора CSV: строки и ошибки в исходном порядке."""
    records: List[ValidatedRow] = Field(default_factory=list)
    errors: List[RowError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class CertificatePublic(BaseModel):
    """Публичная проекция сертификата (без email и автора)."""
    unique_id: str
    recipient_name: str
    event_type: EventType
    event_name: str
    issue_date: datetime
    issuer_name: str
    org_name: str
    pdf_url: Optional[str] = None


class Certificate(BaseModel):
    """Модель выпущенного сертификата."""
    id: Optional[str] = None
    unique_id: str = Field(..., description="ID сертификата")
    recipient_name: str = Field(..., description="Имя получателя")
    recipient_email: Optional[str] = Field(None, description="Email получателя")
    event_type: EventType = Field(..., description="Тип мероприятия")
    event_name: str = Field(..., description="Название мероприятия")
    issue_date: datetime = Field(..., description="Дата выпуска")
    issuer_name: str = Field(..., description="Имя выпустившего лидера на момент выпуска")
    org_name: str = Field(..., description="Организация на момент выпуска")
    generated_by: str = Field(..., description="ocid выпустившего лидера")
    pdf_url: Optional[str] = Field(None, description="Ссылка на PDF")
    created_at: Optional[datetime] = Field(None, description="Время создания записи")

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "unique_id": "GDGOC-20240101-A1B2C",
                "recipient_name": "John Doe",
                "recipient_email": "john@example.com",
                "event_type": "workshop",
                "event_name": "Introduction to Web Development",
                "issue_date": "2024-01-01T10:00:00+00:00",
                "issuer_name": "Jane Leader",
                "org_name": "GDG On Campus Example",
                "generated_by": "a1b2c3",
            }
        },
    )

    def to_public(self) -> CertificatePublic:
        """Возвращает публичную проекцию сертификата."""
        return CertificatePublic(
            unique_id=self.unique_id,
            recipient_name=self.recipient_name,
            event_type=self.event_type,
            event_name=self.event_name,
            issue_date=self.issue_date,
            issuer_name=self.issuer_name,
            org_name=self.org_name,
            pdf_url=self.pdf_url,
        )


class CertificateSummary(BaseModel):
    """Краткая информация о выпущенном в пакете сертификате."""
    unique_id: str
    recipient_name: str
    event_name: str


class BatchFailure(BaseModel):
    """Строка пакета, которую не удалось сохранить."""
    row_number: int
    recipient_name: str
    error: str


class BatchResult(BaseModel):
    """Итог пакетного выпуска."""
    generated: int = 0
    failed: int = 0
    certificates: List[CertificateSummary] = Field(default_factory=list)
    errors: Optional[List[BatchFailure]] = None


class CertificatePage(BaseModel):
    """Страница сертификатов лидера."""
    certificates: List[Certificate]
    total: int
    page: int
    limit: int


class ResolvedIdentity(BaseModel):
    """Подтвержденная личность вызывающего, одна на запрос."""
    subject_id: str
    email: str
    name: str
    username: str
    groups: Tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)


class Leader(BaseModel):
    """Профиль лидера, выпускающего сертификаты."""
    ocid: str
    name: str
    email: str
    org_name: Optional[str] = None
    can_login: bool = True

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdate(BaseModel):
    """Запрос на обновление профиля."""
    name: Optional[str] = Field(None, max_length=255)
    org_name: Optional[str] = Field(None, max_length=255)

    @field_validator('name', 'org_name')
    @classmethod
    def strip_value(cls, v, info):
        if v is None:
            return v
        value = v.strip()
        if not value:
            raise ValueError(f"{info.field_name} cannot be empty")
        return value


class BulkRequest(BaseModel):
    """Запрос на пакетный выпуск."""
    csv_content: str = Field(..., description="Содержимое CSV")
