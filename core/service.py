"""
Основная бизнес-логика для работы с сертификатами.
"""

import logging
from typing import Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from .csv_pipeline import CSVIngestionPipeline
from .database import (
    CertificateRepository, LeaderRepository,
    Certificate as DBCertificate, Leader as DBLeader,
)
from .generator import CertificateIDGenerator
from .identity import ProxyIdentityResolver
from .models import (
    BatchFailure, BatchResult, Certificate, CertificatePage, CertificatePublic,
    CertificateRequest, CertificateSummary, Leader, ProfileUpdate, ResolvedIdentity,
)
from .notifications import EmailNotifier
from .exceptions import *

# Настройка логирования
logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200


def _convert_db_to_pydantic(db_certificate: DBCertificate) -> Certificate:
    """
    Конвертирует объект БД в Pydantic модель.

    Args:
        db_certificate: Объект сертификата из БД

    Returns:
        Certificate: Pydantic модель сертификата
    """
    return Certificate(
        id=str(db_certificate.id),
        unique_id=db_certificate.unique_id,
        recipient_name=db_certificate.recipient_name,
        recipient_email=db_certificate.recipient_email,
        event_type=db_certificate.event_type,
        event_name=db_certificate.event_name,
        issue_date=db_certificate.issue_date,
        issuer_name=db_certificate.issuer_name,
        org_name=db_certificate.org_name,
        generated_by=db_certificate.generated_by,
        pdf_url=db_certificate.pdf_url,
        created_at=db_certificate.created_at,
    )


def _convert_leader(db_leader: DBLeader) -> Leader:
    return Leader.model_validate(db_leader)


class CertificateService:
    """Сервис выпуска сертификатов."""

    def __init__(self, certificate_repo: CertificateRepository, leader_repo: LeaderRepository,
                 id_generator: CertificateIDGenerator, notifier: Optional[EmailNotifier] = None,
                 pipeline: Optional[CSVIngestionPipeline] = None,
                 validation_base_url: str = "https://certs.gdg-oncampus.dev/",
                 id_collision_retries: int = 0):
        """
        Args:
            certificate_repo: Хранилище сертификатов
            leader_repo: Хранилище профилей лидеров
            id_generator: Генератор ID
            notifier: Отправитель писем (None - письма не отправляются)
            pipeline: Разбор CSV
            validation_base_url: Публичная страница проверки
            id_collision_retries: Сколько раз перегенерировать ID при коллизии
        """
        self.certificate_repo = certificate_repo
        self.leader_repo = leader_repo
        self.id_generator = id_generator
        self.notifier = notifier
        self.pipeline = pipeline or CSVIngestionPipeline()
        self.validation_base_url = validation_base_url
        self.id_collision_retries = id_collision_retries

    def issue_certificate(self, identity: ResolvedIdentity, request: CertificateRequest) -> Certificate:
        """
        Выпускает один сертификат.

        Args:
            identity: Личность вызывающего
            request: Данные получателя

        Returns:
            Certificate: Созданный сертификат

        Raises:
            LeaderNotFoundError: Профиль лидера не найден
            ProfileIncompleteError: Организация не указана
            DuplicateIdentifierError: Коллизия ID
            DatabaseError: При ошибке БД
        """
        logger.info(f"Выпуск сертификата для {request.recipient_name} пользователем {identity.subject_id}")

        try:
            issuer = self._resolve_issuer(identity)
            certificate = self._persist(issuer, request)
        except CertificateError:
            raise
        except Exception as e:
            logger.error(f"Ошибка выпуска сертификата: {e}")
            raise DatabaseError(f"Неожиданная ошибка при выпуске сертификата: {e}")

        self._notify(certificate)

        logger.info(f"Сертификат {certificate.unique_id} успешно выпущен")
        return certificate

    def issue_batch(self, identity: ResolvedIdentity, csv_text: str) -> BatchResult:
        """
        Выпускает сертификаты по CSV.

        Организация проверяется до разбора CSV. Ошибки разбора отклоняют весь
        пакет, ошибки сохранения отдельной строки попадают в errors.

        Args:
            identity: Личность вызывающего
            csv_text: Содержимое CSV

        Returns:
            BatchResult: Итог пакета

        Raises:
            ProfileIncompleteError: Организация не указана
            MalformedInputError: Меньше двух строк
            ValidationFailedError: Есть некорректные строки
        """
        logger.info(f"Пакетный выпуск сертификатов пользователем {identity.subject_id}")

        try:
            issuer = self._resolve_issuer(identity)
        except CertificateError:
            raise
        except Exception as e:
            logger.error(f"Ошибка получения профиля лидера: {e}")
            raise DatabaseError(f"Ошибка при получении профиля: {e}")

        rows = self.pipeline.run(csv_text)

        result = BatchResult()
        failures = []

        for row in rows:
            try:
                certificate = self._persist(issuer, row.to_request())
            except (CertificateError, PydanticValidationError) as e:
                logger.error(f"Не удалось выпустить сертификат для {row.recipient_name} (строка {row.row_number}): {e}")
                failures.append(BatchFailure(
                    row_number=row.row_number,
                    recipient_name=row.recipient_name,
                    error=str(e),
                ))
                continue

            result.certificates.append(CertificateSummary(
                unique_id=certificate.unique_id,
                recipient_name=certificate.recipient_name,
                event_name=certificate.event_name,
            ))
            self._notify(certificate)

        result.generated = len(result.certificates)
        result.failed = len(failures)
        result.errors = failures or None

        logger.info(f"Пакет обработан: выпущено {result.generated}, ошибок {result.failed}")
        return result

    def list_certificates(self, identity: ResolvedIdentity, page: int = 1, limit: int = 50) -> CertificatePage:
        """
        Получает сертификаты, выпущенные пользователем.

        Args:
            identity: Личность вызывающего
            page: Номер страницы
            limit: Размер страницы

        Returns:
            CertificatePage: Страница сертификатов
        """
        if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}")

        try:
            rows, total = self.certificate_repo.list_by_issuer(identity.subject_id, page, limit)
        except SQLAlchemyError as e:
            logger.error(f"Ошибка получения сертификатов пользователя {identity.subject_id}: {e}")
            raise DatabaseError(f"Ошибка при получении сертификатов пользователя: {e}")

        return CertificatePage(
            certificates=[_convert_db_to_pydantic(row) for row in rows],
            total=total,
            page=page,
            limit=limit,
        )

    def build_validation_url(self, unique_id: str) -> str:
        """Ссылка на публичную проверку сертификата."""
        return f"{self.validation_base_url}?cert={unique_id}"

    def _resolve_issuer(self, identity: ResolvedIdentity) -> DBLeader:
        """Находит лидера и проверяет, что он может выпускать сертификаты."""
        issuer = self.leader_repo.get(identity.subject_id)

        if issuer is None:
            raise LeaderNotFoundError("User not found")
        if not issuer.can_login:
            raise AuthorizationDeniedError("Access denied. Your account has been disabled.")
        if not issuer.org_name:
            raise ProfileIncompleteError("Please complete your profile setup before generating certificates")

        return issuer

    def _persist(self, issuer: DBLeader, request: CertificateRequest) -> Certificate:
        """Генерирует ID и сохраняет сертификат, при коллизии - до N повторов."""
        attempts = self.id_collision_retries + 1

        for attempt in range(1, attempts + 1):
            issued_at = self.id_generator.clock()
            unique_id = self.id_generator.generate(issued_at)
            certificate_data = {
                "unique_id": unique_id,
                "recipient_name": request.recipient_name,
                "recipient_email": request.recipient_email,
                "event_type": request.event_type.value,
                "event_name": request.event_name,
                "issue_date": issued_at,
                "issuer_name": issuer.name,
                "org_name": issuer.org_name,
                "generated_by": issuer.ocid,
                "pdf_url": request.pdf_url,
            }

            try:
                db_certificate = self.certificate_repo.insert(certificate_data)
            except DuplicateIdentifierError:
                if attempt == attempts:
                    raise
                logger.warning(f"Коллизия ID {unique_id}, повтор {attempt}/{self.id_collision_retries}")
                continue

            return _convert_db_to_pydantic(db_certificate)

    def _notify(self, certificate: Certificate) -> bool:
        """Отправляет письмо получателю, ошибки только логируются."""
        if not certificate.recipient_email or self.notifier is None:
            return False

        try:
            return self.notifier.send(
                recipient_email=certificate.recipient_email,
                recipient_name=certificate.recipient_name,
                event_name=certificate.event_name,
                unique_id=certificate.unique_id,
                validation_url=self.build_validation_url(certificate.unique_id),
                pdf_url=certificate.pdf_url,
            )
        except Exception as e:
            logger.warning(f"Не удалось отправить письмо для {certificate.unique_id}: {e}")
            return False


class ValidationService:
    """Публичная проверка сертификатов."""

    def __init__(self, certificate_repo: CertificateRepository):
        self.certificate_repo = certificate_repo

    def validate(self, unique_id: str) -> CertificatePublic:
        """
        Проверяет сертификат по ID.

        Args:
            unique_id: ID сертификата

        Returns:
            CertificatePublic: Публичные данные сертификата

        Raises:
            ValidationError: Пустой ID
            CertificateNotFoundError: Сертификат не найден
        """
        unique_id = (unique_id or "").strip()
        if not unique_id:
            raise ValidationError("Certificate ID is required")

        try:
            db_certificate = self.certificate_repo.find_by_unique_id(unique_id)
        except SQLAlchemyError as e:
            logger.error(f"Ошибка проверки сертификата {unique_id}: {e}")
            raise DatabaseError(f"Ошибка при проверке сертификата: {e}")

        if db_certificate is None:
            logger.info(f"Сертификат {unique_id} не найден")
            raise CertificateNotFoundError(
                "No certificate exists with this ID. Please check the ID and try again."
            )

        return _convert_db_to_pydantic(db_certificate).to_public()


class LeaderService:
    """Вход и профиль лидеров."""

    def __init__(self, leader_repo: LeaderRepository, identity_resolver: ProxyIdentityResolver):
        self.leader_repo = leader_repo
        self.identity_resolver = identity_resolver

    def login(self, identity: ResolvedIdentity) -> Tuple[Leader, bool]:
        """
        Вход лидера: создает профиль при первом входе.

        Returns:
            Tuple[Leader, bool]: Профиль и флаг создания

        Raises:
            AuthorizationDeniedError: Нет группы администраторов или аккаунт отключен
        """
        self.identity_resolver.require_admin(identity)

        try:
            db_leader, created = self.leader_repo.upsert_on_first_login(
                identity.subject_id, identity.name or identity.email, identity.email
            )
        except SQLAlchemyError as e:
            logger.error(f"Ошибка входа лидера {identity.subject_id}: {e}")
            raise DatabaseError(f"Ошибка при входе: {e}")

        if not db_leader.can_login:
            logger.warning(f"Вход запрещен для отключенного аккаунта {identity.subject_id}")
            raise AuthorizationDeniedError("Access denied. Your account has been disabled.")

        if created:
            logger.info(f"Создан новый лидер {identity.subject_id} ({identity.email})")
        return _convert_leader(db_leader), created

    def get_profile(self, identity: ResolvedIdentity) -> Leader:
        """Возвращает профиль текущего пользователя."""
        try:
            db_leader = self.leader_repo.get(identity.subject_id)
        except SQLAlchemyError as e:
            logger.error(f"Ошибка получения профиля {identity.subject_id}: {e}")
            raise DatabaseError(f"Ошибка при получении профиля: {e}")

        if db_leader is None:
            raise LeaderNotFoundError("User not found")
        return _convert_leader(db_leader)

    def update_profile(self, identity: ResolvedIdentity, update: ProfileUpdate) -> Leader:
        """
        Обновляет имя и/или организацию (организация задается один раз).

        Raises:
            ValidationError: Нечего обновлять
            OrgNameAlreadySetError: Организация уже задана
            LeaderNotFoundError: Профиль не найден
        """
        if update.name is None and update.org_name is None:
            raise ValidationError("No valid fields to update")

        try:
            db_leader = self.leader_repo.update_profile(
                identity.subject_id, name=update.name, org_name=update.org_name
            )
        except SQLAlchemyError as e:
            logger.error(f"Ошибка обновления профиля {identity.subject_id}: {e}")
            raise DatabaseError(f"Ошибка при обновлении профиля: {e}")
        logger.info(f"Профиль {identity.subject_id} обновлен")
        return _convert_leader(db_leader)
