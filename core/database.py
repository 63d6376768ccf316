# core/database.py

"""
Модели SQLAlchemy и репозитории для работы с базой данных.
"""

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import (
    create_engine, Column, String, DateTime, Boolean, Index, Uuid,
    func, select, text, update
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .exceptions import (
    DatabaseError, DuplicateIdentifierError, LeaderNotFoundError,
    OrgNameAlreadySetError,
)

logger = logging.getLogger(__name__)

# Базовый класс для моделей
Base = declarative_base()


class Certificate(Base):
    """Модель сертификата."""

    __tablename__ = "certificates"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    unique_id = Column(String(50), unique=True, nullable=False, index=True)
    recipient_name = Column(String(255), nullable=False)
    recipient_email = Column(String(255), nullable=True)
    event_type = Column(String(20), nullable=False)
    event_name = Column(String(255), nullable=False)
    issue_date = Column(DateTime(timezone=True), nullable=False)

    # Снимок данных лидера на момент выпуска
    issuer_name = Column(String(255), nullable=False)
    org_name = Column(String(255), nullable=False)
    generated_by = Column(String(255), nullable=False)

    pdf_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('idx_certificates_generated_by', 'generated_by', 'created_at'),
    )

    def __repr__(self):
        return f"<Certificate(unique_id={self.unique_id}, recipient={self.recipient_name})>"


class Leader(Base):
    """Модель лидера, которому разрешено выпускать сертификаты."""

    __tablename__ = "allowed_leaders"

    ocid = Column(String(255), primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    org_name = Column(String(255), nullable=True)
    can_login = Column(Boolean, default=True, server_default=text('true'), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Leader(ocid={self.ocid}, org={self.org_name})>"


class DatabaseManager:
    """Менеджер для работы с базой данных."""

    def __init__(self, database_url: str, echo: bool = False):
        """
        Инициализация менеджера БД.

        Args:
            database_url: URL подключения к БД
            echo: Логировать SQL запросы
        """
        if database_url.startswith("sqlite"):
            engine_kwargs = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs = {"pool_pre_ping": True, "pool_recycle": 3600}

        self.engine = create_engine(database_url, echo=echo, **engine_kwargs)
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    def create_tables(self):
        """Создает все таблицы в базе данных."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Таблицы базы данных созданы успешно")

    def get_session(self) -> Session:
        """Возвращает новую сессию для работы с БД."""
        return self.SessionLocal()

    def health_check(self) -> bool:
        """Проверяет подключение к базе данных."""
        try:
            with self.get_session() as session:
                session.execute(text("SELECT 1"))
                return True
        except SQLAlchemyError as e:
            logger.error(f"Ошибка подключения к БД: {e}")
            return False

    def close(self):
        """Закрывает пул соединений."""
        self.engine.dispose()
        logger.info("Пул соединений с БД закрыт")


class CertificateRepository:
    """Репозиторий для работы с сертификатами."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def insert(self, certificate_data: dict) -> Certificate:
        """
        Сохраняет новый сертификат.

        Args:
            certificate_data: Данные сертификата

        Returns:
            Certificate: Сохраненный сертификат

        Raises:
            DuplicateIdentifierError: Если unique_id уже занят
            DatabaseError: При другой ошибке БД
        """
        unique_id = certificate_data["unique_id"]

        with self.db_manager.get_session() as session:
            certificate = Certificate(**certificate_data)
            session.add(certificate)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                if self._exists(session, unique_id):
                    logger.warning(f"Коллизия ID сертификата: {unique_id}")
                    raise DuplicateIdentifierError(unique_id) from e
                raise DatabaseError(f"Ошибка сохранения сертификата: {e.orig}") from e
            except SQLAlchemyError as e:
                session.rollback()
                raise DatabaseError(f"Ошибка сохранения сертификата: {e}") from e

            session.refresh(certificate)
            return certificate

    def find_by_unique_id(self, unique_id: str) -> Optional[Certificate]:
        """
        Получает сертификат по ID.

        Args:
            unique_id: ID сертификата

        Returns:
            Optional[Certificate]: Сертификат или None
        """
        with self.db_manager.get_session() as session:
            return session.scalars(
                select(Certificate).where(Certificate.unique_id == unique_id)
            ).first()

    def list_by_issuer(self, issuer_id: str, page: int = 1, limit: int = 50) -> Tuple[List[Certificate], int]:
        """
        Получает сертификаты, выпущенные лидером, от новых к старым.

        Args:
            issuer_id: ocid лидера
            page: Номер страницы (с 1)
            limit: Размер страницы

        Returns:
            Tuple[List[Certificate], int]: Страница сертификатов и общее количество
        """
        offset = (page - 1) * limit

        with self.db_manager.get_session() as session:
            rows = session.scalars(
                select(Certificate)
                .where(Certificate.generated_by == issuer_id)
                .order_by(Certificate.created_at.desc(), Certificate.issue_date.desc())
                .limit(limit)
                .offset(offset)
            ).all()

            total = session.scalar(
                select(func.count()).select_from(Certificate).where(Certificate.generated_by == issuer_id)
            )

            return list(rows), int(total or 0)

    def _exists(self, session: Session, unique_id: str) -> bool:
        return session.scalar(
            select(func.count()).select_from(Certificate).where(Certificate.unique_id == unique_id)
        ) > 0


class LeaderRepository:
    """Репозиторий для работы с профилями лидеров."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def get(self, ocid: str) -> Optional[Leader]:
        """Получает лидера по ocid."""
        with self.db_manager.get_session() as session:
            return session.get(Leader, ocid)

    def upsert_on_first_login(self, ocid: str, name: str, email: str) -> Tuple[Leader, bool]:
        """
        Создает лидера при первом входе, если его еще нет.

        Args:
            ocid: Идентификатор субъекта
            name: Имя
            email: Email

        Returns:
            Tuple[Leader, bool]: Лидер и флаг создания
        """
        with self.db_manager.get_session() as session:
            leader = session.get(Leader, ocid)
            if leader is not None:
                return leader, False

            leader = Leader(ocid=ocid, name=name, email=email, org_name=None, can_login=True)
            session.add(leader)
            try:
                session.commit()
            except IntegrityError:
                # Параллельный первый вход уже создал запись
                session.rollback()
                leader = session.get(Leader, ocid)
                if leader is None:
                    raise
                return leader, False

            session.refresh(leader)
            return leader, True

    def set_org_name_once(self, ocid: str, org_name: str) -> Leader:
        """
        Устанавливает название организации, только если оно еще не задано.

        Raises:
            OrgNameAlreadySetError: Если организация уже задана
            LeaderNotFoundError: Если лидер не найден
        """
        return self.update_profile(ocid, org_name=org_name)

    def update_profile(self, ocid: str, name: Optional[str] = None,
                       org_name: Optional[str] = None) -> Leader:
        """
        Обновляет профиль в одной транзакции.

        org_name меняется одним условным UPDATE (WHERE org_name IS NULL),
        поэтому из двух параллельных запросов выигрывает только один.
        """
        with self.db_manager.get_session() as session:
            if org_name is not None:
                result = session.execute(
                    update(Leader)
                    .where(Leader.ocid == ocid, Leader.org_name.is_(None))
                    .values(org_name=org_name)
                )
                if result.rowcount == 0:
                    session.rollback()
                    if session.get(Leader, ocid) is None:
                        raise LeaderNotFoundError(f"Leader {ocid} not found")
                    raise OrgNameAlreadySetError("Organization name cannot be changed once set")

            if name is not None:
                result = session.execute(
                    update(Leader).where(Leader.ocid == ocid).values(name=name)
                )
                if result.rowcount == 0:
                    session.rollback()
                    raise LeaderNotFoundError(f"Leader {ocid} not found")

            session.commit()

            leader = session.get(Leader, ocid, populate_existing=True)
            if leader is None:
                raise LeaderNotFoundError(f"Leader {ocid} not found")
            return leader
