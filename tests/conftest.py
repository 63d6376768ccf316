"""
Общие фикстуры для тестов
"""
import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from config.settings import Settings
from core.csv_pipeline import CSVIngestionPipeline
from core.database import CertificateRepository, DatabaseManager, LeaderRepository
from core.generator import CertificateIDGenerator
from core.identity import ProxyIdentityResolver
from core.models import ResolvedIdentity
from core.notifications import EmailNotifier
from core.service import CertificateService, LeaderService, ValidationService

FIXED_NOW = datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)
ADMIN_GROUP = "GDGoC-Admins"
LEADER_OCID = "leader-1"


@pytest.fixture
def settings(tmp_path):
    """Настройки для тестов: SQLite в памяти, логи во временной папке"""
    return Settings(
        database_url="sqlite://",
        log_file=tmp_path / "logs" / "test.log",
        admin_groups=ADMIN_GROUP,
        proxy_auth_secret=None,
        validation_base_url="https://certs.example.com/",
        environment="testing",
        smtp_host=None,
    )


@pytest.fixture
def db_manager():
    """БД SQLite в памяти с созданными таблицами"""
    manager = DatabaseManager("sqlite://")
    manager.create_tables()
    yield manager
    manager.close()


@pytest.fixture
def certificate_repo(db_manager):
    return CertificateRepository(db_manager)


@pytest.fixture
def leader_repo(db_manager):
    return LeaderRepository(db_manager)


@pytest.fixture
def generator():
    """Генератор ID с фиксированными часами"""
    return CertificateIDGenerator(prefix="GDGOC", clock=lambda: FIXED_NOW)


@pytest.fixture
def notifier():
    """Мок отправителя писем"""
    mock = MagicMock(spec=EmailNotifier)
    mock.send.return_value = True
    return mock


@pytest.fixture
def certificate_service(certificate_repo, leader_repo, generator, notifier):
    return CertificateService(
        certificate_repo=certificate_repo,
        leader_repo=leader_repo,
        id_generator=generator,
        notifier=notifier,
        pipeline=CSVIngestionPipeline(),
        validation_base_url="https://certs.example.com/",
    )


@pytest.fixture
def validation_service(certificate_repo):
    return ValidationService(certificate_repo)


@pytest.fixture
def identity_resolver():
    return ProxyIdentityResolver(admin_groups=[ADMIN_GROUP])


@pytest.fixture
def leader_service(leader_repo, identity_resolver):
    return LeaderService(leader_repo, identity_resolver)


@pytest.fixture
def identity():
    """Личность лидера из заголовков прокси"""
    return ResolvedIdentity(
        subject_id=LEADER_OCID,
        email="jane@example.com",
        name="Jane Leader",
        username="jane",
        groups=(ADMIN_GROUP,),
    )


@pytest.fixture
def leader(leader_repo, identity):
    """Лидер с заполненной организацией"""
    leader_repo.upsert_on_first_login(identity.subject_id, identity.name, identity.email)
    return leader_repo.set_org_name_once(identity.subject_id, "GDG On Campus Test")


@pytest.fixture
def leader_without_org(leader_repo, identity):
    """Лидер, еще не заполнивший профиль"""
    db_leader, _ = leader_repo.upsert_on_first_login(identity.subject_id, identity.name, identity.email)
    return db_leader


@pytest.fixture
def certificate_data():
    """Фабрика данных сертификата для прямой вставки в хранилище"""
    def make(unique_id: str, **overrides) -> dict:
        data = {
            "unique_id": unique_id,
            "recipient_name": "Existing Person",
            "recipient_email": "existing@example.com",
            "event_type": "workshop",
            "event_name": "Existing Event",
            "issue_date": FIXED_NOW,
            "issuer_name": "Jane Leader",
            "org_name": "GDG On Campus Test",
            "generated_by": LEADER_OCID,
        }
        data.update(overrides)
        return data

    return make
