"""
FastAPI сервер для API сертификатов
"""
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import Settings, get_settings
from core.api import CertificateAPI
from core.csv_pipeline import CSVIngestionPipeline
from core.database import CertificateRepository, DatabaseManager, LeaderRepository
from core.generator import CertificateIDGenerator
from core.identity import ProxyIdentityResolver
from core.notifications import EmailNotifier
from core.service import CertificateService, LeaderService, ValidationService


def setup_logging(settings: Settings):
    """Настройка логирования"""
    settings.create_directories()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(settings.log_file, encoding='utf-8'),
            logging.StreamHandler()
        ]
    )
    # Меньше шума от сторонних библиотек
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def build_certificate_api(settings: Settings, db_manager: DatabaseManager,
                          notifier: Optional[EmailNotifier] = None, lifespan=None) -> CertificateAPI:
    """Собирает сервисы и API из явно созданных зависимостей"""
    certificate_repo = CertificateRepository(db_manager)
    leader_repo = LeaderRepository(db_manager)

    identity_resolver = ProxyIdentityResolver(
        proxy_secret=settings.proxy_auth_secret,
        admin_groups=settings.admin_groups_set,
    )
    id_generator = CertificateIDGenerator(prefix=settings.cert_id_prefix, tz=settings.tzinfo)

    certificate_service = CertificateService(
        certificate_repo=certificate_repo,
        leader_repo=leader_repo,
        id_generator=id_generator,
        notifier=notifier,
        pipeline=CSVIngestionPipeline(),
        validation_base_url=settings.validation_base_url,
        id_collision_retries=settings.cert_id_collision_retries,
    )

    return CertificateAPI(
        certificate_service=certificate_service,
        validation_service=ValidationService(certificate_repo),
        leader_service=LeaderService(leader_repo, identity_resolver),
        identity_resolver=identity_resolver,
        db_manager=db_manager,
        lifespan=lifespan,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    logger = logging.getLogger(__name__)
    logger.info("Запуск API сервера...")

    db_manager: DatabaseManager = app.state.db_manager
    db_manager.create_tables()
    logger.info("Подключение к БД установлено")

    if not app.state.settings.proxy_auth_secret and app.state.settings.environment == "production":
        logger.warning(
            "PROXY_AUTH_SECRET не задан: при прямом доступе к API возможна подмена заголовков"
        )

    yield

    logger.info("Остановка API сервера...")
    db_manager.close()


def create_app(settings: Optional[Settings] = None,
               db_manager: Optional[DatabaseManager] = None,
               notifier: Optional[EmailNotifier] = None) -> FastAPI:
    """Создание FastAPI приложения"""
    settings = settings or get_settings()
    setup_logging(settings)

    if db_manager is None:
        db_manager = DatabaseManager(settings.sqlalchemy_url, echo=settings.debug)
    if notifier is None:
        notifier = EmailNotifier.from_settings(settings)

    certificate_api = build_certificate_api(settings, db_manager, notifier, lifespan=lifespan)

    app = certificate_api.app
    app.state.settings = settings
    app.state.db_manager = db_manager
    app.state.certificate_api = certificate_api

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=settings.allowed_origins_list != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


if __name__ == "__main__":
    import uvicorn

    development = os.getenv('ENVIRONMENT') == 'development'
    uvicorn.run(
        "api_server:create_app",
        factory=True,
        host="0.0.0.0",
        port=int(os.getenv('PORT', '8000')),
        reload=development,
        workers=1 if development else 4
    )
