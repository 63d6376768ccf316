"""
API для работы с сертификатами
"""
import logging
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from .csv_pipeline import CSV_TEMPLATE
from .database import DatabaseManager
from .exceptions import (
    AuthenticationRequiredError, AuthorizationDeniedError, CertificateError,
    CertificateNotFoundError, DuplicateIdentifierError, LeaderNotFoundError,
    OrgNameAlreadySetError, ProfileIncompleteError, ValidationError,
    ValidationFailedError,
)
from .identity import ProxyIdentityResolver
from .models import BulkRequest, CertificateRequest, ProfileUpdate, ResolvedIdentity
from .service import CertificateService, LeaderService, ValidationService

logger = logging.getLogger(__name__)

# Соответствие ошибок HTTP статусам
ERROR_STATUS = (
    (AuthenticationRequiredError, 401),
    (AuthorizationDeniedError, 403),
    (CertificateNotFoundError, 404),
    (LeaderNotFoundError, 404),
    (DuplicateIdentifierError, 409),
    (ProfileIncompleteError, 400),
    (OrgNameAlreadySetError, 400),
    (ValidationError, 400),
)


def status_for(error: CertificateError) -> int:
    """HTTP статус для ошибки, 500 для неизвестных."""
    for error_class, status_code in ERROR_STATUS:
        if isinstance(error, error_class):
            return status_code
    return 500


class CertificateAPI:
    """API для работы с сертификатами"""

    def __init__(
            self,
            certificate_service: CertificateService,
            validation_service: ValidationService,
            leader_service: LeaderService,
            identity_resolver: ProxyIdentityResolver,
            db_manager: DatabaseManager,
            lifespan=None
    ):
        self.certificate_service = certificate_service
        self.validation_service = validation_service
        self.leader_service = leader_service
        self.identity_resolver = identity_resolver
        self.db_manager = db_manager

        self.app = FastAPI(
            title="Certificate Management API",
            description="API для выпуска и проверки сертификатов об участии",
            version="1.0.0",
            lifespan=lifespan
        )

        self._setup_error_handlers()
        self._setup_routes()

    def _current_identity(self, request: Request) -> ResolvedIdentity:
        """Личность вызывающего из заголовков прокси"""
        return self.identity_resolver.resolve(request.headers)

    def _setup_error_handlers(self):
        """Структурированные ответы об ошибках"""

        @self.app.exception_handler(CertificateError)
        async def certificate_error_handler(request: Request, exc: CertificateError):
            status_code = status_for(exc)

            if status_code == 500:
                logger.error(f"Внутренняя ошибка на {request.url.path}: {exc}")
                return JSONResponse(status_code=500, content={"error": "Internal server error"})

            content = {"error": str(exc)}
            if isinstance(exc, CertificateNotFoundError):
                content = {"valid": False, "error": "Certificate not found", "message": str(exc)}
            elif isinstance(exc, ValidationFailedError):
                content = {
                    "error": "CSV parsing errors",
                    "errors": [
                        {"row": error.row_number, "message": error.message, "detail": str(error)}
                        for error in exc.errors
                    ],
                }
            return JSONResponse(status_code=status_code, content=content)

        @self.app.exception_handler(RequestValidationError)
        async def request_validation_handler(request: Request, exc: RequestValidationError):
            messages = []
            for error in exc.errors():
                message = str(error.get("msg", ""))
                messages.append(message.removeprefix("Value error, "))
            return JSONResponse(
                status_code=400,
                content={"error": "; ".join(messages) or "Invalid request"},
            )

    def _setup_routes(self):
        """Настройка маршрутов API"""
        identity_dependency = Depends(self._current_identity)

        @self.app.get("/health", tags=["monitoring"])
        def health_check():
            """Проверка здоровья API и БД"""
            database_ok = self.db_manager.health_check()
            payload = {
                "status": "ok" if database_ok else "degraded",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "components": {
                    "database": "healthy" if database_ok else "unhealthy",
                },
            }
            return JSONResponse(content=payload, status_code=200 if database_ok else 503)

        @self.app.post("/api/auth/login", tags=["auth"])
        def login(identity: ResolvedIdentity = identity_dependency):
            """Вход лидера, создание профиля при первом входе"""
            leader, created = self.leader_service.login(identity)
            body = {"success": True, "user": leader.model_dump()}
            if created:
                body["message"] = "New user created. Please complete your profile setup."
                return JSONResponse(status_code=201, content=body)
            return body

        @self.app.get("/api/auth/me", tags=["auth"])
        def get_me(identity: ResolvedIdentity = identity_dependency):
            """Профиль текущего пользователя"""
            return {"user": self.leader_service.get_profile(identity).model_dump()}

        @self.app.put("/api/auth/profile", tags=["auth"])
        def update_profile(update: ProfileUpdate, identity: ResolvedIdentity = identity_dependency):
            """Обновление имени и организации"""
            leader = self.leader_service.update_profile(identity, update)
            return {
                "success": True,
                "user": leader.model_dump(),
                "message": "Profile updated successfully",
            }

        @self.app.post("/api/certificates/generate", status_code=201, tags=["certificates"])
        def generate_certificate(request: CertificateRequest,
                                 identity: ResolvedIdentity = identity_dependency):
            """Выпуск одного сертификата"""
            certificate = self.certificate_service.issue_certificate(identity, request)
            return {
                "success": True,
                "certificate": certificate.model_dump(mode="json", exclude={"generated_by", "created_at"}),
            }

        @self.app.post("/api/certificates/generate-bulk", status_code=201, tags=["certificates"])
        def generate_bulk(request: BulkRequest, identity: ResolvedIdentity = identity_dependency):
            """Пакетный выпуск сертификатов из CSV"""
            result = self.certificate_service.issue_batch(identity, request.csv_content)
            body = {"success": True, **result.model_dump(mode="json", exclude_none=True)}
            return body

        @self.app.get("/api/certificates/template", tags=["certificates"])
        def csv_template():
            """Шаблон CSV для пакетного выпуска"""
            return PlainTextResponse(
                CSV_TEMPLATE,
                media_type="text/csv",
                headers={"Content-Disposition": 'attachment; filename="bulk_template.csv"'},
            )

        @self.app.get("/api/certificates", tags=["certificates"])
        def list_certificates(page: int = Query(1, ge=1), limit: int = Query(50, ge=1, le=200),
                              identity: ResolvedIdentity = identity_dependency):
            """Сертификаты, выпущенные текущим пользователем"""
            certificate_page = self.certificate_service.list_certificates(identity, page, limit)
            return certificate_page.model_dump(mode="json")

        @self.app.get("/api/validate/{unique_id}", tags=["validate"])
        def validate_certificate(unique_id: str):
            """Публичная проверка сертификата"""
            certificate = self.validation_service.validate(unique_id)
            return {"valid": True, "certificate": certificate.model_dump(mode="json")}
