"""
Определение личности пользователя по заголовкам доверенного прокси (authentik).

Ожидаемые заголовки:
- X-authentik-uid: уникальный ID пользователя
- X-authentik-email: email
- X-authentik-name: полное имя
- X-authentik-username: логин
- X-authentik-groups: группы через запятую

Если задан PROXY_AUTH_SECRET, прокси обязан передать его в X-Proxy-Auth-Secret.
"""

import hmac
import logging
from typing import Iterable, Mapping, Optional

from .exceptions import AuthenticationRequiredError, AuthorizationDeniedError
from .models import ResolvedIdentity

logger = logging.getLogger(__name__)

HEADER_UID = "x-authentik-uid"
HEADER_EMAIL = "x-authentik-email"
HEADER_NAME = "x-authentik-name"
HEADER_USERNAME = "x-authentik-username"
HEADER_GROUPS = "x-authentik-groups"
HEADER_PROXY_SECRET = "x-proxy-auth-secret"


class ProxyIdentityResolver:
    """Строит ResolvedIdentity из заголовков запроса."""

    def __init__(self, proxy_secret: Optional[str] = None, admin_groups: Iterable[str] = ()):
        self.proxy_secret = proxy_secret
        self.admin_groups = frozenset(admin_groups)

    def resolve(self, headers: Mapping[str, str]) -> ResolvedIdentity:
        """
        Определяет личность по заголовкам.

        Args:
            headers: Заголовки запроса (ключи без учета регистра)

        Returns:
            ResolvedIdentity: Подтвержденная личность

        Raises:
            AuthenticationRequiredError: Нет секрета прокси, uid или email
        """
        if self.proxy_secret:
            received = headers.get(HEADER_PROXY_SECRET) or ""
            if not hmac.compare_digest(received.encode(), self.proxy_secret.encode()):
                logger.error("Ошибка аутентификации прокси: неверный или отсутствующий секрет")
                raise AuthenticationRequiredError(
                    "Unauthorized. Request must come from authenticated proxy."
                )

        uid = (headers.get(HEADER_UID) or "").strip()
        email = (headers.get(HEADER_EMAIL) or "").strip()

        if not uid or not email:
            logger.warning(
                f"Нет обязательных заголовков authentik: uid={bool(uid)}, email={bool(email)}"
            )
            raise AuthenticationRequiredError(
                "Authentication required. Please ensure you are accessing through the authenticated proxy."
            )

        name = (headers.get(HEADER_NAME) or "").strip() or email
        username = (headers.get(HEADER_USERNAME) or "").strip() or email
        groups_header = headers.get(HEADER_GROUPS) or ""
        groups = tuple(group.strip() for group in groups_header.split(",") if group.strip())

        identity = ResolvedIdentity(
            subject_id=uid, email=email, name=name, username=username, groups=groups
        )
        logger.debug(f"Пользователь определен по заголовкам прокси: {uid} ({email})")
        return identity

    def require_admin(self, identity: ResolvedIdentity) -> None:
        """
        Проверяет членство в группе администраторов.

        Raises:
            AuthorizationDeniedError: Если нужной группы нет
        """
        if not self.admin_groups.intersection(identity.groups):
            logger.warning(
                f"Доступ запрещен: {identity.subject_id} не состоит в {sorted(self.admin_groups)}"
            )
            groups = ", ".join(sorted(self.admin_groups))
            raise AuthorizationDeniedError(f"Access denied. {groups} group membership required.")
