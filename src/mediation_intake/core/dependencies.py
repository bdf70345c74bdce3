"""
Shared dependencies for FastAPI routes
"""
from typing import Callable, Generator, Iterable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from mediation_intake.core.config import settings
from mediation_intake.core.security import (
    CMS_ROLES,
    INTAKE_WRITE_ROLES,
    CurrentUser,
    UserRole,
    decode_access_token,
)
from mediation_intake.database.session import get_session
from mediation_intake.external.calendly.client import CalendlyClient
from mediation_intake.external.crm.client import InsightlyClient
from mediation_intake.external.monday.client import MondayClient
from mediation_intake.services.notification_service import NotificationService
from mediation_intake.utils.exceptions import AuthenticationError, AuthorizationError

_bearer = HTTPBearer(auto_error=False)


def get_db() -> Generator:
    """
    Database session dependency.
    Yields a database session from the pool and ensures it's closed after use.
    """
    db = get_session()
    try:
        yield db
    finally:
        db.close()


def get_insightly_client() -> InsightlyClient:
    return InsightlyClient()


def get_monday_client() -> MondayClient:
    return MondayClient()


def get_calendly_client() -> CalendlyClient:
    return CalendlyClient()


def get_notification_service() -> NotificationService:
    return NotificationService()


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> CurrentUser:
    """
    Resolve the session from the Authorization header or the session cookie.

    Raises:
        AuthenticationError: No session, or the session token is invalid
    """
    token = credentials.credentials if credentials else request.cookies.get(settings.security.cookie_name)
    if not token:
        raise AuthenticationError()
    return decode_access_token(token)


def require_roles(roles: Iterable[UserRole]) -> Callable[..., CurrentUser]:
    """Build a dependency that only lets the given roles through"""
    allowed = frozenset(roles)

    def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            raise AuthorizationError(
                f"Role '{user.role.value}' is not allowed to perform this action"
            )
        return user

    return dependency


require_cms_user = require_roles(CMS_ROLES)
require_intake_writer = require_roles(INTAKE_WRITE_ROLES)


def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Optional[CurrentUser]:
    """Session user for public forms; anonymous when no session is sent"""
    token = credentials.credentials if credentials else request.cookies.get(settings.security.cookie_name)
    if not token:
        return None
    return decode_access_token(token)
