"""
Session tokens and role definitions
"""
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Optional

import jwt
from pydantic import BaseModel

from mediation_intake.core.config import settings
from mediation_intake.utils.exceptions import AuthenticationError
from mediation_intake.utils.helpers import utcnow


class UserRole(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    COORDINATOR = "coordinator"
    MEDIATOR = "mediator"
    VOLUNTEER = "volunteer"
    PARTICIPANT = "participant"


# Roles allowed into the staff dashboard
CMS_ROLES = frozenset({UserRole.ADMIN, UserRole.EDITOR, UserRole.COORDINATOR})

# Roles allowed to create intakes, trigger syncs and manage integrations
INTAKE_WRITE_ROLES = frozenset({UserRole.ADMIN, UserRole.COORDINATOR})


class CurrentUser(BaseModel):
    """Authenticated dashboard user decoded from the session token"""
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: UserRole

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.uid


def create_access_token(
    uid: str,
    role: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Issue an HS256 session token"""
    expires = utcnow() + (expires_delta or timedelta(minutes=settings.security.access_token_expire_minutes))
    payload: Dict[str, Any] = {
        "sub": uid,
        "role": role,
        "exp": expires,
        "iat": utcnow(),
    }
    if email:
        payload["email"] = email
    if name:
        payload["name"] = name
    return jwt.encode(payload, settings.security.secret_key, algorithm=settings.security.algorithm)


def decode_access_token(token: str) -> CurrentUser:
    """
    Decode and validate a session token.

    Raises:
        AuthenticationError: Expired, malformed, or missing required claims
    """
    try:
        payload = jwt.decode(
            token,
            settings.security.secret_key,
            algorithms=[settings.security.algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Session expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid session token")

    try:
        return CurrentUser(
            uid=payload["sub"],
            email=payload.get("email"),
            name=payload.get("name"),
            role=payload.get("role"),
        )
    except ValueError:
        raise AuthenticationError("Session token has no valid role")
