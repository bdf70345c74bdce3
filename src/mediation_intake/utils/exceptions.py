"""
Custom exception classes
"""
from enum import Enum
from typing import Dict, List, Optional

from fastapi import HTTPException, status


class CRMErrorKind(str, Enum):
    """Classification of CRM failures recorded on intake records"""
    AUTH = "auth"
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    CLIENT = "client"
    SERVER = "server"
    INVALID_RESPONSE = "invalid_response"
    NOT_CONFIGURED = "not_configured"


class CRMAPIError(HTTPException):
    """Exception raised when a CRM API call fails"""
    def __init__(
        self,
        detail: str,
        kind: CRMErrorKind = CRMErrorKind.SERVER,
        response_status: Optional[int] = None,
        status_code: int = status.HTTP_502_BAD_GATEWAY,
    ):
        super().__init__(status_code=status_code, detail=detail)
        self.kind = kind
        self.response_status = response_status


class ExternalServiceError(HTTPException):
    """Exception raised when a non-CRM integration (Monday, Calendly) fails"""
    def __init__(self, detail: str, service: str, status_code: int = status.HTTP_502_BAD_GATEWAY):
        super().__init__(status_code=status_code, detail=detail)
        self.service = service


class IntakeValidationError(HTTPException):
    """
    Exception raised when a paper intake payload fails validation.
    Violations are grouped by form step so the wizard can jump to the
    first failing step.
    """
    def __init__(
        self,
        violations: Dict[str, List[Dict[str, str]]],
        status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
    ):
        self.violations = violations
        super().__init__(
            status_code=status_code,
            detail={"message": "Paper intake validation failed", "violations": violations},
        )

    @property
    def failing_steps(self) -> List[str]:
        return [step for step, items in self.violations.items() if items]


class AuthenticationError(HTTPException):
    """Missing, invalid or expired session"""
    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(HTTPException):
    """Authenticated user lacks the required role"""
    def __init__(self, detail: str = "Insufficient permissions"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFoundError(HTTPException):
    """Exception raised when a record does not exist"""
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(HTTPException):
    """Exception raised for illegal state transitions and concurrent syncs"""
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class EmailDeliveryError(Exception):
    """Raised by the email client; callers log and swallow it"""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
