"""
Result types returned at the CRM boundary.

Every CRM operation answers with exactly one of Ok, NotFound or ApiError
so the reconciliation service can branch on the outcome without
catching transport exceptions.
"""
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

from mediation_intake.utils.exceptions import CRMAPIError, CRMErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class NotFound:
    resource: Optional[str] = None


@dataclass(frozen=True)
class ApiError:
    kind: CRMErrorKind
    message: str
    status: Optional[int] = None

    @classmethod
    def from_exception(cls, exc: CRMAPIError) -> "ApiError":
        return cls(kind=exc.kind, message=str(exc.detail), status=exc.response_status)

    @property
    def user_message(self) -> str:
        """Message stored in last_sync_error and shown to staff"""
        if self.kind == CRMErrorKind.AUTH:
            return f"Insightly authentication failed: {self.message}"
        if self.kind == CRMErrorKind.RATE_LIMIT:
            return "Insightly rate limit exceeded. Please try again later."
        if self.kind == CRMErrorKind.NOT_CONFIGURED:
            return "Insightly API key is not configured"
        return self.message


CRMResult = Union[Ok[Any], NotFound, ApiError]
