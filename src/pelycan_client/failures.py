from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .exceptions import (
    ApiError,
    AuthError,
    AuthenticationRequiredError,
    ForbiddenError,
    RequestTimeoutError,
    TransportError,
    ValidationError,
)


class FailureReason(str, Enum):
    TIMEOUT = "timeout"
    OFFLINE = "offline"
    SERVER_ERROR = "server_error"
    AUTH = "auth"
    REJECTED = "rejected"

    @property
    def retryable(self) -> bool:
        return self is not FailureReason.REJECTED


@dataclass(frozen=True)
class Failure:
    reason: FailureReason
    code: str
    message: str
    status_code: int = 0


def classify(error: Exception) -> Failure:
    """Tag a failure so callers can tell "try again later" from "the server said no"."""
    if isinstance(error, RequestTimeoutError):
        return Failure(FailureReason.TIMEOUT, error.code, error.message)
    if isinstance(error, TransportError):
        return Failure(FailureReason.OFFLINE, error.code, error.message)
    if isinstance(error, AuthenticationRequiredError):
        return Failure(FailureReason.AUTH, "AUTH_REQUIRED", str(error))
    if isinstance(error, (AuthError, ForbiddenError)):
        return Failure(FailureReason.AUTH, error.code, error.message, error.status_code)
    if isinstance(error, ValidationError):
        return Failure(FailureReason.REJECTED, error.code, error.message, error.status_code)
    if isinstance(error, ApiError):
        return Failure(FailureReason.SERVER_ERROR, error.code, error.message, error.status_code)
    # anything unexpected (bad JSON, library errors) counts as a server-side failure
    return Failure(FailureReason.SERVER_ERROR, type(error).__name__, str(error))
