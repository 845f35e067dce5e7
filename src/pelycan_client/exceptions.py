from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ApiError(Exception):
    code: str
    message: str
    details: object | None
    status_code: int
    raw_payload: object | None = None

    def __str__(self) -> str:
        return f"[{self.status_code}] {self.code}: {self.message}"


class AuthError(ApiError):
    """Missing, expired or rejected bearer token."""


class ForbiddenError(ApiError):
    """Authenticated but not allowed (403)."""


class NotFoundError(ApiError):
    pass


class ValidationError(ApiError):
    """Payload rejected by the server (400/422)."""


class ConflictError(ApiError):
    pass


class RateLimitError(ApiError):
    pass


class ServerError(ApiError):
    """5xx server-side failures."""


class TransportError(ApiError):
    """Network/transport failure before an HTTP response was returned."""


class RequestTimeoutError(TransportError):
    pass


class AuthenticationRequiredError(Exception):
    """Raised before any network call when an operation needs a token and none is stored."""


class SubmissionInProgressError(Exception):
    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"A {kind} submission is already in progress")


class NothingToRetryError(Exception):
    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"No staged {kind} payload to retry")


class InvalidTransitionError(Exception):
    pass
