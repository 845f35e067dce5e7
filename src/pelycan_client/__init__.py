from .auth_store import AuthStore
from .config import ClientConfig, ConfigError, load_config
from .exceptions import (
    ApiError,
    AuthenticationRequiredError,
    AuthError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    NothingToRetryError,
    RequestTimeoutError,
    ServerError,
    SubmissionInProgressError,
    TransportError,
    ValidationError,
)
from .failures import Failure, FailureReason, classify
from .http_client import HttpClient
from .kv_store import KeyValueStore
from .models import (
    Donation,
    HousingAdditionRequest,
    Logement,
    LogementForm,
    LoginResult,
    PendingRequest,
    RequestStatus,
    StoredSession,
    SubmittedRequest,
)
from .request_kinds import DONATION, HOUSING_ADDITION, LOGEMENT, REQUEST_KINDS, RequestKind, get_kind
from .session import ApiSession
from .ui_errors import UserFacingError, to_user_facing_error
from .validation import (
    ClientValidationError,
    ValidationIssue,
    validate_donation,
    validate_housing_addition,
    validate_logement,
)
from .workflow import SubmissionWorkflow, WorkflowResult, WorkflowSnapshot, WorkflowState

__all__ = [
    "ApiError",
    "ApiSession",
    "AuthError",
    "AuthStore",
    "AuthenticationRequiredError",
    "ClientConfig",
    "ClientValidationError",
    "ConfigError",
    "DONATION",
    "Donation",
    "Failure",
    "FailureReason",
    "ForbiddenError",
    "HOUSING_ADDITION",
    "HousingAdditionRequest",
    "HttpClient",
    "InvalidTransitionError",
    "KeyValueStore",
    "LOGEMENT",
    "Logement",
    "LogementForm",
    "LoginResult",
    "NotFoundError",
    "NothingToRetryError",
    "PendingRequest",
    "REQUEST_KINDS",
    "RequestKind",
    "RequestStatus",
    "RequestTimeoutError",
    "ServerError",
    "StoredSession",
    "SubmissionInProgressError",
    "SubmissionWorkflow",
    "SubmittedRequest",
    "TransportError",
    "UserFacingError",
    "ValidationError",
    "ValidationIssue",
    "WorkflowResult",
    "WorkflowSnapshot",
    "WorkflowState",
    "classify",
    "get_kind",
    "load_config",
    "to_user_facing_error",
    "validate_donation",
    "validate_housing_addition",
    "validate_logement",
]
