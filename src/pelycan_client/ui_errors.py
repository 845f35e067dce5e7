from __future__ import annotations

from dataclasses import dataclass

from .exceptions import (
    ApiError,
    AuthenticationRequiredError,
    InvalidTransitionError,
    NothingToRetryError,
    SubmissionInProgressError,
)
from .failures import FailureReason, classify
from .validation import ClientValidationError


@dataclass(frozen=True)
class UserFacingError:
    """A dismissible alert. Never carries payload contents."""

    title: str
    message: str
    details: str | None = None

    @property
    def technical_details(self) -> str | None:
        if self.details:
            return self.details
        return None


_REASON_MESSAGES = {
    FailureReason.TIMEOUT: "Le serveur met trop de temps à répondre. Veuillez réessayer plus tard.",
    FailureReason.OFFLINE: "Impossible de joindre le serveur. Vérifiez votre connexion internet.",
    FailureReason.SERVER_ERROR: "Une erreur est survenue sur le serveur. Veuillez réessayer plus tard.",
    FailureReason.AUTH: "Vous devez être connecté pour effectuer cette action. Veuillez vous reconnecter.",
    FailureReason.REJECTED: "Votre demande a été refusée par le serveur. Vérifiez les informations saisies.",
}


def to_user_facing_error(exc: Exception, title: str = "Erreur") -> UserFacingError:
    if isinstance(exc, ClientValidationError):
        issue = exc.issues[0] if exc.issues else None
        if issue is None:
            return UserFacingError(title="Formulaire invalide", message=str(exc))
        return UserFacingError(title=issue.title, message=issue.reason, details=issue.field)
    if isinstance(exc, NothingToRetryError):
        return UserFacingError(title=title, message="Aucune donnée stockée trouvée")
    if isinstance(exc, SubmissionInProgressError):
        return UserFacingError(title=title, message="Un envoi est déjà en cours. Veuillez patienter.")
    if isinstance(exc, (AuthenticationRequiredError, InvalidTransitionError)):
        return UserFacingError(title=title, message=str(exc))
    failure = classify(exc)
    details = f"{failure.code} (HTTP {failure.status_code})" if isinstance(exc, ApiError) else failure.code
    message = _REASON_MESSAGES[failure.reason]
    if failure.reason is FailureReason.REJECTED and failure.message:
        message = f"{message} {failure.message}"
    return UserFacingError(title=title, message=message, details=details)
