from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from .models import HousingAdditionRequest, LogementForm

USER_TOKEN_KEY = "userToken"
USER_ID_KEY = "userId"
USER_ROLE_KEY = "userRole"
USER_EMAIL_KEY = "userEmail"
USER_NAME_KEY = "userName"
FIRST_LAUNCH_KEY = "isFirstLaunch"
SESSION_KEYS = (USER_TOKEN_KEY, USER_ROLE_KEY, USER_ID_KEY, USER_EMAIL_KEY, USER_NAME_KEY)


def _empty_donation() -> dict[str, Any]:
    return {"type": "objet", "description": "", "coordonnees": "", "localisation": ""}


@dataclass(frozen=True)
class RequestKind:
    """Local storage keys and endpoints that belong to one category of submission."""

    name: str
    create_path: str
    id_key: str
    staged_key: str
    status_path: str | None = None
    cancel_path: str | None = None
    requires_token: bool = False
    empty_form: Callable[[], dict[str, Any]] = field(default=dict, compare=False)

    @property
    def has_status(self) -> bool:
        return self.status_path is not None

    @property
    def can_cancel(self) -> bool:
        return self.cancel_path is not None

    def status_url(self, request_id: str) -> str:
        if self.status_path is None:
            raise ValueError(f"{self.name} requests have no status endpoint")
        return self.status_path.format(id=request_id)

    def cancel_url(self, request_id: str) -> str:
        if self.cancel_path is None:
            raise ValueError(f"{self.name} requests cannot be cancelled")
        return self.cancel_path.format(id=request_id)


HOUSING_ADDITION = RequestKind(
    name="housing-addition",
    create_path="/demandes-ajout-logement",
    status_path="/demandes-ajout-logement/{id}",
    cancel_path="/demandes-ajout-logement/{id}/cancel",
    id_key="demandeAjoutLogementId",
    staged_key="demandeAjoutLogement",
    empty_form=lambda: HousingAdditionRequest().model_dump(mode="json"),
)

DONATION = RequestKind(
    name="donation",
    create_path="/dons",
    id_key="donId",
    staged_key="donTemporaire",
    empty_form=_empty_donation,
)

LOGEMENT = RequestKind(
    name="logement",
    create_path="/logements",
    id_key="logementId",
    staged_key="logementTemporaire",
    requires_token=True,
    empty_form=lambda: LogementForm().model_dump(mode="json"),
)

REQUEST_KINDS = {kind.name: kind for kind in (HOUSING_ADDITION, DONATION, LOGEMENT)}


def get_kind(name: str) -> RequestKind:
    try:
        return REQUEST_KINDS[name]
    except KeyError as exc:
        raise ValueError(f"Unknown request kind: {name}") from exc
