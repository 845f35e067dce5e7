from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .auth_store import AuthStore
from .clients.auth import AuthClient
from .clients.base import SubmissionGateway
from .clients.donations_client import DonationsClient
from .clients.housing_requests_client import HousingRequestsClient
from .clients.logements_client import LogementsClient
from .config import ClientConfig
from .http_client import HttpClient
from .kv_store import KeyValueStore, default_storage_path
from .models import LoginResult
from .request_kinds import DONATION, HOUSING_ADDITION, LOGEMENT, RequestKind
from .validation import Validator, validate_donation, validate_housing_addition, validate_logement
from .workflow import SubmissionWorkflow

logger = logging.getLogger(__name__)

_VALIDATORS: dict[str, Validator] = {
    HOUSING_ADDITION.name: validate_housing_addition,
    DONATION.name: validate_donation,
    LOGEMENT.name: validate_logement,
}


@dataclass
class ApiSession:
    """Wires configuration, local storage and the current token into API clients.

    The token is read once from the store (or set by ``login``) and handed to
    every client explicitly; clients never go back to storage for it.
    """

    config: ClientConfig
    store: KeyValueStore | None = None
    http: HttpClient | None = None
    token: str | None = None

    def __post_init__(self) -> None:
        if self.store is None:
            path = Path(self.config.storage_path) if self.config.storage_path else default_storage_path()
            self.store = KeyValueStore(path)
        self.http = self.http or HttpClient(config=self.config)
        self.auth_store = AuthStore(self.store)
        if not self.token:
            self.token = self.auth_store.token()

    def auth_client(self) -> AuthClient:
        return AuthClient(http=self.http)

    def housing_requests_client(self) -> HousingRequestsClient:
        return HousingRequestsClient(http=self.http, access_token=self.token)

    def donations_client(self) -> DonationsClient:
        return DonationsClient(http=self.http, access_token=self.token)

    def logements_client(self) -> LogementsClient:
        return LogementsClient(http=self.http, access_token=self.token)

    def gateway_for(self, kind: RequestKind) -> SubmissionGateway:
        if kind.name == HOUSING_ADDITION.name:
            return self.housing_requests_client()
        if kind.name == DONATION.name:
            return self.donations_client()
        if kind.name == LOGEMENT.name:
            return self.logements_client()
        raise ValueError(f"Unknown request kind: {kind.name}")

    def workflow(self, kind: RequestKind) -> SubmissionWorkflow:
        return SubmissionWorkflow(
            kind=kind,
            gateway=self.gateway_for(kind),
            store=self.store,
            validator=_VALIDATORS.get(kind.name),
        )

    def login(self, email: str, password: str) -> LoginResult:
        logger.info("login_attempt")
        try:
            result = self.auth_client().login(email, password)
        except Exception:
            logger.exception("login_failure")
            raise
        self.auth_store.save(result)
        self.token = result.token
        logger.info("login_success", extra={"role": result.user.role})
        return result

    def logout(self) -> None:
        logger.info("logout")
        self.token = None
        self.auth_store.clear()

    def is_authenticated(self) -> bool:
        return bool(self.token)
