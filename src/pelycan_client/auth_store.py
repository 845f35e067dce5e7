from __future__ import annotations

from dataclasses import dataclass

from .kv_store import KeyValueStore
from .models import LoginResult, StoredSession
from .request_kinds import (
    FIRST_LAUNCH_KEY,
    SESSION_KEYS,
    USER_EMAIL_KEY,
    USER_ID_KEY,
    USER_NAME_KEY,
    USER_ROLE_KEY,
    USER_TOKEN_KEY,
)


@dataclass
class AuthStore:
    """Single writer of the bearer token. Everything else only reads it."""

    store: KeyValueStore

    def save(self, login: LoginResult) -> None:
        user = login.user
        self.store.multi_set(
            [
                (USER_TOKEN_KEY, login.token),
                (USER_ROLE_KEY, user.role),
                (USER_ID_KEY, str(user.id)),
                (USER_EMAIL_KEY, user.email or ""),
                (USER_NAME_KEY, user.name or ""),
                (FIRST_LAUNCH_KEY, "false"),
            ]
        )

    def token(self) -> str | None:
        return self.store.get(USER_TOKEN_KEY) or None

    def load(self) -> StoredSession | None:
        token = self.token()
        if not token:
            return None
        return StoredSession(
            token=token,
            user_id=self.store.get(USER_ID_KEY),
            role=self.store.get(USER_ROLE_KEY),
            email=self.store.get(USER_EMAIL_KEY) or None,
            name=self.store.get(USER_NAME_KEY) or None,
        )

    def clear(self) -> None:
        self.store.remove_many(SESSION_KEYS)
