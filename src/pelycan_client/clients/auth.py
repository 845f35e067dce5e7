from __future__ import annotations

from ..models import LoginResult
from .base import BaseClient


class AuthClient(BaseClient):
    def login(self, email: str, password: str) -> LoginResult:
        payload = {"email": email, "password": password}
        data = self.http.request("POST", "/auth/login", json_body=payload, operation="auth.login")
        return LoginResult.from_response(data)
