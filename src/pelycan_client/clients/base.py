from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from ..exceptions import InvalidTransitionError
from ..http_client import HttpClient
from ..models import SubmittedRequest


@dataclass
class BaseClient:
    http: HttpClient
    access_token: str | None = None

    def _auth_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _request(self, method: str, path: str, **kwargs):
        headers = kwargs.pop("headers", {})
        merged = {**self._auth_headers(), **headers}
        return self.http.request(method, path, headers=merged, **kwargs)


class SubmissionGateway(BaseClient):
    """Network side of a submission workflow: create, read back, cancel."""

    def submit(self, payload: Mapping[str, Any]) -> SubmittedRequest:
        raise NotImplementedError

    def fetch(self, request_id: str) -> SubmittedRequest:
        raise InvalidTransitionError(f"{type(self).__name__} has no status endpoint")

    def cancel(self, request_id: str) -> None:
        raise InvalidTransitionError(f"{type(self).__name__} has no cancel endpoint")
