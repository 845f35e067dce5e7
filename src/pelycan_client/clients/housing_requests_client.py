from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from ..models import HousingAdditionRequest, SubmittedRequest
from ..request_kinds import HOUSING_ADDITION
from .base import SubmissionGateway


@dataclass
class HousingRequestsClient(SubmissionGateway):
    """Housing-addition requests ("demandes d'ajout de logement")."""

    def create_request(self, payload: HousingAdditionRequest | Mapping[str, Any]) -> SubmittedRequest:
        body = payload.model_dump(mode="json") if isinstance(payload, HousingAdditionRequest) else dict(payload)
        data = self._request(
            "POST",
            HOUSING_ADDITION.create_path,
            json_body=body,
            operation="housing_requests.create",
        )
        return SubmittedRequest.from_response(data)

    def get_request(self, request_id: str) -> SubmittedRequest:
        data = self._request("GET", HOUSING_ADDITION.status_url(request_id), operation="housing_requests.get")
        return SubmittedRequest.from_response(data)

    def cancel_request(self, request_id: str) -> None:
        self._request("POST", HOUSING_ADDITION.cancel_url(request_id), json_body={}, operation="housing_requests.cancel")

    def submit(self, payload: Mapping[str, Any]) -> SubmittedRequest:
        return self.create_request(payload)

    def fetch(self, request_id: str) -> SubmittedRequest:
        return self.get_request(request_id)

    def cancel(self, request_id: str) -> None:
        self.cancel_request(request_id)
