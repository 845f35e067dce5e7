from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from ..exceptions import ApiError
from ..image_utils import open_image_part
from ..models import Donation, SubmittedRequest, UploadedImage
from ..request_kinds import DONATION
from .base import SubmissionGateway

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/dons/upload"
LOCAL_IMAGE_FIELD = "imageUri"


@dataclass
class DonationsClient(SubmissionGateway):
    def list_donations(self) -> list[Donation]:
        payload = self._request("GET", DONATION.create_path, operation="donations.list")
        if not isinstance(payload, list):
            raise ValueError("Expected donations response to be a JSON list")
        return [Donation.model_validate(row) for row in payload if isinstance(row, dict)]

    def upload_image(self, image_uri: str) -> UploadedImage:
        name, handle, content_type = open_image_part(image_uri)
        try:
            data = self._request(
                "POST",
                UPLOAD_PATH,
                files={"image": (name, handle, content_type)},
                tolerate_text=True,
                operation="donations.upload",
            )
        finally:
            handle.close()
        return UploadedImage.model_validate(data)

    def create_donation(self, payload: Donation | Mapping[str, Any]) -> Donation:
        body = _donation_body(payload)
        data = self._request("POST", DONATION.create_path, json_body=body, operation="donations.create")
        return Donation.model_validate(data)

    def send_object_donation(
        self,
        *,
        description: str,
        coordonnees: str | None = None,
        localisation: str | None = None,
        image_uri: str | None = None,
    ) -> Donation:
        photos: list[str] = []
        if image_uri:
            try:
                photos.append(self.upload_image(image_uri).url)
            except (ApiError, OSError, ValueError):
                # the donation is still worth sending without its photo
                logger.warning("donation_image_upload_failure", exc_info=True)
        donation = Donation(
            type="objet",
            description=description,
            coordonnees=coordonnees,
            localisation=localisation,
            photos=photos,
            statut="disponible",
            date=datetime.now(timezone.utc),
        )
        return self.create_donation(donation)

    def send_financial_donation(self, amount: float) -> Donation:
        donation = Donation(type="financier", montant=amount, statut="disponible", date=datetime.now(timezone.utc))
        return self.create_donation(donation)

    def submit(self, payload: Mapping[str, Any]) -> SubmittedRequest:
        if payload.get("type") == "financier":
            created = self.send_financial_donation(float(payload["montant"]))
        else:
            created = self.send_object_donation(
                description=str(payload.get("description") or ""),
                coordonnees=payload.get("coordonnees"),
                localisation=payload.get("localisation"),
                image_uri=payload.get(LOCAL_IMAGE_FIELD),
            )
        if created.id is None:
            raise ValueError("Donation response has no id")
        return SubmittedRequest(id=str(created.id), payload=created.model_dump(mode="json", exclude_none=True))


def _donation_body(payload: Donation | Mapping[str, Any]) -> dict[str, Any]:
    donation = payload if isinstance(payload, Donation) else Donation.model_validate(payload)
    body = donation.model_dump(mode="json", exclude_none=True)
    body.pop("id", None)
    body.pop(LOCAL_IMAGE_FIELD, None)
    return body
