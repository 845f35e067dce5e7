from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from ..exceptions import ApiError, AuthenticationRequiredError
from ..image_utils import MISSING_URL_PLACEHOLDER, UPLOAD_FAILED_URL, close_parts, open_image_part
from ..models import Amenities, Logement, SubmittedRequest, UploadedImage
from ..request_kinds import LOGEMENT
from .base import SubmissionGateway

logger = logging.getLogger(__name__)

UPLOAD_SINGLE_PATH = "/uploads/single"
UPLOAD_MULTIPLE_PATH = "/uploads/multiple"
AUTH_REQUIRED_MESSAGE = (
    "Vous devez être connecté pour créer un logement. Veuillez vous reconnecter et réessayer."
)


@dataclass
class LogementsClient(SubmissionGateway):
    def list_logements(self) -> list[Logement]:
        payload = self._request("GET", LOGEMENT.create_path, operation="logements.list")
        if not isinstance(payload, list):
            raise ValueError("Expected logements response to be a JSON list")
        return [Logement.model_validate(row) for row in payload if isinstance(row, dict)]

    def upload_single(self, image_uri: str) -> UploadedImage:
        """Upload one photo. Never raises: a failed upload yields a placeholder URL."""
        try:
            name, handle, content_type = open_image_part(image_uri)
        except OSError:
            logger.warning("logement_image_open_failure", exc_info=True)
            return UploadedImage(url=UPLOAD_FAILED_URL)
        try:
            data = self._request(
                "POST",
                UPLOAD_SINGLE_PATH,
                files={"image": (name, handle, content_type)},
                tolerate_text=True,
                operation="uploads.single",
            )
        except ApiError:
            logger.warning("logement_image_upload_failure", exc_info=True)
            return UploadedImage(url=UPLOAD_FAILED_URL)
        finally:
            handle.close()
        if not isinstance(data, dict) or not data.get("url"):
            logger.warning("logement_image_upload_missing_url")
            return UploadedImage(url=MISSING_URL_PLACEHOLDER)
        return UploadedImage.model_validate(data)

    def upload_multiple(self, image_uris: list[str]) -> list[UploadedImage]:
        """Upload several photos in one request. Never raises: failures yield an empty list."""
        parts = []
        try:
            for uri in image_uris:
                parts.append(("images", open_image_part(uri)))
        except OSError:
            logger.warning("logement_image_open_failure", exc_info=True)
            close_parts(parts)
            return []
        try:
            data = self._request(
                "POST",
                UPLOAD_MULTIPLE_PATH,
                files=parts,
                tolerate_text=True,
                operation="uploads.multiple",
            )
        except ApiError:
            logger.warning("logement_images_upload_failure", exc_info=True)
            return []
        finally:
            close_parts(parts)
        images = data.get("images") if isinstance(data, dict) else None
        if not isinstance(images, list):
            logger.warning("logement_images_upload_missing_list")
            return []
        return [UploadedImage.model_validate(row) for row in images if isinstance(row, dict) and row.get("url")]

    def upload_photos(self, photos: list[str]) -> list[str]:
        """Upload local photos one by one, keeping the local URI for any that failed."""
        urls = []
        for uri in photos:
            if _is_remote(uri):
                urls.append(uri)
                continue
            uploaded = self.upload_single(uri)
            if uploaded.url in {UPLOAD_FAILED_URL, MISSING_URL_PLACEHOLDER}:
                urls.append(uri)
            else:
                urls.append(uploaded.url)
        return urls

    def create_logement(self, form: Mapping[str, Any]) -> Logement:
        if LOGEMENT.requires_token and not self.access_token:
            raise AuthenticationRequiredError(AUTH_REQUIRED_MESSAGE)
        photos = self.upload_photos(list(form.get("photos") or []))
        body = to_server_logement(form, photos)
        logger.info("logement_create_attempt", extra={"photo_count": len(photos)})
        data = self._request("POST", LOGEMENT.create_path, json_body=body, tolerate_text=True, operation="logements.create")
        if not isinstance(data, dict):
            raise ValueError("Expected create logement response to be a JSON object")
        body_data = data.get("data") if isinstance(data.get("data"), dict) else data
        return Logement.model_validate(body_data)

    def submit(self, payload: Mapping[str, Any]) -> SubmittedRequest:
        created = self.create_logement(payload)
        if created.id is None:
            raise ValueError("Create logement response has no id")
        return SubmittedRequest(id=str(created.id), payload=created.model_dump(mode="json", exclude_none=True))


def to_server_logement(form: Mapping[str, Any], photos: list[str]) -> dict[str, Any]:
    """Shape a logement form the way the server expects it."""
    equipements = form.get("equipements") or {}
    if isinstance(equipements, Mapping):
        amenities = Amenities.model_validate(equipements).enabled()
    else:
        amenities = [str(item) for item in equipements]
    body: dict[str, Any] = {
        "titre": form.get("titre"),
        "description": form.get("description"),
        "adresse": form.get("adresse"),
        "codePostal": form.get("codePostal"),
        "ville": form.get("ville"),
        "type": form.get("type"),
        "capacite": _as_int(form.get("nbPersonnes", form.get("capacite"))),
        "nbChambres": _as_int(form.get("nbChambres")),
        "surface": _as_int(form.get("surface")),
        "disponibilite": form.get("disponibilite"),
        "status": form.get("status"),
        "photos": photos,
        "type_hebergement": form.get("type_hebergement"),
        "date_debut": form.get("date_debut"),
        "date_fin": form.get("date_fin"),
        "conditions_temporaire": form.get("conditions_temporaire"),
        "equipements": ",".join(amenities),
        "amenities": amenities,
    }
    return {key: value for key, value in body.items() if value is not None}


def _as_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _is_remote(uri: str) -> bool:
    return uri.startswith(("http://", "https://"))
