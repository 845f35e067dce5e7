from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Literal

from pydantic import BaseModel, ConfigDict, Field


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def parse(cls, value: object) -> "RequestStatus":
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        return _STATUS_ALIASES.get(normalized, cls.PENDING)


_STATUS_ALIASES = {
    "pending": RequestStatus.PENDING,
    "en_attente": RequestStatus.PENDING,
    "approved": RequestStatus.APPROVED,
    "approuvee": RequestStatus.APPROVED,
    "rejected": RequestStatus.REJECTED,
    "refusee": RequestStatus.REJECTED,
}


class PendingRequest(BaseModel):
    """A payload staged locally because the server could not take it."""

    kind: str
    payload: dict[str, Any]
    local_id: str
    status: Literal["pending"] = "pending"
    stored_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SubmittedRequest(BaseModel):
    id: str
    status: RequestStatus = RequestStatus.PENDING
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_response(cls, data: Any) -> "SubmittedRequest":
        if not isinstance(data, dict):
            raise ValueError("Expected a JSON object in the submission response")
        body = data.get("data") if isinstance(data.get("data"), dict) else data
        identifier = body.get("id") or body.get("_id")
        if identifier is None:
            raise ValueError("Submission response has no id")
        status = body.get("statut", body.get("status"))
        return cls(id=str(identifier), status=RequestStatus.parse(status), payload=dict(body))


class StoredSession(BaseModel):
    token: str
    user_id: str | None = None
    role: str | None = None
    email: str | None = None
    name: str | None = None


class LoginUser(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | int
    role: str
    email: str | None = None
    name: str | None = None


class LoginResult(BaseModel):
    token: str
    user: LoginUser

    @classmethod
    def from_response(cls, data: Any) -> "LoginResult":
        if not isinstance(data, dict) or not isinstance(data.get("data"), dict):
            raise ValueError("Expected login response with a data object")
        return cls.model_validate(data["data"])


class PersonalInformation(BaseModel):
    profession: str = ""
    numeroPieceIdentite: str = ""
    bulletinsSalaire: List[str] = Field(default_factory=list)
    contratTravail: List[str] = Field(default_factory=list)
    numeroDemandeLogement: str = ""
    numeroDalo: str = ""
    quittancesLoyer: List[str] = Field(default_factory=list)
    justificatifPriseEnCharge: List[str] = Field(default_factory=list)
    pieceIdentite: List[str] = Field(default_factory=list)
    numeroSecu: str = ""
    nombrePersonnes: str = ""
    livretFamille: List[str] = Field(default_factory=list)
    notificationCaf: List[str] = Field(default_factory=list)
    accepteConditions: bool = False


class HousingAdditionRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    nom: str = ""
    prenom: str = ""
    telephone: str = ""
    email: str = ""
    raisonDemande: str = ""
    estProprio: bool = False
    informationsPersonnelles: PersonalInformation = Field(default_factory=PersonalInformation)


class Donation(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | int | None = None
    type: Literal["objet", "financier"]
    description: str | None = None
    montant: float | None = None
    photos: List[str] = Field(default_factory=list)
    coordonnees: str | None = None
    localisation: str | None = None
    statut: Literal["disponible", "reserve", "attribue"] = "disponible"
    date: datetime | None = None


class Amenities(BaseModel):
    wifi: bool = False
    cuisine: bool = False
    laveLinge: bool = False
    chauffage: bool = False
    climatisation: bool = False
    television: bool = False
    parking: bool = False
    ascenseur: bool = False

    def enabled(self) -> list[str]:
        return [name for name, value in self.model_dump().items() if value]


class LogementForm(BaseModel):
    titre: str = ""
    adresse: str = ""
    codePostal: str = ""
    ville: str = ""
    type: str = "appartement"
    nbChambres: str = "1"
    nbPersonnes: str = "1"
    surface: str = ""
    description: str = ""
    disponibilite: str = Field(default_factory=lambda: datetime.now(timezone.utc).date().isoformat())
    equipements: Amenities = Field(default_factory=Amenities)
    photos: List[str] = Field(default_factory=list)


class Logement(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | int | None = None
    titre: str | None = None
    adresse: str | None = None
    ville: str | None = None
    type: str | None = None
    capacite: int | None = None
    surface: int | None = None
    description: str | None = None
    equipements: List[str] | str = Field(default_factory=list)
    disponibilite: bool | str | None = None
    status: str | None = None
    photos: List[str] = Field(default_factory=list)
    type_hebergement: Literal["permanent", "temporaire"] | None = None


class UploadedImage(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: str
