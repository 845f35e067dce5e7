from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .models import Donation, HousingAdditionRequest, LogementForm

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
FR_PHONE_RE = re.compile(r"^(0|\+33)[1-9]([-. ]?[0-9]{2}){4}$")
FR_POSTAL_CODE_RE = re.compile(r"^[0-9]{5}$")
DIGITS_RE = re.compile(r"^[0-9]+$")

T = TypeVar("T", bound=BaseModel)
Validator = Callable[[Mapping[str, Any]], dict[str, Any]]


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    reason: str
    title: str = "Champ manquant"


class ClientValidationError(ValueError):
    def __init__(self, issues: list[ValidationIssue]) -> None:
        self.issues = issues
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if not self.issues:
            return "Validation failed"
        issue = self.issues[0]
        return f"{issue.field}: {issue.reason}"


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value))


def is_valid_phone(value: str) -> bool:
    return bool(FR_PHONE_RE.match(value))


def is_valid_postal_code(value: str) -> bool:
    return bool(FR_POSTAL_CODE_RE.match(value))


def validate_housing_addition(payload: Mapping[str, Any]) -> dict[str, Any]:
    data = _coerce(payload, HousingAdditionRequest)
    for name in ("nom", "prenom", "telephone", "email", "raisonDemande"):
        if not getattr(data, name).strip():
            _raise_issue(
                name,
                "Veuillez remplir tous les champs du formulaire, y compris la raison de votre demande.",
                "Champs manquants",
            )
    if not is_valid_email(data.email):
        _raise_issue("email", "Veuillez entrer une adresse email valide.", "Email invalide")
    if not is_valid_phone(data.telephone):
        _raise_issue("telephone", "Veuillez entrer un numéro de téléphone valide.", "Téléphone invalide")

    if data.estProprio:
        info = data.informationsPersonnelles
        text_fields = (
            ("profession", "Veuillez indiquer votre profession."),
            ("numeroDemandeLogement", "Veuillez indiquer votre numéro de demande de logement social."),
            ("numeroDalo", "Veuillez indiquer votre numéro DALO ou justifier votre demande prioritaire."),
            ("numeroSecu", "Veuillez indiquer votre numéro de sécurité sociale."),
            ("nombrePersonnes", "Veuillez indiquer le nombre de personnes occupant le logement."),
        )
        for name, reason in text_fields:
            if not getattr(info, name).strip():
                _raise_issue(f"informationsPersonnelles.{name}", reason)
        document_fields = (
            ("bulletinsSalaire", 3, "Veuillez fournir vos 3 derniers bulletins de salaire."),
            ("contratTravail", 1, "Veuillez fournir votre contrat de travail."),
            ("quittancesLoyer", 3, "Veuillez fournir vos 3 derniers mois de quittances de loyer."),
            ("justificatifPriseEnCharge", 1, "Veuillez fournir le justificatif de prise en charge par une association."),
            ("pieceIdentite", 1, "Veuillez fournir une copie de votre pièce d'identité."),
            ("livretFamille", 1, "Veuillez fournir une copie de votre livret de famille."),
            ("notificationCaf", 1, "Veuillez fournir votre notification CAF ou votre relevé de situation."),
        )
        for name, minimum, reason in document_fields:
            if len(getattr(info, name)) < minimum:
                _raise_issue(f"informationsPersonnelles.{name}", reason, "Documents manquants")
        if not info.accepteConditions:
            _raise_issue(
                "informationsPersonnelles.accepteConditions",
                "Veuillez accepter les conditions d'utilisation et la politique de confidentialité.",
                "Conditions non acceptées",
            )
    return _as_dict(payload)


def validate_logement(payload: Mapping[str, Any]) -> dict[str, Any]:
    data = _coerce(payload, LogementForm)
    if not data.titre.strip():
        _raise_issue("titre", "Veuillez entrer un titre pour votre logement.", "Champ requis")
    if not data.adresse.strip() or not data.codePostal.strip() or not data.ville.strip():
        _raise_issue("adresse", "Veuillez remplir tous les champs de l'adresse.", "Adresse incomplète")
    if not is_valid_postal_code(data.codePostal):
        _raise_issue(
            "codePostal",
            "Veuillez entrer un code postal français valide (5 chiffres).",
            "Code postal invalide",
        )
    if not data.surface.strip():
        _raise_issue("surface", "Veuillez indiquer la surface du logement.", "Champ requis")
    if not DIGITS_RE.match(data.surface):
        _raise_issue("surface", "Veuillez entrer un nombre valide pour la surface.", "Surface invalide")
    if not data.description.strip():
        _raise_issue("description", "Veuillez ajouter une description du logement.", "Champ requis")
    if not data.photos:
        _raise_issue("photos", "Veuillez ajouter au moins une photo du logement.", "Photos requises")
    return _as_dict(payload)


def validate_donation(payload: Mapping[str, Any]) -> dict[str, Any]:
    data = _coerce(payload, Donation)
    if data.type == "financier":
        if data.montant is None or data.montant <= 0:
            _raise_issue("montant", "Veuillez entrer un montant valide.", "Montant invalide")
    else:
        if not (data.description or "").strip():
            _raise_issue("description", "Veuillez décrire l'objet que vous souhaitez donner.")
        if not (data.coordonnees or "").strip():
            _raise_issue("coordonnees", "Veuillez indiquer vos coordonnées.")
    return _as_dict(payload)


def _coerce(payload: Mapping[str, Any] | T, model_type: type[T]) -> T:
    if isinstance(payload, model_type):
        return payload
    try:
        return model_type.model_validate(payload)
    except PydanticValidationError as exc:
        issue = exc.errors()[0] if exc.errors() else {"loc": ("payload",), "msg": "Invalid payload"}
        field = ".".join(str(part) for part in issue.get("loc", ("payload",)))
        _raise_issue(field, issue.get("msg", "Invalid payload"), "Champ invalide")
        raise


def _raise_issue(field: str, reason: str, title: str = "Champ manquant") -> None:
    raise ClientValidationError([ValidationIssue(field=field, reason=reason, title=title)])


def _as_dict(payload: Mapping[str, Any] | BaseModel) -> dict[str, Any]:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    return dict(payload)
