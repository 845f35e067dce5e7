from __future__ import annotations

import json
import threading

import pytest
import requests
import responses

from pelycan_client.config import ClientConfig
from pelycan_client.failures import FailureReason
from pelycan_client.kv_store import KeyValueStore
from pelycan_client.models import PendingRequest, RequestStatus, SubmittedRequest
from pelycan_client.request_kinds import DONATION, HOUSING_ADDITION, LOGEMENT
from pelycan_client.session import ApiSession
from pelycan_client.workflow import (
    SubmissionWorkflow,
    WorkflowSnapshot,
    WorkflowState,
    begin_submission,
    end_submission,
)

CREATE_URL = "https://api.example.com/demandes-ajout-logement"
STATUS_URL = "https://api.example.com/demandes-ajout-logement/d1"
CANCEL_URL = "https://api.example.com/demandes-ajout-logement/d1/cancel"


def _form() -> dict:
    return {
        "nom": "Dupont",
        "prenom": "Marie",
        "telephone": "0612345678",
        "email": "marie@example.com",
        "raisonDemande": "Logement insalubre",
        "estProprio": False,
    }


def _workflow(config: ClientConfig, store: KeyValueStore, kind=HOUSING_ADDITION) -> SubmissionWorkflow:
    return ApiSession(config=config, store=store, token="jwt").workflow(kind)


def _stage(store: KeyValueStore, payload: dict, local_id: str = "local-1") -> None:
    staged = PendingRequest(kind=HOUSING_ADDITION.name, payload=payload, local_id=local_id)
    store.set(HOUSING_ADDITION.staged_key, staged.model_dump_json())


@responses.activate
def test_submit_success_persists_identifier(config: ClientConfig, store: KeyValueStore) -> None:
    responses.add(responses.POST, CREATE_URL, json={"data": {"id": "d1", "statut": "en_attente"}}, status=201)
    store.set(HOUSING_ADDITION.staged_key, "{}")
    states = []
    workflow = _workflow(config, store)
    workflow.on_state = lambda snapshot: states.append(snapshot.state)

    result = workflow.submit(_form())

    assert result.ok
    assert result.message == "Votre demande a été enregistrée avec succès."
    assert result.snapshot.state is WorkflowState.SUBMITTED
    assert result.snapshot.status is RequestStatus.PENDING
    assert result.snapshot.display_id == "d1"
    assert store.get(HOUSING_ADDITION.id_key) == "d1"
    assert store.get(HOUSING_ADDITION.staged_key) is None
    assert states == [WorkflowState.SUBMITTING, WorkflowState.SUBMITTED]


@responses.activate
def test_submit_offline_stages_payload(config: ClientConfig, store: KeyValueStore) -> None:
    responses.add(responses.POST, CREATE_URL, body=requests.ConnectionError("no route"))
    workflow = _workflow(config, store)

    result = workflow.submit(_form())

    snapshot = result.snapshot
    assert snapshot.state is WorkflowState.STORED_LOCALLY
    assert snapshot.stored_locally is True
    assert snapshot.status is RequestStatus.PENDING
    assert snapshot.failure.reason is FailureReason.OFFLINE
    assert snapshot.local_id
    assert snapshot.display_id == snapshot.local_id
    assert result.alert.title == "Demande enregistrée localement"
    assert store.get(HOUSING_ADDITION.id_key) is None
    staged = PendingRequest.model_validate_json(store.get(HOUSING_ADDITION.staged_key))
    assert staged.payload == _form()
    assert staged.local_id == snapshot.local_id


@pytest.mark.parametrize(
    ("kwargs", "reason"),
    [
        ({"body": requests.exceptions.ReadTimeout("slow")}, FailureReason.TIMEOUT),
        ({"json": {"message": "down"}, "status": 503}, FailureReason.SERVER_ERROR),
        ({"json": {"message": "Token expiré"}, "status": 401}, FailureReason.AUTH),
    ],
)
@responses.activate
def test_retryable_failures_are_staged(config: ClientConfig, store: KeyValueStore, kwargs: dict, reason) -> None:
    responses.add(responses.POST, CREATE_URL, **kwargs)

    result = _workflow(config, store).submit(_form())

    assert result.snapshot.state is WorkflowState.STORED_LOCALLY
    assert result.snapshot.failure.reason is reason
    assert store.get(HOUSING_ADDITION.staged_key) is not None


@responses.activate
def test_server_rejection_is_not_staged(config: ClientConfig, store: KeyValueStore) -> None:
    responses.add(responses.POST, CREATE_URL, json={"message": "Email déjà utilisé"}, status=422)

    result = _workflow(config, store).submit(_form())

    assert result.snapshot.state is WorkflowState.REJECTED
    assert result.snapshot.failure.reason is FailureReason.REJECTED
    assert result.snapshot.form == _form()
    assert "Email déjà utilisé" in result.alert.message
    assert result.alert.technical_details == "HTTP_422 (HTTP 422)"
    assert store.get(HOUSING_ADDITION.staged_key) is None
    assert store.get(HOUSING_ADDITION.id_key) is None


@responses.activate
def test_invalid_form_makes_no_network_call(config: ClientConfig, store: KeyValueStore) -> None:
    form = {**_form(), "email": "not-an-email"}

    result = _workflow(config, store).submit(form)

    assert result.alert.title == "Email invalide"
    assert result.alert.details == "email"
    assert result.snapshot.state is WorkflowState.IDLE
    assert result.snapshot.form == form
    assert len(responses.calls) == 0


@responses.activate
def test_submit_refused_while_another_is_in_flight(config: ClientConfig, store: KeyValueStore) -> None:
    assert begin_submission(HOUSING_ADDITION.name)
    try:
        result = _workflow(config, store).submit(_form())
    finally:
        end_submission(HOUSING_ADDITION.name)

    assert result.alert.message == "Un envoi est déjà en cours. Veuillez patienter."
    assert result.snapshot.state is WorkflowState.IDLE
    assert len(responses.calls) == 0
    assert store.get(HOUSING_ADDITION.staged_key) is None


def test_concurrent_submissions_of_one_kind(store: KeyValueStore) -> None:
    entered = threading.Event()
    release = threading.Event()

    class _SlowGateway:
        def submit(self, payload):
            entered.set()
            release.wait(5)
            return SubmittedRequest(id="slow-1")

    first = SubmissionWorkflow(DONATION, _SlowGateway(), store)
    second = SubmissionWorkflow(DONATION, _SlowGateway(), store)
    results = []
    worker = threading.Thread(target=lambda: results.append(first.submit({"type": "financier", "montant": 5})))
    worker.start()
    try:
        assert entered.wait(5)
        blocked = second.submit({"type": "financier", "montant": 9})
    finally:
        release.set()
        worker.join(5)

    assert blocked.alert is not None
    assert blocked.snapshot.state is WorkflowState.IDLE
    assert results[0].snapshot.state is WorkflowState.SUBMITTED
    assert store.get(DONATION.id_key) == "slow-1"

    after = second.submit({"type": "financier", "montant": 9})
    assert after.ok


@responses.activate
def test_submit_refused_while_request_is_open(config: ClientConfig, store: KeyValueStore) -> None:
    responses.add(responses.POST, CREATE_URL, json={"id": "d1"}, status=201)
    workflow = _workflow(config, store)
    workflow.submit(_form())

    again = workflow.submit(_form())

    assert again.alert is not None
    assert again.snapshot.state is WorkflowState.SUBMITTED
    assert len(responses.calls) == 1


@responses.activate
def test_reconcile_prefers_server_over_stale_staged_payload(config: ClientConfig, store: KeyValueStore) -> None:
    store.set(HOUSING_ADDITION.id_key, "d1")
    _stage(store, {**_form(), "nom": "Ancien"})
    responses.add(responses.GET, STATUS_URL, json={"id": "d1", "status": "approved", "nom": "Dupont"})
    workflow = _workflow(config, store)

    result = workflow.reconcile()

    assert result.snapshot.state is WorkflowState.SUBMITTED
    assert result.snapshot.status is RequestStatus.APPROVED
    assert result.snapshot.form["nom"] == "Dupont"
    assert workflow.is_approved() is True


def test_reconcile_rebuilds_staged_state(config: ClientConfig, store: KeyValueStore) -> None:
    _stage(store, _form(), local_id="local-42")

    result = _workflow(config, store).reconcile()

    assert result.snapshot.state is WorkflowState.STORED_LOCALLY
    assert result.snapshot.status is RequestStatus.PENDING
    assert result.snapshot.local_id == "local-42"
    assert result.snapshot.form["prenom"] == "Marie"
    assert result.snapshot.form["informationsPersonnelles"]["accepteConditions"] is False


def test_reconcile_reads_legacy_bare_payload(config: ClientConfig, store: KeyValueStore) -> None:
    store.set_json(HOUSING_ADDITION.staged_key, {**_form(), "statut": "en_attente"})

    result = _workflow(config, store).reconcile()

    assert result.snapshot.state is WorkflowState.STORED_LOCALLY
    assert result.snapshot.payload["nom"] == "Dupont"
    assert result.snapshot.local_id


def test_reconcile_without_anything_is_idle(config: ClientConfig, store: KeyValueStore) -> None:
    result = _workflow(config, store).reconcile()
    assert result.snapshot == WorkflowSnapshot(form=HOUSING_ADDITION.empty_form())


@responses.activate
def test_reconcile_falls_back_to_staged_when_status_fetch_fails(config: ClientConfig, store: KeyValueStore) -> None:
    store.set(HOUSING_ADDITION.id_key, "d1")
    _stage(store, _form())
    responses.add(responses.GET, STATUS_URL, body=requests.ConnectionError("offline"))

    result = _workflow(config, store).reconcile()

    assert result.snapshot.state is WorkflowState.STORED_LOCALLY
    assert result.snapshot.status is RequestStatus.PENDING
    assert result.alert is not None
    assert store.get(HOUSING_ADDITION.id_key) == "d1"


@responses.activate
def test_reconcile_is_idempotent(config: ClientConfig, store: KeyValueStore) -> None:
    store.set(HOUSING_ADDITION.id_key, "d1")
    responses.add(responses.GET, STATUS_URL, json={"id": "d1", "statut": "en_attente", "nom": "Dupont"})
    workflow = _workflow(config, store)

    first = workflow.reconcile()
    second = workflow.reconcile()

    assert first == second


def test_reconcile_staged_is_idempotent(config: ClientConfig, store: KeyValueStore) -> None:
    _stage(store, _form())
    workflow = _workflow(config, store)
    assert workflow.reconcile() == workflow.reconcile()


@responses.activate
def test_retry_without_staged_payload_makes_no_call(config: ClientConfig, store: KeyValueStore) -> None:
    result = _workflow(config, store).retry()

    assert result.alert.message == "Aucune donnée stockée trouvée"
    assert len(responses.calls) == 0


@responses.activate
def test_retry_resends_the_exact_staged_payload(config: ClientConfig, store: KeyValueStore) -> None:
    responses.add(responses.POST, CREATE_URL, body=requests.ConnectionError("offline"))
    responses.add(responses.POST, CREATE_URL, json={"id": "d1", "statut": "en_attente"}, status=201)
    form = {**_form(), "raisonDemande": "Fuite d'eau, humidité"}
    workflow = _workflow(config, store)

    workflow.submit(form)
    result = workflow.retry()

    assert responses.calls[1].request.body == responses.calls[0].request.body
    assert json.loads(responses.calls[1].request.body) == form
    assert list(json.loads(responses.calls[1].request.body)) == list(form)
    assert result.snapshot.state is WorkflowState.SUBMITTED
    assert store.get(HOUSING_ADDITION.staged_key) is None
    assert store.get(HOUSING_ADDITION.id_key) == "d1"


@responses.activate
def test_retry_failure_keeps_staged_payload(config: ClientConfig, store: KeyValueStore) -> None:
    _stage(store, _form(), local_id="local-7")
    before = store.get(HOUSING_ADDITION.staged_key)
    responses.add(responses.POST, CREATE_URL, json={"message": "down"}, status=500)

    result = _workflow(config, store).retry()

    assert result.snapshot.state is WorkflowState.STORED_LOCALLY
    assert result.snapshot.local_id == "local-7"
    assert result.snapshot.failure.reason is FailureReason.SERVER_ERROR
    assert result.alert is not None
    assert store.get(HOUSING_ADDITION.staged_key) == before


@responses.activate
def test_cancel_clears_keys_and_form(config: ClientConfig, store: KeyValueStore) -> None:
    responses.add(responses.POST, CREATE_URL, json={"id": "d1"}, status=201)
    responses.add(responses.POST, CANCEL_URL, json={"message": "Demande annulée"})
    workflow = _workflow(config, store)
    workflow.submit(_form())
    store.set(HOUSING_ADDITION.staged_key, "{}")

    result = workflow.cancel()

    assert result.snapshot.state is WorkflowState.IDLE
    assert result.snapshot.form == HOUSING_ADDITION.empty_form()
    assert result.message.startswith("Votre demande a été annulée")
    assert store.get(HOUSING_ADDITION.id_key) is None
    assert store.get(HOUSING_ADDITION.staged_key) is None
    assert workflow.reconcile().snapshot.state is WorkflowState.IDLE


@responses.activate
def test_cancel_failure_leaves_state(config: ClientConfig, store: KeyValueStore) -> None:
    store.set(HOUSING_ADDITION.id_key, "d1")
    responses.add(responses.GET, STATUS_URL, json={"id": "d1", "statut": "en_attente"})
    responses.add(responses.POST, CANCEL_URL, body=requests.ConnectionError("offline"))
    workflow = _workflow(config, store)
    workflow.reconcile()

    result = workflow.cancel()

    assert result.alert is not None
    assert result.snapshot.state is WorkflowState.SUBMITTED
    assert store.get(HOUSING_ADDITION.id_key) == "d1"


@responses.activate
def test_cancel_staged_submission_is_local(config: ClientConfig, store: KeyValueStore) -> None:
    _stage(store, _form())
    workflow = _workflow(config, store)
    workflow.reconcile()

    result = workflow.cancel()

    assert result.snapshot.state is WorkflowState.IDLE
    assert store.get(HOUSING_ADDITION.staged_key) is None
    assert len(responses.calls) == 0


@responses.activate
def test_refresh_failure_leaves_state(config: ClientConfig, store: KeyValueStore) -> None:
    store.set(HOUSING_ADDITION.id_key, "d1")
    responses.add(responses.GET, STATUS_URL, json={"id": "d1", "statut": "en_attente"})
    responses.add(responses.GET, STATUS_URL, json={"message": "down"}, status=500)
    workflow = _workflow(config, store)
    before = workflow.reconcile().snapshot

    result = workflow.refresh_status()

    assert result.snapshot == before
    assert result.alert.details == "HTTP_500 (HTTP 500)"


@responses.activate
def test_refresh_then_complete_approved_request(config: ClientConfig, store: KeyValueStore) -> None:
    store.set(HOUSING_ADDITION.id_key, "d1")
    responses.add(responses.GET, STATUS_URL, json={"id": "d1", "statut": "en_attente"})
    responses.add(responses.GET, STATUS_URL, json={"id": "d1", "statut": "approuvee"})
    workflow = _workflow(config, store)
    workflow.reconcile()

    assert workflow.complete().alert is not None
    assert workflow.refresh_status().snapshot.status is RequestStatus.APPROVED

    done = workflow.complete()

    assert done.ok
    assert done.snapshot.state is WorkflowState.IDLE
    assert store.get(HOUSING_ADDITION.id_key) is None


def test_refresh_without_identifier(config: ClientConfig, store: KeyValueStore) -> None:
    result = _workflow(config, store).refresh_status()
    assert result.alert.message == "Aucune demande à actualiser."


@responses.activate
def test_donation_identifier_reconciles_without_status_call(config: ClientConfig, store: KeyValueStore) -> None:
    store.set(DONATION.id_key, "5")
    workflow = _workflow(config, store, DONATION)

    result = workflow.reconcile()

    assert result.snapshot.state is WorkflowState.SUBMITTED
    assert result.snapshot.request_id == "5"
    assert len(responses.calls) == 0
    assert workflow.cancel().alert is not None
    assert workflow.complete().snapshot.state is WorkflowState.IDLE
    assert store.get(DONATION.id_key) is None


@responses.activate
def test_logement_without_token_is_staged_for_later(config: ClientConfig, store: KeyValueStore) -> None:
    workflow = ApiSession(config=config, store=store).workflow(LOGEMENT)
    form = {
        "titre": "Studio",
        "adresse": "1 rue de la Paix",
        "codePostal": "75002",
        "ville": "Paris",
        "surface": "25",
        "description": "Calme",
        "photos": ["https://cdn/existing.jpg"],
    }

    result = workflow.submit(form)

    assert len(responses.calls) == 0
    assert result.snapshot.state is WorkflowState.STORED_LOCALLY
    assert result.snapshot.failure.reason is FailureReason.AUTH
    assert result.snapshot.failure.code == "AUTH_REQUIRED"
    assert PendingRequest.model_validate_json(store.get(LOGEMENT.staged_key)).payload == form


@responses.activate
def test_failed_donation_replaces_earlier_identifier(config: ClientConfig, store: KeyValueStore) -> None:
    responses.add(responses.POST, "https://api.example.com/dons", json={"id": "don-1", "type": "financier"}, status=201)
    responses.add(responses.POST, "https://api.example.com/dons", body=requests.ConnectionError("offline"))
    workflow = _workflow(config, store, DONATION)

    assert workflow.submit({"type": "financier", "montant": 10}).snapshot.request_id == "don-1"
    failed = workflow.submit({"type": "financier", "montant": 25})

    assert failed.snapshot.state is WorkflowState.STORED_LOCALLY
    assert store.get(DONATION.id_key) is None
    assert store.get(DONATION.staged_key) is not None

    reloaded = _workflow(config, store, DONATION)
    result = reloaded.reconcile()

    assert result.snapshot.state is WorkflowState.STORED_LOCALLY
    assert result.snapshot.payload == {"type": "financier", "montant": 25}

    cancelled = reloaded.cancel()

    assert cancelled.ok
    assert cancelled.snapshot.state is WorkflowState.IDLE
    assert store.get(DONATION.staged_key) is None
    assert len(responses.calls) == 2


def test_reconcile_prefers_staged_payload_over_stale_identifier(config: ClientConfig, store: KeyValueStore) -> None:
    store.set(LOGEMENT.id_key, "l0")
    staged = PendingRequest(kind=LOGEMENT.name, payload={"titre": "Studio"}, local_id="local-9")
    store.set(LOGEMENT.staged_key, staged.model_dump_json())
    workflow = _workflow(config, store, LOGEMENT)

    result = workflow.reconcile()

    assert result.snapshot.state is WorkflowState.STORED_LOCALLY
    assert result.snapshot.local_id == "local-9"
    assert result.snapshot.form["titre"] == "Studio"
    assert workflow.cancel().snapshot.state is WorkflowState.IDLE
    assert store.get(LOGEMENT.id_key) is None
    assert store.get(LOGEMENT.staged_key) is None


@responses.activate
def test_retry_refused_while_request_is_open(config: ClientConfig, store: KeyValueStore) -> None:
    store.set(HOUSING_ADDITION.id_key, "d1")
    _stage(store, _form())
    responses.add(responses.GET, STATUS_URL, json={"id": "d1", "statut": "en_attente"})
    workflow = _workflow(config, store)
    workflow.reconcile()

    result = workflow.retry()

    assert result.alert.message.startswith("Une demande est déjà en cours")
    assert result.snapshot.state is WorkflowState.SUBMITTED
    assert len(responses.calls) == 1
    assert store.get(HOUSING_ADDITION.id_key) == "d1"
    assert store.get(HOUSING_ADDITION.staged_key) is not None


@responses.activate
def test_submit_refused_when_identifier_is_stored(config: ClientConfig, store: KeyValueStore) -> None:
    store.set(HOUSING_ADDITION.id_key, "d1")

    result = _workflow(config, store).submit(_form())

    assert result.alert is not None
    assert len(responses.calls) == 0
    assert store.get(HOUSING_ADDITION.id_key) == "d1"
