"""Client-side submission workflow with local fallback.

A workflow owns one request kind. It submits a form, stages the payload in
the key-value store when the server cannot take it, reconciles local state
with the server on load, and exposes the manual retry and cancel actions.

States::

    IDLE -> SUBMITTING -> SUBMITTED | STORED_LOCALLY | REJECTED
    STORED_LOCALLY -> SUBMITTING (retry) -> SUBMITTED | STORED_LOCALLY
    SUBMITTED -> IDLE (cancel, complete)

Every operation returns a ``WorkflowResult``; failures are never raised to
the caller but reported through ``WorkflowResult.alert``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Mapping

from pydantic import ValidationError as PydanticValidationError

from .clients.base import SubmissionGateway
from .exceptions import InvalidTransitionError, NothingToRetryError, SubmissionInProgressError
from .failures import Failure, classify
from .identifiers import new_local_id
from .kv_store import KeyValueStore
from .logging_utils import log_action
from .models import PendingRequest, RequestStatus, SubmittedRequest
from .request_kinds import RequestKind
from .ui_errors import UserFacingError, to_user_facing_error
from .validation import ClientValidationError, Validator

logger = logging.getLogger(__name__)

OPEN_REQUEST_MESSAGE = "Une demande est déjà en cours. Annulez-la avant d'en créer une nouvelle."

_in_flight: set[str] = set()
_in_flight_lock = threading.Lock()


def begin_submission(kind: str) -> bool:
    with _in_flight_lock:
        if kind in _in_flight:
            return False
        _in_flight.add(kind)
        return True


def end_submission(kind: str) -> None:
    with _in_flight_lock:
        _in_flight.discard(kind)


class WorkflowState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    STORED_LOCALLY = "stored_locally"
    REJECTED = "rejected"


@dataclass(frozen=True)
class WorkflowSnapshot:
    state: WorkflowState = WorkflowState.IDLE
    status: RequestStatus | None = None
    request_id: str | None = None
    local_id: str | None = None
    payload: dict[str, Any] | None = None
    form: dict[str, Any] = field(default_factory=dict)
    failure: Failure | None = None

    @property
    def loading(self) -> bool:
        return self.state is WorkflowState.SUBMITTING

    @property
    def stored_locally(self) -> bool:
        return self.state is WorkflowState.STORED_LOCALLY

    @property
    def display_id(self) -> str | None:
        return self.request_id or self.local_id


@dataclass(frozen=True)
class WorkflowResult:
    snapshot: WorkflowSnapshot
    alert: UserFacingError | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.alert is None


class SubmissionWorkflow:
    def __init__(
        self,
        kind: RequestKind,
        gateway: SubmissionGateway,
        store: KeyValueStore,
        validator: Validator | None = None,
        on_state: Callable[[WorkflowSnapshot], None] | None = None,
    ) -> None:
        self.kind = kind
        self.gateway = gateway
        self.store = store
        self.validator = validator
        self.on_state = on_state
        self.snapshot = self._idle()

    def submit(self, form: Mapping[str, Any]) -> WorkflowResult:
        if self.kind.can_cancel and self._open_request_id() is not None:
            return self._report("submit", InvalidTransitionError(OPEN_REQUEST_MESSAGE))
        try:
            payload = self.validator(form) if self.validator else dict(form)
        except ClientValidationError as exc:
            log_action(logger, self.kind.name, "submit", "validation_failed", state=self.snapshot.state.value)
            return self._report("submit", exc, form=dict(form))

        if not begin_submission(self.kind.name):
            return self._report("submit", SubmissionInProgressError(self.kind.name))
        try:
            self._publish(replace(self.snapshot, state=WorkflowState.SUBMITTING, form=payload, failure=None))
            try:
                submitted = self.gateway.submit(payload)
            except Exception as exc:
                return self._submission_failed(exc, payload)
            return self._submission_succeeded("submit", submitted, payload)
        finally:
            end_submission(self.kind.name)

    def reconcile(self) -> WorkflowResult:
        """Rebuild state on load, preferring the server over the local copy."""
        request_id = self.store.get(self.kind.id_key)
        if request_id is None:
            return self._from_staged("reconcile")
        if not self.kind.has_status:
            if self._load_staged() is not None:
                return self._from_staged("reconcile")
            snapshot = WorkflowSnapshot(
                state=WorkflowState.SUBMITTED,
                status=RequestStatus.PENDING,
                request_id=request_id,
                form=self.kind.empty_form(),
            )
            self._publish(snapshot)
            log_action(logger, self.kind.name, "reconcile", "local_identifier", request_id, snapshot.state.value)
            return WorkflowResult(snapshot)
        try:
            submitted = self.gateway.fetch(request_id)
        except Exception as exc:
            failure = classify(exc)
            logger.warning(
                "status_fetch_failure",
                extra={"kind": self.kind.name, "request_id": request_id, "reason": failure.reason.value},
            )
            result = self._from_staged("reconcile")
            return replace(result, alert=result.alert or to_user_facing_error(exc))
        snapshot = self._submitted_snapshot(submitted)
        self._publish(snapshot)
        log_action(logger, self.kind.name, "reconcile", "server", request_id, snapshot.state.value)
        return WorkflowResult(snapshot)

    def refresh_status(self) -> WorkflowResult:
        request_id = self._open_request_id()
        if request_id is None:
            return self._report("refresh", InvalidTransitionError("Aucune demande à actualiser."))
        try:
            submitted = self.gateway.fetch(request_id)
        except Exception as exc:
            return self._report("refresh", exc)
        snapshot = self._submitted_snapshot(submitted)
        self._publish(snapshot)
        log_action(logger, self.kind.name, "refresh", "success", request_id, snapshot.state.value)
        return WorkflowResult(snapshot)

    def retry(self) -> WorkflowResult:
        """Resend the staged payload as is. No automatic re-attempt, no cap."""
        staged = self._load_staged()
        if staged is None:
            return self._report("retry", NothingToRetryError(self.kind.name))
        if self.kind.can_cancel and self._open_request_id() is not None:
            return self._report("retry", InvalidTransitionError(OPEN_REQUEST_MESSAGE))
        if not begin_submission(self.kind.name):
            return self._report("retry", SubmissionInProgressError(self.kind.name))
        try:
            self._publish(replace(self.snapshot, state=WorkflowState.SUBMITTING, failure=None))
            try:
                submitted = self.gateway.submit(staged.payload)
            except Exception as exc:
                failure = classify(exc)
                snapshot = self._stored_snapshot(staged, failure)
                self._publish(snapshot)
                log_action(logger, self.kind.name, "retry", failure.reason.value, state=snapshot.state.value)
                return WorkflowResult(snapshot, alert=to_user_facing_error(exc, title="Erreur"))
            return self._submission_succeeded("retry", submitted, staged.payload)
        finally:
            end_submission(self.kind.name)

    def cancel(self) -> WorkflowResult:
        if self.snapshot.stored_locally and not self.kind.can_cancel:
            request_id = None
        else:
            request_id = self._open_request_id()
        if request_id is not None:
            if not self.kind.can_cancel:
                return self._report("cancel", InvalidTransitionError("Cette demande ne peut pas être annulée."))
            try:
                self.gateway.cancel(request_id)
            except Exception as exc:
                return self._report("cancel", exc)
        self.store.remove_many([self.kind.id_key, self.kind.staged_key])
        snapshot = self._idle()
        self._publish(snapshot)
        log_action(logger, self.kind.name, "cancel", "success", request_id, snapshot.state.value)
        return WorkflowResult(
            snapshot,
            message="Votre demande a été annulée avec succès. Vous pouvez recommencer une nouvelle demande.",
        )

    def complete(self) -> WorkflowResult:
        """Close an approved request once its follow-up action has been taken."""
        snapshot = self.snapshot
        finished = snapshot.state is WorkflowState.SUBMITTED and (
            snapshot.status is RequestStatus.APPROVED or not self.kind.has_status
        )
        if not finished:
            return self._report("complete", InvalidTransitionError("La demande n'est pas encore approuvée."))
        self.store.remove_many([self.kind.id_key, self.kind.staged_key])
        idle = self._idle()
        self._publish(idle)
        log_action(logger, self.kind.name, "complete", "success", snapshot.request_id, idle.state.value)
        return WorkflowResult(idle)

    def is_approved(self) -> bool:
        return self.snapshot.state is WorkflowState.SUBMITTED and self.snapshot.status is RequestStatus.APPROVED

    def _open_request_id(self) -> str | None:
        return self.snapshot.request_id or self.store.get(self.kind.id_key)

    def _submission_succeeded(self, action: str, submitted: SubmittedRequest, payload: dict[str, Any]) -> WorkflowResult:
        self.store.set(self.kind.id_key, submitted.id)
        self.store.remove(self.kind.staged_key)
        snapshot = WorkflowSnapshot(
            state=WorkflowState.SUBMITTED,
            status=submitted.status,
            request_id=submitted.id,
            payload=submitted.payload or payload,
            form=payload,
        )
        self._publish(snapshot)
        log_action(logger, self.kind.name, action, "success", submitted.id, snapshot.state.value)
        return WorkflowResult(snapshot, message="Votre demande a été enregistrée avec succès.")

    def _submission_failed(self, exc: Exception, payload: dict[str, Any]) -> WorkflowResult:
        failure = classify(exc)
        alert = to_user_facing_error(exc)
        if not failure.reason.retryable:
            snapshot = WorkflowSnapshot(state=WorkflowState.REJECTED, form=payload, failure=failure)
            self._publish(snapshot)
            log_action(logger, self.kind.name, "submit", failure.reason.value, state=snapshot.state.value)
            return WorkflowResult(snapshot, alert=alert)

        staged = PendingRequest(kind=self.kind.name, payload=payload, local_id=new_local_id())
        self.store.set(self.kind.staged_key, staged.model_dump_json())
        # a kind holds either a server identifier or a staged payload, never both
        self.store.remove(self.kind.id_key)
        snapshot = self._stored_snapshot(staged, failure)
        self._publish(snapshot)
        log_action(logger, self.kind.name, "submit", failure.reason.value, state=snapshot.state.value)
        return WorkflowResult(
            snapshot,
            alert=UserFacingError(
                title="Demande enregistrée localement",
                message="Votre demande a été enregistrée localement. Vous pourrez la renvoyer dès que possible.",
                details=alert.details,
            ),
        )

    def _from_staged(self, action: str) -> WorkflowResult:
        staged = self._load_staged()
        snapshot = self._stored_snapshot(staged) if staged is not None else self._idle()
        self._publish(snapshot)
        log_action(logger, self.kind.name, action, "local" if staged else "empty", state=snapshot.state.value)
        return WorkflowResult(snapshot)

    def _load_staged(self) -> PendingRequest | None:
        raw = self.store.get(self.kind.staged_key)
        if raw is None:
            return None
        try:
            return PendingRequest.model_validate_json(raw)
        except PydanticValidationError:
            pass
        # older clients stored the bare form payload
        data = self.store.get_json(self.kind.staged_key)
        if not isinstance(data, dict):
            logger.error("staged_payload_unreadable", extra={"kind": self.kind.name})
            return None
        local_id = str(data.get("id") or new_local_id())
        return PendingRequest(kind=self.kind.name, payload=data, local_id=local_id)

    def _stored_snapshot(self, staged: PendingRequest, failure: Failure | None = None) -> WorkflowSnapshot:
        return WorkflowSnapshot(
            state=WorkflowState.STORED_LOCALLY,
            status=RequestStatus.PENDING,
            local_id=staged.local_id,
            payload=staged.payload,
            form=self._form_from(staged.payload),
            failure=failure,
        )

    def _submitted_snapshot(self, submitted: SubmittedRequest) -> WorkflowSnapshot:
        return WorkflowSnapshot(
            state=WorkflowState.SUBMITTED,
            status=submitted.status,
            request_id=submitted.id,
            payload=submitted.payload,
            form=self._form_from(submitted.payload),
        )

    def _form_from(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        form = self.kind.empty_form()
        for key, default in form.items():
            if key not in payload or payload[key] is None:
                continue
            value = payload[key]
            if isinstance(default, dict) and isinstance(value, dict):
                form[key] = {**default, **value}
            else:
                form[key] = value
        return form

    def _idle(self) -> WorkflowSnapshot:
        return WorkflowSnapshot(form=self.kind.empty_form())

    def _report(self, action: str, exc: Exception, form: dict[str, Any] | None = None) -> WorkflowResult:
        if not isinstance(exc, (ClientValidationError, InvalidTransitionError, NothingToRetryError)):
            logger.warning("workflow_action_failure", extra={"kind": self.kind.name, "action": action})
        snapshot = self.snapshot if form is None else replace(self.snapshot, form=form)
        self.snapshot = snapshot
        return WorkflowResult(snapshot, alert=to_user_facing_error(exc))

    def _publish(self, snapshot: WorkflowSnapshot) -> None:
        self.snapshot = snapshot
        if self.on_state:
            self.on_state(snapshot)
