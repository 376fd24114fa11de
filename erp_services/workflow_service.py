"""
erp_services.workflow_service -- Persisted workflow transitions.

Responsibility:
    Thin coordinator between the pure workflow engine and the database.
    Reads a document, asks the engine whether the caller's role may take
    the requested action, writes the new status with a conditional UPDATE,
    stamps who did what and when, and appends an audit row.

Architecture position:
    Services layer.  May import from erp_engines (pure engine),
    erp_config (permission table) and erp_kernel (domain, models, db).

Invariants enforced:
    - The engine decides; this service never re-implements permission or
      transition rules.
    - Status writes are conditional on the stored status that was read.
      A concurrent writer makes the write match zero rows and the
      transition raises ``StaleWorkflowStatusError``.
    - Status update and audit row are flushed together.  The caller owns
      the transaction; this service never commits.

Failure modes:
    - ``DocumentNotFoundError`` -- no document with that id and type.
    - ``StaleWorkflowStatusError`` -- status moved since it was read.
    - Refusals (permission, missing reason) are returned as failed
      ``WorkflowResult`` values, not raised.

Audit relevance:
    Every attempt emits a ``workflow_transition`` log record with an
    outcome code.  Every successful transition appends one
    ``WorkflowAuditLogModel`` row.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from erp_config import get_permission_table
from erp_engines.workflow import (
    PermissionLookup,
    actionable_statuses,
    build_transition_record,
    get_available_actions,
    perform_action,
)
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.workflow import (
    INITIAL_STATUS,
    STATUS_ORDER,
    DocumentType,
    TransitionRecord,
    WorkflowAction,
    WorkflowErrorKind,
    WorkflowResult,
    WorkflowStatus,
    coerce_action,
    coerce_document_type,
)
from erp_kernel.exceptions import DocumentNotFoundError, StaleWorkflowStatusError
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.models.audit_log import WorkflowAuditLogModel
from erp_kernel.models.document import WorkflowDocumentModel
from erp_services.status_mapping import (
    stored_values_for,
    to_stored_status,
    to_workflow_status,
)

logger = get_logger("services.workflow")

TRACE_TYPE_WORKFLOW_TRANSITION = "workflow_transition"

OUTCOME_SUCCESS = "success"
OUTCOME_PERMISSION_DENIED = "permission_denied"
OUTCOME_VALIDATION_ERROR = "validation_error"
OUTCOME_INVALID_TRANSITION = "invalid_transition"

_OUTCOME_BY_ERROR: dict[WorkflowErrorKind, str] = {
    WorkflowErrorKind.PERMISSION_DENIED: OUTCOME_PERMISSION_DENIED,
    WorkflowErrorKind.VALIDATION_ERROR: OUTCOME_VALIDATION_ERROR,
    WorkflowErrorKind.INVALID_TRANSITION: OUTCOME_INVALID_TRANSITION,
}

# Action -> (actor column, timestamp column) stamped on the document
_ACTION_STAMPS: dict[WorkflowAction, tuple[str, str]] = {
    WorkflowAction.SUBMIT: ("submitted_by_id", "submitted_at"),
    WorkflowAction.CHECK: ("checked_by_id", "checked_at"),
    WorkflowAction.APPROVE: ("approved_by_id", "approved_at"),
    WorkflowAction.REJECT: ("rejected_by_id", "rejected_at"),
}

DEFAULT_PENDING_LIMIT = 10

_LIFECYCLE_RANK = case(
    {status.value: rank for rank, status in enumerate(STATUS_ORDER)},
    value=WorkflowAuditLogModel.from_status,
    else_=len(STATUS_ORDER),
)


@dataclass(frozen=True)
class ActorProfile:
    """The caller as resolved by the identity provider. Trusted as given."""

    actor_id: UUID
    role: str


@dataclass(frozen=True)
class WorkflowStatusView:
    """Read model for a document's workflow panel."""

    document_id: UUID
    document_type: DocumentType
    document_number: str
    status: WorkflowStatus
    stored_status: str
    available_actions: tuple[WorkflowAction, ...]
    submitted_by_id: UUID | None = None
    submitted_at: datetime | None = None
    checked_by_id: UUID | None = None
    checked_at: datetime | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    rejected_by_id: UUID | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None


@dataclass(frozen=True)
class PendingDocument:
    """A document waiting on the caller's role."""

    document_id: UUID
    document_type: DocumentType
    document_number: str
    status: WorkflowStatus
    created_at: datetime
    available_actions: tuple[WorkflowAction, ...]


def _emit_workflow_trace(
    action: str,
    document_type: str,
    document_id: UUID,
    from_status: str,
    outcome: str,
    reason: str,
    duration_ms: float,
    actor_role: str,
    to_status: str | None = None,
    outcome_sink: Callable[[dict], None] | None = None,
) -> None:
    """Emit a structured workflow transition record."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "action": action,
        "document_type": document_type,
        "document_id": str(document_id),
        "from_status": from_status,
        "actor_role": actor_role,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
    }
    if to_status is not None:
        record["to_status"] = to_status
    record.update(LogContext.get_all())
    if outcome == OUTCOME_SUCCESS:
        logger.info(TRACE_TYPE_WORKFLOW_TRANSITION, extra=record)
    else:
        logger.warning(TRACE_TYPE_WORKFLOW_TRANSITION, extra=record)
    if outcome_sink is not None:
        outcome_sink(record)


class WorkflowService:
    """Runs workflow transitions against persisted documents.

    Args:
        session: SQLAlchemy session.  The caller commits or rolls back.
        table: Permission table.  Defaults to the process-wide table
            from ``erp_config.get_permission_table()``.
        clock: Source of transition timestamps.  Defaults to SystemClock.
        outcome_sink: Optional callback receiving every trace record.
    """

    def __init__(
        self,
        session: Session,
        table: PermissionLookup | None = None,
        clock: Clock | None = None,
        outcome_sink: Callable[[dict], None] | None = None,
    ) -> None:
        self._session = session
        self._table = table if table is not None else get_permission_table()
        self._clock = clock or SystemClock()
        self._outcome_sink = outcome_sink

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_document(
        self,
        document_type: DocumentType | str,
        document_number: str,
        actor: ActorProfile,
    ) -> WorkflowDocumentModel:
        """Insert a new document in the initial status."""
        document_type = coerce_document_type(document_type)
        now = self._clock.now()
        document = WorkflowDocumentModel(
            document_type=document_type.value,
            document_number=document_number,
            status=to_stored_status(INITIAL_STATUS, document_type),
            created_by_id=actor.actor_id,
            created_at=now,
            updated_at=now,
        )
        self._session.add(document)
        self._session.flush()

        logger.info(
            "workflow_document_created",
            extra={
                "document_type": document_type.value,
                "document_id": str(document.id),
                "document_number": document_number,
                "actor_id": str(actor.actor_id),
            },
        )
        return document

    def perform_transition(
        self,
        document_type: DocumentType | str,
        document_id: UUID,
        action: WorkflowAction | str,
        actor: ActorProfile,
        comment: str | None = None,
    ) -> WorkflowResult:
        """Apply one workflow action to a persisted document.

        Returns the engine's result.  On success the document row and a
        new audit row have been flushed.

        Raises:
            DocumentNotFoundError: No such document of that type.
            StaleWorkflowStatusError: Another writer changed the status.
        """
        document_type = coerce_document_type(document_type)
        action = coerce_action(action)

        with LogContext.bind(
            actor_id=str(actor.actor_id),
            actor_role=actor.role,
            document_type=document_type.value,
            document_id=str(document_id),
        ):
            t0 = time.monotonic()
            document = self._load_document(document_type, document_id)
            stored_status = document.status
            current_status = to_workflow_status(stored_status)

            result = perform_action(
                self._table,
                document_type,
                current_status,
                actor.role,
                action,
                comment,
            )

            if not result.success:
                duration_ms = (time.monotonic() - t0) * 1000
                _emit_workflow_trace(
                    action=action.value,
                    document_type=document_type.value,
                    document_id=document_id,
                    from_status=current_status.value,
                    outcome=_OUTCOME_BY_ERROR[result.error],
                    reason=result.reason,
                    duration_ms=duration_ms,
                    actor_role=actor.role,
                    outcome_sink=self._outcome_sink,
                )
                return result

            record = build_transition_record(
                result,
                document_type,
                current_status,
                actor_id=actor.actor_id,
                transitioned_at=self._clock.now(),
            )
            self._write_status(document, stored_status, record)
            self._session.add(
                WorkflowAuditLogModel.from_record(
                    record,
                    document_id=document.id,
                    document_number=document.document_number,
                )
            )
            self._session.flush()

            duration_ms = (time.monotonic() - t0) * 1000
            _emit_workflow_trace(
                action=action.value,
                document_type=document_type.value,
                document_id=document_id,
                from_status=current_status.value,
                outcome=OUTCOME_SUCCESS,
                reason=action.label,
                duration_ms=duration_ms,
                actor_role=actor.role,
                to_status=record.to_status.value,
                outcome_sink=self._outcome_sink,
            )
            return result

    def submit_document(
        self,
        document_type: DocumentType | str,
        document_id: UUID,
        actor: ActorProfile,
        comment: str | None = None,
    ) -> WorkflowResult:
        return self.perform_transition(
            document_type, document_id, WorkflowAction.SUBMIT, actor, comment,
        )

    def check_document(
        self,
        document_type: DocumentType | str,
        document_id: UUID,
        actor: ActorProfile,
        comment: str | None = None,
    ) -> WorkflowResult:
        return self.perform_transition(
            document_type, document_id, WorkflowAction.CHECK, actor, comment,
        )

    def approve_document(
        self,
        document_type: DocumentType | str,
        document_id: UUID,
        actor: ActorProfile,
        comment: str | None = None,
    ) -> WorkflowResult:
        return self.perform_transition(
            document_type, document_id, WorkflowAction.APPROVE, actor, comment,
        )

    def reject_document(
        self,
        document_type: DocumentType | str,
        document_id: UUID,
        actor: ActorProfile,
        reason: str,
    ) -> WorkflowResult:
        """Reject a document.  A blank reason yields a validation error."""
        return self.perform_transition(
            document_type, document_id, WorkflowAction.REJECT, actor, reason,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_workflow_status(
        self,
        document_type: DocumentType | str,
        document_id: UUID,
        role: str,
    ) -> WorkflowStatusView:
        """Current status, the role's available actions, and stamps.

        Raises:
            DocumentNotFoundError: No such document of that type.
        """
        document_type = coerce_document_type(document_type)
        document = self._load_document(document_type, document_id)
        status = to_workflow_status(document.status)
        return WorkflowStatusView(
            document_id=document.id,
            document_type=document_type,
            document_number=document.document_number,
            status=status,
            stored_status=document.status,
            available_actions=tuple(
                get_available_actions(self._table, document_type, status, role)
            ),
            submitted_by_id=document.submitted_by_id,
            submitted_at=document.submitted_at,
            checked_by_id=document.checked_by_id,
            checked_at=document.checked_at,
            approved_by_id=document.approved_by_id,
            approved_at=document.approved_at,
            rejected_by_id=document.rejected_by_id,
            rejected_at=document.rejected_at,
            rejection_reason=document.rejection_reason,
        )

    def get_pending_documents(
        self,
        document_type: DocumentType | str,
        role: str,
        limit: int = DEFAULT_PENDING_LIMIT,
    ) -> list[PendingDocument]:
        """Documents in statuses the role can act on, newest first."""
        document_type = coerce_document_type(document_type)
        statuses = actionable_statuses(self._table, document_type, role)
        if not statuses:
            return []

        stored: list[str] = []
        for status in statuses:
            stored.extend(stored_values_for(status, document_type))

        rows = self._session.execute(
            select(WorkflowDocumentModel)
            .where(
                WorkflowDocumentModel.document_type == document_type.value,
                WorkflowDocumentModel.status.in_(stored),
            )
            .order_by(WorkflowDocumentModel.created_at.desc())
            .limit(limit)
        ).scalars().all()

        pending: list[PendingDocument] = []
        for row in rows:
            status = to_workflow_status(row.status)
            pending.append(
                PendingDocument(
                    document_id=row.id,
                    document_type=document_type,
                    document_number=row.document_number,
                    status=status,
                    created_at=row.created_at,
                    available_actions=tuple(
                        get_available_actions(self._table, document_type, status, role)
                    ),
                )
            )
        return pending

    def get_history(self, document_id: UUID) -> list[TransitionRecord]:
        """Audit trail for a document, oldest first.

        Transitions only move forward, so lifecycle order of the source
        status breaks ties between rows stamped at the same instant.
        """
        rows = self._session.execute(
            select(WorkflowAuditLogModel)
            .where(WorkflowAuditLogModel.document_id == document_id)
            .order_by(WorkflowAuditLogModel.transitioned_at, _LIFECYCLE_RANK)
        ).scalars().all()
        return [row.to_record() for row in rows]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load_document(
        self,
        document_type: DocumentType,
        document_id: UUID,
    ) -> WorkflowDocumentModel:
        document = self._session.get(WorkflowDocumentModel, document_id)
        if document is None or document.document_type != document_type.value:
            raise DocumentNotFoundError(document_type.value, str(document_id))
        return document

    def _write_status(
        self,
        document: WorkflowDocumentModel,
        stored_status: str,
        record: TransitionRecord,
    ) -> None:
        """Conditional status write.  Zero matched rows means a lost race."""
        by_column, at_column = _ACTION_STAMPS[record.action]
        values: dict[str, Any] = {
            "status": to_stored_status(record.to_status, record.document_type),
            by_column: record.actor_id,
            at_column: record.transitioned_at,
            "updated_at": record.transitioned_at,
        }
        if record.action is WorkflowAction.REJECT:
            values["rejection_reason"] = record.comment

        cursor = self._session.execute(
            update(WorkflowDocumentModel)
            .where(
                WorkflowDocumentModel.id == document.id,
                WorkflowDocumentModel.status == stored_status,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if cursor.rowcount == 0:
            raise StaleWorkflowStatusError(
                document_type=record.document_type.value,
                document_id=str(document.id),
                expected_status=stored_status,
            )
        # Mirror the row into the loaded instance without marking it dirty.
        for key, value in values.items():
            set_committed_value(document, key, value)
