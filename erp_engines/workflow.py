"""
erp_engines.workflow -- Pure document workflow engine.

Responsibility:
    Decide which workflow actions a role may take on a document in a given
    status, and resolve a requested action into a new status or a typed
    refusal.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import erp_kernel/domain/ types.

Invariants enforced:
    - An action is allowed only if the permission table grants it for
      (document type, current status) AND the role is in its role set.
    - reject requires a comment that is non-empty after trimming.
    - Only edges of ``WORKFLOW_TRANSITIONS`` are ever produced; terminal
      statuses offer nothing.
    - Purity: no clock access, no identity lookup, no logging, no I/O.

Failure modes:
    - Refusals are returned as ``WorkflowResult(success=False, error=...)``,
      never raised.
    - Values outside the closed enumerations raise the typed
      ``Unknown*Error`` exceptions from ``erp_kernel.exceptions``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from erp_kernel.domain.workflow import (
    ACTION_DISPLAY_ORDER,
    COMMENT_REQUIRED_ACTIONS,
    STATUS_ORDER,
    DocumentType,
    TransitionRecord,
    WorkflowAction,
    WorkflowErrorKind,
    WorkflowResult,
    WorkflowStatus,
    coerce_action,
    coerce_document_type,
    coerce_status,
    target_status,
)


class PermissionLookup(Protocol):
    """The part of ``PermissionTable`` the engine reads."""

    def allowed_roles(
        self,
        document_type: DocumentType,
        status: WorkflowStatus,
        action: WorkflowAction,
    ) -> frozenset[str]:
        ...


def get_available_actions(
    table: PermissionLookup,
    document_type: DocumentType | str,
    current_status: WorkflowStatus | str,
    role: str,
) -> list[WorkflowAction]:
    """Actions ``role`` may perform on a document in ``current_status``.

    The result is in display order (submit, check, approve, reject), never
    in table order.  Terminal statuses and (type, status) pairs missing
    from the table give an empty list.

    Args:
        table: The process-wide permission table.
        document_type: Document type (enum member or its value).
        current_status: Current workflow status (enum member or its value).
        role: The caller's role, trusted as given.

    Returns:
        Ordered list of permitted actions, possibly empty.
    """
    doc_type = coerce_document_type(document_type)
    status = coerce_status(current_status)
    if status.is_terminal:
        return []

    return [
        action
        for action in ACTION_DISPLAY_ORDER
        if role in table.allowed_roles(doc_type, status, action)
    ]


def perform_action(
    table: PermissionLookup,
    document_type: DocumentType | str,
    current_status: WorkflowStatus | str,
    role: str,
    action: WorkflowAction | str,
    comment: str | None = None,
) -> WorkflowResult:
    """Validate ``action`` and resolve it to the resulting status.

    Checks, in order:

    1. ``action`` is among ``get_available_actions`` for ``role``
       (else PERMISSION_DENIED);
    2. reject carries a non-blank comment (else VALIDATION_ERROR);
    3. ``(current_status, action)`` has a successor (else
       INVALID_TRANSITION -- only reachable with a malformed table).

    Nothing is persisted.  Calling this for a dry-run permission check is
    safe.

    Returns:
        WorkflowResult with ``new_status`` on success, or ``error`` and
        ``reason`` on refusal.
    """
    doc_type = coerce_document_type(document_type)
    status = coerce_status(current_status)
    requested = coerce_action(action)

    if requested not in get_available_actions(table, doc_type, status, role):
        return WorkflowResult(
            success=False,
            action=requested,
            actor_role=role,
            error=WorkflowErrorKind.PERMISSION_DENIED,
            reason=f"You don't have permission to {requested.value} this document",
        )

    cleaned = comment.strip() if comment else ""
    if requested in COMMENT_REQUIRED_ACTIONS and not cleaned:
        return WorkflowResult(
            success=False,
            action=requested,
            actor_role=role,
            error=WorkflowErrorKind.VALIDATION_ERROR,
            reason="Rejection reason is required",
        )

    new_status = target_status(status, requested)
    if new_status is None:
        return WorkflowResult(
            success=False,
            action=requested,
            actor_role=role,
            error=WorkflowErrorKind.INVALID_TRANSITION,
            reason=f"Invalid action {requested.value} for status {status.value}",
        )

    return WorkflowResult(
        success=True,
        new_status=new_status,
        action=requested,
        actor_role=role,
        comment=cleaned or None,
    )


def build_transition_record(
    result: WorkflowResult,
    document_type: DocumentType | str,
    from_status: WorkflowStatus | str,
    actor_id: UUID,
    transitioned_at: datetime,
) -> TransitionRecord:
    """Stamp a successful result with caller-supplied identity and time.

    Raises:
        ValueError: if ``result`` is not a successful transition.
    """
    if not result.success or result.new_status is None or result.action is None:
        raise ValueError("Cannot build a transition record from a failed result")

    return TransitionRecord(
        document_type=coerce_document_type(document_type),
        from_status=coerce_status(from_status),
        to_status=result.new_status,
        action=result.action,
        actor_id=actor_id,
        actor_role=result.actor_role or "",
        transitioned_at=transitioned_at,
        comment=result.comment,
    )


def actionable_statuses(
    table: PermissionLookup,
    document_type: DocumentType | str,
    role: str,
) -> tuple[WorkflowStatus, ...]:
    """Statuses (lifecycle order) from which ``role`` has at least one action."""
    doc_type = coerce_document_type(document_type)
    return tuple(
        status
        for status in STATUS_ORDER
        if get_available_actions(table, doc_type, status, role)
    )
