"""
erp_services.status_mapping -- Stored status vocabulary per document type.

Responsibility:
    Translate between the workflow vocabulary used by the engine and the
    status strings each document table actually stores.  Proforma job
    orders store ``pending_approval`` while awaiting check; job orders
    store ``active`` once approved; cash disbursements store workflow
    statuses verbatim.

Architecture position:
    Services -- pure functions, no I/O.

Invariants enforced:
    - Writing then reading a status returns the same workflow status for
      every document type.
    - Reading never fails: unknown stored values read as ``draft``.
"""

from __future__ import annotations

from types import MappingProxyType

from erp_kernel.domain.workflow import (
    DocumentType,
    WorkflowStatus,
    coerce_document_type,
    coerce_status,
)

# Stored value -> workflow status, shared by every document type
_READ_MAP: MappingProxyType[str, WorkflowStatus] = MappingProxyType({
    "draft": WorkflowStatus.DRAFT,
    "pending_approval": WorkflowStatus.PENDING_CHECK,
    "pending_check": WorkflowStatus.PENDING_CHECK,
    "checked": WorkflowStatus.CHECKED,
    "approved": WorkflowStatus.APPROVED,
    "rejected": WorkflowStatus.REJECTED,
    "active": WorkflowStatus.APPROVED,
    "completed": WorkflowStatus.APPROVED,
})

# Per-type overrides of the verbatim write
_WRITE_OVERRIDES: MappingProxyType[DocumentType, MappingProxyType[WorkflowStatus, str]] = (
    MappingProxyType({
        DocumentType.PROFORMA_JOB_ORDER: MappingProxyType({
            WorkflowStatus.PENDING_CHECK: "pending_approval",
        }),
        DocumentType.JOB_ORDER: MappingProxyType({
            WorkflowStatus.APPROVED: "active",
        }),
    })
)


def to_workflow_status(stored_status: str | None) -> WorkflowStatus:
    """Read a stored status as a workflow status."""
    if stored_status is None:
        return WorkflowStatus.DRAFT
    return _READ_MAP.get(stored_status, WorkflowStatus.DRAFT)


def to_stored_status(
    status: WorkflowStatus | str,
    document_type: DocumentType | str,
) -> str:
    """Write a workflow status in the document type's stored vocabulary.

    Raises:
        UnknownWorkflowStatusError: status outside the closed set.
        UnknownDocumentTypeError: document type outside the closed set.
    """
    status = coerce_status(status)
    document_type = coerce_document_type(document_type)
    overrides = _WRITE_OVERRIDES.get(document_type, {})
    return overrides.get(status, status.value)


def stored_values_for(
    status: WorkflowStatus | str,
    document_type: DocumentType | str,
) -> tuple[str, ...]:
    """All known stored values that read as ``status`` for a document type.

    The value this type writes comes first, followed by aliases accepted
    on read, in sorted order.
    """
    status = coerce_status(status)
    written = to_stored_status(status, document_type)
    aliases = sorted(
        value for value, mapped in _READ_MAP.items()
        if mapped is status and value != written
    )
    return (written, *aliases)
