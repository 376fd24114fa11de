"""
Module: erp_kernel.models.audit_log
Responsibility: Append-only audit trail of workflow transitions.

Architecture position: Kernel > Models.  May import from db/base.py,
    exceptions, and domain value objects.

Invariants enforced:
    - Rows are immutable once written -- ORM listeners reject UPDATE and
      DELETE.
    - Statuses are stored in workflow vocabulary, not the document type's
      stored vocabulary, so history reads the same for every type.

Audit relevance:
    Each row captures old status, new status, action, actor, role,
    timestamp and comment for one successful transition.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import Base, UTCDateTime, UUIDString
from erp_kernel.domain.workflow import (
    DocumentType,
    TransitionRecord,
    WorkflowAction,
    WorkflowStatus,
)
from erp_kernel.exceptions import ImmutabilityViolationError


class WorkflowAuditLogModel(Base):
    """One successful workflow transition. Append-only."""

    __tablename__ = "workflow_audit_log"

    __table_args__ = (
        Index("ix_workflow_audit_log_document", "document_id", "transitioned_at"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_documents.id"),
        nullable=False,
    )
    document_type: Mapped[str] = mapped_column(String(10), nullable=False)
    document_number: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    from_status: Mapped[str] = mapped_column(String(20), nullable=False)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(100), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    transitioned_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<WorkflowAuditLog {self.document_type}:{self.document_number} "
            f"{self.from_status}->{self.to_status} by {self.actor_role}>"
        )

    def to_record(self) -> TransitionRecord:
        """Convert ORM row to frozen domain record."""
        return TransitionRecord(
            document_type=DocumentType(self.document_type),
            from_status=WorkflowStatus(self.from_status),
            to_status=WorkflowStatus(self.to_status),
            action=WorkflowAction(self.action),
            actor_id=self.actor_id,
            actor_role=self.actor_role,
            transitioned_at=self.transitioned_at,
            comment=self.comment,
        )

    @classmethod
    def from_record(
        cls,
        record: TransitionRecord,
        document_id: UUID,
        document_number: str,
    ) -> WorkflowAuditLogModel:
        """Create ORM row from a domain transition record."""
        return cls(
            document_id=document_id,
            document_type=record.document_type.value,
            document_number=document_number,
            action=record.action.value,
            from_status=record.from_status.value,
            to_status=record.to_status.value,
            actor_id=record.actor_id,
            actor_role=record.actor_role,
            comment=record.comment,
            transitioned_at=record.transitioned_at,
        )


# =============================================================================
# ORM-Level Immutability (Append-Only)
# =============================================================================


@event.listens_for(WorkflowAuditLogModel, "before_update")
def prevent_audit_log_update(mapper, connection, target):
    """Prevent updates to workflow audit log rows."""
    raise ImmutabilityViolationError(
        entity_type="WorkflowAuditLog",
        entity_id=str(target.id),
        reason="Workflow audit log rows are immutable -- cannot modify",
    )


@event.listens_for(WorkflowAuditLogModel, "before_delete")
def prevent_audit_log_delete(mapper, connection, target):
    """Prevent deletion of workflow audit log rows."""
    raise ImmutabilityViolationError(
        entity_type="WorkflowAuditLog",
        entity_id=str(target.id),
        reason="Workflow audit log rows are immutable -- cannot delete",
    )
