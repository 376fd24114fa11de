"""
Module: erp_kernel.models.document
Responsibility: ORM persistence for documents under workflow control.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - document_type is limited to the workflow document types by a check
      constraint.
    - (document_type, document_number) is unique.
    - ``status`` holds the document type's own stored vocabulary (see
      ``erp_services.status_mapping``); it is only ever changed by the
      workflow service's conditional UPDATE.

Failure modes:
    - IntegrityError on duplicate document number or unknown type.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import Base, UTCDateTime, UUIDString


class WorkflowDocumentModel(Base):
    """A business document and its workflow stamps.

    Contract:
        One row per document.  ``<action>_by_id`` / ``<action>_at`` are
        written by the transition that performed the action.
    """

    __tablename__ = "workflow_documents"

    __table_args__ = (
        CheckConstraint(
            "document_type IN ('pjo', 'jo', 'bkk')",
            name="ck_workflow_documents_type",
        ),
        UniqueConstraint(
            "document_type", "document_number",
            name="uq_workflow_documents_number",
        ),
        # Pending-documents query: type + status, newest first
        Index(
            "ix_workflow_documents_type_status",
            "document_type", "status", "created_at",
        ),
    )

    document_type: Mapped[str] = mapped_column(String(10), nullable=False)
    document_number: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)

    submitted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    checked_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    checked_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    rejected_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<WorkflowDocument {self.document_type}:{self.document_number} "
            f"status={self.status}>"
        )
