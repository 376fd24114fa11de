"""ORM models for the ERP kernel."""

from erp_kernel.models.audit_log import WorkflowAuditLogModel
from erp_kernel.models.document import WorkflowDocumentModel

__all__ = [
    "WorkflowAuditLogModel",
    "WorkflowDocumentModel",
]
