"""
erp_services -- Persistence coordinators over the pure workflow engine.

``WorkflowService`` is the entry point for server-side callers: it loads
documents, delegates decisions to ``erp_engines.workflow``, and records
the outcome.
"""

from erp_services.status_mapping import (
    stored_values_for,
    to_stored_status,
    to_workflow_status,
)
from erp_services.workflow_service import (
    ActorProfile,
    PendingDocument,
    WorkflowService,
    WorkflowStatusView,
)

__all__ = [
    "ActorProfile",
    "PendingDocument",
    "WorkflowService",
    "WorkflowStatusView",
    "stored_values_for",
    "to_stored_status",
    "to_workflow_status",
]
