"""
Pure domain layer.

This module contains pure value objects and domain logic with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the injectable Clock abstraction itself)
- I/O

All domain objects are immutable and deterministic.
"""

from erp_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from erp_kernel.domain.workflow import (
    ACTION_DISPLAY_ORDER,
    COMMENT_REQUIRED_ACTIONS,
    INITIAL_STATUS,
    STATUS_ORDER,
    TERMINAL_STATUSES,
    WORKFLOW_TRANSITIONS,
    DocumentType,
    PermissionRule,
    PermissionTable,
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

__all__ = [
    "ACTION_DISPLAY_ORDER",
    "COMMENT_REQUIRED_ACTIONS",
    "INITIAL_STATUS",
    "STATUS_ORDER",
    "TERMINAL_STATUSES",
    "WORKFLOW_TRANSITIONS",
    "Clock",
    "DeterministicClock",
    "DocumentType",
    "PermissionRule",
    "PermissionTable",
    "SystemClock",
    "TransitionRecord",
    "WorkflowAction",
    "WorkflowErrorKind",
    "WorkflowResult",
    "WorkflowStatus",
    "coerce_action",
    "coerce_document_type",
    "coerce_status",
    "target_status",
]
