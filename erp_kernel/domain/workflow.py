"""
Document workflow types (``erp_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the maker/checker/approver document workflow.
Defines the closed enumerations (document type, status, action), the fixed
successor map, the immutable permission table, and the result/record types
returned by the workflow engine.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, or outer layers.

Invariants enforced
-------------------
* Lifecycle state machine -- ``WORKFLOW_TRANSITIONS`` defines the only
  edges.  ``approved`` and ``rejected`` have no outgoing edges.
* Closed sets -- ``coerce_*`` helpers turn strings into enum members and
  raise a typed error for anything outside the set.
* Permission table immutability -- ``PermissionTable`` is frozen, its index
  is a read-only mapping, and every rule it holds names an edge that exists.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping
from uuid import UUID

from erp_kernel.exceptions import (
    InvalidPermissionRuleError,
    UnknownDocumentTypeError,
    UnknownWorkflowActionError,
    UnknownWorkflowStatusError,
)


# =========================================================================
# Closed enumerations
# =========================================================================


class DocumentType(str, Enum):
    """Business documents under workflow control."""

    PROFORMA_JOB_ORDER = "pjo"
    JOB_ORDER = "jo"
    CASH_DISBURSEMENT = "bkk"

    @property
    def label(self) -> str:
        return _DOCUMENT_TYPE_LABELS[self]


class WorkflowStatus(str, Enum):
    """Workflow lifecycle states, in lifecycle order."""

    DRAFT = "draft"
    PENDING_CHECK = "pending_check"
    CHECKED = "checked"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class WorkflowAction(str, Enum):
    """Verbs a caller may request against a document."""

    SUBMIT = "submit"
    CHECK = "check"
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def label(self) -> str:
        return _ACTION_LABELS[self]


_DOCUMENT_TYPE_LABELS: dict[DocumentType, str] = {
    DocumentType.PROFORMA_JOB_ORDER: "Proforma Job Order",
    DocumentType.JOB_ORDER: "Job Order",
    DocumentType.CASH_DISBURSEMENT: "Cash Disbursement Request",
}

_STATUS_LABELS: dict[WorkflowStatus, str] = {
    WorkflowStatus.DRAFT: "Draft",
    WorkflowStatus.PENDING_CHECK: "Pending Check",
    WorkflowStatus.CHECKED: "Checked",
    WorkflowStatus.APPROVED: "Approved",
    WorkflowStatus.REJECTED: "Rejected",
}

_ACTION_LABELS: dict[WorkflowAction, str] = {
    WorkflowAction.SUBMIT: "Submit for Review",
    WorkflowAction.CHECK: "Mark as Checked",
    WorkflowAction.APPROVE: "Approve",
    WorkflowAction.REJECT: "Reject",
}


# =========================================================================
# Lifecycle state machine
# =========================================================================

INITIAL_STATUS: WorkflowStatus = WorkflowStatus.DRAFT

TERMINAL_STATUSES: frozenset[WorkflowStatus] = frozenset({
    WorkflowStatus.APPROVED,
    WorkflowStatus.REJECTED,
})

# Buttons are always rendered in this order, whatever order the
# permission config lists them in.
ACTION_DISPLAY_ORDER: tuple[WorkflowAction, ...] = (
    WorkflowAction.SUBMIT,
    WorkflowAction.CHECK,
    WorkflowAction.APPROVE,
    WorkflowAction.REJECT,
)

STATUS_ORDER: tuple[WorkflowStatus, ...] = tuple(WorkflowStatus)

WORKFLOW_TRANSITIONS: Mapping[tuple[WorkflowStatus, WorkflowAction], WorkflowStatus] = (
    MappingProxyType({
        (WorkflowStatus.DRAFT, WorkflowAction.SUBMIT): WorkflowStatus.PENDING_CHECK,
        (WorkflowStatus.PENDING_CHECK, WorkflowAction.CHECK): WorkflowStatus.CHECKED,
        (WorkflowStatus.CHECKED, WorkflowAction.APPROVE): WorkflowStatus.APPROVED,
        (WorkflowStatus.PENDING_CHECK, WorkflowAction.REJECT): WorkflowStatus.REJECTED,
        (WorkflowStatus.CHECKED, WorkflowAction.REJECT): WorkflowStatus.REJECTED,
    })
)

# Actions whose comment is mandatory (stored as the rejection reason).
COMMENT_REQUIRED_ACTIONS: frozenset[WorkflowAction] = frozenset({
    WorkflowAction.REJECT,
})


def target_status(
    status: WorkflowStatus,
    action: WorkflowAction,
) -> WorkflowStatus | None:
    """Return the status ``action`` leads to from ``status``, or None."""
    return WORKFLOW_TRANSITIONS.get((status, action))


# =========================================================================
# Closed-set coercion
# =========================================================================


def coerce_document_type(value: DocumentType | str) -> DocumentType:
    """Return ``value`` as a DocumentType or raise UnknownDocumentTypeError."""
    try:
        return DocumentType(value)
    except ValueError:
        raise UnknownDocumentTypeError(value) from None


def coerce_status(value: WorkflowStatus | str) -> WorkflowStatus:
    """Return ``value`` as a WorkflowStatus or raise UnknownWorkflowStatusError."""
    try:
        return WorkflowStatus(value)
    except ValueError:
        raise UnknownWorkflowStatusError(value) from None


def coerce_action(value: WorkflowAction | str) -> WorkflowAction:
    """Return ``value`` as a WorkflowAction or raise UnknownWorkflowActionError."""
    try:
        return WorkflowAction(value)
    except ValueError:
        raise UnknownWorkflowActionError(value) from None


# =========================================================================
# Permission table
# =========================================================================


@dataclass(frozen=True)
class PermissionRule:
    """Which roles may perform ``action`` on a document in ``status``.

    Contract:
        frozen.  String values are coerced to the closed enumerations.
        A bare role string is a single role, not an iterable of characters.
    Guarantees:
        ``(status, action)`` is an edge of the state machine and
        ``allowed_roles`` is non-empty.
    """

    document_type: DocumentType
    status: WorkflowStatus
    action: WorkflowAction
    allowed_roles: frozenset[str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "document_type", coerce_document_type(self.document_type))
        object.__setattr__(self, "status", coerce_status(self.status))
        object.__setattr__(self, "action", coerce_action(self.action))
        roles = self.allowed_roles
        if isinstance(roles, str):
            roles = (roles,)
        object.__setattr__(self, "allowed_roles", frozenset(roles))

        if self.status in TERMINAL_STATUSES:
            raise InvalidPermissionRuleError(
                self.document_type.value, self.status.value, self.action.value,
                "terminal status has no outgoing actions",
            )
        if target_status(self.status, self.action) is None:
            raise InvalidPermissionRuleError(
                self.document_type.value, self.status.value, self.action.value,
                "action has no successor from this status",
            )
        if not self.allowed_roles:
            raise InvalidPermissionRuleError(
                self.document_type.value, self.status.value, self.action.value,
                "rule grants no roles",
            )


_NO_GRANTS: Mapping[WorkflowAction, frozenset[str]] = MappingProxyType({})


@dataclass(frozen=True)
class PermissionTable:
    """Immutable (document type x status) -> action -> roles mapping.

    Built once at process start (normally by ``erp_config``) and passed by
    reference into the engine.  ``fingerprint`` identifies the compiled rule
    set when it came from configuration.
    """

    rules: tuple[PermissionRule, ...]
    version: int = 1
    fingerprint: str | None = None
    _index: Mapping[
        tuple[DocumentType, WorkflowStatus],
        Mapping[WorkflowAction, frozenset[str]],
    ] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        rules = tuple(self.rules)
        object.__setattr__(self, "rules", rules)

        index: dict[
            tuple[DocumentType, WorkflowStatus],
            dict[WorkflowAction, frozenset[str]],
        ] = {}
        for rule in rules:
            grants = index.setdefault((rule.document_type, rule.status), {})
            if rule.action in grants:
                raise InvalidPermissionRuleError(
                    rule.document_type.value, rule.status.value, rule.action.value,
                    "duplicate rule",
                )
            grants[rule.action] = rule.allowed_roles

        object.__setattr__(
            self,
            "_index",
            MappingProxyType({k: MappingProxyType(v) for k, v in index.items()}),
        )

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[str, Mapping[str, Mapping[str, Iterable[str]]]],
        version: int = 1,
    ) -> PermissionTable:
        """Build a table from ``{doc_type: {status: {action: roles}}}``.

        ``roles`` may be a single role name or an iterable of them.
        """
        rules = tuple(
            PermissionRule(
                document_type=doc_type,
                status=status,
                action=action,
                allowed_roles=roles,
            )
            for doc_type, statuses in mapping.items()
            for status, actions in statuses.items()
            for action, roles in actions.items()
        )
        return cls(rules=rules, version=version)

    def grants_for(
        self,
        document_type: DocumentType,
        status: WorkflowStatus,
    ) -> Mapping[WorkflowAction, frozenset[str]]:
        """Action -> allowed roles for a (document type, status) pair."""
        return self._index.get((document_type, status), _NO_GRANTS)

    def allowed_roles(
        self,
        document_type: DocumentType,
        status: WorkflowStatus,
        action: WorkflowAction,
    ) -> frozenset[str]:
        return self.grants_for(document_type, status).get(action, frozenset())

    @property
    def document_types(self) -> frozenset[DocumentType]:
        return frozenset(doc_type for doc_type, _ in self._index)

    @property
    def roles(self) -> frozenset[str]:
        """Every role named anywhere in the table."""
        return frozenset(role for rule in self.rules for role in rule.allowed_roles)


# =========================================================================
# Engine results
# =========================================================================


class WorkflowErrorKind(str, Enum):
    """Why a requested action was refused."""

    PERMISSION_DENIED = "permission_denied"
    VALIDATION_ERROR = "validation_error"
    INVALID_TRANSITION = "invalid_transition"


@dataclass(frozen=True)
class WorkflowResult:
    """Outcome of ``perform_action``.

    On success ``new_status`` is set and ``error`` is None.  On failure
    ``error`` names the refusal and ``reason`` is a user-facing message.
    """

    success: bool
    new_status: WorkflowStatus | None = None
    action: WorkflowAction | None = None
    actor_role: str | None = None
    comment: str | None = None
    error: WorkflowErrorKind | None = None
    reason: str = ""


@dataclass(frozen=True)
class TransitionRecord:
    """What the caller persists after a successful transition.

    ``actor_id`` and ``transitioned_at`` are supplied by the caller; the
    engine never reads identity or time.
    """

    document_type: DocumentType
    from_status: WorkflowStatus
    to_status: WorkflowStatus
    action: WorkflowAction
    actor_id: UUID
    actor_role: str
    transitioned_at: datetime
    comment: str | None = None
