"""
Typed Exception Hierarchy for the ERP Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the workflow layer (server actions, batch jobs, tests) need to
tell a caller bug from a configuration bug from a lost update without
parsing message strings.  Every error here therefore has:

  1. a TYPED exception class (catch by type, not message)
  2. a CODE class attribute (machine-readable, API-safe)
  3. structured DATA attributes (not just a message string)

Note that ordinary workflow refusals (role not allowed, missing rejection
reason) are NOT exceptions.  The engine returns them as data on
``WorkflowResult``.  The classes below cover the cases where the caller
handed in something that cannot be processed at all.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ErpKernelError (base)
    |
    +-- WorkflowValueError
    |   +-- UnknownDocumentTypeError
    |   +-- UnknownWorkflowStatusError
    |   +-- UnknownWorkflowActionError
    |
    +-- PermissionTableError
    |   +-- InvalidPermissionRuleError
    |   +-- PermissionConfigError
    |
    +-- DocumentError
    |   +-- DocumentNotFoundError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |       +-- StaleWorkflowStatusError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

``ConfigIntegrityError`` lives in ``erp_config.integrity`` next to the pin
file logic it guards.

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                        | When Raised
--------------|-----------------------------|-----------------------------------
Value         | UNKNOWN_DOCUMENT_TYPE       | Document type outside closed set
              | UNKNOWN_WORKFLOW_STATUS     | Status outside closed set
              | UNKNOWN_WORKFLOW_ACTION     | Action outside closed set
--------------|-----------------------------|-----------------------------------
Permissions   | INVALID_PERMISSION_RULE     | Rule grants an impossible edge
              | PERMISSION_CONFIG_INVALID   | YAML config failed validation
--------------|-----------------------------|-----------------------------------
Document      | DOCUMENT_NOT_FOUND          | No document with that id/type
--------------|-----------------------------|-----------------------------------
Concurrency   | OPTIMISTIC_LOCK_CONFLICT    | Concurrent modification detected
              | STALE_WORKFLOW_STATUS       | Status changed since it was read
--------------|-----------------------------|-----------------------------------
Immutability  | IMMUTABILITY_VIOLATION      | Audit log row updated or deleted

===============================================================================
"""


class ErpKernelError(Exception):
    """
    Base exception for all ERP kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ERP_KERNEL_ERROR"


# Closed-set value exceptions


class WorkflowValueError(ErpKernelError):
    """Base exception for values outside a workflow enumeration."""

    code: str = "WORKFLOW_VALUE_ERROR"


class UnknownDocumentTypeError(WorkflowValueError):
    """Document type is not one of the supported workflow document types."""

    code: str = "UNKNOWN_DOCUMENT_TYPE"

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Unknown document type: {value!r}")


class UnknownWorkflowStatusError(WorkflowValueError):
    """Status is not one of the five workflow statuses."""

    code: str = "UNKNOWN_WORKFLOW_STATUS"

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Unknown workflow status: {value!r}")


class UnknownWorkflowActionError(WorkflowValueError):
    """Action is not one of submit/check/approve/reject."""

    code: str = "UNKNOWN_WORKFLOW_ACTION"

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Unknown workflow action: {value!r}")


# Permission table exceptions


class PermissionTableError(ErpKernelError):
    """Base exception for permission table construction errors."""

    code: str = "PERMISSION_TABLE_ERROR"


class InvalidPermissionRuleError(PermissionTableError):
    """
    A permission rule grants an action that cannot fire from its status.

    Raised while building a ``PermissionTable`` -- a rule on a terminal
    status, or an action with no successor from the rule's status, would
    let the engine offer a button that can never succeed.
    """

    code: str = "INVALID_PERMISSION_RULE"

    def __init__(self, document_type: str, status: str, action: str, detail: str):
        self.document_type = document_type
        self.status = status
        self.action = action
        self.detail = detail
        super().__init__(
            f"Invalid permission rule {document_type}/{status}/{action}: {detail}"
        )


class PermissionConfigError(PermissionTableError):
    """Permission configuration failed validation and cannot be compiled."""

    code: str = "PERMISSION_CONFIG_INVALID"

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(
            f"Permission configuration invalid: {len(errors)} error(s): "
            + "; ".join(errors)
        )


# Document exceptions


class DocumentError(ErpKernelError):
    """Base exception for workflow document errors."""

    code: str = "DOCUMENT_ERROR"


class DocumentNotFoundError(DocumentError):
    """No document exists with the given id and document type."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_type: str, document_id: str):
        self.document_type = document_type
        self.document_id = document_id
        super().__init__(f"Document not found: {document_type} {document_id}")


# Concurrency exceptions


class ConcurrencyError(ErpKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


class StaleWorkflowStatusError(OptimisticLockError):
    """
    The stored status no longer matches the status the caller read.

    Raised by the conditional status write when another writer moved the
    document first.  The transition was not applied.
    """

    code: str = "STALE_WORKFLOW_STATUS"

    def __init__(self, document_type: str, document_id: str, expected_status: str):
        self.expected_status = expected_status
        super().__init__(document_type, document_id)
        self.args = (
            f"Workflow status of {document_type} {document_id} is no longer "
            f"'{expected_status}'; transition not applied",
        )


# Immutability exceptions


class ImmutabilityError(ErpKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Workflow audit log rows are append-only.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
