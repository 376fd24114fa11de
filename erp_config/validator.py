"""
Configuration Validator (``erp_config.validator``).

Responsibility
--------------
Validates a ``PermissionConfigSet`` before it is compiled, so that a
malformed grant is reported with its location instead of surfacing later
as a button that can never succeed.

Architecture position
---------------------
**Config layer** -- build-time validation.  Reads the closed enumerations
and the successor map from ``erp_kernel.domain.workflow``.

Invariants enforced
-------------------
* Closed sets -- document types, statuses and actions must be known values.
* Edge existence -- every grant names an edge of the workflow; terminal
  statuses carry no grants.
* Role resolution -- every ``@group`` reference names a declared, non-empty
  role group and every grant resolves to at least one role.
* Uniqueness -- role group names, document types, and
  (document type, status, action) grants are unique.

Failure modes
-------------
* Validation errors  -> configuration MUST NOT be compiled.
* Validation warnings  -> configuration may be compiled but should be
  reviewed (unconfigured document types, dead-end statuses, unused groups).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from erp_config.schema import GROUP_REF_PREFIX, PermissionConfigSet
from erp_kernel.domain.workflow import (
    TERMINAL_STATUSES,
    DocumentType,
    WorkflowAction,
    WorkflowStatus,
    target_status,
)


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


_DOCUMENT_TYPE_VALUES = frozenset(d.value for d in DocumentType)
_STATUS_VALUES = frozenset(s.value for s in WorkflowStatus)
_ACTION_VALUES = frozenset(a.value for a in WorkflowAction)


def validate_permission_config(config: PermissionConfigSet) -> ConfigValidationResult:
    """
    Validate a permission configuration set.

    Postconditions:
        - Returns a ``ConfigValidationResult`` with errors and warnings.
        - A configuration with errors MUST NOT be compiled.
    """
    result = ConfigValidationResult()

    if not config.config_id:
        result.add_error("config_id must not be empty")
    if config.version < 1:
        result.add_error(f"version must be >= 1, got {config.version}")

    used_groups: set[str] = set()
    _validate_role_groups(config, result)
    _validate_document_workflows(config, result, used_groups)

    for group in config.role_groups:
        if group.name not in used_groups:
            result.add_warning(f"Role group '{group.name}' is never referenced")

    return result


def _validate_role_groups(
    config: PermissionConfigSet,
    result: ConfigValidationResult,
) -> None:
    seen: set[str] = set()
    for group in config.role_groups:
        if group.name in seen:
            result.add_error(f"Duplicate role group '{group.name}'")
        seen.add(group.name)
        if not group.roles:
            result.add_error(f"Role group '{group.name}' has no roles")
        for role in group.roles:
            if role.startswith(GROUP_REF_PREFIX):
                result.add_error(
                    f"Role group '{group.name}' references '{role}'; "
                    "groups cannot contain other groups"
                )


def _validate_document_workflows(
    config: PermissionConfigSet,
    result: ConfigValidationResult,
    used_groups: set[str],
) -> None:
    seen_types: set[str] = set()

    for workflow in config.document_workflows:
        doc_type = workflow.document_type
        if doc_type not in _DOCUMENT_TYPE_VALUES:
            result.add_error(f"Unknown document type '{doc_type}'")
            continue
        if doc_type in seen_types:
            result.add_error(f"Duplicate document type '{doc_type}'")
            continue
        seen_types.add(doc_type)

        seen_grants: set[tuple[str, str]] = set()
        granted_statuses: set[str] = set()

        for grant in workflow.grants:
            where = f"{doc_type}.{grant.status}.{grant.action}"

            if grant.status not in _STATUS_VALUES:
                result.add_error(f"{where}: unknown status '{grant.status}'")
                continue
            if grant.action not in _ACTION_VALUES:
                result.add_error(f"{where}: unknown action '{grant.action}'")
                continue
            if (grant.status, grant.action) in seen_grants:
                result.add_error(f"{where}: duplicate grant")
                continue
            seen_grants.add((grant.status, grant.action))

            status = WorkflowStatus(grant.status)
            action = WorkflowAction(grant.action)
            if status in TERMINAL_STATUSES:
                result.add_error(f"{where}: '{grant.status}' is terminal and has no actions")
                continue
            if target_status(status, action) is None:
                result.add_error(
                    f"{where}: '{grant.action}' is not a transition out of '{grant.status}'"
                )
                continue

            resolved = _resolve_roles(config, grant.roles, where, result, used_groups)
            if not resolved:
                result.add_error(f"{where}: grant resolves to no roles")
                continue
            granted_statuses.add(grant.status)

        for status in WorkflowStatus:
            if status in TERMINAL_STATUSES:
                continue
            if status.value not in granted_statuses:
                result.add_warning(
                    f"{doc_type}: no role can act on documents in '{status.value}'"
                )

    for doc_type in sorted(_DOCUMENT_TYPE_VALUES - seen_types):
        result.add_warning(f"Document type '{doc_type}' has no permissions configured")


def _resolve_roles(
    config: PermissionConfigSet,
    entries: tuple[str, ...],
    where: str,
    result: ConfigValidationResult,
    used_groups: set[str],
) -> set[str]:
    roles: set[str] = set()
    for entry in entries:
        if not entry.startswith(GROUP_REF_PREFIX):
            if entry:
                roles.add(entry)
            continue
        name = entry[len(GROUP_REF_PREFIX):]
        group = config.role_group(name)
        if group is None:
            result.add_error(f"{where}: unknown role group '{name}'")
            continue
        used_groups.add(name)
        roles.update(group.roles)
    return roles
