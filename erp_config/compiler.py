"""
Permission Compiler (``erp_config.compiler``).

Responsibility
--------------
Turns a validated ``PermissionConfigSet`` into the runtime
``PermissionTable``: role groups are expanded, rules are put in a
deterministic order, and a canonical fingerprint is computed over the
resolved rule set.

Architecture position
---------------------
**Config layer** -- sits between the loader/validator and the kernel's
``PermissionTable``.  The kernel never imports this module.

Invariants enforced
-------------------
* Validation gate -- a config with validation errors is never compiled.
* Deterministic output -- same YAML always yields the same rule order and
  fingerprint.
* Fingerprint covers resolved roles, so renaming a role group without
  changing who is allowed does not change the fingerprint.

Failure modes
-------------
* ``PermissionConfigError`` when validation fails.
"""

from __future__ import annotations

from erp_config.schema import GROUP_REF_PREFIX, PermissionConfigSet
from erp_config.validator import validate_permission_config
from erp_kernel.domain.workflow import (
    ACTION_DISPLAY_ORDER,
    STATUS_ORDER,
    DocumentType,
    PermissionRule,
    PermissionTable,
)
from erp_kernel.exceptions import PermissionConfigError
from erp_kernel.utils.hashing import hash_payload

_DOCUMENT_ORDER = {d: i for i, d in enumerate(DocumentType)}
_STATUS_ORDER = {s: i for i, s in enumerate(STATUS_ORDER)}
_ACTION_ORDER = {a: i for i, a in enumerate(ACTION_DISPLAY_ORDER)}


def compile_permission_table(config: PermissionConfigSet) -> PermissionTable:
    """
    Validate and compile a permission configuration.

    Postconditions:
        - Returns a frozen ``PermissionTable`` with ``version`` taken from
          the config and ``fingerprint`` set to the canonical fingerprint.

    Raises:
        PermissionConfigError: if validation reports any error.
    """
    validation = validate_permission_config(config)
    if not validation.is_valid:
        raise PermissionConfigError(validation.errors)

    rules = sorted(
        (
            PermissionRule(
                document_type=workflow.document_type,
                status=grant.status,
                action=grant.action,
                allowed_roles=frozenset(_expand_roles(config, grant.roles)),
            )
            for workflow in config.document_workflows
            for grant in workflow.grants
        ),
        key=_rule_sort_key,
    )

    return PermissionTable(
        rules=tuple(rules),
        version=config.version,
        fingerprint=canonical_fingerprint(rules, config.version),
    )


def canonical_fingerprint(rules: list[PermissionRule] | tuple[PermissionRule, ...], version: int) -> str:
    """SHA-256 over the resolved, ordered rule set and version."""
    return hash_payload({
        "version": version,
        "rules": [
            {
                "document_type": rule.document_type.value,
                "status": rule.status.value,
                "action": rule.action.value,
                "roles": sorted(rule.allowed_roles),
            }
            for rule in sorted(rules, key=_rule_sort_key)
        ],
    })


def _expand_roles(config: PermissionConfigSet, entries: tuple[str, ...]) -> set[str]:
    roles: set[str] = set()
    for entry in entries:
        if entry.startswith(GROUP_REF_PREFIX):
            group = config.role_group(entry[len(GROUP_REF_PREFIX):])
            # Validation already rejected unknown groups.
            if group is not None:
                roles.update(group.roles)
        elif entry:
            roles.add(entry)
    return roles


def _rule_sort_key(rule: PermissionRule) -> tuple[int, int, int]:
    return (
        _DOCUMENT_ORDER[rule.document_type],
        _STATUS_ORDER[rule.status],
        _ACTION_ORDER[rule.action],
    )
