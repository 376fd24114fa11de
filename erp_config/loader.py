"""
Configuration Loader (``erp_config.loader``).

Responsibility
--------------
Loads the workflow permission YAML file and parses it into typed
``erp_config.schema`` dataclass instances.  This is build/test tooling;
runtime callers go through ``erp_config.get_permission_table()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on engines or
services.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  source for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Wrong value shapes  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from erp_config.schema import (
    DocumentWorkflowDef,
    PermissionConfigSet,
    PermissionGrantDef,
    RoleGroupDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _parse_role_list(value: Any, where: str) -> tuple[str, ...]:
    """Accept a single role/group string or a list of them."""
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise ValueError(f"{where}: expected a role name or list of role names, got {value!r}")


def parse_role_group(name: str, data: Any) -> RoleGroupDef:
    """Parse a ``RoleGroupDef`` from a YAML list of role names."""
    return RoleGroupDef(name=name, roles=_parse_role_list(data, f"role_groups.{name}"))


def parse_document_workflow(document_type: str, data: dict[str, Any]) -> DocumentWorkflowDef:
    """
    Parse a ``DocumentWorkflowDef`` from a dict.

    Expected shape::

        label: Job Order
        permissions:
          draft:
            submit: ["@jo_makers"]

    Raises:
        KeyError: if ``permissions`` is missing.
        ValueError: if a status or grant block has the wrong shape.
    """
    if not isinstance(data, dict):
        raise ValueError(f"document_types.{document_type}: expected a mapping")

    permissions = data["permissions"] or {}
    if not isinstance(permissions, dict):
        raise ValueError(f"document_types.{document_type}.permissions: expected a mapping")

    grants: list[PermissionGrantDef] = []
    for status, actions in permissions.items():
        where = f"document_types.{document_type}.permissions.{status}"
        if not isinstance(actions, dict):
            raise ValueError(f"{where}: expected a mapping of action -> roles")
        for action, roles in actions.items():
            grants.append(
                PermissionGrantDef(
                    status=str(status),
                    action=str(action),
                    roles=_parse_role_list(roles, f"{where}.{action}"),
                )
            )

    return DocumentWorkflowDef(
        document_type=str(document_type),
        label=data.get("label", ""),
        grants=tuple(grants),
    )


def parse_permission_config(data: dict[str, Any]) -> PermissionConfigSet:
    """
    Parse a ``PermissionConfigSet`` from the top-level YAML dict.

    Preconditions:
        - ``data`` contains ``config_id`` and ``document_types``.
    Postconditions:
        - Returns a frozen ``PermissionConfigSet`` whose ``checksum`` is
          the SHA-256 of ``data``.
    """
    role_groups = tuple(
        parse_role_group(name, roles)
        for name, roles in (data.get("role_groups") or {}).items()
    )

    document_types = data["document_types"] or {}
    if not isinstance(document_types, dict):
        raise ValueError("document_types: expected a mapping")

    workflows = tuple(
        parse_document_workflow(doc_type, body)
        for doc_type, body in document_types.items()
    )

    return PermissionConfigSet(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        document_workflows=workflows,
        role_groups=role_groups,
        description=data.get("description", ""),
        checksum=compute_checksum(data),
    )


def load_permission_config(path: Path) -> PermissionConfigSet:
    """Load and parse a permission YAML file."""
    return parse_permission_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
