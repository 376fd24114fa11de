"""
Permission configuration schema.

Defines the human-authored, reviewable source artifact for workflow
permissions.  YAML is parsed into these types by the loader, checked by
the validator, and compiled into a ``PermissionTable`` by the compiler.

Key distinction:
  PermissionConfigSet = source artifact (human-authored, versioned)
  PermissionTable     = runtime artifact (validated, frozen, fingerprinted)
"""

from __future__ import annotations

from dataclasses import dataclass

# Prefix marking a grant entry as a role group reference.
GROUP_REF_PREFIX = "@"


@dataclass(frozen=True)
class RoleGroupDef:
    """A named set of roles that grants may reference as ``@name``."""

    name: str
    roles: tuple[str, ...]


@dataclass(frozen=True)
class PermissionGrantDef:
    """YAML-authored grant: who may perform ``action`` from ``status``.

    ``roles`` holds the raw entries, role names and ``@group`` references
    mixed, exactly as authored.
    """

    status: str
    action: str
    roles: tuple[str, ...]


@dataclass(frozen=True)
class DocumentWorkflowDef:
    """All grants for one document type."""

    document_type: str
    label: str = ""
    grants: tuple[PermissionGrantDef, ...] = ()


@dataclass(frozen=True)
class PermissionConfigSet:
    """A complete, versioned permission configuration."""

    config_id: str
    version: int
    document_workflows: tuple[DocumentWorkflowDef, ...]
    role_groups: tuple[RoleGroupDef, ...] = ()
    description: str = ""
    checksum: str = ""

    def role_group(self, name: str) -> RoleGroupDef | None:
        for group in self.role_groups:
            if group.name == name:
                return group
        return None
