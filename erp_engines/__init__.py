"""
Module: erp_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for higher
    layers (erp_services, page/action code).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import erp_kernel/domain.
    MUST NOT import erp_config or erp_services.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``.  Timestamps and actor
      ids are passed in as explicit parameters by the caller.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from erp_engines import get_available_actions, perform_action
"""

from erp_engines.workflow import (
    PermissionLookup,
    actionable_statuses,
    build_transition_record,
    get_available_actions,
    perform_action,
)

__all__ = [
    "PermissionLookup",
    "actionable_statuses",
    "build_transition_record",
    "get_available_actions",
    "perform_action",
]
