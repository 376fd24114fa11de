"""
erp_config -- single public entrypoint for workflow permission configuration.

Responsibility:
    Provides the ONLY way to obtain the permission table at runtime through
    ``get_permission_table()`` (process-wide default) or
    ``load_permission_table()`` (explicit file).  Returns a
    ``PermissionTable`` -- the sole runtime artifact.  YAML loading is
    internal tooling and never exposed to the engine.

Architecture position:
    Configuration -- YAML-driven permission pipeline.  This package sits
    above ``erp_kernel`` and below ``erp_services``.  The kernel and the
    engines MUST NEVER import from ``erp_config``.

Invariants enforced:
    - Validation gate: the configuration must pass validation before a
      table is produced.
    - Fingerprint pinning: when an APPROVED_FINGERPRINT file sits next to
      the YAML, the compiled fingerprint must match it.
    - Built once: ``get_permission_table()`` compiles the default table on
      first use and returns the same immutable object afterwards.

Failure modes:
    - ``FileNotFoundError`` -- the YAML file does not exist.
    - ``PermissionConfigError`` -- validation failed.
    - ``ConfigIntegrityError`` -- fingerprint mismatch against the pin.

Audit relevance:
    Every successful load emits a ``permission_table_loaded`` log entry
    with config id, version, source checksum, fingerprint and rule count.
"""

from __future__ import annotations

import threading
from pathlib import Path

from erp_config.compiler import compile_permission_table
from erp_config.integrity import ConfigIntegrityError, verify_fingerprint_pin
from erp_config.loader import load_permission_config
from erp_kernel.domain.workflow import PermissionTable
from erp_kernel.logging_config import get_logger

logger = get_logger("config")

PERMISSIONS_FILE_NAME = "workflow_permissions.yaml"

# Default configuration directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets" / "default"

_default_table: PermissionTable | None = None
_default_lock = threading.Lock()


def load_permission_table(config_path: Path | None = None) -> PermissionTable:
    """Load, validate, compile and pin-check a permission configuration.

    Args:
        config_path: A YAML file, or a directory containing
            ``workflow_permissions.yaml``.  Defaults to
            ``erp_config/sets/default/``.

    Returns:
        The compiled, fingerprinted ``PermissionTable``.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        PermissionConfigError: If validation fails.
        ConfigIntegrityError: If the pin file does not match.
    """
    path = config_path or _DEFAULT_CONFIG_DIR
    if path.is_dir():
        path = path / PERMISSIONS_FILE_NAME

    config = load_permission_config(path)
    table = compile_permission_table(config)

    logger.info(
        "permission_table_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "fingerprint": table.fingerprint,
            "rule_count": len(table.rules),
            "source": str(path),
        },
    )

    verify_fingerprint_pin(
        config_id=config.config_id,
        fingerprint=table.fingerprint or "",
        config_dir=path.parent,
    )

    return table


def get_permission_table() -> PermissionTable:
    """Return the process-wide default permission table, building it once."""
    global _default_table
    with _default_lock:
        if _default_table is None:
            _default_table = load_permission_table()
        return _default_table


def reset_permission_table() -> None:
    """Drop the cached default table. FOR TESTING ONLY."""
    global _default_table
    with _default_lock:
        _default_table = None


__all__ = [
    "ConfigIntegrityError",
    "PERMISSIONS_FILE_NAME",
    "get_permission_table",
    "load_permission_table",
    "reset_permission_table",
]
