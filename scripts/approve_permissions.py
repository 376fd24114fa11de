#!/usr/bin/env python3
"""
Approve a permission configuration by writing its canonical fingerprint to
APPROVED_FINGERPRINT.

Usage:
    python scripts/approve_permissions.py [config_directory]

If no directory is given, defaults to erp_config/sets/default/

The script:
  1. Loads workflow_permissions.yaml from the directory
  2. Validates it
  3. Compiles it to a PermissionTable
  4. Writes the table fingerprint to APPROVED_FINGERPRINT

Changing the YAML so that the compiled rules differ, without re-running
approval, makes load_permission_table() raise ConfigIntegrityError.
"""

import sys
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from erp_config import PERMISSIONS_FILE_NAME
from erp_config.compiler import compile_permission_table
from erp_config.integrity import write_pinned_fingerprint
from erp_config.loader import load_permission_config
from erp_config.validator import validate_permission_config


def approve(config_dir: Path) -> str:
    """Load, validate, compile, and write the pin file.

    Returns the fingerprint that was written.
    """
    path = config_dir / PERMISSIONS_FILE_NAME
    print(f"Loading permissions from: {path}")
    config = load_permission_config(path)
    print(f"  config_id: {config.config_id}")
    print(f"  version:   {config.version}")
    print(f"  checksum:  {config.checksum[:16]}...")

    print("Validating...")
    result = validate_permission_config(config)
    if not result.is_valid:
        print("VALIDATION FAILED:")
        for err in result.errors:
            print(f"  ERROR: {err}")
        sys.exit(1)
    for w in result.warnings:
        print(f"  WARNING: {w}")

    print("Compiling...")
    table = compile_permission_table(config)
    fingerprint = table.fingerprint or ""
    print(f"  rules:       {len(table.rules)}")
    print(f"  fingerprint: {fingerprint}")

    pin_path = write_pinned_fingerprint(config_dir, fingerprint)
    print(f"Wrote {pin_path}")
    return fingerprint


def main():
    if len(sys.argv) > 1:
        target = Path(sys.argv[1])
    else:
        target = ROOT / "erp_config" / "sets" / "default"

    if not target.is_dir():
        print(f"Error: directory not found: {target}", file=sys.stderr)
        sys.exit(1)

    approve(target)
    print("Done. Permissions are now pinned.")


if __name__ == "__main__":
    main()
