"""
Configuration Integrity -- fingerprint pinning for approved permissions.

When the directory holding the permission YAML contains an
APPROVED_FINGERPRINT file, the compiled table's fingerprint must match the
pinned value.  This prevents unreviewed edits to who may check or approve
documents from reaching a running process.

The pin file is a single line: the SHA-256 hex string produced by
``compile_permission_table()``'s ``fingerprint`` field.

If no APPROVED_FINGERPRINT file exists, the check is skipped
(draft/dev workflow).
"""

from __future__ import annotations

from pathlib import Path

from erp_kernel.exceptions import ErpKernelError

PINFILE_NAME = "APPROVED_FINGERPRINT"


class ConfigIntegrityError(ErpKernelError):
    """Compiled permission fingerprint does not match the approved pin.

    Attributes:
        config_id: The configuration set identifier.
        expected: The pinned (approved) fingerprint.
        actual: The computed fingerprint.
        pin_path: Path to the APPROVED_FINGERPRINT file.
    """

    code: str = "CONFIG_INTEGRITY_MISMATCH"

    def __init__(
        self,
        config_id: str,
        expected: str,
        actual: str,
        pin_path: Path,
    ):
        self.config_id = config_id
        self.expected = expected
        self.actual = actual
        self.pin_path = pin_path
        super().__init__(
            f"Config integrity check failed for '{config_id}': "
            f"pinned fingerprint {expected[:16]}... != "
            f"compiled fingerprint {actual[:16]}... "
            f"(pin file: {pin_path})"
        )


def read_pinned_fingerprint(config_dir: Path) -> str | None:
    """Return the pinned SHA-256 hex string, or None if no pin file exists."""
    pin_path = config_dir / PINFILE_NAME
    if not pin_path.is_file():
        return None
    return pin_path.read_text().strip()


def write_pinned_fingerprint(config_dir: Path, fingerprint: str) -> Path:
    """Write ``fingerprint`` to the pin file and return its path."""
    pin_path = config_dir / PINFILE_NAME
    pin_path.write_text(fingerprint + "\n")
    return pin_path


def verify_fingerprint_pin(
    config_id: str,
    fingerprint: str,
    config_dir: Path,
) -> None:
    """Verify that the compiled fingerprint matches the pin file.

    No-op if no APPROVED_FINGERPRINT file exists (draft/dev mode).

    Raises:
        ConfigIntegrityError: If pin exists and fingerprint does not match.
    """
    pinned = read_pinned_fingerprint(config_dir)
    if pinned is None:
        return

    if fingerprint != pinned:
        raise ConfigIntegrityError(
            config_id=config_id,
            expected=pinned,
            actual=fingerprint,
            pin_path=config_dir / PINFILE_NAME,
        )
