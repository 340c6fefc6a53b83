from __future__ import annotations

from typing import Sequence


class ProvisioningError(RuntimeError):
    """Base class for failures that abort a provisioning run."""

    exit_code = 1


class FatalPreHardeningError(ProvisioningError):
    """Abort before any security-relevant change; re-running is safe."""

    exit_code = 1


class DiskValidationError(FatalPreHardeningError):
    pass


class StorageBindError(FatalPreHardeningError):
    pass


class PackageInstallError(FatalPreHardeningError):
    pass


class DatabaseError(FatalPreHardeningError):
    pass


class ConfigurationError(FatalPreHardeningError):
    pass


class FatalPostHardeningError(ProvisioningError):
    """Failure during or after lockdown. Manual recovery only, no rollback."""

    exit_code = 2


class CommandError(RuntimeError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Command failed ({returncode}): {' '.join(self.argv)}\n{stderr}".rstrip())
