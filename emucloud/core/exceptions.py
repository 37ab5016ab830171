"""Custom exception hierarchy for emucloud.

All emucloud-specific exceptions inherit from EmucloudError, enabling
callers to catch every fatal condition with a single except clause.
LeakWarning is the one exception: it is a warning category, reported at
the end of a teardown sweep and never raised.
"""

from __future__ import annotations


class EmucloudError(Exception):
    """Base exception for all emucloud errors.

    Carries an optional remediation hint (a command to run or a URL to
    visit) rendered on its own line.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\nHINT: {self.hint}"
        return self.message


class ConfigurationError(EmucloudError):
    """Raised for invalid configuration or a device query matching no recipe."""


class PreflightError(EmucloudError):
    """Raised when the provisioning tool is missing, too old or logged out."""


class ProvisioningError(EmucloudError):
    """Raised when a create/delete/list call against the provider fails."""

    def __init__(
        self,
        message: str,
        *,
        diagnostic: str = "",
        hint: str | None = None,
    ) -> None:
        self.diagnostic = diagnostic
        super().__init__(message, hint=hint)


class RegistryError(EmucloudError):
    """Raised when the device registry cannot be read or written."""


class RegistryLockTimeout(RegistryError):
    """Raised when the registry lock cannot be acquired in time."""

    def __init__(self, path: str, timeout: float) -> None:
        self.path = path
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout}s waiting for registry lock {path}",
            hint=f"Another process may be stuck holding {path}; remove it if no run is active.",
        )


class DuplicateClaimError(RegistryError):
    """Raised when an instance is already claimed by another live process."""

    def __init__(self, uuid: str, owner_pid: int) -> None:
        self.uuid = uuid
        self.owner_pid = owner_pid
        super().__init__(f"Instance {uuid} is already claimed by process {owner_pid}")


class LeakWarning(UserWarning):
    """Teardown could not confirm that one or more instances were deleted."""
