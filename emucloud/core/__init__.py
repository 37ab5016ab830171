from emucloud.core.exceptions import (
    ConfigurationError,
    DuplicateClaimError,
    EmucloudError,
    LeakWarning,
    PreflightError,
    ProvisioningError,
    RegistryError,
    RegistryLockTimeout,
)

__all__ = [
    "ConfigurationError",
    "DuplicateClaimError",
    "EmucloudError",
    "LeakWarning",
    "PreflightError",
    "ProvisioningError",
    "RegistryError",
    "RegistryLockTimeout",
]
