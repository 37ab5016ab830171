"""emucloud - disposable cloud emulators for test runs.

Acquires remote Android emulator instances matching a device query, tracks
every claim in an on-disk registry that outlives crashes, and makes sure
each instance is eventually deleted.

Example:

    from emucloud import GenyCloud, global_cleanup, global_init

    config = GenyCloud(session_id="ci-1234")
    await global_init(config)

    driver = await config.create_driver()
    await driver.prepare()
    device = await driver.acquire({"recipeName": "Samsung Galaxy S10"})
    try:
        ...  # run tests against device.adb_name
    finally:
        await driver.cleanup(device)

    await global_cleanup(config)
"""

# Data model
from emucloud.api import (
    ClaimState,
    DeletionLeak,
    DeviceId,
    InstanceHandle,
    Recipe,
    RegistryEntry,
    TeardownReport,
)

# Events
from emucloud.bus import EventBus
from emucloud.config import load_config, resolve_driver_config

# Errors
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
from emucloud.events import (
    DeviceAllocated,
    DeviceProvisioned,
    DeviceReleased,
    DeviceShuttingDown,
    EmucloudEvent,
    TeardownCompleted,
)
from emucloud.logging import LogConfig, setup_logging, teardown_logging

# Drivers
from emucloud.providers import create_driver
from emucloud.providers.genycloud import GenyCloud, GenyCloudDriver, global_cleanup, global_init
from emucloud.registry import DeviceRegistry, DeviceRegistryFactory

__all__ = [
    "ClaimState",
    "ConfigurationError",
    "DeletionLeak",
    "DeviceAllocated",
    "DeviceId",
    "DeviceProvisioned",
    "DeviceRegistry",
    "DeviceRegistryFactory",
    "DeviceReleased",
    "DeviceShuttingDown",
    "DuplicateClaimError",
    "EmucloudError",
    "EmucloudEvent",
    "EventBus",
    "GenyCloud",
    "GenyCloudDriver",
    "InstanceHandle",
    "LeakWarning",
    "LogConfig",
    "PreflightError",
    "ProvisioningError",
    "Recipe",
    "RegistryEntry",
    "RegistryError",
    "RegistryLockTimeout",
    "TeardownCompleted",
    "TeardownReport",
    "create_driver",
    "global_cleanup",
    "global_init",
    "load_config",
    "resolve_driver_config",
    "setup_logging",
    "teardown_logging",
]
