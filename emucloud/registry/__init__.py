"""On-disk device ledgers shared by every process of a run."""

from emucloud.registry.device_registry import DeviceRegistry, DeviceRegistryFactory
from emucloud.registry.lockfile import RegistryLock

__all__ = ["DeviceRegistry", "DeviceRegistryFactory", "RegistryLock"]
