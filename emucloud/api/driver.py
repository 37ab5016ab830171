from typing import Any, Protocol, Self, runtime_checkable

from emucloud.api.model import DeviceId, Recipe


@runtime_checkable
class DriverConfig[D](Protocol):
    @property
    def type(self) -> str: ...

    async def create_driver(self) -> D: ...


@runtime_checkable
class DeviceDriver[C](Protocol):
    """Capability interface for disposable test devices.

    Implementations are selected at configuration time and own everything
    needed to hand a usable device to a test worker and take it back.
    """

    @classmethod
    async def create(cls, config: C) -> Self:
        """Create a driver from its immutable configuration."""
        ...

    async def prepare(self) -> None:
        """Validate the environment before any device is requested.

        Raises
        ------
        PreflightError
            When the backing tooling is missing, outdated or unauthenticated.
        """
        ...

    async def acquire(self, query: Any) -> DeviceId:
        """Resolve *query* to a device and claim it for this process.

        Raises
        ------
        ConfigurationError
            When the query matches no provisionable recipe.
        ProvisioningError
            When the provider fails to create or list instances.
        """
        ...

    async def install(self, device: DeviceId, binary_path: str, test_binary_path: str | None) -> None:
        """Install the app under test (and its test package) on *device*."""
        ...

    async def cleanup(self, device: DeviceId) -> None:
        """Release *device*; it stays alive and can be reused."""
        ...

    async def shutdown(self, device: DeviceId) -> None:
        """Destroy the remote instance behind *device*."""
        ...


@runtime_checkable
class RecipeMatcher(Protocol):
    async def find(self, query: Any) -> Recipe | None: ...


@runtime_checkable
class DeviceControl(Protocol):
    """Low-level control of a booted device, addressed by adb name."""

    async def api_level(self, adb_name: str) -> int: ...

    async def disable_animations(self, adb_name: str) -> None: ...


@runtime_checkable
class AppInstaller(Protocol):
    async def install(self, adb_name: str, binary_path: str, test_binary_path: str | None) -> None: ...
