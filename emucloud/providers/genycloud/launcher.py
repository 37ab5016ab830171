"""Provisioning and destruction of individual instances.

``launch`` registers a new instance in the global-shutdown registry right
after the provider acknowledges it, before any other work touches the
instance. A crash past that point leaves a ledger entry the next global
cleanup can act on; a crash between ``create`` and ``register`` is the
one unrecoverable window.
"""

from __future__ import annotations

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_result,
    stop_after_delay,
    wait_fixed,
)

from emucloud.api.model import InstanceHandle, Recipe, RegistryEntry
from emucloud.bus import EventBus
from emucloud.constants import GENYCLOUD_INSTANCE_URL
from emucloud.core.exceptions import ProvisioningError
from emucloud.events import DeviceProvisioned, DeviceShuttingDown
from emucloud.providers.genycloud.lifecycle import InstanceLifecycleClient
from emucloud.registry import DeviceRegistry

log = logger.bind(component="launcher")


class InstanceLauncher:
    def __init__(
        self,
        lifecycle: InstanceLifecycleClient,
        runtime_registry: DeviceRegistry,
        cleanup_registry: DeviceRegistry,
        events: EventBus,
        *,
        boot_timeout: float = 300.0,
        poll_interval: float = 2.0,
    ) -> None:
        self._lifecycle = lifecycle
        self._runtime_registry = runtime_registry
        self._cleanup_registry = cleanup_registry
        self._events = events
        self._boot_timeout = boot_timeout
        self._poll_interval = poll_interval

    async def launch(self, recipe: Recipe) -> InstanceHandle:
        instance = await self._lifecycle.create(recipe)
        await self._cleanup_registry.register_device(
            RegistryEntry.for_instance(instance, recipe=recipe.name),
        )
        log.info(
            "Provisioned instance {name} ({uuid}) from recipe {recipe}",
            name=instance.name, uuid=instance.uuid, recipe=recipe.name,
        )
        self._events.emit(
            DeviceProvisioned(uuid=instance.uuid, name=instance.name, recipe_name=recipe.name),
        )
        return instance

    async def connect(self, instance: InstanceHandle) -> InstanceHandle:
        """Wait for *instance* to come online and attach adb to it."""
        if not instance.is_online:
            instance = await self._wait_online(instance)
        if not instance.is_adb_connected:
            instance = await self._lifecycle.adb_connect(instance.uuid)
            log.debug("adb connected to {uuid} at {adb}", uuid=instance.uuid, adb=instance.adb_name)
        return instance

    async def shutdown(self, uuid: str) -> None:
        self._events.emit(DeviceShuttingDown(uuid=uuid))
        # Entries stay put when delete fails so the global sweep retries it.
        await self._lifecycle.delete(uuid)
        await self._runtime_registry.unregister_device(uuid)
        await self._cleanup_registry.unregister_device(uuid)
        log.info("Instance {uuid} shut down", uuid=uuid)

    async def _wait_online(self, instance: InstanceHandle) -> InstanceHandle:
        log.debug("Waiting for {uuid} to come online (state={state})", uuid=instance.uuid, state=instance.state)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_delay(self._boot_timeout),
                wait=wait_fixed(self._poll_interval),
                retry=retry_if_result(lambda current: not current.is_online),
            ):
                with attempt:
                    current = await self._lifecycle.get(instance.uuid)
                    if current.state == "DELETED":
                        raise ProvisioningError(
                            f"Instance {instance.name} ({instance.uuid}) was deleted while booting",
                        )
                if not attempt.retry_state.outcome.failed:
                    attempt.retry_state.set_result(current)
        except RetryError as exc:
            raise ProvisioningError(
                f"Instance {instance.name} ({instance.uuid}) did not come online "
                f"within {self._boot_timeout}s",
                hint=f"Check the instance at {GENYCLOUD_INSTANCE_URL.format(uuid=instance.uuid)}",
            ) from exc
        return current
