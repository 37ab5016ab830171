"""Hands out instances to test workers, reusing free ones before creating new.

The find-free-then-claim step runs inside ``runtime_registry.exclusive()``:
an ``asyncio.Lock`` for tasks of this process plus an ``flock`` on the
runtime ledger for other processes. New instances are also launched inside
that section, so a sibling worker listing the account can never see (and
adopt) an instance that exists remotely but is not yet claimed.
"""

from __future__ import annotations

from loguru import logger

from emucloud.api.model import ClaimState, InstanceHandle, Recipe, RegistryEntry
from emucloud.bus import EventBus
from emucloud.events import DeviceAllocated, DeviceReleased
from emucloud.providers.genycloud.launcher import InstanceLauncher
from emucloud.providers.genycloud.lifecycle import InstanceLifecycleClient
from emucloud.providers.genycloud.naming import InstanceNaming
from emucloud.registry import DeviceRegistry

log = logger.bind(component="allocation")

_REUSABLE_STATES = frozenset({"CREATING", "STARTING", "BOOTING", "ONLINE"})


class AllocationCoordinator:
    def __init__(
        self,
        *,
        runtime_registry: DeviceRegistry,
        cleanup_registry: DeviceRegistry,
        lifecycle: InstanceLifecycleClient,
        launcher: InstanceLauncher,
        naming: InstanceNaming,
        events: EventBus,
    ) -> None:
        self._runtime_registry = runtime_registry
        self._cleanup_registry = cleanup_registry
        self._lifecycle = lifecycle
        self._launcher = launcher
        self._naming = naming
        self._events = events

    async def allocate_device(self, recipe: Recipe) -> InstanceHandle:
        async with self._runtime_registry.exclusive():
            instance = await self._find_free_instance(recipe)
            reused = instance is not None
            if instance is None:
                instance = await self._launcher.launch(recipe)
            else:
                await self._cleanup_registry.register_device(
                    RegistryEntry.for_instance(instance, recipe=recipe.name),
                )
            await self._runtime_registry.register_device(
                RegistryEntry.for_instance(instance, recipe=recipe.name),
            )

        log.info(
            "Allocated {name} ({uuid}), reused={reused}",
            name=instance.name, uuid=instance.uuid, reused=reused,
        )
        self._events.emit(DeviceAllocated(uuid=instance.uuid, name=instance.name, reused=reused))
        return instance

    async def deallocate_device(self, uuid: str) -> None:
        if await self._runtime_registry.unregister_device(uuid):
            log.info("Released {uuid}; it stays alive for reuse", uuid=uuid)
        else:
            log.debug("Release of {uuid} ignored, it was not claimed", uuid=uuid)
        self._events.emit(DeviceReleased(uuid=uuid))

    async def claim_state(self, uuid: str) -> ClaimState:
        if await self._runtime_registry.includes(uuid):
            return ClaimState.CLAIMED
        if await self._cleanup_registry.includes(uuid):
            return ClaimState.RELEASED
        for instance in await self._lifecycle.list():
            if instance.uuid == uuid and instance.state != "DELETED":
                return ClaimState.PROVISIONED
        return ClaimState.DELETED

    async def _find_free_instance(self, recipe: Recipe) -> InstanceHandle | None:
        claimed = {entry.uuid for entry in await self._runtime_registry.read_registered_devices()}
        for instance in await self._lifecycle.list():
            if (
                instance.uuid not in claimed
                and instance.recipe_uuid == recipe.uuid
                and instance.state in _REUSABLE_STATES
                and self._naming.is_familial(instance.name)
            ):
                return instance
        return None
