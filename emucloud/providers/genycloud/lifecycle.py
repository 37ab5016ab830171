"""Create/delete/list operations for single Genymotion-Cloud instances."""

from __future__ import annotations

from loguru import logger

from emucloud.api.model import InstanceHandle, Recipe
from emucloud.core.exceptions import ProvisioningError
from emucloud.providers.genycloud.exec import GenyCloudExec
from emucloud.providers.genycloud.naming import InstanceNaming

log = logger.bind(component="lifecycle")

_ABSENT_MARKERS = ("not found", "does not exist", "not_found", "no such instance")


class InstanceLifecycleClient:
    def __init__(self, exec_: GenyCloudExec, naming: InstanceNaming | None = None) -> None:
        self._exec = exec_
        self._naming = naming

    async def create(self, recipe: Recipe) -> InstanceHandle:
        if self._naming is None:
            raise ProvisioningError("Instance creation requires an instance naming scheme")
        name = self._naming.generate_name()
        log.debug("Starting instance {name} from recipe {recipe}", name=name, recipe=recipe.name)
        result = await self._exec.start_instance(recipe.uuid, name)
        return _instance_from(result, "instances start")

    async def delete(self, uuid: str) -> None:
        """Stop (and thereby delete) *uuid*. Deleting an absent instance succeeds."""
        try:
            await self._exec.stop_instance(uuid)
        except ProvisioningError as exc:
            if _is_absent(exc):
                log.info("Instance {uuid} already gone, nothing to delete", uuid=uuid)
                return
            raise
        log.debug("Instance {uuid} deleted", uuid=uuid)

    async def list(self) -> list[InstanceHandle]:
        result = await self._exec.get_instances()
        raw = result.get("instances")
        if not isinstance(raw, list):
            raise ProvisioningError("instances list returned malformed output", diagnostic=str(result))
        try:
            return [InstanceHandle.from_json(item) for item in raw]
        except (KeyError, TypeError, AttributeError) as exc:
            raise ProvisioningError(
                "instances list returned malformed output", diagnostic=str(result),
            ) from exc

    async def get(self, uuid: str) -> InstanceHandle:
        return _instance_from(await self._exec.get_instance(uuid), "instances get")

    async def adb_connect(self, uuid: str) -> InstanceHandle:
        return _instance_from(await self._exec.adb_connect(uuid), "instances adbconnect")


def _instance_from(result: dict, command: str) -> InstanceHandle:
    raw = result.get("instance")
    if not isinstance(raw, dict):
        raise ProvisioningError(f"{command} returned malformed output", diagnostic=str(result))
    try:
        return InstanceHandle.from_json(raw)
    except (KeyError, TypeError, AttributeError) as exc:
        raise ProvisioningError(f"{command} returned malformed output", diagnostic=str(result)) from exc


def _is_absent(exc: ProvisioningError) -> bool:
    text = f"{exc.message} {exc.diagnostic}".lower()
    return any(marker in text for marker in _ABSENT_MARKERS)
