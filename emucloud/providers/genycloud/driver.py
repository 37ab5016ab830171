from __future__ import annotations

import json
from typing import Any, Self

from loguru import logger
from packaging.version import InvalidVersion, Version

from emucloud.api.driver import AppInstaller, DeviceControl, RecipeMatcher
from emucloud.api.model import DeviceId, Recipe, TeardownReport
from emucloud.bus import EventBus
from emucloud.constants import GENYCLOUD_RECIPES_URL
from emucloud.core.exceptions import ConfigurationError, PreflightError, ProvisioningError
from emucloud.providers.genycloud import teardown
from emucloud.providers.genycloud.allocation import AllocationCoordinator
from emucloud.providers.genycloud.config import GenyCloud
from emucloud.providers.genycloud.exec import GenyCloudExec
from emucloud.providers.genycloud.launcher import InstanceLauncher
from emucloud.providers.genycloud.lifecycle import InstanceLifecycleClient
from emucloud.providers.genycloud.naming import InstanceNaming
from emucloud.providers.genycloud.recipes import RecipeQuerying
from emucloud.registry import DeviceRegistryFactory

log = logger.bind(driver="genycloud")


class GenyCloudDriver:
    """Disposable Android emulators on Genymotion SaaS.

    Device control (api level, animations) and app installation are
    external collaborators; pass them in to have ``acquire`` and
    ``install`` drive them.
    """

    def __init__(
        self,
        config: GenyCloud,
        *,
        exec_: GenyCloudExec | None = None,
        recipe_matcher: RecipeMatcher | None = None,
        device_control: DeviceControl | None = None,
        app_installer: AppInstaller | None = None,
        events: EventBus | None = None,
    ) -> None:
        self.config = config
        self.events = events or EventBus()
        self._exec = exec_ or GenyCloudExec(config.gmsaas_path)
        self._device_control = device_control
        self._app_installer = app_installer

        naming = InstanceNaming(config.instance_prefix, config.session_id)
        runtime_registry = DeviceRegistryFactory.for_runtime(
            config.registry_dir, lock_timeout=config.lock_timeout,
        )
        cleanup_registry = DeviceRegistryFactory.for_global_shutdown(
            config.registry_dir, lock_timeout=config.lock_timeout,
        )

        self._lifecycle = InstanceLifecycleClient(self._exec, naming)
        self._recipes = recipe_matcher or RecipeQuerying(self._exec)
        self._launcher = InstanceLauncher(
            self._lifecycle,
            runtime_registry,
            cleanup_registry,
            self.events,
            boot_timeout=config.boot_timeout,
            poll_interval=config.poll_interval,
        )
        self._allocation = AllocationCoordinator(
            runtime_registry=runtime_registry,
            cleanup_registry=cleanup_registry,
            lifecycle=self._lifecycle,
            launcher=self._launcher,
            naming=naming,
            events=self.events,
        )

    @classmethod
    async def create(cls, config: GenyCloud) -> Self:
        return cls(config)

    @property
    def allocation(self) -> AllocationCoordinator:
        return self._allocation

    async def prepare(self) -> None:
        await self._validate_gmsaas_version()
        await self._validate_gmsaas_auth()

    async def acquire(self, query: Any) -> DeviceId:
        recipe = await self._recipes.find(query)
        recipe = self._assert_recipe(query, recipe)

        instance = await self._allocation.allocate_device(recipe)
        try:
            instance = await self._launcher.connect(instance)
            if self._device_control is not None:
                api_level = await self._device_control.api_level(instance.adb_name)
                log.debug("{adb} runs API level {level}", adb=instance.adb_name, level=api_level)
                await self._device_control.disable_animations(instance.adb_name)
        except BaseException:
            await self._allocation.deallocate_device(instance.uuid)
            raise

        return DeviceId.create(instance)

    async def install(self, device: DeviceId, binary_path: str, test_binary_path: str | None) -> None:
        if self._app_installer is None:
            raise ConfigurationError(
                "No app installer configured for the genycloud driver",
                hint="Pass app_installer= when constructing GenyCloudDriver.",
            )
        await self._app_installer.install(device.adb_name, binary_path, test_binary_path)

    async def cleanup(self, device: DeviceId) -> None:
        await self._allocation.deallocate_device(device.uuid)

    async def shutdown(self, device: DeviceId) -> None:
        await self._launcher.shutdown(device.uuid)

    @staticmethod
    async def global_init(config: GenyCloud) -> None:
        await teardown.global_init(config)

    @staticmethod
    async def global_cleanup(config: GenyCloud) -> TeardownReport:
        return await teardown.global_cleanup(config)

    def _assert_recipe(self, query: Any, recipe: Recipe | None) -> Recipe:
        if recipe is None:
            raise ConfigurationError(
                "No Genymotion-Cloud template found to match the configured lookup query: "
                f"{json.dumps(query, default=str)}",
                hint=(
                    "Revisit your device configuration. Genymotion templates list is "
                    f"available at: {GENYCLOUD_RECIPES_URL}"
                ),
            )
        return recipe

    async def _validate_gmsaas_version(self) -> None:
        gmsaas = self.config.gmsaas_path
        try:
            raw = (await self._exec.get_version()).get("version", "")
        except ProvisioningError as exc:
            raise PreflightError(
                f"Cannot run the Genymotion-Cloud executable ({gmsaas}): {exc.message}",
                hint=exc.hint or "Install gmsaas (pip install gmsaas) or point GMSAAS_PATH at it.",
            ) from exc

        try:
            version = Version(str(raw))
        except InvalidVersion as exc:
            raise PreflightError(
                f"Cannot parse the version of the Genymotion-Cloud executable ({gmsaas}): {raw!r}",
            ) from exc

        if version < Version(self.config.min_version):
            raise PreflightError(
                f"Your Genymotion-Cloud executable (found in {gmsaas}) is too old! (version {version})",
                hint=(
                    f"emucloud requires version {self.config.min_version}, or newer. "
                    "To use genycloud devices, you must upgrade it, first."
                ),
            )
        log.debug("gmsaas {version} found at {path}", version=version, path=gmsaas)

    async def _validate_gmsaas_auth(self) -> None:
        gmsaas = self.config.gmsaas_path
        try:
            result = await self._exec.whoami()
        except ProvisioningError as exc:
            raise PreflightError(
                f"Cannot check the Genymotion-Cloud login state: {exc.message}",
            ) from exc

        auth = result.get("auth") or {}
        if not auth.get("email"):
            raise PreflightError(
                "Cannot run tests using genycloud devices, because Genymotion was not logged-in to!",
                hint=(
                    "Log-in to Genymotion-cloud by running this command (and following instructions):\n"
                    f"{gmsaas} auth login --help"
                ),
            )
