from __future__ import annotations

import itertools
import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from loguru import logger

from emucloud.api.model import Recipe
from emucloud.core.exceptions import ProvisioningError
from emucloud.providers.genycloud.config import GenyCloud
from emucloud.providers.genycloud.exec import GenyCloudExec

PIXEL = Recipe(uuid="r-pixel", name="Google Pixel 6", android_version="13.0")
GALAXY = Recipe(uuid="r-galaxy", name="Samsung Galaxy S10", android_version="11.0")


class FakeGmsaas(GenyCloudExec):
    """In-memory stand-in for the gmsaas executable.

    Answers the same argument vectors the real tool receives, keeps a
    record of every call, and lets tests script failures per instance.
    """

    def __init__(
        self,
        *,
        version: str = "1.6.0",
        email: str | None = "qa@example.com",
        recipes: tuple[Recipe, ...] = (PIXEL, GALAXY),
        boot_polls: int = 0,
    ) -> None:
        super().__init__("gmsaas")
        self.version = version
        self.email = email
        self.recipes = recipes
        self.boot_polls = boot_polls
        self.instances: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, ...]] = []
        self.stop_failures: dict[str, str] = {}
        self.fail_start: str | None = None
        self._ids = itertools.count(1)
        self._polls: dict[str, int] = {}

    def add_instance(
        self,
        uuid: str,
        name: str,
        recipe: Recipe = PIXEL,
        *,
        state: str = "ONLINE",
        adb_serial: str = "0.0.0.0",
    ) -> None:
        self.instances[uuid] = {
            "uuid": uuid,
            "name": name,
            "state": state,
            "adb_serial": adb_serial,
            "recipe": {"uuid": recipe.uuid, "name": recipe.name},
        }

    def count(self, *prefix: str) -> int:
        return sum(1 for call in self.calls if call[: len(prefix)] == prefix)

    async def run(self, *args: str) -> dict[str, Any]:
        self.calls.append(args)
        match args:
            case ("--version",):
                return {"version": self.version}
            case ("auth", "whoami"):
                return {"auth": {"email": self.email}}
            case ("recipes", "list"):
                return {"recipes": [self._recipe_json(r) for r in self.recipes]}
            case ("recipes", "list", "--name", name):
                matches = [r for r in self.recipes if name.lower() in r.name.lower()]
                return {"recipes": [self._recipe_json(r) for r in matches]}
            case ("instances", "start", "--stop-when-inactive", "--no-wait", recipe_uuid, name):
                if self.fail_start:
                    raise ProvisioningError("instances start failed", diagnostic=self.fail_start)
                recipe = next(r for r in self.recipes if r.uuid == recipe_uuid)
                uuid = f"i-{next(self._ids)}"
                self.add_instance(uuid, name, recipe, state="CREATING")
                return {"instance": dict(self.instances[uuid])}
            case ("instances", "get", uuid):
                instance = self._require(uuid)
                polls = self._polls.get(uuid, 0) + 1
                self._polls[uuid] = polls
                if instance["state"] != "DELETED" and polls > self.boot_polls:
                    instance["state"] = "ONLINE"
                return {"instance": dict(instance)}
            case ("instances", "list"):
                return {"instances": [dict(i) for i in self.instances.values()]}
            case ("instances", "adbconnect", uuid):
                instance = self._require(uuid)
                instance["adb_serial"] = f"localhost:{5554 + len(self.calls)}"
                return {"instance": dict(instance)}
            case ("instances", "stop", uuid):
                if uuid in self.stop_failures:
                    raise ProvisioningError(
                        f"instances stop {uuid} failed", diagnostic=self.stop_failures[uuid],
                    )
                instance = self._require(uuid)
                del self.instances[uuid]
                return {"instance": {**instance, "state": "DELETED"}}
        raise AssertionError(f"unexpected gmsaas call: {args}")

    def _require(self, uuid: str) -> dict[str, Any]:
        if uuid not in self.instances:
            raise ProvisioningError(
                f"gmsaas call for {uuid} failed (exit 4)",
                diagnostic=json.dumps({"error": {"message": f"Instance {uuid} not found"}}),
            )
        return self.instances[uuid]

    @staticmethod
    def _recipe_json(recipe: Recipe) -> dict[str, Any]:
        return {"uuid": recipe.uuid, "name": recipe.name, "android_version": recipe.android_version}


@pytest.fixture
def gmsaas() -> FakeGmsaas:
    return FakeGmsaas()


@pytest.fixture
def registry_dir(tmp_path: Path) -> Path:
    return tmp_path / "registry"


@pytest.fixture
def config(registry_dir: Path) -> GenyCloud:
    return GenyCloud(
        gmsaas_path="gmsaas",
        registry_dir=registry_dir,
        session_id="test",
        lock_timeout=2.0,
        boot_timeout=1.0,
        poll_interval=0.01,
    )


@pytest.fixture
def log_messages() -> Iterator[list[str]]:
    """Capture emucloud log messages (the library logger is off by default)."""
    messages: list[str] = []
    logger.enable("emucloud")
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
    logger.disable("emucloud")
