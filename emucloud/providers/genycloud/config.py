from __future__ import annotations

import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from emucloud.constants import DEFAULT_REGISTRY_DIR, GMSAAS_PATH_ENV, SESSION_ID_ENV

if TYPE_CHECKING:
    from emucloud.providers.genycloud.driver import GenyCloudDriver

MIN_GMSAAS_VERSION = "1.6.0"


def _default_gmsaas_path() -> str:
    return os.environ.get(GMSAAS_PATH_ENV, "gmsaas")


def _default_session_id() -> str:
    return os.environ.get(SESSION_ID_ENV) or uuid.uuid4().hex[:8]


@dataclass(frozen=True, slots=True)
class GenyCloud:
    """Genymotion SaaS driver configuration.

    Provisions Android emulators in the cloud through the ``gmsaas``
    executable and tracks them in the on-disk device registry so that
    instances survive neither a crash nor a forgotten teardown.

    Example:
        >>> driver = await GenyCloud(session_id="ci-1234").create_driver()
        >>> await driver.prepare()
        >>> device = await driver.acquire({"recipeName": "Pixel 6"})
    """

    gmsaas_path: str = field(default_factory=_default_gmsaas_path)
    min_version: str = MIN_GMSAAS_VERSION
    registry_dir: Path = DEFAULT_REGISTRY_DIR
    session_id: str = field(default_factory=_default_session_id)
    instance_prefix: str = "emucloud"
    lock_timeout: float = 30.0
    boot_timeout: float = 300.0
    poll_interval: float = 2.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "registry_dir", Path(self.registry_dir).expanduser())

    async def create_driver(self) -> GenyCloudDriver:
        from emucloud.providers.genycloud.driver import GenyCloudDriver
        return await GenyCloudDriver.create(self)

    @property
    def type(self) -> str: return "genycloud"
