"""Driver registry for configuration-time selection.

Uses lazy loading so only the selected driver's modules are imported.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from emucloud.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from .genycloud.config import GenyCloud

log = logger.bind(component="drivers")

type DriverConfig = GenyCloud


async def create_driver(config: DriverConfig) -> Any:
    """Create the DeviceDriver matching a configuration object."""
    from .genycloud.config import GenyCloud

    config_type = type(config).__name__
    log.debug("Creating driver for config={config_type}", config_type=config_type)

    match config:
        case GenyCloud():
            from .genycloud.driver import GenyCloudDriver
            return await GenyCloudDriver.create(config)
        case _:
            raise ConfigurationError(
                f"No driver registered for {config_type}",
                hint="Available drivers: GenyCloud",
            )
