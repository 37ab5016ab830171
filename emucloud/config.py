"""TOML-based driver configuration.

Loads ~/.emucloud/defaults.toml (global) and emucloud.toml (project),
merges them, and resolves the selected driver section into its frozen
configuration object.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any

from emucloud.constants import EMUCLOUD_HOME, GMSAAS_PATH_ENV, SESSION_ID_ENV
from emucloud.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from emucloud.providers.genycloud.config import GenyCloud

    type DriverConfig = GenyCloud

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = EMUCLOUD_HOME / "defaults.toml"
PROJECT_CONFIG_NAME = "emucloud.toml"
DEFAULT_DRIVER = "genycloud"


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(
            f"Invalid configuration file {path}: {exc}",
            hint="Fix the TOML syntax or remove the file.",
        ) from exc


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("driver", DEFAULT_DRIVER)
    return merged


def _get_driver_map() -> dict[str, type]:
    from emucloud.providers.genycloud.config import GenyCloud

    return {
        "genycloud": GenyCloud,
    }


def _env_overrides(driver: str) -> RawConfig:
    if driver != "genycloud":
        return {}
    overrides: RawConfig = {}
    if gmsaas_path := os.environ.get(GMSAAS_PATH_ENV):
        overrides["gmsaas_path"] = gmsaas_path
    if session_id := os.environ.get(SESSION_ID_ENV):
        overrides["session_id"] = session_id
    return overrides


def resolve_driver_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> DriverConfig:
    config = load_config(project_dir=project_dir, global_path=global_path)
    driver = config["driver"]

    driver_map = _get_driver_map()
    cls = driver_map.get(driver)
    if cls is None:
        raise ConfigurationError(
            f"Unknown driver '{driver}'",
            hint=f"Valid drivers: {', '.join(driver_map)}",
        )

    raw = dict(config.get(driver, {}))
    raw.update(_env_overrides(driver))
    if "registry_dir" in raw:
        raw["registry_dir"] = Path(raw["registry_dir"])

    try:
        return cls(**raw)
    except TypeError as exc:
        raise ConfigurationError(
            f"Invalid [{driver}] configuration: {exc}",
            hint=f"Check the [{driver}] section of {PROJECT_CONFIG_NAME}.",
        ) from exc
