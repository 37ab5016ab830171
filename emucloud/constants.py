"""Centralized constants for emucloud.

Paths, environment variable names and registry scope names live here so
every module agrees on them.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Final

# =============================================================================
# Paths
# =============================================================================

EMUCLOUD_HOME: Final = Path.home() / ".emucloud"
DEFAULT_REGISTRY_DIR: Final = EMUCLOUD_HOME / "registry"

# =============================================================================
# Environment
# =============================================================================

GMSAAS_PATH_ENV: Final = "GMSAAS_PATH"
SESSION_ID_ENV: Final = "EMUCLOUD_SESSION_ID"

# =============================================================================
# Registry
# =============================================================================


class RegistryScope(StrEnum):
    """Named device ledgers with different lifetimes."""

    RUNTIME = "runtime"
    GLOBAL = "global"


# =============================================================================
# Genymotion SaaS
# =============================================================================

GENYCLOUD_INSTANCE_URL: Final = "https://cloud.geny.io/app/instance/{uuid}"
GENYCLOUD_RECIPES_URL: Final = "https://cloud.geny.io/app/shared-devices"
TEARDOWN_EVENT: Final = "GENYCLOUD_TEARDOWN"
