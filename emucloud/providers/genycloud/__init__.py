"""Genymotion SaaS driver: cloud Android emulators managed through gmsaas."""

from emucloud.providers.genycloud.allocation import AllocationCoordinator
from emucloud.providers.genycloud.config import GenyCloud
from emucloud.providers.genycloud.driver import GenyCloudDriver
from emucloud.providers.genycloud.exec import GenyCloudExec
from emucloud.providers.genycloud.launcher import InstanceLauncher
from emucloud.providers.genycloud.lifecycle import InstanceLifecycleClient
from emucloud.providers.genycloud.naming import InstanceNaming
from emucloud.providers.genycloud.recipes import RecipeQuerying
from emucloud.providers.genycloud.teardown import global_cleanup, global_init

__all__ = [
    "AllocationCoordinator",
    "GenyCloud",
    "GenyCloudDriver",
    "GenyCloudExec",
    "InstanceLauncher",
    "InstanceLifecycleClient",
    "InstanceNaming",
    "RecipeQuerying",
    "global_cleanup",
    "global_init",
]
