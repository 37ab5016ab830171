"""Public data model and capability interfaces."""

from .driver import AppInstaller as AppInstaller
from .driver import DeviceControl as DeviceControl
from .driver import DeviceDriver as DeviceDriver
from .driver import DriverConfig as DriverConfig
from .driver import RecipeMatcher as RecipeMatcher
from .model import ClaimState as ClaimState
from .model import DeletionLeak as DeletionLeak
from .model import DeviceId as DeviceId
from .model import InstanceHandle as InstanceHandle
from .model import InstanceState as InstanceState
from .model import Recipe as Recipe
from .model import RegistryEntry as RegistryEntry
from .model import TeardownReport as TeardownReport
