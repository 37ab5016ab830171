"""Algebraic Data Type (ADT) for emucloud events.

This module defines strongly-typed events for the device lifecycle:
- Provision: DeviceProvisioned
- Use: DeviceAllocated, DeviceReleased
- Shutdown: DeviceShuttingDown, TeardownCompleted

Use pattern matching to handle events in observers:

    match event:
        case DeviceProvisioned(uuid=uuid, name=name):
            print(f"Instance {name} ({uuid}) created")
        case TeardownCompleted(leaks=leaks) if leaks:
            print(f"{len(leaks)} instances leaked")
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from emucloud.api.model import DeletionLeak

# =============================================================================
# Provision Phase Events
# =============================================================================


@dataclass(frozen=True, slots=True)
class DeviceProvisioned:
    """A new remote instance was created and registered for cleanup."""

    uuid: str
    name: str
    recipe_name: str


# =============================================================================
# Use Phase Events
# =============================================================================


@dataclass(frozen=True, slots=True)
class DeviceAllocated:
    """An instance was claimed by this process."""

    uuid: str
    name: str
    reused: bool


@dataclass(frozen=True, slots=True)
class DeviceReleased:
    """A claim was dropped; the instance stays alive for reuse."""

    uuid: str


# =============================================================================
# Shutdown Phase Events
# =============================================================================


@dataclass(frozen=True, slots=True)
class DeviceShuttingDown:
    """Instance being deleted remotely."""

    uuid: str


@dataclass(frozen=True, slots=True)
class TeardownCompleted:
    """Global cleanup sweep finished."""

    attempted: int
    leaks: tuple[DeletionLeak, ...] = ()


# =============================================================================
# Union Type (ADT)
# =============================================================================

EmucloudEvent = (
    DeviceProvisioned
    | DeviceAllocated
    | DeviceReleased
    | DeviceShuttingDown
    | TeardownCompleted
)

EventCallback = Callable[[EmucloudEvent], None] | None


__all__ = [
    "DeviceProvisioned",
    "DeviceAllocated",
    "DeviceReleased",
    "DeviceShuttingDown",
    "TeardownCompleted",
    "EmucloudEvent",
    "EventCallback",
]
