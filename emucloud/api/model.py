from __future__ import annotations

import os
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal

type InstanceState = Literal[
    "CREATING",
    "STARTING",
    "BOOTING",
    "ONLINE",
    "RECYCLING",
    "RECYCLED",
    "STOPPING",
    "DELETED",
    "UNKNOWN",
]

_DISCONNECTED_ADB = ("", "0.0.0.0")


class ClaimState(StrEnum):
    """Where an instance sits in its local lifecycle."""

    UNPROVISIONED = "unprovisioned"
    PROVISIONED = "provisioned"
    CLAIMED = "claimed"
    RELEASED = "released"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class Recipe:
    """Provisionable device image, opaque beyond its identity."""
    uuid: str
    name: str
    android_version: str = ""
    screen: str = ""

    @classmethod
    def from_json(cls, raw: Mapping[str, Any]) -> Recipe:
        return cls(
            uuid=str(raw["uuid"]),
            name=str(raw.get("name", "")),
            android_version=str(raw.get("android_version", "")),
            screen=str(raw.get("screen", "")),
        )


@dataclass(frozen=True, slots=True)
class InstanceHandle:
    uuid: str
    name: str
    adb_name: str = ""
    state: InstanceState = "UNKNOWN"
    recipe_uuid: str = ""
    recipe_name: str = ""

    @property
    def is_online(self) -> bool:
        return self.state == "ONLINE"

    @property
    def is_adb_connected(self) -> bool:
        return self.adb_name not in _DISCONNECTED_ADB

    @classmethod
    def from_json(cls, raw: Mapping[str, Any]) -> InstanceHandle:
        recipe = raw.get("recipe") or {}
        return cls(
            uuid=str(raw["uuid"]),
            name=str(raw.get("name", "")),
            adb_name=str(raw.get("adb_serial") or ""),
            state=raw.get("state", "UNKNOWN"),
            recipe_uuid=str(recipe.get("uuid", "")),
            recipe_name=str(recipe.get("name", "")),
        )


@dataclass(frozen=True, slots=True)
class RegistryEntry:
    """A local process's claim on a remote instance."""
    uuid: str
    name: str = ""
    pid: int = 0
    claimed_at: float = 0.0
    extra: Mapping[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "uuid": self.uuid,
            "name": self.name,
            "pid": self.pid,
            "claimed_at": self.claimed_at,
        }
        if self.extra:
            payload["extra"] = dict(self.extra)
        return payload

    @classmethod
    def for_instance(cls, instance: InstanceHandle, **extra: Any) -> RegistryEntry:
        """Build a claim on *instance* owned by the calling process."""
        return cls(
            uuid=instance.uuid,
            name=instance.name,
            pid=os.getpid(),
            claimed_at=time.time(),
            extra=extra,
        )

    @classmethod
    def from_json(cls, raw: Mapping[str, Any]) -> RegistryEntry:
        return cls(
            uuid=str(raw["uuid"]),
            name=str(raw.get("name", "")),
            pid=int(raw.get("pid", 0)),
            claimed_at=float(raw.get("claimed_at", 0.0)),
            extra=dict(raw.get("extra") or {}),
        )


@dataclass(frozen=True, slots=True)
class DeletionLeak:
    uuid: str
    name: str
    error: str | None = None


@dataclass(frozen=True, slots=True)
class TeardownReport:
    attempted: tuple[str, ...] = ()
    leaks: tuple[DeletionLeak, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.leaks


@dataclass(frozen=True, slots=True)
class DeviceId:
    """What a caller holds while using an acquired device."""
    uuid: str
    name: str
    adb_name: str

    @classmethod
    def create(cls, instance: InstanceHandle) -> DeviceId:
        return cls(uuid=instance.uuid, name=instance.name, adb_name=instance.adb_name)
