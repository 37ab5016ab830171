"""Durable, cross-process ledger of claimed cloud instances.

Each scope is a JSON file (``<registry_dir>/<scope>.json``) holding
``{"devices": [entry, ...]}``. Every durable read-modify-write happens under
the scope's RegistryLock and is written atomically (temp file, fsync,
``os.replace``), so a process killed mid-write never leaves a torn ledger.

Two scopes exist:

- ``runtime``: claims held by the processes of the current run. Single
  owner per instance; entries of dead processes are pruned as stale.
- ``global``: every instance this machine launched and has not yet seen
  deleted. Never pruned; swept by the global cleanup.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import ClassVar

from loguru import logger

from emucloud.api.model import RegistryEntry
from emucloud.constants import DEFAULT_REGISTRY_DIR, RegistryScope
from emucloud.core.exceptions import DuplicateClaimError, RegistryError
from emucloud.registry.lockfile import RegistryLock


class DeviceRegistry:
    def __init__(
        self,
        scope: RegistryScope | str,
        directory: Path,
        *,
        exclusive: bool,
        lock_timeout: float = 30.0,
    ) -> None:
        self.scope = RegistryScope(scope)
        self.directory = directory
        self.path = directory / f"{self.scope}.json"
        self.exclusive_claims = exclusive
        self.lock_timeout = lock_timeout
        self._lock = RegistryLock(directory / f"{self.scope}.json.lock", timeout=lock_timeout)
        self._snapshot: tuple[RegistryEntry, ...] = ()
        self._log = logger.bind(component="registry", scope=str(self.scope))

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[None]:
        """Hold the registry lock across a multi-step critical section."""
        async with self._lock.hold():
            yield

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def read_registered_devices(self) -> list[RegistryEntry]:
        async with self._lock.hold():
            return list(await self._load())

    def read_registered_devices_unsafe(self) -> list[RegistryEntry]:
        """Best-effort read that never blocks on the lock and never raises.

        Safe to call from a signal handler: no locking, no event loop. Falls
        back to the last snapshot this process observed when the file is
        unreadable or mid-replace.
        """
        try:
            return list(_parse(self.path.read_bytes()))
        except FileNotFoundError:
            return []
        except (OSError, ValueError, KeyError, TypeError):
            return list(self._snapshot)

    async def includes(self, uuid: str) -> bool:
        return any(entry.uuid == uuid for entry in await self.read_registered_devices())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def register_device(self, entry: RegistryEntry) -> None:
        async with self._lock.hold():
            entries = await self._load()
            kept: list[RegistryEntry] = []
            for existing in entries:
                if existing.uuid != entry.uuid:
                    kept.append(existing)
                    continue
                if self.exclusive_claims and existing.pid != entry.pid and _pid_alive(existing.pid):
                    raise DuplicateClaimError(entry.uuid, existing.pid)
            kept.append(entry)
            await self._store(kept)
        self._log.debug("Registered {uuid} ({name})", uuid=entry.uuid, name=entry.name)

    async def unregister_device(self, uuid: str) -> bool:
        """Drop the entry for *uuid*. Returns whether one was present."""
        async with self._lock.hold():
            entries = await self._load()
            kept = [entry for entry in entries if entry.uuid != uuid]
            if len(kept) == len(entries):
                return False
            await self._store(kept)
        self._log.debug("Unregistered {uuid}", uuid=uuid)
        return True

    async def reset(self) -> None:
        async with self._lock.hold():
            await self._store([])
        self._log.debug("Registry reset")

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    async def _load(self) -> tuple[RegistryEntry, ...]:
        try:
            raw = await asyncio.to_thread(self.path.read_bytes)
        except FileNotFoundError:
            entries: tuple[RegistryEntry, ...] = ()
        except OSError as exc:
            raise RegistryError(f"Failed to read registry file {self.path}: {exc}") from exc
        else:
            try:
                entries = _parse(raw)
            except (ValueError, KeyError, TypeError) as exc:
                raise RegistryError(
                    f"Failed to parse registry file {self.path}: {exc}",
                    hint=f"Inspect or delete {self.path}; leaked instances can be found with `gmsaas instances list`.",
                ) from exc

        if self.exclusive_claims:
            live = tuple(entry for entry in entries if _pid_alive(entry.pid))
            if len(live) != len(entries):
                stale = [entry.uuid for entry in entries if entry not in live]
                self._log.warning("Pruning stale claims from dead processes: {stale}", stale=stale)
                await self._store(live)
                return live

        self._snapshot = entries
        return entries

    async def _store(self, entries: Iterable[RegistryEntry]) -> None:
        entries = tuple(entries)
        await asyncio.to_thread(_write_atomic, self.path, entries)
        self._snapshot = entries


class DeviceRegistryFactory:
    """Process-wide registry instances, one per (scope, directory)."""

    _instances: ClassVar[dict[tuple[RegistryScope, Path], DeviceRegistry]] = {}

    @classmethod
    def for_runtime(
        cls, directory: Path | None = None, *, lock_timeout: float = 30.0,
    ) -> DeviceRegistry:
        return cls._get(RegistryScope.RUNTIME, directory, exclusive=True, lock_timeout=lock_timeout)

    @classmethod
    def for_global_shutdown(
        cls, directory: Path | None = None, *, lock_timeout: float = 30.0,
    ) -> DeviceRegistry:
        return cls._get(RegistryScope.GLOBAL, directory, exclusive=False, lock_timeout=lock_timeout)

    @classmethod
    def _get(
        cls,
        scope: RegistryScope,
        directory: Path | None,
        *,
        exclusive: bool,
        lock_timeout: float,
    ) -> DeviceRegistry:
        root = (directory or DEFAULT_REGISTRY_DIR).expanduser().absolute()
        key = (scope, root)
        registry = cls._instances.get(key)
        if registry is None:
            registry = cls._instances[key] = DeviceRegistry(
                scope, root, exclusive=exclusive, lock_timeout=lock_timeout,
            )
        elif registry.lock_timeout != lock_timeout:
            logger.bind(component="registry", scope=str(scope)).warning(
                "Registry {path} already in use with lock_timeout={current}s; ignoring {requested}s",
                path=registry.path, current=registry.lock_timeout, requested=lock_timeout,
            )
        return registry


def _parse(raw: bytes) -> tuple[RegistryEntry, ...]:
    if not raw.strip():
        return ()
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    devices = data.get("devices", [])
    if not isinstance(devices, list) or not all(isinstance(item, dict) for item in devices):
        raise ValueError("\"devices\" must be a list of objects")
    return tuple(RegistryEntry.from_json(item) for item in devices)


def _write_atomic(path: Path, entries: tuple[RegistryEntry, ...]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"devices": [entry.to_json() for entry in entries]}

    tmp_fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True
