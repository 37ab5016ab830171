"""Cross-process exclusive lock for registry files.

Combines an ``asyncio.Lock`` (serializes tasks inside this process) with a
POSIX ``fcntl.flock`` on a sibling ``.lock`` file (serializes processes on
the same machine). The kernel releases the flock when its owner dies, so a
crashed worker never wedges the registry.

The lock is reentrant for the task that holds it: registry mutators called
inside an ``exclusive()`` block reuse the held lock instead of deadlocking.

Limitations:
- POSIX-only
- the lock directory must live on a local filesystem (not NFS)
"""

from __future__ import annotations

import asyncio
import fcntl
import json
import os
import time
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from loguru import logger

from emucloud.core.exceptions import RegistryError, RegistryLockTimeout

log = logger.bind(component="lockfile")

DEFAULT_POLL_INTERVAL = 0.05


class RegistryLock:
    def __init__(
        self,
        path: Path,
        *,
        timeout: float = 30.0,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.path = path
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._mutexes: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock] = (
            weakref.WeakKeyDictionary()
        )
        self._owner: asyncio.Task | None = None
        self._fd: int | None = None

    def _mutex(self) -> asyncio.Lock:
        # One per loop: an asyncio.Lock binds to the loop that first contends it.
        loop = asyncio.get_running_loop()
        if loop not in self._mutexes:
            self._mutexes[loop] = asyncio.Lock()
        return self._mutexes[loop]

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        task = asyncio.current_task()
        if task is not None and self._owner is task:
            yield
            return

        async with self._mutex():
            started = time.monotonic()
            await self._acquire_file()
            self._owner = task
            log.trace(
                "Acquired {path} in {ms:.1f}ms",
                path=self.path, ms=(time.monotonic() - started) * 1000,
            )
            try:
                yield
            finally:
                self._owner = None
                self._release_file()

    async def _acquire_file(self) -> None:
        await asyncio.to_thread(self.path.parent.mkdir, parents=True, exist_ok=True)
        try:
            fd = await asyncio.to_thread(os.open, self.path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as exc:
            raise RegistryError(f"Cannot open registry lock {self.path}: {exc}") from exc

        deadline = time.monotonic() + self.timeout
        try:
            while not await asyncio.to_thread(_try_flock, fd):
                if time.monotonic() >= deadline:
                    log.warning(
                        "Timeout acquiring {path} after {timeout}s (holder: {holder})",
                        path=self.path, timeout=self.timeout, holder=_read_holder(self.path),
                    )
                    raise RegistryLockTimeout(str(self.path), self.timeout)
                await asyncio.sleep(self.poll_interval)
            await asyncio.to_thread(_write_metadata, fd, self.path)
        except BaseException:
            # Closing the descriptor drops the flock as well.
            os.close(fd)
            raise

        self._fd = fd

    def _release_file(self) -> None:
        fd, self._fd = self._fd, None
        if fd is None:
            return
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)


def _try_flock(fd: int) -> bool:
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        return False
    return True


def _write_metadata(fd: int, path: Path) -> None:
    payload = json.dumps({"pid": os.getpid(), "path": str(path), "acquired_at": time.time()})
    os.ftruncate(fd, 0)
    os.lseek(fd, 0, os.SEEK_SET)
    os.write(fd, payload.encode())


def _read_holder(path: Path) -> str:
    try:
        return str(json.loads(path.read_text(encoding="utf-8")).get("pid", "unknown"))
    except (OSError, ValueError, AttributeError):
        return "unknown"
