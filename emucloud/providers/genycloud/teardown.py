"""Leak-safe teardown of Genymotion-Cloud instances.

Two entry points with different blocking rules:

- ``global_cleanup()`` is the graceful end-of-run sweep. It reads the
  global-shutdown registry, fires a delete for every entry at once, and
  collects each failure as a DeletionLeak instead of aborting.
- The signal hook installed by ``global_init()`` runs while the
  interpreter is being torn down by SIGINT/SIGTERM/SIGHUP. It must not
  touch the event loop or take locks, so it only reads the registry file
  (``read_registered_devices_unsafe``) and reports what would leak.

Both paths report leaks twice: loguru lines tagged ``GENYCLOUD_TEARDOWN``
and a LeakWarning carrying the same remediation text.
"""

from __future__ import annotations

import asyncio
import os
import signal
import warnings
from collections.abc import Sequence
from types import FrameType
from typing import Any

from loguru import logger

from emucloud.api.model import DeletionLeak, RegistryEntry, TeardownReport
from emucloud.bus import EventBus
from emucloud.constants import GENYCLOUD_INSTANCE_URL, TEARDOWN_EVENT
from emucloud.core.exceptions import LeakWarning
from emucloud.events import TeardownCompleted
from emucloud.providers.genycloud.config import GenyCloud
from emucloud.providers.genycloud.exec import GenyCloudExec
from emucloud.providers.genycloud.lifecycle import InstanceLifecycleClient
from emucloud.registry import DeviceRegistry, DeviceRegistryFactory

log = logger.bind(component="teardown", event=TEARDOWN_EVENT)

_HOOKED_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGHUP") if hasattr(signal, name)
)

_previous_handlers: dict[int, Any] = {}
_hooked_registry: DeviceRegistry | None = None
_signal_reported = False


async def global_init(config: GenyCloud) -> None:
    """Start-of-run setup: clear stale runtime claims, arm the signal hook."""
    runtime_registry = DeviceRegistryFactory.for_runtime(
        config.registry_dir, lock_timeout=config.lock_timeout,
    )
    await runtime_registry.reset()
    install_signal_hooks(
        DeviceRegistryFactory.for_global_shutdown(
            config.registry_dir, lock_timeout=config.lock_timeout,
        ),
    )


async def global_cleanup(
    config: GenyCloud,
    *,
    lifecycle: InstanceLifecycleClient | None = None,
    events: EventBus | None = None,
) -> TeardownReport:
    """End-of-run sweep of every instance still in the global registry."""
    cleanup_registry = DeviceRegistryFactory.for_global_shutdown(
        config.registry_dir, lock_timeout=config.lock_timeout,
    )
    runtime_registry = DeviceRegistryFactory.for_runtime(
        config.registry_dir, lock_timeout=config.lock_timeout,
    )

    entries = await cleanup_registry.read_registered_devices()
    leaks: list[DeletionLeak] = []
    if entries:
        lifecycle = lifecycle or InstanceLifecycleClient(GenyCloudExec(config.gmsaas_path))
        leaks = await do_safe_cleanup(lifecycle, entries)
        leaked = {leak.uuid for leak in leaks}
        for entry in entries:
            if entry.uuid not in leaked:
                await cleanup_registry.unregister_device(entry.uuid)

    await runtime_registry.reset()

    report = TeardownReport(attempted=tuple(e.uuid for e in entries), leaks=tuple(leaks))
    report_cleanup_summary(report.leaks)
    if report.leaks:
        warnings.warn(LeakWarning(format_leak_summary(report.leaks)), stacklevel=2)
    if events is not None:
        events.emit(TeardownCompleted(attempted=len(report.attempted), leaks=report.leaks))
    return report


async def do_safe_cleanup(
    lifecycle: InstanceLifecycleClient,
    entries: Sequence[RegistryEntry],
) -> list[DeletionLeak]:
    """Delete all *entries* concurrently; return the ones that failed."""
    log.info("Initiating Genymotion cloud instances teardown...")

    async def _delete(entry: RegistryEntry) -> DeletionLeak | None:
        try:
            await lifecycle.delete(entry.uuid)
        except Exception as exc:
            log.debug("Failed to delete {uuid}: {error}", uuid=entry.uuid, error=exc)
            return DeletionLeak(uuid=entry.uuid, name=entry.name, error=str(exc))
        return None

    results = await asyncio.gather(*(_delete(entry) for entry in entries))
    return [leak for leak in results if leak is not None]


_LEAK_HEADER = "WARNING! Detected a Genymotion cloud instance leakage, for the following instances:"


def format_leak_summary(leaks: Sequence[DeletionLeak]) -> str:
    """Leak report with the remediation URL and command for every instance."""
    return "\n".join([_LEAK_HEADER, *(_describe_leak(leak) for leak in leaks)])


def report_cleanup_summary(leaks: Sequence[DeletionLeak]) -> None:
    if not leaks:
        log.info("Instances teardown completed successfully")
        return

    log.warning(_LEAK_HEADER)
    for leak in leaks:
        log.warning(_describe_leak(leak))
    log.info("Instances teardown completed with warnings")


def _describe_leak(leak: DeletionLeak) -> str:
    detail = f": {leak.error}" if leak.error else ""
    return "\n".join([
        f"Instance {leak.name} ({leak.uuid}){detail}",
        f"    Kill it by visiting {GENYCLOUD_INSTANCE_URL.format(uuid=leak.uuid)}, or by running:",
        f"    gmsaas instances stop {leak.uuid}",
    ])


# =============================================================================
# Signal hooks
# =============================================================================


def install_signal_hooks(registry: DeviceRegistry) -> bool:
    """Arm the leak report for signal-driven exits. Idempotent per process.

    Returns False when the hooks were already installed or when called off
    the main thread (where Python refuses to install signal handlers).
    """
    global _hooked_registry
    if _hooked_registry is not None:
        if _hooked_registry.path != registry.path:
            log.warning(
                "Signal hooks already watch {current}; ignoring {requested}",
                current=_hooked_registry.path, requested=registry.path,
            )
        return False
    try:
        for signum in _HOOKED_SIGNALS:
            _previous_handlers[signum] = signal.getsignal(signum)
            signal.signal(signum, _on_signal)
    except ValueError:
        # The first signal.signal() call is the one that raises, so nothing is installed yet.
        log.warning("Signal hooks not installed: not running on the main thread")
        _previous_handlers.clear()
        return False
    _hooked_registry = registry
    return True


def uninstall_signal_hooks() -> None:
    global _hooked_registry, _signal_reported
    if _hooked_registry is None:
        return
    _restore_previous_handlers()
    _hooked_registry = None
    _signal_reported = False


def _restore_previous_handlers() -> None:
    for signum, previous in _previous_handlers.items():
        signal.signal(signum, previous if previous is not None else signal.SIG_DFL)
    _previous_handlers.clear()


def _on_signal(signum: int, frame: FrameType | None) -> None:
    try:
        _report_pending_leaks()
    finally:
        _chain(signum, frame)


def _report_pending_leaks() -> None:
    global _signal_reported
    registry = _hooked_registry
    if registry is None or _signal_reported:
        return
    _signal_reported = True
    entries = registry.read_registered_devices_unsafe()
    if not entries:
        return
    leaks = [DeletionLeak(uuid=e.uuid, name=e.name) for e in entries]
    report_cleanup_summary(leaks)
    # Visible even while the library logger is disabled.
    warnings.warn(LeakWarning(format_leak_summary(leaks)), stacklevel=2)


def _chain(signum: int, frame: FrameType | None) -> None:
    previous = _previous_handlers.get(signum, signal.SIG_DFL)
    if callable(previous):
        previous(signum, frame)
    elif previous in (signal.SIG_DFL, None):
        signal.signal(signum, signal.SIG_DFL)
        os.kill(os.getpid(), signum)
