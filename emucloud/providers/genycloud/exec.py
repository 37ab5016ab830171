"""Async wrapper around the ``gmsaas`` executable.

Every call runs ``gmsaas --format compactjson <args>`` as a subprocess and
parses its stdout as JSON. No retries happen here; callers own the policy.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from loguru import logger

from emucloud.core.exceptions import ProvisioningError

log = logger.bind(component="gmsaas")


class GenyCloudExec:
    def __init__(self, binary: str) -> None:
        self.binary = binary

    async def run(self, *args: str) -> dict[str, Any]:
        cmd = f"{self.binary} {' '.join(args)}"
        log.trace("Running {cmd}", cmd=cmd)
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary, "--format", "compactjson", *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise ProvisioningError(
                f"Genymotion-Cloud executable not found: {self.binary}",
                diagnostic=str(exc),
                hint="Install gmsaas (pip install gmsaas) or point GMSAAS_PATH at it.",
            ) from exc

        stdout, stderr = await proc.communicate()
        out = stdout.decode(errors="replace").strip()
        err = stderr.decode(errors="replace").strip()
        if proc.returncode != 0:
            raise ProvisioningError(
                f"{cmd} failed (exit {proc.returncode}): {_error_message(err or out)}",
                diagnostic=err or out,
            )

        try:
            payload = json.loads(out)
        except ValueError as exc:
            raise ProvisioningError(f"{cmd} returned malformed output", diagnostic=out) from exc
        if not isinstance(payload, dict):
            raise ProvisioningError(f"{cmd} returned malformed output", diagnostic=out)
        return payload

    async def get_version(self) -> dict[str, Any]:
        return await self.run("--version")

    async def whoami(self) -> dict[str, Any]:
        return await self.run("auth", "whoami")

    async def get_recipes(self, name: str | None = None) -> dict[str, Any]:
        if name is None:
            return await self.run("recipes", "list")
        return await self.run("recipes", "list", "--name", name)

    async def get_instance(self, uuid: str) -> dict[str, Any]:
        return await self.run("instances", "get", uuid)

    async def get_instances(self) -> dict[str, Any]:
        return await self.run("instances", "list")

    async def start_instance(self, recipe_uuid: str, name: str) -> dict[str, Any]:
        return await self.run(
            "instances", "start", "--stop-when-inactive", "--no-wait", recipe_uuid, name,
        )

    async def adb_connect(self, uuid: str) -> dict[str, Any]:
        return await self.run("instances", "adbconnect", uuid)

    async def stop_instance(self, uuid: str) -> dict[str, Any]:
        return await self.run("instances", "stop", uuid)


def _error_message(raw: str) -> str:
    """Pull the human message out of gmsaas' JSON error payload, if any."""
    try:
        data = json.loads(raw)
    except ValueError:
        return raw
    if not isinstance(data, dict):
        return raw
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return str(data.get("exit_code_desc") or raw)
