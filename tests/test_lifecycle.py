from __future__ import annotations

import stat
from pathlib import Path

import pytest

from emucloud.core.exceptions import ProvisioningError
from emucloud.providers.genycloud.exec import GenyCloudExec
from emucloud.providers.genycloud.lifecycle import InstanceLifecycleClient
from emucloud.providers.genycloud.naming import InstanceNaming
from tests.conftest import PIXEL, FakeGmsaas

pytestmark = [pytest.mark.unit]


def _script(tmp_path: Path, body: str) -> str:
    path = tmp_path / "gmsaas"
    path.write_text(f"#!/bin/sh\n{body}\n")
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return str(path)


@pytest.fixture
def client(gmsaas: FakeGmsaas) -> InstanceLifecycleClient:
    return InstanceLifecycleClient(gmsaas, InstanceNaming("emucloud", "test"))


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_starts_named_instance(self, client, gmsaas: FakeGmsaas) -> None:
        instance = await client.create(PIXEL)

        assert instance.uuid in gmsaas.instances
        assert instance.name.startswith("emucloud-test-")
        assert instance.recipe_uuid == PIXEL.uuid
        assert gmsaas.calls[-1][:4] == ("instances", "start", "--stop-when-inactive", "--no-wait")

    @pytest.mark.asyncio
    async def test_create_failure_carries_diagnostic(self, client, gmsaas: FakeGmsaas) -> None:
        gmsaas.fail_start = "quota exceeded"

        with pytest.raises(ProvisioningError) as exc_info:
            await client.create(PIXEL)

        assert exc_info.value.diagnostic == "quota exceeded"

    @pytest.mark.asyncio
    async def test_create_requires_naming(self, gmsaas: FakeGmsaas) -> None:
        with pytest.raises(ProvisioningError):
            await InstanceLifecycleClient(gmsaas).create(PIXEL)


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_instance(self, client, gmsaas: FakeGmsaas) -> None:
        gmsaas.add_instance("a1", "emucloud-test-1-1")

        await client.delete("a1")

        assert "a1" not in gmsaas.instances

    @pytest.mark.asyncio
    async def test_delete_twice_is_not_fatal(self, client, gmsaas: FakeGmsaas) -> None:
        gmsaas.add_instance("a1", "emucloud-test-1-1")

        await client.delete("a1")
        await client.delete("a1")

        assert gmsaas.count("instances", "stop") == 2

    @pytest.mark.asyncio
    async def test_other_delete_failures_propagate(self, client, gmsaas: FakeGmsaas) -> None:
        gmsaas.add_instance("a1", "emucloud-test-1-1")
        gmsaas.stop_failures["a1"] = "API_ERROR: backend unavailable"

        with pytest.raises(ProvisioningError) as exc_info:
            await client.delete("a1")

        assert "backend unavailable" in exc_info.value.diagnostic


class TestList:
    @pytest.mark.asyncio
    async def test_list_parses_instances(self, client, gmsaas: FakeGmsaas) -> None:
        gmsaas.add_instance("a1", "emucloud-test-1-1", adb_serial="localhost:5555")

        [instance] = await client.list()

        assert instance.uuid == "a1"
        assert instance.adb_name == "localhost:5555"
        assert instance.is_online and instance.is_adb_connected

    @pytest.mark.asyncio
    async def test_malformed_list_raises(self, tmp_path: Path) -> None:
        binary = _script(tmp_path, 'echo \'{"instances": "nope"}\'')
        client = InstanceLifecycleClient(GenyCloudExec(binary))

        with pytest.raises(ProvisioningError):
            await client.list()


class TestExecSubprocess:
    @pytest.mark.asyncio
    async def test_passes_compactjson_format(self, tmp_path: Path) -> None:
        binary = _script(tmp_path, 'printf \'{"args": "%s"}\' "$*"')

        result = await GenyCloudExec(binary).run("instances", "list")

        assert result == {"args": "--format compactjson instances list"}

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises_with_stderr(self, tmp_path: Path) -> None:
        binary = _script(
            tmp_path,
            'echo \'{"exit_code": 4, "error": {"message": "Instance not found"}}\' >&2; exit 4',
        )

        with pytest.raises(ProvisioningError) as exc_info:
            await GenyCloudExec(binary).stop_instance("zz")

        assert "Instance not found" in exc_info.value.message
        assert '"exit_code": 4' in exc_info.value.diagnostic

    @pytest.mark.asyncio
    async def test_absent_instance_delete_through_real_process(self, tmp_path: Path) -> None:
        binary = _script(
            tmp_path,
            'echo \'{"error": {"message": "Instance zz does not exist"}}\' >&2; exit 4',
        )

        await InstanceLifecycleClient(GenyCloudExec(binary)).delete("zz")

    @pytest.mark.asyncio
    async def test_non_json_output_raises(self, tmp_path: Path) -> None:
        binary = _script(tmp_path, "echo hello")

        with pytest.raises(ProvisioningError) as exc_info:
            await GenyCloudExec(binary).get_version()

        assert exc_info.value.diagnostic == "hello"

    @pytest.mark.asyncio
    async def test_missing_binary_raises_with_hint(self, tmp_path: Path) -> None:
        with pytest.raises(ProvisioningError) as exc_info:
            await GenyCloudExec(str(tmp_path / "missing")).get_version()

        assert "GMSAAS_PATH" in (exc_info.value.hint or "")

    @pytest.mark.asyncio
    async def test_undecodable_output_raises_provisioning_error(self, tmp_path: Path) -> None:
        binary = _script(tmp_path, "printf '\\377\\376'")

        with pytest.raises(ProvisioningError) as exc_info:
            await InstanceLifecycleClient(GenyCloudExec(binary)).list()

        assert "\ufffd" in exc_info.value.diagnostic

    @pytest.mark.asyncio
    async def test_undecodable_stderr_on_failure(self, tmp_path: Path) -> None:
        binary = _script(tmp_path, "printf 'quota \\377' >&2; exit 3")

        with pytest.raises(ProvisioningError) as exc_info:
            await GenyCloudExec(binary).get_instances()

        assert exc_info.value.diagnostic.startswith("quota")
