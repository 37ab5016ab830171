from pathlib import Path

import pytest

from emucloud.config import _deep_merge, load_config, resolve_driver_config
from emucloud.core.exceptions import ConfigurationError
from emucloud.providers.genycloud.config import MIN_GMSAAS_VERSION, GenyCloud

pytestmark = [pytest.mark.unit]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("GMSAAS_PATH", raising=False)
    monkeypatch.delenv("EMUCLOUD_SESSION_ID", raising=False)


class TestDeepMerge:
    def test_shallow_override(self):
        assert _deep_merge({"a": 1, "b": 2}, {"b": 3}) == {"a": 1, "b": 3}

    def test_nested_merge(self):
        base = {"genycloud": {"gmsaas_path": "/usr/bin/gmsaas", "boot_timeout": 120}}
        override = {"genycloud": {"boot_timeout": 600}}
        result = _deep_merge(base, override)
        assert result == {"genycloud": {"gmsaas_path": "/usr/bin/gmsaas", "boot_timeout": 600}}

    def test_empty_sides(self):
        assert _deep_merge({}, {"a": 1}) == {"a": 1}
        assert _deep_merge({"a": 1}, {}) == {"a": 1}


class TestLoadConfig:
    def test_no_files_selects_default_driver(self, tmp_path: Path):
        result = load_config(project_dir=tmp_path / "nope", global_path=tmp_path / "nope.toml")
        assert result == {"driver": "genycloud"}

    def test_project_overrides_global(self, tmp_path: Path):
        global_toml = tmp_path / "defaults.toml"
        global_toml.write_text('[genycloud]\ninstance_prefix = "ci"\nboot_timeout = 120\n')
        project_dir = tmp_path / "project"
        project_dir.mkdir()
        (project_dir / "emucloud.toml").write_text("[genycloud]\nboot_timeout = 600\n")

        result = load_config(project_dir=project_dir, global_path=global_toml)

        assert result["genycloud"] == {"instance_prefix": "ci", "boot_timeout": 600}

    def test_invalid_toml_raises(self, tmp_path: Path):
        (tmp_path / "emucloud.toml").write_text("[genycloud\n")

        with pytest.raises(ConfigurationError):
            load_config(project_dir=tmp_path, global_path=tmp_path / "nope.toml")


class TestResolveDriverConfig:
    def test_defaults(self, tmp_path: Path):
        config = resolve_driver_config(project_dir=tmp_path, global_path=tmp_path / "nope.toml")

        assert isinstance(config, GenyCloud)
        assert config.gmsaas_path == "gmsaas"
        assert config.min_version == MIN_GMSAAS_VERSION
        assert config.session_id

    def test_section_values(self, tmp_path: Path):
        (tmp_path / "emucloud.toml").write_text(
            'driver = "genycloud"\n'
            "\n"
            "[genycloud]\n"
            'gmsaas_path = "/opt/gmsaas/bin/gmsaas"\n'
            'registry_dir = "~/registry"\n'
            'session_id = "build-42"\n'
            "lock_timeout = 5.0\n"
        )

        config = resolve_driver_config(project_dir=tmp_path, global_path=tmp_path / "nope.toml")

        assert config.gmsaas_path == "/opt/gmsaas/bin/gmsaas"
        assert config.registry_dir == Path("~/registry").expanduser()
        assert config.session_id == "build-42"
        assert config.lock_timeout == 5.0

    def test_environment_wins_over_files(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        (tmp_path / "emucloud.toml").write_text('[genycloud]\ngmsaas_path = "/from/file"\n')
        monkeypatch.setenv("GMSAAS_PATH", "/from/env")
        monkeypatch.setenv("EMUCLOUD_SESSION_ID", "env-session")

        config = resolve_driver_config(project_dir=tmp_path, global_path=tmp_path / "nope.toml")

        assert config.gmsaas_path == "/from/env"
        assert config.session_id == "env-session"

    def test_unknown_driver_raises(self, tmp_path: Path):
        (tmp_path / "emucloud.toml").write_text('driver = "firebase"\n')

        with pytest.raises(ConfigurationError, match="firebase"):
            resolve_driver_config(project_dir=tmp_path, global_path=tmp_path / "nope.toml")

    def test_unknown_option_raises(self, tmp_path: Path):
        (tmp_path / "emucloud.toml").write_text("[genycloud]\nwarp_speed = 9\n")

        with pytest.raises(ConfigurationError, match="genycloud"):
            resolve_driver_config(project_dir=tmp_path, global_path=tmp_path / "nope.toml")
