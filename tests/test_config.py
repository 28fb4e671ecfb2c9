from pathlib import Path

import pytest

from cce_operator.config import (
    NetworkDefaults,
    OperatorConfig,
    _deep_merge,
    _env_overrides,
    load_config,
    resolve_config,
)
from cce_operator.exceptions import ConfigurationError
from cce_operator.huawei.common import DEFAULT_ENDPOINT_TEMPLATE
from cce_operator.logging import LogConfig

pytestmark = [pytest.mark.unit]


def resolve(tmp_path: Path, project: str = "", environ: dict[str, str] | None = None, **overrides):
    if project:
        (tmp_path / "cce-operator.toml").write_text(project)
    return resolve_config(
        project_dir=tmp_path,
        global_path=tmp_path / "missing.toml",
        environ=environ or {},
        **overrides,
    )


class TestDeepMerge:
    def test_shallow_override(self):
        assert _deep_merge({"a": 1, "b": 2}, {"b": 3}) == {"a": 1, "b": 3}

    def test_nested_merge(self):
        base = {"operator": {"namespace": "a", "workers": 2}}
        override = {"operator": {"namespace": "b"}}
        assert _deep_merge(base, override) == {"operator": {"namespace": "b", "workers": 2}}

    def test_empty_sides(self):
        assert _deep_merge({}, {"a": 1}) == {"a": 1}
        assert _deep_merge({"a": 1}, {}) == {"a": 1}


class TestLoadConfig:
    def test_project_overrides_global(self, tmp_path: Path):
        global_toml = tmp_path / "defaults.toml"
        global_toml.write_text('[operator]\nworkers = 2\nnamespace = "global"\n')
        project = tmp_path / "project"
        project.mkdir()
        (project / "cce-operator.toml").write_text("[operator]\nworkers = 8\n")

        result = load_config(project_dir=project, global_path=global_toml, environ={})

        assert result["operator"] == {"workers": 8, "namespace": "global"}

    def test_no_files_returns_empty_sections(self, tmp_path: Path):
        result = load_config(project_dir=tmp_path / "nope", global_path=tmp_path / "nope.toml", environ={})
        assert result == {"operator": {}, "huawei": {}, "network": {}, "logging": {}}

    def test_invalid_toml(self, tmp_path: Path):
        (tmp_path / "cce-operator.toml").write_text("[operator\n")
        with pytest.raises(ConfigurationError, match="invalid TOML"):
            load_config(project_dir=tmp_path, global_path=tmp_path / "nope.toml", environ={})

    def test_environment_wins_over_files(self, tmp_path: Path):
        (tmp_path / "cce-operator.toml").write_text("[operator]\nworkers = 8\n")
        result = load_config(
            project_dir=tmp_path,
            global_path=tmp_path / "nope.toml",
            environ={"CCE_OPERATOR_WORKERS": "3"},
        )
        assert result["operator"]["workers"] == "3"


class TestEnvOverrides:
    def test_sections(self):
        raw = _env_overrides({
            "CCE_OPERATOR_NAMESPACE": "ns",
            "CCE_OPERATOR_REQUEST_TIMEOUT": "5",
            "CCE_OPERATOR_LOG_LEVEL": "debug",
            "CCE_OPERATOR_UNKNOWN": "x",
            "HOME": "/root",
        })
        assert raw == {
            "operator": {"namespace": "ns"},
            "huawei": {"request_timeout": "5"},
            "logging": {"level": "DEBUG"},
        }


class TestResolveConfig:
    def test_defaults(self, tmp_path: Path):
        config = resolve(tmp_path)
        assert config == OperatorConfig()
        assert config.endpoint_template == DEFAULT_ENDPOINT_TEMPLATE
        assert config.network == NetworkDefaults()
        assert config.network.vpc_cidr == "10.224.0.0/16"
        assert config.log == LogConfig()

    def test_full_file(self, tmp_path: Path):
        config = resolve(
            tmp_path,
            '[operator]\nnamespace = "cattle-global-data"\nworkers = 8\n'
            '[huawei]\nendpoint_template = "http://{service}.local"\nrequest_timeout = 10\n'
            '[network]\nvpc_cidr = "10.0.0.0/16"\ncontainer_network_mode = "vpc-router"\n'
            '[logging]\nlevel = "DEBUG"\nfile = "operator.log"\n',
        )
        assert config.namespace == "cattle-global-data"
        assert config.workers == 8
        assert config.endpoint_template == "http://{service}.local"
        assert config.request_timeout == 10.0
        assert config.network.vpc_cidr == "10.0.0.0/16"
        assert config.network.container_network_mode == "vpc-router"
        assert config.log.level == "DEBUG"
        assert config.log.file == "operator.log"

    def test_cli_overrides(self, tmp_path: Path):
        config = resolve(
            tmp_path,
            '[operator]\nworkers = 8\nnamespace = "file"\n',
            namespace="cli", workers=2, master=None, log_level="DEBUG",
        )
        assert config.namespace == "cli"
        assert config.workers == 2
        assert config.master == ""
        assert config.log.level == "DEBUG"

    def test_env_numbers_are_parsed(self, tmp_path: Path):
        config = resolve(tmp_path, environ={"CCE_OPERATOR_WORKERS": "6", "CCE_OPERATOR_REQUEST_TIMEOUT": "2.5"})
        assert config.workers == 6
        assert config.request_timeout == 2.5

    def test_invalid_number(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="invalid numeric setting"):
            resolve(tmp_path, environ={"CCE_OPERATOR_WORKERS": "many"})

    def test_workers_must_be_positive(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="workers"):
            resolve(tmp_path, workers=0)

    @pytest.mark.parametrize(
        ("section", "key"),
        [("network", "vpc_size"), ("logging", "colour")],
    )
    def test_unknown_keys(self, tmp_path: Path, section: str, key: str):
        with pytest.raises(ConfigurationError, match=f"unknown keys in \\[{section}\\]: {key}"):
            resolve(tmp_path, f'[{section}]\n{key} = "x"\n')
