from __future__ import annotations

from pathlib import Path

import pytest

from cce_operator import __version__
from cce_operator.cli import build_parser, cli, load, main
from cce_operator.exceptions import ConfigurationError
from cce_operator.store.kube import KubernetesStore

pytestmark = [pytest.mark.unit]


@pytest.fixture
def bad_config_dir(tmp_path: Path) -> Path:
    (tmp_path / "cce-operator.toml").write_text("[operator]\nworkers = 0\n")
    return tmp_path


class TestParser:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("KUBECONFIG", raising=False)
        args = build_parser().parse_args([])
        assert args.kubeconfig is None
        assert args.namespace is None
        assert args.workers is None
        assert not args.debug

    def test_kubeconfig_from_environment(self, monkeypatch):
        monkeypatch.setenv("KUBECONFIG", "/etc/kube/config")
        assert build_parser().parse_args([]).kubeconfig == "/etc/kube/config"

    def test_flags(self, tmp_path: Path):
        args = build_parser().parse_args([
            "--kubeconfig", "kc", "--master", "https://k8s:6443",
            "--namespace", "ns", "--workers", "3", "--config-dir", str(tmp_path), "--debug",
        ])
        config = load(args)
        assert config.kubeconfig == "kc"
        assert config.master == "https://k8s:6443"
        assert config.namespace == "ns"
        assert config.workers == 3
        assert config.log.level == "DEBUG"

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--version"])
        assert __version__ in capsys.readouterr().out


class TestMain:
    @pytest.mark.asyncio
    async def test_invalid_config_exits_1(self, bad_config_dir: Path):
        args = build_parser().parse_args(["--config-dir", str(bad_config_dir)])
        assert await main(args) == 1

    @pytest.mark.asyncio
    async def test_unreachable_cluster_exits_1(self, tmp_path: Path, monkeypatch):
        def fail(*_args, **_kwargs):
            raise ConfigurationError("no kubeconfig found")

        monkeypatch.setattr(KubernetesStore, "from_kubeconfig", staticmethod(fail))
        args = build_parser().parse_args(["--config-dir", str(tmp_path)])

        assert await main(args) == 1

    def test_cli_exit_code(self, bad_config_dir: Path):
        with pytest.raises(SystemExit) as exc_info:
            cli(["--config-dir", str(bad_config_dir)])
        assert exc_info.value.code == 1
