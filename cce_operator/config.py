"""TOML-based operator configuration.

Loads ~/.cce-operator/defaults.toml (global) and cce-operator.toml (project),
merges them, applies ``CCE_OPERATOR_*`` environment overrides and finally the
explicit overrides passed by the CLI.

Example cce-operator.toml:

    [operator]
    namespace = "cattle-global-data"
    workers = 8

    [huawei]
    endpoint_template = "https://{service}.{region}.myhuaweicloud.com"

    [network]
    vpc_cidr = "10.224.0.0/16"

    [logging]
    level = "DEBUG"
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, TypeVar

from cce_operator.exceptions import ConfigurationError
from cce_operator.huawei.common import DEFAULT_ENDPOINT_TEMPLATE
from cce_operator.huawei.network import (
    DEFAULT_CONTAINER_NETWORK_CIDR,
    DEFAULT_CONTAINER_NETWORK_MODE,
    DEFAULT_SUBNET_CIDR,
    DEFAULT_SUBNET_GATEWAY,
    DEFAULT_VPC_CIDR,
)
from cce_operator.logging import LogConfig

RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".cce-operator" / "defaults.toml"
PROJECT_CONFIG_NAME = "cce-operator.toml"
ENV_PREFIX = "CCE_OPERATOR_"


@dataclass(frozen=True, slots=True)
class NetworkDefaults:
    vpc_cidr: str = DEFAULT_VPC_CIDR
    subnet_cidr: str = DEFAULT_SUBNET_CIDR
    subnet_gateway: str = DEFAULT_SUBNET_GATEWAY
    container_network_mode: str = DEFAULT_CONTAINER_NETWORK_MODE
    container_network_cidr: str = DEFAULT_CONTAINER_NETWORK_CIDR


@dataclass(frozen=True, slots=True)
class OperatorConfig:
    kubeconfig: str = ""
    master: str = ""
    namespace: str = ""
    workers: int = 4
    endpoint_template: str = DEFAULT_ENDPOINT_TEMPLATE
    request_timeout: float = 30.0
    network: NetworkDefaults = field(default_factory=NetworkDefaults)
    log: LogConfig = field(default_factory=LogConfig)


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"invalid TOML in {path}: {e}") from e


def _env_overrides(environ: dict[str, str]) -> RawConfig:
    operator_keys = {"kubeconfig", "master", "namespace", "workers"}
    huawei_keys = {"endpoint_template", "request_timeout"}
    raw: RawConfig = {}
    for name, value in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        key = name.removeprefix(ENV_PREFIX).lower()
        if key in operator_keys:
            raw.setdefault("operator", {})[key] = value
        elif key in huawei_keys:
            raw.setdefault("huawei", {})[key] = value
        elif key == "log_level":
            raw.setdefault("logging", {})["level"] = value.upper()
    return raw


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    environ: dict[str, str] | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_cfg = _read_toml((project_dir or Path.cwd()) / PROJECT_CONFIG_NAME)

    merged = _deep_merge(global_cfg, project_cfg)
    merged = _deep_merge(merged, _env_overrides(dict(os.environ) if environ is None else environ))
    for section in ("operator", "huawei", "network", "logging"):
        merged.setdefault(section, {})
    return merged


T = TypeVar("T")


def _build(cls: type[T], raw: RawConfig, section: str) -> T:
    known = {f.name: f for f in fields(cls)}  # type: ignore[arg-type]
    unknown = set(raw) - set(known)
    if unknown:
        raise ConfigurationError(f"unknown keys in [{section}]: {', '.join(sorted(unknown))}")
    return cls(**raw)


def resolve_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    environ: dict[str, str] | None = None,
    **overrides: Any,
) -> OperatorConfig:
    """Build the effective OperatorConfig. ``None`` overrides are ignored."""
    raw = load_config(project_dir=project_dir, global_path=global_path, environ=environ)

    operator: RawConfig = dict(raw["operator"])
    operator |= {k: v for k, v in overrides.items() if v is not None and k != "log_level"}
    huawei: RawConfig = dict(raw["huawei"])
    logging: RawConfig = dict(raw["logging"])
    if overrides.get("log_level"):
        logging["level"] = overrides["log_level"]

    try:
        workers = int(operator.pop("workers", 4))
        request_timeout = float(huawei.pop("request_timeout", 30.0))
    except ValueError as e:
        raise ConfigurationError(f"invalid numeric setting: {e}") from e
    if workers < 1:
        raise ConfigurationError("workers must be at least 1")

    return OperatorConfig(
        **{k: str(v) for k, v in operator.items() if k in ("kubeconfig", "master", "namespace")},
        workers=workers,
        endpoint_template=str(huawei.pop("endpoint_template", DEFAULT_ENDPOINT_TEMPLATE)),
        request_timeout=request_timeout,
        network=_build(NetworkDefaults, raw["network"], "network"),
        log=_build(LogConfig, logging, "logging"),
    )
