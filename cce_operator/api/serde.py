"""Conversion between record dataclasses and Kubernetes-style JSON dicts."""

from __future__ import annotations

import dataclasses
import functools
import types
from enum import Enum
from typing import Any, TypeVar, Union, get_args, get_origin, get_type_hints

from .types import API_VERSION, KIND, ClusterConfig, ObjectMeta


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _key(f: dataclasses.Field[Any]) -> str:
    return f.metadata.get("json") or _camel(f.name)


@functools.cache
def _hints(cls: type) -> dict[str, Any]:
    return get_type_hints(cls)


def to_dict(obj: Any) -> Any:
    """Encode a record value. Empty optional values are kept so patches stay explicit."""
    match obj:
        case Enum():
            return obj.value
        case _ if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            return {_key(f): to_dict(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
        case tuple() | list():
            return [to_dict(v) for v in obj]
        case dict():
            return {k: to_dict(v) for k, v in obj.items()}
        case _:
            return obj


T = TypeVar("T")


def from_dict(cls: type[T], data: Any) -> T:
    """Decode ``data`` into ``cls``, ignoring unknown keys and filling defaults."""
    return _decode(cls, data)


def _decode(tp: Any, data: Any) -> Any:
    origin = get_origin(tp)

    if origin in (Union, types.UnionType):
        if data is None:
            return None
        inner = [a for a in get_args(tp) if a is not type(None)]
        return _decode(inner[0], data)

    if origin is tuple:
        item_type = get_args(tp)[0]
        return tuple(_decode(item_type, v) for v in data or ())

    if origin is dict:
        _, value_type = get_args(tp)
        return {k: _decode(value_type, v) for k, v in (data or {}).items()}

    if isinstance(tp, type) and issubclass(tp, Enum):
        return tp(data or "")

    if dataclasses.is_dataclass(tp):
        if not isinstance(data, dict):
            data = {}
        hints = _hints(tp)
        kwargs = {
            f.name: _decode(hints[f.name], data[_key(f)])
            for f in dataclasses.fields(tp)
            if _key(f) in data and data[_key(f)] is not None
        }
        return tp(**kwargs)

    if tp is int:
        return int(data or 0)
    if tp is bool:
        return bool(data)
    if tp is str:
        return "" if data is None else str(data)
    return data


# =============================================================================
# Whole records
# =============================================================================


def config_to_dict(config: ClusterConfig) -> dict[str, Any]:
    meta = to_dict(config.metadata)
    meta = {k: v for k, v in meta.items() if v not in (None, "", [], {}, 0)}
    return {
        "apiVersion": API_VERSION,
        "kind": KIND,
        "metadata": meta,
        "spec": to_dict(config.spec),
        "status": to_dict(config.status),
    }


def config_from_dict(data: dict[str, Any]) -> ClusterConfig:
    hints = _hints(ClusterConfig)
    return ClusterConfig(
        metadata=from_dict(ObjectMeta, data.get("metadata") or {}),
        spec=from_dict(hints["spec"], data.get("spec") or {}),
        status=from_dict(hints["status"], data.get("status") or {}),
    )
