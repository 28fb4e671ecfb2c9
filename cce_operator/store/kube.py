"""Kubernetes-backed record and secret store.

Wraps the synchronous ``kubernetes`` client with ``asyncio.to_thread`` and runs
the watch stream on a daemon thread that feeds the event loop.
"""

from __future__ import annotations

import asyncio
import base64
import threading
from collections.abc import AsyncIterator, Callable
from typing import Any, TypeVar

from kubernetes import client, config, watch
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException
from loguru import logger

from cce_operator.api.serde import config_from_dict, config_to_dict
from cce_operator.api.types import GROUP, PLURAL, VERSION, ClusterConfig, OwnerReference
from cce_operator.exceptions import ConfigurationError, ConflictError, NotFoundError, StoreError

WATCH_TIMEOUT_SECONDS = 300

log = logger.bind(component="kube")

T = TypeVar("T")


def load_api_client(kubeconfig: str = "", master: str = "") -> client.ApiClient:
    """Client configuration from a kubeconfig file, falling back to in-cluster config."""
    cfg = client.Configuration()
    try:
        config.load_kube_config(config_file=kubeconfig or None, client_configuration=cfg)
    except (ConfigException, FileNotFoundError) as e:
        if kubeconfig:
            raise ConfigurationError(f"failed to load kubeconfig {kubeconfig}: {e}") from e
        try:
            config.load_incluster_config(client_configuration=cfg)
        except ConfigException as exc:
            raise ConfigurationError(f"no kubeconfig and not running in a cluster: {exc}") from exc
    if master:
        cfg.host = master
    return client.ApiClient(cfg)


def _translate(e: ApiException, kind: str, key: str) -> StoreError:
    match e.status:
        case 404:
            return NotFoundError(kind, key)
        case 409:
            return ConflictError(key, e.reason or "")
        case _:
            return StoreError(f"{kind} {key}: {e.status} {e.reason}")


class KubernetesStore:
    """CCEClusterConfig records and secrets stored in a Kubernetes cluster.

    Example:
        store = KubernetesStore.from_kubeconfig("~/.kube/config")
        config = await store.get("cattle-global-data", "c-abc12")
    """

    def __init__(self, api_client: client.ApiClient, namespace: str = "") -> None:
        self._api_client = api_client
        self._custom = client.CustomObjectsApi(api_client)
        self._core = client.CoreV1Api(api_client)
        self._namespace = namespace

    @classmethod
    def from_kubeconfig(cls, kubeconfig: str = "", master: str = "", namespace: str = "") -> KubernetesStore:
        return cls(load_api_client(kubeconfig, master), namespace)

    async def _call(self, kind: str, key: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except ApiException as e:
            raise _translate(e, kind, key) from e

    # =========================================================================
    # Records
    # =========================================================================

    async def get(self, namespace: str, name: str) -> ClusterConfig:
        raw = await self._call(
            "cceclusterconfig", f"{namespace}/{name}",
            self._custom.get_namespaced_custom_object, GROUP, VERSION, namespace, PLURAL, name,
        )
        return config_from_dict(raw)

    async def list(self, namespace: str = "") -> list[ClusterConfig]:
        namespace = namespace or self._namespace
        if namespace:
            raw = await self._call(
                "cceclusterconfig", namespace,
                self._custom.list_namespaced_custom_object, GROUP, VERSION, namespace, PLURAL,
            )
        else:
            raw = await self._call(
                "cceclusterconfig", "*",
                self._custom.list_cluster_custom_object, GROUP, VERSION, PLURAL,
            )
        return [config_from_dict(item) for item in raw.get("items", [])]

    async def update(self, config: ClusterConfig) -> ClusterConfig:
        raw = await self._call(
            "cceclusterconfig", config.key,
            self._custom.replace_namespaced_custom_object,
            GROUP, VERSION, config.namespace, PLURAL, config.name, config_to_dict(config),
        )
        return config_from_dict(raw)

    async def update_status(self, config: ClusterConfig) -> ClusterConfig:
        raw = await self._call(
            "cceclusterconfig", config.key,
            self._custom.replace_namespaced_custom_object_status,
            GROUP, VERSION, config.namespace, PLURAL, config.name, config_to_dict(config),
        )
        return config_from_dict(raw)

    async def watch(self) -> AsyncIterator[str]:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[str] = asyncio.Queue()
        stop = threading.Event()
        thread = threading.Thread(
            target=self._watch_loop,
            args=(loop, queue, stop),
            name="cce-operator-watch",
            daemon=True,
        )
        thread.start()
        try:
            while True:
                yield await queue.get()
        finally:
            stop.set()

    def _watch_loop(
        self,
        loop: asyncio.AbstractEventLoop,
        queue: asyncio.Queue[str],
        stop: threading.Event,
    ) -> None:
        if self._namespace:
            list_fn: Callable[..., Any] = self._custom.list_namespaced_custom_object
            args: tuple[Any, ...] = (GROUP, VERSION, self._namespace, PLURAL)
        else:
            list_fn = self._custom.list_cluster_custom_object
            args = (GROUP, VERSION, PLURAL)

        while not stop.is_set():
            w = watch.Watch()
            try:
                for event in w.stream(list_fn, *args, timeout_seconds=WATCH_TIMEOUT_SECONDS):
                    if stop.is_set():
                        break
                    meta = event["object"].get("metadata", {})
                    key = f"{meta.get('namespace', '')}/{meta.get('name', '')}"
                    loop.call_soon_threadsafe(queue.put_nowait, key)
            except ApiException as e:
                log.warning("Watch interrupted: {status} {reason}", status=e.status, reason=e.reason)
                stop.wait(5)
            finally:
                w.stop()

    # =========================================================================
    # Secrets
    # =========================================================================

    async def get_secret(self, namespace: str, name: str) -> dict[str, str]:
        secret = await self._call(
            "secret", f"{namespace}/{name}", self._core.read_namespaced_secret, name, namespace
        )
        return {k: base64.b64decode(v).decode() for k, v in (secret.data or {}).items()}

    async def create_secret(
        self,
        namespace: str,
        name: str,
        data: dict[str, str],
        owner: OwnerReference | None = None,
    ) -> None:
        owners = None
        if owner is not None:
            owners = [
                client.V1OwnerReference(
                    api_version=owner.api_version, kind=owner.kind, name=owner.name, uid=owner.uid
                )
            ]
        body = client.V1Secret(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace, owner_references=owners),
            data={k: base64.b64encode(v.encode()).decode() for k, v in data.items()},
        )
        await self._call(
            "secret", f"{namespace}/{name}", self._core.create_namespaced_secret, namespace, body
        )

    async def close(self) -> None:
        await asyncio.to_thread(self._api_client.close)
