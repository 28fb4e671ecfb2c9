"""Record and secret store protocols plus the compare-and-swap update helper."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Protocol, runtime_checkable

from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from cce_operator.api.types import ClusterConfig, OwnerReference
from cce_operator.exceptions import ConflictError

UPDATE_ATTEMPTS = 5

log = logger.bind(component="store")


@runtime_checkable
class RecordStore(Protocol):
    """Persistence for CCEClusterConfig records.

    ``update`` writes spec and metadata, ``update_status`` writes status only.
    Both raise ConflictError when ``resource_version`` is stale.
    """

    async def get(self, namespace: str, name: str) -> ClusterConfig: ...
    async def list(self, namespace: str = "") -> list[ClusterConfig]: ...
    async def update(self, config: ClusterConfig) -> ClusterConfig: ...
    async def update_status(self, config: ClusterConfig) -> ClusterConfig: ...
    def watch(self) -> AsyncIterator[str]: ...


@runtime_checkable
class SecretStore(Protocol):
    async def get_secret(self, namespace: str, name: str) -> dict[str, str]: ...

    async def create_secret(
        self,
        namespace: str,
        name: str,
        data: dict[str, str],
        owner: OwnerReference | None = None,
    ) -> None: ...


Mutation = Callable[[ClusterConfig], ClusterConfig]


async def update_with_retry(
    store: RecordStore,
    config: ClusterConfig,
    mutate: Mutation,
    *,
    status: bool = True,
    attempts: int = UPDATE_ATTEMPTS,
) -> ClusterConfig:
    """Re-fetch, mutate and submit until the write wins.

    The first attempt uses ``config`` as given; later attempts re-read the
    record so the mutation is applied to the latest version.
    """
    write = store.update_status if status else store.update
    current = config
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(0),
        retry=retry_if_exception_type(ConflictError),
        reraise=True,
    ):
        with attempt:
            if attempt.retry_state.attempt_number > 1:
                log.debug("Conflict on {key}, re-reading", key=config.key)
                current = await store.get(config.namespace, config.name)
            return await write(mutate(current))
    raise AssertionError("unreachable")
