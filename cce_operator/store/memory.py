"""In-memory record and secret store."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass, replace
from datetime import UTC, datetime

from cce_operator.api.types import ClusterConfig, OwnerReference
from cce_operator.exceptions import ConflictError, NotFoundError


@dataclass(frozen=True, slots=True)
class StoredSecret:
    data: dict[str, str]
    owner: OwnerReference | None = None


class InMemoryStore:
    """Record and secret store with resource-version checks and watch fan-out.

    Used by the tests and handy for running the controller against a fake cloud.
    """

    def __init__(self) -> None:
        self._records: dict[str, ClusterConfig] = {}
        self._secrets: dict[tuple[str, str], StoredSecret] = {}
        self._version = 0
        self._watchers: list[asyncio.Queue[str]] = []

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _notify(self, key: str) -> None:
        for queue in self._watchers:
            queue.put_nowait(key)

    def _current(self, config: ClusterConfig) -> ClusterConfig:
        stored = self._records.get(config.key)
        if stored is None:
            raise NotFoundError("cceclusterconfig", config.key)
        if config.metadata.resource_version != stored.metadata.resource_version:
            raise ConflictError(
                config.key,
                f"resource version {config.metadata.resource_version!r} "
                f"is stale, latest is {stored.metadata.resource_version!r}",
            )
        return stored

    def _save(self, config: ClusterConfig) -> ClusterConfig:
        saved = config.with_metadata(resource_version=self._next_version())
        self._records[saved.key] = saved
        self._notify(saved.key)
        return saved

    # =========================================================================
    # Records
    # =========================================================================

    async def create(self, config: ClusterConfig) -> ClusterConfig:
        if config.key in self._records:
            raise ConflictError(config.key, "already exists")
        meta = replace(config.metadata, uid=config.metadata.uid or str(uuid.uuid4()), generation=1)
        return self._save(replace(config, metadata=meta))

    async def get(self, namespace: str, name: str) -> ClusterConfig:
        try:
            return self._records[f"{namespace}/{name}"]
        except KeyError:
            raise NotFoundError("cceclusterconfig", f"{namespace}/{name}") from None

    async def list(self, namespace: str = "") -> list[ClusterConfig]:
        return [c for c in self._records.values() if not namespace or c.namespace == namespace]

    async def update(self, config: ClusterConfig) -> ClusterConfig:
        stored = self._current(config)
        updated = replace(config, status=stored.status).with_metadata(
            deletion_timestamp=stored.metadata.deletion_timestamp
        )
        if updated.spec != stored.spec:
            updated = updated.with_metadata(generation=stored.metadata.generation + 1)
        if updated.deleting and not updated.metadata.finalizers:
            del self._records[config.key]
            self._notify(config.key)
            return updated
        return self._save(updated)

    async def update_status(self, config: ClusterConfig) -> ClusterConfig:
        stored = self._current(config)
        return self._save(replace(stored, status=config.status))

    async def delete(self, namespace: str, name: str) -> None:
        """Mark for deletion; the record is erased once its finalizers are gone."""
        stored = await self.get(namespace, name)
        if not stored.metadata.finalizers:
            del self._records[stored.key]
            self._notify(stored.key)
            return
        if not stored.deleting:
            self._save(stored.with_metadata(deletion_timestamp=datetime.now(UTC).isoformat()))

    async def watch(self) -> AsyncIterator[str]:
        queue: asyncio.Queue[str] = asyncio.Queue()
        self._watchers.append(queue)
        try:
            for key in list(self._records):
                yield key
            while True:
                yield await queue.get()
        finally:
            self._watchers.remove(queue)

    # =========================================================================
    # Secrets
    # =========================================================================

    async def get_secret(self, namespace: str, name: str) -> dict[str, str]:
        try:
            return dict(self._secrets[(namespace, name)].data)
        except KeyError:
            raise NotFoundError("secret", f"{namespace}/{name}") from None

    async def create_secret(
        self,
        namespace: str,
        name: str,
        data: dict[str, str],
        owner: OwnerReference | None = None,
    ) -> None:
        if (namespace, name) in self._secrets:
            raise ConflictError(f"{namespace}/{name}", "secret already exists")
        self._secrets[(namespace, name)] = StoredSecret(dict(data), owner)

    def secret_owner(self, namespace: str, name: str) -> OwnerReference | None:
        return self._secrets[(namespace, name)].owner
