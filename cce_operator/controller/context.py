from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from loguru import logger

from cce_operator.api.types import ClusterConfig, Phase
from cce_operator.config import NetworkDefaults
from cce_operator.huawei.driver import Driver
from cce_operator.store.base import RecordStore, SecretStore, update_with_retry

Sleep = Callable[[float], Awaitable[None]]

# Re-invocation delays, in seconds.
WAIT_BUSY = 30.0
WAIT_UPDATE = 10.0
RATE_LIMIT_SLEEP = 5.0
NAT_SETTLE_SLEEP = 5.0


@dataclass(slots=True)
class Context:
    """Everything a reconciliation step needs besides the record itself."""

    store: RecordStore
    secrets: SecretStore
    driver: Driver
    network: NetworkDefaults = field(default_factory=NetworkDefaults)
    sleep: Sleep = asyncio.sleep

    async def update_status(self, config: ClusterConfig, **changes: object) -> ClusterConfig:
        """Persist status changes, retrying on conflict against the latest record."""
        return await update_with_retry(self.store, config, lambda c: c.with_status(**changes))

    async def update_spec(self, config: ClusterConfig, **changes: object) -> ClusterConfig:
        return await update_with_retry(
            self.store, config, lambda c: c.with_spec(**changes), status=False
        )

    async def ensure_phase(self, config: ClusterConfig, phase: Phase) -> ClusterConfig:
        if config.status.phase == phase:
            return config
        return await self.update_status(config, phase=phase)


@dataclass(frozen=True, slots=True)
class Result:
    """Outcome of one reconciliation pass.

    ``requeue_after`` asks for another pass after that many seconds; ``done``
    tells the deletion hook that nothing is left to clean up.
    """

    record: ClusterConfig
    requeue_after: float | None = None
    done: bool = False


def bind(config: ClusterConfig, component: str, phase: str | None = None):
    return logger.bind(
        component=component,
        cluster=config.name,
        phase=phase if phase is not None else str(config.status.phase) or "<new>",
    )
