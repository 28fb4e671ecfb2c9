"""Phase dispatch, failure recording and the deletion hook."""

from __future__ import annotations

import asyncio
from typing import assert_never

from cce_operator.api.types import ClusterConfig, Phase
from cce_operator.config import NetworkDefaults
from cce_operator.exceptions import StoreError, ValidationError
from cce_operator.huawei import cce
from cce_operator.huawei.driver import DriverCache
from cce_operator.huawei.errors import HuaweiError
from cce_operator.store.base import RecordStore, SecretStore, update_with_retry

from .context import RATE_LIMIT_SLEEP, WAIT_BUSY, Context, Result, Sleep, bind
from .lifecycle import create_cluster, import_cluster, poll_upgrade_task, wait_for_creation
from .nodepools import update_upstream_cluster_state
from .provision import provision_network
from .teardown import run_teardown
from .upstream import build_upstream_cluster_state, cluster_endpoints
from .validate import validate_create, validate_update

_CLUSTER_BUSY = {cce.CLUSTER_DELETING, cce.CLUSTER_RESIZING, cce.CLUSTER_UPGRADING}
_NODE_POOL_BUSY = {cce.NODE_POOL_SYNCHRONIZING, cce.NODE_POOL_SYNCHRONIZED, cce.NODE_POOL_SOLD_OUT}


def failure_message(err: BaseException) -> str:
    """Message recorded in ``status.failure_message`` for ``err``.

    Request ids are dropped from provider errors so retries of the same
    failure produce the same message.
    """
    if isinstance(err, HuaweiError):
        return str(err.without_request_id())
    return str(err)


class Handler:
    """Reconciles CCEClusterConfig records against Huawei CCE.

    Example:
        handler = Handler(store, secrets, DriverCache(secrets))
        result = await handler.reconcile(config)
        if result.requeue_after is not None:
            queue.enqueue_after(config.key, result.requeue_after)
    """

    def __init__(
        self,
        store: RecordStore,
        secrets: SecretStore,
        drivers: DriverCache,
        network: NetworkDefaults | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self.store = store
        self.secrets = secrets
        self.drivers = drivers
        self.network = network or NetworkDefaults()
        self._sleep: Sleep = sleep or asyncio.sleep

    async def _context(self, config: ClusterConfig) -> Context:
        driver = await self.drivers.get(config.spec, config.namespace)
        return Context(
            store=self.store,
            secrets=self.secrets,
            driver=driver,
            network=self.network,
            sleep=self._sleep,
        )

    # =========================================================================
    # Change
    # =========================================================================

    async def reconcile(self, config: ClusterConfig) -> Result:
        """Run ``on_change`` and record its outcome in ``status.failure_message``."""
        try:
            result = await self.on_change(config)
        except Exception as err:
            await self._record_failure(config, err)
            raise

        record = result.record
        if record.status.failure_message and not record.deleting:
            try:
                record = await update_with_retry(
                    self.store, record, lambda c: c.with_status(failure_message="")
                )
            except StoreError as e:
                bind(record, "handler").error("Failed to clear failure message: {err}", err=e)
            result = Result(record, result.requeue_after, result.done)
        return result

    async def _record_failure(self, config: ClusterConfig, err: Exception) -> None:
        log = bind(config, "handler")
        message = failure_message(err)
        log.warning("Reconcile failed: {err}", err=message)
        try:
            current = await self.store.get(config.namespace, config.name)
            if current.status.failure_message == message:
                if message:
                    await self._sleep(RATE_LIMIT_SLEEP)
                return

            def mutate(c: ClusterConfig) -> ClusterConfig:
                if c.status.phase == Phase.ACTIVE:
                    return c.with_status(failure_message=message, phase=Phase.UPDATING)
                return c.with_status(failure_message=message)

            await update_with_retry(self.store, current, mutate)
        except StoreError as e:
            log.error("Error recording failure message: {err}", err=e)

    async def on_change(self, config: ClusterConfig) -> Result:
        if config.deleting:
            return Result(config)

        ctx = await self._context(config)
        phase = config.status.phase
        match phase:
            case Phase.NOT_CREATED:
                return await self._create(ctx, config)
            case Phase.IMPORTING:
                return await import_cluster(ctx, config)
            case Phase.CREATING:
                return await wait_for_creation(ctx, config)
            case Phase.ACTIVE | Phase.UPDATING:
                return await self._check_and_update(ctx, config)
            case _:
                assert_never(phase)

    async def _create(self, ctx: Context, config: ClusterConfig) -> Result:
        await validate_create(ctx, config)
        if config.spec.imported:
            return Result(await ctx.ensure_phase(config, Phase.IMPORTING))

        config = await provision_network(ctx, config)
        return Result(await create_cluster(ctx, config))

    async def _check_and_update(self, ctx: Context, config: ClusterConfig) -> Result:
        log = bind(config, "handler")
        try:
            validate_update(config)
        except ValidationError:
            await ctx.ensure_phase(config, Phase.UPDATING)
            raise

        config, upgrading = await poll_upgrade_task(ctx, config)
        if upgrading:
            return await self._wait(ctx, config)

        cluster_id = config.status.cluster_id or config.spec.cluster_id
        cluster = await ctx.driver.cce.show_cluster(cluster_id)
        phase = (cluster.get("status") or {}).get("phase", "")
        if phase in _CLUSTER_BUSY:
            log.info("Waiting for cluster {name} status {phase!r}", name=config.spec.name, phase=phase)
            return await self._wait(ctx, config)

        node_pools = await ctx.driver.cce.list_node_pools(cluster_id)
        for pool in node_pools:
            pool_phase = (pool.get("status") or {}).get("phase", "")
            if pool_phase in _NODE_POOL_BUSY:
                log.info(
                    "Waiting for node pool {pool} status {phase!r}",
                    pool=pool["metadata"].get("name", ""), phase=pool_phase,
                )
                return await self._wait(ctx, config)

        return await update_upstream_cluster_state(
            ctx,
            config,
            build_upstream_cluster_state(cluster, node_pools),
            endpoints=cluster_endpoints(cluster),
            available_zone=cluster["spec"].get("az", ""),
        )

    async def _wait(self, ctx: Context, config: ClusterConfig) -> Result:
        return Result(await ctx.ensure_phase(config, Phase.UPDATING), requeue_after=WAIT_BUSY)

    # =========================================================================
    # Removal
    # =========================================================================

    async def on_remove(self, config: ClusterConfig) -> Result:
        log = bind(config, "handler", phase="remove")
        if config.spec.imported:
            log.info("Cluster {name} is imported, leaving it in place", name=config.name)
            return Result(config, done=True)

        ctx = await self._context(config)
        return await run_teardown(ctx, config)
