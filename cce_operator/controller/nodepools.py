"""Converge a running cluster towards its desired spec.

One pass syncs the observed state into status, then issues at most one round
of cluster and node pool mutations. CCE rejects further changes while a
previous one is still applying, so any mutation ends the pass with a requeue
and the next pass observes the result.
"""

from __future__ import annotations

from dataclasses import replace

from cce_operator.api.types import ClusterConfig, ClusterSpec, Endpoint, NodePool, Phase
from cce_operator.huawei.errors import HuaweiError
from cce_operator.store.base import update_with_retry

from .context import WAIT_UPDATE, Context, Result, bind
from .lifecycle import cluster_upgradeable, upgrade_cluster
from .upstream import compare_node_pool


async def update_upstream_cluster_state(
    ctx: Context,
    config: ClusterConfig,
    upstream: ClusterSpec,
    *,
    endpoints: tuple[Endpoint, ...] = (),
    available_zone: str = "",
) -> Result:
    log = bind(config, "nodepools")
    config = await sync_status(ctx, config, upstream, endpoints, available_zone)

    if config.spec.imported:
        return Result(await _settle(ctx, config))

    if config.spec.version and cluster_upgradeable(upstream.version, config.spec.version):
        return await upgrade_cluster(ctx, config)

    mutated = await update_cluster_metadata(ctx, config, upstream)

    config = await stabilize_node_pool_ids(ctx, config, upstream.node_pools)
    config, changed = await converge_node_pools(ctx, config, upstream.node_pools)
    mutated = mutated or changed

    if mutated:
        log.debug("Changes requested, checking again in {delay}s", delay=WAIT_UPDATE)
        return Result(await ctx.ensure_phase(config, Phase.UPDATING), requeue_after=WAIT_UPDATE)
    return Result(await _settle(ctx, config))


async def _settle(ctx: Context, config: ClusterConfig) -> ClusterConfig:
    if config.status.phase != Phase.ACTIVE:
        bind(config, "nodepools").info("Cluster {name} finished updating", name=config.spec.name)
    return await ctx.ensure_phase(config, Phase.ACTIVE)


async def sync_status(
    ctx: Context,
    config: ClusterConfig,
    upstream: ClusterSpec,
    endpoints: tuple[Endpoint, ...],
    available_zone: str,
) -> ClusterConfig:
    observed = {
        "node_pools": upstream.node_pools,
        "host_network": upstream.host_network,
        "container_network": upstream.container_network,
        "endpoints": endpoints,
        "available_zone": available_zone,
    }
    changes = {k: v for k, v in observed.items() if getattr(config.status, k) != v}
    if not changes:
        return config
    return await ctx.update_status(config, **changes)


async def update_cluster_metadata(ctx: Context, config: ClusterConfig, upstream: ClusterSpec) -> bool:
    spec = config.spec
    # An empty security group leaves the one CCE assigned in place.
    wanted_sg = spec.host_network.security_group
    if spec.description == upstream.description and (
        not wanted_sg or wanted_sg == upstream.host_network.security_group
    ):
        return False
    bind(config, "nodepools").info("Updating metadata of cluster {name}", name=spec.name)
    await ctx.driver.cce.update_cluster(config.status.cluster_id, config)
    return True


# =============================================================================
# Node pools
# =============================================================================


def _with_pool_id(config: ClusterConfig, name: str, pool_id: str) -> ClusterConfig:
    pools = tuple(replace(p, id=pool_id) if p.name == name else p for p in config.spec.node_pools)
    return config.with_spec(node_pools=pools)


async def stabilize_node_pool_ids(
    ctx: Context, config: ClusterConfig, observed: tuple[NodePool, ...]
) -> ClusterConfig:
    """Give desired pools without an id the id of an identical observed pool."""
    claimed = {p.id for p in config.spec.node_pools if p.id}
    assigned: dict[str, str] = {}
    for pool in config.spec.node_pools:
        if pool.id:
            continue
        for candidate in observed:
            if candidate.id in claimed or not compare_node_pool(pool, candidate):
                continue
            claimed.add(candidate.id)
            assigned[pool.name] = candidate.id
            break

    if not assigned:
        return config

    def mutate(c: ClusterConfig) -> ClusterConfig:
        for name, pool_id in assigned.items():
            c = _with_pool_id(c, name, pool_id)
        return c

    bind(config, "nodepools").debug("Matched existing node pools {pools}", pools=assigned)
    return await update_with_retry(ctx.store, config, mutate, status=False)


async def converge_node_pools(
    ctx: Context, config: ClusterConfig, observed: tuple[NodePool, ...]
) -> tuple[ClusterConfig, bool]:
    """Create, update and delete node pools. Returns the record and whether anything changed."""
    log = bind(config, "nodepools")
    client = ctx.driver.cce
    cluster_id = config.status.cluster_id
    observed_by_id = {p.id: p for p in observed}
    mutated = False

    for pool in config.spec.node_pools:
        current = observed_by_id.get(pool.id) if pool.id else None
        if current is None:
            created = await client.create_node_pool(cluster_id, pool)
            pool_id = created["metadata"]["uid"]
            log.info("Requested node pool {name}, id {id}", name=pool.name, id=pool_id)
            config = await update_with_retry(
                ctx.store, config,
                lambda c, name=pool.name, pool_id=pool_id: _with_pool_id(c, name, pool_id),
                status=False,
            )
            mutated = True
        elif _needs_update(pool, current):
            log.info("Updating node pool {name} ({id})", name=pool.name, id=pool.id)
            await client.update_node_pool(cluster_id, pool)
            mutated = True

    desired_ids = {p.id for p in config.spec.node_pools if p.id}
    for pool in observed:
        if pool.id in desired_ids:
            continue
        log.info("Deleting node pool {name} ({id})", name=pool.name, id=pool.id)
        try:
            await client.delete_node_pool(cluster_id, pool.id)
        except HuaweiError as e:
            if not e.is_not_found:
                raise
        mutated = True

    return config, mutated


def _needs_update(desired: NodePool, current: NodePool) -> bool:
    if desired.name != current.name:
        return True
    want, have = desired.autoscaling, current.autoscaling
    if want.enable or have.enable:
        # Node count is owned by the autoscaler while it is on.
        return want != have
    return desired.initial_node_count != current.initial_node_count
