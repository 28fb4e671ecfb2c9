"""Resumable deletion of everything the controller created for a record.

Teardown runs in three stages: drain node pools, delete the cluster, delete
network resources. Each stage is a step function returning the (possibly
updated) record and whether it still has work in flight. A stage with work in
flight ends the pass with a requeue; later stages only start once every
earlier one reports nothing left.

Only resources recorded in ``status.created_*`` are deleted. 404 means the
resource is already gone.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from cce_operator.api.types import ClusterConfig
from cce_operator.huawei import cce
from cce_operator.huawei.errors import HuaweiError

from .context import RATE_LIMIT_SLEEP, Context, Result, bind

Step = Callable[[Context, ClusterConfig], Awaitable[tuple[ClusterConfig, bool]]]

WAIT_DRAIN = 10.0
WAIT_CLUSTER = 20.0
WAIT_NETWORK = 5.0

_NODE_BUSY = {cce.NODE_INSTALLING, cce.NODE_UPGRADING, cce.NODE_BUILD, cce.NODE_DELETING}
_CLUSTER_BUSY = {
    cce.CLUSTER_DELETING,
    cce.CLUSTER_CREATING,
    cce.CLUSTER_UPGRADING,
    cce.CLUSTER_RESIZING,
    cce.CLUSTER_SCALING_UP,
    cce.CLUSTER_SCALING_DOWN,
    cce.CLUSTER_ROLLING_BACK,
}


def _log(config: ClusterConfig):
    return bind(config, "teardown", phase="remove")


async def _gone(call: Awaitable[object]) -> bool:
    """Await a lookup and report whether it answered 404."""
    try:
        await call
    except HuaweiError as e:
        if e.is_not_found:
            return True
        raise
    return False


# =============================================================================
# Stage 1: node pools
# =============================================================================


async def ensure_cluster_deletable(ctx: Context, config: ClusterConfig) -> tuple[ClusterConfig, bool]:
    cluster_id = config.status.cluster_id
    if not cluster_id:
        return config, False

    log = _log(config)
    client = ctx.driver.cce
    try:
        nodes = await client.list_nodes(cluster_id)
        pools = await client.list_node_pools(cluster_id)
    except HuaweiError as e:
        if e.is_not_found:
            return config, False
        raise

    for node in nodes["items"]:
        phase = (node.get("status") or {}).get("phase", "")
        if phase in _NODE_BUSY:
            log.info(
                "Waiting for node {node} status {phase!r}",
                node=node.get("metadata", {}).get("name", ""), phase=phase,
            )
            return config, True

    for pool in pools:
        pool_id = pool["metadata"].get("uid", "")
        log.info("Deleting node pool {name} ({id})", name=pool["metadata"].get("name", ""), id=pool_id)
        try:
            await client.delete_node_pool(cluster_id, pool_id)
        except HuaweiError as e:
            if not e.is_not_found:
                raise
    if pools:
        return config, True

    if config.status.node_pools:
        config = await ctx.update_status(config, node_pools=())
    return config, False


# =============================================================================
# Stage 2: cluster
# =============================================================================


async def delete_cluster(ctx: Context, config: ClusterConfig) -> tuple[ClusterConfig, bool]:
    cluster_id = config.status.cluster_id
    if not cluster_id:
        return config, False

    log = _log(config)
    try:
        cluster = await ctx.driver.cce.show_cluster(cluster_id)
    except HuaweiError as e:
        if not e.is_not_found:
            raise
        log.info("Deleted cluster {name}", name=config.spec.name)
        config = await ctx.update_status(config, cluster_id="", cluster_external_ip="")
        if config.spec.cluster_id:
            config = await ctx.update_spec(config, cluster_id="")
        return config, False

    phase = (cluster.get("status") or {}).get("phase", "")
    if phase in _CLUSTER_BUSY:
        log.info("Waiting for cluster {name} status {phase!r}", name=config.spec.name, phase=phase)
        return config, True

    await ctx.driver.cce.delete_cluster(cluster_id)
    log.info("Requested deletion of cluster {name}", name=config.spec.name)
    return config, True


# =============================================================================
# Stage 3: network
# =============================================================================


async def delete_network_resources(ctx: Context, config: ClusterConfig) -> tuple[ClusterConfig, bool]:
    """Delete one created network resource per call, in dependency order."""
    status = config.status
    log = _log(config)
    drv = ctx.driver

    if status.created_nat_gateway_id:
        nat_id = status.created_nat_gateway_id
        rules = await drv.nat.list_snat_rules(nat_id)
        for rule in rules:
            log.info("Deleting SNAT rule {rule} of {nat}", rule=rule["id"], nat=nat_id)
            await _gone(drv.nat.delete_snat_rule(nat_id, rule["id"]))
        if rules:
            return config, True

        if await _gone(drv.nat.show_nat_gateway(nat_id)):
            log.info("NAT gateway {id} deleted", id=nat_id)
            config = await ctx.update_status(
                config, created_nat_gateway_id="", created_snat_rule_id=""
            )
            return config, True
        await drv.nat.delete_nat_gateway(nat_id)
        log.info("Requested deletion of NAT gateway {id}", id=nat_id)
        return config, True

    for field in ("created_cluster_eip_id", "created_snat_rule_eip_id"):
        eip_id = getattr(status, field)
        if not eip_id:
            continue
        if await _gone(drv.eip.show_public_ip(eip_id)):
            log.info("EIP {id} deleted", id=eip_id)
            return await ctx.update_status(config, **{field: ""}), True
        await drv.eip.delete_public_ip(eip_id)
        log.info("Requested deletion of EIP {id}", id=eip_id)
        return config, True

    vpc_id = status.created_vpc_id or status.host_network.vpc_id
    if status.created_subnet_id:
        subnet_id = status.created_subnet_id
        if await _gone(drv.vpc.show_subnet(subnet_id)):
            log.info("Subnet {id} deleted", id=subnet_id)
            return await ctx.update_status(config, created_subnet_id=""), True
        if status.created_vpc_id:
            balancers = await drv.elb.list_load_balancers(status.created_vpc_id)
            if balancers:
                log.info(
                    "Waiting for {count} load balancers to leave VPC {vpc}",
                    count=len(balancers), vpc=status.created_vpc_id,
                )
                return config, True
        await drv.vpc.delete_subnet(vpc_id, subnet_id)
        log.info("Requested deletion of subnet {id}", id=subnet_id)
        return config, True

    if status.created_vpc_id:
        vpc_id = status.created_vpc_id
        for service in await drv.vpcep.list_endpoint_services():
            if service.get("vpc_id") != vpc_id:
                continue
            await drv.vpcep.delete_endpoint_service(service["id"])
            log.info("Requested deletion of VPC endpoint service {id}", id=service["id"])
            return config, True

        if await _gone(drv.vpc.show_vpc(vpc_id)):
            log.info("VPC {id} deleted", id=vpc_id)
            return await ctx.update_status(config, created_vpc_id=""), True
        await drv.vpc.delete_vpc(vpc_id)
        log.info("Requested deletion of VPC {id}", id=vpc_id)
        return config, True

    return config, False


STAGES: tuple[tuple[Step, float], ...] = (
    (ensure_cluster_deletable, WAIT_DRAIN),
    (delete_cluster, WAIT_CLUSTER),
    (delete_network_resources, WAIT_NETWORK),
)


async def run_teardown(ctx: Context, config: ClusterConfig) -> Result:
    """Advance teardown by one step. ``done`` once every stage reports nothing left."""
    for step, delay in STAGES:
        try:
            config, refresh = await step(ctx, config)
        except Exception:
            await ctx.sleep(RATE_LIMIT_SLEEP)
            raise
        if refresh:
            return Result(config, requeue_after=delay)

    _log(config).info("Finished cleaning up resources of {name}", name=config.name)
    return Result(config, done=True)
