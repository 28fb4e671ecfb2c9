"""Cluster create, import, upgrade and credential secret steps."""

from __future__ import annotations

import re

from cce_operator.api.types import ClusterConfig, Phase
from cce_operator.exceptions import (
    ClusterUnavailableError,
    ConflictError,
    InvalidResponseError,
    NotFoundError,
    UpgradeError,
    ValidationError,
)
from cce_operator.huawei import cce
from cce_operator.huawei.errors import HuaweiError

from .context import WAIT_BUSY, WAIT_UPDATE, Context, Result, bind
from .upstream import build_upstream_cluster_state, external_ip

EXTERNAL_CERT = "externalClusterTLSVerify"
INTERNAL_CERT = "internalCluster"

_VERSION = re.compile(r"^v?(\d+)\.(\d+)(?:\.\d+)?(?:[-+].*)?$")


# =============================================================================
# Create
# =============================================================================


async def create_cluster(ctx: Context, config: ClusterConfig) -> ClusterConfig:
    """Create the CCE cluster unless one is already recorded, then move to ``creating``."""
    log = bind(config, "lifecycle")
    if config.status.cluster_id:
        try:
            await ctx.driver.cce.show_cluster(config.status.cluster_id)
        except HuaweiError as e:
            if not e.is_not_found:
                raise
            log.info(
                "Recorded cluster {id} is gone, creating a new one", id=config.status.cluster_id
            )
        else:
            log.info("Cluster {id} already created", id=config.status.cluster_id)
            return await ctx.ensure_phase(config, Phase.CREATING)

    log.info("Creating cluster {name}", name=config.spec.name)
    cluster = await ctx.driver.cce.create_cluster(config)
    cluster_id = cluster.get("metadata", {}).get("uid", "")
    if not cluster_id:
        raise InvalidResponseError("create cluster returned no cluster id")

    config = await ctx.update_status(
        config, cluster_id=cluster_id, phase=Phase.CREATING, failure_message=""
    )
    log.info("Created cluster {id}", id=cluster_id)
    return config


async def wait_for_creation(ctx: Context, config: ClusterConfig) -> Result:
    log = bind(config, "lifecycle")
    cluster = await ctx.driver.cce.show_cluster(config.status.cluster_id)
    status = cluster.get("status") or {}
    phase = status.get("phase", "")

    match phase:
        case cce.CLUSTER_UNAVAILABLE:
            raise ClusterUnavailableError(
                cluster["metadata"].get("name", config.spec.name),
                status.get("reason") or status.get("message", ""),
            )
        case cce.CLUSTER_AVAILABLE:
            await create_ca_secret(ctx, config)
            log.info("Cluster {name} created successfully", name=config.spec.name)
            return Result(await ctx.update_status(config, phase=Phase.UPDATING))
        case _:
            log.info("Waiting for cluster {name} status {status!r}", name=config.spec.name, status=phase)
            return Result(config, requeue_after=WAIT_BUSY)


# =============================================================================
# Import
# =============================================================================


async def import_cluster(ctx: Context, config: ClusterConfig) -> Result:
    log = bind(config, "lifecycle")
    cluster_id = config.spec.cluster_id
    cluster = await ctx.driver.cce.show_cluster(cluster_id)
    node_pools = await ctx.driver.cce.list_node_pools(cluster_id)
    upstream = build_upstream_cluster_state(cluster, node_pools)

    address = external_ip(cluster)
    if address:
        log.info("Imported cluster {name} external IP {ip!r}", name=config.spec.name, ip=address)

    config = await ctx.update_status(
        config,
        cluster_id=cluster_id,
        node_pools=upstream.node_pools,
        host_network=upstream.host_network,
        container_network=upstream.container_network,
        cluster_external_ip=address,
    )
    await create_ca_secret(ctx, config)
    return Result(await ctx.update_status(config, phase=Phase.ACTIVE))


# =============================================================================
# Credential secret
# =============================================================================


async def create_ca_secret(ctx: Context, config: ClusterConfig) -> None:
    """Store the API endpoint and CA of the cluster in a secret named after the record."""
    try:
        await ctx.secrets.get_secret(config.namespace, config.name)
    except NotFoundError:
        pass
    else:
        return

    certs = await ctx.driver.cce.create_cluster_cert(config.status.cluster_id, cce.CERT_DURATION_DAYS)
    entries = {c.get("name"): c.get("cluster") or {} for c in certs.get("clusters") or []}
    entry = entries.get(EXTERNAL_CERT) if config.spec.public_access else None
    entry = entry or entries.get(INTERNAL_CERT)
    if not entry or not entry.get("server"):
        raise InvalidResponseError(
            f"failed to find endpoint of cluster [{config.status.cluster_id}] in its certificates"
        )

    bind(config, "lifecycle").info("Creating secret {name}", name=config.name)
    try:
        await ctx.secrets.create_secret(
            config.namespace,
            config.name,
            {"endpoint": entry["server"], "ca": entry.get("certificate-authority-data", "")},
            owner=config.owner_reference(),
        )
    except ConflictError:
        bind(config, "lifecycle").debug("Secret {name} created concurrently", name=config.name)


# =============================================================================
# Upgrade
# =============================================================================


def _major_minor(version: str) -> tuple[int, int]:
    m = _VERSION.match(version)
    if not m:
        raise ValidationError(f"invalid version {version!r}")
    return int(m.group(1)), int(m.group(2))


def cluster_upgradeable(old: str, new: str) -> bool:
    """Whether moving from ``old`` to ``new`` is an upgrade.

    Only major.minor count. Patch level differences are not upgrades.

    Raises:
        ValidationError: if either version is malformed or ``new`` is older.
    """
    if old == new:
        return False
    current, target = _major_minor(old), _major_minor(new)
    if current == target:
        return False
    if current > target:
        raise ValidationError(f"unsupported to downgrade cluster from {old!r} to {new!r}")
    return True


async def upgrade_cluster(ctx: Context, config: ClusterConfig) -> Result:
    task = await ctx.driver.cce.upgrade_cluster(config.status.cluster_id, config.spec.version)
    task_id = task["metadata"]["uid"]
    bind(config, "lifecycle").info(
        "Upgrading cluster {name} to {version!r}, task {task}",
        name=config.spec.name, version=config.spec.version, task=task_id,
    )
    config = await ctx.update_status(config, upgrade_cluster_task_id=task_id, phase=Phase.UPDATING)
    return Result(config, requeue_after=WAIT_UPDATE)


async def poll_upgrade_task(ctx: Context, config: ClusterConfig) -> tuple[ClusterConfig, bool]:
    """Check the recorded upgrade task. Returns the record and whether it still runs."""
    task_id = config.status.upgrade_cluster_task_id
    if not task_id:
        return config, False

    log = bind(config, "lifecycle")
    try:
        task = await ctx.driver.cce.show_upgrade_task(config.status.cluster_id, task_id)
    except HuaweiError as e:
        if not e.is_not_found:
            raise
        log.warning("Upgrade task {task} not found, forgetting it", task=task_id)
        return await ctx.update_status(config, upgrade_cluster_task_id=""), False

    phase = ((task or {}).get("status") or {}).get("phase", "")
    match phase:
        case cce.UPGRADE_TASK_SUCCESS:
            log.info("Upgrade task {task} finished", task=task_id)
            return await ctx.update_status(config, upgrade_cluster_task_id=""), False
        case cce.UPGRADE_TASK_FAILED:
            await ctx.update_status(config, upgrade_cluster_task_id="")
            raise UpgradeError(config.spec.name, task_id)
        case _:
            log.info("Waiting for upgrade task {task}: {phase!r}", task=task_id, phase=phase)
            return config, True
