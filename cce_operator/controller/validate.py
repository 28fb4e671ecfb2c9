"""Create, import and update validation for CCEClusterConfig records."""

from __future__ import annotations

import re
from collections.abc import Iterable

from cce_operator.api.types import ClusterConfig, NodePool
from cce_operator.exceptions import ValidationError
from cce_operator.huawei.errors import HuaweiError

from .context import Context

CANNOT_BE_EMPTY = "field [{field}] cannot be empty for non-import cluster [{name}]"

SEMVER = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)


def _empty(field: str, config: ClusterConfig) -> ValidationError:
    return ValidationError(CANNOT_BE_EMPTY.format(field=field, name=config.name))


def _require(config: ClusterConfig, checks: Iterable[tuple[str, object]]) -> None:
    for field, value in checks:
        if not value:
            raise _empty(field, config)


def validate_node_pools(config: ClusterConfig) -> None:
    if not config.spec.node_pools:
        raise _empty("nodePools", config)

    seen: set[str] = set()
    for pool in config.spec.node_pools:
        if not pool.name:
            raise _empty("nodePool.name", config)
        if pool.name in seen:
            raise ValidationError(
                f"nodePool.name should be unique, duplicated detected: {pool.name!r}"
            )
        seen.add(pool.name)
        _validate_template(config, pool)


def _validate_template(config: ClusterConfig, pool: NodePool) -> None:
    t = pool.node_template
    _require(config, [
        ("nodePool.nodeTemplate.flavor", t.flavor),
        ("nodePool.nodeTemplate.availableZone", t.available_zone),
        ("nodePool.nodeTemplate.sshKey", t.ssh_key),
        ("nodePool.nodeTemplate.rootVolume", t.root_volume.size and t.root_volume.type),
        ("nodePool.nodeTemplate.dataVolumes", t.data_volumes),
    ])
    for volume in t.data_volumes:
        if not volume.size or not volume.type:
            raise _empty("nodePool.nodeTemplate.dataVolumes", config)
    _require(config, [("nodePool.nodeTemplate.operatingSystem", t.operating_system)])


async def validate_create(ctx: Context, config: ClusterConfig) -> None:
    """Rules checked before anything is created for a new record.

    Raises:
        ValidationError: naming the offending field and record.
        HuaweiError: for provider failures other than a missing import target.
    """
    spec = config.spec

    for other in await ctx.store.list(config.namespace):
        if other.spec.name == spec.name and other.name != config.name:
            raise ValidationError(
                f"cannot create cluster [{spec.name}] because an cceclusterconfig "
                "exists with the same name"
            )

    _require(config, [
        ("huaweiCredentialSecret", spec.credential_secret),
        ("regionID", spec.region_id),
        ("name", spec.name),
    ])

    if spec.imported:
        _require(config, [("clusterID", spec.cluster_id)])
        try:
            await ctx.driver.cce.show_cluster(spec.cluster_id)
        except HuaweiError as e:
            if e.is_not_found:
                raise ValidationError(
                    f"failed to find cluster [{spec.cluster_id}]: {e.error_message}"
                ) from e
            raise
        return

    if not config.status.cluster_id:
        for cluster in await ctx.driver.cce.list_clusters():
            if cluster.get("metadata", {}).get("name") == spec.name:
                raise ValidationError(
                    f"cannot create cluster [{spec.name}] because a cluster "
                    "in CCE exists with the same name"
                )

    _require(config, [
        ("type", spec.type),
        ("flavor", spec.flavor),
        ("version", spec.version),
        ("kubernetesSvcIPRange", spec.kubernetes_svc_ip_range),
    ])

    if (spec.extend_param.cluster_external_ip or spec.public_ip.create_eip) and not spec.public_access:
        raise ValidationError(
            "'publicAccess' can not be 'false' when 'clusterExternalIP' provided "
            "or 'publicIP.createEIP' is true"
        )
    if spec.public_access and not (spec.extend_param.cluster_external_ip or spec.public_ip.create_eip):
        raise ValidationError(
            "should provide 'clusterExternalIP' or setup 'publicIP' if 'publicAccess' is true"
        )
    if spec.public_ip.create_eip and spec.public_ip.eip.bandwidth.size == 0:
        raise _empty("publicIP.eip.bandwidth.size", config)

    nat = spec.nat_gateway
    if nat.enabled and not nat.existing_eip_id and nat.snat_rule_eip.bandwidth.size == 0:
        raise ValidationError(
            "should provide 'natGateway.existingEIPID' or setup "
            "'natGateway.sNatRuleEIP.bandwidth' if 'natGateway.enabled' is true"
        )

    validate_node_pools(config)


def validate_update(config: ClusterConfig) -> None:
    spec = config.spec
    if spec.version and not SEMVER.match(f"{spec.version}.0"):
        raise ValidationError(
            f"improper version format for cluster [{spec.name}]: {spec.version}, "
            "expected vMAJOR.MINOR"
        )

    _require(config, [
        ("name", spec.name),
        ("regionID", spec.region_id),
        ("huaweiCredentialSecret", spec.credential_secret),
    ])
    if spec.imported:
        _require(config, [("clusterID", spec.cluster_id)])
        return
    validate_node_pools(config)
