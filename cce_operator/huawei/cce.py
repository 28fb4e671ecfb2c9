"""CCE v3 client: clusters, node pools, nodes, certificates and upgrades."""

from __future__ import annotations

from typing import Any

from cce_operator.api.types import ClusterConfig, NodePool
from cce_operator.exceptions import InvalidResponseError

from .common import ServiceClient
from .types import (
    Cluster,
    ClusterCert,
    ClusterList,
    NodeList,
    NodePoolBody,
    NodePoolList,
    UpgradeTask,
)

# Cluster phases reported by CCE.
CLUSTER_AVAILABLE = "Available"
CLUSTER_UNAVAILABLE = "Unavailable"
CLUSTER_CREATING = "Creating"
CLUSTER_DELETING = "Deleting"
CLUSTER_UPGRADING = "Upgrading"
CLUSTER_RESIZING = "Resizing"
CLUSTER_SCALING_UP = "ScalingUp"
CLUSTER_SCALING_DOWN = "ScalingDown"
CLUSTER_ROLLING_BACK = "RollingBack"

# Node pool phases that block further pool mutations.
NODE_POOL_SYNCHRONIZING = "Synchronizing"
NODE_POOL_SYNCHRONIZED = "Synchronized"
NODE_POOL_SOLD_OUT = "SoldOut"

# Node phases that block deletion.
NODE_INSTALLING = "Installing"
NODE_UPGRADING = "Upgrading"
NODE_BUILD = "Build"
NODE_DELETING = "Deleting"

UPGRADE_TASK_SUCCESS = "Success"
UPGRADE_TASK_FAILED = "Failed"

CERT_DURATION_DAYS = 365 * 3
MAX_CERT_DURATION_DAYS = 365 * 30

_CONTAINER_NETWORK_MODES = {"overlay_l2", "vpc-router", "eni"}
_NODE_POOL_TYPES = {"vm", "pm", "ElasticBMS"}


# =============================================================================
# Request bodies
# =============================================================================


def build_create_cluster_body(config: ClusterConfig) -> dict[str, Any]:
    """Create-cluster body from the desired spec plus the provisioned network in status."""
    spec, status = config.spec, config.status

    network_mode = status.container_network.mode or spec.container_network.mode
    if network_mode not in _CONTAINER_NETWORK_MODES:
        network_mode = "eni"
    auth: dict[str, Any] = {"mode": spec.authentication.mode or "rbac"}
    if spec.authentication.mode == "authenticating_proxy":
        proxy = spec.authentication.authenticating_proxy
        auth["authenticatingProxy"] = {
            "ca": proxy.ca,
            "cert": proxy.cert,
            "privateKey": proxy.private_key,
        }

    extend_param: dict[str, Any] = {
        "clusterAZ": spec.extend_param.cluster_az,
        "clusterExternalIP": status.cluster_external_ip,
    }
    if spec.billing_mode != 0:
        extend_param |= {
            "periodType": spec.extend_param.period_type,
            "periodNum": spec.extend_param.period_num,
            "isAutoRenew": spec.extend_param.is_auto_renew,
            "isAutoPay": spec.extend_param.is_auto_pay,
        }

    body_spec: dict[str, Any] = {
        "category": spec.category if spec.category in ("CCE", "Turbo") else "CCE",
        "type": spec.type if spec.type in ("VirtualMachine", "ARM64") else "VirtualMachine",
        "flavor": spec.flavor,
        "version": spec.version,
        "description": spec.description,
        "ipv6enable": spec.ipv6_enable,
        "hostNetwork": {
            "vpc": status.host_network.vpc_id,
            "subnet": status.host_network.subnet_id,
            "SecurityGroup": spec.host_network.security_group,
        },
        "containerNetwork": {
            "mode": network_mode,
            "cidr": status.container_network.cidr or spec.container_network.cidr,
        },
        "authentication": auth,
        "billingMode": spec.billing_mode,
        "kubernetesSvcIpRange": spec.kubernetes_svc_ip_range,
        "clusterTags": [{"key": k, "value": v} for k, v in spec.tags.items()],
        "kubeProxyMode": spec.kube_proxy_mode if spec.kube_proxy_mode in ("iptables", "ipvs") else "iptables",
        "extendParam": extend_param,
    }
    if spec.eni_network.subnets:
        body_spec["eniNetwork"] = {"subnets": [{"subnetID": s} for s in spec.eni_network.subnets]}

    return {
        "kind": "Cluster",
        "apiVersion": "v3",
        "metadata": {"name": spec.name, "labels": dict(spec.labels)},
        "spec": body_spec,
    }


def build_update_cluster_body(config: ClusterConfig) -> dict[str, Any]:
    spec = config.spec
    body_spec: dict[str, Any] = {"description": spec.description}
    if spec.host_network.security_group:
        body_spec["hostNetwork"] = {"SecurityGroup": spec.host_network.security_group}
    return {"metadata": {"alias": spec.name}, "spec": body_spec}


def build_upgrade_cluster_body(version: str) -> dict[str, Any]:
    return {
        "metadata": {"apiVersion": "v3", "kind": "UpgradeTask"},
        "spec": {
            "clusterUpgradeAction": {
                "strategy": {
                    "type": "inPlaceRollingUpdate",
                    "inPlaceRollingUpdate": {"userDefinedStep": 20},
                },
                "targetVersion": version,
            },
        },
    }


def _autoscaling_body(pool: NodePool) -> dict[str, Any]:
    a = pool.autoscaling
    return {
        "enable": a.enable,
        "minNodeCount": a.min_node_count,
        "maxNodeCount": a.max_node_count,
        "scaleDownCooldownTime": a.scale_down_cooldown_time,
        "priority": a.priority,
    }


def build_create_node_pool_body(pool: NodePool) -> dict[str, Any]:
    t = pool.node_template

    public_ip: dict[str, Any] = {}
    if t.public_ip.ids:
        public_ip["ids"] = list(t.public_ip.ids)
    if t.public_ip.count > 0:
        public_ip["count"] = t.public_ip.count
    if t.public_ip.eip.ip_type:
        bandwidth = t.public_ip.eip.bandwidth
        public_ip["eip"] = {
            "iptype": t.public_ip.eip.ip_type,
            "bandwidth": {
                "size": bandwidth.size,
                "sharetype": bandwidth.share_type or "PER",
                **({"chargemode": "traffic"} if bandwidth.charge_mode == "traffic" else {}),
            },
        }

    node_template: dict[str, Any] = {
        "flavor": t.flavor,
        "az": t.available_zone,
        "os": t.operating_system,
        "login": {"sshKey": t.ssh_key},
        "rootVolume": {"size": t.root_volume.size, "volumetype": t.root_volume.type},
        "dataVolumes": [{"size": v.size, "volumetype": v.type} for v in t.data_volumes],
        "publicIP": public_ip,
        "count": 1,
        "billingMode": t.billing_mode,
        "runtime": {"name": t.runtime if t.runtime in ("docker", "containerd") else "docker"},
        "extendParam": {
            "periodType": t.extend_param.period_type,
            "periodNum": t.extend_param.period_num,
            "isAutoRenew": t.extend_param.is_auto_renew,
        },
    }

    body_spec: dict[str, Any] = {
        "type": pool.type if pool.type in _NODE_POOL_TYPES else "vm",
        "nodeTemplate": node_template,
        "initialNodeCount": pool.initial_node_count,
        "autoscaling": _autoscaling_body(pool),
    }
    if pool.custom_security_groups:
        body_spec["customSecurityGroups"] = list(pool.custom_security_groups)
    if pool.pod_security_groups:
        body_spec["podSecurityGroups"] = [{"id": sg} for sg in pool.pod_security_groups]

    return {
        "kind": "NodePool",
        "apiVersion": "v3",
        "metadata": {"name": pool.name},
        "spec": body_spec,
    }


def build_update_node_pool_body(pool: NodePool) -> dict[str, Any]:
    return {
        "metadata": {"name": pool.name},
        "spec": {
            "nodeTemplate": {},
            "initialNodeCount": pool.initial_node_count,
            "autoscaling": _autoscaling_body(pool),
        },
    }


# =============================================================================
# Client
# =============================================================================


class CCEClient(ServiceClient):
    """Async client for the CCE v3 API.

    Returns TypedDicts straight from the API responses.
    """

    service = "cce"

    def _clusters(self, suffix: str = "") -> str:
        return f"/api/v3/projects/{self._project_id}/clusters{suffix}"

    async def list_clusters(self) -> list[Cluster]:
        result: ClusterList | None = await self._request("GET", self._clusters())
        return list((result or {}).get("items") or [])

    async def show_cluster(self, cluster_id: str) -> Cluster:
        result: Cluster | None = await self._request("GET", self._clusters(f"/{cluster_id}"))
        if not result or "metadata" not in result or "spec" not in result:
            raise InvalidResponseError(f"show cluster [{cluster_id}] returned invalid data")
        return result

    async def create_cluster(self, config: ClusterConfig) -> Cluster:
        self._log.debug("Creating cluster {name}", name=config.spec.name)
        result: Cluster | None = await self._request(
            "POST", self._clusters(), json=build_create_cluster_body(config)
        )
        if not result or not result.get("metadata", {}).get("uid"):
            raise InvalidResponseError("create cluster returned no cluster id")
        return result

    async def update_cluster(self, cluster_id: str, config: ClusterConfig) -> Cluster:
        return await self._request(
            "PUT", self._clusters(f"/{cluster_id}"), json=build_update_cluster_body(config)
        )

    async def delete_cluster(self, cluster_id: str) -> None:
        await self._request(
            "DELETE", self._clusters(f"/{cluster_id}"),
            params={"delete_efs": "true", "delete_evs": "true", "delete_net": "true"},
        )

    async def create_cluster_cert(self, cluster_id: str, duration: int = CERT_DURATION_DAYS) -> ClusterCert:
        if duration > MAX_CERT_DURATION_DAYS or duration < -1:
            raise ValueError(f"invalid duration {duration} (days), should be <= {MAX_CERT_DURATION_DAYS}")
        result: ClusterCert | None = await self._request(
            "POST", self._clusters(f"/{cluster_id}/clustercert"),
            json={"duration": duration or -1},
        )
        if not result:
            raise InvalidResponseError(f"cluster cert for [{cluster_id}] is empty")
        return result

    async def upgrade_cluster(self, cluster_id: str, version: str) -> UpgradeTask:
        result: UpgradeTask | None = await self._request(
            "POST", self._clusters(f"/{cluster_id}/operation/upgrade"),
            json=build_upgrade_cluster_body(version),
        )
        if not result or not result.get("metadata", {}).get("uid"):
            raise InvalidResponseError("upgrade cluster returned no task id")
        return result

    async def show_upgrade_task(self, cluster_id: str, task_id: str) -> UpgradeTask:
        return await self._request(
            "GET", self._clusters(f"/{cluster_id}/operation/upgrade/tasks/{task_id}")
        )

    # =========================================================================
    # Node pools and nodes
    # =========================================================================

    async def list_node_pools(self, cluster_id: str) -> list[NodePoolBody]:
        result: NodePoolList | None = await self._request(
            "GET", self._clusters(f"/{cluster_id}/nodepools")
        )
        if result is None or result.get("items") is None:
            raise InvalidResponseError(f"list node pools of [{cluster_id}] returned no items")
        return list(result["items"])

    async def create_node_pool(self, cluster_id: str, pool: NodePool) -> NodePoolBody:
        result: NodePoolBody | None = await self._request(
            "POST", self._clusters(f"/{cluster_id}/nodepools"),
            json=build_create_node_pool_body(pool),
        )
        if not result or not result.get("metadata", {}).get("uid"):
            raise InvalidResponseError(f"create node pool [{pool.name}] returned no id")
        return result

    async def update_node_pool(self, cluster_id: str, pool: NodePool) -> NodePoolBody:
        return await self._request(
            "PUT", self._clusters(f"/{cluster_id}/nodepools/{pool.id}"),
            json=build_update_node_pool_body(pool),
        )

    async def delete_node_pool(self, cluster_id: str, pool_id: str) -> None:
        await self._request("DELETE", self._clusters(f"/{cluster_id}/nodepools/{pool_id}"))

    async def list_nodes(self, cluster_id: str) -> NodeList:
        result: NodeList | None = await self._request("GET", self._clusters(f"/{cluster_id}/nodes"))
        if result is None or result.get("items") is None:
            raise InvalidResponseError(f"list nodes of [{cluster_id}] returned no items")
        return result
