"""Rebuild observed CCE state into the shape of the desired spec, and compare pools."""

from __future__ import annotations

from collections import Counter
from urllib.parse import urlsplit

from cce_operator.api.types import (
    AuthenticatingProxy,
    Authentication,
    Autoscaling,
    Bandwidth,
    ClusterSpec,
    ContainerNetwork,
    Eip,
    Endpoint,
    HostNetwork,
    NodeExtendParam,
    NodePool,
    NodePublicIP,
    NodeTemplate,
    Volume,
)
from cce_operator.exceptions import InvalidResponseError
from cce_operator.huawei.types import Cluster, NodePoolBody

EXTERNAL_ENDPOINT = "External"


def build_upstream_cluster_state(cluster: Cluster, node_pools: list[NodePoolBody]) -> ClusterSpec:
    """Observed cluster and node pools as a ClusterSpec."""
    metadata, spec = cluster.get("metadata"), cluster.get("spec")
    if not metadata or not spec:
        raise InvalidResponseError("cluster from CCE API is missing metadata or spec")

    host = spec.get("hostNetwork") or {}
    container = spec.get("containerNetwork") or {}
    auth = spec.get("authentication") or {}
    proxy = auth.get("authenticatingProxy") or {}

    return ClusterSpec(
        name=metadata.get("name", ""),
        cluster_id=metadata.get("uid", ""),
        labels=dict(metadata.get("labels") or {}),
        category=spec.get("category", ""),
        type=spec.get("type", ""),
        flavor=spec.get("flavor", ""),
        version=spec.get("version", ""),
        description=spec.get("description", ""),
        billing_mode=int(spec.get("billingMode") or 0),
        kubernetes_svc_ip_range=spec.get("kubernetesSvcIpRange", ""),
        kube_proxy_mode=spec.get("kubeProxyMode", ""),
        host_network=HostNetwork(
            vpc_id=host.get("vpc", ""),
            subnet_id=host.get("subnet", ""),
            security_group=host.get("SecurityGroup", ""),
        ),
        container_network=ContainerNetwork(
            mode=container.get("mode", ""),
            cidr=container.get("cidr", ""),
        ),
        authentication=Authentication(
            mode=str(auth.get("mode") or ""),
            authenticating_proxy=AuthenticatingProxy(ca=str(proxy.get("ca") or "")),
        ),
        node_pools=tuple(build_upstream_node_pool(np) for np in node_pools if np.get("metadata")),
    )


def build_upstream_node_pool(body: NodePoolBody) -> NodePool:
    spec = body.get("spec") or {}
    template = spec.get("nodeTemplate") or {}
    root = template.get("rootVolume") or {}
    public_ip = template.get("publicIP") or {}
    eip = public_ip.get("eip") or {}
    bandwidth = eip.get("bandwidth") or {}
    extend = template.get("extendParam") or {}
    autoscaling = spec.get("autoscaling") or {}

    return NodePool(
        name=body["metadata"].get("name", ""),
        id=body["metadata"].get("uid", ""),
        type=spec.get("type", ""),
        node_template=NodeTemplate(
            flavor=template.get("flavor", ""),
            available_zone=template.get("az", ""),
            operating_system=template.get("os", ""),
            ssh_key=(template.get("login") or {}).get("sshKey", ""),
            root_volume=Volume(size=int(root.get("size") or 0), type=root.get("volumetype", "")),
            data_volumes=tuple(
                Volume(size=int(v.get("size") or 0), type=v.get("volumetype", ""))
                for v in template.get("dataVolumes") or []
            ),
            public_ip=NodePublicIP(
                ids=tuple(public_ip.get("ids") or ()),
                count=int(public_ip.get("count") or 0),
                eip=Eip(
                    ip_type=eip.get("iptype", ""),
                    bandwidth=Bandwidth(
                        charge_mode=bandwidth.get("chargemode", ""),
                        size=int(bandwidth.get("size") or 0),
                        share_type=bandwidth.get("sharetype", ""),
                    ),
                ),
            ),
            count=int(template.get("count") or 0),
            billing_mode=int(template.get("billingMode") or 0),
            runtime=(template.get("runtime") or {}).get("name", ""),
            extend_param=NodeExtendParam(
                period_type=extend.get("periodType", ""),
                period_num=int(extend.get("periodNum") or 0),
                is_auto_renew=str(extend.get("isAutoRenew") or ""),
            ),
        ),
        initial_node_count=int(spec.get("initialNodeCount") or 0),
        autoscaling=Autoscaling(
            enable=bool(autoscaling.get("enable")),
            min_node_count=int(autoscaling.get("minNodeCount") or 0),
            max_node_count=int(autoscaling.get("maxNodeCount") or 0),
            scale_down_cooldown_time=int(autoscaling.get("scaleDownCooldownTime") or 0),
            priority=int(autoscaling.get("priority") or 0),
        ),
        pod_security_groups=tuple(sg.get("id", "") for sg in spec.get("podSecurityGroups") or []),
        custom_security_groups=tuple(spec.get("customSecurityGroups") or ()),
    )


def compare_volume(a: Volume, b: Volume) -> bool:
    return a.size == b.size and a.type == b.type


def compare_node_pool(a: NodePool, b: NodePool) -> bool:
    """Identity equality of two pools, ignoring name and id.

    Data volumes are compared as a multiset.
    """
    ta, tb = a.node_template, b.node_template
    if (
        ta.flavor != tb.flavor
        or ta.available_zone != tb.available_zone
        or ta.ssh_key != tb.ssh_key
        or ta.billing_mode != tb.billing_mode
        or ta.operating_system != tb.operating_system
    ):
        return False
    if not compare_volume(ta.root_volume, tb.root_volume):
        return False
    if len(ta.data_volumes) != len(tb.data_volumes):
        return False
    return Counter(ta.data_volumes) == Counter(tb.data_volumes)


def cluster_endpoints(cluster: Cluster) -> tuple[Endpoint, ...]:
    return tuple(
        Endpoint(url=e.get("url", ""), type=e.get("type", ""))
        for e in (cluster.get("status") or {}).get("endpoints") or []
    )


def external_ip(cluster: Cluster) -> str:
    """Hostname of the cluster's External endpoint, or empty."""
    address = ""
    for endpoint in cluster_endpoints(cluster):
        if endpoint.type != EXTERNAL_ENDPOINT or not endpoint.url:
            continue
        try:
            address = urlsplit(endpoint.url).hostname or ""
        except ValueError:
            continue
    return address
