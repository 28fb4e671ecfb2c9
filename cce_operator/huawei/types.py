"""Huawei Cloud API response types.

TypedDicts for the parts of the responses the controller reads.
"""

from __future__ import annotations

from typing import NotRequired, TypedDict

# =============================================================================
# CCE
# =============================================================================


class Metadata(TypedDict):
    name: NotRequired[str]
    uid: NotRequired[str]
    alias: NotRequired[str]
    labels: NotRequired[dict[str, str]]


class ClusterHostNetwork(TypedDict):
    vpc: str
    subnet: str
    SecurityGroup: NotRequired[str]


class ClusterContainerNetwork(TypedDict):
    mode: str
    cidr: NotRequired[str]


class ClusterSpecBody(TypedDict):
    category: NotRequired[str]
    type: NotRequired[str]
    flavor: str
    version: NotRequired[str]
    description: NotRequired[str]
    az: NotRequired[str]
    billingMode: NotRequired[int]
    kubernetesSvcIpRange: NotRequired[str]
    kubeProxyMode: NotRequired[str]
    hostNetwork: NotRequired[ClusterHostNetwork]
    containerNetwork: NotRequired[ClusterContainerNetwork]
    authentication: NotRequired[dict[str, object]]


class ClusterEndpoint(TypedDict):
    url: NotRequired[str]
    type: NotRequired[str]


class ClusterStatusBody(TypedDict):
    phase: NotRequired[str]
    reason: NotRequired[str]
    message: NotRequired[str]
    endpoints: NotRequired[list[ClusterEndpoint]]


class Cluster(TypedDict):
    kind: NotRequired[str]
    apiVersion: NotRequired[str]
    metadata: Metadata
    spec: ClusterSpecBody
    status: NotRequired[ClusterStatusBody]


class ClusterList(TypedDict):
    items: list[Cluster]


class VolumeBody(TypedDict):
    size: int
    volumetype: str


class NodeSpecBody(TypedDict):
    flavor: str
    az: str
    os: NotRequired[str]
    login: NotRequired[dict[str, str]]
    rootVolume: NotRequired[VolumeBody]
    dataVolumes: NotRequired[list[VolumeBody]]
    publicIP: NotRequired[dict[str, object]]
    count: NotRequired[int]
    billingMode: NotRequired[int]
    runtime: NotRequired[dict[str, str]]


class NodePoolAutoscalingBody(TypedDict):
    enable: NotRequired[bool]
    minNodeCount: NotRequired[int]
    maxNodeCount: NotRequired[int]
    scaleDownCooldownTime: NotRequired[int]
    priority: NotRequired[int]


class NodePoolSpecBody(TypedDict):
    type: NotRequired[str]
    nodeTemplate: NodeSpecBody
    initialNodeCount: NotRequired[int]
    autoscaling: NotRequired[NodePoolAutoscalingBody]
    podSecurityGroups: NotRequired[list[dict[str, str]]]
    customSecurityGroups: NotRequired[list[str]]


class NodePoolStatusBody(TypedDict):
    phase: NotRequired[str]
    currentNode: NotRequired[int]


class NodePoolBody(TypedDict):
    kind: NotRequired[str]
    apiVersion: NotRequired[str]
    metadata: Metadata
    spec: NodePoolSpecBody
    status: NotRequired[NodePoolStatusBody]


class NodePoolList(TypedDict):
    items: list[NodePoolBody]


class NodeBody(TypedDict):
    metadata: Metadata
    status: NotRequired[dict[str, str]]


class NodeList(TypedDict):
    items: list[NodeBody]


class KubeconfigCluster(TypedDict):
    server: str
    certificate_authority_data: NotRequired[str]


class NamedKubeconfigCluster(TypedDict):
    name: str
    cluster: dict[str, str]


class ClusterCert(TypedDict):
    clusters: list[NamedKubeconfigCluster]


class UpgradeTask(TypedDict):
    metadata: Metadata
    spec: NotRequired[dict[str, object]]
    status: NotRequired[dict[str, str]]


# =============================================================================
# Networking
# =============================================================================


class Vpc(TypedDict):
    id: str
    name: NotRequired[str]
    cidr: NotRequired[str]
    status: NotRequired[str]


class Subnet(TypedDict):
    id: str
    name: NotRequired[str]
    cidr: NotRequired[str]
    vpc_id: NotRequired[str]
    status: NotRequired[str]


class PublicIP(TypedDict):
    id: str
    public_ip_address: NotRequired[str]
    alias: NotRequired[str]
    status: NotRequired[str]


class NsRecord(TypedDict):
    address: NotRequired[str]
    priority: NotRequired[int]


class NameServer(TypedDict):
    type: NotRequired[str]
    region: NotRequired[str]
    ns_records: NotRequired[list[NsRecord]]


class NatGatewayBody(TypedDict):
    id: str
    name: NotRequired[str]
    status: NotRequired[str]
    router_id: NotRequired[str]
    internal_network_id: NotRequired[str]


class SnatRule(TypedDict):
    id: str
    nat_gateway_id: NotRequired[str]
    floating_ip_id: NotRequired[str]
    status: NotRequired[str]


class EndpointService(TypedDict):
    id: str
    service_name: NotRequired[str]
    vpc_id: NotRequired[str]
    status: NotRequired[str]


class LoadBalancer(TypedDict):
    id: str
    name: NotRequired[str]
    vip_address: NotRequired[str]
    vip_subnet_id: NotRequired[str]
    provisioning_status: NotRequired[str]
