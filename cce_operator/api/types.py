"""CCEClusterConfig record types.

Immutable value objects mirroring the ``cce.pandaria.io/v1`` custom resource.
JSON keys are the camelCase form of the attribute name unless a field carries
an explicit ``json`` entry in its metadata.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any

GROUP = "cce.pandaria.io"
VERSION = "v1"
API_VERSION = f"{GROUP}/{VERSION}"
KIND = "CCEClusterConfig"
PLURAL = "cceclusterconfigs"
FINALIZER = f"{GROUP}/cce-operator"


def json_name(name: str) -> dict[str, Any]:
    return {"json": name}


class Phase(StrEnum):
    NOT_CREATED = ""
    IMPORTING = "importing"
    CREATING = "creating"
    ACTIVE = "active"
    UPDATING = "updating"


# =============================================================================
# Networking
# =============================================================================


@dataclass(frozen=True, slots=True)
class HostNetwork:
    vpc_id: str = field(default="", metadata=json_name("vpcID"))
    subnet_id: str = field(default="", metadata=json_name("subnetID"))
    security_group: str = ""


@dataclass(frozen=True, slots=True)
class ContainerNetwork:
    mode: str = ""
    cidr: str = ""


@dataclass(frozen=True, slots=True)
class EniNetwork:
    subnets: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Bandwidth:
    charge_mode: str = ""
    size: int = 0
    share_type: str = ""


@dataclass(frozen=True, slots=True)
class Eip:
    ip_type: str = ""
    bandwidth: Bandwidth = field(default_factory=Bandwidth)


@dataclass(frozen=True, slots=True)
class ClusterPublicIP:
    create_eip: bool = field(default=False, metadata=json_name("createEIP"))
    eip: Eip = field(default_factory=Eip)


@dataclass(frozen=True, slots=True)
class NatGateway:
    enabled: bool = False
    existing_eip_id: str = field(default="", metadata=json_name("existingEIPID"))
    snat_rule_eip: Eip = field(default_factory=Eip, metadata=json_name("sNatRuleEIP"))


@dataclass(frozen=True, slots=True)
class Endpoint:
    url: str = ""
    type: str = ""


# =============================================================================
# Cluster settings
# =============================================================================


@dataclass(frozen=True, slots=True)
class AuthenticatingProxy:
    ca: str = ""
    cert: str = ""
    private_key: str = ""


@dataclass(frozen=True, slots=True)
class Authentication:
    mode: str = ""
    authenticating_proxy: AuthenticatingProxy = field(default_factory=AuthenticatingProxy)


@dataclass(frozen=True, slots=True)
class ClusterExtendParam:
    cluster_az: str = field(default="", metadata=json_name("clusterAZ"))
    cluster_external_ip: str = field(default="", metadata=json_name("clusterExternalIP"))
    period_type: str = ""
    period_num: int = 0
    is_auto_renew: str = ""
    is_auto_pay: str = ""


# =============================================================================
# Node pools
# =============================================================================


@dataclass(frozen=True, slots=True)
class Volume:
    size: int = 0
    type: str = ""


@dataclass(frozen=True, slots=True)
class NodePublicIP:
    ids: tuple[str, ...] = ()
    count: int = 0
    eip: Eip = field(default_factory=Eip)


@dataclass(frozen=True, slots=True)
class NodeExtendParam:
    period_type: str = ""
    period_num: int = 0
    is_auto_renew: str = ""


@dataclass(frozen=True, slots=True)
class NodeTemplate:
    flavor: str = ""
    available_zone: str = ""
    operating_system: str = ""
    ssh_key: str = field(default="", metadata=json_name("sshKey"))
    root_volume: Volume = field(default_factory=Volume)
    data_volumes: tuple[Volume, ...] = ()
    public_ip: NodePublicIP = field(default_factory=NodePublicIP, metadata=json_name("publicIP"))
    count: int = 0
    billing_mode: int = 0
    runtime: str = ""
    extend_param: NodeExtendParam = field(default_factory=NodeExtendParam)


@dataclass(frozen=True, slots=True)
class Autoscaling:
    enable: bool = False
    min_node_count: int = 0
    max_node_count: int = 0
    scale_down_cooldown_time: int = 0
    priority: int = 0


@dataclass(frozen=True, slots=True)
class NodePool:
    name: str = ""
    type: str = ""
    id: str = field(default="", metadata=json_name("nodeID"))
    node_template: NodeTemplate = field(default_factory=NodeTemplate)
    initial_node_count: int = 0
    autoscaling: Autoscaling = field(default_factory=Autoscaling)
    pod_security_groups: tuple[str, ...] = ()
    custom_security_groups: tuple[str, ...] = ()


# =============================================================================
# Record
# =============================================================================


@dataclass(frozen=True, slots=True)
class OwnerReference:
    api_version: str
    kind: str
    name: str
    uid: str


@dataclass(frozen=True, slots=True)
class ObjectMeta:
    name: str = ""
    namespace: str = ""
    uid: str = ""
    resource_version: str = ""
    generation: int = 0
    deletion_timestamp: str | None = None
    finalizers: tuple[str, ...] = ()
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    owner_references: tuple[OwnerReference, ...] = ()


@dataclass(frozen=True, slots=True)
class ClusterSpec:
    credential_secret: str = field(default="", metadata=json_name("huaweiCredentialSecret"))
    category: str = ""
    region_id: str = field(default="", metadata=json_name("regionID"))
    cluster_id: str = field(default="", metadata=json_name("clusterID"))
    imported: bool = False
    name: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    type: str = ""
    flavor: str = ""
    version: str = ""
    description: str = ""
    ipv6_enable: bool = False
    host_network: HostNetwork = field(default_factory=HostNetwork)
    container_network: ContainerNetwork = field(default_factory=ContainerNetwork)
    eni_network: EniNetwork = field(default_factory=EniNetwork)
    authentication: Authentication = field(default_factory=Authentication)
    billing_mode: int = field(default=0, metadata=json_name("clusterBillingMode"))
    kubernetes_svc_ip_range: str = field(default="", metadata=json_name("kubernetesSvcIPRange"))
    tags: dict[str, str] = field(default_factory=dict)
    kube_proxy_mode: str = ""
    public_access: bool = False
    public_ip: ClusterPublicIP = field(default_factory=ClusterPublicIP, metadata=json_name("publicIP"))
    nat_gateway: NatGateway = field(default_factory=NatGateway)
    extend_param: ClusterExtendParam = field(default_factory=ClusterExtendParam)
    node_pools: tuple[NodePool, ...] = ()


@dataclass(frozen=True, slots=True)
class ClusterStatus:
    phase: Phase = Phase.NOT_CREATED
    failure_message: str = ""
    cluster_id: str = field(default="", metadata=json_name("clusterID"))
    host_network: HostNetwork = field(default_factory=HostNetwork)
    container_network: ContainerNetwork = field(default_factory=ContainerNetwork)
    node_pools: tuple[NodePool, ...] = ()
    available_zone: str = ""
    endpoints: tuple[Endpoint, ...] = ()
    cluster_external_ip: str = field(default="", metadata=json_name("clusterExternalIP"))
    upgrade_cluster_task_id: str = field(default="", metadata=json_name("upgradeClusterTaskID"))
    created_cluster_eip_id: str = field(default="", metadata=json_name("createdClusterEIPID"))
    created_vpc_id: str = field(default="", metadata=json_name("createdVpcID"))
    created_subnet_id: str = field(default="", metadata=json_name("createdSubnetID"))
    created_nat_gateway_id: str = field(default="", metadata=json_name("createdNatGatewayID"))
    created_snat_rule_id: str = field(default="", metadata=json_name("createdSNATRuleID"))
    created_snat_rule_eip_id: str = field(default="", metadata=json_name("createdSNatRuleEIPID"))


@dataclass(frozen=True, slots=True)
class ClusterConfig:
    """A CCEClusterConfig record: metadata, desired spec and observed status."""

    metadata: ObjectMeta
    spec: ClusterSpec = field(default_factory=ClusterSpec)
    status: ClusterStatus = field(default_factory=ClusterStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def key(self) -> str:
        return f"{self.metadata.namespace}/{self.metadata.name}"

    @property
    def deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    def with_spec(self, **changes: Any) -> ClusterConfig:
        return replace(self, spec=replace(self.spec, **changes))

    def with_status(self, **changes: Any) -> ClusterConfig:
        return replace(self, status=replace(self.status, **changes))

    def with_metadata(self, **changes: Any) -> ClusterConfig:
        return replace(self, metadata=replace(self.metadata, **changes))

    def owner_reference(self) -> OwnerReference:
        return OwnerReference(api_version=API_VERSION, kind=KIND, name=self.name, uid=self.metadata.uid)


def split_key(key: str) -> tuple[str, str]:
    namespace, _, name = key.rpartition("/")
    return namespace, name
