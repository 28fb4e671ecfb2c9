"""CCEClusterConfig record model."""

from .serde import config_from_dict, config_to_dict, from_dict, to_dict
from .types import (
    FINALIZER,
    KIND,
    Authentication,
    Autoscaling,
    Bandwidth,
    ClusterConfig,
    ClusterExtendParam,
    ClusterPublicIP,
    ClusterSpec,
    ClusterStatus,
    ContainerNetwork,
    Eip,
    Endpoint,
    HostNetwork,
    NatGateway,
    NodePool,
    NodePublicIP,
    NodeTemplate,
    ObjectMeta,
    Phase,
    Volume,
)

__all__ = [
    "FINALIZER",
    "KIND",
    "Authentication",
    "Autoscaling",
    "Bandwidth",
    "ClusterConfig",
    "ClusterExtendParam",
    "ClusterPublicIP",
    "ClusterSpec",
    "ClusterStatus",
    "ContainerNetwork",
    "Eip",
    "Endpoint",
    "HostNetwork",
    "NatGateway",
    "NodePool",
    "NodePublicIP",
    "NodeTemplate",
    "ObjectMeta",
    "Phase",
    "Volume",
    "config_from_dict",
    "config_to_dict",
    "from_dict",
    "to_dict",
]
