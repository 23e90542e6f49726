"""Plain data objects describing the cluster network resources."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Dict, List, Optional

CLUSTER_NETWORK_DEFAULT = "default"
ASSIGN_HOST_SUBNET_ANNOTATION = "pod.network.openshift.io/assign-subnet"


@dataclass
class ClusterNetworkEntry:
    """One cluster CIDR and the size of the subnets carved out of it."""

    cidr: str
    host_subnet_length: int = 0


@dataclass(kw_only=True)
class ClusterNetwork:
    """The cluster-wide network configuration."""

    name: str = ""
    network: str = ""
    host_subnet_length: int = 0
    service_network: str = ""
    plugin_name: str = ""
    cluster_networks: List[ClusterNetworkEntry] = field(default_factory=list)
    vxlan_port: Optional[int] = None
    mtu: Optional[int] = None
    annotations: Dict[str, str] = field(default_factory=dict)


@dataclass(kw_only=True)
class HostSubnet:
    """The subnet allocated to one node, and its egress settings."""

    name: str = ""
    uid: str = ""
    host: str = ""
    host_ip: str = ""
    subnet: str = ""
    egress_ips: List[str] = field(default_factory=list)
    egress_cidrs: List[str] = field(default_factory=list)
    annotations: Dict[str, str] = field(default_factory=dict)

    def deep_copy(self) -> "HostSubnet":
        """Return a copy that shares no mutable state with this one."""
        return copy.deepcopy(self)


@dataclass(kw_only=True)
class NetNamespace:
    """The network identity of one namespace."""

    name: str = ""
    uid: str = ""
    net_name: str = ""
    net_id: int = 0
    egress_ips: List[str] = field(default_factory=list)


@dataclass(kw_only=True)
class Pod:
    """The parts of a pod that matter to network checks."""

    namespace: str = ""
    name: str = ""
    pod_ip: str = ""
    host_network: bool = False


@dataclass(kw_only=True)
class Service:
    """The parts of a service that matter to network checks."""

    namespace: str = ""
    name: str = ""
    cluster_ip: str = ""


@dataclass(kw_only=True)
class EgressNetworkPolicyPeer:
    """The destination of an egress rule: a CIDR or a DNS name."""

    cidr_selector: str = ""
    dns_name: str = ""


@dataclass(kw_only=True)
class EgressNetworkPolicyRule:
    """One allow or deny rule of an egress policy."""

    type: str = "Allow"
    to: EgressNetworkPolicyPeer = field(default_factory=EgressNetworkPolicyPeer)


@dataclass(kw_only=True)
class EgressNetworkPolicy:
    """Egress rules for one namespace."""

    name: str = ""
    namespace: str = ""
    uid: str = ""
    egress: List[EgressNetworkPolicyRule] = field(default_factory=list)