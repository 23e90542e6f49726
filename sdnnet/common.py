"""Parsed cluster network configuration and consistency checks."""

from __future__ import annotations

import ipaddress
import json
import logging
import socket
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

import psutil

from sdnnet.errors import AggregateError, aggregate
from sdnnet.models import CLUSTER_NETWORK_DEFAULT, ClusterNetwork, HostSubnet, Pod, Service
from sdnnet.validation import (
    IPAddress,
    IPNetwork,
    _contains,
    _parse_cidr,
    _parse_ip,
    cidrs_overlap,
    parse_cidr_mask,
    validate_cluster_network,
)

log = logging.getLogger(__name__)

DEFAULT_VXLAN_PORT = 4789
DEFAULT_MTU = 1450
MAX_REPORTED_ERRORS = 10


def _ip_or_none(text: str) -> Optional[IPAddress]:
    try:
        return _parse_ip(text)
    except ValueError:
        return None


def _raise_if_any(errors: List[Exception]) -> None:
    if errors:
        raise aggregate(errors)


@dataclass
class ParsedClusterNetworkEntry:
    """One cluster CIDR with the size of the per-node subnets taken from it."""

    cluster_cidr: IPNetwork
    host_subnet_length: int = 0


@dataclass(kw_only=True)
class ParsedClusterNetwork:
    """A ClusterNetwork with its CIDRs parsed and its defaults filled in."""

    cluster_networks: List[ParsedClusterNetworkEntry] = field(default_factory=list)
    service_network: IPNetwork
    plugin_name: str = ""
    vxlan_port: int = DEFAULT_VXLAN_PORT
    mtu: int = DEFAULT_MTU

    def validate_node_ip(self, node_ip: str) -> None:
        """Raise ValueError if node_ip is unusable or lies inside a cluster or service network."""
        if node_ip in ("", "127.0.0.1"):
            raise ValueError(f"invalid node IP {json.dumps(node_ip)}")
        # A node IP inside the cluster network could cause a routing loop.
        ipaddr = _ip_or_none(node_ip)
        if ipaddr is None:
            raise ValueError(f"failed to parse node IP {node_ip}")
        conflicting = cluster_network_list_contains(self.cluster_networks, ipaddr)
        if conflicting is not None:
            raise ValueError(f"node IP {node_ip} conflicts with cluster network {conflicting}")
        if _contains(self.service_network, ipaddr):
            raise ValueError(f"node IP {node_ip} conflicts with service network {self.service_network}")

    def check_host_networks(self, host_ip_nets: Iterable[IPNetwork]) -> None:
        """Raise AggregateError if any host network overlaps a cluster or service network."""
        errors: List[Exception] = []
        for ip_net in host_ip_nets:
            errors += [
                ValueError(f"cluster IP: {e.cluster_cidr.network_address} conflicts with host network: {ip_net}")
                for e in self.cluster_networks
                if cidrs_overlap(str(ip_net), str(e.cluster_cidr))
            ]
            if cidrs_overlap(str(ip_net), str(self.service_network)):
                errors.append(ValueError(f"service IP: {self.service_network} conflicts with host network: {ip_net}"))
        _raise_if_any(errors)

    def check_cluster_objects(
        self, subnets: Sequence[HostSubnet], pods: Sequence[Pod], services: Sequence[Service]
    ) -> None:
        """Raise AggregateError if existing objects fall outside the configured networks."""
        errors: List[Exception] = []

        for subnet in subnets:
            try:
                subnet_ip, _ = _parse_cidr(subnet.subnet)
            except ValueError:
                errors.append(ValueError(f"failed to parse network address: {subnet.subnet}"))
            else:
                if cluster_network_list_contains(self.cluster_networks, subnet_ip) is None:
                    errors.append(ValueError(
                        f"existing node subnet: {subnet.subnet} is not part of any cluster network CIDR"))
            if len(errors) >= MAX_REPORTED_ERRORS:
                break

        for pod in pods:
            if pod.host_network or pod.pod_ip == "":
                continue
            if cluster_network_list_contains(self.cluster_networks, _ip_or_none(pod.pod_ip)) is None:
                errors.append(ValueError(
                    f"existing pod {pod.namespace}:{pod.name} with IP {pod.pod_ip} is not part of cluster network"))
                if len(errors) >= MAX_REPORTED_ERRORS:
                    break

        for svc in services:
            svc_ip = _ip_or_none(svc.cluster_ip)
            if svc_ip is not None and not _contains(self.service_network, svc_ip):
                errors.append(ValueError(
                    f"existing service {svc.namespace}:{svc.name} with IP {svc.cluster_ip} "
                    f"is not part of service network {self.service_network}"))
                if len(errors) >= MAX_REPORTED_ERRORS:
                    break

        if len(errors) >= MAX_REPORTED_ERRORS:
            errors.append(ValueError("too many errors... truncating"))
        _raise_if_any(errors)


def host_subnet_to_string(subnet: HostSubnet) -> str:
    """Describe a HostSubnet in one line."""
    q = json.dumps
    return f"{subnet.name} (host: {q(subnet.host)}, ip: {q(subnet.host_ip)}, subnet: {q(subnet.subnet)})"


def cluster_network_to_string(n: ClusterNetwork) -> str:
    """Describe a ClusterNetwork in one line."""
    q = json.dumps
    return (f"{n.name} (network: {q(n.network)}, hostSubnetBits: {n.host_subnet_length}, "
            f"serviceNetwork: {q(n.service_network)}, pluginName: {q(n.plugin_name)})")


def cluster_network_list_contains(
    cluster_networks: Iterable[ParsedClusterNetworkEntry], ipaddr: Optional[IPAddress]
) -> Optional[IPNetwork]:
    """Return the first cluster CIDR holding ipaddr, or None."""
    return next((e.cluster_cidr for e in cluster_networks if _contains(e.cluster_cidr, ipaddr)), None)


def _parse_network(cidr: str, what: str, setting: str) -> IPNetwork:
    try:
        return parse_cidr_mask(cidr)
    except ValueError:
        pass
    try:
        _, network = _parse_cidr(cidr)
    except ValueError as exc:
        raise ValueError(f"failed to parse {what} CIDR {cidr}: {exc}") from None
    log.error("Configured %s value %s is invalid; treating it as %s", setting, json.dumps(cidr), json.dumps(str(network)))
    return network


def parse_cluster_network(cn: ClusterNetwork) -> ParsedClusterNetwork:
    """Parse the CIDRs of a ClusterNetwork; raise ValueError if one cannot be parsed."""
    return ParsedClusterNetwork(
        plugin_name=cn.plugin_name,
        cluster_networks=[
            ParsedClusterNetworkEntry(_parse_network(e.cidr, "ClusterNetwork", "clusterNetworks"), e.host_subnet_length)
            for e in cn.cluster_networks
        ],
        service_network=_parse_network(cn.service_network, "ServiceNetwork", "serviceNetworkCIDR"),
        vxlan_port=DEFAULT_VXLAN_PORT if cn.vxlan_port is None else cn.vxlan_port,
        mtu=DEFAULT_MTU if cn.mtu is None else cn.mtu,
    )


def get_parsed_cluster_network(network_client) -> ParsedClusterNetwork:
    """Fetch the default ClusterNetwork through network_client, validate it and parse it."""
    cn = network_client.get_cluster_network(CLUSTER_NETWORK_DEFAULT)
    try:
        validate_cluster_network(cn)
    except AggregateError as exc:
        raise ValueError(f"ClusterNetwork is invalid ({exc})") from exc
    return parse_cluster_network(cn)


def generate_default_gateway(sna: ipaddress.IPv4Network) -> ipaddress.IPv4Address:
    """Return the default gateway of a subnet: its network address with the lowest bit set."""
    return ipaddress.IPv4Address(int(sna.network_address) | 0x1)


def get_host_ip_networks(
    skip_interfaces: Iterable[str],
) -> Tuple[List[ipaddress.IPv4Network], List[ipaddress.IPv4Address]]:
    """Return the non-loopback IPv4 networks and addresses of this host's interfaces."""
    skip = set(skip_interfaces)
    errors: List[Exception] = []
    host_ip_nets: List[ipaddress.IPv4Network] = []
    host_ips: List[ipaddress.IPv4Address] = []

    for name, addrs in psutil.net_if_addrs().items():
        if name in skip:
            continue
        for addr in addrs:
            if addr.family != socket.AF_INET:
                continue
            try:
                iface = ipaddress.IPv4Interface(f"{addr.address}/{addr.netmask}")
            except ValueError as exc:
                errors.append(exc)
                continue
            if not iface.ip.is_loopback:
                host_ip_nets.append(iface.network)
                host_ips.append(iface.ip)

    _raise_if_any(errors)
    return host_ip_nets, host_ips