"""Validation of ClusterNetwork and HostSubnet objects, and CIDR helpers."""

from __future__ import annotations

import ipaddress
import re
from typing import List, Optional, Tuple, Union

from sdnnet.errors import INVALID, REQUIRED, FieldError, aggregate
from sdnnet.models import ASSIGN_HOST_SUBNET_ANNOTATION, CLUSTER_NETWORK_DEFAULT, ClusterNetwork, HostSubnet

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

_PREFIX_RE = re.compile(r"[0-9]{1,3}")


def _parse_ip(text: str) -> IPAddress:
    if "%" in text:
        raise ValueError(f"invalid IP address: {text}")
    return ipaddress.ip_address(text)


def _parse_cidr(cidr: str) -> Tuple[IPAddress, IPNetwork]:
    """Parse "address/prefix" into the address and the network holding it."""
    address, sep, prefix = cidr.partition("/")
    try:
        ip = _parse_ip(address)
    except ValueError:
        ip = None
    if ip is None or not sep or not _PREFIX_RE.fullmatch(prefix) or int(prefix) > ip.max_prefixlen:
        raise ValueError(f"invalid CIDR address: {cidr}")
    return ip, ipaddress.ip_network(f"{ip}/{prefix}", strict=False)


def _contains(network: IPNetwork, ip: Optional[IPAddress]) -> bool:
    return ip is not None and ip.version == network.version and ip in network


def _networks_overlap(net1: IPNetwork, net2: IPNetwork) -> bool:
    return _contains(net1, net2.network_address) or _contains(net2, net1.network_address)


def parse_cidr_mask(cidr: str) -> IPNetwork:
    """Parse a CIDR that must name a network address, not a host inside it."""
    ip, network = _parse_cidr(cidr)
    if ip != network.network_address:
        raise ValueError(
            f'CIDR network specification "{cidr}" is not in canonical form '
            f"(should be {network.network_address}/{network.prefixlen} or {network})"
        )
    return network


def _validate_cidr_v4(cidr: str) -> IPNetwork:
    network = parse_cidr_mask(cidr)
    if network.version != 4:
        raise ValueError("must be an IPv4 network")
    return network


def _validate_ipv4(ip: str) -> IPAddress:
    try:
        parsed = _parse_ip(ip)
    except ValueError:
        raise ValueError("invalid IP address") from None
    if parsed.version != 4:
        raise ValueError("must be an IPv4 address")
    return parsed


def _invalid(path: str, value: object, detail: str) -> FieldError:
    return FieldError(INVALID, path, value, detail)


def _validate_object_meta(name: str) -> List[FieldError]:
    if not name:
        return [FieldError(REQUIRED, "metadata.name", detail="name or generateName is required")]
    errs = [_invalid("metadata.name", name, f"may not be '{name}'")] if name in (".", "..") else []
    errs.extend(_invalid("metadata.name", name, f"may not contain '{c}'") for c in "/%" if c in name)
    return errs


def _check_subnet_length(network: IPNetwork, length: int, path: str, too_large: str) -> List[FieldError]:
    if length > network.max_prefixlen - network.prefixlen:
        return [_invalid(path, length, too_large)]
    if length < 2:
        return [_invalid(path, length, "subnet length must be at least 2")]
    return []


def validate_cluster_network(cluster_net: ClusterNetwork) -> None:
    """Check a ClusterNetwork; raise AggregateError listing every problem found."""
    errs = _validate_object_meta(cluster_net.name)
    service = cluster_net.service_network
    try:
        service_net: Optional[IPNetwork] = _validate_cidr_v4(service)
    except ValueError as exc:
        service_net = None
        errs.append(_invalid("serviceNetwork", service, str(exc)))

    def overlaps_service(network: IPNetwork) -> bool:
        return service_net is not None and _networks_overlap(network, service_net)

    entries = cluster_net.cluster_networks
    if not entries:
        if cluster_net.network == "":
            errs.append(FieldError(REQUIRED, "network", detail="network must be set (if clusterNetworks is empty)"))
        elif cluster_net.host_subnet_length == 0:
            detail = "hostsubnetlength must be set (if clusterNetworks is empty)"
            errs.append(FieldError(REQUIRED, "hostsubnetlength", detail=detail))
        else:
            try:
                cluster_ipnet = _validate_cidr_v4(cluster_net.network)
            except ValueError as exc:
                errs.append(_invalid("network", cluster_net.network, str(exc)))
            else:
                errs += _check_subnet_length(
                    cluster_ipnet, cluster_net.host_subnet_length, "hostsubnetlength",
                    "subnet length is too large for cidr",
                )
                if overlaps_service(cluster_ipnet):
                    errs.append(_invalid("serviceNetwork", service, "service network overlaps with cluster network"))
    else:
        first = entries[0]
        if cluster_net.name == CLUSTER_NETWORK_DEFAULT:
            if cluster_net.network != first.cidr:
                errs.append(_invalid("network", cluster_net.network,
                                     "network must be identical to clusterNetworks[0].cidr"))
            if cluster_net.host_subnet_length != first.host_subnet_length:
                errs.append(_invalid("hostsubnetlength", cluster_net.host_subnet_length,
                                     "hostsubnetlength must be identical to clusterNetworks[0].hostSubnetLength"))
        elif (cluster_net.network, cluster_net.host_subnet_length) != ("", 0) and (
            cluster_net.network != first.cidr or cluster_net.host_subnet_length != first.host_subnet_length
        ):
            errs.append(_invalid("clusterNetworks[0]", first,
                                 "network and hostsubnetlength must be unset or identical to clusterNetworks[0]"))

    tested: List[IPNetwork] = []
    for i, entry in enumerate(entries):
        cidr_path = f"clusterNetworks[{i}].cidr"
        try:
            cluster_ipnet = _validate_cidr_v4(entry.cidr)
        except ValueError as exc:
            errs.append(_invalid(cidr_path, entry.cidr, str(exc)))
            continue
        errs += _check_subnet_length(
            cluster_ipnet, entry.host_subnet_length, f"clusterNetworks[{i}].hostSubnetLength",
            "subnet length is too large for clusterNetwork ",
        )
        errs += [
            _invalid(cidr_path, entry.cidr, f'cidr range overlaps with another cidr "{other}"')
            for other in tested
            if _networks_overlap(cluster_ipnet, other)
        ]
        tested.append(cluster_ipnet)
        if overlaps_service(cluster_ipnet):
            errs.append(_invalid("serviceNetwork", service,
                                 f"service network overlaps with cluster network cidr: {cluster_ipnet}"))

    port = cluster_net.vxlan_port
    if port is not None and not 1 <= port <= 65535:
        errs.append(_invalid("vxlanPort", port, "must be between 1 and 65535, inclusive"))

    if errs:
        raise aggregate(errs)


def validate_host_subnet(hs: HostSubnet) -> None:
    """Check a HostSubnet; raise AggregateError listing every problem found."""
    errs = _validate_object_meta(hs.name)
    if hs.host != hs.name:
        errs.append(_invalid("host", hs.host, f'must be the same as metadata.name: "{hs.name}"'))

    if hs.subnet == "":
        if ASSIGN_HOST_SUBNET_ANNOTATION not in hs.annotations:
            errs.append(_invalid("subnet", hs.subnet, "field cannot be empty"))
    else:
        try:
            _validate_cidr_v4(hs.subnet)
        except ValueError as exc:
            errs.append(_invalid("subnet", hs.subnet, str(exc)))

    try:
        _parse_ip(hs.host_ip)
    except ValueError:
        errs.append(_invalid("hostIP", hs.host_ip, "invalid IP address"))

    for label, values, check in (("egressIPs", hs.egress_ips, _validate_ipv4),
                                 ("egressCIDRs", hs.egress_cidrs, _validate_cidr_v4)):
        for i, value in enumerate(values):
            try:
                check(value)
            except ValueError as exc:
                errs.append(_invalid(f"{label}[{i}]", value, str(exc)))

    if errs:
        raise aggregate(errs)


def cidrs_overlap(cidr1: str, cidr2: str) -> bool:
    """Return whether either CIDR contains the other's network address."""
    try:
        _, net1 = _parse_cidr(cidr1)
        _, net2 = _parse_cidr(cidr2)
    except ValueError:
        return False
    return _networks_overlap(net1, net2)