import ipaddress

import pytest

from sdnnet.errors import AggregateError
from sdnnet.models import ClusterNetwork, ClusterNetworkEntry, HostSubnet
from sdnnet.validation import (
    cidrs_overlap,
    parse_cidr_mask,
    validate_cluster_network,
    validate_host_subnet,
)


def _cn(entries, service="172.30.0.0/16", network="", hsl=0, name="any"):
    return ClusterNetwork(
        name=name,
        network=network,
        host_subnet_length=hsl,
        cluster_networks=[ClusterNetworkEntry(cidr, length) for cidr, length in entries],
        service_network=service,
    )


CLUSTER_NETWORK_CASES = [
    ("Good one", _cn([("10.20.0.0/16", 8)]), 0),
    ("Good one old network and hostsubnetlength set", _cn([("10.20.0.0/16", 8)], network="10.20.0.0/16", hsl=8), 0),
    ("old network set incorrectly", _cn([("10.20.0.0/16", 8)], network="10.30.0.0/16", hsl=8), 1),
    ("old hostsubnetlength set incorrectly", _cn([("10.20.0.0/16", 8)], network="10.20.0.0/16", hsl=9), 1),
    ("only old network set", _cn([("10.20.0.0/16", 8)], network="10.20.0.0/16"), 1),
    ("only old hostsubnetlength set", _cn([("10.20.0.0/16", 8)], hsl=8), 1),
    ("Good one multiple addresses", _cn([("10.20.0.0/16", 8), ("10.128.0.0/16", 8)]), 0),
    ("Bad network", _cn([("10.20.0.0.0/16", 8)]), 1),
    ("Bad network CIDR", _cn([("10.20.0.1/16", 8)]), 1),
    ("Empty network ClusterNetworks", _cn([]), 1),
    ("Subnet length too large for network", _cn([("10.20.30.0/24", 16)]), 1),
    ("Subnet length too small", _cn([("10.20.0.0/16", 1)]), 1),
    ("Bad service network", _cn([("10.20.0.0/16", 8)], service="1172.30.0.0/16"), 1),
    ("Bad service network CIDR", _cn([("10.20.0.0/16", 8)], service="172.30.1.0/16"), 1),
    ("Service network overlaps with cluster network", _cn([("10.20.0.0/16", 8)], service="10.20.1.0/24"), 1),
    ("Cluster network overlaps with service network", _cn([("10.20.0.0/16", 8)], service="10.0.0.0/8"), 1),
    ("Cluster networks overlap with each other", _cn([("10.128.0.0/14", 8), ("10.0.0.0/8", 8)]), 1),
    ("IPv6 ClusterNetwork", _cn([("fe80:1234::/64", 8)]), 1),
    ("IPv6 ServiceNetwork", _cn([("10.20.0.0/16", 8)], service="fe80:1234::/64"), 1),
]


@pytest.mark.parametrize("name,cn,expected", CLUSTER_NETWORK_CASES, ids=[c[0] for c in CLUSTER_NETWORK_CASES])
def test_validate_cluster_network(name, cn, expected):
    if expected == 0:
        assert validate_cluster_network(cn) is None
    else:
        with pytest.raises(AggregateError) as info:
            validate_cluster_network(cn)
        assert len(info.value.errors) == expected


def test_legacy_cluster_network_valid():
    cn = _cn([], network="10.20.0.0/16", hsl=8)
    assert validate_cluster_network(cn) is None


def test_legacy_cluster_network_missing_length():
    with pytest.raises(AggregateError) as info:
        validate_cluster_network(_cn([], network="10.20.0.0/16"))
    assert info.value.errors[0].field == "hostsubnetlength"


def test_legacy_cluster_network_overlaps_service():
    with pytest.raises(AggregateError) as info:
        validate_cluster_network(_cn([], network="10.0.0.0/8", hsl=8, service="10.1.0.0/16"))
    assert [e.field for e in info.value.errors] == ["serviceNetwork"]


def test_default_cluster_network_must_match_first_entry():
    cn = _cn([("10.20.0.0/16", 8)], network="10.30.0.0/16", hsl=8, name="default")
    with pytest.raises(AggregateError) as info:
        validate_cluster_network(cn)
    assert [e.field for e in info.value.errors] == ["network"]


def test_missing_name_is_reported():
    with pytest.raises(AggregateError) as info:
        validate_cluster_network(_cn([("10.20.0.0/16", 8)], name=""))
    assert [e.field for e in info.value.errors] == ["metadata.name"]


def test_vxlan_port_range():
    cn = _cn([("10.20.0.0/16", 8)])
    cn.vxlan_port = 4789
    assert validate_cluster_network(cn) is None
    cn.vxlan_port = 0
    with pytest.raises(AggregateError) as info:
        validate_cluster_network(cn)
    assert [e.field for e in info.value.errors] == ["vxlanPort"]


HOST_SUBNET_CASES = [
    ("good", HostSubnet(name="abc.def.com", host="abc.def.com", host_ip="10.20.30.40", subnet="8.8.8.0/24"), 0),
    ("missing subnet", HostSubnet(name="abc.def.com", host="abc.def.com", host_ip="10.20.30.40"), 1),
    (
        "missing subnet plus annotation",
        HostSubnet(
            name="abc.def.com",
            host="abc.def.com",
            host_ip="10.20.30.40",
            annotations={"pod.network.openshift.io/assign-subnet": "true"},
        ),
        0,
    ),
]


@pytest.mark.parametrize("name,hs,expected", HOST_SUBNET_CASES, ids=[c[0] for c in HOST_SUBNET_CASES])
def test_validate_host_subnet(name, hs, expected):
    if expected == 0:
        assert validate_host_subnet(hs) is None
    else:
        with pytest.raises(AggregateError) as info:
            validate_host_subnet(hs)
        assert len(info.value.errors) == expected


def test_host_subnet_bad_egress_values():
    hs = HostSubnet(
        name="abc.def.com",
        host="abc.def.com",
        host_ip="10.20.30.40",
        subnet="8.8.8.0/24",
        egress_ips=["10.0.0.5", "fe80::1"],
        egress_cidrs=["10.0.0.1/24"],
    )
    with pytest.raises(AggregateError) as info:
        validate_host_subnet(hs)
    assert [e.field for e in info.value.errors] == ["egressIPs[1]", "egressCIDRs[0]"]
    assert "must be an IPv4 address" in str(info.value.errors[0])


def test_host_subnet_host_must_match_name():
    hs = HostSubnet(name="abc.def.com", host="other", host_ip="10.20.30.40", subnet="8.8.8.0/24")
    with pytest.raises(AggregateError) as info:
        validate_host_subnet(hs)
    assert [e.field for e in info.value.errors] == ["host"]


def test_parse_cidr_mask_accepts_canonical():
    assert parse_cidr_mask("10.128.0.0/14") == ipaddress.ip_network("10.128.0.0/14")


@pytest.mark.parametrize("cidr", ["10.20.0.1/16", "10.20.0.0", "Invalid", "172.30.0.0i/16", "10.0.0.0/33"])
def test_parse_cidr_mask_rejects(cidr):
    with pytest.raises(ValueError):
        parse_cidr_mask(cidr)


@pytest.mark.parametrize(
    "a,b,expected",
    [
        ("10.0.0.0/8", "10.128.0.0/14", True),
        ("10.128.0.0/14", "10.0.0.0/8", True),
        ("10.128.0.0/14", "172.30.0.0/16", False),
        ("172.20.30.0/8", "172.20.0.0/16", True),
        ("bogus", "10.0.0.0/8", False),
        ("::/0", "10.0.0.0/8", False),
    ],
)
def test_cidrs_overlap(a, b, expected):
    assert cidrs_overlap(a, b) is expected