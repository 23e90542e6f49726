# sdnnet

Building blocks for a software-defined cluster network.

- **Data objects** in `sdnnet.models`: `ClusterNetwork`, `ClusterNetworkEntry`,
  `HostSubnet`, `NetNamespace`, `Pod`, `Service` and the egress policy types
  `EgressNetworkPolicy`, `EgressNetworkPolicyRule` and
  `EgressNetworkPolicyPeer`.
- **Validation**: `sdnnet.validation` has `validate_cluster_network`,
  `validate_host_subnet`, `parse_cidr_mask` and `cidrs_overlap`. The two
  validators raise `AggregateError` (from `sdnnet.errors`), which holds one
  `FieldError` per problem in its `errors` list.
- **Parsed cluster configuration**: `parse_cluster_network` in `sdnnet.common`
  turns a `ClusterNetwork` into a `ParsedClusterNetwork`. A missing VXLAN port
  defaults to 4789 and a missing MTU to 1450. The parsed object has three checks:
  - `validate_node_ip` raises `ValueError`.
  - `check_host_networks` raises `AggregateError`.
  - `check_cluster_objects` checks existing subnets, pods and services. It
    raises `AggregateError` and stops after ten problems.

  The module also provides `generate_default_gateway`,
  `cluster_network_list_contains`, `get_host_ip_networks`,
  `host_subnet_to_string` and `cluster_network_to_string`.
- **DNS tracking**: `DNS` in `sdnnet.dns` sends A queries over UDP to the IPv4
  nameservers named in a resolv.conf-style file. It records the addresses of
  each name, the smallest TTL seen (30 minutes when the TTL is zero) and when
  the name is due to be looked up again.
- **Egress DNS**: `EgressDNS` in `sdnnet.egress_dns` keeps one `DNS` per egress
  network policy. `sync(stop)` refreshes names as they fall due, until the
  `threading.Event` named `stop` is set. Each change it finds is put on the
  `updates` queue as an `EgressDNSUpdate`.
- **Event handlers**: `informer_funcs` in `sdnnet.informers` builds
  `ResourceEventHandlers` from an add-or-update callback and a delete callback.
  Before calling the delete callback, it unwraps `DeletedFinalStateUnknown`
  tombstones.

## Installation

```
pip install sdnnet
```

To run the tests:

```
pip install "sdnnet[test]"
pytest
```

## Example

```python
from sdnnet.models import ClusterNetwork, ClusterNetworkEntry
from sdnnet.validation import validate_cluster_network
from sdnnet.common import parse_cluster_network

cn = ClusterNetwork(
    name="default",
    network="10.128.0.0/14",
    host_subnet_length=9,
    cluster_networks=[ClusterNetworkEntry(cidr="10.128.0.0/14", host_subnet_length=9)],
    service_network="172.30.0.0/16",
)
validate_cluster_network(cn)          # raises AggregateError if invalid
parsed = parse_cluster_network(cn)
parsed.validate_node_ip("192.168.1.10")   # raises ValueError on conflict
```

Resolving a name:

```python
from sdnnet.dns import DNS

tracker = DNS("/etc/resolv.conf")
tracker.add("example.com")            # raises LookupError if it cannot be resolved
value = tracker.get("example.com")
print(value.ips, value.ttl, value.next_query_time)
changed, error = tracker.update()     # error is an AggregateError or None
```

## What it does not do

The package does not assign egress IPs to nodes and does not track which
namespace uses which egress IP. It has no command-line program. It does not
talk to a cluster API by itself: `get_parsed_cluster_network` takes a client
object that you supply, and that object must have a
`get_cluster_network(name)` method.