"""Tracking of the IPv4 addresses behind DNS names, refreshed as their TTLs expire."""

from __future__ import annotations

import ipaddress
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import dns.exception
import dns.message
import dns.name
import dns.query
import dns.rcode
import dns.rdatatype

from sdnnet.errors import AggregateError, aggregate

DEFAULT_TTL = timedelta(minutes=30)
QUERY_TIMEOUT = 5.0


@dataclass
class ResolverConfig:
    """The settings read from a resolv.conf style file."""

    servers: List[str] = field(default_factory=list)
    search: List[str] = field(default_factory=list)
    port: int = 53
    ndots: int = 1
    timeout: int = 5
    attempts: int = 2


def _to_int(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        return 0


def read_resolver_config(path: str) -> ResolverConfig:
    """Read nameservers, search domains and options from a resolver config file."""
    config = ResolverConfig()
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            key, *args = line.split() or ["#"]
            if key[0] in "#;":
                continue
            if key == "nameserver" and args:
                config.servers.append(args[0])
            elif key == "domain" and args:
                config.search = [args[0]]
            elif key == "search":
                config.search = args
            elif key == "options":
                for option in args:
                    name, _, value = option.partition(":")
                    if name == "ndots":
                        config.ndots = min(max(_to_int(value), 0), 15)
                    elif name in ("timeout", "attempts"):
                        setattr(config, name, max(_to_int(value), 1))
    return config


@dataclass
class DnsValue:
    """What is known about one DNS name."""

    ips: List[ipaddress.IPv4Address] = field(default_factory=list)
    ttl: timedelta = timedelta(0)
    next_query_time: Optional[datetime] = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _split_host_port(server: str) -> Optional[Tuple[str, str]]:
    """Split "host:port" or "[host]:port"; return None when there is no port."""
    if server.startswith("["):
        end = server.find("]")
        if end < 0 or server[end + 1 : end + 2] != ":":
            return None
        return server[1:end], server[end + 2 :]
    if server.count(":") != 1:
        return None
    host, _, port = server.partition(":")
    return host, port


class DNS:
    """A set of DNS names with their current IPv4 addresses and refresh times."""

    def __init__(self, resolver_config_file: str):
        try:
            config = read_resolver_config(resolver_config_file)
        except OSError as exc:
            raise ValueError(f"cannot initialize the resolver: {exc}") from exc
        self._lock = threading.Lock()
        self._dns_map: Dict[str, DnsValue] = {}
        self.nameservers: List[str] = filter_ipv4_servers(config.servers)
        self.port: int = config.port

    def size(self) -> int:
        """Return how many names are tracked."""
        with self._lock:
            return len(self._dns_map)

    def get(self, name: str) -> DnsValue:
        """Return a copy of what is known about name; an empty value if it is not tracked."""
        with self._lock:
            value = self._dns_map.get(name, DnsValue())
            return DnsValue(list(value.ips), value.ttl, value.next_query_time)

    def add(self, name: str) -> None:
        """Resolve name and start tracking it; raise LookupError if it cannot be resolved."""
        with self._lock:
            self._dns_map[name] = DnsValue()
            try:
                self._update_one(name)
            except LookupError:
                del self._dns_map[name]
                raise

    def update(self) -> Tuple[bool, Optional[AggregateError]]:
        """Resolve every tracked name again; return (changed, bundled failures or None)."""
        with self._lock:
            errors: List[Exception] = []
            changed = False
            for name in list(self._dns_map):
                try:
                    changed = self._update_one(name) or changed
                except LookupError as exc:
                    errors.append(exc)
            return changed, aggregate(errors)

    def update_one(self, name: str) -> bool:
        """Resolve one tracked name again; return whether its addresses changed."""
        with self._lock:
            return self._update_one(name)

    def get_min_query_time(self) -> Optional[datetime]:
        """Return the earliest time a tracked name is due for refresh, or None."""
        with self._lock:
            times = [v.next_query_time for v in self._dns_map.values() if v.next_query_time is not None]
            return min(times, default=None)

    def _update_one(self, name: str) -> bool:
        value = self._dns_map.get(name)
        if value is None:
            raise LookupError(f'DNS value not found in dnsMap for domain: "{name}"')
        try:
            ips, ttl = self._get_ips_and_min_ttl(name)
        except LookupError:
            value.next_query_time = _now() + DEFAULT_TTL
            raise
        changed = not ips_equal(value.ips, ips)
        value.ips, value.ttl, value.next_query_time = ips, ttl, _now() + ttl
        return changed

    def _get_ips_and_min_ttl(self, domain: str) -> Tuple[List[ipaddress.IPv4Address], timedelta]:
        ips: List[ipaddress.IPv4Address] = []
        min_ttl: Optional[int] = None

        for server in self.nameservers:
            parts = _split_host_port(server)
            host, port = (server, self.port) if parts is None else (parts[0], _to_int(parts[1]))
            try:
                query = dns.message.make_query(dns.name.from_text(domain), dns.rdatatype.A)
                response = dns.query.udp(query, host, port=port, timeout=QUERY_TIMEOUT)
            except (dns.exception.DNSException, OSError, ValueError) as exc:
                raise LookupError(str(exc) or type(exc).__name__) from exc
            if response.rcode() != dns.rcode.NOERROR:
                raise LookupError(f"failed to get a valid answer: {dns.rcode.to_text(response.rcode())}")

            for rrset in response.answer:
                for rdata in rrset:
                    if min_ttl is None or rrset.ttl < min_ttl:
                        min_ttl = rrset.ttl
                    if rdata.rdtype == dns.rdatatype.A:
                        ips.append(ipaddress.IPv4Address(rdata.address))

        if min_ttl is None or not ips:
            raise LookupError(f'IPv4 addr not found for domain: "{domain}", nameservers: {self.nameservers}')
        return remove_duplicate_ips(ips), timedelta(seconds=min_ttl) if min_ttl else DEFAULT_TTL


def ips_equal(old_ips: Sequence, new_ips: Sequence) -> bool:
    """Return whether both lists hold the same addresses, in any order."""
    return len(old_ips) == len(new_ips) and all(ip in new_ips for ip in old_ips)


def filter_ipv4_servers(servers: Iterable[str]) -> List[str]:
    """Keep only the servers whose address, with or without a port, is IPv4."""
    result = []
    for server in servers:
        parts = _split_host_port(server)
        try:
            ip = ipaddress.ip_address(server if parts is None else parts[0])
        except ValueError:
            continue
        if ip.version == 4:
            result.append(server)
    return result


def remove_duplicate_ips(ips: Iterable) -> List:
    """Return the distinct addresses, ordered by their text form."""
    return [ipaddress.ip_address(text) for text in sorted({str(ip) for ip in ips})]