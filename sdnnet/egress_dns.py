"""DNS tracking for the DNS names used by egress network policies."""

from __future__ import annotations

import ipaddress
import logging
import queue
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sdnnet.dns import DEFAULT_TTL, DNS
from sdnnet.errors import AggregateError
from sdnnet.models import EgressNetworkPolicy

log = logging.getLogger(__name__)

DEFAULT_RESOLVER_CONFIG = "/etc/resolv.conf"
_POLL_INTERVAL = 0.5


@dataclass(frozen=True)
class EgressDNSUpdate:
    """Notice that the addresses behind a policy's DNS names have changed."""

    uid: str
    namespace: str


class EgressDNS:
    """Keeps the DNS names of each egress policy resolved.

    Changes found by sync() are put on the updates queue.
    """

    def __init__(self, resolver_config_file: str = DEFAULT_RESOLVER_CONFIG):
        self._resolver_config_file = resolver_config_file
        self._lock = threading.Lock()
        self._policies: Dict[str, DNS] = {}
        self._namespaces: Dict[str, str] = {}
        self._added = threading.Event()
        self.updates: "queue.Queue[EgressDNSUpdate]" = queue.Queue()

    def add(self, policy: EgressNetworkPolicy) -> None:
        """Resolve the policy's DNS names and track those that resolved."""
        try:
            dns_info = DNS(self._resolver_config_file)
        except ValueError as exc:
            log.error("%s", exc)
            return

        for rule in policy.egress:
            if rule.to.dns_name:
                try:
                    dns_info.add(rule.to.dns_name)
                except LookupError as exc:
                    log.error("%s", exc)

        if dns_info.size() > 0:
            with self._lock:
                self._policies[policy.uid] = dns_info
                self._namespaces[policy.uid] = policy.namespace
            self._added.set()

    def delete(self, policy: EgressNetworkPolicy) -> None:
        """Stop tracking the policy's DNS names."""
        with self._lock:
            self._policies.pop(policy.uid, None)
            self._namespaces.pop(policy.uid, None)

    def update(self, policy_uid: str) -> Tuple[bool, Optional[AggregateError]]:
        """Resolve the names of one policy again; return (changed, failures)."""
        with self._lock:
            dns_info = self._policies.get(policy_uid)
            if dns_info is None:
                return False, None
            return dns_info.update()

    def sync(self, stop: threading.Event) -> None:
        """Refresh names as they fall due until stop is set."""
        while not stop.is_set():
            pending = self.get_min_query_time()
            if pending is None:
                wait = DEFAULT_TTL.total_seconds()
            else:
                when, uid, namespace = pending
                now = datetime.now(timezone.utc)
                if when <= now:
                    changed, error = self.update(uid)
                    if error is not None:
                        log.error("%s", error)
                    if changed:
                        self.updates.put(EgressDNSUpdate(uid, namespace))
                    continue
                wait = (when - now).total_seconds()
            self._wait(wait, stop)

    def _wait(self, seconds: float, stop: threading.Event) -> None:
        deadline = time.monotonic() + seconds
        while not stop.is_set():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            if self._added.wait(min(remaining, _POLL_INTERVAL)):
                self._added.clear()
                return

    def get_min_query_time(self) -> Optional[Tuple[datetime, str, str]]:
        """Return (time, policy uid, namespace) of the next refresh due, or None."""
        with self._lock:
            best: Optional[Tuple[datetime, str]] = None
            for uid, dns_info in self._policies.items():
                when = dns_info.get_min_query_time()
                if when is None:
                    continue
                if best is None or when < best[0]:
                    best = (when, uid)
            if best is None:
                return None
            return best[0], best[1], self._namespaces.get(best[1], "")

    def get_ips(self, policy: EgressNetworkPolicy, dns_name: str) -> List[ipaddress.IPv4Address]:
        """Return the current addresses of dns_name within the policy."""
        with self._lock:
            dns_info = self._policies.get(policy.uid)
            if dns_info is None:
                return []
            return dns_info.get(dns_name).ips

    def get_net_cidrs(self, policy: EgressNetworkPolicy, dns_name: str) -> List[ipaddress.IPv4Network]:
        """Return the current addresses of dns_name as single-host networks."""
        return [ipaddress.IPv4Network((ip, 32)) for ip in self.get_ips(policy, dns_name)]