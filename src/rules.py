"""Routing policy: decide whether and where to forward a hostname."""

from typing import Iterable, Optional, Tuple

from constants import FORWARD_PORT
from interfaces import IRoutingPolicy


class RuleEngine(IRoutingPolicy):
    def __init__(self, rules: Iterable[str], allow_all_hosts: bool = False, forward_port: int = FORWARD_PORT):
        self.rules = tuple(rules or ())
        self.allow_all_hosts = allow_all_hosts
        self.forward_port = forward_port

    def match(self, hostname: str) -> Optional[str]:
        # first match wins so a connection is forwarded at most once
        for rule in self.rules:
            if rule in hostname:
                return rule
        return None

    def decide(self, hostname: str) -> Optional[Tuple[str, int]]:
        if self.allow_all_hosts or self.match(hostname) is not None:
            return hostname, self.forward_port
        return None
