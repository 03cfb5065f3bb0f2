"""CIDR-based allow/deny access checks.

The checker is built once from textual rule entries and never changes
afterwards, so a single instance can be shared between any number of
concurrent requests. Malformed rule entries are dropped, malformed addresses
are denied and a missing checker allows everything.
"""
from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass(frozen=True, slots=True)
class RuleSet:
    """Ordered range rules plus the entries that failed to parse."""

    rules: Tuple[Network, ...] = ()
    rejected: Tuple[str, ...] = ()

    @property
    def configured(self) -> bool:
        return len(self.rules) > 0

    def match(self, address: Address) -> Optional[Network]:
        for network in self.rules:
            # ipaddress never reports a cross-family match
            if address in network:
                return network
        return None

    @classmethod
    def parse(cls, entries: Optional[Iterable[str]]) -> "RuleSet":
        rules = []
        rejected = []
        for entry in entries or ():
            entry = entry.strip()
            if not entry:
                continue
            network = _parse_rule(entry)
            if network is None:
                rejected.append(entry)
            else:
                rules.append(network)
        return cls(rules=tuple(rules), rejected=tuple(rejected))


@dataclass(frozen=True, slots=True)
class AccessDecision:
    allowed: bool
    reason: str
    rule: Optional[Network] = None


def _parse_address(value: str) -> Optional[Address]:
    # zone identifiers (fe80::1%eth0) are outside the accepted grammar
    if "%" in value:
        return None
    try:
        return ipaddress.ip_address(value)
    except ValueError:
        return None


def _parse_rule(entry: str) -> Optional[Network]:
    if "%" in entry:
        return None
    if "/" not in entry:
        addr = _parse_address(entry)
        if addr is not None:
            entry = f"{entry}/{addr.max_prefixlen}"
    else:
        # only decimal prefix lengths, no netmask or hostmask notation
        prefix = entry.rsplit("/", 1)[1]
        if not (prefix.isascii() and prefix.isdigit()):
            return None
    try:
        return ipaddress.ip_network(entry, strict=False)
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class AccessChecker:
    """Immutable allow/deny evaluator.

    Deny rules are consulted before allow rules. A configured allow set is
    exhaustive: addresses outside of it are rejected."""

    allow: RuleSet = RuleSet()
    deny: RuleSet = RuleSet()

    @classmethod
    def build(
        cls,
        allow_entries: Optional[Iterable[str]] = None,
        deny_entries: Optional[Iterable[str]] = None,
    ) -> "AccessChecker":
        return cls(allow=RuleSet.parse(allow_entries), deny=RuleSet.parse(deny_entries))

    def has_rules(self) -> bool:
        return self.allow.configured or self.deny.configured

    def evaluate(self, address: str) -> AccessDecision:
        if not self.has_rules():
            return AccessDecision(allowed=True, reason="no rules configured")

        addr = _parse_address(address)
        if addr is None:
            return AccessDecision(allowed=False, reason="invalid address")

        if self.deny.configured:
            network = self.deny.match(addr)
            if network is not None:
                return AccessDecision(allowed=False, reason="denied by rule", rule=network)

        if self.allow.configured:
            network = self.allow.match(addr)
            if network is not None:
                return AccessDecision(allowed=True, reason="allowed by rule", rule=network)
            return AccessDecision(allowed=False, reason="not in allow list")

        return AccessDecision(allowed=True, reason="not in deny list")

    def is_allowed(self, address: str) -> bool:
        return self.evaluate(address).allowed

    def __repr__(self) -> str:
        return f"AccessChecker(allow={len(self.allow.rules)}, deny={len(self.deny.rules)})"


def build(
    allow_entries: Optional[Iterable[str]] = None,
    deny_entries: Optional[Iterable[str]] = None,
) -> AccessChecker:
    """Compile allow and deny entries into an immutable checker."""
    return AccessChecker.build(allow_entries, deny_entries)


def is_allowed(checker: Optional[AccessChecker], address: str) -> bool:
    """Return True if the address may connect. A missing checker allows all."""
    if checker is None:
        return True
    return checker.is_allowed(address)


def has_rules(checker: Optional[AccessChecker]) -> bool:
    return checker is not None and checker.has_rules()


def _split_host_port(value: str) -> Optional[Tuple[str, str]]:
    if value.startswith("["):
        end = value.find("]")
        if end < 0 or value[end + 1:end + 2] != ":":
            return None
        host = value[1:end]
        port = value[end + 2:]
        if "[" in host or ":" in port:
            return None
    else:
        if ":" not in value:
            return None
        host, port = value.rsplit(":", 1)
        if ":" in host or "[" in host or "]" in host:
            return None
    if "[" in port or "]" in port:
        return None
    return host, port


def extract_address(remote_addr: str) -> str:
    """Strip the port from a peer address such as ``192.0.2.1:443``.

    Bare IP addresses are returned unchanged. Anything else yields an empty
    string, which every configured checker denies."""
    parts = _split_host_port(remote_addr)
    if parts is not None:
        return parts[0]
    if _parse_address(remote_addr) is None:
        return ""
    return remote_addr


__all__ = [
    "AccessChecker",
    "AccessDecision",
    "RuleSet",
    "build",
    "extract_address",
    "has_rules",
    "is_allowed",
]
