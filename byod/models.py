from __future__ import annotations

import ipaddress
import secrets
from dataclasses import dataclass, field, replace
from enum import Enum

from .db import log_event

DEFAULT_ICON = "list"


class Discovery(str, Enum):
    """Where a service came from."""

    NONE = "NONE"
    CONSUL = "CONSUL"


class Protocol(int, Enum):
    TCP = 6
    UDP = 17


def _ipv4_set(addresses) -> frozenset[str]:
    out = set()
    for a in addresses:
        try:
            out.add(str(ipaddress.IPv4Address(str(a).strip())))
        except ipaddress.AddressValueError:
            raise ValueError(f"Not an IPv4 address: {a!r}") from None
    return frozenset(out)


@dataclass(frozen=True)
class Host:
    """A network endpoint known to the host resolver."""

    id: str
    mac: str
    ip_addresses: frozenset[str] = frozenset()
    location: str | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Host must have an id.")
        object.__setattr__(self, "ip_addresses", _ipv4_set(self.ip_addresses))


@dataclass(frozen=True)
class Service:
    """A reachable backend service.

    ``id`` is the stable identity of the logical service and is left out of
    equality: two services compare equal when everything else matches, which
    is how reconciliation tells "unchanged" from "updated".
    """

    name: str
    ip_addresses: frozenset[str]
    port: int | None = None
    protocol: Protocol = Protocol.TCP
    discovery: Discovery = Discovery.NONE
    icon: str = DEFAULT_ICON
    host: Host | None = None
    id: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Service must have a name.")
        ips = _ipv4_set(self.ip_addresses)
        if not ips:
            raise ValueError("Service must have at least one IP address.")
        object.__setattr__(self, "ip_addresses", ips)
        object.__setattr__(self, "protocol", Protocol(self.protocol))
        object.__setattr__(self, "discovery", Discovery(self.discovery))

        if self.port is None:
            log_event("WARN", "No transport port defined for service.", service_name=self.name)
        elif not 1 <= int(self.port) <= 65535:
            raise ValueError(f"Invalid port {self.port} for service {self.name!r}.")

        if self.discovery is Discovery.CONSUL and self.host is None:
            raise ValueError(f"Catalog service {self.name!r} must be bound to a host.")

        if not self.id:
            object.__setattr__(self, "id", f"{self.name}-{secrets.token_hex(4)}")

    def replace(self, **changes) -> Service:
        return replace(self, **changes)

    def summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "ip_addresses": sorted(self.ip_addresses),
            "port": self.port,
            "protocol": self.protocol.name,
            "discovery": self.discovery.value,
            "icon": self.icon,
            "host": self.host.id if self.host else None,
        }


@dataclass(frozen=True)
class Connection:
    """A host allowed to reach a service."""

    host: Host
    service: Service
