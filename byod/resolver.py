from __future__ import annotations

import ipaddress
from typing import Iterable

from .api_models import CatalogEntry
from .db import log_event
from .hosts import HostResolver
from .models import DEFAULT_ICON, Discovery, Protocol, Service


def entry_address(entry: CatalogEntry) -> str:
    """The service address override wins over the node address."""
    if entry.service_address and entry.service_address.strip():
        return entry.service_address.strip()
    return entry.address.strip()


def resolve_entry(entry: CatalogEntry, hosts: HostResolver, default_icon: str = DEFAULT_ICON) -> Service | None:
    """Turn one catalog entry into a service bound to exactly one known host.

    Returns None when the address is unusable, unknown, or ambiguous.
    """
    address = entry_address(entry)
    try:
        address = str(ipaddress.IPv4Address(address))
    except ipaddress.AddressValueError:
        log_event(
            "WARN",
            f"Catalog entry has no usable IPv4 address ({address!r}); skipped.",
            service_name=entry.service_name,
            service_id=entry.service_id,
        )
        return None

    found = hosts.hosts_by_address(address)
    if not found:
        log_event("DEBUG", f"No host found with address {address}", service_name=entry.service_name, service_id=entry.service_id)
        return None
    if len(found) > 1:
        log_event(
            "DEBUG",
            f"More than one host found with address {address}",
            service_name=entry.service_name,
            service_id=entry.service_id,
        )
        return None

    host = next(iter(found))
    log_event("DEBUG", f"Catalog service runs on host {host.id}", service_name=entry.service_name, service_id=entry.service_id)
    return Service(
        id=entry.service_id,
        name=entry.service_name,
        ip_addresses=frozenset({address}),
        port=entry.service_port or None,
        protocol=Protocol.TCP,
        discovery=Discovery.CONSUL,
        icon=entry.service_tags[0] if entry.service_tags else default_icon,
        host=host,
    )


def resolve(entries: Iterable[CatalogEntry], hosts: HostResolver, default_icon: str = DEFAULT_ICON) -> set[Service]:
    """Resolve catalog entries into services, dropping the ones we cannot place."""
    out: set[Service] = set()
    for entry in sorted(entries, key=lambda e: (e.service_name, e.service_id)):
        service = resolve_entry(entry, hosts, default_icon)
        if service is not None and service not in out:
            out.add(service)
    return out
