from __future__ import annotations

from threading import Lock
from typing import Protocol as TypingProtocol

from .models import Host


class HostResolver(TypingProtocol):
    def hosts_by_address(self, ip: str) -> set[Host]: ...


class HostTable:
    """In-memory hosts known to the portal, looked up by IP address.

    The topology layer that actually discovers hosts lives elsewhere; it
    pushes what it sees here (through the HTTP API in ``main.py``).
    """

    def __init__(self) -> None:
        self.lock = Lock()
        self._hosts: dict[str, Host] = {}  # host id -> host

    def add_host(self, host: Host) -> None:
        with self.lock:
            self._hosts[host.id] = host

    def remove_host(self, host_id: str) -> Host | None:
        with self.lock:
            return self._hosts.pop(host_id, None)

    def get_host(self, host_id: str) -> Host | None:
        with self.lock:
            return self._hosts.get(host_id)

    def get_hosts(self) -> list[Host]:
        with self.lock:
            return sorted(self._hosts.values(), key=lambda h: h.id)

    def hosts_by_address(self, ip: str) -> set[Host]:
        with self.lock:
            return {h for h in self._hosts.values() if ip in h.ip_addresses}
