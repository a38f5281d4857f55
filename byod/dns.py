from __future__ import annotations

from .db import log_event
from .hosts import HostTable
from .models import Connection, Host, Protocol, Service
from .registry import ConnectionRegistry, ServiceRegistry

DNS_PORT = 53


class DnsServices:
    """Static DNS services (TCP and UDP) on the default gateway.

    Every known host except the gateway itself gets a connection to both.
    """

    def __init__(self, services: ServiceRegistry, connections: ConnectionRegistry, hosts: HostTable):
        self.services = services
        self.connections = connections
        self.hosts = hosts
        self.tcp: Service | None = None
        self.udp: Service | None = None

    @property
    def active(self) -> bool:
        return self.tcp is not None

    def activate(self, gateway_ip: str) -> bool:
        routers = self.hosts.hosts_by_address(gateway_ip)
        if not routers:
            log_event("WARN", f"No host found with IP {gateway_ip} to use as DNS service")
            return False
        if len(routers) > 1:
            log_event("WARN", f"More than one host found with IP {gateway_ip} to use as DNS service")
            return False

        router = next(iter(routers))
        self.deactivate()
        with self.services.lock:
            self.tcp = Service(
                name="DnsServiceTcp", ip_addresses=frozenset({gateway_ip}), port=DNS_PORT, protocol=Protocol.TCP, host=router
            )
            self.udp = Service(
                name="DnsServiceUdp", ip_addresses=frozenset({gateway_ip}), port=DNS_PORT, protocol=Protocol.UDP, host=router
            )
            self.services.add_service(self.tcp)
            self.services.add_service(self.udp)
            connected = 0
            for host in self.hosts.get_hosts():
                if host == router:
                    continue
                self.connections.add_connection(Connection(host=host, service=self.tcp))
                self.connections.add_connection(Connection(host=host, service=self.udp))
                connected += 1
        log_event("INFO", f"DNS services active on {router.id}; {connected} host(s) connected.")
        return True

    def connect_host(self, host: Host) -> None:
        """Give a newly seen host access to DNS, if DNS is active."""
        with self.services.lock:
            for svc in (self.tcp, self.udp):
                if svc is not None and svc.host != host:
                    self.connections.add_connection(Connection(host=host, service=svc))

    def deactivate(self) -> None:
        with self.services.lock:
            for svc in (self.tcp, self.udp):
                if svc is not None:
                    self.services.remove_service(svc)
            was_active = self.active
            self.tcp = None
            self.udp = None
        if was_active:
            log_event("INFO", "Removed DNS services and their connections.")
