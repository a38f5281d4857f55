from __future__ import annotations

from threading import RLock
from typing import Callable

from .db import log_event
from .models import Connection, Discovery, Host, Service


class ConnectionRegistry:
    """Set of (host, service) connections.

    Once a :class:`ServiceRegistry` is bound, connections are only accepted
    for services it currently holds.
    """

    def __init__(self) -> None:
        self.lock = RLock()
        self._connections: set[Connection] = set()
        self._service_known: Callable[[Service], bool] | None = None

    def bind(self, service_known: Callable[[Service], bool]) -> None:
        self._service_known = service_known

    def add_connection(self, connection: Connection) -> bool:
        with self.lock:
            if connection in self._connections:
                return False
            if self._service_known is not None and not self._service_known(connection.service):
                log_event(
                    "WARN",
                    f"Refusing connection for host {connection.host.id}: service is not registered.",
                    service_name=connection.service.name,
                    service_id=connection.service.id,
                )
                return False
            self._connections.add(connection)
        log_event(
            "DEBUG",
            f"Added connection for host {connection.host.id}",
            service_name=connection.service.name,
            service_id=connection.service.id,
        )
        return True

    def remove_connection(self, connection: Connection) -> bool:
        with self.lock:
            if connection not in self._connections:
                return False
            self._connections.discard(connection)
        log_event(
            "DEBUG",
            f"Removed connection for host {connection.host.id}",
            service_name=connection.service.name,
            service_id=connection.service.id,
        )
        return True

    def remove_connections(self, service: Service) -> int:
        """Drop every connection to *service*; returns how many were removed."""
        with self.lock:
            doomed = {c for c in self._connections if c.service == service}
            self._connections -= doomed
            return len(doomed)

    def get_connections(self, service: Service | None = None, host: Host | None = None) -> set[Connection]:
        with self.lock:
            return {
                c
                for c in self._connections
                if (service is None or c.service == service) and (host is None or c.host == host)
            }

    def remove_host_connections(self, host: Host) -> int:
        """Drop every connection of *host*; returns how many were removed."""
        with self.lock:
            doomed = {c for c in self._connections if c.host == host}
            self._connections -= doomed
            return len(doomed)

    def __len__(self) -> int:
        with self.lock:
            return len(self._connections)


class ServiceRegistry:
    """Authoritative set of services, static and catalog-discovered.

    Shares the connection registry's lock, so removing a service and its
    connections is one step for every other reader.
    """

    def __init__(self, connections: ConnectionRegistry) -> None:
        self.connections = connections
        self.lock = connections.lock
        self._services: dict[str, Service] = {}  # service id -> service
        connections.bind(self.contains)

    def add_service(self, service: Service) -> bool:
        with self.lock:
            if service.id in self._services:
                log_event(
                    "DEBUG",
                    "Could not add service: id already in use.",
                    service_name=service.name,
                    service_id=service.id,
                )
                return False
            if service in self._services.values():
                log_event(
                    "DEBUG",
                    "Could not add service: an equal service is already registered.",
                    service_name=service.name,
                    service_id=service.id,
                )
                return False
            self._services[service.id] = service
        log_event("DEBUG", "Added service", service_name=service.name, service_id=service.id)
        return True

    def remove_service(self, service: Service) -> bool:
        with self.lock:
            current = self._services.get(service.id)
            if current is None or current != service:
                return False
            dropped = self.connections.remove_connections(current)
            del self._services[service.id]
        log_event(
            "DEBUG",
            f"Removed service and {dropped} connection(s)",
            service_name=service.name,
            service_id=service.id,
        )
        return True

    def contains(self, service: Service) -> bool:
        with self.lock:
            return self._services.get(service.id) == service

    def get_services(self, discovery: Discovery | None = None) -> set[Service]:
        with self.lock:
            return {s for s in self._services.values() if discovery is None or s.discovery is discovery}

    def get_service(self, service_id: str) -> Service | None:
        with self.lock:
            return self._services.get(service_id)

    def services_by_name(self, name: str) -> set[Service]:
        with self.lock:
            return {s for s in self._services.values() if s.name == name}

    def services_by_address(self, ip: str) -> set[Service]:
        with self.lock:
            return {s for s in self._services.values() if ip in s.ip_addresses}

    def __len__(self) -> int:
        with self.lock:
            return len(self._services)
