from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from .db import log_event
from .models import Connection, Discovery, Service
from .registry import ConnectionRegistry, ServiceRegistry


def _by_id(services: Iterable[Service]) -> list[Service]:
    return sorted(services, key=lambda s: (s.id, s.name))


@dataclass
class ReconcilePlan:
    """Registry mutations needed to match a fresh catalog snapshot."""

    to_remove: list[Service] = field(default_factory=list)
    to_keep: list[Service] = field(default_factory=list)
    to_update: list[tuple[Service, Service]] = field(default_factory=list)  # (old, new)
    to_add: list[Service] = field(default_factory=list)
    corrupt: list[Service] = field(default_factory=list)  # duplicate ids in the catalog

    @property
    def mutations(self) -> int:
        return len(self.to_remove) + len(self.to_update) + len(self.to_add) + len(self.corrupt)

    @property
    def empty(self) -> bool:
        return self.mutations == 0


def diff(fresh: Iterable[Service], current: Iterable[Service]) -> ReconcilePlan:
    """Compare catalog services against the registry, matching on service id.

    Only catalog-discovered services of *current* take part; static ones are
    never touched.
    """
    fresh_by_id: dict[str, list[Service]] = defaultdict(list)
    for s in _by_id(fresh):
        fresh_by_id[s.id].append(s)

    plan = ReconcilePlan()
    consumed: set[str] = set()
    for old in _by_id(s for s in current if s.discovery is Discovery.CONSUL):
        matches = fresh_by_id.get(old.id, [])
        if not matches:
            plan.to_remove.append(old)
        elif len(matches) == 1:
            new = matches[0]
            if new == old:
                plan.to_keep.append(old)
            else:
                plan.to_update.append((old, new))
        else:
            plan.corrupt.append(old)
        consumed.add(old.id)

    for sid, matches in fresh_by_id.items():
        if sid not in consumed:
            plan.to_add.extend(matches)
    return plan


class Reconciler:
    """Applies catalog snapshots to the service and connection registries."""

    def __init__(self, services: ServiceRegistry, connections: ConnectionRegistry):
        self.services = services
        self.connections = connections

    def plan(self, fresh: Iterable[Service]) -> ReconcilePlan:
        return diff(fresh, self.services.get_services(Discovery.CONSUL))

    def reconcile(self, fresh: Iterable[Service]) -> ReconcilePlan:
        """Diff and apply as one step with respect to other registry users."""
        fresh = list(fresh)
        with self.services.lock:
            plan = self.plan(fresh)
            self.apply(plan)
        return plan

    def apply(self, plan: ReconcilePlan) -> int:
        """Apply *plan*; returns the number of registry mutations made."""
        done = 0
        with self.services.lock:
            for old in plan.to_remove:
                if self.services.remove_service(old):
                    done += 1
                    log_event("INFO", "Service left the catalog; removed.", service_name=old.name, service_id=old.id)

            for old in plan.corrupt:
                log_event(
                    "WARN",
                    "More than one catalog entry with this service id; removing it from the registry.",
                    service_name=old.name,
                    service_id=old.id,
                )
                if self.services.remove_service(old):
                    done += 1

            for old, new in plan.to_update:
                done += self._update(old, new)

            for new in plan.to_add:
                if self.services.add_service(new):
                    done += 1
                    log_event("INFO", "Added new catalog service.", service_name=new.name, service_id=new.id)
                else:
                    log_event("WARN", "Catalog service clashes with a registered one; not added.", service_name=new.name, service_id=new.id)

            for kept in plan.to_keep:
                log_event("DEBUG", "Catalog service unchanged.", service_name=kept.name, service_id=kept.id)
        return done

    def _update(self, old: Service, new: Service) -> int:
        # Caller holds the registry lock.
        hosts = {c.host for c in self.connections.get_connections(service=old)}
        if not self.services.remove_service(old):
            log_event("WARN", "Service to update is gone from the registry.", service_name=old.name, service_id=old.id)
            return 0
        if not self.services.add_service(new):
            log_event(
                "WARN",
                f"Updated service clashes with a registered one; dropped {len(hosts)} connection(s).",
                service_name=new.name,
                service_id=new.id,
            )
            return 1
        for host in sorted(hosts, key=lambda h: h.id):
            self.connections.add_connection(Connection(host=host, service=new))
        log_event(
            "INFO",
            f"Updated service and moved {len(hosts)} connected host(s).",
            service_name=new.name,
            service_id=new.id,
        )
        return 2
