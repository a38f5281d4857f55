from __future__ import annotations

from dataclasses import dataclass, field
from threading import Event, RLock, Thread
from typing import Callable

import httpx

from .catalog import CatalogClient, TransportFailure
from .db import log_event, utc_now
from .hosts import HostResolver
from .models import Discovery, Service
from .reconciler import Reconciler
from .registry import ConnectionRegistry, ServiceRegistry
from .resolver import resolve
from .settings import Settings, settings as default_settings


@dataclass
class _Session:
    client: CatalogClient
    address: str
    port: int
    index: int = 0
    stop: Event = field(default_factory=Event)
    thread: Thread | None = None


@dataclass(frozen=True)
class WatcherStatus:
    connected: bool
    address: str | None = None
    port: int | None = None
    index: int | None = None
    services: int = 0
    passes: int = 0
    last_sync: str | None = None
    last_error: str | None = None


class CatalogWatcher:
    """Keeps catalog services in the registry in step with a Consul agent.

    One polling thread per connection; ``disconnect`` (or a transport error
    in the loop) ends the session and removes every catalog service.
    """

    ERROR_BACKOFF_S = 1.0

    def __init__(
        self,
        services: ServiceRegistry,
        connections: ConnectionRegistry,
        hosts: HostResolver,
        config: Settings | None = None,
        client_factory: Callable[..., CatalogClient] = CatalogClient,
    ):
        self.services = services
        self.connections = connections
        self.hosts = hosts
        self.config = config or default_settings
        self.client_factory = client_factory
        self.reconciler = Reconciler(services, connections)
        self._lock = RLock()
        self._session: _Session | None = None
        self._passes = 0
        self._last_sync: str | None = None
        self._last_error: str | None = None

    # ------------------------------------------------------------------ #
    # Session control                                                      #
    # ------------------------------------------------------------------ #

    def connect(self, address: str, port: int | None = None) -> bool:
        port = int(port or self.config.consul_port)
        try:
            client = self.client_factory(
                address,
                port,
                wait_s=self.config.consul_wait_s,
                timeout_s=self.config.consul_timeout_s,
                margin_s=self.config.consul_timeout_margin_s,
                token=self.config.consul_token,
            )
        except (ValueError, httpx.InvalidURL) as e:
            log_event("ERROR", f"Invalid catalog settings: {e}")
            self._last_error = str(e)
            return False

        try:
            snap = client.snapshot()
            fresh = resolve(client.list_all(snap.services), self.hosts, self.config.default_icon)
        except TransportFailure as e:
            client.close()
            log_event("WARN", f"No connection to catalog at {address}:{port} possible: {e}")
            self._last_error = str(e)
            return False

        with self._lock:
            self._end_session()
            with self.services.lock:
                self._remove_catalog_services()
                for s in sorted(fresh, key=lambda s: s.id):
                    self.services.add_service(s)
            session = _Session(client=client, address=address, port=port, index=snap.index)
            session.thread = Thread(target=self._loop, args=(session,), name="catalog-watcher", daemon=True)
            self._session = session
            self._last_sync = utc_now()
            self._last_error = None
            session.thread.start()

        log_event("INFO", f"Connected to catalog at {address}:{port} ({len(fresh)} service(s)).")
        return True

    def disconnect(self) -> None:
        with self._lock:
            had_session = self._session is not None
            self._end_session()
            removed = self._remove_catalog_services()
        if had_session:
            log_event("INFO", f"Disconnected from catalog; removed {removed} service(s).")

    stop = disconnect

    def status(self) -> WatcherStatus:
        with self._lock:
            s = self._session
            return WatcherStatus(
                connected=s is not None,
                address=s.address if s else None,
                port=s.port if s else None,
                index=s.index if s else None,
                services=len(self.services.get_services(Discovery.CONSUL)),
                passes=self._passes,
                last_sync=self._last_sync,
                last_error=self._last_error,
            )

    @property
    def connected(self) -> bool:
        with self._lock:
            return self._session is not None

    def _end_session(self) -> None:
        # Caller holds self._lock. The thread is not joined; closing the client
        # cuts its long poll short and the loop exits on the stop token.
        s, self._session = self._session, None
        if s is not None:
            s.stop.set()
            s.client.close()

    def _remove_catalog_services(self) -> int:
        removed = 0
        with self.services.lock:
            for s in self.services.get_services(Discovery.CONSUL):
                if self.services.remove_service(s):
                    removed += 1
        return removed

    # ------------------------------------------------------------------ #
    # Polling                                                              #
    # ------------------------------------------------------------------ #

    def _loop(self, session: _Session) -> None:
        log_event("INFO", f"Catalog watcher started for {session.address}:{session.port}")
        try:
            while not session.stop.is_set():
                try:
                    self._poll_once(session)
                except TransportFailure as e:
                    if session.stop.is_set():
                        break
                    log_event(
                        "WARN",
                        f"Transport failure talking to the catalog ({e}); "
                        "check that the agent is running and connect again.",
                    )
                    with self._lock:
                        self._last_error = str(e)
                        if self._session is session:
                            self.disconnect()
                    break
                except Exception as e:
                    if session.stop.is_set():
                        break
                    log_event("ERROR", f"Catalog watcher pass failed: {type(e).__name__}: {e}")
                    with self._lock:
                        self._last_error = f"{type(e).__name__}: {e}"
                    session.stop.wait(self.ERROR_BACKOFF_S)
        finally:
            session.client.close()
            log_event("INFO", "Catalog watcher stopped")

    def _poll_once(self, session: _Session) -> None:
        index, names = session.client.blocking_wait(session.index, self.config.consul_wait_s)
        if session.stop.is_set():
            return

        # Consul never hands out index 0; treating it as 1 keeps the next
        # query blocking instead of returning at once forever.
        index = max(index, 1)
        if index < session.index:
            # Index went backwards (agent restart, snapshot restore): start over.
            log_event("DEBUG", f"Catalog index reset from {session.index} to {index}")
            index = 0
        elif index == session.index:
            log_event("DEBUG", "Catalog wait elapsed without changes")
            return

        fresh = resolve(session.client.list_all(names), self.hosts, self.config.default_icon)
        self._apply(session, fresh)
        # Only a pass that got this far moves the index; a failed one is retried.
        session.index = index

    def _apply(self, session: _Session, fresh: set[Service]) -> None:
        with self._lock:
            if session.stop.is_set() or self._session is not session:
                return
            plan = self.reconciler.reconcile(fresh)
            self._passes += 1
            self._last_sync = utc_now()
        if plan.empty:
            log_event("DEBUG", "Catalog changed but registry already matches")
        else:
            log_event(
                "INFO",
                f"Reconciled catalog: {len(plan.to_add)} added, {len(plan.to_update)} updated, "
                f"{len(plan.to_remove) + len(plan.corrupt)} removed.",
            )
