from __future__ import annotations

import logging
import secrets
from dataclasses import asdict

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from byod import db
from byod.api_models import ConnectRequest, ConnectionRequest, HostRequest, StaticServiceRequest
from byod.dns import DnsServices
from byod.hosts import HostTable
from byod.models import Connection, Discovery, Host, Protocol, Service
from byod.registry import ConnectionRegistry, ServiceRegistry
from byod.settings import settings
from byod.watcher import CatalogWatcher

app = FastAPI(title="BYOD Catalog Sync")
security = HTTPBasic()

hosts = HostTable()
connections = ConnectionRegistry()
services = ServiceRegistry(connections)
watcher = CatalogWatcher(services, connections, hosts)
dns = DnsServices(services, connections, hosts)


def get_current_username(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    user_ok = secrets.compare_digest(credentials.username, settings.admin_user)
    pass_ok = secrets.compare_digest(credentials.password, settings.admin_password)
    if not (user_ok and pass_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


@app.on_event("startup")
def startup() -> None:
    logging.basicConfig(level=logging.DEBUG if settings.log_debug else logging.INFO)
    db.init_db()


@app.on_event("shutdown")
def shutdown() -> None:
    watcher.disconnect()
    dns.deactivate()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "healthy"}


# --- catalog ---
@app.get("/catalog")
def catalog_status() -> dict:
    return asdict(watcher.status())


@app.post("/catalog/connect")
def catalog_connect(req: ConnectRequest, username: str = Depends(get_current_username)) -> dict:
    if not watcher.connect(req.address, req.port):
        raise HTTPException(status_code=502, detail=f"Could not reach the catalog at {req.address}.")
    db.log_event("INFO", f"{username} connected the catalog at {req.address}")
    return catalog_status()


@app.post("/catalog/disconnect")
def catalog_disconnect(username: str = Depends(get_current_username)) -> dict:
    watcher.disconnect()
    return catalog_status()


# --- services ---
@app.get("/services")
def list_services(discovery: Discovery | None = None) -> list[dict]:
    return [s.summary() for s in sorted(services.get_services(discovery), key=lambda s: (s.name, s.id))]


@app.post("/services", status_code=201)
def add_static_service(req: StaticServiceRequest, username: str = Depends(get_current_username)) -> dict:
    host = None
    if req.host_id:
        host = hosts.get_host(req.host_id)
        if host is None:
            raise HTTPException(status_code=404, detail=f"Unknown host '{req.host_id}'.")
    try:
        svc = Service(
            name=req.name,
            ip_addresses=frozenset(req.ip_addresses),
            port=req.port,
            protocol=Protocol[req.protocol],
            icon=req.icon,
            host=host,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not services.add_service(svc):
        raise HTTPException(status_code=409, detail="An equal service is already registered.")
    return svc.summary()


@app.delete("/services/{service_id}")
def remove_service(service_id: str, username: str = Depends(get_current_username)) -> dict:
    svc = services.get_service(service_id)
    if svc is None or not services.remove_service(svc):
        raise HTTPException(status_code=404, detail=f"Unknown service '{service_id}'.")
    return {"removed": service_id}


# --- hosts ---
@app.get("/hosts")
def list_hosts() -> list[dict]:
    return [
        {"id": h.id, "mac": h.mac, "ip_addresses": sorted(h.ip_addresses), "location": h.location}
        for h in hosts.get_hosts()
    ]


@app.post("/hosts", status_code=201)
def add_host(req: HostRequest, username: str = Depends(get_current_username)) -> dict:
    try:
        host = Host(id=req.id, mac=req.mac, ip_addresses=frozenset(req.ip_addresses), location=req.location)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    hosts.add_host(host)
    dns.connect_host(host)
    return {"id": host.id}


@app.delete("/hosts/{host_id:path}")
def remove_host(host_id: str, username: str = Depends(get_current_username)) -> dict:
    host = hosts.remove_host(host_id)
    if host is None:
        raise HTTPException(status_code=404, detail=f"Unknown host '{host_id}'.")
    dropped = connections.remove_host_connections(host)
    db.log_event("INFO", f"Host {host_id} left; dropped {dropped} connection(s).")
    return {"removed": host_id, "connections": dropped}


# --- connections ---
def _connection(req: ConnectionRequest) -> Connection:
    host = hosts.get_host(req.host_id)
    if host is None:
        raise HTTPException(status_code=404, detail=f"Unknown host '{req.host_id}'.")
    svc = services.get_service(req.service_id)
    if svc is None:
        raise HTTPException(status_code=404, detail=f"Unknown service '{req.service_id}'.")
    return Connection(host=host, service=svc)


@app.get("/connections")
def list_connections(host_id: str | None = None) -> list[dict]:
    host = hosts.get_host(host_id) if host_id else None
    if host_id and host is None:
        return []
    return [
        {"host_id": c.host.id, "service_id": c.service.id, "service_name": c.service.name}
        for c in sorted(connections.get_connections(host=host), key=lambda c: (c.host.id, c.service.id))
    ]


@app.post("/connections", status_code=201)
def add_connection(req: ConnectionRequest, username: str = Depends(get_current_username)) -> dict:
    if not connections.add_connection(_connection(req)):
        raise HTTPException(status_code=409, detail="Connection already exists.")
    return {"host_id": req.host_id, "service_id": req.service_id}


@app.delete("/connections")
def remove_connection(req: ConnectionRequest, username: str = Depends(get_current_username)) -> dict:
    if not connections.remove_connection(_connection(req)):
        raise HTTPException(status_code=404, detail="No such connection.")
    return {"removed": True}


# --- dns ---
@app.post("/dns/activate")
def dns_activate(gateway: str | None = None, username: str = Depends(get_current_username)) -> dict:
    gateway = gateway or settings.default_gateway
    if not gateway:
        raise HTTPException(status_code=400, detail="No gateway given and BYOD_DEFAULT_GATEWAY is not set.")
    if not dns.activate(gateway):
        raise HTTPException(status_code=409, detail=f"Gateway {gateway} does not resolve to exactly one host.")
    return {"active": True, "gateway": gateway}


@app.post("/dns/deactivate")
def dns_deactivate(username: str = Depends(get_current_username)) -> dict:
    dns.deactivate()
    return {"active": False}


# --- events ---
@app.get("/events")
def events(limit: int = Query(100, ge=1, le=1000)) -> list[dict]:
    return db.latest_events(limit)
