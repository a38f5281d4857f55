import os
import sys
import tempfile

import pytest

# Keep the event log out of the working tree; settings are read at import.
os.environ.setdefault("BYOD_DB_PATH", os.path.join(tempfile.mkdtemp(prefix="byod-tests-"), "events.db"))

# Ensure project root is importable (so `import main` works reliably across environments)
_project_root = os.path.dirname(os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from byod.api_models import CatalogEntry  # noqa: E402
from byod.hosts import HostTable  # noqa: E402
from byod.models import Discovery, Host, Service  # noqa: E402
from byod.registry import ConnectionRegistry, ServiceRegistry  # noqa: E402

H1 = Host(id="00:00:00:00:00:01/None", mac="00:00:00:00:00:01", ip_addresses=frozenset({"10.0.0.1"}))
H2 = Host(id="00:00:00:00:00:02/None", mac="00:00:00:00:00:02", ip_addresses=frozenset({"10.0.0.2"}))
H_WEB = Host(id="00:00:00:00:00:05/None", mac="00:00:00:00:00:05", ip_addresses=frozenset({"10.0.0.5"}))


def consul_service(sid: str, name: str = "web", ip: str = "10.0.0.5", port: int = 8080, icon: str = "list", host=H_WEB):
    return Service(
        id=sid,
        name=name,
        ip_addresses=frozenset({ip}),
        port=port,
        discovery=Discovery.CONSUL,
        icon=icon,
        host=host,
    )


def entry(sid: str, name: str = "web", address: str = "10.0.0.5", port: int = 8080, tags=None, service_address=""):
    return CatalogEntry.model_validate(
        {
            "ServiceID": sid,
            "ServiceName": name,
            "Address": address,
            "ServiceAddress": service_address,
            "ServicePort": port,
            "ServiceTags": tags,
        }
    )


@pytest.fixture
def connections():
    return ConnectionRegistry()


@pytest.fixture
def services(connections):
    return ServiceRegistry(connections)


@pytest.fixture
def hosts():
    table = HostTable()
    for h in (H1, H2, H_WEB):
        table.add_host(h)
    return table
