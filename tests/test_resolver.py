from byod.hosts import HostTable
from byod.models import Discovery, Host, Protocol
from byod.resolver import entry_address, resolve, resolve_entry

from conftest import H_WEB, entry


def test_single_host_builds_catalog_service(hosts):
    svc = resolve_entry(entry("web-1", tags=["tag1", "other"]), hosts)
    assert svc is not None
    assert svc.id == "web-1"
    assert svc.name == "web"
    assert svc.port == 8080
    assert svc.icon == "tag1"
    assert svc.protocol is Protocol.TCP
    assert svc.discovery is Discovery.CONSUL
    assert svc.host == H_WEB
    assert svc.ip_addresses == frozenset({"10.0.0.5"})


def test_untagged_entry_gets_default_icon(hosts):
    assert resolve_entry(entry("web-1"), hosts).icon == "list"
    assert resolve_entry(entry("web-1"), hosts, default_icon="globe").icon == "globe"


def test_unknown_address_is_skipped(hosts):
    assert resolve_entry(entry("web-1", address="10.9.9.9"), hosts) is None


def test_ambiguous_address_is_skipped(hosts):
    hosts.add_host(Host(id="twin", mac="00:00:00:00:00:99", ip_addresses=frozenset({"10.0.0.5"})))
    assert resolve_entry(entry("web-1"), hosts) is None


def test_invalid_address_is_skipped(hosts):
    assert resolve_entry(entry("web-1", address="consul.local"), hosts) is None


def test_service_address_overrides_node_address(hosts):
    e = entry("web-1", address="10.9.9.9", service_address="10.0.0.5")
    assert entry_address(e) == "10.0.0.5"
    assert resolve_entry(e, hosts).host == H_WEB

    blank = entry("web-1", address="10.0.0.5", service_address="   ")
    assert entry_address(blank) == "10.0.0.5"


def test_resolve_policy_over_many_entries(hosts):
    entries = [
        entry("web-1"),
        entry("ghost-1", name="ghost", address="10.9.9.9"),
        entry("db-1", name="db", address="10.0.0.1", port=5432),
    ]
    out = resolve(entries, hosts)
    assert {s.id for s in out} == {"web-1", "db-1"}


def test_zero_port_becomes_unset():
    table = HostTable()
    table.add_host(H_WEB)
    assert resolve_entry(entry("web-1", port=0), table).port is None
