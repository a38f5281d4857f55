import json

import cli


class _Resp:
    def __init__(self, payload, ok=True):
        self._payload = payload
        self.ok = ok

    def json(self):
        return self._payload


def test_status_prints_catalog_state(monkeypatch, capsys):
    calls = []

    def fake_get(url, params=None, timeout=None):
        calls.append((url, params))
        return _Resp({"connected": False})

    monkeypatch.setattr(cli.requests, "get", fake_get)

    assert cli.main(["--api", "http://portal:8000/", "status"]) == 0
    assert calls == [("http://portal:8000/catalog", None)]
    assert json.loads(capsys.readouterr().out) == {"connected": False}


def test_connect_posts_address_with_auth(monkeypatch, capsys):
    seen = {}

    def fake_post(url, json=None, auth=None, timeout=None):
        seen.update(url=url, json=json, auth=auth)
        return _Resp({"detail": "Could not reach the catalog"}, ok=False)

    monkeypatch.setattr(cli.requests, "post", fake_post)

    rc = cli.main(["--user", "ops", "--password", "pw", "connect", "10.0.0.100", "--port", "8501"])
    assert rc == 1
    assert seen == {
        "url": "http://localhost:8000/catalog/connect",
        "json": {"address": "10.0.0.100", "port": 8501},
        "auth": ("ops", "pw"),
    }


def test_services_filter(monkeypatch, capsys):
    seen = {}

    def fake_get(url, params=None, timeout=None):
        seen.update(url=url, params=params)
        return _Resp([])

    monkeypatch.setattr(cli.requests, "get", fake_get)

    assert cli.main(["services", "--discovery", "CONSUL"]) == 0
    assert seen == {"url": "http://localhost:8000/services", "params": {"discovery": "CONSUL"}}
