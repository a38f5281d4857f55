import logging
import uuid

from byod import db
from byod.settings import _env_bool, _env_int


def test_info_events_are_persisted(caplog):
    marker = uuid.uuid4().hex
    with caplog.at_level(logging.INFO, logger="byod"):
        db.log_event("info", f"persist {marker}", service_name="web", service_id="web-1")

    (row,) = [e for e in db.latest_events(500) if marker in e["message"]]
    assert row["level"] == "INFO"
    assert row["service_name"] == "web"
    assert row["service_id"] == "web-1"
    assert f"[web] persist {marker}" in caplog.text


def test_debug_events_only_reach_the_logger(caplog):
    marker = uuid.uuid4().hex
    with caplog.at_level(logging.DEBUG, logger="byod"):
        db.log_event("DEBUG", f"trace {marker}")

    assert not [e for e in db.latest_events(500) if marker in e["message"]]
    assert marker in caplog.text


def test_env_helpers(monkeypatch):
    monkeypatch.setenv("BYOD_TEST_INT", "12")
    monkeypatch.setenv("BYOD_TEST_BAD_INT", "twelve")
    monkeypatch.setenv("BYOD_TEST_BOOL", "Yes")
    assert _env_int("BYOD_TEST_INT", 1) == 12
    assert _env_int("BYOD_TEST_BAD_INT", 1) == 1
    assert _env_int("BYOD_TEST_MISSING", 7) == 7
    assert _env_bool("BYOD_TEST_BOOL") is True
    assert _env_bool("BYOD_TEST_MISSING", True) is True
