"""
Application-level tests: health probes, request middleware, error
handlers, configuration and log formatting.
"""

import json
import logging

import pytest

from tourdesk.config import ProductionConfig
from tourdesk.middleware.logging_config import JSONFormatter


def test_health(client):
    res = client.get("/api/v1/health")

    assert res.status_code == 200
    assert res.get_json() == {"status": "ok", "app": "Tourdesk"}


def test_health_ready(client):
    assert client.get("/api/v1/health/ready").get_json()["status"] == "ok"


def test_health_live_reports_database(client):
    res = client.get("/api/v1/health/live")

    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["status"] == "ok"
    assert body["checks"]["rate_limit_storage"]["enabled"] is False


def test_request_id_is_echoed(client):
    res = client.get("/api/v1/events", headers={"X-Request-ID": "abc123"})

    assert res.headers["X-Request-ID"] == "abc123"
    assert float(res.headers["X-Request-Duration-Ms"]) >= 0


def test_request_id_is_generated(client):
    res = client.get("/api/v1/events")

    assert len(res.headers["X-Request-ID"]) == 12


def test_unknown_api_route_is_json_404(client):
    res = client.get("/api/v1/nowhere")

    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_NOT_FOUND"


def test_wrong_method_is_405(client):
    assert client.patch("/api/v1/events").status_code == 405


def test_production_config_requires_database_url(monkeypatch):
    monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", None)

    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        ProductionConfig()


def test_production_config_requires_secret_key(monkeypatch):
    monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", "postgresql://db/tourdesk")
    monkeypatch.delenv("SECRET_KEY", raising=False)

    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        ProductionConfig()


def test_json_formatter_copies_domain_context():
    record = logging.LogRecord("tourdesk.test", logging.WARNING, __file__, 1, "Upsert failed", None, None)
    record.event_id = 7
    record.participant_id = 42

    entry = json.loads(JSONFormatter().format(record))

    assert entry["level"] == "WARNING"
    assert entry["message"] == "Upsert failed"
    assert entry["event_id"] == 7
    assert entry["participant_id"] == 42
    assert "request_id" not in entry
