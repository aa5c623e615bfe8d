import sqlite3

from moltr import auth, config
from moltr.errors import StoreUnavailable, UpstreamFailure
from moltr.security import sanitize_for_logging
from moltr.util import utc_iso8601


def test_request_id_header(client):
    r = client.get("/health")
    assert r.headers["X-Request-ID"]

    r = client.get("/health", headers={"x-request-id": "req-123"})
    assert r.headers["X-Request-ID"] == "req-123"


def test_validation_errors_do_not_echo_values(client):
    r = client.post("/api/v1/tags/register", json={"username": "Bad-Name!", "walletAddress": "secretwallet"})
    assert r.status_code == 400
    assert "Bad-Name!" not in r.text


def test_openapi_served(client):
    r = client.get("/openapi.json")
    assert r.status_code == 200
    paths = r.json()["paths"]
    assert "/api/v1/tags/register" in paths
    assert "/api/v1/receipts/create" in paths
    assert "/health" in paths


def test_config_checks():
    checks = config.validate_config()
    assert checks["db_path"]
    assert checks["object_store_backend"]
    assert "s3_bucket" not in checks


def test_sanitize_for_logging():
    data = {"apiKey": "mk_x", "nested": {"memo": "hi", "ok": 1}, "items": [{"signature": "s"}]}
    assert sanitize_for_logging(data) == {
        "apiKey": "[REDACTED]",
        "nested": {"memo": "[REDACTED]", "ok": 1},
        "items": [{"signature": "[REDACTED]"}],
    }


def test_timestamp_rendering():
    assert utc_iso8601(0) == "1970-01-01T00:00:00.000000Z"
    assert utc_iso8601(1_700_000_000_123_456) == "2023-11-14T22:13:20.123456Z"


def test_store_failure_during_auth_is_unavailable(client, register, monkeypatch):
    _, key = register("stored")

    def broken(*args):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(auth, "list_credentials", broken)
    monkeypatch.setattr(auth, "list_credentials_for_key_id", broken)

    r = client.get("/api/v1/receipts", headers={"x-api-key": key})
    assert r.status_code == 503
    assert r.json()["detail"] == "UPSTREAM_FAILURE"
    assert key not in r.text
    assert "locked" not in r.text


def test_store_unavailable_status():
    assert StoreUnavailable.status_code == 503
    assert StoreUnavailable.code == UpstreamFailure.code
