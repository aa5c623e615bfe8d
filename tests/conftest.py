import os
import tempfile

import pytest

# Configuration is read at import time, so point it at a scratch directory
# before the app is imported.
_TMP = tempfile.mkdtemp(prefix="moltr-test-")
os.environ["MOLTR_DB_PATH"] = os.path.join(_TMP, "moltr.db")
os.environ["OBJECT_STORE_BACKEND"] = "local"
os.environ["LOCAL_OBJECT_DIR"] = os.path.join(_TMP, "objects")
os.environ["RATE_LIMIT_RPM"] = "100000"
os.environ["LOG_JSON"] = "false"
os.environ["RECEIPT_BASE_URL"] = "https://api.moltr.test/r/"
os.environ["CDN_BASE_URL"] = "https://cdn.moltr.test"
# Cheapest Argon2id parameters libsodium accepts; keeps the credential scan fast
os.environ["MOLTR_ARGON2_OPSLIMIT"] = "1"
os.environ["MOLTR_ARGON2_MEMLIMIT"] = "8192"

from fastapi.testclient import TestClient

from moltr.main import app, limiter, _startup
from moltr.db import init_db, reset_db

init_db()
_startup()


# Reset database before each test for isolation
@pytest.fixture(autouse=True)
def _reset_db():
    reset_db()
    limiter.reset()
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def register(client):
    """Register a tag over HTTP and return (username, api_key)."""
    def _register(username, wallet="So1anaWa11et111"):
        r = client.post("/api/v1/tags/register", json={"username": username, "walletAddress": wallet})
        assert r.status_code == 201, r.text
        return username, r.json()["apiKey"]
    return _register
