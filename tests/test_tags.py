import threading

from moltr import db
from moltr.tags import register_tag
from moltr.errors import Conflict


def test_register_returns_one_time_key(client):
    r = client.post("/api/v1/tags/register", json={"username": "agent_007", "walletAddress": "WaLLet1"})
    assert r.status_code == 201
    body = r.json()
    assert body["username"] == "agent_007"
    assert body["walletAddress"] == "WaLLet1"
    assert body["apiKey"].startswith("mk_")

    # the key is stored only as a hash
    creds = db.list_credentials()
    assert len(creds) == 1
    assert body["apiKey"] not in creds[0]["api_key_hash"]


def test_register_rejects_bad_usernames(client):
    for username in ["ab", "a" * 21, "Upper", "has-dash", "sp ace", "", "émile"]:
        r = client.post("/api/v1/tags/register", json={"username": username, "walletAddress": "w"})
        assert r.status_code == 400, username
        assert r.json()["detail"] == "VALIDATION_FAILED"


def test_register_requires_wallet(client):
    r = client.post("/api/v1/tags/register", json={"username": "nowallet", "walletAddress": ""})
    assert r.status_code == 400
    r = client.post("/api/v1/tags/register", json={"username": "nowallet"})
    assert r.status_code == 400


def test_duplicate_registration_conflicts(client, register):
    register("dupe")
    r = client.post("/api/v1/tags/register", json={"username": "dupe", "walletAddress": "other"})
    assert r.status_code == 409
    assert r.json()["detail"] == "CONFLICT"
    assert "apiKey" not in r.json()


def test_concurrent_registration_exactly_one_wins():
    results = []
    barrier = threading.Barrier(2)

    def attempt():
        barrier.wait()
        try:
            register_tag("racer", "wallet")
            results.append("created")
        except Conflict:
            results.append("conflict")
        finally:
            db.close_connection()

    threads = [threading.Thread(target=attempt) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == ["conflict", "created"]
    assert len(db.list_credentials()) == 1


def test_lookup_is_exact_and_public(client, register):
    register("lookup_me", wallet="W123")
    r = client.get("/api/v1/tags/lookup_me")
    assert r.status_code == 200
    assert r.json() == {"username": "lookup_me", "walletAddress": "W123"}

    # case-normalized
    assert client.get("/api/v1/tags/LOOKUP_ME").status_code == 200

    # no prefix matching
    assert client.get("/api/v1/tags/lookup").status_code == 404
    assert client.get("/api/v1/tags/lookup_me_too").status_code == 404


def test_lookup_invalid_username(client):
    r = client.get("/api/v1/tags/x")
    assert r.status_code == 400


def test_lookup_never_exposes_credentials(client, register):
    register("private")
    body = client.get("/api/v1/tags/private").json()
    assert set(body) == {"username", "walletAddress"}


def test_update_own_wallet(client, register):
    _, key = register("mover", wallet="old")
    register("bystander", wallet="theirs")

    r = client.patch("/api/v1/tags/me", json={"walletAddress": "new"}, headers={"x-api-key": key})
    assert r.status_code == 200
    assert r.json() == {"username": "mover", "walletAddress": "new"}

    assert client.get("/api/v1/tags/mover").json()["walletAddress"] == "new"
    assert client.get("/api/v1/tags/bystander").json()["walletAddress"] == "theirs"


def test_update_wallet_requires_key(client, register):
    register("guarded", wallet="old")
    r = client.patch("/api/v1/tags/me", json={"walletAddress": "new"})
    assert r.status_code == 401
    r = client.patch("/api/v1/tags/me", json={"walletAddress": "new"}, headers={"x-api-key": "z" * 40})
    assert r.status_code == 401
    assert client.get("/api/v1/tags/guarded").json()["walletAddress"] == "old"


def test_update_wallet_rejects_empty(client, register):
    _, key = register("emptywallet")
    r = client.patch("/api/v1/tags/me", json={"walletAddress": ""}, headers={"x-api-key": key})
    assert r.status_code == 400
