from moltr import main
from moltr.rate_limit import RateLimiter
from moltr.security import extract_client_id


def test_limiter_allows_up_to_limit():
    limiter = RateLimiter(3)
    results = [limiter.check("ip:1") for _ in range(4)]
    assert [r.allowed for r in results] == [True, True, True, False]
    assert results[0].remaining == 2
    assert 0 < results[3].retry_after <= 60


def test_limiter_keys_are_independent():
    limiter = RateLimiter(1)
    assert limiter.allow("ip:1")
    assert not limiter.allow("ip:1")
    assert limiter.allow("ip:2")


def test_limiter_reset():
    limiter = RateLimiter(1)
    limiter.allow("ip:1")
    limiter.allow("ip:2")
    limiter.reset("ip:1")
    assert limiter.allow("ip:1")
    assert not limiter.allow("ip:2")
    limiter.reset()
    assert limiter.allow("ip:2")


def test_window_expiry(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr("moltr.rate_limit.time.monotonic", lambda: clock[0])
    limiter = RateLimiter(1, window_seconds=60)
    assert limiter.allow("k")
    assert not limiter.allow("k")
    clock[0] += 61
    assert limiter.allow("k")


def test_idle_keys_swept(monkeypatch):
    clock = [0.0]
    monkeypatch.setattr("moltr.rate_limit.time.monotonic", lambda: clock[0])
    limiter = RateLimiter(5, window_seconds=10, sweep_every=2)
    limiter.allow("old")
    clock[0] += 20
    limiter.allow("new")
    assert "old" not in limiter._hits


def test_client_id_ignores_api_key():
    headers = {"x-forwarded-for": "1.2.3.4, 10.0.0.1", "x-api-key": "k"}
    assert extract_client_id(headers, "5.6.7.8", trust_proxy=True) == "ip:1.2.3.4"
    assert extract_client_id({}, "5.6.7.8") == "ip:5.6.7.8"
    assert extract_client_id({}) == "anonymous"


def test_forwarded_for_ignored_without_trusted_proxy():
    headers = {"x-forwarded-for": "1.2.3.4"}
    assert extract_client_id(headers, "5.6.7.8") == "ip:5.6.7.8"
    assert extract_client_id(headers) == "anonymous"


def test_spoofed_forwarded_for_does_not_bypass_limit(client, monkeypatch):
    monkeypatch.setattr(main, "limiter", RateLimiter(2))
    for ip in ("1.1.1.1", "2.2.2.2"):
        assert client.get("/health", headers={"x-forwarded-for": ip}).status_code == 200
    assert client.get("/health", headers={"x-forwarded-for": "3.3.3.3"}).status_code == 429


def test_middleware_returns_429(client, monkeypatch):
    monkeypatch.setattr(main, "limiter", RateLimiter(2))
    monkeypatch.setattr(main, "TRUST_PROXY", True)
    headers = {"x-forwarded-for": "9.9.9.9"}
    assert client.get("/health", headers=headers).status_code == 200
    assert client.get("/health", headers=headers).status_code == 200

    r = client.get("/health", headers=headers)
    assert r.status_code == 429
    assert r.json()["detail"] == "RATE_LIMIT"
    assert int(r.headers["Retry-After"]) >= 1

    # a different client is unaffected
    assert client.get("/health", headers={"x-forwarded-for": "8.8.8.8"}).status_code == 200
