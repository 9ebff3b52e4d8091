from collections import defaultdict
from datetime import datetime, timedelta

from conftest import API, PASSWORD, audit_rows


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_checks_database(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json == {"ok": True, "db": "ok"}


def test_login_and_me(client):
    # Anonymous should be rejected
    r = client.get("/auth/me")
    assert r.status_code == 401

    r = client.post("/auth/login", json={"email": "Admin@Acme.test", "password": PASSWORD})
    assert r.status_code == 200
    assert r.json["user"]["email"] == "admin@acme.test"
    assert r.json["user"]["role"] == "COMPANY_ADMIN"
    assert r.json["csrfToken"]

    r = client.get("/auth/me")
    assert r.status_code == 200
    assert r.json["user"]["email"] == "admin@acme.test"
    assert "X-Request-ID" in r.headers


def test_bad_credentials_are_audited(app, client):
    r = client.post("/auth/login", json={"email": "admin@acme.test", "password": "wrong-password"})
    assert r.status_code == 401
    assert r.json["error"] == "Invalid credentials"

    rows = audit_rows(app, action="auth.login_failed")
    assert len(rows) == 1
    assert rows[0]["entity_id"] == "admin@acme.test"


def test_login_rate_limited(client):
    for _ in range(5):
        r = client.post("/auth/login", json={"email": "admin@acme.test", "password": "nope-nope"})
        assert r.status_code == 401
    r = client.post("/auth/login", json={"email": "admin@acme.test", "password": PASSWORD})
    assert r.status_code == 429


def test_expired_login_attempts_are_dropped(app, client):
    stale = datetime.utcnow() - timedelta(hours=1)
    attempts = app.extensions.setdefault("login_attempts", defaultdict(list))
    attempts["10.0.0.9"].extend([stale] * 5)
    attempts["127.0.0.1"].extend([stale] * 5)

    r = client.post("/auth/login", json={"email": "admin@acme.test", "password": "nope-nope"})
    assert r.status_code == 401
    assert "10.0.0.9" not in app.extensions["login_attempts"]
    assert len(app.extensions["login_attempts"]["127.0.0.1"]) == 1

    r = client.post("/auth/login", json={"email": "admin@acme.test", "password": PASSWORD})
    assert r.status_code == 200
    assert "127.0.0.1" not in app.extensions["login_attempts"]


def test_logout(login_as):
    c, headers = login_as("employee@acme.test")
    assert c.get("/auth/me").status_code == 200
    assert c.post("/auth/logout").status_code == 200
    assert c.get("/auth/me").status_code == 401


def test_api_requires_login(client):
    r = client.get(f"{API}/clients")
    assert r.status_code == 401


def test_mutation_without_csrf_token_rejected(login_as):
    c, headers = login_as("admin@acme.test")
    r = c.post(f"{API}/clients", json={"name": "No Token Ltd"})
    assert r.status_code == 400
    assert "CSRF" in r.json["error"]

    r = c.post(f"{API}/clients", json={"name": "Bad Token Ltd"}, headers={"X-CSRF-Token": "forged"})
    assert r.status_code == 400

    r = c.post(f"{API}/clients", json={"name": "Token Ltd"}, headers=headers)
    assert r.status_code == 201


def test_unknown_route_is_json(client):
    r = client.get(f"{API}/does-not-exist")
    assert r.status_code == 404
    assert "error" in r.json
