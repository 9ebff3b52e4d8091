import email_validator
import pytest
from werkzeug.security import generate_password_hash

from app.gestio import create_app
from app.gestio.db import session_scope
from app.gestio.models import AuditEvent, Base, Company, User
from app.gestio.rbac import ensure_default_roles

API = "/api/v1"
PASSWORD = "correct-horse"

# Seed and payload addresses use the reserved .test domain; email-validator
# only accepts it when its documented test-environment switch is on.
email_validator.TEST_ENVIRONMENT = True

SEED_USERS = (
    ("super@gestio.test", "Super Admin", "SUPER_ADMIN", None),
    ("admin@acme.test", "Alice Admin", "COMPANY_ADMIN", "Acme"),
    ("manager@acme.test", "Mona Manager", "MANAGER", "Acme"),
    ("employee@acme.test", "Eddie Employee", "EMPLOYEE", "Acme"),
    ("user@acme.test", "Uma User", "USER", "Acme"),
    ("admin@globex.test", "Gus Admin", "COMPANY_ADMIN", "Globex"),
    ("employee@globex.test", "Gina Employee", "EMPLOYEE", "Globex"),
)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    for k in ("LOGIN_RATE_LIMIT", "LOGIN_RATE_WINDOW", "API_PAGE_SIZE_MAX"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        ensure_default_roles(s)
        companies = {name: Company(name=name) for name in ("Acme", "Globex")}
        s.add_all(companies.values())
        s.flush()
        for email, name, role, company in SEED_USERS:
            s.add(
                User(
                    email=email,
                    name=name,
                    password_hash=generate_password_hash(PASSWORD),
                    role=role,
                    company_id=companies[company].id if company else None,
                    is_active=True,
                )
            )

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def ids(app):
    with session_scope(app) as s:
        return {
            "companies": {c.name: c.id for c in s.query(Company)},
            "users": {u.email: u.id for u in s.query(User)},
        }


@pytest.fixture()
def login_as(app):
    """Returns a function: email -> (test client, headers carrying the CSRF token)."""

    def _login(email, password=PASSWORD):
        c = app.test_client()
        r = c.post("/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.json
        return c, {"X-CSRF-Token": r.json["csrfToken"]}

    return _login


def audit_rows(app, **filters):
    with session_scope(app) as s:
        q = s.query(AuditEvent)
        for field, value in filters.items():
            q = q.filter(getattr(AuditEvent, field) == value)
        return [
            {"action": ev.action, "entity_type": ev.entity_type, "entity_id": ev.entity_id, "actor": ev.actor_user_email}
            for ev in q.order_by(AuditEvent.id.asc())
        ]
