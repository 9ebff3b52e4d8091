from conftest import API, audit_rows


def _make_client(c, h, **overrides):
    body = {"name": "Wayne Enterprises", "email": "Contact@Wayne.test", "phone": "+221 77 000 00 00"}
    body.update(overrides)
    r = c.post(f"{API}/clients", json=body, headers=h)
    assert r.status_code == 201, r.json
    return r.json


def test_client_crud_roundtrip(app, login_as, ids):
    c, h = login_as("manager@acme.test")
    created = _make_client(c, h)
    assert created["companyId"] == ids["companies"]["Acme"]
    assert created["email"] == "contact@wayne.test"

    r = c.get(f"{API}/clients/{created['id']}")
    assert r.status_code == 200
    assert r.json["projectCount"] == 0
    assert r.json["invoiceCount"] == 0

    r = c.patch(f"{API}/clients/{created['id']}", json={"notes": "Prefers email"}, headers=h)
    assert r.status_code == 200
    assert r.json["notes"] == "Prefers email"

    r = c.delete(f"{API}/clients/{created['id']}", headers=h)
    assert r.status_code == 200
    assert c.get(f"{API}/clients/{created['id']}").status_code == 404

    actions = [row["action"] for row in audit_rows(app, entity_type="CLIENT", entity_id=str(created["id"]))]
    assert actions == ["CREATE", "UPDATE", "DELETE"]


def test_client_validation_details(login_as):
    c, h = login_as("manager@acme.test")
    r = c.post(f"{API}/clients", json={"name": "X", "email": "nope"}, headers=h)
    assert r.status_code == 400
    assert set(r.json["details"]) == {"name", "email"}


def test_duplicate_client_email_conflicts(login_as):
    c, h = login_as("manager@acme.test")
    _make_client(c, h)
    r = c.post(f"{API}/clients", json={"name": "Wayne Again", "email": "contact@wayne.test"}, headers=h)
    assert r.status_code == 409


def test_clients_are_tenant_isolated(login_as):
    acme, acme_h = login_as("manager@acme.test")
    created = _make_client(acme, acme_h)

    globex, globex_h = login_as("admin@globex.test")
    assert globex.get(f"{API}/clients/{created['id']}").status_code == 403
    assert globex.delete(f"{API}/clients/{created['id']}", headers=globex_h).status_code == 403
    assert globex.get(f"{API}/clients").json["pagination"]["total"] == 0


def test_employee_cannot_create_clients(app, login_as):
    c, h = login_as("employee@acme.test")
    r = c.post(f"{API}/clients", json={"name": "Nope Inc"}, headers=h)
    assert r.status_code == 403
    assert audit_rows(app, action="ACCESS_DENIED", entity_type="CLIENT")

    r = c.get(f"{API}/clients")
    assert r.status_code == 200


def test_client_list_search_and_pagination(login_as):
    c, h = login_as("manager@acme.test")
    for i in range(12):
        _make_client(c, h, name=f"Client {i:02d}", email=f"c{i}@clients.test")

    r = c.get(f"{API}/clients?limit=5&page=3")
    assert r.json["pagination"] == {"total": 12, "page": 3, "limit": 5, "totalPages": 3}
    assert len(r.json["items"]) == 2

    r = c.get(f"{API}/clients?search=c7@")
    assert [cl["name"] for cl in r.json["items"]] == ["Client 07"]


def test_client_with_projects_cannot_be_deleted(login_as):
    c, h = login_as("manager@acme.test")
    created = _make_client(c, h)
    r = c.post(f"{API}/projects", json={"name": "Batcave", "clientId": created["id"]}, headers=h)
    assert r.status_code == 201

    r = c.delete(f"{API}/clients/{created['id']}", headers=h)
    assert r.status_code == 400
    assert r.json["details"] == {"projects": 1, "invoices": 0}
