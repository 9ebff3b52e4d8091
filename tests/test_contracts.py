from conftest import API


def _project(c, h, name="Mobile app"):
    r = c.post(f"{API}/projects", json={"name": name}, headers=h)
    assert r.status_code == 201
    return r.json


def test_signing_stamps_signed_at_and_locks_deletion(login_as):
    c, h = login_as("manager@acme.test")
    project = _project(c, h)

    r = c.post(f"{API}/contracts", json={"title": "Service agreement", "projectId": project["id"]}, headers=h)
    assert r.status_code == 201
    contract = r.json
    assert contract["status"] == "DRAFT"
    assert contract["signedAt"] is None
    assert contract["project"]["name"] == "Mobile app"

    r = c.patch(f"{API}/contracts/{contract['id']}", json={"status": "SIGNED"}, headers=h)
    assert r.status_code == 200
    assert r.json["signedAt"] is not None

    r = c.delete(f"{API}/contracts/{contract['id']}", headers=h)
    assert r.status_code == 400
    assert r.json["error"] == "A signed contract cannot be deleted"

    r = c.delete(f"{API}/projects/{project['id']}", headers=h)
    assert r.status_code == 400
    assert r.json["details"] == {"payments": 0, "contracts": 1}


def test_contract_created_signed_gets_timestamp(login_as):
    c, h = login_as("manager@acme.test")
    project = _project(c, h)
    r = c.post(
        f"{API}/contracts",
        json={"title": "NDA", "projectId": project["id"], "status": "SIGNED"},
        headers=h,
    )
    assert r.status_code == 201
    assert r.json["signedAt"] is not None


def test_draft_contract_deleted(login_as):
    c, h = login_as("manager@acme.test")
    project = _project(c, h)
    contract = c.post(f"{API}/contracts", json={"title": "Draft terms", "projectId": project["id"]}, headers=h).json
    assert c.delete(f"{API}/contracts/{contract['id']}", headers=h).status_code == 200
    assert c.get(f"{API}/contracts/{contract['id']}").status_code == 404


def test_contracts_filtered_and_tenant_scoped(login_as):
    c, h = login_as("manager@acme.test")
    first = _project(c, h, "Alpha")
    second = _project(c, h, "Beta")
    c.post(f"{API}/contracts", json={"title": "Alpha terms", "projectId": first["id"]}, headers=h)
    c.post(f"{API}/contracts", json={"title": "Beta terms", "projectId": second["id"], "status": "SENT"}, headers=h)

    assert c.get(f"{API}/contracts").json["pagination"]["total"] == 2
    r = c.get(f"{API}/contracts?status=SENT")
    assert [x["title"] for x in r.json["items"]] == ["Beta terms"]
    r = c.get(f"{API}/contracts?projectId={first['id']}")
    assert [x["title"] for x in r.json["items"]] == ["Alpha terms"]

    globex, gh = login_as("admin@globex.test")
    assert globex.get(f"{API}/contracts").json["pagination"]["total"] == 0
    r = globex.post(f"{API}/contracts", json={"title": "Hostile", "projectId": first["id"]}, headers=gh)
    assert r.status_code == 403


def test_contract_validation(login_as):
    c, h = login_as("manager@acme.test")
    r = c.post(f"{API}/contracts", json={"title": "X", "status": "VOID"}, headers=h)
    assert r.status_code == 400
    assert {"title", "projectId", "status"} <= set(r.json["details"])
    assert c.post(f"{API}/contracts", json={"title": "Orphan", "projectId": 999}, headers=h).status_code == 404
