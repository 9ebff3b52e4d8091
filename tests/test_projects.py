from conftest import API


def _project(c, h, **body):
    body.setdefault("name", "Website redesign")
    r = c.post(f"{API}/projects", json=body, headers=h)
    assert r.status_code == 201, r.json
    return r.json


def test_project_defaults_and_update(login_as, ids):
    c, h = login_as("manager@acme.test")
    project = _project(c, h, totalPrice=1500000)
    assert project["status"] == "PENDING_VALIDATION"
    assert project["currency"] == "XOF"
    assert project["ownerUserId"] == ids["users"]["manager@acme.test"]

    r = c.patch(f"{API}/projects/{project['id']}", json={"status": "IN_PROGRESS"}, headers=h)
    assert r.status_code == 200
    assert r.json["status"] == "IN_PROGRESS"

    r = c.get(f"{API}/projects?status=IN_PROGRESS")
    assert r.json["pagination"]["total"] == 1


def test_project_rejects_unknown_status(login_as):
    c, h = login_as("manager@acme.test")
    r = c.post(f"{API}/projects", json={"name": "Bad", "status": "ABANDONED"}, headers=h)
    assert r.status_code == 400
    assert "status" in r.json["details"]


def test_project_client_must_share_company(login_as):
    globex, gh = login_as("admin@globex.test")
    foreign = globex.post(f"{API}/clients", json={"name": "Globex Client"}, headers=gh).json

    c, h = login_as("manager@acme.test")
    r = c.post(f"{API}/projects", json={"name": "Poach", "clientId": foreign["id"]}, headers=h)
    assert r.status_code == 404


def test_client_payment_requires_client(login_as):
    c, h = login_as("manager@acme.test")
    r = c.post(f"{API}/payments", json={"paymentType": "CLIENT", "amount": 100}, headers=h)
    assert r.status_code == 400
    assert "_root" in r.json["details"]

    r = c.post(f"{API}/payments", json={"paymentType": "OTHER", "amount": 0}, headers=h)
    assert r.status_code == 400
    assert "amount" in r.json["details"]


def test_partial_payment_parts_validated(login_as):
    c, h = login_as("manager@acme.test")
    r = c.post(
        f"{API}/payments",
        json={"paymentType": "OTHER", "amount": 50, "isPartial": True, "partNumber": 3, "totalParts": 2},
        headers=h,
    )
    assert r.status_code == 400
    assert r.json["details"]["_root"] == ["Value error, partNumber cannot exceed totalParts"]


def test_payment_inherits_project_company_and_blocks_project_delete(login_as, ids):
    c, h = login_as("manager@acme.test")
    project = _project(c, h)
    r = c.post(
        f"{API}/payments",
        json={
            "paymentType": "PRESTATAIRE",
            "payee": "Studio Graphique",
            "amount": 250000,
            "status": "COMPLETE",
            "projectId": project["id"],
        },
        headers=h,
    )
    assert r.status_code == 201
    assert r.json["companyId"] == ids["companies"]["Acme"]
    assert r.json["payee"] == "Studio Graphique"

    r = c.get(f"{API}/payments?projectId={project['id']}")
    assert r.json["pagination"]["total"] == 1

    r = c.delete(f"{API}/projects/{project['id']}", headers=h)
    assert r.status_code == 400
    assert r.json["details"] == {"payments": 1, "contracts": 0}


def test_payment_for_foreign_project_denied(login_as):
    globex, gh = login_as("admin@globex.test")
    project = _project(globex, gh, name="Globex HQ")

    c, h = login_as("manager@acme.test")
    r = c.post(
        f"{API}/payments",
        json={"paymentType": "OTHER", "amount": 10, "projectId": project["id"]},
        headers=h,
    )
    assert r.status_code == 403


def test_client_payment_client_and_project_share_company(login_as):
    globex, gh = login_as("admin@globex.test")
    foreign = globex.post(f"{API}/clients", json={"name": "Globex Client"}, headers=gh).json

    c, h = login_as("manager@acme.test")
    project = _project(c, h)
    r = c.post(
        f"{API}/payments",
        json={"paymentType": "CLIENT", "amount": 100, "clientId": foreign["id"], "projectId": project["id"]},
        headers=h,
    )
    assert r.status_code == 400
    assert r.json["error"] == "Client and project must belong to the same company"

    r = c.post(f"{API}/payments", json={"paymentType": "CLIENT", "amount": 100, "clientId": foreign["id"]}, headers=h)
    assert r.status_code == 403


def _payment(c, h, **overrides):
    body = {"paymentType": "OTHER", "amount": 1000, "description": "Hosting"}
    body.update(overrides)
    r = c.post(f"{API}/payments", json=body, headers=h)
    assert r.status_code == 201, r.json
    return r.json


def test_payment_detail_is_company_scoped(login_as):
    c, h = login_as("manager@acme.test")
    payment = _payment(c, h)

    globex, gh = login_as("admin@globex.test")
    assert globex.get(f"{API}/payments/{payment['id']}").status_code == 403
    assert globex.patch(f"{API}/payments/{payment['id']}", json={"amount": 1}, headers=gh).status_code == 403
    assert globex.delete(f"{API}/payments/{payment['id']}", headers=gh).status_code == 403
    assert c.get(f"{API}/payments/{payment['id']}").json["amount"] == 1000


def test_payment_update_and_delete(login_as):
    c, h = login_as("manager@acme.test")
    payment = _payment(c, h)
    url = f"{API}/payments/{payment['id']}"

    r = c.patch(url, json={"status": "COMPLETE", "reference": "TRX-42"}, headers=h)
    assert r.status_code == 200
    assert (r.json["status"], r.json["reference"], r.json["amount"]) == ("COMPLETE", "TRX-42", 1000)

    r = c.patch(url, json={"isPartial": True, "partNumber": 1}, headers=h)
    assert r.status_code == 400
    r = c.patch(url, json={"isPartial": True, "partNumber": 3, "totalParts": 2}, headers=h)
    assert r.status_code == 400
    r = c.patch(url, json={"isPartial": True, "partNumber": 1, "totalParts": 2}, headers=h)
    assert r.status_code == 200
    r = c.patch(url, json={"partNumber": 2}, headers=h)
    assert r.status_code == 200
    assert (r.json["partNumber"], r.json["totalParts"]) == (2, 2)
    assert c.patch(url, json={"amount": -5}, headers=h).status_code == 400

    employee, eh = login_as("employee@acme.test")
    assert employee.delete(url, headers=eh).status_code == 403
    r = c.delete(url, headers=h)
    assert r.status_code == 200
    assert c.get(url).status_code == 404
