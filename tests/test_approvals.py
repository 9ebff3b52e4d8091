from conftest import API


def _request(c, h, approver_id, request_type="LEAVE"):
    r = c.post(
        f"{API}/approval-requests",
        json={"requestType": request_type, "approverId": approver_id, "requestData": {"days": 3}},
        headers=h,
    )
    assert r.status_code == 201, r.json
    return r.json


def test_request_lifecycle(login_as, ids):
    manager_id = ids["users"]["manager@acme.test"]
    employee, eh = login_as("employee@acme.test")
    req = _request(employee, eh, manager_id)
    assert req["status"] == "PENDING"
    assert req["requester"]["email"] == "employee@acme.test"
    assert req["approver"]["id"] == manager_id
    assert req["requestData"] == {"days": 3}

    r = employee.patch(f"{API}/approval-requests/{req['id']}", json={"status": "APPROVED"}, headers=eh)
    assert r.status_code == 403

    manager, mh = login_as("manager@acme.test")
    r = manager.patch(
        f"{API}/approval-requests/{req['id']}", json={"status": "APPROVED", "comments": "Enjoy"}, headers=mh
    )
    assert r.status_code == 200
    assert r.json["status"] == "APPROVED"
    assert r.json["comments"] == "Enjoy"

    r = employee.delete(f"{API}/approval-requests/{req['id']}", headers=eh)
    assert r.status_code == 400


def test_requester_withdraws_pending_request(login_as, ids):
    employee, eh = login_as("employee@acme.test")
    req = _request(employee, eh, ids["users"]["manager@acme.test"])
    r = employee.delete(f"{API}/approval-requests/{req['id']}", headers=eh)
    assert r.status_code == 200
    assert employee.get(f"{API}/approval-requests/{req['id']}").status_code == 404


def test_approver_must_share_company(login_as, ids):
    employee, eh = login_as("employee@acme.test")
    r = employee.post(
        f"{API}/approval-requests",
        json={"requestType": "EXPENSE", "approverId": ids["users"]["admin@globex.test"]},
        headers=eh,
    )
    assert r.status_code == 403

    r = employee.post(f"{API}/approval-requests", json={"requestType": "EXPENSE", "approverId": 9999}, headers=eh)
    assert r.status_code == 404


def test_status_must_be_known(login_as, ids):
    employee, eh = login_as("employee@acme.test")
    req = _request(employee, eh, ids["users"]["manager@acme.test"])
    manager, mh = login_as("manager@acme.test")
    r = manager.patch(f"{API}/approval-requests/{req['id']}", json={"status": "MAYBE"}, headers=mh)
    assert r.status_code == 400
    assert "status" in r.json["details"]


def test_visibility(login_as, ids):
    employee, eh = login_as("employee@acme.test")
    req = _request(employee, eh, ids["users"]["manager@acme.test"])
    _request(employee, eh, ids["users"]["admin@acme.test"], "EXPENSE")

    manager, _ = login_as("manager@acme.test")
    r = manager.get(f"{API}/approval-requests")
    assert [x["requestType"] for x in r.json["items"]] == ["LEAVE"]

    admin, _ = login_as("admin@acme.test")
    r = admin.get(f"{API}/approval-requests")
    assert r.json["pagination"]["total"] == 2
    r = admin.get(f"{API}/approval-requests?requestType=EXPENSE")
    assert r.json["pagination"]["total"] == 1

    globex_admin, _ = login_as("admin@globex.test")
    assert globex_admin.get(f"{API}/approval-requests").json["pagination"]["total"] == 0
    assert globex_admin.get(f"{API}/approval-requests/{req['id']}").status_code == 403

    outsider, _ = login_as("employee@globex.test")
    assert outsider.get(f"{API}/approval-requests/{req['id']}").status_code == 403

    user, _ = login_as("user@acme.test")
    assert user.get(f"{API}/approval-requests").status_code == 403


def test_other_company_admin_cannot_touch_request(login_as, ids):
    employee, eh = login_as("employee@acme.test")
    req = _request(employee, eh, ids["users"]["manager@acme.test"])
    url = f"{API}/approval-requests/{req['id']}"

    globex, gh = login_as("admin@globex.test")
    assert globex.get(url).status_code == 403
    assert globex.patch(url, json={"status": "APPROVED"}, headers=gh).status_code == 403
    assert globex.delete(url, headers=gh).status_code == 403
    assert employee.get(url).json["status"] == "PENDING"
