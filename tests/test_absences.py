from conftest import API, audit_rows


def _absence(c, h, **overrides):
    body = {
        "startDate": "2024-07-01T00:00:00Z",
        "endDate": "2024-07-05T00:00:00Z",
        "type": "VACATION",
        "reason": "Summer break",
    }
    body.update(overrides)
    return c.post(f"{API}/absences", json=body, headers=h)


def test_absence_with_approver_opens_request(app, login_as, ids):
    c, h = login_as("employee@acme.test")
    r = _absence(c, h, approverId=ids["users"]["manager@acme.test"])
    assert r.status_code == 201
    absence = r.json
    assert absence["status"] == "PENDING"
    assert absence["user"]["email"] == "employee@acme.test"
    assert absence["approvalRequest"]["approverId"] == ids["users"]["manager@acme.test"]

    req = c.get(f"{API}/approval-requests/{absence['approvalRequestId']}").json
    assert req["requestType"] == "ABSENCE"
    assert req["requestData"]["absenceId"] == absence["id"]
    assert [row["entity_type"] for row in audit_rows(app, action="CREATE")] == ["APPROVAL_REQUEST", "ABSENCE"]

    r = _absence(c, h, needsApproval=False, approverId=ids["users"]["manager@acme.test"])
    assert r.json["approvalRequestId"] is None


def test_absence_dates_and_reason_validated(login_as):
    c, h = login_as("employee@acme.test")
    r = _absence(c, h, startDate="2024-07-10T00:00:00Z")
    assert r.status_code == 400
    assert "_root" in r.json["details"]

    r = _absence(c, h, reason="no")
    assert r.status_code == 400
    assert "reason" in r.json["details"]


def test_only_admins_record_absences_for_others(login_as, ids):
    employee, eh = login_as("employee@acme.test")
    assert _absence(employee, eh, userId=ids["users"]["manager@acme.test"]).status_code == 403
    assert _absence(employee, eh, status="APPROVED").status_code == 403

    admin, ah = login_as("admin@acme.test")
    r = _absence(admin, ah, userId=ids["users"]["employee@acme.test"], status="APPROVED")
    assert r.status_code == 201
    assert r.json["userId"] == ids["users"]["employee@acme.test"]
    assert _absence(admin, ah, userId=ids["users"]["employee@globex.test"]).status_code == 403


def test_absence_visibility(login_as, ids):
    employee, eh = login_as("employee@acme.test")
    mine = _absence(employee, eh).json
    manager, mh = login_as("manager@acme.test")
    _absence(manager, mh, type="SICK")

    r = employee.get(f"{API}/absences")
    assert [a["id"] for a in r.json["data"]] == [mine["id"]]
    assert manager.get(f"{API}/absences/{mine['id']}").status_code == 403

    admin, _ = login_as("admin@acme.test")
    assert admin.get(f"{API}/absences").json["pagination"]["total"] == 2
    r = admin.get(f"{API}/absences?type=SICK&search=mona")
    assert r.json["pagination"]["total"] == 1
    r = admin.get(f"{API}/absences?startDate=2024-07-06T00:00:00Z")
    assert r.json["pagination"]["total"] == 0
    assert admin.get(f"{API}/absences/{mine['id']}").status_code == 200

    globex, _ = login_as("admin@globex.test")
    assert globex.get(f"{API}/absences").json["pagination"]["total"] == 0
    assert globex.get(f"{API}/absences/{mine['id']}").status_code == 403


def test_approver_decides_and_request_follows(login_as, ids):
    employee, eh = login_as("employee@acme.test")
    absence = _absence(employee, eh, approverId=ids["users"]["manager@acme.test"]).json
    url = f"{API}/absences/{absence['id']}"

    r = employee.patch(url, json={"status": "APPROVED"}, headers=eh)
    assert r.status_code == 403
    r = employee.patch(url, json={"reason": "Family trip"}, headers=eh)
    assert r.status_code == 200

    manager, mh = login_as("manager@acme.test")
    r = manager.patch(url, json={"reason": "Changed by approver"}, headers=mh)
    assert r.status_code == 403
    assert r.json["details"] == {"fields": ["reason"]}
    r = manager.patch(url, json={"status": "APPROVED"}, headers=mh)
    assert r.status_code == 200
    assert r.json["approvalRequest"]["status"] == "APPROVED"

    assert employee.patch(url, json={"reason": "Too late now"}, headers=eh).status_code == 403
    assert employee.delete(url, headers=eh).status_code == 403


def test_deciding_the_request_settles_the_absence(login_as, ids):
    employee, eh = login_as("employee@acme.test")
    absence = _absence(employee, eh, approverId=ids["users"]["manager@acme.test"]).json

    manager, mh = login_as("manager@acme.test")
    r = manager.patch(
        f"{API}/approval-requests/{absence['approvalRequestId']}", json={"status": "REJECTED"}, headers=mh
    )
    assert r.status_code == 200
    assert employee.get(f"{API}/absences/{absence['id']}").json["status"] == "REJECTED"


def test_deleting_absence_removes_its_request(login_as, ids):
    employee, eh = login_as("employee@acme.test")
    absence = _absence(employee, eh, approverId=ids["users"]["manager@acme.test"]).json

    r = employee.delete(f"{API}/absences/{absence['id']}", headers=eh)
    assert r.status_code == 200
    assert employee.get(f"{API}/absences/{absence['id']}").status_code == 404
    assert employee.get(f"{API}/approval-requests/{absence['approvalRequestId']}").status_code == 404
