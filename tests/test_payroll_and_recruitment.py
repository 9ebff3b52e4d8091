from conftest import API


def _payslip(user_id, **overrides):
    body = {
        "userId": user_id,
        "period": "2024-03",
        "year": 2024,
        "month": 3,
        "grossPay": 500000,
        "netPay": 410000,
        "taxes": 90000,
    }
    body.update(overrides)
    return body


def test_payslip_unique_per_employee_and_month(login_as, ids):
    c, h = login_as("admin@acme.test")
    employee = ids["users"]["employee@acme.test"]
    r = c.post(f"{API}/payrolls", json=_payslip(employee), headers=h)
    assert r.status_code == 201
    assert r.json["user"]["email"] == "employee@acme.test"

    r = c.post(f"{API}/payrolls", json=_payslip(employee, period="March"), headers=h)
    assert r.status_code == 409

    r = c.post(f"{API}/payrolls", json=_payslip(employee, month=4, period="2024-04"), headers=h)
    assert r.status_code == 201


def test_employee_sees_only_own_payslips(login_as, ids):
    admin, ah = login_as("admin@acme.test")
    mine = admin.post(f"{API}/payrolls", json=_payslip(ids["users"]["employee@acme.test"]), headers=ah).json
    theirs = admin.post(f"{API}/payrolls", json=_payslip(ids["users"]["manager@acme.test"]), headers=ah).json

    c, h = login_as("employee@acme.test")
    r = c.get(f"{API}/payrolls?userId={ids['users']['manager@acme.test']}")
    assert r.status_code == 200
    assert [p["id"] for p in r.json["data"]] == [mine["id"]]

    assert c.get(f"{API}/payrolls/{mine['id']}").status_code == 200
    assert c.get(f"{API}/payrolls/{theirs['id']}").status_code == 403
    assert c.post(f"{API}/payrolls", json=_payslip(ids["users"]["employee@acme.test"], month=5), headers=h).status_code == 403


def test_payslip_for_other_company_denied(login_as, ids):
    c, h = login_as("admin@globex.test")
    r = c.post(f"{API}/payrolls", json=_payslip(ids["users"]["employee@acme.test"]), headers=h)
    assert r.status_code == 403


def test_payslip_validation(login_as, ids):
    c, h = login_as("admin@acme.test")
    r = c.post(f"{API}/payrolls", json=_payslip(ids["users"]["employee@acme.test"], month=13, netPay=-1), headers=h)
    assert r.status_code == 400
    assert {"month", "netPay"} <= set(r.json["details"])


def _posting(c, h, **overrides):
    body = {"title": "Backend developer", "description": "Build and run our Python services."}
    body.update(overrides)
    r = c.post(f"{API}/job-postings", json=body, headers=h)
    assert r.status_code == 201, r.json
    return r.json


def test_candidate_applies_and_can_only_edit_own_documents(login_as):
    manager, mh = login_as("manager@acme.test")
    posting = _posting(manager, mh)

    c, h = login_as("user@acme.test")
    r = c.post(
        f"{API}/applications",
        json={
            "jobPostingId": posting["id"],
            "newCandidate": {"name": "Uma User", "email": "user@acme.test"},
            "coverLetter": "Hello!",
        },
        headers=h,
    )
    assert r.status_code == 201
    application = r.json
    assert application["status"] == "RECEIVED"
    assert application["candidate"]["email"] == "user@acme.test"

    assert c.get(f"{API}/applications/{application['id']}").status_code == 200

    r = c.patch(f"{API}/applications/{application['id']}", json={"resume": "https://cv.test/uma.pdf"}, headers=h)
    assert r.status_code == 200
    assert r.json["resume"] == "https://cv.test/uma.pdf"

    r = c.patch(f"{API}/applications/{application['id']}", json={"status": "HIRED"}, headers=h)
    assert r.status_code == 403
    assert r.json["details"] == {"fields": ["status"]}

    r = c.post(
        f"{API}/applications",
        json={"jobPostingId": posting["id"], "newCandidate": {"name": "Uma User", "email": "user@acme.test"}},
        headers=h,
    )
    assert r.status_code == 400


def test_application_listing_is_admin_only(login_as):
    manager, mh = login_as("manager@acme.test")
    posting = _posting(manager, mh)
    manager.post(
        f"{API}/applications",
        json={"jobPostingId": posting["id"], "newCandidate": {"name": "Cand Idate", "email": "cand@mail.test"}},
        headers=mh,
    )

    assert manager.get(f"{API}/applications").status_code == 403

    admin, _ = login_as("admin@acme.test")
    r = admin.get(f"{API}/applications")
    assert r.status_code == 200
    assert r.json["pagination"]["total"] == 1
    assert r.json["data"][0]["jobPosting"]["title"] == "Backend developer"


def test_inactive_posting_rejects_applications(login_as):
    manager, mh = login_as("manager@acme.test")
    posting = _posting(manager, mh, isActive=False)
    r = manager.post(
        f"{API}/applications",
        json={"jobPostingId": posting["id"], "newCandidate": {"name": "Late Comer", "email": "late@mail.test"}},
        headers=mh,
    )
    assert r.status_code == 400


def _apply(c, h, posting, name, email):
    r = c.post(
        f"{API}/applications",
        json={"jobPostingId": posting["id"], "newCandidate": {"name": name, "email": email}},
        headers=h,
    )
    assert r.status_code == 201, r.json
    return r.json


def test_job_posting_detail_is_company_scoped(login_as):
    manager, mh = login_as("manager@acme.test")
    posting = _posting(manager, mh)

    globex, _ = login_as("admin@globex.test")
    assert globex.get(f"{API}/job-postings/{posting['id']}").status_code == 403

    admin, _ = login_as("admin@acme.test")
    assert admin.get(f"{API}/job-postings/{posting['id']}").status_code == 200
    employee, _ = login_as("employee@acme.test")
    assert employee.get(f"{API}/job-postings/{posting['id']}").status_code == 200


def test_inactive_posting_hidden_from_non_admins(login_as):
    manager, mh = login_as("manager@acme.test")
    posting = _posting(manager, mh, isActive=False)

    employee, _ = login_as("employee@acme.test")
    assert employee.get(f"{API}/job-postings/{posting['id']}").status_code == 403

    admin, _ = login_as("admin@acme.test")
    r = admin.get(f"{API}/job-postings/{posting['id']}")
    assert r.status_code == 200
    assert r.json["isActive"] is False


def test_job_posting_update_requires_company_admin(login_as):
    manager, mh = login_as("manager@acme.test")
    posting = _posting(manager, mh)
    url = f"{API}/job-postings/{posting['id']}"

    assert manager.patch(url, json={"title": "Senior backend developer"}, headers=mh).status_code == 403
    globex, gh = login_as("admin@globex.test")
    assert globex.patch(url, json={"title": "Senior backend developer"}, headers=gh).status_code == 403

    admin, ah = login_as("admin@acme.test")
    r = admin.patch(url, json={"title": "Senior backend developer", "salary": "90k"}, headers=ah)
    assert r.status_code == 200
    assert r.json["title"] == "Senior backend developer"
    assert r.json["description"] == posting["description"]

    r = admin.patch(url, json={"title": "No"}, headers=ah)
    assert r.status_code == 400
    assert "title" in r.json["details"]


def test_job_posting_with_applications_is_closed_not_deleted(login_as):
    manager, mh = login_as("manager@acme.test")
    used = _posting(manager, mh)
    unused = _posting(manager, mh, title="Office manager")
    _apply(manager, mh, used, "Cand Idate", "cand@mail.test")

    admin, ah = login_as("admin@acme.test")
    r = admin.delete(f"{API}/job-postings/{used['id']}", headers=ah)
    assert r.status_code == 200
    assert r.json["wasDeactivated"] is True
    closed = admin.get(f"{API}/job-postings/{used['id']}").json
    assert closed["isActive"] is False
    assert closed["status"] == "CLOSED"

    r = admin.delete(f"{API}/job-postings/{unused['id']}", headers=ah)
    assert r.json["wasDeleted"] is True
    assert admin.get(f"{API}/job-postings/{unused['id']}").status_code == 404


def test_candidates_visible_only_to_companies_they_applied_to(login_as):
    manager, mh = login_as("manager@acme.test")
    posting = _posting(manager, mh)
    application = _apply(manager, mh, posting, "Cand Idate", "cand@mail.test")
    candidate_id = application["candidate"]["id"]

    admin, ah = login_as("admin@acme.test")
    r = admin.get(f"{API}/candidates?search=cand")
    assert r.status_code == 200
    assert [c["id"] for c in r.json["items"]] == [candidate_id]
    r = admin.patch(f"{API}/candidates/{candidate_id}", json={"phone": "+221 77 000 00 00"}, headers=ah)
    assert r.status_code == 200
    assert r.json["phone"] == "+221 77 000 00 00"

    globex, gh = login_as("admin@globex.test")
    assert globex.get(f"{API}/candidates").json["pagination"]["total"] == 0
    assert globex.get(f"{API}/candidates/{candidate_id}").status_code == 403
    assert globex.patch(f"{API}/candidates/{candidate_id}", json={"notes": "x"}, headers=gh).status_code == 403

    r = admin.post(f"{API}/candidates", json={"name": "Dup Licate", "email": "CAND@mail.test"}, headers=ah)
    assert r.status_code == 409


def test_candidate_deletion_blocked_by_open_applications(login_as):
    manager, mh = login_as("manager@acme.test")
    posting = _posting(manager, mh)
    application = _apply(manager, mh, posting, "Cand Idate", "cand@mail.test")
    candidate_id = application["candidate"]["id"]

    admin, ah = login_as("admin@acme.test")
    assert admin.delete(f"{API}/candidates/{candidate_id}", headers=ah).status_code == 403

    root, rh = login_as("super@gestio.test")
    r = root.delete(f"{API}/candidates/{candidate_id}", headers=rh)
    assert r.status_code == 400
    assert r.json["details"] == {"applicationIds": [application["id"]]}

    admin.patch(f"{API}/applications/{application['id']}", json={"status": "REJECTED"}, headers=ah)
    assert root.delete(f"{API}/candidates/{candidate_id}", headers=rh).status_code == 200
    assert root.get(f"{API}/candidates/{candidate_id}").status_code == 404
    assert admin.get(f"{API}/applications/{application['id']}").status_code == 404


def _interview(c, h, application_id, interviewer_id, **overrides):
    body = {
        "applicationId": application_id,
        "interviewerId": interviewer_id,
        "title": "Technical interview",
        "scheduledAt": "2030-05-02T10:00:00Z",
        "duration": 45,
    }
    body.update(overrides)
    return c.post(f"{API}/interviews", json=body, headers=h)


def test_interviewer_records_feedback_only(login_as, ids):
    manager, mh = login_as("manager@acme.test")
    posting = _posting(manager, mh)
    application = _apply(manager, mh, posting, "Cand Idate", "cand@mail.test")
    employee_id = ids["users"]["employee@acme.test"]

    assert _interview(manager, mh, application["id"], employee_id).status_code == 403
    admin, ah = login_as("admin@acme.test")
    r = _interview(admin, ah, application["id"], employee_id)
    assert r.status_code == 201
    interview = r.json
    assert interview["status"] == "PLANNED"
    assert interview["interviewer"]["email"] == "employee@acme.test"
    assert interview["application"]["candidate"]["name"] == "Cand Idate"

    c, h = login_as("employee@acme.test")
    r = c.get(f"{API}/interviews")
    assert [i["id"] for i in r.json["items"]] == [interview["id"]]
    r = c.patch(f"{API}/interviews/{interview['id']}", json={"feedback": "Strong", "rating": 4}, headers=h)
    assert r.status_code == 200
    assert (r.json["feedback"], r.json["rating"]) == ("Strong", 4)
    r = c.patch(f"{API}/interviews/{interview['id']}", json={"title": "Chat"}, headers=h)
    assert r.status_code == 403
    assert r.json["details"] == {"fields": ["title"]}
    assert c.delete(f"{API}/interviews/{interview['id']}", headers=h).status_code == 403

    assert manager.get(f"{API}/interviews/{interview['id']}").status_code == 403
    globex, _ = login_as("admin@globex.test")
    assert globex.get(f"{API}/interviews/{interview['id']}").status_code == 403
    assert globex.get(f"{API}/interviews").json["pagination"]["total"] == 0


def test_interview_scheduling_rules(login_as, ids):
    manager, mh = login_as("manager@acme.test")
    posting = _posting(manager, mh)
    application = _apply(manager, mh, posting, "Cand Idate", "cand@mail.test")
    admin, ah = login_as("admin@acme.test")

    r = _interview(admin, ah, application["id"], ids["users"]["employee@globex.test"])
    assert r.status_code == 400
    assert _interview(admin, ah, application["id"], 999999).status_code == 404
    r = _interview(admin, ah, application["id"], ids["users"]["employee@acme.test"], duration=0, rating=6)
    assert r.status_code == 400
    assert {"duration", "rating"} <= set(r.json["details"])

    past = _interview(
        admin, ah, application["id"], ids["users"]["employee@acme.test"],
        scheduledAt="2020-01-10T09:00:00Z", status="COMPLETED",
    ).json
    assert admin.delete(f"{API}/interviews/{past['id']}", headers=ah).status_code == 400

    upcoming = _interview(admin, ah, application["id"], ids["users"]["employee@acme.test"]).json
    r = admin.get(f"{API}/interviews?dateFrom=2025-01-01T00:00:00Z")
    assert [i["id"] for i in r.json["items"]] == [upcoming["id"]]
    assert admin.delete(f"{API}/interviews/{upcoming['id']}", headers=ah).status_code == 200
    remaining = admin.get(f"{API}/applications/{application['id']}").json["interviews"]
    assert [i["id"] for i in remaining] == [past["id"]]
