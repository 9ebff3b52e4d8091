from conftest import API


def _list(c, h, company_id, name="Newsletter"):
    r = c.post(f"{API}/mailing-lists", json={"name": name, "companyId": company_id}, headers=h)
    assert r.status_code == 201, r.json
    return r.json


def test_contact_moves_between_mailing_lists(login_as, ids):
    acme = ids["companies"]["Acme"]
    c, h = login_as("manager@acme.test")
    news = _list(c, h, acme)
    promo = _list(c, h, acme, "Promotions")
    assert news["contactCount"] == 0

    r = c.post(
        f"{API}/contacts",
        json={"email": "Reader@Mail.test", "name": "Reader", "companyId": acme, "mailingListId": news["id"]},
        headers=h,
    )
    assert r.status_code == 201
    assert r.json["email"] == "reader@mail.test"
    assert r.json["mailingList"]["name"] == "Newsletter"

    r = c.post(
        f"{API}/contacts",
        json={"email": "reader@mail.test", "companyId": acme, "mailingListId": promo["id"]},
        headers=h,
    )
    assert r.status_code == 200
    assert r.json["contact"]["mailingListId"] == promo["id"]

    r = c.post(f"{API}/contacts", json={"email": "reader@mail.test", "companyId": acme}, headers=h)
    assert r.status_code == 409
    assert "existingContactId" in r.json

    counts = {m["name"]: m["contactCount"] for m in c.get(f"{API}/mailing-lists").json["items"]}
    assert counts == {"Newsletter": 0, "Promotions": 1}


def test_deleting_mailing_list_detaches_contacts(login_as, ids):
    acme = ids["companies"]["Acme"]
    c, h = login_as("manager@acme.test")
    news = _list(c, h, acme)
    for n in range(2):
        c.post(f"{API}/contacts", json={"email": f"r{n}@mail.test", "companyId": acme, "mailingListId": news["id"]}, headers=h)

    detail = c.get(f"{API}/mailing-lists/{news['id']}").json
    assert detail["contactCount"] == 2
    assert [ct["email"] for ct in detail["contacts"]] == ["r0@mail.test", "r1@mail.test"]

    r = c.delete(f"{API}/mailing-lists/{news['id']}", headers=h)
    assert r.json == {"message": "Mailing list deleted", "contactsDetached": 2}

    contacts = c.get(f"{API}/contacts").json["items"]
    assert {ct["mailingListId"] for ct in contacts} == {None}


def test_mailing_list_rename_and_tenant_guard(login_as, ids):
    acme = ids["companies"]["Acme"]
    c, h = login_as("manager@acme.test")
    news = _list(c, h, acme)

    r = c.put(f"{API}/mailing-lists/{news['id']}", json={"name": "Weekly digest"}, headers=h)
    assert r.status_code == 200
    assert r.json["name"] == "Weekly digest"

    globex, gh = login_as("admin@globex.test")
    assert globex.get(f"{API}/mailing-lists/{news['id']}").status_code == 403
    r = globex.post(f"{API}/contacts", json={"email": "spy@mail.test", "companyId": acme}, headers=gh)
    assert r.status_code == 403


def test_activities_filtering(login_as):
    c, h = login_as("manager@acme.test")
    client = c.post(f"{API}/clients", json={"name": "Stark Industries"}, headers=h).json

    r = c.post(
        f"{API}/activities",
        json={"type": "CALL", "subject": "Intro call", "clientId": client["id"], "scheduledAt": "2024-05-02T10:00:00Z"},
        headers=h,
    )
    assert r.status_code == 201
    assert r.json["status"] == "PLANNED"
    c.post(f"{API}/activities", json={"type": "NOTE", "subject": "Follow up", "scheduledAt": "2024-07-01T09:00:00"}, headers=h)

    r = c.get(f"{API}/activities?type=CALL")
    assert [a["subject"] for a in r.json["items"]] == ["Intro call"]

    r = c.get(f"{API}/activities?startDate=2024-06-01")
    assert [a["subject"] for a in r.json["items"]] == ["Follow up"]

    r = c.post(f"{API}/activities", json={"type": "FAX", "subject": "Old school"}, headers=h)
    assert r.status_code == 400
    assert "type" in r.json["details"]
