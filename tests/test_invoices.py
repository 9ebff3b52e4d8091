from conftest import API


def _invoice_body(company_id, **overrides):
    body = {
        "invoiceNumber": "INV-0001",
        "companyId": company_id,
        "items": [
            {"description": "Design work", "quantity": 3, "unitPrice": 100.0},
            {"description": "Hosting", "quantity": 1, "unitPrice": 49.5},
        ],
    }
    body.update(overrides)
    return body


def test_invoice_total_is_sum_of_items(login_as, ids):
    c, h = login_as("manager@acme.test")
    r = c.post(f"{API}/invoices", json=_invoice_body(ids["companies"]["Acme"]), headers=h)
    assert r.status_code == 201
    assert r.json["total"] == 349.5
    assert r.json["status"] == "DRAFT"
    assert [i["total"] for i in r.json["items"]] == [300.0, 49.5]


def test_invoice_requires_items_and_company(login_as):
    c, h = login_as("manager@acme.test")
    r = c.post(f"{API}/invoices", json={"invoiceNumber": "INV-9", "items": []}, headers=h)
    assert r.status_code == 400
    assert {"invoiceNumber", "companyId", "items"} <= set(r.json["details"])


def test_invoice_number_unique_per_company(login_as, ids):
    c, h = login_as("manager@acme.test")
    body = _invoice_body(ids["companies"]["Acme"])
    assert c.post(f"{API}/invoices", json=body, headers=h).status_code == 201
    assert c.post(f"{API}/invoices", json=body, headers=h).status_code == 409

    globex, gh = login_as("admin@globex.test")
    r = globex.post(f"{API}/invoices", json=_invoice_body(ids["companies"]["Globex"]), headers=gh)
    assert r.status_code == 201


def test_invoice_for_other_company_denied(login_as, ids):
    c, h = login_as("manager@acme.test")
    r = c.post(f"{API}/invoices", json=_invoice_body(ids["companies"]["Globex"]), headers=h)
    assert r.status_code == 403


def test_only_draft_or_cancelled_invoices_can_be_deleted(login_as, ids):
    c, h = login_as("manager@acme.test")
    inv = c.post(f"{API}/invoices", json=_invoice_body(ids["companies"]["Acme"], status="SENT"), headers=h).json

    r = c.delete(f"{API}/invoices/{inv['id']}", headers=h)
    assert r.status_code == 400

    r = c.patch(f"{API}/invoices/{inv['id']}", json={"status": "CANCELLED"}, headers=h)
    assert r.status_code == 200
    assert c.delete(f"{API}/invoices/{inv['id']}", headers=h).status_code == 200


def test_replacing_items_recomputes_total(login_as, ids):
    c, h = login_as("manager@acme.test")
    inv = c.post(f"{API}/invoices", json=_invoice_body(ids["companies"]["Acme"]), headers=h).json
    r = c.patch(
        f"{API}/invoices/{inv['id']}",
        json={"items": [{"description": "Flat fee", "quantity": 2, "unitPrice": 75}]},
        headers=h,
    )
    assert r.status_code == 200
    assert r.json["total"] == 150.0
    assert len(r.json["items"]) == 1


def test_invoice_list_uses_data_envelope(login_as, ids):
    c, h = login_as("manager@acme.test")
    for n in range(3):
        body = _invoice_body(ids["companies"]["Acme"], invoiceNumber=f"INV-10{n}")
        assert c.post(f"{API}/invoices", json=body, headers=h).status_code == 201

    r = c.get(f"{API}/invoices?limit=2")
    assert r.status_code == 200
    assert len(r.json["data"]) == 2
    assert r.json["pagination"]["totalPages"] == 2

    r = c.get(f"{API}/invoices?search=101")
    assert [i["invoiceNumber"] for i in r.json["data"]] == ["INV-101"]
