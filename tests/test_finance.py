from conftest import API


def _statement(c, h, company_id, **overrides):
    body = {"companyId": company_id, "periodStart": "2024-01-01T00:00:00", "periodEnd": "2024-03-31T23:59:59"}
    body.update(overrides)
    return c.post(f"{API}/financial-statements", json=body, headers=h)


def test_generated_statement_sums_paid_invoices_and_contractor_payments(login_as, ids):
    acme = ids["companies"]["Acme"]
    c, h = login_as("admin@acme.test")

    def invoice(number, status, issued, price):
        body = {
            "invoiceNumber": number,
            "companyId": acme,
            "status": status,
            "issueDate": issued,
            "items": [{"description": "Consulting", "quantity": 1, "unitPrice": price}],
        }
        assert c.post(f"{API}/invoices", json=body, headers=h).status_code == 201

    invoice("INV-001", "PAID", "2024-02-10T00:00:00", 1000)
    invoice("INV-002", "PAID", "2024-03-05T00:00:00", 500)
    invoice("INV-003", "SENT", "2024-02-11T00:00:00", 9999)
    invoice("INV-004", "PAID", "2024-05-01T00:00:00", 7777)

    project = c.post(f"{API}/projects", json={"name": "Rollout"}, headers=h).json
    for status, amount in (("COMPLETE", 300), ("PENDING", 4000)):
        r = c.post(
            f"{API}/payments",
            json={
                "paymentType": "PRESTATAIRE",
                "payee": "Freelance Dev",
                "amount": amount,
                "status": status,
                "date": "2024-02-20T00:00:00",
                "projectId": project["id"],
            },
            headers=h,
        )
        assert r.status_code == 201

    r = _statement(c, h, acme, generateAutomatically=True)
    assert r.status_code == 201
    assert r.json["revenue"] == 1500.0
    assert r.json["expenses"] == 300.0
    assert r.json["profit"] == 1200.0
    assert r.json["company"]["name"] == "Acme"


def test_manual_statement_and_update_recomputes_profit(login_as, ids):
    c, h = login_as("admin@acme.test")
    r = _statement(c, h, ids["companies"]["Acme"], revenue=100, expenses=40)
    assert r.status_code == 201
    assert r.json["profit"] == 60.0

    r = c.patch(f"{API}/financial-statements/{r.json['id']}", json={"expenses": 70}, headers=h)
    assert r.status_code == 200
    assert r.json["profit"] == 30.0


def test_overlapping_periods_conflict(login_as, ids):
    acme = ids["companies"]["Acme"]
    c, h = login_as("admin@acme.test")
    assert _statement(c, h, acme).status_code == 201
    r = _statement(c, h, acme, periodStart="2024-03-01T00:00:00", periodEnd="2024-04-30T00:00:00")
    assert r.status_code == 409

    assert _statement(c, h, acme, periodStart="2024-04-01T00:00:00", periodEnd="2024-06-30T00:00:00").status_code == 201

    r = c.get(f"{API}/financial-statements?year=2024")
    assert r.json["pagination"]["total"] == 2


def test_period_must_be_ordered(login_as, ids):
    c, h = login_as("admin@acme.test")
    r = _statement(c, h, ids["companies"]["Acme"], periodStart="2024-05-01T00:00:00", periodEnd="2024-04-01T00:00:00")
    assert r.status_code == 400
    assert "periodEnd" in r.json["details"]


def test_statements_are_admin_only_and_deletion_super_admin_only(login_as, ids):
    acme = ids["companies"]["Acme"]
    manager, _ = login_as("manager@acme.test")
    assert manager.get(f"{API}/financial-statements").status_code == 403

    admin, ah = login_as("admin@acme.test")
    statement = _statement(admin, ah, acme).json
    assert admin.delete(f"{API}/financial-statements/{statement['id']}", headers=ah).status_code == 403

    root, rh = login_as("super@gestio.test")
    assert root.delete(f"{API}/financial-statements/{statement['id']}", headers=rh).status_code == 200
    assert root.get(f"{API}/financial-statements/{statement['id']}").status_code == 404
