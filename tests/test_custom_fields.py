from conftest import API


def _field(c, h, company_id, **overrides):
    body = {"entityName": "Client", "fieldName": "industry", "fieldType": "TEXT", "companyId": company_id}
    body.update(overrides)
    return c.post(f"{API}/custom-fields", json=body, headers=h)


def test_definition_rules(login_as, ids):
    acme = ids["companies"]["Acme"]
    c, h = login_as("admin@acme.test")
    r = _field(c, h, acme)
    assert r.status_code == 201
    assert r.json["valueCount"] == 0

    assert _field(c, h, acme).status_code == 409

    r = _field(c, h, acme, fieldName="tier", fieldType="SELECT")
    assert r.status_code == 400
    assert "_root" in r.json["details"]

    r = _field(c, h, acme, fieldName="has space")
    assert r.status_code == 400
    assert "fieldName" in r.json["details"]

    assert _field(c, h, ids["companies"]["Globex"], fieldName="other").status_code == 403


def test_only_admins_define_fields(login_as, ids):
    c, h = login_as("manager@acme.test")
    r = _field(c, h, ids["companies"]["Acme"])
    assert r.status_code == 403


def _value_id(c, field):
    items = c.get(f"{API}/custom-values?customFieldDefId={field['id']}").json["items"]
    return items[0]["id"]


def test_value_upsert_and_type_checks(login_as, ids):
    acme = ids["companies"]["Acme"]
    admin, ah = login_as("admin@acme.test")
    tier = _field(admin, ah, acme, fieldName="tier", fieldType="SELECT", options=["gold", "silver"]).json
    size = _field(admin, ah, acme, fieldName="headcount", fieldType="NUMBER").json

    c, h = login_as("manager@acme.test")
    r = c.post(f"{API}/custom-values", json={"customFieldDefId": tier["id"], "recordId": "42", "value": "gold"}, headers=h)
    assert r.status_code == 201
    assert r.json["definition"]["fieldName"] == "tier"

    r = c.post(f"{API}/custom-values", json={"customFieldDefId": tier["id"], "recordId": "42", "value": "silver"}, headers=h)
    assert r.status_code == 200
    assert r.json["value"] == "silver"

    r = c.post(f"{API}/custom-values", json={"customFieldDefId": tier["id"], "recordId": "43", "value": "bronze"}, headers=h)
    assert r.status_code == 400
    assert "value" in r.json["details"]

    r = c.post(f"{API}/custom-values", json={"customFieldDefId": size["id"], "recordId": "42", "value": "many"}, headers=h)
    assert r.status_code == 400

    r = c.get(f"{API}/custom-values?recordId=42&entityName=Client")
    assert r.json["pagination"]["total"] == 1

    r = admin.get(f"{API}/custom-fields?entityName=Client")
    counts = {f["fieldName"]: f["valueCount"] for f in r.json["items"]}
    assert counts == {"headcount": 0, "tier": 1}


def test_definition_with_values_cannot_be_deleted(login_as, ids):
    admin, ah = login_as("admin@acme.test")
    field = _field(admin, ah, ids["companies"]["Acme"], fieldName="since", fieldType="DATE").json

    r = admin.post(
        f"{API}/custom-values",
        json={"customFieldDefId": field["id"], "recordId": "7", "value": "2023-01-15T08:00:00Z"},
        headers=ah,
    )
    assert r.status_code == 201
    assert r.json["value"] == "2023-01-15"

    r = admin.delete(f"{API}/custom-fields/{field['id']}", headers=ah)
    assert r.status_code == 400
    assert r.json["valueCount"] == 1

    assert admin.delete(f"{API}/custom-values/{_value_id(admin, field)}", headers=ah).status_code == 200
    assert admin.delete(f"{API}/custom-fields/{field['id']}", headers=ah).status_code == 200


def test_custom_fields_are_tenant_scoped(login_as, ids):
    admin, ah = login_as("admin@acme.test")
    field = _field(admin, ah, ids["companies"]["Acme"]).json

    globex, gh = login_as("admin@globex.test")
    assert globex.get(f"{API}/custom-fields").json["pagination"]["total"] == 0
    assert globex.get(f"{API}/custom-fields/{field['id']}").status_code == 403
    r = globex.post(f"{API}/custom-values", json={"customFieldDefId": field["id"], "recordId": "1", "value": "x"}, headers=gh)
    assert r.status_code == 403


def test_value_patch_checks_type_and_company(login_as, ids):
    admin, ah = login_as("admin@acme.test")
    tier = _field(admin, ah, ids["companies"]["Acme"], fieldName="tier", fieldType="SELECT", options=["gold", "silver"]).json
    created = admin.post(
        f"{API}/custom-values", json={"customFieldDefId": tier["id"], "recordId": "7", "value": "gold"}, headers=ah
    ).json
    url = f"{API}/custom-values/{created['id']}"

    r = admin.patch(url, json={"value": "silver"}, headers=ah)
    assert r.status_code == 200
    assert r.json["value"] == "silver"
    assert r.json["recordId"] == "7"

    r = admin.patch(url, json={"value": "bronze"}, headers=ah)
    assert r.status_code == 400
    assert admin.get(url).json["value"] == "silver"

    globex, gh = login_as("admin@globex.test")
    assert globex.patch(url, json={"value": "gold"}, headers=gh).status_code == 403
