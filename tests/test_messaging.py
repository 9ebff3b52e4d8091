from conftest import API


def _conversation(c, h, participants, **body):
    body["participants"] = participants
    return c.post(f"{API}/conversations", json=body, headers=h)


def test_direct_conversation_is_reused(login_as, ids):
    manager_id = ids["users"]["manager@acme.test"]
    c, h = login_as("employee@acme.test")

    r = _conversation(c, h, [manager_id], isDirectMessage=True)
    assert r.status_code == 201
    assert r.json["name"] == "Mona Manager"
    assert {p["userId"] for p in r.json["participants"]} == {manager_id, ids["users"]["employee@acme.test"]}
    first = r.json["id"]

    manager, mh = login_as("manager@acme.test")
    r = _conversation(manager, mh, [ids["users"]["employee@acme.test"]], isDirectMessage=True)
    assert r.status_code == 200
    assert r.json["id"] == first

    r = _conversation(c, h, [manager_id, ids["users"]["user@acme.test"]], isDirectMessage=True)
    assert r.status_code == 400

    r = c.patch(f"{API}/conversations/{first}", json={"addParticipants": [ids["users"]["user@acme.test"]]}, headers=h)
    assert r.status_code == 400


def test_unread_counts_follow_reads(login_as, ids):
    employee, eh = login_as("employee@acme.test")
    r = _conversation(
        employee,
        eh,
        [ids["users"]["manager@acme.test"], ids["users"]["user@acme.test"]],
        name="Launch",
        initialMessage="Kickoff at 10",
    )
    assert r.status_code == 201
    conv_id = r.json["id"]

    manager, mh = login_as("manager@acme.test")
    items = manager.get(f"{API}/conversations").json["items"]
    assert items[0]["unreadCount"] == 1
    assert items[0]["lastMessage"]["content"] == "Kickoff at 10"
    assert manager.get(f"{API}/conversations?onlyUnread=true").json["pagination"]["total"] == 1

    detail = manager.get(f"{API}/conversations/{conv_id}").json
    assert [m["content"] for m in detail["messages"]] == ["Kickoff at 10"]
    assert detail["messagesPagination"]["total"] == 1

    items = manager.get(f"{API}/conversations").json["items"]
    assert items[0]["unreadCount"] == 0
    assert manager.get(f"{API}/conversations?onlyUnread=true").json["pagination"]["total"] == 0

    r = manager.post(f"{API}/messages", json={"conversationId": conv_id, "content": "On my way"}, headers=mh)
    assert r.status_code == 201
    assert r.json["sender"]["email"] == "manager@acme.test"

    items = employee.get(f"{API}/conversations").json["items"]
    assert items[0]["unreadCount"] == 1
    assert items[0]["lastMessage"]["content"] == "On my way"


def test_conversation_search_and_filters(login_as, ids):
    c, h = login_as("employee@acme.test")
    _conversation(c, h, [ids["users"]["manager@acme.test"]], name="Budget", initialMessage="numbers attached")
    _conversation(c, h, [ids["users"]["user@acme.test"]], isDirectMessage=True)

    assert c.get(f"{API}/conversations").json["pagination"]["total"] == 2
    assert c.get(f"{API}/conversations?onlyDirect=true").json["pagination"]["total"] == 1
    r = c.get(f"{API}/conversations?search=numbers")
    assert [x["name"] for x in r.json["items"]] == ["Budget"]
    r = c.get(f"{API}/conversations?withUserId={ids['users']['user@acme.test']}")
    assert r.json["pagination"]["total"] == 1


def test_participants_must_be_colleagues(login_as, ids):
    c, h = login_as("employee@acme.test")
    r = _conversation(c, h, [ids["users"]["employee@globex.test"]])
    assert r.status_code == 403

    r = _conversation(c, h, [424242])
    assert r.status_code == 404
    assert r.json["missingUserIds"] == [424242]


def test_non_participants_are_kept_out(login_as, ids):
    c, h = login_as("employee@acme.test")
    conv_id = _conversation(c, h, [ids["users"]["manager@acme.test"]]).json["id"]

    outsider, oh = login_as("user@acme.test")
    assert outsider.get(f"{API}/conversations/{conv_id}").status_code == 403
    assert outsider.get(f"{API}/messages?conversationId={conv_id}").status_code == 403
    r = outsider.post(f"{API}/messages", json={"conversationId": conv_id, "content": "hi"}, headers=oh)
    assert r.status_code == 403

    assert c.get(f"{API}/messages").status_code == 400
    r = c.post(f"{API}/messages", json={"conversationId": conv_id, "content": "psst", "isSystemMessage": True}, headers=h)
    assert r.status_code == 403


def test_membership_changes_post_system_messages(login_as, ids):
    c, h = login_as("employee@acme.test")
    conv_id = _conversation(c, h, [ids["users"]["manager@acme.test"]], name="Ops").json["id"]

    r = c.patch(
        f"{API}/conversations/{conv_id}",
        json={"name": "Ops team", "addParticipants": [ids["users"]["user@acme.test"]]},
        headers=h,
    )
    assert r.status_code == 200
    assert r.json["name"] == "Ops team"
    assert len(r.json["participants"]) == 3

    messages = c.get(f"{API}/messages?conversationId={conv_id}").json["items"]
    assert messages[-1]["isSystemMessage"] is True
    assert messages[-1]["content"] == "Eddie Employee added Uma User"

    user, uh = login_as("user@acme.test")
    r = user.delete(f"{API}/conversations/{conv_id}", headers=uh)
    assert r.json == {"message": "You left the conversation"}
    assert user.get(f"{API}/conversations/{conv_id}").status_code == 403

    messages = c.get(f"{API}/messages?conversationId={conv_id}").json["items"]
    assert messages[-1]["content"] == "Uma User left the conversation"


def test_admin_deletes_group_conversation(login_as, ids):
    admin, ah = login_as("admin@acme.test")
    conv_id = _conversation(admin, ah, [ids["users"]["employee@acme.test"]], initialMessage="All hands").json["id"]

    r = admin.delete(f"{API}/conversations/{conv_id}", headers=ah)
    assert r.json == {"message": "Conversation deleted"}
    assert admin.get(f"{API}/conversations/{conv_id}").status_code == 404


def test_other_company_cannot_open_conversation(login_as, ids):
    c, h = login_as("employee@acme.test")
    conv_id = _conversation(c, h, [ids["users"]["manager@acme.test"]], name="Payroll questions").json["id"]

    for email in ("admin@globex.test", "employee@globex.test"):
        outsider, oh = login_as(email)
        assert outsider.get(f"{API}/conversations/{conv_id}").status_code == 403
        assert outsider.get(f"{API}/messages?conversationId={conv_id}").status_code == 403
        assert outsider.get(f"{API}/conversations").json["pagination"]["total"] == 0
