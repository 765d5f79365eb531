from conftest import API, run


def test_direct_chat_is_created_once(client, db, make_user):
    ana = make_user("ana")
    bia = make_user("bia")

    first = client.post(f"{API}/chats/resolve", json={"other_user_id": bia["id"]}, headers=ana["headers"])
    assert first.status_code == 201
    chat = first.json()["chat"]
    assert chat["name"] == "ana & bia"
    assert sorted(chat["member_ids"]) == sorted([ana["id"], bia["id"]])
    assert chat["pair_id"] == ":".join(sorted([ana["id"], bia["id"]]))

    second = client.post(f"{API}/chats/resolve", json={"other_user_id": ana["id"]}, headers=bia["headers"])
    assert second.status_code == 200
    assert second.json()["chat"]["chat_id"] == chat["chat_id"]
    assert run(db["chats"].count_documents({})) == 1


def test_cannot_chat_with_self(client, make_user):
    ana = make_user()
    response = client.post(f"{API}/chats/resolve", json={"other_user_id": ana["id"]}, headers=ana["headers"])
    assert response.status_code == 400
    assert response.json()["code"] == "SELF_CHAT"


def test_resolve_requires_a_target(client, make_user):
    ana = make_user()
    response = client.post(f"{API}/chats/resolve", json={}, headers=ana["headers"])
    assert response.status_code == 400
    assert response.json()["code"] == "CHAT_TARGET_REQUIRED"


def test_resolve_by_member_ids(client, make_user):
    ana = make_user("ana")
    bia = make_user("bia")
    caio = make_user("caio")
    ids = [ana["id"], bia["id"], caio["id"]]

    missing = client.post(f"{API}/chats/resolve", json={"member_ids": ids}, headers=ana["headers"])
    assert missing.status_code == 404

    mismatch = client.post(
        f"{API}/chats/resolve",
        json={"member_ids": ids, "members": [{"user_id": ana["id"]}, {"user_id": bia["id"]}]},
        headers=ana["headers"],
    )
    assert mismatch.status_code == 400
    assert mismatch.json()["code"] == "MEMBERS_MISMATCH"

    created = client.post(
        f"{API}/chats/resolve",
        json={"member_ids": ids, "members": [{"user_id": uid} for uid in ids], "name": "Treino em grupo"},
        headers=ana["headers"],
    )
    assert created.status_code == 201
    chat_id = created.json()["chat"]["chat_id"]

    found = client.post(f"{API}/chats/resolve", json={"member_ids": list(reversed(ids))}, headers=bia["headers"])
    assert found.status_code == 200
    assert found.json()["chat"]["chat_id"] == chat_id


def test_group_chat_by_name(client, make_user):
    ana = make_user("ana")
    bia = make_user("bia")
    response = client.post(
        f"{API}/chats/resolve",
        json={"name": "Corrida", "members": [{"user_id": bia["id"], "username": "Bia"}]},
        headers=ana["headers"],
    )
    assert response.status_code == 201
    chat = response.json()["chat"]
    assert chat["name"] == "Corrida"
    assert {m["username"] for m in chat["members"]} == {"ana", "Bia"}


def test_messages_and_membership(client, make_user):
    ana = make_user("ana")
    bia = make_user("bia")
    caio = make_user("caio")

    sent = client.post(f"{API}/chats/messages", json={"content": "Oi!", "other_user_id": bia["id"]}, headers=ana["headers"])
    assert sent.status_code == 201
    chat_id = sent.json()["chat_id"]
    message = sent.json()["message"]
    assert message["seen_by"] == [ana["id"]]

    outsider = client.post(f"{API}/chats/messages", json={"content": "?", "chat_id": chat_id}, headers=caio["headers"])
    assert outsider.status_code == 403

    unknown = client.post(f"{API}/chats/messages", json={"content": "?", "chat_id": "nope"}, headers=ana["headers"])
    assert unknown.status_code == 404

    listing = client.get(f"{API}/chats", headers=bia["headers"]).json()["chats"]
    assert listing[0]["last_message"]["content"] == "Oi!"
    assert listing[0]["messages_count"] == 1

    not_author = client.delete(f"{API}/chats/{chat_id}/messages/{message['message_id']}", headers=bia["headers"])
    assert not_author.status_code == 403
    deleted = client.delete(f"{API}/chats/{chat_id}/messages/{message['message_id']}", headers=ana["headers"])
    assert deleted.status_code == 200

    added = client.post(f"{API}/chats/{chat_id}/members", json={"user_id": caio["id"]}, headers=ana["headers"])
    assert added.status_code == 201
    assert added.json()["member"]["username"] == "caio"
    duplicate = client.post(f"{API}/chats/{chat_id}/members", json={"user_id": caio["id"]}, headers=ana["headers"])
    assert duplicate.status_code == 409


def test_chat_deleted_when_empty(client, db, make_user):
    ana = make_user("ana")
    bia = make_user("bia")
    chat_id = client.post(
        f"{API}/chats/resolve", json={"other_user_id": bia["id"]}, headers=ana["headers"]
    ).json()["chat"]["chat_id"]

    first = client.delete(f"{API}/chats/{chat_id}/members/{bia['id']}", headers=ana["headers"])
    assert first.json() == {"removed": True, "chat_deleted": False}

    not_member = client.delete(f"{API}/chats/{chat_id}/members/{bia['id']}", headers=ana["headers"])
    assert not_member.status_code == 404

    last = client.delete(f"{API}/chats/{chat_id}/members/{ana['id']}", headers=ana["headers"])
    assert last.json() == {"removed": True, "chat_deleted": True}
    assert run(db["chats"].count_documents({})) == 0


def test_seen_requires_message_ids(client, make_user):
    ana = make_user()
    response = client.post(f"{API}/chats/any/seen", json={"message_ids": []}, headers=ana["headers"])
    assert response.status_code == 422
