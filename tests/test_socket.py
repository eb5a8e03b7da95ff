import pytest

from rapport import create_app, socketio

PASSWORD = "Secret#123"


def _connect(app, email):
    client = app.test_client()
    response = client.post("/auth/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200
    sio = socketio.test_client(app, flask_test_client=client)
    assert sio.is_connected()
    return sio


@pytest.fixture
def sockets(app, trio):
    clients = {user.first_name.lower(): _connect(app, user.email) for user in trio}
    yield clients
    for client in clients.values():
        if client.is_connected():
            client.disconnect()


def _ids(contacts):
    return [contact["id"] for contact in contacts]


def test_initialize_returns_state_and_poll_settings(sockets, trio):
    ack = sockets["ada"].emit("initialize", callback=True)

    assert ack["ok"] is True
    assert ack["ui"] == {"contactsPollSeconds": 10, "chatPollSeconds": 5}
    assert _ids(ack["state"]["friends"]["unrelated"]) == [trio[1].id, trio[2].id]


def test_anonymous_socket_is_rejected(app):
    sio = socketio.test_client(app)

    assert sio.emit("initialize", callback=True) == {"ok": False, "error": "Unauthorized"}


def test_friend_request_flow(sockets, trio):
    ada, bob, _ = trio
    for client in sockets.values():
        client.emit("initialize", callback=True)

    sent = sockets["ada"].emit("friend:send_request", {"email": "BOB@example.com"}, callback=True)
    assert sent["ok"] is True
    assert _ids(sent["state"]["friends"]["outgoing"]) == [bob.id]

    again = sockets["ada"].emit("friend:send_request", {"user_id": bob.id}, callback=True)
    assert again["ok"] is False
    assert again["code"] == "already_related"

    refreshed = sockets["bob"].emit("contacts:refresh", callback=True)
    assert _ids(refreshed["state"]["friends"]["incoming"]) == [ada.id]

    accepted = sockets["bob"].emit("friend:respond", {"user_id": ada.id, "action": "accept"}, callback=True)
    assert accepted["status"] == "accepted"
    assert _ids(accepted["state"]["friends"]["friends"]) == [ada.id]

    removed = sockets["ada"].emit("friend:remove", {"user_id": bob.id}, callback=True)
    assert removed["ok"] is True
    assert bob.id in _ids(removed["state"]["friends"]["unrelated"])


def test_unknown_target_and_bad_payloads(sockets):
    sio = sockets["ada"]
    assert sio.emit("friend:send_request", {"email": "ghost@example.com"}, callback=True) == {
        "ok": False,
        "error": "User not found",
    }
    assert sio.emit("friend:respond", {"user_id": 2, "action": "maybe"}, callback=True)["ok"] is False
    assert sio.emit("group:leave", {}, callback=True)["error"] == "Group ID required"


def test_group_flow_with_invites(sockets, trio):
    ada, bob, cy = trio
    sockets["ada"].emit("friend:send_request", {"user_id": bob.id}, callback=True)
    sockets["bob"].emit("friend:respond", {"user_id": ada.id, "action": "accept"}, callback=True)
    sockets["ada"].emit("contacts:refresh", callback=True)

    created = sockets["ada"].emit(
        "group:create", {"name": "Hikers", "user_ids": [bob.id, "x", ada.id]}, callback=True
    )
    assert created["ok"] is True
    group_id = created["group"]["id"]
    assert created["invited"] == [bob.id]
    assert [item["user_id"] for item in created["failed_invites"]] == [ada.id]
    assert [g["id"] for g in created["state"]["groups"]["member"]] == [group_id]
    assert _ids(created["state"]["groups"]["invitable"]) == [bob.id]

    invited = sockets["ada"].emit("group:invite", {"group_id": group_id, "email": cy.email}, callback=True)
    assert invited["ok"] is True

    sockets["bob"].emit("contacts:refresh", callback=True)
    joined = sockets["bob"].emit("group:respond", {"group_id": group_id, "action": "accept"}, callback=True)
    assert [g["id"] for g in joined["state"]["groups"]["member"]] == [group_id]

    declined = sockets["cy"].emit("group:respond", {"group_id": group_id, "action": "decline"}, callback=True)
    assert declined["group_deleted"] is False

    assert sockets["ada"].emit("group:leave", {"group_id": group_id}, callback=True)["group_deleted"] is False
    assert sockets["bob"].emit("group:leave", {"group_id": group_id}, callback=True)["group_deleted"] is True


def test_blank_group_name_reports_validation_error(sockets):
    ack = sockets["ada"].emit("group:create", {"name": "  "}, callback=True)

    assert ack["ok"] is False
    assert ack["code"] == "validation_error"


def test_chat_between_friends(sockets, trio):
    ada, bob, cy = trio
    sockets["ada"].emit("friend:send_request", {"user_id": bob.id}, callback=True)

    blocked = sockets["ada"].emit("chat:send", {"user_id": bob.id, "body": "hi"}, callback=True)
    assert blocked["code"] == "not_member"

    sockets["bob"].emit("friend:respond", {"user_id": ada.id, "action": "accept"}, callback=True)
    sent = sockets["ada"].emit("chat:send", {"user_id": bob.id, "body": "hi"}, callback=True)
    assert sent["ok"] is True
    assert sent["message"]["body"] == "hi"

    history = sockets["bob"].emit("chat:history", {"user_id": ada.id}, callback=True)
    assert [m["body"] for m in history["messages"]] == ["hi"]
    assert [s["id"] for s in history["senders"]] == [ada.id]

    assert sockets["cy"].emit("chat:history", {"user_id": ada.id}, callback=True)["ok"] is False


def test_contacts_endpoint(app, trio):
    client = app.test_client()
    client.post("/auth/login", json={"email": trio[0].email, "password": PASSWORD})

    body = client.get("/api/contacts").get_json()

    assert body["ok"] is True
    assert _ids(body["state"]["friends"]["unrelated"]) == [trio[1].id, trio[2].id]


def test_handlers_are_registered_on_every_app(app):
    class RebuiltConfig:
        TESTING = True
        SECRET_KEY = "rebuilt"
        SQLALCHEMY_DATABASE_URI = "sqlite://"

    rebuilt = create_app(RebuiltConfig)
    sio = socketio.test_client(rebuilt)

    assert sio.emit("initialize", callback=True) == {"ok": False, "error": "Unauthorized"}
