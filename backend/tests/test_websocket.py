"""End-to-end tests for the ``/api/ws`` channel."""

import time

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from swapnet.auth.security import issue_access_token
from swapnet.main import app
from swapnet.models.models import Message
from swapnet.services import connection_ledger


@pytest.fixture
def ws_client(db_session):
    """TestClient with its lifespan entered so every socket shares one event loop."""
    with TestClient(app, backend="asyncio") as client:
        yield client


def _ws_url(user):
    return f"/api/ws?token={issue_access_token(user.id, user.email)}"


def _frame(message_type, data, req_id=None):
    return {
        "v": 1,
        "type": message_type,
        "topic": "system",
        "req_id": req_id,
        "ts": int(time.time() * 1000),
        "data": data,
    }


@pytest.fixture
def connected(db_session, alice, bob):
    conn = connection_ledger.request(db_session, alice.id, bob.id)
    connection_ledger.accept(db_session, conn.id, bob.id)


@pytest.mark.parametrize("query", ["", "?token=garbage"])
def test_handshake_without_valid_token_is_closed(ws_client, query):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with ws_client.websocket_connect(f"/api/ws{query}") as ws:
            ws.receive_json()
    assert excinfo.value.code == 4401


def test_ping_gets_pong(ws_client, alice):
    with ws_client.websocket_connect(_ws_url(alice)) as ws:
        ws.send_json(_frame("ping", {"timestamp": 1234}, req_id="abc"))
        reply = ws.receive_json()

    assert reply["type"] == "pong"
    assert reply["req_id"] == "abc"
    assert reply["data"] == {"timestamp": 1234}


def test_invalid_json(ws_client, alice):
    with ws_client.websocket_connect(_ws_url(alice)) as ws:
        ws.send_text("{not json")
        reply = ws.receive_json()

    assert reply["type"] == "error"
    assert reply["data"]["error"] == "Invalid JSON payload"


def test_invalid_envelope(ws_client, alice):
    with ws_client.websocket_connect(_ws_url(alice)) as ws:
        ws.send_json({"type": "ping"})
        reply = ws.receive_json()

    assert reply["data"]["error"] == "INVALID_ENVELOPE"


def test_unknown_message_type(ws_client, alice):
    with ws_client.websocket_connect(_ws_url(alice)) as ws:
        ws.send_json(_frame("subscribe", {}))
        reply = ws.receive_json()

    assert reply["data"]["error"] == "Unknown message type: subscribe"


def test_join_other_users_room_is_refused(ws_client, alice, bob):
    with ws_client.websocket_connect(_ws_url(alice)) as ws:
        ws.send_json(_frame("join_room", {"user_id": bob.id}, req_id="j1"))
        reply = ws.receive_json()

    assert reply["type"] == "error"
    assert reply["req_id"] == "j1"
    assert reply["data"]["error"] == "Cannot join another user's room"


def test_join_own_room_is_silent(ws_client, alice):
    with ws_client.websocket_connect(_ws_url(alice)) as ws:
        ws.send_json(_frame("join_room", {"user_id": alice.id}))
        ws.send_json(_frame("ping", {}))
        reply = ws.receive_json()

    assert reply["type"] == "pong"


def test_send_message_reaches_both_rooms(ws_client, db_session, alice, bob, connected):
    with ws_client.websocket_connect(_ws_url(alice)) as ws_alice, ws_client.websocket_connect(_ws_url(bob)) as ws_bob:
        ws_alice.send_json(_frame("send_message", {"receiver_id": bob.id, "content": "over the wire"}))

        delivered = ws_bob.receive_json()
        echoed = ws_alice.receive_json()

    for frame, user in ((delivered, bob), (echoed, alice)):
        assert frame["type"] == "message"
        assert frame["topic"] == f"user:{user.id}"
        assert frame["data"]["content"] == "over the wire"
        assert frame["data"]["sender_id"] == alice.id
        assert frame["data"]["receiver_id"] == bob.id

    db_session.expire_all()
    assert db_session.query(Message).count() == 1


def test_send_message_with_forged_sender(ws_client, db_session, alice, bob, carol, connected):
    with ws_client.websocket_connect(_ws_url(carol)) as ws:
        ws.send_json(_frame("send_message", {"sender_id": alice.id, "receiver_id": bob.id, "content": "hi"}))
        reply = ws.receive_json()

    assert reply["data"]["error"] == "sender_id does not match the authenticated user"
    db_session.expire_all()
    assert db_session.query(Message).count() == 0


def test_send_message_requires_connection(ws_client, alice, carol):
    with ws_client.websocket_connect(_ws_url(alice)) as ws:
        ws.send_json(_frame("send_message", {"receiver_id": carol.id, "content": "hi"}))
        reply = ws.receive_json()

    assert reply["type"] == "error"
    assert reply["data"]["error"] == "You are not connected with this user"


def test_send_message_with_bad_payload(ws_client, alice):
    with ws_client.websocket_connect(_ws_url(alice)) as ws:
        ws.send_json(_frame("send_message", {"receiver_id": 0, "content": ""}))
        reply = ws.receive_json()

    assert reply["data"]["error"] == "INVALID_PAYLOAD"


def test_ledger_changes_are_pushed_to_parties(ws_client, alice, bob):
    token = issue_access_token(alice.id, alice.email)

    with ws_client.websocket_connect(_ws_url(bob)) as ws_bob:
        response = ws_client.post(
            "/api/connections/request",
            json={"recipient_id": bob.id},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 200

        frame = ws_bob.receive_json()

    assert frame["type"] == "connection_requested"
    assert frame["topic"] == f"user:{bob.id}"
    assert frame["data"]["requester_id"] == alice.id
    assert frame["data"]["status"] == "pending"


def test_camel_case_send_message_reaches_receiver(ws_client, db_session, alice, bob, connected):
    with ws_client.websocket_connect(_ws_url(alice)) as ws_alice, ws_client.websocket_connect(_ws_url(bob)) as ws_bob:
        ws_alice.send_json(
            _frame("sendMessage", {"senderId": alice.id, "receiverId": bob.id, "content": "camel hello"})
        )

        delivered = ws_bob.receive_json()
        echoed = ws_alice.receive_json()

    for frame in (delivered, echoed):
        assert frame["type"] == "message"
        assert frame["data"]["content"] == "camel hello"
        assert frame["data"]["sender_id"] == alice.id
        assert frame["data"]["receiver_id"] == bob.id

    db_session.expire_all()
    assert db_session.query(Message).count() == 1


def test_camel_case_send_message_with_forged_sender(ws_client, alice, bob, carol, connected):
    with ws_client.websocket_connect(_ws_url(carol)) as ws:
        ws.send_json(_frame("sendMessage", {"senderId": alice.id, "receiverId": bob.id, "content": "hi"}))
        reply = ws.receive_json()

    assert reply["data"]["error"] == "sender_id does not match the authenticated user"


def test_camel_case_join_room(ws_client, alice, bob):
    with ws_client.websocket_connect(_ws_url(alice)) as ws:
        ws.send_json(_frame("joinRoom", {"userId": bob.id}, req_id="j2"))
        refused = ws.receive_json()

        ws.send_json(_frame("joinRoom", {"userId": alice.id}))
        ws.send_json(_frame("ping", {}))
        reply = ws.receive_json()

    assert refused["data"]["error"] == "Cannot join another user's room"
    assert reply["type"] == "pong"
