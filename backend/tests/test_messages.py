"""Direct message routes."""

import pytest

from swapnet.services import connection_ledger

BASE = "/api/messages"


@pytest.fixture
def connected(db_session, alice, bob):
    conn = connection_ledger.request(db_session, alice.id, bob.id)
    connection_ledger.accept(db_session, conn.id, bob.id)


def _send(client, headers, recipient_id, content="hello"):
    return client.post(f"{BASE}/send", json={"recipient_id": recipient_id, "content": content}, headers=headers)


def test_send_requires_connection(client, alice, bob, headers_for):
    response = _send(client, headers_for(alice), bob.id)
    assert response.status_code == 403
    assert response.json() == {"msg": "You are not connected with this user"}


def test_send_to_unknown_recipient(client, alice, headers_for):
    response = _send(client, headers_for(alice), 5555)
    assert response.status_code == 404
    assert response.json() == {"msg": "Recipient not found"}


def test_pending_connection_is_not_enough(client, db_session, alice, bob, headers_for):
    connection_ledger.request(db_session, alice.id, bob.id)
    assert _send(client, headers_for(alice), bob.id).status_code == 403


def test_send_and_list(client, alice, bob, carol, connected, headers_for):
    response = _send(client, headers_for(alice), bob.id, "hi bob")
    assert response.status_code == 200
    body = response.json()
    assert body["sender_id"] == alice.id
    assert body["receiver_id"] == bob.id
    assert body["status"] == "sent"
    assert body["edited"] is False

    assert [m["content"] for m in client.get(BASE, headers=headers_for(bob)).json()] == ["hi bob"]
    assert client.get(BASE, headers=headers_for(carol)).json() == []


def test_edit_is_sender_only(client, alice, bob, connected, headers_for):
    message_id = _send(client, headers_for(alice), bob.id).json()["id"]

    denied = client.put(f"{BASE}/{message_id}", json={"content": "x"}, headers=headers_for(bob))
    assert denied.status_code == 401
    assert denied.json() == {"msg": "Not authorized to edit this message"}

    edited = client.put(f"{BASE}/{message_id}", json={"content": "fixed"}, headers=headers_for(alice))
    assert edited.json()["content"] == "fixed"
    assert edited.json()["edited"] is True


def test_delete_by_either_party(client, alice, bob, carol, connected, headers_for):
    message_id = _send(client, headers_for(alice), bob.id).json()["id"]

    denied = client.delete(f"{BASE}/{message_id}", headers=headers_for(carol))
    assert denied.status_code == 401
    assert denied.json() == {"msg": "Not authorized to delete this message"}

    response = client.delete(f"{BASE}/{message_id}", headers=headers_for(bob))
    assert response.json() == {"msg": "Message deleted"}

    missing = client.delete(f"{BASE}/{message_id}", headers=headers_for(bob))
    assert missing.status_code == 404
    assert missing.json() == {"msg": "Message not found"}
