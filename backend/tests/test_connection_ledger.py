"""Service-level tests for the relationship ledger and its user mirrors."""

import pytest
from sqlalchemy.exc import IntegrityError

from swapnet.crud import crud
from swapnet.errors import BadRequest
from swapnet.errors import Conflict
from swapnet.errors import Forbidden
from swapnet.errors import InvalidOperation
from swapnet.errors import NotFound
from swapnet.models.models import Connection
from swapnet.models.models import pair_key
from swapnet.services import connection_ledger


def _mirrors(db, user):
    db.refresh(user)
    return {
        "sent": list(user.sent_connection_requests),
        "received": list(user.received_connection_requests),
        "connections": list(user.connections),
    }


def test_request_creates_pending_record_and_pending_mirrors(db_session, alice, bob):
    conn = connection_ledger.request(db_session, alice.id, bob.id)

    assert conn.status == "pending"
    assert conn.requester_id == alice.id
    assert conn.recipient_id == bob.id
    assert _mirrors(db_session, alice) == {"sent": [bob.id], "received": [], "connections": []}
    assert _mirrors(db_session, bob) == {"sent": [], "received": [alice.id], "connections": []}


def test_self_request_is_invalid(db_session, alice):
    with pytest.raises(InvalidOperation) as excinfo:
        connection_ledger.request(db_session, alice.id, alice.id)
    assert excinfo.value.status_code == 400
    assert db_session.query(Connection).count() == 0


@pytest.mark.parametrize("reverse", [False, True])
def test_duplicate_request_conflicts_in_either_direction(db_session, alice, bob, reverse):
    connection_ledger.request(db_session, alice.id, bob.id)

    a, b = (bob, alice) if reverse else (alice, bob)
    with pytest.raises(Conflict) as excinfo:
        connection_ledger.request(db_session, a.id, b.id)

    assert excinfo.value.msg == "A connection request already exists between these users"
    assert db_session.query(Connection).count() == 1


def test_request_conflicts_while_record_is_accepted_or_rejected(db_session, alice, bob, carol):
    accepted = connection_ledger.request(db_session, alice.id, bob.id)
    connection_ledger.accept(db_session, accepted.id, bob.id)
    rejected = connection_ledger.request(db_session, carol.id, alice.id)
    connection_ledger.reject(db_session, rejected.id, alice.id)

    with pytest.raises(Conflict):
        connection_ledger.request(db_session, bob.id, alice.id)
    with pytest.raises(Conflict):
        connection_ledger.request(db_session, alice.id, carol.id)


def test_request_allowed_again_after_delete(db_session, alice, bob):
    conn = connection_ledger.request(db_session, alice.id, bob.id)
    connection_ledger.delete(db_session, conn.id, alice.id)

    again = connection_ledger.request(db_session, bob.id, alice.id)
    assert again.requester_id == bob.id


def test_unique_pair_key_backs_the_existence_check(db_session, alice, bob):
    connection_ledger.request(db_session, alice.id, bob.id)

    db_session.add(
        Connection(requester_id=bob.id, recipient_id=alice.id, status="pending", pair_key=pair_key(bob.id, alice.id))
    )
    with pytest.raises(IntegrityError):
        db_session.flush()
    db_session.rollback()


def test_concurrent_duplicate_surfaces_as_conflict(db_session, alice, bob, monkeypatch):
    """The pre-check misses a racing insert; the constraint still rejects it."""

    connection_ledger.request(db_session, alice.id, bob.id)
    monkeypatch.setattr(crud, "find_connection_between", lambda *a, **k: None)

    with pytest.raises(Conflict):
        connection_ledger.request(db_session, bob.id, alice.id)

    assert db_session.query(Connection).count() == 1
    assert _mirrors(db_session, bob)["sent"] == []


def test_request_to_unknown_user_is_rejected(db_session, alice):
    with pytest.raises(BadRequest) as excinfo:
        connection_ledger.request(db_session, alice.id, 9999)
    assert excinfo.value.status_code == 400
    assert db_session.query(Connection).count() == 0


def test_accept_links_both_users_and_clears_pending(db_session, alice, bob):
    conn = connection_ledger.request(db_session, alice.id, bob.id)

    accepted = connection_ledger.accept(db_session, conn.id, bob.id)

    assert accepted.status == "accepted"
    assert _mirrors(db_session, alice) == {"sent": [], "received": [], "connections": [bob.id]}
    assert _mirrors(db_session, bob) == {"sent": [], "received": [], "connections": [alice.id]}


def test_accept_twice_does_not_duplicate_connections(db_session, alice, bob):
    conn = connection_ledger.request(db_session, alice.id, bob.id)
    connection_ledger.accept(db_session, conn.id, bob.id)
    connection_ledger.accept(db_session, conn.id, bob.id)

    assert _mirrors(db_session, alice)["connections"] == [bob.id]
    assert _mirrors(db_session, bob)["connections"] == [alice.id]


@pytest.mark.parametrize("operation", [connection_ledger.accept, connection_ledger.reject])
def test_only_recipient_may_accept_or_reject(db_session, alice, bob, carol, operation):
    conn = connection_ledger.request(db_session, alice.id, bob.id)
    before_alice = _mirrors(db_session, alice)
    before_bob = _mirrors(db_session, bob)

    for intruder in (alice, carol):
        with pytest.raises(Forbidden) as excinfo:
            operation(db_session, conn.id, intruder.id)
        assert excinfo.value.status_code == 403

    db_session.refresh(conn)
    assert conn.status == "pending"
    assert _mirrors(db_session, alice) == before_alice
    assert _mirrors(db_session, bob) == before_bob


@pytest.mark.parametrize("operation", [connection_ledger.accept, connection_ledger.reject])
def test_accept_reject_unknown_connection(db_session, bob, operation):
    with pytest.raises(NotFound) as excinfo:
        operation(db_session, 12345, bob.id)
    assert excinfo.value.msg == "Connection not found"


def test_reject_clears_pending_without_linking(db_session, alice, bob):
    conn = connection_ledger.request(db_session, alice.id, bob.id)

    rejected = connection_ledger.reject(db_session, conn.id, bob.id)

    assert rejected.status == "rejected"
    assert _mirrors(db_session, alice) == {"sent": [], "received": [], "connections": []}
    assert _mirrors(db_session, bob) == {"sent": [], "received": [], "connections": []}


def test_delete_pending_clears_pending_mirrors(db_session, alice, bob):
    conn = connection_ledger.request(db_session, alice.id, bob.id)

    snapshot = connection_ledger.delete(db_session, conn.id, bob.id)

    assert snapshot["requester_id"] == alice.id
    assert crud.get_connection(db_session, conn.id) is None
    assert _mirrors(db_session, alice)["sent"] == []
    assert _mirrors(db_session, bob)["received"] == []


def test_delete_accepted_also_unlinks_users(db_session, alice, bob):
    conn = connection_ledger.request(db_session, alice.id, bob.id)
    connection_ledger.accept(db_session, conn.id, bob.id)

    connection_ledger.delete(db_session, conn.id, alice.id)

    assert _mirrors(db_session, alice)["connections"] == []
    assert _mirrors(db_session, bob)["connections"] == []


def test_delete_is_open_to_any_caller_by_default(db_session, alice, bob, carol):
    conn = connection_ledger.request(db_session, alice.id, bob.id)
    connection_ledger.delete(db_session, conn.id, carol.id)
    assert crud.get_connection(db_session, conn.id) is None


def test_delete_restricted_to_parties_when_configured(db_session, alice, bob, carol, monkeypatch):
    from swapnet.config import get_settings

    monkeypatch.setattr(get_settings(), "connection_delete_requires_party", True)
    conn = connection_ledger.request(db_session, alice.id, bob.id)

    with pytest.raises(Forbidden):
        connection_ledger.delete(db_session, conn.id, carol.id)
    assert crud.get_connection(db_session, conn.id) is not None

    connection_ledger.delete(db_session, conn.id, bob.id)
    assert crud.get_connection(db_session, conn.id) is None


def test_delete_unknown_connection(db_session, alice):
    with pytest.raises(NotFound) as excinfo:
        connection_ledger.delete(db_session, 777, alice.id)
    assert excinfo.value.msg == "Connection request not found"


def test_failed_mirror_write_rolls_back_the_whole_accept(db_session, alice, bob, monkeypatch):
    conn = connection_ledger.request(db_session, alice.id, bob.id)

    real_pull = crud.pull_mirror

    def failing_pull(user, field, value):
        if field == "received_connection_requests":
            raise RuntimeError("storage fault")
        return real_pull(user, field, value)

    monkeypatch.setattr(crud, "pull_mirror", failing_pull)

    with pytest.raises(RuntimeError):
        connection_ledger.accept(db_session, conn.id, bob.id)

    db_session.refresh(conn)
    assert conn.status == "pending"
    assert _mirrors(db_session, alice) == {"sent": [bob.id], "received": [], "connections": []}
    assert _mirrors(db_session, bob) == {"sent": [], "received": [alice.id], "connections": []}


def test_failed_mirror_write_rolls_back_the_request(db_session, alice, bob, monkeypatch):
    def failing_push(user, field, value):
        if field == "received_connection_requests":
            raise RuntimeError("storage fault")
        user.sent_connection_requests = list(user.sent_connection_requests or []) + [value]

    monkeypatch.setattr(crud, "push_mirror", failing_push)

    with pytest.raises(RuntimeError):
        connection_ledger.request(db_session, alice.id, bob.id)

    assert db_session.query(Connection).count() == 0
    assert _mirrors(db_session, alice)["sent"] == []


def test_list_for_user_covers_both_directions(db_session, alice, bob, carol):
    connection_ledger.request(db_session, alice.id, bob.id)
    connection_ledger.request(db_session, carol.id, alice.id)
    connection_ledger.request(db_session, bob.id, carol.id)

    rows = connection_ledger.list_for_user(db_session, alice.id)
    pairs = {(r.requester_id, r.recipient_id) for r in rows}
    assert pairs == {(alice.id, bob.id), (carol.id, alice.id)}


def test_list_accepted(db_session, alice, bob, carol):
    assert connection_ledger.list_accepted(db_session, alice.id) == {
        "msg": "This user has no connections",
        "connections": [],
    }

    conn = connection_ledger.request(db_session, alice.id, bob.id)
    connection_ledger.accept(db_session, conn.id, bob.id)
    connection_ledger.request(db_session, alice.id, carol.id)

    result = connection_ledger.list_accepted(db_session, alice.id)
    assert [u.id for u in result["connections"]] == [bob.id]
    assert "msg" not in result


def test_list_accepted_unknown_user(db_session):
    with pytest.raises(NotFound):
        connection_ledger.list_accepted(db_session, 4242)


def test_are_connected_requires_both_mirrors(db_session, alice, bob):
    conn = connection_ledger.request(db_session, alice.id, bob.id)
    assert connection_ledger.are_connected(db_session, alice.id, bob.id) is False

    connection_ledger.accept(db_session, conn.id, bob.id)
    assert connection_ledger.are_connected(db_session, alice.id, bob.id) is True
    assert connection_ledger.are_connected(db_session, bob.id, alice.id) is True
