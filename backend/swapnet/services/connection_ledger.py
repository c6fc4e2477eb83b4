"""Relationship ledger.

Owns :class:`~swapnet.models.models.Connection` records and keeps the three
connection mirrors on both users in step with them.  Every mutation loads
the record, passes it through :func:`require_role`, then writes the record
and all mirror changes in a single :func:`unit_of_work` transaction.
"""

from typing import Any
from typing import Dict
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from swapnet.config import get_settings
from swapnet.crud import crud
from swapnet.database import unit_of_work
from swapnet.errors import BadRequest
from swapnet.errors import Conflict
from swapnet.errors import InvalidOperation
from swapnet.errors import NotFound
from swapnet.models.enums import RequestStatus
from swapnet.models.models import Connection
from swapnet.services.authorization import Role
from swapnet.services.authorization import require_role
from swapnet.utils.log import log

DUPLICATE_MSG = "A connection request already exists between these users"


def _load(db: Session, connection_id: int, msg: str = "Connection not found") -> Connection:
    connection = crud.get_connection(db, connection_id)
    if connection is None:
        raise NotFound(msg)
    return connection


def _parties(db: Session, connection: Connection):
    requester = crud.get_user(db, connection.requester_id)
    recipient = crud.get_user(db, connection.recipient_id)
    return requester, recipient


def _clear_pending(connection: Connection, requester, recipient) -> None:
    if requester is not None:
        crud.pull_mirror(requester, "sent_connection_requests", connection.recipient_id)
    if recipient is not None:
        crud.pull_mirror(recipient, "received_connection_requests", connection.requester_id)


def request(db: Session, requester_id: int, recipient_id: int) -> Connection:
    """Open a pending connection from *requester_id* to *recipient_id*."""

    if requester_id == recipient_id:
        raise InvalidOperation("You cannot send a connection request to yourself")

    if crud.find_connection_between(db, requester_id, recipient_id) is not None:
        raise Conflict(DUPLICATE_MSG)

    requester = crud.get_user(db, requester_id)
    recipient = crud.get_user(db, recipient_id)
    if requester is None or recipient is None:
        raise BadRequest("User not found")

    try:
        with unit_of_work(db):
            connection = crud.add_connection(db, requester_id=requester_id, recipient_id=recipient_id)
            crud.push_mirror(requester, "sent_connection_requests", recipient_id)
            crud.push_mirror(recipient, "received_connection_requests", requester_id)
    except IntegrityError as exc:
        # A concurrent request for the same pair won the unique pair_key.
        log.info("connection_request_conflict", requester_id=requester_id, recipient_id=recipient_id)
        raise Conflict(DUPLICATE_MSG) from exc

    db.refresh(connection)
    log.info("connection_requested", connection_id=connection.id, requester_id=requester_id, recipient_id=recipient_id)
    return connection


def accept(db: Session, connection_id: int, acting_id: int) -> Connection:
    connection = _load(db, connection_id)
    require_role(connection, acting_id, [Role.RECIPIENT], msg="You can only accept connection requests sent to you")

    requester, recipient = _parties(db, connection)
    with unit_of_work(db):
        connection.status = RequestStatus.ACCEPTED
        if requester is not None:
            crud.push_mirror(requester, "connections", connection.recipient_id)
        if recipient is not None:
            crud.push_mirror(recipient, "connections", connection.requester_id)
        _clear_pending(connection, requester, recipient)

    db.refresh(connection)
    log.info("connection_accepted", connection_id=connection.id, acting_id=acting_id)
    return connection


def reject(db: Session, connection_id: int, acting_id: int) -> Connection:
    connection = _load(db, connection_id)
    require_role(connection, acting_id, [Role.RECIPIENT], msg="You can only reject connection requests sent to you")

    requester, recipient = _parties(db, connection)
    with unit_of_work(db):
        connection.status = RequestStatus.REJECTED
        _clear_pending(connection, requester, recipient)

    db.refresh(connection)
    log.info("connection_rejected", connection_id=connection.id, acting_id=acting_id)
    return connection


def delete(db: Session, connection_id: int, acting_id: int) -> Dict[str, Any]:
    """Remove a connection and every mirror entry that reflects it.

    Any authenticated caller may delete unless
    ``CONNECTION_DELETE_REQUIRES_PARTY`` is set, in which case only the two
    parties may.  Returns a snapshot of the removed record.
    """

    connection = _load(db, connection_id, msg="Connection request not found")
    if get_settings().connection_delete_requires_party:
        require_role(connection, acting_id, [Role.REQUESTER, Role.RECIPIENT])

    snapshot = {
        "id": connection.id,
        "requester_id": connection.requester_id,
        "recipient_id": connection.recipient_id,
        "status": RequestStatus(connection.status).value,
    }

    requester, recipient = _parties(db, connection)
    with unit_of_work(db):
        _clear_pending(connection, requester, recipient)
        if requester is not None:
            crud.pull_mirror(requester, "connections", connection.recipient_id)
        if recipient is not None:
            crud.pull_mirror(recipient, "connections", connection.requester_id)
        db.delete(connection)

    log.info("connection_deleted", acting_id=acting_id, **snapshot)
    return snapshot


def list_for_user(db: Session, user_id: int) -> List[Connection]:
    return crud.get_connections_for_user(db, user_id)


def list_accepted(db: Session, user_id: int) -> Dict[str, Any]:
    """Expand the ``connections`` mirror of *user_id* into contact summaries."""

    user = crud.get_user(db, user_id)
    if user is None:
        raise NotFound("User not found")

    contacts = crud.get_users(db, user.connections or [])
    if not contacts:
        return {"msg": "This user has no connections", "connections": []}
    return {"connections": contacts}


def are_connected(db: Session, user_a: int, user_b: int) -> bool:
    """True when each user lists the other in their ``connections`` mirror."""

    a = crud.get_user(db, user_a)
    b = crud.get_user(db, user_b)
    if a is None or b is None:
        return False
    return user_b in (a.connections or []) and user_a in (b.connections or [])
