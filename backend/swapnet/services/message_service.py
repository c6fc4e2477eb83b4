"""Direct messages between connected users.

Used by both the REST router and the ``send_message`` WebSocket handler so
the two entry points share one membership rule.
"""

from typing import List

from sqlalchemy.orm import Session

from swapnet.crud import crud
from swapnet.database import unit_of_work
from swapnet.errors import Forbidden
from swapnet.errors import NotFound
from swapnet.models.models import Message
from swapnet.services import connection_ledger
from swapnet.services.authorization import Role
from swapnet.services.authorization import require_role
from swapnet.utils.log import log

FORBIDDEN_STATUS = 401


def _load(db: Session, message_id: int) -> Message:
    message = crud.get_message(db, message_id)
    if message is None:
        raise NotFound("Message not found")
    return message


def send(db: Session, sender_id: int, recipient_id: int, content: str) -> Message:
    if crud.get_user(db, recipient_id) is None:
        raise NotFound("Recipient not found")

    if not connection_ledger.are_connected(db, sender_id, recipient_id):
        raise Forbidden("You are not connected with this user")

    message = crud.create_message(db, sender_id=sender_id, receiver_id=recipient_id, content=content)
    log.info("message_sent", message_id=message.id, sender_id=sender_id, receiver_id=recipient_id)
    return message


def list_for_user(db: Session, user_id: int) -> List[Message]:
    return crud.get_messages_for_user(db, user_id)


def update(db: Session, message_id: int, acting_id: int, content: str) -> Message:
    message = _load(db, message_id)
    require_role(message, acting_id, [Role.SENDER], msg="Not authorized to edit this message", status_code=FORBIDDEN_STATUS)

    with unit_of_work(db):
        message.content = content
        message.edited = True

    db.refresh(message)
    return message


def delete(db: Session, message_id: int, acting_id: int) -> None:
    message = _load(db, message_id)
    require_role(
        message,
        acting_id,
        [Role.SENDER, Role.RECEIVER],
        msg="Not authorized to delete this message",
        status_code=FORBIDDEN_STATUS,
    )

    with unit_of_work(db):
        db.delete(message)
    log.info("message_deleted", message_id=message_id, acting_id=acting_id)
