"""Identity store operations: registration, login, profiles and account removal."""

from typing import Any
from typing import Dict

from sqlalchemy import or_
from sqlalchemy.orm import Session

from swapnet.auth.security import hash_password
from swapnet.auth.security import issue_access_token
from swapnet.auth.security import verify_password
from swapnet.crud import crud
from swapnet.database import unit_of_work
from swapnet.errors import BadRequest
from swapnet.errors import NotFound
from swapnet.models.models import BarterRequest
from swapnet.models.models import Connection
from swapnet.models.models import FeedComment
from swapnet.models.models import FeedPost
from swapnet.models.models import Message
from swapnet.models.models import User
from swapnet.utils.log import log


def _auth_payload(user: User) -> Dict[str, Any]:
    return {"token": issue_access_token(user.id, user.email), "user": user}


def register(db: Session, *, first_name: str, last_name: str, email: str, password: str) -> Dict[str, Any]:
    email = email.strip()
    if crud.get_user_by_email(db, email) is not None:
        raise BadRequest("User already exists")

    user = crud.create_user(
        db,
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
    )
    log.info("user_registered", user_id=user.id)
    return _auth_payload(user)


def login(db: Session, *, email: str, password: str) -> Dict[str, Any]:
    user = crud.get_user_by_email(db, email.strip())
    if user is None or not verify_password(password, user.password_hash):
        raise BadRequest("Invalid credentials")
    return _auth_payload(user)


def get_profile(db: Session, user_id: int) -> User:
    user = crud.get_user(db, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def update_profile(db: Session, user_id: int, fields: Dict[str, Any]) -> User:
    """Apply non-blank profile fields; a supplied password is re-hashed."""

    password = fields.pop("password", None)
    user = crud.update_user(
        db,
        user_id,
        password_hash=hash_password(password) if password else None,
        **fields,
    )
    if user is None:
        raise NotFound("User not found")
    return user


def delete_profile(db: Session, user_id: int) -> None:
    """Delete the user together with everything that references them.

    Connections and barter requests involving the user are removed and the
    counterpart mirrors are pulled.  The user's posts, comments, likes and
    messages go too.  All of it commits as one transaction.
    """

    user = crud.get_user(db, user_id)
    if user is None:
        raise NotFound("User not found")

    connections = (
        db.query(Connection).filter(or_(Connection.requester_id == user_id, Connection.recipient_id == user_id)).all()
    )
    barters = (
        db.query(BarterRequest)
        .filter(or_(BarterRequest.requester_id == user_id, BarterRequest.responder_id == user_id))
        .all()
    )

    with unit_of_work(db):
        for connection in connections:
            other_id = connection.recipient_id if connection.requester_id == user_id else connection.requester_id
            other = crud.get_user(db, other_id)
            if other is not None and other.id != user_id:
                for field in ("sent_connection_requests", "received_connection_requests", "connections"):
                    crud.pull_mirror(other, field, user_id)
            db.delete(connection)

        for barter in barters:
            for party_id, field in (
                (barter.requester_id, "sent_barter_requests"),
                (barter.responder_id, "received_barter_requests"),
            ):
                if party_id == user_id:
                    continue
                party = crud.get_user(db, party_id)
                if party is not None:
                    crud.pull_mirror(party, field, barter.id)
            db.delete(barter)

        for post in db.query(FeedPost).filter(FeedPost.user_id == user_id).all():
            db.delete(post)
        db.flush()

        db.query(FeedComment).filter(FeedComment.user_id == user_id).delete(synchronize_session="fetch")
        for post in db.query(FeedPost).all():
            likes = list(post.likes or [])
            if user_id in likes:
                post.likes = [uid for uid in likes if uid != user_id]

        db.query(Message).filter(or_(Message.sender_id == user_id, Message.receiver_id == user_id)).delete(
            synchronize_session="fetch"
        )
        db.delete(user)

    log.info(
        "user_deleted",
        user_id=user_id,
        connections=len(connections),
        barter_requests=len(barters),
    )
