from typing import Any
from typing import Iterable
from typing import List
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.orm import selectinload

from swapnet.models.models import MIRROR_FIELDS
from swapnet.models.models import BarterRequest
from swapnet.models.models import Connection
from swapnet.models.models import FeedComment
from swapnet.models.models import FeedPost
from swapnet.models.models import Message

# NOTE: For return type hints we avoid the newer *PEP 604* union syntax
# ``User | None`` because the SQLAlchemy declarative class overrides the
# bitwise OR operator; the classic ``Optional[User]`` sidesteps the issue.
from swapnet.models.models import User
from swapnet.models.models import pair_key

# Columns a profile update may touch.  Everything else on the row (email,
# password hash, mirrors) is owned by dedicated code paths.
PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "address",
    "country",
    "state",
    "city",
    "zipcode",
    "category",
    "skill",
    "profile_picture",
)


# ------------------------------------------------------------
# User CRUD operations
# ------------------------------------------------------------


def get_user(db: Session, user_id: int) -> Optional[User]:
    """Return user by primary key."""
    return db.query(User).filter(User.id == user_id).first()


def get_users(db: Session, user_ids: Iterable[int]) -> List[User]:
    """Return the users whose ids are in *user_ids*, preserving that order."""
    ids = list(user_ids)
    if not ids:
        return []
    rows = {u.id: u for u in db.query(User).filter(User.id.in_(ids)).all()}
    return [rows[i] for i in ids if i in rows]


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Return user by e-mail address (case-insensitive)."""
    return (
        db.query(User)
        .filter(User.email.ilike(email))  # type: ignore[arg-type]
        .first()
    )


def create_user(
    db: Session,
    *,
    email: str,
    password_hash: str,
    first_name: str,
    last_name: str,
) -> User:
    """Insert new user row.

    Caller is expected to ensure uniqueness beforehand; we do not upsert here.
    """
    new_user = User(
        email=email,
        password_hash=password_hash,
        first_name=first_name,
        last_name=last_name,
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    return new_user


def update_user(
    db: Session,
    user_id: int,
    *,
    password_hash: Optional[str] = None,
    **fields: Any,
) -> Optional[User]:
    """Partial update for the *User* table.

    Only truthy profile values are applied – blank or ``None`` leaves the
    column unchanged.  Returns the updated row or ``None`` if not found.
    """

    user = get_user(db, user_id)
    if user is None:
        return None

    for name in PROFILE_FIELDS:
        value = fields.get(name)
        if value:
            setattr(user, name, value)
    if password_hash is not None:
        user.password_hash = password_hash

    db.commit()
    db.refresh(user)
    return user


# ------------------------------------------------------------
# Mirror helpers
#
# These only *stage* changes on the session.  The calling service commits
# them together with the ledger row inside ``unit_of_work``.
# ------------------------------------------------------------


def push_mirror(user: User, field: str, value: int) -> None:
    """Append *value* to a mirror collection unless it is already present."""
    if field not in MIRROR_FIELDS:
        raise ValueError(f"Unknown mirror collection: {field}")
    current = list(getattr(user, field) or [])
    if value not in current:
        setattr(user, field, current + [value])


def pull_mirror(user: User, field: str, value: int) -> None:
    """Remove every occurrence of *value* from a mirror collection."""
    if field not in MIRROR_FIELDS:
        raise ValueError(f"Unknown mirror collection: {field}")
    current = list(getattr(user, field) or [])
    if value in current:
        setattr(user, field, [v for v in current if v != value])


# ------------------------------------------------------------
# Connection ledger
# ------------------------------------------------------------


def get_connection(db: Session, connection_id: int) -> Optional[Connection]:
    return db.query(Connection).filter(Connection.id == connection_id).first()


def find_connection_between(db: Session, user_a: int, user_b: int) -> Optional[Connection]:
    """Return the connection for the pair in either direction, if any."""
    return db.query(Connection).filter(Connection.pair_key == pair_key(user_a, user_b)).first()


def add_connection(db: Session, *, requester_id: int, recipient_id: int) -> Connection:
    """Stage a pending connection; flushes so the row gets its id."""
    connection = Connection(
        requester_id=requester_id,
        recipient_id=recipient_id,
        status="pending",
        pair_key=pair_key(requester_id, recipient_id),
    )
    db.add(connection)
    db.flush()
    return connection


def get_connections_for_user(db: Session, user_id: int) -> List[Connection]:
    return (
        db.query(Connection)
        .options(selectinload(Connection.requester), selectinload(Connection.recipient))
        .filter(or_(Connection.requester_id == user_id, Connection.recipient_id == user_id))
        .order_by(Connection.id)
        .all()
    )


# ------------------------------------------------------------
# Barter ledger
# ------------------------------------------------------------


def get_barter_request(db: Session, barter_id: int) -> Optional[BarterRequest]:
    return db.query(BarterRequest).filter(BarterRequest.id == barter_id).first()


def add_barter_request(
    db: Session,
    *,
    requester_id: int,
    responder_id: int,
    requested_skill: str,
    offered_skill: str,
) -> BarterRequest:
    """Stage a pending barter request; flushes so the row gets its id."""
    request = BarterRequest(
        requester_id=requester_id,
        responder_id=responder_id,
        requested_skill=requested_skill,
        offered_skill=offered_skill,
        status="pending",
    )
    db.add(request)
    db.flush()
    return request


def get_barter_requests_for_user(db: Session, user_id: int) -> List[BarterRequest]:
    return (
        db.query(BarterRequest)
        .options(selectinload(BarterRequest.requester), selectinload(BarterRequest.responder))
        .filter(or_(BarterRequest.requester_id == user_id, BarterRequest.responder_id == user_id))
        .order_by(BarterRequest.id)
        .all()
    )


# ------------------------------------------------------------
# Feed
# ------------------------------------------------------------


def get_post(db: Session, post_id: int) -> Optional[FeedPost]:
    return db.query(FeedPost).options(selectinload(FeedPost.comments)).filter(FeedPost.id == post_id).first()


def create_post(db: Session, *, user_id: int, content: str) -> FeedPost:
    post = FeedPost(user_id=user_id, content=content, likes=[])
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


def get_feed_posts(db: Session, author_ids: List[int], *, skip: int = 0, limit: int = 10) -> List[FeedPost]:
    """Return posts by *author_ids*, newest first."""
    return (
        db.query(FeedPost)
        .options(
            selectinload(FeedPost.user),
            selectinload(FeedPost.comments).selectinload(FeedComment.user),
        )
        .filter(FeedPost.user_id.in_(author_ids))
        .order_by(FeedPost.created_at.desc(), FeedPost.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def count_feed_posts(db: Session, author_ids: List[int]) -> int:
    return db.query(FeedPost).filter(FeedPost.user_id.in_(author_ids)).count()


# ------------------------------------------------------------
# Messages
# ------------------------------------------------------------


def get_message(db: Session, message_id: int) -> Optional[Message]:
    return db.query(Message).filter(Message.id == message_id).first()


def create_message(db: Session, *, sender_id: int, receiver_id: int, content: str) -> Message:
    message = Message(sender_id=sender_id, receiver_id=receiver_id, content=content, status="sent", edited=False)
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def get_messages_for_user(db: Session, user_id: int) -> List[Message]:
    return (
        db.query(Message)
        .options(selectinload(Message.sender), selectinload(Message.receiver))
        .filter(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
        .order_by(Message.date.desc(), Message.id.desc())
        .all()
    )
