from sqlalchemy import JSON

# SQLAlchemy core imports
from sqlalchemy import Boolean
from sqlalchemy import Column
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey
from sqlalchemy import Integer
from sqlalchemy import String
from sqlalchemy import Text
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

# Local helpers / enums
from swapnet.database import Base
from swapnet.models.enums import MessageStatus
from swapnet.models.enums import RequestStatus

# ---------------------------------------------------------------------------
# Identity Store – User table
# ---------------------------------------------------------------------------

# Names of the denormalised relationship mirrors held on every user row.
CONNECTION_MIRRORS = ("sent_connection_requests", "received_connection_requests", "connections")
BARTER_MIRRORS = ("sent_barter_requests", "received_barter_requests")
MIRROR_FIELDS = CONNECTION_MIRRORS + BARTER_MIRRORS


class User(Base):
    """Application user.

    Besides identity and profile fields the row carries five *mirror*
    collections.  They are derived views of the Connection and BarterRequest
    ledgers and are only ever written by the ledger services, in the same
    transaction as the ledger row they reflect.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # Core identity ----------------------------------------------------------
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)

    # Profile ----------------------------------------------------------------
    address = Column(String, nullable=True)
    country = Column(String, nullable=True)
    state = Column(String, nullable=True)
    city = Column(String, nullable=True)
    zipcode = Column(String, nullable=True)
    category = Column(String, nullable=True)
    skill = Column(String, nullable=True)
    profile_picture = Column(String, nullable=True)

    # -------------------------------------------------------------------
    # Connection mirrors (user ids)
    # -------------------------------------------------------------------
    sent_connection_requests = Column(MutableList.as_mutable(JSON), nullable=False, default=list)
    received_connection_requests = Column(MutableList.as_mutable(JSON), nullable=False, default=list)
    connections = Column(MutableList.as_mutable(JSON), nullable=False, default=list)

    # -------------------------------------------------------------------
    # Barter mirrors (barter request ids)
    # -------------------------------------------------------------------
    sent_barter_requests = Column(MutableList.as_mutable(JSON), nullable=False, default=list)
    received_barter_requests = Column(MutableList.as_mutable(JSON), nullable=False, default=list)

    # Timestamps -------------------------------------------------------------
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


# ---------------------------------------------------------------------------
# Relationship Ledger
# ---------------------------------------------------------------------------


def pair_key(user_a: int, user_b: int) -> str:
    """Return the direction-independent key of an unordered user pair."""

    low, high = sorted((int(user_a), int(user_b)))
    return f"{low}:{high}"


class Connection(Base):
    __tablename__ = "connections"

    id = Column(Integer, primary_key=True, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(
        SAEnum(RequestStatus, native_enum=False, name="connection_status_enum"),
        nullable=False,
        default=RequestStatus.PENDING.value,
    )
    # One record per unordered pair, whichever side asked first.
    pair_key = Column(String, nullable=False, unique=True)
    date = Column(DateTime, server_default=func.now())

    requester = relationship("User", foreign_keys=[requester_id])
    recipient = relationship("User", foreign_keys=[recipient_id])


# ---------------------------------------------------------------------------
# Barter Ledger
# ---------------------------------------------------------------------------


class BarterRequest(Base):
    """Skill swap proposal.

    ``offered_skill`` is what the requester gives, ``requested_skill`` is what
    the responder is asked for.  Any number of records may exist per pair.
    """

    __tablename__ = "barter_requests"

    id = Column(Integer, primary_key=True, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    responder_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    requested_skill = Column(String, nullable=False)
    offered_skill = Column(String, nullable=False)
    status = Column(
        SAEnum(RequestStatus, native_enum=False, name="barter_status_enum"),
        nullable=False,
        default=RequestStatus.PENDING.value,
    )
    date = Column(DateTime, server_default=func.now())

    requester = relationship("User", foreign_keys=[requester_id])
    responder = relationship("User", foreign_keys=[responder_id])


# ---------------------------------------------------------------------------
# Feed Store
# ---------------------------------------------------------------------------


class FeedPost(Base):
    __tablename__ = "feed_posts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    # Unordered set of liking user ids
    likes = Column(MutableList.as_mutable(JSON), nullable=False, default=list)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User")
    comments = relationship(
        "FeedComment",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="FeedComment.id",
    )


class FeedComment(Base):
    __tablename__ = "feed_comments"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("feed_posts.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    post = relationship("FeedPost", back_populates="comments")
    user = relationship("User")


# ---------------------------------------------------------------------------
# Message Store
# ---------------------------------------------------------------------------


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    date = Column(DateTime, server_default=func.now())
    status = Column(
        SAEnum(MessageStatus, native_enum=False, name="message_status_enum"),
        nullable=False,
        default=MessageStatus.SENT.value,
    )
    edited = Column(Boolean, nullable=False, default=False)

    sender = relationship("User", foreign_keys=[sender_id])
    receiver = relationship("User", foreign_keys=[receiver_id])
