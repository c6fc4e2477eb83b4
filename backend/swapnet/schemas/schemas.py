from datetime import datetime
from typing import List
from typing import Optional
from typing import Union

from pydantic import BaseModel
from pydantic import Field

from swapnet.models.enums import MessageStatus
from swapnet.models.enums import RequestStatus

# ------------------------------------------------------------
# Request bodies reject unknown keys so stray client fields never reach the
# ledger services.
# ------------------------------------------------------------


class StrictInput(BaseModel):
    class Config:
        extra = "forbid"


class MsgOut(BaseModel):
    msg: str


# ------------------------------------------------------------
# Identity schemas
# ------------------------------------------------------------


class UserRegister(StrictInput):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class UserLogin(StrictInput):
    email: str
    password: str


# User profile update schema (partial)
class UserUpdate(StrictInput):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    zipcode: Optional[str] = None
    category: Optional[str] = None
    skill: Optional[str] = None
    profile_picture: Optional[str] = None
    password: Optional[str] = None


class UserSummary(BaseModel):
    """Counterpart identity fields shown inside ledger and content listings."""

    id: int
    first_name: str
    last_name: str
    profile_picture: Optional[str] = None

    class Config:
        from_attributes = True


class ContactSummary(UserSummary):
    email: str


class PublicUserOut(BaseModel):
    """Profile as seen by other users: no credential, no pending mirrors."""

    id: int
    email: str
    first_name: str
    last_name: str
    address: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    zipcode: Optional[str] = None
    category: Optional[str] = None
    skill: Optional[str] = None
    profile_picture: Optional[str] = None
    connections: List[int] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserOut(PublicUserOut):
    sent_connection_requests: List[int] = []
    received_connection_requests: List[int] = []
    sent_barter_requests: List[int] = []
    received_barter_requests: List[int] = []


class AuthOut(BaseModel):
    token: str
    user: UserOut


# ------------------------------------------------------------
# Relationship ledger
# ------------------------------------------------------------


class ConnectionRequestIn(StrictInput):
    recipient_id: int


class ConnectionOut(BaseModel):
    id: int
    requester_id: int
    recipient_id: int
    status: RequestStatus
    date: Optional[datetime] = None
    requester: Optional[ContactSummary] = None
    recipient: Optional[ContactSummary] = None

    class Config:
        from_attributes = True


class ConnectionActionOut(BaseModel):
    msg: str
    connection: ConnectionOut


class AcceptedConnectionsOut(BaseModel):
    msg: Optional[str] = None
    connections: List[ContactSummary] = []


# ------------------------------------------------------------
# Barter ledger
# ------------------------------------------------------------


class BarterCreate(StrictInput):
    # Kept loose so a malformed id reaches the ledger and is reported as
    # "Invalid user ID" rather than as a schema error.
    responder: Optional[Union[int, str]] = None
    requested_skill: str = Field(min_length=1)
    offered_skill: str = Field(min_length=1)


class BarterUpdate(StrictInput):
    requested_skill: Optional[str] = None
    offered_skill: Optional[str] = None
    status: Optional[RequestStatus] = None


class BarterOut(BaseModel):
    id: int
    requester_id: int
    responder_id: int
    requested_skill: str
    offered_skill: str
    status: RequestStatus
    date: Optional[datetime] = None
    requester: Optional[UserSummary] = None
    responder: Optional[UserSummary] = None

    class Config:
        from_attributes = True


# ------------------------------------------------------------
# Feed
# ------------------------------------------------------------


class PostCreate(StrictInput):
    content: Optional[str] = None


class PostUpdate(StrictInput):
    content: str = Field(min_length=1)


class CommentCreate(StrictInput):
    text: str = Field(min_length=1)


class CommentOut(BaseModel):
    id: int
    user_id: int
    text: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class PostOut(BaseModel):
    id: int
    user_id: int
    content: str
    likes: List[int] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    comments: List[CommentOut] = []

    class Config:
        from_attributes = True


class FeedPostOut(PostOut):
    """Post as listed in the feed, with author and likers expanded."""

    user: Optional[UserSummary] = None
    likes: List[UserSummary] = []


class FeedPage(BaseModel):
    posts: List[FeedPostOut]
    total_pages: int
    current_page: int
    has_next_page: bool


# ------------------------------------------------------------
# Messages
# ------------------------------------------------------------


class MessageCreate(StrictInput):
    recipient_id: int
    content: str = Field(min_length=1)


class MessageUpdate(StrictInput):
    content: str = Field(min_length=1)


class MessageOut(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    content: str
    date: Optional[datetime] = None
    status: MessageStatus
    edited: bool = False
    sender: Optional[UserSummary] = None
    receiver: Optional[UserSummary] = None

    class Config:
        from_attributes = True
