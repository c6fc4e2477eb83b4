"""Single authorization gate for every ledger and content mutation.

A role names the record attribute that holds the identity allowed to act in
that capacity.  :func:`authorize` is pure; :func:`require_role` raises
:class:`~swapnet.errors.Forbidden` before any write happens.
"""

from __future__ import annotations

from enum import Enum
from typing import Any
from typing import Iterable
from typing import Union

from swapnet.errors import Forbidden


class Role(str, Enum):
    REQUESTER = "requester"
    RECIPIENT = "recipient"
    RESPONDER = "responder"
    OWNER = "owner"
    AUTHOR = "author"
    SENDER = "sender"
    RECEIVER = "receiver"


ROLE_FIELDS = {
    Role.REQUESTER: "requester_id",
    Role.RECIPIENT: "recipient_id",
    Role.RESPONDER: "responder_id",
    Role.OWNER: "user_id",
    Role.AUTHOR: "user_id",
    Role.SENDER: "sender_id",
    Role.RECEIVER: "receiver_id",
}


def authorize(record: Any, acting_id: Any, allowed_roles: Iterable[Union[Role, str]]) -> bool:
    """Return ``True`` iff *acting_id* fills one of *allowed_roles* on *record*."""

    if record is None or acting_id is None:
        return False

    for role in allowed_roles:
        field = ROLE_FIELDS[Role(role)]
        holder = getattr(record, field, None)
        if holder is not None and str(holder) == str(acting_id):
            return True
    return False


def require_role(
    record: Any,
    acting_id: Any,
    allowed_roles: Iterable[Union[Role, str]],
    msg: str = "Not authorized",
    status_code: int = 403,
) -> None:
    if not authorize(record, acting_id, list(allowed_roles)):
        raise Forbidden(msg, status_code=status_code)


__all__ = ["Role", "ROLE_FIELDS", "authorize", "require_role"]
