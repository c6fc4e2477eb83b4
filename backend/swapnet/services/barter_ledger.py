"""Barter ledger.

Skill swap proposals between two users.  Unlike the relationship ledger any
number of requests may exist for the same pair, and accepting or rejecting a
request leaves the barter mirrors as they are.  Only creation and deletion
touch ``sent_barter_requests`` / ``received_barter_requests``.

Authorization failures on this ledger answer with 401.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Union

from sqlalchemy.orm import Session

from swapnet.crud import crud
from swapnet.database import unit_of_work
from swapnet.errors import BadRequest
from swapnet.errors import NotFound
from swapnet.errors import Unauthenticated
from swapnet.models.enums import RequestStatus
from swapnet.models.models import BarterRequest
from swapnet.services.authorization import Role
from swapnet.services.authorization import require_role
from swapnet.utils.log import log

FORBIDDEN_STATUS = 401


def _load(db: Session, barter_id: int) -> BarterRequest:
    request = crud.get_barter_request(db, barter_id)
    if request is None:
        raise NotFound("Request not found")
    return request


def _parse_user_id(raw: Union[int, str, None]) -> Optional[int]:
    """Return *raw* as a positive integer id, or ``None`` when malformed."""

    if isinstance(raw, bool):
        return None
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def create(
    db: Session,
    requester_id: Optional[int],
    responder: Union[int, str, None],
    requested_skill: str,
    offered_skill: str,
) -> BarterRequest:
    if not requester_id:
        raise Unauthenticated("User not authenticated")
    if responder is None or responder == "":
        raise BadRequest("Responder is required")

    responder_id = _parse_user_id(responder)
    if responder_id is None:
        raise BadRequest("Invalid user ID")

    requester_row = crud.get_user(db, requester_id)
    responder_row = crud.get_user(db, responder_id)
    if requester_row is None or responder_row is None:
        raise BadRequest("Invalid user ID")

    with unit_of_work(db):
        request = crud.add_barter_request(
            db,
            requester_id=requester_id,
            responder_id=responder_id,
            requested_skill=requested_skill,
            offered_skill=offered_skill,
        )
        crud.push_mirror(requester_row, "sent_barter_requests", request.id)
        crud.push_mirror(responder_row, "received_barter_requests", request.id)

    db.refresh(request)
    log.info("barter_created", barter_id=request.id, requester_id=requester_id, responder_id=responder_id)
    return request


def update(db: Session, barter_id: int, acting_id: int, fields: Dict[str, Any]) -> BarterRequest:
    """Requester-only partial update.

    ``status`` is applied as given, so a requester can mark their own request
    accepted without the responder.
    """

    request = _load(db, barter_id)
    require_role(request, acting_id, [Role.REQUESTER], status_code=FORBIDDEN_STATUS)

    changed = []
    with unit_of_work(db):
        for name in ("requested_skill", "offered_skill", "status"):
            value = fields.get(name)
            if value is not None:
                setattr(request, name, value)
                changed.append(name)

    db.refresh(request)
    log.info("barter_updated", barter_id=request.id, acting_id=acting_id, fields=changed)
    return request


def _respond(db: Session, barter_id: int, acting_id: int, status: RequestStatus) -> BarterRequest:
    request = _load(db, barter_id)
    require_role(request, acting_id, [Role.RESPONDER], status_code=FORBIDDEN_STATUS)

    with unit_of_work(db):
        request.status = status

    db.refresh(request)
    log.info("barter_" + status.value, barter_id=request.id, acting_id=acting_id)
    return request


def accept(db: Session, barter_id: int, acting_id: int) -> BarterRequest:
    return _respond(db, barter_id, acting_id, RequestStatus.ACCEPTED)


def reject(db: Session, barter_id: int, acting_id: int) -> BarterRequest:
    return _respond(db, barter_id, acting_id, RequestStatus.REJECTED)


def delete(db: Session, barter_id: int, acting_id: int) -> Dict[str, Any]:
    """Delete the request and pull its id from both mirrors, whatever its status."""

    request = _load(db, barter_id)
    require_role(request, acting_id, [Role.REQUESTER, Role.RESPONDER], status_code=FORBIDDEN_STATUS)

    snapshot = {
        "id": request.id,
        "requester_id": request.requester_id,
        "responder_id": request.responder_id,
        "status": RequestStatus(request.status).value,
    }
    requester_row = crud.get_user(db, request.requester_id)
    responder_row = crud.get_user(db, request.responder_id)

    with unit_of_work(db):
        if requester_row is not None:
            crud.pull_mirror(requester_row, "sent_barter_requests", request.id)
        if responder_row is not None:
            crud.pull_mirror(responder_row, "received_barter_requests", request.id)
        db.delete(request)

    log.info("barter_deleted", acting_id=acting_id, **snapshot)
    return snapshot


def list_for_user(db: Session, user_id: int) -> List[BarterRequest]:
    return crud.get_barter_requests_for_user(db, user_id)
