"""Relationship ledger routes (``/api/connections``)."""

from typing import List

from fastapi import APIRouter
from fastapi import Depends
from sqlalchemy.orm import Session

from swapnet.database import get_db
from swapnet.dependencies.auth import get_current_user
from swapnet.events import EventType
from swapnet.events import event_bus
from swapnet.events.decorators import record_event_data
from swapnet.schemas.schemas import AcceptedConnectionsOut
from swapnet.schemas.schemas import ConnectionActionOut
from swapnet.schemas.schemas import ConnectionOut
from swapnet.schemas.schemas import ConnectionRequestIn
from swapnet.schemas.schemas import MsgOut
from swapnet.services import connection_ledger

router = APIRouter(tags=["connections"], dependencies=[Depends(get_current_user)])


async def _publish(event_type: EventType, record) -> None:
    data = record_event_data(record)
    data["event_type"] = event_type
    await event_bus.publish(event_type, data)


@router.post("/request", response_model=MsgOut)
async def send_connection_request(
    payload: ConnectionRequestIn,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    connection = connection_ledger.request(db, current_user.id, payload.recipient_id)
    await _publish(EventType.CONNECTION_REQUESTED, connection)
    return {"msg": "Connection request sent successfully"}


@router.get("", response_model=List[ConnectionOut])
@router.get("/", response_model=List[ConnectionOut])
def list_connection_requests(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """Every connection the caller is a party to, in any status."""

    return connection_ledger.list_for_user(db, current_user.id)


@router.put("/accept/{connection_id}", response_model=ConnectionActionOut)
async def accept_connection_request(
    connection_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    connection = connection_ledger.accept(db, connection_id, current_user.id)
    await _publish(EventType.CONNECTION_ACCEPTED, connection)
    return {"msg": "Connection accepted", "connection": connection}


@router.put("/reject/{connection_id}", response_model=ConnectionActionOut)
async def reject_connection_request(
    connection_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    connection = connection_ledger.reject(db, connection_id, current_user.id)
    await _publish(EventType.CONNECTION_REJECTED, connection)
    return {"msg": "Connection rejected", "connection": connection}


@router.delete("/delete/{connection_id}", response_model=MsgOut)
async def delete_connection_request(
    connection_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    snapshot = connection_ledger.delete(db, connection_id, current_user.id)
    await _publish(EventType.CONNECTION_DELETED, snapshot)
    return {"msg": "Connection request deleted successfully"}


@router.get("/{user_id}/connections", response_model=AcceptedConnectionsOut)
def list_user_connections(user_id: int, db: Session = Depends(get_db)):
    return connection_ledger.list_accepted(db, user_id)
