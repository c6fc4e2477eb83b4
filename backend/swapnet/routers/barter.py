"""Barter ledger routes (``/api/barter``)."""

from typing import List

from fastapi import APIRouter
from fastapi import Depends
from sqlalchemy.orm import Session

from swapnet.database import get_db
from swapnet.dependencies.auth import get_current_user
from swapnet.events import EventType
from swapnet.events import event_bus
from swapnet.events.decorators import publish_event
from swapnet.schemas.schemas import BarterCreate
from swapnet.schemas.schemas import BarterOut
from swapnet.schemas.schemas import BarterUpdate
from swapnet.schemas.schemas import MsgOut
from swapnet.services import barter_ledger

router = APIRouter(tags=["barter"], dependencies=[Depends(get_current_user)])


@router.post("/create", response_model=BarterOut)
@publish_event(EventType.BARTER_CREATED)
async def create_barter_request(
    payload: BarterCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return barter_ledger.create(
        db,
        current_user.id,
        payload.responder,
        payload.requested_skill,
        payload.offered_skill,
    )


@router.get("", response_model=List[BarterOut])
@router.get("/", response_model=List[BarterOut])
def list_barter_requests(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return barter_ledger.list_for_user(db, current_user.id)


@router.put("/accept/{barter_id}", response_model=BarterOut)
@publish_event(EventType.BARTER_UPDATED)
async def accept_barter_request(barter_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return barter_ledger.accept(db, barter_id, current_user.id)


@router.put("/reject/{barter_id}", response_model=BarterOut)
@publish_event(EventType.BARTER_UPDATED)
async def reject_barter_request(barter_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return barter_ledger.reject(db, barter_id, current_user.id)


@router.put("/{barter_id}", response_model=BarterOut)
@publish_event(EventType.BARTER_UPDATED)
async def update_barter_request(
    barter_id: int,
    patch: BarterUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return barter_ledger.update(db, barter_id, current_user.id, patch.model_dump(exclude_unset=True))


@router.delete("/{barter_id}", response_model=MsgOut)
async def delete_barter_request(barter_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    snapshot = barter_ledger.delete(db, barter_id, current_user.id)
    await event_bus.publish(EventType.BARTER_DELETED, {**snapshot, "event_type": EventType.BARTER_DELETED})
    return {"msg": "Request removed"}
