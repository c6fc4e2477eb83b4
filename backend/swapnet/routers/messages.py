"""Direct message routes (``/api/messages``)."""

from typing import List

from fastapi import APIRouter
from fastapi import Depends
from sqlalchemy.orm import Session

from swapnet.database import get_db
from swapnet.dependencies.auth import get_current_user
from swapnet.events import EventType
from swapnet.events.decorators import publish_event
from swapnet.schemas.schemas import MessageCreate
from swapnet.schemas.schemas import MessageOut
from swapnet.schemas.schemas import MessageUpdate
from swapnet.schemas.schemas import MsgOut
from swapnet.services import message_service

router = APIRouter(tags=["messages"], dependencies=[Depends(get_current_user)])


@router.post("/send", response_model=MessageOut)
@publish_event(EventType.MESSAGE_CREATED)
async def send_message(payload: MessageCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """Store a message and push it to both users' real-time rooms."""

    return message_service.send(db, current_user.id, payload.recipient_id, payload.content)


@router.get("", response_model=List[MessageOut])
@router.get("/", response_model=List[MessageOut])
def list_messages(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return message_service.list_for_user(db, current_user.id)


@router.put("/{message_id}", response_model=MessageOut)
def update_message(
    message_id: int,
    payload: MessageUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return message_service.update(db, message_id, current_user.id, payload.content)


@router.delete("/{message_id}", response_model=MsgOut)
def delete_message(message_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    message_service.delete(db, message_id, current_user.id)
    return {"msg": "Message deleted"}
