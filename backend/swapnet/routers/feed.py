"""Feed routes (``/api/feed``)."""

from typing import List

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from sqlalchemy.orm import Session

from swapnet.database import get_db
from swapnet.dependencies.auth import get_current_user
from swapnet.schemas.schemas import CommentCreate
from swapnet.schemas.schemas import CommentOut
from swapnet.schemas.schemas import FeedPage
from swapnet.schemas.schemas import MsgOut
from swapnet.schemas.schemas import PostCreate
from swapnet.schemas.schemas import PostOut
from swapnet.schemas.schemas import PostUpdate
from swapnet.services import feed_service

router = APIRouter(tags=["feed"], dependencies=[Depends(get_current_user)])


@router.post("/create", response_model=PostOut)
def create_post(payload: PostCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return feed_service.create_post(db, current_user.id, payload.content)


@router.get("", response_model=FeedPage)
@router.get("/", response_model=FeedPage)
def read_feed(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Posts by the caller and their connections, newest first."""

    return feed_service.get_feed(db, current_user.id, page=page, limit=limit)


@router.put("/{post_id}", response_model=PostOut)
def update_post(
    post_id: int,
    payload: PostUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return feed_service.update_post(db, post_id, current_user.id, payload.content)


@router.delete("/{post_id}", response_model=MsgOut)
def delete_post(post_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    feed_service.delete_post(db, post_id, current_user.id)
    return {"msg": "Post removed"}


@router.post("/{post_id}/like", response_model=List[int])
def like_post(post_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return feed_service.like(db, post_id, current_user.id)


@router.delete("/{post_id}/unlike", response_model=List[int])
def unlike_post(post_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return feed_service.unlike(db, post_id, current_user.id)


@router.post("/{post_id}/comment", response_model=List[CommentOut])
def add_comment(
    post_id: int,
    payload: CommentCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return feed_service.add_comment(db, post_id, current_user.id, payload.text)


@router.delete("/{post_id}/comment/{comment_id}", response_model=List[CommentOut])
def delete_comment(
    post_id: int,
    comment_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return feed_service.delete_comment(db, post_id, comment_id, current_user.id)
