"""Feed posts, likes and comments."""

import math
from typing import Any
from typing import Dict
from typing import List

from sqlalchemy.orm import Session

from swapnet.config import get_settings
from swapnet.crud import crud
from swapnet.database import unit_of_work
from swapnet.errors import BadRequest
from swapnet.errors import Forbidden
from swapnet.errors import NotFound
from swapnet.models.models import FeedComment
from swapnet.models.models import FeedPost
from swapnet.services.authorization import Role
from swapnet.services.authorization import authorize
from swapnet.services.authorization import require_role
from swapnet.utils.log import log

FORBIDDEN_STATUS = 401


def _load(db: Session, post_id: int) -> FeedPost:
    post = crud.get_post(db, post_id)
    if post is None:
        raise NotFound("Post not found")
    return post


def create_post(db: Session, user_id: int, content: str) -> FeedPost:
    if not content or not content.strip():
        raise BadRequest("Content is required")
    post = crud.create_post(db, user_id=user_id, content=content)
    log.info("post_created", post_id=post.id, user_id=user_id)
    return post


def get_feed(db: Session, user_id: int, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    """Posts by *user_id* and their accepted connections, newest first."""

    limit = max(1, min(limit, get_settings().feed_page_limit_max))
    page = max(1, page)

    me = crud.get_user(db, user_id)
    connections = list(me.connections or []) if me is not None else []
    author_ids = [user_id] + [uid for uid in connections if uid != user_id]

    total = crud.count_feed_posts(db, author_ids)
    posts = crud.get_feed_posts(db, author_ids, skip=(page - 1) * limit, limit=limit)

    liker_ids = {uid for post in posts for uid in (post.likes or [])}
    likers = {u.id: u for u in crud.get_users(db, sorted(liker_ids))}

    return {
        "posts": [
            {
                "id": post.id,
                "user_id": post.user_id,
                "content": post.content,
                "created_at": post.created_at,
                "updated_at": post.updated_at,
                "user": post.user,
                "likes": [likers[uid] for uid in (post.likes or []) if uid in likers],
                "comments": post.comments,
            }
            for post in posts
        ],
        "total_pages": math.ceil(total / limit),
        "current_page": page,
        "has_next_page": page * limit < total,
    }


def update_post(db: Session, post_id: int, acting_id: int, content: str) -> FeedPost:
    post = _load(db, post_id)
    require_role(post, acting_id, [Role.OWNER], status_code=FORBIDDEN_STATUS)

    with unit_of_work(db):
        post.content = content

    db.refresh(post)
    return post


def delete_post(db: Session, post_id: int, acting_id: int) -> None:
    post = _load(db, post_id)
    require_role(post, acting_id, [Role.OWNER], status_code=FORBIDDEN_STATUS)

    with unit_of_work(db):
        db.delete(post)
    log.info("post_deleted", post_id=post_id, acting_id=acting_id)


def like(db: Session, post_id: int, acting_id: int) -> List[int]:
    post = _load(db, post_id)
    likes = list(post.likes or [])
    if acting_id in likes:
        raise BadRequest("Post already liked")

    with unit_of_work(db):
        post.likes = likes + [acting_id]
    return list(post.likes)


def unlike(db: Session, post_id: int, acting_id: int) -> List[int]:
    post = _load(db, post_id)
    likes = list(post.likes or [])
    if acting_id not in likes:
        raise BadRequest("Post has not yet been liked")

    with unit_of_work(db):
        post.likes = [uid for uid in likes if uid != acting_id]
    return list(post.likes)


def add_comment(db: Session, post_id: int, acting_id: int, text: str) -> List[FeedComment]:
    post = _load(db, post_id)

    with unit_of_work(db):
        post.comments.append(FeedComment(user_id=acting_id, text=text))

    db.refresh(post)
    return list(post.comments)


def delete_comment(db: Session, post_id: int, comment_id: int, acting_id: int) -> List[FeedComment]:
    """Remove a comment; allowed for the post owner or the comment author."""

    post = _load(db, post_id)
    comment = next((c for c in post.comments if c.id == comment_id), None)
    if comment is None:
        raise NotFound("Comment not found")

    if not (authorize(post, acting_id, [Role.OWNER]) or authorize(comment, acting_id, [Role.AUTHOR])):
        raise Forbidden("Not authorized", status_code=FORBIDDEN_STATUS)

    with unit_of_work(db):
        post.comments.remove(comment)

    db.refresh(post)
    return list(post.comments)
