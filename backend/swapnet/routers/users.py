"""Account and profile routes.

``/register`` and ``/login`` are public; every other route requires a bearer
token and acts on the authenticated user.
"""

from fastapi import APIRouter
from fastapi import Depends
from sqlalchemy.orm import Session

from swapnet.database import get_db
from swapnet.dependencies.auth import get_current_user
from swapnet.events import EventType
from swapnet.events.decorators import publish_event
from swapnet.schemas.schemas import AuthOut
from swapnet.schemas.schemas import MsgOut
from swapnet.schemas.schemas import PublicUserOut
from swapnet.schemas.schemas import UserLogin
from swapnet.schemas.schemas import UserOut
from swapnet.schemas.schemas import UserRegister
from swapnet.schemas.schemas import UserUpdate
from swapnet.services import user_service

router = APIRouter(tags=["users"])


@router.post("/register", response_model=AuthOut)
def register(payload: UserRegister, db: Session = Depends(get_db)):
    return user_service.register(
        db,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        password=payload.password,
    )


@router.post("/login", response_model=AuthOut)
def login(payload: UserLogin, db: Session = Depends(get_db)):
    return user_service.login(db, email=payload.email, password=payload.password)


@router.get("/profile", response_model=UserOut)
def read_profile(current_user=Depends(get_current_user)):
    """Return the authenticated user's profile."""

    return current_user


@router.get("/profile/{user_id}", response_model=PublicUserOut)
def read_profile_by_id(user_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """Another user's profile, without their credential or pending requests."""

    return user_service.get_profile(db, user_id)


@router.put("/profile", response_model=UserOut)
@publish_event(EventType.USER_UPDATED)
async def update_profile(
    patch: UserUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return user_service.update_profile(db, current_user.id, patch.model_dump(exclude_unset=True))


@router.delete("/profile", response_model=MsgOut)
def delete_profile(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    user_service.delete_profile(db, current_user.id)
    return {"msg": "User deleted successfully"}
