"""User directory and profile endpoints."""

from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel, Field

from taskme.api.v1.auth import CurrentUser, UserResponse
from taskme.db.session import DBSession
from taskme.services.accounts import AccountService

router = APIRouter()


class UserListItem(BaseModel):
    """Entry of the share picker."""

    id: UUID
    email: str
    name: str

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    name: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    password: str | None = None


class PushTokenRequest(BaseModel):
    token: str | None = Field(None, max_length=500)


@router.get("", response_model=list[UserListItem])
async def list_users(db: DBSession, current_user: CurrentUser) -> list[UserListItem]:
    """List registered users for the share picker."""
    users = await AccountService(db).list_users()
    return [UserListItem.model_validate(user) for user in users]


@router.get("/me", response_model=UserResponse)
async def get_profile(current_user: CurrentUser) -> UserResponse:
    return UserResponse.from_user(current_user)


@router.patch("/me", response_model=UserResponse)
async def update_profile(
    update: ProfileUpdate,
    db: DBSession,
    current_user: CurrentUser,
) -> UserResponse:
    """Update name, phone or password."""
    user = await AccountService(db).update_profile(
        current_user,
        name=update.name,
        phone=update.phone,
        password=update.password,
    )
    return UserResponse.from_user(user)


@router.put("/me/push-token", response_model=UserResponse)
async def register_push_token(
    request: PushTokenRequest,
    db: DBSession,
    current_user: CurrentUser,
) -> UserResponse:
    """Store the device token reminders and chat pushes go to."""
    user = await AccountService(db).register_push_token(current_user, request.token)
    return UserResponse.from_user(user)
