import uuid

from fastapi import APIRouter

from storefront.api.deps import DB, AdminAuth
from storefront.schemas.auth import UserResponse
from storefront.services.user_service import UserService

router = APIRouter(prefix="/admin/users", tags=["Admin Users"])


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: uuid.UUID, auth: AdminAuth, db: DB):
    user = await UserService(db).get_user(user_id)
    return UserResponse.model_validate(user)


@router.post("/{user_id}/suspend", response_model=UserResponse)
async def suspend_user(user_id: uuid.UUID, auth: AdminAuth, db: DB):
    """Block sign-in and profile access. Outstanding tokens stop working on account-bound endpoints."""
    user = await UserService(db).set_active(user_id, False, auth.user_id)
    return UserResponse.model_validate(user)


@router.post("/{user_id}/activate", response_model=UserResponse)
async def activate_user(user_id: uuid.UUID, auth: AdminAuth, db: DB):
    user = await UserService(db).set_active(user_id, True, auth.user_id)
    return UserResponse.model_validate(user)
