# elearning/routers/user.py
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from elearning.core.database import get_db
from elearning.core.dependencies import get_current_admin, get_current_user
from elearning.models.user import User
from elearning.schemas.auth import ChangePasswordRequest
from elearning.schemas.user import (
    AdminUserUpdateRequest,
    ProfileUpdateRequest,
    RoleName,
    UpdateRoleRequest,
    UpdateStatusRequest,
    UserListResponse,
    UserResponse,
)
from elearning.services.auth import auth_service
from elearning.services.user import UserService

router = APIRouter(
    prefix="/users",
    tags=["Users"],
    responses={404: {"description": "Not found"}},
)


@router.get("/", response_model=UserListResponse)
def list_users(
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    role: Optional[RoleName] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """
    List users with role, status and name/email filters (admin only).
    """
    users, meta = UserService(db).get_users(
        page=page, size=size, role=role, is_active=is_active, search=search
    )
    return {"users": users, **meta}


@router.get("/profile", response_model=UserResponse)
def get_own_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/profile", response_model=UserResponse)
def update_own_profile(
    request: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return auth_service.update_profile(current_user, request, db)


@router.put("/change-password")
def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return auth_service.change_password(current_user, request, db)


@router.post("/avatar", response_model=UserResponse)
async def upload_avatar(
    image: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Upload a new avatar image for the current user.
    """
    return await UserService(db).upload_avatar(current_user, image)


@router.get("/{user_id}", response_model=UserResponse)
def read_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Retrieve a single user. Admins can read anyone, other users only themselves.
    """
    return UserService(db).get_user_for(user_id, current_user)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    request: AdminUserUpdateRequest,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return UserService(db).admin_update_user(user_id, request, admin)


@router.put("/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: int,
    request: UpdateRoleRequest,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return UserService(db).set_role(user_id, request.role, admin)


@router.put("/{user_id}/status", response_model=UserResponse)
def update_user_status(
    user_id: int,
    request: UpdateStatusRequest,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return UserService(db).set_status(user_id, request.is_active, admin)


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return UserService(db).delete_user(user_id, admin)
