from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from elearning.core.database import get_db
from elearning.core.dependencies import get_bearer_token, get_current_user
from elearning.core.limiter import auth_rate_limit
from elearning.models.user import User
from elearning.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
)
from elearning.schemas.user import ProfileUpdateRequest, UserResponse
from elearning.services.auth import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED
)
@auth_rate_limit
async def register_user(
    request: Request, payload: RegisterRequest, db: Session = Depends(get_db)
) -> AuthResponse:
    """Create a student or instructor account and sign it in"""
    return auth_service.register_user(payload, db)


@router.post("/login", response_model=AuthResponse)
@auth_rate_limit
async def login(
    request: Request, payload: LoginRequest, db: Session = Depends(get_db)
) -> AuthResponse:
    return auth_service.login(payload, db)


@router.post("/refresh", response_model=AuthResponse)
@auth_rate_limit
async def refresh_token(
    request: Request, payload: RefreshTokenRequest, db: Session = Depends(get_db)
) -> AuthResponse:
    """Exchange a refresh token for a new token pair"""
    return auth_service.refresh_token(payload.refresh_token, db)


@router.get("/profile", response_model=UserResponse)
async def get_profile(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    return current_user


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    payload: ProfileUpdateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Session = Depends(get_db),
) -> User:
    return auth_service.update_profile(current_user, payload, db)


@router.put("/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Session = Depends(get_db),
) -> dict:
    return auth_service.change_password(current_user, payload, db)


@router.post("/logout")
async def logout(
    current_user: Annotated[User, Depends(get_current_user)],
    token: str = Depends(get_bearer_token),
) -> dict:
    """Logout current user"""
    return auth_service.logout_user(token, current_user)


@router.delete("/account")
async def delete_account(
    current_user: Annotated[User, Depends(get_current_user)],
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> dict:
    """Deactivate the caller's own account"""
    return auth_service.deactivate_account(current_user, token, db)
