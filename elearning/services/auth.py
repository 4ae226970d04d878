# services/auth.py
import logging
from typing import Any, Dict

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from elearning.core.hasher import MIN_PASSWORD_LENGTH, PasswordHelper
from elearning.core.security import jwt_manager, remaining_ttl, token_blacklist
from elearning.models.user import User
from elearning.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
)
from elearning.schemas.user import ProfileUpdateRequest, UserResponse
from elearning.utils.timeframe import utcnow

# Setup logging
logger = logging.getLogger(__name__)


class AuthService:
    """Registration, credential checks and token lifecycle"""

    def __init__(self):
        self.password_helper = PasswordHelper()

    def _auth_response(self, user: User) -> AuthResponse:
        access_token, refresh_token = jwt_manager.create_token_pair(user)
        return AuthResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="bearer",
            expires_in=jwt_manager.access_token_lifetime_seconds,
            user=UserResponse.model_validate(user),
        )

    # ==================== REGISTRATION & LOGIN ====================

    def register_user(self, request: RegisterRequest, db: Session) -> AuthResponse:
        """Create a student or instructor account and sign it in"""
        existing = db.query(User).filter(User.email == request.email).first()
        if existing:
            logger.warning(f"Registration rejected, email already in use: {request.email}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="User already exists with this email",
            )

        try:
            user = User(
                first_name=request.first_name,
                last_name=request.last_name,
                email=request.email,
                hashed_password=self.password_helper.hash_password(request.password),
                role=request.role,
                is_active=True,
                last_login=utcnow(),
            )
            db.add(user)
            db.commit()
            db.refresh(user)
        except Exception as e:
            db.rollback()
            logger.error(f"Registration error: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Registration failed",
            )

        logger.info(f"User registered successfully: {user.id} ({user.role})")
        return self._auth_response(user)

    def login(self, request: LoginRequest, db: Session) -> AuthResponse:
        user = db.query(User).filter(User.email == request.email).first()

        if not user or not self.password_helper.check_password(
            request.password, user.hashed_password
        ):
            logger.warning(f"Failed login attempt for {request.email}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account has been deactivated",
            )

        user.last_login = utcnow()
        db.commit()
        db.refresh(user)

        logger.info(f"User login successful: {user.id}")
        return self._auth_response(user)

    # ==================== TOKEN MANAGEMENT ====================

    def refresh_token(self, refresh_token: str, db: Session) -> AuthResponse:
        """
        Exchange a refresh token for a new token pair.
        The used refresh token is revoked.
        """
        payload = jwt_manager.verify_token(refresh_token, "refresh")

        user = db.query(User).filter(User.id == payload.get("user_id")).first()
        if not user or not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found or inactive",
            )

        token_blacklist.add_token(refresh_token, remaining_ttl(refresh_token))

        logger.info(f"Token refreshed for user: {user.id}")
        return self._auth_response(user)

    def logout_user(self, token: str, user: User) -> Dict[str, Any]:
        """Logout user by blacklisting the token"""
        if not token_blacklist.add_token(token, remaining_ttl(token)):
            logger.warning("Failed to blacklist token, but continuing with logout")

        logger.info(f"User logged out successfully: {user.id}")
        return {"success": True, "message": "Logout successful"}

    # ==================== ACCOUNT ====================

    def update_profile(
        self, user: User, request: ProfileUpdateRequest, db: Session
    ) -> User:
        data = request.model_dump(exclude_unset=True, mode="json")
        # date_of_birth is stored as a Date column
        if "date_of_birth" in data:
            data["date_of_birth"] = request.date_of_birth

        for field, value in data.items():
            setattr(user, field, value)

        db.commit()
        db.refresh(user)
        logger.info(f"Profile updated for user: {user.id}")
        return user

    def change_password(
        self, user: User, request: ChangePasswordRequest, db: Session
    ) -> Dict[str, Any]:
        if not self.password_helper.check_password(
            request.current_password, user.hashed_password
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password is incorrect",
            )

        if len(request.new_password) < MIN_PASSWORD_LENGTH:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"New password must be at least {MIN_PASSWORD_LENGTH} characters long",
            )

        if request.new_password == request.current_password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="New password must be different from the current password",
            )

        user.hashed_password = self.password_helper.hash_password(request.new_password)
        db.commit()

        logger.info(f"Password changed for user: {user.id}")
        return {"success": True, "message": "Password changed successfully"}

    def deactivate_account(self, user: User, token: str, db: Session) -> Dict[str, Any]:
        user.is_active = False
        db.commit()
        token_blacklist.add_token(token, remaining_ttl(token))

        logger.info(f"Account deactivated by owner: {user.id}")
        return {"success": True, "message": "Account deactivated successfully"}


auth_service = AuthService()
