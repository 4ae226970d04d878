# core/security.py
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from fastapi import HTTPException, status
from jose import JWTError, jwt

from elearning.core.cache import get_redis_client
from elearning.core.config import settings
from elearning.models.user import User

logger = logging.getLogger(__name__)


class JWTManager:
    """JWT token management for authentication"""

    def __init__(self):
        self.secret_key = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.access_token_expire = timedelta(days=settings.jwt_user_expiration)
        self.refresh_token_expire = timedelta(days=settings.jwt_refresh_expiration)
        self.issuer = settings.jwt_issuer

    def _encode(self, user: User, token_type: str, expires_in: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "user_id": user.id,
            "type": token_type,
            "iat": int(now.timestamp()),
            "exp": int((now + expires_in).timestamp()),
            "iss": self.issuer,
            "jti": uuid.uuid4().hex,
        }
        if token_type == "access":
            payload["role"] = user.role
            payload["email"] = user.email
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def create_access_token(
        self, user: User, custom_expiration: Optional[timedelta] = None
    ) -> str:
        """
        Create JWT access token for user

        Args:
            user: User model instance
            custom_expiration: Override default expiration

        Returns:
            JWT access token string
        """
        try:
            token = self._encode(
                user, "access", custom_expiration or self.access_token_expire
            )
            logger.info(f"Access token created for user: {user.id}")
            return token
        except JWTError as e:
            logger.error(f"Failed to create access token: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to create access token",
            )

    def create_refresh_token(
        self, user: User, custom_expiration: Optional[timedelta] = None
    ) -> str:
        try:
            return self._encode(
                user, "refresh", custom_expiration or self.refresh_token_expire
            )
        except JWTError as e:
            logger.error(f"Failed to create refresh token: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to create refresh token",
            )

    def create_token_pair(self, user: User) -> Tuple[str, str]:
        """Create both access and refresh tokens"""
        return self.create_access_token(user), self.create_refresh_token(user)

    def verify_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Verify and decode JWT token.

        Raises 401 for malformed, expired, blacklisted or foreign tokens and
        for tokens of a different type than requested.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": True},
            )
        except JWTError as e:
            logger.warning(f"JWT verification failed: {e}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if payload.get("type") != token_type:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token type. Expected {token_type}",
            )

        if payload.get("iss") != self.issuer:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token issuer",
            )

        if token_blacklist.is_blacklisted(token):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has been revoked",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return payload

    def get_token_expiration(self, token: str) -> Optional[datetime]:
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            return None

        exp_timestamp = payload.get("exp")
        if exp_timestamp:
            return datetime.fromtimestamp(exp_timestamp, tz=timezone.utc)
        return None

    @property
    def access_token_lifetime_seconds(self) -> int:
        return int(self.access_token_expire.total_seconds())


class TokenBlacklist:
    """Token blacklist management using Redis"""

    def __init__(self, redis_client=None):
        self.redis_client = redis_client
        self._memory_blacklist = set()  # Used when Redis is disabled

    def add_token(self, token: str, ttl: Optional[int] = None) -> bool:
        """
        Add token to blacklist

        Args:
            token: JWT token to blacklist
            ttl: Time to live in seconds (optional)

        Returns:
            True if successfully added, False otherwise
        """
        if self.redis_client is None:
            self._memory_blacklist.add(token)
            return True

        ttl = ttl or int(timedelta(days=settings.jwt_refresh_expiration).total_seconds())
        try:
            return bool(self.redis_client.setex(f"blacklist:{token}", ttl, "1"))
        except Exception as e:
            logger.error(f"Failed to blacklist token: {e}")
            return False

    def is_blacklisted(self, token: str) -> bool:
        if self.redis_client is None:
            return token in self._memory_blacklist

        try:
            return bool(self.redis_client.get(f"blacklist:{token}"))
        except Exception as e:
            logger.error(f"Failed to check token blacklist: {e}")
            return False

    def clear(self) -> None:
        self._memory_blacklist.clear()


def remaining_ttl(token: str) -> Optional[int]:
    """Seconds until ``token`` expires, or None if it carries no expiry."""
    expiration = jwt_manager.get_token_expiration(token)
    if expiration is None:
        return None
    return max(1, int((expiration - datetime.now(timezone.utc)).total_seconds()))


# Global instances
jwt_manager = JWTManager()
token_blacklist = TokenBlacklist(
    get_redis_client() if settings.redis_enabled else None
)
