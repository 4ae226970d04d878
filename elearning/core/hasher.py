import bcrypt

from elearning.core.config import settings

MIN_PASSWORD_LENGTH = 6


class PasswordHelper:
    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password with bcrypt using the configured work factor."""
        salt = bcrypt.gensalt(rounds=settings.password_hash_rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def check_password(password: str, hashed_password: str) -> bool:
        if not password or not hashed_password:
            return False
        try:
            return bcrypt.checkpw(
                password.encode("utf-8"), hashed_password.encode("utf-8")
            )
        except ValueError:
            # Stored value is not a bcrypt hash
            return False
