"""
Application initialization module
Handles initial setup tasks like creating the default admin account
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from elearning.core.config import settings
from elearning.core.hasher import PasswordHelper
from elearning.models.user import User, UserRole

logger = logging.getLogger(__name__)


def init_default_admin(
    db: Session,
    email: Optional[str] = None,
    password: Optional[str] = None,
) -> User:
    """
    Create an admin user if none exists yet.

    Credentials default to the admin settings in config.py. When an admin
    already exists it is returned unchanged.

    Args:
        db: Database session
        email: Overrides ``admin_default_email``
        password: Overrides ``admin_default_password``
    """
    try:
        existing_admin = db.query(User).filter(User.role == UserRole.ADMIN).first()

        if existing_admin:
            logger.info(
                f"✅ Admin user already exists (ID: {existing_admin.id}, Email: {existing_admin.email})"
            )
            return existing_admin

        admin_email = (email or settings.admin_default_email).strip().lower()
        admin = User(
            first_name=settings.admin_default_first_name,
            last_name=settings.admin_default_last_name,
            email=admin_email,
            hashed_password=PasswordHelper.hash_password(
                password or settings.admin_default_password
            ),
            role=UserRole.ADMIN,
            is_active=True,
        )

        db.add(admin)
        db.commit()
        db.refresh(admin)

        logger.info("=" * 60)
        logger.info("🎉 DEFAULT ADMIN CREATED SUCCESSFULLY!")
        logger.info("=" * 60)
        logger.info(f"Email: {admin.email}")
        logger.info("=" * 60)
        logger.warning("⚠️  IMPORTANT: Change the default password immediately!")
        logger.info("=" * 60)
        return admin

    except Exception as e:
        logger.error(f"❌ Failed to initialize default admin: {e}")
        db.rollback()
        raise


def initialize_application(db: Session) -> None:
    """
    Run all application initialization tasks.

    Args:
        db: Database session
    """
    logger.info("🚀 Starting application initialization...")

    init_default_admin(db)

    logger.info("✅ Application initialization completed!")
