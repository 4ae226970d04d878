# elearning/services/user.py
import logging
from typing import List, Optional, Tuple

from fastapi import HTTPException, UploadFile, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from elearning.core.decorator import db_exception
from elearning.models.course import Course
from elearning.models.enrollment import Enrollment
from elearning.models.user import User
from elearning.schemas.user import AdminUserUpdateRequest
from elearning.utils.file_upload import file_upload_service
from elearning.utils.pagination import paginate

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
            )
        return user

    def get_users(
        self,
        page: int = 1,
        size: int = 10,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[User], dict]:
        """Get list of users with pagination and filters (admin only)"""
        query = self.db.query(User)

        if role:
            query = query.filter(User.role == role)

        if is_active is not None:
            query = query.filter(User.is_active == is_active)

        # Search by first name, last name, full name or email
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(User.first_name).like(pattern),
                    func.lower(User.last_name).like(pattern),
                    func.lower(User.first_name + " " + User.last_name).like(pattern),
                    User.email.like(pattern),
                )
            )

        return paginate(query.order_by(User.created_at.desc(), User.id.desc()), page, size)

    def get_user_for(self, user_id: int, current_user: User) -> User:
        """Admins may read any profile, everybody else only their own"""
        if not current_user.is_admin and current_user.id != user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized to view this user",
            )
        return self.get_user(user_id)

    @db_exception
    def admin_update_user(
        self, user_id: int, request: AdminUserUpdateRequest, admin: User
    ) -> User:
        user = self.get_user(user_id)
        data = request.model_dump(exclude_unset=True, mode="json")

        if "email" in data and data["email"] != user.email:
            taken = (
                self.db.query(User)
                .filter(User.email == data["email"], User.id != user.id)
                .first()
            )
            if taken:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Email is already in use",
                )

        if "date_of_birth" in data:
            data["date_of_birth"] = request.date_of_birth

        for field, value in data.items():
            setattr(user, field, value)

        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user.id} updated by admin {admin.id}: {sorted(data)}")
        return user

    @db_exception
    def set_role(self, user_id: int, role: str, admin: User) -> User:
        if user_id == admin.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You cannot change your own role",
            )

        user = self.get_user(user_id)
        previous = user.role
        user.role = role
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user.id} role changed {previous} -> {role} by admin {admin.id}")
        return user

    @db_exception
    def set_status(self, user_id: int, is_active: bool, admin: User) -> User:
        if user_id == admin.id and not is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You cannot deactivate your own account",
            )

        user = self.get_user(user_id)
        user.is_active = is_active
        self.db.commit()
        self.db.refresh(user)
        logger.info(
            f"User {user.id} {'activated' if is_active else 'deactivated'} by admin {admin.id}"
        )
        return user

    @db_exception
    def delete_user(self, user_id: int, admin: User) -> dict:
        """
        Delete a user (admin only).
        Users that own enrollments or courses are deactivated instead so
        payment and authorship history is kept.
        """
        if user_id == admin.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You cannot delete your own account",
            )

        user = self.get_user(user_id)

        has_enrollments = (
            self.db.query(Enrollment.id).filter(Enrollment.student_id == user.id).first()
        )
        has_courses = (
            self.db.query(Course.id).filter(Course.instructor_id == user.id).first()
        )

        if has_enrollments or has_courses:
            user.is_active = False
            self.db.commit()
            logger.info(f"User {user.id} has dependent data; deactivated instead of deleted")
            return {
                "success": True,
                "deleted": False,
                "message": "User has enrollments or courses and was deactivated instead",
            }

        if user.avatar:
            file_upload_service.delete_image(user.avatar)

        self.db.delete(user)
        self.db.commit()
        logger.info(f"User {user_id} deleted by admin {admin.id}")
        return {"success": True, "deleted": True, "message": "User deleted successfully"}

    async def upload_avatar(self, user: User, image_file: UploadFile) -> User:
        """Replace the user's avatar with an uploaded image"""
        if user.avatar:
            file_upload_service.delete_image(user.avatar)

        uuid_filename, relative_path = await file_upload_service.save_image(
            image_file, folder="users"
        )

        user.avatar = relative_path
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Avatar updated for user {user.id}: {uuid_filename}")
        return user
