# elearning/services/course.py
import logging
from typing import List, Optional, Tuple

from fastapi import HTTPException, UploadFile, status
from sqlalchemy import String, cast, func, or_
from sqlalchemy.orm import Session, joinedload

from elearning.core.decorator import db_exception
from elearning.models.course import COURSE_CATEGORIES, Course
from elearning.models.enrollment import Enrollment
from elearning.models.lesson import Lesson
from elearning.models.user import User, UserRole
from elearning.schemas.course import (
    BulkCourseAction,
    CourseCreate,
    CourseResponse,
    CourseStatusUpdate,
    CourseUpdate,
)
from elearning.utils.file_upload import file_upload_service
from elearning.utils.pagination import paginate
from elearning.utils.timeframe import utcnow

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "created_at": Course.created_at,
    "price": Course.price,
    "average_rating": Course.average_rating,
    "total_enrollments": Course.total_enrollments,
    "title": Course.title,
}


def can_manage_course(course: Course, user: Optional[User]) -> bool:
    """Course owner or any admin"""
    return user is not None and (user.is_admin or course.instructor_id == user.id)


def ensure_can_manage(course: Course, user: User, action: str = "modify") -> None:
    if not can_manage_course(course, user):
        logger.warning(f"User {user.id} denied to {action} course {course.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Not authorized to {action} this course",
        )


class CourseService:
    def __init__(self, db: Session):
        self.db = db

    # ==================== Lookups ====================

    def get_course(self, course_id: int) -> Course:
        course = (
            self.db.query(Course)
            .options(joinedload(Course.instructor))
            .filter(Course.id == course_id)
            .first()
        )
        if not course:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Course not found",
            )
        return course

    def find_enrollment(self, student_id: int, course_id: int) -> Optional[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(
                Enrollment.student_id == student_id,
                Enrollment.course_id == course_id,
            )
            .first()
        )

    def lesson_count(self, course_id: int) -> int:
        return (
            self.db.query(func.count(Lesson.id))
            .filter(Lesson.course_id == course_id)
            .scalar()
            or 0
        )

    def _enrolled_course_ids(self, user: Optional[User], course_ids: List[int]) -> set:
        if not user or not course_ids:
            return set()
        rows = (
            self.db.query(Enrollment.course_id)
            .filter(
                Enrollment.student_id == user.id,
                Enrollment.course_id.in_(course_ids),
            )
            .all()
        )
        return {row.course_id for row in rows}

    def _with_enrollment_flag(self, courses: List[Course], user: Optional[User]) -> list:
        enrolled = self._enrolled_course_ids(user, [c.id for c in courses])
        items = []
        for course in courses:
            data = CourseResponse.model_validate(course).model_dump()
            data["is_enrolled"] = (course.id in enrolled) if user else None
            items.append(data)
        return items

    # ==================== Public catalogue ====================

    def get_courses(
        self,
        page: int = 1,
        size: int = 12,
        category: Optional[str] = None,
        level: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        min_rating: Optional[float] = None,
        search: Optional[str] = None,
        featured: Optional[bool] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        current_user: Optional[User] = None,
    ) -> Tuple[list, dict]:
        """Get published courses with filters, sorting and pagination"""
        query = (
            self.db.query(Course)
            .options(joinedload(Course.instructor))
            .filter(Course.is_published == True)
        )

        if category:
            query = query.filter(Course.category == category)
        if level:
            query = query.filter(Course.level == level)
        if min_price is not None:
            query = query.filter(Course.price >= min_price)
        if max_price is not None:
            query = query.filter(Course.price <= max_price)
        if min_rating is not None:
            query = query.filter(Course.average_rating >= min_rating)
        if featured:
            query = query.filter(Course.is_featured == True)

        # Search by title, description or tags
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(Course.title).like(pattern),
                    func.lower(Course.description).like(pattern),
                    func.lower(cast(Course.tags, String)).like(pattern),
                )
            )

        column = SORTABLE_FIELDS.get(sort_by, Course.created_at)
        ordering = column.asc() if sort_order == "asc" else column.desc()
        courses, pagination = paginate(
            query.order_by(ordering, Course.id.desc()), page, size
        )
        return self._with_enrollment_flag(courses, current_user), pagination

    def get_categories(self) -> List[dict]:
        """Every category with the number of published courses in it"""
        counts = dict(
            self.db.query(Course.category, func.count(Course.id))
            .filter(Course.is_published == True)
            .group_by(Course.category)
            .all()
        )
        return [{"name": name, "count": counts.get(name, 0)} for name in COURSE_CATEGORIES]

    def get_featured(self, current_user: Optional[User] = None, limit: int = 8) -> list:
        courses = (
            self.db.query(Course)
            .options(joinedload(Course.instructor))
            .filter(Course.is_published == True, Course.is_featured == True)
            .order_by(Course.average_rating.desc(), Course.total_enrollments.desc())
            .limit(limit)
            .all()
        )
        return self._with_enrollment_flag(courses, current_user)

    def get_popular(self, current_user: Optional[User] = None, limit: int = 12) -> list:
        courses = (
            self.db.query(Course)
            .options(joinedload(Course.instructor))
            .filter(Course.is_published == True)
            .order_by(Course.total_enrollments.desc(), Course.average_rating.desc())
            .limit(limit)
            .all()
        )
        return self._with_enrollment_flag(courses, current_user)

    def get_instructor_courses(
        self,
        instructor: User,
        page: int = 1,
        size: int = 10,
        course_status: Optional[str] = None,
    ) -> Tuple[List[Course], dict]:
        """Courses created by the caller, drafts included"""
        query = self.db.query(Course).filter(Course.instructor_id == instructor.id)
        if course_status == "published":
            query = query.filter(Course.is_published == True)
        elif course_status == "draft":
            query = query.filter(Course.is_published == False)

        return paginate(query.order_by(Course.created_at.desc(), Course.id.desc()), page, size)

    def get_course_detail(self, course_id: int, current_user: Optional[User]) -> dict:
        """
        Course with instructor, curriculum and the caller's enrollment.
        Locked lessons are only listed for enrolled students, the owner and admins.
        """
        course = self.get_course(course_id)
        can_manage = can_manage_course(course, current_user)

        if not course.is_published and not can_manage:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Course not found",
            )

        enrollment = None
        if current_user:
            enrollment = self.find_enrollment(current_user.id, course.id)

        lessons = list(course.lessons)
        if not (enrollment or can_manage):
            lessons = [lesson for lesson in lessons if lesson.is_open_access]

        detail = CourseResponse.model_validate(course).model_dump()
        detail["is_enrolled"] = enrollment is not None
        detail["enrollment"] = enrollment
        detail["lessons"] = lessons
        return detail

    # ==================== Authoring ====================

    @db_exception
    def create_course(self, course_in: CourseCreate, instructor: User) -> Course:
        """Create a new course owned by the caller"""
        course = Course(**course_in.model_dump(), instructor_id=instructor.id)

        self.db.add(course)
        self.db.commit()
        self.db.refresh(course)

        logger.info(f"Course created: {course.id} '{course.title}' by user {instructor.id}")
        return course

    @db_exception
    def update_course(
        self, course_id: int, course_in: CourseUpdate, current_user: User
    ) -> Course:
        course = self.get_course(course_id)
        ensure_can_manage(course, current_user, "update")

        data = course_in.model_dump(exclude_unset=True)
        if "tags" in data and data["tags"] is not None:
            data["tags"] = [t.strip().lower() for t in data["tags"] if t and t.strip()]

        # Explicit nulls only clear nullable fields
        data = {
            field: value
            for field, value in data.items()
            if value is not None or field in ("discount_price", "certificate_quiz_score")
        }

        # Discount must stay below the price after merging
        price = data.get("price", course.price)
        discount = data.get("discount_price", course.discount_price)
        if discount is not None and float(discount) >= float(price):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Discount price must be less than regular price",
            )

        for field, value in data.items():
            setattr(course, field, value)

        self.db.commit()
        self.db.refresh(course)
        logger.info(f"Course updated: {course.id} fields={sorted(data)}")
        return course

    def _enrollment_count(self, course_id: int) -> int:
        return (
            self.db.query(func.count(Enrollment.id))
            .filter(Enrollment.course_id == course_id)
            .scalar()
            or 0
        )

    def _remove(self, course: Course) -> None:
        if course.thumbnail:
            file_upload_service.delete_image(course.thumbnail)
        self.db.delete(course)

    @db_exception
    def delete_course(self, course_id: int, current_user: User) -> bool:
        """Delete a course without enrollments; lessons, quizzes and reviews cascade"""
        course = self.get_course(course_id)
        ensure_can_manage(course, current_user, "delete")

        if self._enrollment_count(course.id) > 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot delete course with active enrollments",
            )

        self._remove(course)
        self.db.commit()
        logger.info(f"Course deleted: {course_id} by user {current_user.id}")
        return True

    @db_exception
    def publish_course(
        self, course_id: int, current_user: User, is_published: Optional[bool] = None
    ) -> Course:
        course = self.get_course(course_id)
        ensure_can_manage(course, current_user, "publish")

        target = (not course.is_published) if is_published is None else is_published
        if target and self.lesson_count(course.id) == 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot publish course without lessons",
            )

        course.is_published = target
        if target and course.published_at is None:
            course.published_at = utcnow()

        self.db.commit()
        self.db.refresh(course)
        logger.info(f"Course {course.id} {'published' if target else 'unpublished'}")
        return course

    async def upload_thumbnail(
        self, course_id: int, image_file: UploadFile, current_user: User
    ) -> Course:
        course = self.get_course(course_id)
        ensure_can_manage(course, current_user, "update")

        # Delete old image if exists
        if course.thumbnail:
            file_upload_service.delete_image(course.thumbnail)

        uuid_filename, relative_path = await file_upload_service.save_image(
            image_file, folder="courses"
        )

        course.thumbnail = relative_path
        self.db.commit()
        self.db.refresh(course)
        logger.info(f"Thumbnail updated for course {course.id}: {uuid_filename}")
        return course

    # ==================== Admin ====================

    def get_all_courses(
        self,
        page: int = 1,
        size: int = 20,
        course_status: Optional[str] = None,
        category: Optional[str] = None,
        level: Optional[str] = None,
        instructor_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Course], dict]:
        """Every course regardless of publication state"""
        query = self.db.query(Course).options(joinedload(Course.instructor))

        if course_status == "published":
            query = query.filter(Course.is_published == True)
        elif course_status == "draft":
            query = query.filter(Course.is_published == False)
        elif course_status == "featured":
            query = query.filter(Course.is_featured == True)

        if category:
            query = query.filter(Course.category == category)
        if level:
            query = query.filter(Course.level == level)
        if instructor_id:
            query = query.filter(Course.instructor_id == instructor_id)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(Course.title).like(pattern),
                    func.lower(Course.description).like(pattern),
                )
            )

        return paginate(query.order_by(Course.created_at.desc(), Course.id.desc()), page, size)

    @db_exception
    def admin_update_status(
        self, course_id: int, status_in: CourseStatusUpdate, admin: User
    ) -> Course:
        course = self.get_course(course_id)

        if status_in.is_published is not None:
            course.is_published = status_in.is_published
            if status_in.is_published and course.published_at is None:
                course.published_at = utcnow()
        if status_in.is_featured is not None:
            course.is_featured = status_in.is_featured

        self.db.commit()
        self.db.refresh(course)
        logger.info(
            f"Admin {admin.id} set course {course.id} status: "
            f"published={course.is_published} featured={course.is_featured}"
        )
        return course

    @db_exception
    def admin_delete_course(self, course_id: int, admin: User, force: bool = False) -> dict:
        course = self.get_course(course_id)
        enrollments = self._enrollment_count(course.id)

        if enrollments and not force:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Course has {enrollments} enrollments. Use force=true to delete anyway.",
            )

        self._remove(course)
        self.db.commit()
        logger.info(
            f"Admin {admin.id} deleted course {course_id} (removed enrollments: {enrollments})"
        )
        return {"success": True, "deleted_enrollments": enrollments}

    def get_instructors(self) -> List[dict]:
        """Each instructor with course, enrollment and revenue totals"""
        instructors = (
            self.db.query(User)
            .filter(User.role == UserRole.INSTRUCTOR)
            .order_by(User.created_at.desc(), User.id.desc())
            .all()
        )

        results = []
        for instructor in instructors:
            courses = (
                self.db.query(Course).filter(Course.instructor_id == instructor.id).all()
            )
            published = sum(1 for c in courses if c.is_published)
            average_rating = (
                sum(c.average_rating or 0 for c in courses) / len(courses) if courses else 0
            )
            results.append(
                {
                    "id": instructor.id,
                    "first_name": instructor.first_name,
                    "last_name": instructor.last_name,
                    "email": instructor.email,
                    "avatar": instructor.avatar,
                    "is_active": instructor.is_active,
                    "created_at": instructor.created_at,
                    "statistics": {
                        "total_courses": len(courses),
                        "published_courses": published,
                        "draft_courses": len(courses) - published,
                        "total_enrollments": sum(c.total_enrollments for c in courses),
                        "total_revenue": round(
                            sum(c.total_enrollments * float(c.price) for c in courses), 2
                        ),
                        "average_rating": round(average_rating, 2),
                    },
                }
            )
        return results

    @db_exception
    def bulk_action(self, request: BulkCourseAction, admin: User) -> dict:
        courses = self.db.query(Course).filter(Course.id.in_(request.course_ids)).all()
        now = utcnow()
        processed, skipped = 0, []

        for course in courses:
            if request.action == "publish":
                course.is_published = True
                if course.published_at is None:
                    course.published_at = now
            elif request.action == "unpublish":
                course.is_published = False
            elif request.action == "feature":
                course.is_featured = True
            elif request.action == "unfeature":
                course.is_featured = False
            elif request.action == "delete":
                if self._enrollment_count(course.id) and not request.force_delete:
                    skipped.append(course.id)
                    continue
                self._remove(course)
            processed += 1

        # Unknown ids count as skipped
        found = {course.id for course in courses}
        skipped.extend(cid for cid in request.course_ids if cid not in found)

        self.db.commit()
        logger.info(
            f"Admin {admin.id} bulk {request.action}: processed={processed} skipped={len(skipped)}"
        )
        return {
            "action": request.action,
            "processed": processed,
            "skipped": len(skipped),
            "skipped_ids": skipped,
        }
