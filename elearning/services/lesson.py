# elearning/services/lesson.py
import logging
from typing import List, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, joinedload

from elearning.core.decorator import db_exception
from elearning.models.course import Course
from elearning.models.enrollment import Enrollment, EnrollmentCompletedLesson
from elearning.models.lesson import Lesson
from elearning.models.user import User
from elearning.schemas.lesson import LessonCreate, LessonUpdate, validate_content
from elearning.services.course import CourseService, can_manage_course, ensure_can_manage
from elearning.utils.timeframe import utcnow

logger = logging.getLogger(__name__)


class LessonService:
    def __init__(self, db: Session):
        self.db = db
        self.course_service = CourseService(db)

    def get_lesson(self, lesson_id: int) -> Lesson:
        lesson = (
            self.db.query(Lesson)
            .options(joinedload(Lesson.course))
            .filter(Lesson.id == lesson_id)
            .first()
        )
        if not lesson:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found"
            )
        return lesson

    def has_full_access(self, course: Course, user: User) -> bool:
        """Owner, admin, or a student whose enrollment still grants access"""
        if can_manage_course(course, user):
            return True
        enrollment = self.course_service.find_enrollment(user.id, course.id)
        return enrollment is not None and enrollment.is_accessible

    def sync_enrollment_totals(self, course_id: int) -> int:
        """
        Point every enrollment of the course at the current lesson count and
        recompute its completion percentage. Returns the number of enrollments touched.
        """
        total = self.course_service.lesson_count(course_id)
        now = utcnow()
        enrollments = (
            self.db.query(Enrollment).filter(Enrollment.course_id == course_id).all()
        )
        for enrollment in enrollments:
            enrollment.total_lessons = total
            enrollment.recalculate_progress(now)
        return len(enrollments)

    # ==================== CRUD ====================

    @db_exception
    def create_lesson(self, lesson_in: LessonCreate, current_user: User) -> Lesson:
        course = self.course_service.get_course(lesson_in.course_id)
        ensure_can_manage(course, current_user, "add lessons to")

        lesson = Lesson(**lesson_in.model_dump())
        self.db.add(lesson)
        self.db.flush()

        touched = self.sync_enrollment_totals(course.id)
        self.db.commit()
        self.db.refresh(lesson)

        logger.info(
            f"Lesson created: {lesson.id} in course {course.id} "
            f"({touched} enrollments updated)"
        )
        return lesson

    def get_course_lessons(
        self, course_id: int, current_user: User
    ) -> Tuple[List[Lesson], bool]:
        """Lessons sorted by section then order; locked ones hidden without access"""
        course = self.course_service.get_course(course_id)
        full_access = self.has_full_access(course, current_user)

        lessons = (
            self.db.query(Lesson)
            .filter(Lesson.course_id == course.id)
            .order_by(Lesson.section, Lesson.order, Lesson.id)
            .all()
        )
        if not full_access:
            lessons = [lesson for lesson in lessons if lesson.is_open_access]

        return lessons, full_access

    def get_lesson_for(self, lesson_id: int, current_user: User) -> Lesson:
        lesson = self.get_lesson(lesson_id)
        if lesson.is_open_access or self.has_full_access(lesson.course, current_user):
            return lesson

        logger.warning(f"User {current_user.id} denied access to lesson {lesson.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You must be enrolled in this course to access this lesson",
        )

    @db_exception
    def update_lesson(
        self, lesson_id: int, lesson_in: LessonUpdate, current_user: User
    ) -> Lesson:
        lesson = self.get_lesson(lesson_id)
        ensure_can_manage(lesson.course, current_user, "update lessons in")

        data = lesson_in.model_dump(exclude_unset=True)
        data = {k: v for k, v in data.items() if v is not None or k == "description"}

        # Content must match the (possibly new) lesson type
        if "content" in data or "type" in data:
            lesson_type = data.get("type", lesson.type)
            content = data.get("content", lesson.content)
            try:
                data["content"] = validate_content(lesson_type, content)
            except ValueError as e:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)
                )

        for field, value in data.items():
            setattr(lesson, field, value)

        self.db.commit()
        self.db.refresh(lesson)
        logger.info(f"Lesson updated: {lesson.id} fields={sorted(data)}")
        return lesson

    @db_exception
    def delete_lesson(self, lesson_id: int, current_user: User) -> bool:
        """Delete a lesson along with its completion entries and progress records"""
        lesson = self.get_lesson(lesson_id)
        course_id = lesson.course_id
        ensure_can_manage(lesson.course, current_user, "delete lessons from")

        removed = (
            self.db.query(EnrollmentCompletedLesson)
            .filter(EnrollmentCompletedLesson.lesson_id == lesson.id)
            .delete(synchronize_session=False)
        )
        # Progress records cascade through the lesson relationship
        self.db.delete(lesson)
        self.db.flush()
        self.db.expire_all()

        self.sync_enrollment_totals(course_id)
        self.db.commit()

        logger.info(
            f"Lesson deleted: {lesson_id} from course {course_id} "
            f"({removed} completion entries removed)"
        )
        return True
