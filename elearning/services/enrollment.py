# elearning/services/enrollment.py
import csv
import io
import logging
import time
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from elearning.core.config import settings
from elearning.core.decorator import db_exception
from elearning.models.course import Course
from elearning.models.enrollment import (
    Enrollment,
    EnrollmentCompletedLesson,
    EnrollmentNote,
    EnrollmentStatus,
    collected_revenue,
)
from elearning.models.lesson import Lesson
from elearning.models.quiz import Quiz
from elearning.models.quiz_attempt import AttemptStatus, QuizAttempt
from elearning.models.user import User, UserRole
from elearning.schemas.enrollment import (
    BulkEnrollRequest,
    EnrollRequest,
    ExtendAccessRequest,
    LessonCompletionRequest,
    ManualEnrollRequest,
    RatingRequest,
    StatusUpdateRequest,
)
from elearning.services.course import CourseService, can_manage_course, ensure_can_manage
from elearning.utils.pagination import paginate
from elearning.utils.rounding import round_half_up
from elearning.utils.timeframe import bucket_key, timeframe_start, utcnow

logger = logging.getLogger(__name__)

ADMIN_NOTE_PREFIX = "[ADMIN NOTE]"

SEARCH_SORT_FIELDS = {
    "enrollment_date": Enrollment.enrollment_date,
    "completion_percentage": Enrollment.completion_percentage,
    "payment_amount": Enrollment.payment_amount,
}

CSV_COLUMNS = [
    "Student Name",
    "Email",
    "Status",
    "Progress (%)",
    "Enrollment Date",
    "Last Access",
    "Payment Amount",
    "Payment Status",
    "Completed Lessons",
    "Total Lessons",
    "Certificate Earned",
    "Rating",
]


def _average_completion(enrollments) -> float:
    if not enrollments:
        return 0
    return round_half_up(
        sum(e.completion_percentage for e in enrollments) / len(enrollments), 1
    )


def _status_counts(enrollments) -> dict:
    counts = {name: 0 for name in EnrollmentStatus.ALL}
    for enrollment in enrollments:
        counts[enrollment.status] = counts.get(enrollment.status, 0) + 1
    return counts


def make_certificate_id(enrollment_id: int, now_ms: Optional[int] = None) -> str:
    """``CERT-<unix ms>-<last six characters of the padded enrollment id>``"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = str(enrollment_id).zfill(6)[-6:].upper()
    return f"CERT-{now_ms}-{suffix}"


class EnrollmentService:
    def __init__(self, db: Session):
        self.db = db
        self.course_service = CourseService(db)

    def _query(self):
        return self.db.query(Enrollment).options(
            joinedload(Enrollment.course).joinedload(Course.instructor),
            joinedload(Enrollment.student),
        )

    def get_enrollment(self, enrollment_id: int) -> Enrollment:
        enrollment = self._query().filter(Enrollment.id == enrollment_id).first()
        if not enrollment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Enrollment not found"
            )
        return enrollment

    def _get_owned(self, enrollment_id: int, current_user: User) -> Enrollment:
        enrollment = self.get_enrollment(enrollment_id)
        if enrollment.student_id != current_user.id:
            logger.warning(
                f"User {current_user.id} denied access to enrollment {enrollment.id}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Access denied"
            )
        return enrollment

    def _add_note(self, enrollment: Enrollment, content: str, lesson_id=None) -> EnrollmentNote:
        note = EnrollmentNote(
            enrollment_id=enrollment.id,
            lesson_id=lesson_id,
            content=content,
            created_at=utcnow(),
        )
        self.db.add(note)
        return note

    def _create(
        self,
        student: User,
        course: Course,
        payment_amount: float,
        payment_method: Optional[str],
        transaction_id: Optional[str] = None,
    ) -> Enrollment:
        now = utcnow()
        enrollment = Enrollment(
            student_id=student.id,
            course_id=course.id,
            status=EnrollmentStatus.ACTIVE,
            enrollment_date=now,
            total_lessons=self.course_service.lesson_count(course.id),
            payment_amount=payment_amount,
            payment_method=payment_method,
            transaction_id=transaction_id,
            payment_date=now,
            payment_status="completed",
        )
        self.db.add(enrollment)
        course.total_enrollments = (course.total_enrollments or 0) + 1
        self.db.flush()
        return enrollment

    # ==================== Student ====================

    @db_exception
    def enroll(self, request: EnrollRequest, current_user: User) -> Enrollment:
        course = self.course_service.get_course(request.course_id)

        if not course.is_published:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Course is not available for enrollment",
            )
        if course.instructor_id == current_user.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Instructors cannot enroll in their own courses",
            )
        if self.course_service.find_enrollment(current_user.id, course.id):
            logger.warning(
                f"Duplicate enrollment attempt: user {current_user.id} course {course.id}"
            )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Already enrolled in this course",
            )

        enrollment = self._create(
            current_user,
            course,
            payment_amount=course.effective_price,
            payment_method=request.payment_method,
            transaction_id=request.transaction_id,
        )
        self.db.commit()

        logger.info(
            f"Enrollment created: {enrollment.id} "
            f"(student {current_user.id}, course {course.id})"
        )
        return self.get_enrollment(enrollment.id)

    def get_my_enrollments(
        self,
        current_user: User,
        page: int = 1,
        size: int = 10,
        enrollment_status: Optional[str] = None,
    ) -> Tuple[List[Enrollment], dict]:
        query = self._query().filter(Enrollment.student_id == current_user.id)
        if enrollment_status:
            query = query.filter(Enrollment.status == enrollment_status)
        query = query.order_by(Enrollment.enrollment_date.desc(), Enrollment.id.desc())
        return paginate(query, page, size)

    def get_enrollment_for(self, enrollment_id: int, current_user: User) -> Enrollment:
        """The student, the course instructor, or an admin"""
        enrollment = self.get_enrollment(enrollment_id)
        if enrollment.student_id == current_user.id or can_manage_course(
            enrollment.course, current_user
        ):
            return enrollment
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    @db_exception
    def complete_lesson(
        self, enrollment_id: int, request: LessonCompletionRequest, current_user: User
    ) -> Enrollment:
        enrollment = self._get_owned(enrollment_id, current_user)

        if not enrollment.is_accessible:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot update progress on a {enrollment.status} enrollment",
            )

        lesson = (
            self.db.query(Lesson)
            .filter(Lesson.id == request.lesson_id, Lesson.course_id == enrollment.course_id)
            .first()
        )
        if not lesson:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Lesson not found in this course",
            )

        now = utcnow()
        entry = next(
            (c for c in enrollment.completed_lessons if c.lesson_id == lesson.id), None
        )
        if entry is None:
            entry = EnrollmentCompletedLesson(lesson_id=lesson.id)
            enrollment.completed_lessons.append(entry)
        entry.completed_at = now
        entry.time_spent = request.time_spent
        entry.watch_percentage = request.watch_percentage

        enrollment.total_time_spent = (enrollment.total_time_spent or 0) + request.time_spent
        enrollment.last_accessed_lesson_id = lesson.id
        enrollment.last_accessed_at = now
        enrollment.total_lessons = self.course_service.lesson_count(enrollment.course_id)

        previous_status = enrollment.status
        enrollment.recalculate_progress(now)
        self.db.commit()

        if previous_status != enrollment.status:
            logger.info(f"Enrollment {enrollment.id} completed")
        logger.info(
            f"Lesson {lesson.id} completed on enrollment {enrollment.id} "
            f"({enrollment.completion_percentage}%)"
        )
        return self.get_enrollment(enrollment.id)

    def _quiz_requirement_met(self, enrollment: Enrollment, required: int) -> bool:
        """Best submitted percentage on every published course quiz reaches ``required``"""
        quiz_ids = [
            row.id
            for row in self.db.query(Quiz.id)
            .filter(Quiz.course_id == enrollment.course_id, Quiz.is_published == True)
            .all()
        ]
        if not quiz_ids:
            return True

        best = dict(
            self.db.query(QuizAttempt.quiz_id, func.max(QuizAttempt.percentage))
            .filter(
                QuizAttempt.student_id == enrollment.student_id,
                QuizAttempt.quiz_id.in_(quiz_ids),
                QuizAttempt.status.in_(AttemptStatus.FINISHED),
            )
            .group_by(QuizAttempt.quiz_id)
            .all()
        )
        return all((best.get(quiz_id) or 0) >= required for quiz_id in quiz_ids)

    @db_exception
    def issue_certificate(self, enrollment_id: int, current_user: User) -> Tuple[dict, bool]:
        """Returns the certificate and whether it was issued by this call"""
        enrollment = self._get_owned(enrollment_id, current_user)
        course = enrollment.course

        if not course.certificate_enabled:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Certificate is not enabled for this course",
            )

        required = course.certificate_completion_percentage or 100
        if enrollment.completion_percentage < required:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"You need to complete at least {required}% of the course "
                f"to earn a certificate",
            )

        if course.certificate_quiz_score is not None and not self._quiz_requirement_met(
            enrollment, course.certificate_quiz_score
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"You need a score of at least {course.certificate_quiz_score}% "
                f"on every course quiz to earn a certificate",
            )

        issued = False
        if not enrollment.certificate_earned:
            certificate_id = make_certificate_id(enrollment.id)
            base_url = settings.certificate_base_url.rstrip("/")
            enrollment.certificate_earned = True
            enrollment.certificate_earned_at = utcnow()
            enrollment.certificate_id = certificate_id
            enrollment.certificate_url = f"{base_url}/certificates/{certificate_id}.pdf"
            self.db.commit()
            issued = True
            logger.info(f"Certificate {certificate_id} issued for enrollment {enrollment.id}")

        return {
            "certificate_id": enrollment.certificate_id,
            "certificate_url": enrollment.certificate_url,
            "earned_at": enrollment.certificate_earned_at,
            "course_title": course.title,
            "student_name": enrollment.student.full_name,
        }, issued

    @db_exception
    def rate(self, enrollment_id: int, request: RatingRequest, current_user: User) -> Enrollment:
        enrollment = self._get_owned(enrollment_id, current_user)
        if enrollment.rating_score is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You have already rated this course",
            )

        enrollment.rating_score = request.score
        enrollment.rating_review = request.review
        enrollment.rated_at = utcnow()
        self.db.commit()

        logger.info(f"Enrollment {enrollment.id} rated {request.score}")
        return self.get_enrollment(enrollment.id)

    # ==================== Instructor ====================

    def _course_enrollment_query(self, course_id: int, current_user: User):
        course = self.course_service.get_course(course_id)
        ensure_can_manage(course, current_user, "view enrollments of")
        return course, self._query().filter(Enrollment.course_id == course.id)

    def get_course_enrollments(
        self,
        course_id: int,
        current_user: User,
        page: int = 1,
        size: int = 20,
        enrollment_status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Enrollment], dict, dict]:
        course, query = self._course_enrollment_query(course_id, current_user)

        all_enrollments = (
            self.db.query(Enrollment).filter(Enrollment.course_id == course.id).all()
        )
        counts = _status_counts(all_enrollments)
        stats = {
            "total": len(all_enrollments),
            **counts,
            "average_completion": _average_completion(all_enrollments),
            "total_revenue": collected_revenue(all_enrollments),
        }

        if enrollment_status:
            query = query.filter(Enrollment.status == enrollment_status)
        if search:
            pattern = f"%{search}%"
            query = query.join(User, Enrollment.student_id == User.id).filter(
                or_(
                    User.first_name.ilike(pattern),
                    User.last_name.ilike(pattern),
                    User.email.ilike(pattern),
                )
            )
        query = query.order_by(Enrollment.enrollment_date.desc(), Enrollment.id.desc())
        items, meta = paginate(query, page, size)
        return items, meta, stats

    def export_course_enrollments(self, course_id: int, current_user: User) -> str:
        """CSV of every enrollment in the course"""
        course, query = self._course_enrollment_query(course_id, current_user)
        enrollments = query.order_by(Enrollment.enrollment_date).all()

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_COLUMNS)
        for e in enrollments:
            writer.writerow(
                [
                    e.student.full_name,
                    e.student.email,
                    e.status,
                    e.completion_percentage,
                    e.enrollment_date.date().isoformat(),
                    e.last_accessed_at.date().isoformat() if e.last_accessed_at else "Never",
                    f"{e.amount_paid:.2f}",
                    e.payment_status,
                    e.completed_lessons_count,
                    e.total_lessons,
                    "Yes" if e.certificate_earned else "No",
                    e.rating_score if e.rating_score is not None else "N/A",
                ]
            )

        logger.info(f"Exported {len(enrollments)} enrollments of course {course.id}")
        return buffer.getvalue()

    @db_exception
    def update_status(
        self, enrollment_id: int, request: StatusUpdateRequest, current_user: User
    ) -> Enrollment:
        enrollment = self.get_enrollment(enrollment_id)
        ensure_can_manage(enrollment.course, current_user, "manage enrollments of")

        current = enrollment.status
        target = request.status
        if target not in EnrollmentStatus.TRANSITIONS.get(current, set()):
            logger.warning(
                f"Rejected enrollment {enrollment.id} transition {current} -> {target}"
            )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot change enrollment status from {current} to {target}",
            )

        now = utcnow()
        enrollment.status = target
        if target == EnrollmentStatus.REFUNDED:
            enrollment.refund_reason = request.reason
            enrollment.refunded_at = now
            enrollment.payment_status = "refunded"
        elif target == EnrollmentStatus.COMPLETED:
            enrollment.completion_percentage = 100
            if enrollment.completed_at is None:
                enrollment.completed_at = now

        self.db.commit()
        logger.info(
            f"Enrollment {enrollment.id} status changed {current} -> {target} "
            f"by user {current_user.id}"
        )
        return self.get_enrollment(enrollment.id)

    # ==================== Admin ====================

    @db_exception
    def delete_enrollment(self, enrollment_id: int) -> bool:
        enrollment = self.get_enrollment(enrollment_id)
        course = enrollment.course
        course.total_enrollments = max(0, (course.total_enrollments or 0) - 1)

        self.db.delete(enrollment)
        self.db.commit()
        logger.info(f"Enrollment deleted: {enrollment_id} (course {course.id})")
        return True

    @db_exception
    def bulk_enroll(self, request: BulkEnrollRequest) -> dict:
        course = self.course_service.get_course(request.course_id)
        result = {"successful": [], "failed": [], "already_enrolled": []}

        for student_id in dict.fromkeys(request.student_ids):
            student = self.db.query(User).filter(User.id == student_id).first()
            if not student:
                result["failed"].append({"student_id": student_id, "reason": "Student not found"})
                continue
            if student.role != UserRole.STUDENT:
                result["failed"].append({"student_id": student_id, "reason": "User is not a student"})
                continue
            if self.course_service.find_enrollment(student.id, course.id):
                result["already_enrolled"].append(student_id)
                continue

            enrollment = self._create(
                student, course, payment_amount=0, payment_method=request.payment_method
            )
            if request.notes:
                self._add_note(enrollment, f"{ADMIN_NOTE_PREFIX} {request.notes.strip()}")
            result["successful"].append(student_id)

        self.db.commit()
        logger.info(
            f"Bulk enrollment into course {course.id}: {len(result['successful'])} enrolled, "
            f"{len(result['failed'])} failed, {len(result['already_enrolled'])} skipped"
        )
        return result

    @db_exception
    def manual_enroll(self, request: ManualEnrollRequest) -> Enrollment:
        student = self.db.query(User).filter(User.id == request.student_id).first()
        if not student:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Student not found"
            )
        if student.role != UserRole.STUDENT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="User is not a student"
            )
        # Unpublished courses are allowed here
        course = self.course_service.get_course(request.course_id)
        if self.course_service.find_enrollment(student.id, course.id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Student is already enrolled in this course",
            )

        amount = request.payment_amount if request.payment_amount is not None else 0
        enrollment = self._create(
            student, course, payment_amount=amount, payment_method=request.payment_method
        )
        if request.notes and request.notes.strip():
            self._add_note(enrollment, f"{ADMIN_NOTE_PREFIX} {request.notes.strip()}")
        self.db.commit()

        logger.info(
            f"Manual enrollment created: {enrollment.id} "
            f"(student {student.id}, course {course.id})"
        )
        return self.get_enrollment(enrollment.id)

    def get_admin_overview(self, timeframe: str = "30d") -> dict:
        now = utcnow()
        enrollments = self.db.query(Enrollment).all()

        counts = _status_counts(enrollments)
        total = {
            "total_enrollments": len(enrollments),
            "active_enrollments": counts[EnrollmentStatus.ACTIVE],
            "completed_enrollments": counts[EnrollmentStatus.COMPLETED],
            "suspended_enrollments": counts[EnrollmentStatus.SUSPENDED],
            "refunded_enrollments": counts[EnrollmentStatus.REFUNDED],
            "total_revenue": collected_revenue(enrollments),
            "avg_completion_rate": _average_completion(enrollments),
        }

        start = timeframe_start(timeframe, now)
        recent = [e for e in enrollments if start is None or e.enrollment_date >= start]

        trend_start = now - timedelta(days=30)
        trends = {}
        for e in enrollments:
            if e.enrollment_date < trend_start:
                continue
            day = bucket_key(e.enrollment_date)
            bucket = trends.setdefault(day, {"date": day, "count": 0, "revenue": 0.0})
            bucket["count"] += 1
            if e.status != EnrollmentStatus.REFUNDED:
                bucket["revenue"] = round(bucket["revenue"] + e.amount_paid, 2)

        by_course = {}
        for e in enrollments:
            by_course.setdefault(e.course_id, []).append(e)
        ranked = sorted(by_course.items(), key=lambda item: (-len(item[1]), item[0]))[:10]
        titles = {}
        if ranked:
            rows = (
                self.db.query(Course.id, Course.title)
                .filter(Course.id.in_([course_id for course_id, _ in ranked]))
                .all()
            )
            titles = {row.id: row.title for row in rows}
        top_courses = [
            {
                "course_id": course_id,
                "course_title": titles.get(course_id),
                "enrollment_count": len(rows),
                "revenue": collected_revenue(rows),
                "avg_completion": _average_completion(rows),
            }
            for course_id, rows in ranked
        ]

        return {
            "timeframe": timeframe,
            "stats": {
                "total": total,
                "recent": {
                    "recent_enrollments": len(recent),
                    "recent_revenue": collected_revenue(recent),
                },
                "trends": [trends[key] for key in sorted(trends)],
                "top_courses": top_courses,
            },
        }

    def search(
        self,
        page: int = 1,
        size: int = 20,
        student_email: Optional[str] = None,
        student_name: Optional[str] = None,
        course_title: Optional[str] = None,
        enrollment_status: Optional[str] = None,
        payment_status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        completion_min: Optional[int] = None,
        completion_max: Optional[int] = None,
        sort_by: str = "enrollment_date",
        sort_order: str = "desc",
    ) -> Tuple[List[Enrollment], dict]:
        query = (
            self._query()
            .join(User, Enrollment.student_id == User.id)
            .join(Course, Enrollment.course_id == Course.id)
        )

        if enrollment_status and enrollment_status != "all":
            query = query.filter(Enrollment.status == enrollment_status)
        if payment_status and payment_status != "all":
            query = query.filter(Enrollment.payment_status == payment_status)
        if student_email:
            query = query.filter(User.email.ilike(f"%{student_email}%"))
        if student_name:
            pattern = f"%{student_name}%"
            query = query.filter(
                or_(User.first_name.ilike(pattern), User.last_name.ilike(pattern))
            )
        if course_title:
            query = query.filter(Course.title.ilike(f"%{course_title}%"))
        if date_from:
            query = query.filter(Enrollment.enrollment_date >= date_from)
        if date_to:
            query = query.filter(Enrollment.enrollment_date <= date_to)
        if completion_min is not None:
            query = query.filter(Enrollment.completion_percentage >= completion_min)
        if completion_max is not None:
            query = query.filter(Enrollment.completion_percentage <= completion_max)

        column = SEARCH_SORT_FIELDS.get(sort_by, Enrollment.enrollment_date)
        order = column.asc() if sort_order == "asc" else column.desc()
        query = query.order_by(order, Enrollment.id)
        return paginate(query, page, size)

    @db_exception
    def add_admin_note(self, enrollment_id: int, content: str) -> EnrollmentNote:
        content = content.strip()
        if not content:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Note content is required",
            )
        enrollment = self.get_enrollment(enrollment_id)
        note = self._add_note(enrollment, f"{ADMIN_NOTE_PREFIX} {content}")
        self.db.commit()
        self.db.refresh(note)

        logger.info(f"Admin note added to enrollment {enrollment.id}")
        return note

    @db_exception
    def extend_access(self, enrollment_id: int, request: ExtendAccessRequest) -> Enrollment:
        if request.extension_days <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Valid extension days are required",
            )
        enrollment = self.get_enrollment(enrollment_id)

        now = utcnow()
        enrollment.expires_at = (enrollment.expires_at or now) + timedelta(
            days=request.extension_days
        )
        self._add_note(
            enrollment,
            f"[ADMIN] Course access extended by {request.extension_days} days. "
            f"Reason: {request.reason or 'No reason provided'}",
        )
        if enrollment.status == EnrollmentStatus.SUSPENDED and enrollment.expires_at > now:
            enrollment.status = EnrollmentStatus.ACTIVE
            logger.info(f"Enrollment {enrollment.id} reactivated after extension")

        self.db.commit()
        logger.info(
            f"Enrollment {enrollment.id} access extended to {enrollment.expires_at.isoformat()}"
        )
        return self.get_enrollment(enrollment.id)

    # ==================== Scheduled ====================

    @db_exception
    def suspend_expired(self) -> int:
        """Suspend active enrollments whose access has expired"""
        now = utcnow()
        expired = (
            self.db.query(Enrollment)
            .filter(
                Enrollment.status == EnrollmentStatus.ACTIVE,
                Enrollment.expires_at.isnot(None),
                Enrollment.expires_at <= now,
            )
            .all()
        )
        for enrollment in expired:
            enrollment.status = EnrollmentStatus.SUSPENDED
            self._add_note(enrollment, "[SYSTEM] Access expired; enrollment suspended")
        self.db.commit()
        return len(expired)
