from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from elearning.core.database import Base
from elearning.utils.rounding import percentage


class EnrollmentStatus:
    ACTIVE = "active"
    COMPLETED = "completed"
    SUSPENDED = "suspended"
    REFUNDED = "refunded"

    ALL = (ACTIVE, COMPLETED, SUSPENDED, REFUNDED)

    # Allowed manual transitions; refunded is terminal
    TRANSITIONS = {
        ACTIVE: {COMPLETED, SUSPENDED, REFUNDED},
        SUSPENDED: {ACTIVE, REFUNDED},
        COMPLETED: {ACTIVE, REFUNDED},
        REFUNDED: set(),
    }

    # Statuses that still grant access to course material
    ACCESSIBLE = (ACTIVE, COMPLETED)


def collected_revenue(enrollments) -> float:
    """Payments collected, refunds excluded"""
    return round(
        sum(e.amount_paid for e in enrollments if e.status != EnrollmentStatus.REFUNDED), 2
    )


class Enrollment(Base):
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_enrollment_student_course"),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    course_id = Column(
        Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )

    status = Column(String(20), default=EnrollmentStatus.ACTIVE, nullable=False, index=True)
    enrollment_date = Column(DateTime, nullable=False, index=True)

    # Progress
    completion_percentage = Column(Integer, default=0, nullable=False)
    total_lessons = Column(Integer, default=0, nullable=False)
    last_accessed_lesson_id = Column(
        Integer, ForeignKey("lessons.id", ondelete="SET NULL"), nullable=True
    )
    last_accessed_at = Column(DateTime, nullable=True)
    total_time_spent = Column(Integer, default=0, nullable=False)  # seconds

    # Payment
    payment_amount = Column(Numeric(10, 2), default=0, nullable=False)
    payment_currency = Column(String(3), default="USD", nullable=False)
    payment_method = Column(String(50), nullable=True)
    transaction_id = Column(String(255), nullable=True)
    payment_date = Column(DateTime, nullable=True)
    payment_status = Column(String(20), default="completed", nullable=False)

    # Certificate
    certificate_earned = Column(Boolean, default=False, nullable=False)
    certificate_earned_at = Column(DateTime, nullable=True)
    certificate_id = Column(String(64), unique=True, nullable=True)
    certificate_url = Column(Text, nullable=True)

    # Rating left through the enrollment
    rating_score = Column(Integer, nullable=True)
    rating_review = Column(Text, nullable=True)
    rated_at = Column(DateTime, nullable=True)

    completed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True, index=True)
    refund_reason = Column(Text, nullable=True)
    refunded_at = Column(DateTime, nullable=True)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    @property
    def completed_lessons_count(self) -> int:
        return len(self.completed_lessons)

    @property
    def amount_paid(self) -> float:
        return float(self.payment_amount or 0)

    @property
    def is_accessible(self) -> bool:
        return self.status in EnrollmentStatus.ACCESSIBLE

    def recalculate_progress(self, now: datetime) -> None:
        """Recompute the completion percentage from the completed-lesson set.

        An active enrollment reaching 100% becomes completed; ``completed_at``
        is stamped only the first time.
        """
        if self.total_lessons <= 0:
            return

        self.completion_percentage = min(
            100, percentage(self.completed_lessons_count, self.total_lessons)
        )

        if (
            self.completion_percentage == 100
            and self.status == EnrollmentStatus.ACTIVE
        ):
            self.status = EnrollmentStatus.COMPLETED
            if self.completed_at is None:
                self.completed_at = now

    def __repr__(self):
        return (
            f"<Enrollment(id={self.id}, student_id={self.student_id}, "
            f"course_id={self.course_id}, status='{self.status}')>"
        )


class EnrollmentCompletedLesson(Base):
    __tablename__ = "enrollment_completed_lessons"
    __table_args__ = (
        UniqueConstraint("enrollment_id", "lesson_id", name="uq_completed_lesson"),
    )

    id = Column(Integer, primary_key=True, index=True)
    enrollment_id = Column(
        Integer, ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    lesson_id = Column(
        Integer, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False
    )
    completed_at = Column(DateTime, nullable=False)
    time_spent = Column(Integer, default=0, nullable=False)
    watch_percentage = Column(Integer, default=100, nullable=False)


class EnrollmentNote(Base):
    __tablename__ = "enrollment_notes"

    id = Column(Integer, primary_key=True, index=True)
    enrollment_id = Column(
        Integer, ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    lesson_id = Column(
        Integer, ForeignKey("lessons.id", ondelete="SET NULL"), nullable=True
    )
    content = Column(Text, nullable=False)
    timestamp = Column(Integer, nullable=True)  # position in the lesson, seconds
    created_at = Column(DateTime, nullable=False)
