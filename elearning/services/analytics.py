from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from elearning.models.course import Course
from elearning.models.enrollment import Enrollment, EnrollmentStatus, collected_revenue
from elearning.models.lesson import Lesson
from elearning.models.quiz import Quiz
from elearning.models.quiz_attempt import AttemptStatus, QuizAttempt
from elearning.models.review import Review
from elearning.models.user import User, UserRole
from elearning.schemas.analytics import LearningSummary, PlatformAnalytics
from elearning.utils.rounding import round_half_up


class AnalyticsService:
    def __init__(self, db: Session):
        self.db = db

    def _grouped_counts(self, column, keys) -> dict:
        counts = {key: 0 for key in keys}
        for key, count in self.db.query(column, func.count()).group_by(column).all():
            counts[key] = count
        return counts

    def get_platform_analytics(self) -> PlatformAnalytics:
        """
        Get overall platform analytics.
        """
        users_by_role = self._grouped_counts(User.role, UserRole.ALL)
        enrollments_by_status = self._grouped_counts(Enrollment.status, EnrollmentStatus.ALL)
        total_active_users = self.db.query(User).filter(User.is_active == True).count()
        total_courses = self.db.query(Course).count()
        published_courses = self.db.query(Course).filter(Course.is_published == True).count()

        return PlatformAnalytics(
            users_by_role=users_by_role,
            total_users=sum(users_by_role.values()),
            total_active_users=total_active_users,
            total_courses=total_courses,
            published_courses=published_courses,
            total_lessons=self.db.query(Lesson).count(),
            enrollments_by_status=enrollments_by_status,
            total_enrollments=sum(enrollments_by_status.values()),
            total_reviews=self.db.query(Review).count(),
            total_quizzes=self.db.query(Quiz).count(),
            total_quiz_attempts=self.db.query(QuizAttempt).count(),
            total_revenue=collected_revenue(self.db.query(Enrollment).all()),
        )

    def get_learning_summary(self, user_id: int) -> LearningSummary:
        """
        Learning activity of one user across every course they are enrolled in.
        """
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
            )

        enrollments = self.db.query(Enrollment).filter(Enrollment.student_id == user.id).all()
        attempts = (
            self.db.query(QuizAttempt)
            .filter(
                QuizAttempt.student_id == user.id,
                QuizAttempt.status.in_(AttemptStatus.FINISHED),
            )
            .all()
        )

        average_completion = 0.0
        if enrollments:
            average_completion = round_half_up(
                sum(e.completion_percentage for e in enrollments) / len(enrollments), 1
            )
        average_quiz = None
        if attempts:
            average_quiz = round_half_up(
                sum(a.percentage for a in attempts) / len(attempts), 1
            )

        return LearningSummary(
            user_id=user.id,
            courses_enrolled=len(enrollments),
            courses_completed=sum(
                1 for e in enrollments if e.status == EnrollmentStatus.COMPLETED
            ),
            courses_in_progress=sum(
                1 for e in enrollments if e.status == EnrollmentStatus.ACTIVE
            ),
            average_completion=average_completion,
            total_learning_time=sum(e.total_time_spent or 0 for e in enrollments),
            certificates_earned=sum(1 for e in enrollments if e.certificate_earned),
            quiz_attempts=len(attempts),
            average_quiz_percentage=average_quiz,
            quizzes_passed=len({a.quiz_id for a in attempts if a.is_passed}),
            reviews_written=self.db.query(Review).filter(Review.student_id == user.id).count(),
        )
