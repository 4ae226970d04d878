from typing import Dict, Optional

from pydantic import BaseModel


class PlatformAnalytics(BaseModel):
    users_by_role: Dict[str, int]
    total_users: int
    total_active_users: int
    total_courses: int
    published_courses: int
    total_lessons: int
    enrollments_by_status: Dict[str, int]
    total_enrollments: int
    total_reviews: int
    total_quizzes: int
    total_quiz_attempts: int
    total_revenue: float


class LearningSummary(BaseModel):
    user_id: int
    courses_enrolled: int
    courses_completed: int
    courses_in_progress: int
    average_completion: float
    total_learning_time: int
    certificates_earned: int
    quiz_attempts: int
    average_quiz_percentage: Optional[float] = None
    quizzes_passed: int
    reviews_written: int
