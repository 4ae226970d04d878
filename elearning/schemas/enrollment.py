# elearning/schemas/enrollment.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from elearning.schemas.user import UserPublic

EnrollmentStatusName = Literal["active", "completed", "suspended", "refunded"]
PaymentStatusName = Literal["pending", "completed", "failed", "refunded"]


class EnrollRequest(BaseModel):
    course_id: int
    payment_method: Optional[str] = Field(None, max_length=50)
    transaction_id: Optional[str] = Field(None, max_length=255)


class LessonCompletionRequest(BaseModel):
    lesson_id: int
    time_spent: int = Field(0, ge=0)
    watch_percentage: int = Field(100, ge=0, le=100)


class RatingRequest(BaseModel):
    score: int = Field(..., ge=1, le=5)
    review: str = Field(..., max_length=1000)

    @field_validator("review")
    @classmethod
    def review_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Review text is required")
        return value


class StatusUpdateRequest(BaseModel):
    status: EnrollmentStatusName
    reason: Optional[str] = Field(None, max_length=500)


class BulkEnrollRequest(BaseModel):
    course_id: int
    student_ids: List[int] = Field(..., min_length=1)
    payment_method: Optional[str] = Field("admin", max_length=50)
    notes: Optional[str] = Field(None, max_length=1000)


class ManualEnrollRequest(BaseModel):
    student_id: int
    course_id: int
    payment_amount: Optional[float] = Field(None, ge=0)
    payment_method: Optional[str] = Field("admin", max_length=50)
    notes: Optional[str] = Field(None, max_length=1000)


class AdminNoteRequest(BaseModel):
    content: str = Field(..., max_length=1000)


class ExtendAccessRequest(BaseModel):
    extension_days: int
    reason: Optional[str] = Field(None, max_length=500)


# ==================== Responses ====================


class CompletedLessonResponse(BaseModel):
    lesson_id: int
    completed_at: datetime
    time_spent: int
    watch_percentage: int

    model_config = ConfigDict(from_attributes=True)


class EnrollmentNoteResponse(BaseModel):
    id: int
    lesson_id: Optional[int] = None
    content: str
    timestamp: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EnrollmentCourseSummary(BaseModel):
    id: int
    title: str
    thumbnail: Optional[str] = None
    category: str
    level: str
    duration: float
    instructor: Optional[UserPublic] = None

    model_config = ConfigDict(from_attributes=True)


class EnrollmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    course_id: int
    status: str
    enrollment_date: datetime
    completion_percentage: int
    total_lessons: int
    completed_lessons_count: int
    last_accessed_lesson_id: Optional[int] = None
    last_accessed_at: Optional[datetime] = None
    total_time_spent: int
    payment_amount: float
    payment_currency: str
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_date: Optional[datetime] = None
    payment_status: str
    certificate_earned: bool
    certificate_earned_at: Optional[datetime] = None
    certificate_id: Optional[str] = None
    certificate_url: Optional[str] = None
    rating_score: Optional[int] = None
    rating_review: Optional[str] = None
    rated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    refund_reason: Optional[str] = None
    refunded_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class EnrollmentDetailResponse(EnrollmentResponse):
    course: Optional[EnrollmentCourseSummary] = None
    student: Optional[UserPublic] = None
    completed_lessons: List[CompletedLessonResponse] = []
    notes: List[EnrollmentNoteResponse] = []


class EnrollmentListResponse(BaseModel):
    enrollments: List[EnrollmentDetailResponse]
    total: int
    page: int
    size: int
    total_pages: int


class CertificateResponse(BaseModel):
    certificate_id: str
    certificate_url: str
    earned_at: datetime
    course_title: str
    student_name: str


class CourseEnrollmentStats(BaseModel):
    total: int
    active: int
    completed: int
    suspended: int
    refunded: int
    average_completion: float
    total_revenue: float


class CourseEnrollmentListResponse(EnrollmentListResponse):
    stats: CourseEnrollmentStats


class BulkEnrollFailure(BaseModel):
    student_id: int
    reason: str


class BulkEnrollResult(BaseModel):
    successful: List[int]
    failed: List[BulkEnrollFailure]
    already_enrolled: List[int]
