# elearning/schemas/review.py
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from elearning.schemas.user import UserPublic


def _clean_points(value):
    if value is None:
        return value
    cleaned = [item.strip() for item in value if item and item.strip()]
    if any(len(item) > 200 for item in cleaned):
        raise ValueError("Each entry cannot exceed 200 characters")
    return cleaned


class ReviewBase(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=100)
    comment: str = Field(..., min_length=1, max_length=1000)
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)

    @field_validator("pros", "cons")
    @classmethod
    def check_points(cls, value: List[str]) -> List[str]:
        return _clean_points(value)


class ReviewCreate(ReviewBase):
    course_id: int


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    title: Optional[str] = Field(None, max_length=100)
    comment: Optional[str] = Field(None, min_length=1, max_length=1000)
    pros: Optional[List[str]] = None
    cons: Optional[List[str]] = None

    @field_validator("pros", "cons")
    @classmethod
    def check_points(cls, value):
        return _clean_points(value)


class ReplyCreate(BaseModel):
    message: str = Field(..., max_length=500)

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Reply message is required")
        return value


class ApproveRequest(BaseModel):
    is_approved: bool = True


# ==================== Responses ====================


class ReplyResponse(BaseModel):
    id: int
    user_id: int
    user: Optional[UserPublic] = None
    message: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReviewCourseSummary(BaseModel):
    id: int
    title: str

    model_config = ConfigDict(from_attributes=True)


class ReviewResponse(ReviewBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    student_id: int
    student: Optional[UserPublic] = None
    course: Optional[ReviewCourseSummary] = None
    is_verified: bool
    is_approved: bool
    helpful_votes: int
    report_count: int
    helpful_percentage: int
    replies: List[ReplyResponse] = []
    created_at: datetime
    updated_at: datetime


class RatingSummary(BaseModel):
    average_rating: float
    total_reviews: int
    distribution: Dict[int, int]


class ReviewListResponse(BaseModel):
    reviews: List[ReviewResponse]
    total: int
    page: int
    size: int
    total_pages: int


class CourseReviewListResponse(ReviewListResponse):
    rating_summary: RatingSummary


class HelpfulResponse(BaseModel):
    helpful_votes: int
    helpful_percentage: int
