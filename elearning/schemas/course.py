# elearning/schemas/course.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from elearning.schemas.user import UserPublic

CategoryName = Literal[
    "Web Development",
    "Mobile Development",
    "Data Science",
    "Machine Learning",
    "Artificial Intelligence",
    "DevOps",
    "Cloud Computing",
    "Cybersecurity",
    "UI/UX Design",
    "Digital Marketing",
    "Business",
    "Photography",
    "Music",
    "Language Learning",
    "Other",
]
LevelName = Literal["Beginner", "Intermediate", "Advanced"]

# ==================== Course Schemas ====================


class CourseBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=2000)
    short_description: Optional[str] = Field(None, max_length=200)
    thumbnail: Optional[str] = None
    category: CategoryName
    level: LevelName
    language: str = Field("English", max_length=50)
    duration: float = Field(..., ge=0.5)
    price: float = Field(..., ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    requirements: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    certificate_enabled: bool = True
    certificate_completion_percentage: int = Field(100, ge=50, le=100)
    certificate_quiz_score: Optional[int] = Field(None, ge=0, le=100)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, value: List[str]) -> List[str]:
        return [tag.strip().lower() for tag in value if tag and tag.strip()]


class CourseCreate(CourseBase):
    what_you_will_learn: List[str] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_discount(self):
        if self.discount_price is not None and self.discount_price >= self.price:
            raise ValueError("Discount price must be less than regular price")
        return self


class CourseUpdate(BaseModel):
    """Partial update; ownership and counter fields are not accepted here"""

    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    short_description: Optional[str] = Field(None, max_length=200)
    thumbnail: Optional[str] = None
    category: Optional[CategoryName] = None
    level: Optional[LevelName] = None
    language: Optional[str] = Field(None, max_length=50)
    duration: Optional[float] = Field(None, ge=0.5)
    price: Optional[float] = Field(None, ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    requirements: Optional[List[str]] = None
    what_you_will_learn: Optional[List[str]] = Field(None, min_length=1)
    tags: Optional[List[str]] = None
    certificate_enabled: Optional[bool] = None
    certificate_completion_percentage: Optional[int] = Field(None, ge=50, le=100)
    certificate_quiz_score: Optional[int] = Field(None, ge=0, le=100)


class LessonOutline(BaseModel):
    """Lesson entry of a course curriculum"""

    id: int
    title: str
    section: str
    order: int
    type: str
    is_preview: bool
    is_free: bool
    is_published: bool
    formatted_duration: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CourseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    short_description: Optional[str] = None
    thumbnail: Optional[str] = None
    category: str
    level: str
    language: str
    duration: float
    price: float
    discount_price: Optional[float] = None
    effective_price: float
    discount_percentage: int
    instructor_id: int
    instructor: Optional[UserPublic] = None
    requirements: List[str]
    what_you_will_learn: List[str]
    tags: List[str]
    total_enrollments: int
    average_rating: float
    total_ratings: int
    is_published: bool
    is_featured: bool
    published_at: Optional[datetime] = None
    certificate_enabled: bool
    certificate_completion_percentage: int
    certificate_quiz_score: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    is_enrolled: Optional[bool] = None


class CourseEnrollmentState(BaseModel):
    id: int
    status: str
    completion_percentage: int
    enrollment_date: datetime

    model_config = ConfigDict(from_attributes=True)


class CourseDetailResponse(CourseResponse):
    lessons: List[LessonOutline] = []
    enrollment: Optional[CourseEnrollmentState] = None


class CourseListResponse(BaseModel):
    courses: List[CourseResponse]
    total: int
    page: int
    size: int
    total_pages: int


class CategoryCount(BaseModel):
    name: str
    count: int


# ==================== Admin Schemas ====================


class CourseStatusUpdate(BaseModel):
    is_published: Optional[bool] = None
    is_featured: Optional[bool] = None


class BulkCourseAction(BaseModel):
    course_ids: List[int] = Field(..., min_length=1)
    action: Literal["publish", "unpublish", "feature", "unfeature", "delete"]
    force_delete: bool = False


class BulkActionResult(BaseModel):
    action: str
    processed: int
    skipped: int
    skipped_ids: List[int] = []


class PublishRequest(BaseModel):
    # Omitted means toggle
    is_published: Optional[bool] = None
