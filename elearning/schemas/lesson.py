# elearning/schemas/lesson.py
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

LessonType = Literal["video", "text", "quiz", "assignment", "document"]


class LessonResource(BaseModel):
    title: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    type: Literal["pdf", "doc", "link", "image", "video", "other"] = "link"


class _ContentBase(BaseModel):
    resources: List[LessonResource] = Field(default_factory=list)


class VideoContent(_ContentBase):
    video_url: str = Field(..., min_length=1)
    video_thumbnail: Optional[str] = None
    video_duration: Optional[int] = Field(None, ge=0)  # seconds
    video_size: Optional[int] = Field(None, ge=0)  # bytes


class TextContent(_ContentBase):
    text_content: str = Field(..., min_length=1)


class DocumentContent(_ContentBase):
    document_url: str = Field(..., min_length=1)
    document_type: Optional[str] = None
    document_size: Optional[int] = Field(None, ge=0)


class AssignmentContent(_ContentBase):
    assignment_instructions: str = Field(..., min_length=1)
    assignment_due_date: Optional[datetime] = None
    max_score: Optional[float] = Field(None, ge=0)


class QuizContent(_ContentBase):
    quiz_id: Optional[int] = None


CONTENT_MODELS = {
    "video": VideoContent,
    "text": TextContent,
    "document": DocumentContent,
    "assignment": AssignmentContent,
    "quiz": QuizContent,
}


def validate_content(lesson_type: str, content: Optional[Dict[str, Any]]) -> dict:
    """Validate ``content`` against the model for ``lesson_type``.

    Returns the JSON-ready dict that is stored on the lesson.
    """
    model = CONTENT_MODELS[lesson_type]
    try:
        parsed = model.model_validate(content or {})
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "content"
        raise ValueError(f"Invalid {lesson_type} content ({field}): {first['msg']}")
    return parsed.model_dump(mode="json", exclude_none=True)


# ==================== Lesson Schemas ====================


class LessonBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    section: str = Field(..., min_length=1, max_length=100)
    order: int = Field(..., ge=1)
    type: LessonType
    content: Dict[str, Any] = Field(default_factory=dict)
    is_preview: bool = False
    is_free: bool = False
    is_published: bool = False
    completion_watch_percentage: int = Field(80, ge=50, le=100)
    require_quiz_pass: bool = False
    min_quiz_score: int = Field(70, ge=0, le=100)


class LessonCreate(LessonBase):
    course_id: int

    @model_validator(mode="after")
    def check_content(self):
        self.content = validate_content(self.type, self.content)
        return self


class LessonUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    section: Optional[str] = Field(None, min_length=1, max_length=100)
    order: Optional[int] = Field(None, ge=1)
    type: Optional[LessonType] = None
    content: Optional[Dict[str, Any]] = None
    is_preview: Optional[bool] = None
    is_free: Optional[bool] = None
    is_published: Optional[bool] = None
    completion_watch_percentage: Optional[int] = Field(None, ge=50, le=100)
    require_quiz_pass: Optional[bool] = None
    min_quiz_score: Optional[int] = Field(None, ge=0, le=100)


class LessonResponse(LessonBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    formatted_duration: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class LessonListResponse(BaseModel):
    lessons: List[LessonResponse]
    total: int
    has_full_access: bool
