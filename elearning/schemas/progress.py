# elearning/schemas/progress.py
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

InteractionType = Literal[
    "play", "pause", "seek", "speed-change", "fullscreen", "note-add", "bookmark-add"
]


class ProgressUpdateRequest(BaseModel):
    course_id: int
    lesson_id: int
    time_spent: int = 0
    last_position: Optional[int] = Field(None, ge=0)
    # Clamped to 0..100 by the service
    completion_percentage: Optional[float] = None


class NoteCreateRequest(BaseModel):
    content: str = Field(..., max_length=1000)
    timestamp: int = Field(0, ge=0)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Note content is required")
        return value


class NoteUpdateRequest(NoteCreateRequest):
    timestamp: Optional[int] = Field(None, ge=0)


class BookmarkCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    timestamp: int = Field(..., ge=0)


class InteractionRequest(BaseModel):
    type: InteractionType
    timestamp: Optional[int] = Field(None, ge=0)
    data: Optional[Dict[str, Any]] = None


# ==================== Responses ====================


class ProgressNoteResponse(BaseModel):
    id: int
    content: str
    timestamp: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookmarkResponse(BaseModel):
    id: int
    name: str
    timestamp: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InteractionResponse(BaseModel):
    id: int
    type: str
    timestamp: Optional[int] = None
    data: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProgressLessonSummary(BaseModel):
    id: int
    title: str
    section: str
    order: int
    type: str

    model_config = ConfigDict(from_attributes=True)


class ProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    course_id: int
    lesson_id: int
    status: str
    completion_percentage: int
    time_spent: int
    last_position: int
    watch_count: int
    first_access_at: Optional[datetime] = None
    last_access_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    lesson: Optional[ProgressLessonSummary] = None
    notes: List[ProgressNoteResponse] = []
    bookmarks: List[BookmarkResponse] = []


class CourseProgressStats(BaseModel):
    total_lessons: int
    completed_lessons: int
    overall_progress: int
    total_time_spent: int


class CourseProgressResponse(BaseModel):
    progress: List[ProgressResponse]
    stats: CourseProgressStats
