from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.sql import func

from elearning.core.database import Base


class Lesson(Base):
    __tablename__ = "lessons"
    __table_args__ = (
        Index("ix_lessons_course_order", "course_id", "order"),
        Index("ix_lessons_course_section_order", "course_id", "section", "order"),
    )

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(
        Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )

    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    section = Column(String(100), nullable=False)
    order = Column(Integer, nullable=False)
    type = Column(String(20), nullable=False)

    # Shape depends on ``type`` (see schemas.lesson)
    content = Column(JSON, nullable=False, default=dict)

    is_preview = Column(Boolean, default=False, nullable=False)
    is_free = Column(Boolean, default=False, nullable=False)
    is_published = Column(Boolean, default=False, nullable=False)

    # Completion criteria
    completion_watch_percentage = Column(Integer, default=80, nullable=False)
    require_quiz_pass = Column(Boolean, default=False, nullable=False)
    min_quiz_score = Column(Integer, default=70, nullable=False)

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
    def is_open_access(self) -> bool:
        """Preview and free lessons are visible to anyone."""
        return bool(self.is_preview or self.is_free)

    @property
    def formatted_duration(self):
        duration = (self.content or {}).get("video_duration")
        if not duration:
            return None
        minutes, seconds = divmod(int(duration), 60)
        return f"{minutes}:{seconds:02d}"

    def __repr__(self):
        return f"<Lesson(id={self.id}, course_id={self.course_id}, order={self.order})>"
