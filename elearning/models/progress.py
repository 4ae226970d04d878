from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from elearning.core.database import Base


class ProgressStatus:
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


LESSON_COMPLETION_THRESHOLD = 80
MAX_INTERACTIONS = 100
BOOKMARK_MIN_GAP_SECONDS = 5


class Progress(Base):
    __tablename__ = "progress"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "course_id", "lesson_id", name="uq_progress_student_lesson"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    course_id = Column(
        Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    lesson_id = Column(
        Integer, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True
    )

    status = Column(String(20), default=ProgressStatus.NOT_STARTED, nullable=False)
    completion_percentage = Column(Integer, default=0, nullable=False)
    time_spent = Column(Integer, default=0, nullable=False)  # seconds
    last_position = Column(Integer, default=0, nullable=False)  # seconds
    watch_count = Column(Integer, default=0, nullable=False)

    first_access_at = Column(DateTime, nullable=True)
    last_access_at = Column(DateTime, nullable=True, index=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class ProgressNote(Base):
    __tablename__ = "progress_notes"

    id = Column(Integer, primary_key=True, index=True)
    progress_id = Column(
        Integer, ForeignKey("progress.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content = Column(String(1000), nullable=False)
    timestamp = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class ProgressBookmark(Base):
    __tablename__ = "progress_bookmarks"

    id = Column(Integer, primary_key=True, index=True)
    progress_id = Column(
        Integer, ForeignKey("progress.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(100), nullable=False)
    timestamp = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False)


class ProgressInteraction(Base):
    __tablename__ = "progress_interactions"

    id = Column(Integer, primary_key=True, index=True)
    progress_id = Column(
        Integer, ForeignKey("progress.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(20), nullable=False)
    timestamp = Column(Integer, nullable=True)
    data = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<ProgressInteraction(progress_id={self.progress_id}, type='{self.type}')>"
