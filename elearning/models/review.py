from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from elearning.core.database import Base
from elearning.utils.rounding import percentage


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("course_id", "student_id", name="uq_review_course_student"),
    )

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(
        Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    rating = Column(Integer, nullable=False)
    title = Column(String(100), nullable=True)
    comment = Column(String(1000), nullable=False)
    pros = Column(JSON, nullable=False, default=list)
    cons = Column(JSON, nullable=False, default=list)

    is_verified = Column(Boolean, default=False, nullable=False)
    is_approved = Column(Boolean, default=True, nullable=False, index=True)
    helpful_votes = Column(Integer, default=0, nullable=False)
    report_count = Column(Integer, default=0, nullable=False)

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
    def helpful_percentage(self) -> int:
        helpful = self.helpful_votes or 0
        return percentage(helpful, helpful + (self.report_count or 0))


class ReviewReply(Base):
    __tablename__ = "review_replies"

    id = Column(Integer, primary_key=True, index=True)
    review_id = Column(
        Integer, ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    message = Column(String(500), nullable=False)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
