# elearning/models/course.py
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func

from elearning.core.database import Base

COURSE_CATEGORIES = (
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
)


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)

    # Basic Info
    title = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=False)
    short_description = Column(String(200), nullable=True)
    thumbnail = Column(Text, nullable=True)
    category = Column(String(50), nullable=False, index=True)
    level = Column(String(20), nullable=False)
    language = Column(String(50), nullable=False, default="English")
    duration = Column(Float, nullable=False)  # hours

    # Pricing
    price = Column(Numeric(10, 2), nullable=False, default=0)
    discount_price = Column(Numeric(10, 2), nullable=True)

    instructor_id = Column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )

    requirements = Column(JSON, nullable=False, default=list)
    what_you_will_learn = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)

    # Denormalized counters
    total_enrollments = Column(Integer, nullable=False, default=0)
    average_rating = Column(Float, nullable=False, default=0)
    total_ratings = Column(Integer, nullable=False, default=0)

    # Flags
    is_published = Column(Boolean, default=False, nullable=False, index=True)
    is_featured = Column(Boolean, default=False, nullable=False)
    published_at = Column(DateTime, nullable=True)

    # Certificate settings
    certificate_enabled = Column(Boolean, default=True, nullable=False)
    certificate_completion_percentage = Column(Integer, default=100, nullable=False)
    certificate_quiz_score = Column(Integer, nullable=True)

    # Timestamps
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
    def effective_price(self) -> float:
        if self.discount_price is not None:
            return float(self.discount_price)
        return float(self.price or 0)

    @property
    def discount_percentage(self) -> int:
        price = float(self.price or 0)
        if self.discount_price is None or price <= 0:
            return 0
        return round((price - float(self.discount_price)) / price * 100)

    def __repr__(self):
        return f"<Course(id={self.id}, title='{self.title}', price={self.price})>"
