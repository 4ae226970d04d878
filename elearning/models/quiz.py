# elearning/models/quiz.py
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.sql import func

from elearning.core.database import Base


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    course_id = Column(
        Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    lesson_id = Column(
        Integer, ForeignKey("lessons.id", ondelete="SET NULL"), nullable=True
    )
    instructor_id = Column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )

    # Settings
    time_limit = Column(Integer, nullable=True)  # minutes
    attempts_allowed = Column(Integer, default=1, nullable=False)
    passing_score = Column(Integer, default=70, nullable=False)
    shuffle_questions = Column(Boolean, default=False, nullable=False)
    shuffle_options = Column(Boolean, default=False, nullable=False)
    show_results = Column(String(20), default="immediately", nullable=False)
    show_correct_answers = Column(Boolean, default=True, nullable=False)

    is_published = Column(Boolean, default=False, nullable=False)
    due_date = Column(DateTime, nullable=True)
    available_from = Column(DateTime, nullable=True)
    available_until = Column(DateTime, nullable=True)

    total_points = Column(Float, default=0, nullable=False)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def recalculate_total_points(self) -> None:
        self.total_points = float(sum(q.points or 0 for q in self.questions))

    def __repr__(self):
        return f"<Quiz(id={self.id}, title='{self.title}', course_id={self.course_id})>"


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(
        Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False, default=0)

    question = Column(Text, nullable=False)
    type = Column(String(20), nullable=False)
    options = Column(JSON, nullable=False, default=list)  # [{"text", "is_correct"}]
    correct_answer = Column(Text, nullable=True)
    explanation = Column(Text, nullable=True)
    points = Column(Float, default=1, nullable=False)
    difficulty = Column(String(10), default="medium", nullable=False)

    @property
    def correct_answer_text(self):
        """The expected answer as shown to students after submission."""
        if self.correct_answer:
            return self.correct_answer
        for option in self.options or []:
            if option.get("is_correct"):
                return option.get("text")
        return None
