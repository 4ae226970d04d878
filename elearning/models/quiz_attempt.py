# elearning/models/quiz_attempt.py
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
    UniqueConstraint,
)
from sqlalchemy.sql import func

from elearning.core.database import Base
from elearning.utils.rounding import percentage as percent_of


class AttemptStatus:
    IN_PROGRESS = "in-progress"
    SUBMITTED = "submitted"
    AUTO_SUBMITTED = "auto-submitted"
    ABANDONED = "abandoned"

    ALL = (IN_PROGRESS, SUBMITTED, AUTO_SUBMITTED, ABANDONED)
    FINISHED = (SUBMITTED, AUTO_SUBMITTED)


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(
        Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    attempt_number = Column(Integer, nullable=False, default=1)
    status = Column(String(20), default=AttemptStatus.IN_PROGRESS, nullable=False)

    score = Column(Float, default=0, nullable=False)
    percentage = Column(Integer, default=0, nullable=False)
    is_passed = Column(Boolean, default=False, nullable=False)

    started_at = Column(DateTime, nullable=False)
    submitted_at = Column(DateTime, nullable=True, index=True)
    time_spent = Column(Integer, nullable=True)  # seconds
    feedback = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def recalculate_score(self) -> None:
        """Score, percentage and pass flag follow the graded answers."""
        self.score = float(sum(a.points_earned or 0 for a in self.answers))
        self.percentage = percent_of(self.score, self.quiz.total_points)
        self.is_passed = self.percentage >= self.quiz.passing_score

    def __repr__(self):
        return (
            f"<QuizAttempt(id={self.id}, student_id={self.student_id}, score={self.score})>"
        )


class QuizAnswer(Base):
    __tablename__ = "quiz_answers"
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_answer_attempt_question"),
    )

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(
        Integer, ForeignKey("quiz_attempts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id = Column(
        Integer, ForeignKey("quiz_questions.id", ondelete="CASCADE"), nullable=False
    )
    answer = Column(JSON, nullable=True)
    is_correct = Column(Boolean, default=False, nullable=False)
    points_earned = Column(Float, default=0, nullable=False)
    time_spent = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)
