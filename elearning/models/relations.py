# elearning/models/relations.py

from sqlalchemy.orm import relationship

from .course import Course
from .enrollment import Enrollment, EnrollmentCompletedLesson, EnrollmentNote
from .lesson import Lesson
from .progress import Progress, ProgressBookmark, ProgressInteraction, ProgressNote
from .quiz import Quiz, QuizQuestion
from .quiz_attempt import QuizAnswer, QuizAttempt
from .review import Review, ReviewReply
from .user import User


def setup_relationships():
    """
    Configure all SQLAlchemy relationships between models.
    """

    # --- Course authoring ---

    # 1. Instructor to Courses (One-to-Many)
    User.courses = relationship("Course", back_populates="instructor")
    Course.instructor = relationship("User", back_populates="courses")

    # 2. Course to Lessons (One-to-Many), ordered within the course
    Course.lessons = relationship(
        "Lesson",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by=[Lesson.order, Lesson.id],
    )
    Lesson.course = relationship("Course", back_populates="lessons")

    # --- Enrollment ---

    # 3. Student to Enrollments (One-to-Many)
    User.enrollments = relationship(
        "Enrollment",
        back_populates="student",
        cascade="all, delete-orphan",
    )
    Enrollment.student = relationship("User", back_populates="enrollments")

    # 4. Course to Enrollments (One-to-Many)
    Course.enrollments = relationship(
        "Enrollment",
        back_populates="course",
        cascade="all, delete-orphan",
    )
    Enrollment.course = relationship("Course", back_populates="enrollments")

    # 5. Enrollment to completed lessons / notes
    Enrollment.completed_lessons = relationship(
        "EnrollmentCompletedLesson",
        back_populates="enrollment",
        cascade="all, delete-orphan",
        order_by="EnrollmentCompletedLesson.completed_at",
    )
    EnrollmentCompletedLesson.enrollment = relationship(
        "Enrollment", back_populates="completed_lessons"
    )
    EnrollmentCompletedLesson.lesson = relationship("Lesson")

    Enrollment.notes = relationship(
        "EnrollmentNote",
        back_populates="enrollment",
        cascade="all, delete-orphan",
        order_by="EnrollmentNote.created_at",
    )
    EnrollmentNote.enrollment = relationship("Enrollment", back_populates="notes")

    Enrollment.last_accessed_lesson = relationship("Lesson")

    # --- Progress ---

    # 6. Student / Course / Lesson to Progress records
    User.progress_records = relationship(
        "Progress", back_populates="student", cascade="all, delete-orphan"
    )
    Progress.student = relationship("User", back_populates="progress_records")

    Course.progress_records = relationship(
        "Progress", back_populates="course", cascade="all, delete-orphan"
    )
    Progress.course = relationship("Course", back_populates="progress_records")

    Lesson.progress_records = relationship(
        "Progress", back_populates="lesson", cascade="all, delete-orphan"
    )
    Progress.lesson = relationship("Lesson", back_populates="progress_records")

    # 7. Progress to notes, bookmarks and interaction log
    Progress.notes = relationship(
        "ProgressNote",
        back_populates="progress",
        cascade="all, delete-orphan",
        order_by="ProgressNote.created_at",
    )
    ProgressNote.progress = relationship("Progress", back_populates="notes")

    Progress.bookmarks = relationship(
        "ProgressBookmark",
        back_populates="progress",
        cascade="all, delete-orphan",
        order_by="ProgressBookmark.timestamp",
    )
    ProgressBookmark.progress = relationship("Progress", back_populates="bookmarks")

    Progress.interactions = relationship(
        "ProgressInteraction",
        back_populates="progress",
        cascade="all, delete-orphan",
        order_by="ProgressInteraction.id",
    )
    ProgressInteraction.progress = relationship(
        "Progress", back_populates="interactions"
    )

    # --- Reviews ---

    # 8. Course / Student to Reviews
    Course.reviews = relationship(
        "Review", back_populates="course", cascade="all, delete-orphan"
    )
    Review.course = relationship("Course", back_populates="reviews")

    User.reviews = relationship(
        "Review", back_populates="student", cascade="all, delete-orphan"
    )
    Review.student = relationship("User", back_populates="reviews")

    # 9. Review to Replies
    Review.replies = relationship(
        "ReviewReply",
        back_populates="review",
        cascade="all, delete-orphan",
        order_by="ReviewReply.id",
    )
    ReviewReply.review = relationship("Review", back_populates="replies")
    ReviewReply.user = relationship("User")

    # --- Quizzes ---

    # 10. Course to Quizzes, Quiz to Questions
    Course.quizzes = relationship(
        "Quiz", back_populates="course", cascade="all, delete-orphan"
    )
    Quiz.course = relationship("Course", back_populates="quizzes")
    Quiz.lesson = relationship("Lesson")
    Quiz.instructor = relationship("User")

    Quiz.questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by=[QuizQuestion.position, QuizQuestion.id],
    )
    QuizQuestion.quiz = relationship("Quiz", back_populates="questions")

    # 11. Quiz to Attempts, Attempt to Answers
    Quiz.attempts = relationship(
        "QuizAttempt", back_populates="quiz", cascade="all, delete-orphan"
    )
    QuizAttempt.quiz = relationship("Quiz", back_populates="attempts")

    User.quiz_attempts = relationship(
        "QuizAttempt", back_populates="student", cascade="all, delete-orphan"
    )
    QuizAttempt.student = relationship("User", back_populates="quiz_attempts")

    QuizAttempt.answers = relationship(
        "QuizAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="QuizAnswer.id",
    )
    QuizAnswer.attempt = relationship("QuizAttempt", back_populates="answers")
    QuizAnswer.question = relationship("QuizQuestion")
