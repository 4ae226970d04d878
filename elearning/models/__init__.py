"""
Models package initialization
Import all models and setup relationships
"""

from .course import Course
from .enrollment import Enrollment, EnrollmentCompletedLesson, EnrollmentNote
from .lesson import Lesson
from .progress import Progress, ProgressBookmark, ProgressInteraction, ProgressNote
from .quiz import Quiz, QuizQuestion
from .quiz_attempt import QuizAnswer, QuizAttempt

# Import and setup relationships
from .relations import setup_relationships
from .review import Review, ReviewReply
from .user import User

# Setup all relationships after models are imported
setup_relationships()

# Make models available at package level
__all__ = [
    "Course",
    "Enrollment",
    "EnrollmentCompletedLesson",
    "EnrollmentNote",
    "Lesson",
    "Progress",
    "ProgressBookmark",
    "ProgressInteraction",
    "ProgressNote",
    "Quiz",
    "QuizAnswer",
    "QuizAttempt",
    "QuizQuestion",
    "Review",
    "ReviewReply",
    "User",
]
