from .analytics import router as analytics_router
from .auth import router as auth_router
from .course import router as course_router
from .enrollment import router as enrollment_router
from .lesson import router as lesson_router
from .progress import router as progress_router
from .quiz import router as quiz_router
from .review import router as review_router
from .user import router as user_router

routes = [
    auth_router,
    user_router,
    course_router,
    lesson_router,
    enrollment_router,
    progress_router,
    review_router,
    quiz_router,
    analytics_router,
]
