from .admin import router as admin_router
from .analytics import router as analytics_router
from .auth import router as auth_router
from .notification import router as notification_router
from .quiz import router as quiz_router
from .student_quiz import router as student_quiz_router

routes = [
    admin_router,
    auth_router,
    student_quiz_router,
    quiz_router,
    analytics_router,
    notification_router,
]
