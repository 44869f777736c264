"""
Models package initialization
Import all models and setup relationships
"""

from .course import Course
from .course_enrollment import CourseEnrollment
from .notification import QuizNotification
from .quiz import Quiz
from .quiz_analytics import QuestionAnalytics
from .quiz_attempt import QuizAttempt
from .quiz_question import QuizQuestion

# Import and setup relationships
from .relations import setup_relationships
from .student_answer import StudentAnswer
from .user import User

# Setup all relationships after models are imported
setup_relationships()

# Make models available at package level
__all__ = [
    "Course",
    "CourseEnrollment",
    "QuestionAnalytics",
    "Quiz",
    "QuizAttempt",
    "QuizNotification",
    "QuizQuestion",
    "StudentAnswer",
    "User",
]
