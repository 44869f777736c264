# app/models/relations.py

from sqlalchemy.orm import relationship

# Import all relevant models
from .course import Course
from .course_enrollment import CourseEnrollment
from .quiz import Quiz
from .quiz_analytics import QuestionAnalytics
from .quiz_attempt import QuizAttempt
from .quiz_question import QuizQuestion
from .student_answer import StudentAnswer
from .user import User


def setup_relationships():
    """
    Configure all SQLAlchemy relationships between models.
    """

    # --- Course System Relationships ---

    # 1. Lecturer to Courses (One-to-Many)
    User.courses_taught = relationship("Course", back_populates="lecturer")
    Course.lecturer = relationship("User", back_populates="courses_taught")

    # 2. Enrollments (Many-to-One on both sides)
    CourseEnrollment.student = relationship("User")
    CourseEnrollment.course = relationship("Course", back_populates="enrollments")
    Course.enrollments = relationship(
        "CourseEnrollment",
        back_populates="course",
        cascade="all, delete-orphan",
    )

    # --- Quiz System Relationships ---

    # 3. Course to Quizzes (One-to-Many)
    Course.quizzes = relationship(
        "Quiz",
        back_populates="course",
        cascade="all, delete-orphan",
    )
    Quiz.course = relationship("Course", back_populates="quizzes")

    # 4. Quiz to Questions (One-to-Many), presentation order
    Quiz.questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="QuizQuestion.order_number",
    )
    QuizQuestion.quiz = relationship("Quiz", back_populates="questions")

    # 5. Quiz to Attempts (One-to-Many)
    Quiz.attempts = relationship(
        "QuizAttempt",
        back_populates="quiz",
        cascade="all, delete-orphan",
    )
    QuizAttempt.quiz = relationship("Quiz", back_populates="attempts")
    QuizAttempt.student = relationship("User")

    # 6. Attempt to graded answers (One-to-Many)
    QuizAttempt.graded_answers = relationship(
        "StudentAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
    )
    StudentAnswer.attempt = relationship("QuizAttempt", back_populates="graded_answers")
    StudentAnswer.question = relationship("QuizQuestion")

    # 7. Quiz to per-question analytics (One-to-Many)
    Quiz.analytics = relationship(
        "QuestionAnalytics",
        cascade="all, delete-orphan",
    )
    QuestionAnalytics.question = relationship("QuizQuestion")
