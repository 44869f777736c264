# app/schemas/quiz.py
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.services.grading import (
    ANSWER_DELIMITER,
    FREE_TEXT,
    MULTI_CHOICE,
    QUESTION_TYPES,
    SINGLE_CHOICE,
    encode_answer,
)
from app.utils.clock import as_utc

QUESTION_TYPE_PATTERN = "^(" + "|".join(QUESTION_TYPES) + ")$"

AnswerInput = Union[str, List[str]]

# ==================== Quiz Schemas ====================


class QuizCreate(BaseModel):
    course_id: int
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    instructions: Optional[str] = None
    time_limit: Optional[int] = Field(
        None, ge=1, description="Time limit in minutes (null = unlimited)"
    )
    max_attempts: Optional[int] = Field(
        None, ge=1, description="Maximum attempts allowed (null = unlimited)"
    )
    start_time: datetime
    end_time: datetime

    @model_validator(mode="after")
    def check_window(self):
        self.start_time = as_utc(self.start_time)
        self.end_time = as_utc(self.end_time)
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    instructions: Optional[str] = None
    # null means unlimited for these two
    time_limit: Optional[int] = Field(None, ge=1)
    max_attempts: Optional[int] = Field(None, ge=1)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("title", "start_time", "end_time", "is_active")
    @classmethod
    def reject_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value


class QuizResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    time_limit: Optional[int] = None
    max_attempts: Optional[int] = None
    total_marks: float
    start_time: datetime
    end_time: datetime
    is_active: bool
    created_by: int
    created_at: datetime
    updated_at: datetime


class LecturerQuizSummary(QuizResponse):
    """Quiz with question and attempt counts for the lecturer dashboard"""

    question_count: int = 0
    total_attempts: int = 0
    completed_attempts: int = 0


# ==================== Question Schemas ====================


class QuizQuestionCreate(BaseModel):
    """Question as authored by the lecturer - includes correct answers"""

    question_text: str = Field(..., min_length=1)
    question_type: str = Field(..., pattern=QUESTION_TYPE_PATTERN)
    options: Optional[List[str]] = None
    correct_answer: AnswerInput
    marks: Decimal = Field(default=Decimal("1"), ge=Decimal("0.5"))
    order_number: int = Field(..., ge=1)

    @model_validator(mode="after")
    def check_answers(self):
        if self.question_type == FREE_TEXT:
            if not isinstance(self.correct_answer, str) or not self.correct_answer.strip():
                raise ValueError("Free-text questions need a non-empty correct answer")
            self.options = None
            return self

        options = self.options or []
        if len(options) < 2:
            raise ValueError("Choice questions need at least two options")
        if len(set(options)) != len(options):
            raise ValueError("Options must be unique")
        if any(not option for option in options):
            raise ValueError("Options must not be empty")

        if isinstance(self.correct_answer, str):
            selected = [self.correct_answer]
            if self.question_type == MULTI_CHOICE:
                selected = self.correct_answer.split(ANSWER_DELIMITER)
        else:
            selected = list(self.correct_answer)

        if not selected or any(answer not in options for answer in selected):
            raise ValueError("Correct answers must be drawn from the options")

        if self.question_type == SINGLE_CHOICE and len(selected) != 1:
            raise ValueError("Single-choice questions have exactly one correct answer")

        if self.question_type == MULTI_CHOICE:
            if any(ANSWER_DELIMITER in option for option in options):
                raise ValueError(
                    f"Multi-choice options must not contain '{ANSWER_DELIMITER}'"
                )
            self.correct_answer = selected
        return self

    def encoded_correct_answer(self) -> str:
        return encode_answer(self.correct_answer)


class QuizQuestionUpdate(BaseModel):
    question_text: Optional[str] = Field(None, min_length=1)
    question_type: Optional[str] = Field(None, pattern=QUESTION_TYPE_PATTERN)
    options: Optional[List[str]] = None
    correct_answer: Optional[AnswerInput] = None
    marks: Optional[Decimal] = Field(None, ge=Decimal("0.5"))
    order_number: Optional[int] = Field(None, ge=1)


class QuizQuestionResponse(BaseModel):
    """Lecturer view - includes the stored correct answer"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    quiz_id: int
    question_text: str
    question_type: str
    options: Optional[List[str]] = None
    correct_answer: str
    marks: float
    order_number: int


class QuizQuestionForAttempt(BaseModel):
    """Learner view during an attempt - WITHOUT correct answer"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    question_text: str
    question_type: str
    options: Optional[List[str]] = None
    marks: float
    order_number: int


# ==================== Learner Catalog Schemas ====================


class AvailableQuizResponse(BaseModel):
    id: int
    course_id: int
    course_code: str
    course_name: str
    title: str
    description: Optional[str] = None
    time_limit: Optional[int] = None
    max_attempts: Optional[int] = None
    total_marks: float
    start_time: datetime
    end_time: datetime
    question_count: int
    attempts_used: int
    attempts_remaining: Optional[int] = None
    has_in_progress_attempt: bool
    is_open: bool


class QuizForAttemptResponse(BaseModel):
    id: int
    course_id: int
    course_code: str
    course_name: str
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    time_limit: Optional[int] = None
    max_attempts: Optional[int] = None
    total_marks: float
    start_time: datetime
    end_time: datetime
    questions: List[QuizQuestionForAttempt]
    attempts_used: int
    attempts_remaining: Optional[int] = None


# ==================== Attempt Schemas ====================


class QuizAttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    quiz_id: int
    student_id: int
    attempt_number: int
    answers: Dict[str, str] = Field(default_factory=dict)
    status: str
    score: Optional[float] = None
    percentage: Optional[float] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    time_taken: Optional[int] = None


class StartAttemptResponse(BaseModel):
    attempt: QuizAttemptResponse
    resumed: bool
    time_limit: Optional[int] = None
    deadline: Optional[datetime] = None  # Null when the quiz is untimed
    remaining_seconds: Optional[int] = None
    message: str


class AnswersUpdate(BaseModel):
    answers: Dict[str, Optional[AnswerInput]] = Field(default_factory=dict)


class AnswerUpdate(BaseModel):
    answer: Optional[AnswerInput] = None


class AnswersSavedResponse(BaseModel):
    attempt_id: int
    answered_count: int


class SubmitAttemptRequest(BaseModel):
    answers: Optional[Dict[str, Optional[AnswerInput]]] = None


class QuestionResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    question_id: int
    selected_option: Optional[str] = None
    is_correct: bool
    marks_awarded: float
    max_marks: float


class SubmitAttemptResponse(BaseModel):
    attempt_id: int
    status: str
    score: float
    percentage: float
    total_marks: float
    time_taken: int
    completed_at: datetime
    already_submitted: bool = False


class AttemptDetailResponse(QuizAttemptResponse):
    quiz_title: str
    total_marks: float
    results: Optional[List[QuestionResultResponse]] = None


class StudentQuizResultResponse(BaseModel):
    attempt_id: int
    quiz_id: int
    quiz_title: str
    course_code: str
    course_name: str
    attempt_number: int
    score: float
    percentage: float
    total_marks: float
    time_taken: Optional[int] = None
    completed_at: datetime


class LecturerAttemptResponse(QuizAttemptResponse):
    student_name: str
    student_email: str


# ==================== Analytics Schemas ====================


class QuestionAnalyticsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    question_id: int
    total_attempts: int
    correct_answers: int
    incorrect_answers: int
    option_distribution: Dict[str, int] = Field(default_factory=dict)
    difficulty_rating: float
    last_updated: Optional[datetime] = None


class QuizAnalyticsResponse(BaseModel):
    quiz_id: int
    completed_attempts: int
    average_percentage: Optional[float] = None
    highest_percentage: Optional[float] = None
    lowest_percentage: Optional[float] = None
    questions: List[QuestionAnalyticsResponse]
