# elearning/schemas/quiz.py
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

QuestionType = Literal["multiple-choice", "true-false", "short-answer", "essay"]
Difficulty = Literal["easy", "medium", "hard"]
ShowResults = Literal["immediately", "after-submission", "after-due-date", "never"]


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# Stored as naive UTC
UtcDateTime = Annotated[datetime, AfterValidator(_naive_utc)]


class QuestionOption(BaseModel):
    text: str = Field(..., min_length=1)
    is_correct: bool = False


class QuestionCreate(BaseModel):
    question: str = Field(..., min_length=1)
    type: QuestionType
    options: List[QuestionOption] = Field(default_factory=list)
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    points: float = Field(1, ge=0)
    difficulty: Difficulty = "medium"

    @model_validator(mode="after")
    def check_answer_key(self):
        if self.type == "multiple-choice":
            if len(self.options) < 2:
                raise ValueError("Multiple choice questions need at least 2 options")
            if not any(option.is_correct for option in self.options):
                raise ValueError(
                    "Multiple choice questions need at least one correct option"
                )
        elif self.type == "true-false":
            answer = (self.correct_answer or "").strip().lower()
            if answer not in ("true", "false"):
                raise ValueError(
                    "True/false questions need a correct answer of 'true' or 'false'"
                )
            self.correct_answer = answer
        elif self.type == "short-answer":
            if not (self.correct_answer or "").strip():
                raise ValueError("Short answer questions need a correct answer")
        return self


class QuizSettings(BaseModel):
    time_limit: Optional[int] = Field(None, ge=1)  # minutes
    attempts_allowed: int = Field(1, ge=1)
    passing_score: int = Field(70, ge=0, le=100)
    shuffle_questions: bool = False
    shuffle_options: bool = False
    show_results: ShowResults = "immediately"
    show_correct_answers: bool = True


class QuizCreate(QuizSettings):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    course_id: int
    lesson_id: Optional[int] = None
    questions: List[QuestionCreate] = Field(default_factory=list)
    is_published: bool = False
    due_date: Optional[UtcDateTime] = None
    available_from: Optional[UtcDateTime] = None
    available_until: Optional[UtcDateTime] = None


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    lesson_id: Optional[int] = None
    questions: Optional[List[QuestionCreate]] = None
    time_limit: Optional[int] = Field(None, ge=1)
    attempts_allowed: Optional[int] = Field(None, ge=1)
    passing_score: Optional[int] = Field(None, ge=0, le=100)
    shuffle_questions: Optional[bool] = None
    shuffle_options: Optional[bool] = None
    show_results: Optional[ShowResults] = None
    show_correct_answers: Optional[bool] = None
    due_date: Optional[UtcDateTime] = None
    available_from: Optional[UtcDateTime] = None
    available_until: Optional[UtcDateTime] = None


class AnswerRequest(BaseModel):
    question_id: int
    answer: Any = None
    time_spent: int = Field(0, ge=0)


class FeedbackRequest(BaseModel):
    feedback: str = Field(..., min_length=1, max_length=2000)


class GradeRequest(BaseModel):
    question_id: int
    points: float
    feedback: Optional[str] = Field(None, max_length=2000)


# ==================== Responses ====================


class QuestionResponse(BaseModel):
    id: int
    position: int
    question: str
    type: str
    # Answer key fields are stripped for students
    options: List[Dict[str, Any]]
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    points: float
    difficulty: str

    model_config = ConfigDict(from_attributes=True)


class QuizResponse(QuizSettings):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    course_id: int
    lesson_id: Optional[int] = None
    instructor_id: int
    is_published: bool
    due_date: Optional[datetime] = None
    available_from: Optional[datetime] = None
    available_until: Optional[datetime] = None
    total_points: float
    created_at: datetime
    updated_at: datetime


class QuizDetailResponse(QuizResponse):
    questions: List[QuestionResponse] = []


class QuizSummaryResponse(QuizResponse):
    question_count: int = 0
    attempt_count: int = 0


class QuizListResponse(BaseModel):
    quizzes: List[QuizSummaryResponse]
    total: int
    page: int
    size: int
    total_pages: int


class AttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    quiz_id: int
    student_id: int
    attempt_number: int
    status: str
    score: float
    percentage: int
    is_passed: bool
    started_at: datetime
    submitted_at: Optional[datetime] = None
    time_spent: Optional[int] = None
    feedback: Optional[str] = None


class AttemptStartResponse(BaseModel):
    attempt_id: int
    attempt_number: int
    started_at: datetime
    quiz: QuizDetailResponse


class AnswerResult(BaseModel):
    is_correct: bool
    points_earned: float


class SubmitResponse(BaseModel):
    attempt: AttemptResponse
    results: Optional[Dict[str, Any]] = None


class AttemptListResponse(BaseModel):
    attempts: List[Dict[str, Any]]
    total: int
    page: int
    size: int
    total_pages: int
