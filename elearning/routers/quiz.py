# elearning/routers/quiz.py

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from elearning.core.database import get_db
from elearning.core.dependencies import get_current_instructor_or_admin, get_current_user
from elearning.models.user import User
from elearning.schemas.quiz import (
    AnswerRequest,
    AnswerResult,
    AttemptListResponse,
    AttemptResponse,
    AttemptStartResponse,
    FeedbackRequest,
    GradeRequest,
    QuizCreate,
    QuizDetailResponse,
    QuizListResponse,
    QuizSummaryResponse,
    QuizUpdate,
    SubmitResponse,
)
from elearning.services.quiz import QuizService
from elearning.services.quiz_attempt import QuizAttemptService

router = APIRouter(
    prefix="/quizzes",
    tags=["Quizzes"],
    responses={404: {"description": "Not found"}},
)

AttemptStatusName = Literal["in-progress", "submitted", "auto-submitted", "abandoned"]


@router.post("/", response_model=QuizDetailResponse, status_code=status.HTTP_201_CREATED)
def create_quiz(
    quiz_in: QuizCreate,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    """
    Create a quiz for a course the current user teaches.
    """
    return QuizService(db).create_quiz(quiz_in, current_user)


@router.get("/instructor", response_model=QuizListResponse)
def read_instructor_quizzes(
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    course_id: Optional[int] = None,
    quiz_status: Optional[Literal["published", "draft"]] = Query(None, alias="status"),
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    is_published = None if quiz_status is None else quiz_status == "published"
    quizzes, pagination = QuizService(db).get_instructor_quizzes(
        current_user, page=page, size=size, course_id=course_id, is_published=is_published
    )
    return {"quizzes": quizzes, **pagination}


@router.get("/stats/overview")
def read_stats_overview(
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    """
    Totals, recent attempts and per-quiz performance for the current instructor.
    """
    return QuizService(db).get_stats_overview(current_user)


@router.get("/student/attempts", response_model=AttemptListResponse)
def read_student_attempts(
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    course_id: Optional[int] = None,
    attempt_status: Optional[AttemptStatusName] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    attempts, pagination = QuizAttemptService(db).get_student_attempts(
        current_user,
        page=page,
        size=size,
        course_id=course_id,
        attempt_status=attempt_status,
    )
    return {"attempts": attempts, **pagination}


@router.get("/course/{course_id}", response_model=List[QuizSummaryResponse])
def read_course_quizzes(
    course_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return QuizService(db).get_course_quizzes(course_id, current_user)


# ==================== Attempts ====================


@router.put("/attempts/{attempt_id}/answer", response_model=AnswerResult)
def answer_question(
    attempt_id: int,
    request: AnswerRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return QuizAttemptService(db).answer(attempt_id, request, current_user)


@router.post("/attempts/{attempt_id}/submit", response_model=SubmitResponse)
def submit_attempt(
    attempt_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Finish an attempt. Results are included when the quiz shows them right away.
    """
    return QuizAttemptService(db).submit(attempt_id, current_user)


@router.get("/attempts/{attempt_id}/results")
def read_attempt_results(
    attempt_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    results = QuizAttemptService(db).get_results(attempt_id, current_user)
    results["attempt"] = AttemptResponse.model_validate(results["attempt"])
    return results


@router.put("/attempts/{attempt_id}/feedback", response_model=AttemptResponse)
def set_attempt_feedback(
    attempt_id: int,
    request: FeedbackRequest,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    return QuizAttemptService(db).set_feedback(attempt_id, request.feedback, current_user)


@router.put("/attempts/{attempt_id}/grade", response_model=AttemptResponse)
def grade_answer(
    attempt_id: int,
    request: GradeRequest,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    """
    Manually grade one answer, typically an essay, and recompute the score.
    """
    return QuizAttemptService(db).grade_answer(attempt_id, request, current_user)


@router.delete("/attempts/{attempt_id}")
def delete_attempt(
    attempt_id: int,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    QuizAttemptService(db).delete_attempt(attempt_id, current_user)
    return {"message": "Quiz attempt deleted successfully"}


# ==================== Single quiz ====================


@router.get("/{quiz_id}", response_model=QuizDetailResponse)
def read_quiz(
    quiz_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Retrieve a quiz. The answer key is hidden unless the caller manages it.
    """
    return QuizService(db).get_quiz_for(quiz_id, current_user)


@router.put("/{quiz_id}", response_model=QuizDetailResponse)
def update_quiz(
    quiz_id: int,
    quiz_in: QuizUpdate,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    return QuizService(db).update_quiz(quiz_id, quiz_in, current_user)


@router.delete("/{quiz_id}")
def delete_quiz(
    quiz_id: int,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    QuizService(db).delete_quiz(quiz_id, current_user)
    return {"message": "Quiz deleted successfully"}


@router.put("/{quiz_id}/publish", response_model=QuizDetailResponse)
def toggle_quiz_publish(
    quiz_id: int,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    return QuizService(db).toggle_publish(quiz_id, current_user)


@router.post(
    "/{quiz_id}/duplicate",
    response_model=QuizDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
def duplicate_quiz(
    quiz_id: int,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    return QuizService(db).duplicate_quiz(quiz_id, current_user)


@router.post(
    "/{quiz_id}/attempt",
    response_model=AttemptStartResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_attempt(
    quiz_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return QuizAttemptService(db).start_attempt(quiz_id, current_user)


@router.get("/{quiz_id}/analytics")
def read_quiz_analytics(
    quiz_id: int,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    return QuizService(db).get_analytics(quiz_id, current_user)


@router.get("/{quiz_id}/attempts", response_model=AttemptListResponse)
def read_quiz_attempts(
    quiz_id: int,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    attempt_status: Optional[AttemptStatusName] = Query(None, alias="status"),
    student_id: Optional[int] = None,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    attempts, pagination = QuizAttemptService(db).get_quiz_attempts(
        quiz_id,
        current_user,
        page=page,
        size=size,
        attempt_status=attempt_status,
        student_id=student_id,
    )
    return {"attempts": attempts, **pagination}
