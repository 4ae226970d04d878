# elearning/routers/lesson.py

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from elearning.core.database import get_db
from elearning.core.dependencies import get_current_instructor_or_admin, get_current_user
from elearning.models.user import User
from elearning.schemas.lesson import (
    LessonCreate,
    LessonListResponse,
    LessonResponse,
    LessonUpdate,
)
from elearning.services.lesson import LessonService

router = APIRouter(
    prefix="/lessons",
    tags=["Lessons"],
    responses={404: {"description": "Not found"}},
)


@router.post("/", response_model=LessonResponse, status_code=status.HTTP_201_CREATED)
def create_lesson(
    lesson_in: LessonCreate,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    """
    Add a lesson to a course. Only the course instructor or an admin can do this.
    """
    return LessonService(db).create_lesson(lesson_in, current_user)


@router.get("/course/{course_id}", response_model=LessonListResponse)
def read_course_lessons(
    course_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    lessons, full_access = LessonService(db).get_course_lessons(course_id, current_user)
    return {"lessons": lessons, "total": len(lessons), "has_full_access": full_access}


@router.get("/{lesson_id}", response_model=LessonResponse)
def read_lesson(
    lesson_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return LessonService(db).get_lesson_for(lesson_id, current_user)


@router.put("/{lesson_id}", response_model=LessonResponse)
def update_lesson(
    lesson_id: int,
    lesson_in: LessonUpdate,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    return LessonService(db).update_lesson(lesson_id, lesson_in, current_user)


@router.delete("/{lesson_id}")
def delete_lesson(
    lesson_id: int,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    """
    Delete a lesson together with its completion entries and progress records.
    """
    LessonService(db).delete_lesson(lesson_id, current_user)
    return {"message": "Lesson deleted successfully"}
