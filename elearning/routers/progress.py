# elearning/routers/progress.py

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from elearning.core.database import get_db
from elearning.core.dependencies import get_current_user
from elearning.models.user import User
from elearning.schemas.progress import (
    BookmarkCreateRequest,
    BookmarkResponse,
    CourseProgressResponse,
    InteractionRequest,
    InteractionResponse,
    NoteCreateRequest,
    NoteUpdateRequest,
    ProgressNoteResponse,
    ProgressResponse,
    ProgressUpdateRequest,
)
from elearning.services.progress import ProgressService

router = APIRouter(
    prefix="/progress",
    tags=["Progress"],
    responses={404: {"description": "Not found"}},
)


@router.post("/", response_model=ProgressResponse)
def update_progress(
    request: ProgressUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Record watch time and position for a lesson.
    Reaching 80% completes the lesson and refreshes the enrollment.
    """
    return ProgressService(db).update_progress(request, current_user)


@router.get("/course/{course_id}", response_model=CourseProgressResponse)
def read_course_progress(
    course_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProgressService(db).get_course_progress(course_id, current_user)


@router.get("/lesson/{lesson_id}", response_model=ProgressResponse)
def read_lesson_progress(
    lesson_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProgressService(db).get_lesson_progress(lesson_id, current_user)


@router.get("/analytics/{course_id}")
def read_learning_analytics(
    course_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Study habits, per-lesson progress and a 7-day breakdown for one course.
    """
    return ProgressService(db).get_learning_analytics(course_id, current_user)


# ==================== Notes ====================


@router.post(
    "/{lesson_id}/notes",
    response_model=ProgressNoteResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_note(
    lesson_id: int,
    request: NoteCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProgressService(db).add_note(lesson_id, request, current_user)


@router.put("/{lesson_id}/notes/{note_id}", response_model=ProgressNoteResponse)
def update_note(
    lesson_id: int,
    note_id: int,
    request: NoteUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProgressService(db).update_note(lesson_id, note_id, request, current_user)


@router.delete("/{lesson_id}/notes/{note_id}")
def delete_note(
    lesson_id: int,
    note_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ProgressService(db).delete_note(lesson_id, note_id, current_user)
    return {"message": "Note deleted successfully"}


# ==================== Bookmarks ====================


@router.post(
    "/{lesson_id}/bookmarks",
    response_model=BookmarkResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_bookmark(
    lesson_id: int,
    request: BookmarkCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProgressService(db).add_bookmark(lesson_id, request, current_user)


@router.delete("/{lesson_id}/bookmarks/{bookmark_id}")
def delete_bookmark(
    lesson_id: int,
    bookmark_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ProgressService(db).delete_bookmark(lesson_id, bookmark_id, current_user)
    return {"message": "Bookmark deleted successfully"}


@router.post("/{lesson_id}/interaction", response_model=InteractionResponse)
def track_interaction(
    lesson_id: int,
    request: InteractionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProgressService(db).track_interaction(lesson_id, request, current_user)
