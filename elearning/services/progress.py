# elearning/services/progress.py
import logging
from collections import Counter
from datetime import date, datetime, timedelta
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, joinedload

from elearning.core.decorator import db_exception
from elearning.models.enrollment import Enrollment, EnrollmentCompletedLesson
from elearning.models.lesson import Lesson
from elearning.models.progress import (
    BOOKMARK_MIN_GAP_SECONDS,
    LESSON_COMPLETION_THRESHOLD,
    MAX_INTERACTIONS,
    Progress,
    ProgressBookmark,
    ProgressInteraction,
    ProgressNote,
    ProgressStatus,
)
from elearning.models.user import User
from elearning.schemas.progress import (
    BookmarkCreateRequest,
    InteractionRequest,
    NoteCreateRequest,
    NoteUpdateRequest,
    ProgressUpdateRequest,
)
from elearning.services.course import CourseService
from elearning.utils.rounding import percentage, round_half_up
from elearning.utils.timeframe import last_days, utcnow

logger = logging.getLogger(__name__)

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def most_active_day(records: List[Progress]) -> str:
    counts = Counter(
        WEEKDAYS[p.last_access_at.weekday()] for p in records if p.last_access_at
    )
    if not counts:
        return "Monday"
    return counts.most_common(1)[0][0]


def study_streak(records: List[Progress], today: date) -> int:
    """Consecutive distinct access days, ending today or yesterday"""
    days = sorted(
        {p.last_access_at.date() for p in records if p.last_access_at}, reverse=True
    )
    if not days or days[0] < today - timedelta(days=1):
        return 0

    streak = 1
    for newer, older in zip(days, days[1:]):
        if (newer - older).days != 1:
            break
        streak += 1
    return streak


class ProgressService:
    def __init__(self, db: Session):
        self.db = db
        self.course_service = CourseService(db)

    def _require_enrollment(
        self, student: User, course_id: int, accessible_only: bool = True
    ) -> Enrollment:
        enrollment = self.course_service.find_enrollment(student.id, course_id)
        if not enrollment or (accessible_only and not enrollment.is_accessible):
            logger.warning(f"User {student.id} is not enrolled in course {course_id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You are not enrolled in this course",
            )
        return enrollment

    def _find(self, student_id: int, lesson_id: int) -> Optional[Progress]:
        return (
            self.db.query(Progress)
            .filter(Progress.student_id == student_id, Progress.lesson_id == lesson_id)
            .first()
        )

    def _get_own_record(self, student: User, lesson_id: int) -> Progress:
        progress = self._find(student.id, lesson_id)
        if not progress:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Progress not found for this lesson",
            )
        return progress

    def sync_enrollment(self, enrollment: Enrollment, now: datetime) -> None:
        """
        Bring the enrollment in line with the student's progress records: every
        completed record gets a completed-lesson entry, time is the sum of all
        records and the percentage is taken over the course's lessons.
        """
        records = (
            self.db.query(Progress)
            .filter(
                Progress.student_id == enrollment.student_id,
                Progress.course_id == enrollment.course_id,
            )
            .all()
        )
        completed_ids = {c.lesson_id for c in enrollment.completed_lessons}
        for record in records:
            if record.status == ProgressStatus.COMPLETED and record.lesson_id not in completed_ids:
                enrollment.completed_lessons.append(
                    EnrollmentCompletedLesson(
                        lesson_id=record.lesson_id,
                        completed_at=record.completed_at or now,
                        time_spent=record.time_spent,
                        watch_percentage=record.completion_percentage,
                    )
                )

        enrollment.total_time_spent = sum(r.time_spent for r in records)
        enrollment.total_lessons = self.course_service.lesson_count(enrollment.course_id)
        enrollment.last_accessed_at = now
        enrollment.recalculate_progress(now)

    # ==================== Progress ====================

    @db_exception
    def update_progress(self, request: ProgressUpdateRequest, current_user: User) -> Progress:
        enrollment = self._require_enrollment(current_user, request.course_id)

        lesson = (
            self.db.query(Lesson)
            .filter(Lesson.id == request.lesson_id, Lesson.course_id == request.course_id)
            .first()
        )
        if not lesson:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Lesson not found in this course",
            )

        now = utcnow()
        progress = self._find(current_user.id, lesson.id)
        if progress is None:
            progress = Progress(
                student_id=current_user.id,
                course_id=request.course_id,
                lesson_id=lesson.id,
                status=ProgressStatus.NOT_STARTED,
                completion_percentage=0,
                time_spent=0,
                last_position=0,
                watch_count=0,
                first_access_at=now,
            )
            self.db.add(progress)

        if request.completion_percentage is not None:
            progress.completion_percentage = int(
                round_half_up(min(100, max(0, request.completion_percentage)))
            )
        progress.time_spent = (progress.time_spent or 0) + max(0, request.time_spent)
        progress.watch_count = (progress.watch_count or 0) + 1
        if request.last_position is not None:
            progress.last_position = request.last_position
        progress.last_access_at = now

        enrollment.last_accessed_lesson_id = lesson.id
        if (
            progress.completion_percentage >= LESSON_COMPLETION_THRESHOLD
            and progress.status != ProgressStatus.COMPLETED
        ):
            progress.status = ProgressStatus.COMPLETED
            progress.completed_at = now
            self.db.flush()
            self.sync_enrollment(enrollment, now)
            logger.info(
                f"Lesson {lesson.id} completed by user {current_user.id} "
                f"(course progress {enrollment.completion_percentage}%)"
            )
        elif progress.completion_percentage > 0 and progress.status == ProgressStatus.NOT_STARTED:
            progress.status = ProgressStatus.IN_PROGRESS

        self.db.commit()
        self.db.refresh(progress)
        return progress

    def get_course_progress(self, course_id: int, current_user: User) -> dict:
        self._require_enrollment(current_user, course_id, accessible_only=False)

        records = (
            self.db.query(Progress)
            .options(joinedload(Progress.lesson))
            .join(Lesson, Progress.lesson_id == Lesson.id)
            .filter(Progress.student_id == current_user.id, Progress.course_id == course_id)
            .order_by(Lesson.order, Lesson.id)
            .all()
        )
        total_lessons = self.course_service.lesson_count(course_id)
        completed = sum(1 for r in records if r.status == ProgressStatus.COMPLETED)

        return {
            "progress": records,
            "stats": {
                "total_lessons": total_lessons,
                "completed_lessons": completed,
                "overall_progress": percentage(completed, total_lessons),
                "total_time_spent": sum(r.time_spent for r in records),
            },
        }

    def get_lesson_progress(self, lesson_id: int, current_user: User) -> Progress:
        return self._get_own_record(current_user, lesson_id)

    # ==================== Notes ====================

    @db_exception
    def add_note(self, lesson_id: int, request: NoteCreateRequest, current_user: User) -> ProgressNote:
        progress = self._get_own_record(current_user, lesson_id)
        now = utcnow()
        note = ProgressNote(
            content=request.content,
            timestamp=request.timestamp,
            created_at=now,
            updated_at=now,
        )
        progress.notes.append(note)
        self._log_interaction(progress, "note-add", request.timestamp, now=now)
        self.db.commit()
        self.db.refresh(note)
        return note

    def _get_note(self, lesson_id: int, note_id: int, current_user: User) -> ProgressNote:
        progress = self._get_own_record(current_user, lesson_id)
        note = next((n for n in progress.notes if n.id == note_id), None)
        if not note:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
        return note

    @db_exception
    def update_note(
        self, lesson_id: int, note_id: int, request: NoteUpdateRequest, current_user: User
    ) -> ProgressNote:
        note = self._get_note(lesson_id, note_id, current_user)
        note.content = request.content
        if request.timestamp is not None:
            note.timestamp = request.timestamp
        note.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(note)
        return note

    @db_exception
    def delete_note(self, lesson_id: int, note_id: int, current_user: User) -> bool:
        note = self._get_note(lesson_id, note_id, current_user)
        self.db.delete(note)
        self.db.commit()
        return True

    # ==================== Bookmarks ====================

    @db_exception
    def add_bookmark(
        self, lesson_id: int, request: BookmarkCreateRequest, current_user: User
    ) -> ProgressBookmark:
        progress = self._get_own_record(current_user, lesson_id)

        for existing in progress.bookmarks:
            if abs(existing.timestamp - request.timestamp) < BOOKMARK_MIN_GAP_SECONDS:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="A bookmark already exists near this timestamp",
                )

        now = utcnow()
        bookmark = ProgressBookmark(
            name=request.name.strip(), timestamp=request.timestamp, created_at=now
        )
        progress.bookmarks.append(bookmark)
        self._log_interaction(
            progress, "bookmark-add", request.timestamp, {"name": bookmark.name}, now
        )
        self.db.commit()
        self.db.refresh(bookmark)
        return bookmark

    @db_exception
    def delete_bookmark(self, lesson_id: int, bookmark_id: int, current_user: User) -> bool:
        progress = self._get_own_record(current_user, lesson_id)
        bookmark = next((b for b in progress.bookmarks if b.id == bookmark_id), None)
        if not bookmark:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Bookmark not found"
            )
        self.db.delete(bookmark)
        self.db.commit()
        return True

    # ==================== Interactions ====================

    def _log_interaction(
        self,
        progress: Progress,
        interaction_type: str,
        timestamp: Optional[int] = None,
        data: Optional[dict] = None,
        now: Optional[datetime] = None,
    ) -> ProgressInteraction:
        interaction = ProgressInteraction(
            type=interaction_type,
            timestamp=timestamp,
            data=data,
            created_at=now or utcnow(),
        )
        progress.interactions.append(interaction)

        # Keep only the newest entries
        overflow = len(progress.interactions) - MAX_INTERACTIONS
        if overflow > 0:
            for old in list(progress.interactions[:overflow]):
                progress.interactions.remove(old)
        return interaction

    @db_exception
    def track_interaction(
        self, lesson_id: int, request: InteractionRequest, current_user: User
    ) -> ProgressInteraction:
        progress = self._get_own_record(current_user, lesson_id)
        interaction = self._log_interaction(
            progress, request.type, request.timestamp, request.data
        )
        self.db.commit()
        self.db.refresh(interaction)
        return interaction

    # ==================== Analytics ====================

    def get_learning_analytics(self, course_id: int, current_user: User) -> dict:
        course_progress = self.get_course_progress(course_id, current_user)
        records: List[Progress] = course_progress["progress"]
        today = utcnow().date()

        total_time = sum(r.time_spent for r in records)
        study_habits = {
            "total_study_time": total_time,
            "average_session_length": round_half_up(total_time / len(records)) if records else 0,
            "total_notes": sum(len(r.notes) for r in records),
            "total_bookmarks": sum(len(r.bookmarks) for r in records),
            "most_active_day": most_active_day(records),
            "study_streak": study_streak(records, today),
        }

        lesson_progress = [
            {
                "lesson_id": r.lesson_id,
                "lesson_title": r.lesson.title,
                "status": r.status,
                "completion_percentage": r.completion_percentage,
                "time_spent": r.time_spent,
                "watch_count": r.watch_count,
                "notes_count": len(r.notes),
                "bookmarks_count": len(r.bookmarks),
                "last_access_at": r.last_access_at,
                "completed_at": r.completed_at,
            }
            for r in records
        ]

        weekly_progress = []
        for day in last_days(today, 7):
            accessed = [
                r for r in records
                if r.last_access_at and r.last_access_at.date().isoformat() == day
            ]
            weekly_progress.append(
                {
                    "date": day,
                    "lessons_accessed": len(accessed),
                    "total_time_spent": sum(r.time_spent for r in accessed),
                    "notes_added": sum(
                        1
                        for r in accessed
                        for n in r.notes
                        if n.created_at.date().isoformat() == day
                    ),
                }
            )

        return {
            "course_progress": course_progress["stats"],
            "study_habits": study_habits,
            "lesson_progress": lesson_progress,
            "weekly_progress": weekly_progress,
        }
