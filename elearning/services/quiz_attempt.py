# elearning/services/quiz_attempt.py
import logging
from datetime import datetime
from typing import Any, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, joinedload, selectinload

from elearning.core.decorator import db_exception
from elearning.models.quiz import Quiz, QuizQuestion
from elearning.models.quiz_attempt import AttemptStatus, QuizAnswer, QuizAttempt
from elearning.models.user import User
from elearning.schemas.quiz import AnswerRequest, GradeRequest
from elearning.services.course import CourseService, can_manage_course
from elearning.services.quiz import (
    QuizService,
    can_manage_quiz,
    ensure_can_manage_quiz,
    serialize_quiz,
)
from elearning.utils.pagination import paginate
from elearning.utils.rounding import percentage, round_half_up
from elearning.utils.timeframe import utcnow

logger = logging.getLogger(__name__)


def _normalize(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value).strip().lower()


def auto_grade(question: QuizQuestion, answer: Any) -> Tuple[bool, float]:
    """Automatic grading; essays stay at zero until graded by hand"""
    is_correct = False
    if question.type == "multiple-choice":
        selected = next(
            (o for o in question.options or [] if o.get("text") == answer), None
        )
        is_correct = bool(selected and selected.get("is_correct"))
    elif question.type == "true-false":
        is_correct = _normalize(answer) == _normalize(question.correct_answer)
    elif question.type == "short-answer":
        is_correct = bool(question.correct_answer) and (
            _normalize(answer) == _normalize(question.correct_answer)
        )
    return is_correct, (question.points if is_correct else 0.0)


def time_limit_exceeded(attempt: QuizAttempt, now: datetime) -> bool:
    limit = attempt.quiz.time_limit
    if not limit:
        return False
    return (now - attempt.started_at).total_seconds() > limit * 60


def build_results(attempt: QuizAttempt, include_answers: bool) -> dict:
    quiz = attempt.quiz
    results = {
        "score": attempt.score,
        "percentage": attempt.percentage,
        "is_passed": attempt.is_passed,
        "total_questions": len(quiz.questions),
        "answered_questions": len(attempt.answers),
        "correct_answers": sum(1 for a in attempt.answers if a.is_correct),
    }
    if include_answers:
        questions = {q.id: q for q in quiz.questions}
        results["answers"] = [
            {
                "question_id": answer.question_id,
                "question": questions[answer.question_id].question,
                "your_answer": answer.answer,
                "correct_answer": questions[answer.question_id].correct_answer_text,
                "is_correct": answer.is_correct,
                "points_earned": answer.points_earned,
                "explanation": questions[answer.question_id].explanation,
                "feedback": answer.feedback,
            }
            for answer in attempt.answers
            if answer.question_id in questions
        ]
    return results


def attempt_progress(attempt: QuizAttempt) -> dict:
    answered = len(attempt.answers)
    total = len(attempt.quiz.questions)
    time_spent = attempt.time_spent or 0
    return {
        "questions_answered": answered,
        "total_questions": total,
        "completion_percentage": percentage(answered, total),
        "time_spent": time_spent,
        "average_time_per_question": round_half_up(time_spent / answered) if answered else 0,
    }


class QuizAttemptService:
    def __init__(self, db: Session):
        self.db = db
        self.course_service = CourseService(db)
        self.quiz_service = QuizService(db)

    def get_attempt(self, attempt_id: int) -> QuizAttempt:
        attempt = (
            self.db.query(QuizAttempt)
            .options(
                joinedload(QuizAttempt.quiz).selectinload(Quiz.questions),
                joinedload(QuizAttempt.student),
                selectinload(QuizAttempt.answers),
            )
            .filter(QuizAttempt.id == attempt_id)
            .first()
        )
        if not attempt:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Quiz attempt not found"
            )
        return attempt

    def _get_own_in_progress(self, attempt_id: int, current_user: User) -> QuizAttempt:
        attempt = self.get_attempt(attempt_id)
        if attempt.student_id != current_user.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="This attempt has already been submitted",
            )
        return attempt

    def _finish(self, attempt: QuizAttempt, now: datetime, auto: bool) -> None:
        attempt.status = AttemptStatus.AUTO_SUBMITTED if auto else AttemptStatus.SUBMITTED
        attempt.submitted_at = now
        attempt.time_spent = int((now - attempt.started_at).total_seconds())
        attempt.recalculate_score()

    # ==================== Student flow ====================

    @db_exception
    def start_attempt(self, quiz_id: int, current_user: User) -> dict:
        quiz = self.quiz_service.get_quiz(quiz_id)
        if not quiz.is_published:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Quiz not found or not published",
            )

        now = utcnow()
        if quiz.available_from and now < quiz.available_from:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Quiz is not yet available"
            )
        if quiz.available_until and now > quiz.available_until:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Quiz is no longer available",
            )

        if not (can_manage_quiz(quiz, current_user) or can_manage_course(quiz.course, current_user)):
            enrollment = self.course_service.find_enrollment(current_user.id, quiz.course_id)
            if not enrollment or not enrollment.is_accessible:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="You must be enrolled in this course to take this quiz",
                )

        previous = (
            self.db.query(QuizAttempt)
            .filter(QuizAttempt.quiz_id == quiz.id, QuizAttempt.student_id == current_user.id)
            .all()
        )
        in_progress = next(
            (a for a in previous if a.status == AttemptStatus.IN_PROGRESS), None
        )
        if in_progress:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "message": "You have an existing attempt in progress",
                    "attempt_id": in_progress.id,
                },
            )
        if len(previous) >= quiz.attempts_allowed:
            logger.warning(f"User {current_user.id} reached attempt limit on quiz {quiz.id}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Maximum attempts reached"
            )

        attempt = QuizAttempt(
            quiz_id=quiz.id,
            student_id=current_user.id,
            attempt_number=len(previous) + 1,
            status=AttemptStatus.IN_PROGRESS,
            score=0,
            percentage=0,
            is_passed=False,
            started_at=now,
        )
        self.db.add(attempt)
        self.db.commit()
        self.db.refresh(attempt)

        logger.info(
            f"Quiz attempt started: {attempt.id} "
            f"(quiz {quiz.id}, user {current_user.id}, #{attempt.attempt_number})"
        )
        return {
            "attempt_id": attempt.id,
            "attempt_number": attempt.attempt_number,
            "started_at": attempt.started_at,
            "quiz": serialize_quiz(quiz, reveal=False, shuffle=True),
        }

    @db_exception
    def answer(self, attempt_id: int, request: AnswerRequest, current_user: User) -> dict:
        attempt = self._get_own_in_progress(attempt_id, current_user)

        now = utcnow()
        if time_limit_exceeded(attempt, now):
            self._finish(attempt, now, auto=True)
            self.db.commit()
            logger.info(f"Quiz attempt {attempt.id} auto-submitted after time limit")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Time limit exceeded; the attempt has been submitted",
            )

        question = next(
            (q for q in attempt.quiz.questions if q.id == request.question_id), None
        )
        if not question:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Question not found"
            )

        is_correct, points = auto_grade(question, request.answer)
        answer = next((a for a in attempt.answers if a.question_id == question.id), None)
        if answer is None:
            answer = QuizAnswer(question_id=question.id)
            attempt.answers.append(answer)
        answer.answer = request.answer
        answer.is_correct = is_correct
        answer.points_earned = points
        answer.time_spent = request.time_spent
        answer.feedback = None

        attempt.recalculate_score()
        self.db.commit()
        return {"is_correct": is_correct, "points_earned": points}

    @db_exception
    def submit(self, attempt_id: int, current_user: User) -> dict:
        attempt = self._get_own_in_progress(attempt_id, current_user)
        quiz = attempt.quiz

        now = utcnow()
        self._finish(attempt, now, auto=time_limit_exceeded(attempt, now))
        self.db.commit()
        self.db.refresh(attempt)

        logger.info(
            f"Quiz submitted: attempt {attempt.id} quiz {quiz.id} "
            f"({attempt.percentage}%, passed={attempt.is_passed})"
        )

        results = None
        if quiz.show_results in ("immediately", "after-submission"):
            results = build_results(attempt, include_answers=quiz.show_correct_answers)
        return {"attempt": attempt, "results": results}

    def get_results(self, attempt_id: int, current_user: User) -> dict:
        attempt = self.get_attempt(attempt_id)
        quiz = attempt.quiz
        is_manager = can_manage_quiz(quiz, current_user)

        if not is_manager:
            if attempt.student_id != current_user.id:
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

            visible = False
            if quiz.show_results in ("immediately", "after-submission"):
                visible = attempt.status in AttemptStatus.FINISHED
            elif quiz.show_results == "after-due-date":
                visible = (
                    attempt.status in AttemptStatus.FINISHED
                    and quiz.due_date is not None
                    and utcnow() > quiz.due_date
                )
            if not visible:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Results are not available yet",
                )

        return {
            "attempt": attempt,
            "quiz": {
                "id": quiz.id,
                "title": quiz.title,
                "course_id": quiz.course_id,
                "course_title": quiz.course.title,
                "passing_score": quiz.passing_score,
                "total_points": quiz.total_points,
            },
            "results": build_results(
                attempt, include_answers=is_manager or quiz.show_correct_answers
            ),
        }

    def get_student_attempts(
        self,
        current_user: User,
        page: int = 1,
        size: int = 10,
        course_id: Optional[int] = None,
        attempt_status: Optional[str] = None,
    ) -> Tuple[List[dict], dict]:
        query = (
            self.db.query(QuizAttempt)
            .options(joinedload(QuizAttempt.quiz).joinedload(Quiz.course))
            .join(Quiz, QuizAttempt.quiz_id == Quiz.id)
            .filter(QuizAttempt.student_id == current_user.id)
        )
        if course_id:
            query = query.filter(Quiz.course_id == course_id)
        if attempt_status:
            query = query.filter(QuizAttempt.status == attempt_status)
        query = query.order_by(QuizAttempt.started_at.desc(), QuizAttempt.id.desc())

        attempts, meta = paginate(query, page, size)
        items = [
            {
                "id": a.id,
                "quiz_id": a.quiz_id,
                "quiz_title": a.quiz.title,
                "course_id": a.quiz.course_id,
                "course_title": a.quiz.course.title,
                "attempt_number": a.attempt_number,
                "status": a.status,
                "score": a.score,
                "percentage": a.percentage,
                "is_passed": a.is_passed,
                "started_at": a.started_at,
                "submitted_at": a.submitted_at,
                "time_spent": a.time_spent,
            }
            for a in attempts
        ]
        return items, meta

    # ==================== Instructor side ====================

    def get_quiz_attempts(
        self,
        quiz_id: int,
        current_user: User,
        page: int = 1,
        size: int = 20,
        attempt_status: Optional[str] = None,
        student_id: Optional[int] = None,
    ) -> Tuple[List[dict], dict]:
        quiz = self.quiz_service.get_quiz(quiz_id)
        ensure_can_manage_quiz(quiz, current_user)

        query = (
            self.db.query(QuizAttempt)
            .options(
                joinedload(QuizAttempt.student),
                joinedload(QuizAttempt.quiz).selectinload(Quiz.questions),
                selectinload(QuizAttempt.answers),
            )
            .filter(QuizAttempt.quiz_id == quiz.id)
        )
        if attempt_status:
            query = query.filter(QuizAttempt.status == attempt_status)
        if student_id:
            query = query.filter(QuizAttempt.student_id == student_id)
        query = query.order_by(QuizAttempt.started_at.desc(), QuizAttempt.id.desc())

        attempts, meta = paginate(query, page, size)
        items = [
            {
                "id": a.id,
                "student_id": a.student_id,
                "student_name": a.student.full_name,
                "student_email": a.student.email,
                "attempt_number": a.attempt_number,
                "status": a.status,
                "score": a.score,
                "percentage": a.percentage,
                "is_passed": a.is_passed,
                "started_at": a.started_at,
                "submitted_at": a.submitted_at,
                "feedback": a.feedback,
                "progress": attempt_progress(a),
            }
            for a in attempts
        ]
        return items, meta

    @db_exception
    def set_feedback(self, attempt_id: int, feedback: str, current_user: User) -> QuizAttempt:
        attempt = self.get_attempt(attempt_id)
        ensure_can_manage_quiz(attempt.quiz, current_user)
        attempt.feedback = feedback
        self.db.commit()
        self.db.refresh(attempt)
        return attempt

    @db_exception
    def delete_attempt(self, attempt_id: int, current_user: User) -> bool:
        attempt = self.get_attempt(attempt_id)
        ensure_can_manage_quiz(attempt.quiz, current_user)
        self.db.delete(attempt)
        self.db.commit()
        logger.info(f"Quiz attempt deleted: {attempt_id} by user {current_user.id}")
        return True

    @db_exception
    def grade_answer(
        self, attempt_id: int, request: GradeRequest, current_user: User
    ) -> QuizAttempt:
        attempt = self.get_attempt(attempt_id)
        ensure_can_manage_quiz(attempt.quiz, current_user)

        answer = next((a for a in attempt.answers if a.question_id == request.question_id), None)
        if not answer:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Answer not found")
        question = answer.question

        if request.points < 0 or request.points > question.points:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Points must be between 0 and {question.points}",
            )

        answer.points_earned = request.points
        answer.is_correct = request.points == question.points
        if request.feedback is not None:
            answer.feedback = request.feedback

        attempt.recalculate_score()
        self.db.commit()
        self.db.refresh(attempt)

        logger.info(
            f"Answer graded: attempt {attempt.id} question {request.question_id} "
            f"{request.points}/{question.points}"
        )
        return attempt
