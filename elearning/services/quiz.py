# elearning/services/quiz.py
import logging
import random
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from elearning.core.decorator import db_exception
from elearning.models.lesson import Lesson
from elearning.models.quiz import Quiz, QuizQuestion
from elearning.models.quiz_attempt import AttemptStatus, QuizAttempt
from elearning.models.user import User
from elearning.schemas.quiz import QuestionCreate, QuizCreate, QuizResponse, QuizUpdate
from elearning.services.course import CourseService, can_manage_course, ensure_can_manage
from elearning.utils.pagination import paginate
from elearning.utils.rounding import percentage, round_half_up

logger = logging.getLogger(__name__)

# Quiz fields an update may reset to null
CLEARABLE_FIELDS = {
    "description",
    "lesson_id",
    "time_limit",
    "due_date",
    "available_from",
    "available_until",
}


def can_manage_quiz(quiz: Quiz, user: Optional[User]) -> bool:
    return user is not None and (user.is_admin or quiz.instructor_id == user.id)


def ensure_can_manage_quiz(quiz: Quiz, user: User) -> None:
    if not can_manage_quiz(quiz, user):
        logger.warning(f"User {user.id} denied access to quiz {quiz.id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


def build_questions(questions_in: List[QuestionCreate]) -> List[QuizQuestion]:
    return [
        QuizQuestion(
            position=position,
            question=q.question,
            type=q.type,
            options=[option.model_dump() for option in q.options],
            correct_answer=q.correct_answer,
            explanation=q.explanation,
            points=q.points,
            difficulty=q.difficulty,
        )
        for position, q in enumerate(questions_in, start=1)
    ]


def serialize_question(question: QuizQuestion, reveal: bool) -> dict:
    data = {
        "id": question.id,
        "position": question.position,
        "question": question.question,
        "type": question.type,
        "points": question.points,
        "difficulty": question.difficulty,
    }
    if reveal:
        data["options"] = [dict(option) for option in question.options or []]
        data["correct_answer"] = question.correct_answer
        data["explanation"] = question.explanation
    else:
        data["options"] = [{"text": option.get("text")} for option in question.options or []]
    return data


def serialize_quiz(quiz: Quiz, reveal: bool, shuffle: bool = False) -> dict:
    """Quiz with its questions; the answer key is only included when ``reveal``"""
    data = QuizResponse.model_validate(quiz).model_dump()
    questions = [serialize_question(q, reveal) for q in quiz.questions]
    if shuffle:
        if quiz.shuffle_questions:
            random.shuffle(questions)
        if quiz.shuffle_options:
            for question in questions:
                random.shuffle(question["options"])
    data["questions"] = questions
    return data


def _average(values) -> int:
    values = list(values)
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


class QuizService:
    def __init__(self, db: Session):
        self.db = db
        self.course_service = CourseService(db)

    def get_quiz(self, quiz_id: int) -> Quiz:
        quiz = (
            self.db.query(Quiz)
            .options(joinedload(Quiz.course), selectinload(Quiz.questions))
            .filter(Quiz.id == quiz_id)
            .first()
        )
        if not quiz:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")
        return quiz

    def _check_lesson(self, lesson_id: Optional[int], course_id: int) -> None:
        if lesson_id is None:
            return
        lesson = (
            self.db.query(Lesson.id)
            .filter(Lesson.id == lesson_id, Lesson.course_id == course_id)
            .first()
        )
        if not lesson:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Lesson does not belong to this course",
            )

    def _attempt_counts(self, quiz_ids: List[int]) -> dict:
        if not quiz_ids:
            return {}
        rows = (
            self.db.query(QuizAttempt.quiz_id, func.count(QuizAttempt.id))
            .filter(QuizAttempt.quiz_id.in_(quiz_ids))
            .group_by(QuizAttempt.quiz_id)
            .all()
        )
        return {quiz_id: count for quiz_id, count in rows}

    def _summaries(self, quizzes: List[Quiz]) -> List[dict]:
        counts = self._attempt_counts([q.id for q in quizzes])
        items = []
        for quiz in quizzes:
            data = QuizResponse.model_validate(quiz).model_dump()
            data["question_count"] = len(quiz.questions)
            data["attempt_count"] = counts.get(quiz.id, 0)
            items.append(data)
        return items

    # ==================== Authoring ====================

    @db_exception
    def create_quiz(self, quiz_in: QuizCreate, current_user: User) -> Quiz:
        course = self.course_service.get_course(quiz_in.course_id)
        ensure_can_manage(course, current_user, "add quizzes to")
        self._check_lesson(quiz_in.lesson_id, course.id)

        if quiz_in.is_published and not quiz_in.questions:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot publish a quiz without questions",
            )

        quiz = Quiz(
            **quiz_in.model_dump(exclude={"questions"}),
            instructor_id=current_user.id,
        )
        quiz.questions = build_questions(quiz_in.questions)
        quiz.recalculate_total_points()

        self.db.add(quiz)
        self.db.commit()
        self.db.refresh(quiz)

        logger.info(
            f"Quiz created: {quiz.id} in course {course.id} "
            f"({len(quiz.questions)} questions, {quiz.total_points} points)"
        )
        return quiz

    def get_instructor_quizzes(
        self,
        current_user: User,
        page: int = 1,
        size: int = 10,
        course_id: Optional[int] = None,
        is_published: Optional[bool] = None,
    ) -> Tuple[List[dict], dict]:
        query = (
            self.db.query(Quiz)
            .options(selectinload(Quiz.questions))
            .filter(Quiz.instructor_id == current_user.id)
        )
        if course_id:
            query = query.filter(Quiz.course_id == course_id)
        if is_published is not None:
            query = query.filter(Quiz.is_published == is_published)
        query = query.order_by(Quiz.created_at.desc(), Quiz.id.desc())

        quizzes, meta = paginate(query, page, size)
        return self._summaries(quizzes), meta

    def get_course_quizzes(self, course_id: int, current_user: User) -> List[dict]:
        course = self.course_service.get_course(course_id)
        query = (
            self.db.query(Quiz)
            .options(selectinload(Quiz.questions))
            .filter(Quiz.course_id == course.id)
        )

        if not can_manage_course(course, current_user):
            enrollment = self.course_service.find_enrollment(current_user.id, course.id)
            if not enrollment or not enrollment.is_accessible:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="You must be enrolled in this course to view its quizzes",
                )
            query = query.filter(Quiz.is_published == True)

        return self._summaries(query.order_by(Quiz.created_at, Quiz.id).all())

    def get_quiz_for(self, quiz_id: int, current_user: User) -> dict:
        quiz = self.get_quiz(quiz_id)
        reveal = can_manage_quiz(quiz, current_user) or can_manage_course(
            quiz.course, current_user
        )
        if not reveal and not quiz.is_published:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")
        return serialize_quiz(quiz, reveal)

    @db_exception
    def update_quiz(self, quiz_id: int, quiz_in: QuizUpdate, current_user: User) -> Quiz:
        quiz = self.get_quiz(quiz_id)
        ensure_can_manage_quiz(quiz, current_user)

        data = quiz_in.model_dump(exclude_unset=True, exclude={"questions"})
        if "lesson_id" in data:
            self._check_lesson(data["lesson_id"], quiz.course_id)

        if quiz_in.questions is not None:
            has_attempts = (
                self.db.query(QuizAttempt.id).filter(QuizAttempt.quiz_id == quiz.id).first()
            )
            if has_attempts:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Cannot change questions of a quiz that already has attempts",
                )
            quiz.questions = build_questions(quiz_in.questions)

        for field, value in data.items():
            if value is not None or field in CLEARABLE_FIELDS:
                setattr(quiz, field, value)

        quiz.recalculate_total_points()
        self.db.commit()
        self.db.refresh(quiz)
        logger.info(f"Quiz updated: {quiz.id} fields={sorted(data)}")
        return quiz

    @db_exception
    def delete_quiz(self, quiz_id: int, current_user: User) -> bool:
        quiz = self.get_quiz(quiz_id)
        ensure_can_manage_quiz(quiz, current_user)
        self.db.delete(quiz)
        self.db.commit()
        logger.info(f"Quiz deleted: {quiz_id}")
        return True

    @db_exception
    def toggle_publish(self, quiz_id: int, current_user: User) -> Quiz:
        quiz = self.get_quiz(quiz_id)
        ensure_can_manage_quiz(quiz, current_user)

        if not quiz.is_published and not quiz.questions:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot publish a quiz without questions",
            )
        quiz.is_published = not quiz.is_published
        self.db.commit()
        self.db.refresh(quiz)

        logger.info(f"Quiz {quiz.id} {'published' if quiz.is_published else 'unpublished'}")
        return quiz

    @db_exception
    def duplicate_quiz(self, quiz_id: int, current_user: User) -> Quiz:
        source = self.get_quiz(quiz_id)
        ensure_can_manage_quiz(source, current_user)

        copy = Quiz(
            title=f"{source.title} (Copy)",
            description=source.description,
            course_id=source.course_id,
            lesson_id=source.lesson_id,
            instructor_id=current_user.id,
            time_limit=source.time_limit,
            attempts_allowed=source.attempts_allowed,
            passing_score=source.passing_score,
            shuffle_questions=source.shuffle_questions,
            shuffle_options=source.shuffle_options,
            show_results=source.show_results,
            show_correct_answers=source.show_correct_answers,
            is_published=False,
            due_date=source.due_date,
            available_from=source.available_from,
            available_until=source.available_until,
        )
        copy.questions = [
            QuizQuestion(
                position=q.position,
                question=q.question,
                type=q.type,
                options=[dict(option) for option in q.options or []],
                correct_answer=q.correct_answer,
                explanation=q.explanation,
                points=q.points,
                difficulty=q.difficulty,
            )
            for q in source.questions
        ]
        copy.recalculate_total_points()

        self.db.add(copy)
        self.db.commit()
        self.db.refresh(copy)
        logger.info(f"Quiz {source.id} duplicated as {copy.id}")
        return copy

    # ==================== Reporting ====================

    def get_analytics(self, quiz_id: int, current_user: User) -> dict:
        quiz = self.get_quiz(quiz_id)
        ensure_can_manage_quiz(quiz, current_user)

        attempts = (
            self.db.query(QuizAttempt)
            .options(joinedload(QuizAttempt.student), selectinload(QuizAttempt.answers))
            .filter(QuizAttempt.quiz_id == quiz.id)
            .order_by(QuizAttempt.submitted_at.desc(), QuizAttempt.id.desc())
            .all()
        )
        timed = [a.time_spent for a in attempts if a.time_spent]

        analytics = {
            "total_attempts": len(attempts),
            "unique_students": len({a.student_id for a in attempts}),
            "average_score": _average(a.percentage for a in attempts),
            "pass_rate": percentage(sum(1 for a in attempts if a.is_passed), len(attempts)),
            "completion_rate": percentage(
                sum(1 for a in attempts if a.status in AttemptStatus.FINISHED), len(attempts)
            ),
            "average_time_spent": _average(timed),
        }

        question_analytics = []
        for index, question in enumerate(quiz.questions, start=1):
            answers = [
                answer
                for attempt in attempts
                for answer in attempt.answers
                if answer.question_id == question.id
            ]
            correct = sum(1 for a in answers if a.is_correct)
            question_analytics.append(
                {
                    "question_index": index,
                    "question_id": question.id,
                    "question_text": question.question,
                    "difficulty": question.difficulty,
                    "points": question.points,
                    "correct_answers": correct,
                    "total_answers": len(answers),
                    "correct_percentage": percentage(correct, len(answers)),
                    "average_time_spent": _average(a.time_spent for a in answers if a.time_spent),
                }
            )

        return {
            "quiz": {
                "id": quiz.id,
                "title": quiz.title,
                "total_points": quiz.total_points,
                "total_questions": len(quiz.questions),
            },
            "analytics": analytics,
            "question_analytics": question_analytics,
        }

    def get_stats_overview(self, current_user: User) -> dict:
        quizzes = (
            self.db.query(Quiz)
            .filter(Quiz.instructor_id == current_user.id)
            .order_by(Quiz.created_at.desc(), Quiz.id.desc())
            .all()
        )
        quiz_ids = [q.id for q in quizzes]
        attempts = (
            self.db.query(QuizAttempt)
            .options(joinedload(QuizAttempt.student), joinedload(QuizAttempt.quiz))
            .filter(QuizAttempt.quiz_id.in_(quiz_ids))
            .all()
            if quiz_ids
            else []
        )

        recent = sorted(
            attempts, key=lambda a: (a.submitted_at or a.started_at), reverse=True
        )[:5]

        performance = []
        for quiz in quizzes[:10]:
            rows = [a for a in attempts if a.quiz_id == quiz.id]
            performance.append(
                {
                    "id": quiz.id,
                    "title": quiz.title,
                    "total_attempts": len(rows),
                    "average_score": _average(a.percentage for a in rows),
                    "pass_rate": percentage(sum(1 for a in rows if a.is_passed), len(rows)),
                }
            )

        return {
            "stats": {
                "total_quizzes": len(quizzes),
                "published_quizzes": sum(1 for q in quizzes if q.is_published),
                "draft_quizzes": sum(1 for q in quizzes if not q.is_published),
                "total_attempts": len(attempts),
                "unique_students": len({a.student_id for a in attempts}),
                "average_score": _average(a.percentage for a in attempts),
                "pass_rate": percentage(sum(1 for a in attempts if a.is_passed), len(attempts)),
                "recent_attempts": [
                    {
                        "id": a.id,
                        "quiz_id": a.quiz_id,
                        "quiz_title": a.quiz.title,
                        "student_name": a.student.full_name,
                        "status": a.status,
                        "percentage": a.percentage,
                        "is_passed": a.is_passed,
                        "submitted_at": a.submitted_at,
                    }
                    for a in recent
                ],
            },
            "quiz_performance": performance,
        }
