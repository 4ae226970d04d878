# elearning/services/review.py
import logging
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from elearning.core.decorator import db_exception
from elearning.models.course import Course
from elearning.models.enrollment import EnrollmentStatus
from elearning.models.review import Review, ReviewReply
from elearning.models.user import User
from elearning.schemas.review import ReplyCreate, ReviewCreate, ReviewUpdate
from elearning.services.course import CourseService, can_manage_course
from elearning.utils.pagination import paginate
from elearning.utils.rounding import round_half_up

logger = logging.getLogger(__name__)

REVIEW_SORTS = {
    "newest": (Review.created_at.desc(),),
    "oldest": (Review.created_at.asc(),),
    "highest": (Review.rating.desc(), Review.created_at.desc()),
    "lowest": (Review.rating.asc(), Review.created_at.desc()),
    "helpful": (Review.helpful_votes.desc(), Review.created_at.desc()),
}


class ReviewService:
    def __init__(self, db: Session):
        self.db = db
        self.course_service = CourseService(db)

    def _query(self):
        return self.db.query(Review).options(
            joinedload(Review.student),
            joinedload(Review.course),
            selectinload(Review.replies).joinedload(ReviewReply.user),
        )

    def get_review(self, review_id: int) -> Review:
        review = self._query().filter(Review.id == review_id).first()
        if not review:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Review not found"
            )
        return review

    def update_course_rating(self, course_id: int) -> None:
        """Recompute the course rating counters from approved reviews"""
        average, count = (
            self.db.query(func.avg(Review.rating), func.count(Review.id))
            .filter(Review.course_id == course_id, Review.is_approved == True)
            .one()
        )
        course = self.db.query(Course).filter(Course.id == course_id).first()
        if course is None:
            return
        course.average_rating = round_half_up(average, 1) if count else 0
        course.total_ratings = count or 0

    def rating_summary(self, course_id: int) -> dict:
        rows = (
            self.db.query(Review.rating, func.count(Review.id))
            .filter(Review.course_id == course_id, Review.is_approved == True)
            .group_by(Review.rating)
            .all()
        )
        distribution = {score: 0 for score in range(1, 6)}
        for rating, count in rows:
            distribution[rating] = count
        total = sum(distribution.values())
        average = sum(score * n for score, n in distribution.items()) / total if total else 0
        return {
            "average_rating": round_half_up(average, 1) if total else 0,
            "total_reviews": total,
            "distribution": distribution,
        }

    # ==================== Student ====================

    @db_exception
    def create_review(self, review_in: ReviewCreate, current_user: User) -> Review:
        course = self.course_service.get_course(review_in.course_id)
        enrollment = self.course_service.find_enrollment(current_user.id, course.id)
        if not enrollment:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You must be enrolled in this course to review it",
            )

        existing = (
            self.db.query(Review.id)
            .filter(Review.course_id == course.id, Review.student_id == current_user.id)
            .first()
        )
        if existing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You have already reviewed this course",
            )

        review = Review(
            **review_in.model_dump(),
            student_id=current_user.id,
            is_verified=enrollment.status == EnrollmentStatus.COMPLETED,
            is_approved=True,
            helpful_votes=0,
            report_count=0,
        )
        self.db.add(review)
        self.db.flush()
        self.update_course_rating(course.id)
        self.db.commit()

        logger.info(f"Review created: {review.id} on course {course.id} ({review.rating}/5)")
        return self.get_review(review.id)

    def get_course_reviews(
        self,
        course_id: int,
        page: int = 1,
        size: int = 10,
        rating: Optional[int] = None,
        verified: Optional[bool] = None,
        sort: str = "newest",
    ) -> Tuple[List[Review], dict, dict]:
        course = self.course_service.get_course(course_id)
        query = self._query().filter(Review.course_id == course.id, Review.is_approved == True)
        if rating:
            query = query.filter(Review.rating == rating)
        if verified is not None:
            query = query.filter(Review.is_verified == verified)

        query = query.order_by(*REVIEW_SORTS.get(sort, REVIEW_SORTS["newest"]), Review.id.desc())
        items, meta = paginate(query, page, size)
        return items, meta, self.rating_summary(course.id)

    @db_exception
    def update_review(self, review_id: int, review_in: ReviewUpdate, current_user: User) -> Review:
        review = self.get_review(review_id)
        if review.student_id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only update your own reviews",
            )

        data = review_in.model_dump(exclude_unset=True)
        for field, value in data.items():
            if value is not None or field == "title":
                setattr(review, field, value)

        self.db.flush()
        self.update_course_rating(review.course_id)
        self.db.commit()
        logger.info(f"Review updated: {review.id}")
        return self.get_review(review.id)

    @db_exception
    def delete_review(self, review_id: int) -> bool:
        review = self.get_review(review_id)
        course_id = review.course_id
        self.db.delete(review)
        self.db.flush()
        self.update_course_rating(course_id)
        self.db.commit()
        logger.info(f"Review deleted: {review_id} from course {course_id}")
        return True

    # ==================== Replies and votes ====================

    @db_exception
    def add_reply(self, review_id: int, reply_in: ReplyCreate, current_user: User) -> Review:
        review = self.get_review(review_id)
        if not can_manage_course(review.course, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the course instructor or an admin can reply to reviews",
            )

        review.replies.append(ReviewReply(user_id=current_user.id, message=reply_in.message))
        self.db.commit()
        logger.info(f"Reply added to review {review.id} by user {current_user.id}")
        return self.get_review(review.id)

    @db_exception
    def delete_reply(self, review_id: int, reply_id: int, current_user: User) -> bool:
        review = self.get_review(review_id)
        reply = next((r for r in review.replies if r.id == reply_id), None)
        if not reply:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reply not found")
        if reply.user_id != current_user.id and not current_user.is_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only delete your own replies",
            )

        review.replies.remove(reply)
        self.db.commit()
        return True

    @db_exception
    def mark_helpful(self, review_id: int) -> Review:
        review = self.get_review(review_id)
        review.helpful_votes = (review.helpful_votes or 0) + 1
        self.db.commit()
        return review

    @db_exception
    def report(self, review_id: int, current_user: User) -> Review:
        review = self.get_review(review_id)
        review.report_count = (review.report_count or 0) + 1
        self.db.commit()
        logger.warning(
            f"Review {review.id} reported by user {current_user.id} "
            f"({review.report_count} reports)"
        )
        return review

    # ==================== Admin / instructor ====================

    def get_all_reviews(
        self,
        page: int = 1,
        size: int = 20,
        is_approved: Optional[bool] = None,
        reported: Optional[bool] = None,
        course_id: Optional[int] = None,
        rating: Optional[int] = None,
    ) -> Tuple[List[Review], dict]:
        query = self._query()
        if is_approved is not None:
            query = query.filter(Review.is_approved == is_approved)
        if reported:
            query = query.filter(Review.report_count > 0)
        if course_id:
            query = query.filter(Review.course_id == course_id)
        if rating:
            query = query.filter(Review.rating == rating)
        query = query.order_by(Review.created_at.desc(), Review.id.desc())
        return paginate(query, page, size)

    @db_exception
    def set_approval(self, review_id: int, is_approved: bool) -> Review:
        review = self.get_review(review_id)
        review.is_approved = is_approved
        self.db.flush()
        self.update_course_rating(review.course_id)
        self.db.commit()
        logger.info(f"Review {review.id} approval set to {is_approved}")
        return self.get_review(review.id)

    def get_instructor_reviews(
        self,
        instructor: User,
        page: int = 1,
        size: int = 20,
        course_id: Optional[int] = None,
    ) -> Tuple[List[Review], dict]:
        query = self._query().join(Course, Review.course_id == Course.id).filter(
            Course.instructor_id == instructor.id
        )
        if course_id:
            query = query.filter(Review.course_id == course_id)
        query = query.order_by(Review.created_at.desc(), Review.id.desc())
        return paginate(query, page, size)
