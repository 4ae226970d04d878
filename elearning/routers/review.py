# elearning/routers/review.py

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from elearning.core.database import get_db
from elearning.core.dependencies import (
    get_current_admin,
    get_current_instructor,
    get_current_instructor_or_admin,
    get_current_user,
)
from elearning.models.user import User
from elearning.schemas.review import (
    ApproveRequest,
    CourseReviewListResponse,
    HelpfulResponse,
    ReplyCreate,
    ReviewCreate,
    ReviewListResponse,
    ReviewResponse,
    ReviewUpdate,
)
from elearning.services.review import ReviewService

router = APIRouter(
    prefix="/reviews",
    tags=["Reviews"],
    responses={404: {"description": "Not found"}},
)


@router.post("/", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
def create_review(
    review_in: ReviewCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Review a course the current user is enrolled in. One review per course.
    """
    return ReviewService(db).create_review(review_in, current_user)


@router.get("/course/{course_id}", response_model=CourseReviewListResponse)
def read_course_reviews(
    course_id: int,
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    rating: Optional[int] = Query(None, ge=1, le=5),
    verified: Optional[bool] = None,
    sort: Literal["newest", "oldest", "highest", "lowest", "helpful"] = "newest",
    db: Session = Depends(get_db),
):
    """
    Approved reviews of a course with the rating summary.
    """
    reviews, pagination, summary = ReviewService(db).get_course_reviews(
        course_id, page=page, size=size, rating=rating, verified=verified, sort=sort
    )
    return {"reviews": reviews, **pagination, "rating_summary": summary}


@router.get("/admin/all", response_model=ReviewListResponse)
def admin_read_reviews(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    is_approved: Optional[bool] = None,
    reported: Optional[bool] = None,
    course_id: Optional[int] = None,
    rating: Optional[int] = Query(None, ge=1, le=5),
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    reviews, pagination = ReviewService(db).get_all_reviews(
        page=page,
        size=size,
        is_approved=is_approved,
        reported=reported,
        course_id=course_id,
        rating=rating,
    )
    return {"reviews": reviews, **pagination}


@router.get("/instructor/my-courses", response_model=ReviewListResponse)
def instructor_read_reviews(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    course_id: Optional[int] = None,
    current_user: User = Depends(get_current_instructor),
    db: Session = Depends(get_db),
):
    reviews, pagination = ReviewService(db).get_instructor_reviews(
        current_user, page=page, size=size, course_id=course_id
    )
    return {"reviews": reviews, **pagination}


@router.get("/{review_id}", response_model=ReviewResponse)
def read_review(review_id: int, db: Session = Depends(get_db)):
    return ReviewService(db).get_review(review_id)


@router.put("/{review_id}", response_model=ReviewResponse)
def update_review(
    review_id: int,
    review_in: ReviewUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ReviewService(db).update_review(review_id, review_in, current_user)


@router.delete("/{review_id}")
def delete_review(
    review_id: int,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    ReviewService(db).delete_review(review_id)
    return {"message": "Review deleted successfully"}


@router.post("/{review_id}/reply", response_model=ReviewResponse)
def reply_to_review(
    review_id: int,
    reply_in: ReplyCreate,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    """
    Reply as the course instructor or an admin.
    """
    return ReviewService(db).add_reply(review_id, reply_in, current_user)


@router.delete("/{review_id}/reply/{reply_id}")
def delete_reply(
    review_id: int,
    reply_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ReviewService(db).delete_reply(review_id, reply_id, current_user)
    return {"message": "Reply deleted successfully"}


@router.put("/{review_id}/helpful", response_model=HelpfulResponse)
def mark_review_helpful(
    review_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ReviewService(db).mark_helpful(review_id)


@router.put("/{review_id}/report")
def report_review(
    review_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    review = ReviewService(db).report(review_id, current_user)
    return {"message": "Review reported successfully", "report_count": review.report_count}


@router.put("/{review_id}/approve", response_model=ReviewResponse)
def approve_review(
    review_id: int,
    request: ApproveRequest,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return ReviewService(db).set_approval(review_id, request.is_approved)
