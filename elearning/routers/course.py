# elearning/routers/course.py

from typing import List, Literal, Optional

from fastapi import APIRouter, Body, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

from elearning.core.database import get_db
from elearning.core.dependencies import (
    get_current_admin,
    get_current_instructor,
    get_current_instructor_or_admin,
    get_optional_user,
)
from elearning.models.user import User
from elearning.schemas.course import (
    BulkActionResult,
    BulkCourseAction,
    CategoryCount,
    CategoryName,
    CourseCreate,
    CourseDetailResponse,
    CourseListResponse,
    CourseResponse,
    CourseStatusUpdate,
    CourseUpdate,
    LevelName,
    PublishRequest,
)
from elearning.services.course import CourseService
from elearning.services.course_analytics import CourseAnalyticsService
from elearning.utils.timeframe import Timeframe

router = APIRouter(
    prefix="/courses",
    tags=["Courses"],
    responses={404: {"description": "Not found"}},
)

CourseStatusFilter = Literal["published", "draft", "featured"]


@router.get("/", response_model=CourseListResponse)
def read_courses(
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(12, ge=1, le=100, description="Items per page"),
    category: Optional[CategoryName] = None,
    level: Optional[LevelName] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    search: Optional[str] = None,
    featured: Optional[bool] = None,
    sort_by: Literal[
        "created_at", "price", "average_rating", "total_enrollments", "title"
    ] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """
    Retrieve a paginated list of published courses.
    """
    courses, pagination = CourseService(db).get_courses(
        page=page,
        size=size,
        category=category,
        level=level,
        min_price=min_price,
        max_price=max_price,
        min_rating=min_rating,
        search=search,
        featured=featured,
        sort_by=sort_by,
        sort_order=sort_order,
        current_user=current_user,
    )
    return {"courses": courses, **pagination}


@router.get("/categories", response_model=List[CategoryCount])
def read_categories(db: Session = Depends(get_db)):
    return CourseService(db).get_categories()


@router.get("/featured", response_model=List[CourseResponse])
def read_featured_courses(
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    return CourseService(db).get_featured(current_user)


@router.get("/popular", response_model=List[CourseResponse])
def read_popular_courses(
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    return CourseService(db).get_popular(current_user)


@router.get("/my-courses", response_model=CourseListResponse)
def read_my_courses(
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    course_status: Optional[Literal["published", "draft"]] = Query(None, alias="status"),
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    """
    Courses created by the current instructor, drafts included.
    """
    courses, pagination = CourseService(db).get_instructor_courses(
        current_user, page=page, size=size, course_status=course_status
    )
    return {"courses": courses, **pagination}


# ==================== Admin ====================


@router.get("/admin/all", response_model=CourseListResponse)
def admin_read_courses(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    course_status: Optional[CourseStatusFilter] = Query(None, alias="status"),
    category: Optional[CategoryName] = None,
    level: Optional[LevelName] = None,
    instructor_id: Optional[int] = None,
    search: Optional[str] = None,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    courses, pagination = CourseService(db).get_all_courses(
        page=page,
        size=size,
        course_status=course_status,
        category=category,
        level=level,
        instructor_id=instructor_id,
        search=search,
    )
    return {"courses": courses, **pagination}


@router.get("/admin/dashboard")
def admin_dashboard(
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """
    Platform-wide course overview, recent activity, category distribution,
    top performers and courses waiting for review.
    """
    return CourseAnalyticsService(db).get_admin_dashboard()


@router.get("/admin/instructors")
def admin_instructors(
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return {"instructors": CourseService(db).get_instructors()}


@router.put("/admin/bulk-action", response_model=BulkActionResult)
def admin_bulk_action(
    request: BulkCourseAction,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return CourseService(db).bulk_action(request, admin)


@router.put("/admin/{course_id}/status", response_model=CourseResponse)
def admin_update_course_status(
    course_id: int,
    request: CourseStatusUpdate,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return CourseService(db).admin_update_status(course_id, request, admin)


@router.get("/admin/{course_id}/analytics")
def admin_course_analytics(
    course_id: int,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return CourseAnalyticsService(db).get_admin_course_analytics(course_id)


@router.delete("/admin/{course_id}")
def admin_delete_course(
    course_id: int,
    force: bool = False,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """
    Delete any course. Courses with enrollments need `force=true`,
    which removes the enrollments as well.
    """
    return CourseService(db).admin_delete_course(course_id, admin, force=force)


# ==================== Instructor analytics ====================


@router.get("/instructor/dashboard-analytics")
def instructor_dashboard(
    timeframe: Timeframe = "90d",
    current_user: User = Depends(get_current_instructor),
    db: Session = Depends(get_db),
):
    return CourseAnalyticsService(db).get_instructor_dashboard(current_user, timeframe)


@router.get("/instructor/performance-comparison")
def instructor_performance_comparison(
    current_user: User = Depends(get_current_instructor),
    db: Session = Depends(get_db),
):
    return CourseAnalyticsService(db).get_performance_comparison(current_user)


@router.get("/instructor/student-analytics")
def instructor_student_analytics(
    course_id: Optional[int] = None,
    current_user: User = Depends(get_current_instructor),
    db: Session = Depends(get_db),
):
    return CourseAnalyticsService(db).get_student_analytics(current_user, course_id)


# ==================== Single course ====================


@router.post("/", response_model=CourseResponse, status_code=status.HTTP_201_CREATED)
def create_course(
    course_in: CourseCreate,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    """
    Create a new course owned by the current user.
    """
    return CourseService(db).create_course(course_in, current_user)


@router.get("/{course_id}", response_model=CourseDetailResponse)
def read_course(
    course_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """
    Retrieve a course with its instructor and curriculum.
    """
    return CourseService(db).get_course_detail(course_id, current_user)


@router.put("/{course_id}", response_model=CourseResponse)
def update_course(
    course_id: int,
    course_in: CourseUpdate,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    return CourseService(db).update_course(course_id, course_in, current_user)


@router.delete("/{course_id}")
def delete_course(
    course_id: int,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    CourseService(db).delete_course(course_id, current_user)
    return {"message": "Course deleted successfully"}


@router.put("/{course_id}/publish", response_model=CourseResponse)
def publish_course(
    course_id: int,
    request: Optional[PublishRequest] = Body(None),
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    """
    Toggle publication, or set it explicitly with `is_published`.
    """
    target = request.is_published if request else None
    return CourseService(db).publish_course(course_id, current_user, is_published=target)


@router.post("/{course_id}/thumbnail", response_model=CourseResponse)
async def upload_course_thumbnail(
    course_id: int,
    image: UploadFile = File(...),
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    return await CourseService(db).upload_thumbnail(course_id, image, current_user)


@router.get("/{course_id}/analytics")
def course_analytics(
    course_id: int,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    return CourseAnalyticsService(db).get_course_analytics(course_id, current_user)
