# elearning/routers/enrollment.py

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from elearning.core.database import get_db
from elearning.core.dependencies import (
    get_current_admin,
    get_current_instructor_or_admin,
    get_current_student,
    get_current_user,
)
from elearning.models.user import User
from elearning.schemas.enrollment import (
    AdminNoteRequest,
    BulkEnrollRequest,
    BulkEnrollResult,
    CertificateResponse,
    CourseEnrollmentListResponse,
    EnrollmentDetailResponse,
    EnrollmentListResponse,
    EnrollmentNoteResponse,
    EnrollmentStatusName,
    EnrollRequest,
    ExtendAccessRequest,
    LessonCompletionRequest,
    ManualEnrollRequest,
    RatingRequest,
    StatusUpdateRequest,
)
from elearning.services.enrollment import EnrollmentService
from elearning.utils.timeframe import Timeframe

router = APIRouter(
    prefix="/enrollments",
    tags=["Enrollments"],
    responses={404: {"description": "Not found"}},
)


@router.post(
    "/", response_model=EnrollmentDetailResponse, status_code=status.HTTP_201_CREATED
)
def enroll(
    request: EnrollRequest,
    current_user: User = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    """
    Enroll the current student in a published course.
    The payment is recorded at the course's effective price.
    """
    return EnrollmentService(db).enroll(request, current_user)


@router.get("/", response_model=EnrollmentListResponse)
def read_my_enrollments(
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    enrollment_status: Optional[EnrollmentStatusName] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    enrollments, pagination = EnrollmentService(db).get_my_enrollments(
        current_user, page=page, size=size, enrollment_status=enrollment_status
    )
    return {"enrollments": enrollments, **pagination}


# ==================== Admin ====================


@router.post("/bulk-enroll", response_model=BulkEnrollResult)
def bulk_enroll(
    request: BulkEnrollRequest,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return EnrollmentService(db).bulk_enroll(request)


@router.post(
    "/manual-enroll",
    response_model=EnrollmentDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
def manual_enroll(
    request: ManualEnrollRequest,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return EnrollmentService(db).manual_enroll(request)


@router.get("/admin/overview")
def admin_overview(
    timeframe: Timeframe = "30d",
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """
    Enrollment totals, revenue, recent activity, daily trends and top courses.
    """
    return EnrollmentService(db).get_admin_overview(timeframe)


@router.get("/admin/search", response_model=EnrollmentListResponse)
def admin_search(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    student_email: Optional[str] = None,
    student_name: Optional[str] = None,
    course_title: Optional[str] = None,
    enrollment_status: Optional[str] = Query(None, alias="status"),
    payment_status: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    completion_min: Optional[int] = Query(None, ge=0, le=100),
    completion_max: Optional[int] = Query(None, ge=0, le=100),
    sort_by: Literal["enrollment_date", "completion_percentage", "payment_amount"] = (
        "enrollment_date"
    ),
    sort_order: Literal["asc", "desc"] = "desc",
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    enrollments, pagination = EnrollmentService(db).search(
        page=page,
        size=size,
        student_email=student_email,
        student_name=student_name,
        course_title=course_title,
        enrollment_status=enrollment_status,
        payment_status=payment_status,
        date_from=date_from,
        date_to=date_to,
        completion_min=completion_min,
        completion_max=completion_max,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {"enrollments": enrollments, **pagination}


# ==================== Instructor ====================


@router.get("/course/{course_id}", response_model=CourseEnrollmentListResponse)
def read_course_enrollments(
    course_id: int,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    enrollment_status: Optional[EnrollmentStatusName] = Query(None, alias="status"),
    search: Optional[str] = None,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    """
    Enrollments of one course with status counts, average completion and revenue.
    """
    enrollments, pagination, stats = EnrollmentService(db).get_course_enrollments(
        course_id,
        current_user,
        page=page,
        size=size,
        enrollment_status=enrollment_status,
        search=search,
    )
    return {"enrollments": enrollments, **pagination, "stats": stats}


@router.get("/course/{course_id}/export")
def export_course_enrollments(
    course_id: int,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    content = EnrollmentService(db).export_course_enrollments(course_id, current_user)
    return Response(
        content=content,
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="enrollments-{course_id}.csv"'
        },
    )


# ==================== Single enrollment ====================


@router.get("/{enrollment_id}", response_model=EnrollmentDetailResponse)
def read_enrollment(
    enrollment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return EnrollmentService(db).get_enrollment_for(enrollment_id, current_user)


@router.put("/{enrollment_id}/progress", response_model=EnrollmentDetailResponse)
def complete_lesson(
    enrollment_id: int,
    request: LessonCompletionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Mark a lesson of the enrolled course as completed and recompute progress.
    """
    return EnrollmentService(db).complete_lesson(enrollment_id, request, current_user)


@router.post("/{enrollment_id}/certificate", response_model=CertificateResponse)
def issue_certificate(
    enrollment_id: int,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Issue the course certificate. Asking again returns the existing one.
    """
    certificate, issued = EnrollmentService(db).issue_certificate(
        enrollment_id, current_user
    )
    response.status_code = status.HTTP_201_CREATED if issued else status.HTTP_200_OK
    return certificate


@router.post("/{enrollment_id}/review", response_model=EnrollmentDetailResponse)
def rate_enrollment(
    enrollment_id: int,
    request: RatingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return EnrollmentService(db).rate(enrollment_id, request, current_user)


@router.put("/{enrollment_id}/status", response_model=EnrollmentDetailResponse)
def update_enrollment_status(
    enrollment_id: int,
    request: StatusUpdateRequest,
    current_user: User = Depends(get_current_instructor_or_admin),
    db: Session = Depends(get_db),
):
    return EnrollmentService(db).update_status(enrollment_id, request, current_user)


@router.put("/{enrollment_id}/admin-notes", response_model=EnrollmentNoteResponse)
def add_admin_note(
    enrollment_id: int,
    request: AdminNoteRequest,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return EnrollmentService(db).add_admin_note(enrollment_id, request.content)


@router.put("/{enrollment_id}/extend", response_model=EnrollmentDetailResponse)
def extend_access(
    enrollment_id: int,
    request: ExtendAccessRequest,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return EnrollmentService(db).extend_access(enrollment_id, request)


@router.delete("/{enrollment_id}")
def delete_enrollment(
    enrollment_id: int,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    EnrollmentService(db).delete_enrollment(enrollment_id)
    return {"message": "Enrollment deleted successfully"}
