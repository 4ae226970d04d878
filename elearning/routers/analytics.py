from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from elearning.core.database import get_db
from elearning.core.dependencies import get_current_admin, get_current_user
from elearning.schemas.analytics import LearningSummary, PlatformAnalytics
from elearning.services.analytics import AnalyticsService

router = APIRouter(
    prefix="/analytics",
    tags=["analytics"],
)


@router.get("/", response_model=PlatformAnalytics)
def get_platform_analytics(
    db: Session = Depends(get_db),
    current_admin=Depends(get_current_admin),
):
    """
    Get platform-wide analytics.
    """
    service = AnalyticsService(db)
    return service.get_platform_analytics()


@router.get("/user/me", response_model=LearningSummary)
def get_my_learning_summary(
    db: Session = Depends(get_db), current_user=Depends(get_current_user)
):
    service = AnalyticsService(db)
    return service.get_learning_summary(current_user.id)


@router.get("/user/{user_id}", response_model=LearningSummary)
def get_learning_summary_for_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_admin=Depends(get_current_admin),
):
    service = AnalyticsService(db)
    return service.get_learning_summary(user_id)
