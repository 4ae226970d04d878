# elearning/services/course_analytics.py
import logging
from collections import Counter
from datetime import timedelta
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import case, func
from sqlalchemy.orm import Session, joinedload

from elearning.models.course import Course
from elearning.models.enrollment import Enrollment, EnrollmentStatus, collected_revenue
from elearning.models.review import Review
from elearning.models.user import User
from elearning.services.course import CourseService, ensure_can_manage
from elearning.utils.rounding import percentage, round_half_up
from elearning.utils.timeframe import (
    group_by_bucket,
    is_monthly,
    last_days,
    months_back,
    timeframe_start,
    utcnow,
)

logger = logging.getLogger(__name__)


class CourseAnalyticsService:
    def __init__(self, db: Session):
        self.db = db
        self.course_service = CourseService(db)

    def _course_enrollments(self, course_ids: List[int]) -> List[Enrollment]:
        if not course_ids:
            return []
        return (
            self.db.query(Enrollment)
            .filter(Enrollment.course_id.in_(course_ids))
            .order_by(Enrollment.enrollment_date)
            .all()
        )

    # ==================== Per course ====================

    def get_course_analytics(self, course_id: int, current_user: User) -> dict:
        course = self.course_service.get_course(course_id)
        ensure_can_manage(course, current_user, "view analytics for")

        now = utcnow()
        enrollments = self._course_enrollments([course.id])
        recent = [e for e in enrollments if e.enrollment_date >= now - timedelta(days=30)]
        completed = sum(1 for e in enrollments if e.status == EnrollmentStatus.COMPLETED)

        distribution = dict(
            self.db.query(Review.rating, func.count(Review.id))
            .filter(Review.course_id == course.id, Review.is_approved == True)
            .group_by(Review.rating)
            .all()
        )

        daily = group_by_bucket(recent, "enrollment_date")
        return {
            "course_id": course.id,
            "total_enrollments": len(enrollments),
            "total_revenue": collected_revenue(enrollments),
            "recent_enrollments": len(recent),
            "completion_rate": percentage(completed, len(enrollments)),
            "average_rating": course.average_rating,
            "total_ratings": course.total_ratings,
            "rating_distribution": {
                rating: distribution.get(rating, 0) for rating in range(5, 0, -1)
            },
            "enrollment_trend": [
                {"date": day, "count": len(rows)} for day, rows in daily.items()
            ],
        }

    def get_admin_course_analytics(self, course_id: int) -> dict:
        """Detailed breakdown of one course for administrators"""
        course = self.course_service.get_course(course_id)
        now = utcnow()
        enrollments = (
            self.db.query(Enrollment)
            .options(joinedload(Enrollment.student))
            .filter(Enrollment.course_id == course.id)
            .order_by(Enrollment.enrollment_date.desc())
            .all()
        )

        period_stats = {}
        for label, days in (("7days", 7), ("30days", 30), ("90days", 90)):
            window = [e for e in enrollments if e.enrollment_date >= now - timedelta(days=days)]
            period_stats[label] = {
                "enrollments": len(window),
                "revenue": collected_revenue(window),
            }

        completed = sum(1 for e in enrollments if e.status == EnrollmentStatus.COMPLETED)
        active = sum(1 for e in enrollments if e.status == EnrollmentStatus.ACTIVE)
        rating_counts = Counter(e.rating_score for e in enrollments if e.rating_score)
        locations = Counter(
            ((e.student.address or {}).get("country") or "Unknown") for e in enrollments
        )
        monthly = group_by_bucket(enrollments, "enrollment_date", monthly=True)

        return {
            "course_info": {
                "id": course.id,
                "title": course.title,
                "instructor_id": course.instructor_id,
                "created_at": course.created_at,
                "published_at": course.published_at,
                "is_published": course.is_published,
                "is_featured": course.is_featured,
            },
            "summary": {
                "total_enrollments": len(enrollments),
                "active_enrollments": active,
                "completed_enrollments": completed,
                "total_revenue": collected_revenue(enrollments),
                "completion_rate": percentage(completed, len(enrollments), 2),
                "average_rating": course.average_rating,
                "total_ratings": course.total_ratings,
            },
            "period_stats": period_stats,
            "rating_distribution": {r: rating_counts.get(r, 0) for r in range(1, 6)},
            "location_distribution": dict(locations),
            "monthly_trend": [
                {"month": month, "enrollments": len(rows), "revenue": collected_revenue(rows)}
                for month, rows in monthly.items()
            ],
            "recent_enrollments": [
                {
                    "student_id": e.student_id,
                    "student_name": e.student.full_name,
                    "enrollment_date": e.enrollment_date,
                    "status": e.status,
                    "completion_percentage": e.completion_percentage,
                    "payment_amount": e.amount_paid,
                }
                for e in enrollments[:10]
            ],
        }

    # ==================== Admin dashboard ====================

    def get_admin_dashboard(self) -> dict:
        now = utcnow()
        thirty_days_ago = now - timedelta(days=30)

        overview = self.db.query(
            func.count(Course.id),
            func.coalesce(func.sum(case((Course.is_published == True, 1), else_=0)), 0),
            func.coalesce(func.sum(case((Course.is_featured == True, 1), else_=0)), 0),
            func.coalesce(func.sum(Course.total_enrollments), 0),
            func.coalesce(func.sum(Course.total_enrollments * Course.price), 0),
            func.avg(Course.average_rating),
        ).one()
        total, published, featured, enrollments, revenue, avg_rating = overview

        recent = self.db.query(
            func.count(Course.id),
            func.coalesce(func.sum(case((Course.is_published == True, 1), else_=0)), 0),
        ).filter(Course.created_at >= thirty_days_ago).one()

        categories = (
            self.db.query(
                Course.category,
                func.count(Course.id),
                func.coalesce(func.sum(Course.total_enrollments), 0),
                func.avg(Course.average_rating),
            )
            .filter(Course.is_published == True)
            .group_by(Course.category)
            .order_by(func.count(Course.id).desc())
            .all()
        )

        top_courses = (
            self.db.query(Course)
            .options(joinedload(Course.instructor))
            .filter(Course.is_published == True)
            .order_by(Course.total_enrollments.desc(), Course.average_rating.desc())
            .limit(10)
            .all()
        )

        needing_review = (
            self.db.query(Course)
            .options(joinedload(Course.instructor))
            .filter(Course.is_published == False)
            .order_by(Course.created_at.desc())
            .limit(10)
            .all()
        )

        return {
            "overview": {
                "total_courses": total,
                "published_courses": int(published),
                "draft_courses": total - int(published),
                "featured_courses": int(featured),
                "total_enrollments": int(enrollments),
                "total_revenue": round(float(revenue), 2),
                "average_rating": round_half_up(float(avg_rating or 0), 2),
            },
            "recent_activity": {
                "new_courses": recent[0],
                "new_published_courses": int(recent[1]),
            },
            "category_distribution": [
                {
                    "category": name,
                    "count": count,
                    "total_enrollments": int(total_enrollments),
                    "average_rating": round_half_up(float(rating or 0), 2),
                }
                for name, count, total_enrollments, rating in categories
            ],
            "top_performing_courses": [
                {
                    "id": c.id,
                    "title": c.title,
                    "total_enrollments": c.total_enrollments,
                    "average_rating": c.average_rating,
                    "price": float(c.price),
                    "instructor_name": c.instructor.full_name,
                }
                for c in top_courses
            ],
            "courses_needing_review": [
                {
                    "id": c.id,
                    "title": c.title,
                    "created_at": c.created_at,
                    "instructor_name": c.instructor.full_name,
                    "instructor_email": c.instructor.email,
                }
                for c in needing_review
            ],
        }

    # ==================== Instructor dashboards ====================

    def _instructor_courses(self, instructor: User, course_id: Optional[int] = None):
        query = self.db.query(Course).filter(Course.instructor_id == instructor.id)
        if course_id:
            query = query.filter(Course.id == course_id)
        return query.order_by(Course.total_enrollments.desc(), Course.id).all()

    def get_instructor_dashboard(self, instructor: User, timeframe: str = "90d") -> dict:
        now = utcnow()
        courses = self._instructor_courses(instructor)

        if not courses:
            return {
                "overview": {
                    "total_courses": 0,
                    "published_courses": 0,
                    "total_students": 0,
                    "total_revenue": 0,
                    "avg_rating": 0,
                    "avg_price": 0,
                    "completion_rate": 0,
                },
                "course_performance": [],
                "enrollment_trends": [],
                "revenue_trends": [],
                "top_courses": [],
                "recent_activity": [],
                "progress_distribution": [],
                "timeframe": timeframe,
            }

        course_ids = [c.id for c in courses]
        titles = {c.id: c.title for c in courses}
        enrollments = self._course_enrollments(course_ids)
        by_course = {cid: [] for cid in course_ids}
        for enrollment in enrollments:
            by_course[enrollment.course_id].append(enrollment)

        # Course performance
        performance = []
        for course in courses:
            rows = by_course[course.id]
            completed = sum(1 for e in rows if e.status == EnrollmentStatus.COMPLETED)
            performance.append(
                {
                    "id": course.id,
                    "title": course.title,
                    "is_published": course.is_published,
                    "price": float(course.price),
                    "total_enrollments": course.total_enrollments,
                    "average_rating": course.average_rating,
                    "revenue": round(course.total_enrollments * float(course.price), 2),
                    "completion_rate": percentage(completed, course.total_enrollments, 2),
                    "active_students": sum(
                        1 for e in rows if e.status == EnrollmentStatus.ACTIVE
                    ),
                }
            )

        # Enrollment trends within the timeframe
        start = timeframe_start(timeframe, now)
        window = [e for e in enrollments if start is None or e.enrollment_date >= start]
        buckets = group_by_bucket(window, "enrollment_date", monthly=is_monthly(timeframe))
        enrollment_trends = [
            {"date": key, "enrollments": len(rows), "revenue": collected_revenue(rows)}
            for key, rows in buckets.items()
        ]

        # Monthly revenue over the last 12 months
        twelve_months_ago = months_back(now, 12)
        paid = [
            e
            for e in enrollments
            if e.enrollment_date >= twelve_months_ago
            and e.status != EnrollmentStatus.REFUNDED
        ]
        revenue_trends = [
            {"date": f"{month}-01", "revenue": collected_revenue(rows), "enrollments": len(rows)}
            for month, rows in group_by_bucket(paid, "enrollment_date", monthly=True).items()
        ]

        # Recent activity
        thirty_days_ago = now - timedelta(days=30)
        recent = sorted(
            (e for e in enrollments if e.enrollment_date >= thirty_days_ago),
            key=lambda e: e.enrollment_date,
            reverse=True,
        )[:10]
        students = {
            u.id: u
            for u in self.db.query(User)
            .filter(User.id.in_({e.student_id for e in recent}))
            .all()
        } if recent else {}

        completed_total = sum(1 for e in enrollments if e.status == EnrollmentStatus.COMPLETED)

        # Progress distribution buckets
        ranges = (("0-25%", 0, 25), ("25-50%", 25, 50), ("50-75%", 50, 75), ("75-100%", 75, 100))
        progress_distribution = [
            {
                "range": label,
                "count": sum(1 for e in enrollments if low <= e.completion_percentage < high),
            }
            for label, low, high in ranges
        ]
        progress_distribution.append(
            {
                "range": "Complete",
                "count": sum(1 for e in enrollments if e.completion_percentage >= 100),
            }
        )

        total_students = sum(c.total_enrollments for c in courses)
        return {
            "overview": {
                "total_courses": len(courses),
                "published_courses": sum(1 for c in courses if c.is_published),
                "total_students": total_students,
                "total_revenue": round(
                    sum(c.total_enrollments * float(c.price) for c in courses), 2
                ),
                "avg_rating": round_half_up(
                    sum(c.average_rating or 0 for c in courses) / len(courses), 2
                ),
                "avg_price": round_half_up(
                    sum(float(c.price) for c in courses) / len(courses), 2
                ),
                "completion_rate": percentage(completed_total, len(enrollments), 2),
            },
            "course_performance": performance,
            "enrollment_trends": enrollment_trends,
            "revenue_trends": revenue_trends,
            "top_courses": [
                {
                    "id": p["id"],
                    "title": p["title"],
                    "enrollments": p["total_enrollments"],
                    "revenue": p["revenue"],
                    "rating": p["average_rating"] or 0,
                    "completion_rate": round_half_up(p["completion_rate"]),
                    "active_students": p["active_students"],
                }
                for p in performance[:5]
            ],
            "recent_activity": [
                {
                    "enrollment_id": e.id,
                    "course_name": titles[e.course_id],
                    "student_name": students[e.student_id].full_name,
                    "enrollment_date": e.enrollment_date,
                    "status": e.status,
                    "payment_amount": e.amount_paid,
                }
                for e in recent
            ],
            "progress_distribution": progress_distribution,
            "timeframe": timeframe,
        }

    def get_performance_comparison(self, instructor: User) -> dict:
        now = utcnow()
        six_months_ago = months_back(now, 6)
        courses = self._instructor_courses(instructor)
        enrollments = self._course_enrollments([c.id for c in courses])

        review_stats = {
            course_id: (avg, count)
            for course_id, avg, count in self.db.query(
                Review.course_id, func.avg(Review.rating), func.count(Review.id)
            )
            .filter(Review.course_id.in_([c.id for c in courses]))
            .group_by(Review.course_id)
            .all()
        } if courses else {}

        results = []
        for course in courses:
            rows = [e for e in enrollments if e.course_id == course.id]
            avg_rating, total_reviews = review_stats.get(course.id, (0, 0))
            recent_paid = [
                e
                for e in rows
                if e.enrollment_date >= six_months_ago
                and e.status != EnrollmentStatus.REFUNDED
            ]
            monthly = group_by_bucket(recent_paid, "enrollment_date", monthly=True)
            results.append(
                {
                    "course_id": course.id,
                    "course_title": course.title,
                    "is_published": course.is_published,
                    "total_enrollments": course.total_enrollments,
                    "total_revenue": collected_revenue(rows),
                    "avg_rating": round_half_up(float(avg_rating or 0), 2),
                    "total_reviews": total_reviews,
                    "monthly_data": [
                        {"month": month, "enrollments": len(m), "revenue": collected_revenue(m)}
                        for month, m in monthly.items()
                    ],
                }
            )

        return {
            "courses": results,
            "summary": {
                "total_courses": len(results),
                "total_revenue": round(sum(r["total_revenue"] for r in results), 2),
                "total_enrollments": sum(r["total_enrollments"] for r in results),
                "avg_rating": round_half_up(
                    sum(r["avg_rating"] for r in results) / len(results), 2
                )
                if results
                else 0,
            },
        }

    def get_student_analytics(
        self, instructor: User, course_id: Optional[int] = None
    ) -> dict:
        now = utcnow()
        courses = self._instructor_courses(instructor, course_id)
        if course_id and not courses:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Course not found"
            )

        enrollments = self._course_enrollments([c.id for c in courses])
        recent = [e for e in enrollments if e.enrollment_date >= now - timedelta(days=30)]
        daily = group_by_bucket(recent, "enrollment_date")

        daily_enrollments = []
        for day in last_days(now.date(), 30):
            rows = daily.get(day, [])
            daily_enrollments.append(
                {"date": day, "new_students": len(rows), "revenue": collected_revenue(rows)}
            )

        total = len(enrollments)
        completed = sum(1 for e in enrollments if e.status == EnrollmentStatus.COMPLETED)
        avg_progress = (
            sum(e.completion_percentage for e in enrollments) / total if total else 0
        )
        return {
            "daily_enrollments": daily_enrollments,
            "student_stats": {
                "total_students": total,
                "completed_students": completed,
                "active_students": sum(
                    1 for e in enrollments if e.status == EnrollmentStatus.ACTIVE
                ),
                "avg_progress": round_half_up(avg_progress, 2),
                "total_revenue": collected_revenue(enrollments),
                "completion_rate": percentage(completed, total, 2),
            },
        }
