# peertutor/api/admin.py
"""
Admin endpoints: dashboard numbers, user suspension, tutor applications,
reported issues and rating maintenance.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, desc
from sqlalchemy.orm import Session

from peertutor.api.responses import unwrap
from peertutor.database import get_db
from peertutor.models.report import ReportedIssue
from peertutor.models.session import SESSION_STATUSES, TutoringSession
from peertutor.models.user import User
from peertutor.schemas.issue import IssueStatusUpdate
from peertutor.schemas.user import ApplicationDecision, UserStatusUpdate
from peertutor.services import auth_service, issue_service, review_service, tutor_service
from peertutor.utils.security import require_admin

router = APIRouter(prefix="/admin", tags=["Admin"])


# ─────────────────────────────────────────
# GET /admin/stats - Dashboard overview
# ─────────────────────────────────────────
@router.get("/stats")
def get_dashboard_stats(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    users_by_role = dict(db.query(User.role, func.count(User.id)).group_by(User.role).all())
    sessions_by_status = dict(
        db.query(TutoringSession.status, func.count(TutoringSession.id))
        .group_by(TutoringSession.status)
        .all()
    )
    revenue = db.query(func.sum(TutoringSession.total_amount)).filter(
        TutoringSession.status == "completed"
    ).scalar() or 0.0

    return {
        "users": {
            "total": sum(users_by_role.values()),
            "students": users_by_role.get("student", 0),
            "tutors": users_by_role.get("tutor", 0),
            "suspended": db.query(User).filter(User.is_active.is_(False)).count(),
        },
        "sessions": {
            "total": sum(sessions_by_status.values()),
            **{status: sessions_by_status.get(status, 0) for status in SESSION_STATUSES},
        },
        "revenue": {"completed": float(revenue)},
        "issues": {
            "total": db.query(ReportedIssue).count(),
            "pending": db.query(ReportedIssue).filter(ReportedIssue.status == "pending").count(),
        },
    }


# ─────────────────────────────────────────
# Users
# ─────────────────────────────────────────
@router.get("/users")
def get_all_users(
    search: Optional[str] = Query(None, description="Search by name or email"),
    role: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    query = db.query(User).filter(User.role != "admin")
    if search:
        like = f"%{search}%"
        query = query.filter((User.full_name.ilike(like)) | (User.email.ilike(like)))
    if role:
        query = query.filter(User.role == role)

    users = query.order_by(desc(User.created_at), desc(User.id)).offset(skip).limit(limit).all()
    return [auth_service.serialize_user(u) for u in users]


@router.patch("/users/{user_id}/status")
def set_user_status(
    user_id: int,
    payload: UserStatusUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return unwrap(tutor_service.set_user_active(db, user_id, payload.is_active))["user"]


# ─────────────────────────────────────────
# Tutor applications
# ─────────────────────────────────────────
@router.get("/applications")
def list_applications(
    status: Optional[str] = Query("pending"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return tutor_service.list_tutor_applications(db, status=status)


@router.post("/applications/{user_id}/decision")
def decide_application(
    user_id: int,
    payload: ApplicationDecision,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return unwrap(tutor_service.review_tutor_application(db, user_id, payload.approve, payload.note))["application"]


# ─────────────────────────────────────────
# Reported issues
# ─────────────────────────────────────────
@router.get("/issues")
def list_issues(
    status: Optional[str] = Query(None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    result = unwrap(issue_service.list_issues(db, status=status))
    return {"issues": result["issues"], "stats": result["stats"]}


@router.patch("/issues/{issue_id}")
def update_issue(
    issue_id: int,
    payload: IssueStatusUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return unwrap(issue_service.update_issue_status(db, issue_id, admin.id, payload.status, payload.note))["issue"]


# ─────────────────────────────────────────
# Ratings
# ─────────────────────────────────────────
@router.post("/tutors/{tutor_id}/recalculate-rating")
def recalculate_rating(
    tutor_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return unwrap(review_service.recalculate_tutor_rating(db, tutor_id))
