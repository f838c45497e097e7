# peertutor/services/issue_service.py
"""Problem reports from students and tutors, triaged by admins."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from peertutor.models.report import ISSUE_STATUSES, ReportedIssue
from peertutor.models.session import TutoringSession
from peertutor.models.user import User
from peertutor.services import notification_service
from peertutor.services.results import ErrorCode, fail, ok

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000
CLOSED_STATUSES = ("resolved", "rejected")


def serialize_issue(issue: ReportedIssue) -> Dict[str, Any]:
    return {
        "id": issue.id,
        "reporter_id": issue.reporter_id,
        "reporter_name": issue.reporter.full_name if issue.reporter else None,
        "reporter_email": issue.reporter.email if issue.reporter else None,
        "reporter_role": issue.reporter_role,
        "session_id": issue.session_id,
        "title": issue.title,
        "description": issue.description,
        "status": issue.status,
        "admin_note": issue.admin_note,
        "resolved_by": issue.resolved_by,
        "created_at": issue.created_at.isoformat() if issue.created_at else None,
        "resolved_at": issue.resolved_at.isoformat() if issue.resolved_at else None,
    }


def report_issue(
    db: Session,
    reporter_id: int,
    title: str,
    description: str,
    session_id: Optional[int] = None,
) -> Dict[str, Any]:
    title = (title or "").strip()
    description = (description or "").strip()
    if not title:
        return fail("Please enter a title for your issue")
    if len(title) > MAX_TITLE_LENGTH:
        return fail(f"Title must be {MAX_TITLE_LENGTH} characters or less")
    if not description:
        return fail("Please describe the issue")
    if len(description) > MAX_DESCRIPTION_LENGTH:
        return fail(f"Description must be {MAX_DESCRIPTION_LENGTH} characters or less")

    try:
        reporter = db.get(User, reporter_id)
        if not reporter:
            return fail("User not found", ErrorCode.NOT_FOUND)
        if session_id is not None:
            session = db.get(TutoringSession, session_id)
            if not session:
                return fail("Session not found.", ErrorCode.NOT_FOUND)
            if reporter_id not in (session.student_id, session.tutor_id):
                return fail("You can only report sessions you took part in.", ErrorCode.FORBIDDEN)

        issue = ReportedIssue(
            reporter_id=reporter_id,
            reporter_role=reporter.role,
            session_id=session_id,
            title=title,
            description=description,
            status="pending",
        )
        db.add(issue)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error reporting issue for user %s", reporter_id)
        return fail("Failed to report issue", ErrorCode.STORE)

    logger.info("Issue %s reported by user %s", issue.id, reporter_id)
    return ok(issue_id=issue.id, message="Your issue has been reported. An admin will look into it soon.")


def list_issues(db: Session, status: Optional[str] = None) -> Dict[str, Any]:
    """Admin view: issues newest first plus a count per status."""
    if status is not None and status not in ISSUE_STATUSES:
        return fail(f"Unknown issue status: {status}")

    issues = db.query(ReportedIssue).order_by(ReportedIssue.created_at.desc(), ReportedIssue.id.desc()).all()
    stats = {s: 0 for s in ISSUE_STATUSES}
    for issue in issues:
        stats[issue.status] = stats.get(issue.status, 0) + 1
    if status:
        issues = [i for i in issues if i.status == status]
    return ok(issues=[serialize_issue(i) for i in issues], stats=stats)


def update_issue_status(
    db: Session,
    issue_id: int,
    admin_id: int,
    status: str,
    note: Optional[str] = None,
) -> Dict[str, Any]:
    if status not in ISSUE_STATUSES:
        return fail(f"Unknown issue status: {status}")

    try:
        issue = db.get(ReportedIssue, issue_id)
        if not issue:
            return fail("Issue not found", ErrorCode.NOT_FOUND)

        issue.status = status
        if note and note.strip():
            issue.admin_note = note.strip()
        if status in CLOSED_STATUSES:
            issue.resolved_by = admin_id
            issue.resolved_at = datetime.utcnow()
        else:
            issue.resolved_by = None
            issue.resolved_at = None
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating issue %s", issue_id)
        return fail("Failed to update issue", ErrorCode.STORE)

    if status in CLOSED_STATUSES:
        notification_service.notify(
            db,
            user_id=issue.reporter_id,
            title=f"Issue {status}",
            message=f"Your report \"{issue.title}\" was marked {status}.",
            type=f"issue_{status}",
            related_id=issue.id,
        )
    return ok(issue=serialize_issue(issue))


def resolve_issue(db: Session, issue_id: int, admin_id: int, note: Optional[str] = None) -> Dict[str, Any]:
    return update_issue_status(db, issue_id, admin_id, "resolved", note)
