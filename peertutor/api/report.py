from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from peertutor import models
from peertutor.api.responses import unwrap
from peertutor.database import get_db
from peertutor.models.report import ReportedIssue
from peertutor.schemas.issue import IssueCreate
from peertutor.services import issue_service
from peertutor.utils.security import get_current_user

router = APIRouter(prefix="/issues", tags=["Reported issues"])


@router.post("/", status_code=status.HTTP_201_CREATED)
def report_issue(
    payload: IssueCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return unwrap(issue_service.report_issue(
        db,
        reporter_id=current_user.id,
        title=payload.title,
        description=payload.description,
        session_id=payload.session_id,
    ))


@router.get("/mine")
def list_my_issues(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    issues = (
        db.query(ReportedIssue)
        .filter(ReportedIssue.reporter_id == current_user.id)
        .order_by(ReportedIssue.created_at.desc(), ReportedIssue.id.desc())
        .all()
    )
    return [issue_service.serialize_issue(i) for i in issues]
