"""Reported issues and admin triage."""

from conftest import make_session, make_user
from peertutor.models.notification import Notification
from peertutor.services import issue_service
from peertutor.services.results import ErrorCode


def test_report_and_resolve_issue(db_session, tutor, student):
    admin = make_user(db_session, 99, role="admin")
    session = make_session(db_session)

    reported = issue_service.report_issue(
        db_session, student.id, "Tutor no-show", "Waited 20 minutes", session_id=session.id
    )
    assert reported["success"] is True

    listing = issue_service.list_issues(db_session)
    issue = listing["issues"][0]
    assert (issue["status"], issue["reporter_role"], issue["reporter_name"]) == ("pending", "student", "Sam Student")
    assert listing["stats"] == {"pending": 1, "in_progress": 0, "resolved": 0, "rejected": 0}

    result = issue_service.resolve_issue(db_session, reported["issue_id"], admin.id, note="Refunded manually")

    assert result["issue"]["status"] == "resolved"
    assert result["issue"]["admin_note"] == "Refunded manually"
    assert result["issue"]["resolved_by"] == admin.id
    assert result["issue"]["resolved_at"] is not None
    note = db_session.query(Notification).filter(Notification.user_id == student.id).one()
    assert note.type == "issue_resolved"


def test_in_progress_does_not_notify_and_reopen_clears_resolution(db_session, student):
    admin = make_user(db_session, 99, role="admin")
    issue_id = issue_service.report_issue(db_session, student.id, "Bug", "Chat freezes")["issue_id"]

    issue_service.update_issue_status(db_session, issue_id, admin.id, "rejected")
    reopened = issue_service.update_issue_status(db_session, issue_id, admin.id, "in_progress")

    assert reopened["issue"]["resolved_by"] is None
    assert reopened["issue"]["resolved_at"] is None
    types = [n.type for n in db_session.query(Notification).filter(Notification.user_id == student.id)]
    assert types == ["issue_rejected"]


def test_list_issues_filters_by_status(db_session, student):
    admin = make_user(db_session, 99, role="admin")
    first = issue_service.report_issue(db_session, student.id, "One", "first")["issue_id"]
    issue_service.report_issue(db_session, student.id, "Two", "second")
    issue_service.update_issue_status(db_session, first, admin.id, "in_progress")

    pending = issue_service.list_issues(db_session, status="pending")

    assert [i["title"] for i in pending["issues"]] == ["Two"]
    assert pending["stats"]["in_progress"] == 1
    assert issue_service.list_issues(db_session, status="closed")["success"] is False


def test_report_validation(db_session, tutor, student, other_student):
    session = make_session(db_session)

    assert issue_service.report_issue(db_session, student.id, " ", "desc")["success"] is False
    assert issue_service.report_issue(db_session, student.id, "Title", "")["success"] is False
    assert issue_service.report_issue(db_session, student.id, "T" * 201, "desc")["success"] is False
    assert issue_service.report_issue(
        db_session, other_student.id, "Title", "desc", session_id=session.id
    )["code"] == ErrorCode.FORBIDDEN
    assert issue_service.report_issue(
        db_session, student.id, "Title", "desc", session_id=999
    )["code"] == ErrorCode.NOT_FOUND


def test_update_unknown_issue_or_status(db_session, student):
    issue_id = issue_service.report_issue(db_session, student.id, "Bug", "desc")["issue_id"]

    assert issue_service.update_issue_status(db_session, 999, 1, "resolved")["code"] == ErrorCode.NOT_FOUND
    assert issue_service.update_issue_status(db_session, issue_id, 1, "closed")["success"] is False
