from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from peertutor import models
from peertutor.api.responses import unwrap
from peertutor.database import get_db
from peertutor.services import notification_service
from peertutor.utils.security import get_current_user

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _serialize(n: models.Notification) -> dict:
    return {
        "id": n.id,
        "user_id": n.user_id,
        "title": n.title,
        "message": n.message,
        "type": n.type,
        "related_id": n.related_id,
        "is_read": n.is_read,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }


@router.get("/my")
def get_my_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    result = unwrap(notification_service.list_user_notifications(
        db, user_id=current_user.id, unread_only=unread_only, limit=limit
    ))
    return [_serialize(n) for n in result["notifications"]]


@router.get("/unread-count")
def get_unread_count(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    result = unwrap(notification_service.get_unread_count(db, user_id=current_user.id))
    return {"unread": result["unread"]}


@router.patch("/read-all")
def mark_all_notifications_read(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    result = unwrap(notification_service.mark_all_notifications_read(db, user_id=current_user.id))
    return {"message": "All notifications marked as read", "updated": result["updated"]}


@router.patch("/{notification_id}/read")
def mark_notification_read(
    notification_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    result = unwrap(notification_service.mark_notification_read(
        db, user_id=current_user.id, notification_id=notification_id
    ))
    return {"message": "Notification marked as read", "id": result["notification"].id}
