from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from app.core.exceptions import NotFoundError
from app.database import get_db
from app.models.notification import Notification
from app.models.user import User
from app.routers.auth_deps import get_current_user
from app.schemas.notification import NotificationResponse
from app.services.base import commit_or_raise

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _own_notifications(db: Session, user: User):
    return db.query(Notification).filter(
        Notification.tenant_id == user.tenant_id,
        Notification.user_id == user.id
    )


@router.get("", response_model=List[NotificationResponse])
def get_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = _own_notifications(db, current_user)
    if unread_only:
        query = query.filter(Notification.is_read == False)
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(50).all()


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    notification = _own_notifications(db, current_user).filter(Notification.id == notification_id).first()
    if not notification:
        raise NotFoundError("Notification not found")

    notification.is_read = True
    commit_or_raise(db)
    db.refresh(notification)
    return notification


@router.post("/mark-all-read")
def mark_all_notifications_as_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    updated = _own_notifications(db, current_user).filter(
        Notification.is_read == False
    ).update({Notification.is_read: True}, synchronize_session=False)
    commit_or_raise(db)
    return {"success": True, "updated": updated}
