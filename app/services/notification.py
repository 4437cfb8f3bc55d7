from typing import Optional

from sqlalchemy.orm import Session
from app.models.notification import Notification


class NotificationService:
    @staticmethod
    def notify_user(
        db: Session,
        tenant_id: int,
        user_id: Optional[int],
        title: str,
        message: str,
        type: str = "info",
        link: str = None
    ) -> Optional[Notification]:
        """
        Queue an in-app notification in the caller's transaction.
        Employees without a linked user account are skipped.
        """
        if user_id is None:
            return None
        notification = Notification(
            tenant_id=tenant_id,
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            link=link
        )
        db.add(notification)
        return notification
