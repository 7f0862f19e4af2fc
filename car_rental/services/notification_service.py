from __future__ import annotations

import logging

from ..extensions import db
from ..models import Notification, User
from ..utils.constants import NotificationType

logger = logging.getLogger(__name__)


class NotificationService:
    """In-app notifications: create, list and read-state bookkeeping."""

    @staticmethod
    def notify(user_id: int, title: str, message: str,
               type: str = NotificationType.INFO, commit: bool = True) -> Notification | None:
        if not user_id:
            return None
        n = Notification(user_id=user_id, title=title, message=message, type=type)
        db.session.add(n)
        if commit:
            db.session.commit()
        logger.debug("notification %r queued for user %s", title, user_id)
        return n

    @staticmethod
    def notify_roles(roles, title: str, message: str, type: str = NotificationType.INFO,
                     commit: bool = True) -> int:
        """Send the same notification to every active user holding one of `roles`."""
        users = User.query.filter(User.role.in_(list(roles)), User.is_active.is_(True)).all()
        for u in users:
            NotificationService.notify(u.id, title, message, type, commit=False)
        if commit:
            db.session.commit()
        return len(users)

    @staticmethod
    def list_for_user(user_id: int):
        return (Notification.query.filter_by(user_id=user_id)
                .order_by(Notification.created_at.desc(), Notification.id.desc())
                .all())

    @staticmethod
    def mark_read(notification_id: int, user_id: int):
        n = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
        if not n:
            return False, "Notification not found"
        n.is_read = True
        db.session.commit()
        return True, "Marked as read"

    @staticmethod
    def mark_all_read(user_id: int) -> int:
        count = (Notification.query.filter_by(user_id=user_id, is_read=False)
                 .update({"is_read": True}, synchronize_session=False))
        db.session.commit()
        return count

    @staticmethod
    def unread_count(user_id: int) -> int:
        return Notification.query.filter_by(user_id=user_id, is_read=False).count()
