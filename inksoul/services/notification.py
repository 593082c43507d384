import logging
from typing import List, Optional
from datetime import datetime, timedelta
from sqlalchemy import delete, func, or_, update
from sqlmodel import Session, select
from fastapi import HTTPException
from inksoul.models.notification import Notification, NotificationType, NotificationPriority

logger = logging.getLogger(__name__)

class NotificationService:
    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        user_id: int,
        type: NotificationType,
        title: str,
        message: str,
        icon: str = "bell",
        link: str = "",
        data: Optional[dict] = None,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        expires_at: Optional[datetime] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title[:100],
            message=message[:500],
            icon=icon,
            link=link,
            data=data or {},
            priority=priority,
            expires_at=expires_at,
        )
        self.session.add(notification)
        self.session.commit()
        self.session.refresh(notification)
        return notification

    def notify_safely(self, user_id: int, type: NotificationType, title: str, message: str, **options) -> Optional[Notification]:
        """
        Fire-and-forget variant for workflow side effects. The caller has
        already committed its own state change; a failure here is logged and
        swallowed so it can never undo that change.
        """
        try:
            return self.create(user_id, type, title, message, **options)
        except Exception:
            self.session.rollback()
            logger.exception("Failed to create %s notification for user %s", type.value, user_id)
            return None

    def _visible(self, user_id: int):
        now = datetime.utcnow()
        return select(Notification).where(
            Notification.user_id == user_id,
            or_(Notification.expires_at.is_(None), Notification.expires_at > now),
        )

    def get_user_notifications(self, user_id: int, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        query = self._visible(user_id)
        if unread_only:
            query = query.where(Notification.read == False)  # noqa: E712
        return self.session.exec(
            query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        ).all()

    def get_unread_count(self, user_id: int) -> int:
        now = datetime.utcnow()
        return self.session.exec(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.read == False,  # noqa: E712
                or_(Notification.expires_at.is_(None), Notification.expires_at > now),
            )
        ).one()

    def get_owned(self, notification_id: int, user_id: int) -> Notification:
        notification = self.session.get(Notification, notification_id)
        if not notification or notification.user_id != user_id:
            raise HTTPException(status_code=404, detail="Notification not found")
        return notification

    def mark_as_read(self, notification_id: int, user_id: int) -> Notification:
        notification = self.get_owned(notification_id, user_id)
        if not notification.read:
            notification.mark_as_read()
            self.session.add(notification)
            self.session.commit()
            self.session.refresh(notification)
        return notification

    def mark_all_as_read(self, user_id: int) -> int:
        result = self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read == False)  # noqa: E712
            .values(read=True, read_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount

    def delete(self, notification_id: int, user_id: int):
        notification = self.get_owned(notification_id, user_id)
        self.session.delete(notification)
        self.session.commit()

    def delete_old(self, days_old: int = 30) -> int:
        """Remove read notifications older than `days_old` days"""
        cutoff = datetime.utcnow() - timedelta(days=days_old)
        result = self.session.execute(
            delete(Notification)
            .where(Notification.created_at < cutoff, Notification.read == True)  # noqa: E712
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        logger.info("Deleted %s read notifications older than %s days", result.rowcount, days_old)
        return result.rowcount
