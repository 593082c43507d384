import logging
from typing import List, Optional
from sqlmodel import Session, select
from fastapi import HTTPException

from inksoul.core.updates import apply_allowed_updates, ForbiddenFieldError
from inksoul.models.design import Design, DesignStatus, DESIGN_UPDATABLE_FIELDS
from inksoul.models.notification import NotificationType
from inksoul.models.user import User
from inksoul.services.notification import NotificationService

logger = logging.getLogger(__name__)

class DesignService:
    def __init__(self, session: Session):
        self.session = session
        self.notifications = NotificationService(session)

    def get_user_designs(self, user_id: int, status: Optional[DesignStatus] = None) -> List[Design]:
        query = select(Design).where(Design.user_id == user_id)
        if status:
            query = query.where(Design.status == status)
        return self.session.exec(query.order_by(Design.updated_at.desc(), Design.id.desc())).all()

    def get_public_designs(self, limit: int = 20) -> List[Design]:
        return self.session.exec(
            select(Design)
            .where(Design.is_public == True, Design.status == DesignStatus.APPROVED)  # noqa: E712
            .order_by(Design.created_at.desc(), Design.id.desc())
            .limit(limit)
        ).all()

    def _get(self, design_id: int) -> Design:
        design = self.session.get(Design, design_id)
        if not design:
            raise HTTPException(status_code=404, detail="Design not found")
        return design

    def get_design(self, design_id: int, user: User) -> Design:
        design = self._get(design_id)
        if design.user_id != user.id and not design.is_public and not user.is_admin:
            raise HTTPException(status_code=403, detail="Access denied")
        return design

    def _get_owned(self, design_id: int, user: User) -> Design:
        design = self._get(design_id)
        if design.user_id != user.id:
            raise HTTPException(status_code=403, detail="Access denied")
        return design

    def create_design(self, user: User, data: dict) -> Design:
        design = Design(**data, user_id=user.id)
        self.session.add(design)
        self.session.commit()
        self.session.refresh(design)
        return design

    def update_design(self, design_id: int, user: User, changes: dict) -> Design:
        design = self._get_owned(design_id, user)
        try:
            apply_allowed_updates(design, changes, DESIGN_UPDATABLE_FIELDS)
        except ForbiddenFieldError as e:
            raise HTTPException(status_code=400, detail=str(e))

        self.session.add(design)
        self.session.commit()
        self.session.refresh(design)
        return design

    def delete_design(self, design_id: int, user: User):
        design = self._get_owned(design_id, user)
        self.session.delete(design)
        self.session.commit()

    def review_design(self, design_id: int, admin: User, approved: bool, notes: str = "") -> Design:
        """Approve or reject a design, then tell the owner. The notification never undoes the decision."""
        design = self._get(design_id)
        status = DesignStatus.APPROVED if approved else DesignStatus.REJECTED
        design.update_status(status, notes, admin.id)
        self.session.add(design)
        self.session.commit()
        self.session.refresh(design)
        logger.info("Design %s %s by admin %s", design.id, status.value, admin.id)

        if approved:
            self.notifications.notify_safely(
                design.user_id,
                NotificationType.DESIGN_APPROVED,
                "Design approved",
                f'Your design "{design.name}" has been approved.',
                link=f"/designs/{design.id}",
                data={"design_id": design.id},
            )
        else:
            message = f'Your design "{design.name}" was not approved.'
            if notes:
                message += f" Reason: {notes}"
            self.notifications.notify_safely(
                design.user_id,
                NotificationType.DESIGN_REJECTED,
                "Design not approved",
                message,
                link=f"/designs/{design.id}",
                data={"design_id": design.id},
            )
        return design
