from typing import List, Optional
from datetime import datetime
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from pydantic import BaseModel, Field
from inksoul.db.session import get_session
from inksoul.models.notification import NotificationRead, NotificationType, NotificationPriority
from inksoul.models.user import User
from inksoul.routers.auth import get_current_user, get_current_admin
from inksoul.services.notification import NotificationService

router = APIRouter()

class NotificationCreate(BaseModel):
    user_id: int
    type: NotificationType = NotificationType.SYSTEM
    title: str = Field(min_length=1, max_length=100)
    message: str = Field(min_length=1, max_length=500)
    icon: str = "bell"
    link: str = ""
    data: dict = {}
    priority: NotificationPriority = NotificationPriority.NORMAL
    expires_at: Optional[datetime] = None

def get_notification_service(session: Session = Depends(get_session)) -> NotificationService:
    return NotificationService(session)

@router.get("/", response_model=List[NotificationRead])
def list_notifications(
    unread_only: bool = False,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return service.get_user_notifications(current_user.id, unread_only=unread_only)

@router.get("/unread-count")
def unread_count(current_user: User = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    return {"count": service.get_unread_count(current_user.id)}

@router.put("/read-all")
def mark_all_read(current_user: User = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    updated = service.mark_all_as_read(current_user.id)
    return {"message": "All notifications marked as read", "updated": updated}

@router.delete("/cleanup")
def cleanup_notifications(
    days: int = Query(30, ge=1),
    admin: User = Depends(get_current_admin),
    service: NotificationService = Depends(get_notification_service),
):
    deleted = service.delete_old(days)
    return {"message": f"Deleted {deleted} old notifications", "deleted": deleted}

@router.post("/", response_model=NotificationRead, status_code=201)
def create_notification(
    data: NotificationCreate,
    admin: User = Depends(get_current_admin),
    service: NotificationService = Depends(get_notification_service),
):
    return service.create(**data.model_dump())

@router.put("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return service.mark_as_read(notification_id, current_user.id)

@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    service.delete(notification_id, current_user.id)
    return {"message": "Notification deleted"}
