from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from pydantic import BaseModel, ConfigDict
from inksoul.db.session import get_session
from inksoul.models.user import User, UserRead, UserRole
from inksoul.routers.auth import get_current_user, get_current_admin
from inksoul.services.user import UserService

router = APIRouter()

class UserAdminUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    is_active: Optional[bool] = None
    role: Optional[UserRole] = None

def get_user_service(session: Session = Depends(get_session)) -> UserService:
    return UserService(session)

@router.get("/", response_model=List[UserRead])
def read_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    admin: User = Depends(get_current_admin),
    service: UserService = Depends(get_user_service),
):
    return service.get_all_users(skip, limit)

@router.get("/me", response_model=UserRead)
def read_user_me(current_user: User = Depends(get_current_user)):
    return current_user

@router.patch("/{user_id}", response_model=UserRead)
def update_user(
    user_id: int,
    update: UserAdminUpdate,
    admin: User = Depends(get_current_admin),
    service: UserService = Depends(get_user_service),
):
    return service.update_user(user_id, update.model_dump(exclude_unset=True))
