from typing import List, Optional
from sqlmodel import Session, select
from fastapi import HTTPException
from inksoul.models.user import User
from inksoul.core.updates import apply_allowed_updates, ForbiddenFieldError

USER_ADMIN_UPDATABLE_FIELDS = ("is_active", "role")

class UserService:
    def __init__(self, session: Session):
        self.session = session

    def get_all_users(self, skip: int = 0, limit: int = 50) -> List[User]:
        return self.session.exec(select(User).order_by(User.id).offset(skip).limit(limit)).all()

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def update_user(self, user_id: int, changes: dict) -> User:
        user = self.get_user_by_id(user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        try:
            apply_allowed_updates(user, changes, USER_ADMIN_UPDATABLE_FIELDS)
        except ForbiddenFieldError as e:
            raise HTTPException(status_code=400, detail=str(e))

        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user
