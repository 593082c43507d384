import logging
from datetime import datetime, timedelta
from typing import Optional
from sqlmodel import Session, select
from fastapi import HTTPException, status

from inksoul.models.user import User
from inksoul.core.config import settings
from inksoul.core.security import get_password_hash, verify_password, generate_token, hash_token
from inksoul.core.updates import apply_allowed_updates, ForbiddenFieldError
from inksoul.services.email import send_verification_email, send_password_reset_email

logger = logging.getLogger(__name__)

PROFILE_UPDATABLE_FIELDS = ("name", "phone", "address")
PASSWORD_RESET_TTL = timedelta(hours=1)

class AuthService:
    def __init__(self, session: Session):
        self.session = session

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.email == email.lower())).first()

    def register_user(self, name: str, email: str, password: str) -> User:
        email = email.lower()
        if self.get_user_by_email(email):
            raise HTTPException(status_code=400, detail="User already exists with this email")

        verification_token = generate_token()
        user = User(
            name=name,
            email=email,
            password_hash=get_password_hash(password),
            email_verification_token=verification_token,
        )
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        logger.info("Registered user %s", user.id)

        send_verification_email(
            user.email, user.name, f"{settings.FRONTEND_URL}/verify-email/{verification_token}"
        )
        return user

    def authenticate_user(self, email: str, password: str) -> User:
        user = self.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.info("Failed login for %s", email)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account has been deactivated",
                headers={"WWW-Authenticate": "Bearer"},
            )

        user.last_login = datetime.utcnow()
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def update_profile(self, user: User, changes: dict) -> User:
        try:
            apply_allowed_updates(user, changes, PROFILE_UPDATABLE_FIELDS)
        except ForbiddenFieldError as e:
            raise HTTPException(status_code=400, detail=str(e))
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def change_password(self, user: User, current_password: str, new_password: str):
        if not verify_password(current_password, user.password_hash):
            raise HTTPException(status_code=400, detail="Current password is incorrect")

        user.password_hash = get_password_hash(new_password)
        user.updated_at = datetime.utcnow()
        self.session.add(user)
        self.session.commit()

    def verify_email(self, token: str) -> User:
        user = self.session.exec(select(User).where(User.email_verification_token == token)).first()
        if not user:
            raise HTTPException(status_code=400, detail="Invalid verification token")

        user.email_verified = True
        user.email_verification_token = None
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def resend_verification(self, user: User):
        if user.email_verified:
            raise HTTPException(status_code=400, detail="Email is already verified")

        token = generate_token()
        user.email_verification_token = token
        self.session.add(user)
        self.session.commit()
        send_verification_email(user.email, user.name, f"{settings.FRONTEND_URL}/verify-email/{token}")

    def create_password_reset_token(self, email: str) -> Optional[str]:
        user = self.get_user_by_email(email)
        if not user:
            # Callers answer the same way either way
            return None

        token = generate_token()
        user.password_reset_token = hash_token(token)
        user.password_reset_expires = datetime.utcnow() + PASSWORD_RESET_TTL
        self.session.add(user)
        self.session.commit()

        send_password_reset_email(user.email, user.name, f"{settings.FRONTEND_URL}/reset-password/{token}")
        return token

    def reset_password(self, token: str, new_password: str) -> User:
        user = self.session.exec(
            select(User).where(
                User.password_reset_token == hash_token(token),
                User.password_reset_expires > datetime.utcnow(),
            )
        ).first()
        if not user:
            raise HTTPException(status_code=400, detail="Invalid or expired reset token")

        user.password_hash = get_password_hash(new_password)
        user.password_reset_token = None
        user.password_reset_expires = None
        user.updated_at = datetime.utcnow()
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user
