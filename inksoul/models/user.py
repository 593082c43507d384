from typing import Optional
from datetime import datetime
from enum import Enum
from sqlmodel import Field, SQLModel, Column
from sqlalchemy import JSON

class UserRole(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"

class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # Basic Info
    name: str
    email: str = Field(unique=True, index=True)
    password_hash: str
    role: UserRole = Field(default=UserRole.CUSTOMER)

    # Profile
    avatar: Optional[str] = None
    phone: Optional[str] = None
    # Address stored as JSON dict with keys: street, city, state, zip_code, country
    address: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    # Account Status
    is_active: bool = Field(default=True)
    email_verified: bool = Field(default=False)
    last_login: Optional[datetime] = None

    # Verification & Reset
    email_verification_token: Optional[str] = Field(default=None, index=True)
    password_reset_token: Optional[str] = Field(default=None, index=True)  # sha256 of the emailed token
    password_reset_expires: Optional[datetime] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class UserRead(SQLModel):
    id: int
    name: str
    email: str
    role: UserRole
    avatar: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[dict] = None
    is_active: bool
    email_verified: bool
    last_login: Optional[datetime] = None
    created_at: datetime
