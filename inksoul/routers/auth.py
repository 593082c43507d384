from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlmodel import Session, select
from jose import JWTError
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from inksoul.db.session import get_session
from inksoul.models.user import User, UserRead
from inksoul.core.security import create_access_token, decode_access_token
from inksoul.services.auth import AuthService

router = APIRouter()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/token")
oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="api/v1/auth/token", auto_error=False)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class AuthResponse(Token):
    user: UserRead

class UserCreate(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class ProfileUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    phone: Optional[str] = None
    address: Optional[dict] = None

class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)

class EmailRequest(BaseModel):
    email: EmailStr

class PasswordReset(BaseModel):
    password: str = Field(min_length=6)

def get_auth_service(session: Session = Depends(get_session)) -> AuthService:
    return AuthService(session)

def _user_from_token(token: str, session: Session) -> Optional[User]:
    try:
        payload = decode_access_token(token)
    except JWTError:
        return None
    email = payload.get("sub")
    if email is None:
        return None
    return session.exec(select(User).where(User.email == email)).first()

def get_current_user(token: str = Depends(oauth2_scheme), session: Session = Depends(get_session)) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user = _user_from_token(token, session)
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account has been deactivated")
    return user

def get_current_user_optional(token: Optional[str] = Depends(oauth2_scheme_optional), session: Session = Depends(get_session)) -> Optional[User]:
    if not token:
        return None
    user = _user_from_token(token, session)
    if user is None or not user.is_active:
        return None
    return user

def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user

@router.post("/register", response_model=AuthResponse, status_code=201)
def register(user_in: UserCreate, service: AuthService = Depends(get_auth_service)):
    user = service.register_user(user_in.name, user_in.email, user_in.password)
    return {"access_token": create_access_token({"sub": user.email}), "token_type": "bearer", "user": user}

@router.post("/login", response_model=AuthResponse)
def login(credentials: LoginRequest, service: AuthService = Depends(get_auth_service)):
    user = service.authenticate_user(credentials.email, credentials.password)
    return {"access_token": create_access_token({"sub": user.email}), "token_type": "bearer", "user": user}

@router.post("/token", response_model=Token)
def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends(), service: AuthService = Depends(get_auth_service)):
    user = service.authenticate_user(form_data.username, form_data.password)
    return {"access_token": create_access_token({"sub": user.email}), "token_type": "bearer"}

@router.get("/me", response_model=UserRead)
def read_me(current_user: User = Depends(get_current_user)):
    return current_user

@router.put("/profile", response_model=UserRead)
def update_profile(
    profile: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    return service.update_profile(current_user, profile.model_dump(exclude_unset=True))

@router.put("/change-password")
def change_password(
    data: PasswordChange,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    service.change_password(current_user, data.current_password, data.new_password)
    return {"message": "Password changed successfully"}

@router.post("/logout")
def logout(current_user: User = Depends(get_current_user)):
    # Tokens are stateless, the client drops its copy
    return {"message": "Logged out successfully"}

@router.get("/verify-email/{token}")
def verify_email(token: str, service: AuthService = Depends(get_auth_service)):
    service.verify_email(token)
    return {"message": "Email verified successfully"}

@router.post("/resend-verification")
def resend_verification(current_user: User = Depends(get_current_user), service: AuthService = Depends(get_auth_service)):
    service.resend_verification(current_user)
    return {"message": "Verification email sent"}

@router.post("/forgot-password")
def forgot_password(data: EmailRequest, service: AuthService = Depends(get_auth_service)):
    service.create_password_reset_token(data.email)
    # Same answer whether or not the account exists
    return {"message": "If an account with that email exists, a password reset link has been sent"}

@router.post("/reset-password/{token}")
def reset_password(token: str, data: PasswordReset, service: AuthService = Depends(get_auth_service)):
    service.reset_password(token, data.password)
    return {"message": "Password reset successfully"}
