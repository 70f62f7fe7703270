import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..config import Settings
from ..database import get_db
from ..deps import get_current_user, get_settings
from ..models import User
from ..roles import Role
from ..schemas import (
    AuthData,
    Envelope,
    LoginRequest,
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
    UserOut,
)
from ..security import create_access_token, hash_password, verify_password

router = APIRouter(prefix="/api/auth", tags=["auth"])

logger = logging.getLogger(__name__)


def _auth_data(user: User, settings: Settings) -> AuthData:
    token = create_access_token(
        user.id,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expires_minutes=settings.jwt_expire_minutes,
        extra={"role": user.role},
    )
    return AuthData(token=token, user=UserOut.model_validate(user))


# PUBLIC_INTERFACE
@router.post("/register", response_model=Envelope[AuthData], status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Create a visitor account and return an access token for it."""
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first() is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is already registered")

    user = User(
        email=email,
        hashed_password=hash_password(payload.password),
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        phone=payload.phone,
        company=payload.company,
        role=Role.VISITOR.value,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id, extra={"user_id": user.id})
    return Envelope(message="User registered successfully", data=_auth_data(user, settings))


# PUBLIC_INTERFACE
@router.post("/login", response_model=Envelope[AuthData])
def login(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Exchange email and password for an access token."""
    user = db.query(User).filter(User.email == payload.email.lower()).first()
    if user is None or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")
    return Envelope(message="Login successful", data=_auth_data(user, settings))


# PUBLIC_INTERFACE
@router.get("/me", response_model=Envelope[UserOut])
def read_me(user: User = Depends(get_current_user)):
    return Envelope(data=UserOut.model_validate(user))


# PUBLIC_INTERFACE
@router.patch("/me", response_model=Envelope[UserOut])
def update_me(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in {"first_name", "last_name", "email_notifications"}:
            continue
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return Envelope(message="Profile updated successfully", data=UserOut.model_validate(user))


# PUBLIC_INTERFACE
@router.post("/change-password", response_model=Envelope[None])
def change_password(
    payload: PasswordChange,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password(payload.current_password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    user.hashed_password = hash_password(payload.new_password)
    db.commit()
    logger.info("Password changed for user %s", user.id, extra={"user_id": user.id})
    return Envelope(message="Password updated successfully")
