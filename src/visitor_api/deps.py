"""
FastAPI dependencies: services from app state, the current user, role gates.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import Settings
from .database import get_db
from .models import User
from .notifications import Mailer
from .qr_codes import QRTokenCodec
from .roles import Role
from .security import InvalidAccessToken, decode_access_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_qr_codec(request: Request) -> QRTokenCodec:
    return request.app.state.qr_codec


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# PUBLIC_INTERFACE
def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """Reads the bearer JWT, validates it and returns the user from the database."""
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Authentication required")

    try:
        payload = decode_access_token(
            credentials.credentials, settings.jwt_secret_key, settings.jwt_algorithm
        )
    except InvalidAccessToken:
        raise _unauthorized("Invalid or expired token")

    subject = str(payload.get("sub", "")).strip()
    if not subject.isdigit():
        raise _unauthorized("Invalid token subject")

    user = db.get(User, int(subject))
    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")
    return user


# PUBLIC_INTERFACE
def require_role(minimum: Role):
    """
    Dependency factory: lets the request through when the current user's
    role meets `minimum` in the visitor < admin < super-admin < developer order.
    """

    def dependency(user: User = Depends(get_current_user)) -> User:
        if not user.role_enum.meets(minimum):
            logger.info(
                "Denied %s access to user %s with role %s",
                minimum.value,
                user.id,
                user.role,
                extra={"user_id": user.id},
            )
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return dependency


require_visitor = require_role(Role.VISITOR)
require_admin = require_role(Role.ADMIN)
require_super_admin = require_role(Role.SUPER_ADMIN)
