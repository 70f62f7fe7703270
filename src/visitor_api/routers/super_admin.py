import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import require_super_admin
from ..models import Admin, User, Visit
from ..roles import PROTECTED_ROLES, Role
from ..schemas import (
    AdminAssignment,
    Envelope,
    PromoteRequest,
    Promotion,
    SystemWideSettingsUpdate,
    UpdatedCount,
    UserOut,
)
from .admin import merge_settings

router = APIRouter(prefix="/api/super-admin", tags=["super-admin"])

logger = logging.getLogger(__name__)


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _ensure_not_protected(user: User, action: str) -> None:
    if user.role_enum in PROTECTED_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot {action} a {user.role} user",
        )


# PUBLIC_INTERFACE
@router.get("/users", response_model=Envelope[List[UserOut]])
def list_users(
    _super_admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return Envelope(data=[UserOut.model_validate(u) for u in users])


# PUBLIC_INTERFACE
@router.post("/promote/{user_id}", response_model=Envelope[Promotion])
def promote(
    user_id: int,
    payload: PromoteRequest,
    acting: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    """
    Give a user the admin role and create (or update) their Admin record.
    ---
    Super-admin and developer accounts keep their role.
    """
    user = _get_user(db, user_id)
    _ensure_not_protected(user, "promote")

    user.role = Role.ADMIN.value
    admin = db.query(Admin).filter(Admin.user_id == user.id).first()
    if admin is None:
        admin = Admin(user_id=user.id, department=payload.department, title=payload.title)
        db.add(admin)
    else:
        admin.department = payload.department
        admin.title = payload.title
    db.commit()
    db.refresh(user)
    db.refresh(admin)
    logger.info("User %s promoted to admin by %s", user.id, acting.id, extra={"user_id": user.id})
    return Envelope(
        message="User promoted successfully",
        data=Promotion(
            user=UserOut.model_validate(user),
            admin=AdminAssignment(department=admin.department, title=admin.title),
        ),
    )


# PUBLIC_INTERFACE
@router.post("/demote/{user_id}", response_model=Envelope[UserOut])
def demote(
    user_id: int,
    acting: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    user = _get_user(db, user_id)
    _ensure_not_protected(user, "demote")

    user.role = Role.VISITOR.value
    db.query(Admin).filter(Admin.user_id == user.id).delete(synchronize_session=False)
    db.commit()
    db.refresh(user)
    logger.info("User %s demoted to visitor by %s", user.id, acting.id, extra={"user_id": user.id})
    return Envelope(message="Admin demoted successfully", data=UserOut.model_validate(user))


# PUBLIC_INTERFACE
@router.delete("/users/{user_id}", response_model=Envelope[None])
def delete_user(
    user_id: int,
    acting: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    """Delete a user together with their Admin record and visits."""
    user = _get_user(db, user_id)
    _ensure_not_protected(user, "delete")

    db.query(Visit).filter(Visit.host_id == user.id).update(
        {Visit.host_id: None}, synchronize_session=False
    )
    db.delete(user)
    db.commit()
    logger.info("User %s deleted by %s", user_id, acting.id, extra={"user_id": user_id})
    return Envelope(message="User deleted successfully")


# PUBLIC_INTERFACE
@router.patch("/system-settings", response_model=Envelope[UpdatedCount])
def update_system_settings(
    payload: SystemWideSettingsUpdate,
    _super_admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    """Merge the given settings into every admin's record."""
    admins = db.query(Admin).all()
    for admin in admins:
        if payload.notification_settings is not None:
            admin.notification_settings = merge_settings(admin.notification_settings, payload.notification_settings)
        if payload.system_settings is not None:
            admin.system_settings = merge_settings(admin.system_settings, payload.system_settings)
    db.commit()
    return Envelope(message="System settings updated successfully", data=UpdatedCount(updated=len(admins)))
