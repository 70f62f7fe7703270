import logging

from sqlalchemy.orm import Session

from .config import Settings
from .models import User
from .roles import Role
from .security import hash_password

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def ensure_super_admin(db: Session, settings: Settings) -> bool:
    """
    Create the configured super-admin account if it does not exist yet.
    Returns True when an account was created.
    """
    if not settings.super_admin_email or not settings.super_admin_password:
        return False

    email = settings.super_admin_email.strip().lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing is not None:
        logger.info("Super admin %s already exists", email)
        return False

    db.add(
        User(
            email=email,
            hashed_password=hash_password(settings.super_admin_password),
            first_name="Super",
            last_name="Admin",
            role=Role.SUPER_ADMIN.value,
            is_active=True,
        )
    )
    db.commit()
    logger.info("Created super admin %s", email)
    return True
