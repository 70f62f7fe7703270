"""
SQLAlchemy ORM models for the Visitor Management System.
Entities: User, Admin, Visit.
"""

from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

from .roles import Role
from .time_utils import utcnow

Base = declarative_base()


# PUBLIC_INTERFACE
class VisitStatus(str, Enum):
    SCHEDULED = "scheduled"
    CHECKED_IN = "checked-in"
    CHECKED_OUT = "checked-out"
    CANCELLED = "cancelled"


def default_notification_settings():
    return {
        "newVisitorAlerts": True,
        "dailyReports": True,
        "checkInAlerts": True,
        "securityAlerts": True,
    }


def default_system_settings():
    return {
        "dataRetentionDays": 90,
        "autoCheckoutHours": 8,
        "defaultDashboardView": "calendar",
        "systemEmailRecipients": [],
    }


def default_permissions():
    return {
        "canManageAdmins": False,
        "canViewAnalytics": True,
        "canManageSettings": False,
    }


# PUBLIC_INTERFACE
class User(Base):
    """
    User model.
    Every person known to the system; `role` decides what they may do.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, unique=True, index=True)
    hashed_password = Column(String, nullable=False)     # Store hashed password, not plaintext
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    company = Column(String, nullable=True)
    role = Column(String, nullable=False, default=Role.VISITOR.value)
    is_active = Column(Boolean, nullable=False, default=True)
    email_notifications = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    admin_profile = relationship(
        "Admin", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    visits = relationship(
        "Visit",
        back_populates="user",
        foreign_keys="Visit.user_id",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def role_enum(self) -> Role:
        return Role.parse(self.role) or Role.VISITOR


# PUBLIC_INTERFACE
class Admin(Base):
    """
    Admin model.
    1:1 extension of a User promoted to admin: department, title and settings.
    """
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    department = Column(String, nullable=False)
    title = Column(String, nullable=False)
    timezone = Column(String, nullable=False, default="UTC")
    notification_settings = Column(JSON, nullable=False, default=default_notification_settings)
    system_settings = Column(JSON, nullable=False, default=default_system_settings)
    permissions = Column(JSON, nullable=False, default=default_permissions)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="admin_profile")


# PUBLIC_INTERFACE
class Visit(Base):
    """
    Visit model.
    One row per scheduled visit; carries the QR token used at check-in/out.
    """
    __tablename__ = "visits"
    __table_args__ = (
        Index("ix_visits_visit_date_status", "visit_date", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    host_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    company = Column(String, nullable=True)
    purpose = Column(String, nullable=False)
    visit_date = Column(DateTime, nullable=False)
    expected_duration = Column(Integer, nullable=False, default=60)  # minutes
    status = Column(String, nullable=False, default=VisitStatus.SCHEDULED.value)
    check_in_time = Column(DateTime, nullable=True)
    check_out_time = Column(DateTime, nullable=True)
    qr_token = Column(String, nullable=True, index=True)
    qr_token_expiry = Column(DateTime, nullable=True)
    notify_email = Column(Boolean, nullable=False, default=True)
    notify_sms = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="visits", foreign_keys=[user_id])
    host = relationship("User", foreign_keys=[host_id])
