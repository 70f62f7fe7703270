"""
Pydantic request/response contracts.

JSON uses camelCase keys; Python code uses the snake_case field names.
Every response is wrapped in Envelope: {success, message?, data?, errors?}.
"""

import datetime
from typing import Annotated, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from .time_utils import to_naive_utc, to_utc_z

DataT = TypeVar("DataT")

# Stored naive-UTC; rendered with a trailing Z.
UtcDateTime = Annotated[datetime.datetime, PlainSerializer(to_utc_z, return_type=str, when_used="json")]


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# -------------------- Envelope --------------------

class FieldError(ApiModel):
    field: str
    message: str


class Envelope(ApiModel, Generic[DataT]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[DataT] = None
    errors: Optional[List[FieldError]] = None


# -------------------- Users & Auth --------------------

class UserBrief(ApiModel):
    id: int
    first_name: str
    last_name: str
    email: str


class UserOut(ApiModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    company: Optional[str] = None
    role: str
    is_active: bool
    email_notifications: bool
    created_at: UtcDateTime


class RegisterRequest(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    company: Optional[str] = None


class LoginRequest(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class AuthData(ApiModel):
    token: str
    token_type: str = "bearer"
    user: UserOut


class ProfileUpdate(ApiModel):
    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None
    company: Optional[str] = None
    email_notifications: Optional[bool] = None


class PasswordChange(ApiModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


# -------------------- Visits --------------------

class NotificationPreferences(ApiModel):
    email: bool = True
    sms: bool = False


class PreferencesUpdate(ApiModel):
    email: Optional[bool] = None
    sms: Optional[bool] = None


class VisitCreate(ApiModel):
    purpose: str = Field(..., min_length=1)
    visit_date: UtcDateTime
    expected_duration: int = Field(60, ge=15, description="Minutes, at least 15")
    company: Optional[str] = None
    notes: Optional[str] = None
    host_id: Optional[int] = None
    notification_preferences: Optional[NotificationPreferences] = None

    @field_validator("purpose", "company", "notes")
    @classmethod
    def _strip(cls, value):
        if value is None:
            return value
        return value.strip()

    @field_validator("purpose")
    @classmethod
    def _purpose_not_blank(cls, value):
        if not value:
            raise ValueError("Purpose is required")
        return value

    @field_validator("visit_date")
    @classmethod
    def _utc(cls, value):
        return to_naive_utc(value)


class VisitOut(ApiModel):
    id: int
    user_id: int
    user: Optional[UserBrief] = None
    host_id: Optional[int] = None
    host: Optional[UserBrief] = None
    company: Optional[str] = None
    purpose: str
    visit_date: UtcDateTime
    expected_duration: int
    status: str
    check_in_time: Optional[UtcDateTime] = None
    check_out_time: Optional[UtcDateTime] = None
    qr_code: Optional[str] = None
    qr_code_expiry: Optional[UtcDateTime] = None
    qr_code_url: Optional[str] = None
    notification_preferences: NotificationPreferences
    notes: Optional[str] = None
    created_at: UtcDateTime
    updated_at: UtcDateTime

    @classmethod
    def from_visit(cls, visit, qr_code_url: Optional[str] = None) -> "VisitOut":
        return cls(
            id=visit.id,
            user_id=visit.user_id,
            user=UserBrief.model_validate(visit.user) if visit.user is not None else None,
            host_id=visit.host_id,
            host=UserBrief.model_validate(visit.host) if visit.host is not None else None,
            company=visit.company,
            purpose=visit.purpose,
            visit_date=visit.visit_date,
            expected_duration=visit.expected_duration,
            status=visit.status,
            check_in_time=visit.check_in_time,
            check_out_time=visit.check_out_time,
            qr_code=visit.qr_token,
            qr_code_expiry=visit.qr_token_expiry,
            qr_code_url=qr_code_url,
            notification_preferences=NotificationPreferences(
                email=visit.notify_email, sms=visit.notify_sms
            ),
            notes=visit.notes,
            created_at=visit.created_at,
            updated_at=visit.updated_at,
        )


class MyVisits(ApiModel):
    upcoming_visits: List[VisitOut]
    active_visits: List[VisitOut]
    completed_visits: List[VisitOut]
    cancelled_visits: List[VisitOut]


class ScanRequest(ApiModel):
    qr_code: str = Field(..., min_length=1)


class QRCodeOut(ApiModel):
    visit_id: int
    qr_code: str
    qr_code_expiry: Optional[UtcDateTime] = None
    qr_code_url: str


class QRCodeStats(ApiModel):
    valid_qr_codes: int
    expired_qr_codes: int


class VisitSummary(ApiModel):
    total_visitors: int
    active_visitors: int
    pending_visitors: int
    checked_out_visitors: int
    upcoming_visits: int
    completed_visits: int
    total_visits: int
    qr_code_stats: QRCodeStats


# -------------------- Admin --------------------

class Pagination(ApiModel):
    total: int
    page: int
    limit: int
    pages: int


class VisitPage(ApiModel):
    visitors: List[VisitOut]
    pagination: Pagination


class PurposeCount(ApiModel):
    purpose: str
    count: int


class HourCount(ApiModel):
    hour: int
    count: int


class StatusCount(ApiModel):
    status: str
    count: int


class Analytics(ApiModel):
    total_visitors: int
    top_purposes: List[PurposeCount]
    average_daily_visitors: float
    visits_by_hour: List[HourCount]
    status_breakdown: List[StatusCount]


class AdminSummary(ApiModel):
    total_visitors: int
    active_visitors: int
    pending_visitors: int
    checked_out_visitors: int
    cancelled_visitors: int


class PeriodStats(ApiModel):
    total_visitors: int
    checked_in: int
    checked_out: int
    upcoming_visits: Optional[int] = None


class DashboardStats(ApiModel):
    today: PeriodStats
    this_week: PeriodStats


class VisitorStats(ApiModel):
    today_total: int
    checked_in: int
    pending: int
    completed: int


class NotificationSettings(ApiModel):
    new_visitor_alerts: bool = True
    daily_reports: bool = True
    check_in_alerts: bool = True
    security_alerts: bool = True


class SystemSettings(ApiModel):
    data_retention_days: int = 90
    auto_checkout_hours: int = 8
    default_dashboard_view: Literal["calendar", "list", "analytics"] = "calendar"
    system_email_recipients: List[str] = []


class AdminPermissions(ApiModel):
    can_manage_admins: bool = False
    can_view_analytics: bool = True
    can_manage_settings: bool = False


class NotificationSettingsUpdate(ApiModel):
    new_visitor_alerts: Optional[bool] = None
    daily_reports: Optional[bool] = None
    check_in_alerts: Optional[bool] = None
    security_alerts: Optional[bool] = None


class SystemSettingsUpdate(ApiModel):
    data_retention_days: Optional[int] = Field(None, ge=1)
    auto_checkout_hours: Optional[int] = Field(None, ge=1)
    default_dashboard_view: Optional[Literal["calendar", "list", "analytics"]] = None
    system_email_recipients: Optional[List[EmailStr]] = None


class SettingsUpdate(ApiModel):
    notification_settings: Optional[NotificationSettingsUpdate] = None
    system_settings: Optional[SystemSettingsUpdate] = None


class AdminProfile(ApiModel):
    id: int
    user_id: int
    email: str
    first_name: str
    last_name: str
    role: str
    phone: Optional[str] = None
    department: str
    title: str
    timezone: str
    notification_settings: NotificationSettings
    system_settings: SystemSettings
    permissions: AdminPermissions

    @classmethod
    def from_admin(cls, admin) -> "AdminProfile":
        user = admin.user
        return cls(
            id=admin.id,
            user_id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            phone=user.phone,
            department=admin.department,
            title=admin.title,
            timezone=admin.timezone,
            notification_settings=NotificationSettings.model_validate(admin.notification_settings or {}),
            system_settings=SystemSettings.model_validate(admin.system_settings or {}),
            permissions=AdminPermissions.model_validate(admin.permissions or {}),
        )


class DailyReport(ApiModel):
    total_visitors: int
    checked_in: int
    checked_out: int
    top_purposes: List[PurposeCount]


class DailyReportOut(ApiModel):
    recipients: List[str]
    queued: bool
    report: DailyReport


# -------------------- Super admin --------------------

class PromoteRequest(ApiModel):
    department: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)

    @field_validator("department", "title")
    @classmethod
    def _not_blank(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class AdminAssignment(ApiModel):
    department: str
    title: str


class Promotion(ApiModel):
    user: UserOut
    admin: AdminAssignment


class SystemWideSettingsUpdate(ApiModel):
    notification_settings: Optional[NotificationSettingsUpdate] = None
    system_settings: Optional[SystemSettingsUpdate] = None


class UpdatedCount(ApiModel):
    updated: int
