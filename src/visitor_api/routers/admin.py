import datetime
import logging
import math
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import reporting
from ..database import get_db
from ..deps import get_mailer, require_admin
from ..models import Admin, User, Visit, VisitStatus
from ..notifications import Mailer
from ..schemas import (
    AdminProfile,
    AdminSummary,
    Analytics,
    DailyReportOut,
    DashboardStats,
    Envelope,
    Pagination,
    SettingsUpdate,
    VisitOut,
    VisitorStats,
    VisitPage,
)
from ..time_utils import to_naive_utc, utcnow

router = APIRouter(prefix="/api/admin", tags=["admin"])

logger = logging.getLogger(__name__)


def _admin_record(db: Session, user: User) -> Admin:
    admin = db.query(Admin).filter(Admin.user_id == user.id).first()
    if admin is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Admin record not found")
    return admin


def merge_settings(current: Optional[dict], update) -> dict:
    """Return a new dict with the fields set on `update` laid over `current`."""
    merged = dict(current or {})
    merged.update(update.model_dump(by_alias=True, exclude_unset=True, exclude_none=True, mode="json"))
    return merged


# PUBLIC_INTERFACE
@router.get("/visitors", response_model=Envelope[VisitPage])
def list_visitors(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[VisitStatus] = Query(None, alias="status"),
    start_date: Optional[datetime.datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime.datetime] = Query(None, alias="endDate"),
    search: Optional[str] = Query(None, min_length=1),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Paginated visit list.
    Filters: status, visit-date range, and a case-insensitive search over
    the visitor's name and the visit purpose.
    """
    query = db.query(Visit).join(User, Visit.user_id == User.id)
    if status_filter is not None:
        query = query.filter(Visit.status == status_filter.value)
    if start_date is not None:
        query = query.filter(Visit.visit_date >= to_naive_utc(start_date))
    if end_date is not None:
        query = query.filter(Visit.visit_date <= to_naive_utc(end_date))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                Visit.purpose.ilike(pattern),
            )
        )

    total = query.count()
    visits = (
        query.order_by(Visit.visit_date.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return Envelope(
        data=VisitPage(
            visitors=[VisitOut.from_visit(v) for v in visits],
            pagination=Pagination(total=total, page=page, limit=limit, pages=math.ceil(total / limit)),
        )
    )


# PUBLIC_INTERFACE
@router.get("/analytics", response_model=Envelope[Analytics])
def get_analytics(
    start_date: Optional[datetime.datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime.datetime] = Query(None, alias="endDate"),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return Envelope(data=reporting.analytics(db, to_naive_utc(start_date), to_naive_utc(end_date)))


# PUBLIC_INTERFACE
@router.get("/summary", response_model=Envelope[AdminSummary])
def get_summary(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return Envelope(data=reporting.admin_summary(db))


# PUBLIC_INTERFACE
@router.get("/dashboard", response_model=Envelope[AdminProfile])
def get_dashboard(
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """The caller's admin profile and settings."""
    return Envelope(data=AdminProfile.from_admin(_admin_record(db, user)))


# PUBLIC_INTERFACE
@router.get("/dashboard-stats", response_model=Envelope[DashboardStats])
def get_dashboard_stats(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return Envelope(data=reporting.dashboard_stats(db, utcnow()))


# PUBLIC_INTERFACE
@router.get("/schedule", response_model=Envelope[List[VisitOut]])
def get_schedule(
    start: datetime.datetime = Query(...),
    end: datetime.datetime = Query(...),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Visits with a visit date between `start` and `end`, inclusive."""
    start, end = to_naive_utc(start), to_naive_utc(end)
    if end < start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must not precede start date")
    visits = (
        db.query(Visit)
        .filter(Visit.visit_date >= start, Visit.visit_date <= end)
        .order_by(Visit.visit_date)
        .all()
    )
    return Envelope(data=[VisitOut.from_visit(v) for v in visits])


# PUBLIC_INTERFACE
@router.get("/visitor-stats", response_model=Envelope[VisitorStats])
def get_visitor_stats(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return Envelope(data=reporting.visitor_stats(db, utcnow()))


# PUBLIC_INTERFACE
@router.patch("/settings", response_model=Envelope[AdminProfile])
def update_settings(
    payload: SettingsUpdate,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    admin = _admin_record(db, user)
    if payload.notification_settings is not None:
        admin.notification_settings = merge_settings(admin.notification_settings, payload.notification_settings)
    if payload.system_settings is not None:
        admin.system_settings = merge_settings(admin.system_settings, payload.system_settings)
    db.commit()
    db.refresh(admin)
    return Envelope(message="Settings updated successfully", data=AdminProfile.from_admin(admin))


# PUBLIC_INTERFACE
@router.post("/reports/daily", response_model=Envelope[DailyReportOut])
def send_daily_report(
    background: BackgroundTasks,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """
    E-mail today's visit report to the caller's system e-mail recipients
    (or to the caller when none are configured).
    """
    admin = _admin_record(db, user)
    report = reporting.daily_report(db, utcnow())
    recipients = list((admin.system_settings or {}).get("systemEmailRecipients") or []) or [user.email]
    queued = bool((admin.notification_settings or {}).get("dailyReports", True))
    if queued:
        background.add_task(
            mailer.send,
            recipients,
            "daily_report",
            **report.model_dump(mode="json"),
        )
    return Envelope(
        message="Daily report queued" if queued else "Daily reports are disabled",
        data=DailyReportOut(recipients=recipients, queued=queued, report=report),
    )
