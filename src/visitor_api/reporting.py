"""
Visit statistics for the admin dashboard, analytics and daily report.

Aggregations that depend on date parts (day, hour) are computed in Python
so the same code runs on PostgreSQL and SQLite.
"""

from collections import Counter
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .models import Visit, VisitStatus
from .schemas import (
    AdminSummary,
    Analytics,
    DailyReport,
    DashboardStats,
    HourCount,
    PeriodStats,
    PurposeCount,
    QRCodeStats,
    StatusCount,
    VisitorStats,
    VisitSummary,
)
from .time_utils import day_bounds, week_bounds

SCHEDULED = VisitStatus.SCHEDULED.value
CHECKED_IN = VisitStatus.CHECKED_IN.value
CHECKED_OUT = VisitStatus.CHECKED_OUT.value
CANCELLED = VisitStatus.CANCELLED.value


def _count(db: Session, *criteria) -> int:
    return db.query(func.count(Visit.id)).filter(*criteria).scalar() or 0


def _date_range(start: Optional[datetime], end: Optional[datetime]):
    criteria = []
    if start is not None:
        criteria.append(Visit.visit_date >= start)
    if end is not None:
        criteria.append(Visit.visit_date <= end)
    return criteria


def top_purposes(db: Session, *criteria, limit: int = 5):
    rows = (
        db.query(Visit.purpose, func.count(Visit.id).label("count"))
        .filter(*criteria)
        .group_by(Visit.purpose)
        .order_by(func.count(Visit.id).desc(), Visit.purpose)
        .limit(limit)
        .all()
    )
    return [PurposeCount(purpose=purpose, count=count) for purpose, count in rows]


# PUBLIC_INTERFACE
def visit_summary(db: Session, now: datetime) -> VisitSummary:
    total = _count(db)
    checked_out = _count(db, Visit.status == CHECKED_OUT)
    valid_qr = _count(db, Visit.qr_token_expiry > now)
    return VisitSummary(
        total_visitors=total,
        active_visitors=_count(db, Visit.status == CHECKED_IN),
        pending_visitors=_count(db, Visit.status == SCHEDULED),
        checked_out_visitors=checked_out,
        upcoming_visits=_count(db, Visit.status == SCHEDULED, Visit.visit_date > now),
        completed_visits=checked_out,
        total_visits=total,
        qr_code_stats=QRCodeStats(valid_qr_codes=valid_qr, expired_qr_codes=total - valid_qr),
    )


# PUBLIC_INTERFACE
def admin_summary(db: Session) -> AdminSummary:
    counts = dict(db.query(Visit.status, func.count(Visit.id)).group_by(Visit.status).all())
    return AdminSummary(
        total_visitors=sum(counts.values()),
        active_visitors=counts.get(CHECKED_IN, 0),
        pending_visitors=counts.get(SCHEDULED, 0),
        checked_out_visitors=counts.get(CHECKED_OUT, 0),
        cancelled_visitors=counts.get(CANCELLED, 0),
    )


# PUBLIC_INTERFACE
def analytics(db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Analytics:
    """
    Totals, top five purposes, average visits per active day,
    visits per hour of day and per status, over an optional visit-date range.
    """
    criteria = _date_range(start, end)
    rows = db.query(Visit.visit_date, Visit.status).filter(*criteria).all()

    per_day = Counter(visit_date.date() for visit_date, _ in rows)
    per_hour = Counter(visit_date.hour for visit_date, _ in rows)
    per_status = Counter(status for _, status in rows)

    average = sum(per_day.values()) / len(per_day) if per_day else 0
    return Analytics(
        total_visitors=len(rows),
        top_purposes=top_purposes(db, *criteria),
        average_daily_visitors=round(average, 2),
        visits_by_hour=[HourCount(hour=h, count=c) for h, c in sorted(per_hour.items())],
        status_breakdown=[StatusCount(status=s, count=c) for s, c in sorted(per_status.items())],
    )


def _period_stats(db: Session, start: datetime, end: datetime) -> PeriodStats:
    return PeriodStats(
        total_visitors=_count(db, Visit.visit_date >= start, Visit.visit_date <= end),
        checked_in=_count(
            db,
            Visit.status == CHECKED_IN,
            Visit.check_in_time >= start,
            Visit.check_in_time <= end,
        ),
        checked_out=_count(
            db,
            Visit.status == CHECKED_OUT,
            Visit.check_out_time >= start,
            Visit.check_out_time <= end,
        ),
    )


# PUBLIC_INTERFACE
def dashboard_stats(db: Session, now: datetime) -> DashboardStats:
    today = _period_stats(db, *day_bounds(now))
    today.upcoming_visits = _count(db, Visit.status == SCHEDULED, Visit.visit_date >= now)
    return DashboardStats(today=today, this_week=_period_stats(db, *week_bounds(now)))


# PUBLIC_INTERFACE
def visitor_stats(db: Session, now: datetime) -> VisitorStats:
    start, end = day_bounds(now)
    scheduled_today = [Visit.visit_date >= start, Visit.visit_date <= end]
    return VisitorStats(
        today_total=_count(db, *scheduled_today),
        checked_in=_count(db, Visit.status == CHECKED_IN, Visit.check_in_time >= start, Visit.check_in_time <= end),
        pending=_count(db, Visit.status == SCHEDULED, *scheduled_today),
        completed=_count(db, Visit.status == CHECKED_OUT, Visit.check_out_time >= start, Visit.check_out_time <= end),
    )


# PUBLIC_INTERFACE
def daily_report(db: Session, now: datetime) -> DailyReport:
    start, end = day_bounds(now)
    scheduled_today = [Visit.visit_date >= start, Visit.visit_date <= end]
    return DailyReport(
        total_visitors=_count(db, *scheduled_today),
        checked_in=_count(db, Visit.check_in_time >= start, Visit.check_in_time <= end),
        checked_out=_count(db, Visit.check_out_time >= start, Visit.check_out_time <= end),
        top_purposes=top_purposes(db, *scheduled_today),
    )
