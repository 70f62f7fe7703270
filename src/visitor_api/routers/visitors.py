import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import visit_service
from ..database import get_db
from ..deps import get_mailer, get_qr_codec, require_admin, require_visitor
from ..models import User, Visit, VisitStatus
from ..notifications import Mailer
from ..qr_codes import QRTokenCodec, render_qr_data_url
from ..reporting import visit_summary
from ..roles import Role
from ..schemas import (
    Envelope,
    MyVisits,
    NotificationPreferences,
    PreferencesUpdate,
    QRCodeOut,
    ScanRequest,
    VisitCreate,
    VisitOut,
    VisitSummary,
)
from ..time_utils import to_utc_z, utcnow
from ..visit_lifecycle import is_terminal

router = APIRouter(prefix="/api/visitors", tags=["visitor"])

logger = logging.getLogger(__name__)


def _owned_visit(db: Session, visit_id: int, user: User, allow_admin: bool = True) -> Visit:
    visit = db.get(Visit, visit_id)
    if visit is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Visitor record not found")
    if visit.user_id != user.id and not (allow_admin and user.role_enum.meets(Role.ADMIN)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your visit")
    return visit


def _queue_qr_email(background: BackgroundTasks, mailer: Mailer, visit: Visit, qr_code_url: str) -> None:
    owner = visit.user
    if owner is None or not owner.email_notifications or not visit.notify_email:
        return
    background.add_task(
        mailer.send,
        owner.email,
        "visitor_qr_code",
        visitor_name=owner.full_name,
        qr_code_url=qr_code_url,
    )


# PUBLIC_INTERFACE
@router.post("", response_model=Envelope[VisitOut], status_code=status.HTTP_201_CREATED)
def create_visit(
    payload: VisitCreate,
    background: BackgroundTasks,
    user: User = Depends(require_visitor),
    db: Session = Depends(get_db),
    codec: QRTokenCodec = Depends(get_qr_codec),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Register a visit for the current user.
    ---
    The visit starts as `scheduled` with a QR token valid for 24 hours. The
    token is e-mailed to the visitor and the host (if any) gets an alert.
    """
    visit = visit_service.create_visit(db, codec, user, payload, utcnow())
    qr_code_url = render_qr_data_url(visit.qr_token)
    _queue_qr_email(background, mailer, visit, qr_code_url)
    if visit.host is not None and visit.host.email_notifications:
        background.add_task(
            mailer.send,
            visit.host.email,
            "new_visitor_alert",
            visitor_name=user.full_name,
            visit_date=to_utc_z(visit.visit_date),
            purpose=visit.purpose,
        )
    return Envelope(
        message="Visitor record created successfully",
        data=VisitOut.from_visit(visit, qr_code_url=qr_code_url),
    )


# PUBLIC_INTERFACE
@router.get("", response_model=Envelope[List[VisitOut]])
def list_visits(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """All visits, most recent visit date first."""
    visits = db.query(Visit).order_by(Visit.visit_date.desc()).all()
    return Envelope(data=[VisitOut.from_visit(v) for v in visits])


# PUBLIC_INTERFACE
@router.get("/my-visits", response_model=Envelope[MyVisits])
def my_visits(
    user: User = Depends(require_visitor),
    db: Session = Depends(get_db),
):
    """The caller's visits grouped by lifecycle stage."""
    visits = (
        db.query(Visit)
        .filter(Visit.user_id == user.id)
        .order_by(Visit.visit_date.desc())
        .all()
    )
    groups = {status_: [] for status_ in VisitStatus}
    for visit in visits:
        groups[VisitStatus(visit.status)].append(VisitOut.from_visit(visit))
    return Envelope(
        data=MyVisits(
            upcoming_visits=groups[VisitStatus.SCHEDULED],
            active_visits=groups[VisitStatus.CHECKED_IN],
            completed_visits=groups[VisitStatus.CHECKED_OUT],
            cancelled_visits=groups[VisitStatus.CANCELLED],
        )
    )


# PUBLIC_INTERFACE
@router.get("/summary", response_model=Envelope[VisitSummary])
def summary(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return Envelope(data=visit_summary(db, utcnow()))


# PUBLIC_INTERFACE
@router.post("/scan", response_model=Envelope[VisitOut])
def scan(
    payload: ScanRequest,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    codec: QRTokenCodec = Depends(get_qr_codec),
):
    """Look up the visit behind a scanned QR code without changing it."""
    visit, _ = visit_service.resolve_token(db, codec, payload.qr_code, utcnow())
    return Envelope(data=VisitOut.from_visit(visit))


# PUBLIC_INTERFACE
@router.post("/check-in/{token}", response_model=Envelope[VisitOut])
def check_in(
    token: str,
    background: BackgroundTasks,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    codec: QRTokenCodec = Depends(get_qr_codec),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Check a visitor in with the QR token from their registration.
    A new token for check-out replaces it and is e-mailed to the visitor.
    """
    visit = visit_service.check_in(db, codec, token, utcnow())
    qr_code_url = render_qr_data_url(visit.qr_token)
    _queue_qr_email(background, mailer, visit, qr_code_url)
    return Envelope(
        message="Visitor checked in successfully",
        data=VisitOut.from_visit(visit, qr_code_url=qr_code_url),
    )


# PUBLIC_INTERFACE
@router.post("/check-out/{token}", response_model=Envelope[VisitOut])
def check_out(
    token: str,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    codec: QRTokenCodec = Depends(get_qr_codec),
):
    visit = visit_service.check_out(db, codec, token, utcnow())
    return Envelope(message="Visitor checked out successfully", data=VisitOut.from_visit(visit))


# PUBLIC_INTERFACE
@router.post("/{visit_id}/cancel", response_model=Envelope[VisitOut])
def cancel_visit(
    visit_id: int,
    user: User = Depends(require_visitor),
    db: Session = Depends(get_db),
):
    visit = _owned_visit(db, visit_id, user)
    visit = visit_service.cancel(db, visit, utcnow())
    return Envelope(message="Visit cancelled successfully", data=VisitOut.from_visit(visit))


# PUBLIC_INTERFACE
@router.get("/{visit_id}/qr-code", response_model=Envelope[QRCodeOut])
def visit_qr_code(
    visit_id: int,
    user: User = Depends(require_visitor),
    db: Session = Depends(get_db),
):
    """The visit's current token rendered as a PNG data URL. Finished visits have none."""
    visit = _owned_visit(db, visit_id, user)
    if not visit.qr_token or is_terminal(visit.status):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No QR code for this visit")
    return Envelope(
        data=QRCodeOut(
            visit_id=visit.id,
            qr_code=visit.qr_token,
            qr_code_expiry=visit.qr_token_expiry,
            qr_code_url=render_qr_data_url(visit.qr_token),
        )
    )


# PUBLIC_INTERFACE
@router.patch("/{visit_id}/preferences", response_model=Envelope[NotificationPreferences])
def update_preferences(
    visit_id: int,
    payload: PreferencesUpdate,
    user: User = Depends(require_visitor),
    db: Session = Depends(get_db),
):
    visit = _owned_visit(db, visit_id, user, allow_admin=False)
    if payload.email is not None:
        visit.notify_email = payload.email
    if payload.sms is not None:
        visit.notify_sms = payload.sms
    db.commit()
    db.refresh(visit)
    return Envelope(
        message="Preferences updated successfully",
        data=NotificationPreferences(email=visit.notify_email, sms=visit.notify_sms),
    )
