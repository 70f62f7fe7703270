"""
Visit registration and QR-driven lifecycle transitions.
"""

import logging
from datetime import datetime
from typing import Tuple

from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.orm import Session

from .models import User, Visit, VisitStatus
from .qr_codes import QRTokenCodec, TokenCheck
from .schemas import VisitCreate
from .visit_lifecycle import InvalidTransition, VisitAction, transition_changes

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def create_visit(
    db: Session, codec: QRTokenCodec, user: User, payload: VisitCreate, now: datetime
) -> Visit:
    """Persist a scheduled visit for `user` with a freshly issued QR token."""
    host = None
    if payload.host_id is not None:
        host = db.get(User, payload.host_id)
        if host is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Host not found")

    prefs = payload.notification_preferences
    visit = Visit(
        user_id=user.id,
        host_id=host.id if host else None,
        company=payload.company or user.company,
        purpose=payload.purpose,
        visit_date=payload.visit_date,
        expected_duration=payload.expected_duration,
        status=VisitStatus.SCHEDULED.value,
        notify_email=prefs.email if prefs else True,
        notify_sms=prefs.sms if prefs else False,
        notes=payload.notes,
        qr_token=codec.issue(user.id, payload.visit_date, now=now),
        qr_token_expiry=codec.expiry_for(now),
        created_at=now,
        updated_at=now,
    )
    db.add(visit)
    db.commit()
    db.refresh(visit)
    logger.info("Visit %s scheduled for user %s", visit.id, user.id, extra={"visit_id": visit.id})
    return visit


# PUBLIC_INTERFACE
def resolve_token(db: Session, codec: QRTokenCodec, token: str, now: datetime) -> Tuple[Visit, TokenCheck]:
    """
    Verify `token` and load the visit it is currently attached to.
    Raises 400 for an invalid/expired token and 404 when no visit holds it.
    """
    check = codec.verify(token, now=now)
    if not check.valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=check.reason)

    visit = db.query(Visit).filter(Visit.qr_token == token).first()
    if visit is None or visit.user_id != check.visitor_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Visitor record not found")
    return visit, check


# PUBLIC_INTERFACE
def apply_transition(
    db: Session, visit: Visit, action: VisitAction, now: datetime, **extra
) -> Visit:
    """
    Move `visit` through `action` and persist it.

    The UPDATE is guarded on the status the visit had when it was read, so
    of two concurrent transitions only one succeeds; the other gets 409.
    """
    try:
        changes = transition_changes(visit, action, now)
    except InvalidTransition as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    changes.update(extra)
    changes["updated_at"] = now
    expected_status = visit.status
    result = db.execute(
        update(Visit)
        .where(Visit.id == visit.id, Visit.status == expected_status)
        .values(**changes)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Visit was updated by another request",
        )
    db.commit()
    db.refresh(visit)
    logger.info(
        "Visit %s moved %s -> %s",
        visit.id,
        expected_status,
        visit.status,
        extra={"visit_id": visit.id},
    )
    return visit


# PUBLIC_INTERFACE
def check_in(db: Session, codec: QRTokenCodec, token: str, now: datetime) -> Visit:
    """scheduled -> checked-in; the visit gets a new token for check-out."""
    visit, _ = resolve_token(db, codec, token, now)
    if visit.status != VisitStatus.SCHEDULED.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Visitor is already {visit.status}",
        )
    return apply_transition(
        db,
        visit,
        VisitAction.CHECK_IN,
        now,
        qr_token=codec.issue(visit.user_id, visit.visit_date, now=now),
        qr_token_expiry=codec.expiry_for(now),
    )


# PUBLIC_INTERFACE
def check_out(db: Session, codec: QRTokenCodec, token: str, now: datetime) -> Visit:
    """checked-in -> checked-out."""
    visit, _ = resolve_token(db, codec, token, now)
    if visit.status != VisitStatus.CHECKED_IN.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Visitor is not checked in",
        )
    return apply_transition(db, visit, VisitAction.CHECK_OUT, now)


# PUBLIC_INTERFACE
def cancel(db: Session, visit: Visit, now: datetime) -> Visit:
    """scheduled -> cancelled; the outstanding token is marked expired."""
    return apply_transition(db, visit, VisitAction.CANCEL, now, qr_token_expiry=now)
