"""
QR token codec and QR image rendering.

A token binds a visitor (user id) to a visit date. It is an itsdangerous
URL-safe timed token: the JSON payload (visitor id, visit date, random
nonce) plus the issuance time, signed with HMAC-SHA256 under the server
secret. The signature is checked before the payload is read, and tokens
expire a fixed TTL (24h by default) after issuance. Clock skew is not
compensated.
"""

import base64
import hashlib
import io
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import qrcode
from itsdangerous import BadData, BadSignature, SignatureExpired, TimestampSigner, URLSafeTimedSerializer

from .time_utils import parse_iso_datetime, to_naive_utc, to_utc_z, utcnow

DEFAULT_TTL = timedelta(hours=24)
TOKEN_SALT = "visit-qr"


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class TokenCheck:
    """Outcome of QRTokenCodec.verify(). `reason` is set only when invalid."""

    valid: bool
    visitor_id: Optional[int] = None
    visit_date: Optional[datetime] = None
    issued_at: Optional[datetime] = None
    reason: Optional[str] = None

    @classmethod
    def rejected(cls, reason: str) -> "TokenCheck":
        return cls(valid=False, reason=reason)


class _ClockedSigner(TimestampSigner):
    """TimestampSigner whose notion of 'now' can be pinned (naive UTC)."""

    def __init__(self, *args, now: Optional[datetime] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.now = now

    def get_timestamp(self) -> int:
        if self.now is None:
            return super().get_timestamp()
        return int(self.now.replace(tzinfo=timezone.utc).timestamp())


# PUBLIC_INTERFACE
class QRTokenCodec:
    """Issues and verifies signed, time-limited visit tokens."""

    def __init__(self, secret_key: str, ttl: timedelta = DEFAULT_TTL):
        if not secret_key:
            raise ValueError("QR token secret must not be empty")
        self._secret_key = secret_key
        self.ttl = ttl

    def _serializer(self, now: Optional[datetime]) -> URLSafeTimedSerializer:
        return URLSafeTimedSerializer(
            self._secret_key,
            salt=TOKEN_SALT,
            signer=_ClockedSigner,
            signer_kwargs={"digest_method": hashlib.sha256, "now": to_naive_utc(now)},
        )

    def expiry_for(self, issued_at: datetime) -> datetime:
        return issued_at + self.ttl

    # PUBLIC_INTERFACE
    def issue(self, visitor_id: int, visit_date: datetime, now: Optional[datetime] = None) -> str:
        """
        Produce a token for (visitor_id, visit_date) stamped with `now`.
        Two calls with the same arguments yield different tokens (random nonce).
        """
        payload = {
            "visitorId": int(visitor_id),
            "visitDate": to_utc_z(to_naive_utc(visit_date)),
            "nonce": secrets.token_hex(16),
        }
        return self._serializer(now or utcnow()).dumps(payload)

    # PUBLIC_INTERFACE
    def verify(self, token: str, now: Optional[datetime] = None) -> TokenCheck:
        """
        Check a token's signature and age. Never raises for bad input; the
        returned TokenCheck carries the reason instead.
        """
        if not token or token.count(".") < 2:
            return TokenCheck.rejected("Invalid QR code format")

        try:
            payload, issued_at = self._serializer(now or utcnow()).loads(
                token,
                max_age=int(self.ttl.total_seconds()),
                return_timestamp=True,
            )
        except SignatureExpired:
            return TokenCheck.rejected("QR code has expired")
        except BadSignature:
            return TokenCheck.rejected("Invalid QR code")
        except BadData:
            return TokenCheck.rejected("Invalid QR code format")

        # Signed by us, but still checked field by field.
        try:
            visitor_id = payload["visitorId"]
            visit_date = payload["visitDate"]
            if not isinstance(visitor_id, int) or isinstance(visitor_id, bool):
                raise ValueError("visitorId")
            if not isinstance(visit_date, str) or not isinstance(payload.get("nonce"), str):
                raise ValueError("visitDate")
            visit_date = parse_iso_datetime(visit_date)
            if visit_date is None:
                raise ValueError("visitDate")
        except (KeyError, TypeError, ValueError):
            return TokenCheck.rejected("Invalid QR code format")

        return TokenCheck(
            valid=True,
            visitor_id=visitor_id,
            visit_date=visit_date,
            issued_at=to_naive_utc(issued_at),
        )


# PUBLIC_INTERFACE
def render_qr_data_url(token: str) -> str:
    """
    Render a token as a PNG QR image and return it as a data URL
    suitable for <img src="..."> in e-mails and the web client.
    """
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=2,
    )
    qr.add_data(token)
    qr.make(fit=True)
    image = qr.make_image()
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")
