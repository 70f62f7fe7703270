"""
Runtime configuration for the Visitor Management API.

Values come from environment variables (optionally loaded from a .env file)
and are collected into a Settings object that the application factory hands
to every service it builds.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv
from sqlalchemy.engine.url import URL

load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


# PUBLIC_INTERFACE
def get_postgres_url() -> str:
    """Fallback database URL assembled from POSTGRES_* when DATABASE_URL is unset."""
    return URL.create(
        drivername="postgresql+psycopg2",
        username=os.getenv("POSTGRES_USER"),
        password=os.getenv("POSTGRES_PASSWORD"),
        host=os.getenv("POSTGRES_HOST", "localhost"),
        port=int(os.getenv("POSTGRES_PORT", "5432")),
        database=os.getenv("POSTGRES_DB"),
    ).render_as_string(hide_password=False)


# PUBLIC_INTERFACE
@dataclass
class Settings:
    """Application settings. Build with Settings.from_env() or directly in tests."""

    database_url: str
    environment: str = "development"
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24
    qr_secret_key: str = "change-me"
    qr_token_ttl_hours: int = 24
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    mail_from: Optional[str] = None
    super_admin_email: Optional[str] = None
    super_admin_password: Optional[str] = None
    log_level: str = "INFO"
    create_tables: bool = True

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in {"dev", "development", "local"}

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in {"prod", "production"}

    @classmethod
    def from_env(cls) -> "Settings":
        environment = os.getenv("ENV", "development")
        jwt_secret = os.getenv("JWT_SECRET_KEY", "change-me")
        origins = os.getenv("FRONTEND_URL", "http://localhost:3000")
        return cls(
            database_url=os.getenv("DATABASE_URL") or get_postgres_url(),
            environment=environment,
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            jwt_secret_key=jwt_secret,
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            jwt_expire_minutes=int(os.getenv("JWT_EXPIRE_MINUTES", str(60 * 24))),
            qr_secret_key=os.getenv("QR_SECRET_KEY", jwt_secret),
            qr_token_ttl_hours=int(os.getenv("QR_TOKEN_TTL_HOURS", "24")),
            smtp_host=os.getenv("SMTP_HOST") or None,
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_user=os.getenv("SMTP_USER") or None,
            smtp_password=os.getenv("SMTP_PASSWORD") or None,
            mail_from=os.getenv("MAIL_FROM") or os.getenv("SMTP_USER") or None,
            super_admin_email=os.getenv("SUPER_ADMIN_EMAIL") or None,
            super_admin_password=os.getenv("SUPER_ADMIN_PASSWORD") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            create_tables=_env_flag(
                "CREATE_TABLES", environment.lower() not in {"prod", "production"}
            ),
        )
