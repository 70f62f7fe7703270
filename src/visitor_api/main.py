import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .bootstrap import ensure_super_admin
from .config import Settings
from .database import Database
from .errors import register_exception_handlers
from .logging_setup import configure_logging
from .notifications import Mailer
from .qr_codes import QRTokenCodec
from .routers import admin, auth, super_admin, visitors
from .time_utils import to_utc_z, utcnow

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "auth", "description": "Registration, login and profile"},
    {"name": "visitor", "description": "Visit registration and QR check-in/out"},
    {"name": "admin", "description": "Admin dashboard, analytics and settings"},
    {"name": "super-admin", "description": "User and role management"},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    database: Database = app.state.database

    if settings.create_tables:
        database.create_all()
    db = database.session()
    try:
        ensure_super_admin(db, settings)
    finally:
        db.close()
    logger.info("Visitor Management API started (env=%s)", settings.environment)

    yield

    database.dispose()
    logger.info("Visitor Management API stopped")


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    mailer: Optional[Mailer] = None,
) -> FastAPI:
    """
    Build the FastAPI application and the services it depends on.
    Tests pass their own settings, database and mailer.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Visitor Management Backend",
        description="API for visit registration, QR check-in/out, admin dashboards and role management.",
        version="1.0.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database or Database(settings.database_url)
    app.state.qr_codec = QRTokenCodec(
        settings.qr_secret_key, ttl=timedelta(hours=settings.qr_token_ttl_hours)
    )
    app.state.mailer = mailer or Mailer.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(visitors.router)
    app.include_router(admin.router)
    app.include_router(super_admin.router)

    # PUBLIC_INTERFACE
    @app.get("/", tags=["admin"])
    def root():
        """
        Health check and endpoint directory.
        ---
        Returns {"success": true, ...} if API is up.
        """
        return {
            "success": True,
            "message": "Welcome to the Visitor Management System API",
            "data": {
                "version": app.version,
                "documentation": "/docs",
                "availableEndpoints": {
                    "authentication": "/api/auth",
                    "visitors": "/api/visitors",
                    "admin": "/api/admin",
                    "superAdmin": "/api/super-admin",
                },
                "status": {
                    "server": "Running",
                    "environment": settings.environment,
                    "timestamp": to_utc_z(utcnow()),
                },
            },
        }

    return app


app = create_app()
