import json
import logging

from fastapi.testclient import TestClient

from visitor_api.bootstrap import ensure_super_admin
from visitor_api.config import Settings
from visitor_api.logging_setup import JsonFormatter
from visitor_api.main import create_app
from visitor_api.models import User

from tests.factories import RecordingMailer


def _boom():
    raise RuntimeError("database exploded")


def test_root_lists_endpoints(client):
    response = client.get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["availableEndpoints"]["visitors"] == "/api/visitors"
    assert body["data"]["status"]["environment"] == "test"
    assert body["data"]["status"]["timestamp"].endswith("Z")


def test_unknown_route_uses_envelope(client):
    response = client.get("/api/nowhere")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Not Found"}


def test_unhandled_error_hides_details_outside_development(app):
    app.add_api_route("/boom", _boom)

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/boom")

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Internal Server Error"}


def test_unhandled_error_shows_details_in_development(settings):
    settings.environment = "development"
    app = create_app(settings=settings, mailer=RecordingMailer())
    app.add_api_route("/boom", _boom)

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/boom")

    assert response.status_code == 500
    assert response.json()["error"] == "database exploded"


def test_startup_creates_configured_super_admin(settings):
    settings.super_admin_email = "Boss@Example.com"
    settings.super_admin_password = "rootpass1"
    app = create_app(settings=settings, mailer=RecordingMailer())

    with TestClient(app) as client:
        login = client.post("/api/auth/login", json={"email": "boss@example.com", "password": "rootpass1"})
        db = app.state.database.session()
        try:
            created_again = ensure_super_admin(db, settings)
            count = db.query(User).count()
        finally:
            db.close()

    assert login.status_code == 200
    assert login.json()["data"]["user"]["role"] == "super-admin"
    assert created_again is False
    assert count == 1


def test_super_admin_bootstrap_needs_credentials(client, app, settings):
    db = app.state.database.session()
    try:
        assert ensure_super_admin(db, settings) is False
        assert db.query(User).count() == 0
    finally:
        db.close()


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/visitors")
    monkeypatch.setenv("FRONTEND_URL", "https://a.example.com, https://b.example.com")
    monkeypatch.setenv("JWT_SECRET_KEY", "jwt-secret")
    monkeypatch.delenv("QR_SECRET_KEY", raising=False)
    monkeypatch.delenv("CREATE_TABLES", raising=False)
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.is_production
    assert not settings.is_development
    assert settings.cors_origins == ["https://a.example.com", "https://b.example.com"]
    assert settings.qr_secret_key == "jwt-secret"
    assert settings.create_tables is False
    assert settings.log_level == "DEBUG"


def test_json_formatter_masks_secrets():
    record = logging.LogRecord(
        "visitor_api.test", logging.INFO, __file__, 1,
        "login password=hunter22 with Authorization: Bearer abc.def", None, None,
    )
    record.user_id = 7

    payload = json.loads(JsonFormatter("%(message)s").format(record))

    assert "hunter22" not in payload["message"]
    assert "abc.def" not in payload["message"]
    assert payload["user_id"] == 7
    assert payload["level"] == "INFO"
