import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENV", "test")

import pytest
from fastapi.testclient import TestClient

from visitor_api.config import Settings
from visitor_api.main import create_app
from visitor_api.roles import Role

from tests.factories import RecordingMailer, auth_headers, make_admin, make_user


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        environment="test",
        jwt_secret_key="test-jwt-secret",
        qr_secret_key="test-qr-secret",
        log_level="WARNING",
    )


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def app(settings, mailer):
    return create_app(settings=settings, mailer=mailer)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def visitor(client, app):
    user_id = make_user(app, "visitor@example.com")
    return {"id": user_id, "headers": auth_headers(app, user_id)}


@pytest.fixture
def admin(client, app):
    user_id = make_admin(app)
    return {"id": user_id, "headers": auth_headers(app, user_id)}


@pytest.fixture
def super_admin(client, app):
    user_id = make_user(app, "root@example.com", role=Role.SUPER_ADMIN, first_name="Root", last_name="User")
    return {"id": user_id, "headers": auth_headers(app, user_id)}
