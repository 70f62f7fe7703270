from datetime import timedelta

import pytest

from visitor_api.models import Admin
from visitor_api.roles import Role
from visitor_api.time_utils import to_utc_z, utcnow

from tests.factories import auth_headers, make_user

ADMIN_ENDPOINTS = [
    ("get", "/api/admin/visitors"),
    ("get", "/api/admin/analytics"),
    ("get", "/api/admin/summary"),
    ("get", "/api/admin/dashboard"),
    ("get", "/api/admin/dashboard-stats"),
    ("get", "/api/admin/visitor-stats"),
    ("get", "/api/admin/schedule?start=2025-06-01T00:00:00Z&end=2025-06-02T00:00:00Z"),
    ("patch", "/api/admin/settings"),
    ("post", "/api/admin/reports/daily"),
]


def _visit(client, headers, visit_date, purpose="Meeting"):
    response = client.post(
        "/api/visitors",
        json={"visitDate": visit_date, "purpose": purpose, "expectedDuration": 30},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _admin_record(app, user_id):
    db = app.state.database.session()
    try:
        return db.query(Admin).filter(Admin.user_id == user_id).one()
    finally:
        db.close()


@pytest.mark.parametrize("method, url", ADMIN_ENDPOINTS)
def test_admin_endpoints_reject_visitors(client, visitor, method, url):
    kwargs = {"json": {}} if method in ("patch", "post") else {}

    response = getattr(client, method)(url, headers=visitor["headers"], **kwargs)

    assert response.status_code == 403
    assert response.json() == {"success": False, "message": "Insufficient permissions"}


@pytest.mark.parametrize("method, url", ADMIN_ENDPOINTS)
def test_admin_endpoints_require_login(client, method, url):
    response = getattr(client, method)(url)

    assert response.status_code == 401


def test_visitor_list_paginates_and_filters(client, visitor, admin):
    for day in range(1, 6):
        _visit(client, visitor["headers"], f"2025-06-0{day}T09:00:00Z", purpose=f"Audit {day}")
    _visit(client, visitor["headers"], "2025-06-07T09:00:00Z", purpose="Interview")

    first = client.get("/api/admin/visitors?page=1&limit=4", headers=admin["headers"]).json()["data"]
    second = client.get("/api/admin/visitors?page=2&limit=4", headers=admin["headers"]).json()["data"]
    searched = client.get("/api/admin/visitors?search=interv", headers=admin["headers"]).json()["data"]
    ranged = client.get(
        "/api/admin/visitors?startDate=2025-06-02T00:00:00Z&endDate=2025-06-03T23:59:59Z",
        headers=admin["headers"],
    ).json()["data"]

    assert first["pagination"] == {"total": 6, "page": 1, "limit": 4, "pages": 2}
    assert len(first["visitors"]) == 4
    assert first["visitors"][0]["visitDate"] == "2025-06-07T09:00:00Z"
    assert len(second["visitors"]) == 2
    assert [v["purpose"] for v in searched["visitors"]] == ["Interview"]
    assert sorted(v["purpose"] for v in ranged["visitors"]) == ["Audit 2", "Audit 3"]


def test_visitor_list_filters_by_status_and_name(client, app, visitor, admin):
    visit = _visit(client, visitor["headers"], "2025-06-01T09:00:00Z")
    _visit(client, visitor["headers"], "2025-06-02T09:00:00Z")
    other = auth_headers(app, make_user(app, "zed@example.com", first_name="Zed", last_name="Shaw"))
    _visit(client, other, "2025-06-03T09:00:00Z")
    client.post(f"/api/visitors/check-in/{visit['qrCode']}", headers=admin["headers"])

    checked_in = client.get("/api/admin/visitors?status=checked-in", headers=admin["headers"]).json()["data"]
    by_name = client.get("/api/admin/visitors?search=shaw", headers=admin["headers"]).json()["data"]
    bad = client.get("/api/admin/visitors?status=pending", headers=admin["headers"])

    assert [v["id"] for v in checked_in["visitors"]] == [visit["id"]]
    assert [v["user"]["lastName"] for v in by_name["visitors"]] == ["Shaw"]
    assert bad.status_code == 400


def test_visitor_list_limit_is_capped(client, admin):
    response = client.get("/api/admin/visitors?limit=500", headers=admin["headers"])

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "limit"


def test_analytics(client, visitor, admin):
    _visit(client, visitor["headers"], "2025-06-01T09:15:00Z", purpose="Meeting")
    _visit(client, visitor["headers"], "2025-06-01T09:45:00Z", purpose="Meeting")
    _visit(client, visitor["headers"], "2025-06-02T14:00:00Z", purpose="Delivery")

    data = client.get("/api/admin/analytics", headers=admin["headers"]).json()["data"]

    assert data["totalVisitors"] == 3
    assert data["topPurposes"] == [{"purpose": "Meeting", "count": 2}, {"purpose": "Delivery", "count": 1}]
    assert data["averageDailyVisitors"] == 1.5
    assert data["visitsByHour"] == [{"hour": 9, "count": 2}, {"hour": 14, "count": 1}]
    assert data["statusBreakdown"] == [{"status": "scheduled", "count": 3}]


def test_analytics_date_range(client, visitor, admin):
    _visit(client, visitor["headers"], "2025-06-01T09:00:00Z")
    _visit(client, visitor["headers"], "2025-07-01T09:00:00Z")

    data = client.get(
        "/api/admin/analytics?startDate=2025-06-15T00:00:00Z", headers=admin["headers"]
    ).json()["data"]

    assert data["totalVisitors"] == 1


def test_summary_counts_by_status(client, visitor, admin):
    first = _visit(client, visitor["headers"], "2025-06-01T09:00:00Z")
    second = _visit(client, visitor["headers"], "2025-06-02T09:00:00Z")
    _visit(client, visitor["headers"], "2025-06-03T09:00:00Z")
    client.post(f"/api/visitors/check-in/{first['qrCode']}", headers=admin["headers"])
    client.post(f"/api/visitors/{second['id']}/cancel", headers=visitor["headers"])

    data = client.get("/api/admin/summary", headers=admin["headers"]).json()["data"]

    assert data == {
        "totalVisitors": 3,
        "activeVisitors": 1,
        "pendingVisitors": 1,
        "checkedOutVisitors": 0,
        "cancelledVisitors": 1,
    }


def test_dashboard_returns_admin_profile(client, admin):
    data = client.get("/api/admin/dashboard", headers=admin["headers"]).json()["data"]

    assert data["email"] == "admin@example.com"
    assert data["department"] == "Security"
    assert data["notificationSettings"]["dailyReports"] is True
    assert data["systemSettings"]["defaultDashboardView"] == "calendar"
    assert data["permissions"]["canManageAdmins"] is False


def test_dashboard_without_admin_record(client, app):
    user_id = make_user(app, "bare@example.com", role=Role.ADMIN)

    response = client.get("/api/admin/dashboard", headers=auth_headers(app, user_id))

    assert response.status_code == 404
    assert response.json()["message"] == "Admin record not found"


def test_dashboard_and_visitor_stats_for_today(client, visitor, admin):
    now = utcnow()
    today = _visit(client, visitor["headers"], to_utc_z(now))
    _visit(client, visitor["headers"], to_utc_z(now - timedelta(days=30)))
    client.post(f"/api/visitors/check-in/{today['qrCode']}", headers=admin["headers"])

    stats = client.get("/api/admin/dashboard-stats", headers=admin["headers"]).json()["data"]
    visitor_stats = client.get("/api/admin/visitor-stats", headers=admin["headers"]).json()["data"]

    assert stats["today"]["totalVisitors"] == 1
    assert stats["today"]["checkedIn"] == 1
    assert stats["today"]["checkedOut"] == 0
    assert stats["thisWeek"]["checkedIn"] == 1
    assert stats["thisWeek"]["upcomingVisits"] is None
    assert visitor_stats == {"todayTotal": 1, "checkedIn": 1, "pending": 0, "completed": 0}


def test_schedule_window(client, visitor, admin):
    _visit(client, visitor["headers"], "2025-06-01T09:00:00Z")
    _visit(client, visitor["headers"], "2025-06-03T09:00:00Z")

    inside = client.get(
        "/api/admin/schedule?start=2025-06-01T00:00:00Z&end=2025-06-02T00:00:00Z",
        headers=admin["headers"],
    )
    backwards = client.get(
        "/api/admin/schedule?start=2025-06-02T00:00:00Z&end=2025-06-01T00:00:00Z",
        headers=admin["headers"],
    )
    missing = client.get("/api/admin/schedule?start=2025-06-01T00:00:00Z", headers=admin["headers"])

    assert [v["visitDate"] for v in inside.json()["data"]] == ["2025-06-01T09:00:00Z"]
    assert backwards.status_code == 400
    assert missing.status_code == 400
    assert missing.json()["errors"][0]["field"] == "end"


def test_settings_update_merges(client, app, admin):
    response = client.patch(
        "/api/admin/settings",
        json={
            "notificationSettings": {"dailyReports": False},
            "systemSettings": {"dataRetentionDays": 30, "systemEmailRecipients": ["ops@example.com"]},
        },
        headers=admin["headers"],
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["notificationSettings"]["dailyReports"] is False
    assert data["notificationSettings"]["newVisitorAlerts"] is True
    assert data["systemSettings"]["dataRetentionDays"] == 30
    assert data["systemSettings"]["autoCheckoutHours"] == 8
    stored = _admin_record(app, admin["id"])
    assert stored.system_settings["systemEmailRecipients"] == ["ops@example.com"]


def test_settings_update_validates_values(client, admin):
    response = client.patch(
        "/api/admin/settings",
        json={"systemSettings": {"defaultDashboardView": "kanban"}},
        headers=admin["headers"],
    )

    assert response.status_code == 400


def test_daily_report_goes_to_caller_by_default(client, visitor, admin, mailer):
    _visit(client, visitor["headers"], to_utc_z(utcnow()), purpose="Inspection")
    mailer.sent.clear()

    response = client.post("/api/admin/reports/daily", headers=admin["headers"])

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["recipients"] == ["admin@example.com"]
    assert data["queued"] is True
    assert data["report"]["totalVisitors"] == 1
    assert data["report"]["topPurposes"] == [{"purpose": "Inspection", "count": 1}]
    assert mailer.sent[0]["template"] == "daily_report"
    assert mailer.sent[0]["to"] == ["admin@example.com"]


def test_daily_report_uses_configured_recipients_and_switch(client, admin, mailer):
    client.patch(
        "/api/admin/settings",
        json={"systemSettings": {"systemEmailRecipients": ["ops@example.com", "desk@example.com"]}},
        headers=admin["headers"],
    )
    configured = client.post("/api/admin/reports/daily", headers=admin["headers"]).json()["data"]

    client.patch(
        "/api/admin/settings",
        json={"notificationSettings": {"dailyReports": False}},
        headers=admin["headers"],
    )
    mailer.sent.clear()
    disabled = client.post("/api/admin/reports/daily", headers=admin["headers"]).json()

    assert configured["recipients"] == ["ops@example.com", "desk@example.com"]
    assert disabled["data"]["queued"] is False
    assert disabled["message"] == "Daily reports are disabled"
    assert mailer.sent == []


def test_super_admin_passes_admin_checks(client, super_admin):
    response = client.get("/api/admin/summary", headers=super_admin["headers"])

    assert response.status_code == 200
