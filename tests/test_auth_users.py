from db.models import Attendance, UserStatus, UserRole
from conftest import PASSWORD, make_user


def login(client, username, password=PASSWORD):
    return client.post("/api/auth/login", data={"username": username, "password": password})


class TestLogin:
    def test_login_by_email(self, client, admin):
        res = login(client, "ADM001@acmecrm.io")
        assert res.status_code == 200
        body = res.json()
        assert body["token_type"] == "bearer"
        assert body["user_info"]["employee_code"] == "ADM001"
        assert body["user_info"]["role"] == "Admin"

    def test_login_by_employee_code(self, client, bd):
        res = login(client, "BD001")
        assert res.status_code == 200

    def test_wrong_password(self, client, bd):
        res = login(client, "BD001", "nope-nope")
        assert res.status_code == 401

    def test_inactive_user_cannot_login(self, client, db):
        make_user(db, "BD009", UserRole.bd_executive.value, status=UserStatus.inactive.value)
        res = login(client, "BD009")
        assert res.status_code == 403

    def test_token_is_required(self, client):
        assert client.get("/api/leads/").status_code == 401

    def test_garbage_token(self, client):
        res = client.get("/api/leads/", headers={"Authorization": "Bearer not-a-token"})
        assert res.status_code == 401


class TestAttendanceOnLogin:
    def test_login_opens_session_and_logout_closes_it(self, client, db, bd):
        token = login(client, "BD001").json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        today = client.get("/api/attendance/today/BD001", headers=headers).json()
        assert today is not None
        assert len(today["sessions"]) == 1
        assert today["sessions"][0]["logout_time"] is None
        assert today["status"] in ("Present", "Late", "Half Day")

        res = client.post("/api/auth/logout", headers=headers)
        assert res.status_code == 200
        record = res.json()["attendance"]
        assert record["sessions"][0]["logout_time"] is not None
        assert record["total_hours"] >= 0

    def test_second_login_keeps_open_session(self, client, db, bd):
        login(client, "BD001")
        login(client, "BD001")
        assert db.query(Attendance).count() == 1
        record = db.query(Attendance).first()
        assert len(record.sessions) == 1

    def test_admin_login_is_not_tracked(self, client, db, admin):
        login(client, "ADM001")
        assert db.query(Attendance).count() == 0

    def test_bad_auto_logout_time(self, client, bd, bd_headers):
        login(client, "BD001")
        res = client.post(
            "/api/auth/logout",
            json={"auto_logout": True, "last_login_date": "2025-01-01", "static_logout_time": "late"},
            headers=bd_headers,
        )
        assert res.status_code == 400


class TestUsers:
    def test_admin_creates_bd_executive(self, client, admin_headers):
        res = client.post("/api/users/", json={
            "name": "New Hire",
            "email": "New.Hire@AcmeCRM.io",
            "password": "welcome1",
            "role": "BD Executive",
        }, headers=admin_headers)
        assert res.status_code == 201
        body = res.json()
        assert body["email"] == "new.hire@acmecrm.io"
        assert body["employee_code"].startswith("EMP-")
        assert "password" not in body

    def test_duplicate_email(self, client, admin_headers, bd):
        res = client.post("/api/users/", json={
            "name": "Dup", "email": "bd001@acmecrm.io", "password": "welcome1",
        }, headers=admin_headers)
        assert res.status_code == 400

    def test_manager_cannot_create_admin(self, client, manager_headers):
        res = client.post("/api/users/", json={
            "name": "Boss", "email": "boss@acmecrm.io", "password": "welcome1", "role": "Admin",
        }, headers=manager_headers)
        assert res.status_code == 403

    def test_bd_cannot_create_users(self, client, bd_headers):
        res = client.post("/api/users/", json={
            "name": "X", "email": "x@acmecrm.io", "password": "welcome1",
        }, headers=bd_headers)
        assert res.status_code == 403

    def test_toggle_status(self, client, admin_headers, bd):
        res = client.patch("/api/users/BD001/status", headers=admin_headers)
        assert res.status_code == 200
        assert res.json()["status"] == "Inactive"
        res = client.patch("/api/users/BD001/status", headers=admin_headers)
        assert res.json()["status"] == "Active"

    def test_cannot_deactivate_self(self, client, admin_headers):
        res = client.patch("/api/users/ADM001/status", headers=admin_headers)
        assert res.status_code == 400

    def test_deactivated_token_is_rejected(self, client, admin_headers, bd, bd_headers):
        client.patch("/api/users/BD001/status", headers=admin_headers)
        assert client.get("/api/leads/", headers=bd_headers).status_code == 403

    def test_list_filters(self, client, admin_headers, bd, manager):
        res = client.get("/api/users/", params={"role": "BD Executive"}, headers=admin_headers)
        assert [u["employee_code"] for u in res.json()] == ["BD001"]


class TestCalls:
    def test_log_and_batch(self, client, bd_headers, admin_headers, create_lead):
        lead = create_lead(bd_headers)
        res = client.post("/api/users/log", json={"lead_id": lead["id"], "phone": "9876543210"}, headers=bd_headers)
        assert res.status_code == 201

        res = client.get("/api/users/calls-batch", params={"user_ids": "BD001,BD404"}, headers=admin_headers)
        assert res.status_code == 200
        results = res.json()["results"]
        assert results["BD001"]["count"] == 1
        assert results["BD404"]["count"] == 0

    def test_call_needs_existing_lead(self, client, bd_headers):
        res = client.post("/api/users/log", json={"lead_id": 999, "phone": "1"}, headers=bd_headers)
        assert res.status_code == 404

    def test_bd_cannot_read_other_calls(self, client, bd_headers, bd_other):
        assert client.get("/api/users/calls/BD002", headers=bd_headers).status_code == 403
