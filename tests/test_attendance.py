from datetime import datetime, timedelta

from db.complete_initialization import seed_first_admin
from db.models import Attendance, AttendanceSession, UserDetails
from routes.attendance import attendance_scheduler
from services.attendance_service import start_session, end_session, office_day
from utils.time_and_ids import OFFICE_TZ, as_utc, office_today


def office(y, m, d, hh, mm):
    return datetime(y, m, d, hh, mm, tzinfo=OFFICE_TZ)


def add_day(db, user_id, day, sessions):
    record = Attendance(user_id=user_id, date=day, total_hours=0)
    for login_at, logout_at, hours in sessions:
        record.sessions.append(AttendanceSession(
            login_time=as_utc(login_at), logout_time=as_utc(logout_at), duration_hours=hours,
        ))
    record.total_hours = sum(h for _, _, h in sessions)
    db.add(record)
    db.commit()
    return record


class TestSessions:
    def test_multiple_sessions_in_a_day(self, db, bd):
        start_session(db, bd, as_utc(office(2025, 3, 10, 9, 30)))
        end_session(db, bd, as_utc(office(2025, 3, 10, 12, 30)))
        start_session(db, bd, as_utc(office(2025, 3, 10, 14, 0)))
        record = end_session(db, bd, as_utc(office(2025, 3, 10, 18, 0)))
        db.commit()

        assert record.date == "2025-03-10"
        assert len(record.sessions) == 2
        assert record.total_hours == 7

    def test_login_closes_forgotten_session_of_earlier_day(self, db, bd):
        start_session(db, bd, as_utc(office(2025, 3, 10, 9, 0)))
        db.commit()
        start_session(db, bd, as_utc(office(2025, 3, 12, 9, 0)))
        db.commit()

        old = db.query(Attendance).filter(Attendance.date == "2025-03-10").one()
        assert as_utc(old.sessions[0].logout_time) == as_utc(office(2025, 3, 10, 19, 0))
        assert old.total_hours == 10

    def test_auto_logout_uses_static_time(self, db, bd):
        start_session(db, bd, as_utc(office(2025, 3, 10, 10, 0)))
        db.commit()
        record = end_session(
            db, bd, as_utc(office(2025, 3, 11, 8, 0)),
            auto_logout=True, last_login_date="2025-03-10", static_logout_time="18:00",
        )
        assert record.total_hours == 8

    def test_logout_without_session(self, db, bd):
        assert end_session(db, bd, as_utc(office(2025, 3, 10, 18, 0))) is None

    def test_office_day_crosses_utc_midnight(self):
        assert office_day(as_utc(office(2025, 3, 11, 1, 0))) == "2025-03-11"


class TestAttendanceRoutes:
    def test_summary_and_monthly(self, client, db, bd, bd_headers):
        add_day(db, "BD001", "2025-03-10", [(office(2025, 3, 10, 8, 50), office(2025, 3, 10, 17, 50), 9.0)])
        add_day(db, "BD001", "2025-03-11", [(office(2025, 3, 11, 9, 30), office(2025, 3, 11, 17, 30), 8.0)])
        add_day(db, "BD001", "2025-04-01", [(office(2025, 4, 1, 14, 0), office(2025, 4, 1, 18, 0), 4.0)])

        summary = client.get("/api/attendance/summary", headers=bd_headers).json()
        assert summary["total_days"] == 3
        assert summary["present_days"] == 1
        assert summary["late_days"] == 1
        assert summary["half_days"] == 1
        assert summary["total_hours"] == 21

        monthly = client.get("/api/attendance/monthly/BD001/2025-03", headers=bd_headers).json()
        assert [r["date"] for r in monthly["records"]] == ["2025-03-11", "2025-03-10"]
        assert monthly["present_days"] == 2
        assert monthly["total_hours"] == 17

    def test_late_day_counts_as_present_in_month(self, client, db, bd, bd_headers):
        add_day(db, "BD001", "2030-03-04", [(office(2030, 3, 4, 10, 0), office(2030, 3, 4, 18, 0), 8.0)])

        monthly = client.get("/api/attendance/monthly/BD001/2030-03", headers=bd_headers).json()
        assert [r["status"] for r in monthly["records"]] == ["Late"]
        assert monthly["present_days"] == 1

    def test_empty_summary(self, client, bd_headers):
        summary = client.get("/api/attendance/summary", headers=bd_headers).json()
        assert summary["total_days"] == 0
        assert summary["attendance_percentage"] == 0

    def test_bd_cannot_read_others(self, client, bd_headers, bd_other):
        assert client.get("/api/attendance/all", params={"user_id": "BD002"}, headers=bd_headers).status_code == 403
        assert client.get("/api/attendance/today/BD002", headers=bd_headers).status_code == 403

    def test_today_is_null_before_login(self, client, bd_headers):
        res = client.get("/api/attendance/today/BD001", headers=bd_headers)
        assert res.status_code == 200
        assert res.json() is None

    def test_bad_month(self, client, admin_headers):
        assert client.get("/api/attendance/monthly/BD001/March", headers=admin_headers).status_code == 400

    def test_only_admin_clears(self, client, db, bd, manager_headers, admin_headers):
        add_day(db, "BD001", "2025-03-10", [(office(2025, 3, 10, 9, 0), office(2025, 3, 10, 17, 0), 8.0)])
        assert client.delete("/api/attendance/clear", headers=manager_headers).status_code == 403
        res = client.delete("/api/attendance/clear", headers=admin_headers)
        assert res.json()["deleted"] == 1
        db.expire_all()
        assert db.query(AttendanceSession).count() == 0


class TestEveningCloseOut:
    def test_closes_open_sessions(self, db, session_factory, bd, bd_other, monkeypatch):
        monkeypatch.setattr(attendance_scheduler, "SessionLocal", session_factory)
        today = office_today()
        yesterday = (today - timedelta(days=1)).isoformat()
        morning = datetime.combine(today, datetime.min.time(), tzinfo=OFFICE_TZ).replace(hour=9)

        add_day(db, "BD001", today.isoformat(), [(morning, None, 0)])
        add_day(db, "BD002", yesterday, [(morning - timedelta(days=1), None, 0)])

        assert attendance_scheduler.close_forgotten_sessions() == 2
        db.expire_all()
        assert db.query(AttendanceSession).filter(AttendanceSession.logout_time.is_(None)).count() == 0
        assert attendance_scheduler.close_forgotten_sessions() == 0


class TestAdminSeed:
    def test_seeds_only_into_empty_table(self, db, session_factory):
        assert seed_first_admin(session_factory, email="Root@AcmeCRM.io", password="s3cret!") is True
        admin = db.query(UserDetails).one()
        assert admin.email == "root@acmecrm.io"
        assert admin.role == "Admin"
        assert admin.password != "s3cret!"

        assert seed_first_admin(session_factory, email="other@acmecrm.io", password="x") is False
        assert db.query(UserDetails).count() == 1

    def test_no_credentials_no_admin(self, db, session_factory, monkeypatch):
        monkeypatch.setattr("db.complete_initialization.ADMIN_EMAIL", None)
        monkeypatch.setattr("db.complete_initialization.ADMIN_PASSWORD", None)
        assert seed_first_admin(session_factory) is False
        assert db.query(UserDetails).count() == 0
