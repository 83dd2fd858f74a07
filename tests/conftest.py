import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ATTENDANCE_SCHEDULER_ENABLED"] = "false"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("STATIC_ROOT", "static")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db.connection import Base, get_db
from db.models import UserDetails, UserRole, UserStatus
from main import app
from routes.auth.JWTSecurity import create_access_token
from routes.auth.login import hash_password

PASSWORD = "secret123"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, code, role, name=None, email=None, status=UserStatus.active.value):
    user = UserDetails(
        employee_code=code,
        name=name or code.title(),
        email=email or f"{code.lower()}@acmecrm.io",
        password=hash_password(PASSWORD),
        role=role,
        status=status,
    )
    db.add(user)
    db.commit()
    return user


def auth_headers(code, role):
    token = create_access_token({"sub": code, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(db):
    return make_user(db, "ADM001", UserRole.admin.value, name="Asha Admin")


@pytest.fixture
def manager(db):
    return make_user(db, "MGR001", UserRole.manager.value, name="Mohan Manager")


@pytest.fixture
def bd(db):
    return make_user(db, "BD001", UserRole.bd_executive.value, name="Bina BD")


@pytest.fixture
def bd_other(db):
    return make_user(db, "BD002", UserRole.bd_executive.value, name="Bilal BD")


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin.employee_code, admin.role)


@pytest.fixture
def manager_headers(manager):
    return auth_headers(manager.employee_code, manager.role)


@pytest.fixture
def bd_headers(bd):
    return auth_headers(bd.employee_code, bd.role)


@pytest.fixture
def bd_other_headers(bd_other):
    return auth_headers(bd_other.employee_code, bd_other.role)


def lead_payload(**overrides):
    payload = {
        "company_name": "Acme Staffing",
        "website_url": "https://www.acme-staffing.com/",
        "company_email": "hello@acme-staffing.com",
        "hiring_needs": ["Java", "QA"],
        "points_of_contact": [
            {"name": "Ravi", "phone": "9876543210", "designation": "HR Head"},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_lead(client):
    def _create(headers, **overrides):
        res = client.post("/api/leads/", json=lead_payload(**overrides), headers=headers)
        assert res.status_code == 201, res.text
        return res.json()
    return _create
