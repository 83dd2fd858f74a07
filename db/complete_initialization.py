# db/complete_initialization.py
"""
Startup bootstrap: tables and the first Admin account.
"""

import logging

import bcrypt
from sqlalchemy.exc import IntegrityError

from config import ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_NAME
from db.connection import engine, SessionLocal, Base
from db.models import UserDetails, UserRole, UserStatus
from utils.time_and_ids import gen_ref

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_tables(bind=None) -> None:
    Base.metadata.create_all(bind or engine)
    logger.info("✅ Database tables created/verified")


def seed_first_admin(session_factory=None, email: str = None, password: str = None, name: str = None) -> bool:
    """
    Create an Admin from ADMIN_EMAIL / ADMIN_PASSWORD when no user exists yet.
    Returns True when an account was created.
    """
    email = (email or ADMIN_EMAIL or "").strip().lower()
    password = password or ADMIN_PASSWORD
    name = name or ADMIN_NAME

    factory = session_factory or SessionLocal
    db = factory()
    try:
        if db.query(UserDetails).first():
            logger.info("Users already present, skipping admin seed")
            return False

        if not email or not password:
            logger.warning("⚠️ No users exist and ADMIN_EMAIL / ADMIN_PASSWORD are not set; nobody can log in yet")
            return False

        admin = UserDetails(
            employee_code=gen_ref("ADM"),
            name=name,
            email=email,
            password=hash_password(password),
            role=UserRole.admin.value,
            status=UserStatus.active.value,
        )
        db.add(admin)
        db.commit()
        logger.info(f"✅ First admin created: {email} ({admin.employee_code})")
        return True

    except IntegrityError as e:
        db.rollback()
        logger.error(f"Admin seed failed: {e}")
        return False
    finally:
        db.close()


def setup_complete_system() -> bool:
    """Single function to initialize everything."""
    try:
        create_tables()
        seed_first_admin()
        return True
    except Exception as e:
        logger.error(f"❌ System setup failed: {e}")
        return False
