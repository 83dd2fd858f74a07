# db/connection.py

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, declarative_base
from urllib.parse import quote_plus
import logging

from config import DATABASE_URL, DB_HOST, DB_PORT, DB_NAME, DB_USERNAME, DB_PASSWORD

logger = logging.getLogger(__name__)


def build_database_url() -> str:
    """
    DATABASE_URL wins when set; otherwise build the PostgreSQL URL from DB_* vars.
    """
    if DATABASE_URL:
        return DATABASE_URL

    password = DB_PASSWORD
    if isinstance(password, (bytes, bytearray)):
        password = password.decode("utf-8")
    pw_quoted = quote_plus(str(password))
    return (
        f"postgresql://{DB_USERNAME}:{pw_quoted}"
        f"@{DB_HOST}:{DB_PORT}/{DB_NAME}?sslmode=disable"
    )


def create_crm_engine(url: str):
    if url.startswith("sqlite"):
        return create_engine(url, echo=False, connect_args={"check_same_thread": False})

    engine = create_engine(
        url,
        echo=False,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,  # validate connections before use
        pool_recycle=3600,
        connect_args={
            "application_name": "BD_CRM_Backend",
            "connect_timeout": 10,
        },
    )

    @event.listens_for(engine, "connect")
    def set_connection_settings(dbapi_connection, connection_record):
        """Pin every PostgreSQL session to UTC"""
        try:
            with dbapi_connection.cursor() as cursor:
                cursor.execute("SET timezone TO 'UTC'")
            dbapi_connection.commit()
        except Exception as e:
            logger.warning(f"Could not set timezone: {e}")

    return engine


SQLALCHEMY_URL = build_database_url()
engine = create_crm_engine(SQLALCHEMY_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

Base = declarative_base()


def get_db():
    """
    Database dependency: one session per request, rolled back on error.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def check_database_connection(session_factory=None) -> bool:
    """
    Check if database connection is working
    """
    factory = session_factory or SessionLocal
    try:
        db = factory()
        try:
            test_value = db.execute(text("SELECT 1 as test")).fetchone()
        finally:
            db.close()

        if test_value and test_value[0] == 1:
            logger.info("✅ Database connection successful")
            return True
        logger.error("❌ Database query returned unexpected result")
        return False

    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False
