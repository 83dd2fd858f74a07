# routes/attendance/attendance_scheduler.py
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore

from config import STANDARD_LOGOUT_TIME
from db.connection import engine, SessionLocal
from services.attendance_service import close_sessions_for_day, close_stale_sessions
from utils.time_and_ids import OFFICE_TZ, office_today

logger = logging.getLogger(__name__)

jobstores = {"default": SQLAlchemyJobStore(engine=engine)}

# Cron fields are read in office time
scheduler = AsyncIOScheduler(jobstores=jobstores, timezone=OFFICE_TZ)

CLOSE_OUT_JOB_ID = "attendance_evening_close_out"


def close_forgotten_sessions() -> int:
    """
    Close every session still open today, and any left over from earlier
    days, at the standard logout time of its own day.
    """
    db = SessionLocal()
    try:
        today = office_today().isoformat()
        closed = close_sessions_for_day(db, today, STANDARD_LOGOUT_TIME)
        closed += close_stale_sessions(db, today, logout_clock=STANDARD_LOGOUT_TIME)
        db.commit()
        logger.info("Attendance close-out finished: %s session(s) closed", closed)
        return closed
    except Exception:
        db.rollback()
        logger.exception("Attendance close-out failed")
        raise
    finally:
        db.close()


def start_scheduler():
    """
    Start once per process. Safe to call multiple times.
    """
    if not scheduler.running:
        logging.getLogger('apscheduler').setLevel(logging.INFO)
        scheduler.add_job(
            close_forgotten_sessions,
            trigger="cron",
            hour=23,
            minute=30,
            id=CLOSE_OUT_JOB_ID,
            replace_existing=True,
            misfire_grace_time=3600,
            coalesce=True,
            max_instances=1,
        )
        scheduler.start()
        logger.info("Attendance scheduler started (%s).", OFFICE_TZ.key)


async def shutdown_scheduler():
    """
    Clean shutdown on app exit.
    """
    try:
        if scheduler.running:
            scheduler.shutdown(wait=False)
            logger.info("Attendance scheduler stopped.")
    except Exception:
        logger.exception("Error while stopping scheduler")


def is_scheduler_running() -> bool:
    return scheduler.running
