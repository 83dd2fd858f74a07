from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import OperationalError, DisconnectionError
from contextlib import asynccontextmanager
from pathlib import Path
import uvicorn
import logging
import os

from config import ATTENDANCE_SCHEDULER_ENABLED, UPLOAD_ROOT
from db.connection import check_database_connection
from db.complete_initialization import setup_complete_system

# Import routes
from routes.auth import login, register
from routes.users import calls
from routes.leads import leads, remarks, bulk_leads
from routes.tasks import tasks
from routes.proposals import proposals
from routes.activity import activity
from routes.attendance import attendance
from routes.attendance.attendance_scheduler import start_scheduler, shutdown_scheduler, is_scheduler_running
from routes.mail_service import send_mail, Internal_Mailing
from routes.Dashboard import dashboard

STATIC_ROOT = Path(os.getenv("STATIC_ROOT", "static"))
STATIC_ROOT.mkdir(parents=True, exist_ok=True)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting BD CRM Backend...")

    try:
        # 1) DB check + tables + first admin
        if not check_database_connection():
            raise Exception("Database connection failed")
        logger.info("✅ Database connection verified")

        if setup_complete_system():
            logger.info("✅ Complete system setup successful!")
        else:
            logger.error("❌ System setup failed!")

        # 2) Upload dirs
        os.makedirs(os.path.join(UPLOAD_ROOT, "voice"), exist_ok=True)
        os.makedirs(os.path.join(UPLOAD_ROOT, "messages"), exist_ok=True)
        logger.info("✅ Static directories created")

        # 3) Evening attendance close-out
        if ATTENDANCE_SCHEDULER_ENABLED:
            start_scheduler()
        else:
            logger.info("Attendance scheduler disabled")

        logger.info("🎉 Application startup completed successfully!")

    except Exception as e:
        logger.error(f"❌ Application startup failed: {e}")
        raise

    yield

    try:
        await shutdown_scheduler()
    except Exception as e:
        logger.warning(f"Attendance scheduler stop error: {e}")

    logger.info("🛑 Shutting down BD CRM Backend...")


app = FastAPI(
    title="BD CRM Backend API",
    description="Leads, remarks, tasks, proposals, attendance, email and internal messaging for BD teams",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount static files
app.mount("/static", StaticFiles(directory=str(STATIC_ROOT)), name="static")


# Health check endpoint
@app.get("/health")
def health_check():
    db_status = check_database_connection()
    if not db_status:
        raise HTTPException(status_code=503, detail="Database unavailable")
    return {
        "status": "healthy",
        "database": "connected",
        "scheduler_running": is_scheduler_running(),
        "version": "1.0.0"
    }


# Register routes. The calls router goes before users so /users/calls-batch
# is not captured by /users/{employee_code}.
app.include_router(login.router, prefix="/api")
app.include_router(calls.router, prefix="/api")
app.include_router(register.router, prefix="/api")
logger.info("✅ Auth and user routes registered")

app.include_router(bulk_leads.router, prefix="/api")
app.include_router(leads.router, prefix="/api")
app.include_router(remarks.router, prefix="/api")
app.include_router(tasks.router, prefix="/api")
app.include_router(proposals.router, prefix="/api")
app.include_router(activity.router, prefix="/api")
logger.info("✅ Lead management routes registered")

app.include_router(attendance.router, prefix="/api")
app.include_router(send_mail.router, prefix="/api")
app.include_router(Internal_Mailing.router, prefix="/api")
app.include_router(dashboard.router, prefix="/api")
logger.info("✅ Attendance, email, messaging and dashboard routes registered")


@app.exception_handler(OperationalError)
@app.exception_handler(DisconnectionError)
async def database_unavailable_handler(request: Request, exc: Exception):
    logger.error(f"Database unavailable: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Database unavailable. Please try again."})


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if app.debug else "Something went wrong"
        },
    )


# Run the application
if __name__ == "__main__":
    logger.info("🚀 Starting server with Uvicorn...")
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
