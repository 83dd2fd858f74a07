from dotenv import load_dotenv
import os
import logging

# Configure Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


load_dotenv()

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

# Outbound mail. The sender's own address + app password are supplied per request.
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "465"))
SMTP_TIMEOUT = int(os.getenv("SMTP_TIMEOUT", "30"))

# Inbox sync. Credentials only ever come from the request or the environment.
IMAP_HOST = os.getenv("IMAP_HOST", "imap.gmail.com")
IMAP_PORT = int(os.getenv("IMAP_PORT", "993"))
IMAP_USER = os.getenv("IMAP_USER")
IMAP_PASSWORD = os.getenv("IMAP_PASSWORD")
IMAP_FETCH_LIMIT = int(os.getenv("IMAP_FETCH_LIMIT", "10"))

MAX_ATTACHMENT_MB = int(os.getenv("MAX_ATTACHMENT_MB", "25"))
UPLOAD_ROOT = os.getenv("UPLOAD_ROOT", "static/uploads")

# Attendance
OFFICE_TIMEZONE = os.getenv("OFFICE_TIMEZONE", "Asia/Kolkata")
STANDARD_LOGOUT_TIME = os.getenv("STANDARD_LOGOUT_TIME", "19:00")
ATTENDANCE_SCHEDULER_ENABLED = os.getenv("ATTENDANCE_SCHEDULER_ENABLED", "true").lower() == "true"

# First admin, created on startup when the user table is empty
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
ADMIN_NAME = os.getenv("ADMIN_NAME", "Administrator")

DATABASE_URL = os.getenv("DATABASE_URL")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "crm_db")
DB_USERNAME = os.getenv("DB_USERNAME", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "password")
