# routes/auth/login.py

from fastapi import APIRouter, HTTPException, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError, DisconnectionError
from typing import Optional
import bcrypt
import logging

from db.connection import get_db
from db.models import UserDetails
from db.Schema.login import TokenResponse, LogoutRequest
from routes.auth.JWTSecurity import create_access_token
from routes.auth.auth_dependency import get_current_user
from services.attendance_service import start_session, end_session, serialize_attendance
from utils.time_and_ids import now_utc

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


def hash_password(plain_password: str) -> str:
    return bcrypt.hashpw(plain_password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError as e:
        logger.warning(f"Unreadable password hash: {e}")
        return False


def _user_info(user: UserDetails) -> dict:
    return {
        "employee_code": user.employee_code,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "status": user.status,
        "phone": user.phone,
    }


@router.post("/login", response_model=TokenResponse)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    """
    Authenticate a user by email or employee code and issue an access token.
    Non-admin logins open an attendance session for today.
    """
    try:
        user = db.query(UserDetails).filter(
            (UserDetails.email == form_data.username.strip().lower())
            | (UserDetails.employee_code == form_data.username.strip())
        ).first()

        if not user or not verify_password(form_data.password, user.password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account is deactivated. Contact administrator.",
            )

        now = now_utc()
        user.last_login = now
        start_session(db, user, now)
        db.commit()

        access_token = create_access_token({
            "sub": user.employee_code,
            "role": user.role,
        })
        logger.info(f"User {user.employee_code} logged in")

        return TokenResponse(access_token=access_token, user_info=_user_info(user))

    except HTTPException:
        raise
    except (OperationalError, DisconnectionError):
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection lost. Please try again."
        )
    except Exception as e:
        db.rollback()
        logger.error(f"Login error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Login failed: {str(e)}"
        )


@router.post("/logout")
def logout(
    body: Optional[LogoutRequest] = None,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    """Close the caller's open attendance session."""
    body = body or LogoutRequest()
    try:
        now = now_utc()
        record = end_session(
            db,
            current_user,
            now,
            auto_logout=body.auto_logout,
            last_login_date=body.last_login_date,
            static_logout_time=body.static_logout_time,
        )
        current_user.last_logout = now
        db.commit()

        return {
            "message": "Logged out successfully",
            "attendance": serialize_attendance(record) if record else None,
        }
    except HTTPException:
        raise
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Invalid logout time: {str(e)}")
    except Exception as e:
        db.rollback()
        logger.error(f"Logout error: {e}")
        raise HTTPException(status_code=500, detail=f"Logout failed: {str(e)}")
