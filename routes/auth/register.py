# routes/auth/register.py - User CRUD API

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Optional, List
import logging

from db.connection import get_db
from db.models import UserDetails, UserRole, UserStatus
from db.Schema.register import UserCreate, UserUpdate, UserOut
from routes.auth.auth_dependency import get_current_user, require_role
from routes.auth.login import hash_password
from utils.time_and_ids import gen_ref

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["users"],
)

ADMIN_OR_MANAGER = require_role(UserRole.admin, UserRole.manager)


# ---------------- Small helper ----------------
def _guard_admin_accounts(current_user: UserDetails, target_role: Optional[str]):
    """Only an Admin may create, edit or remove Admin accounts."""
    if target_role == UserRole.admin.value and current_user.role != UserRole.admin.value:
        raise HTTPException(status_code=403, detail="Only an Admin can manage Admin accounts")


def _get_user_or_404(db: Session, employee_code: str) -> UserDetails:
    user = db.get(UserDetails, employee_code)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# ---------------- Routes ----------------
@router.post("/", status_code=status.HTTP_201_CREATED, response_model=UserOut)
def create_user(
    user_in: UserCreate,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(ADMIN_OR_MANAGER),
):
    _guard_admin_accounts(current_user, user_in.role)
    try:
        email = user_in.email.lower()
        if db.query(UserDetails).filter(UserDetails.email == email).first():
            raise HTTPException(status_code=400, detail="Email already exists")

        employee_code = user_in.employee_code or gen_ref("EMP")
        if db.get(UserDetails, employee_code):
            raise HTTPException(status_code=400, detail="Employee code already exists")

        user = UserDetails(
            employee_code=employee_code,
            name=user_in.name,
            email=email,
            password=hash_password(user_in.password),
            role=user_in.role,
            phone=user_in.phone,
            status=UserStatus.active.value,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"User {user.employee_code} created by {current_user.employee_code}")
        return user

    except HTTPException:
        raise
    except IntegrityError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Duplicate or invalid data: {str(e.orig)}")
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error creating user: {str(e)}")


@router.get("/", response_model=List[UserOut])
def list_users(
    role: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Name or email"),
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    q = db.query(UserDetails)
    if role:
        q = q.filter(UserDetails.role == role)
    if status_filter:
        q = q.filter(UserDetails.status == status_filter)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter((UserDetails.name.ilike(like)) | (UserDetails.email.ilike(like)))
    return q.order_by(UserDetails.created_at.desc()).all()


@router.get("/{employee_code}", response_model=UserOut)
def get_user(
    employee_code: str,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    return _get_user_or_404(db, employee_code)


@router.put("/{employee_code}", response_model=UserOut)
def update_user(
    employee_code: str,
    user_in: UserUpdate,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(ADMIN_OR_MANAGER),
):
    user = _get_user_or_404(db, employee_code)
    _guard_admin_accounts(current_user, user.role)
    _guard_admin_accounts(current_user, user_in.role)

    try:
        data = user_in.model_dump(exclude_unset=True)
        if "email" in data and data["email"]:
            data["email"] = data["email"].lower()
            clash = db.query(UserDetails).filter(
                UserDetails.email == data["email"],
                UserDetails.employee_code != employee_code,
            ).first()
            if clash:
                raise HTTPException(status_code=400, detail="Email already exists")
        if data.get("password"):
            data["password"] = hash_password(data["password"])

        for field, value in data.items():
            if value is not None:
                setattr(user, field, value)

        db.commit()
        db.refresh(user)
        return user

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error updating user: {str(e)}")


@router.patch("/{employee_code}/status", response_model=UserOut)
def toggle_user_status(
    employee_code: str,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(ADMIN_OR_MANAGER),
):
    user = _get_user_or_404(db, employee_code)
    _guard_admin_accounts(current_user, user.role)
    if user.employee_code == current_user.employee_code:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    user.status = UserStatus.inactive.value if user.is_active else UserStatus.active.value
    db.commit()
    db.refresh(user)
    logger.info(f"User {employee_code} is now {user.status}")
    return user


@router.delete("/{employee_code}")
def delete_user(
    employee_code: str,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(ADMIN_OR_MANAGER),
):
    user = _get_user_or_404(db, employee_code)
    _guard_admin_accounts(current_user, user.role)
    if user.employee_code == current_user.employee_code:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")

    try:
        db.delete(user)
        db.commit()
        return {"message": "User deleted"}
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error deleting user: {str(e)}")
