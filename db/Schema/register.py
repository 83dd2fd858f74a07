# db/Schema/register.py

from pydantic import BaseModel, EmailStr, constr, field_validator, ConfigDict
from typing import Optional
from datetime import datetime

from db.models import UserRole, UserStatus


class UserBase(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=100)
    email: EmailStr
    role: UserRole = UserRole.bd_executive
    phone: Optional[constr(strip_whitespace=True, max_length=20)] = None

    model_config = ConfigDict(use_enum_values=True)

    @field_validator('phone')
    def validate_phone(cls, v):
        if v and not v.lstrip('+').isdigit():
            raise ValueError('Phone number must contain only digits')
        return v


class UserCreate(UserBase):
    password: constr(min_length=6)
    employee_code: Optional[str] = None     # generated when omitted


class UserUpdate(BaseModel):
    name: Optional[constr(strip_whitespace=True, min_length=1, max_length=100)] = None
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    phone: Optional[constr(strip_whitespace=True, max_length=20)] = None
    password: Optional[constr(min_length=6)] = None
    status: Optional[UserStatus] = None

    model_config = ConfigDict(use_enum_values=True)


class UserOut(BaseModel):
    employee_code: str
    name: str
    email: str
    role: str
    status: str
    phone: Optional[str] = None
    last_login: Optional[datetime] = None
    last_logout: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CallLogCreate(BaseModel):
    lead_id: int
    phone: constr(strip_whitespace=True, min_length=1, max_length=20)
