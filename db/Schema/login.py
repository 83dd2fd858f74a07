# db/Schema/login.py

from pydantic import BaseModel
from typing import Optional, Dict, Any


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_info: Dict[str, Any]


class LogoutRequest(BaseModel):
    auto_logout: bool = False
    last_login_date: Optional[str] = None      # YYYY-MM-DD
    static_logout_time: str = "19:00"          # HH:MM, office time
