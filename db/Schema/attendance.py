# db/Schema/attendance.py

from pydantic import BaseModel, Field, ConfigDict
import datetime
from typing import Optional, List


class AttendanceSessionOut(BaseModel):
    id: int
    login_time: datetime.datetime
    logout_time: Optional[datetime.datetime] = None
    duration_hours: float = 0

    model_config = ConfigDict(from_attributes=True)


class AttendanceOut(BaseModel):
    id: int
    user_id: str
    user_name: Optional[str] = None
    date: str = Field(..., description="YYYY-MM-DD in office time")
    sessions: List[AttendanceSessionOut] = []
    total_hours: float = 0
    # derived on read, never stored
    status: str
    login_time: Optional[datetime.datetime] = None
    logout_time: Optional[datetime.datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AttendanceSummary(BaseModel):
    total_days: int
    present_days: int
    absent_days: int
    half_days: int
    late_days: int
    total_hours: float
    avg_hours: float
    attendance_percentage: int


class MonthlyAttendance(BaseModel):
    user_id: str
    month: str
    records: List[AttendanceOut]
    present_days: int
    total_hours: float
