# db/Schema/task.py

from pydantic import BaseModel, ConfigDict, constr, field_validator
from typing import Optional
from datetime import datetime

from db.models import TaskType
from utils.time_and_ids import as_utc


class TaskBase(BaseModel):
    title: constr(strip_whitespace=True, min_length=1, max_length=200)
    description: Optional[str] = None
    type: Optional[TaskType] = None
    due_date: datetime
    user_id: Optional[str] = None
    lead_id: Optional[int] = None

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("due_date")
    def due_date_in_utc(cls, v):
        # stored as UTC; naive values are taken as UTC already
        return as_utc(v)


class TaskCreate(TaskBase):
    completed: bool = False


class TaskUpdate(BaseModel):
    version: int
    title: Optional[constr(strip_whitespace=True, min_length=1, max_length=200)] = None
    description: Optional[str] = None
    type: Optional[TaskType] = None
    due_date: Optional[datetime] = None
    user_id: Optional[str] = None
    lead_id: Optional[int] = None
    completed: Optional[bool] = None

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("due_date")
    def due_date_in_utc(cls, v):
        return as_utc(v)


class TaskOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    type: Optional[str] = None
    due_date: datetime
    completed: bool
    user_id: Optional[str] = None
    lead_id: Optional[int] = None
    version: int
    created_at: datetime
    priority: Optional[str] = None
    lead_name: Optional[str] = None
    user_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
