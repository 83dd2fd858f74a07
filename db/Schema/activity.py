# db/Schema/activity.py

from pydantic import BaseModel, ConfigDict
from typing import Any, List, Optional
from datetime import datetime


class FieldChange(BaseModel):
    field: str
    old_value: Any = None
    new_value: Any = None


class ActivityOut(BaseModel):
    id: int
    entity_id: str
    entity_name: Optional[str] = None
    entity: str
    action: str
    lead_id: Optional[int] = None
    user_id: Optional[str] = None
    changes: List[FieldChange] = []
    summary: str = ""
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)
