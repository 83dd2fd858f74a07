from datetime import datetime, timedelta
from typing import Optional

from utils.time_and_ids import now_utc, to_office

COMPLETED = "completed"
OVERDUE = "overdue"
TODAY = "today"
TOMORROW = "tomorrow"
UPCOMING = "upcoming"

BUCKETS = (COMPLETED, OVERDUE, TODAY, TOMORROW, UPCOMING)


def get_task_priority(due_date: datetime, completed: bool, now: Optional[datetime] = None) -> str:
    """
    Bucket a task by its due date relative to ``now`` (office calendar days).
    A completed task is always ``completed``; anything already past is ``overdue``.
    """
    if completed:
        return COMPLETED

    now = to_office(now or now_utc())
    due = to_office(due_date)

    if due < now:
        return OVERDUE
    if due.date() == now.date():
        return TODAY
    if due.date() == now.date() + timedelta(days=1):
        return TOMORROW
    return UPCOMING
