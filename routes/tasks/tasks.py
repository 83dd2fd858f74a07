import logging
from typing import Optional, List, Dict, Any

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.orm.exc import StaleDataError

from db.connection import get_db
from db.models import Task, Lead, UserDetails, ActivityEntity, ActivityAction
from db.Schema.task import TaskCreate, TaskUpdate, TaskOut
from routes.auth.auth_dependency import get_current_user, is_bd_executive
from utils.activity_logger import (
    record_activity, snapshot, compute_changes, creation_changes, deletion_changes,
)
from utils.task_priority import get_task_priority, BUCKETS
from utils.validation_utils import drop_null_required

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
)


# ----------------- helpers -----------------
def serialize_task(task: Task) -> Dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "type": task.type,
        "due_date": task.due_date,
        "completed": task.completed,
        "user_id": task.user_id,
        "lead_id": task.lead_id,
        "version": task.version,
        "created_at": task.created_at,
        "priority": get_task_priority(task.due_date, task.completed),
        "lead_name": task.lead.company_name if task.lead else None,
        "user_name": task.user.name if task.user else None,
    }


def _task_query(db: Session, current_user: UserDetails):
    q = db.query(Task).options(joinedload(Task.lead), joinedload(Task.user))
    if is_bd_executive(current_user):
        q = q.filter(Task.user_id == current_user.employee_code)
    return q


def _get_task_or_404(db: Session, task_id: int, current_user: UserDetails) -> Task:
    task = db.get(Task, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    if is_bd_executive(current_user) and task.user_id != current_user.employee_code:
        raise HTTPException(status_code=403, detail="You do not have access to this task")
    return task


def _resolve_assignee(db: Session, user_id: Optional[str], current_user: UserDetails) -> Optional[str]:
    """BD Executives always own their tasks; others may assign anyone."""
    if is_bd_executive(current_user):
        return current_user.employee_code
    if user_id and not db.get(UserDetails, user_id):
        raise HTTPException(status_code=400, detail=f"User {user_id} not found")
    return user_id


def _check_lead(db: Session, lead_id: Optional[int]):
    if lead_id is not None and not db.get(Lead, lead_id):
        raise HTTPException(status_code=400, detail=f"Lead {lead_id} not found")


def _log(db: Session, task: Task, action: ActivityAction, changes, user_id: str, lead_id: int = None):
    record_activity(
        db,
        entity=ActivityEntity.task,
        entity_id=task.id,
        entity_name=task.title,
        action=action,
        changes=changes,
        lead_id=lead_id,
        user_id=user_id,
    )


# ----------------- routes -----------------
@router.post("/", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(
    task_in: TaskCreate,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    try:
        data = task_in.model_dump()
        data["user_id"] = _resolve_assignee(db, data.get("user_id"), current_user)
        _check_lead(db, data.get("lead_id"))

        task = Task(**data)
        db.add(task)
        db.commit()
        db.refresh(task)

        _log(db, task, ActivityAction.create, creation_changes(snapshot(task)),
             current_user.employee_code, lead_id=task.lead_id)
        return serialize_task(task)

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error creating task: {str(e)}")


@router.get("/", response_model=List[TaskOut])
def list_tasks(
    user_id: Optional[str] = Query(None),
    lead_id: Optional[int] = Query(None),
    completed: Optional[bool] = Query(None),
    type: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Title or description"),
    priority: Optional[str] = Query(None, description="completed, overdue, today, tomorrow or upcoming"),
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    if priority and priority not in BUCKETS:
        raise HTTPException(status_code=400, detail=f"priority must be one of {list(BUCKETS)}")

    q = _task_query(db, current_user)
    if user_id and not is_bd_executive(current_user):
        q = q.filter(Task.user_id == user_id)
    if lead_id is not None:
        q = q.filter(Task.lead_id == lead_id)
    if completed is not None:
        q = q.filter(Task.completed == completed)
    if type:
        q = q.filter(Task.type == type)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Task.title.ilike(like), Task.description.ilike(like)))

    tasks = [serialize_task(t) for t in q.order_by(Task.due_date.asc(), Task.id.asc()).all()]
    if priority:
        tasks = [t for t in tasks if t["priority"] == priority]
    return tasks


@router.get("/lead/{lead_id}", response_model=List[TaskOut])
def tasks_for_lead(
    lead_id: int,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    tasks = _task_query(db, current_user).filter(Task.lead_id == lead_id).order_by(Task.due_date.asc()).all()
    return [serialize_task(t) for t in tasks]


@router.get("/{task_id}", response_model=TaskOut)
def get_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    return serialize_task(_get_task_or_404(db, task_id, current_user))


@router.put("/{task_id}", response_model=TaskOut)
def update_task(
    task_id: int,
    task_in: TaskUpdate,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    """Partial update guarded by ``version``."""
    try:
        task = _get_task_or_404(db, task_id, current_user)
        if task_in.version != task.version:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Task was modified by someone else (current version {task.version})"
            )

        data = task_in.model_dump(exclude_unset=True)
        data.pop("version")
        drop_null_required(Task, data)
        if "user_id" in data:
            data["user_id"] = _resolve_assignee(db, data["user_id"], current_user)
        if "lead_id" in data:
            _check_lead(db, data["lead_id"])

        before = snapshot(task)
        for field, value in data.items():
            setattr(task, field, value)
        db.commit()
        db.refresh(task)

        changes = compute_changes(before, snapshot(task))
        if changes:
            _log(db, task, ActivityAction.update, changes, current_user.employee_code, lead_id=task.lead_id)
        return serialize_task(task)

    except HTTPException:
        raise
    except StaleDataError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Task was modified by someone else")
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error updating task: {str(e)}")


@router.patch("/{task_id}/toggle", response_model=TaskOut)
def toggle_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    """Flip the completed flag."""
    try:
        task = _get_task_or_404(db, task_id, current_user)
        before = snapshot(task)
        task.completed = not task.completed
        db.commit()
        db.refresh(task)

        _log(db, task, ActivityAction.update, compute_changes(before, snapshot(task)),
             current_user.employee_code, lead_id=task.lead_id)
        return serialize_task(task)

    except HTTPException:
        raise
    except StaleDataError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Task was modified by someone else")
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error updating task: {str(e)}")


@router.delete("/{task_id}")
def delete_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    try:
        task = _get_task_or_404(db, task_id, current_user)
        before = snapshot(task)
        title, lead_id = task.title, task.lead_id

        db.delete(task)
        db.commit()

        record_activity(
            db,
            entity=ActivityEntity.task,
            entity_id=task_id,
            entity_name=title,
            action=ActivityAction.delete,
            changes=deletion_changes(before),
            lead_id=lead_id,
            user_id=current_user.employee_code,
        )
        return {"message": "Task deleted"}

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error deleting task: {str(e)}")
