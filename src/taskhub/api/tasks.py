"""Task API routes — a user's own tasks.

Learn: These routes are the HTTP interface to TaskService. Ownership
rules live in auth/policy.py and are enforced inside the service; routes
only translate HTTP to service calls.

- POST   /tasks                  → create (non-admin)
- GET    /tasks                  → tasks I created or am assigned to
- GET    /tasks/:id              → creator, assignee or admin
- PUT    /tasks/:id              → creator only (non-admin)
- DELETE /tasks/:id              → creator only (non-admin)
- PATCH  /tasks/:id/complete     → creator only (non-admin)
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.auth.dependencies import Identity, get_current_identity, require_non_admin
from taskhub.db.engine import get_db
from taskhub.schemas.common import Envelope
from taskhub.schemas.task import (
    PRIORITY_PATTERN,
    SORT_PATTERN,
    STATUS_PATTERN,
    TaskCreate,
    TaskEnvelope,
    TaskListEnvelope,
    TaskRead,
    TaskUpdate,
)
from taskhub.services.task_service import TaskService

router = APIRouter(prefix="/tasks")


def _task_svc(db: AsyncSession = Depends(get_db)) -> TaskService:
    return TaskService(db)


@router.post("", response_model=TaskEnvelope, status_code=201)
async def create_task(
    body: TaskCreate,
    identity: Identity = Depends(require_non_admin),
    svc: TaskService = Depends(_task_svc),
):
    """Create a task owned by the caller."""
    task = await svc.create_task(
        identity,
        title=body.title,
        description=body.description,
        status=body.status,
        priority=body.priority,
        due_date=body.due_date,
        assigned_to=body.assigned_to,
        tags=body.tags,
    )
    return TaskEnvelope(
        message="Task created successfully", task=TaskRead.model_validate(task)
    )


@router.get("", response_model=TaskListEnvelope)
async def list_tasks(
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    priority: Optional[str] = Query(None, pattern=PRIORITY_PATTERN),
    sort_by: Optional[str] = Query(None, alias="sortBy", pattern=SORT_PATTERN),
    identity: Identity = Depends(get_current_identity),
    svc: TaskService = Depends(_task_svc),
):
    """List tasks the caller created or is assigned to."""
    tasks = await svc.list_tasks_for(
        identity, status=status, priority=priority, sort_by=sort_by
    )
    return TaskListEnvelope(
        count=len(tasks), tasks=[TaskRead.model_validate(t) for t in tasks]
    )


@router.get("/{task_id}", response_model=TaskEnvelope)
async def get_task(
    task_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    svc: TaskService = Depends(_task_svc),
):
    task = await svc.get_task_for(identity, task_id)
    return TaskEnvelope(task=TaskRead.model_validate(task))


@router.put("/{task_id}", response_model=TaskEnvelope)
async def update_task(
    task_id: uuid.UUID,
    body: TaskUpdate,
    identity: Identity = Depends(require_non_admin),
    svc: TaskService = Depends(_task_svc),
):
    """Partially update a task. Only fields present in the body are considered."""
    task = await svc.update_task(
        identity, task_id, body.model_dump(exclude_unset=True)
    )
    return TaskEnvelope(
        message="Task updated successfully", task=TaskRead.model_validate(task)
    )


@router.delete("/{task_id}", response_model=Envelope)
async def delete_task(
    task_id: uuid.UUID,
    identity: Identity = Depends(require_non_admin),
    svc: TaskService = Depends(_task_svc),
):
    await svc.delete_task(identity, task_id)
    return Envelope(message="Task deleted successfully")


@router.patch("/{task_id}/complete", response_model=TaskEnvelope)
async def complete_task(
    task_id: uuid.UUID,
    identity: Identity = Depends(require_non_admin),
    svc: TaskService = Depends(_task_svc),
):
    """Mark a task completed. Status and completedAt are set server-side."""
    task = await svc.complete_task(identity, task_id)
    return TaskEnvelope(
        message="Task marked as completed", task=TaskRead.model_validate(task)
    )
