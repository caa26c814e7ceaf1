"""Admin API — read-only views over every task and user.

Learn: The whole router is mounted with require_admin (see api/__init__.py).
Nothing here writes: admins can look at everything but own and change
nothing. Single-task reads skip the ownership policy entirely.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.db.engine import get_db
from taskhub.schemas.task import (
    PRIORITY_PATTERN,
    SORT_PATTERN,
    STATUS_PATTERN,
    StatisticsEnvelope,
    TaskEnvelope,
    TaskListEnvelope,
    TaskRead,
    TaskStatistics,
)
from taskhub.schemas.user import UserEnvelope, UserListEnvelope, UserRead
from taskhub.services.task_service import TaskService
from taskhub.services.user_service import UserService

router = APIRouter(prefix="/admin")


def _task_svc(db: AsyncSession = Depends(get_db)) -> TaskService:
    return TaskService(db)


def _user_svc(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


def _task_list(tasks) -> TaskListEnvelope:
    return TaskListEnvelope(
        count=len(tasks), tasks=[TaskRead.model_validate(t) for t in tasks]
    )


# ═══════════════════════════════════════════════════════════
# Tasks
# ═══════════════════════════════════════════════════════════


@router.get("/tasks", response_model=TaskListEnvelope)
async def list_all_tasks(
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    priority: Optional[str] = Query(None, pattern=PRIORITY_PATTERN),
    user_id: Optional[uuid.UUID] = Query(None, alias="userId"),
    sort_by: Optional[str] = Query(None, alias="sortBy", pattern=SORT_PATTERN),
    svc: TaskService = Depends(_task_svc),
):
    """All tasks, optionally filtered by creator, status and priority."""
    tasks = await svc.list_all_tasks(
        status=status, priority=priority, created_by=user_id, sort_by=sort_by
    )
    return _task_list(tasks)


@router.get("/tasks/user/{user_id}", response_model=TaskListEnvelope)
async def list_tasks_by_user(
    user_id: uuid.UUID,
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    priority: Optional[str] = Query(None, pattern=PRIORITY_PATTERN),
    sort_by: Optional[str] = Query(None, alias="sortBy", pattern=SORT_PATTERN),
    svc: TaskService = Depends(_task_svc),
    users: UserService = Depends(_user_svc),
):
    """Tasks created by one user. 404 if the user does not exist."""
    await users.get_or_404(user_id)
    tasks = await svc.list_all_tasks(
        status=status, priority=priority, created_by=user_id, sort_by=sort_by
    )
    return _task_list(tasks)


@router.get("/tasks/{task_id}", response_model=TaskEnvelope)
async def get_task(
    task_id: uuid.UUID,
    svc: TaskService = Depends(_task_svc),
):
    task = await svc.get_task_or_404(task_id)
    return TaskEnvelope(task=TaskRead.model_validate(task))


# ═══════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════


@router.get("/users", response_model=UserListEnvelope)
async def list_users(users: UserService = Depends(_user_svc)):
    all_users = await users.list_users()
    return UserListEnvelope(
        count=len(all_users),
        users=[UserRead.model_validate(u) for u in all_users],
    )


@router.get("/users/{user_id}", response_model=UserEnvelope)
async def get_user(
    user_id: uuid.UUID,
    users: UserService = Depends(_user_svc),
):
    user = await users.get_or_404(user_id)
    return UserEnvelope(user=UserRead.model_validate(user))


# ═══════════════════════════════════════════════════════════
# Statistics
# ═══════════════════════════════════════════════════════════


@router.get("/statistics", response_model=StatisticsEnvelope)
async def task_statistics(svc: TaskService = Depends(_task_svc)):
    """Total tasks and users, plus task counts by status and by priority."""
    stats = await svc.statistics()
    return StatisticsEnvelope(statistics=TaskStatistics(**stats))
