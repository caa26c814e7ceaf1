"""Task service — task CRUD behind the ownership policy.

Learn: Every method that touches a single task follows the same order:
1. Fetch by id (NotFound if absent)
2. Ask the policy (Forbidden if denied)
3. Only then write

So a denied request never leaves partial state. Listing for regular users
goes through policy.visibility_filter(), which is the access control for
lists; the admin listing skips it.

Completion is the one side effect the service owns: whenever status
moves into "completed", completed_at is stamped; moving out clears it.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.auth.dependencies import Identity
from taskhub.auth.policy import TaskAction, authorize, visibility_filter
from taskhub.db.models import (
    STATUS_COMPLETED,
    TASK_PRIORITIES,
    TASK_STATUSES,
    Task,
    User,
)
from taskhub.errors import Forbidden, InvalidInput, NotFound
from taskhub.schemas.task import DEFAULT_SORT, SORT_FIELDS

logger = structlog.get_logger()

# Fields a creator may change through update_task(). Anything else
# (created_by, completed_at, timestamps) is immutable on that path.
MUTABLE_FIELDS = (
    "title",
    "description",
    "status",
    "priority",
    "due_date",
    "assigned_to",
    "tags",
)

# Fields where an explicit None is a real value rather than "unchanged".
NULLABLE_FIELDS = {"description", "due_date", "assigned_to"}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def order_clause(sort_by: Optional[str]):
    """Translate a sortBy value like "-createdAt" into an ORDER BY clause."""
    sort_by = sort_by or DEFAULT_SORT
    descending = sort_by.startswith("-")
    field = sort_by.lstrip("-")
    if field not in SORT_FIELDS:
        raise InvalidInput(f"Cannot sort by '{field}'")
    column = getattr(Task, SORT_FIELDS[field])
    return column.desc() if descending else column.asc()


class TaskService:
    """Business logic for task CRUD, completion and statistics."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Create ──────────────────────────────────────────

    async def create_task(
        self,
        identity: Identity,
        title: str,
        description: str = "",
        status: str = "pending",
        priority: str = "medium",
        due_date: Optional[datetime] = None,
        assigned_to: Optional[uuid.UUID] = None,
        tags: Optional[list[str]] = None,
    ) -> Task:
        """Create a task owned by the caller.

        Learn: There is no created_by parameter. The creator is always the
        authenticated identity, whatever the request body said.
        """
        task = Task(
            title=title,
            description=description,
            status=status,
            priority=priority,
            due_date=due_date,
            created_by=identity.user_id,
            assigned_to=assigned_to,
            tags=tags or [],
            completed_at=_now() if status == STATUS_COMPLETED else None,
        )
        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)

        logger.info(
            "task.created",
            task_id=str(task.id),
            created_by=str(identity.user_id),
            assigned_to=str(assigned_to) if assigned_to else None,
        )
        return task

    # ─── Read ────────────────────────────────────────────

    async def get_task(self, task_id: uuid.UUID) -> Optional[Task]:
        return await self.db.get(Task, task_id)

    async def get_task_or_404(self, task_id: uuid.UUID) -> Task:
        task = await self.get_task(task_id)
        if not task:
            raise NotFound("Task not found")
        return task

    async def get_task_for(self, identity: Identity, task_id: uuid.UUID) -> Task:
        """Single-task read with the creator/assignee/admin check."""
        task = await self.get_task_or_404(task_id)
        self._authorize(identity, task, TaskAction.READ)
        return task

    async def list_tasks_for(
        self,
        identity: Identity,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        sort_by: Optional[str] = None,
    ) -> list[Task]:
        """Tasks the caller created or is assigned to, optionally filtered."""
        query = select(Task).where(visibility_filter(identity))
        return await self._run_list(query, status, priority, sort_by)

    async def list_all_tasks(
        self,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        created_by: Optional[uuid.UUID] = None,
        sort_by: Optional[str] = None,
    ) -> list[Task]:
        """Admin listing — no ownership filter."""
        query = select(Task)
        if created_by:
            query = query.where(Task.created_by == created_by)
        return await self._run_list(query, status, priority, sort_by)

    async def _run_list(
        self,
        query: Select,
        status: Optional[str],
        priority: Optional[str],
        sort_by: Optional[str],
    ) -> list[Task]:
        # Filters apply only when the caller provides them.
        if status:
            query = query.where(Task.status == status)
        if priority:
            query = query.where(Task.priority == priority)
        query = query.order_by(order_clause(sort_by))

        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ─── Update ──────────────────────────────────────────

    async def update_task(
        self,
        identity: Identity,
        task_id: uuid.UUID,
        changes: dict[str, Any],
    ) -> Task:
        """Apply whitelisted field changes. Creator only."""
        task = await self.get_task_or_404(task_id)
        self._authorize(identity, task, TaskAction.UPDATE)

        applied = {}
        for field in MUTABLE_FIELDS:
            if field not in changes:
                continue
            value = changes[field]
            if value is None and field not in NULLABLE_FIELDS:
                continue
            if field == "description" and value is None:
                value = ""
            applied[field] = value

        if "status" in applied and applied["status"] != task.status:
            if applied["status"] == STATUS_COMPLETED:
                task.completed_at = _now()
            elif task.status == STATUS_COMPLETED:
                task.completed_at = None

        for field, value in applied.items():
            setattr(task, field, value)

        await self.db.commit()
        await self.db.refresh(task)

        logger.info("task.updated", task_id=str(task_id), fields=sorted(applied))
        return task

    async def complete_task(self, identity: Identity, task_id: uuid.UUID) -> Task:
        """Mark a task completed and stamp completed_at. Creator only."""
        task = await self.get_task_or_404(task_id)
        self._authorize(identity, task, TaskAction.COMPLETE)

        task.status = STATUS_COMPLETED
        task.completed_at = _now()
        await self.db.commit()
        await self.db.refresh(task)

        logger.info("task.completed", task_id=str(task_id))
        return task

    # ─── Delete ──────────────────────────────────────────

    async def delete_task(self, identity: Identity, task_id: uuid.UUID) -> None:
        task = await self.get_task_or_404(task_id)
        self._authorize(identity, task, TaskAction.DELETE)

        await self.db.delete(task)
        await self.db.commit()
        logger.info("task.deleted", task_id=str(task_id))

    # ─── Statistics ──────────────────────────────────────

    async def statistics(self) -> dict[str, Any]:
        """Totals plus per-status and per-priority counts (zeros included)."""
        by_status = dict.fromkeys(TASK_STATUSES, 0)
        result = await self.db.execute(
            select(Task.status, func.count()).group_by(Task.status)
        )
        for status, count in result.all():
            by_status[status] = count

        by_priority = dict.fromkeys(TASK_PRIORITIES, 0)
        result = await self.db.execute(
            select(Task.priority, func.count()).group_by(Task.priority)
        )
        for priority, count in result.all():
            by_priority[priority] = count

        total_tasks = (
            await self.db.execute(select(func.count()).select_from(Task))
        ).scalar_one()
        total_users = (
            await self.db.execute(select(func.count()).select_from(User))
        ).scalar_one()

        return {
            "total_tasks": total_tasks,
            "total_users": total_users,
            "tasks_by_status": by_status,
            "tasks_by_priority": by_priority,
        }

    # ─── Helpers ─────────────────────────────────────────

    def _authorize(self, identity: Identity, task: Task, action: TaskAction) -> None:
        try:
            authorize(identity, task, action)
        except Forbidden:
            logger.info(
                "task.access_denied",
                task_id=str(task.id),
                user_id=str(identity.user_id),
                action=action.value,
            )
            raise
