"""Pydantic schemas for tasks.

Learn: Separate schemas for create/update/read keeps the API clean.
- TaskCreate: what you POST to create a task (no createdBy, the caller is the creator)
- TaskUpdate: what you PUT to modify a task (all optional, whitelisted fields only)
- TaskRead: what the API returns
Unknown fields (createdBy, completedAt, ...) are dropped by pydantic before
they reach the service.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator, model_validator

from taskhub.schemas.common import ApiModel, Envelope

STATUS_PATTERN = r"^(pending|in-progress|completed)$"
PRIORITY_PATTERN = r"^(low|medium|high)$"

# sortBy value (camelCase, as sent by clients) → Task column
SORT_FIELDS: dict[str, str] = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "dueDate": "due_date",
    "priority": "priority",
    "status": "status",
    "title": "title",
}
SORT_PATTERN = r"^-?(" + "|".join(SORT_FIELDS) + r")$"
DEFAULT_SORT = "-createdAt"


def _clean_tags(tags: Optional[list[str]]) -> Optional[list[str]]:
    if tags is None:
        return None
    seen: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class _TaskFields(ApiModel):
    @field_validator("title", "description", mode="before", check_fields=False)
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("tags", check_fields=False)
    @classmethod
    def _dedupe_tags(cls, v):
        return _clean_tags(v)


class TaskCreate(_TaskFields):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(default="", max_length=2000)
    status: str = Field(default="pending", pattern=STATUS_PATTERN)
    priority: str = Field(default="medium", pattern=PRIORITY_PATTERN)
    due_date: Optional[datetime] = None
    assigned_to: Optional[uuid.UUID] = None
    tags: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _nulls_mean_default(cls, data):
        """Same null rules as TaskUpdate: description becomes "", the rest use defaults."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "description" in data and data["description"] is None:
            data["description"] = ""
        for key in ("status", "priority", "tags"):
            if key in data and data[key] is None:
                del data[key]
        return data


class TaskUpdate(_TaskFields):
    """Partial update.

    Explicit null clears description, dueDate and assignedTo; for the
    other fields null means "leave unchanged".
    """
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    status: Optional[str] = Field(None, pattern=STATUS_PATTERN)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)
    due_date: Optional[datetime] = None
    assigned_to: Optional[uuid.UUID] = None
    tags: Optional[list[str]] = None


class TaskRead(ApiModel):
    id: uuid.UUID
    title: str
    description: str
    status: str
    priority: str
    due_date: Optional[datetime]
    created_by: uuid.UUID
    assigned_to: Optional[uuid.UUID]
    tags: list[str]
    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime


class TaskEnvelope(Envelope):
    task: TaskRead


class TaskListEnvelope(Envelope):
    count: int
    tasks: list[TaskRead]


class TaskStatistics(ApiModel):
    total_tasks: int
    total_users: int
    tasks_by_status: dict[str, int]
    tasks_by_priority: dict[str, int]


class StatisticsEnvelope(Envelope):
    statistics: TaskStatistics
