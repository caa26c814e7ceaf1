"""Task authorization policy.

Learn: This is the CORE access-control logic. Every decision is a pure
function of (identity, task), evaluated before any write:

  read    → creator OR assignee OR admin
  update  → creator only
  delete  → creator only
  complete→ creator only

Mutation is decided by identity equality with task.created_by; role plays
no part. Admins therefore have no mutation rights (they are read-only), and
an assignee only gains visibility, never write access.

Listing does not check tasks one by one. visibility_filter() returns the
WHERE clause that IS the access control for a non-admin's task list.
"""

import enum

from sqlalchemy import ColumnElement, or_

from taskhub.auth.dependencies import Identity
from taskhub.db.models import Task
from taskhub.errors import Forbidden


class TaskAction(str, enum.Enum):
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    COMPLETE = "complete"


_DENIAL_MESSAGES: dict[TaskAction, str] = {
    TaskAction.READ: "Not authorized to access this task",
    TaskAction.UPDATE: "Not authorized to update this task",
    TaskAction.DELETE: "Not authorized to delete this task",
    TaskAction.COMPLETE: "Not authorized to complete this task",
}


def can_read(identity: Identity, task: Task) -> bool:
    return (
        identity.user_id == task.created_by
        or (task.assigned_to is not None and identity.user_id == task.assigned_to)
        or identity.is_admin
    )


def can_mutate(identity: Identity, task: Task) -> bool:
    return identity.user_id == task.created_by


def is_allowed(identity: Identity, task: Task, action: TaskAction) -> bool:
    if action is TaskAction.READ:
        return can_read(identity, task)
    return can_mutate(identity, task)


def authorize(identity: Identity, task: Task, action: TaskAction) -> None:
    """Raise Forbidden unless identity may perform action on task."""
    if not is_allowed(identity, task, action):
        raise Forbidden(_DENIAL_MESSAGES[action])


def visibility_filter(identity: Identity) -> ColumnElement[bool]:
    """Tasks a user may see in their own list: created by or assigned to them."""
    return or_(
        Task.created_by == identity.user_id,
        Task.assigned_to == identity.user_id,
    )
