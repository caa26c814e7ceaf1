"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Alembic migrations are written against these models.

Key concepts:
- UUID primary keys (generic Uuid type: native on PostgreSQL, CHAR(32) on SQLite)
- JSON column for tags (a small unordered set per task, no join table)
- Task.created_by / Task.assigned_to are weak references to users:
  indexed UUID columns with no foreign key, so nothing cascades or nulls out
- Python-side defaults for timestamps so values are available right after flush
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


# ─── Enumerations ────────────────────────────────────────

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"
TASK_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED)

TASK_PRIORITIES = ("low", "medium", "high")


# ══════════════════════════════════════════════════════════════
# Users
# ══════════════════════════════════════════════════════════════


class User(Base):
    """A registered account.

    Learn: Role is either "user" or "admin". Registration always creates
    "user"; admins are created or promoted through the operator CLI.
    The password hash never leaves the service layer.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    profile_picture: Mapped[Optional[str]] = mapped_column(
        String(500), nullable=True
    )
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ROLE_USER
    )  # user, admin
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


# ══════════════════════════════════════════════════════════════
# Tasks
# ══════════════════════════════════════════════════════════════


class Task(Base):
    """A work item owned by the user who created it.

    Learn: created_by is set once at creation and never rewritten.
    completed_at is stamped whenever status moves into "completed".
    """

    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_created_by_status", "created_by", "status"),
        Index("ix_tasks_assigned_to", "assigned_to"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=STATUS_PENDING
    )  # pending, in-progress, completed
    priority: Mapped[str] = mapped_column(
        String(10), nullable=False, default="medium"
    )  # low, medium, high
    due_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
