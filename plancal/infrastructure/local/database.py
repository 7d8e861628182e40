"""
SQLite database configuration and ORM models.

This module defines the SQLAlchemy ORM models and database initialization.
Instants are stored as naive UTC.
"""

from datetime import datetime
from functools import lru_cache
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from plancal.core.config import get_settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


# ===========================================
# ORM Models
# ===========================================


class PlanORM(Base):
    """Plan ORM model."""

    __tablename__ = "plans"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    goal_text = Column(Text, nullable=False)
    clarifications = Column(JSON, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    status = Column(String(20), default="active", index=True)
    summary_data = Column(JSON, nullable=True, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class TaskORM(Base):
    """Task ORM model."""

    __tablename__ = "tasks"
    __table_args__ = (UniqueConstraint("plan_id", "idx", name="uq_tasks_plan_idx"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    plan_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    idx = Column(Integer, nullable=False)
    name = Column(String(500), nullable=False)
    details = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=False, default=60)
    priority = Column(Integer, nullable=False, default=3)
    is_recurring = Column(Boolean, default=False)
    is_indefinite = Column(Boolean, default=False)
    is_calendar_event = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class TaskScheduleORM(Base):
    """Task schedule ORM model. Rows are never updated."""

    __tablename__ = "task_schedules"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    plan_id = Column(String(36), nullable=False, index=True)
    task_id = Column(String(36), nullable=False, index=True)
    schedule_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    rescheduled_from = Column(String(36), nullable=True, unique=True)
    reschedule_reason = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class ScheduleCompletionORM(Base):
    """Completion record for a task schedule."""

    __tablename__ = "schedule_completions"

    schedule_id = Column(String(36), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    completed_at = Column(DateTime, default=datetime.utcnow)


class WorkdaySettingsORM(Base):
    """Workday settings ORM model."""

    __tablename__ = "workday_settings"

    user_id = Column(String(255), primary_key=True)
    start_hour = Column(Integer, nullable=False, default=9)
    end_hour = Column(Integer, nullable=False, default=17)
    lunch_start_hour = Column(Integer, nullable=True, default=12)
    lunch_end_hour = Column(Integer, nullable=True, default=13)
    allow_weekends = Column(Boolean, nullable=False, default=True)
    timezone = Column(String(64), nullable=False, default="UTC")
    evening_buffer_minutes = Column(Integer, nullable=False, default=30)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class UsageBalanceORM(Base):
    """Credit balance per user and metric."""

    __tablename__ = "usage_balances"
    __table_args__ = (UniqueConstraint("user_id", "metric", name="uq_usage_balances_user_metric"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    metric = Column(String(50), nullable=False)
    allocation = Column(Integer, nullable=False, default=0)
    used = Column(Integer, nullable=False, default=0)
    reserved = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class UsageLedgerORM(Base):
    """Append-only credit ledger."""

    __tablename__ = "usage_ledger"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    metric = Column(String(50), nullable=False)
    action = Column(String(20), nullable=False)
    amount = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    reference = Column(String(100), nullable=False, index=True)
    reason = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class PlanLockORM(Base):
    """Advisory lock row, one per plan being mutated."""

    __tablename__ = "plan_locks"

    plan_id = Column(String(36), primary_key=True)
    holder = Column(String(100), nullable=False)
    acquired_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)


class CalendarEventORM(Base):
    """External calendar busy interval synced for a user."""

    __tablename__ = "calendar_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    start_at = Column(DateTime, nullable=False, index=True)
    end_at = Column(DateTime, nullable=False)
    summary = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# ===========================================
# Database Session Management
# ===========================================


@lru_cache()
def get_engine():
    """Get async engine instance."""
    settings = get_settings()
    return create_async_engine(settings.DATABASE_URL, echo=False)


def get_session_factory():
    """Get async session factory."""
    engine = get_engine()
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    """Initialize database tables."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

