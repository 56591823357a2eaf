"""Database module for the Reminder Scheduler service.

This module defines the SQLAlchemy models of the entity store and database
session management.

Tasks, events and goals each own an ordered list of reminders. A reminder
belongs to exactly one parent (one of task_id / event_id / goal_id is set)
and is deleted together with it. The scheduler never creates or deletes
entities; it only flips Reminder.is_sent.
"""

import enum
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Index,
    String,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from config import settings
from time_utils import utcnow

# SQLAlchemy Base
Base = declarative_base()


def new_id() -> str:
    """Generate a new primary key (UUID4 string)."""
    return str(uuid.uuid4())


class ReminderMethodEnum(enum.Enum):
    """Delivery method of a reminder"""
    EMAIL = "email"
    SMS = "sms"
    APP_NOTIFICATION = "app_notification"


class TaskStatusEnum(enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    DEFERRED = "deferred"
    CANCELLED = "cancelled"


class PriorityEnum(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class GoalStatusEnum(enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"


class User(Base):
    """Owner of tasks, events and goals; source of reminder contact info."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True, unique=True, doc="Address for email reminders")
    phone_number = Column(String, nullable=True, doc="E.164 number for SMS reminders")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<User(id={self.id}, name={self.name}, email={self.email})>"


class Reminder(Base):
    """Reminder embedded in a task, event or goal.

    time/method/message are written by the entity owner only; is_sent,
    sent_at and skip_reason are written by the scheduler only. Once is_sent
    is True it is never reset.
    """

    __tablename__ = "reminders"

    id = Column(String, primary_key=True, default=new_id)

    # Exactly one parent reference is set
    task_id = Column(String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=True)
    event_id = Column(String, ForeignKey("events.id", ondelete="CASCADE"), nullable=True)
    goal_id = Column(String, ForeignKey("goals.id", ondelete="CASCADE"), nullable=True)

    time = Column(DateTime(timezone=True), nullable=False, doc="When the notification is due")
    method = Column(
        SQLEnum(ReminderMethodEnum),
        nullable=False,
        default=ReminderMethodEnum.APP_NOTIFICATION,
    )
    message = Column(String, nullable=True, doc="Optional note appended to the notification")

    is_sent = Column(Boolean, nullable=False, default=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    skip_reason = Column(String, nullable=True, doc="Set when marked sent without a dispatch")

    __table_args__ = (
        Index('idx_reminder_due', 'is_sent', 'time'),
    )

    def __repr__(self):
        return (
            f"<Reminder(id={self.id}, time={self.time}, "
            f"method={self.method.value if self.method else None}, is_sent={self.is_sent})>"
        )


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String, primary_key=True, default=new_id)
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(String, default="")
    due_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(SQLEnum(TaskStatusEnum), default=TaskStatusEnum.PENDING)
    priority = Column(SQLEnum(PriorityEnum), default=PriorityEnum.MEDIUM)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    owner = relationship("User")
    reminders = relationship(
        "Reminder",
        cascade="all, delete-orphan",
        order_by=Reminder.time,
    )

    def __repr__(self):
        return f"<Task(id={self.id}, title={self.title}, due={self.due_date})>"


class Event(Base):
    __tablename__ = "events"

    id = Column(String, primary_key=True, default=new_id)
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(String, default="")
    location = Column(String, nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    all_day = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    owner = relationship("User")
    reminders = relationship(
        "Reminder",
        cascade="all, delete-orphan",
        order_by=Reminder.time,
    )

    def __repr__(self):
        return f"<Event(id={self.id}, title={self.title}, start={self.start_time})>"


class Goal(Base):
    __tablename__ = "goals"

    id = Column(String, primary_key=True, default=new_id)
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(String, default="")
    target_date = Column(DateTime(timezone=True), nullable=False)
    progress = Column(Float, default=0.0)
    status = Column(SQLEnum(GoalStatusEnum), default=GoalStatusEnum.ACTIVE)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    owner = relationship("User")
    reminders = relationship(
        "Reminder",
        cascade="all, delete-orphan",
        order_by=Reminder.time,
    )

    def __repr__(self):
        return f"<Goal(id={self.id}, title={self.title}, target={self.target_date})>"


def build_engine(url: str):
    """Create an engine for url.

    SQLite connections are shared across threads (the scheduler runs beside
    the API). In-memory SQLite uses a single static connection so every
    session sees the same database.
    """
    kwargs = {"echo": False}  # Set echo to True for SQL debugging
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def build_session_factory(engine):
    """Session factory bound to engine, creating missing tables first."""
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Database Engine Setup
engine = build_engine(settings.DATABASE_URL)

# Session Factory (creates all tables)
SessionLocal = build_session_factory(engine)


def get_db():
    """Database session dependency for FastAPI.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
