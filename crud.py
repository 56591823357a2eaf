"""CRUD operations for the Reminder Scheduler service.

This module provides database operations for users and for the three
reminder-carrying entity kinds, plus the two entity store operations the
reminder scanner relies on:

- find_entities_with_due_reminders: candidate entities for a scan window
- save_reminder_sent_state: targeted, conditional update of one reminder

All datetime parameters are aware UTC datetimes.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from database import (
    Goal,
    GoalStatusEnum,
    PriorityEnum,
    Reminder,
    ReminderMethodEnum,
    TaskStatusEnum,
    User,
)
from entity_kinds import EVENT, GOAL, TASK, EntityKind
from logger_config import setup_logger
from time_utils import as_utc, utcnow

logger = setup_logger(__name__, 'crud.log')


class UnknownOwnerError(ValueError):
    """Raised when an entity references a user that does not exist."""


# -------------------------------------------------------------------- users

def create_user(db: Session, user_data: dict) -> User:
    """Create a new user.

    Args:
        db: Database session
        user_data: Dictionary with name, email (optional), phone_number (optional)

    Returns:
        User: Created user
    """
    user = User(
        name=user_data['name'],
        email=user_data.get('email'),
        phone_number=user_data.get('phone_number'),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


# ---------------------------------------------------------------- reminders

def _build_reminders(reminders: List[dict]) -> List[Reminder]:
    """Turn owner-supplied reminder dicts into unsent Reminder rows."""
    rows = []
    for data in reminders or []:
        method = data.get('method') or ReminderMethodEnum.APP_NOTIFICATION
        if isinstance(method, str):
            method = ReminderMethodEnum(method)
        rows.append(Reminder(
            time=as_utc(data['time']),
            method=method,
            message=data.get('message') or None,
            is_sent=False,
        ))
    return rows


# ----------------------------------------------------------------- entities

def _entity_columns(kind: EntityKind, data: dict) -> dict:
    """Convert API field values into column values for kind."""
    columns = {key: value for key, value in data.items() if key != 'reminders'}

    for key, value in list(columns.items()):
        if isinstance(value, datetime):
            columns[key] = as_utc(value)

    if kind is TASK:
        if isinstance(columns.get('status'), str):
            columns['status'] = TaskStatusEnum(columns['status'])
        if isinstance(columns.get('priority'), str):
            columns['priority'] = PriorityEnum(columns['priority'])
    elif kind is GOAL:
        if isinstance(columns.get('status'), str):
            columns['status'] = GoalStatusEnum(columns['status'])

    return columns


def _mark_goal_overdue(goal: Goal) -> None:
    """An active goal whose target date has passed becomes overdue."""
    target = as_utc(goal.target_date)
    if target is not None and target < utcnow() and goal.status in (None, GoalStatusEnum.ACTIVE):
        goal.status = GoalStatusEnum.OVERDUE


def create_entity(db: Session, kind: EntityKind, entity_data: dict):
    """Create a task, event or goal together with its embedded reminders.

    Args:
        db: Database session
        kind: Entity kind adapter (TASK, EVENT or GOAL)
        entity_data: Field values, including owner_id and an optional
            'reminders' list of {time, method, message} dicts

    Returns:
        The created entity with reminders loaded

    Raises:
        UnknownOwnerError: If owner_id does not reference an existing user
        SQLAlchemyError: On database errors
    """
    if get_user(db, entity_data['owner_id']) is None:
        raise UnknownOwnerError(f"Unknown owner: {entity_data['owner_id']}")

    entity = kind.model(**_entity_columns(kind, entity_data))
    entity.reminders = _build_reminders(entity_data.get('reminders', []))
    if kind is GOAL:
        _mark_goal_overdue(entity)

    db.add(entity)
    db.commit()
    db.refresh(entity)
    logger.info(
        f"Created {kind.name} {entity.id} for user {entity.owner_id} "
        f"with {len(entity.reminders)} reminder(s)"
    )
    return entity


def get_entities_by_owner(db: Session, kind: EntityKind, owner_id: str, limit: int = 50) -> List:
    model = kind.model
    return (
        db.query(model)
        .options(selectinload(model.reminders))
        .filter(model.owner_id == owner_id)
        .order_by(model.created_at.desc())
        .limit(limit)
        .all()
    )


def get_entity(db: Session, kind: EntityKind, entity_id: str, owner_id: str):
    """Get one entity by ID, scoped to its owner.

    Returns:
        The entity if found and owned by owner_id, None otherwise
    """
    model = kind.model
    return (
        db.query(model)
        .options(selectinload(model.reminders))
        .filter(model.id == entity_id, model.owner_id == owner_id)
        .first()
    )


def replace_reminders(
    db: Session,
    kind: EntityKind,
    entity_id: str,
    owner_id: str,
    reminders: List[dict]
):
    """Replace the reminder list of an entity.

    Previous reminders (sent or not) are removed; the new ones start unsent.

    Returns:
        The updated entity, or None if not found
    """
    entity = get_entity(db, kind, entity_id, owner_id)
    if entity is None:
        return None

    entity.reminders = _build_reminders(reminders)
    entity.updated_at = utcnow()
    db.commit()
    db.refresh(entity)
    return entity


def update_entity(
    db: Session,
    kind: EntityKind,
    entity_id: str,
    owner_id: str,
    updates: dict
):
    """Update the fields of an existing entity.

    Args:
        db: Database session
        kind: Entity kind adapter (TASK, EVENT or GOAL)
        entity_id: Entity ID
        owner_id: ID of the owning user (for security)
        updates: Dictionary of fields to update. None values are ignored.
            A 'reminders' list replaces the reminder list; without it the
            existing reminders and their sent-state are kept.

    Returns:
        The updated entity if found, None otherwise

    Raises:
        ValueError: If an event would end before it starts
        SQLAlchemyError: On database errors
    """
    entity = get_entity(db, kind, entity_id, owner_id)
    if entity is None:
        return None

    updates = {key: value for key, value in updates.items() if value is not None}
    reminders = updates.pop('reminders', None)
    updates.pop('owner_id', None)
    columns = _entity_columns(kind, updates)

    if kind is EVENT:
        start = as_utc(columns.get('start_time', entity.start_time))
        end = as_utc(columns.get('end_time', entity.end_time))
        if end is not None and end < start:
            raise ValueError("end_time must not be before start_time")

    for key, value in columns.items():
        setattr(entity, key, value)
    if reminders is not None:
        entity.reminders = _build_reminders(reminders)
    if kind is GOAL:
        _mark_goal_overdue(entity)

    entity.updated_at = utcnow()
    db.commit()
    db.refresh(entity)
    logger.info(f"Updated {kind.name} {entity.id}: {', '.join(sorted(columns)) or 'no fields'}"
                + (f", {len(entity.reminders)} reminder(s) replaced" if reminders is not None else ""))
    return entity


def delete_entity(db: Session, kind: EntityKind, entity_id: str, owner_id: str) -> bool:
    """Delete an entity and its embedded reminders.

    Returns:
        bool: True if deleted, False if not found
    """
    entity = get_entity(db, kind, entity_id, owner_id)
    if entity is None:
        return False

    db.delete(entity)
    db.commit()
    return True


# ------------------------------------------------------------ entity store

def find_entities_with_due_reminders(
    db: Session,
    kind: EntityKind,
    window_start: datetime,
    window_end: datetime
) -> List:
    """Get entities of kind holding at least one unsent reminder in the window.

    The window is inclusive on both ends. Owners and reminders are loaded
    eagerly. The result may contain reminders outside the window; callers
    filter each entity's reminders themselves.
    """
    model = kind.model
    return (
        db.query(model)
        .options(joinedload(model.owner), selectinload(model.reminders))
        .filter(
            model.reminders.any(
                and_(
                    Reminder.is_sent.is_(False),
                    Reminder.time >= as_utc(window_start),
                    Reminder.time <= as_utc(window_end),
                )
            )
        )
        .all()
    )


def save_reminder_sent_state(
    db: Session,
    reminder_id: str,
    skip_reason: Optional[str] = None,
    sent_at: Optional[datetime] = None
) -> bool:
    """Mark one reminder as sent.

    Only the reminder's own sent columns are written, and only while it is
    still unsent, so sibling reminders and parent fields edited concurrently
    are left alone and is_sent never flips back.

    Args:
        db: Database session
        reminder_id: Reminder ID
        skip_reason: Set when the reminder is retired without a dispatch
        sent_at: Time of marking (defaults to now)

    Returns:
        bool: True if the reminder was marked, False if it no longer exists
            or was already sent

    Raises:
        SQLAlchemyError: On database errors (the session is rolled back)
    """
    statement = (
        update(Reminder)
        .where(Reminder.id == reminder_id, Reminder.is_sent.is_(False))
        .values(is_sent=True, sent_at=as_utc(sent_at) or utcnow(), skip_reason=skip_reason)
        .execution_options(synchronize_session=False)
    )
    try:
        marked = db.execute(statement).rowcount == 1
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return marked
