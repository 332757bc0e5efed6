"""CRUD operations for Context Reminders.

This module provides database operations for reminders, users and device
locations. It is the only module that writes persisted state.
"""

from sqlalchemy import update, func
from sqlalchemy.orm import Session
from typing import List, Optional
import uuid
from datetime import datetime, date, timezone

from database import Reminder, User, DeviceLocation
from triggers import TriggerType, parse_instant
from logger_config import setup_logger

logger = setup_logger(__name__, 'crud.log')

EDITABLE_FIELDS = (
    'title', 'category', 'trigger_type', 'details', 'is_recurring', 'recurring_interval'
)


def create_reminder(db: Session, user_id: str, reminder_data: dict) -> Reminder:
    """Create a new reminder in the database.

    Args:
        db: Database session
        user_id: Owning user
        reminder_data: Dictionary with reminder fields
            - title: str
            - category: Optional[str]
            - trigger_type: str
            - details: dict (JSON payload for trigger_type)
            - is_recurring: Optional[bool]
            - recurring_interval: Optional[str]
            - shared_by / shared_at: only for shared copies

    Returns:
        Reminder: Created reminder object

    Raises:
        SQLAlchemyError: On database errors
    """
    now = datetime.now(timezone.utc)

    db_reminder = Reminder(
        id=str(uuid.uuid4()),
        user_id=user_id,
        title=reminder_data['title'],
        category=reminder_data.get('category') or '',
        trigger_type=reminder_data['trigger_type'],
        details=reminder_data.get('details') or {},
        is_recurring=bool(reminder_data.get('is_recurring', False)),
        recurring_interval=reminder_data.get('recurring_interval'),
        notified=False,
        shared_by=reminder_data.get('shared_by'),
        shared_at=reminder_data.get('shared_at'),
        created_at=now,
        updated_at=now
    )

    db.add(db_reminder)
    db.commit()
    db.refresh(db_reminder)
    return db_reminder


def get_reminders_by_user(
    db: Session,
    user_id: str,
    trigger_type: Optional[str] = None,
    limit: Optional[int] = None
) -> List[Reminder]:
    """Get reminders for a specific user.

    Args:
        db: Database session
        user_id: Owning user
        trigger_type: Optional trigger type filter
        limit: Maximum number of results (default: no limit)

    Returns:
        List[Reminder]: Reminders, newest first
    """
    query = db.query(Reminder).filter(Reminder.user_id == user_id)

    if trigger_type:
        query = query.filter(Reminder.trigger_type == trigger_type)

    query = query.order_by(Reminder.created_at.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_reminder(db: Session, reminder_id: str, user_id: str) -> Optional[Reminder]:
    """Get a specific reminder by ID, scoped to its owner."""
    return db.query(Reminder).filter(
        Reminder.id == reminder_id,
        Reminder.user_id == user_id
    ).first()


def update_reminder(
    db: Session,
    reminder_id: str,
    user_id: str,
    updates: dict
) -> Optional[Reminder]:
    """Replace the editable fields of a reminder.

    The ID is preserved. The notified flag is cleared so an edited time
    reminder can fire again at its new instant.

    Returns:
        Optional[Reminder]: Updated reminder object if found, None otherwise
    """
    reminder = get_reminder(db, reminder_id, user_id)
    if not reminder:
        return None

    for key in EDITABLE_FIELDS:
        if key in updates:
            setattr(reminder, key, updates[key])

    reminder.notified = False
    reminder.updated_at = datetime.now(timezone.utc)

    db.commit()
    db.refresh(reminder)
    return reminder


def delete_reminder(db: Session, reminder_id: str, user_id: str) -> bool:
    """Delete a reminder.

    Returns:
        bool: True if deleted, False if not found
    """
    reminder = get_reminder(db, reminder_id, user_id)
    if not reminder:
        return False

    db.delete(reminder)
    db.commit()
    return True


def delete_reminders_by_user(db: Session, user_id: str) -> List[str]:
    """Delete every reminder a user owns.

    Returns:
        List[str]: IDs of the deleted reminders
    """
    reminders = db.query(Reminder).filter(Reminder.user_id == user_id).all()
    ids = [r.id for r in reminders]
    for reminder in reminders:
        db.delete(reminder)
    db.commit()
    return ids


def search_reminders(db: Session, user_id: str, query: str) -> List[Reminder]:
    """Search reminders by title, case-insensitively."""
    search_pattern = f"%{query.lower()}%"
    return db.query(Reminder).filter(
        Reminder.user_id == user_id,
        func.lower(Reminder.title).like(search_pattern)
    ).order_by(Reminder.created_at.desc()).all()


def get_reminders_on_day(db: Session, user_id: str, day: date) -> List[Reminder]:
    """Get time reminders due on a calendar day (UTC), earliest first."""
    reminders = get_reminders_by_user(db, user_id, TriggerType.TIME.value)

    on_day = []
    for reminder in reminders:
        due = parse_instant((reminder.details or {}).get('time'))
        if due is not None and due.date() == day:
            on_day.append((due, reminder))

    on_day.sort(key=lambda pair: pair[0])
    return [reminder for _, reminder in on_day]


def get_reminders_count(db: Session, user_id: str) -> int:
    """Get total number of reminders for a user."""
    return db.query(Reminder).filter(Reminder.user_id == user_id).count()


def mark_notified(db: Session, reminder_id: str) -> bool:
    """Set notified=True if it is currently False.

    This is a compare-and-set: concurrent callers race on the same row and
    exactly one of them sees the false->true transition.

    Returns:
        bool: True if this call made the transition, False if the reminder
        was already notified or no longer exists

    Raises:
        SQLAlchemyError: On database errors
    """
    result = db.execute(
        update(Reminder)
        .where(Reminder.id == reminder_id, Reminder.notified.is_(False))
        .values(notified=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()

    if result.rowcount != 1:
        logger.info(f"Reminder {reminder_id} already notified or gone; not claimed")
        return False
    return True


def release_notified(db: Session, reminder_id: str) -> bool:
    """Undo a claim made by mark_notified when the alert could not be sent.

    Returns:
        bool: True if the flag went from True back to False
    """
    result = db.execute(
        update(Reminder)
        .where(Reminder.id == reminder_id, Reminder.notified.is_(True))
        .values(notified=False)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def get_user_ids_with_reminders(db: Session) -> List[str]:
    """Get the distinct owners of at least one reminder."""
    rows = db.query(Reminder.user_id).distinct().all()
    return [row[0] for row in rows]


def create_user(db: Session, user_id: str, email: str) -> User:
    """Register a user account."""
    user = User(id=user_id, email=email.lower(), created_at=datetime.now(timezone.utc))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower()).first()


def delete_user(db: Session, user_id: str) -> bool:
    """Delete a user account and its device location.

    Reminders are removed separately so their schedules can be cancelled.
    """
    user = get_user(db, user_id)
    if not user:
        return False

    db.query(DeviceLocation).filter(DeviceLocation.user_id == user_id).delete()
    db.delete(user)
    db.commit()
    return True


def upsert_device_location(
    db: Session,
    user_id: str,
    latitude: float,
    longitude: float
) -> DeviceLocation:
    """Store the latest position reported by a user's device."""
    location = db.query(DeviceLocation).filter(DeviceLocation.user_id == user_id).first()
    now = datetime.now(timezone.utc)

    if location is None:
        location = DeviceLocation(user_id=user_id)
        db.add(location)

    location.latitude = latitude
    location.longitude = longitude
    location.reported_at = now

    db.commit()
    db.refresh(location)
    return location


def get_device_location(db: Session, user_id: str) -> Optional[DeviceLocation]:
    return db.query(DeviceLocation).filter(DeviceLocation.user_id == user_id).first()
