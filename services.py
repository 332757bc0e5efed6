"""User-initiated reminder flows.

Save, edit, delete and share go through here so that notification
scheduling stays in step with the stored records. Failures propagate to
the caller; the API layer turns them into HTTP errors.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

import crud
from config import settings
from database import Reminder, User
from notifications import NotificationAdapter
from triggers import TriggerType, parse_instant
from logger_config import setup_logger

logger = setup_logger(__name__, 'services.log')


class ReminderServiceError(Exception):
    """Base class for reminder flow errors."""


class UnauthenticatedError(ReminderServiceError):
    """No current user for an operation that needs one."""


class ReminderNotFoundError(ReminderServiceError):
    pass


class RecipientNotFoundError(ReminderServiceError):
    pass


class ReminderLimitError(ReminderServiceError):
    pass


class EmailTakenError(ReminderServiceError):
    """Another account is already registered with this email."""


def require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise UnauthenticatedError("User not authenticated")
    return user_id


async def _sync_schedule(notifier: NotificationAdapter, reminder: Reminder) -> None:
    """Schedule a time reminder at its instant, or cancel any schedule otherwise."""
    if reminder.trigger_type == TriggerType.TIME:
        when = parse_instant((reminder.details or {}).get('time'))
        if when is None:
            logger.warning(f"Reminder {reminder.id} has no usable time; not scheduling")
            return
        await notifier.schedule_at(reminder.user_id, reminder.id, when, reminder.title, reminder.category)
    else:
        await notifier.cancel(reminder.id)


async def save_reminder(
    db: Session,
    notifier: NotificationAdapter,
    user_id: Optional[str],
    data: dict
) -> Reminder:
    """Create a reminder and schedule its alert when time-triggered."""
    user_id = require_user(user_id)

    if crud.get_reminders_count(db, user_id) >= settings.MAX_REMINDERS_PER_USER:
        raise ReminderLimitError(f"Reminder limit of {settings.MAX_REMINDERS_PER_USER} reached")

    reminder = crud.create_reminder(db, user_id, data)
    logger.info(f"Created reminder {reminder.id} ({reminder.trigger_type}) for user {user_id}")

    if reminder.trigger_type == TriggerType.TIME:
        await _sync_schedule(notifier, reminder)
    return reminder


async def edit_reminder(
    db: Session,
    notifier: NotificationAdapter,
    user_id: Optional[str],
    reminder_id: str,
    data: dict
) -> Reminder:
    """Replace a reminder's fields and reschedule under the same ID."""
    user_id = require_user(user_id)

    reminder = crud.update_reminder(db, reminder_id, user_id, data)
    if reminder is None:
        raise ReminderNotFoundError(f"Reminder {reminder_id} not found")
    logger.info(f"Updated reminder {reminder.id} for user {user_id}")

    await _sync_schedule(notifier, reminder)
    return reminder


async def remove_reminder(
    db: Session,
    notifier: NotificationAdapter,
    user_id: Optional[str],
    reminder_id: str
) -> None:
    """Delete a reminder and cancel its scheduled alert."""
    user_id = require_user(user_id)

    if not crud.delete_reminder(db, reminder_id, user_id):
        raise ReminderNotFoundError(f"Reminder {reminder_id} not found")
    logger.info(f"Deleted reminder {reminder_id} for user {user_id}")

    await notifier.cancel(reminder_id)


async def share_reminder(
    db: Session,
    sharer_id: Optional[str],
    reminder_id: str,
    recipient_email: str
) -> Reminder:
    """Copy one of the caller's reminders into the recipient's reminders.

    The copy gets a new ID, `shared_by` set to the caller and `shared_at`
    set to the server time.

    Raises:
        UnauthenticatedError: No caller
        ReminderNotFoundError: Caller does not own reminder_id
        RecipientNotFoundError: No account with recipient_email
    """
    sharer_id = require_user(sharer_id)

    original = crud.get_reminder(db, reminder_id, sharer_id)
    if original is None:
        raise ReminderNotFoundError(f"Reminder {reminder_id} not found")

    recipient = crud.get_user_by_email(db, recipient_email)
    if recipient is None:
        raise RecipientNotFoundError(f"No user with email {recipient_email}")

    copy = crud.create_reminder(db, recipient.id, {
        'title': original.title,
        'category': original.category,
        'trigger_type': original.trigger_type,
        'details': dict(original.details or {}),
        'is_recurring': original.is_recurring,
        'recurring_interval': original.recurring_interval,
        'shared_by': sharer_id,
        'shared_at': datetime.now(timezone.utc)
    })
    logger.info(f"User {sharer_id} shared reminder {reminder_id} with {recipient_email} as {copy.id}")
    return copy


def register_user(db: Session, user_id: Optional[str], email: str) -> User:
    """Create the account record, or return it if it already exists."""
    user_id = require_user(user_id)

    existing = crud.get_user(db, user_id)
    if existing is not None:
        return existing

    holder = crud.get_user_by_email(db, email)
    if holder is not None:
        raise EmailTakenError(f"Email {email} is already registered")

    user = crud.create_user(db, user_id, email)
    logger.info(f"Registered user {user_id} ({email})")
    return user


async def remove_user(db: Session, notifier: NotificationAdapter, user_id: Optional[str]) -> None:
    """Delete an account, its reminders and their scheduled alerts."""
    user_id = require_user(user_id)

    deleted_ids = crud.delete_reminders_by_user(db, user_id)
    crud.delete_user(db, user_id)
    logger.info(f"Deleted user {user_id} and {len(deleted_ids)} reminder(s)")

    for reminder_id in deleted_ids:
        await notifier.cancel(reminder_id)


def report_position(db: Session, user_id: Optional[str], latitude: float, longitude: float) -> None:
    user_id = require_user(user_id)
    crud.upsert_device_location(db, user_id, latitude, longitude)
