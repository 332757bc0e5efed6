"""Tests for save/edit/delete/share flows and their notification side effects."""

import asyncio
from datetime import datetime, timezone

import pytest

import crud
import services
from conftest import RecordingNotifier
from notifications import NotificationError

TIME_DATA = {
    'title': 'Standup',
    'category': 'work',
    'trigger_type': 'time',
    'details': {'time': '2024-01-01T10:00:00Z'},
}

RAIN_DATA = {
    'title': 'Umbrella',
    'category': 'errands',
    'trigger_type': 'condition',
    'details': {'condition': {'kind': 'weather', 'label': 'rain'}},
}


def run(coro):
    return asyncio.run(coro)


def test_save_time_reminder_schedules_under_its_id(db, notifier):
    reminder = run(services.save_reminder(db, notifier, 'user-1', TIME_DATA))

    assert notifier.scheduled == {
        reminder.id: ('user-1', datetime(2024, 1, 1, 10, tzinfo=timezone.utc), 'Standup', 'work')
    }


def test_save_condition_reminder_schedules_nothing(db, notifier):
    run(services.save_reminder(db, notifier, 'user-1', RAIN_DATA))
    assert notifier.scheduled == {}
    assert notifier.cancelled == []


def test_save_requires_user(db, notifier):
    with pytest.raises(services.UnauthenticatedError):
        run(services.save_reminder(db, notifier, None, TIME_DATA))
    with pytest.raises(services.UnauthenticatedError):
        run(services.save_reminder(db, notifier, '', TIME_DATA))


def test_save_respects_reminder_limit(db, notifier, monkeypatch):
    monkeypatch.setattr(services.settings, 'MAX_REMINDERS_PER_USER', 1)
    run(services.save_reminder(db, notifier, 'user-1', RAIN_DATA))
    with pytest.raises(services.ReminderLimitError):
        run(services.save_reminder(db, notifier, 'user-1', RAIN_DATA))


def test_schedule_failure_propagates(db):
    with pytest.raises(NotificationError):
        run(services.save_reminder(db, RecordingNotifier(fail_schedule=True), 'user-1', TIME_DATA))


def test_edit_reschedules_under_same_id(db, notifier):
    reminder = run(services.save_reminder(db, notifier, 'user-1', TIME_DATA))

    edited = run(services.edit_reminder(db, notifier, 'user-1', reminder.id, {
        **TIME_DATA, 'details': {'time': '2024-01-02T08:30:00Z'}
    }))

    assert edited.id == reminder.id
    assert list(notifier.scheduled) == [reminder.id]
    assert notifier.scheduled[reminder.id][1] == datetime(2024, 1, 2, 8, 30, tzinfo=timezone.utc)


def test_edit_away_from_time_cancels_schedule(db, notifier):
    reminder = run(services.save_reminder(db, notifier, 'user-1', TIME_DATA))

    edited = run(services.edit_reminder(db, notifier, 'user-1', reminder.id, RAIN_DATA))

    assert edited.trigger_type == 'condition'
    assert notifier.scheduled == {}
    assert notifier.cancelled == [reminder.id]


def test_edit_missing_reminder(db, notifier):
    with pytest.raises(services.ReminderNotFoundError):
        run(services.edit_reminder(db, notifier, 'user-1', 'missing', TIME_DATA))


def test_remove_cancels_schedule(db, notifier):
    reminder = run(services.save_reminder(db, notifier, 'user-1', TIME_DATA))

    run(services.remove_reminder(db, notifier, 'user-1', reminder.id))

    assert crud.get_reminder(db, reminder.id, 'user-1') is None
    assert notifier.cancelled == [reminder.id]
    assert notifier.scheduled == {}


def test_remove_other_users_reminder_is_not_found(db, notifier):
    reminder = run(services.save_reminder(db, notifier, 'user-1', TIME_DATA))
    with pytest.raises(services.ReminderNotFoundError):
        run(services.remove_reminder(db, notifier, 'user-2', reminder.id))
    assert notifier.cancelled == []


def test_share_copies_into_recipient_reminders(db, notifier):
    crud.create_user(db, 'user-2', 'bob@example.com')
    original = run(services.save_reminder(db, notifier, 'user-1', RAIN_DATA))

    copy = run(services.share_reminder(db, 'user-1', original.id, 'Bob@Example.com'))

    assert copy.id != original.id
    assert copy.user_id == 'user-2'
    assert copy.shared_by == 'user-1'
    assert copy.shared_at is not None
    assert copy.details == original.details
    assert copy.title == 'Umbrella'
    assert [r.id for r in crud.get_reminders_by_user(db, 'user-2')] == [copy.id]


def test_share_errors(db, notifier):
    original = run(services.save_reminder(db, notifier, 'user-1', RAIN_DATA))

    with pytest.raises(services.UnauthenticatedError):
        run(services.share_reminder(db, None, original.id, 'bob@example.com'))
    with pytest.raises(services.RecipientNotFoundError):
        run(services.share_reminder(db, 'user-1', original.id, 'nobody@example.com'))
    with pytest.raises(services.ReminderNotFoundError):
        run(services.share_reminder(db, 'user-3', original.id, 'bob@example.com'))


def test_register_user_is_idempotent(db):
    first = services.register_user(db, 'user-1', 'alice@example.com')
    second = services.register_user(db, 'user-1', 'alice@example.com')
    assert first.id == second.id == 'user-1'


def test_remove_user_deletes_reminders_and_cancels(db, notifier):
    services.register_user(db, 'user-1', 'alice@example.com')
    timed = run(services.save_reminder(db, notifier, 'user-1', TIME_DATA))
    rain = run(services.save_reminder(db, notifier, 'user-1', RAIN_DATA))
    services.report_position(db, 'user-1', 1.0, 2.0)

    run(services.remove_user(db, notifier, 'user-1'))

    assert crud.get_user(db, 'user-1') is None
    assert crud.get_reminders_count(db, 'user-1') == 0
    assert crud.get_device_location(db, 'user-1') is None
    assert sorted(notifier.cancelled) == sorted([timed.id, rain.id])


def test_register_with_taken_email_is_rejected(db):
    services.register_user(db, 'user-1', 'alice@example.com')

    with pytest.raises(services.EmailTakenError):
        services.register_user(db, 'user-2', 'Alice@Example.com')

    assert crud.get_user(db, 'user-2') is None
    assert crud.get_user_by_email(db, 'alice@example.com').id == 'user-1'
