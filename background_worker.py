"""Background Worker for Context Reminders.

This module implements the periodic trigger sweep.

One sweep, per user:
- Loads the user's reminders once
- Samples position and weather once; either may be unavailable
- Evaluates every reminder against that context
- Fires an immediate notification for each match
- Claims time reminders with a notified false->true write so they fire once

The worker runs a sweep over all users every SWEEP_INTERVAL_SECONDS
(default 15 minutes). Failures are logged; a sweep never aborts because
one context source or one reminder failed.
"""

import asyncio
import signal
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import crud
import database
from config import settings
from notifications import NotificationAdapter, NotificationError, PushGatewayNotifier
from providers import OpenWeatherProvider, StoredPositionProvider
from triggers import TriggerType, should_trigger
from logger_config import setup_logger

logger = setup_logger(__name__, 'worker.log')

# Global flag for graceful shutdown
shutdown_requested = False


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully."""
    global shutdown_requested
    logger.info(f"Received signal {signum}, initiating graceful shutdown...")
    shutdown_requested = True


@dataclass
class SweepResult:
    """Outcome of one sweep for one user."""
    user_id: str
    evaluated: int = 0
    fired: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    mark_errors: List[str] = field(default_factory=list)
    position_available: bool = False
    weather: Optional[str] = None


async def _sample_context(position_provider, weather_provider, user_id: str):
    """Read position and weather once. Any failure degrades to None."""
    position = None
    try:
        position = await position_provider.current_position(user_id)
    except Exception as e:
        logger.error(f"Position lookup failed for user {user_id}: {str(e)}", exc_info=True)

    weather = None
    if position is not None:
        try:
            weather = await weather_provider.current_condition(position.latitude, position.longitude)
        except Exception as e:
            logger.error(f"Weather lookup failed for user {user_id}: {str(e)}", exc_info=True)

    return position, weather


def _claim(db: Session, reminder, result: SweepResult) -> bool:
    """Claim a time reminder before firing it.

    Returns False only when another sweep already holds the claim. A failed
    write is recorded and the reminder still fires.
    """
    try:
        return crud.mark_notified(db, reminder.id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not mark reminder {reminder.id} notified: {str(e)}")
        result.mark_errors.append(reminder.id)
        return True


def _release(db: Session, reminder) -> None:
    """Give back a claim whose alert failed so the next sweep retries it."""
    try:
        crud.release_notified(db, reminder.id)
        logger.info(f"Released claim on reminder {reminder.id} for retry")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not release claim on reminder {reminder.id}: {str(e)}")


async def run_sweep(
    db: Session,
    user_id: str,
    position_provider,
    weather_provider,
    notifier: NotificationAdapter,
    now: Optional[datetime] = None
) -> SweepResult:
    """Evaluate all of a user's reminders once and notify on matches.

    Args:
        db: Database session
        user_id: Whose reminders to sweep
        position_provider: Object with async current_position(user_id)
        weather_provider: Object with async current_condition(lat, lon)
        notifier: Notification adapter used for immediate alerts
        now: Evaluation instant (default: current UTC time)

    Returns:
        SweepResult: What was evaluated, fired and failed
    """
    result = SweepResult(user_id=user_id)

    reminders = crud.get_reminders_by_user(db, user_id)
    if not reminders:
        logger.debug(f"No reminders for user {user_id}")
        return result

    position, weather = await _sample_context(position_provider, weather_provider, user_id)
    result.position_available = position is not None
    result.weather = weather

    # Every time reminder in this sweep is judged against the same instant
    now = now or datetime.now(timezone.utc)

    for reminder in reminders:
        if reminder.trigger_type == TriggerType.TIME and reminder.notified:
            continue

        result.evaluated += 1
        if not should_trigger(reminder, position, weather, now):
            continue

        if reminder.trigger_type == TriggerType.TIME and not _claim(db, reminder, result):
            continue

        try:
            await notifier.fire_now(user_id, reminder.title, reminder.category)
            result.fired.append(reminder.id)
            logger.info(f"Reminder triggered: {reminder.id} '{reminder.title}' ({reminder.trigger_type})")
        except NotificationError as e:
            result.failed.append(reminder.id)
            logger.error(f"Failed to notify for reminder {reminder.id}: {str(e)}")
            if reminder.trigger_type == TriggerType.TIME:
                _release(db, reminder)

    logger.info(
        f"Swept user {user_id}: evaluated {result.evaluated}, fired {len(result.fired)}, "
        f"position={'yes' if result.position_available else 'no'}, weather={weather or 'unknown'}"
    )
    return result


async def sweep_all_users(
    db: Session,
    weather_provider,
    notifier: NotificationAdapter,
    position_provider=None,
    now: Optional[datetime] = None
) -> List[SweepResult]:
    """Run one sweep for every user that owns reminders."""
    if position_provider is None:
        position_provider = StoredPositionProvider(db)

    results = []
    for user_id in crud.get_user_ids_with_reminders(db):
        try:
            results.append(
                await run_sweep(db, user_id, position_provider, weather_provider, notifier, now)
            )
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Sweep failed for user {user_id}: {str(e)}", exc_info=True)
    return results


async def process_sweep():
    """One scheduled sweep with a fresh session and the configured adapters."""
    db = database.SessionLocal()
    try:
        results = await sweep_all_users(db, OpenWeatherProvider(), PushGatewayNotifier())
        fired = sum(len(r.fired) for r in results)
        logger.info(f"Sweep complete: {len(results)} user(s), {fired} notification(s)")
    except Exception as e:
        logger.error(f"Error in process_sweep: {str(e)}", exc_info=True)
    finally:
        db.close()


async def worker_loop():
    """Main worker loop that runs continuously.

    Sweeps at the configured interval until shutdown is requested.
    """
    logger.info("Background worker started")
    logger.info(f"Sweep enabled: {settings.SWEEP_ENABLED}")
    logger.info(f"Sweep interval: {settings.SWEEP_INTERVAL_SECONDS} seconds")
    logger.info(f"Notification gateway: {settings.NOTIFICATION_API_URL}")

    if not settings.SWEEP_ENABLED:
        logger.warning("Sweep is disabled in configuration. Exiting.")
        return

    iteration = 0
    while not shutdown_requested:
        try:
            iteration += 1
            logger.debug(f"Worker iteration {iteration} started")

            await process_sweep()

            # Sleep in 1-second steps to allow quick shutdown
            for _ in range(settings.SWEEP_INTERVAL_SECONDS):
                if shutdown_requested:
                    break
                await asyncio.sleep(1)

        except Exception as e:
            logger.error(f"Error in worker loop iteration {iteration}: {str(e)}", exc_info=True)
            await asyncio.sleep(5)

    logger.info("Background worker shutting down gracefully")


def main():
    """Main entry point for the background worker."""
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    logger.info("=" * 60)
    logger.info("Context Reminders - Background Worker")
    logger.info("=" * 60)

    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Fatal error in background worker: {str(e)}", exc_info=True)
        sys.exit(1)

    logger.info("Background worker stopped")
    sys.exit(0)


if __name__ == "__main__":
    main()
