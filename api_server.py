"""FastAPI REST API server for Context Reminders.

This module provides HTTP endpoints for managing reminders and for the
on-device trigger check. The calling user is identified by the
X-User-Id header set by the authentication layer in front of this service.
"""

from datetime import date
from typing import List, Optional

from fastapi import FastAPI, Depends, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

import crud
import schemas
import database
import services
from background_worker import run_sweep
from config import settings
from geo import Position
from notifications import NotificationAdapter, NotificationError, PushGatewayNotifier
from providers import FixedPositionProvider, OpenWeatherProvider
from logger_config import setup_logger

logger = setup_logger(__name__, 'api.log')

app = FastAPI(
    title="Context Reminders API",
    description="Reminders triggered by time, location or weather",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_notifier() -> NotificationAdapter:
    return PushGatewayNotifier()


def get_weather_provider() -> OpenWeatherProvider:
    return OpenWeatherProvider()


def get_current_user(x_user_id: Optional[str] = Header(None)) -> str:
    """Resolve the authenticated user or fail with 401."""
    try:
        return services.require_user(x_user_id)
    except services.UnauthenticatedError as e:
        raise HTTPException(status_code=401, detail=str(e))


def _http_error(e: Exception) -> HTTPException:
    """Map reminder flow errors to HTTP errors."""
    if isinstance(e, services.UnauthenticatedError):
        return HTTPException(status_code=401, detail=str(e))
    if isinstance(e, (services.ReminderNotFoundError, services.RecipientNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (services.ReminderLimitError, services.EmailTakenError)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, NotificationError):
        logger.error(f"Notification failure: {str(e)}")
        return HTTPException(status_code=502, detail=f"Notification service error: {str(e)}")
    return HTTPException(status_code=500, detail=str(e))


@app.get("/health")
def health_check():
    """Health check endpoint for monitoring"""
    return {
        "status": "healthy",
        "service": "context_reminders",
        "database": settings.DATABASE_URL.split("://")[0]
    }


@app.post("/users", response_model=schemas.UserResponse, status_code=201)
def register_user(
    user: schemas.UserCreate,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(database.get_db)
):
    """Register the authenticated account so it can receive shared reminders."""
    if user.id != user_id:
        raise HTTPException(status_code=403, detail="Cannot register another user")
    try:
        return services.register_user(db, user_id, user.email)
    except services.ReminderServiceError as e:
        raise _http_error(e)


@app.delete("/users/me")
async def delete_me(
    user_id: str = Depends(get_current_user),
    db: Session = Depends(database.get_db),
    notifier: NotificationAdapter = Depends(get_notifier)
):
    """Delete the account, its reminders and their scheduled notifications."""
    try:
        await services.remove_user(db, notifier, user_id)
    except (services.ReminderServiceError, NotificationError) as e:
        raise _http_error(e)
    return {"message": "User deleted", "user_id": user_id}


@app.put("/location", status_code=204)
def report_location(
    position: schemas.PositionReport,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(database.get_db)
):
    """Record the device's current position for server-side sweeps."""
    services.report_position(db, user_id, position.latitude, position.longitude)


@app.post("/reminders", response_model=schemas.ReminderResponse, status_code=201)
async def create_reminder(
    reminder: schemas.ReminderCreate,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(database.get_db),
    notifier: NotificationAdapter = Depends(get_notifier)
):
    """Create a reminder.

    Request body example:
    ```json
    {
        "title": "Take an umbrella",
        "category": "errands",
        "trigger_type": "condition",
        "details": {"condition": {"kind": "weather", "label": "rain"}}
    }
    ```

    Time reminders are scheduled with the notification gateway.
    """
    try:
        return await services.save_reminder(db, notifier, user_id, reminder.to_record())
    except (services.ReminderServiceError, NotificationError) as e:
        raise _http_error(e)


@app.get("/reminders", response_model=List[schemas.ReminderResponse])
def list_reminders(
    trigger_type: Optional[str] = Query(None, pattern="^(time|location|condition)$"),
    limit: int = Query(50, ge=1, le=1000, description="Maximum number of results"),
    user_id: str = Depends(get_current_user),
    db: Session = Depends(database.get_db)
):
    """List the caller's reminders, newest first."""
    return crud.get_reminders_by_user(db, user_id, trigger_type, limit)


@app.get("/reminders/search", response_model=List[schemas.ReminderResponse])
def search_reminders(
    query: str = Query(..., min_length=1, description="Text to match in the title"),
    user_id: str = Depends(get_current_user),
    db: Session = Depends(database.get_db)
):
    """Search the caller's reminders by title."""
    return crud.search_reminders(db, user_id, query)


@app.get("/reminders/day/{day}", response_model=List[schemas.ReminderResponse])
def reminders_on_day(
    day: date,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(database.get_db)
):
    """Time reminders due on a calendar day (UTC)."""
    return crud.get_reminders_on_day(db, user_id, day)


@app.post("/reminders/check", response_model=schemas.SweepResponse)
async def check_reminders(
    request: schemas.CheckRequest,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(database.get_db),
    notifier: NotificationAdapter = Depends(get_notifier),
    weather_provider=Depends(get_weather_provider)
):
    """Run one trigger sweep for the caller.

    Called by the device's background fetch task with its current position,
    or with a null position when location permission is missing.
    """
    position = None
    if request.position is not None:
        position = Position(request.position.latitude, request.position.longitude)

    result = await run_sweep(db, user_id, FixedPositionProvider(position), weather_provider, notifier)
    return schemas.SweepResponse(**vars(result))


@app.get("/reminders/{reminder_id}", response_model=schemas.ReminderResponse)
def get_reminder(
    reminder_id: str,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(database.get_db)
):
    """Get a specific reminder by ID."""
    reminder = crud.get_reminder(db, reminder_id, user_id)
    if not reminder:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return reminder


@app.put("/reminders/{reminder_id}", response_model=schemas.ReminderResponse)
async def update_reminder(
    reminder_id: str,
    updates: schemas.ReminderUpdate,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(database.get_db),
    notifier: NotificationAdapter = Depends(get_notifier)
):
    """Replace a reminder's contents. The ID and notification ID are kept."""
    try:
        return await services.edit_reminder(db, notifier, user_id, reminder_id, updates.to_record())
    except (services.ReminderServiceError, NotificationError) as e:
        raise _http_error(e)


@app.delete("/reminders/{reminder_id}")
async def delete_reminder(
    reminder_id: str,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(database.get_db),
    notifier: NotificationAdapter = Depends(get_notifier)
):
    """Delete a reminder and cancel its scheduled notification."""
    try:
        await services.remove_reminder(db, notifier, user_id, reminder_id)
    except (services.ReminderServiceError, NotificationError) as e:
        raise _http_error(e)
    return {"message": "Reminder deleted successfully", "reminder_id": reminder_id}


@app.post("/reminders/{reminder_id}/share", response_model=schemas.ReminderResponse, status_code=201)
async def share_reminder(
    reminder_id: str,
    request: schemas.ShareRequest,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(database.get_db)
):
    """Copy a reminder into another user's reminders."""
    try:
        return await services.share_reminder(db, user_id, reminder_id, request.recipient_email)
    except services.ReminderServiceError as e:
        raise _http_error(e)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level="info"
    )
