"""MCP Server for Context Reminders.

This module provides MCP tools for AI agents to manage reminders and run
trigger checks. Uses the same database as the REST API.

Transport Support:
- stdio: Standard input/output (local process communication)
- sse: Server-Sent Events over HTTP (network access)
"""

import os

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

import crud
import database
import schemas
import services
from background_worker import run_sweep
from config import settings
from notifications import NotificationError, PushGatewayNotifier
from providers import OpenWeatherProvider, StoredPositionProvider
from logger_config import setup_logger

logger = setup_logger(__name__, 'mcp.log')

mcp = FastMCP(
    "ContextReminders",
    host=settings.MCP_HOST,
    port=settings.MCP_PORT
)


def _describe_trigger(reminder) -> str:
    details = reminder.details or {}
    if reminder.trigger_type == "time":
        return f"at {details.get('time', '?')}"
    if reminder.trigger_type == "location":
        fence = details.get('location') or {}
        return (
            f"within {fence.get('radius_meters', '?')}m of "
            f"({fence.get('latitude', '?')}, {fence.get('longitude', '?')})"
        )
    if reminder.trigger_type == "condition":
        return f"when weather is '{(details.get('condition') or {}).get('label', '?')}'"
    return f"unknown trigger '{reminder.trigger_type}'"


@mcp.tool()
async def create_reminder(
    user_id: str,
    title: str,
    trigger_type: str,
    details: dict,
    category: str = "",
    is_recurring: bool = False,
    recurring_interval: str = None
) -> str:
    """Create a new reminder for a user.

    Args:
        user_id: Owning user ID
        title: Reminder title
        trigger_type: "time", "location" or "condition"
        details: Trigger payload, one of
            {"time": "2025-10-26T15:00:00Z"}
            {"location": {"latitude": 52.5, "longitude": 13.4, "radius_meters": 500}}
            {"condition": {"kind": "weather", "label": "rain"}}
        category: Optional category label
        is_recurring: Whether the reminder recurs
        recurring_interval: "daily", "weekly" or "monthly" when recurring

    Returns:
        Success message with reminder ID, or error message
    """
    db = database.SessionLocal()
    try:
        logger.info(f"Creating reminder: {title} | {trigger_type}")
        request = schemas.ReminderCreate(
            title=title,
            category=category,
            trigger_type=trigger_type,
            details=details,
            is_recurring=is_recurring,
            recurring_interval=recurring_interval
        )
        reminder = await services.save_reminder(db, PushGatewayNotifier(), user_id, request.to_record())
        return (
            f"✓ Reminder created successfully!\n"
            f"ID: {reminder.id}\n"
            f"Title: {reminder.title}\n"
            f"Trigger: {_describe_trigger(reminder)}"
        )
    except (ValidationError, services.ReminderServiceError, NotificationError) as e:
        return f"✗ Error creating reminder: {str(e)}"
    finally:
        db.close()


@mcp.tool()
def list_reminders(user_id: str, trigger_type: str = None, limit: int = 50) -> str:
    """List reminders for a user.

    Args:
        user_id: Owning user ID
        trigger_type: Optional filter - "time", "location" or "condition"
        limit: Maximum number of results (default: 50, max: 1000)

    Returns:
        Formatted list of reminders or message if none found
    """
    db = database.SessionLocal()
    try:
        reminders = crud.get_reminders_by_user(db, user_id, trigger_type, min(limit, 1000))

        if not reminders:
            filter_text = f" with trigger '{trigger_type}'" if trigger_type else ""
            return f"No reminders found{filter_text}."

        result = [f"Found {len(reminders)} reminder(s):\n"]
        for r in reminders:
            result.append(
                f"\n• [{r.trigger_type.upper()}] {r.title}\n"
                f"  ID: {r.id}\n"
                f"  Trigger: {_describe_trigger(r)}"
            )
            if r.category:
                result.append(f"  Category: {r.category}")
        return "\n".join(result)
    finally:
        db.close()


@mcp.tool()
def get_reminder(reminder_id: str, user_id: str) -> str:
    """Get detailed information about a specific reminder."""
    db = database.SessionLocal()
    try:
        reminder = crud.get_reminder(db, reminder_id, user_id)
        if not reminder:
            return "✗ Reminder not found."

        recurrence = reminder.recurring_interval if reminder.is_recurring else "None"
        return (
            f"Reminder Details:\n"
            f"ID: {reminder.id}\n"
            f"Title: {reminder.title}\n"
            f"Category: {reminder.category or 'N/A'}\n"
            f"Trigger: {_describe_trigger(reminder)}\n"
            f"Recurrence: {recurrence}\n"
            f"Notified: {reminder.notified}\n"
            f"Shared by: {reminder.shared_by or 'N/A'}\n"
            f"Created: {reminder.created_at.isoformat()}\n"
            f"Updated: {reminder.updated_at.isoformat()}"
        )
    finally:
        db.close()


@mcp.tool()
async def delete_reminder(reminder_id: str, user_id: str) -> str:
    """Delete a reminder and cancel its scheduled notification."""
    db = database.SessionLocal()
    try:
        await services.remove_reminder(db, PushGatewayNotifier(), user_id, reminder_id)
        return f"✓ Reminder {reminder_id} deleted successfully."
    except services.ReminderNotFoundError:
        return "✗ Reminder not found."
    except (services.ReminderServiceError, NotificationError) as e:
        return f"✗ Error deleting reminder: {str(e)}"
    finally:
        db.close()


@mcp.tool()
def search_reminders(user_id: str, query: str) -> str:
    """Search reminders by title."""
    db = database.SessionLocal()
    try:
        reminders = crud.search_reminders(db, user_id, query)
        if not reminders:
            return f"No reminders found matching '{query}'."

        result = [f"Found {len(reminders)} match(es) for '{query}':\n"]
        for r in reminders:
            result.append(f"\n• {r.title}\n  ID: {r.id}\n  Trigger: {_describe_trigger(r)}")
        return "\n".join(result)
    finally:
        db.close()


@mcp.tool()
async def check_reminders(user_id: str) -> str:
    """Run a trigger check for a user using their last reported location.

    Returns:
        Which reminders fired, or a message if none did
    """
    db = database.SessionLocal()
    try:
        result = await run_sweep(
            db,
            user_id,
            StoredPositionProvider(db),
            OpenWeatherProvider(),
            PushGatewayNotifier()
        )
        if not result.fired:
            return f"No reminders triggered ({result.evaluated} checked). ✓"
        return f"⏰ {len(result.fired)} reminder(s) triggered: {', '.join(result.fired)}"
    finally:
        db.close()


if __name__ == "__main__":
    transport = os.getenv("MCP_TRANSPORT", settings.MCP_TRANSPORT).lower()

    if transport == "sse":
        print(f"Starting MCP server with SSE transport on {settings.MCP_HOST}:{settings.MCP_PORT}")
        print(f"SSE endpoint: http://{settings.MCP_HOST}:{settings.MCP_PORT}/sse")
        mcp.run(transport="sse")
    else:
        print("Starting MCP server with stdio transport")
        mcp.run(transport="stdio")
