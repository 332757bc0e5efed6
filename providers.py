"""Context providers for the trigger sweep.

Each provider answers with a value or None ("unavailable"). Providers used
by the background sweep log failures instead of raising them.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
from sqlalchemy.orm import Session

import crud
from config import settings
from geo import Position
from logger_config import setup_logger

logger = setup_logger(__name__, 'providers.log')


class FixedPositionProvider:
    """Position reported by the device with the sweep request.

    None means the device has no location permission or no fix.
    """

    def __init__(self, position: Optional[Position]):
        self.position = position

    async def current_position(self, user_id: str) -> Optional[Position]:
        return self.position


class StoredPositionProvider:
    """Position from the user's last device location report."""

    def __init__(self, db: Session, max_age_seconds: Optional[int] = None):
        self.db = db
        self.max_age = timedelta(
            seconds=max_age_seconds if max_age_seconds is not None else settings.LOCATION_MAX_AGE_SECONDS
        )

    async def current_position(self, user_id: str) -> Optional[Position]:
        location = crud.get_device_location(self.db, user_id)
        if location is None:
            logger.info(f"No location reported for user {user_id}")
            return None

        reported_at = location.reported_at
        # SQLite hands back naive datetimes
        if reported_at.tzinfo is None:
            reported_at = reported_at.replace(tzinfo=timezone.utc)

        if datetime.now(timezone.utc) - reported_at > self.max_age:
            logger.info(f"Location for user {user_id} is stale (reported {reported_at.isoformat()})")
            return None

        return Position(location.latitude, location.longitude)


class OpenWeatherProvider:
    """Current weather label from the OpenWeatherMap API.

    Returns the lowercased `weather[0].main` value (e.g. "rain", "clear"),
    or None on any failure.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key if api_key is not None else settings.OPENWEATHER_API_KEY
        self.base_url = base_url or settings.OPENWEATHER_URL
        self.timeout = timeout or settings.WEATHER_TIMEOUT
        self.transport = transport

    async def current_condition(self, latitude: float, longitude: float) -> Optional[str]:
        if not self.api_key:
            logger.warning("OPENWEATHER_API_KEY not configured; weather unavailable")
            return None

        params = {"lat": latitude, "lon": longitude, "appid": self.api_key}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.base_url, params=params)

            if response.status_code != 200:
                logger.error(
                    f"Weather lookup failed. Status: {response.status_code}, Response: {response.text}"
                )
                return None

            label = response.json()["weather"][0]["main"]
            return str(label).lower()

        except httpx.TimeoutException:
            logger.error("Timeout while fetching weather data")
            return None
        except httpx.RequestError as e:
            logger.error(f"Network error while fetching weather data: {str(e)}")
            return None
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Malformed weather response: {str(e)}")
            return None
