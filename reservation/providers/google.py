"""Google Calendar availability implementation.

Uses a Google Cloud service account to query the Calendar API v3 freebusy
endpoint. The service account JSON key path is read from the
``GOOGLE_SERVICE_ACCOUNT_JSON`` environment variable.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import date, datetime, time, timedelta
from functools import partial
from typing import Any
from zoneinfo import ZoneInfo

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from reservation.models.booking import TimeSlot

from .calendar import AvailabilityProvider, build_day_slots

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]


class GoogleCalendarAvailability(AvailabilityProvider):
    """AvailabilityProvider backed by Google Calendar freebusy."""

    def __init__(
        self,
        service_account_path: str | None = None,
        calendar_id: str = "primary",
        timezone_name: str = "America/Toronto",
        open_hour: int = 8,
        close_hour: int = 18,
    ) -> None:
        sa_path = service_account_path or os.environ.get(
            "GOOGLE_SERVICE_ACCOUNT_JSON", ""
        )
        if not sa_path:
            raise ValueError(
                "Google service account JSON path must be provided via "
                "constructor argument or GOOGLE_SERVICE_ACCOUNT_JSON env var."
            )
        self._credentials = Credentials.from_service_account_file(
            sa_path, scopes=SCOPES
        )
        self._service = build(
            "calendar", "v3", credentials=self._credentials
        )
        self._calendar_id = calendar_id
        self._tz = ZoneInfo(timezone_name)
        self._open_hour = open_hour
        self._close_hour = close_hour

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run_in_executor(self, func, *args, **kwargs) -> Any:
        """Run a synchronous Google API call in the default thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, partial(func, *args, **kwargs)
        )

    def _local(self, day: date, hour: int) -> datetime:
        return datetime.combine(day, time(0), tzinfo=self._tz) + timedelta(hours=hour)

    def _to_naive_local(self, raw: str) -> datetime:
        """Parse an RFC 3339 timestamp into naive calendar-local time."""
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            return parsed
        return parsed.astimezone(self._tz).replace(tzinfo=None)

    # ------------------------------------------------------------------
    # AvailabilityProvider interface
    # ------------------------------------------------------------------

    async def get_real_availability(
        self, day: date, duration_hours: int
    ) -> list[TimeSlot]:
        """Query freebusy for the business day and mark colliding slots.

        The freebusy response returns *busy* intervals. Every hourly slot
        start inside business hours is returned; those overlapping a busy
        interval come back with ``available=False``.
        """
        body = {
            "timeMin": self._local(day, self._open_hour).isoformat(),
            "timeMax": self._local(day, self._close_hour).isoformat(),
            "timeZone": str(self._tz),
            "items": [{"id": self._calendar_id}],
        }

        response = await self._run_in_executor(
            self._service.freebusy().query(body=body).execute
        )

        busy_intervals: list[dict] = (
            response.get("calendars", {})
            .get(self._calendar_id, {})
            .get("busy", [])
        )

        busy: list[tuple[datetime, datetime]] = []
        for interval in busy_intervals:
            busy.append(
                (self._to_naive_local(interval["start"]), self._to_naive_local(interval["end"]))
            )
        busy.sort(key=lambda b: b[0])

        slots = build_day_slots(
            day, duration_hours, self._open_hour, self._close_hour, busy
        )
        logger.info(
            "Google availability %s (%dh): %d slots, %d busy intervals",
            day.isoformat(),
            duration_hours,
            len(slots),
            len(busy),
        )
        return slots
