"""Business-hours availability backed by the booking store.

Used when no Google Calendar is configured: every hourly start inside
business hours is offered, minus the windows already taken by persisted
bookings.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from reservation.models.booking import TimeSlot

from .calendar import AvailabilityProvider, build_day_slots
from .storage import BookingStore

logger = logging.getLogger(__name__)


class BusinessHoursAvailability(AvailabilityProvider):
    def __init__(
        self,
        store: BookingStore | None = None,
        open_hour: int = 8,
        close_hour: int = 18,
    ) -> None:
        self._store = store
        self._open_hour = open_hour
        self._close_hour = close_hour

    async def get_real_availability(
        self, day: date, duration_hours: int
    ) -> list[TimeSlot]:
        busy: list[tuple[datetime, datetime]] = []
        if self._store is not None:
            for record in await self._store.bookings_on(day):
                busy.append(
                    (
                        datetime.combine(day, record.time_slot.start),
                        datetime.combine(day, record.time_slot.end),
                    )
                )

        slots = build_day_slots(
            day, duration_hours, self._open_hour, self._close_hour, busy
        )
        logger.debug(
            "Business-hours availability %s (%dh): %d slots",
            day.isoformat(),
            duration_hours,
            len(slots),
        )
        return slots
