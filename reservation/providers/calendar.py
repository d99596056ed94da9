"""Abstract base class for availability backends.

Defines the interface the wizard uses to list open time slots for a day.
Any calendar backend (Google, a local business-hours table, etc.)
implements this ABC.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta

from reservation.models.booking import TimeSlot


class AvailabilityProvider(ABC):
    """Abstract availability backend."""

    @abstractmethod
    async def get_real_availability(
        self, day: date, duration_hours: int
    ) -> list[TimeSlot]:
        """Return the candidate slots for ``day``.

        Args:
            day: The requested cleaning date.
            duration_hours: Whole hours the job needs; every returned slot
                spans exactly this long.

        Returns:
            Slots in start order. ``available`` is False for slots that
            collide with existing commitments.
        """


def build_day_slots(
    day: date,
    duration_hours: int,
    open_hour: int,
    close_hour: int,
    busy: list[tuple[datetime, datetime]],
) -> list[TimeSlot]:
    """Hourly slot starts between ``open_hour`` and ``close_hour``.

    A slot is kept only if the whole job fits before closing, and is marked
    unavailable when it overlaps any naive-local ``busy`` interval.
    """
    if duration_hours <= 0:
        return []

    length = timedelta(hours=duration_hours)
    closing = datetime.combine(day, time(0)) + timedelta(hours=close_hour)
    cursor = datetime.combine(day, time(0)) + timedelta(hours=open_hour)

    slots: list[TimeSlot] = []
    while cursor + length <= closing:
        end = cursor + length
        free = all(end <= b_start or cursor >= b_end for b_start, b_end in busy)
        slots.append(TimeSlot(start=cursor.time(), end=end.time(), available=free))
        cursor += timedelta(hours=1)
    return slots
