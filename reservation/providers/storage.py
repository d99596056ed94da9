"""Booking persistence backends."""

from __future__ import annotations

import logging
import secrets
from abc import ABC, abstractmethod
from datetime import date

from reservation.models.booking import BookingRecord

logger = logging.getLogger(__name__)


class BookingStore(ABC):
    """Abstract persistence backend for paid bookings."""

    @abstractmethod
    async def save_booking(self, record: BookingRecord) -> str:
        """Persist ``record`` and return the server-assigned booking id."""

    @abstractmethod
    async def bookings_on(self, day: date) -> list[BookingRecord]:
        """Return every persisted booking scheduled on ``day``."""


class InMemoryBookingStore(BookingStore):
    """Process-local store. Bookings are lost on restart."""

    def __init__(self) -> None:
        self._records: dict[str, BookingRecord] = {}

    async def save_booking(self, record: BookingRecord) -> str:
        booking_id = f"BK-{secrets.token_hex(4).upper()}"
        while booking_id in self._records:
            booking_id = f"BK-{secrets.token_hex(4).upper()}"
        self._records[booking_id] = record.model_copy(update={"booking_id": booking_id})
        logger.info(
            "Booking %s saved for %s %s",
            booking_id,
            record.date.isoformat(),
            record.time_slot.start.strftime("%H:%M"),
        )
        return booking_id

    async def bookings_on(self, day: date) -> list[BookingRecord]:
        return [r for r in self._records.values() if r.date == day]

    def get(self, booking_id: str) -> BookingRecord | None:
        return self._records.get(booking_id)

    def __len__(self) -> int:
        return len(self._records)
