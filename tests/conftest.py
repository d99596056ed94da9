"""Shared fakes for the provider interfaces."""

import asyncio
import os
import sys
from datetime import date, time, timedelta

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from reservation.models.booking import BookingRecord, TimeSlot
from reservation.providers import (
    AddressCandidate,
    AvailabilityProvider,
    BookingStore,
    Coordinates,
    Geocoder,
    InMemoryBookingStore,
    SandboxPaymentGateway,
    TemplateEmailComposer,
)


class FakeAvailability(AvailabilityProvider):
    """Three fixed slots per day; records every request it receives."""

    def __init__(self, slots=None, delay: float = 0.0):
        self.calls: list[tuple[date, int]] = []
        self.delay = delay
        self.fail = False
        self._slots = slots if slots is not None else [
            TimeSlot(start=time(9), end=time(12)),
            TimeSlot(start=time(12), end=time(15)),
            TimeSlot(start=time(15), end=time(18), available=False),
        ]

    async def get_real_availability(self, day, duration_hours):
        self.calls.append((day, duration_hours))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("calendar backend down")
        return list(self._slots)


class FakeGeocoder(Geocoder):
    def __init__(self, results=None, address: str = "1 Yonge St, Toronto, ON"):
        self.queries: list[str] = []
        self.results = results if results is not None else [
            AddressCandidate(description="100 Queen St W, Toronto, ON", place_id="p1"),
            AddressCandidate(description="100 Queen St E, Toronto, ON", place_id="p2"),
        ]
        self.address = address
        self.fail = False

    async def suggest(self, text):
        self.queries.append(text)
        if self.fail:
            raise RuntimeError("places api down")
        return list(self.results)

    async def reverse_geocode(self, coords: Coordinates):
        if self.fail:
            raise RuntimeError("geocode api down")
        return self.address


class FlakyStore(BookingStore):
    """Fails the first ``failures`` saves, then delegates to memory."""

    def __init__(self, failures: int = 1):
        self.failures = failures
        self.attempts = 0
        self.inner = InMemoryBookingStore()

    async def save_booking(self, record: BookingRecord) -> str:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise ConnectionError("database unavailable")
        return await self.inner.save_booking(record)

    async def bookings_on(self, day):
        return await self.inner.bookings_on(day)


@pytest.fixture
def future_day() -> date:
    return date.today() + timedelta(days=7)


@pytest.fixture
def availability() -> FakeAvailability:
    return FakeAvailability()


@pytest.fixture
def gateway() -> SandboxPaymentGateway:
    return SandboxPaymentGateway()


@pytest.fixture
def store() -> InMemoryBookingStore:
    return InMemoryBookingStore()


@pytest.fixture
def emails() -> TemplateEmailComposer:
    return TemplateEmailComposer()
