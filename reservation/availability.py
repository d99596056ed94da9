"""Asynchronous slot fetching with stale-response suppression.

Each request bumps a monotonic generation counter. When a response
arrives it is applied only if its generation is still the latest one, so
a slow answer for an old (date, hours) pair can never overwrite the list
for the current pair, whatever order the responses arrive in.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from decimal import ROUND_CEILING, Decimal
from typing import Callable, Optional

from reservation.models.booking import TimeSlot
from reservation.providers.calendar import AvailabilityProvider

log = logging.getLogger("reservation.availability")


def billable_to_whole_hours(hours: Decimal) -> int:
    """The availability backend books whole hours: 2.5 h needs a 3 h window."""
    return int(Decimal(hours).to_integral_value(rounding=ROUND_CEILING))


class AvailabilityFetcher:
    """Owns the slot list for one wizard session."""

    def __init__(
        self,
        provider: AvailabilityProvider,
        on_update: Optional[Callable[[list[TimeSlot]], None]] = None,
    ) -> None:
        self._provider = provider
        self._on_update = on_update
        self._generation = 0
        self._slots: list[TimeSlot] = []
        self._loading = False
        self._failed = False
        self._params: tuple[date, Decimal] | None = None
        self._latest: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    # ── State ──────────────────────────────────────────────────

    @property
    def slots(self) -> list[TimeSlot]:
        return list(self._slots)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def failed(self) -> bool:
        """True when the latest request failed (the list is then empty)."""
        return self._failed

    @property
    def params(self) -> tuple[date, Decimal] | None:
        """The (date, hours) pair the current list belongs to."""
        return self._params

    @property
    def generation(self) -> int:
        return self._generation

    def contains(self, slot: TimeSlot) -> bool:
        return slot in self._slots

    # ── Requests ───────────────────────────────────────────────

    def request(self, day: date, hours: Decimal) -> asyncio.Task:
        """Start fetching slots for (day, hours), superseding any request in flight.

        Must be called from a running event loop.
        """
        self._generation += 1
        generation = self._generation
        self._params = (day, Decimal(hours))
        self._slots = []
        self._loading = True
        self._failed = False

        task = asyncio.get_running_loop().create_task(
            self._fetch(generation, day, Decimal(hours))
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._latest = task
        return task

    def reset(self) -> None:
        """Forget the current list; in-flight responses become stale."""
        self._generation += 1
        self._params = None
        self._slots = []
        self._loading = False
        self._failed = False

    async def wait(self) -> None:
        """Wait for the most recent request to settle."""
        task = self._latest
        if task is not None and not task.done():
            await asyncio.wait([task])

    def close(self) -> None:
        """Cancel every in-flight request."""
        self.reset()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self._latest = None

    # ── Internal ───────────────────────────────────────────────

    async def _fetch(self, generation: int, day: date, hours: Decimal) -> bool:
        """Run one request. Returns True if its result was applied."""
        duration = billable_to_whole_hours(hours)
        try:
            slots = await self._provider.get_real_availability(day, duration)
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception(
                "Failed to load slots for %s (%dh)", day.isoformat(), duration
            )
            if generation == self._generation:
                self._slots = []
                self._loading = False
                self._failed = True
                self._notify()
            return False

        if generation != self._generation:
            log.debug(
                "Discarding stale slots for %s (%dh): generation %d < %d",
                day.isoformat(),
                duration,
                generation,
                self._generation,
            )
            return False

        self._slots = list(slots)
        self._loading = False
        log.info(
            "Loaded %d slots for %s (%dh)", len(self._slots), day.isoformat(), duration
        )
        self._notify()
        return True

    def _notify(self) -> None:
        if self._on_update:
            self._on_update(self.slots)
