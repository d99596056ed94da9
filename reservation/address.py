"""Debounced address suggestions and the "use my current location" action.

Every keystroke restarts a single pending lookup task that first sleeps for
the debounce window; only the last keystroke inside the window reaches the
geocoder. The location action runs independently with its own loading flag
and error message.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from reservation.errors import InvalidSuggestionError
from reservation.providers.geocoding import (
    AddressCandidate,
    Geocoder,
    LocationError,
    LocationProvider,
)

log = logging.getLogger("reservation.address")

MAX_SUGGESTIONS = 5


class AddressAutocomplete:
    def __init__(
        self,
        geocoder: Optional[Geocoder],
        debounce_seconds: float = 0.3,
        on_change: Optional[Callable[[str], None]] = None,
        can_apply: Optional[Callable[[], bool]] = None,
    ) -> None:
        self._geocoder = geocoder
        self._delay = debounce_seconds
        self._on_change = on_change
        self._can_apply = can_apply

        self._text = ""
        self._suggestions: list[AddressCandidate] = []
        self._show_suggestions = False
        self._suggestion_error = ""
        self._pending: asyncio.Task | None = None

        self._locating = False
        self._location_error = ""

    # ── State ──────────────────────────────────────────────────

    @property
    def text(self) -> str:
        return self._text

    @property
    def suggestions(self) -> list[AddressCandidate]:
        return list(self._suggestions)

    @property
    def show_suggestions(self) -> bool:
        return self._show_suggestions

    @property
    def suggestion_error(self) -> str:
        return self._suggestion_error

    @property
    def locating(self) -> bool:
        return self._locating

    @property
    def location_error(self) -> str:
        return self._location_error

    @property
    def lookup_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def to_dict(self) -> dict:
        return {
            "text": self._text,
            "suggestions": [c.description for c in self._suggestions],
            "show_suggestions": self._show_suggestions,
            "suggestion_error": self._suggestion_error,
            "locating": self._locating,
            "location_error": self._location_error,
        }

    # ── Typing path ────────────────────────────────────────────

    def on_input(self, text: str) -> None:
        """Record a keystroke and restart the debounce window."""
        self._set_text(text)
        self._cancel_pending()
        self._suggestion_error = ""

        if not text.strip():
            self._suggestions = []
            self._show_suggestions = False
            return
        if self._geocoder is None:
            return

        self._pending = asyncio.get_running_loop().create_task(
            self._debounced_lookup(text)
        )

    def select_suggestion(self, index: int) -> str:
        """Fill the address from a shown suggestion and hide the list."""
        if not self._show_suggestions or not 0 <= index < len(self._suggestions):
            raise InvalidSuggestionError(f"No suggestion at position {index}")
        chosen = self._suggestions[index].description
        self._cancel_pending()
        self._set_text(chosen)
        self._suggestions = []
        self._show_suggestions = False
        return chosen

    def fill(self, text: str) -> None:
        """Set the field without triggering a lookup (pre-fill, form edits)."""
        self._cancel_pending()
        self._set_text(text)
        self._suggestions = []
        self._show_suggestions = False

    def hide_suggestions(self) -> None:
        self._show_suggestions = False

    async def wait(self) -> None:
        """Wait for a pending lookup (debounce included) to settle."""
        task = self._pending
        if task is not None and not task.done():
            await asyncio.wait([task])

    # ── Current-location path ──────────────────────────────────

    async def use_current_location(self, locator: LocationProvider) -> bool:
        """Reverse-geocode the device position into the address field.

        Returns True when the address was filled. Failures set
        ``location_error`` and never raise.
        A result that arrives after the field was edited, or once
        ``can_apply`` returns False, is dropped.
        """
        if self._locating:
            return False
        if self._geocoder is None:
            self._location_error = "Address lookup is not available right now."
            return False

        self._locating = True
        self._location_error = ""
        text_at_start = self._text
        try:
            coords = await locator.current_location()
            address = await self._geocoder.reverse_geocode(coords)
        except LocationError as e:
            self._location_error = str(e) or "Could not get your location."
            return False
        except Exception as e:
            log.warning("Reverse geocoding failed: %s", e)
            self._location_error = (
                "We couldn't find an address for your location. Please type it instead."
            )
            return False
        finally:
            self._locating = False

        if self._text != text_at_start:
            log.debug("Dropping located address: the field was edited meanwhile")
            return False
        if self._can_apply is not None and not self._can_apply():
            log.debug("Dropping located address: the owner no longer accepts edits")
            return False

        self._cancel_pending()
        self._set_text(address)
        self._suggestions = []
        self._show_suggestions = False
        return True

    # ── Teardown ───────────────────────────────────────────────

    def close(self) -> None:
        self._cancel_pending()

    # ── Internal ───────────────────────────────────────────────

    def _set_text(self, text: str) -> None:
        self._text = text
        if self._on_change:
            self._on_change(text)

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _debounced_lookup(self, text: str) -> None:
        await asyncio.sleep(self._delay)
        try:
            results = await self._geocoder.suggest(text)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning("Address suggestions failed for %d chars: %s", len(text), e)
            if text == self._text:
                self._suggestions = []
                self._show_suggestions = False
                self._suggestion_error = "Address suggestions are unavailable. Keep typing your address."
            return

        if text != self._text:
            return
        self._suggestions = list(results[:MAX_SUGGESTIONS])
        self._show_suggestions = bool(self._suggestions)
