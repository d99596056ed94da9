"""Per-customer booking wizard that drives one reservation from service to receipt.

Each visitor gets a WizardSession that:
  1. Owns the BookingState and both estimator count groups
  2. Recomputes hours after every counter edit (or takes the slider value)
  3. Refetches open slots whenever (date, hours) changes
  4. Gates each step advance behind that step's validation
  5. Charges the deposit, persists the booking and composes confirmations

Steps: 1 service, 2 duration, 3 date & time, 4 contact details,
5 payment, 6 success (terminal).
"""

from __future__ import annotations

import logging
import secrets
import time
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import IntEnum
from typing import Any, Optional

from reservation.address import AddressAutocomplete
from reservation.availability import AvailabilityFetcher
from reservation.catalog import COUNTRY_CODES, get_country, load_catalog
from reservation.config import settings
from reservation.errors import (
    InvalidDateError,
    InvalidHoursError,
    InvalidStepError,
    SlotUnavailableError,
    UnknownCountryError,
    UnknownServiceError,
    WizardError,
)
from reservation.estimator import (
    EstimatorCounts,
    adjust_counts,
    default_counts,
    estimate_hours,
    is_valid_hours,
    is_valid_slider_value,
)
from reservation.events import EventBroadcaster
from reservation.models.booking import (
    BookingRecord,
    BookingState,
    ClientDetails,
    InvoiceData,
    PaymentStatus,
    TimeSlot,
    UserProfile,
)
from reservation.models.service import (
    CountryCode,
    HomeEstimatorCounts,
    OfficeEstimatorCounts,
    ServiceCategory,
    ServiceType,
)
from reservation.pricing import compute_invoice, invoice_summary, to_cents
from reservation.providers.calendar import AvailabilityProvider
from reservation.providers.email import EMAIL_KINDS, EmailComposer
from reservation.providers.geocoding import Geocoder, LocationProvider
from reservation.providers.payment import (
    PaymentDeclined,
    PaymentFailure,
    PaymentGateway,
)
from reservation.providers.storage import BookingStore
from reservation.validation import client_detail_errors, format_phone

log = logging.getLogger("reservation.wizard")


class Step(IntEnum):
    SERVICE = 1
    DURATION = 2
    SCHEDULE = 3
    DETAILS = 4
    PAYMENT = 5
    SUCCESS = 6


FIRST_STEP = Step.SERVICE
LAST_STEP = Step.SUCCESS

_EDITABLE_DETAIL_FIELDS = set(ClientDetails.model_fields)


def redact_pii(value: str) -> str:
    """Mask PII for logging — show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


# ── Session registry ─────────────────────────────────────────────

_active_sessions: dict[str, "WizardSession"] = {}


def register_session(session: "WizardSession") -> str:
    """Register a session and return its unique ID."""
    session_id = secrets.token_urlsafe(18)
    session._session_id = session_id
    session._started_at = time.time()
    session._last_active = session._started_at
    _active_sessions[session_id] = session
    log.info("Session registered: %s", session_id)
    return session_id


def unregister_session(session_id: str) -> None:
    """Remove a session from the registry and release its resources."""
    session = _active_sessions.pop(session_id, None)
    if session is not None:
        session.close()
    log.info("Session unregistered: %s", session_id)


def sweep_idle_sessions(max_idle_seconds: float, now: float | None = None) -> list[str]:
    """Unregister sessions with no activity for ``max_idle_seconds``.

    Returns the removed session IDs so callers can drop their broadcasters.
    """
    if now is None:
        now = time.time()
    stale = [
        sid for sid, session in _active_sessions.items()
        if now - session._last_active > max_idle_seconds
    ]
    for sid in stale:
        unregister_session(sid)
    if stale:
        log.info("Swept %d idle session(s)", len(stale))
    return stale


def get_active_sessions() -> dict[str, "WizardSession"]:
    return _active_sessions


def get_session(session_id: str) -> "WizardSession | None":
    return _active_sessions.get(session_id)


class WizardSession:
    """One customer's pass through the booking wizard.

    Typical lifecycle::

        session = WizardSession(availability=provider, payments=gateway, store=store)
        session.select_service("standard")
        session.next()                      # → duration
        session.adjust_counter("bathrooms", +1)
        session.next()                      # → date & time
        session.set_date(date(2026, 11, 2))
        await session.wait_for_slots()
        session.select_slot(session.slots[0])
        ...
        await session.pay("tok_visa")       # → success once persisted

    ``hours`` has two writers: the room-count estimator (``adjust_counter``,
    and ``select_service`` when the estimator group changes) and the
    free-form slider (``set_hours``). The last write wins; neither writer
    reconciles with the other, and the slider never touches the counters.
    """

    def __init__(
        self,
        availability: AvailabilityProvider,
        payments: PaymentGateway,
        store: BookingStore,
        emails: Optional[EmailComposer] = None,
        geocoder: Optional[Geocoder] = None,
        catalog: Optional[dict[str, ServiceType]] = None,
        current_user: Optional[UserProfile] = None,
        tax_rate: Decimal | float | None = None,
        deposit_fraction: Decimal | float | None = None,
        country_iso: str = "",
        debounce_seconds: Optional[float] = None,
    ) -> None:
        self._catalog = catalog if catalog is not None else load_catalog()
        self._payments = payments
        self._store = store
        self._emails = emails
        self._tax_rate = tax_rate if tax_rate is not None else settings.hst_rate
        self._deposit_fraction = (
            deposit_fraction if deposit_fraction is not None else settings.deposit_fraction
        )

        # Registry metadata (set by register_session)
        self._session_id: str = ""
        self._started_at: float = 0.0
        self._last_active: float = 0.0

        self._state = BookingState()
        self._home_counts = HomeEstimatorCounts()
        self._office_counts = OfficeEstimatorCounts()
        self._country: CountryCode = (
            get_country(country_iso or settings.default_country_iso) or COUNTRY_CODES[0]
        )

        self._availability = AvailabilityFetcher(availability, on_update=self._on_slots)
        if debounce_seconds is None:
            debounce_seconds = settings.address_debounce_ms / 1000
        self._address = AddressAutocomplete(
            geocoder,
            debounce_seconds=debounce_seconds,
            on_change=self._on_address_change,
            can_apply=self._accepts_located_address,
        )

        # Payment / persistence
        self._processing = False
        self._payment_error = ""
        self._persistence_error = ""
        self._transaction_id: str | None = None
        self._pending_record: BookingRecord | None = None
        self._record: BookingRecord | None = None
        self._email_content: dict[str, str] = {}

        self._broadcaster: EventBroadcaster | None = None

        if current_user is not None:
            self._prefill(current_user)

    # ── Read access ───────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def state(self) -> BookingState:
        return self._state

    @property
    def step(self) -> Step:
        return Step(self._state.step)

    @property
    def last_active(self) -> float:
        return self._last_active

    def touch(self) -> None:
        """Mark the session as in use (resets the idle clock)."""
        self._last_active = time.time()

    @property
    def is_done(self) -> bool:
        return self._state.step == Step.SUCCESS

    @property
    def catalog(self) -> dict[str, ServiceType]:
        return self._catalog

    @property
    def service(self) -> ServiceType | None:
        if self._state.service is None:
            return None
        return self._catalog.get(self._state.service)

    @property
    def category(self) -> ServiceCategory:
        service = self.service
        return service.category if service else ServiceCategory.HOME

    @property
    def active_counts(self) -> EstimatorCounts:
        if self.category is ServiceCategory.OFFICE:
            return self._office_counts
        return self._home_counts

    @property
    def home_counts(self) -> HomeEstimatorCounts:
        return self._home_counts

    @property
    def office_counts(self) -> OfficeEstimatorCounts:
        return self._office_counts

    @property
    def hours(self) -> Decimal:
        return self._state.hours

    @property
    def invoice(self) -> InvoiceData:
        """Live pricing for the current service and hours."""
        return compute_invoice(
            self.service, self._state.hours, self._tax_rate, self._deposit_fraction
        )

    @property
    def slots(self) -> list[TimeSlot]:
        return self._availability.slots

    @property
    def slots_loading(self) -> bool:
        return self._availability.loading

    @property
    def country(self) -> CountryCode:
        return self._country

    @property
    def address(self) -> AddressAutocomplete:
        return self._address

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def payment_error(self) -> str:
        return self._payment_error

    @property
    def persistence_error(self) -> str:
        return self._persistence_error

    @property
    def booking_id(self) -> str | None:
        return self._record.booking_id if self._record else None

    @property
    def record(self) -> BookingRecord | None:
        return self._record

    @property
    def emails_sent(self) -> list[str]:
        return list(self._email_content)

    @property
    def email_content(self) -> dict[str, str]:
        return dict(self._email_content)

    # ── Events ────────────────────────────────────────────────

    def attach_broadcaster(self, broadcaster: EventBroadcaster) -> None:
        self._broadcaster = broadcaster

    def _emit_event(self, event_type: str, data: dict) -> None:
        if self._broadcaster:
            self._broadcaster.emit(event_type, self._state.step, data)

    # ── Service & duration ────────────────────────────────────

    def select_service(self, service_id: str) -> ServiceType:
        """Choose a catalog service.

        When the estimator group changes (or on the first selection) the
        newly active group starts from its defaults and hours are
        recomputed from it, discarding hours derived from the other group.
        """
        self._ensure_editable()
        service = self._catalog.get(service_id)
        if service is None:
            raise UnknownServiceError(f"Unknown service {service_id!r}")

        previous = self.service
        self._state.service = service.id
        self._emit_event("service", {"service": service.id, "category": service.category.value})
        log.info("Session %s service: %s", self._session_id, service.id)

        if previous is None or previous.category is not service.category:
            if service.category is ServiceCategory.OFFICE:
                self._office_counts = OfficeEstimatorCounts()
            else:
                self._home_counts = HomeEstimatorCounts()
            self._write_hours(estimate_hours(service.category, self.active_counts), "estimator")
        return service

    def adjust_counter(self, field: str, delta: int) -> Decimal:
        """Move one counter of the active estimator group and recompute hours."""
        self._ensure_editable()
        counts = adjust_counts(self.active_counts, field, delta)
        if isinstance(counts, OfficeEstimatorCounts):
            self._office_counts = counts
        else:
            self._home_counts = counts
        self._write_hours(estimate_hours(self.category, counts), "estimator")
        return self._state.hours

    def reset_counters(self) -> Decimal:
        """Restore the active group's defaults and recompute hours."""
        self._ensure_editable()
        counts = default_counts(self.category)
        if isinstance(counts, OfficeEstimatorCounts):
            self._office_counts = counts
        else:
            self._home_counts = counts
        self._write_hours(estimate_hours(self.category, counts), "estimator")
        return self._state.hours

    def set_hours(self, hours: Decimal | float | str) -> Decimal:
        """Slider write: 2 to 10 hours in half-hour steps. Counters are untouched."""
        self._ensure_editable()
        try:
            value = Decimal(str(hours))
        except InvalidOperation:
            raise InvalidHoursError(f"{hours!r} is not a number of hours")
        if not value.is_finite() or not is_valid_slider_value(value):
            raise InvalidHoursError(
                f"Hours must be between 2 and 10 in half-hour steps, got {hours}"
            )
        self._write_hours(value, "slider")
        return self._state.hours

    def _write_hours(self, hours: Decimal, source: str) -> None:
        previous = self._state.hours
        self._state.hours = hours
        self._emit_event("hours", {"hours": str(hours), "source": source})
        if hours != previous:
            log.debug("Session %s hours %s → %s (%s)", self._session_id, previous, hours, source)
            self._schedule_changed()

    # ── Date & time ───────────────────────────────────────────

    def set_date(self, day: date) -> None:
        self._ensure_editable()
        if day < date.today():
            raise InvalidDateError(f"{day.isoformat()} is in the past")
        if day == self._state.date:
            return
        self._state.date = day
        self._emit_event("date", {"date": day.isoformat()})
        self._schedule_changed()

    def select_slot(self, slot: TimeSlot) -> TimeSlot:
        """Choose a slot; it must come from the list for the current (date, hours)."""
        self._ensure_editable()
        if self._availability.loading or not self._availability.contains(slot):
            raise SlotUnavailableError(
                f"{slot.label()} is not in the current availability list"
            )
        if not slot.available:
            raise SlotUnavailableError(f"{slot.label()} is already booked")
        self._state.time_slot = slot
        self._emit_event("slot", {"start": slot.start.isoformat(), "end": slot.end.isoformat()})
        return slot

    async def wait_for_slots(self) -> list[TimeSlot]:
        await self._availability.wait()
        return self.slots

    def _schedule_changed(self) -> None:
        """(date, hours) changed: drop the chosen slot and refetch."""
        if self._state.time_slot is not None:
            log.debug("Session %s clearing slot after schedule change", self._session_id)
            self._state.time_slot = None
        if self._state.date is not None and self._state.hours:
            self._availability.request(self._state.date, self._state.hours)
        else:
            self._availability.reset()

    def _on_slots(self, slots: list[TimeSlot]) -> None:
        self._emit_event("slots", {
            "count": len(slots),
            "available": sum(1 for s in slots if s.available),
            "failed": self._availability.failed,
        })

    # ── Contact details ───────────────────────────────────────

    def update_client_details(self, **fields: str) -> ClientDetails:
        self._ensure_editable()
        unknown = set(fields) - _EDITABLE_DETAIL_FIELDS
        if unknown:
            raise WizardError(f"Unknown client detail fields: {', '.join(sorted(unknown))}")

        changed = sorted(fields)
        if "address" in fields:
            self._address.fill(fields.pop("address"))
        details = self._state.client_details.model_copy(update=fields)
        self._state.client_details = details
        self._emit_event("details", {"fields": changed})
        return details

    def set_country(self, iso: str) -> CountryCode:
        self._ensure_editable()
        country = get_country(iso)
        if country is None:
            raise UnknownCountryError(f"Unknown country code {iso!r}")
        self._country = country
        return country

    def set_address_text(self, text: str) -> None:
        """One keystroke in the address field (debounced suggestions)."""
        self._ensure_editable()
        self._address.on_input(text)

    def select_address_suggestion(self, index: int) -> str:
        self._ensure_editable()
        return self._address.select_suggestion(index)

    async def use_current_location(self, locator: LocationProvider) -> bool:
        self._ensure_editable()
        return await self._address.use_current_location(locator)

    def _on_address_change(self, text: str) -> None:
        if self._locked():
            log.debug("Ignoring address change on a locked booking")
            return
        self._state.client_details.address = text

    def _accepts_located_address(self) -> bool:
        return not self._locked() and self._state.step == Step.DETAILS

    def _prefill(self, user: UserProfile) -> None:
        self._state.client_details = self._state.client_details.model_copy(update={
            "first_name": user.first_name or "",
            "last_name": user.last_name or "",
            "email": user.email or "",
            "phone": user.phone or "",
        })
        self._address.fill(user.address or "")
        log.info("Session prefilled for %s", redact_pii(user.email))

    # ── Step guards & transitions ─────────────────────────────

    def validation_errors(self, step: int | None = None) -> list[str]:
        """Messages explaining why ``step`` (default: current) cannot be left."""
        step = Step(step if step is not None else self._state.step)

        if step is Step.SERVICE:
            return [] if self.service else ["Choose a service to continue."]

        if step is Step.DURATION:
            if is_valid_hours(self.category, self._state.hours):
                return []
            if self.category is ServiceCategory.OFFICE:
                return ["Office cleans need at least 3 hours, in half-hour steps."]
            return ["Choose between 2 and 10 hours, in half-hour steps."]

        if step is Step.SCHEDULE:
            if self._state.date is None:
                return ["Pick a date."]
            if self._state.time_slot is None:
                return ["Pick an available time."]
            if not self._availability.contains(self._state.time_slot):
                return ["That time is no longer available. Pick another."]
            return []

        if step is Step.DETAILS:
            return client_detail_errors(self._state.client_details, self._country)

        if step is Step.PAYMENT:
            if self._record is not None:
                return []
            if self._persistence_error:
                return [self._persistence_error]
            return ["Pay the deposit to confirm your booking."]

        return ["This booking is complete."]

    def can_proceed(self, step: int | None = None) -> bool:
        step = step if step is not None else self._state.step
        if step == Step.SUCCESS:
            return False
        return not self.validation_errors(step)

    def next(self) -> bool:
        """Advance one step if the current step's guard passes.

        Returns False (and leaves the step unchanged) when blocked. The
        payment step never advances through here; a persisted payment
        moves the session to success on its own.
        """
        current = self.step
        if current >= Step.PAYMENT:
            return False
        errors = self.validation_errors(current)
        if errors:
            log.debug("Session %s blocked on step %d: %s", self._session_id, current, errors)
            self._emit_event("blocked", {"errors": errors})
            return False
        self._transition(Step(current + 1))
        return True

    def back(self) -> bool:
        """Return to the previous step. Not available once the deposit is paid."""
        current = self.step
        if current is FIRST_STEP or current is Step.SUCCESS:
            return False
        if self._processing or self._state.payment_status is PaymentStatus.PAID:
            return False
        if current is Step.PAYMENT and self._state.payment_status is PaymentStatus.FAILED:
            self._state.payment_status = PaymentStatus.PENDING
            self._payment_error = ""
        self._transition(Step(current - 1))
        return True

    def _transition(self, to: Step) -> None:
        frm = self._state.step
        self._state.step = int(to)
        log.info("Session %s step %d → %d", self._session_id, frm, to)
        self._emit_event("transition", {"from": frm, "to": int(to)})

    def _locked(self) -> bool:
        return (
            self._processing
            or self._state.payment_status is PaymentStatus.PAID
            or self._state.step == Step.SUCCESS
        )

    def _ensure_editable(self) -> None:
        if self._processing or self._state.payment_status is PaymentStatus.PAID:
            raise InvalidStepError("The booking can't be changed once payment has started.")
        if self._state.step == Step.SUCCESS:
            raise InvalidStepError("The booking is already complete.")

    # ── Payment & persistence ─────────────────────────────────

    async def pay(self, token: str) -> bool:
        """Charge the deposit and persist the booking.

        Returns True once the booking is saved (the session is then on the
        success step). Declines and processor errors leave the session on
        the payment step with ``payment_error`` set; a save failure after a
        successful charge leaves ``persistence_error`` set, and ``pay`` or
        ``retry_save`` will retry the save without charging again.
        """
        if self._state.step != Step.PAYMENT:
            raise InvalidStepError("Payment is only taken on the payment step.")
        if self._processing:
            return False
        if self._state.payment_status is PaymentStatus.PAID:
            return await self.retry_save()

        for earlier in (Step.SERVICE, Step.DURATION, Step.SCHEDULE, Step.DETAILS):
            errors = self.validation_errors(earlier)
            if errors:
                self._payment_error = errors[0]
                return False

        invoice = self.invoice
        amount = to_cents(invoice.deposit)

        self._processing = True
        self._state.payment_status = PaymentStatus.PROCESSING
        self._payment_error = ""
        self._emit_event("payment", {"status": "processing", "amount": str(amount)})
        try:
            result = await self._payments.process_payment(amount, token)
        except PaymentDeclined as e:
            log.info("Session %s payment declined: %s", self._session_id, e.reason)
            return self._payment_failed(e.reason, declined=True)
        except PaymentFailure as e:
            log.warning("Session %s payment error: %s", self._session_id, e.reason)
            return self._payment_failed(e.reason, declined=False)
        except Exception:
            log.exception("Session %s payment raised unexpectedly", self._session_id)
            return self._payment_failed(
                "Payment could not be processed. Please try again.", declined=False
            )
        finally:
            self._processing = False

        self._state.payment_status = PaymentStatus.PAID
        self._transaction_id = result.transaction_id
        self._pending_record = self._build_record(invoice, result.transaction_id)
        log.info("Session %s deposit %s paid (%s)", self._session_id, amount, result.transaction_id)
        self._emit_event("payment", {"status": "paid", "transaction_id": result.transaction_id})
        return await self._persist()

    async def retry_save(self) -> bool:
        """Retry persisting a paid booking whose first save failed."""
        if self._record is not None:
            return True
        if self._state.payment_status is not PaymentStatus.PAID or self._pending_record is None:
            return False
        if self._processing:
            return False
        return await self._persist()

    def _payment_failed(self, reason: str, declined: bool) -> bool:
        self._state.payment_status = PaymentStatus.FAILED
        self._payment_error = reason
        self._emit_event("payment", {"status": "failed", "declined": declined, "reason": reason})
        return False

    async def _persist(self) -> bool:
        record = self._pending_record
        self._processing = True
        try:
            booking_id = await self._store.save_booking(record)
        except Exception:
            log.exception(
                "Session %s: booking save failed after payment %s",
                self._session_id,
                record.transaction_id,
            )
            self._persistence_error = (
                "Your deposit was received but the booking could not be saved yet. "
                "Retry to finish; you will not be charged again."
            )
            self._emit_event("error", {"stage": "persist", "transaction_id": record.transaction_id})
            return False
        finally:
            self._processing = False

        self._record = record.model_copy(update={"booking_id": booking_id})
        self._pending_record = None
        self._persistence_error = ""
        self._emit_event("persisted", {"booking_id": booking_id})
        await self._compose_emails()
        self._transition(Step.SUCCESS)
        return True

    async def _compose_emails(self) -> None:
        if self._emails is None:
            return
        for kind in EMAIL_KINDS:
            try:
                content = await self._emails.generate_email_content(self._record, kind)
            except Exception as e:
                log.warning("Session %s: %s email failed: %s", self._session_id, kind, e)
                continue
            self._email_content[kind] = content
            self._emit_event("email", {"kind": kind})

    def _build_record(self, invoice: InvoiceData, transaction_id: str) -> BookingRecord:
        service = self.service
        details = self._state.client_details.model_copy(update={
            "phone": format_phone(self._state.client_details.phone, self._country),
        })
        return BookingRecord(
            service_id=service.id,
            service_title=service.title,
            date=self._state.date,
            time_slot=self._state.time_slot,
            hours=self._state.hours,
            client_details=details,
            invoice=invoice,
            transaction_id=transaction_id,
            created_at=datetime.now(timezone.utc),
        )

    # ── Teardown & serialization ──────────────────────────────

    def close(self) -> None:
        """Cancel the debounce timer and any in-flight slot fetch."""
        self._address.close()
        self._availability.close()

    def to_dict(self, detail: bool = False) -> dict[str, Any]:
        """Serialize session state for the API.

        With detail=True: adds the event history and composed emails.
        """
        service = self.service
        d: dict[str, Any] = {
            "session_id": self._session_id,
            "started_at": self._started_at,
            "last_active": self._last_active,
            "step": self._state.step,
            "step_name": Step(self._state.step).name.lower(),
            "is_done": self.is_done,
            "state": self._state.model_dump(mode="json"),
            "service": service.model_dump(mode="json") if service else None,
            "estimator": {
                "category": self.category.value,
                "counts": self.active_counts.model_dump(),
            },
            "invoice": invoice_summary(self.invoice),
            "slots": [s.model_dump(mode="json") for s in self.slots],
            "slots_loading": self.slots_loading,
            "country": self._country.iso,
            "address": self._address.to_dict(),
            "can_proceed": self.can_proceed(),
            "validation_errors": self.validation_errors(),
            "is_processing": self._processing,
            "payment_error": self._payment_error,
            "persistence_error": self._persistence_error,
            "booking_id": self.booking_id,
            "emails_sent": self.emails_sent,
        }
        if detail:
            d["email_content"] = self.email_content
            if self._broadcaster:
                d["event_log"] = self._broadcaster.history
        return d
