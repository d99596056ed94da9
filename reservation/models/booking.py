"""Pydantic models for the booking record and its derived invoice."""

from __future__ import annotations

from datetime import date as Date
from datetime import datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"


class TimeSlot(BaseModel):
    """A bookable window on a given day, as returned by the availability backend."""

    start: time
    end: time
    available: bool = True

    model_config = {"frozen": True}

    def label(self) -> str:
        return f"{self.start.strftime('%I:%M %p')} - {self.end.strftime('%I:%M %p')}"


class ClientDetails(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    notes: str = ""


class UserProfile(BaseModel):
    """Authenticated user record consumed once, when the wizard starts."""

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""


class BookingState(BaseModel):
    """Mutable state for a single wizard session.

    ``step`` and ``payment_status`` are written only by the wizard's
    transition commands; everything else is written by the customer's
    edits or by derived recomputation (``hours``).
    """

    step: int = 1
    service: Optional[str] = None
    hours: Decimal = Decimal("3")
    date: Optional[Date] = None
    time_slot: Optional[TimeSlot] = None
    client_details: ClientDetails = Field(default_factory=ClientDetails)
    payment_status: PaymentStatus = PaymentStatus.PENDING


class LineItem(BaseModel):
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal


class InvoiceData(BaseModel):
    """Derived pricing figures. Amounts are exact; round with ``to_cents`` for display."""

    subtotal: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    deposit: Decimal = Decimal("0")
    remaining: Decimal = Decimal("0")
    tax_rate: Decimal = Decimal("0")
    deposit_fraction: Decimal = Decimal("0")
    line_items: list[LineItem] = []


class BookingRecord(BaseModel):
    """Immutable snapshot handed to the persistence backend after payment."""

    booking_id: Optional[str] = None
    service_id: str
    service_title: str
    date: Date
    time_slot: TimeSlot
    hours: Decimal
    client_details: ClientDetails
    invoice: InvoiceData
    transaction_id: str
    created_at: datetime

    model_config = {"frozen": True}
