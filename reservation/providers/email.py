"""Confirmation email content for completed bookings."""

from __future__ import annotations

from abc import ABC, abstractmethod

from reservation.models.booking import BookingRecord
from reservation.pricing import to_cents

EMAIL_KINDS = ("client", "admin")


class EmailComposer(ABC):
    @abstractmethod
    async def generate_email_content(self, record: BookingRecord, kind: str) -> str:
        """Return the body of the ``kind`` email ("client" or "admin") for ``record``."""


class TemplateEmailComposer(EmailComposer):
    """Plain-text confirmation and back-office notice."""

    def __init__(self, business_name: str = "Sparkle Cleaning Co.") -> None:
        self._business_name = business_name

    async def generate_email_content(self, record: BookingRecord, kind: str) -> str:
        if kind not in EMAIL_KINDS:
            raise ValueError(f"Unknown email kind {kind!r}")

        details = record.client_details
        invoice = record.invoice
        when = (
            f"{record.date.strftime('%A, %B %d, %Y')} "
            f"{record.time_slot.start.strftime('%I:%M %p')} - "
            f"{record.time_slot.end.strftime('%I:%M %p')}"
        )
        figures = [
            f"  Subtotal:  ${to_cents(invoice.subtotal)}",
            f"  HST:       ${to_cents(invoice.tax)}",
            f"  Total:     ${to_cents(invoice.total)}",
            f"  Deposit:   ${to_cents(invoice.deposit)} (paid, {record.transaction_id})",
            f"  Remaining: ${to_cents(invoice.remaining)} (due on completion)",
        ]

        if kind == "client":
            lines = [
                f"Hi {details.first_name},",
                "",
                f"Your {record.service_title} with {self._business_name} is confirmed.",
                f"  Booking:  {record.booking_id}",
                f"  When:     {when}",
                f"  Duration: {record.hours.normalize():f} hours",
                f"  Where:    {details.address or 'address to be confirmed'}",
                "",
                *figures,
                "",
                "Reply to this email if anything changes.",
            ]
        else:
            lines = [
                f"New booking {record.booking_id}: {record.service_title}",
                f"  When:     {when}",
                f"  Hours:    {record.hours.normalize():f}",
                f"  Client:   {details.first_name} {details.last_name}",
                f"  Email:    {details.email}",
                f"  Phone:    {details.phone}",
                f"  Address:  {details.address}",
                f"  Notes:    {details.notes or '-'}",
                "",
                *figures,
            ]
        return "\n".join(lines)
