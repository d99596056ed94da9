"""Invoice figures derived from the selected service and booked hours.

Amounts are kept exact so that ``deposit + remaining == total`` holds without
drift; ``to_cents`` rounds for display and for the amount actually charged.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from reservation.models.booking import InvoiceData, LineItem
from reservation.models.service import ServiceType

HST_RATE = Decimal("0.13")
DEPOSIT_FRACTION = Decimal("0.30")

_CENT = Decimal("0.01")


def _to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def to_cents(amount: Decimal) -> Decimal:
    return _to_decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP)


def compute_invoice(
    service: ServiceType | None,
    hours: Decimal,
    tax_rate: Decimal | float = HST_RATE,
    deposit_fraction: Decimal | float = DEPOSIT_FRACTION,
) -> InvoiceData:
    """Return subtotal, tax, total, deposit and remaining balance.

    With no service selected every figure is zero.
    """
    tax_rate = _to_decimal(tax_rate, HST_RATE)
    deposit_fraction = _to_decimal(deposit_fraction, DEPOSIT_FRACTION)

    if service is None:
        return InvoiceData(tax_rate=tax_rate, deposit_fraction=deposit_fraction)

    hours = _to_decimal(hours)
    subtotal = service.hourly_rate * hours
    tax = subtotal * tax_rate
    total = subtotal + tax
    deposit = total * deposit_fraction
    remaining = total - deposit

    return InvoiceData(
        subtotal=subtotal,
        tax=tax,
        total=total,
        deposit=deposit,
        remaining=remaining,
        tax_rate=tax_rate,
        deposit_fraction=deposit_fraction,
        line_items=[
            LineItem(
                description=f"{service.title} ({hours.normalize():f} h)",
                quantity=hours,
                unit_price=service.hourly_rate,
                amount=subtotal,
            )
        ],
    )


def invoice_summary(invoice: InvoiceData) -> dict[str, str]:
    """Cent-rounded figures as strings, for display and JSON payloads."""
    return {
        "subtotal": str(to_cents(invoice.subtotal)),
        "tax": str(to_cents(invoice.tax)),
        "total": str(to_cents(invoice.total)),
        "deposit": str(to_cents(invoice.deposit)),
        "remaining": str(to_cents(invoice.remaining)),
    }
