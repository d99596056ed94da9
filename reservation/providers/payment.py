"""Payment gateway interface and the sandbox gateway.

Gateways distinguish a *decline* (the card or token was refused; retrying
with the same token will not help) from a transient *error* (network,
processor outage; the same token may succeed later).
"""

from __future__ import annotations

import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

logger = logging.getLogger(__name__)


class PaymentFailure(Exception):
    """Base class for failed charges. ``reason`` is safe to show the customer."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class PaymentDeclined(PaymentFailure):
    pass


class PaymentError(PaymentFailure):
    pass


@dataclass
class PaymentResult:
    transaction_id: str
    amount: Decimal


class PaymentGateway(ABC):
    @abstractmethod
    async def process_payment(self, amount: Decimal, token: str) -> PaymentResult:
        """Charge ``amount`` against ``token``.

        Raises:
            PaymentDeclined: the charge was refused.
            PaymentError: the charge could not be attempted.
        """


class SandboxPaymentGateway(PaymentGateway):
    """Deterministic gateway for development and demos.

    ``tok_decline`` is refused, ``tok_error`` fails as a processor outage,
    anything else non-empty is charged.
    """

    DECLINE_TOKEN = "tok_decline"
    ERROR_TOKEN = "tok_error"

    def __init__(self) -> None:
        self.charges: list[PaymentResult] = []

    async def process_payment(self, amount: Decimal, token: str) -> PaymentResult:
        if not token:
            raise PaymentDeclined("No payment method was provided.")
        if amount <= 0:
            raise PaymentDeclined("The deposit amount must be greater than zero.")
        if token == self.DECLINE_TOKEN:
            raise PaymentDeclined("Your card was declined.")
        if token == self.ERROR_TOKEN:
            raise PaymentError("The payment processor is unavailable. Please try again.")

        result = PaymentResult(transaction_id=f"txn_{secrets.token_hex(8)}", amount=amount)
        self.charges.append(result)
        logger.info("Sandbox charge %s for %s", result.transaction_id, amount)
        return result
