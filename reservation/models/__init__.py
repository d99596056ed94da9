"""Data models for the reservation wizard."""

from .booking import (
    BookingRecord,
    BookingState,
    ClientDetails,
    InvoiceData,
    LineItem,
    PaymentStatus,
    TimeSlot,
    UserProfile,
)
from .service import (
    CountryCode,
    HomeEstimatorCounts,
    OfficeEstimatorCounts,
    ServiceCategory,
    ServiceType,
)

__all__ = [
    "BookingRecord",
    "BookingState",
    "ClientDetails",
    "CountryCode",
    "HomeEstimatorCounts",
    "InvoiceData",
    "LineItem",
    "OfficeEstimatorCounts",
    "PaymentStatus",
    "ServiceCategory",
    "ServiceType",
    "TimeSlot",
    "UserProfile",
]
