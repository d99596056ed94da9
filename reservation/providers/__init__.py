"""External collaborator interfaces and implementations."""

from .calendar import AvailabilityProvider, build_day_slots
from .email import EmailComposer, TemplateEmailComposer
from .geocoding import (
    AddressCandidate,
    Coordinates,
    Geocoder,
    GeocodingError,
    GoogleGeocoder,
    LocationError,
    LocationProvider,
    StaticLocation,
)
from .local import BusinessHoursAvailability
from .payment import (
    PaymentDeclined,
    PaymentError,
    PaymentFailure,
    PaymentGateway,
    PaymentResult,
    SandboxPaymentGateway,
)
from .storage import BookingStore, InMemoryBookingStore

__all__ = [
    "AddressCandidate",
    "AvailabilityProvider",
    "BookingStore",
    "BusinessHoursAvailability",
    "Coordinates",
    "EmailComposer",
    "Geocoder",
    "GeocodingError",
    "GoogleGeocoder",
    "InMemoryBookingStore",
    "LocationError",
    "LocationProvider",
    "PaymentDeclined",
    "PaymentError",
    "PaymentFailure",
    "PaymentGateway",
    "PaymentResult",
    "SandboxPaymentGateway",
    "StaticLocation",
    "TemplateEmailComposer",
    "build_day_slots",
]
