"""Room-count estimators that turn a job description into billable hours.

Pure functions only. Weights are per-unit hours; the office formula adds a
fixed setup/travel allowance. Arithmetic is done in ``Decimal`` so that
``10 * 0.3`` is exactly 3 and does not round up to the next half hour.
"""

from __future__ import annotations

from decimal import ROUND_CEILING, Decimal
from typing import Union

from reservation.errors import UnknownCounterError
from reservation.models.service import (
    HomeEstimatorCounts,
    OfficeEstimatorCounts,
    ServiceCategory,
)

EstimatorCounts = Union[HomeEstimatorCounts, OfficeEstimatorCounts]

HOME_WEIGHTS: dict[str, Decimal] = {
    "kitchen": Decimal("0.75"),
    "bathrooms": Decimal("0.5"),
    "bedrooms": Decimal("0.3"),
    "living": Decimal("0.25"),
}

OFFICE_WEIGHTS: dict[str, Decimal] = {
    "rooms": Decimal("0.3"),       # ~18 min per room
    "cafeteria": Decimal("0.67"),  # ~40 min per break room
    "desks": Decimal("0.133"),     # ~8 min per desk
    "washrooms": Decimal("0.42"),  # ~25 min per washroom
}
OFFICE_BASE_HOURS = Decimal("0.75")

HOME_MIN_HOURS = Decimal("2")
HOME_MAX_HOURS = Decimal("10")
OFFICE_MIN_HOURS = Decimal("3")

# Free-form slider track
SLIDER_MIN_HOURS = Decimal("2")
SLIDER_MAX_HOURS = Decimal("10")
HOURS_STEP = Decimal("0.5")


def round_up_to_half(value: Decimal) -> Decimal:
    """Round up to the next multiple of 0.5 (``ceil(x * 2) / 2``)."""
    return (Decimal(value) * 2).to_integral_value(rounding=ROUND_CEILING) / 2


def _weighted_sum(counts: EstimatorCounts, weights: dict[str, Decimal]) -> Decimal:
    total = Decimal("0")
    for field, weight in weights.items():
        total += max(0, getattr(counts, field)) * weight
    return total


def home_hours(counts: HomeEstimatorCounts) -> Decimal:
    raw = _weighted_sum(counts, HOME_WEIGHTS)
    return max(HOME_MIN_HOURS, round_up_to_half(raw))


def office_hours(counts: OfficeEstimatorCounts) -> Decimal:
    raw = _weighted_sum(counts, OFFICE_WEIGHTS) + OFFICE_BASE_HOURS
    return max(OFFICE_MIN_HOURS, round_up_to_half(raw))


def default_counts(category: ServiceCategory) -> EstimatorCounts:
    if category is ServiceCategory.OFFICE:
        return OfficeEstimatorCounts()
    return HomeEstimatorCounts()


def estimate_hours(category: ServiceCategory, counts: EstimatorCounts) -> Decimal:
    """Dispatch to the estimator for ``category``."""
    if category is ServiceCategory.OFFICE:
        if not isinstance(counts, OfficeEstimatorCounts):
            raise TypeError("office services need OfficeEstimatorCounts")
        return office_hours(counts)
    if not isinstance(counts, HomeEstimatorCounts):
        raise TypeError("home services need HomeEstimatorCounts")
    return home_hours(counts)


def adjust_counts(counts: EstimatorCounts, field: str, delta: int) -> EstimatorCounts:
    """Return a copy of ``counts`` with ``field`` moved by ``delta``, floored at 0.

    A decrement of a field already at 0 returns the counts unchanged.
    """
    if field not in type(counts).model_fields:
        raise UnknownCounterError(
            f"{field!r} is not a {type(counts).__name__} field"
        )
    value = max(0, getattr(counts, field) + int(delta))
    return counts.model_copy(update={field: value})


def is_valid_hours(category: ServiceCategory | None, hours: Decimal) -> bool:
    """True when ``hours`` is a half-hour multiple in the category's range."""
    hours = Decimal(hours)
    if hours % HOURS_STEP != 0:
        return False
    if category is ServiceCategory.OFFICE:
        return hours >= OFFICE_MIN_HOURS
    return HOME_MIN_HOURS <= hours <= HOME_MAX_HOURS


def is_valid_slider_value(hours: Decimal) -> bool:
    hours = Decimal(hours)
    return SLIDER_MIN_HOURS <= hours <= SLIDER_MAX_HOURS and hours % HOURS_STEP == 0
