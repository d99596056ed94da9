"""Pydantic models for the service catalog and the room-count estimators."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class ServiceCategory(str, Enum):
    """Selects which estimator group is active for a service."""

    HOME = "home"
    OFFICE = "office"


class ServiceType(BaseModel):
    """One entry of the service catalog."""

    id: str
    title: str
    description: str = ""
    hourly_rate: Decimal
    recommended_hours: Decimal
    category: ServiceCategory = ServiceCategory.HOME

    model_config = {"frozen": True}

    @property
    def is_office(self) -> bool:
        return self.category is ServiceCategory.OFFICE


class HomeEstimatorCounts(BaseModel):
    """Room counts for residential jobs."""

    bedrooms: int = Field(default=2, ge=0)
    bathrooms: int = Field(default=1, ge=0)
    kitchen: int = Field(default=1, ge=0)
    living: int = Field(default=1, ge=0)


class OfficeEstimatorCounts(BaseModel):
    """Area counts for commercial jobs."""

    rooms: int = Field(default=6, ge=0)
    cafeteria: int = Field(default=0, ge=0)
    desks: int = Field(default=20, ge=0)
    washrooms: int = Field(default=2, ge=0)


class CountryCode(BaseModel):
    """Dial code plus the national-number format accepted for a country."""

    iso: str
    name: str
    dial_code: str
    phone_pattern: str  # regex for the national number, digits only
    example: str = ""

    model_config = {"frozen": True}
