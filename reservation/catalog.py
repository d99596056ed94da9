"""Service catalog and country dial codes.

The built-in catalog covers the standard offering. A deployment can replace
it with a JSONL file (one service object per line) via
``SERVICE_CATALOG_PATH``.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from pathlib import Path

from reservation.config import settings
from reservation.models.service import CountryCode, ServiceCategory, ServiceType

log = logging.getLogger("reservation.catalog")


DEFAULT_SERVICES: list[ServiceType] = [
    ServiceType(
        id="standard",
        title="Standard Home Clean",
        description="Dusting, vacuuming, mopping, kitchen and bathroom surfaces.",
        hourly_rate=Decimal("50"),
        recommended_hours=Decimal("3"),
        category=ServiceCategory.HOME,
    ),
    ServiceType(
        id="deep",
        title="Deep Clean",
        description="Standard clean plus baseboards, inside appliances and detailing.",
        hourly_rate=Decimal("65"),
        recommended_hours=Decimal("5"),
        category=ServiceCategory.HOME,
    ),
    ServiceType(
        id="move",
        title="Move In / Move Out",
        description="Empty-home clean including cupboards, closets and fixtures.",
        hourly_rate=Decimal("70"),
        recommended_hours=Decimal("6"),
        category=ServiceCategory.HOME,
    ),
    ServiceType(
        id="office",
        title="Office & Commercial",
        description="Workstations, meeting rooms, break rooms and washrooms.",
        hourly_rate=Decimal("55"),
        recommended_hours=Decimal("4"),
        category=ServiceCategory.OFFICE,
    ),
]

COUNTRY_CODES: list[CountryCode] = [
    CountryCode(iso="CA", name="Canada", dial_code="+1", phone_pattern=r"[2-9]\d{9}", example="416 555 0123"),
    CountryCode(iso="US", name="United States", dial_code="+1", phone_pattern=r"[2-9]\d{9}", example="212 555 0123"),
    CountryCode(iso="GB", name="United Kingdom", dial_code="+44", phone_pattern=r"[1-9]\d{9}", example="7700 900123"),
    CountryCode(iso="AU", name="Australia", dial_code="+61", phone_pattern=r"[2-478]\d{8}", example="412 345 678"),
    CountryCode(iso="IN", name="India", dial_code="+91", phone_pattern=r"[6-9]\d{9}", example="98765 43210"),
    CountryCode(iso="FR", name="France", dial_code="+33", phone_pattern=r"[1-9]\d{8}", example="6 12 34 56 78"),
    CountryCode(iso="DE", name="Germany", dial_code="+49", phone_pattern=r"[1-9]\d{9,10}", example="151 23456789"),
    CountryCode(iso="MX", name="Mexico", dial_code="+52", phone_pattern=r"[1-9]\d{9}", example="55 1234 5678"),
    CountryCode(iso="PH", name="Philippines", dial_code="+63", phone_pattern=r"9\d{9}", example="917 123 4567"),
]

_COUNTRIES_BY_ISO = {c.iso: c for c in COUNTRY_CODES}


def get_country(iso: str) -> CountryCode | None:
    """Look up a country by ISO code (case-insensitive)."""
    return _COUNTRIES_BY_ISO.get((iso or "").upper())


def load_catalog_jsonl(path: str | Path) -> list[ServiceType]:
    """Load services from a JSONL file, one JSON object per line."""
    path = Path(path)
    services: list[ServiceType] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line:
            continue
        services.append(ServiceType(**json.loads(line)))

    if not services:
        raise ValueError(f"No services found in {path}")

    ids = [s.id for s in services]
    if len(set(ids)) != len(ids):
        raise ValueError(f"Duplicate service ids in {path}")
    return services


def load_catalog(path: str | Path | None = None) -> dict[str, ServiceType]:
    """Return the active catalog keyed by service id."""
    source = path if path is not None else settings.service_catalog_path
    if source:
        services = load_catalog_jsonl(source)
        log.info("Loaded %d services from %s", len(services), source)
    else:
        services = DEFAULT_SERVICES
    return {s.id: s for s in services}
