"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("reservation.config")


class Settings(BaseSettings):
    # Pricing
    hst_rate: float = 0.13
    deposit_fraction: float = 0.30

    # Client details
    default_country_iso: str = "CA"

    # Address autocomplete
    address_debounce_ms: int = 300
    google_maps_api_key: str = ""
    geocode_timeout: float = 3.0

    # Catalog (JSONL, one service per line). Empty = built-in catalog.
    service_catalog_path: str = ""

    # Availability
    business_open_hour: int = 8
    business_close_hour: int = 18
    calendar_timezone: str = "America/Toronto"
    google_service_account_json: str = ""
    google_calendar_id: str = "primary"

    # Sessions idle longer than this are released on the next session start
    session_idle_ttl_seconds: int = 1800

    # Payments: "sandbox" is the only built-in gateway
    payment_mode: str = "sandbox"

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []
        _placeholders = {"path/to/service-account.json", "AIza..."}

        if not 0 <= self.hst_rate <= 1:
            raise ValueError(f"HST_RATE must be between 0 and 1, got {self.hst_rate}")
        if not 0 < self.deposit_fraction <= 1:
            raise ValueError(
                f"DEPOSIT_FRACTION must be in (0, 1], got {self.deposit_fraction}"
            )
        if not 0 <= self.business_open_hour < self.business_close_hour <= 24:
            raise ValueError(
                "BUSINESS_OPEN_HOUR must be before BUSINESS_CLOSE_HOUR "
                f"({self.business_open_hour} >= {self.business_close_hour})"
            )
        if self.session_idle_ttl_seconds <= 0:
            raise ValueError(
                f"SESSION_IDLE_TTL_SECONDS must be positive, got {self.session_idle_ttl_seconds}"
            )

        # Warn when the admin API key is unset
        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production. "
                    "Set ADMIN_API_KEY in .env to enable admin access."
                )

        if not self.google_maps_api_key or self.google_maps_api_key in _placeholders:
            warnings.append(
                "GOOGLE_MAPS_API_KEY not set — address suggestions disabled."
            )

        if self.google_service_account_json in _placeholders:
            warnings.append(
                "GOOGLE_SERVICE_ACCOUNT_JSON is a placeholder — using business-hours availability."
            )

        if self.payment_mode != "sandbox":
            warnings.append(
                f"PAYMENT_MODE={self.payment_mode!r} has no built-in gateway; "
                "falling back to sandbox."
            )

        return warnings


settings = Settings()
