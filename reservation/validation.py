"""Client-details validation for the contact step."""

from __future__ import annotations

import re

from reservation.models.booking import ClientDetails
from reservation.models.service import CountryCode

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")
_PHONE_CHARS = re.compile(r"^\+?[\d\s().-]+$")


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_PATTERN.match((value or "").strip()))


def national_number(phone: str, country: CountryCode) -> str:
    """Strip formatting, the country's dial code and a trunk ``0`` prefix."""
    digits = re.sub(r"\D", "", phone or "")
    dial_digits = country.dial_code.lstrip("+")
    if (phone or "").strip().startswith("+") and digits.startswith(dial_digits):
        digits = digits[len(dial_digits):]
    elif dial_digits == "1" and len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    elif dial_digits != "1" and digits.startswith("0"):
        digits = digits[1:]
    return digits


def is_valid_phone(phone: str, country: CountryCode) -> bool:
    """True when ``phone`` is a well-formed number for ``country``."""
    if not phone or not _PHONE_CHARS.match(phone.strip()):
        return False
    return bool(re.fullmatch(country.phone_pattern, national_number(phone, country)))


def format_phone(phone: str, country: CountryCode) -> str:
    """International form, e.g. ``+1 4165550123``."""
    return f"{country.dial_code} {national_number(phone, country)}"


def client_detail_errors(details: ClientDetails, country: CountryCode) -> list[str]:
    """Inline messages for every field that blocks the contact step."""
    errors: list[str] = []
    if not details.first_name.strip():
        errors.append("First name is required.")
    if not details.last_name.strip():
        errors.append("Last name is required.")
    if not details.email.strip():
        errors.append("Email is required.")
    elif not is_valid_email(details.email):
        errors.append("Enter a valid email address.")
    if not details.phone.strip():
        errors.append("Phone number is required.")
    elif not is_valid_phone(details.phone, country):
        hint = f" (e.g. {country.example})" if country.example else ""
        errors.append(f"Enter a valid {country.name} phone number{hint}.")
    return errors
