"""Tests for contact-detail validation and phone formatting."""

import pytest

from reservation.catalog import get_country
from reservation.models.booking import ClientDetails
from reservation.validation import (
    client_detail_errors,
    format_phone,
    is_valid_email,
    is_valid_phone,
    national_number,
)

CA = get_country("CA")
GB = get_country("GB")


class TestEmail:
    @pytest.mark.parametrize("value", ["jane@example.com", "j.doe+clean@mail.co.uk"])
    def test_valid(self, value):
        assert is_valid_email(value)

    @pytest.mark.parametrize("value", ["", "jane", "jane@", "jane@example", "ja ne@example.com"])
    def test_invalid(self, value):
        assert not is_valid_email(value)


class TestPhone:
    def test_local_canadian_number(self):
        assert is_valid_phone("(416) 555-0123", CA)

    def test_with_dial_code(self):
        assert national_number("+1 416 555 0123", CA) == "4165550123"

    def test_leading_one_without_plus(self):
        assert national_number("1-416-555-0123", CA) == "4165550123"

    def test_trunk_zero_stripped(self):
        assert national_number("07700 900123", GB) == "7700900123"
        assert is_valid_phone("07700 900123", GB)

    def test_letters_rejected(self):
        assert not is_valid_phone("416-CALL-NOW", CA)

    def test_wrong_length(self):
        assert not is_valid_phone("555-0123", CA)

    def test_format(self):
        assert format_phone("(416) 555-0123", CA) == "+1 4165550123"


class TestClientDetailErrors:
    def test_complete_details(self):
        details = ClientDetails(
            first_name="Jane", last_name="Doe",
            email="jane@example.com", phone="416 555 0123",
        )
        assert client_detail_errors(details, CA) == []

    def test_address_not_required(self):
        details = ClientDetails(
            first_name="Jane", last_name="Doe",
            email="jane@example.com", phone="416 555 0123", address="",
        )
        assert client_detail_errors(details, CA) == []

    def test_every_missing_field_reported(self):
        errors = client_detail_errors(ClientDetails(), CA)
        assert len(errors) == 4

    def test_phone_hint_names_country(self):
        details = ClientDetails(
            first_name="Jane", last_name="Doe",
            email="jane@example.com", phone="12345",
        )
        (error,) = client_detail_errors(details, CA)
        assert "Canada" in error
