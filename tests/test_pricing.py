"""
Tests for request pricing rules (override > multiplier > floor).
"""

import pytest

from shared.domain.pricing import (
    UNSET,
    calculate_student_price,
    calculate_tutor_offer_price,
    get_country_multiplier,
    get_effective_student_price,
    is_student_price_override,
    parse_leading_number,
    price_to_float,
    resolve_effective_price,
)


class TestCountryMultiplier:
    """Lebanon pays double, everyone else triple."""

    @pytest.mark.parametrize("country", ["Lebanon", "LEBANON", "  lebanon "])
    def test_lebanon_variants(self, country):
        assert get_country_multiplier(country) == 2

    @pytest.mark.parametrize("country", [None, "", "France", "LB"])
    def test_everyone_else(self, country):
        assert get_country_multiplier(country) == 3


class TestCalculateStudentPrice:
    """Priority order of the student price calculation."""

    def test_override_wins(self):
        assert calculate_student_price(student_price="99", tutor_price="10", country="France") == "99.00"

    def test_zero_override_is_ignored(self):
        assert calculate_student_price(student_price="0", tutor_price="10", country="France") == "30.00"

    def test_multiplier_applied(self):
        assert calculate_student_price(tutor_price="15", country="Lebanon") == "30.00"

    def test_min_price_floor(self):
        assert calculate_student_price(tutor_price="10", country="Lebanon", min_price="50") == "50.00"

    def test_floor_below_calculated_is_ignored(self):
        assert calculate_student_price(tutor_price="30", country="France", min_price="50") == "90.00"

    def test_nothing_parses(self):
        assert calculate_student_price() == "0"

    def test_trailing_text_after_override(self):
        assert calculate_student_price(student_price="50abc", tutor_price="10", country="France") == "50.00"

    def test_malformed_tutor_price(self):
        assert calculate_student_price(tutor_price="abc", country="France") == "0"

    def test_numeric_inputs(self):
        assert calculate_student_price(tutor_price=12.5, country="France") == "37.50"


class TestOfferPrice:
    def test_offer_price_uses_multiplier(self):
        assert calculate_tutor_offer_price("20", "Lebanon") == "40.00"
        assert calculate_tutor_offer_price("20", "Canada") == "60.00"

    def test_offer_price_empty(self):
        assert calculate_tutor_offer_price("", "Lebanon") == "0"

    def test_zero_tutor_price_in_lebanon(self):
        assert calculate_tutor_offer_price("0", "Lebanon") == "0"

    def test_france_uses_default_multiplier(self):
        assert calculate_tutor_offer_price("15", "France") == "45.00"

    def test_trailing_text_is_ignored(self):
        assert calculate_tutor_offer_price("50abc", "Lebanon") == "100.00"
        assert calculate_tutor_offer_price(" 12.5 USD", "France") == "37.50"
        assert calculate_tutor_offer_price("USD 12", "France") == "0"


class TestEffectivePrice:
    def test_override_is_reported_as_stored(self):
        eff = get_effective_student_price(student_price="45", tutor_price="10")
        assert eff.to_dict() == {"price": "45", "isOverride": True, "isCalculated": False}

    def test_calculated(self):
        eff = get_effective_student_price(student_price="", tutor_price="10", country="Lebanon")
        assert eff.price == "20.00"
        assert eff.is_calculated is True
        assert is_student_price_override("") is False
        assert is_student_price_override("0") is False
        assert is_student_price_override("12") is True


class TestResolveEffectivePrice:
    """Prices written when a tutor is attached to a request."""

    def test_keeps_stored_override(self):
        request = {"student_price": "70", "country": "Lebanon"}
        resolved = resolve_effective_price(request, "20")
        assert resolved.student_price == "70.00"
        assert resolved.offer_price == "40.00"
        assert resolved.min_price_changed is False

    def test_calculates_without_override(self):
        resolved = resolve_effective_price({"country": "Lebanon"}, "20")
        assert resolved.student_price == "40.00"

    def test_explicit_student_price_becomes_override(self):
        resolved = resolve_effective_price({"student_price": "70"}, "20", student_price="55")
        assert resolved.student_price == "55"

    def test_blank_student_price_forces_recalculation(self):
        request = {"student_price": "70", "country": "France"}
        resolved = resolve_effective_price(request, "20", student_price="")
        assert resolved.student_price == "60.00"

    def test_stored_min_price_is_the_floor(self):
        request = {"country": "Lebanon", "min_price": "100"}
        resolved = resolve_effective_price(request, "20")
        assert resolved.student_price == "100.00"
        assert resolved.min_price == "100"

    def test_new_min_price(self):
        resolved = resolve_effective_price({"country": "Lebanon"}, "20", min_price="80")
        assert resolved.student_price == "80.00"
        assert resolved.min_price == "80"
        assert resolved.min_price_changed is True

    def test_blank_min_price_clears_floor(self):
        request = {"country": "Lebanon", "min_price": "100"}
        resolved = resolve_effective_price(request, "20", min_price="", student_price=UNSET)
        assert resolved.min_price is None
        assert resolved.min_price_changed is True
        assert resolved.student_price == "40.00"


class TestPriceToFloat:
    @pytest.mark.parametrize(
        "value,expected",
        [("12.5", 12.5), (None, 0.0), ("", 0.0), ("abc", 0.0), (7, 7.0), ("nan", 0.0)],
    )
    def test_lenient_parse(self, value, expected):
        assert price_to_float(value) == expected


class TestParseLeadingNumber:
    @pytest.mark.parametrize(
        "value,expected",
        [("50abc", 50.0), ("  3.5kg", 3.5), (".5", 0.5), ("-2", -2.0), ("1e2x", 100.0), (8, 8.0)],
    )
    def test_reads_the_leading_number(self, value, expected):
        assert parse_leading_number(value) == expected

    @pytest.mark.parametrize("value", [None, "", "abc", "nan", "inf", True])
    def test_no_number(self, value):
        assert parse_leading_number(value) is None
