"""Tests for the customization fee rule."""

import pytest
from shopping.pricing.customization import customization_fee, normalize_customization
from shopping.pricing.rules import PricingRules, set_rules


class TestNormalizeCustomization:
    @pytest.mark.parametrize(
        "customization",
        [None, {}, {"name": ""}, {"name": "  ", "number": ""}, {"name": None, "number": None}],
    )
    def test_empty_customization_is_dropped(self, customization):
        assert normalize_customization(customization) is None

    def test_fields_are_trimmed(self):
        assert normalize_customization({"name": " ZICO ", "number": " 10"}) == {"name": "ZICO", "number": "10"}

    def test_empty_field_is_omitted(self):
        assert normalize_customization({"name": "", "number": "9"}) == {"number": "9"}

    def test_numbers_are_accepted_as_numbers(self):
        assert normalize_customization({"number": 7}) == {"number": "7"}


class TestCustomizationFee:
    def test_no_fee_without_customization(self):
        assert customization_fee(None) == 0.0
        assert customization_fee({"name": "", "number": ""}) == 0.0

    @pytest.mark.parametrize(
        "customization",
        [{"name": "ZICO"}, {"number": "10"}, {"name": "ZICO", "number": "10"}],
    )
    def test_fee_with_name_or_number(self, customization):
        assert customization_fee(customization) == 20.0

    def test_fee_follows_active_rules(self):
        set_rules(PricingRules(customization_surcharge=35.0))
        assert customization_fee({"name": "ZICO"}) == 35.0
