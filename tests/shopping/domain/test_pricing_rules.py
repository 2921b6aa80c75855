"""Tests for the pricing rules configuration."""

import pytest
from shopping.pricing.rules import PricingRules, get_rules, reset_rules, rules_from_env, set_rules


class TestDefaults:
    def test_default_rules(self):
        rules = PricingRules()
        assert rules.free_shipping_units == 4
        assert rules.max_units == 7
        assert rules.shipping_steps == (25.0, 20.0, 15.0)
        assert rules.customization_surcharge == 20.0

    def test_get_rules_defaults_without_environment(self, monkeypatch):
        for name in (
            "KITSTORE_MAX_UNITS",
            "KITSTORE_SHIPPING_STEPS",
            "KITSTORE_FREE_SHIPPING_UNITS",
            "KITSTORE_CUSTOMIZATION_FEE",
        ):
            monkeypatch.delenv(name, raising=False)
        reset_rules()
        assert get_rules() == PricingRules()


class TestValidation:
    def test_steps_must_cover_every_count_below_threshold(self):
        with pytest.raises(ValueError):
            PricingRules(free_shipping_units=4, shipping_steps=(25.0, 20.0))

    def test_max_units_must_be_positive(self):
        with pytest.raises(ValueError):
            PricingRules(max_units=0)

    def test_surcharge_must_be_non_negative(self):
        with pytest.raises(ValueError):
            PricingRules(customization_surcharge=-1)

    def test_steps_must_be_non_negative(self):
        with pytest.raises(ValueError):
            PricingRules(shipping_steps=(25.0, -1.0, 15.0))


class TestOverrides:
    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("KITSTORE_MAX_UNITS", "10")
        monkeypatch.setenv("KITSTORE_SHIPPING_STEPS", "30,20")
        monkeypatch.setenv("KITSTORE_CUSTOMIZATION_FEE", "25.5")
        monkeypatch.delenv("KITSTORE_FREE_SHIPPING_UNITS", raising=False)

        rules = rules_from_env()
        assert rules.max_units == 10
        assert rules.shipping_steps == (30.0, 20.0)
        assert rules.free_shipping_units == 3
        assert rules.customization_surcharge == 25.5

    def test_set_and_reset_rules(self, monkeypatch):
        monkeypatch.delenv("KITSTORE_MAX_UNITS", raising=False)
        custom = PricingRules(max_units=3)
        set_rules(custom)
        assert get_rules() is custom

        reset_rules()
        assert get_rules().max_units == 7
