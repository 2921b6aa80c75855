"""Pricing rules — the named, overridable constants behind every cart total.

Defaults mirror the storefront's published tariff:

    1 unit  → 25.00 shipping
    2 units → 20.00 shipping
    3 units → 15.00 shipping
    4+      → free shipping
    7 units max per cart
    20.00 surcharge for a personalised (name/number) jersey

Provides get_rules() / set_rules() / reset_rules() to swap the active rule
set, the same way the payment gateway and carrier adapters are swapped.
Environment variables override the defaults the first time rules are read.
"""

import os
from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_SHIPPING_STEPS = (25.0, 20.0, 15.0)


@dataclass(frozen=True)
class PricingRules:
    """Tariff and capacity constants for the cart engine.

    ``shipping_steps[n - 1]`` is the shipping price for a cart of ``n`` units,
    for every ``n`` below ``free_shipping_units``.
    """

    free_shipping_units: int = 4
    max_units: int = 7
    shipping_steps: tuple[float, ...] = field(default=DEFAULT_SHIPPING_STEPS)
    customization_surcharge: float = 20.0

    def __post_init__(self):
        if self.free_shipping_units < 1:
            raise ValueError("free_shipping_units must be at least 1")
        if self.max_units < 1:
            raise ValueError("max_units must be at least 1")
        if len(self.shipping_steps) != self.free_shipping_units - 1:
            raise ValueError(
                f"Expected {self.free_shipping_units - 1} shipping steps below the free-shipping "
                f"threshold, got {len(self.shipping_steps)}"
            )
        if any(step < 0 for step in self.shipping_steps):
            raise ValueError("Shipping steps must be non-negative")
        if self.customization_surcharge < 0:
            raise ValueError("customization_surcharge must be non-negative")


def rules_from_env() -> PricingRules:
    """Build a rule set from ``KITSTORE_*`` environment variables, falling back to defaults."""
    overrides = {}

    if max_units := os.environ.get("KITSTORE_MAX_UNITS"):
        overrides["max_units"] = int(max_units)

    if steps := os.environ.get("KITSTORE_SHIPPING_STEPS"):
        overrides["shipping_steps"] = tuple(float(step) for step in steps.split(",") if step.strip())

    if threshold := os.environ.get("KITSTORE_FREE_SHIPPING_UNITS"):
        overrides["free_shipping_units"] = int(threshold)
    elif "shipping_steps" in overrides:
        overrides["free_shipping_units"] = len(overrides["shipping_steps"]) + 1

    if fee := os.environ.get("KITSTORE_CUSTOMIZATION_FEE"):
        overrides["customization_surcharge"] = float(fee)

    if overrides:
        logger.info("pricing_rules_overridden", **{k: str(v) for k, v in overrides.items()})

    return PricingRules(**overrides)


_current_rules: PricingRules | None = None


def get_rules() -> PricingRules:
    """Return the active pricing rules. Defaults to the environment-derived rule set."""
    global _current_rules
    if _current_rules is None:
        _current_rules = rules_from_env()
    return _current_rules


def set_rules(rules: PricingRules) -> None:
    """Override the active pricing rules (useful for tests)."""
    global _current_rules
    _current_rules = rules


def reset_rules() -> None:
    """Reset to the default rule set."""
    global _current_rules
    _current_rules = None
