"""Customization Fee Rule — surcharge for a personalised (name/number) jersey."""

from shopping.pricing.money import to_money
from shopping.pricing.rules import PricingRules, get_rules


def normalize_customization(customization) -> dict | None:
    """Strip name/number and drop the customization entirely when both are empty.

    Accepts a mapping (``{"name": ..., "number": ...}``), an object with
    ``name``/``number`` attributes, or None.
    """
    if customization is None:
        return None

    if isinstance(customization, dict):
        name = customization.get("name")
        number = customization.get("number")
    else:
        name = getattr(customization, "name", None)
        number = getattr(customization, "number", None)

    name = str(name).strip() if name is not None else ""
    number = str(number).strip() if number is not None else ""

    if not name and not number:
        return None

    normalized = {}
    if name:
        normalized["name"] = name
    if number:
        normalized["number"] = number
    return normalized


def customization_fee(customization, rules: PricingRules | None = None) -> float:
    """Per-unit surcharge for a line carrying ``customization``.

    Evaluated once when a line is created; the result is frozen on the line.
    """
    if normalize_customization(customization) is None:
        return 0.0

    rules = rules or get_rules()
    return to_money(rules.customization_surcharge)
