"""In-memory coupon registry for development and testing.

Holds rules in a dict keyed by upper-cased code. An optional artificial
``delay`` makes lookups slow enough to exercise the "validation in flight"
and timeout paths of the cart store.
"""

import asyncio

from shopping.coupon.port import CouponRegistry, CouponRule


class InMemoryCouponRegistry(CouponRegistry):
    def __init__(self, rules=None, delay: float = 0.0) -> None:
        self.rules: dict[str, CouponRule] = {}
        self.delay = delay
        self.lookups: list[str] = []
        for rule in rules or []:
            self.add(rule)

    def add(self, rule: CouponRule) -> None:
        self.rules[rule.code.upper()] = rule

    def remove(self, code: str) -> bool:
        return self.rules.pop(code.upper(), None) is not None

    async def lookup(self, code: str) -> CouponRule | None:
        self.lookups.append(code)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.rules.get(code.upper())
