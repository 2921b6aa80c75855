"""Kitstore shopping context: cart, pricing rules, coupons, persistence and checkout."""
