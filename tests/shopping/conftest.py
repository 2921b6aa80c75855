from datetime import UTC, datetime, timedelta

import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def shopping_bed():
    from shopping.domain import shopping

    bed = DomainFixture(shopping)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(shopping_bed):
    with shopping_bed.domain_context():
        yield


# ---------------------------------------------------------------------------
# Catalogue records
# ---------------------------------------------------------------------------
@pytest.fixture()
def home_jersey():
    from shopping.cart.cart import ProductRecord

    return ProductRecord(
        product_id="prod-fla-home-24",
        product_slug="flamengo-home-24",
        title="Flamengo Home 24/25",
        base_price=89.90,
        image="/images/flamengo-home-24.png",
        team="Flamengo",
        sizes=("P", "M", "G", "GG"),
    )


@pytest.fixture()
def away_jersey():
    from shopping.cart.cart import ProductRecord

    return ProductRecord(
        product_id="prod-pal-away-24",
        product_slug="palmeiras-away-24",
        title="Palmeiras Away 24/25",
        base_price=100.00,
        image="/images/palmeiras-away-24.png",
        team="Palmeiras",
        sizes=("M", "G"),
    )


@pytest.fixture()
def customer_info():
    return {
        "firstName": "Ana",
        "lastName": "Souza",
        "email": "ana.souza@example.com",
        "phone": "(21) 99876-5432",
        "document": "123.456.789-09",
    }


@pytest.fixture()
def shipping_address():
    return {
        "street": "Rua das Laranjeiras",
        "number": "120",
        "complement": "Apto 301",
        "neighborhood": "Laranjeiras",
        "city": "Rio de Janeiro",
        "state": "RJ",
        "zipCode": "22240-003",
    }


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
@pytest.fixture()
def coupon_rules():
    from shopping.coupon.port import CouponRule

    return [
        CouponRule(code="SAVE10", kind="percentage", value=10),
        CouponRule(code="MINUS20", kind="fixed", value=20.0),
        CouponRule(code="BIGSPENDER", kind="fixed", value=1000.0),
        CouponRule(code="PAUSED", kind="fixed", value=15.0, is_active=False),
        CouponRule(code="LASTSEASON", kind="percentage", value=30, expires_at=datetime.now(UTC) - timedelta(days=1)),
    ]


@pytest.fixture()
def registry(coupon_rules):
    from shopping.coupon.fake_registry import InMemoryCouponRegistry

    return InMemoryCouponRegistry(coupon_rules)


@pytest.fixture()
def validator(registry):
    from shopping.coupon.validator import CouponValidator

    return CouponValidator(registry)
