"""Pytest fixtures for ordercore tests."""

from datetime import datetime, timedelta

import pytest
from kungfu import Error, Ok

from ordercore import Commerce, CommerceConfig
from ordercore.db import (
    AddressRow,
    CategoryRow,
    CouponRow,
    ProductRow,
    VariantRow,
    WalletRow,
    atomic,
    create_database,
)
from ordercore.gateway import HmacGateway

SECRET = "test-secret"

SHOPPER = "u1"
SHOPPER_ADDRESS = "addr-1"
BROKE_SHOPPER = "u2"
BROKE_ADDRESS = "addr-2"

SHIRT = "v-shirt-m"  # price 1000, offer price 800, stock 5
JEANS = "v-jeans-32"  # price 500, no offer, stock 2
SCARF = "v-scarf"  # product blocked
BAG = "v-bag"  # price 2500, stock 10


async def seed(session_factory) -> None:
    now = datetime.now()
    async with session_factory() as session, session.begin():
        session.add_all([
            CategoryRow(id="c-apparel", name="Apparel"),
            CategoryRow(id="c-accessories", name="Accessories"),
            ProductRow(id="p-shirt", name="Linen Shirt", category_id="c-apparel"),
            ProductRow(id="p-jeans", name="Slim Jeans", category_id="c-apparel"),
            ProductRow(id="p-scarf", name="Silk Scarf", category_id="c-accessories", is_blocked=True),
            ProductRow(id="p-bag", name="Leather Bag", category_id="c-accessories"),
        ])
        await session.flush()
        session.add_all([
            VariantRow(
                id=SHIRT, product_id="p-shirt", size="M", color="White",
                price=1000, discount_price=800, stock=5,
            ),
            VariantRow(id=JEANS, product_id="p-jeans", size="32", price=500, stock=2),
            VariantRow(id=SCARF, product_id="p-scarf", price=300, stock=10),
            VariantRow(id=BAG, product_id="p-bag", price=2500, stock=10),
            AddressRow(
                id=SHOPPER_ADDRESS, user_id=SHOPPER, full_name="Asha Rao", phone="9000000001",
                street="12 MG Road", city="Bengaluru", state="Karnataka", postal_code="560001",
            ),
            AddressRow(
                id=BROKE_ADDRESS, user_id=BROKE_SHOPPER, full_name="Ravi Iyer", phone="9000000002",
                street="4 Park Street", city="Kolkata", state="West Bengal", postal_code="700016",
            ),
            WalletRow(user_id=SHOPPER, balance=2000),
            WalletRow(user_id=BROKE_SHOPPER, balance=500),
            CouponRow(
                code="FLAT100", description="100 off above 1000", discount_type="flat",
                discount_value=100, min_order_amount=1000,
                start_date=now - timedelta(days=1), end_date=now + timedelta(days=30),
            ),
            CouponRow(
                code="TENPCT", description="10% off", discount_type="percentage",
                discount_value=10, min_order_amount=0,
                start_date=now - timedelta(days=1), end_date=now + timedelta(days=30),
            ),
            CouponRow(
                code="LAPSED", description="Ended yesterday", discount_type="flat",
                discount_value=50, min_order_amount=0,
                start_date=now - timedelta(days=10), end_date=now - timedelta(days=1),
            ),
        ])


@pytest.fixture
def gateway():
    return HmacGateway(SECRET)


@pytest.fixture
def config(tmp_path):
    return (
        CommerceConfig()
        .with_database(f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}")
        .with_payment_secret(SECRET)
    )


@pytest.fixture
async def open_commerce(gateway):
    """Factory: a seeded store wired with the given config."""
    opened: list[Commerce] = []

    async def _open(config):
        session_factory, engine = await create_database(config.database_url)
        await seed(session_factory)
        commerce = Commerce(session_factory, config, gateway, engine)
        opened.append(commerce)
        return commerce

    yield _open
    for commerce in opened:
        await commerce.close()


@pytest.fixture
async def commerce(open_commerce, config):
    return await open_commerce(config)


@pytest.fixture
def units(commerce):
    """Run a body against the store in its own unit of work."""
    async def _run(body):
        return await atomic(commerce.session_factory, body)

    return _run


def ok(result):
    """Value of an ``Ok``; fails the test on ``Error``."""
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise AssertionError(f"expected Ok, got {e}")


def err(result):
    """Error value of an ``Error``; fails the test on ``Ok``."""
    match result:
        case Error(e):
            return e
        case Ok(value):
            raise AssertionError(f"expected Error, got {value!r}")
