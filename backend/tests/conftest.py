# backend/tests/conftest.py

"""Shared pytest fixtures: in-memory database, seeded rows and an HTTP client."""

import os

# Must be set before pricecompare.core.config is imported
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SEED_SAMPLE_DATA", "false")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from collections.abc import AsyncIterator
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from pricecompare.core.database import build_engine, build_sessionmaker, get_db, init_db, utcnow
from pricecompare.main import app
from pricecompare.models import (
    Discount,
    DiscountType,
    ObservationSource,
    PriceObservation,
    Product,
    Store,
    StoreStatus,
)
from pricecompare.services.observation_store import ObservationStore


@pytest.fixture
async def engine():
    """Fresh in-memory SQLite database per test."""
    test_engine = build_engine(
        "sqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store_repo(db) -> ObservationStore:
    return ObservationStore(db)


@pytest.fixture
def make_store(session_factory):
    """Insert a store and return its id."""

    async def _make(
        name: str = "K-Market Testi",
        latitude: str = "60.4518000",
        longitude: str = "22.2666000",
        status: StoreStatus = StoreStatus.ACTIVE,
    ) -> int:
        async with session_factory() as session:
            store = Store(
                name=name,
                address=f"{name} street 1",
                latitude=Decimal(latitude),
                longitude=Decimal(longitude),
                status=status,
            )
            session.add(store)
            await session.commit()
            return store.id

    return _make


@pytest.fixture
def make_discount(session_factory):
    """Insert a discount valid around now unless told otherwise."""

    async def _make(
        store_id: int,
        value: str = "10",
        product_id=None,
        discount_type: DiscountType = DiscountType.PERCENTAGE,
        valid_from: datetime = None,
        valid_until: datetime = None,
        is_active: bool = True,
    ) -> int:
        now = utcnow()
        async with session_factory() as session:
            discount = Discount(
                store_id=store_id,
                product_id=product_id,
                discount_type=discount_type,
                value=Decimal(value),
                valid_from=valid_from or now - timedelta(days=1),
                valid_until=valid_until or now + timedelta(days=1),
                is_active=is_active,
            )
            session.add(discount)
            await session.commit()
            return discount.id

    return _make


@pytest.fixture
async def client(session_factory) -> AsyncIterator[AsyncClient]:
    """HTTP client bound to the app with get_db pointed at the test database."""

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


class FakeObservationStore:
    """In-memory stand-in for ObservationStore used by engine tests.

    find_active_discounts deliberately ignores the validity window so the
    resolver's own filtering is exercised.
    """

    def __init__(self, observations=(), discounts=()):
        self.observations = list(observations)
        self.discounts = list(discounts)
        self.observation_calls = []
        self.discount_calls = []

    async def find_active_observations(self, barcode, barcode_type, within=None):
        self.observation_calls.append((barcode, barcode_type, within))
        return [
            o for o in self.observations
            if o.product.barcode == barcode and o.product.barcode_type == barcode_type
        ]

    async def find_active_discounts(self, store_ids, now):
        store_ids = list(store_ids)
        self.discount_calls.append(store_ids)
        return [d for d in self.discounts if d.store_id in store_ids]


@pytest.fixture
def fake_store_cls():
    return FakeObservationStore


@pytest.fixture
def observation_factory():
    """Build transient PriceObservation rows with product and store attached."""
    product = Product(id=1, barcode="6408430000128", barcode_type="EAN13", name="Maito 1L")
    stores = {}
    counter = {"next": 1}
    base_time = datetime(2026, 10, 18, 12, 0, 0)

    def _make(
        amount: str,
        latitude: float = 60.4518,
        longitude: float = 22.2666,
        store_id=None,
        observed_at: datetime = None,
        observation_id: int = None,
    ) -> PriceObservation:
        store = None
        if store_id is not None:
            store = stores.setdefault(
                store_id,
                Store(id=store_id, name=f"Store {store_id}", latitude=Decimal(str(latitude)),
                      longitude=Decimal(str(longitude)), status=StoreStatus.ACTIVE),
            )
        if observation_id is None:
            observation_id = counter["next"]
        counter["next"] = max(counter["next"], observation_id) + 1
        return PriceObservation(
            id=observation_id,
            product_id=product.id,
            product=product,
            store_id=store_id,
            store=store,
            amount=Decimal(amount),
            currency="EUR",
            latitude=Decimal(str(latitude)),
            longitude=Decimal(str(longitude)),
            source=ObservationSource.STORE_USER if store_id else ObservationSource.SHOPPER,
            confidence=Decimal("1.00") if store_id else Decimal("0.85"),
            is_active=True,
            observed_at=observed_at or base_time,
        )

    return _make
