"""Pytest configuration and fixtures."""

import fnmatch
import secrets
from datetime import date, datetime, time, timedelta
from types import SimpleNamespace
from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from salon.database import get_db
from salon.main import app
from salon.models.generated import (
    Base,
    BusinessHours,
    Menus,
    Reservations,
    Staff,
    StoreMenus,
    Stores,
)
from salon.redis_client import get_redis
from salon.schemas.reservations import CustomerInfo
from salon.services.system_settings import SystemSettings

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def enable_sqlite_fk(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_redis() -> MagicMock:
    """Redis stand-in: every cache lookup misses, every write succeeds."""
    redis = MagicMock()
    redis.get.return_value = None
    redis.mget.side_effect = lambda keys: [None] * len(keys)
    redis.exists.return_value = 0
    redis.delete.return_value = 0
    redis.scan_iter.return_value = iter([])
    redis.ping.return_value = True
    return redis


class DictRedis:
    """In-process Redis stand-in backed by a dict (strings and lists only)."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, key):
        return self.data.get(key)

    def mget(self, keys):
        return [self.data.get(key) for key in keys]

    def set(self, key, value, ex=None):
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    def setex(self, key, seconds, value):
        return self.set(key, value, ex=seconds)

    def expire(self, key, seconds):
        self.ttls[key] = seconds
        return key in self.data

    def exists(self, *keys):
        return sum(1 for key in keys if key in self.data)

    def delete(self, *keys):
        deleted = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                deleted += 1
            self.ttls.pop(key, None)
        return deleted

    def scan_iter(self, match="*"):
        return iter([key for key in list(self.data) if fnmatch.fnmatch(key, match)])

    def rpush(self, key, *values):
        self.data.setdefault(key, []).extend(values)
        return len(self.data[key])

    def ping(self):
        return True

    def pipeline(self):
        return _DictPipeline(self)


class _DictPipeline:

    def __init__(self, redis: DictRedis):
        self.redis = redis
        self.calls = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self
        return queue

    def execute(self):
        results = [getattr(self.redis, name)(*args, **kwargs) for name, args, kwargs in self.calls]
        self.calls = []
        return results


@pytest.fixture
def dict_redis() -> DictRedis:
    """Redis stand-in that keeps what is written, so cache hits are real."""
    return DictRedis()


@pytest.fixture(scope="function")
def client(db_session: Session, fake_redis: MagicMock) -> Generator[TestClient, None, None]:
    """Create a test client with database and Redis overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: fake_redis
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def system_settings() -> SystemSettings:
    return SystemSettings(timezone="Asia/Tokyo", cancel_deadline_hours=24, booking_range_days=90)


@pytest.fixture
def booking_day(system_settings: SystemSettings) -> date:
    """A date a week ahead in salon-local time."""
    return system_settings.now().date() + timedelta(days=7)


@pytest.fixture
def now(booking_day: date) -> datetime:
    """A fixed 'now' two days before booking_day."""
    return datetime.combine(booking_day - timedelta(days=2), time(9, 0))


@pytest.fixture
def salon(db_session: Session) -> SimpleNamespace:
    """
    One store open 10:00-19:00 every day, a 60 minute menu priced 6000 + 10%
    tax, and two staff members (Aki before Ben in display order).
    """
    store = Stores(name="Shibuya", email="shibuya@example.com")
    db_session.add(store)
    db_session.flush()

    for day in range(7):
        db_session.add(BusinessHours(
            store_id=store.id,
            day_of_week=day,
            open_time="10:00",
            close_time="19:00",
            is_open=1,
        ))

    menu = Menus(name="Body Care 60min", duration=60, price=6000, tax_rate=0.1)
    db_session.add(menu)
    db_session.flush()
    db_session.add(StoreMenus(store_id=store.id, menu_id=menu.id))

    aki = Staff(store_id=store.id, name="Aki", display_order=0)
    ben = Staff(store_id=store.id, name="Ben", display_order=1)
    db_session.add_all([aki, ben])
    db_session.commit()

    for obj in (store, menu, aki, ben):
        db_session.refresh(obj)

    return SimpleNamespace(store=store, menu=menu, aki=aki, ben=ben)


@pytest.fixture
def customer() -> CustomerInfo:
    return CustomerInfo(
        customer_name="Hanako Sato",
        customer_email="hanako@example.com",
        customer_phone="090-1234-5678",
    )


@pytest.fixture
def make_reservation(db_session: Session, salon: SimpleNamespace):
    """Insert a reservation row directly, bypassing availability checks."""
    def _make(start: datetime, minutes: int = 60, staff=None, status: str = "reserved", **kw):
        staff = staff or salon.aki
        values = dict(
            store_id=salon.store.id,
            menu_id=salon.menu.id,
            staff_id=staff.id,
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
            customer_name="Existing Customer",
            customer_email="existing@example.com",
            customer_phone="03-0000-0000",
            cancel_token=secrets.token_urlsafe(16),
            status=status,
            original_price=6600,
            discount_amount=0,
            final_price=6600,
        )
        values.update(kw)
        reservation = Reservations(**values)
        db_session.add(reservation)
        db_session.commit()
        db_session.refresh(reservation)
        return reservation

    return _make
