# tests/conftest.py
import asyncio
import random
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from price_finder_backend.app import create_app
from price_finder_backend.config import Settings
from price_finder_backend.core.models import EggType, PriceObservationCreate, VendorCreate
from price_finder_backend.store.memory_store import InMemoryVendorRepository

MISSION_LATITUDE = 37.7489
MISSION_LONGITUDE = -122.4215


@pytest.fixture
def repository() -> InMemoryVendorRepository:
    """Fresh in-memory repository for every test."""
    return InMemoryVendorRepository()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def base_time() -> datetime:
    return datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_vendor(
    name: str = "Corner Market",
    *,
    zip_code: str = "94110",
    latitude: float = MISSION_LATITUDE,
    longitude: float = MISSION_LONGITUDE,
) -> VendorCreate:
    return VendorCreate(
        name=name,
        address="100 Valencia St",
        city="San Francisco",
        state="CA",
        zip_code=zip_code,
        latitude=latitude,
        longitude=longitude,
        phone="(415) 555-0000",
        website="https://example.com",
        hours="8:00 AM - 8:00 PM",
    )


@pytest.fixture
def vendor_factory():
    return make_vendor


@pytest.fixture
def record_price(repository):
    """Coroutine helper that appends a price observation to the repository fixture."""

    async def _record(store_id: int, egg_type: EggType, price: float, recorded_at: datetime | None = None):
        return await repository.create_price_observation(
            PriceObservationCreate(store_id=store_id, egg_type=egg_type, price=price, recorded_at=recorded_at)
        )

    return _record


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        allow_synthetic_data=False,
        seed_sample_data=False,
        enable_price_refresh=False,
        storage_backend="memory",
    )


@pytest.fixture
async def api_client(repository, test_settings):
    """HTTP client bound to an app that shares the repository fixture."""
    app = create_app(test_settings, repository=repository)
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client


@pytest.fixture
def one_day() -> timedelta:
    return timedelta(days=1)


class FakeRedis:
    """Implements only the commands RedisVendorRepository issues (decode_responses=True semantics).

    With ``yield_on_read`` every read gives up control once, the way a network
    round trip would, so concurrent callers interleave.
    """

    def __init__(self, *, yield_on_read: bool = False) -> None:
        self.yield_on_read = yield_on_read
        self.strings: dict[str, object] = {}
        self.expiry: dict[str, int] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.zsets: dict[str, dict[str, float]] = {}

    async def _round_trip(self) -> None:
        if self.yield_on_read:
            await asyncio.sleep(0)

    async def incr(self, key):
        self.strings[key] = int(self.strings.get(key, 0)) + 1
        return self.strings[key]

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.strings:
            return None
        self.strings[key] = value
        if ex is None:
            self.expiry.pop(key, None)
        else:
            self.expiry[key] = ex
        return True

    async def get(self, key):
        await self._round_trip()
        return self.strings.get(key)

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.strings.pop(key, None) is not None:
                removed += 1
            self.expiry.pop(key, None)
        return removed

    async def hset(self, key, field, value):
        self.hashes.setdefault(key, {})[field] = value
        return 1

    async def hget(self, key, field):
        await self._round_trip()
        return self.hashes.get(key, {}).get(field)

    async def hexists(self, key, field):
        return field in self.hashes.get(key, {})

    async def hvals(self, key):
        await self._round_trip()
        return list(self.hashes.get(key, {}).values())

    async def zadd(self, key, mapping):
        self.zsets.setdefault(key, {}).update(mapping)
        return len(mapping)

    async def zrange(self, key, start, end):
        await self._round_trip()
        members = sorted(self.zsets.get(key, {}).items(), key=lambda item: (item[1], item[0]))
        names = [member for member, _ in members]
        return names[start:] if end == -1 else names[start : end + 1]


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def interleaving_redis() -> FakeRedis:
    """Fake Redis whose reads yield, so two clients race like separate processes."""
    return FakeRedis(yield_on_read=True)
