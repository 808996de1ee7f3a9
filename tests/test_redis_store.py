"""Tests for the Redis-backed repository against an in-process stand-in client."""

import pytest

from price_finder_backend.core.errors import ConflictError, NotFoundError
from price_finder_backend.core.models import EggType, PriceObservationCreate, UserCreate
from price_finder_backend.store.redis_store import RedisVendorRepository


@pytest.fixture
def redis_repository(fake_redis):
    return RedisVendorRepository(fake_redis, key_prefix="test")


async def test_vendor_round_trip(redis_repository, vendor_factory):
    created = await redis_repository.create_vendor(vendor_factory("Redis Grocery"))

    assert created.id == 1
    assert await redis_repository.get_vendor(1) == created
    assert await redis_repository.get_vendor(2) is None
    assert await redis_repository.list_vendors() == [created]


async def test_keys_are_namespaced(redis_repository, fake_redis, vendor_factory):
    vendor = await redis_repository.create_vendor(vendor_factory())
    await redis_repository.create_price_observation(
        PriceObservationCreate(store_id=vendor.id, egg_type=EggType.BROWN, price=3.99)
    )

    assert "test:vendors" in fake_redis.hashes
    assert "test:prices:1:brown" in fake_redis.zsets


async def test_unknown_vendor_price_is_rejected_without_writes(redis_repository, fake_redis):
    with pytest.raises(NotFoundError):
        await redis_repository.create_price_observation(
            PriceObservationCreate(store_id=5, egg_type=EggType.WHITE, price=2.99)
        )

    assert fake_redis.zsets == {}
    assert "test:prices:next_id" not in fake_redis.strings


async def test_history_and_latest_with_tie_break(redis_repository, vendor_factory, base_time, one_day):
    vendor = await redis_repository.create_vendor(vendor_factory())
    for price, recorded_at in ((4.00, base_time - one_day), (4.20, base_time), (4.40, base_time)):
        await redis_repository.create_price_observation(
            PriceObservationCreate(store_id=vendor.id, egg_type=EggType.BROWN, price=price, recorded_at=recorded_at)
        )

    newest_first = await redis_repository.get_price_history(vendor.id, EggType.BROWN)
    oldest_first = await redis_repository.get_price_history(vendor.id, EggType.BROWN, order="asc")
    latest = await redis_repository.get_latest_price(vendor.id, EggType.BROWN)

    assert [p.price for p in newest_first] == [4.40, 4.20, 4.00]
    assert [p.price for p in oldest_first] == [4.00, 4.20, 4.40]
    assert latest.price == 4.40
    assert await redis_repository.get_latest_price(vendor.id, EggType.WHITE) is None


async def test_search_views_drop_unknown_ids(redis_repository, vendor_factory):
    vendor = await redis_repository.create_vendor(vendor_factory())
    await redis_repository.create_price_observation(
        PriceObservationCreate(store_id=vendor.id, egg_type=EggType.WHITE, price=3.15)
    )

    views = await redis_repository.get_search_views([77, vendor.id], EggType.WHITE)

    assert [view.id for view in views] == [vendor.id]
    assert views[0].current_price == 3.15
    assert len(await redis_repository.list_price_observations()) == 1


async def test_users(redis_repository):
    user = await redis_repository.create_user(UserCreate(username="clucky", password_hash="h"))

    assert await redis_repository.get_user_by_username("clucky") == user
    assert await redis_repository.get_user(user.id) == user
    with pytest.raises(ConflictError):
        await redis_repository.create_user(UserCreate(username="clucky", password_hash="other"))


async def test_backfill_claim_is_shared_through_redis(fake_redis):
    first = RedisVendorRepository(fake_redis, key_prefix="test")
    second = RedisVendorRepository(fake_redis, key_prefix="test")

    assert await first.claim_backfill("99999") is True
    assert await second.claim_backfill("99999") is False
    assert fake_redis.strings["test:backfill:99999"] == "pending"
    assert fake_redis.expiry["test:backfill:99999"] > 0

    await first.finish_backfill("99999", success=True)

    assert await second.is_backfill_complete("99999") is True
    assert "test:backfill:99999" not in fake_redis.expiry
    assert await second.claim_backfill("99999") is False


async def test_failed_backfill_deletes_the_claim(redis_repository, fake_redis):
    assert await redis_repository.claim_backfill("99999") is True

    await redis_repository.finish_backfill("99999", success=False)

    assert "test:backfill:99999" not in fake_redis.strings
    assert await redis_repository.is_backfill_complete("99999") is False
    assert await redis_repository.claim_backfill("99999") is True
