"""Tests for the background price refresh scheduler."""

import asyncio
import random

import pytest

from price_finder_backend.background import MAX_DAILY_CHANGE, PriceRefreshScheduler
from price_finder_backend.core.models import EggType, PriceObservationCreate
from price_finder_backend.store.memory_store import InMemoryVendorRepository


class FlakyRepository(InMemoryVendorRepository):
    """Repository that fails price reads for one store id."""

    def __init__(self, failing_store_id: int) -> None:
        super().__init__()
        self.failing_store_id = failing_store_id

    async def get_latest_price(self, store_id, egg_type):
        if store_id == self.failing_store_id:
            raise RuntimeError("storage hiccup")
        return await super().get_latest_price(store_id, egg_type)


async def _priced_store(repository, vendor_factory, name, prices):
    vendor = await repository.create_vendor(vendor_factory(name))
    for egg_type, price in prices.items():
        await repository.create_price_observation(
            PriceObservationCreate(store_id=vendor.id, egg_type=egg_type, price=price)
        )
    return vendor


def _scheduler(repository, interval=3600):
    return PriceRefreshScheduler(repository=repository, refresh_interval=interval, rng=random.Random(42))


async def test_run_once_appends_one_price_per_egg_type(repository, vendor_factory):
    vendor = await _priced_store(repository, vendor_factory, "Store", {EggType.BROWN: 4.00, EggType.WHITE: 3.50})

    updated = await _scheduler(repository).run_once()

    assert updated == 1
    for egg_type, previous in ((EggType.BROWN, 4.00), (EggType.WHITE, 3.50)):
        history = await repository.get_price_history(vendor.id, egg_type)
        assert len(history) == 2
        new_price = history[0].price
        assert previous * (1 - MAX_DAILY_CHANGE) - 0.005 <= new_price <= previous * (1 + MAX_DAILY_CHANGE) + 0.005
        assert new_price == round(new_price, 2)


async def test_store_without_baseline_is_skipped(repository, vendor_factory):
    partial = await _priced_store(repository, vendor_factory, "Partial", {EggType.BROWN: 4.00})
    complete = await _priced_store(
        repository, vendor_factory, "Complete", {EggType.BROWN: 4.00, EggType.WHITE: 3.50}
    )

    updated = await _scheduler(repository).run_once()

    assert updated == 1
    assert len(await repository.list_price_observations(partial.id)) == 1
    assert len(await repository.list_price_observations(complete.id)) == 4


async def test_failure_for_one_store_does_not_abort_the_run(vendor_factory, caplog):
    repository = FlakyRepository(failing_store_id=1)
    prices = {EggType.BROWN: 4.00, EggType.WHITE: 3.50}
    await _priced_store(repository, vendor_factory, "Broken", prices)
    healthy = await _priced_store(repository, vendor_factory, "Healthy", prices)

    updated = await _scheduler(repository).run_once()

    assert updated == 1
    assert len(await repository.list_price_observations(healthy.id)) == 4
    assert "Error updating prices for store 1" in caplog.text


async def test_run_once_with_no_stores(repository):
    assert await _scheduler(repository).run_once() == 0


async def test_start_runs_immediately_and_stop_cancels(repository, vendor_factory):
    vendor = await _priced_store(repository, vendor_factory, "Store", {EggType.BROWN: 4.00, EggType.WHITE: 3.50})
    scheduler = _scheduler(repository, interval=3600)

    await scheduler.start()
    for _ in range(100):
        if len(await repository.list_price_observations(vendor.id)) == 4:
            break
        await asyncio.sleep(0.01)

    assert scheduler.running
    await scheduler.stop()

    assert not scheduler.running
    assert len(await repository.list_price_observations(vendor.id)) == 4


async def test_start_is_idempotent(repository):
    scheduler = _scheduler(repository)
    await scheduler.start()
    first_task = scheduler._task
    await scheduler.start()

    assert scheduler._task is first_task
    await scheduler.stop()


async def test_stop_without_start_is_noop(repository):
    await _scheduler(repository).stop()


@pytest.mark.parametrize("interval", [0, -5])
def test_refresh_interval_is_at_least_one_second(repository, interval):
    assert _scheduler(repository, interval=interval)._refresh_interval == 1
