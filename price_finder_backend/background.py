from __future__ import annotations

import asyncio
import logging
import random
from contextlib import suppress

from .core.models import EggType, PriceObservation, PriceObservationCreate, Vendor
from .store.base import VendorRepository

logger = logging.getLogger(__name__)

MAX_DAILY_CHANGE = 0.05


class PriceRefreshScheduler:
    """Background task that nudges every store's latest prices on a fixed period."""

    def __init__(
        self,
        *,
        repository: VendorRepository,
        refresh_interval: int,
        rng: random.Random | None = None,
    ) -> None:
        self._repository = repository
        self._refresh_interval = max(refresh_interval, 1)
        self._rng = rng or random.Random()
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="price-refresh")

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop_event.set()
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    def _next_price(self, latest: PriceObservation) -> float:
        variation = self._rng.uniform(-MAX_DAILY_CHANGE, MAX_DAILY_CHANGE)
        return round(latest.price * (1 + variation), 2)

    async def _refresh_vendor(self, vendor: Vendor) -> bool:
        latest_prices: dict[EggType, PriceObservation] = {}
        for egg_type in EggType:
            latest = await self._repository.get_latest_price(vendor.id, egg_type)
            if latest is None:
                logger.warning("No existing %s price for store %s. Skipping update.", egg_type.value, vendor.id)
                return False
            latest_prices[egg_type] = latest

        for egg_type, latest in latest_prices.items():
            new_price = self._next_price(latest)
            await self._repository.create_price_observation(
                PriceObservationCreate(store_id=vendor.id, egg_type=egg_type, price=new_price)
            )
            logger.debug("Updated %s price for store %s: %s -> %s", egg_type.value, vendor.id, latest.price, new_price)
        return True

    async def run_once(self) -> int:
        """Refresh every store once; returns how many stores received new prices."""

        try:
            vendors = await self._repository.list_vendors()
        except Exception:
            logger.exception("Failed to list stores for price refresh")
            return 0

        updated = 0
        for vendor in vendors:
            try:
                if await self._refresh_vendor(vendor):
                    updated += 1
            except Exception:
                logger.exception("Error updating prices for store %s", vendor.id)

        logger.info("Updated egg prices for %s of %s stores", updated, len(vendors))
        return updated

    async def _run(self) -> None:
        logger.info("Starting price refresh scheduler (interval=%ss)", self._refresh_interval)
        try:
            while not self._stop_event.is_set():
                await self.run_once()
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(),
                        timeout=self._refresh_interval,
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            logger.info("Price refresh scheduler stopped")
