from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Dict

from ..core.errors import ConflictError, NotFoundError
from ..core.models import (
    EggType,
    PriceObservation,
    PriceObservationCreate,
    StoreWithPrices,
    User,
    UserCreate,
    Vendor,
    VendorCreate,
)
from .base import SortOrder, build_search_view, observation_sort_key

logger = logging.getLogger(__name__)


class InMemoryVendorRepository:
    """Process-local store of vendors, price observations and users.

    Records are immutable and only ever inserted. A single lock serialises
    id assignment and insertion so concurrent tasks cannot interleave a write.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._vendors: Dict[int, Vendor] = {}
        self._prices: Dict[int, PriceObservation] = {}
        self._users: Dict[int, User] = {}
        # postal code -> True once its demo stores are written, False while in progress
        self._backfills: Dict[str, bool] = {}
        self._next_vendor_id = 1
        self._next_price_id = 1
        self._next_user_id = 1

    async def create_vendor(self, vendor: VendorCreate) -> Vendor:
        async with self._lock:
            record = Vendor(id=self._next_vendor_id, **vendor.model_dump())
            self._vendors[record.id] = record
            self._next_vendor_id += 1
        logger.debug("Created vendor %s (%s, %s)", record.id, record.name, record.zip_code)
        return record

    async def get_vendor(self, vendor_id: int) -> Vendor | None:
        return self._vendors.get(vendor_id)

    async def list_vendors(self) -> list[Vendor]:
        return [self._vendors[key] for key in sorted(self._vendors)]

    async def create_price_observation(self, observation: PriceObservationCreate) -> PriceObservation:
        async with self._lock:
            if observation.store_id not in self._vendors:
                raise NotFoundError(f"Store {observation.store_id} not found.")
            record = PriceObservation(
                id=self._next_price_id,
                store_id=observation.store_id,
                egg_type=observation.egg_type,
                price=observation.price,
                recorded_at=observation.recorded_at or datetime.now(timezone.utc),
            )
            self._prices[record.id] = record
            self._next_price_id += 1
        return record

    async def list_price_observations(self, store_id: int | None = None) -> list[PriceObservation]:
        observations = [
            price for price in self._prices.values()
            if store_id is None or price.store_id == store_id
        ]
        return sorted(observations, key=observation_sort_key, reverse=True)

    async def get_price_history(
        self,
        store_id: int,
        egg_type: EggType,
        *,
        order: SortOrder = "desc",
    ) -> list[PriceObservation]:
        history = [
            price for price in self._prices.values()
            if price.store_id == store_id and price.egg_type == egg_type
        ]
        return sorted(history, key=observation_sort_key, reverse=order == "desc")

    async def get_latest_price(self, store_id: int, egg_type: EggType) -> PriceObservation | None:
        history = await self.get_price_history(store_id, egg_type)
        return history[0] if history else None

    async def get_latest_prices(
        self,
        store_ids: Iterable[int],
        egg_type: EggType,
    ) -> dict[int, PriceObservation | None]:
        return {store_id: await self.get_latest_price(store_id, egg_type) for store_id in store_ids}

    async def get_search_views(self, store_ids: Iterable[int], egg_type: EggType) -> list[StoreWithPrices]:
        views: list[StoreWithPrices] = []
        for store_id in store_ids:
            vendor = self._vendors.get(store_id)
            if vendor is None:
                continue
            history = await self.get_price_history(store_id, egg_type)
            views.append(build_search_view(vendor, history))
        return views

    async def claim_backfill(self, postal_code: str) -> bool:
        async with self._lock:
            if postal_code in self._backfills:
                return False
            self._backfills[postal_code] = False
            return True

    async def finish_backfill(self, postal_code: str, *, success: bool) -> None:
        async with self._lock:
            if success:
                self._backfills[postal_code] = True
            else:
                self._backfills.pop(postal_code, None)

    async def is_backfill_complete(self, postal_code: str) -> bool:
        return self._backfills.get(postal_code, False)

    async def create_user(self, user: UserCreate) -> User:
        async with self._lock:
            if any(existing.username == user.username for existing in self._users.values()):
                raise ConflictError(f"Username {user.username!r} is already taken.")
            record = User(id=self._next_user_id, **user.model_dump())
            self._users[record.id] = record
            self._next_user_id += 1
        return record

    async def get_user(self, user_id: int) -> User | None:
        return self._users.get(user_id)

    async def get_user_by_username(self, username: str) -> User | None:
        for user in self._users.values():
            if user.username == username:
                return user
        return None
