from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from pydantic import ValidationError
from redis.asyncio import Redis

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

BACKFILL_PENDING = "pending"
BACKFILL_DONE = "done"
BACKFILL_CLAIM_TTL_SEC = 60


class RedisVendorRepository:
    """Durable repository backed by Redis.

    Vendors and users live as JSON in hashes keyed by id. Price observations
    are kept in one sorted set per (store, egg type), scored by timestamp.
    Ids come from INCR counters, so they are unique across processes.
    """

    def __init__(self, client: Redis, *, key_prefix: str = "eggs") -> None:
        self._redis = client
        self._prefix = key_prefix.rstrip(":")
        self._lock = asyncio.Lock()

    def _key(self, *parts: object) -> str:
        return ":".join([self._prefix, *(str(part) for part in parts)])

    def _history_key(self, store_id: int, egg_type: EggType) -> str:
        return self._key("prices", store_id, EggType(egg_type).value)

    async def create_vendor(self, vendor: VendorCreate) -> Vendor:
        vendor_id = int(await self._redis.incr(self._key("vendors", "next_id")))
        record = Vendor(id=vendor_id, **vendor.model_dump())
        await self._redis.hset(self._key("vendors"), str(vendor_id), record.model_dump_json())
        return record

    async def get_vendor(self, vendor_id: int) -> Vendor | None:
        data = await self._redis.hget(self._key("vendors"), str(vendor_id))
        if not data:
            return None
        return Vendor.model_validate_json(data)

    async def list_vendors(self) -> list[Vendor]:
        entries = await self._redis.hvals(self._key("vendors"))
        vendors: list[Vendor] = []
        for entry in entries:
            try:
                vendors.append(Vendor.model_validate_json(entry))
            except ValidationError:
                logger.warning("Malformed vendor entry in Redis", extra={"entry": entry})
        return sorted(vendors, key=lambda vendor: vendor.id)

    async def create_price_observation(self, observation: PriceObservationCreate) -> PriceObservation:
        async with self._lock:
            exists = await self._redis.hexists(self._key("vendors"), str(observation.store_id))
            if not exists:
                raise NotFoundError(f"Store {observation.store_id} not found.")
            price_id = int(await self._redis.incr(self._key("prices", "next_id")))

        record = PriceObservation(
            id=price_id,
            store_id=observation.store_id,
            egg_type=observation.egg_type,
            price=observation.price,
            recorded_at=observation.recorded_at or datetime.now(timezone.utc),
        )
        await self._redis.zadd(
            self._history_key(record.store_id, record.egg_type),
            {record.model_dump_json(): record.recorded_at.timestamp()},
        )
        return record

    async def _load_history(self, store_id: int, egg_type: EggType) -> list[PriceObservation]:
        entries = await self._redis.zrange(self._history_key(store_id, egg_type), 0, -1)
        history: list[PriceObservation] = []
        for entry in entries:
            try:
                history.append(PriceObservation.model_validate_json(entry))
            except ValidationError:
                logger.warning("Malformed price entry", extra={"store_id": store_id})
        return history

    async def list_price_observations(self, store_id: int | None = None) -> list[PriceObservation]:
        if store_id is None:
            store_ids = [vendor.id for vendor in await self.list_vendors()]
        else:
            store_ids = [store_id]

        observations: list[PriceObservation] = []
        for current_id in store_ids:
            for egg_type in EggType:
                observations.extend(await self._load_history(current_id, egg_type))
        return sorted(observations, key=observation_sort_key, reverse=True)

    async def get_price_history(
        self,
        store_id: int,
        egg_type: EggType,
        *,
        order: SortOrder = "desc",
    ) -> list[PriceObservation]:
        history = await self._load_history(store_id, egg_type)
        return sorted(history, key=observation_sort_key, reverse=order == "desc")

    async def get_latest_price(self, store_id: int, egg_type: EggType) -> PriceObservation | None:
        history = await self._load_history(store_id, egg_type)
        if not history:
            return None
        return max(history, key=observation_sort_key)

    async def get_latest_prices(
        self,
        store_ids: Iterable[int],
        egg_type: EggType,
    ) -> dict[int, PriceObservation | None]:
        return {store_id: await self.get_latest_price(store_id, egg_type) for store_id in store_ids}

    async def get_search_views(self, store_ids: Iterable[int], egg_type: EggType) -> list[StoreWithPrices]:
        views: list[StoreWithPrices] = []
        for store_id in store_ids:
            vendor = await self.get_vendor(store_id)
            if vendor is None:
                continue
            history = await self.get_price_history(store_id, egg_type)
            views.append(build_search_view(vendor, history))
        return views

    async def claim_backfill(self, postal_code: str) -> bool:
        # The pending claim expires so a worker that dies mid-backfill does not block the code forever.
        claimed = await self._redis.set(
            self._key("backfill", postal_code),
            BACKFILL_PENDING,
            nx=True,
            ex=BACKFILL_CLAIM_TTL_SEC,
        )
        return bool(claimed)

    async def finish_backfill(self, postal_code: str, *, success: bool) -> None:
        key = self._key("backfill", postal_code)
        if success:
            await self._redis.set(key, BACKFILL_DONE)
        else:
            await self._redis.delete(key)

    async def is_backfill_complete(self, postal_code: str) -> bool:
        return await self._redis.get(self._key("backfill", postal_code)) == BACKFILL_DONE

    async def create_user(self, user: UserCreate) -> User:
        async with self._lock:
            taken = await self._redis.hexists(self._key("users", "by_name"), user.username)
            if taken:
                raise ConflictError(f"Username {user.username!r} is already taken.")
            user_id = int(await self._redis.incr(self._key("users", "next_id")))
            record = User(id=user_id, **user.model_dump())
            await self._redis.hset(self._key("users"), str(user_id), record.model_dump_json())
            await self._redis.hset(self._key("users", "by_name"), user.username, str(user_id))
        return record

    async def get_user(self, user_id: int) -> User | None:
        data = await self._redis.hget(self._key("users"), str(user_id))
        if not data:
            return None
        return User.model_validate_json(data)

    async def get_user_by_username(self, username: str) -> User | None:
        user_id = await self._redis.hget(self._key("users", "by_name"), username)
        if not user_id:
            return None
        return await self.get_user(int(user_id))
