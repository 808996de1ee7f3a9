from __future__ import annotations

import asyncio
import logging
import random
import re
from collections import defaultdict
from dataclasses import dataclass

from ..store.base import VendorRepository
from .backfill import create_synthetic_stores
from .errors import InvalidParameterError
from .geo import RADIUS_BUFFER_MILES, within_radius
from .geocoding import is_postal_code, resolve_postal_code
from .models import Coordinate, EggType, SearchResultsResponse, StoreWithPrices, Vendor

logger = logging.getLogger(__name__)

MIN_RADIUS_MILES = 1
MAX_RADIUS_MILES = 20
DEFAULT_RADIUS_MILES = 5
DEFAULT_EGG_TYPE = EggType.BROWN
RADIUS_PATTERN = re.compile(r"[0-9]{1,2}")

BACKFILL_WAIT_SEC = 5.0
BACKFILL_POLL_SEC = 0.05


@dataclass(frozen=True)
class SearchQuery:
    zip_code: str
    radius: int
    egg_type: EggType


def parse_egg_type(value: str | None) -> EggType:
    candidate = (value or DEFAULT_EGG_TYPE.value).lower()
    try:
        return EggType(candidate)
    except ValueError:
        raise InvalidParameterError("eggType", "Invalid egg type. Must be 'white' or 'brown'.") from None


def parse_search_params(
    zip_code: str | None,
    radius: str | int | None,
    egg_type: str | None,
) -> SearchQuery:
    """Validate raw query values, raising InvalidParameterError naming the bad field."""

    if not is_postal_code(zip_code):
        raise InvalidParameterError("zipCode", "Invalid zip code. Must be 5 digits.")

    radius_error = InvalidParameterError(
        "radius",
        f"Invalid radius. Must be between {MIN_RADIUS_MILES} and {MAX_RADIUS_MILES} miles.",
    )
    if radius is None or radius == "":
        radius_value = DEFAULT_RADIUS_MILES
    else:
        raw_radius = str(radius)
        if RADIUS_PATTERN.fullmatch(raw_radius) is None:
            raise radius_error
        radius_value = int(raw_radius)
    if not MIN_RADIUS_MILES <= radius_value <= MAX_RADIUS_MILES:
        raise radius_error

    return SearchQuery(zip_code=zip_code, radius=radius_value, egg_type=parse_egg_type(egg_type))


def summarize_prices(stores: list[StoreWithPrices]) -> tuple[float | None, float | None]:
    prices = [store.current_price for store in stores if store.current_price is not None]
    if not prices:
        return None, None
    return min(prices), max(prices)


class PriceSearchService:
    """Finds stores near a postal code and attaches their egg prices."""

    def __init__(
        self,
        repository: VendorRepository,
        *,
        allow_synthetic_data: bool = False,
        rng: random.Random | None = None,
        backfill_wait_sec: float = BACKFILL_WAIT_SEC,
    ) -> None:
        self._repository = repository
        self._allow_synthetic_data = allow_synthetic_data
        self._rng = rng or random.Random()
        self._backfill_wait_sec = max(backfill_wait_sec, 0.0)
        self._backfill_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def allow_synthetic_data(self) -> bool:
        return self._allow_synthetic_data

    async def _stores_in_radius(self, center: Coordinate, radius: int) -> list[Vendor]:
        vendors = await self._repository.list_vendors()
        limit = radius + RADIUS_BUFFER_MILES
        return [vendor for vendor in vendors if within_radius(center, vendor.coordinate, limit)]

    async def _wait_for_backfill(self, postal_code: str) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._backfill_wait_sec
        while not await self._repository.is_backfill_complete(postal_code):
            if loop.time() >= deadline:
                logger.warning("Timed out waiting for demo stores for %s created elsewhere", postal_code)
                return
            await asyncio.sleep(BACKFILL_POLL_SEC)

    async def _backfill(self, query: SearchQuery, center: Coordinate) -> list[Vendor]:
        # The local lock queues searches in this process; the repository claim
        # decides between processes sharing the same store.
        async with self._backfill_locks[query.zip_code]:
            nearby = await self._stores_in_radius(center, query.radius)
            if nearby:
                return nearby

            if not await self._repository.claim_backfill(query.zip_code):
                logger.info("Demo stores for %s are being created by another worker", query.zip_code)
                await self._wait_for_backfill(query.zip_code)
                return await self._stores_in_radius(center, query.radius)

            try:
                await create_synthetic_stores(
                    self._repository,
                    postal_code=query.zip_code,
                    center=center,
                    rng=self._rng,
                )
            except BaseException:
                await self._repository.finish_backfill(query.zip_code, success=False)
                raise
            await self._repository.finish_backfill(query.zip_code, success=True)
            return await self._stores_in_radius(center, query.radius)

    async def search(
        self,
        zip_code: str | None,
        radius: str | int | None,
        egg_type: str | None,
    ) -> SearchResultsResponse:
        query = parse_search_params(zip_code, radius, egg_type)
        center = resolve_postal_code(query.zip_code)

        nearby = await self._stores_in_radius(center, query.radius)
        logger.info("Found %s stores within %s miles of %s", len(nearby), query.radius, query.zip_code)

        if not nearby:
            if not self._allow_synthetic_data:
                return SearchResultsResponse(stores=[], min_price=None, max_price=None)
            logger.info("No stores near %s; creating demo stores", query.zip_code)
            nearby = await self._backfill(query, center)

        stores = await self._repository.get_search_views([vendor.id for vendor in nearby], query.egg_type)
        min_price, max_price = summarize_prices(stores)

        logger.info(
            "Returning %s stores for %s (radius=%s, egg_type=%s)",
            len(stores),
            query.zip_code,
            query.radius,
            query.egg_type.value,
        )
        return SearchResultsResponse(stores=stores, min_price=min_price, max_price=max_price)
