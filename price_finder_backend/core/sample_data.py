from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone

from ..store.base import VendorRepository
from .models import EggType, PriceObservationCreate, VendorCreate

logger = logging.getLogger(__name__)

HISTORY_DAYS = 30
MIN_SAMPLE_PRICE = 1.99
WHITE_DISCOUNT = 0.20
DAILY_VARIATION = 0.20

SAMPLE_STORES: tuple[tuple[VendorCreate, float], ...] = (
    (
        VendorCreate(
            name="Trader Joe's",
            address="555 Market St",
            city="San Francisco",
            state="CA",
            zip_code="94105",
            latitude=37.7897,
            longitude=-122.3995,
            phone="(415) 555-1234",
            website="https://www.traderjoes.com",
            hours="8:00 AM - 10:00 PM",
        ),
        3.99,
    ),
    (
        VendorCreate(
            name="Safeway",
            address="298 Main Ave",
            city="San Francisco",
            state="CA",
            zip_code="94105",
            latitude=37.7876,
            longitude=-122.3962,
            phone="(415) 555-5678",
            website="https://www.safeway.com",
            hours="7:00 AM - 11:00 PM",
        ),
        4.59,
    ),
    (
        VendorCreate(
            name="Whole Foods",
            address="123 Valencia St",
            city="San Francisco",
            state="CA",
            zip_code="94110",
            latitude=37.7735,
            longitude=-122.4224,
            phone="(415) 555-9012",
            website="https://www.wholefoods.com",
            hours="8:00 AM - 9:00 PM",
        ),
        5.29,
    ),
    (
        VendorCreate(
            name="Rainbow Grocery",
            address="1745 Folsom St",
            city="San Francisco",
            state="CA",
            zip_code="94110",
            latitude=37.7691,
            longitude=-122.4152,
            phone="(415) 555-3456",
            website="https://www.rainbowgrocery.org",
            hours="9:00 AM - 8:00 PM",
        ),
        4.19,
    ),
)


def _sample_price(value: float) -> float:
    return max(MIN_SAMPLE_PRICE, round(value, 2))


async def seed_sample_data(
    repository: VendorRepository,
    *,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> int:
    """Load the sample stores with today's price and a month of daily history.

    Does nothing when the repository already holds stores, so a durable
    backend is seeded only once. Returns the number of stores created.
    """

    existing = await repository.list_vendors()
    if existing:
        logger.info("Repository already holds %s stores; skipping sample data", len(existing))
        return 0

    rng = rng or random.Random()
    today = now or datetime.now(timezone.utc)

    for store, brown_base in SAMPLE_STORES:
        vendor = await repository.create_vendor(store)
        bases = {EggType.BROWN: brown_base, EggType.WHITE: brown_base - WHITE_DISCOUNT}

        for days_ago in range(HISTORY_DAYS + 1):
            recorded_at = today - timedelta(days=days_ago)
            for egg_type, base in bases.items():
                variation = 0.0 if days_ago == 0 else rng.uniform(-DAILY_VARIATION, DAILY_VARIATION)
                await repository.create_price_observation(
                    PriceObservationCreate(
                        store_id=vendor.id,
                        egg_type=egg_type,
                        price=_sample_price(base + variation),
                        recorded_at=recorded_at,
                    )
                )

    logger.info("Seeded %s sample stores with %s days of price history", len(SAMPLE_STORES), HISTORY_DAYS)
    return len(SAMPLE_STORES)
