from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from ..store.base import VendorRepository
from .geocoding import place_name_for_postal_code, state_for_postal_code
from .models import Coordinate, EggType, PriceObservationCreate, Vendor, VendorCreate

logger = logging.getLogger(__name__)

PRICE_JITTER = 0.20


@dataclass(frozen=True)
class SyntheticStoreTemplate:
    name: str
    address: str
    lat_offset: float
    lng_offset: float
    phone: str
    website: str
    hours: str
    base_prices: dict[EggType, float]


SYNTHETIC_STORES: tuple[SyntheticStoreTemplate, ...] = (
    SyntheticStoreTemplate(
        name="Local Grocery",
        address="123 Main Street",
        lat_offset=0.0,
        lng_offset=0.0,
        phone="(555) 123-4567",
        website="https://www.localgrocery.com",
        hours="8:00 AM - 9:00 PM",
        base_prices={EggType.BROWN: 4.29, EggType.WHITE: 3.99},
    ),
    SyntheticStoreTemplate(
        name="Farmers Market",
        address="456 Oak Avenue",
        lat_offset=0.01,
        lng_offset=-0.01,
        phone="(555) 987-6543",
        website="https://www.farmersmarket.com",
        hours="7:00 AM - 6:00 PM",
        base_prices={EggType.BROWN: 4.59, EggType.WHITE: 4.19},
    ),
    SyntheticStoreTemplate(
        name="Organic Essentials",
        address="789 Maple Drive",
        lat_offset=-0.02,
        lng_offset=0.015,
        phone="(555) 345-6789",
        website="https://www.organicstore.com",
        hours="9:00 AM - 8:00 PM",
        base_prices={EggType.BROWN: 4.89, EggType.WHITE: 4.49},
    ),
)


def jittered_price(base: float, rng: random.Random) -> float:
    return round(max(base + rng.uniform(-PRICE_JITTER, PRICE_JITTER), 0.0), 2)


async def create_synthetic_stores(
    repository: VendorRepository,
    *,
    postal_code: str,
    center: Coordinate,
    rng: random.Random,
) -> list[Vendor]:
    """Create the demo stores around ``center`` with one price per egg type each."""

    city = place_name_for_postal_code(postal_code)
    state = state_for_postal_code(postal_code)

    created: list[Vendor] = []
    for template in SYNTHETIC_STORES:
        vendor = await repository.create_vendor(
            VendorCreate(
                name=template.name,
                address=template.address,
                city=city,
                state=state,
                zip_code=postal_code,
                latitude=center.latitude + template.lat_offset,
                longitude=center.longitude + template.lng_offset,
                phone=template.phone,
                website=template.website,
                hours=template.hours,
            )
        )
        for egg_type in EggType:
            await repository.create_price_observation(
                PriceObservationCreate(
                    store_id=vendor.id,
                    egg_type=egg_type,
                    price=jittered_price(template.base_prices[egg_type], rng),
                )
            )
        created.append(vendor)

    logger.info("Created %s synthetic stores for postal code %s", len(created), postal_code)
    return created
