from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ..core.errors import GENERIC_ERROR_MESSAGE, NotFoundError
from ..core.models import (
    EggType,
    HealthStatus,
    LatestPrices,
    PriceObservation,
    SearchResultsResponse,
    StoreDetails,
    Vendor,
)
from ..core.search import PriceSearchService, parse_egg_type
from ..store.base import VendorRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_repository(request: Request) -> VendorRepository:
    repository = getattr(request.app.state, "repository", None)
    if repository is None:
        logger.error("Store repository is not available; was the app started through its lifespan?")
        raise HTTPException(status_code=500, detail=GENERIC_ERROR_MESSAGE)
    return repository


def get_search_service(request: Request) -> PriceSearchService:
    service = getattr(request.app.state, "search_service", None)
    if service is None:
        logger.error("Search service is not available; was the app started through its lifespan?")
        raise HTTPException(status_code=500, detail=GENERIC_ERROR_MESSAGE)
    return service


async def _load_store(repository: VendorRepository, store_id: str) -> Vendor:
    try:
        vendor_id = int(store_id)
    except ValueError:
        raise NotFoundError("Store not found.") from None
    vendor = await repository.get_vendor(vendor_id)
    if vendor is None:
        raise NotFoundError("Store not found.")
    return vendor


@router.get("/health", response_model=HealthStatus)
async def health() -> HealthStatus:
    return HealthStatus(status="ok", timestamp=datetime.now(timezone.utc))


@router.get("/prices", response_model=SearchResultsResponse)
async def search_prices(
    zip_code: str | None = Query(default=None, alias="zipCode"),
    radius: str | None = Query(default=None),
    egg_type: str | None = Query(default=None, alias="eggType"),
    service: PriceSearchService = Depends(get_search_service),
) -> SearchResultsResponse:
    return await service.search(zip_code, radius, egg_type)


@router.get("/stores/{store_id}/prices", response_model=list[PriceObservation])
async def get_store_price_history(
    store_id: str,
    egg_type: str | None = Query(default=None, alias="eggType"),
    repository: VendorRepository = Depends(get_repository),
) -> list[PriceObservation]:
    parsed_egg_type = parse_egg_type(egg_type)
    vendor = await _load_store(repository, store_id)
    return await repository.get_price_history(vendor.id, parsed_egg_type, order="asc")


@router.get("/stores/{store_id}", response_model=StoreDetails)
async def get_store(
    store_id: str,
    repository: VendorRepository = Depends(get_repository),
) -> StoreDetails:
    vendor = await _load_store(repository, store_id)
    latest = {egg_type: await repository.get_latest_price(vendor.id, egg_type) for egg_type in EggType}
    return StoreDetails(
        **vendor.model_dump(),
        prices=LatestPrices(**{
            egg_type.value: observation.price if observation else None
            for egg_type, observation in latest.items()
        }),
    )
