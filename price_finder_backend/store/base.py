from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Literal, Protocol

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

SortOrder = Literal["asc", "desc"]


def observation_sort_key(observation: PriceObservation) -> tuple:
    """Order by timestamp; equal timestamps fall back to the id, so the newer write wins."""

    return (observation.recorded_at, observation.id)


def build_search_view(
    vendor: Vendor,
    history_newest_first: Sequence[PriceObservation],
) -> StoreWithPrices:
    latest = history_newest_first[0] if history_newest_first else None
    return StoreWithPrices(
        **vendor.model_dump(),
        current_price=latest.price if latest else None,
        price_history=list(history_newest_first),
    )


class VendorRepository(Protocol):
    """Storage contract shared by the in-memory and Redis backends."""

    async def create_vendor(self, vendor: VendorCreate) -> Vendor: ...

    async def get_vendor(self, vendor_id: int) -> Vendor | None: ...

    async def list_vendors(self) -> list[Vendor]: ...

    async def create_price_observation(self, observation: PriceObservationCreate) -> PriceObservation: ...

    async def list_price_observations(self, store_id: int | None = None) -> list[PriceObservation]:
        """Every observation (or every one for ``store_id``), newest first, across egg types."""
        ...

    async def get_price_history(
        self,
        store_id: int,
        egg_type: EggType,
        *,
        order: SortOrder = "desc",
    ) -> list[PriceObservation]: ...

    async def get_latest_price(self, store_id: int, egg_type: EggType) -> PriceObservation | None: ...

    async def get_latest_prices(
        self,
        store_ids: Iterable[int],
        egg_type: EggType,
    ) -> dict[int, PriceObservation | None]:
        """Latest price per store id, None where a store has no price for ``egg_type``."""
        ...

    async def get_search_views(self, store_ids: Iterable[int], egg_type: EggType) -> list[StoreWithPrices]: ...

    async def claim_backfill(self, postal_code: str) -> bool:
        """Reserve demo-store creation for ``postal_code``.

        Returns True for exactly one caller across every process sharing the
        store, until the claim is released by ``finish_backfill(..., success=False)``.
        """
        ...

    async def finish_backfill(self, postal_code: str, *, success: bool) -> None: ...

    async def is_backfill_complete(self, postal_code: str) -> bool: ...

    # Accounts are written by the registration path, which is not served over HTTP.
    async def create_user(self, user: UserCreate) -> User: ...

    async def get_user(self, user_id: int) -> User | None: ...

    async def get_user_by_username(self, username: str) -> User | None: ...
