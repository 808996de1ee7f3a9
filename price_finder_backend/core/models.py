from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

COORDINATE_DECIMALS = 7
PRICE_DECIMALS = 2


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are treated as UTC so all observations stay comparable.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class EggType(str, Enum):
    """Product variants a price can be recorded for."""

    WHITE = "white"
    BROWN = "brown"


class Coordinate(BaseModel):
    """Latitude/longitude pair in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)


class VendorCreate(BaseModel):
    """Fields required to register a store; the id is assigned by the repository."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    address: str
    city: str
    state: str
    zip_code: str = Field(alias="zipCode")
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    phone: str | None = None
    website: str | None = None
    hours: str | None = None

    @field_validator("latitude", "longitude")
    @classmethod
    def _fixed_precision(cls, value: float) -> float:
        return round(value, COORDINATE_DECIMALS)

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class Vendor(VendorCreate):
    """A physical store location."""

    id: int


class PriceObservationCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    store_id: int = Field(alias="storeId")
    egg_type: EggType = Field(alias="eggType")
    price: float = Field(ge=0.0)
    recorded_at: datetime | None = Field(default=None, alias="recordedAt")

    @field_validator("price")
    @classmethod
    def _currency_precision(cls, value: float) -> float:
        return round(value, PRICE_DECIMALS)

    @field_validator("recorded_at")
    @classmethod
    def _timezone_aware(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value) if value is not None else None


class PriceObservation(BaseModel):
    """A single timestamped price reading for one store and egg type."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    store_id: int = Field(alias="storeId")
    egg_type: EggType = Field(alias="eggType")
    price: float
    recorded_at: datetime = Field(alias="recordedAt")

    @field_validator("recorded_at")
    @classmethod
    def _timezone_aware(cls, value: datetime) -> datetime:
        return _as_utc(value)


class StoreWithPrices(Vendor):
    """Store joined with its latest price and price history for one egg type."""

    current_price: float | None = Field(default=None, alias="currentPrice")
    price_history: list[PriceObservation] = Field(default_factory=list, alias="priceHistory")


class SearchResultsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    stores: list[StoreWithPrices]
    min_price: float | None = Field(default=None, alias="minPrice")
    max_price: float | None = Field(default=None, alias="maxPrice")


class LatestPrices(BaseModel):
    brown: float | None = None
    white: float | None = None


class StoreDetails(Vendor):
    """Store fields plus the latest price for each egg type."""

    prices: LatestPrices


class HealthStatus(BaseModel):
    status: str
    timestamp: datetime


class UserCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    username: str = Field(min_length=1)
    password_hash: str = Field(alias="passwordHash")


class User(UserCreate):
    id: int
