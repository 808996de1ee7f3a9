"""Offline postal code resolution.

Known postal codes come from a static table. Anything else is placed near an
anchor for its region (picked by the first digit) with a small offset derived
from the remaining digits, so nearby codes land near each other and the same
code always resolves to the same point.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import ResolutionError
from .models import Coordinate

POSTAL_CODE_PATTERN = re.compile(r"[0-9]{5}")

OFFSET_MODULUS = 20
OFFSET_STEP_DEGREES = 0.02


@dataclass(frozen=True)
class Region:
    label: str
    state: str
    latitude: float
    longitude: float


KNOWN_POSTAL_CODES: dict[str, Coordinate] = {
    "94110": Coordinate(latitude=37.7489, longitude=-122.4215),  # Mission
    "94105": Coordinate(latitude=37.7897, longitude=-122.3995),  # Financial District
    "94107": Coordinate(latitude=37.7697, longitude=-122.3933),  # Potrero Hill
    "94103": Coordinate(latitude=37.7726, longitude=-122.4099),  # SoMa
    "94102": Coordinate(latitude=37.7797, longitude=-122.4186),  # Tenderloin
    "10001": Coordinate(latitude=40.7506, longitude=-73.9972),
    "20001": Coordinate(latitude=38.9100, longitude=-77.0180),
    "60601": Coordinate(latitude=41.8858, longitude=-87.6181),
    "78701": Coordinate(latitude=30.2711, longitude=-97.7437),
    "80202": Coordinate(latitude=39.7527, longitude=-104.9993),
}

REGIONS: dict[str, Region] = {
    "0": Region("New England", "CT", 41.7658, -72.6734),
    "1": Region("Metro", "NY", 40.7128, -74.0060),
    "2": Region("Capital", "DC", 38.9072, -77.0369),
    "3": Region("Coastal", "FL", 28.5383, -81.3792),
    "4": Region("Great Lakes", "IN", 39.7684, -86.1581),
    "5": Region("Midwestern", "MI", 42.7325, -84.5555),
    "6": Region("Central", "MO", 38.6270, -90.1994),
    "7": Region("Southern", "TX", 32.7767, -96.7970),
    "8": Region("Mountain", "CO", 39.7392, -104.9903),
    "9": Region("West Coast", "CA", 37.7749, -122.4194),
}


def is_postal_code(value: str | None) -> bool:
    return value is not None and POSTAL_CODE_PATTERN.fullmatch(value) is not None


def _require_postal_code(postal_code: str) -> str:
    if not is_postal_code(postal_code):
        raise ResolutionError(f"Could not find coordinates for postal code {postal_code!r}.")
    return postal_code


def region_for_postal_code(postal_code: str) -> Region:
    code = _require_postal_code(postal_code)
    return REGIONS[code[0]]


def _offset(digits: str) -> float:
    return ((int(digits) % OFFSET_MODULUS) - OFFSET_MODULUS // 2) * OFFSET_STEP_DEGREES


def resolve_postal_code(postal_code: str) -> Coordinate:
    """Return the coordinate for a 5-digit postal code.

    Raises ResolutionError for anything that is not five ASCII digits.
    """

    code = _require_postal_code(postal_code)
    known = KNOWN_POSTAL_CODES.get(code)
    if known is not None:
        return known

    region = REGIONS[code[0]]
    return Coordinate(
        latitude=round(region.latitude + _offset(code[1:3]), 7),
        longitude=round(region.longitude + _offset(code[3:5]), 7),
    )


def state_for_postal_code(postal_code: str) -> str:
    return region_for_postal_code(postal_code).state


def place_name_for_postal_code(postal_code: str) -> str:
    """Generate a plausible town name, e.g. 'West Coast burg' for 94150."""

    code = _require_postal_code(postal_code)
    region = REGIONS[code[0]]
    tail = int(code[3:5])
    if tail < 20:
        suffix = "ville"
    elif tail < 40:
        suffix = "town"
    elif tail < 60:
        suffix = "burg"
    elif tail < 80:
        suffix = "field"
    else:
        suffix = "city"
    return f"{region.label} {suffix}"
