import re
import hashlib
from math import radians, sin, cos, sqrt, atan2, isnan
from typing import Any, Mapping

from geosaude.schemas.geo import Address

EARTH_RADIUS_KM = 6371.0

CEP_PATTERN = re.compile(r"^\d{5}-?\d{3}$")


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return distance in kilometers between two lat/lon points."""
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)

    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2) ** 2
    # clamp: rounding can push `a` a hair past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def normalize(text: str | None) -> str:
    return (text or "").strip().lower()


def address_hash(address: Address) -> str:
    """
    Deterministic cache key for an address: md5 of "text|cep", both
    lowercased and trimmed.
    """
    text = f"{normalize(address.freeform_text)}|{normalize(address.postal_code)}"
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def clean_postal_code(cep: str | None) -> str:
    """Strip everything that is not a digit ("70390-125 " -> "70390125")."""
    return re.sub(r"\D", "", cep or "")


def is_valid_postal_code(cep: str | None) -> bool:
    return bool(CEP_PATTERN.match((cep or "").strip()))


def coords_of(record: Any) -> tuple[float, float] | None:
    """
    Pull (lat, lon) out of a record that is either a mapping or an object
    with latitude/longitude attributes. Missing, None or NaN -> None.
    """
    if isinstance(record, Mapping):
        lat, lon = record.get("latitude"), record.get("longitude")
    else:
        lat, lon = getattr(record, "latitude", None), getattr(record, "longitude", None)

    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError):
        return None
    if isnan(lat) or isnan(lon):
        return None
    return lat, lon
