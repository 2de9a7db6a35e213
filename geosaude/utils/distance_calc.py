# geosaude/utils/distance_calc.py
from __future__ import annotations
from typing import Any, Iterable, List, Optional, Tuple, TypeVar

from geosaude.schemas.geo import GeoPoint
from geosaude.utils.helpers import coords_of, haversine

R = TypeVar("R")


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in km between two points."""
    return haversine(a.latitude, a.longitude, b.latitude, b.longitude)


def _with_distances(center: GeoPoint, candidates: Iterable[R]) -> Iterable[Tuple[R, float]]:
    """Yield (record, km) pairs, skipping records without coordinates."""
    for record in candidates:
        coords = coords_of(record)
        if coords is None:
            continue
        yield record, haversine(center.latitude, center.longitude, *coords)


def find_within_radius(center: GeoPoint, radius_km: float, candidates: Iterable[R]) -> List[R]:
    """
    Records whose distance to `center` is <= radius_km.

    Records with a missing latitude or longitude are dropped, never treated
    as (0, 0). Order follows the input; use sort_by_distance for ranking.
    """
    return [rec for rec, d in _with_distances(center, candidates) if d <= radius_km]


def find_nearest(point: GeoPoint, candidates: Iterable[R]) -> Optional[R]:
    """
    Closest record to `point` (linear scan). On ties the earlier record in
    input order wins. None when no candidate has coordinates.
    """
    best: Optional[R] = None
    best_d = float("inf")
    for rec, d in _with_distances(point, candidates):
        if d < best_d:
            best, best_d = rec, d
    return best


def sort_by_distance(
    center: GeoPoint,
    candidates: Iterable[R],
    radius_km: float | None = None,
    ndigits: int = 2,
) -> List[Tuple[R, float]]:
    """
    (record, distance_km) pairs sorted ascending by distance.

    Filtering uses the exact distance; the returned distance is rounded to
    `ndigits` for display only.
    """
    pairs = [
        (rec, d)
        for rec, d in _with_distances(center, candidates)
        if radius_km is None or d <= radius_km
    ]
    pairs.sort(key=lambda p: p[1])
    return [(rec, round(d, ndigits)) for rec, d in pairs]


def nearest_with_distance(point: GeoPoint, candidates: Iterable[Any]) -> Optional[Tuple[Any, float]]:
    nearest = find_nearest(point, candidates)
    if nearest is None:
        return None
    return nearest, round(haversine(point.latitude, point.longitude, *coords_of(nearest)), 2)
