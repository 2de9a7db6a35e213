# geosaude/api/distances.py
from fastapi import APIRouter, Query, HTTPException
from pydantic import ValidationError

from geosaude.core.config import DEFAULT_RADIUS_KM
from geosaude.core.registry import get_store
from geosaude.schemas.facility import DistanceResponse, FacilityKind, NearbyRecord
from geosaude.schemas.geo import GeoPoint
from geosaude.utils.distance_calc import distance_km, nearest_with_distance, sort_by_distance

router = APIRouter()


def _point(lat: float, lon: float) -> GeoPoint:
    try:
        return GeoPoint(latitude=lat, longitude=lon)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid coordinates ({lat}, {lon}): {e.errors()[0]['msg']}")


@router.get("/distance", response_model=DistanceResponse)
def get_distance(
    lat1: float = Query(..., description="Origin latitude (WGS84)"),
    lon1: float = Query(..., description="Origin longitude (WGS84)"),
    lat2: float = Query(..., description="Destination latitude (WGS84)"),
    lon2: float = Query(..., description="Destination longitude (WGS84)"),
):
    """Straight-line (great-circle) distance in km, rounded to 2 decimals."""
    a, b = _point(lat1, lon1), _point(lat2, lon2)
    return DistanceResponse(
        origin=a.as_tuple(),
        destination=b.as_tuple(),
        distance_km=round(distance_km(a, b), 2),
    )


@router.get("/nearby")
def get_nearby(
    lat: float = Query(..., description="Latitude in WGS84"),
    lon: float = Query(..., description="Longitude in WGS84"),
    radius_km: float = Query(DEFAULT_RADIUS_KM, ge=0, description="Search radius in km"),
    kind: FacilityKind = Query("ubs", description="ubs, ong, equipamento or paciente"),
):
    """
    Active records of `kind` within `radius_km` of (lat, lon), closest first.
    Records without coordinates are never returned.
    """
    center = _point(lat, lon)
    try:
        store = get_store()
        pairs = sort_by_distance(center, store.records(kind), radius_km=radius_km)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "lat": lat,
        "lon": lon,
        "radius_km": radius_km,
        "kind": kind,
        "count": len(pairs),
        "results": [NearbyRecord(record=rec, distance_km=d) for rec, d in pairs],
    }


@router.get("/nearest", response_model=NearbyRecord)
def get_nearest(
    lat: float = Query(..., description="Latitude in WGS84"),
    lon: float = Query(..., description="Longitude in WGS84"),
    kind: FacilityKind = Query("ubs", description="ubs, ong, equipamento or paciente"),
):
    """Closest active record of `kind` (e.g. the patient's reference UBS)."""
    point = _point(lat, lon)
    try:
        found = nearest_with_distance(point, get_store().records(kind))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

    if found is None:
        raise HTTPException(status_code=404, detail=f"No {kind} with coordinates available")
    rec, d = found
    return NearbyRecord(record=rec, distance_km=d)
