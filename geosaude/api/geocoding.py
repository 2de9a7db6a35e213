# geosaude/api/geocoding.py
from typing import List

from fastapi import APIRouter, Body, HTTPException, Query

from geosaude.core.config import GEOCODER_CACHE_MAX_AGE_DAYS
from geosaude.core.registry import get_store
from geosaude.schemas.geo import Address, GeocodeResult

router = APIRouter(prefix="/geocode")


@router.post("", response_model=GeocodeResult)
async def geocode(address: Address = Body(..., description='{"address": "...", "cep": "NNNNN-NNN"}')):
    """
    Resolve one address. An unresolvable address is not an HTTP error: the
    result simply has source="error" and null coordinates.
    """
    if not address.freeform_text.strip() and not address.postal_code.strip():
        raise HTTPException(status_code=400, detail="Must provide 'address' and/or 'cep'.")
    return await get_store().resolver.geocode(address)


@router.post("/batch", response_model=List[GeocodeResult])
async def geocode_batch(addresses: List[Address] = Body(..., description="Addresses to geocode, in order")):
    """Geocode a list (e.g. rows of an imported sheet); output keeps input order."""
    return await get_store().resolver.batch_geocode(addresses)


@router.get("/cache/stats")
def cache_stats():
    return get_store().resolver.cache_stats()


@router.delete("/cache/memory")
def clear_memory_cache():
    get_store().resolver.clear_memory_cache()
    return {"cleared": True}


@router.delete("/cache")
async def clear_old_cache(
    days_old: int = Query(GEOCODER_CACHE_MAX_AGE_DAYS, ge=0, description="Purge entries older than this"),
):
    try:
        removed = await get_store().resolver.clear_old_cache(days_old)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"removed": removed, "days_old": days_old}
