from fastapi import APIRouter
from geosaude.core.registry import get_store

router = APIRouter()


@router.get("/_store_info")
def store_info():
    store = get_store()
    resolver = store.resolver
    return {
        "facility_counts": {k: len(v) for k, v in store.facilities.items()},
        "meta_keys": list(store.meta.keys()),
        "geocoder_provider": type(resolver.primary).__name__,
        "fallback_provider": type(resolver.fallback).__name__,
        "cache_store": type(resolver.store).__name__,
        "memory_cache_size": len(resolver.cache_stats()["keys"]),
        "queue_pending": len(resolver.queue),
        "min_interval_sec": resolver.queue.min_interval,
    }
