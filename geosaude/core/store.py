# geosaude/core/store.py
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from geosaude.core.cache_store import CacheStore, SqlCacheStore
from geosaude.schemas.facility import FacilityRecord
from geosaude.utils.geocode import GeocodingResolver


@dataclass(frozen=True)
class DataStore:
    resolver: GeocodingResolver
    facilities: Dict[str, List[FacilityRecord]]
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def cache_store(self) -> CacheStore:
        return self.resolver.store

    def records(self, kind: Optional[str] = None, active_only: bool = True) -> List[FacilityRecord]:
        """Facility records of one kind (or all kinds), optionally active only."""
        kinds = [kind] if kind else list(self.facilities)
        out = []
        for k in kinds:
            out.extend(r for r in self.facilities.get(k, []) if r.active or not active_only)
        return out

    # ---- Lifecycle of the resolver's collaborators ---------------------------
    async def startup(self) -> None:
        if isinstance(self.cache_store, SqlCacheStore):
            await self.cache_store.create_tables()

    async def shutdown(self) -> None:
        for provider in (self.resolver.primary, self.resolver.fallback):
            aexit = getattr(provider, "__aexit__", None)
            if aexit is not None:
                await aexit(None, None, None)
        if isinstance(self.cache_store, SqlCacheStore):
            await self.cache_store.dispose()
