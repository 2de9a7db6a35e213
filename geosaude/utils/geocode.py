# geosaude/utils/geocode.py
"""
Address -> coordinates resolution.

Lookup order: memory cache, persistent cache, Nominatim (queued), then the
ViaCEP fallback, which derives a better address from the CEP and asks
Nominatim once more. Whatever happens, callers get a GeocodeResult back;
failures are cached too so an unresolvable address costs one round-trip.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Sequence

from cachetools import TTLCache

from geosaude.core.cache_store import CacheStore
from geosaude.core.config import (
    GEOCODER_BATCH_SIZE,
    GEOCODER_BATCH_STAGGER_SEC,
    GEOCODER_CACHE_MAX_AGE_DAYS,
    GEOCODER_CACHE_SIZE,
    GEOCODER_CACHE_TTL_SEC,
    GEOCODER_COUNTRY,
    GEOCODER_COUNTRY_CODE,
    GEOCODER_FALLBACK_TIMEOUT_SEC,
    GEOCODER_MIN_INTERVAL_SEC,
    GEOCODER_PRIMARY_TIMEOUT_SEC,
)
from geosaude.core.errors import GeocodingError, InvalidPostalCode, ProviderUnavailable
from geosaude.core.request_queue import RateLimitedQueue
from geosaude.schemas.geo import (
    Address,
    CacheEntry,
    GeocodeResult,
    GeocodeSource,
    GeoPoint,
    PostalAddress,
)
from geosaude.utils.helpers import address_hash, clean_postal_code, is_valid_postal_code

logger = logging.getLogger(__name__)

NOT_GEOCODED = "could not geocode address"


class PrimaryProvider(Protocol):
    async def search(self, query: str, country_code: str = ...) -> Optional[GeoPoint]: ...


class FallbackProvider(Protocol):
    async def lookup(self, cep: str) -> Optional[PostalAddress]: ...


class GeocodingResolver:
    def __init__(
        self,
        primary: PrimaryProvider,
        fallback: FallbackProvider,
        store: CacheStore,
        *,
        min_interval: float = GEOCODER_MIN_INTERVAL_SEC,
        primary_timeout: float = GEOCODER_PRIMARY_TIMEOUT_SEC,
        fallback_timeout: float = GEOCODER_FALLBACK_TIMEOUT_SEC,
        country: str = GEOCODER_COUNTRY,
        country_code: str = GEOCODER_COUNTRY_CODE,
        cache_size: int = GEOCODER_CACHE_SIZE,
        cache_ttl: float = GEOCODER_CACHE_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.primary = primary
        self.fallback = fallback
        self.store = store
        self.primary_timeout = primary_timeout
        self.fallback_timeout = fallback_timeout
        self.country = country
        self.country_code = country_code
        self._sleep = sleep
        self._cache: TTLCache = TTLCache(maxsize=cache_size, ttl=cache_ttl)
        self.queue = RateLimitedQueue(min_interval, clock=clock, sleep=sleep)

    # ---- Public API -----------------------------------------------------------

    async def geocode(self, address: Address) -> GeocodeResult:
        """Resolve one address. Never raises."""
        try:
            return await self._resolve(address)
        except Exception as e:
            # last line of defence; everything expected is handled in _resolve
            logger.error(f"Unexpected error geocoding {address}: {e}", exc_info=True)
            return GeocodeResult.failure(address, f"{NOT_GEOCODED}: {e}")

    async def batch_geocode(
        self,
        addresses: Sequence[Address],
        chunk_size: int = GEOCODER_BATCH_SIZE,
        stagger: float = GEOCODER_BATCH_STAGGER_SEC,
    ) -> List[GeocodeResult]:
        """
        Geocode many addresses, same length and order as the input.

        Each chunk is fired concurrently but every provider call still goes
        through the shared queue, so dispatch stays at one per min_interval.
        """
        results: List[GeocodeResult] = []
        total = len(addresses)
        logger.info(f"Starting batch geocoding for {total} addresses (chunks of {chunk_size})")

        for start in range(0, total, chunk_size):
            chunk = addresses[start : start + chunk_size]
            outcomes = await asyncio.gather(
                *(self._staggered(addr, i * stagger) for i, addr in enumerate(chunk)),
                return_exceptions=True,
            )
            for addr, outcome in zip(chunk, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(f"Error geocoding {addr}: {outcome}")
                    outcome = GeocodeResult.failure(addr, f"processing error: {outcome}")
                results.append(outcome)
            logger.info(f"Geocoding progress: {len(results)}/{total}")

        if total:
            ok = sum(1 for r in results if r.ok)
            logger.info(f"Batch geocoding completed: {ok / total * 100:.1f}% success rate ({ok}/{total})")
        return results

    async def clear_old_cache(self, days_old: int = GEOCODER_CACHE_MAX_AGE_DAYS) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days_old)
        removed = await self.store.delete_older_than(cutoff)
        logger.info(f"Removed {removed} geocoding cache entries older than {days_old} days")
        return removed

    def clear_memory_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self) -> dict:
        return {"size": len(self._cache), "keys": list(self._cache.keys())}

    # ---- Resolution chain ---------------------------------------------------

    async def _staggered(self, address: Address, delay: float) -> GeocodeResult:
        if delay > 0:
            await self._sleep(delay)
        return await self.geocode(address)

    async def _resolve(self, address: Address) -> GeocodeResult:
        key = address_hash(address)

        if key in self._cache:
            return self._cache[key]

        cached = await self._read_store(key)
        if cached is not None:
            result = cached.to_result()
            self._cache[key] = result
            return result

        query = f"{address.freeform_text}, {address.postal_code}, {self.country}"
        try:
            coords = await self._search_primary(query)
        except ProviderUnavailable as e:
            logger.warning(f"Primary geocoder failed for {address}: {e}")
            coords = None
        except Exception as e:
            logger.warning(f"Primary geocoder raised unexpectedly for {address}: {e!r}", exc_info=True)
            coords = None

        if coords is not None:
            result = GeocodeResult(address=address, coordinates=coords, source=GeocodeSource.PRIMARY)
        else:
            result = await self._try_fallback(address)

        await self._remember(key, result)
        return result

    async def _search_primary(self, query: str) -> Optional[GeoPoint]:
        """Queued, timeout-bounded primary lookup. Never checks the caches."""

        async def job() -> Optional[GeoPoint]:
            try:
                return await asyncio.wait_for(
                    self.primary.search(query, country_code=self.country_code),
                    timeout=self.primary_timeout,
                )
            except asyncio.TimeoutError as e:
                raise ProviderUnavailable("nominatim", f"timed out after {self.primary_timeout}s") from e

        return await self.queue.run(job)

    async def _try_fallback(self, address: Address) -> GeocodeResult:
        try:
            coords, derived = await self._fallback_chain(address.postal_code)
        except GeocodingError as e:
            logger.warning(f"Fallback geocoding failed for {address}: {e}")
            return GeocodeResult.failure(address, f"{NOT_GEOCODED}: {e}")
        except Exception as e:
            logger.warning(f"Fallback geocoding raised unexpectedly for {address}: {e!r}", exc_info=True)
            return GeocodeResult.failure(address, f"{NOT_GEOCODED}: {e!r}")

        logger.info(f"Geocoded {address} through CEP lookup ({derived})")
        return GeocodeResult(address=address, coordinates=coords, source=GeocodeSource.FALLBACK)

    async def _fallback_chain(self, postal_code: str) -> tuple[GeoPoint, str]:
        if not is_valid_postal_code(postal_code):
            raise InvalidPostalCode(f"invalid postal code for fallback: {postal_code!r}")
        cep = clean_postal_code(postal_code)

        # not queued: only the primary calls it triggers go through the lane
        try:
            found = await asyncio.wait_for(self.fallback.lookup(cep), timeout=self.fallback_timeout)
        except asyncio.TimeoutError as e:
            raise ProviderUnavailable("viacep", f"timed out after {self.fallback_timeout}s") from e

        if found is None:
            raise GeocodingError(f"postal code {cep} not found")

        derived = found.to_freeform()
        query = f"{derived}, {postal_code}, {self.country}"
        try:
            coords = await self._search_primary(query)
        except ProviderUnavailable as e:
            raise GeocodingError(f"postal code found but coordinates unavailable ({e})") from e
        if coords is None:
            raise GeocodingError("postal code found but coordinates unavailable")
        return coords, derived

    # ---- Cache plumbing -----------------------------------------------------

    async def _read_store(self, key: str) -> Optional[CacheEntry]:
        try:
            return await self.store.get(key)
        except Exception as e:
            logger.error(f"Persistent cache read failed for {key}: {e}", exc_info=True)
            return None

    async def _remember(self, key: str, result: GeocodeResult) -> None:
        self._cache[key] = result
        try:
            await self.store.set(CacheEntry.from_result(key, result))
        except Exception as e:
            logger.error(f"Persistent cache write failed for {key}: {e}", exc_info=True)
