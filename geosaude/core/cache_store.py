# geosaude/core/cache_store.py
"""
Persistent geocoding cache.

The resolver only depends on the CacheStore protocol (get / set /
delete_older_than keyed by address hash). SqlCacheStore is the durable
implementation; InMemoryCacheStore backs tests and local runs without a
database.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import DateTime, Float, String, Text, delete
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from geosaude.schemas.geo import Address, CacheEntry, GeoPoint, GeocodeSource

logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    async def get(self, address_hash: str) -> Optional[CacheEntry]: ...

    async def set(self, entry: CacheEntry) -> CacheEntry: ...

    async def delete_older_than(self, cutoff: datetime) -> int: ...


class InMemoryCacheStore:
    """Dict-backed store; last write wins per hash."""

    def __init__(self):
        self.entries: Dict[str, CacheEntry] = {}

    async def get(self, address_hash: str) -> Optional[CacheEntry]:
        return self.entries.get(address_hash)

    async def set(self, entry: CacheEntry) -> CacheEntry:
        self.entries[entry.address_hash] = entry
        return entry

    async def delete_older_than(self, cutoff: datetime) -> int:
        stale = [k for k, e in self.entries.items() if e.created_at < cutoff]
        for k in stale:
            del self.entries[k]
        return len(stale)


# --- SQL-backed store -----------------------------------------------------------


class Base(DeclarativeBase):
    pass


class GeocodingCacheRow(Base):
    __tablename__ = "geocoding_cache"

    address_hash: Mapped[str] = mapped_column(String(32), primary_key=True)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    postal_code: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    source: Mapped[str] = mapped_column(String(16), nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)


def _utc_naive(dt: datetime) -> datetime:
    # timestamps are stored as naive UTC so comparisons behave the same on sqlite and postgres
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _row_to_entry(row: GeocodingCacheRow) -> CacheEntry:
    coords = None
    if row.latitude is not None and row.longitude is not None:
        coords = GeoPoint(latitude=row.latitude, longitude=row.longitude)
    return CacheEntry(
        address_hash=row.address_hash,
        address=Address(freeform_text=row.address, postal_code=row.postal_code),
        coordinates=coords,
        source=GeocodeSource(row.source),
        error_message=row.error_message,
        created_at=row.created_at.replace(tzinfo=timezone.utc),
    )


class SqlCacheStore:
    def __init__(self, url: str | None = None, engine: AsyncEngine | None = None):
        if engine is None:
            if url is None:
                raise ValueError("SqlCacheStore needs either a database url or an engine")
            engine = create_async_engine(url)
        self.engine = engine
        self._session = async_sessionmaker(engine, expire_on_commit=False)

    async def create_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Geocoding cache table ready (created if missing).")

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def get(self, address_hash: str) -> Optional[CacheEntry]:
        async with self._session() as session:
            row = await session.get(GeocodingCacheRow, address_hash)
            return _row_to_entry(row) if row is not None else None

    async def set(self, entry: CacheEntry) -> CacheEntry:
        coords = entry.coordinates
        values = dict(
            address=entry.address.freeform_text,
            postal_code=entry.address.postal_code,
            latitude=coords.latitude if coords else None,
            longitude=coords.longitude if coords else None,
            source=entry.source.value,
            error_message=entry.error_message,
            created_at=_utc_naive(entry.created_at),
        )
        async with self._session() as session:
            async with session.begin():
                row = await session.get(GeocodingCacheRow, entry.address_hash)
                if row is None:
                    session.add(GeocodingCacheRow(address_hash=entry.address_hash, **values))
                else:
                    for k, v in values.items():
                        setattr(row, k, v)
        return entry

    async def delete_older_than(self, cutoff: datetime) -> int:
        async with self._session() as session:
            async with session.begin():
                result = await session.execute(
                    delete(GeocodingCacheRow).where(GeocodingCacheRow.created_at < _utc_naive(cutoff))
                )
        return result.rowcount or 0
