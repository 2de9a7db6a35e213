# geosaude/utils/providers.py
"""
Outbound geocoding providers.

Both providers raise ProviderUnavailable for transient failures (non-2xx,
network, bad payload) and return None for an explicit "not found". The
resolver decides what to do with either.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp
from geopy.adapters import AioHTTPAdapter
from geopy.exc import GeopyError
from geopy.geocoders import Nominatim
from pydantic import ValidationError

from geosaude.core.config import (
    GEOCODER_COUNTRY_CODE,
    GEOCODER_DOMAIN,
    GEOCODER_PRIMARY_TIMEOUT_SEC,
    GEOCODER_SCHEME,
    GEOCODER_USER_AGENT,
    GEOCODER_FALLBACK_TIMEOUT_SEC,
    VIACEP_URL,
)
from geosaude.core.errors import ProviderUnavailable
from geosaude.schemas.geo import GeoPoint, PostalAddress

logger = logging.getLogger(__name__)


class NominatimProvider:
    """Free-text search against Nominatim through geopy's async adapter."""

    name = "nominatim"

    def __init__(
        self,
        user_agent: str = GEOCODER_USER_AGENT,
        domain: str = GEOCODER_DOMAIN,
        scheme: str = GEOCODER_SCHEME,
        timeout: float = GEOCODER_PRIMARY_TIMEOUT_SEC,
    ):
        self.geolocator = Nominatim(
            user_agent=user_agent,
            timeout=timeout,
            domain=domain,
            scheme=scheme,
            adapter_factory=AioHTTPAdapter,
        )

    async def __aenter__(self) -> NominatimProvider:
        await self.geolocator.__aenter__()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.geolocator.__aexit__(*exc)

    async def search(self, query: str, country_code: str = GEOCODER_COUNTRY_CODE) -> Optional[GeoPoint]:
        try:
            loc = await self.geolocator.geocode(
                query,
                exactly_one=True,
                country_codes=country_code,
                addressdetails=True,
            )
        except GeopyError as e:
            raise ProviderUnavailable(self.name, f"{type(e).__name__}: {e}") from e

        if loc is None:
            return None
        try:
            return GeoPoint(latitude=float(loc.latitude), longitude=float(loc.longitude))
        except (TypeError, ValueError) as e:
            raise ProviderUnavailable(self.name, f"unparseable coordinates: {e}") from e


class ViaCepProvider:
    """CEP -> structured address (street, neighborhood, city, state)."""

    name = "viacep"

    def __init__(
        self,
        url_template: str = VIACEP_URL,
        timeout: float = GEOCODER_FALLBACK_TIMEOUT_SEC,
        session: aiohttp.ClientSession | None = None,
    ):
        self.url_template = url_template
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        # created lazily so the provider can be built outside a running loop
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def __aenter__(self) -> ViaCepProvider:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def lookup(self, cep: str) -> Optional[PostalAddress]:
        url = self.url_template.format(cep=cep)
        try:
            async with self.session.get(url) as resp:
                if resp.status != 200:
                    raise ProviderUnavailable(self.name, f"HTTP {resp.status}")
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ProviderUnavailable(self.name, f"{type(e).__name__}: {e}") from e

        if not isinstance(data, dict):
            raise ProviderUnavailable(self.name, "unexpected payload")
        if data.get("erro") in (True, "true"):
            return None
        try:
            return PostalAddress.model_validate(data)
        except ValidationError as e:
            raise ProviderUnavailable(self.name, f"unexpected payload: {e.error_count()} invalid field(s)") from e
