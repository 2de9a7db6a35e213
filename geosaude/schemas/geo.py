# geosaude/schemas/geo.py
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


class Address(BaseModel):
    """Free-form address plus Brazilian CEP (``NNNNNNNN`` or ``NNNNN-NNN``)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    freeform_text: str = Field(..., alias="address")
    postal_code: str = Field("", alias="cep")

    def __str__(self) -> str:
        return f"{self.freeform_text} ({self.postal_code})"


class GeocodeSource(str, Enum):
    PRIMARY = "nominatim"
    FALLBACK = "viacep"
    CACHE = "cache"
    ERROR = "error"


class GeocodeResult(BaseModel):
    address: Address
    coordinates: GeoPoint | None = None
    source: GeocodeSource
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.coordinates is not None

    @classmethod
    def failure(cls, address: Address, message: str) -> GeocodeResult:
        return cls(address=address, coordinates=None, source=GeocodeSource.ERROR, error_message=message)


class CacheEntry(BaseModel):
    """One row of the persistent geocoding cache, keyed by ``address_hash``."""

    address_hash: str
    address: Address
    coordinates: GeoPoint | None = None
    source: GeocodeSource
    error_message: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_result(cls, address_hash: str, result: GeocodeResult) -> CacheEntry:
        return cls(
            address_hash=address_hash,
            address=result.address,
            coordinates=result.coordinates,
            source=result.source,
            error_message=result.error_message,
        )

    def to_result(self) -> GeocodeResult:
        # negative entries keep their error label so coordinates stay None iff source is error
        if self.source is GeocodeSource.ERROR:
            return GeocodeResult.failure(self.address, self.error_message or "could not geocode address")
        return GeocodeResult(
            address=self.address,
            coordinates=self.coordinates,
            source=GeocodeSource.CACHE,
            error_message=self.error_message,
        )


class PostalAddress(BaseModel):
    """Structured address as returned by ViaCEP (no coordinates)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    cep: str = ""
    street: str = Field("", alias="logradouro")
    complement: str = Field("", alias="complemento")
    neighborhood: str = Field("", alias="bairro")
    city: str = Field("", alias="localidade")
    state: str = Field("", alias="uf")

    def to_freeform(self) -> str:
        return f"{self.street}, {self.neighborhood}, {self.city}, {self.state}"
