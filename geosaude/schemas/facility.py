# geosaude/schemas/facility.py
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field

FacilityKind = Literal["ubs", "ong", "equipamento", "paciente"]


class FacilityRecord(BaseModel):
    """
    A registry row that can take part in proximity queries. Accepts the
    Portuguese column names of the registry export (nome, endereco, cep, ativo).
    """

    id: int
    name: str = Field(..., validation_alias=AliasChoices("name", "nome"))
    kind: FacilityKind
    address: str = Field("", validation_alias=AliasChoices("address", "endereco"))
    postal_code: str = Field("", validation_alias=AliasChoices("postal_code", "cep"))
    latitude: float | None = None
    longitude: float | None = None
    active: bool = Field(True, validation_alias=AliasChoices("active", "ativo"))

    model_config = {"extra": "ignore"}

    def __str__(self) -> str:
        return f"{self.kind}:{self.id} {self.name}"


class NearbyRecord(BaseModel):
    record: FacilityRecord
    distance_km: float


class DistanceResponse(BaseModel):
    origin: tuple[float, float]
    destination: tuple[float, float]
    distance_km: float
