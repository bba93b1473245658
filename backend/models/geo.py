"""
Modelos Pydantic para coordenadas geograficas.
"""

from pydantic import BaseModel, Field


class Coordinates(BaseModel):
    """Coordenadas geograficas (latitud, longitud)."""

    latitude: float = Field(..., ge=-90, le=90, description="Latitud en grados decimales")
    longitude: float = Field(..., ge=-180, le=180, description="Longitud en grados decimales")

    class Config:
        json_schema_extra = {"example": {"latitude": -23.5505, "longitude": -46.6333}}


class GeofenceResult(BaseModel):
    """Resultado de comparar una posicion observada con la esperada."""

    valid: bool = Field(..., description="La posicion esta dentro de la tolerancia")
    distance_meters: float = Field(..., ge=0, description="Distancia al punto esperado")
    tolerance_meters: float = Field(..., ge=0, description="Tolerancia aplicada")

    @property
    def excess_meters(self) -> float:
        """How far outside the tolerance the observation fell (0 when valid)."""
        return max(0.0, self.distance_meters - self.tolerance_meters)

