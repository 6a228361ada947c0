# cityweather/schemas.py

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class Coordinates(BaseModel):
    lon: float
    lat: float


class CityResponse(BaseModel):
    """Schema for one city lookup match"""
    id: int
    country: str
    name: str
    coords: Coordinates


class StationCreateRequest(BaseModel):
    """Schema for registering a custom weather station"""
    name: str = Field(max_length=120)
    latitude: float
    longitude: float
    altitude: float
    external_id: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Name is required')
        return v

    @model_validator(mode='after')
    def default_external_id(self) -> "StationCreateRequest":
        """Derive the external id from the name when not supplied"""
        if not self.external_id:
            self.external_id = generated_external_id(self.name)
        return self


def generated_external_id(name: str) -> str:
    """'Amsterdam north roof' -> 'AMSTERDAM_NORTH_ROOF'"""
    return "_".join(name.upper().split())


class HealthResponse(BaseModel):
    """Schema for health check response"""
    status: str
    response_time_ms: float
    dependencies: Dict[str, str]


class ErrorResponse(BaseModel):
    """Schema for error responses"""
    detail: Any
    error_type: Optional[str] = None
    field_errors: Optional[list] = None
