"""
Modelo de Cliente y Preferencias

Representa un cliente del CRM tal como lo ve el motor de matching:
presupuesto, intención, zonas de interés, preferencias estructuradas
y el texto libre (notas y comentarios) del que se infieren preferencias.
"""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ClientPropertyPreferences(BaseModel):
    """
    Preferencias estructuradas guardadas en el campo JSON
    property_preferences del cliente.
    """

    model_config = ConfigDict(extra="ignore")

    # Ambientes
    bedrooms_min: Optional[int] = Field(None, ge=0)
    bedrooms_max: Optional[int] = Field(None, ge=0)
    bathrooms_min: Optional[int] = Field(None, ge=0)
    bathrooms_max: Optional[int] = Field(None, ge=0)

    # Superficie
    size_min_sqm: Optional[float] = Field(None, ge=0)
    size_max_sqm: Optional[float] = Field(None, ge=0)

    # Piso
    floor_min: Optional[float] = None
    floor_max: Optional[float] = None
    ground_floor_only: bool = False

    # Requisitos (must-have)
    requires_elevator: bool = False
    requires_parking: bool = False
    requires_pet_friendly: bool = False

    # Preferencias ponderables
    furnished_preference: Optional[str] = Field(
        None, description="NO, PARTIALLY, FULLY o ANY"
    )
    heating_preferences: list[str] = Field(default_factory=list)
    energy_class_min: Optional[str] = Field(None, description="Ej: A_PLUS, A, B, C")
    condition_preferences: list[str] = Field(default_factory=list)

    # Amenities
    amenities_required: list[str] = Field(default_factory=list)
    amenities_preferred: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data):
        # El JSON del CRM guarda null en listas vacías
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class ClientComment(BaseModel):
    """Comentario libre cargado por un agente sobre el cliente."""

    content: Optional[str] = None
    created_at: Optional[datetime] = None


class Client(BaseModel):
    """
    Cliente del CRM con los datos necesarios para matching.

    Es de solo lectura para el motor: nunca se modifica ni se persiste
    desde acá.
    """

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    # Identificadores
    id: str = Field(..., description="UUID del cliente")
    organization_id: Optional[str] = Field(None, description="Organización dueña del registro")
    client_name: str = Field("", description="Nombre visible")
    full_name: Optional[str] = None

    # Intención
    intent: Optional[str] = Field(None, description="BUY, RENT, SELL, LEASE o INVEST")
    purpose: Optional[str] = Field(
        None, description="RESIDENTIAL, COMMERCIAL, LAND, PARKING u OTHER"
    )
    client_status: Optional[str] = Field(None, description="LEAD, ACTIVE, INACTIVE...")

    # Presupuesto
    budget_min: Optional[float] = Field(None, ge=0)
    budget_max: Optional[float] = Field(None, ge=0)

    # Ubicación: lista, string JSON o separado por comas
    areas_of_interest: Optional[Union[list[str], str]] = None

    # Preferencias
    property_preferences: ClientPropertyPreferences = Field(
        default_factory=ClientPropertyPreferences
    )

    # Texto libre para extracción de preferencias
    communication_notes: Optional[Union[dict[str, Any], str]] = None
    comments: list[ClientComment] = Field(default_factory=list)

    @field_validator("property_preferences", "comments", mode="before")
    @classmethod
    def _none_as_empty(cls, value, info):
        if value is None:
            return {} if info.field_name == "property_preferences" else []
        return value
