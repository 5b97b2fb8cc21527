"""
Modelo de Propiedad

Datos de una propiedad del CRM necesarios para matching.
Los campos se mantienen tal cual vienen de la base: la normalización
(pisos, amenities, superficies) vive en matching.normalizers.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Property(BaseModel):
    """Propiedad de solo lectura para el motor de matching."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    # Identificadores
    id: str = Field(..., description="UUID de la propiedad")
    organization_id: Optional[str] = Field(None, description="Organización dueña del registro")
    property_name: str = Field("", description="Nombre visible")

    # Tipo y operación
    property_type: Optional[str] = Field(None, description="APARTMENT, HOUSE, LAND, PARKING...")
    transaction_type: Optional[str] = Field(None, description="SALE, RENTAL, SHORT_TERM, EXCHANGE")
    property_status: Optional[str] = Field(None, description="ACTIVE, PENDING, SOLD...")

    # Precio
    price: Optional[float] = Field(None, ge=0)

    # Ubicación
    area: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    municipality: Optional[str] = None

    # Ambientes
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)

    # Superficie
    size_net_sqm: Optional[float] = Field(None, ge=0)
    size_gross_sqm: Optional[float] = Field(None, ge=0)
    square_feet: Optional[float] = Field(None, ge=0)

    # Características
    floor: Optional[str] = Field(None, description="Texto libre: '3', 'ground', 'penthouse'")
    elevator: Optional[bool] = None
    accepts_pets: Optional[bool] = None
    furnished: Optional[str] = Field(None, description="NO, PARTIALLY o FULLY")
    heating_type: Optional[str] = None
    energy_cert_class: Optional[str] = None
    condition: Optional[str] = Field(
        None, description="EXCELLENT, VERY_GOOD, GOOD o NEEDS_RENOVATION"
    )

    # Amenities: lista de nombres o dict {"pool": true}
    amenities: Optional[Union[list[str], dict[str, bool]]] = None

    # Texto libre
    description: Optional[str] = Field(None, description="Descripción completa del aviso")

    def features_for_matching(self) -> dict:
        """Resumen de atributos que se le pasa al LLM junto a la descripción."""
        return {
            "type": self.property_type,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "size": self.size_net_sqm,
            "floor": self.floor,
            "elevator": self.elevator,
            "furnished": self.furnished,
            "heating": self.heating_type,
            "condition": self.condition,
            "amenities": self.amenities,
            "price": self.price,
            "area": self.area,
            "municipality": self.municipality,
        }
