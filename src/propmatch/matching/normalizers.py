"""
Normalizadores de datos para matching.

Llevan los campos heterogéneos del CRM (pisos como texto, amenities
como lista o dict, zonas como JSON o CSV) a una forma comparable.
"""

import json
import re
import unicodedata
from typing import Optional, Union

from propmatch.models import Client, Property

# Pies cuadrados a metros cuadrados
SQFT_TO_SQM = 0.092903

_FLOOR_NAMES = {
    "ground": 0.0,
    "ισόγειο": 0.0,
    "basement": -1.0,
    "υπόγειο": -1.0,
    "penthouse": 99.0,
    "ρετιρέ": 99.0,
    "mezzanine": 0.5,
    "ημιώροφος": 0.5,
}

_LOCATION_PREFIX = re.compile(r"^(city of|municipality of|δημος|νομος)\s*", re.IGNORECASE)
_LOCATION_SUFFIX = re.compile(r"\s*(city|municipality|δημος)$", re.IGNORECASE)

_FURNISHED = {
    "NO": "NO",
    "UNFURNISHED": "NO",
    "NONE": "NO",
    "PARTIALLY": "PARTIALLY",
    "PARTIAL": "PARTIALLY",
    "SEMI": "PARTIALLY",
    "FULLY": "FULLY",
    "FULL": "FULLY",
    "YES": "FULLY",
    "FURNISHED": "FULLY",
}

_HEATING = {
    "AUTONOMOUS": "AUTONOMOUS",
    "INDIVIDUAL": "AUTONOMOUS",
    "CENTRAL": "CENTRAL",
    "COMMUNAL": "CENTRAL",
    "NATURAL_GAS": "NATURAL_GAS",
    "GAS": "NATURAL_GAS",
    "HEAT_PUMP": "HEAT_PUMP",
    "HEATPUMP": "HEAT_PUMP",
    "ELECTRIC": "ELECTRIC",
    "ELECTRICAL": "ELECTRIC",
    "NONE": "NONE",
    "NO": "NONE",
}

_CONDITION = {
    "EXCELLENT": "EXCELLENT",
    "NEW": "EXCELLENT",
    "VERY_GOOD": "VERY_GOOD",
    "VERYGOOD": "VERY_GOOD",
    "GOOD": "GOOD",
    "AVERAGE": "GOOD",
    "NEEDS_RENOVATION": "NEEDS_RENOVATION",
    "NEEDSRENOVATION": "NEEDS_RENOVATION",
    "RENOVATE": "NEEDS_RENOVATION",
    "FIXER": "NEEDS_RENOVATION",
}

_ENERGY = {
    "A_PLUS": "A_PLUS",
    "APLUS": "A_PLUS",
    "IN_PROGRESS": "IN_PROGRESS",
    "INPROGRESS": "IN_PROGRESS",
    "PENDING": "IN_PROGRESS",
}


def _enum_key(value: str) -> str:
    return re.sub(r"[\s_-]+", "_", value.strip().upper())


def parse_floor(floor: Optional[str]) -> Optional[float]:
    """
    Convierte el piso en texto a número.

    Soporta: "3", "-1", "ground", "basement", "penthouse", "mezzanine"
    (y sus equivalentes en griego).
    """
    if not floor:
        return None
    normalized = str(floor).strip().lower()
    if normalized in _FLOOR_NAMES:
        return _FLOOR_NAMES[normalized]
    try:
        return float(normalized)
    except ValueError:
        return None


def normalize_location(location: Optional[str]) -> str:
    """Minúsculas, sin acentos y sin prefijos tipo 'municipality of'."""
    if not location:
        return ""
    text = unicodedata.normalize("NFD", location.strip().lower())
    text = "".join(c for c in text if not unicodedata.combining(c))
    text = _LOCATION_PREFIX.sub("", text)
    text = _LOCATION_SUFFIX.sub("", text)
    return text.strip()


def get_property_locations(prop: Property) -> list[str]:
    """Todas las ubicaciones normalizadas de una propiedad, sin duplicados."""
    locations = []
    for raw in (prop.area, prop.address_city, prop.municipality, prop.address_state):
        normalized = normalize_location(raw)
        if normalized and normalized not in locations:
            locations.append(normalized)
    return locations


def parse_areas_of_interest(areas: Optional[Union[list[str], str]]) -> list[str]:
    """
    Parsea las zonas de interés del cliente.

    Acepta una lista, un string JSON con una lista o un string separado por comas.
    """
    if not areas:
        return []
    if isinstance(areas, str):
        try:
            parsed = json.loads(areas)
        except json.JSONDecodeError:
            parsed = areas.split(",")
        if not isinstance(parsed, list):
            parsed = [str(parsed)]
        areas = parsed
    return [a for a in (normalize_location(str(x)) for x in areas) if a]


def normalize_amenity_key(key: str) -> str:
    key = re.sub(r"[\s-]+", "_", key.strip().lower())
    return re.sub(r"[^a-z0-9_]", "", key)


def extract_property_amenities(
    amenities: Optional[Union[list[str], dict[str, bool]]],
) -> set[str]:
    """Amenities de la propiedad como set de claves normalizadas."""
    if not amenities:
        return set()
    if isinstance(amenities, dict):
        names = [k for k, v in amenities.items() if v is True]
    else:
        names = [a for a in amenities if isinstance(a, str)]
    return {k for k in (normalize_amenity_key(n) for n in names) if k}


def get_property_size_sqm(prop: Property) -> Optional[float]:
    """Superficie en m²: neta, si no bruta, si no convertida desde pies²."""
    if prop.size_net_sqm:
        return prop.size_net_sqm
    if prop.size_gross_sqm:
        return prop.size_gross_sqm
    if prop.square_feet:
        return float(round(prop.square_feet * SQFT_TO_SQM))
    return None


def get_budget_range(client: Client) -> tuple[Optional[float], Optional[float]]:
    return client.budget_min, client.budget_max


def normalize_furnished(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    key = _enum_key(value)
    return _FURNISHED.get(key, key)


def normalize_heating(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    key = _enum_key(value)
    return _HEATING.get(key, key)


def normalize_condition(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    key = _enum_key(value)
    return _CONDITION.get(key, key)


def normalize_energy_class(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    key = _enum_key(value.replace("+", "_PLUS"))
    return _ENERGY.get(key, key)


def normalize_enum(value: Optional[str]) -> Optional[str]:
    """Normalización genérica para intent, purpose, tipos y estados."""
    if not value:
        return None
    return _enum_key(value)
