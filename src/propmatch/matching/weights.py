"""
Pesos y constantes de scoring.

Los pesos por criterio son enteros en porcentaje y deben sumar 100.
Se validan una sola vez al cargar: una configuración inválida es un
error fatal de arranque, no de runtime.
"""

import math
from functools import lru_cache
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from propmatch.config import get_settings
from propmatch.errors import ConfigurationError
from propmatch.models import MatchCriterion

DEFAULT_CRITERIA_WEIGHTS: dict[MatchCriterion, int] = {
    MatchCriterion.BUDGET: 25,
    MatchCriterion.LOCATION: 20,
    MatchCriterion.TRANSACTION_TYPE: 10,
    MatchCriterion.PROPERTY_TYPE: 10,
    MatchCriterion.BEDROOMS: 10,
    MatchCriterion.SIZE: 8,
    MatchCriterion.AMENITIES: 5,
    MatchCriterion.CONDITION: 2,
    MatchCriterion.FURNISHED: 2,
    MatchCriterion.FLOOR: 2,
    MatchCriterion.PARKING: 2,
    MatchCriterion.ELEVATOR: 1,
    MatchCriterion.PET_FRIENDLY: 1,
    MatchCriterion.HEATING: 1,
    MatchCriterion.ENERGY_CLASS: 1,
}

# Score cuando falta el dato de algún lado
NEUTRAL_SCORE = 50

# Presupuesto: % fuera de rango en el que el score llega a 0
BUDGET_TOLERANCE_PERCENT = 20.0

# Superficie: % de desvío en el que el score llega a 0
SIZE_MAX_DEVIATION_PERCENT = 30.0

BEDROOMS_SCORE_PER_DIFF = 25
BEDROOMS_MIN_SCORE = 0

FLOOR_SCORE_PER_DIFF = 15
GROUND_FLOOR_MISMATCH_SCORE = 20

# Amenities: puntos para requeridas vs preferidas cuando hay ambas
AMENITIES_REQUIRED_POINTS = 70
AMENITIES_PREFERRED_POINTS = 30

FURNISHED_PARTIAL_SCORE = 60
HEATING_MISMATCH_SCORE = 30
LOCATION_PARTIAL_SCORE = 60
PROPERTY_TYPE_GENERIC_SCORE = 50

INTENT_TO_TRANSACTION: dict[str, list[str]] = {
    "BUY": ["SALE"],
    "RENT": ["RENTAL", "SHORT_TERM"],
    "LEASE": ["RENTAL"],
    "INVEST": ["SALE", "EXCHANGE"],
    "SELL": ["SALE", "EXCHANGE"],
}

PURPOSE_TO_PROPERTY_TYPE: dict[str, list[str]] = {
    "RESIDENTIAL": [
        "RESIDENTIAL", "APARTMENT", "HOUSE", "MAISONETTE", "VACATION", "RENTAL",
    ],
    "COMMERCIAL": ["COMMERCIAL", "WAREHOUSE", "INDUSTRIAL"],
    "LAND": ["LAND", "PLOT", "FARM"],
    "PARKING": ["PARKING"],
    "OTHER": ["OTHER"],
}

# De mejor a peor
ENERGY_CLASS_ORDER = ["A_PLUS", "A", "B", "C", "D", "E", "F", "G", "H"]


def meets_energy_requirement(property_class: str, min_class: str) -> bool:
    """True si la clase energética de la propiedad es igual o mejor que la mínima."""
    if property_class not in ENERGY_CLASS_ORDER or min_class not in ENERGY_CLASS_ORDER:
        return False
    return ENERGY_CLASS_ORDER.index(property_class) <= ENERGY_CLASS_ORDER.index(min_class)


class CriteriaConfig(BaseModel):
    """
    Criterios activos con sus pesos.

    Se pasa explícitamente a cada llamada de scoring, lo que permite
    overrides por organización sin estado global.
    """

    model_config = ConfigDict(frozen=True)

    weights: dict[MatchCriterion, int] = Field(
        default_factory=lambda: dict(DEFAULT_CRITERIA_WEIGHTS)
    )

    @model_validator(mode="after")
    def _check_weights(self):
        if not self.weights:
            raise ValueError("La configuración no tiene criterios")
        negative = [c.value for c, w in self.weights.items() if w < 0]
        if negative:
            raise ValueError(f"Pesos negativos: {', '.join(negative)}")
        total = sum(self.weights.values())
        if total != 100:
            raise ValueError(f"Los pesos deben sumar 100 (suman {total})")
        return self

    @classmethod
    def load(cls, weights: Optional[Mapping[str, int]] = None) -> "CriteriaConfig":
        """
        Construye y valida una configuración.

        Args:
            weights: Mapping criterio -> peso (None = pesos por defecto)

        Raises:
            ConfigurationError: Si hay criterios desconocidos o los pesos no suman 100
        """
        if weights is None:
            return cls()
        try:
            return cls(weights=dict(weights))
        except ValidationError as e:
            raise ConfigurationError(f"Pesos de criterios inválidos: {e}") from e

    def weight(self, criterion: MatchCriterion) -> int:
        return self.weights.get(criterion, 0)


class CombinationWeights(BaseModel):
    """Pesos de la mezcla reglas + semántica. Deben sumar 1.0."""

    model_config = ConfigDict(frozen=True)

    rule: float = Field(0.7, ge=0.0, le=1.0)
    semantic: float = Field(0.3, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_sum(self):
        if not math.isclose(self.rule + self.semantic, 1.0, abs_tol=1e-9):
            raise ValueError(
                f"Los pesos de combinación deben sumar 1.0 (suman {self.rule + self.semantic})"
            )
        return self

    @classmethod
    def load(cls, rule: float, semantic: float) -> "CombinationWeights":
        try:
            return cls(rule=rule, semantic=semantic)
        except ValidationError as e:
            raise ConfigurationError(f"Pesos de combinación inválidos: {e}") from e


@lru_cache
def get_criteria_config() -> CriteriaConfig:
    """Configuración de criterios del sistema (settings o default), validada una vez."""
    return CriteriaConfig.load(get_settings().criteria_weights)


@lru_cache
def get_combination_weights() -> CombinationWeights:
    """Pesos de combinación del sistema, validados una vez."""
    settings = get_settings()
    return CombinationWeights.load(settings.rule_weight, settings.semantic_weight)
