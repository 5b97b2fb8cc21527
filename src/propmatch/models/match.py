"""
Resultados de matching

Objetos de vista de solo lectura: nunca se persisten, se recalculan
en cada request a partir de clientes y propiedades.
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class MatchCriterion(str, Enum):
    """Ejes de comparación entre un cliente y una propiedad."""

    BUDGET = "budget"
    LOCATION = "location"
    TRANSACTION_TYPE = "transaction_type"
    PROPERTY_TYPE = "property_type"
    BEDROOMS = "bedrooms"
    SIZE = "size"
    AMENITIES = "amenities"
    CONDITION = "condition"
    FURNISHED = "furnished"
    FLOOR = "floor"
    ELEVATOR = "elevator"
    PET_FRIENDLY = "pet_friendly"
    HEATING = "heating"
    ENERGY_CLASS = "energy_class"
    PARKING = "parking"


PreferenceCategory = Literal[
    "location", "size", "rooms", "amenities", "features", "condition", "price", "style"
]
PreferenceImportance = Literal["required", "preferred", "nice_to_have"]


class CriterionScore(BaseModel):
    """Puntaje de un criterio para un par cliente-propiedad."""

    criterion: MatchCriterion
    weight: int = Field(..., ge=0, le=100, description="Peso en porcentaje")
    score: float = Field(..., ge=0, le=100)
    weighted_score: float = Field(..., ge=0, le=100, description="score * weight / 100")
    matched: bool = False
    reason: str = ""


class MatchScore(BaseModel):
    """Score determinístico por reglas con su desglose."""

    overall: int = Field(..., ge=0, le=100)
    breakdown: list[CriterionScore] = Field(
        default_factory=list, description="Ordenado por peso descendente"
    )

    @property
    def matched_criteria(self) -> int:
        return sum(1 for s in self.breakdown if s.score > 0)

    @property
    def total_criteria(self) -> int:
        return len(self.breakdown)


class ExtractedPreference(BaseModel):
    """Preferencia inferida del texto libre del cliente."""

    category: PreferenceCategory
    preference: str = Field(..., min_length=1)
    importance: PreferenceImportance
    raw_text: str = ""


class PreferenceMatch(BaseModel):
    """Veredicto del LLM sobre una preferencia puntual."""

    preference: str
    matched: bool = False
    evidence: Optional[str] = None


class SemanticMatchOutcome(BaseModel):
    """Resultado crudo del SemanticMatcher."""

    score: int = Field(..., ge=0, le=100)
    matches: list[PreferenceMatch] = Field(default_factory=list)


class SemanticMatchResult(BaseModel):
    """Matching semántico completo de un par, con explicación."""

    property_id: str
    semantic_score: int = Field(..., ge=0, le=100)
    matched_preferences: list[PreferenceMatch] = Field(default_factory=list)
    explanation: str = ""


class PairScore(BaseModel):
    """Una fila de la matriz de scores."""

    client_id: str
    property_id: str
    overall: int = Field(..., ge=0, le=100)


class PairResult(BaseModel):
    """Resultado final de un par: reglas, semántica opcional y score combinado."""

    client_id: str
    property_id: str
    rule_score: MatchScore
    semantic: Optional[SemanticMatchResult] = None
    final_score: int = Field(..., ge=0, le=100)

    def to_pair_score(self) -> PairScore:
        return PairScore(
            client_id=self.client_id,
            property_id=self.property_id,
            overall=self.final_score,
        )


class PropertyWithMatchStats(BaseModel):
    """Propiedad con estadísticas de interés."""

    property_id: str
    match_count: int = Field(0, description="Clientes con score >= relevance floor")
    average_match_score: int = 0
    top_match_score: int = 0


class ClientSummary(BaseModel):
    """Cliente con su mejor score (para 'clientes sin matches')."""

    client_id: str
    best_match_score: int = 0
    match_count: int = 0


class MatchDistribution(BaseModel):
    """Bucket del histograma de scores."""

    range: str = Field(..., description="Ej: '0-25%'")
    min: int
    max: int
    count: int = 0


class MatchAnalytics(BaseModel):
    """Vista agregada completa para el dashboard."""

    hot_properties: list[PropertyWithMatchStats] = Field(default_factory=list)
    unmatched_clients: list[ClientSummary] = Field(default_factory=list)
    distribution: list[MatchDistribution] = Field(default_factory=list)
    top_matches: list[PairScore] = Field(default_factory=list)
    total_clients: int = 0
    total_properties: int = 0
    total_pairs: int = 0
    average_match_score: int = 0
    clients_with_matches: int = 0


class MatchSummaryStats(BaseModel):
    """Resumen compacto para widgets."""

    total_clients: int = 0
    total_properties: int = 0
    matches_above_50: int = 0
    matches_above_70: int = 0
    average_score: int = 0
