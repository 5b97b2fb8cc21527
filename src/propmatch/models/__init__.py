"""
Modelos de datos del sistema.

- Entrada (solo lectura): Client, Property
- Salida (vistas recalculadas): MatchScore, SemanticMatchResult, MatchAnalytics
"""

from propmatch.models.client import Client, ClientComment, ClientPropertyPreferences
from propmatch.models.property import Property
from propmatch.models.match import (
    ClientSummary,
    CriterionScore,
    ExtractedPreference,
    MatchAnalytics,
    MatchCriterion,
    MatchDistribution,
    MatchScore,
    MatchSummaryStats,
    PairResult,
    PairScore,
    PreferenceMatch,
    PropertyWithMatchStats,
    SemanticMatchOutcome,
    SemanticMatchResult,
)

__all__ = [
    # Entrada
    "Client",
    "ClientComment",
    "ClientPropertyPreferences",
    "Property",
    # Reglas
    "MatchCriterion",
    "CriterionScore",
    "MatchScore",
    # Semántica
    "ExtractedPreference",
    "PreferenceMatch",
    "SemanticMatchOutcome",
    "SemanticMatchResult",
    # Agregados
    "PairScore",
    "PairResult",
    "PropertyWithMatchStats",
    "ClientSummary",
    "MatchDistribution",
    "MatchAnalytics",
    "MatchSummaryStats",
]
