"""
Motor de matchmaking.

Combina score por reglas, enriquecimiento semántico con LLM y vistas
agregadas sobre la matriz de scores.
"""

from propmatch.matching.weights import (
    CombinationWeights,
    CriteriaConfig,
    DEFAULT_CRITERIA_WEIGHTS,
    get_combination_weights,
    get_criteria_config,
)
from propmatch.matching.scorer import CriteriaScorer, score
from propmatch.matching.combiner import ScoreCombiner, combine_scores
from propmatch.matching.aggregation import AggregationEngine, summary_stats
from propmatch.matching.engine import MatchmakingEngine, MatchmakingReport

__all__ = [
    # Configuración
    "CriteriaConfig",
    "CombinationWeights",
    "DEFAULT_CRITERIA_WEIGHTS",
    "get_criteria_config",
    "get_combination_weights",
    # Scoring
    "CriteriaScorer",
    "score",
    "ScoreCombiner",
    "combine_scores",
    # Agregación
    "AggregationEngine",
    "summary_stats",
    # Orquestación
    "MatchmakingEngine",
    "MatchmakingReport",
]
