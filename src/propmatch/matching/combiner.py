"""
Combinación del score por reglas con el score semántico.

Si no hay score semántico (LLM no configurado o falló) se devuelve
el score por reglas sin cambios.
"""

from typing import Optional

from propmatch.matching.scorer import exact, round_half_up
from propmatch.matching.weights import CombinationWeights, get_combination_weights

DEFAULT_COMBINATION_WEIGHTS = CombinationWeights(rule=0.7, semantic=0.3)


def combine_scores(
    rule_score: int,
    semantic_score: Optional[int],
    weights: Optional[CombinationWeights] = None,
) -> int:
    """
    Mezcla ambos scores.

    Args:
        rule_score: Score determinístico (0-100)
        semantic_score: Score del LLM (0-100) o None
        weights: Pesos ya validados (default 0.7 / 0.3)

    Returns:
        Score final entero en [0, 100]
    """
    if semantic_score is None:
        return rule_score

    w = weights or DEFAULT_COMBINATION_WEIGHTS
    combined = round_half_up(rule_score * exact(w.rule) + semantic_score * exact(w.semantic))
    return max(0, min(100, combined))


class ScoreCombiner:
    """Combinador con pesos validados una sola vez al construirse."""

    def __init__(self, weights: Optional[CombinationWeights] = None):
        self.weights = weights or get_combination_weights()

    def combine(self, rule_score: int, semantic_score: Optional[int]) -> int:
        return combine_scores(rule_score, semantic_score, self.weights)
