"""
Vistas agregadas sobre la matriz de scores de una organización.

Transformación sin estado e idempotente sobre un snapshot:
- Propiedades "hot" (más clientes interesados)
- Clientes sin matches relevantes
- Histograma de scores
"""

from collections import defaultdict
from typing import Iterable, Optional, Union

from propmatch.matching.scorer import round_half_up
from propmatch.models import (
    ClientSummary,
    MatchAnalytics,
    MatchDistribution,
    MatchSummaryStats,
    PairScore,
    PropertyWithMatchStats,
)

# (label, min, max) inclusivos y sin solapamiento: cubren 0..100
DISTRIBUTION_BUCKETS = [
    ("0-25%", 0, 25),
    ("26-50%", 26, 50),
    ("51-70%", 51, 70),
    ("71-85%", 71, 85),
    ("86-100%", 86, 100),
]

DEFAULT_RELEVANCE_FLOOR = 50

ScoreRow = Union[PairScore, tuple[str, str, int]]


def _as_pair(row: ScoreRow) -> PairScore:
    if isinstance(row, PairScore):
        return row
    client_id, property_id, overall = row
    return PairScore(client_id=client_id, property_id=property_id, overall=overall)


def bucket_for(score: int) -> int:
    """Índice del bucket que contiene el score."""
    for i, (_, low, high) in enumerate(DISTRIBUTION_BUCKETS):
        if low <= score <= high:
            return i
    raise ValueError(f"Score fuera de rango: {score}")


def build_distribution(scores: Iterable[int]) -> list[MatchDistribution]:
    counts = [0] * len(DISTRIBUTION_BUCKETS)
    for s in scores:
        counts[bucket_for(s)] += 1
    return [
        MatchDistribution(range=label, min=low, max=high, count=counts[i])
        for i, (label, low, high) in enumerate(DISTRIBUTION_BUCKETS)
    ]


class AggregationEngine:
    """
    Calcula las vistas del dashboard de matchmaking.

    Necesita la matriz completa: es la barrera del pipeline y no debe
    correr hasta que todos los pares (con o sin LLM) estén resueltos.
    """

    def __init__(
        self,
        relevance_floor: int = DEFAULT_RELEVANCE_FLOOR,
        hot_properties_limit: Optional[int] = None,
        unmatched_clients_limit: Optional[int] = None,
        top_matches_limit: Optional[int] = None,
    ):
        self.relevance_floor = relevance_floor
        self.hot_properties_limit = hot_properties_limit
        self.unmatched_clients_limit = unmatched_clients_limit
        self.top_matches_limit = top_matches_limit

    def aggregate(
        self,
        score_matrix: Iterable[ScoreRow],
        client_ids: Optional[Iterable[str]] = None,
        property_ids: Optional[Iterable[str]] = None,
    ) -> MatchAnalytics:
        """
        Args:
            score_matrix: Filas (client_id, property_id, overall)
            client_ids: Universo de clientes (incluye los que no tienen pares)
            property_ids: Universo de propiedades (solo para totales)

        Returns:
            MatchAnalytics determinístico para el mismo input
        """
        pairs = [_as_pair(row) for row in score_matrix]

        all_clients = set(client_ids or []) | {p.client_id for p in pairs}
        all_properties = set(property_ids or []) | {p.property_id for p in pairs}
        relevant = [p for p in pairs if p.overall >= self.relevance_floor]

        total = len(pairs)
        average = round_half_up(sum(p.overall for p in pairs) / total) if total else 0

        return MatchAnalytics(
            hot_properties=self.hot_properties(pairs),
            unmatched_clients=self.unmatched_clients(pairs, all_clients),
            distribution=build_distribution(p.overall for p in pairs),
            top_matches=self.top_matches(relevant),
            total_clients=len(all_clients),
            total_properties=len(all_properties),
            total_pairs=total,
            average_match_score=average,
            clients_with_matches=len({p.client_id for p in relevant}),
        )

    def hot_properties(self, pairs: list[PairScore]) -> list[PropertyWithMatchStats]:
        stats: dict[str, list[int]] = defaultdict(list)
        for pair in pairs:
            if pair.overall >= self.relevance_floor:
                stats[pair.property_id].append(pair.overall)

        ranked = [
            PropertyWithMatchStats(
                property_id=property_id,
                match_count=len(scores),
                average_match_score=round_half_up(sum(scores) / len(scores)),
                top_match_score=max(scores),
            )
            for property_id, scores in stats.items()
        ]
        ranked.sort(key=lambda p: (-p.match_count, -p.top_match_score, p.property_id))
        return ranked[: self.hot_properties_limit] if self.hot_properties_limit else ranked

    def unmatched_clients(
        self, pairs: list[PairScore], client_ids: Iterable[str]
    ) -> list[ClientSummary]:
        best: dict[str, int] = {}
        counts: dict[str, int] = defaultdict(int)
        for pair in pairs:
            best[pair.client_id] = max(best.get(pair.client_id, 0), pair.overall)
            if pair.overall >= self.relevance_floor:
                counts[pair.client_id] += 1

        unmatched = [
            ClientSummary(
                client_id=client_id,
                best_match_score=best.get(client_id, 0),
                match_count=counts[client_id],
            )
            for client_id in client_ids
            if best.get(client_id, 0) < self.relevance_floor
        ]
        unmatched.sort(key=lambda c: (c.best_match_score, c.client_id))
        if self.unmatched_clients_limit:
            return unmatched[: self.unmatched_clients_limit]
        return unmatched

    def top_matches(self, relevant: list[PairScore]) -> list[PairScore]:
        ranked = sorted(relevant, key=lambda p: (-p.overall, p.client_id, p.property_id))
        return ranked[: self.top_matches_limit] if self.top_matches_limit else ranked


def summary_stats(analytics: MatchAnalytics) -> MatchSummaryStats:
    """Resumen rápido a partir del histograma."""
    return MatchSummaryStats(
        total_clients=analytics.total_clients,
        total_properties=analytics.total_properties,
        matches_above_50=sum(d.count for d in analytics.distribution if d.min >= 51),
        matches_above_70=sum(d.count for d in analytics.distribution if d.min >= 71),
        average_score=analytics.average_match_score,
    )
