"""
Motor de matchmaking entre clientes y propiedades de una organización.

Implementa:
- Score por reglas: determinístico, para todos los pares
- Enriquecimiento semántico: solo pares sobre el threshold, con concurrencia
  acotada y timeout por par
- Vistas agregadas: sobre la matriz completa, una vez resueltos todos los pares
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Optional

import structlog

from propmatch.analysis import (
    ApiKeyResolver,
    OrganizationLLM,
    PreferenceExtractor,
    SemanticMatcher,
    build_client_text,
)
from propmatch.analysis.semantic_matcher import MIN_CLIENT_TEXT_LENGTH
from propmatch.config import Settings, get_settings
from propmatch.database import (
    ClientRepository,
    OrganizationSettingsRepository,
    PropertyRepository,
)
from propmatch.matching.aggregation import AggregationEngine
from propmatch.matching.combiner import ScoreCombiner
from propmatch.matching.scorer import CriteriaScorer
from propmatch.matching.weights import CriteriaConfig
from propmatch.models import (
    Client,
    ExtractedPreference,
    MatchAnalytics,
    MatchScore,
    PairResult,
    Property,
)

logger = structlog.get_logger()


@dataclass
class MatchmakingReport:
    """Resultado de una corrida de matchmaking para una organización."""

    organization_id: str
    results: list[PairResult] = field(default_factory=list)
    analytics: MatchAnalytics = field(default_factory=MatchAnalytics)
    semantic_enabled: bool = False
    enriched_pairs: int = 0


class MatchmakingEngine:
    """
    Orquesta scorer, capa semántica y agregación.

    Flujo de run():
    1. Cargar clientes y propiedades activos de la organización
    2. Score por reglas de todos los pares
    3. Enriquecer con LLM los pares con score >= enrichment_threshold
    4. Agregar la matriz final (barrera: espera a todos los pares)
    """

    def __init__(
        self,
        client_repo: Optional[ClientRepository] = None,
        property_repo: Optional[PropertyRepository] = None,
        config: Optional[CriteriaConfig] = None,
        combiner: Optional[ScoreCombiner] = None,
        extractor: Optional[PreferenceExtractor] = None,
        semantic_matcher: Optional[SemanticMatcher] = None,
        settings: Optional[Settings] = None,
        aggregator: Optional[AggregationEngine] = None,
    ):
        self.settings = settings or get_settings()
        self.scorer = CriteriaScorer(config)
        self.combiner = combiner or ScoreCombiner()
        self.aggregator = aggregator or AggregationEngine(
            relevance_floor=self.settings.relevance_floor,
            hot_properties_limit=self.settings.hot_properties_limit,
            unmatched_clients_limit=self.settings.unmatched_clients_limit,
            top_matches_limit=self.settings.top_matches_limit,
        )
        # Repos y capa semántica se crean al primer uso: scorear no necesita Supabase
        self._client_repo = client_repo
        self._property_repo = property_repo
        self._extractor = extractor
        self._semantic_matcher = semantic_matcher

    @property
    def client_repo(self) -> ClientRepository:
        if self._client_repo is None:
            self._client_repo = ClientRepository()
        return self._client_repo

    @property
    def property_repo(self) -> PropertyRepository:
        if self._property_repo is None:
            self._property_repo = PropertyRepository()
        return self._property_repo

    @property
    def semantic_matcher(self) -> SemanticMatcher:
        if self._semantic_matcher is None:
            llm = OrganizationLLM(
                resolver=ApiKeyResolver(
                    org_settings_repo=OrganizationSettingsRepository(self.client_repo.client),
                    settings=self.settings,
                ),
                timeout_seconds=self.settings.llm_timeout_seconds,
            )
            self._semantic_matcher = SemanticMatcher(
                llm=llm, extractor=self._extractor or PreferenceExtractor(llm)
            )
        return self._semantic_matcher

    @property
    def extractor(self) -> PreferenceExtractor:
        return self._extractor or self.semantic_matcher.extractor

    # Reglas

    def score_pair(self, organization_id: str, client_id: str, property_id: str) -> MatchScore:
        """
        Score por reglas de un par puntual.

        Raises:
            NotFoundError: Si el cliente o la propiedad no existen en la organización
        """
        client = self.client_repo.get(organization_id, client_id)
        prop = self.property_repo.get(organization_id, property_id)
        return self.scorer.score(client, prop)

    def score_all(self, clients: list[Client], properties: list[Property]) -> list[PairResult]:
        """Matriz completa de scores por reglas (sin LLM)."""
        results = []
        for client in clients:
            for prop in properties:
                if (
                    client.organization_id
                    and prop.organization_id
                    and client.organization_id != prop.organization_id
                ):
                    logger.warning(
                        "Par de organizaciones distintas descartado",
                        client_id=client.id,
                        property_id=prop.id,
                    )
                    continue
                rule_score = self.scorer.score(client, prop)
                results.append(
                    PairResult(
                        client_id=client.id,
                        property_id=prop.id,
                        rule_score=rule_score,
                        final_score=rule_score.overall,
                    )
                )
        return results

    def find_matching_properties(
        self,
        client: Client,
        properties: list[Property],
        min_score: int = 0,
        limit: Optional[int] = None,
    ) -> list[PairResult]:
        """Propiedades para un cliente, de mayor a menor score."""
        ranked = [r for r in self.score_all([client], properties) if r.final_score >= min_score]
        ranked.sort(key=lambda r: (-r.final_score, r.property_id))
        return ranked[:limit] if limit else ranked

    def find_matching_clients(
        self,
        prop: Property,
        clients: list[Client],
        min_score: int = 0,
        limit: Optional[int] = None,
    ) -> list[PairResult]:
        """Clientes interesados en una propiedad, de mayor a menor score."""
        ranked = [r for r in self.score_all(clients, [prop]) if r.final_score >= min_score]
        ranked.sort(key=lambda r: (-r.final_score, r.client_id))
        return ranked[:limit] if limit else ranked

    # Capa semántica

    async def _extract_preferences(
        self, client: Client, organization_id: str
    ) -> list[ExtractedPreference]:
        text = build_client_text(client)
        if len(text) < MIN_CLIENT_TEXT_LENGTH:
            return []
        return await self.extractor.extract(text, organization_id)

    async def _semantic_for_pair(
        self,
        client: Client,
        prop: Property,
        organization_id: str,
        preferences_for: Callable[[Client], asyncio.Future],
    ):
        # shield: si este par vence, la extracción sigue para los demás pares del cliente
        preferences = await asyncio.shield(preferences_for(client))
        if not preferences:
            return None
        return await self.semantic_matcher.match_pair(
            client, prop, organization_id, preferences=preferences
        )

    async def _enrich_pair(
        self,
        result: PairResult,
        client: Client,
        prop: Property,
        organization_id: str,
        preferences_for: Callable[[Client], asyncio.Future],
        semaphore: asyncio.Semaphore,
    ) -> PairResult:
        async with semaphore:
            try:
                semantic = await asyncio.wait_for(
                    self._semantic_for_pair(client, prop, organization_id, preferences_for),
                    timeout=self.settings.pair_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Timeout enriqueciendo par, se usa score por reglas",
                    client_id=client.id,
                    property_id=prop.id,
                )
                return result
            except Exception as e:
                logger.warning(
                    "Error enriqueciendo par, se usa score por reglas",
                    client_id=client.id,
                    property_id=prop.id,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                return result

        if semantic is None:
            return result

        final_score = self.combiner.combine(result.rule_score.overall, semantic.semantic_score)
        return result.model_copy(update={"semantic": semantic, "final_score": final_score})

    async def enrich(
        self,
        results: list[PairResult],
        clients: list[Client],
        properties: list[Property],
        organization_id: str,
    ) -> list[PairResult]:
        """
        Enriquece con LLM los pares sobre el threshold de enriquecimiento.

        Las credenciales de la organización se resuelven una vez por corrida
        y las preferencias de cada cliente se extraen una sola vez.
        Un par que falla o vence queda con su score por reglas.

        Returns:
            Resultados en el mismo orden que `results`
        """
        threshold = self.settings.enrichment_threshold
        candidates = [i for i, r in enumerate(results) if r.rule_score.overall >= threshold]
        if not candidates:
            return list(results)

        llm = self.semantic_matcher.llm
        llm.forget(organization_id)
        try:
            if not await self.semantic_matcher.is_available(organization_id):
                logger.info(
                    "LLM no configurado, se omite el enriquecimiento",
                    organization_id=organization_id,
                )
                return list(results)
            return await self._enrich_candidates(
                results, candidates, clients, properties, organization_id
            )
        finally:
            await llm.aclose()

    async def _enrich_candidates(
        self,
        results: list[PairResult],
        candidates: list[int],
        clients: list[Client],
        properties: list[Property],
        organization_id: str,
    ) -> list[PairResult]:
        clients_by_id = {c.id: c for c in clients}
        properties_by_id = {p.id: p for p in properties}
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_enrichments)
        preference_tasks: dict[str, asyncio.Future] = {}

        def preferences_for(client: Client) -> asyncio.Future:
            task = preference_tasks.get(client.id)
            if task is None:
                task = asyncio.ensure_future(self._extract_preferences(client, organization_id))
                preference_tasks[client.id] = task
            return task

        jobs = []
        for i in candidates:
            result = results[i]
            client = clients_by_id[result.client_id]
            prop = properties_by_id[result.property_id]
            jobs.append(
                self._enrich_pair(
                    result,
                    client,
                    prop,
                    organization_id,
                    preferences_for,
                    semaphore,
                )
            )

        enriched = await asyncio.gather(*jobs)

        # Extracciones que siguen vivas tras el timeout de todos sus pares
        for task in preference_tasks.values():
            if not task.done():
                task.cancel()

        merged = list(results)
        for i, result in zip(candidates, enriched):
            merged[i] = result

        logger.info(
            "Enriquecimiento semántico completado",
            organization_id=organization_id,
            candidates=len(candidates),
            enriched=sum(1 for r in enriched if r.semantic is not None),
            clients=len(preference_tasks),
        )
        return merged

    # Corrida completa

    def analyze(
        self,
        results: list[PairResult],
        clients: list[Client],
        properties: list[Property],
    ) -> MatchAnalytics:
        return self.aggregator.aggregate(
            (r.to_pair_score() for r in results),
            client_ids=[c.id for c in clients],
            property_ids=[p.id for p in properties],
        )

    async def run(self, organization_id: str, semantic: bool = True) -> MatchmakingReport:
        """
        Corrida completa de matchmaking de una organización.

        Args:
            organization_id: Organización a procesar
            semantic: Si False, solo score por reglas

        Returns:
            MatchmakingReport con todos los pares y las vistas agregadas
        """
        logger.info("Iniciando matchmaking", organization_id=organization_id, semantic=semantic)

        clients = self.client_repo.list_for_matching(organization_id)
        properties = self.property_repo.list_for_matching(organization_id)

        results = self.score_all(clients, properties)
        if semantic:
            results = await self.enrich(results, clients, properties, organization_id)

        analytics = self.analyze(results, clients, properties)
        report = MatchmakingReport(
            organization_id=organization_id,
            results=results,
            analytics=analytics,
            semantic_enabled=semantic,
            enriched_pairs=sum(1 for r in results if r.semantic is not None),
        )

        logger.info(
            "Matchmaking completado",
            organization_id=organization_id,
            clients=analytics.total_clients,
            properties=analytics.total_properties,
            pairs=analytics.total_pairs,
            enriched=report.enriched_pairs,
            clients_with_matches=analytics.clients_with_matches,
        )
        return report
