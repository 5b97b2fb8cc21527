"""
Matching semántico de preferencias contra propiedades.

Le pregunta al LLM, para cada preferencia extraída, si la propiedad la
cumple según su descripción y atributos. La rúbrica del score se aplica
también localmente, así una respuesta incompleta del modelo no puede
romper los invariantes:
- Una preferencia 'required' no cumplida limita el score a 40
- Si no, satisfacción ponderada: required 50%, preferred 35%, nice_to_have 15%

Nunca lanza excepciones: ante cualquier falla devuelve score 50 sin matches.
"""

import json
import math
from fractions import Fraction
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from propmatch.analysis.org_llm import OrganizationLLM
from propmatch.analysis.preference_extractor import PreferenceExtractor, build_client_text
from propmatch.models import (
    Client,
    ExtractedPreference,
    PreferenceMatch,
    Property,
    SemanticMatchOutcome,
    SemanticMatchResult,
)

logger = structlog.get_logger()

NO_PREFERENCES_SCORE = 100
FALLBACK_SCORE = 50
REQUIRED_UNMATCHED_CAP = 40

IMPORTANCE_WEIGHTS = {
    "required": 0.50,
    "preferred": 0.35,
    "nice_to_have": 0.15,
}

# Texto mínimo del cliente para intentar el pipeline completo de un par
MIN_CLIENT_TEXT_LENGTH = 20

MATCHING_SYSTEM_PROMPT = """You are a real estate matching assistant.
Given a list of client preferences and property information, determine which preferences are satisfied.

Return a JSON object:
{
  "matches": [
    {
      "preference": "the preference text",
      "matched": true/false,
      "evidence": "text from property that confirms/denies this (or null)"
    }
  ],
  "overallScore": 0-100 (weighted by importance: required=50%, preferred=35%, nice_to_have=15%)
}

Scoring guidance:
- If a "required" preference is NOT matched, max score is 40
- If all "required" are matched and most "preferred" are matched, score 70-85
- If all preferences matched, score 90-100"""


def _round(value) -> int:
    return math.floor(Fraction(value) + Fraction(1, 2))


def _weight(level: str) -> Fraction:
    return Fraction(repr(IMPORTANCE_WEIGHTS[level]))


def _fallback() -> SemanticMatchOutcome:
    return SemanticMatchOutcome(score=FALLBACK_SCORE, matches=[])


def _build_user_prompt(
    preferences: list[ExtractedPreference],
    property_description: str,
    property_features: dict[str, Any],
) -> str:
    preferences_list = "\n".join(
        f"- [{p.importance}] {p.preference} ({p.category})" for p in preferences
    )
    features_text = json.dumps(property_features, indent=2, default=str, ensure_ascii=False)
    return (
        f"Client preferences:\n{preferences_list}\n\n"
        f"Property description:\n{property_description or 'Not provided'}\n\n"
        f"Property features:\n{features_text}"
    )


def _parse_matches(data: dict) -> list[PreferenceMatch]:
    items = data.get("matches")
    if not isinstance(items, list):
        return []

    matches = []
    for item in items:
        if not isinstance(item, dict):
            continue
        evidence = item.get("evidence")
        try:
            matches.append(
                PreferenceMatch(
                    preference=str(item.get("preference", "")).strip(),
                    matched=item.get("matched") is True,
                    evidence=str(evidence) if evidence not in (None, "") else None,
                )
            )
        except ValidationError:
            continue
    return matches


def _pair_with_preferences(
    preferences: list[ExtractedPreference], matches: list[PreferenceMatch]
) -> list[tuple[ExtractedPreference, Optional[PreferenceMatch]]]:
    """
    Asocia cada preferencia con el veredicto del modelo: primero por
    texto (sin importar mayúsculas), si no por posición.
    """
    by_text = {m.preference.lower(): m for m in matches if m.preference}
    paired = []
    for i, pref in enumerate(preferences):
        match = by_text.get(pref.preference.lower())
        if match is None and i < len(matches) and not matches[i].preference:
            match = matches[i]
        if match is None and len(matches) == len(preferences):
            match = matches[i]
        paired.append((pref, match))
    return paired


def weighted_satisfaction(
    paired: list[tuple[ExtractedPreference, Optional[PreferenceMatch]]],
) -> int:
    """
    Score 0-100 por satisfacción ponderada por importancia.

    Los pesos se renormalizan sobre los niveles presentes. Una
    preferencia sin veredicto cuenta como no cumplida.
    """
    totals: dict[str, int] = {}
    satisfied: dict[str, int] = {}
    for pref, match in paired:
        totals[pref.importance] = totals.get(pref.importance, 0) + 1
        if match is not None and match.matched:
            satisfied[pref.importance] = satisfied.get(pref.importance, 0) + 1

    weight_sum = sum(_weight(level) for level in totals)
    if weight_sum == 0:
        return NO_PREFERENCES_SCORE
    value = sum(
        _weight(level) * Fraction(satisfied.get(level, 0), count)
        for level, count in totals.items()
    )
    return _round(100 * value / weight_sum)


def _coerce_score(raw: Any) -> Optional[int]:
    if isinstance(raw, bool) or raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError, OverflowError):
        return None
    # inf y nan (1e999, Infinity, NaN) no son scores
    if not math.isfinite(value):
        return None
    return _round(value)


def apply_rubric(
    preferences: list[ExtractedPreference],
    matches: list[PreferenceMatch],
    model_score: Optional[int],
) -> int:
    """Score final: el del modelo (o el calculado) acotado por la rúbrica."""
    paired = _pair_with_preferences(preferences, matches)
    score = model_score if model_score is not None else weighted_satisfaction(paired)
    score = max(0, min(100, score))

    required_unmatched = any(
        pref.importance == "required" and (match is None or not match.matched)
        for pref, match in paired
    )
    if required_unmatched:
        score = min(score, REQUIRED_UNMATCHED_CAP)
    return score


class SemanticMatcher:
    """Evalúa preferencias extraídas contra una propiedad."""

    def __init__(
        self,
        llm: Optional[OrganizationLLM] = None,
        extractor: Optional[PreferenceExtractor] = None,
    ):
        self._llm = llm or OrganizationLLM()
        self._extractor = extractor or PreferenceExtractor(self._llm)

    @property
    def extractor(self) -> PreferenceExtractor:
        return self._extractor

    @property
    def llm(self) -> OrganizationLLM:
        return self._llm

    async def is_available(self, organization_id: Optional[str]) -> bool:
        """True si la organización tiene alguna API key de LLM utilizable."""
        return await self._llm.is_configured(organization_id)

    async def match(
        self,
        preferences: list[ExtractedPreference],
        property_description: Optional[str],
        property_features: dict[str, Any],
        organization_id: Optional[str],
    ) -> SemanticMatchOutcome:
        """
        Args:
            preferences: Preferencias extraídas del cliente
            property_description: Descripción libre de la propiedad
            property_features: Atributos estructurados de la propiedad
            organization_id: Organización (para resolver la API key)

        Returns:
            SemanticMatchOutcome. Sin preferencias -> 100; ante fallas -> 50
        """
        if not preferences:
            return SemanticMatchOutcome(score=NO_PREFERENCES_SCORE, matches=[])

        try:
            data = await self._llm.complete_json(
                organization_id,
                system_prompt=MATCHING_SYSTEM_PROMPT,
                user_prompt=_build_user_prompt(
                    preferences, property_description or "", property_features
                ),
                temperature=0.2,
                max_tokens=1000,
            )
        except Exception as e:
            logger.warning(
                "Error en matching semántico",
                organization_id=organization_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return _fallback()

        if data is None:
            return _fallback()

        matches = _parse_matches(data)
        score = apply_rubric(preferences, matches, _coerce_score(data.get("overallScore")))
        return SemanticMatchOutcome(score=score, matches=matches)

    async def match_pair(
        self,
        client: Client,
        prop: Property,
        organization_id: Optional[str],
        preferences: Optional[list[ExtractedPreference]] = None,
    ) -> Optional[SemanticMatchResult]:
        """
        Pipeline semántico completo para un par cliente-propiedad.

        Args:
            preferences: Preferencias ya extraídas (si None, se extraen del cliente)

        Returns:
            SemanticMatchResult, o None si el cliente no tiene texto o
            preferencias suficientes
        """
        if preferences is None:
            text = build_client_text(client)
            if len(text) < MIN_CLIENT_TEXT_LENGTH:
                return None
            preferences = await self._extractor.extract(text, organization_id)

        if not preferences:
            return None

        outcome = await self.match(
            preferences,
            prop.description,
            prop.features_for_matching(),
            organization_id,
        )

        matched_count = sum(1 for m in outcome.matches if m.matched)
        explanation = (
            f"Found {len(preferences)} implicit preferences from client notes. "
            f"{matched_count}/{len(preferences)} preferences matched with this property."
        )
        return SemanticMatchResult(
            property_id=prop.id,
            semantic_score=outcome.score,
            matched_preferences=outcome.matches,
            explanation=explanation,
        )


async def semantic_match_for_pair(
    client: Client,
    prop: Property,
    organization_id: Optional[str],
    matcher: Optional[SemanticMatcher] = None,
) -> Optional[SemanticMatchResult]:
    """Atajo de SemanticMatcher.match_pair con el matcher por defecto."""
    return await (matcher or SemanticMatcher()).match_pair(client, prop, organization_id)
