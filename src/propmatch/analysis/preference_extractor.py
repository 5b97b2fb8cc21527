"""
Extractor de preferencias implícitas.

Convierte el texto libre de un cliente (notas de comunicación y
comentarios de los agentes) en una lista estructurada de preferencias
usando el LLM de la organización.

Nunca lanza excepciones: cualquier falla devuelve una lista vacía.
"""

import json
from typing import Optional

import structlog
from pydantic import ValidationError

from propmatch.analysis.org_llm import OrganizationLLM
from propmatch.config import MAX_COMMENTS_FOR_EXTRACTION
from propmatch.models import Client, ExtractedPreference

logger = structlog.get_logger()

# Menos que esto no justifica una llamada remota
MIN_TEXT_LENGTH = 10

COMMENT_SEPARATOR = "\n\n---\n\n"

EXTRACTION_SYSTEM_PROMPT = """You are a real estate preference extraction assistant.
Analyze the following text (client notes, comments, or communication) and extract property preferences.

Return a JSON object with this structure:
{
  "preferences": [
    {
      "category": "one of: location, size, rooms, amenities, features, condition, price, style",
      "preference": "specific preference description",
      "importance": "required | preferred | nice_to_have",
      "rawText": "the original text snippet this was extracted from"
    }
  ]
}

Examples of preferences to extract:
- "needs ground floor" -> category: features, preference: "ground floor access", importance: required
- "prefers shower" -> category: amenities, preference: "shower (not bathtub)", importance: preferred
- "likes modern kitchens" -> category: style, preference: "modern kitchen", importance: nice_to_have
- "must have parking" -> category: amenities, preference: "parking space", importance: required
- "wants sea view" -> category: features, preference: "sea view", importance: preferred

Be thorough but only extract actual preferences, not general statements.
If no preferences are found, return {"preferences": []}."""


def build_client_text(client: Client, max_comments: int = MAX_COMMENTS_FOR_EXTRACTION) -> str:
    """
    Junta el texto libre del cliente para la extracción.

    Notas de comunicación primero, después los comentarios del más
    nuevo al más viejo.
    """
    texts = []

    notes = client.communication_notes
    if isinstance(notes, dict):
        if notes:
            texts.append(json.dumps(notes, ensure_ascii=False, default=str))
    elif notes and notes.strip():
        texts.append(notes.strip())

    # Los comentarios sin fecha van al final
    comments = sorted(
        client.comments,
        key=lambda c: (c.created_at is not None, c.created_at.timestamp() if c.created_at else 0),
        reverse=True,
    )
    for comment in comments[:max_comments]:
        if comment.content and comment.content.strip():
            texts.append(comment.content.strip())

    return COMMENT_SEPARATOR.join(texts)


def _parse_preferences(data: dict) -> list[ExtractedPreference]:
    items = data.get("preferences")
    if not isinstance(items, list):
        return []

    preferences = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            preferences.append(
                ExtractedPreference(
                    category=str(item.get("category", "")).strip().lower(),
                    preference=str(item.get("preference", "")).strip(),
                    importance=str(item.get("importance", "")).strip().lower(),
                    raw_text=str(item.get("rawText") or item.get("raw_text") or ""),
                )
            )
        except ValidationError:
            logger.debug("Preferencia descartada por formato inválido", item=item)
    return preferences


class PreferenceExtractor:
    """Extrae preferencias estructuradas desde texto libre."""

    def __init__(self, llm: Optional[OrganizationLLM] = None):
        self._llm = llm or OrganizationLLM()

    async def extract(
        self, free_text: Optional[str], organization_id: Optional[str]
    ) -> list[ExtractedPreference]:
        """
        Args:
            free_text: Notas y comentarios concatenados
            organization_id: Organización (para resolver la API key)

        Returns:
            Lista de preferencias, vacía si no hay texto suficiente o si falla el LLM
        """
        if not free_text or len(free_text.strip()) < MIN_TEXT_LENGTH:
            return []

        try:
            data = await self._llm.complete_json(
                organization_id,
                system_prompt=EXTRACTION_SYSTEM_PROMPT,
                user_prompt=f"Extract preferences from:\n\n{free_text.strip()}",
                temperature=0.3,
                max_tokens=1000,
            )
        except Exception as e:
            logger.warning(
                "Error extrayendo preferencias",
                organization_id=organization_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return []

        if data is None:
            return []

        preferences = _parse_preferences(data)
        logger.info(
            "Preferencias extraídas",
            organization_id=organization_id,
            count=len(preferences),
        )
        return preferences
