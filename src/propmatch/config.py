"""
Configuración centralizada del sistema.
Carga variables de entorno y define settings globales.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, SettingsError

from propmatch.errors import ConfigurationError

# Encontrar la raíz del proyecto (donde está el .env)
# config.py -> propmatch/ -> src/ -> project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Configuración principal de la aplicación."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Supabase (solo lectura, datos del CRM)
    supabase_url: Optional[str] = Field(None, description="URL del proyecto Supabase")
    supabase_key: Optional[str] = Field(None, description="Anon key de Supabase")
    supabase_service_key: Optional[str] = Field(
        None, description="Service role key para lecturas cross-tenant"
    )

    # LLM Provider
    llm_provider: str = Field(
        "groq",
        description="Proveedor de LLM a usar: 'gemini' o 'groq'"
    )

    # Gemini (key de sistema, fallback cuando la organización no tiene una)
    gemini_api_key: Optional[str] = Field(None, description="API key de Google Gemini")
    gemini_model: str = Field("gemini-2.0-flash", description="Modelo de Gemini a usar")

    # Groq (key de sistema, fallback cuando la organización no tiene una)
    groq_api_key: Optional[str] = Field(None, description="API key de Groq")
    groq_model: str = Field(
        "llama-3.1-8b-instant",
        description="Modelo de Groq a usar (llama-3.1-8b-instant, llama-3.3-70b-versatile)"
    )

    # Límites de llamadas externas
    llm_timeout_seconds: float = Field(
        20.0, gt=0, description="Timeout de cada llamada individual al LLM"
    )
    pair_timeout_seconds: float = Field(
        45.0, gt=0, description="Timeout total del enriquecimiento de un par cliente-propiedad"
    )
    max_concurrent_enrichments: int = Field(
        5, ge=1, description="Máximo de pares enriquecidos en paralelo"
    )

    # Matching
    relevance_floor: int = Field(
        50, ge=0, le=100, description="Score mínimo para contar un par como match"
    )
    enrichment_threshold: int = Field(
        50, ge=0, le=100, description="Score de reglas mínimo para enriquecer con LLM"
    )
    rule_weight: float = Field(0.7, ge=0.0, le=1.0, description="Peso del score por reglas")
    semantic_weight: float = Field(0.3, ge=0.0, le=1.0, description="Peso del score semántico")
    criteria_weights: Optional[dict[str, int]] = Field(
        None,
        description='Pesos por criterio en JSON, ej: {"budget": 40, "location": 60}',
    )

    # Vistas agregadas
    hot_properties_limit: int = Field(10, ge=1)
    unmatched_clients_limit: int = Field(10, ge=1)
    top_matches_limit: int = Field(20, ge=1)

    # Logging
    log_level: str = Field("INFO", description="Nivel de logging")

    @field_validator("criteria_weights", mode="before")
    @classmethod
    def _parse_criteria_weights(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
            try:
                return json.loads(value)
            except json.JSONDecodeError as e:
                raise ValueError(f"CRITERIA_WEIGHTS no es JSON válido: {e}") from e
        return value


@lru_cache
def get_settings() -> Settings:
    """
    Obtiene la configuración cacheada.

    Raises:
        ConfigurationError: Si alguna variable de entorno es inválida
    """
    try:
        return Settings()
    except (ValidationError, SettingsError) as e:
        raise ConfigurationError(f"Configuración inválida: {e}") from e


# Constantes del sistema
CLIENT_STATUSES_FOR_MATCHING = ["LEAD", "ACTIVE"]

PROPERTY_STATUSES_FOR_MATCHING = ["ACTIVE", "PENDING"]

MAX_COMMENTS_FOR_EXTRACTION = 20
