"""
Módulo de análisis con IA.

Provee extracción de preferencias implícitas y matching semántico
usando el LLM de cada organización (Gemini/Groq).
"""

from propmatch.analysis.llm_providers import (
    get_llm_provider,
    BaseLLMProvider,
    GeminiProvider,
    GroqProvider,
    LLMResponse,
)
from propmatch.analysis.org_llm import ApiKeyResolver, LLMCredentials, OrganizationLLM
from propmatch.analysis.preference_extractor import PreferenceExtractor, build_client_text
from propmatch.analysis.semantic_matcher import SemanticMatcher, semantic_match_for_pair

__all__ = [
    # Capa semántica
    "PreferenceExtractor",
    "build_client_text",
    "SemanticMatcher",
    "semantic_match_for_pair",
    # LLM por organización
    "OrganizationLLM",
    "ApiKeyResolver",
    "LLMCredentials",
    # Proveedores LLM
    "get_llm_provider",
    "BaseLLMProvider",
    "GeminiProvider",
    "GroqProvider",
    "LLMResponse",
]
