"""
Acceso al LLM por organización.

Resolución de credenciales: key de la organización -> key de sistema ->
sin configurar. Sin configurar no es un error: desactiva la capa semántica.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

import structlog

from propmatch.analysis.llm_providers import (
    BaseLLMProvider,
    clean_json_response,
    get_llm_provider,
)
from propmatch.config import Settings, get_settings
from propmatch.errors import TransientExternalError

if TYPE_CHECKING:
    from propmatch.database import OrganizationSettingsRepository

logger = structlog.get_logger()

ProviderFactory = Callable[["LLMCredentials"], BaseLLMProvider]


@dataclass(frozen=True)
class LLMCredentials:
    """Credenciales resueltas para una organización."""

    provider: str
    api_key: str
    model: Optional[str] = None
    source: str = "system"  # "organization" o "system"


def default_provider_factory(credentials: LLMCredentials) -> BaseLLMProvider:
    return get_llm_provider(
        provider=credentials.provider,
        api_key=credentials.api_key,
        model=credentials.model,
    )


class ApiKeyResolver:
    """Resuelve qué key y modelo usar para cada organización."""

    def __init__(
        self,
        org_settings_repo: Optional["OrganizationSettingsRepository"] = None,
        settings: Optional[Settings] = None,
    ):
        self._org_settings_repo = org_settings_repo
        self._settings = settings or get_settings()

    def _system_key(self, provider: str) -> Optional[str]:
        if provider == "gemini":
            return self._settings.gemini_api_key
        if provider == "groq":
            return self._settings.groq_api_key
        return None

    def resolve(self, organization_id: Optional[str]) -> Optional[LLMCredentials]:
        """
        Args:
            organization_id: Organización del request

        Returns:
            LLMCredentials o None si no hay ninguna key disponible
        """
        provider = self._settings.llm_provider.lower()
        org_model = None

        if self._org_settings_repo is not None and organization_id:
            try:
                org = self._org_settings_repo.get_llm_settings(organization_id)
            except Exception as e:
                # Sin settings de la organización seguimos con la key de sistema
                logger.warning(
                    "No se pudieron leer settings LLM de la organización",
                    organization_id=organization_id,
                    error=str(e),
                )
                org = None

            if org:
                provider = (org.get("llm_provider") or provider).lower()
                org_model = org.get("llm_model")
                if org.get("llm_api_key"):
                    return LLMCredentials(
                        provider=provider,
                        api_key=org["llm_api_key"],
                        model=org_model,
                        source="organization",
                    )

        system_key = self._system_key(provider)
        if system_key:
            return LLMCredentials(
                provider=provider, api_key=system_key, model=org_model, source="system"
            )

        logger.info(
            "Sin API key de LLM, matching semántico desactivado",
            organization_id=organization_id,
        )
        return None


class OrganizationLLM:
    """
    Una llamada de chat con respuesta JSON, con las credenciales de la
    organización y un timeout propio por llamada.

    No reintenta: cada llamada es un único request al proveedor.
    """

    def __init__(
        self,
        resolver: Optional[ApiKeyResolver] = None,
        provider_factory: Optional[ProviderFactory] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.resolver = resolver or ApiKeyResolver()
        self.provider_factory = provider_factory or default_provider_factory
        self.timeout_seconds = timeout_seconds or get_settings().llm_timeout_seconds
        self._credentials: dict[Optional[str], Optional[LLMCredentials]] = {}
        self._providers: dict[LLMCredentials, BaseLLMProvider] = {}

    async def credentials_for(self, organization_id: Optional[str]) -> Optional[LLMCredentials]:
        """
        Credenciales de la organización, resueltas una vez y cacheadas.

        La lectura de settings es una query sincrónica a Supabase: corre en
        un thread para no frenar el event loop.
        """
        if organization_id not in self._credentials:
            self._credentials[organization_id] = await asyncio.to_thread(
                self.resolver.resolve, organization_id
            )
        return self._credentials[organization_id]

    def forget(self, organization_id: Optional[str]) -> None:
        """Descarta las credenciales cacheadas de una organización."""
        self._credentials.pop(organization_id, None)

    async def is_configured(self, organization_id: Optional[str]) -> bool:
        return await self.credentials_for(organization_id) is not None

    def provider_for(self, credentials: LLMCredentials) -> BaseLLMProvider:
        """Un proveedor (y su cliente HTTP) por juego de credenciales."""
        provider = self._providers.get(credentials)
        if provider is None:
            provider = self.provider_factory(credentials)
            self._providers[credentials] = provider
        return provider

    async def aclose(self) -> None:
        """Cierra los clientes de los proveedores creados hasta ahora."""
        providers = list(self._providers.values())
        self._providers.clear()
        for provider in providers:
            await provider.aclose()

    async def complete_json(
        self,
        organization_id: Optional[str],
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1000,
    ) -> Optional[dict]:
        """
        Returns:
            El objeto JSON de la respuesta, o None si la organización no
            tiene LLM configurado

        Raises:
            TransientExternalError: Error del proveedor o respuesta no-objeto
            asyncio.TimeoutError: La llamada superó timeout_seconds
            json.JSONDecodeError: La respuesta no es JSON válido
        """
        credentials = await self.credentials_for(organization_id)
        if credentials is None:
            return None

        provider = self.provider_for(credentials)
        response = await asyncio.wait_for(
            provider.generate(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=True,
            ),
            timeout=self.timeout_seconds,
        )

        text = clean_json_response(response.text)
        if not text:
            raise TransientExternalError("Respuesta vacía del LLM", provider=response.provider)

        data = json.loads(text)
        if not isinstance(data, dict):
            raise TransientExternalError(
                "La respuesta del LLM no es un objeto JSON", provider=response.provider
            )

        logger.debug(
            "Respuesta LLM recibida",
            organization_id=organization_id,
            provider=response.provider,
            model=response.model,
            tokens=response.tokens_used,
        )
        return data
