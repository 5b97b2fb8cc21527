"""
Repositorios de solo lectura sobre Supabase.

Cada repositorio maneja una tabla/entidad específica y filtra siempre
por organization_id: el motor nunca ve datos de otra organización.
"""

from collections import defaultdict
from typing import Optional

import structlog
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from propmatch.config import (
    CLIENT_STATUSES_FOR_MATCHING,
    MAX_COMMENTS_FOR_EXTRACTION,
    PROPERTY_STATUSES_FOR_MATCHING,
)
from propmatch.database.supabase_client import get_supabase_client, SupabaseClient
from propmatch.errors import NotFoundError
from propmatch.models import Client, ClientComment, Property

logger = structlog.get_logger()

# Lecturas idempotentes: se pueden reintentar sin riesgo (salvo NotFound)
_read_retry = retry(
    retry=retry_if_not_exception_type(NotFoundError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    reraise=True,
)


class BaseRepository:
    """Clase base para repositorios."""

    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client or get_supabase_client()

    @property
    def client(self) -> SupabaseClient:
        return self._client


class ClientRepository(BaseRepository):
    """Repositorio de clientes del CRM (con sus comentarios)."""

    TABLE = "clients"
    COMMENTS_TABLE = "client_comments"

    @_read_retry
    def get(self, organization_id: str, client_id: str) -> Client:
        """
        Obtiene un cliente con sus comentarios más recientes.

        Raises:
            NotFoundError: Si no existe en la organización
        """
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("organization_id", organization_id)
            .eq("id", client_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise NotFoundError("Client", client_id, organization_id)

        comments = (
            self.client.table(self.COMMENTS_TABLE)
            .select("content, created_at")
            .eq("organization_id", organization_id)
            .eq("client_id", client_id)
            .order("created_at", desc=True)
            .limit(MAX_COMMENTS_FOR_EXTRACTION)
            .execute()
        )
        row = dict(response.data[0])
        row["comments"] = comments.data or []
        return Client.model_validate(row)

    @_read_retry
    def list_for_matching(
        self,
        organization_id: str,
        statuses: Optional[list[str]] = None,
    ) -> list[Client]:
        """
        Clientes activos de la organización, con comentarios.

        Args:
            statuses: Estados a incluir (default: LEAD y ACTIVE)
        """
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("organization_id", organization_id)
            .in_("client_status", statuses or CLIENT_STATUSES_FOR_MATCHING)
            .execute()
        )
        rows = response.data or []
        if not rows:
            return []

        comments = (
            self.client.table(self.COMMENTS_TABLE)
            .select("client_id, content, created_at")
            .eq("organization_id", organization_id)
            .order("created_at", desc=True)
            .execute()
        )
        by_client: dict[str, list[dict]] = defaultdict(list)
        for comment in comments.data or []:
            bucket = by_client[comment.get("client_id")]
            if len(bucket) < MAX_COMMENTS_FOR_EXTRACTION:
                bucket.append(comment)

        clients = []
        for row in rows:
            row = dict(row)
            row["comments"] = [
                ClientComment.model_validate(c) for c in by_client.get(row.get("id"), [])
            ]
            clients.append(Client.model_validate(row))

        logger.info(
            "Clientes cargados para matching",
            organization_id=organization_id,
            count=len(clients),
        )
        return clients


class PropertyRepository(BaseRepository):
    """Repositorio de propiedades del CRM."""

    TABLE = "properties"

    @_read_retry
    def get(self, organization_id: str, property_id: str) -> Property:
        """
        Raises:
            NotFoundError: Si no existe en la organización
        """
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("organization_id", organization_id)
            .eq("id", property_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise NotFoundError("Property", property_id, organization_id)
        return Property.model_validate(response.data[0])

    @_read_retry
    def list_for_matching(
        self,
        organization_id: str,
        statuses: Optional[list[str]] = None,
    ) -> list[Property]:
        """Propiedades publicables de la organización (default: ACTIVE y PENDING)."""
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("organization_id", organization_id)
            .in_("property_status", statuses or PROPERTY_STATUSES_FOR_MATCHING)
            .execute()
        )
        properties = [Property.model_validate(row) for row in response.data or []]
        logger.info(
            "Propiedades cargadas para matching",
            organization_id=organization_id,
            count=len(properties),
        )
        return properties


class OrganizationSettingsRepository(BaseRepository):
    """Settings de LLM por organización (key, proveedor y modelo propios)."""

    TABLE = "organization_settings"

    def get_llm_settings(self, organization_id: str) -> Optional[dict]:
        """
        Returns:
            Dict con llm_provider, llm_api_key y llm_model, o None si no hay fila
        """
        response = (
            self.client.table(self.TABLE)
            .select("llm_provider, llm_api_key, llm_model")
            .eq("organization_id", organization_id)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None
