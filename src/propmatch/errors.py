"""
Errores del motor de matchmaking.

- NotFoundError: el cliente o la propiedad no existe (se propaga al caller)
- ConfigurationError: pesos inválidos (fatal al cargar) o credenciales faltantes
- TransientExternalError: falla del LLM (timeout, rate limit, respuesta rota)
"""

from typing import Optional


class PropmatchError(Exception):
    """Base de todos los errores del paquete."""


class NotFoundError(PropmatchError):
    """La entidad pedida no existe dentro de la organización."""

    def __init__(self, entity: str, entity_id: str, organization_id: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        self.organization_id = organization_id
        super().__init__(f"{entity} '{entity_id}' no encontrado")


class ConfigurationError(PropmatchError):
    """Configuración inválida o incompleta."""


class TransientExternalError(PropmatchError):
    """Falla recuperable de un servicio externo (LLM)."""

    def __init__(self, message: str, provider: Optional[str] = None):
        self.provider = provider
        super().__init__(message)
