"""
Módulo de base de datos.

Provee acceso de solo lectura a Supabase, siempre filtrado por organización.
"""

from propmatch.database.supabase_client import get_supabase_client, SupabaseClient
from propmatch.database.repositories import (
    ClientRepository,
    PropertyRepository,
    OrganizationSettingsRepository,
)

__all__ = [
    "get_supabase_client",
    "SupabaseClient",
    "ClientRepository",
    "PropertyRepository",
    "OrganizationSettingsRepository",
]
