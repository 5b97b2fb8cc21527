"""
Fixtures compartidas: proveedores LLM falsos, un query builder de
Supabase en memoria y factories de clientes y propiedades.

Ningún test hace llamadas de red.
"""

import asyncio
import json
from types import SimpleNamespace
from typing import Callable, Optional, Union

import pytest

from propmatch.analysis import LLMCredentials, LLMResponse, OrganizationLLM
from propmatch.analysis.llm_providers import BaseLLMProvider
from propmatch.config import Settings
from propmatch.models import Client, Property

ORG_ID = "org-1"


# ============================================
# LLM
# ============================================

Reply = Union[str, dict, list, Exception]


class FakeProvider(BaseLLMProvider):
    """
    Proveedor en memoria.

    `reply` puede ser un valor fijo o un callable (system_prompt, user_prompt)
    que devuelve el texto, un dict/list (se serializa) o una excepción.
    """

    provider_name = "fake"

    def __init__(
        self,
        reply: Union[Reply, Callable[[str, str], Reply]] = "{}",
        delay: float = 0.0,
    ):
        self.reply = reply
        self.delay = delay
        self.calls: list[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1000,
        json_mode: bool = False,
    ) -> LLMResponse:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "json_mode": json_mode,
            }
        )
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            reply = self.reply(system_prompt, user_prompt) if callable(self.reply) else self.reply
        finally:
            self.in_flight -= 1

        if isinstance(reply, Exception):
            raise reply
        text = reply if isinstance(reply, str) else json.dumps(reply)
        return LLMResponse(text=text, model="fake-model", provider=self.provider_name)


class StaticResolver:
    """Resolver que siempre devuelve las mismas credenciales (o None)."""

    def __init__(self, credentials: Optional[LLMCredentials]):
        self.credentials = credentials
        self.calls: list[Optional[str]] = []

    def resolve(self, organization_id):
        self.calls.append(organization_id)
        return self.credentials


def make_llm(
    provider: FakeProvider,
    configured: bool = True,
    timeout_seconds: float = 1.0,
) -> OrganizationLLM:
    credentials = LLMCredentials(provider="groq", api_key="test-key") if configured else None
    return OrganizationLLM(
        resolver=StaticResolver(credentials),
        provider_factory=lambda _: provider,
        timeout_seconds=timeout_seconds,
    )


@pytest.fixture
def fake_provider():
    return FakeProvider()


# ============================================
# SUPABASE
# ============================================


class FakeQuery:
    """Query builder encadenable que filtra filas en memoria."""

    def __init__(self, table: "FakeTable"):
        self._table = table
        self._rows = [dict(r) for r in table.rows]
        self._limit = None

    def select(self, *_columns):
        return self

    def eq(self, column, value):
        self._table.filters.append(("eq", column, value))
        self._rows = [r for r in self._rows if r.get(column) == value]
        return self

    def in_(self, column, values):
        self._table.filters.append(("in", column, tuple(values)))
        self._rows = [r for r in self._rows if r.get(column) in values]
        return self

    def order(self, column, desc=False):
        self._rows.sort(key=lambda r: r.get(column) or "", reverse=desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self):
        self._table.executions += 1
        rows = self._rows if self._limit is None else self._rows[: self._limit]
        return SimpleNamespace(data=rows)


class FakeTable:
    def __init__(self, rows):
        self.rows = rows
        self.filters: list[tuple] = []
        self.executions = 0


class FakeSupabase:
    """Sustituto de SupabaseClient: expone table(name)."""

    def __init__(self, tables: Optional[dict[str, list[dict]]] = None):
        self.tables = {name: FakeTable(rows) for name, rows in (tables or {}).items()}

    def table(self, name):
        if name not in self.tables:
            self.tables[name] = FakeTable([])
        return FakeQuery(self.tables[name])


# ============================================
# FACTORIES
# ============================================


def make_client(**overrides) -> Client:
    data = {"id": "client-1", "organization_id": ORG_ID, "client_name": "Test Client"}
    data.update(overrides)
    return Client.model_validate(data)


def make_property(**overrides) -> Property:
    data = {"id": "prop-1", "organization_id": ORG_ID, "property_name": "Test Property"}
    data.update(overrides)
    return Property.model_validate(data)


@pytest.fixture
def settings():
    """Settings aislados del entorno y de cualquier .env local."""
    return Settings(
        _env_file=None,
        supabase_url=None,
        supabase_key=None,
        llm_provider="groq",
        groq_api_key=None,
        gemini_api_key=None,
        criteria_weights=None,
        rule_weight=0.7,
        semantic_weight=0.3,
        relevance_floor=50,
        enrichment_threshold=50,
        max_concurrent_enrichments=5,
        llm_timeout_seconds=1.0,
        pair_timeout_seconds=2.0,
    )
