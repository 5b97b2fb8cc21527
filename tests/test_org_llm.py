"""Tests de resolución de credenciales y llamada JSON por organización."""

import json
import threading

import pytest

from conftest import FakeProvider, make_llm
from propmatch.analysis.llm_providers import clean_json_response, get_llm_provider
from propmatch.analysis.org_llm import ApiKeyResolver, OrganizationLLM
from propmatch.errors import ConfigurationError, TransientExternalError


class FakeOrgSettings:
    def __init__(self, row=None, error=None):
        self.row = row
        self.error = error
        self.calls = []

    def get_llm_settings(self, organization_id):
        self.calls.append(organization_id)
        if self.error:
            raise self.error
        return self.row


class TestApiKeyResolver:
    def test_organization_key_wins(self, settings):
        settings.groq_api_key = "system-key"
        repo = FakeOrgSettings(
            {"llm_provider": "gemini", "llm_api_key": "org-key", "llm_model": "gemini-pro"}
        )
        credentials = ApiKeyResolver(repo, settings).resolve("org-1")

        assert credentials.api_key == "org-key"
        assert credentials.provider == "gemini"
        assert credentials.model == "gemini-pro"
        assert credentials.source == "organization"
        assert repo.calls == ["org-1"]

    def test_falls_back_to_system_key_for_org_provider(self, settings):
        settings.groq_api_key = "groq-system"
        settings.gemini_api_key = "gemini-system"
        repo = FakeOrgSettings({"llm_provider": "gemini", "llm_api_key": None, "llm_model": None})
        credentials = ApiKeyResolver(repo, settings).resolve("org-1")

        assert credentials.api_key == "gemini-system"
        assert credentials.source == "system"

    def test_system_key_without_org_settings(self, settings):
        settings.groq_api_key = "groq-system"
        credentials = ApiKeyResolver(FakeOrgSettings(None), settings).resolve("org-1")
        assert credentials.provider == "groq"
        assert credentials.api_key == "groq-system"

    def test_org_settings_failure_falls_back(self, settings):
        settings.groq_api_key = "groq-system"
        repo = FakeOrgSettings(error=RuntimeError("db down"))
        credentials = ApiKeyResolver(repo, settings).resolve("org-1")
        assert credentials.api_key == "groq-system"

    def test_no_key_anywhere_is_unconfigured(self, settings):
        assert ApiKeyResolver(FakeOrgSettings(None), settings).resolve("org-1") is None
        assert ApiKeyResolver(None, settings).resolve(None) is None


class TestCompleteJson:
    @pytest.mark.asyncio
    async def test_returns_object(self):
        provider = FakeProvider({"ok": True})
        data = await make_llm(provider).complete_json("org-1", "system", "user")
        assert data == {"ok": True}
        assert provider.calls[0]["json_mode"] is True

    @pytest.mark.asyncio
    async def test_unconfigured_returns_none(self):
        provider = FakeProvider({"ok": True})
        llm = make_llm(provider, configured=False)
        assert await llm.complete_json("org-1", "system", "user") is None
        assert not await llm.is_configured("org-1")
        assert provider.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["", "[1, 2]", '"text"'])
    async def test_non_object_raises_transient_error(self, reply):
        with pytest.raises(TransientExternalError):
            await make_llm(FakeProvider(reply)).complete_json("org-1", "system", "user")

    @pytest.mark.asyncio
    async def test_invalid_json_raises_decode_error(self):
        with pytest.raises(json.JSONDecodeError):
            await make_llm(FakeProvider("{broken")).complete_json("org-1", "system", "user")

    @pytest.mark.asyncio
    async def test_credentials_and_provider_are_reused(self, settings):
        settings.groq_api_key = "groq-system"
        repo = FakeOrgSettings(None)
        provider = FakeProvider({"ok": True})
        built = []

        def factory(credentials):
            built.append(credentials)
            return provider

        llm = OrganizationLLM(
            resolver=ApiKeyResolver(repo, settings), provider_factory=factory, timeout_seconds=1.0
        )
        for _ in range(3):
            assert await llm.complete_json("org-1", "system", "user") == {"ok": True}

        assert repo.calls == ["org-1"]
        assert len(built) == 1

        llm.forget("org-1")
        await llm.aclose()
        await llm.complete_json("org-1", "system", "user")
        assert repo.calls == ["org-1", "org-1"]
        assert len(built) == 2

    @pytest.mark.asyncio
    async def test_settings_lookup_runs_off_the_event_loop(self, settings):
        threads = []

        class RecordingOrgSettings(FakeOrgSettings):
            def get_llm_settings(self, organization_id):
                threads.append(threading.get_ident())
                return super().get_llm_settings(organization_id)

        settings.groq_api_key = "groq-system"
        llm = OrganizationLLM(
            resolver=ApiKeyResolver(RecordingOrgSettings(None), settings), timeout_seconds=1.0
        )
        assert await llm.is_configured("org-1")
        assert threads and threading.get_ident() not in threads


@pytest.mark.parametrize(
    "raw,expected",
    [
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ('```\n{"a": 1}\n```', '{"a": 1}'),
        ('  {"a": 1}  ', '{"a": 1}'),
        (None, ""),
    ],
)
def test_clean_json_response(raw, expected):
    assert clean_json_response(raw) == expected


def test_unknown_provider_is_configuration_error():
    with pytest.raises(ConfigurationError):
        get_llm_provider(provider="openai", api_key="key")
