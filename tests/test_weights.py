"""Tests de configuración de pesos."""

import pytest

from propmatch.config import get_settings
from propmatch.errors import ConfigurationError
from propmatch.matching.weights import (
    DEFAULT_CRITERIA_WEIGHTS,
    CombinationWeights,
    CriteriaConfig,
    get_criteria_config,
    meets_energy_requirement,
)
from propmatch.models import MatchCriterion


def test_default_weights_sum_to_100():
    assert sum(DEFAULT_CRITERIA_WEIGHTS.values()) == 100
    assert set(DEFAULT_CRITERIA_WEIGHTS) == set(MatchCriterion)


def test_load_without_overrides_uses_defaults():
    config = CriteriaConfig.load()
    assert config.weights == DEFAULT_CRITERIA_WEIGHTS
    assert config.weight(MatchCriterion.BUDGET) == 25


def test_load_custom_weights_from_strings():
    config = CriteriaConfig.load({"budget": 60, "location": 40})
    assert config.weight(MatchCriterion.BUDGET) == 60
    assert config.weight(MatchCriterion.BEDROOMS) == 0


@pytest.mark.parametrize(
    "weights",
    [
        {"budget": 50, "location": 40},
        {"budget": 110, "location": -10},
        {"budget": 50, "garden": 50},
        {},
    ],
)
def test_invalid_weights_raise_configuration_error(weights):
    with pytest.raises(ConfigurationError):
        CriteriaConfig.load(weights)


def test_combination_weights_must_sum_to_one():
    assert CombinationWeights.load(0.6, 0.4).rule == 0.6
    with pytest.raises(ConfigurationError):
        CombinationWeights.load(0.6, 0.3)


def test_energy_requirement_order():
    assert meets_energy_requirement("A_PLUS", "B")
    assert meets_energy_requirement("B", "B")
    assert not meets_energy_requirement("D", "B")
    assert not meets_energy_requirement("Z", "B")


@pytest.fixture
def fresh_config_cache():
    get_settings.cache_clear()
    get_criteria_config.cache_clear()
    yield
    get_settings.cache_clear()
    get_criteria_config.cache_clear()


def test_criteria_weights_from_environment(monkeypatch, fresh_config_cache):
    monkeypatch.setenv("CRITERIA_WEIGHTS", '{"budget": 60, "location": 40}')
    assert get_criteria_config().weight(MatchCriterion.BUDGET) == 60


@pytest.mark.parametrize("raw", ["{budget: 60", "[60, 40]", '{"budget": "lots"}'])
def test_malformed_criteria_weights_fail_at_startup(monkeypatch, fresh_config_cache, raw):
    monkeypatch.setenv("CRITERIA_WEIGHTS", raw)
    with pytest.raises(ConfigurationError):
        get_criteria_config()
