"""Tests de combinación de scores."""

import math
from fractions import Fraction

import pytest

from propmatch.matching.combiner import ScoreCombiner, combine_scores
from propmatch.matching.weights import CombinationWeights


def test_without_semantic_score_returns_rule_score():
    assert combine_scores(80, None) == 80


def test_default_weights():
    assert combine_scores(70, 100) == 79


@pytest.mark.parametrize("rule,semantic", [(0, 0), (100, 100), (0, 100), (100, 0), (37, 64)])
def test_result_stays_in_range(rule, semantic):
    assert 0 <= combine_scores(rule, semantic) <= 100


def test_custom_weights_round_half_up():
    combiner = ScoreCombiner(CombinationWeights(rule=0.5, semantic=0.5))
    assert combiner.combine(71, 80) == 76
    assert combiner.combine(71, None) == 71


def test_exact_halves_round_up():
    # 0.7 * 1 + 0.3 * 36 = 11.5
    assert combine_scores(1, 36) == 12
    assert combine_scores(2, 57) == 19


def test_matches_exact_arithmetic_for_every_pair():
    rule_weight, semantic_weight = Fraction(7, 10), Fraction(3, 10)
    mismatches = [
        (rule, semantic)
        for rule in range(101)
        for semantic in range(101)
        if combine_scores(rule, semantic)
        != math.floor(rule * rule_weight + semantic * semantic_weight + Fraction(1, 2))
    ]
    assert mismatches == []
