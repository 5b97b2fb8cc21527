"""Tests del scoring por criterios."""

from fractions import Fraction

import pytest

from conftest import make_client, make_property
from propmatch.matching.scorer import CriteriaScorer, round_half_up, score
from propmatch.matching.weights import CriteriaConfig
from propmatch.models import MatchCriterion

DEFAULT_CONFIG = CriteriaConfig()


def criterion(result, name: MatchCriterion):
    return next(s for s in result.breakdown if s.criterion == name)


def score_one(client, prop, name: MatchCriterion):
    return criterion(score(client, prop, DEFAULT_CONFIG), name)


class TestBudget:
    def test_price_within_budget_contributes_full_weight(self):
        config = CriteriaConfig.load({"budget": 30, "location": 70})
        client = make_client(budget_min=100000, budget_max=150000)
        prop = make_property(price=140000)

        result = score(client, prop, config)
        budget = criterion(result, MatchCriterion.BUDGET)

        assert budget.score == 100
        assert budget.matched
        assert budget.weighted_score == 30
        # location sin datos -> 50 * 70%
        assert result.overall == 65

    def test_price_over_budget_decays_linearly(self):
        budget = score_one(
            make_client(budget_min=50000, budget_max=100000),
            make_property(price=110000),
            MatchCriterion.BUDGET,
        )
        assert budget.score == 50
        assert not budget.matched
        assert "over" in budget.reason

    def test_price_far_under_budget_floors_at_zero(self):
        budget = score_one(
            make_client(budget_min=100000, budget_max=150000),
            make_property(price=70000),
            MatchCriterion.BUDGET,
        )
        assert budget.score == 0

    @pytest.mark.parametrize(
        "client_kwargs", [{"budget_max": 150000}, {"budget_min": 100000}]
    )
    def test_single_bound_is_neutral(self, client_kwargs):
        budget = score_one(
            make_client(**client_kwargs), make_property(price=140000), MatchCriterion.BUDGET
        )
        assert budget.score == 50
        assert not budget.matched
        assert budget.reason == "Budget not specified"

    @pytest.mark.parametrize(
        "client_kwargs,prop_kwargs,reason",
        [
            ({"budget_min": 1, "budget_max": 2}, {}, "Price not specified"),
            ({}, {"price": 1000}, "Budget not specified"),
        ],
    )
    def test_missing_data_is_neutral(self, client_kwargs, prop_kwargs, reason):
        budget = score_one(
            make_client(**client_kwargs), make_property(**prop_kwargs), MatchCriterion.BUDGET
        )
        assert budget.score == 50
        assert budget.reason == reason


class TestLocation:
    def test_exact_match_from_csv(self):
        loc = score_one(
            make_client(areas_of_interest="Athens, Glyfada"),
            make_property(area="Glyfada"),
            MatchCriterion.LOCATION,
        )
        assert loc.score == 100
        assert loc.matched

    def test_accents_and_prefixes_are_ignored(self):
        loc = score_one(
            make_client(areas_of_interest=["Αθήνα"]),
            make_property(municipality="Δήμος Αθηνα"),
            MatchCriterion.LOCATION,
        )
        assert loc.score == 100

    def test_partial_match(self):
        loc = score_one(
            make_client(areas_of_interest='["Kifisia"]'),
            make_property(municipality="Nea Kifisia"),
            MatchCriterion.LOCATION,
        )
        assert loc.score == 60
        assert not loc.matched

    def test_no_match(self):
        loc = score_one(
            make_client(areas_of_interest=["Piraeus"]),
            make_property(area="Glyfada"),
            MatchCriterion.LOCATION,
        )
        assert loc.score == 0


class TestTypes:
    @pytest.mark.parametrize(
        "intent,transaction,expected",
        [("BUY", "SALE", 100), ("rent", "short term", 100), ("RENT", "SALE", 0), (None, "SALE", 50)],
    )
    def test_transaction_type(self, intent, transaction, expected):
        s = score_one(
            make_client(intent=intent),
            make_property(transaction_type=transaction),
            MatchCriterion.TRANSACTION_TYPE,
        )
        assert s.score == expected

    @pytest.mark.parametrize(
        "purpose,property_type,expected",
        [
            ("RESIDENTIAL", "APARTMENT", 100),
            ("COMMERCIAL", "HOUSE", 0),
            ("RESIDENTIAL", "OTHER", 50),
            ("RESIDENTIAL", None, 50),
        ],
    )
    def test_property_type(self, purpose, property_type, expected):
        s = score_one(
            make_client(purpose=purpose),
            make_property(property_type=property_type),
            MatchCriterion.PROPERTY_TYPE,
        )
        assert s.score == expected


class TestStructuredPreferences:
    @pytest.mark.parametrize("bedrooms,expected", [(3, 100), (5, 50), (8, 0), (None, 50)])
    def test_bedrooms(self, bedrooms, expected):
        client = make_client(property_preferences={"bedrooms_min": 2, "bedrooms_max": 3})
        s = score_one(client, make_property(bedrooms=bedrooms), MatchCriterion.BEDROOMS)
        assert s.score == expected

    def test_size_converts_square_feet(self):
        client = make_client(property_preferences={"size_min_sqm": 80, "size_max_sqm": 100})
        s = score_one(client, make_property(square_feet=1000), MatchCriterion.SIZE)
        assert s.score == 100

    def test_size_below_minimum(self):
        client = make_client(property_preferences={"size_min_sqm": 80})
        s = score_one(client, make_property(size_net_sqm=60), MatchCriterion.SIZE)
        assert s.score == pytest.approx(16.67, abs=0.01)

    def test_missing_required_amenity_caps_score(self):
        client = make_client(property_preferences={"amenities_required": ["Pool", "parking"]})
        prop = make_property(amenities={"pool": True, "parking": False})
        s = score_one(client, prop, MatchCriterion.AMENITIES)
        assert s.score == 35
        assert not s.matched

    def test_all_amenities(self):
        client = make_client(
            property_preferences={
                "amenities_required": ["pool"],
                "amenities_preferred": ["sea view"],
            }
        )
        prop = make_property(amenities=["Pool", "Sea-View"])
        s = score_one(client, prop, MatchCriterion.AMENITIES)
        assert s.score == 100
        assert s.matched

    def test_unknown_amenities_are_neutral(self):
        client = make_client(property_preferences={"amenities_required": ["pool"]})
        s = score_one(client, make_property(), MatchCriterion.AMENITIES)
        assert s.score == 50

    @pytest.mark.parametrize("floor,expected", [("ground", 100), ("3", 20), (None, 50)])
    def test_ground_floor_only(self, floor, expected):
        client = make_client(property_preferences={"ground_floor_only": True})
        s = score_one(client, make_property(floor=floor), MatchCriterion.FLOOR)
        assert s.score == expected

    def test_floor_range(self):
        client = make_client(property_preferences={"floor_min": 1, "floor_max": 3})
        s = score_one(client, make_property(floor="5"), MatchCriterion.FLOOR)
        assert s.score == 70

    def test_furnished_partial(self):
        client = make_client(property_preferences={"furnished_preference": "FULLY"})
        s = score_one(client, make_property(furnished="partial"), MatchCriterion.FURNISHED)
        assert s.score == 60

    @pytest.mark.parametrize("energy,expected", [("A+", 100), ("B", 100), ("D", 0), (None, 50)])
    def test_energy_class(self, energy, expected):
        client = make_client(property_preferences={"energy_class_min": "B"})
        s = score_one(client, make_property(energy_cert_class=energy), MatchCriterion.ENERGY_CLASS)
        assert s.score == expected

    def test_heating_mismatch(self):
        client = make_client(property_preferences={"heating_preferences": ["autonomous"]})
        s = score_one(client, make_property(heating_type="central"), MatchCriterion.HEATING)
        assert s.score == 30

    @pytest.mark.parametrize(
        "prop_kwargs,expected",
        [
            ({"property_type": "PARKING"}, 100),
            ({"amenities": ["Garage"]}, 100),
            ({"amenities": []}, 0),
            ({}, 50),
        ],
    )
    def test_parking(self, prop_kwargs, expected):
        client = make_client(property_preferences={"requires_parking": True})
        s = score_one(client, make_property(**prop_kwargs), MatchCriterion.PARKING)
        assert s.score == expected

    def test_elevator_and_pets(self):
        client = make_client(
            property_preferences={"requires_elevator": True, "requires_pet_friendly": True}
        )
        prop = make_property(elevator=True, accepts_pets=False)
        result = score(client, prop, DEFAULT_CONFIG)
        assert criterion(result, MatchCriterion.ELEVATOR).score == 100
        assert criterion(result, MatchCriterion.PET_FRIENDLY).score == 0


class TestOverall:
    def test_no_data_is_neutral(self):
        result = score(make_client(), make_property(), DEFAULT_CONFIG)
        assert result.overall == 50
        assert all(s.score == 50 for s in result.breakdown)
        assert result.total_criteria == len(MatchCriterion)

    def test_breakdown_sorted_by_weight_and_stable(self):
        result = score(make_client(), make_property(), DEFAULT_CONFIG)
        weights = [s.weight for s in result.breakdown]
        assert weights == sorted(weights, reverse=True)
        assert [s.criterion for s in result.breakdown[-4:]] == [
            MatchCriterion.ELEVATOR,
            MatchCriterion.PET_FRIENDLY,
            MatchCriterion.HEATING,
            MatchCriterion.ENERGY_CLASS,
        ]

    def test_good_pair(self):
        client = make_client(
            intent="BUY",
            purpose="RESIDENTIAL",
            budget_min=100000,
            budget_max=200000,
            areas_of_interest=["Glyfada"],
            property_preferences={"bedrooms_min": 2, "bedrooms_max": 3},
        )
        prop = make_property(
            transaction_type="SALE",
            property_type="APARTMENT",
            price=150000,
            area="Glyfada",
            bedrooms=2,
        )
        result = CriteriaScorer(DEFAULT_CONFIG).score(client, prop)
        # 75 puntos por los criterios que matchean + 25% neutral
        assert result.overall == 88
        assert result.overall == round_half_up(sum(s.weighted_score for s in result.breakdown))

    def test_scoring_is_deterministic(self):
        client = make_client(budget_max=100000, areas_of_interest="Athens")
        prop = make_property(price=105000, area="Athens", bedrooms=2)
        assert score(client, prop, DEFAULT_CONFIG) == score(client, prop, DEFAULT_CONFIG)

    def test_round_half_up(self):
        assert round_half_up(87.5) == 88
        assert round_half_up(2.5) == 3
        assert round_half_up(2.49) == 2
        assert round_half_up(Fraction(23, 2)) == 12

    def test_overall_rounds_exact_half_up(self):
        config = CriteriaConfig.load({"budget": 1, "location": 99})
        client = make_client(budget_min=100000, budget_max=150000)
        # budget 100 * 1% + location neutral 50 * 99% = 50.5
        result = score(client, make_property(price=120000), config)
        assert result.overall == 51
