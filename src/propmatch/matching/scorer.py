"""
Scoring determinístico por criterios.

Calcula qué tan bien encaja una propiedad con un cliente a partir de
datos estructurados. Es una función pura de (cliente, propiedad, config):
sin I/O ni aleatoriedad, por lo que los pares se pueden puntuar en
paralelo sin coordinación.

Regla general por criterio:
- Falta el dato de algún lado -> 50 (neutral), matched=False
- Match exacto / subconjunto -> 100, matched=True
- Match parcial -> score proporcional
"""

import math
from fractions import Fraction
from typing import Callable, Optional

from propmatch.matching import normalizers
from propmatch.matching.weights import (
    AMENITIES_PREFERRED_POINTS,
    AMENITIES_REQUIRED_POINTS,
    BEDROOMS_MIN_SCORE,
    BEDROOMS_SCORE_PER_DIFF,
    BUDGET_TOLERANCE_PERCENT,
    FLOOR_SCORE_PER_DIFF,
    FURNISHED_PARTIAL_SCORE,
    GROUND_FLOOR_MISMATCH_SCORE,
    HEATING_MISMATCH_SCORE,
    INTENT_TO_TRANSACTION,
    LOCATION_PARTIAL_SCORE,
    NEUTRAL_SCORE,
    PROPERTY_TYPE_GENERIC_SCORE,
    PURPOSE_TO_PROPERTY_TYPE,
    SIZE_MAX_DEVIATION_PERCENT,
    CriteriaConfig,
    get_criteria_config,
    meets_energy_requirement,
)
from propmatch.models import (
    Client,
    ClientPropertyPreferences,
    CriterionScore,
    MatchCriterion,
    MatchScore,
    Property,
)

_PARKING_AMENITIES = {"parking", "garage", "parking_space"}


def round_half_up(value) -> int:
    """
    Redondeo clásico (0.5 sube), no el bancario de round().

    Opera en aritmética exacta: con floats, 11.5 puede llegar como
    11.4999... y redondear hacia abajo. Para sumas ponderadas conviene
    pasar un Fraction ya calculado (ver exact()).
    """
    return math.floor(Fraction(value) + Fraction(1, 2))


def exact(value) -> Fraction:
    """Valor decimal como fracción exacta (0.7 -> 7/10, no su binario)."""
    if isinstance(value, float):
        return Fraction(repr(value))
    return Fraction(value)


def _score(
    criterion: MatchCriterion,
    weight: int,
    score: float,
    reason: str,
    matched: bool = False,
) -> CriterionScore:
    score = max(0.0, min(100.0, float(score)))
    return CriterionScore(
        criterion=criterion,
        weight=weight,
        score=round(score, 2),
        weighted_score=round(score * weight / 100, 2),
        matched=matched,
        reason=reason,
    )


def _range_distance(
    value: float, low: Optional[float], high: Optional[float]
) -> float:
    """Distancia de value al rango [low, high] (0 si está adentro)."""
    if low is not None and value < low:
        return low - value
    if high is not None and value > high:
        return value - high
    return 0.0


def _percent_outside(
    value: float, low: Optional[float], high: Optional[float]
) -> float:
    """Desvío porcentual respecto del límite violado."""
    if low is not None and value < low:
        return (low - value) / low * 100 if low > 0 else 100.0
    if high is not None and value > high:
        return (value - high) / high * 100 if high > 0 else 100.0
    return 0.0


# ============================================
# CRITERIOS
# ============================================


def score_budget(client: Client, prop: Property, weight: int) -> CriterionScore:
    """
    100 dentro de [budget_min, budget_max], cae linealmente hasta 0
    cuando el precio se desvía BUDGET_TOLERANCE_PERCENT del límite.
    """
    criterion = MatchCriterion.BUDGET
    budget_min, budget_max = normalizers.get_budget_range(client)

    if prop.price is None:
        return _score(criterion, weight, NEUTRAL_SCORE, "Price not specified")
    if budget_min is None or budget_max is None:
        return _score(criterion, weight, NEUTRAL_SCORE, "Budget not specified")

    over = _percent_outside(prop.price, budget_min, budget_max)
    if over == 0:
        return _score(criterion, weight, 100, "Price within budget", matched=True)

    direction = "over" if prop.price > budget_max else "under"
    score = 100 - (over / BUDGET_TOLERANCE_PERCENT) * 100
    return _score(criterion, weight, score, f"{round_half_up(over)}% {direction} budget")


def score_location(client: Client, prop: Property, weight: int) -> CriterionScore:
    criterion = MatchCriterion.LOCATION
    client_areas = normalizers.parse_areas_of_interest(client.areas_of_interest)
    property_locations = normalizers.get_property_locations(prop)

    if not client_areas:
        return _score(criterion, weight, NEUTRAL_SCORE, "No location preference")
    if not property_locations:
        return _score(criterion, weight, NEUTRAL_SCORE, "Property has no location data")

    for area in client_areas:
        if area in property_locations:
            return _score(criterion, weight, 100, f"Exact match: {area}", matched=True)

    for area in client_areas:
        for location in property_locations:
            if area in location or location in area:
                return _score(
                    criterion, weight, LOCATION_PARTIAL_SCORE, f"Partial match: {location}"
                )

    return _score(criterion, weight, 0, "Location not in areas of interest")


def score_transaction_type(client: Client, prop: Property, weight: int) -> CriterionScore:
    criterion = MatchCriterion.TRANSACTION_TYPE
    intent = normalizers.normalize_enum(client.intent)
    transaction = normalizers.normalize_enum(prop.transaction_type)

    if not intent or not transaction:
        return _score(criterion, weight, NEUTRAL_SCORE, "Transaction type not specified")

    if transaction in INTENT_TO_TRANSACTION.get(intent, []):
        return _score(criterion, weight, 100, f"{intent} matches {transaction}", matched=True)
    return _score(criterion, weight, 0, f"{intent} incompatible with {transaction}")


def score_property_type(client: Client, prop: Property, weight: int) -> CriterionScore:
    criterion = MatchCriterion.PROPERTY_TYPE
    purpose = normalizers.normalize_enum(client.purpose)
    property_type = normalizers.normalize_enum(prop.property_type)

    if not purpose or not property_type:
        return _score(criterion, weight, NEUTRAL_SCORE, "Property type not specified")

    if property_type in PURPOSE_TO_PROPERTY_TYPE.get(purpose, []):
        return _score(
            criterion, weight, 100, f"{property_type} matches {purpose}", matched=True
        )
    if property_type == "OTHER" or purpose == "OTHER":
        return _score(criterion, weight, PROPERTY_TYPE_GENERIC_SCORE, "Generic property type")
    return _score(criterion, weight, 0, f"{property_type} doesn't match {purpose}")


def score_bedrooms(
    prefs: ClientPropertyPreferences, prop: Property, weight: int
) -> CriterionScore:
    criterion = MatchCriterion.BEDROOMS
    low, high = prefs.bedrooms_min, prefs.bedrooms_max

    if low is None and high is None:
        return _score(criterion, weight, NEUTRAL_SCORE, "No bedroom preference")
    if prop.bedrooms is None:
        return _score(criterion, weight, NEUTRAL_SCORE, "Bedroom count unknown")

    diff = _range_distance(prop.bedrooms, low, high)
    if diff == 0:
        return _score(
            criterion, weight, 100, f"{prop.bedrooms} bedrooms within range", matched=True
        )

    score = max(BEDROOMS_MIN_SCORE, 100 - diff * BEDROOMS_SCORE_PER_DIFF)
    return _score(
        criterion, weight, score, f"{prop.bedrooms} bedrooms ({int(diff)} off preference)"
    )


def score_size(
    prefs: ClientPropertyPreferences, prop: Property, weight: int
) -> CriterionScore:
    criterion = MatchCriterion.SIZE
    low, high = prefs.size_min_sqm, prefs.size_max_sqm
    size = normalizers.get_property_size_sqm(prop)

    if low is None and high is None:
        return _score(criterion, weight, NEUTRAL_SCORE, "No size preference")
    if size is None:
        return _score(criterion, weight, NEUTRAL_SCORE, "Size unknown")

    deviation = _percent_outside(size, low, high)
    if deviation == 0:
        return _score(criterion, weight, 100, f"{size:g} sqm within range", matched=True)

    score = 100 - (deviation / SIZE_MAX_DEVIATION_PERCENT) * 100
    return _score(
        criterion, weight, score, f"{size:g} sqm ({round_half_up(deviation)}% off)"
    )


def score_amenities(
    prefs: ClientPropertyPreferences, prop: Property, weight: int
) -> CriterionScore:
    """
    Las amenities requeridas dominan: si falta alguna, el score queda
    por debajo de AMENITIES_REQUIRED_POINTS. Las preferidas completan.
    """
    criterion = MatchCriterion.AMENITIES
    required = {normalizers.normalize_amenity_key(a) for a in prefs.amenities_required}
    preferred = {normalizers.normalize_amenity_key(a) for a in prefs.amenities_preferred}
    required.discard("")
    preferred.discard("")

    if not required and not preferred:
        return _score(criterion, weight, NEUTRAL_SCORE, "No amenity preferences")
    if prop.amenities is None:
        return _score(criterion, weight, NEUTRAL_SCORE, "Property amenities unknown")

    available = normalizers.extract_property_amenities(prop.amenities)
    required_met = len(required & available)
    preferred_met = len(preferred & available)

    if required and required_met < len(required):
        score = required_met / len(required) * AMENITIES_REQUIRED_POINTS
        missing = len(required) - required_met
        return _score(criterion, weight, score, f"Missing {missing} required amenities")

    if not required:
        score = preferred_met / len(preferred) * 100
        return _score(
            criterion,
            weight,
            score,
            f"{preferred_met}/{len(preferred)} preferred amenities",
            matched=preferred_met == len(preferred),
        )

    if not preferred:
        return _score(criterion, weight, 100, "All required amenities", matched=True)

    score = AMENITIES_REQUIRED_POINTS + preferred_met / len(preferred) * AMENITIES_PREFERRED_POINTS
    return _score(
        criterion,
        weight,
        score,
        f"All required met, {preferred_met}/{len(preferred)} preferred",
        matched=preferred_met == len(preferred),
    )


def score_condition(
    prefs: ClientPropertyPreferences, prop: Property, weight: int
) -> CriterionScore:
    criterion = MatchCriterion.CONDITION
    wanted = {normalizers.normalize_condition(c) for c in prefs.condition_preferences}
    wanted.discard(None)
    condition = normalizers.normalize_condition(prop.condition)

    if not wanted:
        return _score(criterion, weight, NEUTRAL_SCORE, "No condition preference")
    if not condition:
        return _score(criterion, weight, NEUTRAL_SCORE, "Property condition unknown")
    if condition in wanted:
        return _score(criterion, weight, 100, f"Condition: {condition}", matched=True)
    return _score(criterion, weight, 0, f"Condition {condition} not preferred")


def score_furnished(
    prefs: ClientPropertyPreferences, prop: Property, weight: int
) -> CriterionScore:
    criterion = MatchCriterion.FURNISHED
    wanted = normalizers.normalize_furnished(prefs.furnished_preference)
    status = normalizers.normalize_furnished(prop.furnished)

    if not wanted or wanted == "ANY":
        return _score(criterion, weight, NEUTRAL_SCORE, "No furnished preference")
    if not status:
        return _score(criterion, weight, NEUTRAL_SCORE, "Furnished status unknown")
    if wanted == status:
        return _score(criterion, weight, 100, f"Furnished: {status}", matched=True)
    if {wanted, status} == {"FULLY", "PARTIALLY"}:
        return _score(
            criterion, weight, FURNISHED_PARTIAL_SCORE, f"Furnished: {status} (wanted {wanted})"
        )
    return _score(criterion, weight, 0, f"Furnished: {status} (wanted {wanted})")


def score_floor(
    prefs: ClientPropertyPreferences, prop: Property, weight: int
) -> CriterionScore:
    criterion = MatchCriterion.FLOOR
    low, high = prefs.floor_min, prefs.floor_max
    floor = normalizers.parse_floor(prop.floor)

    if low is None and high is None and not prefs.ground_floor_only:
        return _score(criterion, weight, NEUTRAL_SCORE, "No floor preference")
    if floor is None:
        return _score(criterion, weight, NEUTRAL_SCORE, "Floor level unknown")

    if prefs.ground_floor_only:
        if floor == 0:
            return _score(criterion, weight, 100, "Ground floor", matched=True)
        return _score(
            criterion, weight, GROUND_FLOOR_MISMATCH_SCORE, f"Floor {floor:g} (need ground)"
        )

    diff = _range_distance(floor, low, high)
    if diff == 0:
        return _score(criterion, weight, 100, f"Floor {floor:g} within range", matched=True)

    score = 100 - diff * FLOOR_SCORE_PER_DIFF
    return _score(criterion, weight, score, f"Floor {floor:g} ({diff:g} floors off)")


def _score_requirement(
    criterion: MatchCriterion,
    weight: int,
    required: bool,
    available: Optional[bool],
    label: str,
) -> CriterionScore:
    if not required:
        return _score(criterion, weight, NEUTRAL_SCORE, f"No {label} requirement")
    if available is None:
        return _score(criterion, weight, NEUTRAL_SCORE, f"{label.capitalize()} unknown")
    if available:
        return _score(criterion, weight, 100, f"Has {label}", matched=True)
    return _score(criterion, weight, 0, f"No {label} (required)")


def score_elevator(
    prefs: ClientPropertyPreferences, prop: Property, weight: int
) -> CriterionScore:
    return _score_requirement(
        MatchCriterion.ELEVATOR, weight, prefs.requires_elevator, prop.elevator, "elevator"
    )


def score_pet_friendly(
    prefs: ClientPropertyPreferences, prop: Property, weight: int
) -> CriterionScore:
    return _score_requirement(
        MatchCriterion.PET_FRIENDLY,
        weight,
        prefs.requires_pet_friendly,
        prop.accepts_pets,
        "pet policy",
    )


def score_parking(
    prefs: ClientPropertyPreferences, prop: Property, weight: int
) -> CriterionScore:
    criterion = MatchCriterion.PARKING
    if normalizers.normalize_enum(prop.property_type) == "PARKING" and prefs.requires_parking:
        return _score(criterion, weight, 100, "Is a parking space", matched=True)

    available = None
    if prop.amenities is not None:
        amenities = normalizers.extract_property_amenities(prop.amenities)
        available = bool(amenities & _PARKING_AMENITIES)
    return _score_requirement(criterion, weight, prefs.requires_parking, available, "parking")


def score_heating(
    prefs: ClientPropertyPreferences, prop: Property, weight: int
) -> CriterionScore:
    criterion = MatchCriterion.HEATING
    wanted = {normalizers.normalize_heating(h) for h in prefs.heating_preferences}
    wanted.discard(None)
    heating = normalizers.normalize_heating(prop.heating_type)

    if not wanted:
        return _score(criterion, weight, NEUTRAL_SCORE, "No heating preference")
    if not heating:
        return _score(criterion, weight, NEUTRAL_SCORE, "Heating type unknown")
    if heating in wanted:
        return _score(criterion, weight, 100, f"Heating: {heating}", matched=True)
    return _score(
        criterion, weight, HEATING_MISMATCH_SCORE, f"Heating: {heating} (not preferred)"
    )


def score_energy_class(
    prefs: ClientPropertyPreferences, prop: Property, weight: int
) -> CriterionScore:
    criterion = MatchCriterion.ENERGY_CLASS
    minimum = normalizers.normalize_energy_class(prefs.energy_class_min)
    energy = normalizers.normalize_energy_class(prop.energy_cert_class)

    if not minimum:
        return _score(criterion, weight, NEUTRAL_SCORE, "No energy class requirement")
    if not energy or energy == "IN_PROGRESS":
        return _score(criterion, weight, NEUTRAL_SCORE, "Energy class unknown")
    if meets_energy_requirement(energy, minimum):
        return _score(criterion, weight, 100, f"Energy class: {energy}", matched=True)
    return _score(criterion, weight, 0, f"Energy class {energy} below {minimum}")


# Criterios que miran el cliente completo vs. solo sus preferencias estructuradas
_CLIENT_SCORERS: dict[MatchCriterion, Callable[[Client, Property, int], CriterionScore]] = {
    MatchCriterion.BUDGET: score_budget,
    MatchCriterion.LOCATION: score_location,
    MatchCriterion.TRANSACTION_TYPE: score_transaction_type,
    MatchCriterion.PROPERTY_TYPE: score_property_type,
}

_PREFERENCE_SCORERS: dict[
    MatchCriterion, Callable[[ClientPropertyPreferences, Property, int], CriterionScore]
] = {
    MatchCriterion.BEDROOMS: score_bedrooms,
    MatchCriterion.SIZE: score_size,
    MatchCriterion.AMENITIES: score_amenities,
    MatchCriterion.CONDITION: score_condition,
    MatchCriterion.FURNISHED: score_furnished,
    MatchCriterion.FLOOR: score_floor,
    MatchCriterion.ELEVATOR: score_elevator,
    MatchCriterion.PET_FRIENDLY: score_pet_friendly,
    MatchCriterion.PARKING: score_parking,
    MatchCriterion.HEATING: score_heating,
    MatchCriterion.ENERGY_CLASS: score_energy_class,
}


def score(client: Client, prop: Property, config: CriteriaConfig) -> MatchScore:
    """
    Score por reglas entre un cliente y una propiedad.

    Args:
        client: Cliente a evaluar
        prop: Propiedad candidata
        config: Criterios activos con pesos que suman 100

    Returns:
        MatchScore con overall en [0, 100] y desglose ordenado por peso
    """
    prefs = client.property_preferences
    breakdown = []
    for criterion, weight in config.weights.items():
        if criterion in _CLIENT_SCORERS:
            breakdown.append(_CLIENT_SCORERS[criterion](client, prop, weight))
        else:
            breakdown.append(_PREFERENCE_SCORERS[criterion](prefs, prop, weight))

    total = sum(s.weight * exact(s.score) for s in breakdown) / 100
    overall = max(0, min(100, round_half_up(total)))

    # sorted() es estable: a igual peso se respeta el orden de la config
    breakdown = sorted(breakdown, key=lambda s: s.weight, reverse=True)
    return MatchScore(overall=overall, breakdown=breakdown)


class CriteriaScorer:
    """Scorer por reglas atado a una configuración de criterios."""

    def __init__(self, config: Optional[CriteriaConfig] = None):
        self.config = config or get_criteria_config()

    def score(self, client: Client, prop: Property) -> MatchScore:
        return score(client, prop, self.config)
