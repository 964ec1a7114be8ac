"""
Case diminished value calculator and pre-qualification estimate.

calculate_diminished_value() is the per-case loss formula: a base loss
percentage of pre-accident value scaled by damage, mileage and state
modifiers. prequal_estimate() gives the free estimate range shown before a
case is opened.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from ..utils import round_half_up
from .constants import FaultStatus, StateCode
from .state_law import CASE_STATE_ADJUSTMENTS, parse_state


@dataclass
class CaseValuationBreakdown:
    base_value: int
    base_loss: int
    base_loss_percent: float
    damage_modifier: float
    mileage_modifier: float
    state_adjustment: float
    formula: str


@dataclass
class CaseValuation:
    """Result of the case loss formula."""

    pre_accident_value: int
    post_accident_value: int
    diminished_value: int
    breakdown: CaseValuationBreakdown


@dataclass
class PrequalEstimate:
    estimate_min: int
    estimate_max: int
    qualified: bool


def base_loss_percent(vehicle_age: int) -> float:
    """Newer vehicles start from a larger share of value lost."""
    if vehicle_age <= 3:
        return 0.15
    if vehicle_age <= 6:
        return 0.10
    return 0.07


def damage_modifier(repair_cost: float, pre_value: float) -> float:
    ratio = repair_cost / pre_value
    if ratio < 0.1:
        return 0.25
    if ratio < 0.25:
        return 0.50
    if ratio < 0.5:
        return 0.75
    return 1.0


def mileage_modifier(mileage: float) -> float:
    if mileage < 20000:
        return 1.0
    if mileage < 40000:
        return 0.8
    if mileage < 60000:
        return 0.6
    if mileage < 80000:
        return 0.4
    if mileage < 100000:
        return 0.2
    return 0.1


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def calculate_diminished_value(
    pre_value: float,
    repair_cost: float,
    mileage: float,
    vehicle_year: int,
    state: Union[StateCode, str],
    current_year: Optional[int] = None,
) -> CaseValuation:
    """
    Calculate a case's diminished value from its pre-accident value.

    DV = pre_value x base% x damage modifier x mileage modifier x state adjustment

    Args:
        pre_value: Pre-accident fair market value.
        repair_cost: Total repair cost (0 when unknown).
        mileage: Odometer reading at the time of loss.
        vehicle_year: Model year of the vehicle.
        state: State of loss.
        current_year: Reference year for vehicle age (defaults to today).

    Returns:
        CaseValuation with pre, post and diminished values and a breakdown.

    Raises:
        ValueError: If pre_value is not positive or the state is unsupported.
    """
    if pre_value is None or pre_value <= 0:
        raise ValueError("Valid pre-accident value is required")

    state_code = parse_state(state)
    vehicle_age = (current_year or datetime.now().year) - vehicle_year

    base_pct = base_loss_percent(vehicle_age)
    damage_mod = damage_modifier(repair_cost or 0, pre_value)
    mileage_mod = mileage_modifier(mileage or 0)
    state_adj = CASE_STATE_ADJUSTMENTS.get(state_code, 1.0)

    base_loss = pre_value * base_pct
    diminished_value = round_half_up(base_loss * damage_mod * mileage_mod * state_adj)
    post_accident_value = max(0, round_half_up(pre_value - diminished_value))

    formula = (
        f"DV = Base Value ({_format_number(pre_value)}) x Base % ({base_pct * 100:.0f}%) "
        f"x Damage Mod ({damage_mod}) x Mileage Mod ({mileage_mod}) x State Adj ({state_adj})"
    )

    return CaseValuation(
        pre_accident_value=round_half_up(pre_value),
        post_accident_value=post_accident_value,
        diminished_value=diminished_value,
        breakdown=CaseValuationBreakdown(
            base_value=round_half_up(pre_value),
            base_loss=round_half_up(base_loss),
            base_loss_percent=base_pct,
            damage_modifier=damage_mod,
            mileage_modifier=mileage_mod,
            state_adjustment=state_adj,
            formula=formula,
        ),
    )


def prequal_estimate(
    year: int,
    mileage: float,
    fault: Union[FaultStatus, str],
    current_year: Optional[int] = None,
) -> PrequalEstimate:
    """
    Free estimate range for the pre-qualification form.

    Claimants who report being at fault are not qualified.
    """
    vehicle_age = (current_year or datetime.now().year) - year

    if vehicle_age <= 2:
        base_value = 35000.0
    elif vehicle_age <= 4:
        base_value = 28000.0
    elif vehicle_age <= 6:
        base_value = 20000.0
    elif vehicle_age <= 8:
        base_value = 15000.0
    else:
        base_value = 10000.0

    if mileage > 100000:
        base_value *= 0.7
    elif mileage > 75000:
        base_value *= 0.8
    elif mileage > 50000:
        base_value *= 0.9

    if vehicle_age <= 3:
        discount_min, discount_max = 0.12, 0.20
    elif vehicle_age <= 6:
        discount_min, discount_max = 0.08, 0.15
    else:
        discount_min, discount_max = 0.05, 0.10

    return PrequalEstimate(
        estimate_min=round_half_up(base_value * discount_min),
        estimate_max=round_half_up(base_value * discount_max),
        qualified=FaultStatus(fault) != FaultStatus.AT_FAULT,
    )
