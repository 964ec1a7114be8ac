"""
Diminished value engine (stigma deduction method).

Implements the valuation chain used for customer DV estimates:
- Pre-accident FMV: MarketCheck price blended with the comparable median
- Post-repair FMV: pre-accident value less a stigma deduction
- DV = Pre-accident FMV - Post-repair FMV
- Quick estimate for pre-qualification without market data

How the stigma deduction works:
- Base stigma is a percentage of pre-accident value (10% by default)
- Repair severity, mileage, age, prior accidents and state each scale it
- The adjusted percentage is capped (30% by default)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..config import ValuationSettings
from ..utils import format_money, round_half_up
from .comparables import median_price
from .constants import StateCode
from .models import ComparableListing, DecodedVin, MarketPricing
from .state_law import STIGMA_STATE_FACTORS, parse_state

# Pre-accident blend weights
MARKETCHECK_WEIGHT = 0.6
COMP_MEDIAN_WEIGHT = 0.4

# (upper bound exclusive, factor) bands; last band catches everything else
REPAIR_SEVERITY_BANDS = [(0.05, 0.25), (0.10, 0.50), (0.25, 0.75), (0.50, 1.0)]
REPAIR_SEVERITY_MAX = 1.25

MILEAGE_BANDS = [(20000, 1.2), (40000, 1.0), (60000, 0.85), (80000, 0.70), (100000, 0.55)]
MILEAGE_MIN_FACTOR = 0.40

# (max age inclusive, factor)
AGE_BANDS = [(1, 1.5), (3, 1.25), (5, 1.0), (7, 0.75)]
AGE_MIN_FACTOR = 0.50

PRIOR_ACCIDENT_FACTORS = {0: 1.0, 1: 1.15, 2: 1.30}
PRIOR_ACCIDENT_MAX = 1.50


@dataclass
class AppraisalInput:
    """Subject vehicle and loss details for a stigma-method DV estimate."""

    year: int
    make: str
    model: str
    mileage: int
    state: StateCode
    repair_cost: float
    prior_accidents: int = 0
    is_at_fault: bool = False
    trim: Optional[str] = None
    vin_data: Optional[DecodedVin] = None


@dataclass
class PreAccidentValueResult:
    pre_accident_value: int
    marketcheck_price: float
    comp_median_price: float
    price_range_low: float
    price_range_high: float
    methodology: str


@dataclass
class StigmaFactors:
    repair_severity_factor: float
    mileage_factor: float
    age_factor: float
    prior_accidents_factor: float
    state_factor: float

    def product(self) -> float:
        return (
            self.repair_severity_factor
            * self.mileage_factor
            * self.age_factor
            * self.prior_accidents_factor
            * self.state_factor
        )


@dataclass
class PostRepairValueResult:
    post_repair_value: int
    stigma_deduction: int
    stigma_percentage: float
    factors: StigmaFactors
    methodology: str


@dataclass
class DVResult:
    """Result of the stigma-method DV calculation with its breakdown."""

    pre_accident_value: int
    post_repair_value: int
    diminished_value: int
    stigma_deduction: int
    methodology: str
    breakdown: Dict[str, Any] = field(default_factory=dict)


@dataclass
class QuickEstimate:
    estimate_min: int
    estimate_max: int


class DiminishedValueEngine:
    """
    Stigma-deduction diminished value calculator.

    Each factor method is exposed so the breakdown can be explained to the
    customer one step at a time.
    """

    def __init__(self, settings: Optional[ValuationSettings] = None):
        self.settings = settings or ValuationSettings()

    @staticmethod
    def _vehicle_age(year: int, current_year: Optional[int]) -> int:
        return (current_year or datetime.now().year) - year

    def repair_severity_factor(self, repair_cost: float, pre_accident_value: float) -> float:
        """Higher repair cost relative to value means more stigma."""
        if pre_accident_value <= 0:
            return REPAIR_SEVERITY_MAX
        ratio = repair_cost / pre_accident_value
        for upper, factor in REPAIR_SEVERITY_BANDS:
            if ratio < upper:
                return factor
        return REPAIR_SEVERITY_MAX

    def mileage_factor(self, mileage: float) -> float:
        """Higher mileage means buyers care less about accident history."""
        for upper, factor in MILEAGE_BANDS:
            if mileage < upper:
                return factor
        return MILEAGE_MIN_FACTOR

    def age_factor(self, vehicle_age: int) -> float:
        """Newer cars lose more value from an accident record."""
        for max_age, factor in AGE_BANDS:
            if vehicle_age <= max_age:
                return factor
        return AGE_MIN_FACTOR

    def prior_accidents_factor(self, prior_accidents: int) -> float:
        """Additional accidents compound stigma."""
        return PRIOR_ACCIDENT_FACTORS.get(max(0, prior_accidents), PRIOR_ACCIDENT_MAX)

    def state_factor(self, state: StateCode) -> float:
        return STIGMA_STATE_FACTORS.get(parse_state(state), 1.0)

    def generate_pre_accident_value(
        self,
        pricing: MarketPricing,
        comps: Sequence[ComparableListing],
    ) -> PreAccidentValueResult:
        """
        Compute pre-accident fair market value.

        MarketCheck's mileage-adjusted price (or fair retail when absent) is
        weighted 60% against the comparable median's 40%. When only one
        source has data it is used alone.
        """
        marketcheck_price = pricing.mileage_adjusted_price or pricing.fair_retail_price
        comp_median = median_price(c.price for c in comps)

        if comp_median > 0 and marketcheck_price > 0:
            value = round_half_up(
                marketcheck_price * MARKETCHECK_WEIGHT + comp_median * COMP_MEDIAN_WEIGHT
            )
            methodology = "Blended: MarketCheck price (60%) + Comparable median (40%)"
        elif marketcheck_price > 0:
            value = round_half_up(marketcheck_price)
            methodology = "MarketCheck mileage-adjusted retail price"
        elif comp_median > 0:
            value = round_half_up(comp_median)
            methodology = "Median of comparable retail listings"
        else:
            value = 0
            methodology = "Unable to determine - insufficient market data"

        return PreAccidentValueResult(
            pre_accident_value=value,
            marketcheck_price=marketcheck_price,
            comp_median_price=comp_median,
            price_range_low=pricing.price_range_low,
            price_range_high=pricing.price_range_high,
            methodology=methodology,
        )

    def compute_stigma_factors(
        self,
        pre_accident_value: float,
        appraisal: AppraisalInput,
        current_year: Optional[int] = None,
    ) -> StigmaFactors:
        return StigmaFactors(
            repair_severity_factor=self.repair_severity_factor(appraisal.repair_cost, pre_accident_value),
            mileage_factor=self.mileage_factor(appraisal.mileage),
            age_factor=self.age_factor(self._vehicle_age(appraisal.year, current_year)),
            prior_accidents_factor=self.prior_accidents_factor(appraisal.prior_accidents),
            state_factor=self.state_factor(appraisal.state),
        )

    def generate_post_repair_value(
        self,
        pre_accident_value: float,
        appraisal: AppraisalInput,
        current_year: Optional[int] = None,
    ) -> PostRepairValueResult:
        """
        Estimate post-repair fair market value by stigma deduction.

        Post-repair value = pre-accident value - capped stigma deduction.
        """
        factors = self.compute_stigma_factors(pre_accident_value, appraisal, current_year)
        adjusted_pct = self.settings.base_stigma_pct * factors.product()
        stigma_pct = min(self.settings.stigma_cap_pct, adjusted_pct)

        stigma_deduction = max(0, round_half_up(pre_accident_value * stigma_pct))
        post_repair_value = round_half_up(pre_accident_value - stigma_deduction)

        methodology = (
            f"Stigma deduction: {stigma_pct * 100:.1f}% of pre-accident value based on "
            f"repair severity ({factors.repair_severity_factor:.2f}), "
            f"mileage ({factors.mileage_factor:.2f}), "
            f"age ({factors.age_factor:.2f}), "
            f"prior accidents ({factors.prior_accidents_factor:.2f}), "
            f"and state ({factors.state_factor:.2f})"
        )

        return PostRepairValueResult(
            post_repair_value=post_repair_value,
            stigma_deduction=stigma_deduction,
            stigma_percentage=stigma_pct * 100,
            factors=factors,
            methodology=methodology,
        )

    def compute_dv_amount(
        self,
        pricing: MarketPricing,
        comps: Sequence[ComparableListing],
        appraisal: AppraisalInput,
        current_year: Optional[int] = None,
    ) -> DVResult:
        """
        Compute the diminished value amount.

        DV = Pre-Accident FMV - Post-Repair FMV, the measure applied in
        Georgia (State Farm v. Mabry) and most other states.
        """
        pre = self.generate_pre_accident_value(pricing, comps)
        post = self.generate_post_repair_value(pre.pre_accident_value, appraisal, current_year)
        diminished_value = pre.pre_accident_value - post.post_repair_value

        return DVResult(
            pre_accident_value=pre.pre_accident_value,
            post_repair_value=post.post_repair_value,
            diminished_value=diminished_value,
            stigma_deduction=post.stigma_deduction,
            methodology=(
                f"DV = Pre-Accident FMV ({format_money(pre.pre_accident_value)}) - "
                f"Post-Repair FMV ({format_money(post.post_repair_value)}) = "
                f"{format_money(diminished_value)}"
            ),
            breakdown={
                "marketcheck_price": pre.marketcheck_price,
                "comp_median_price": pre.comp_median_price,
                "price_range_low": pre.price_range_low,
                "price_range_high": pre.price_range_high,
                "pre_accident_methodology": pre.methodology,
                "stigma_methodology": post.methodology,
                "stigma_percentage": post.stigma_percentage,
                "factors": post.factors,
            },
        )

    def quick_estimate(
        self,
        year: int,
        mileage: float,
        state: StateCode,
        current_year: Optional[int] = None,
    ) -> QuickEstimate:
        """
        Rough DV range for pre-qualification, without market data.

        Uses an age-based vehicle value, a mileage haircut and an age-based
        DV percentage band.
        """
        age = self._vehicle_age(year, current_year)

        if age <= 2:
            base_value = 38000.0
        elif age <= 4:
            base_value = 30000.0
        elif age <= 6:
            base_value = 22000.0
        elif age <= 8:
            base_value = 16000.0
        else:
            base_value = 12000.0

        if mileage > 100000:
            base_value *= 0.65
        elif mileage > 75000:
            base_value *= 0.75
        elif mileage > 50000:
            base_value *= 0.85

        state_multiplier = self.state_factor(state)

        if age <= 3:
            pct_min, pct_max = 0.10, 0.18
        elif age <= 6:
            pct_min, pct_max = 0.07, 0.14
        else:
            pct_min, pct_max = 0.06, 0.12

        return QuickEstimate(
            estimate_min=round_half_up(base_value * pct_min * state_multiplier),
            estimate_max=round_half_up(base_value * pct_max * state_multiplier),
        )
