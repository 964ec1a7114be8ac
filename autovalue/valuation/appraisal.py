"""
Georgia appraisal valuation.

Pre-accident value averages MarketCheck's clean retail price with the
Georgia comparables; post-accident value is the rough retail price
(clean retail x rough retail factor).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from ..config import Settings, load_settings
from ..utils import round_half_up, setup_logging
from .comparables import average_price, select_market_comparables
from .constants import AccidentHistory, DamageCode, StateCode, format_damage_areas
from .marketcheck import MarketCheckClient
from .models import ComparableListing

logger = setup_logging()

THIRD_PARTY_SOURCE = "MarketCheck API"


@dataclass
class GeorgiaAppraisalInput:
    """Everything captured by the Georgia appraisal form."""

    year: int
    make: str
    model: str
    vin: str
    mileage: int
    id: str = ""
    trim: str = ""
    owner_name: str = ""
    owner_address: str = ""
    owner_phone: str = ""
    owner_email: str = ""
    license_plate: Optional[str] = None
    state_of_registration: str = "GA"
    accident_history: AccidentHistory = AccidentHistory.UNKNOWN
    is_leased: bool = False
    insurance_company: str = ""
    claim_number: str = ""
    adjuster_name: Optional[str] = None
    adjuster_email: Optional[str] = None
    adjuster_phone: Optional[str] = None
    date_of_loss: str = ""
    repair_center_name: Optional[str] = None
    repair_center_phone: Optional[str] = None
    repair_center_address: Optional[str] = None
    repair_drop_off_date: Optional[str] = None
    repair_pickup_date: Optional[str] = None
    total_repair_cost: Optional[float] = None
    damage_description: Optional[str] = None
    key_impact_areas: List[DamageCode] = field(default_factory=list)
    state_of_loss: StateCode = StateCode.GA


@dataclass
class ThirdPartyValuations:
    clean_retail_pre_accident: int
    rough_retail_post_accident: int
    source: str
    retrieved_at: datetime


@dataclass
class AppraisalComputationResult:
    """Numbers and notes that go into a Georgia appraisal report."""

    appraisal_id: str
    third_party: ThirdPartyValuations
    comparables: List[ComparableListing]
    comparables_avg_retail: int
    final_pre_accident_value: int
    post_accident_value: int
    diminished_value: int
    mileage_band_description: str
    comparable_filter_notes: str
    damage_areas_summary: str
    created_at: datetime


def fetch_third_party_valuations(
    appraisal: GeorgiaAppraisalInput,
    client: MarketCheckClient,
    rough_retail_factor: float = 0.70,
) -> ThirdPartyValuations:
    pricing = client.fetch_market_pricing(
        year=appraisal.year,
        make=appraisal.make,
        model=appraisal.model,
        trim=appraisal.trim or None,
        mileage=appraisal.mileage,
        vin=appraisal.vin,
    )
    clean_retail = round_half_up(pricing.fair_retail_price)
    return ThirdPartyValuations(
        clean_retail_pre_accident=clean_retail,
        rough_retail_post_accident=round_half_up(clean_retail * rough_retail_factor),
        source=THIRD_PARTY_SOURCE,
        retrieved_at=datetime.now(timezone.utc),
    )


def fetch_market_comparables(
    appraisal: GeorgiaAppraisalInput,
    client: MarketCheckClient,
    target: int = 3,
) -> Tuple[List[ComparableListing], str]:
    """Georgia dealer listings inside the appraisal mileage window."""
    listings = client.fetch_retail_comps(
        year=appraisal.year,
        make=appraisal.make,
        model=appraisal.model,
        trim=appraisal.trim or None,
        state=StateCode.GA.value,
        mileage=appraisal.mileage,
    )
    return select_market_comparables(
        year=appraisal.year,
        make=appraisal.make,
        model=appraisal.model,
        mileage=appraisal.mileage,
        listings=listings,
        trim=appraisal.trim or None,
        target=target,
    )


def compute_pre_accident_value(
    third_party: ThirdPartyValuations,
    comparables: List[ComparableListing],
) -> Tuple[int, int]:
    """
    Returns:
        Tuple of (comparables average retail, final pre-accident value).
        Without priced comparables the clean retail value is used alone.
    """
    comparables_avg = average_price(c.price for c in comparables)
    if comparables_avg > 0:
        final_pre = round_half_up((third_party.clean_retail_pre_accident + comparables_avg) / 2)
    else:
        final_pre = third_party.clean_retail_pre_accident
    return comparables_avg, final_pre


def compute_diminished_value(
    pre_accident_value: float,
    third_party: ThirdPartyValuations,
) -> Tuple[int, int]:
    """Returns (post-accident value, diminished value); DV never goes negative."""
    post_accident_value = round_half_up(third_party.rough_retail_post_accident)
    return post_accident_value, max(0, round_half_up(pre_accident_value - post_accident_value))


def get_mileage_band_description(mileage: float) -> str:
    if mileage < 15000:
        return "Low mileage (under 15,000 miles) - premium market position"
    if mileage < 30000:
        return "Below average mileage (15,000-30,000 miles) - strong market position"
    if mileage < 50000:
        return "Average mileage (30,000-50,000 miles) - typical market position"
    if mileage < 75000:
        return "Above average mileage (50,000-75,000 miles) - moderate market position"
    if mileage < 100000:
        return "High mileage (75,000-100,000 miles) - value-conscious market segment"
    return "Very high mileage (over 100,000 miles) - economy market segment"


def run_full_appraisal_calculation(
    appraisal: GeorgiaAppraisalInput,
    client: Optional[MarketCheckClient] = None,
    settings: Optional[Settings] = None,
) -> AppraisalComputationResult:
    """
    Run the complete Georgia appraisal calculation.

    Raises:
        MarketCheckClientError: If pricing or comparables cannot be fetched.
    """
    settings = settings or load_settings()
    client = client or MarketCheckClient(settings.marketcheck)

    third_party = fetch_third_party_valuations(
        appraisal, client, rough_retail_factor=settings.valuation.rough_retail_factor
    )
    comparables, filter_notes = fetch_market_comparables(
        appraisal, client, target=settings.valuation.target_comp_count
    )
    comparables_avg, final_pre = compute_pre_accident_value(third_party, comparables)
    post, diminished_value = compute_diminished_value(final_pre, third_party)

    logger.info(
        "Georgia appraisal %s: clean=%s avg_comps=%s pre=%s post=%s dv=%s",
        appraisal.id or appraisal.vin,
        third_party.clean_retail_pre_accident, comparables_avg, final_pre, post, diminished_value,
    )

    return AppraisalComputationResult(
        appraisal_id=appraisal.id,
        third_party=third_party,
        comparables=comparables,
        comparables_avg_retail=comparables_avg,
        final_pre_accident_value=final_pre,
        post_accident_value=post,
        diminished_value=diminished_value,
        mileage_band_description=get_mileage_band_description(appraisal.mileage),
        comparable_filter_notes=filter_notes,
        damage_areas_summary=format_damage_areas(appraisal.key_impact_areas),
        created_at=datetime.now(timezone.utc),
    )
