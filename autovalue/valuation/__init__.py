"""
Diminished Value Valuation Package

This package implements the diminished value (DV) calculations for
vehicles that have been in an accident and repaired.

Modules:
- constants: State codes, history flags, damage areas and value buckets
- models: Market data shared by the engines (pricing, comps, VIN reports)
- engine: Stigma-deduction DV engine and quick estimate
- calculator: Case loss formula and pre-qualification estimate
- comparables: Comparable selection and title-history matching
- marketcheck: MarketCheck pricing data source
- full_valuation: MarketCheck Price + comparables valuation pipeline
- appraisal: Georgia appraisal calculation
- state_law: State DV law reference data
- api: FastAPI router
"""

from autovalue.valuation.constants import (
    AccidentHistory,
    CaseStatus,
    DamageCode,
    FaultStatus,
    HistoryMatchStatus,
    PreAccidentValueBucket,
    StateCode,
    format_damage_areas,
    is_guarantee_eligible,
)
from autovalue.valuation.models import (
    ComparableListing,
    DecodedVin,
    MarketCheckPriceResult,
    MarketPricing,
    VINDataReport,
    is_clean_history,
)
from autovalue.valuation.engine import (
    AppraisalInput,
    DiminishedValueEngine,
    DVResult,
    QuickEstimate,
    StigmaFactors,
)
from autovalue.valuation.calculator import (
    CaseValuation,
    PrequalEstimate,
    calculate_diminished_value,
    prequal_estimate,
)
from autovalue.valuation.comparables import (
    filter_comparables_by_history,
    select_market_comparables,
)
from autovalue.valuation.marketcheck import (
    MarketCheckClient,
    MarketCheckClientError,
)
from autovalue.valuation.full_valuation import (
    FullValuationService,
    ValuationError,
    ValuationResult,
    compute_mock_valuation,
)
from autovalue.valuation.appraisal import (
    AppraisalComputationResult,
    GeorgiaAppraisalInput,
    ThirdPartyValuations,
    run_full_appraisal_calculation,
)
from autovalue.valuation.state_law import (
    StateLaw,
    get_state_law,
    is_recovery_barred,
)

__all__ = [
    # Enums and helpers
    "AccidentHistory",
    "CaseStatus",
    "DamageCode",
    "FaultStatus",
    "HistoryMatchStatus",
    "PreAccidentValueBucket",
    "StateCode",
    "format_damage_areas",
    "is_guarantee_eligible",
    # Market data
    "ComparableListing",
    "DecodedVin",
    "MarketCheckPriceResult",
    "MarketPricing",
    "VINDataReport",
    "is_clean_history",
    # Engine
    "AppraisalInput",
    "DiminishedValueEngine",
    "DVResult",
    "QuickEstimate",
    "StigmaFactors",
    # Calculator
    "CaseValuation",
    "PrequalEstimate",
    "calculate_diminished_value",
    "prequal_estimate",
    # Comparables
    "filter_comparables_by_history",
    "select_market_comparables",
    # MarketCheck
    "MarketCheckClient",
    "MarketCheckClientError",
    # Full valuation
    "FullValuationService",
    "ValuationError",
    "ValuationResult",
    "compute_mock_valuation",
    # Georgia appraisal
    "AppraisalComputationResult",
    "GeorgiaAppraisalInput",
    "ThirdPartyValuations",
    "run_full_appraisal_calculation",
    # State law
    "StateLaw",
    "get_state_law",
    "is_recovery_barred",
]
