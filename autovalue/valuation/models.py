"""
Market data models shared by the valuation engines.

These are filled in by the MarketCheck client and consumed by the
calculators; they carry no behaviour beyond small helpers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .constants import AccidentHistory, HistoryMatchStatus


@dataclass
class DecodedVin:
    """Vehicle attributes decoded from a VIN."""

    vin: str
    year: int
    make: str
    model: str
    trim: Optional[str] = None
    drivetrain: Optional[str] = None
    engine_type: Optional[str] = None
    ev_battery_pack: Optional[str] = None
    body_type: Optional[str] = None
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None
    doors: Optional[int] = None
    cylinders: Optional[int] = None
    displacement: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MarketPricing:
    """Retail price statistics for a year/make/model (or VIN)."""

    fair_retail_price: float
    price_range_low: float
    price_range_high: float
    mileage_adjusted_price: float
    sample_size: int = 0


@dataclass
class VINDataReport:
    """AAMVA/NMVTIS title history summary for a VIN."""

    vin: str
    title_brands: List[str] = field(default_factory=list)
    has_junk_salvage_record: bool = False
    has_total_loss_record: bool = False
    odometer_consistent: bool = True
    report_id: str = ""
    report_type: str = "aamva"  # "aamva" or "generated"
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ComparableListing:
    """A retail listing used to benchmark market value."""

    vin: str
    year: int
    make: str
    model: str
    mileage: int
    price: float
    trim: Optional[str] = None
    dealer_name: str = "Unknown Dealer"
    dealer_phone: Optional[str] = None
    dealer_city: Optional[str] = None
    dealer_state: Optional[str] = None
    listing_url: Optional[str] = None
    distance_miles: Optional[float] = None
    accident_history: AccidentHistory = AccidentHistory.UNKNOWN
    vin_data_report: Optional[VINDataReport] = None
    history_match_status: Optional[HistoryMatchStatus] = None


@dataclass
class MarketCheckPriceResult:
    """MarketCheck Price prediction plus the comparables it was based on."""

    marketcheck_price: float
    price_low: float
    price_high: float
    confidence_score: float = 0.0
    sample_size: int = 0
    comparables: List[ComparableListing] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)


def is_clean_history(report: Optional[VINDataReport]) -> bool:
    """
    A vehicle is clean when its report shows no brands, salvage or total loss.

    A missing report is treated as clean; there is nothing on record.
    """
    if report is None:
        return True
    return (
        not report.has_junk_salvage_record
        and not report.has_total_loss_record
        and len(report.title_brands) == 0
    )
