"""
Full valuation pipeline (MarketCheck price + history-matched comparables).

Pre-accident value is the mean of the MarketCheck Price and the average of
the selected comparables. Post-accident value is the MarketCheck Price
scaled by the configured post-accident factor. Every step is recorded in a
filtering log so the final report can show how the numbers were reached.

When no MarketCheck API key is configured a deterministic mock valuation
is returned instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ..config import Settings, load_settings
from ..utils import format_money, round_half_up, setup_logging
from .comparables import average_price, filter_comparables_by_history, merge_unique_by_vin
from .constants import HistoryMatchStatus
from .marketcheck import MarketCheckClient, MarketCheckClientError
from .models import ComparableListing, VINDataReport

logger = setup_logging()

# Inventory search windows, as fractions of subject mileage
BACKUP_MILEAGE_SPREAD = 0.30
WIDE_MILEAGE_SPREAD = 0.50
WIDE_SEARCH_LIMIT = 50


class ValuationError(Exception):
    """Raised when no pre-accident value can be determined."""
    pass


@dataclass
class ValuationResult:
    """Outcome of a full valuation, with the audit trail behind it."""

    marketcheck_price_pre: int
    comp_prices: List[float]
    avg_comp_price: int
    final_pre_accident_value: int
    post_accident_value: int
    diminished_value: int
    selected_comps: List[ComparableListing] = field(default_factory=list)
    subject_vin_data: Optional[VINDataReport] = None
    methodology: str = ""
    filtering_log: List[str] = field(default_factory=list)


def _mock_base_price(vehicle_age: int, miles: float) -> float:
    if vehicle_age > 12:
        price = 10000.0
    elif vehicle_age > 10:
        price = 13000.0
    elif vehicle_age > 7:
        price = 17000.0
    elif vehicle_age > 5:
        price = 22000.0
    elif vehicle_age > 3:
        price = 28000.0
    else:
        price = 35000.0

    if miles > 120000:
        price *= 0.6
    elif miles > 90000:
        price *= 0.7
    elif miles > 70000:
        price *= 0.8
    elif miles > 50000:
        price *= 0.9
    elif miles < 20000:
        price *= 1.05
    return price


def compute_mock_valuation(
    vin: str,
    miles: int,
    year: int,
    make: str,
    model: str,
    trim: Optional[str] = None,
    post_accident_factor: float = 0.90,
    current_year: Optional[int] = None,
) -> ValuationResult:
    """
    Heuristic valuation for development without MarketCheck access.

    Price comes from age and mileage bands; three synthetic comparables are
    placed at 95%, 100% and 105% of it.
    """
    vehicle_age = max(0, (current_year or datetime.now().year) - year)
    marketcheck_price = round_half_up(_mock_base_price(vehicle_age, miles))

    comp_prices = [round_half_up(marketcheck_price * pct) for pct in (0.95, 1.0, 1.05)]
    avg_comp_price = round_half_up(sum(comp_prices) / len(comp_prices))
    final_pre = round_half_up((marketcheck_price + avg_comp_price) / 2)
    post = round_half_up(marketcheck_price * post_accident_factor)
    diminished_value = max(0, final_pre - post)

    selected_comps = [
        ComparableListing(
            vin=f"{vin or 'MOCKVIN'}-C{index}",
            year=year,
            make=make,
            model=model,
            trim=trim or None,
            mileage=miles,
            price=price,
            dealer_name="Mock Dealer",
            dealer_city="Atlanta",
            dealer_state="GA",
        )
        for index, price in enumerate(comp_prices, start=1)
    ]

    filtering_log = [
        "Using mock MarketCheck valuation because MARKETCHECK_API_KEY is not configured.",
        f"Base price derived from year {year} and {miles:,} miles.",
        f"Generated 3 synthetic comparable vehicles around {format_money(marketcheck_price)}.",
    ]
    methodology = "\n".join([
        "Mock valuation for development/testing:",
        "- Pre-accident value based on age and mileage heuristics.",
        "- Three synthetic comparable retail listings generated around the heuristic value.",
        f"- Post-accident value computed as MarketCheck price x post-accident factor ({post_accident_factor}).",
    ])

    return ValuationResult(
        marketcheck_price_pre=marketcheck_price,
        comp_prices=comp_prices,
        avg_comp_price=avg_comp_price,
        final_pre_accident_value=final_pre,
        post_accident_value=post,
        diminished_value=diminished_value,
        selected_comps=selected_comps,
        subject_vin_data=None,
        methodology=methodology,
        filtering_log=filtering_log,
    )


class FullValuationService:
    """
    Runs the MarketCheck-backed valuation for one subject vehicle.

    Example:
        service = FullValuationService()
        result = service.compute_full_valuation(
            vin="1HGCV1F34LA000001", miles=32000, year=2020, make="Honda", model="Accord"
        )
        print(result.diminished_value)
    """

    def __init__(
        self,
        client: Optional[MarketCheckClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or load_settings()
        self.client = client or MarketCheckClient(self.settings.marketcheck)

    def _fetch_report_safely(self, vin: str) -> Optional[VINDataReport]:
        try:
            return self.client.get_vin_data_report(vin)
        except MarketCheckClientError as e:
            logger.warning("VINData lookup failed for %s: %s", vin, e)
            return None

    def compute_full_valuation(
        self,
        vin: str,
        miles: int,
        year: int,
        make: str,
        model: str,
        trim: Optional[str] = None,
        zip_code: Optional[str] = None,
        repair_cost: Optional[float] = None,
        current_year: Optional[int] = None,
    ) -> ValuationResult:
        """
        Compute pre-accident, post-accident and diminished value.

        Args:
            vin: Subject vehicle VIN.
            miles: Subject odometer reading.
            year, make, model, trim: Subject vehicle description.
            zip_code: Market location; defaults to the configured state.
            repair_cost: Accepted for the record; the post-accident factor
                does not depend on it.
            current_year: Reference year for the mock valuation's age bands.

        Raises:
            ValuationError: If neither MarketCheck nor comparables give a price.
            MarketCheckClientError: If the MarketCheck price request fails.
        """
        valuation = self.settings.valuation
        if not self.client.is_configured:
            logger.info("MarketCheck not configured, returning mock valuation for %s", vin)
            return compute_mock_valuation(
                vin, miles, year, make, model, trim,
                post_accident_factor=valuation.post_accident_factor,
                current_year=current_year,
            )

        target = valuation.target_comp_count
        factor = valuation.post_accident_factor
        log: List[str] = [
            f"Starting valuation for VIN: {vin}",
            f"Vehicle: {year} {make} {model} {trim or ''}".rstrip(),
            f"Mileage: {miles:,}",
        ]
        if repair_cost:
            log.append(f"Repair cost on file: {format_money(repair_cost)}")

        log.append("Fetching subject VINData report...")
        subject_report = self._fetch_report_safely(vin)
        if subject_report:
            log.append(
                f"Subject VINData: {len(subject_report.title_brands)} title brands, "
                f"Junk/Salvage: {subject_report.has_junk_salvage_record}, "
                f"Total Loss: {subject_report.has_total_loss_record}"
            )
        else:
            log.append("Subject VINData: No report available")

        log.append("Fetching MarketCheck Price with comparables...")
        price_result = self.client.get_price_with_comparables(
            vin=vin,
            miles=miles,
            zip_code=zip_code,
            state=self.settings.marketcheck.default_state,
        )
        marketcheck_price = round_half_up(price_result.marketcheck_price)
        log.append(f"MarketCheck Price: {format_money(marketcheck_price)}")
        log.append(
            f"Price Range: {format_money(price_result.price_low)} - {format_money(price_result.price_high)}"
        )
        log.append(f"Initial comparables from endpoint: {len(price_result.comparables)}")

        candidates = list(price_result.comparables)
        if len(candidates) < target:
            log.append("Insufficient comparables from price endpoint, searching inventory...")
            backup = self.client.search_inventory(
                year=year,
                make=make,
                model=model,
                trim=trim,
                miles_min=round_half_up(miles * (1 - BACKUP_MILEAGE_SPREAD)),
                miles_max=round_half_up(miles * (1 + BACKUP_MILEAGE_SPREAD)),
            )
            log.append(f"Backup inventory search found: {len(backup)} listings")
            candidates = merge_unique_by_vin(candidates, backup)
            log.append(f"Total candidate pool: {len(candidates)}")

        selected, filter_log = filter_comparables_by_history(
            miles,
            candidates,
            subject_report,
            self._fetch_report_safely,
            tolerance_steps=valuation.mileage_tolerance_steps,
            target=target,
        )
        log.extend(filter_log)

        if len(selected) < target:
            log.append(f"Only {len(selected)} comps after filtering, searching backup inventory...")
            wide = self.client.search_inventory(
                year=year,
                make=make,
                model=model,
                miles_min=round_half_up(miles * (1 - WIDE_MILEAGE_SPREAD)),
                miles_max=round_half_up(miles * (1 + WIDE_MILEAGE_SPREAD)),
                limit=WIDE_SEARCH_LIMIT,
            )
            log.append(f"Wide-range backup search found: {len(wide)} listings")

            before = {c.vin for c in selected}
            selected = merge_unique_by_vin(selected, wide, limit=target)
            for comp in selected:
                if comp.vin in before:
                    continue
                comp.vin_data_report = self._fetch_report_safely(comp.vin)
                comp.history_match_status = (
                    HistoryMatchStatus.SIMILAR if comp.vin_data_report else HistoryMatchStatus.NO_DATA
                )
                log.append(f"Added backup comp: {comp.vin} at {format_money(comp.price)}")
            log.append(f"Final comp count after backup: {len(selected)}")

        if len(selected) < target:
            log.append(
                f"WARNING: Could not find {target} comparable vehicles. "
                "Report will include available matches with disclosure."
            )

        comp_prices = [c.price for c in selected]
        avg_comp_price = average_price(comp_prices)
        log.append(f"Selected {len(selected)} comparables")
        log.append(f"Comp prices: {', '.join(format_money(p) for p in comp_prices)}")
        log.append(f"Average comp price: {format_money(avg_comp_price)}")

        if avg_comp_price > 0 and marketcheck_price > 0:
            final_pre = round_half_up((marketcheck_price + avg_comp_price) / 2)
            log.append(
                f"Final Pre-Accident Value = (MarketCheck {format_money(marketcheck_price)} + "
                f"Avg Comp {format_money(avg_comp_price)}) / 2 = {format_money(final_pre)}"
            )
        elif marketcheck_price > 0:
            final_pre = marketcheck_price
            log.append(f"Final Pre-Accident Value = MarketCheck Price: {format_money(final_pre)}")
        elif avg_comp_price > 0:
            final_pre = avg_comp_price
            log.append(f"Final Pre-Accident Value = Average Comp Price: {format_money(final_pre)}")
        else:
            raise ValuationError("Unable to determine pre-accident value - no pricing data available")

        post = round_half_up(marketcheck_price * factor)
        log.append(
            f"Post-Accident Value = MarketCheck {format_money(marketcheck_price)} x {factor} = {format_money(post)}"
        )
        diminished_value = max(0, final_pre - post)
        log.append(
            f"Diminished Value = {format_money(final_pre)} - {format_money(post)} = {format_money(diminished_value)}"
        )

        methodology = "\n".join([
            "Pre-Accident Fair Market Value derived from:",
            f"1. MarketCheck Price valuation: {format_money(marketcheck_price)}",
            f"2. Average of {len(selected)} comparable retail listings: {format_money(avg_comp_price)}",
            f"3. Final Pre-Accident Value: {format_money(final_pre)}",
            "",
            f"Post-Accident Value calculated using post-accident factor ({factor}):",
            f"{format_money(marketcheck_price)} x {factor} = {format_money(post)}",
            "",
            "Diminished Value = Pre-Accident Value - Post-Accident Value",
            f"{format_money(final_pre)} - {format_money(post)} = {format_money(diminished_value)}",
        ])

        logger.info(
            "Valuation %s: marketcheck=%s comps=%s avg=%s pre=%s post=%s dv=%s",
            vin, marketcheck_price, comp_prices, avg_comp_price, final_pre, post, diminished_value,
        )

        return ValuationResult(
            marketcheck_price_pre=marketcheck_price,
            comp_prices=comp_prices,
            avg_comp_price=avg_comp_price,
            final_pre_accident_value=final_pre,
            post_accident_value=post,
            diminished_value=diminished_value,
            selected_comps=selected,
            subject_vin_data=subject_report,
            methodology=methodology,
            filtering_log=log,
        )
