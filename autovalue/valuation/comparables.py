"""
Comparable vehicle selection.

Implements the rules for choosing which retail listings benchmark the
subject vehicle's market value:
- Median and average comparable prices
- Title-history matching against VINData reports
- Progressive mileage tolerance (10% -> 15% -> 20% by default)
- The Georgia appraisal's fixed mileage window selection
"""

from __future__ import annotations

import logging
import statistics
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from ..utils import round_half_up
from .constants import HistoryMatchStatus
from .models import ComparableListing, VINDataReport, is_clean_history

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_STEPS: Tuple[int, ...] = (10, 15, 20)
DEFAULT_TARGET_COUNT = 3

# Georgia appraisal comp window: +/- max(5,000 miles, 20% of subject mileage)
MIN_MILEAGE_VARIANCE = 5000
MILEAGE_VARIANCE_PCT = 0.20

_HISTORY_RANK = {
    HistoryMatchStatus.EXACT: 0,
    HistoryMatchStatus.SIMILAR: 1,
    HistoryMatchStatus.NO_DATA: 2,
}

ReportFetcher = Callable[[str], Optional[VINDataReport]]


def median_price(prices: Iterable[float]) -> float:
    """Median of the given prices, 0 when there are none."""
    values = list(prices)
    if not values:
        return 0
    return statistics.median(values)


def average_price(prices: Iterable[float]) -> int:
    """Rounded mean of the positive prices, 0 when there are none."""
    values = [p for p in prices if p > 0]
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def classify_history_match(
    subject_clean: bool, comp_report: Optional[VINDataReport]
) -> HistoryMatchStatus:
    """Compare a comparable's title history with the subject's."""
    if comp_report is None:
        return HistoryMatchStatus.NO_DATA
    if subject_clean == is_clean_history(comp_report):
        return HistoryMatchStatus.EXACT
    return HistoryMatchStatus.SIMILAR


def _mileage_distance(comp: ComparableListing, subject_miles: float) -> float:
    return abs(comp.mileage - subject_miles)


def _history_rank(comp: ComparableListing) -> int:
    return _HISTORY_RANK.get(comp.history_match_status, _HISTORY_RANK[HistoryMatchStatus.NO_DATA])


def merge_unique_by_vin(
    existing: List[ComparableListing],
    extra: Iterable[ComparableListing],
    limit: Optional[int] = None,
) -> List[ComparableListing]:
    """
    Append listings whose VIN is not already present.

    Args:
        existing: Listings to extend (not modified).
        extra: Candidate listings to add.
        limit: Stop once the merged list reaches this size.
    """
    merged = list(existing)
    seen = {c.vin for c in merged}
    for comp in extra:
        if limit is not None and len(merged) >= limit:
            break
        if comp.vin in seen:
            continue
        merged.append(comp)
        seen.add(comp.vin)
    return merged


def annotate_history(
    candidates: Sequence[ComparableListing],
    subject_report: Optional[VINDataReport],
    report_fetcher: ReportFetcher,
) -> None:
    """Fetch a VINData report for each candidate and set its match status."""
    subject_clean = is_clean_history(subject_report)
    for comp in candidates:
        if not comp.vin:
            continue
        try:
            comp.vin_data_report = report_fetcher(comp.vin)
        except Exception as e:
            logger.warning("VINData lookup failed for comparable %s: %s", comp.vin, e)
            comp.vin_data_report = None
        comp.history_match_status = classify_history_match(subject_clean, comp.vin_data_report)


def filter_comparables_by_history(
    subject_miles: float,
    candidates: Sequence[ComparableListing],
    subject_report: Optional[VINDataReport],
    report_fetcher: ReportFetcher,
    tolerance_steps: Sequence[int] = DEFAULT_TOLERANCE_STEPS,
    target: int = DEFAULT_TARGET_COUNT,
) -> Tuple[List[ComparableListing], List[str]]:
    """
    Choose comparables that match the subject's title history and mileage.

    The mileage window widens step by step. At each step, a full set of
    exact history matches wins outright; otherwise a full set of in-window
    comps is ranked by history match and then mileage distance. If no step
    yields enough comps, all candidates are ranked by (exact first, mileage).

    Args:
        subject_miles: Subject vehicle odometer reading.
        candidates: Candidate listings (annotated in place with history).
        subject_report: Subject vehicle's VINData report, if any.
        report_fetcher: Callable returning a VINData report for a VIN.
        tolerance_steps: Mileage tolerance percentages to try, in order.
        target: Number of comparables wanted.

    Returns:
        Tuple of (selected comparables, filter log lines).
    """
    filter_log: List[str] = [f"Starting with {len(candidates)} candidate comparables"]
    subject_clean = is_clean_history(subject_report)
    filter_log.append(f"Subject vehicle history: {'Clean' if subject_clean else 'Has history flags'}")

    annotate_history(candidates, subject_report, report_fetcher)

    for tolerance in tolerance_steps:
        min_miles = subject_miles * (1 - tolerance / 100)
        max_miles = subject_miles * (1 + tolerance / 100)
        in_window = [c for c in candidates if min_miles <= c.mileage <= max_miles]
        exact = [c for c in in_window if c.history_match_status == HistoryMatchStatus.EXACT]
        filter_log.append(
            f"±{tolerance}% mileage: {len(in_window)} comps, {len(exact)} exact history matches"
        )

        if len(exact) >= target:
            return exact[:target], filter_log

        if len(in_window) >= target:
            ranked = sorted(
                in_window,
                key=lambda c: (_history_rank(c), _mileage_distance(c, subject_miles)),
            )
            filter_log.append(
                f"Using {tolerance}% mileage tolerance with best available history matches"
            )
            return ranked[:target], filter_log

    filter_log.append("No exact-history matches available; using closest-title-history matches")
    ranked = sorted(
        candidates,
        key=lambda c: (
            0 if c.history_match_status == HistoryMatchStatus.EXACT else 1,
            _mileage_distance(c, subject_miles),
        ),
    )
    return ranked[:target], filter_log


def mileage_window(mileage: float) -> Tuple[float, float]:
    """Mileage range accepted for Georgia appraisal comparables."""
    variance = max(MIN_MILEAGE_VARIANCE, mileage * MILEAGE_VARIANCE_PCT)
    return mileage - variance, mileage + variance


def select_market_comparables(
    year: int,
    make: str,
    model: str,
    mileage: float,
    listings: Sequence[ComparableListing],
    trim: Optional[str] = None,
    target: int = DEFAULT_TARGET_COUNT,
    market_name: str = "Georgia",
) -> Tuple[List[ComparableListing], str]:
    """
    Pick the first listings inside the mileage window with a real price.

    Returns:
        Tuple of (selected comparables, filter notes for the report).
    """
    min_miles, max_miles = mileage_window(mileage)
    qualifying = [c for c in listings if min_miles <= c.mileage <= max_miles and c.price > 0]
    selected = qualifying[:target]

    vehicle = f"{year} {make} {model}"
    if trim:
        vehicle += f" {trim}"
    notes = (
        f"Searched for {vehicle} with mileage between "
        f"{round_half_up(min_miles):,} and {round_half_up(max_miles):,} miles."
    )
    if len(selected) < target:
        notes += f" Only {len(selected)} qualifying comparable(s) found in {market_name} market."
    else:
        notes += f" {len(selected)} comparable vehicles selected."

    logger.debug(
        "Selected %d of %d listings (window %d-%d miles)",
        len(selected), len(listings), round_half_up(min_miles), round_half_up(max_miles),
    )
    return selected, notes
