"""
MarketCheck pricing data source.

Thin client for the MarketCheck endpoints the valuation engines consume:
- VIN decoding (specs)
- Market price statistics and MarketCheck Price with comparables
- Active retail inventory search (comparable listings)
- VINData AAMVA/NMVTIS title history reports

All calls are synchronous ``requests`` GETs with the API key passed as a
query parameter. Failures raise MarketCheckClientError.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from ..config import MarketCheckSettings
from ..utils import mask_secret, round_half_up, setup_logging
from .models import (
    ComparableListing,
    DecodedVin,
    MarketCheckPriceResult,
    MarketPricing,
    VINDataReport,
)

logger = setup_logging()

# Price drop per mile above the market's mean mileage
MILEAGE_ADJUSTMENT_PER_MILE = 0.05
RETAIL_COMPS_ROWS = 20
RETAIL_COMPS_LIMIT = 5
INVENTORY_DEFAULT_ROWS = 30


class MarketCheckClientError(Exception):
    """Raised when a MarketCheck request fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result or default


def _to_int(value: Any, default: int = 0) -> int:
    try:
        result = int(float(value))
    except (TypeError, ValueError):
        return default
    return result or default


def _optional_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    return _to_int(value) or None


def parse_listing(listing: Dict[str, Any], defaults: Optional[Dict[str, Any]] = None) -> ComparableListing:
    """Convert a MarketCheck listing into a ComparableListing."""
    defaults = defaults or {}
    dealer = listing.get("dealer") or {}
    return ComparableListing(
        vin=listing.get("vin") or "",
        year=_to_int(listing.get("year"), defaults.get("year", 0)),
        make=listing.get("make") or defaults.get("make", ""),
        model=listing.get("model") or defaults.get("model", ""),
        trim=listing.get("trim") or None,
        mileage=_to_int(listing.get("miles")) or _to_int(listing.get("mileage")),
        price=_to_float(listing.get("price")),
        dealer_name=dealer.get("name") or "Unknown Dealer",
        dealer_phone=dealer.get("phone") or None,
        dealer_city=dealer.get("city") or None,
        dealer_state=dealer.get("state") or None,
        listing_url=listing.get("vdp_url") or None,
        distance_miles=_to_float(listing.get("distance")) or None,
    )


def parse_vin_data_report(vin: str, data: Dict[str, Any], report_type: str) -> VINDataReport:
    """
    Summarize a VINData title history response.

    Junk/salvage and total-loss flags are raised both by explicit NMVTIS
    records and by matching title brand names.
    """
    title_brands: List[str] = []
    has_junk_salvage = False
    has_total_loss = False
    odometer_consistent = True

    brands = data.get("brands") or (data.get("title_history") or {}).get("brands") or []
    for brand in brands:
        name = brand if isinstance(brand, str) else (brand.get("brand") or brand.get("description"))
        if not name:
            continue
        title_brands.append(name)
        lower = name.lower()
        if "junk" in lower or "salvage" in lower:
            has_junk_salvage = True
        if "total loss" in lower or "totaled" in lower:
            has_total_loss = True

    nmvtis = data.get("nmvtis") or {}
    if data.get("junk_salvage_records") or nmvtis.get("junk_salvage"):
        has_junk_salvage = True
    if data.get("odometer_discrepancy") or nmvtis.get("odometer_problem"):
        odometer_consistent = False

    return VINDataReport(
        vin=vin,
        title_brands=title_brands,
        has_junk_salvage_record=has_junk_salvage,
        has_total_loss_record=has_total_loss,
        odometer_consistent=odometer_consistent,
        report_id=str(data.get("report_id") or data.get("id") or vin),
        report_type=report_type,
        raw=data,
    )


class MarketCheckClient:
    """
    MarketCheck API client.

    Example:
        client = MarketCheckClient(MarketCheckSettings.from_env())
        pricing = client.fetch_market_pricing(year=2021, make="Honda", model="Accord", mileage=30000)
    """

    def __init__(self, settings: Optional[MarketCheckSettings] = None):
        self.settings = settings or MarketCheckSettings.from_env()

    @property
    def is_configured(self) -> bool:
        return self.settings.is_configured

    def _request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET an endpoint and return the decoded JSON body."""
        api_key = self.settings.api_key
        if not api_key:
            raise MarketCheckClientError("MARKETCHECK_API_KEY is not configured")

        query = {"api_key": api_key}
        for key, value in (params or {}).items():
            if value is not None:
                query[key] = value

        url = f"{self.settings.base_url}{endpoint}"
        try:
            resp = requests.get(
                url,
                params=query,
                headers={"Accept": "application/json"},
                timeout=self.settings.timeout_seconds,
            )
        except requests.RequestException as exc:
            # requests puts the full URL, key included, in its messages
            raise MarketCheckClientError(
                f"MarketCheck request failed for {endpoint}: {mask_secret(str(exc), api_key)}"
            ) from None

        logger.debug("MarketCheck GET %s", mask_secret(resp.url or url, api_key))

        body = mask_secret(resp.text or "", api_key)
        if resp.status_code >= 400:
            logger.warning("MarketCheck error %s: %s", resp.status_code, body[:200])
            raise MarketCheckClientError(
                f"MarketCheck API error ({resp.status_code}): {body}",
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise MarketCheckClientError(f"Unexpected MarketCheck response: {body[:200]}") from exc

    def decode_vin(self, vin: str) -> DecodedVin:
        """Decode a VIN into year/make/model/trim and drivetrain details."""
        data = self._request(f"/vin/{vin}/specs")
        return DecodedVin(
            vin=vin.upper(),
            year=_to_int(data.get("year")),
            make=data.get("make") or "",
            model=data.get("model") or "",
            trim=data.get("trim") or None,
            drivetrain=data.get("drivetrain") or data.get("drive_type") or None,
            engine_type=data.get("engine") or data.get("engine_type") or None,
            ev_battery_pack=data.get("battery_type") or data.get("battery_capacity") or None,
            body_type=data.get("body_type") or data.get("body_style") or None,
            fuel_type=data.get("fuel_type") or None,
            transmission=data.get("transmission") or None,
            doors=_optional_int(data.get("doors")),
            cylinders=_optional_int(data.get("cylinders")),
            displacement=data.get("displacement") or data.get("engine_displacement") or None,
            raw=data,
        )

    def fetch_market_pricing(
        self,
        year: int,
        make: str,
        model: str,
        trim: Optional[str] = None,
        mileage: Optional[int] = None,
        vin: Optional[str] = None,
    ) -> MarketPricing:
        """
        Get retail price statistics.

        The mileage-adjusted price moves the median by $0.05 per mile of
        difference from the market's mean mileage, clamped to the min/max.
        """
        params: Dict[str, Any] = {"car_type": "used"}
        if vin:
            params["vin"] = vin
        else:
            params.update({"year": year, "make": make, "model": model, "trim": trim})
        if mileage:
            params["mileage"] = mileage

        data = self._request("/valuate/car/stats", params)

        mean = _to_float(data.get("mean"))
        median = _to_float(data.get("median"), mean)
        low = _to_float(data.get("min"), mean * 0.85)
        high = _to_float(data.get("max"), mean * 1.15)
        count = _to_int(data.get("count"))

        adjusted = median
        if mileage and data.get("mileage_mean"):
            mileage_diff = mileage - _to_float(data.get("mileage_mean"))
            adjusted = max(low, min(high, median - mileage_diff * MILEAGE_ADJUSTMENT_PER_MILE))

        return MarketPricing(
            fair_retail_price=round_half_up(median),
            price_range_low=round_half_up(low),
            price_range_high=round_half_up(high),
            mileage_adjusted_price=round_half_up(adjusted),
            sample_size=count,
        )

    def fetch_retail_comps(
        self,
        year: int,
        make: str,
        model: str,
        trim: Optional[str] = None,
        state: Optional[str] = None,
        mileage: Optional[int] = None,
        zip_code: Optional[str] = None,
    ) -> List[ComparableListing]:
        """Active used dealer listings, closest in mileage first (top 5)."""
        params = {
            "year": year,
            "make": make,
            "model": model,
            "car_type": "used",
            "seller_type": "dealer",
            "rows": RETAIL_COMPS_ROWS,
            "trim": trim or None,
            "state": state or None,
            "zip": zip_code or None,
        }
        data = self._request("/search/car/active", params)
        defaults = {"year": year, "make": make, "model": model}
        comps = [parse_listing(listing, defaults) for listing in data.get("listings") or []]

        if mileage:
            comps.sort(key=lambda c: abs(c.mileage - mileage))

        return comps[:RETAIL_COMPS_LIMIT]

    def get_price_with_comparables(
        self,
        vin: str,
        miles: int,
        zip_code: Optional[str] = None,
        city: Optional[str] = None,
        state: Optional[str] = None,
    ) -> MarketCheckPriceResult:
        """
        MarketCheck Price prediction with its comparables.

        Falls back to the plain price prediction (no comparables) when the
        comparables endpoint fails.
        """
        params: Dict[str, Any] = {"vin": vin, "miles": miles, "dealer_type": "retail"}
        if zip_code:
            params["zip"] = zip_code
        elif city and state:
            params["city"] = city
            params["state"] = state
        else:
            params["state"] = state or self.settings.default_state

        try:
            data = self._request("/predict/car/us/marketcheck_price/comparables", params)
        except MarketCheckClientError as e:
            logger.warning("Price/comparables endpoint failed, using plain prediction: %s", e)
            fallback = self._request(
                "/predict/car/us/marketcheck_price",
                {"vin": vin, "mileage": miles, "car_type": "used"},
            )
            return MarketCheckPriceResult(
                marketcheck_price=_to_float(fallback.get("price")) or _to_float(fallback.get("predicted_price")),
                price_low=_to_float(fallback.get("price_low")) or _to_float(fallback.get("low")),
                price_high=_to_float(fallback.get("price_high")) or _to_float(fallback.get("high")),
                confidence_score=_to_float(fallback.get("confidence_score")),
                sample_size=_to_int(fallback.get("sample_size")),
                comparables=[],
                raw=fallback,
            )

        listings = (data.get("comparables") or {}).get("listings") or []
        return MarketCheckPriceResult(
            marketcheck_price=_to_float(data.get("marketcheck_price")) or _to_float(data.get("price")),
            price_low=_to_float(data.get("price_low")) or _to_float(data.get("low")),
            price_high=_to_float(data.get("price_high")) or _to_float(data.get("high")),
            confidence_score=_to_float(data.get("confidence_score")),
            sample_size=_to_int(data.get("sample_size")),
            comparables=[parse_listing(listing) for listing in listings],
            raw=data,
        )

    def get_vin_data_report(self, vin: str) -> Optional[VINDataReport]:
        """
        Fetch the AAMVA title history report for a VIN.

        When no report exists yet (404/422) one is generated. Returns None
        if neither call succeeds.
        """
        try:
            data = self._request(f"/vindata/access-report/aamva/{vin}")
            return parse_vin_data_report(vin, data, "aamva")
        except MarketCheckClientError as e:
            if e.status_code not in (404, 422):
                logger.info("VINData access report failed for %s: %s", vin, e)
                return None

        logger.info("No existing VINData report for %s, generating one", vin)
        try:
            data = self._request(f"/vindata/generate-report/aamva/{vin}")
        except MarketCheckClientError as e:
            logger.info("VINData generate report failed for %s: %s", vin, e)
            return None
        return parse_vin_data_report(vin, data, "generated")

    def search_inventory(
        self,
        year: int,
        make: str,
        model: str,
        trim: Optional[str] = None,
        miles_min: Optional[int] = None,
        miles_max: Optional[int] = None,
        limit: int = INVENTORY_DEFAULT_ROWS,
    ) -> List[ComparableListing]:
        """Backup comparable source; listings without a VIN or price are dropped."""
        params: Dict[str, Any] = {
            "year": year,
            "make": make,
            "model": model,
            "car_type": "used",
            "seller_type": "dealer",
            "rows": limit,
            "trim": trim or None,
        }
        if miles_min is not None and miles_max is not None:
            params["miles_range"] = f"{miles_min}-{miles_max}"

        data = self._request("/search/car/active", params)
        defaults = {"year": year, "make": make, "model": model}
        listings = [parse_listing(listing, defaults) for listing in data.get("listings") or []]
        return [c for c in listings if c.price > 0 and c.vin]

    def get_full_vehicle_data(
        self,
        vin: str,
        state: Optional[str] = None,
        mileage: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Decode a VIN, then fetch its retail comps and market pricing."""
        decoded = self.decode_vin(vin)
        comps = self.fetch_retail_comps(
            year=decoded.year,
            make=decoded.make,
            model=decoded.model,
            trim=decoded.trim,
            state=state,
            mileage=mileage,
        )
        pricing = self.fetch_market_pricing(
            year=decoded.year,
            make=decoded.make,
            model=decoded.model,
            trim=decoded.trim,
            mileage=mileage,
            vin=vin,
        )
        return {"decoded": decoded, "comps": comps, "pricing": pricing}
