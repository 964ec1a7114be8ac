"""
Diminished Value API Router

Stateless endpoints over the valuation engines. Nothing is persisted; each
request carries everything its calculation needs.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict
from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..config import Settings, load_settings
from ..utils import setup_logging
from .appraisal import GeorgiaAppraisalInput, run_full_appraisal_calculation
from .calculator import calculate_diminished_value, prequal_estimate
from .constants import AccidentHistory, DamageCode, FaultStatus
from .engine import AppraisalInput, DiminishedValueEngine
from .full_valuation import FullValuationService, ValuationError
from .marketcheck import MarketCheckClient, MarketCheckClientError
from .models import ComparableListing, MarketPricing
from .state_law import get_case_law_summary, get_compliance_reminder, parse_state, STATE_LAWS

logger = setup_logging()

router = APIRouter(prefix="/api/valuation", tags=["Diminished Value"])


# ============================================================================
# Request models
# ============================================================================

class CalculateRequest(BaseModel):
    pre_accident_value: float
    repair_cost: float = 0
    mileage: int
    vehicle_year: int
    state: str = "GA"
    current_year: Optional[int] = None


class PrequalRequest(BaseModel):
    year: int
    mileage: int
    fault: FaultStatus = FaultStatus.NOT_AT_FAULT
    current_year: Optional[int] = None


class QuickEstimateRequest(BaseModel):
    year: int
    mileage: int
    state: str = "GA"
    current_year: Optional[int] = None


class PricingModel(BaseModel):
    fair_retail_price: float = 0
    price_range_low: float = 0
    price_range_high: float = 0
    mileage_adjusted_price: float = 0
    sample_size: int = 0


class ComparableModel(BaseModel):
    vin: str = ""
    year: int
    make: str
    model: str
    mileage: int
    price: float
    trim: Optional[str] = None
    dealer_name: str = "Unknown Dealer"
    dealer_city: Optional[str] = None
    dealer_state: Optional[str] = None
    listing_url: Optional[str] = None


class DVRequest(BaseModel):
    year: int
    make: str
    model: str
    trim: Optional[str] = None
    mileage: int
    state: str = "GA"
    repair_cost: float
    prior_accidents: int = 0
    is_at_fault: bool = False
    pricing: PricingModel
    comparables: List[ComparableModel] = []
    current_year: Optional[int] = None


class FullValuationRequest(BaseModel):
    vin: str
    miles: int
    year: int
    make: str
    model: str
    trim: Optional[str] = None
    zip: Optional[str] = None
    repair_cost: Optional[float] = None
    current_year: Optional[int] = None


class GeorgiaAppraisalRequest(BaseModel):
    id: str = ""
    year: int
    make: str
    model: str
    trim: str = ""
    vin: str
    mileage: int
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
    key_impact_areas: List[DamageCode] = []


# ============================================================================
# Helpers
# ============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings shared by every request, loaded on first use."""
    return load_settings()


def get_marketcheck_client(settings: Settings) -> MarketCheckClient:
    """Build the MarketCheck client for a request."""
    return MarketCheckClient(settings.marketcheck)


def _upstream_error(e: MarketCheckClientError) -> HTTPException:
    logger.warning("MarketCheck request failed: %s", e)
    return HTTPException(status_code=502, detail=f"Pricing provider error: {e}")


# ============================================================================
# Calculator endpoints
# ============================================================================

@router.post("/calculate")
async def calculate(request: CalculateRequest):
    """Case loss formula for a known pre-accident value."""
    try:
        result = calculate_diminished_value(
            pre_value=request.pre_accident_value,
            repair_cost=request.repair_cost,
            mileage=request.mileage,
            vehicle_year=request.vehicle_year,
            state=request.state,
            current_year=request.current_year,
        )
        return asdict(result)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("DV calculation failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/prequal")
async def prequal(request: PrequalRequest):
    """Free estimate range shown before a case is opened."""
    estimate = prequal_estimate(
        year=request.year,
        mileage=request.mileage,
        fault=request.fault,
        current_year=request.current_year,
    )
    return asdict(estimate)


@router.post("/quick-estimate")
async def quick_estimate(request: QuickEstimateRequest):
    try:
        settings = get_settings()
        engine = DiminishedValueEngine(settings.valuation)
        estimate = engine.quick_estimate(
            year=request.year,
            mileage=request.mileage,
            state=request.state,
            current_year=request.current_year,
        )
        return asdict(estimate)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Quick estimate failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/dv")
async def compute_dv(request: DVRequest):
    """Stigma-method DV from caller-supplied pricing and comparables."""
    try:
        settings = get_settings()
        engine = DiminishedValueEngine(settings.valuation)
        appraisal = AppraisalInput(
            year=request.year,
            make=request.make,
            model=request.model,
            trim=request.trim,
            mileage=request.mileage,
            state=parse_state(request.state),
            repair_cost=request.repair_cost,
            prior_accidents=request.prior_accidents,
            is_at_fault=request.is_at_fault,
        )
        pricing = MarketPricing(**request.pricing.model_dump())
        comps = [ComparableListing(**comp.model_dump()) for comp in request.comparables]

        result = engine.compute_dv_amount(pricing, comps, appraisal, current_year=request.current_year)
        return asdict(result)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("DV computation failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


# ============================================================================
# MarketCheck-backed endpoints
# ============================================================================

@router.post("/full")
async def full_valuation(request: FullValuationRequest):
    """
    Full valuation from MarketCheck Price and history-matched comparables.

    Returns a mock valuation when no MarketCheck key is configured.
    """
    try:
        settings = get_settings()
        service = FullValuationService(client=get_marketcheck_client(settings), settings=settings)
        result = await asyncio.to_thread(
            service.compute_full_valuation,
            vin=request.vin,
            miles=request.miles,
            year=request.year,
            make=request.make,
            model=request.model,
            trim=request.trim,
            zip_code=request.zip,
            repair_cost=request.repair_cost,
            current_year=request.current_year,
        )
        logger.info("Full valuation completed for %s", request.vin)
        return asdict(result)
    except ValuationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except MarketCheckClientError as e:
        raise _upstream_error(e)
    except Exception as e:
        logger.error("Full valuation failed for %s: %s", request.vin, e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/appraisal")
async def georgia_appraisal(request: GeorgiaAppraisalRequest):
    """Georgia appraisal calculation (clean retail, rough retail and GA comparables)."""
    try:
        settings = get_settings()
        client = get_marketcheck_client(settings)
        if not client.is_configured:
            raise HTTPException(
                status_code=503,
                detail="MarketCheck is not configured. Set MARKETCHECK_API_KEY.",
            )

        appraisal = GeorgiaAppraisalInput(**request.model_dump())
        result = await asyncio.to_thread(run_full_appraisal_calculation, appraisal, client, settings)
        return asdict(result)
    except HTTPException:
        raise
    except MarketCheckClientError as e:
        raise _upstream_error(e)
    except Exception as e:
        logger.error("Georgia appraisal failed for %s: %s", request.vin, e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


# ============================================================================
# State law
# ============================================================================

@router.get("/states/{state}")
async def get_state(state: str):
    """Diminished value law summary for a supported state."""
    try:
        law = STATE_LAWS[parse_state(state)]
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {
        **asdict(law),
        "statute_of_limitations": law.statute_of_limitations,
        "case_law_summary": get_case_law_summary(law.state),
        "compliance_reminder": get_compliance_reminder(law.state),
    }
