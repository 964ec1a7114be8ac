"""
Environment-driven configuration for AutoValue.

Settings are plain dataclasses populated by ``from_env()``. ``load_settings()``
reads a local ``.env`` file first so development keys do not need to be
exported by hand.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from dotenv import load_dotenv

DEFAULT_MARKETCHECK_BASE_URL = "https://api.marketcheck.com/v2"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_steps(name: str, default: Tuple[int, ...]) -> Tuple[int, ...]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return tuple(int(part) for part in raw.split(",") if part.strip())


@dataclass
class MarketCheckSettings:
    """Connection settings for the MarketCheck pricing API."""

    api_key: Optional[str] = None
    base_url: str = DEFAULT_MARKETCHECK_BASE_URL
    timeout_seconds: float = 30.0
    # Market used for comparables when no zip or city is given
    default_state: str = "GA"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "MarketCheckSettings":
        return cls(
            api_key=os.getenv("MARKETCHECK_API_KEY") or None,
            base_url=os.getenv("MARKETCHECK_BASE_URL", DEFAULT_MARKETCHECK_BASE_URL).rstrip("/"),
            timeout_seconds=_env_float("MARKETCHECK_TIMEOUT_SECONDS", 30.0),
            default_state=os.getenv("MARKETCHECK_DEFAULT_STATE", "GA").upper(),
        )


@dataclass
class ValuationSettings:
    """
    Tunable constants for the diminished value calculations.

    post_accident_factor is applied to the MarketCheck price to estimate
    post-repair value in the full valuation pipeline. rough_retail_factor
    does the same for the Georgia appraisal's third-party valuation.
    """

    post_accident_factor: float = 0.90
    rough_retail_factor: float = 0.70
    base_stigma_pct: float = 0.10
    stigma_cap_pct: float = 0.30
    mileage_tolerance_steps: Tuple[int, ...] = (10, 15, 20)
    target_comp_count: int = 3

    @classmethod
    def from_env(cls) -> "ValuationSettings":
        return cls(
            post_accident_factor=_env_float("POST_ACCIDENT_FACTOR", 0.90),
            rough_retail_factor=_env_float("ROUGH_RETAIL_FACTOR", 0.70),
            base_stigma_pct=_env_float("BASE_STIGMA_PCT", 0.10),
            stigma_cap_pct=_env_float("STIGMA_CAP_PCT", 0.30),
            mileage_tolerance_steps=_env_steps("MILEAGE_TOLERANCE_STEPS", (10, 15, 20)),
            target_comp_count=_env_int("TARGET_COMP_COUNT", 3),
        )


@dataclass
class Settings:
    """Top-level application settings."""

    marketcheck: MarketCheckSettings = field(default_factory=MarketCheckSettings)
    valuation: ValuationSettings = field(default_factory=ValuationSettings)
    log_level: str = "INFO"
    frontend_url: Optional[str] = None


def load_settings() -> Settings:
    """Load settings from the environment (and a .env file if present)."""
    load_dotenv()
    return Settings(
        marketcheck=MarketCheckSettings.from_env(),
        valuation=ValuationSettings.from_env(),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        frontend_url=os.getenv("FRONTEND_URL") or None,
    )


def validate_settings(settings: Settings) -> List[str]:
    """
    Check settings for problems that would degrade valuations.

    Returns:
        List of problem descriptions. Empty when everything looks usable.
    """
    problems: List[str] = []

    if not settings.marketcheck.is_configured:
        problems.append(
            "MARKETCHECK_API_KEY is not set; full valuations will use mock pricing"
        )

    valuation = settings.valuation
    for name in ("post_accident_factor", "rough_retail_factor", "base_stigma_pct", "stigma_cap_pct"):
        value = getattr(valuation, name)
        if not 0 < value <= 1:
            problems.append(f"{name} must be in (0, 1], got {value}")

    if not valuation.mileage_tolerance_steps:
        problems.append("mileage_tolerance_steps must contain at least one step")
    elif any(step <= 0 for step in valuation.mileage_tolerance_steps):
        problems.append("mileage_tolerance_steps must be positive percentages")

    if valuation.target_comp_count < 1:
        problems.append("target_comp_count must be at least 1")

    return problems
