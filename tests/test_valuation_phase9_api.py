"""
Tests for Phase 9: API Endpoints
Feature: diminished-value-valuation

Tests cover:
- Router registration
- Calculator endpoints (calculate, prequal, quick estimate, dv)
- Full valuation and Georgia appraisal endpoints
- State law endpoint
- Error handling (400, 404, 422, 502, 503)
"""
import pytest
from unittest.mock import MagicMock, patch
from fastapi.testclient import TestClient

from autovalue.valuation.api import router


@pytest.fixture
def unconfigured_settings():
    """Settings without a MarketCheck key."""
    from autovalue.config import Settings
    return Settings()


@pytest.fixture
def configured_settings():
    """Settings with a MarketCheck key."""
    from autovalue.config import MarketCheckSettings, Settings
    return Settings(marketcheck=MarketCheckSettings(api_key="test-key"))


@pytest.fixture
def test_client(unconfigured_settings):
    """Create test client for the valuation router."""
    from fastapi import FastAPI
    app = FastAPI()
    app.include_router(router)
    with patch("autovalue.valuation.api.get_settings", return_value=unconfigured_settings):
        yield TestClient(app)


# ============================================================================
# Router Registration Tests
# ============================================================================

class TestRouterRegistration:
    """Tests for router registration and configuration."""

    def test_router_has_prefix(self):
        assert router.prefix == "/api/valuation"

    def test_router_has_tags(self):
        assert "Diminished Value" in router.tags

    def test_router_routes_defined(self):
        """Router has expected routes defined."""
        routes = [r.path for r in router.routes]
        assert "/api/valuation/calculate" in routes
        assert "/api/valuation/prequal" in routes
        assert "/api/valuation/quick-estimate" in routes
        assert "/api/valuation/dv" in routes
        assert "/api/valuation/full" in routes
        assert "/api/valuation/appraisal" in routes
        assert "/api/valuation/states/{state}" in routes

    def test_settings_loaded_once(self, unconfigured_settings):
        """Settings should be read from the environment once, not per request."""
        from autovalue.valuation import api

        api.get_settings.cache_clear()
        try:
            with patch("autovalue.valuation.api.load_settings", return_value=unconfigured_settings) as mock_load:
                first = api.get_settings()
                second = api.get_settings()
        finally:
            api.get_settings.cache_clear()

        assert first is second
        mock_load.assert_called_once()


# ============================================================================
# Calculator Endpoint Tests
# ============================================================================

class TestCalculatorEndpoints:
    """Tests for the pure calculator endpoints."""

    def test_calculate(self, test_client):
        """Should return the case valuation and its breakdown."""
        response = test_client.post("/api/valuation/calculate", json={
            "pre_accident_value": 30000, "repair_cost": 5000, "mileage": 30000,
            "vehicle_year": 2022, "state": "GA", "current_year": 2024,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["diminished_value"] == 2070
        assert data["post_accident_value"] == 27930
        assert data["breakdown"]["state_adjustment"] == 1.15

    def test_calculate_invalid_value(self, test_client):
        """A non-positive pre-accident value should be a 400."""
        response = test_client.post("/api/valuation/calculate", json={
            "pre_accident_value": 0, "mileage": 30000, "vehicle_year": 2022,
        })

        assert response.status_code == 400
        assert "pre-accident value" in response.json()["detail"]

    def test_calculate_unsupported_state(self, test_client):
        response = test_client.post("/api/valuation/calculate", json={
            "pre_accident_value": 30000, "mileage": 30000, "vehicle_year": 2022, "state": "WA",
        })

        assert response.status_code == 400

    def test_calculate_missing_fields(self, test_client):
        """Missing required fields should fail validation."""
        response = test_client.post("/api/valuation/calculate", json={})
        assert response.status_code == 422

    def test_prequal(self, test_client):
        """Should return the estimate range and qualification."""
        response = test_client.post("/api/valuation/prequal", json={
            "year": 2023, "mileage": 30000, "fault": "at_fault", "current_year": 2024,
        })

        assert response.status_code == 200
        assert response.json() == {"estimate_min": 4200, "estimate_max": 7000, "qualified": False}

    def test_prequal_rejects_unknown_fault(self, test_client):
        response = test_client.post("/api/valuation/prequal", json={
            "year": 2023, "mileage": 30000, "fault": "maybe",
        })

        assert response.status_code == 422

    def test_quick_estimate(self, test_client):
        response = test_client.post("/api/valuation/quick-estimate", json={
            "year": 2022, "mileage": 30000, "state": "GA", "current_year": 2024,
        })

        assert response.status_code == 200
        assert response.json() == {"estimate_min": 4370, "estimate_max": 7866}

    def test_dv(self, test_client):
        """Should compute the stigma-method DV from supplied market data."""
        response = test_client.post("/api/valuation/dv", json={
            "year": 2022, "make": "Honda", "model": "Accord", "mileage": 30000,
            "state": "GA", "repair_cost": 5000, "current_year": 2024,
            "pricing": {"fair_retail_price": 31000, "price_range_low": 27000,
                        "price_range_high": 34000, "mileage_adjusted_price": 30000},
            "comparables": [
                {"vin": "C1", "year": 2022, "make": "Honda", "model": "Accord", "mileage": 29000, "price": 28000},
                {"vin": "C2", "year": 2022, "make": "Honda", "model": "Accord", "mileage": 31000, "price": 32000},
                {"vin": "C3", "year": 2022, "make": "Honda", "model": "Accord", "mileage": 30500, "price": 29000},
            ],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["pre_accident_value"] == 29600
        assert data["diminished_value"] == 3191
        assert data["breakdown"]["factors"]["state_factor"] == 1.15


# ============================================================================
# MarketCheck-backed Endpoint Tests
# ============================================================================

class TestFullValuationEndpoint:
    """Tests for POST /api/valuation/full."""

    @pytest.fixture
    def request_body(self):
        return {
            "vin": "VIN123", "miles": 30000, "year": 2020,
            "make": "Honda", "model": "Accord", "current_year": 2024,
        }

    def test_mock_valuation_without_key(self, test_client, request_body):
        """Should fall back to the mock valuation."""
        response = test_client.post("/api/valuation/full", json=request_body)

        assert response.status_code == 200
        data = response.json()
        assert data["diminished_value"] == 2800
        assert len(data["selected_comps"]) == 3
        assert data["selected_comps"][0]["vin"] == "VIN123-C1"

    def test_upstream_error_is_502(self, test_client, request_body):
        """MarketCheck failures should surface as a bad gateway."""
        from autovalue.valuation.marketcheck import MarketCheckClientError

        with patch("autovalue.valuation.api.FullValuationService") as service_cls:
            service_cls.return_value.compute_full_valuation.side_effect = MarketCheckClientError(
                "MarketCheck API error (500)", status_code=500
            )
            response = test_client.post("/api/valuation/full", json=request_body)

        assert response.status_code == 502

    def test_no_pricing_is_422(self, test_client, request_body):
        """Missing pricing data should be unprocessable."""
        from autovalue.valuation.full_valuation import ValuationError

        with patch("autovalue.valuation.api.FullValuationService") as service_cls:
            service_cls.return_value.compute_full_valuation.side_effect = ValuationError(
                "Unable to determine pre-accident value - no pricing data available"
            )
            response = test_client.post("/api/valuation/full", json=request_body)

        assert response.status_code == 422
        assert "no pricing data" in response.json()["detail"]

    def test_upstream_error_hides_api_key(self, test_client, request_body):
        """An unreachable MarketCheck host must not leak the key to callers or logs."""
        import logging
        import requests
        from autovalue.config import MarketCheckSettings, Settings

        settings = Settings(marketcheck=MarketCheckSettings(
            api_key="SUPERSECRETKEY123", base_url="http://127.0.0.1:9/v2",
        ))

        def refuse(url, params=None, **kwargs):
            query = "&".join(f"{k}={v}" for k, v in params.items())
            raise requests.ConnectionError(f"Max retries exceeded with url: {url}?{query}")

        records = []
        handler = logging.Handler()
        handler.emit = records.append
        package_logger = logging.getLogger("autovalue")
        package_logger.addHandler(handler)
        try:
            with patch("autovalue.valuation.api.get_settings", return_value=settings), \
                 patch("autovalue.valuation.marketcheck.requests.get", side_effect=refuse):
                response = test_client.post("/api/valuation/full", json=request_body)
        finally:
            package_logger.removeHandler(handler)

        assert response.status_code == 502
        assert "SUPERSECRETKEY123" not in response.json()["detail"]
        assert "api_key=***" in response.json()["detail"]
        assert records
        assert not any("SUPERSECRETKEY123" in r.getMessage() for r in records)

    def test_unexpected_error_is_500(self, test_client, request_body):
        with patch("autovalue.valuation.api.FullValuationService") as service_cls:
            service_cls.return_value.compute_full_valuation.side_effect = RuntimeError("boom")
            response = test_client.post("/api/valuation/full", json=request_body)

        assert response.status_code == 500


class TestAppraisalEndpoint:
    """Tests for POST /api/valuation/appraisal."""

    @pytest.fixture
    def request_body(self):
        return {
            "id": "apr-001", "year": 2021, "make": "Toyota", "model": "Camry", "trim": "SE",
            "vin": "4T1G11AK5MU000001", "mileage": 40000,
            "key_impact_areas": ["front_bumper", "hood"],
        }

    def test_requires_marketcheck(self, test_client, request_body):
        """Should be unavailable without a MarketCheck key."""
        response = test_client.post("/api/valuation/appraisal", json=request_body)

        assert response.status_code == 503

    def test_appraisal_calculation(self, test_client, request_body, configured_settings):
        """Should run the Georgia appraisal with the configured client."""
        from autovalue.valuation.models import ComparableListing, MarketPricing

        client = MagicMock()
        client.is_configured = True
        client.fetch_market_pricing.return_value = MarketPricing(25000, 22000, 28000, 25200)
        client.fetch_retail_comps.return_value = [
            ComparableListing(vin="C1", year=2021, make="Toyota", model="Camry", mileage=35000, price=24000),
            ComparableListing(vin="C2", year=2021, make="Toyota", model="Camry", mileage=45000, price=26000),
        ]

        with patch("autovalue.valuation.api.get_settings", return_value=configured_settings), \
             patch("autovalue.valuation.api.get_marketcheck_client", return_value=client):
            response = test_client.post("/api/valuation/appraisal", json=request_body)

        assert response.status_code == 200
        data = response.json()
        assert data["appraisal_id"] == "apr-001"
        assert data["diminished_value"] == 7500
        assert data["damage_areas_summary"] == "Front Bumper, Hood"
        assert len(data["comparables"]) == 2

    def test_upstream_error_is_502(self, test_client, request_body, configured_settings):
        from autovalue.valuation.marketcheck import MarketCheckClientError

        client = MagicMock()
        client.is_configured = True
        client.fetch_market_pricing.side_effect = MarketCheckClientError("timeout")

        with patch("autovalue.valuation.api.get_settings", return_value=configured_settings), \
             patch("autovalue.valuation.api.get_marketcheck_client", return_value=client):
            response = test_client.post("/api/valuation/appraisal", json=request_body)

        assert response.status_code == 502


# ============================================================================
# State Law Endpoint Tests
# ============================================================================

class TestStateEndpoint:
    """Tests for GET /api/valuation/states/{state}."""

    def test_georgia(self, test_client):
        response = test_client.get("/api/valuation/states/ga")

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "GA"
        assert data["state_name"] == "Georgia"
        assert data["statute_of_limitations"] == "4 years from date of loss"
        assert data["key_case_law"][0]["name"] == "State Farm v. Mabry"
        assert data["compliance_reminder"].startswith("COMPLIANCE NOTES FOR GEORGIA:")

    def test_unknown_state(self, test_client):
        response = test_client.get("/api/valuation/states/zz")

        assert response.status_code == 404


# ============================================================================
# Application Tests
# ============================================================================

class TestApplication:
    """Tests for the api_server application."""

    @pytest.fixture
    def client(self):
        """Return a TestClient for the FastAPI app."""
        from api_server import app
        return TestClient(app)

    def test_health_check(self, client):
        """Root endpoint should report status and version."""
        from autovalue import __version__

        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__, "name": "AutoValue"}

    def test_valuation_router_mounted(self, client):
        """Valuation routes should be reachable through the app."""
        response = client.get("/api/valuation/states/NC")

        assert response.status_code == 200
        assert response.json()["negligence_rule"] == "contributory"
