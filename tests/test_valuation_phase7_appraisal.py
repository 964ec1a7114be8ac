"""
Tests for Phase 7: Georgia Appraisal Calculation
Feature: diminished-value-valuation

Tests cover:
- Third-party clean/rough retail valuations
- Georgia comparable selection
- Pre-accident and diminished value formulas
- Mileage band descriptions
- run_full_appraisal_calculation end to end
"""
import pytest
from unittest.mock import MagicMock


def make_comp(vin, mileage, price):
    from autovalue.valuation.models import ComparableListing
    return ComparableListing(vin=vin, year=2021, make="Toyota", model="Camry", mileage=mileage, price=price)


@pytest.fixture
def appraisal_input():
    """A Georgia appraisal form submission."""
    from autovalue.valuation.appraisal import GeorgiaAppraisalInput
    from autovalue.valuation.constants import DamageCode
    return GeorgiaAppraisalInput(
        id="apr-001",
        year=2021,
        make="Toyota",
        model="Camry",
        trim="SE",
        vin="4T1G11AK5MU000001",
        mileage=40000,
        owner_name="Jordan Smith",
        insurance_company="Acme Mutual",
        claim_number="CLM-42",
        date_of_loss="2024-03-01",
        total_repair_cost=8500,
        key_impact_areas=[DamageCode.FRONT_BUMPER, DamageCode.HOOD],
    )


@pytest.fixture
def mock_client():
    """A MarketCheck client returning $25,000 clean retail and three listings."""
    from autovalue.valuation.models import MarketPricing

    client = MagicMock()
    client.is_configured = True
    client.fetch_market_pricing.return_value = MarketPricing(
        fair_retail_price=25000, price_range_low=22000, price_range_high=28000,
        mileage_adjusted_price=25200,
    )
    client.fetch_retail_comps.return_value = [
        make_comp("C1", 35000, 24000),
        make_comp("C2", 45000, 26000),
        make_comp("C3", 60000, 20000),
    ]
    return client


@pytest.fixture
def settings():
    from autovalue.config import MarketCheckSettings, Settings
    return Settings(marketcheck=MarketCheckSettings(api_key="test-key"))


class TestThirdPartyValuations:
    """Tests for fetch_third_party_valuations."""

    def test_rough_retail_is_seventy_percent(self, appraisal_input, mock_client):
        """Rough retail should be 70% of clean retail."""
        from autovalue.valuation.appraisal import fetch_third_party_valuations

        third_party = fetch_third_party_valuations(appraisal_input, mock_client)

        assert third_party.clean_retail_pre_accident == 25000
        assert third_party.rough_retail_post_accident == 17500
        assert third_party.source == "MarketCheck API"
        assert third_party.retrieved_at is not None

    def test_queries_by_vin_and_mileage(self, appraisal_input, mock_client):
        """Should pass the subject's VIN, trim and mileage."""
        from autovalue.valuation.appraisal import fetch_third_party_valuations

        fetch_third_party_valuations(appraisal_input, mock_client)

        kwargs = mock_client.fetch_market_pricing.call_args[1]
        assert kwargs["vin"] == "4T1G11AK5MU000001"
        assert kwargs["trim"] == "SE"
        assert kwargs["mileage"] == 40000


class TestMarketComparables:
    """Tests for fetch_market_comparables."""

    def test_georgia_market_window(self, appraisal_input, mock_client):
        """Should keep Georgia listings within the mileage window."""
        from autovalue.valuation.appraisal import fetch_market_comparables

        comps, notes = fetch_market_comparables(appraisal_input, mock_client)

        # 40,000 +/- 8,000 miles
        assert [c.vin for c in comps] == ["C1", "C2"]
        assert "between 32,000 and 48,000 miles" in notes
        assert "Only 2 qualifying comparable(s) found in Georgia market." in notes
        assert mock_client.fetch_retail_comps.call_args[1]["state"] == "GA"


class TestValueFormulas:
    """Tests for compute_pre_accident_value and compute_diminished_value."""

    @pytest.fixture
    def third_party(self):
        from datetime import datetime
        from autovalue.valuation.appraisal import ThirdPartyValuations
        return ThirdPartyValuations(25000, 17500, "MarketCheck API", datetime(2024, 1, 1))

    def test_pre_accident_average(self, third_party):
        """Should average clean retail with the comparable average."""
        from autovalue.valuation.appraisal import compute_pre_accident_value

        avg, final_pre = compute_pre_accident_value(
            third_party, [make_comp("C1", 1, 26000), make_comp("C2", 1, 28000)]
        )

        assert avg == 27000
        assert final_pre == 26000

    def test_pre_accident_without_comparables(self, third_party):
        """Should use clean retail alone without comparables."""
        from autovalue.valuation.appraisal import compute_pre_accident_value

        assert compute_pre_accident_value(third_party, []) == (0, 25000)

    def test_diminished_value(self, third_party):
        """DV should be pre-accident value minus rough retail."""
        from autovalue.valuation.appraisal import compute_diminished_value

        assert compute_diminished_value(26000, third_party) == (17500, 8500)

    def test_diminished_value_never_negative(self, third_party):
        """DV should floor at zero."""
        from autovalue.valuation.appraisal import compute_diminished_value

        assert compute_diminished_value(15000, third_party) == (17500, 0)


class TestMileageBands:
    """Tests for get_mileage_band_description."""

    @pytest.mark.parametrize("mileage,prefix", [
        (5000, "Low mileage"),
        (15000, "Below average mileage"),
        (30000, "Average mileage"),
        (74999, "Above average mileage"),
        (75000, "High mileage"),
        (100000, "Very high mileage"),
    ])
    def test_bands(self, mileage, prefix):
        """Each band should have its own description."""
        from autovalue.valuation.appraisal import get_mileage_band_description
        assert get_mileage_band_description(mileage).startswith(prefix)


class TestRunFullAppraisal:
    """Tests for run_full_appraisal_calculation."""

    def test_end_to_end(self, appraisal_input, mock_client, settings):
        """Should combine valuations, comparables and the DV formula."""
        from autovalue.valuation.appraisal import run_full_appraisal_calculation

        result = run_full_appraisal_calculation(appraisal_input, mock_client, settings)

        assert result.appraisal_id == "apr-001"
        assert result.comparables_avg_retail == 25000
        assert result.final_pre_accident_value == 25000
        assert result.post_accident_value == 17500
        assert result.diminished_value == 7500
        assert result.mileage_band_description.startswith("Average mileage (30,000-50,000 miles)")
        assert result.damage_areas_summary == "Front Bumper, Hood"
        assert "Only 2 qualifying" in result.comparable_filter_notes

    def test_rough_retail_factor_from_settings(self, appraisal_input, mock_client):
        """The rough retail factor should be configurable."""
        from autovalue.config import MarketCheckSettings, Settings, ValuationSettings
        from autovalue.valuation.appraisal import run_full_appraisal_calculation

        settings = Settings(
            marketcheck=MarketCheckSettings(api_key="k"),
            valuation=ValuationSettings(rough_retail_factor=0.80),
        )

        result = run_full_appraisal_calculation(appraisal_input, mock_client, settings)

        assert result.third_party.rough_retail_post_accident == 20000
        assert result.diminished_value == 5000
