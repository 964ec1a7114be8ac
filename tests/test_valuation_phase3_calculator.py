"""
Tests for Phase 3: Case DV Calculator
Feature: diminished-value-valuation

Tests cover:
- Base loss, damage and mileage modifier bands
- calculate_diminished_value formula and breakdown
- Input validation
- Pre-qualification estimate ranges and qualification
"""
import pytest


class TestModifierBands:
    """Tests for the calculator's band helpers."""

    @pytest.mark.parametrize("age,expected", [(0, 0.15), (3, 0.15), (4, 0.10), (6, 0.10), (7, 0.07)])
    def test_base_loss_percent(self, age, expected):
        """Newer vehicles should start from a larger base loss."""
        from autovalue.valuation.calculator import base_loss_percent
        assert base_loss_percent(age) == expected

    @pytest.mark.parametrize("repair_cost,expected", [
        (2000, 0.25),
        (5000, 0.50),
        (10000, 0.75),
        (15000, 1.0),
        (25000, 1.0),
    ])
    def test_damage_modifier(self, repair_cost, expected):
        """Should scale with repair cost relative to a $30,000 value."""
        from autovalue.valuation.calculator import damage_modifier
        assert damage_modifier(repair_cost, 30000) == expected

    @pytest.mark.parametrize("mileage,expected", [
        (0, 1.0),
        (19999, 1.0),
        (20000, 0.8),
        (50000, 0.6),
        (79999, 0.4),
        (95000, 0.2),
        (100000, 0.1),
    ])
    def test_mileage_modifier(self, mileage, expected):
        """Should decrease with mileage down to 0.1."""
        from autovalue.valuation.calculator import mileage_modifier
        assert mileage_modifier(mileage) == expected


class TestCalculateDiminishedValue:
    """Tests for calculate_diminished_value."""

    def test_georgia_case(self):
        """Should apply base %, damage, mileage and Georgia adjustment."""
        from autovalue.valuation.calculator import calculate_diminished_value

        result = calculate_diminished_value(
            pre_value=30000, repair_cost=5000, mileage=30000,
            vehicle_year=2022, state="GA", current_year=2024,
        )

        # 30,000 x 15% = 4,500; x 0.5 x 0.8 x 1.15 = 2,070
        assert result.diminished_value == 2070
        assert result.pre_accident_value == 30000
        assert result.post_accident_value == 27930
        assert result.breakdown.base_loss == 4500
        assert result.breakdown.base_loss_percent == 0.15
        assert result.breakdown.damage_modifier == 0.5
        assert result.breakdown.mileage_modifier == 0.8
        assert result.breakdown.state_adjustment == 1.15

    def test_formula_text(self):
        """Should describe the calculation in the breakdown."""
        from autovalue.valuation.calculator import calculate_diminished_value

        result = calculate_diminished_value(30000, 5000, 30000, 2022, "GA", current_year=2024)

        assert result.breakdown.formula == (
            "DV = Base Value (30000) x Base % (15%) x Damage Mod (0.5) "
            "x Mileage Mod (0.8) x State Adj (1.15)"
        )

    def test_state_without_adjustment(self):
        """States with no adjustment should use 1.0."""
        from autovalue.valuation.calculator import calculate_diminished_value

        result = calculate_diminished_value(
            pre_value=20000, repair_cost=20000, mileage=120000,
            vehicle_year=2016, state="TX", current_year=2024,
        )

        # 20,000 x 7% = 1,400; x 1.0 x 0.1 x 1.0 = 140
        assert result.breakdown.state_adjustment == 1.0
        assert result.diminished_value == 140
        assert result.post_accident_value == 19860

    def test_north_carolina_adjustment(self):
        """North Carolina should use a 1.05 adjustment."""
        from autovalue.valuation.calculator import calculate_diminished_value

        result = calculate_diminished_value(40000, 0, 10000, 2023, "nc", current_year=2024)

        # 40,000 x 15% = 6,000; x 0.25 x 1.0 x 1.05 = 1,575
        assert result.diminished_value == 1575

    def test_zero_pre_value_rejected(self):
        """Should raise when the pre-accident value is not positive."""
        from autovalue.valuation.calculator import calculate_diminished_value

        with pytest.raises(ValueError, match="Valid pre-accident value is required"):
            calculate_diminished_value(0, 5000, 30000, 2022, "GA", current_year=2024)

    def test_unsupported_state_rejected(self):
        """Should raise for states without DV law support."""
        from autovalue.valuation.calculator import calculate_diminished_value

        with pytest.raises(ValueError, match="Unsupported state"):
            calculate_diminished_value(30000, 5000, 30000, 2022, "ZZ", current_year=2024)


class TestPrequalEstimate:
    """Tests for prequal_estimate."""

    def test_new_vehicle(self):
        """Should give the widest band for new vehicles."""
        from autovalue.valuation.calculator import prequal_estimate

        estimate = prequal_estimate(year=2023, mileage=30000, fault="not_at_fault", current_year=2024)

        # 35,000 x 12% and 35,000 x 20%
        assert estimate.estimate_min == 4200
        assert estimate.estimate_max == 7000
        assert estimate.qualified is True

    def test_old_high_mileage_vehicle(self):
        """Should apply the mileage haircut and the lowest band."""
        from autovalue.valuation.calculator import prequal_estimate

        estimate = prequal_estimate(year=2014, mileage=110000, fault="unsure", current_year=2024)

        # 10,000 x 0.7 = 7,000; 5% and 10%
        assert estimate.estimate_min == 350
        assert estimate.estimate_max == 700
        assert estimate.qualified is True

    def test_at_fault_not_qualified(self):
        """At-fault claimants should not qualify."""
        from autovalue.valuation.calculator import prequal_estimate
        from autovalue.valuation.constants import FaultStatus

        estimate = prequal_estimate(2020, 40000, FaultStatus.AT_FAULT, current_year=2024)

        assert estimate.qualified is False
        assert estimate.estimate_min > 0
