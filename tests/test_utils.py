"""Tests for utility modules."""

import math

import numpy as np
import pytest

from sco2_cycle.core.co2_props import T_CRIT
from sco2_cycle.cycle.parameters import DesignParameters
from sco2_cycle.utils.constants import DEG_TO_RAD, P_ATM, T_CELSIUS_OFFSET
from sco2_cycle.utils.interpolation import find_polynomial_coefs, linear_interp_1d
from sco2_cycle.utils.units import power_to_kw, pressure_to_kpa, temperature_to_k
from sco2_cycle.utils.validation import (
    Severity,
    ValidationResult,
    clamp_efficiency,
    clamp_pressure_limit,
    validate_cycle_design,
    validate_positive,
    validate_range,
)


class TestConstants:
    def test_p_atm(self):
        assert P_ATM == pytest.approx(101325.0)

    def test_celsius_offset(self):
        assert T_CELSIUS_OFFSET == 273.15

    def test_deg_to_rad(self):
        assert 180.0 * DEG_TO_RAD == pytest.approx(math.pi)


class TestUnits:
    def test_pressure(self):
        assert pressure_to_kpa(25.0, "MPa") == pytest.approx(25000.0)
        assert pressure_to_kpa(76.9, "bar") == pytest.approx(7690.0)

    def test_temperature(self):
        assert temperature_to_k(32.0, "degC") == pytest.approx(305.15)
        assert temperature_to_k(550.0, "degC") == pytest.approx(823.15)

    def test_power(self):
        assert power_to_kw(10.0, "MW") == pytest.approx(10000.0)
        assert power_to_kw(500.0, "W") == pytest.approx(0.5)


class TestInterpolation:
    def test_linear_interp(self):
        x = np.array([0.0, 1.0, 2.0])
        y = np.array([0.0, 10.0, 20.0])
        assert linear_interp_1d(x, y, 1.5) == pytest.approx(15.0)

    def test_linear_interp_clamps(self):
        x = np.array([0.0, 1.0])
        y = np.array([5.0, 6.0])
        assert linear_interp_1d(x, y, -1.0) == pytest.approx(5.0)
        assert linear_interp_1d(x, y, 3.0) == pytest.approx(6.0)
        assert linear_interp_1d(x, y, 3.0, extrapolate=True) == pytest.approx(8.0)


class TestPolynomialFit:
    """Test the R²-checked polynomial fit."""

    def test_exact_quadratic(self):
        x = [0.0, 1.0, 2.0, 3.0, 4.0, 5.0]
        y = [1.0 + 2.0 * xi + 0.5 * xi**2 for xi in x]
        fit = find_polynomial_coefs(x, y, 3)
        assert fit.success
        assert fit.coefs == pytest.approx([1.0, 2.0, 0.5], abs=1e-8)
        assert fit.r_squared == pytest.approx(1.0)
        assert fit(2.0) == pytest.approx(7.0)

    def test_too_few_points(self):
        fit = find_polynomial_coefs([0.0, 1.0, 2.0, 3.0], [0.0, 1.0, 4.0, 9.0], 2)
        assert not fit.success
        assert all(math.isnan(c) for c in fit.coefs)

    def test_too_many_coefficients(self):
        fit = find_polynomial_coefs(list(range(10)), list(range(10)), 6)
        assert not fit.success
        assert fit.coefs == []

    def test_poor_fit_rejected(self):
        """A constant cannot explain alternating data (R² = 0)."""
        fit = find_polynomial_coefs([0, 1, 2, 3, 4, 5], [1, -1, 1, -1, 1, -1], 1)
        assert not fit.success


class TestValidation:
    def test_error_invalidates(self):
        result = ValidationResult()
        result.error("UA", "UA must be positive", value=-1.0)
        assert not result.is_valid
        assert len(result.errors) == 1

    def test_range_warning(self):
        result = ValidationResult()
        result.add(Severity.WARNING, "eta", "eta reset to 1.0", value=1.2, limit=1.0)
        assert result.is_valid
        assert result.has_warnings

    def test_merge_and_text(self):
        a = ValidationResult()
        a.warning("x", "first")
        b = ValidationResult()
        b.error("y", "second")
        a.merge(b)
        assert a.text() == "first\nsecond"
        assert not a.is_valid


class TestCommonValidators:
    def test_positive(self):
        result = ValidationResult()
        validate_positive("W_dot_net", -1.0, result)
        assert not result.is_valid

    def test_range(self):
        result = ValidationResult()
        validate_range("recomp_frac", 1.5, 0.0, 1.0, result)
        assert result.errors[0].parameter == "recomp_frac"

    def test_range_warning_severity(self):
        result = ValidationResult()
        validate_range("x", 5.0, 0.0, 3.0, result, Severity.WARNING)
        assert result.is_valid
        assert result.has_warnings


class TestCycleInputValidators:
    """Clamping and checking of cycle inputs."""

    def test_efficiency_above_one(self):
        result = ValidationResult()
        assert clamp_efficiency("eta_t", "turbine", 1.2, 0.1, result) == 1.0
        assert result.warnings[0].limit == 1.0

    def test_efficiency_below_minimum(self):
        result = ValidationResult()
        assert clamp_efficiency("eta_mc", "main compressor", 0.05, 0.1, result) == 0.1
        assert result.has_warnings

    def test_efficiency_in_range_untouched(self):
        result = ValidationResult()
        assert clamp_efficiency("eta_mc", "main compressor", 0.89, 0.1, result) == 0.89
        assert result.messages == []

    def test_pressure_limit_capped(self):
        result = ValidationResult()
        assert clamp_pressure_limit(40000.0, 30000.0, 10000.0, result) == 30000.0
        assert result.is_valid and result.has_warnings

    def test_pressure_limit_too_low(self):
        result = ValidationResult()
        clamp_pressure_limit(9000.0, 30000.0, 10000.0, result)
        assert not result.is_valid

    def test_default_design_valid(self):
        result = validate_cycle_design(DesignParameters(), T_CRIT)
        assert result.is_valid
        assert not result.has_warnings

    def test_pressure_ratio_below_one(self):
        result = validate_cycle_design(DesignParameters(P_mc_in=26000.0), T_CRIT)
        assert [m.parameter for m in result.errors] == ["P_mc_out"]

    def test_outlet_above_limit_warns(self):
        result = validate_cycle_design(DesignParameters(P_mc_out=27000.0), T_CRIT)
        assert result.is_valid
        assert result.warnings[0].parameter == "P_mc_out"

    def test_efficiency_and_flow_split(self):
        params = DesignParameters(eta_mc=0.0, eta_t=1.1, recomp_frac=1.0)
        result = validate_cycle_design(params, T_CRIT)
        assert {m.parameter for m in result.errors} == {"eta_mc", "eta_t", "recomp_frac"}

    def test_subcritical_inlet_warns(self):
        result = validate_cycle_design(DesignParameters(T_mc_in=300.0), T_CRIT)
        assert result.is_valid
        assert result.warnings[0].parameter == "T_mc_in"
