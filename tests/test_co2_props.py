"""Tests for the CO2 property oracle."""

import math

import pytest

from sco2_cycle.core.co2_props import (
    PH_ERROR,
    TD_ERROR,
    TP_ERROR,
    PropertyError,
    p_pseudocritical,
    state_from_HS,
    state_from_PH,
    state_from_PS,
    state_from_TD,
    state_from_TP,
)


class TestStateFromTP:
    """Test temperature-pressure state evaluation."""

    def test_compressor_inlet_density(self):
        """Near-critical CO2 at 32 C, 7.69 MPa is liquid-like."""
        state = state_from_TP(305.15, 7690.0)
        assert state.temp == pytest.approx(305.15)
        assert state.pres == pytest.approx(7690.0, rel=1e-6)
        assert 300.0 < state.dens < 700.0
        assert state.ssnd > 0

    def test_turbine_inlet_is_gas_like(self):
        state = state_from_TP(823.15, 25000.0)
        assert state.dens < 200.0
        assert state.enth > state_from_TP(305.15, 25000.0).enth

    def test_units_are_kilo(self):
        """Enthalpy and entropy come back in kJ/kg and kJ/kg-K."""
        state = state_from_TP(400.0, 10000.0)
        assert 0.0 < state.enth < 2000.0
        assert 0.0 < state.entr < 10.0

    def test_above_upper_temperature(self):
        with pytest.raises(PropertyError) as exc_info:
            state_from_TP(1500.0, 10000.0)
        assert exc_info.value.code == TP_ERROR

    def test_above_upper_pressure(self):
        with pytest.raises(PropertyError) as exc_info:
            state_from_TP(400.0, 40000.0)
        assert exc_info.value.code == TP_ERROR

    def test_non_finite_input(self):
        with pytest.raises(PropertyError):
            state_from_TP(math.nan, 10000.0)


class TestInverseCalls:
    """Other input pairs must reproduce the TP state."""

    def setup_method(self):
        self.ref = state_from_TP(500.0, 15000.0)

    def test_ph(self):
        state = state_from_PH(self.ref.pres, self.ref.enth)
        assert state.temp == pytest.approx(500.0, abs=1e-3)

    def test_ps(self):
        state = state_from_PS(self.ref.pres, self.ref.entr)
        assert state.temp == pytest.approx(500.0, abs=1e-3)

    def test_hs(self):
        state = state_from_HS(self.ref.enth, self.ref.entr)
        assert state.pres == pytest.approx(15000.0, rel=1e-4)

    def test_td(self):
        state = state_from_TD(500.0, self.ref.dens)
        assert state.pres == pytest.approx(15000.0, rel=1e-5)

    def test_td_negative_density(self):
        with pytest.raises(PropertyError) as exc_info:
            state_from_TD(500.0, -1.0)
        assert exc_info.value.code == TD_ERROR

    def test_ph_error_code(self):
        with pytest.raises(PropertyError) as exc_info:
            state_from_PH(15000.0, math.inf)
        assert exc_info.value.code == PH_ERROR


class TestPseudocritical:
    def test_near_critical_point(self):
        """The fit passes close to the critical pressure at T_crit."""
        assert p_pseudocritical(304.13) == pytest.approx(7377.0, rel=0.02)

    def test_increases_with_temperature(self):
        assert p_pseudocritical(320.0) > p_pseudocritical(310.0)
