"""Tests for the design-point cycle solver."""

from dataclasses import replace

import pytest

from sco2_cycle.core.co2_props import state_from_PH, state_from_TP
from sco2_cycle.cycle.components.base import CycleStateVector
from sco2_cycle.cycle.design import (
    apply_design_pressures,
    design_core,
    inlet_pressure,
    outlet_pressure,
    ua_converged,
)
from sco2_cycle.cycle.errors import NON_POSITIVE_NET_WORK, CycleError
from sco2_cycle.cycle.parameters import DesignParameters, Topology


def _solve(**overrides):
    params = replace(DesignParameters(), **overrides)
    states = CycleStateVector()
    return params, states, design_core(params, states)


@pytest.fixture(scope="module")
def baseline():
    """Default 10 MW recompression design."""
    return _solve()


class TestPressureDrops:
    def test_absolute_drop(self):
        assert outlet_pressure(10000.0, 100.0) == pytest.approx(9900.0)
        assert inlet_pressure(9900.0, 100.0) == pytest.approx(10000.0)

    def test_relative_drop(self):
        """Negative values are fractions of the inlet pressure."""
        assert outlet_pressure(10000.0, -0.02) == pytest.approx(9800.0)
        assert inlet_pressure(9800.0, -0.02) == pytest.approx(10000.0)

    def test_node_pressures(self):
        params = DesignParameters(DP_LT=[100.0, 50.0], DP_HT=[80.0, 40.0], DP_PC=[0.0, 30.0], DP_PHX=[120.0, 0.0])
        states = CycleStateVector()
        apply_design_pressures(params, states)
        assert states[1].P == 7690.0
        assert states[2].P == 25000.0
        assert states[3].P == pytest.approx(24900.0)
        assert states[4].P == states[3].P == states[10].P
        assert states[5].P == pytest.approx(24820.0)
        assert states[6].P == pytest.approx(24700.0)
        assert states[9].P == pytest.approx(7720.0)
        assert states[8].P == pytest.approx(7770.0)
        assert states[7].P == pytest.approx(7810.0)

    def test_no_recuperator_no_drop(self):
        params = DesignParameters(UA_LT=0.0, DP_LT=[100.0, 50.0])
        states = CycleStateVector()
        apply_design_pressures(params, states)
        assert states[3].P == states[2].P
        assert states[8].P == states[9].P


class TestUAConvergence:
    def test_relative_tolerance(self):
        assert ua_converged(-1e-5, 500.0, 1e-6, 5.0)
        assert not ua_converged(-1.0, 500.0, 1e-6, 5.0)

    def test_closed_pinch_accepts_undersized(self):
        assert ua_converged(10.0, 500.0, 1e-6, 1e-8)
        assert not ua_converged(10.0, 500.0, 1e-6, 1.0)


class TestDesignPoint:
    """Check the converged default design for internal consistency."""

    def test_net_power(self, baseline):
        _, _, sol = baseline
        assert sol.W_dot_net == pytest.approx(10.0e3, rel=1e-6)

    def test_efficiency_range(self, baseline):
        _, _, sol = baseline
        assert 0.30 < sol.eta_thermal < 0.55

    def test_energy_balance(self, baseline):
        _, _, sol = baseline
        assert sol.Q_dot_PHX - sol.Q_dot_PC == pytest.approx(sol.W_dot_net, rel=1e-3)

    def test_flow_split(self, baseline):
        params, _, sol = baseline
        assert sol.m_dot_rc == pytest.approx(params.recomp_frac * sol.m_dot_t)
        assert sol.m_dot_mc + sol.m_dot_rc == pytest.approx(sol.m_dot_t)

    def test_recuperator_conductance(self, baseline):
        params, _, sol = baseline
        assert sol.LT.UA_design == pytest.approx(params.UA_LT, rel=1e-4)
        assert sol.HT.UA_design == pytest.approx(params.UA_HT, rel=1e-4)

    def test_temperatures_ordered(self, baseline):
        _, states, _ = baseline
        assert states[2].T > states[1].T
        assert states[5].T > states[4].T > states[3].T
        assert states[6].T > states[7].T > states[8].T > states[9].T
        assert states[10].T > states[9].T

    def test_second_law_in_recuperators(self, baseline):
        _, states, _ = baseline
        assert states[8].T > states[4].T
        assert states[9].T > states[2].T

    def test_effectiveness_bounded(self, baseline):
        _, _, sol = baseline
        assert 0.0 < sol.LT.eff_design <= 1.0
        assert 0.0 < sol.HT.eff_design <= 1.0

    def test_node_properties_round_trip(self, baseline):
        """Any two properties of a node rebuild the other three."""
        _, states, _ = baseline
        for node in states:
            from_ph = state_from_PH(node.P, node.h)
            assert from_ph.temp == pytest.approx(node.T, rel=1e-5)
            assert from_ph.entr == pytest.approx(node.s, rel=1e-5)
            assert from_ph.dens == pytest.approx(node.D, rel=1e-4)

            from_tp = state_from_TP(node.T, node.P)
            assert from_tp.enth == pytest.approx(node.h, rel=1e-5, abs=1e-3)
            assert from_tp.entr == pytest.approx(node.s, rel=1e-5)

    def test_conductance_fixed_point(self, baseline):
        """Re-solving with the converged UA values returns the same hot outlets."""
        _, states, sol = baseline
        _, again, _ = _solve(UA_LT=sol.LT.UA_design, UA_HT=sol.HT.UA_design)
        assert again[8].T == pytest.approx(states[8].T, abs=0.01)
        assert again[9].T == pytest.approx(states[9].T, abs=0.01)


class TestDesignVariants:
    def test_simple_cycle(self):
        _, _, sol = _solve(recomp_frac=0.0)
        assert sol.m_dot_rc == 0.0
        assert sol.m_dot_mc == pytest.approx(sol.m_dot_t)
        assert sol.eta_thermal > 0

    def test_no_recuperators(self):
        _, states, sol = _solve(UA_LT=0.0, UA_HT=0.0, recomp_frac=0.0)
        assert states[8].T == pytest.approx(states[7].T)
        assert states[9].T == pytest.approx(states[8].T)
        assert sol.LT.Q_dot_design == 0.0

    def test_recuperation_raises_efficiency(self, baseline):
        _, _, bare = _solve(UA_LT=0.0, UA_HT=0.0, recomp_frac=0.0)
        assert baseline[2].eta_thermal > bare.eta_thermal

    def test_polytropic_efficiencies(self, baseline):
        """Negative efficiencies are polytropic, giving a different result."""
        _, _, sol = _solve(eta_mc=-0.89, eta_rc=-0.89, eta_t=-0.90)
        assert sol.eta_thermal != pytest.approx(baseline[2].eta_thermal, rel=1e-4)

    def test_no_positive_work(self):
        with pytest.raises(CycleError) as exc_info:
            _solve(eta_mc=0.2, eta_rc=0.2, eta_t=0.05)
        assert exc_info.value.code == NON_POSITIVE_NET_WORK

    def test_efficiency_falls_with_compressor_inlet_temperature(self):
        etas = [_solve(T_mc_in=T)[2].eta_thermal for T in (305.0, 306.0, 307.0, 308.0, 309.0)]
        assert all(hot < cold for cold, hot in zip(etas, etas[1:]))


class TestBypassTopologies:
    """Test the HTR bypass layouts."""

    def test_fixed_bypass(self):
        _, _, sol = _solve(topology=Topology.HTR_BYPASS, bypass_frac=0.1)
        assert sol.bypass_frac == 0.1
        assert sol.Q_dot_bypass > 0
        assert sol.eta_thermal == pytest.approx(sol.W_dot_net / (sol.Q_dot_PHX + sol.Q_dot_bypass))

    def test_zero_bypass_matches_standard(self, baseline):
        _, _, sol = _solve(topology=Topology.HTR_BYPASS, bypass_frac=0.0)
        assert sol.Q_dot_bypass == 0.0
        assert sol.eta_thermal == pytest.approx(baseline[2].eta_thermal, rel=1e-9)

    def test_bypass_heat_share(self):
        params, _, sol = _solve(topology=Topology.HTR_BYPASS_TARGET)
        share = sol.Q_dot_bypass / (sol.Q_dot_PHX + sol.Q_dot_bypass)
        if sol.bypass_converged:
            assert share == pytest.approx(params.bypass_target, abs=1e-5)
        else:
            assert sol.eta_thermal == 0.0
