"""Tests for turbomachinery processes and component sizing."""

import pytest

from sco2_cycle.cycle.components.base import NODE_NAMES, CycleStateVector
from sco2_cycle.cycle.components.compressor import PHI_DESIGN, Compressor, snl_map
from sco2_cycle.cycle.components.recompressor import Recompressor
from sco2_cycle.cycle.components.turbine import Turbine
from sco2_cycle.cycle.components.turbomachinery import (
    calculate_turbomachinery_outlet,
    isen_eta_from_poly_eta,
)
from sco2_cycle.cycle.design import design_core
from sco2_cycle.cycle.errors import HX_COLD_PRESSURE_RISE, TURBINE_SPEED_UNDEFINED, CycleError
from sco2_cycle.cycle.parameters import DesignParameters


@pytest.fixture(scope="module")
def design_states():
    """Converged default design point and its solution."""
    states = CycleStateVector()
    solution = design_core(DesignParameters(), states)
    return states, solution


class TestStateVector:
    def test_one_based_indexing(self):
        states = CycleStateVector()
        assert len(states) == 10
        states[10].T = 400.0
        assert states.temperatures()[9] == 400.0

    def test_out_of_range(self):
        states = CycleStateVector()
        with pytest.raises(IndexError):
            states[0]
        with pytest.raises(IndexError):
            states[11]

    def test_reset_invalidates(self):
        states = CycleStateVector()
        states[1].T = 305.0
        states.reset()
        assert states[1].T != states[1].T  # NaN

    def test_copy_is_independent(self):
        states = CycleStateVector()
        states[3].P = 100.0
        clone = states.copy()
        clone[3].P = 200.0
        assert states[3].P == 100.0

    def test_node_names(self):
        assert NODE_NAMES[1] == "MC inlet"
        assert NODE_NAMES[6] == "Turbine inlet"
        assert set(NODE_NAMES) == set(range(1, 11))


class TestTurbomachineryOutlet:
    """Test compression and expansion processes."""

    def test_compression_work_negative(self):
        result = calculate_turbomachinery_outlet(305.15, 7690.0, 25000.0, 0.89, is_comp=True)
        assert result.spec_work < 0
        assert result.T_out > 305.15

    def test_expansion_work_positive(self):
        result = calculate_turbomachinery_outlet(823.15, 25000.0, 7800.0, 0.90, is_comp=False)
        assert result.spec_work > 0
        assert result.T_out < 823.15

    def test_ideal_process_is_isentropic(self):
        result = calculate_turbomachinery_outlet(823.15, 25000.0, 7800.0, 1.0, is_comp=False)
        assert result.s_out == pytest.approx(result.s_in, abs=1e-6)

    def test_efficiency_scales_work(self):
        ideal = calculate_turbomachinery_outlet(823.15, 25000.0, 7800.0, 1.0, is_comp=False)
        real = calculate_turbomachinery_outlet(823.15, 25000.0, 7800.0, 0.9, is_comp=False)
        assert real.spec_work == pytest.approx(0.9 * ideal.spec_work)

    def test_polytropic_compression_below_stage_efficiency(self):
        eta = isen_eta_from_poly_eta(305.15, 7690.0, 25000.0, 0.89, is_comp=True)
        assert 0.5 < eta < 0.89

    def test_polytropic_expansion_above_stage_efficiency(self):
        eta = isen_eta_from_poly_eta(823.15, 25000.0, 7800.0, 0.90, is_comp=False)
        assert 0.90 < eta < 1.0


class TestCompressorMap:
    def test_design_point_normalized(self):
        """The map efficiency is unity at the design flow and speed."""
        _, psi, eta_0 = snl_map(PHI_DESIGN, 30000.0, 30000.0)
        assert eta_0 == pytest.approx(1.0, abs=1e-3)
        assert psi > 0


class TestSizing:
    """Size every turbomachine from a converged design and run it at design."""

    def test_compressor_round_trip(self, design_states):
        states, sol = design_states
        mc = Compressor()
        des = mc.size(states[1], states[2], sol.m_dot_mc)
        assert des.D_rotor > 0
        assert des.N_design > 0
        assert des.eta_design == pytest.approx(0.89, rel=1e-3)

        od = mc.off_design(states[1].T, states[1].P, sol.m_dot_mc, des.N_design)
        assert od.P_out == pytest.approx(states[2].P, rel=1e-3)
        assert od.phi == pytest.approx(PHI_DESIGN, rel=1e-6)
        assert not od.surge

    def test_unsized_compressor_raises(self):
        with pytest.raises(RuntimeError):
            Compressor().off_design(305.15, 7690.0, 10.0, 30000.0)

    def test_recompressor_round_trip(self, design_states):
        states, sol = design_states
        rc = Recompressor()
        des = rc.size(states[9], states[10], sol.m_dot_rc)
        assert des.D_rotor > 0
        assert des.D_rotor_2 > 0

        od = rc.off_design(states[9].T, states[9].P, sol.m_dot_rc, states[10].P)
        assert od.T_out == pytest.approx(states[10].T, abs=0.5)
        assert od.N == pytest.approx(des.N_design, rel=1e-3)

    def test_turbine_round_trip(self, design_states):
        states, sol = design_states
        t = Turbine()
        des = t.size(states[6], states[7], sol.m_dot_t, N_design=3600.0)
        assert des.N_design == 3600.0
        assert des.A_nozzle > 0

        od = t.off_design(states[6].T, states[6].P, states[7].P, 3600.0)
        assert od.m_dot == pytest.approx(sol.m_dot_t, rel=1e-6)

    def test_turbine_linked_to_compressor(self, design_states):
        states, sol = design_states
        des = Turbine().size(states[6], states[7], sol.m_dot_t, N_design=0.0, N_comp_if_linked=45000.0)
        assert des.N_design == 45000.0

    def test_turbine_speed_undefined(self, design_states):
        states, sol = design_states
        with pytest.raises(CycleError) as exc_info:
            Turbine().size(states[6], states[7], sol.m_dot_t, N_design=0.0, N_comp_if_linked=0.0)
        assert exc_info.value.code == TURBINE_SPEED_UNDEFINED
        # Same code as HX_COLD_PRESSURE_RISE; the message carries the difference
        assert exc_info.value.code == HX_COLD_PRESSURE_RISE
        assert "Turbine shaft speed" in str(exc_info.value)
