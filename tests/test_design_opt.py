"""Tests for the design-point optimizers."""

import pytest

from sco2_cycle.cycle.errors import HIT_ETA_FAILED
from sco2_cycle.cycle.parameters import (
    AutoOptDesignParameters,
    HitEtaParameters,
    OptDesignParameters,
)
from sco2_cycle.optimization.design_opt import (
    T_MC_IN_MAX,
    T_T_IN_MIN,
    CycleDesignOptimizer,
    design_parameters,
    fixed_pressure_candidates,
    validate_hit_eta,
)


class TestDesignParameters:
    def test_pressures_and_ua_split(self):
        opt = OptDesignParameters(UA_rec_total=1000.0)
        params = design_parameters(opt, 24000.0, 3.0, 0.25, 0.4)
        assert params.P_mc_out == 24000.0
        assert params.P_mc_in == pytest.approx(8000.0)
        assert params.UA_LT == pytest.approx(400.0)
        assert params.UA_HT == pytest.approx(600.0)
        assert params.recomp_frac == 0.25

    def test_pressure_drop_lists_copied(self):
        opt = OptDesignParameters()
        params = design_parameters(opt, 24000.0, 3.0, 0.25, 0.4)
        params.DP_LT[0] = 99.0
        assert opt.DP_LT[0] == 0.0


class TestFixedPressureCandidates:
    def test_two_layouts(self):
        auto = AutoOptDesignParameters()
        recompression, simple = fixed_pressure_candidates(auto, 20000.0, 2.5)
        assert recompression.fixed_P_mc_out and simple.fixed_P_mc_out
        assert not recompression.fixed_recomp_frac
        assert simple.fixed_recomp_frac
        assert simple.recomp_frac_guess == 0.0
        assert recompression.P_mc_out_guess == simple.P_mc_out_guess == 20000.0


class TestValidateHitEta:
    """Test clamping and rejection of efficiency-target inputs."""

    def test_valid_inputs(self):
        params, result = validate_hit_eta(HitEtaParameters())
        assert result.is_valid
        assert not result.has_warnings

    def test_subcritical_inlet_rejected(self):
        _, result = validate_hit_eta(HitEtaParameters(T_mc_in=300.0))
        assert not result.is_valid
        assert "single phase" in result.text()

    def test_hot_compressor_inlet_clamped(self):
        params, result = validate_hit_eta(HitEtaParameters(T_mc_in=360.0))
        assert result.is_valid
        assert result.has_warnings
        assert params.T_mc_in == pytest.approx(T_MC_IN_MAX)

    def test_cold_turbine_inlet_clamped(self):
        params, result = validate_hit_eta(HitEtaParameters(T_t_in=500.0))
        assert params.T_t_in == pytest.approx(T_T_IN_MIN)
        assert result.has_warnings

    def test_efficiencies_clamped(self):
        params, result = validate_hit_eta(HitEtaParameters(eta_mc=1.2, eta_t=0.05))
        assert params.eta_mc == 1.0
        assert params.eta_t == pytest.approx(0.1)
        assert len(result.warnings) == 2

    def test_input_not_modified(self):
        original = HitEtaParameters(T_mc_in=360.0)
        validate_hit_eta(original)
        assert original.T_mc_in == 360.0

    def test_above_carnot_rejected(self):
        _, result = validate_hit_eta(HitEtaParameters(eta_thermal=0.7))
        assert not result.is_valid
        assert "Carnot" in result.text()

    def test_low_pressure_limit_rejected(self):
        _, result = validate_hit_eta(HitEtaParameters(P_high_limit=9000.0))
        assert not result.is_valid


class TestCycleDesignOptimizer:
    """Optimizer runs against the real design solver."""

    def test_all_fixed_solves_once(self):
        optimizer = CycleDesignOptimizer()
        opt = OptDesignParameters(
            P_mc_out_guess=25000.0,
            fixed_P_mc_out=True,
            PR_mc_guess=25000.0 / 7690.0,
            fixed_PR_mc=True,
            fixed_recomp_frac=True,
            fixed_LT_frac=True,
        )
        optimum = optimizer.optimize(opt)
        assert optimizer.n_design_calls == 1
        assert optimum.params.P_mc_in == pytest.approx(7690.0)
        assert optimum.solution.W_dot_net == pytest.approx(10.0e3, rel=1e-6)

    def test_recompression_fraction_search(self):
        """Freeing the recompression fraction cannot lose efficiency."""
        common = dict(
            P_mc_out_guess=25000.0,
            fixed_P_mc_out=True,
            PR_mc_guess=25000.0 / 7690.0,
            fixed_PR_mc=True,
            fixed_LT_frac=True,
            opt_tol=1e-4,
        )
        fixed = CycleDesignOptimizer().optimize(OptDesignParameters(fixed_recomp_frac=True, **common))
        free = CycleDesignOptimizer().optimize(OptDesignParameters(fixed_recomp_frac=False, **common))
        assert free.solution.eta_thermal >= fixed.solution.eta_thermal - 1e-9
        assert 0.0 <= free.params.recomp_frac <= 1.0

    def test_hit_eta_rejects_invalid_input(self):
        outcome = CycleDesignOptimizer().hit_eta(HitEtaParameters(T_mc_in=300.0))
        assert outcome.code == HIT_ETA_FAILED
        assert outcome.optimum is None
        assert "critical temperature" in outcome.message
