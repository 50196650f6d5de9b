"""Tests for the RecompCycle solver context."""

import math

import pytest

from sco2_cycle.cycle.errors import HIT_ETA_FAILED, NO_DESIGN, TARGET_NOT_BRACKETED
from sco2_cycle.cycle.parameters import (
    DesignParameters,
    HitEtaParameters,
    OffDesignParameters,
    OptDesignParameters,
    OptOffDesignParameters,
    TargetOffDesignParameters,
)
from sco2_cycle.cycle.solver import RecompCycle


@pytest.fixture(scope="module")
def cycle():
    rc = RecompCycle()
    assert rc.design(DesignParameters()) == 0
    return rc


def _design_point(rc: RecompCycle, **overrides) -> OffDesignParameters:
    """Off-design inputs reproducing the design operating point."""
    solved = rc.design_solved
    values = dict(
        T_mc_in=solved.params.T_mc_in,
        T_t_in=solved.params.T_t_in,
        P_mc_in=solved.params.P_mc_in,
        recomp_frac=solved.recomp_frac,
        N_mc=solved.mc.N_design,
        N_t=solved.t.N_design,
    )
    values.update(overrides)
    return OffDesignParameters(**values)


class TestWorkflowOrder:
    def test_finalize_without_design(self):
        assert RecompCycle().finalize_design() == NO_DESIGN

    def test_off_design_without_design(self):
        rc = RecompCycle()
        assert rc.off_design(OffDesignParameters()) == NO_DESIGN
        assert rc.target_off_design(TargetOffDesignParameters()) == NO_DESIGN
        assert rc.optimal_off_design(OptOffDesignParameters()) == NO_DESIGN
        assert rc.od_solved is None

    def test_design_sizes_components(self):
        rc = RecompCycle()
        assert rc.design(DesignParameters()) == 0
        assert rc.design_solved is not None
        assert rc.design_solved.mc.N_design > 0.0
        assert rc.off_design(_design_point(rc)) == 0

    def test_failed_design_returns_code(self):
        rc = RecompCycle()
        code = rc.design(DesignParameters(eta_mc=0.2, eta_rc=0.2, eta_t=0.05))
        assert code != 0
        assert rc.design_solution is None
        assert rc.design_solved is None


class TestDesignSnapshot:
    """The sized design survives later solves on the same instance."""

    def setup_method(self):
        self.rc = RecompCycle()
        assert self.rc.design(DesignParameters()) == 0
        self.solved = self.rc.design_solved

    def test_refinalize_after_off_design(self):
        od = _design_point(self.rc, T_t_in=self.solved.params.T_t_in - 50.0,
                           P_mc_in=0.9 * self.solved.params.P_mc_in)
        assert self.rc.off_design(od) == 0
        assert self.rc.finalize_design() == 0
        again = self.rc.design_solved
        assert again.states[6].T == pytest.approx(823.15)
        assert again.mc.N_design == pytest.approx(self.solved.mc.N_design, rel=1e-9)
        assert again.t.N_design == pytest.approx(self.solved.t.N_design, rel=1e-9)

    def test_failed_redesign_keeps_previous(self):
        assert self.rc.design(DesignParameters(eta_mc=0.2, eta_rc=0.2, eta_t=0.05)) != 0
        assert self.rc.design_solved is self.solved
        assert self.rc.des_par == DesignParameters()
        assert self.rc.finalize_design() == 0
        assert self.rc.design_solved.states[6].T == pytest.approx(823.15)
        assert self.rc.off_design(_design_point(self.rc)) == 0

    def test_finalize_is_idempotent(self):
        assert self.rc.finalize_design() == 0
        first = self.rc.design_solved
        assert self.rc.finalize_design() == 0
        assert self.rc.design_solved.mc.N_design == pytest.approx(first.mc.N_design, rel=1e-12)
        assert self.rc.design_solved.W_dot_net == first.W_dot_net


class TestZeroRecompression:
    """Simple recuperated layout through the solver context."""

    @pytest.fixture(scope="class")
    def simple(self):
        rc = RecompCycle()
        assert rc.design(DesignParameters(recomp_frac=0.0)) == 0
        return rc

    def test_no_recompressor(self, simple):
        solved = simple.design_solved
        assert solved.is_rc is False
        assert solved.rc is None
        assert solved.m_dot_rc == 0.0

    def test_mixer_passes_through(self, simple):
        s = simple.design_solved.states
        assert s[4].T == s[3].T
        assert s[4].P == s[3].P
        assert s[4].h == s[3].h

    def test_off_design_without_finalize(self, simple):
        assert simple.off_design(_design_point(simple)) == 0
        assert simple.od_solved.m_dot_rc == 0.0
        assert simple.od_solved.W_dot_net == pytest.approx(simple.design_solved.W_dot_net, rel=0.02)


class TestFinalizedDesign:
    """Sizing results of the baseline design."""

    def test_performance(self, cycle):
        solved = cycle.design_solved
        assert solved.W_dot_net == pytest.approx(10.0e3, rel=1e-6)
        assert 0.3 < solved.eta_thermal < 0.6
        assert solved.is_rc
        assert solved.recomp_frac == pytest.approx(0.3, rel=1e-6)

    def test_components_sized(self, cycle):
        solved = cycle.design_solved
        assert solved.mc.N_design > 0.0
        assert solved.rc is not None
        assert solved.t.N_design == pytest.approx(3600.0)
        assert set(solved.hx) == {"LTR", "HTR", "PHX", "PC"}

    def test_states_snapshot(self, cycle):
        """The stored state vector is a copy, not the live one."""
        assert cycle.design_solved.states is not cycle.states

    def test_summary(self, cycle):
        summary = cycle.design_solved.summary()
        assert summary["performance"]["W_dot_net_kW"] == pytest.approx(10.0e3, rel=1e-6)
        assert summary["turbine"]
        assert "LTR" in summary["heat_exchangers"]


class TestOffDesign:
    """Off-design calls against the sized baseline."""

    def test_design_point_reproduced(self, cycle):
        assert cycle.off_design(_design_point(cycle)) == 0
        solved = cycle.od_solved
        assert solved.W_dot_net == pytest.approx(cycle.design_solved.W_dot_net, rel=0.02)
        assert solved.eta_thermal == pytest.approx(cycle.design_solved.eta_thermal, rel=0.02)
        assert solved.m_dot_t == pytest.approx(cycle.design_solved.m_dot_t, rel=0.02)

    def test_energy_balance(self, cycle):
        od = _design_point(cycle, T_t_in=cycle.design_solved.params.T_t_in - 30.0)
        assert cycle.off_design(od) == 0
        sol = cycle.od_solved
        assert sol.Q_dot_PHX - sol.Q_dot_PC == pytest.approx(sol.W_dot_net, rel=1e-3)

    def test_unreachable_target(self, cycle):
        base = _design_point(cycle)
        tar = TargetOffDesignParameters(
            T_mc_in=base.T_mc_in,
            T_t_in=base.T_t_in,
            recomp_frac=base.recomp_frac,
            N_mc=base.N_mc,
            N_t=base.N_t,
            target=1.0e6,
        )
        assert cycle.target_off_design(tar) == TARGET_NOT_BRACKETED

    def test_part_load_target(self, cycle):
        base = _design_point(cycle)
        target = 0.95 * cycle.design_solved.W_dot_net
        tar = TargetOffDesignParameters(
            T_mc_in=base.T_mc_in,
            T_t_in=base.T_t_in,
            recomp_frac=base.recomp_frac,
            N_mc=base.N_mc,
            N_t=base.N_t,
            target=target,
            tol=1.0e-4,
        )
        assert cycle.target_off_design(tar) == 0
        assert cycle.od_solved.W_dot_net == pytest.approx(target, rel=1e-3)
        assert cycle.od_par.P_mc_in < cycle.design_solved.params.P_mc_in

    def test_optimal_all_fixed(self, cycle):
        base = _design_point(cycle)
        opt = OptOffDesignParameters(
            T_mc_in=base.T_mc_in,
            T_t_in=base.T_t_in,
            P_mc_in_guess=base.P_mc_in,
            fixed_P_mc_in=True,
            recomp_frac_guess=base.recomp_frac,
            fixed_recomp_frac=True,
            N_mc_guess=base.N_mc,
            fixed_N_mc=True,
            N_t_guess=base.N_t,
            fixed_N_t=True,
        )
        assert cycle.optimal_off_design(opt) == 0
        assert cycle.od_par.P_mc_in == base.P_mc_in
        assert cycle.od_solved.W_dot_net == pytest.approx(cycle.design_solved.W_dot_net, rel=0.02)


class TestDesignOptimization:
    def test_opt_design_recomp_only(self):
        rc = RecompCycle()
        opt = OptDesignParameters(
            P_mc_out_guess=25000.0,
            fixed_P_mc_out=True,
            PR_mc_guess=25000.0 / 7690.0,
            fixed_PR_mc=True,
            fixed_LT_frac=True,
            opt_tol=1e-4,
        )
        assert rc.opt_design(opt) == 0
        assert rc.des_par.P_mc_out == 25000.0
        assert 0.0 <= rc.des_par.recomp_frac <= 1.0
        assert rc.n_design_calls > 1
        assert rc.design_solved.params is rc.des_par

    def test_hit_eta_invalid_input(self):
        rc = RecompCycle()
        code, message = rc.auto_opt_design_hit_eta(HitEtaParameters(T_mc_in=300.0))
        assert code == HIT_ETA_FAILED
        assert message
        assert rc.design_solution is None

    def test_max_output_initially_unset(self):
        assert math.isnan(RecompCycle().max_output)
