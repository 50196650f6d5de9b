"""Recompression cycle solver context.

:class:`RecompCycle` owns one state vector, one set of sized components
and the latest design and off-design results.  Every public entry point
returns an integer code (0 on success) instead of raising; the solver
internals raise :class:`~sco2_cycle.cycle.errors.CycleError` and
:class:`~sco2_cycle.core.co2_props.PropertyError`, which are caught here
and logged.

Typical workflow::

    cycle = RecompCycle()
    if cycle.design(DesignParameters()) == 0:
        code = cycle.off_design(OffDesignParameters(...))

An instance is not reentrant; use one instance per thread.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Any, Callable

from sco2_cycle.core.co2_props import PropertyError
from sco2_cycle.cycle.components.base import CycleStateVector
from sco2_cycle.cycle.components.recompressor import Recompressor
from sco2_cycle.cycle.design import DesignSolution, DesignSolved, design_core
from sco2_cycle.cycle.errors import NO_DESIGN, NO_PHX_SOLUTION, CycleError
from sco2_cycle.cycle.off_design import CycleComponents, OffDesignSolution, off_design_core
from sco2_cycle.cycle.parameters import (
    AutoOptDesignParameters,
    DesignLimits,
    DesignParameters,
    HitEtaParameters,
    OffDesignParameters,
    OptDesignParameters,
    OptOffDesignParameters,
    OptTargetOffDesignParameters,
    PHXOffDesignParameters,
    TargetOffDesignParameters,
)
from sco2_cycle.optimization.design_opt import CycleDesignOptimizer, DesignOptimum
from sco2_cycle.optimization.off_design_opt import OffDesignOptimizer, OffDesignPoint, PHXPoint

logger = logging.getLogger(__name__)

RECOMPRESSOR_SIZING_FRAC = 0.01  # smaller recompression fractions size no recompressor


class RecompCycle:
    """Design, sizing, off-design and optimization of one recompression cycle.

    Attributes:
        states: The 10-node state vector every solve overwrites.
        parts: Components sized by the latest successful design entry point.
        des_par: Parameters of the latest design solve.
        design_solution: Scalar results of the latest design solve.
        design_solved: Sized design of the latest successful design entry point.
        od_par: Parameters of the latest off-design point.
        od_solved: Results of the latest off-design point.
        max_output: Largest output found by :meth:`get_max_output_od` [kW].
        phx_point: Result of the latest :meth:`opt_od_eta_for_hx` call.
    """

    def __init__(self, limits: DesignLimits | None = None, seed: int = 0):
        self.states = CycleStateVector()
        self.parts = CycleComponents()
        self.limits = limits or DesignLimits()
        self.des_par: DesignParameters | None = None
        self.design_solution: DesignSolution | None = None
        self.design_solved: DesignSolved | None = None
        self._design_states: CycleStateVector | None = None
        self.od_par: OffDesignParameters | None = None
        self.od_solved: OffDesignSolution | None = None
        self.max_output = math.nan
        self.phx_point: PHXPoint | None = None
        self._seed = seed
        self._design_opt = CycleDesignOptimizer(self.states)
        self._od_opt: OffDesignOptimizer | None = None

    def _run(self, name: str, fn: Callable[[], Any]) -> int:
        try:
            fn()
        except (CycleError, PropertyError) as exc:
            logger.warning("%s failed with code %d: %s", name, exc.code, exc)
            return exc.code
        return 0

    def _require_design(self) -> DesignSolved:
        if self.design_solved is None:
            raise CycleError(NO_DESIGN, "No sized design; run a design entry point first")
        return self.design_solved

    def _off_design_optimizer(self) -> OffDesignOptimizer:
        design = self._require_design()
        if self._od_opt is None or self._od_opt.design is not design:
            self._od_opt = OffDesignOptimizer(self.parts, self.states, design, seed=self._seed)
        return self._od_opt

    @property
    def n_design_calls(self) -> int:
        """Design-point solves issued by the design optimizers."""
        return self._design_opt.n_design_calls

    def _accept_design(self, params: DesignParameters, solution: DesignSolution) -> None:
        """Size a fresh component set from the converged states, then commit.

        A sizing failure raises before anything is stored, so the previous
        design and its components stay usable.
        """
        states = self.states.copy()
        parts = CycleComponents()
        solved = _size_components(params, solution, states, parts)
        self.des_par = params
        self.design_solution = solution
        self._design_states = states
        self.parts = parts
        self.design_solved = solved

    def design(self, params: DesignParameters) -> int:
        """Solve one design point and size the components."""
        return self._run("design", lambda: self._accept_design(params, design_core(params, self.states)))

    def _store_optimum(self, optimum: DesignOptimum) -> None:
        self._accept_design(optimum.params, optimum.solution)

    def opt_design(self, opt: OptDesignParameters) -> int:
        """Optimize the design efficiency over the free variables of ``opt``."""
        return self._run("opt_design", lambda: self._store_optimum(self._design_opt.optimize(opt)))

    def auto_opt_design(self, auto: AutoOptDesignParameters) -> int:
        """Optimize the design over the compressor outlet pressure and both layouts."""
        return self._run("auto_opt_design", lambda: self._store_optimum(self._design_opt.auto_optimize(auto)))

    def auto_opt_design_hit_eta(self, params: HitEtaParameters) -> tuple[int, str]:
        """Auto-optimized design whose recuperator UA reaches a target efficiency.

        Returns:
            Tuple of (code, message); the message collects validation
            warnings and failure explanations.
        """
        outcome = self._design_opt.hit_eta(params, self.limits)
        code, message = outcome.code, outcome.message
        if outcome.optimum is not None:
            sized = self._run("auto_opt_design_hit_eta", lambda: self._store_optimum(outcome.optimum))
            if code == 0 and sized != 0:
                code = sized
                message = "\n".join(filter(None, [message, "Sizing the optimized design failed"]))
        if code != 0:
            logger.warning("auto_opt_design_hit_eta failed with code %d", code)
        return code, message

    def finalize_design(self) -> int:
        """Re-size every component from the states of the latest design.

        Design entry points already size the components; this call only
        restores them, e.g. after editing :attr:`parts`.  Later off-design
        solves do not affect it.  Returns ``NO_DESIGN`` before any design.
        """

        def size() -> None:
            if self.des_par is None or self.design_solution is None:
                raise CycleError(NO_DESIGN, "No design solution to finalize; run a design first")
            parts = CycleComponents()
            solved = _size_components(self.des_par, self.design_solution, self._design_states, parts)
            self.parts = parts
            self.design_solved = solved

        return self._run("finalize_design", size)

    def _store_point(self, point: OffDesignPoint) -> None:
        self.od_par = point.params
        self.od_solved = point.solution

    def off_design(self, od: OffDesignParameters) -> int:
        """Solve the sized cycle at one operating point."""

        def solve() -> None:
            self._require_design()
            self.od_par = od
            self.od_solved = off_design_core(od, self.parts, self.states)

        return self._run("off_design", solve)

    def target_off_design(self, tar: TargetOffDesignParameters) -> int:
        """Find the compressor inlet pressure delivering a target output."""
        return self._run("target_off_design", lambda: self._store_point(self._off_design_optimizer().target(tar)))

    def optimal_off_design(self, opt_od: OptOffDesignParameters) -> int:
        """Maximize off-design net power or efficiency."""
        return self._run(
            "optimal_off_design", lambda: self._store_point(self._off_design_optimizer().optimal(opt_od))
        )

    def get_max_output_od(self, opt_tar: OptTargetOffDesignParameters) -> int:
        """Largest net power (or PHX duty), stored in :attr:`max_output`."""

        def solve() -> None:
            self.max_output, point = self._off_design_optimizer().max_output(opt_tar)
            self._store_point(point)

        return self._run("get_max_output_od", solve)

    def optimal_target_off_design(self, opt_tar: OptTargetOffDesignParameters) -> int:
        """Most efficient point at a target output, after checking it is reachable."""
        return self._run(
            "optimal_target_off_design",
            lambda: self._store_point(self._off_design_optimizer().optimal_target(opt_tar)),
        )

    def optimal_target_off_design_no_check(self, opt_tar: OptTargetOffDesignParameters) -> int:
        """Most efficient point at a target output."""
        return self._run(
            "optimal_target_off_design_no_check",
            lambda: self._store_point(self._off_design_optimizer().optimal_target_no_check(opt_tar)),
        )

    def opt_od_eta_for_hx(self, od: OffDesignParameters, phx: PHXOffDesignParameters) -> int:
        """Most efficient point matching the PHX heat-transfer fluid conditions.

        ``od`` supplies the compressor inlet temperature, the starting
        turbine inlet temperature and the tolerances.  Returns 1 when no
        point met every condition; the closest point is still stored.
        """

        def solve() -> None:
            self.phx_point = self._off_design_optimizer().optimal_for_phx(od, phx)
            if self.phx_point.point is not None:
                self._store_point(self.phx_point.point)
            if not self.phx_point.found:
                raise CycleError(NO_PHX_SOLUTION, "No off-design point meets the PHX conditions")

        return self._run("opt_od_eta_for_hx", solve)


def _size_components(
    params: DesignParameters, sol: DesignSolution, s: CycleStateVector, parts: CycleComponents
) -> DesignSolved:
    """Size ``parts`` from converged design states ``s``."""
    parts.LT.initialize(sol.LT)
    parts.HT.initialize(sol.HT)
    parts.PHX.initialize(sol.PHX)
    parts.PC.initialize(sol.PC)

    mc = parts.mc.size(s[1], s[2], sol.m_dot_mc)
    recomp_frac = sol.m_dot_rc / sol.m_dot_t
    is_rc = recomp_frac > RECOMPRESSOR_SIZING_FRAC
    if is_rc:
        rc = parts.rc.size(s[9], s[10], sol.m_dot_rc)
    else:
        parts.rc = Recompressor()
        rc = None
    t = parts.t.size(s[6], s[7], sol.m_dot_t, params.N_turbine, mc.N_design)

    logger.info(
        "Sized design: eta=%.5f, W=%.1f kW, N_mc=%.0f rpm, N_t=%.0f rpm",
        sol.eta_thermal,
        sol.W_dot_net,
        mc.N_design,
        t.N_design,
    )
    return DesignSolved(
        params=params,
        states=s.copy(),
        eta_thermal=sol.eta_thermal,
        W_dot_net=sol.W_dot_net,
        Q_dot_PHX=sol.Q_dot_PHX,
        Q_dot_PC=sol.Q_dot_PC,
        Q_dot_bypass=sol.Q_dot_bypass,
        m_dot_mc=sol.m_dot_mc,
        m_dot_rc=sol.m_dot_rc,
        m_dot_t=sol.m_dot_t,
        recomp_frac=recomp_frac,
        bypass_frac=sol.bypass_frac,
        UA_LT=params.UA_LT,
        UA_HT=params.UA_HT,
        is_rc=is_rc,
        mc=replace(mc),
        rc=replace(rc) if rc is not None else None,
        t=replace(t),
        hx={"LTR": sol.LT, "HTR": sol.HT, "PHX": sol.PHX, "PC": sol.PC},
    )
