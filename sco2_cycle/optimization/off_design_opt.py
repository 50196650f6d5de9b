"""Off-design optimization and target seeking for a sized cycle.

All searches drive :func:`~sco2_cycle.cycle.off_design.off_design_core`
against the same components and state vector:

- :meth:`OffDesignOptimizer.target` finds the compressor inlet pressure
  that delivers a target net power (or PHX duty).
- :meth:`OffDesignOptimizer.optimal` maximizes net power or efficiency
  over inlet pressure, recompression fraction and shaft speeds.
- :meth:`OffDesignOptimizer.max_output` locates the largest output.
- :meth:`OffDesignOptimizer.optimal_target` maximizes efficiency while
  holding a target output.
- :meth:`OffDesignOptimizer.optimal_for_phx` couples the cycle to a
  primary heat exchanger fed by a heat-transfer fluid.

Failed points score 0 in every objective, and compressor outlet
pressures above the design limit scale the objective down linearly, to
no less than 0.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace

import numpy as np

from sco2_cycle.core.co2_props import PropertyError, state_from_PH
from sco2_cycle.cycle.components.base import CycleStateVector
from sco2_cycle.cycle.design import DesignSolved
from sco2_cycle.cycle.errors import (
    MAX_OUTPUT_NOT_FOUND,
    OFF_DESIGN_OPT_NO_SOLUTION,
    TARGET_ABOVE_MAX_OUTPUT,
    TARGET_NOT_BRACKETED,
    TARGET_NOT_CONVERGED,
    TARGET_OPT_NO_SOLUTION,
    CycleError,
)
from sco2_cycle.cycle.iteration import Bracket
from sco2_cycle.cycle.off_design import CycleComponents, OffDesignSolution, off_design_core
from sco2_cycle.cycle.parameters import (
    OffDesignParameters,
    OptOffDesignParameters,
    OptTargetOffDesignParameters,
    PHXOffDesignParameters,
    TargetOffDesignParameters,
)
from sco2_cycle.optimization.optimizer import BoundedSearch, DesignVariable

logger = logging.getLogger(__name__)

TARGET_MAX_ITER = 100
TARGET_GRID_DEFAULT = 20
TARGET_GRID_FINE = 50
TARGET_P_CAP = 12000.0  # kPa, highest inlet pressure scanned
TARGET_P2_MARGIN = 1.2  # stop the scan above this multiple of the pressure limit
TARGET_P_WINDOW = 0.1  # kPa
PRESSURE_PENALTY = 5.0
MAX_OUTPUT_N_MC_FACTOR = 1.25
MAX_OUTPUT_P_STEP = 1.1

PHX_P_MC_IN_START = 1000.0  # kPa
PHX_P_MC_IN_MAX = 17000.0  # kPa
PHX_P_MC_IN_STEP = 4000.0  # kPa
PHX_T_T_IN_WINDOW = 50.0  # K below the hot fluid
PHX_T_T_IN_APPROACH = 0.01  # K
PHX_T_T_IN_STEP = 10.0  # K
PHX_T_T_IN_MAX_ITER = 50


def pressure_penalty(value: float, P_mc_out: float, P_high_limit: float) -> float:
    """Scale ``value`` down when the compressor outlet exceeds the limit.

    The factor falls linearly, by ``PRESSURE_PENALTY`` per unit relative
    overshoot, and is clamped at 0 from 20% over the limit.
    """
    if P_mc_out <= P_high_limit:
        return value
    overshoot = (P_mc_out - P_high_limit) / P_high_limit
    return value * max(0.0, 1.0 - PRESSURE_PENALTY * overshoot)


def counterflow_effectiveness(NTU: float, C_R: float) -> float:
    """Effectiveness of a counterflow heat exchanger."""
    if C_R < 1.0:
        e = math.exp(-NTU * (1.0 - C_R))
        return (1.0 - e) / (1.0 - C_R * e)
    return NTU / (1.0 + NTU)


@dataclass
class OffDesignPoint:
    """An off-design operating point and its solution."""

    params: OffDesignParameters
    solution: OffDesignSolution


@dataclass
class PHXPoint:
    """Best operating point of the PHX-coupled optimization."""

    point: OffDesignPoint | None = None
    found: bool = False  # every PHX and pressure condition met
    T_htf_cold: float = math.nan  # K, fluid return temperature
    objective: float = 0.0


class OffDesignOptimizer:
    """Off-design searches against one sized cycle.

    Args:
        parts: Components sized at the design point.
        states: State vector the off-design solves write into.  After a
            successful public call it holds the returned point.
        design: Design-solved record of the same cycle.
        seed: Seed of the generator used to restart the target secant
            after a failed solve.
    """

    def __init__(
        self,
        parts: CycleComponents,
        states: CycleStateVector,
        design: DesignSolved,
        seed: int = 0,
    ):
        self.parts = parts
        self.states = states
        self.design = design
        self.n_off_design_calls = 0
        self._rng = np.random.default_rng(seed)

    @property
    def P_high_limit(self) -> float:
        return self.design.params.P_high_limit

    def solve(self, od: OffDesignParameters) -> OffDesignSolution:
        self.n_off_design_calls += 1
        return off_design_core(od, self.parts, self.states)

    def _try_solve(self, od: OffDesignParameters) -> OffDesignSolution | None:
        try:
            return self.solve(od)
        except (CycleError, PropertyError) as exc:
            logger.debug("Off-design point failed at P_mc_in=%.1f kPa (%s)", od.P_mc_in, exc)
            return None

    def target(self, tar: TargetOffDesignParameters) -> OffDesignPoint:
        """Compressor inlet pressure delivering ``tar.target``.

        A grid scan brackets the target, then a secant/bisection loop
        closes on it.

        Raises:
            CycleError: Code 26 if the scan found no bracket (the largest
                value seen is in the message), 82 if the loop did not converge.
        """
        od = OffDesignParameters(
            T_mc_in=tar.T_mc_in,
            T_t_in=tar.T_t_in,
            P_mc_in=tar.lowest_pressure,
            recomp_frac=tar.recomp_frac,
            N_mc=tar.N_mc,
            N_t=tar.N_t,
            N_sub_hxrs=tar.N_sub_hxrs,
            tol=tar.tol,
        )

        def value_of(solution: OffDesignSolution) -> float:
            return solution.Q_dot_PHX if tar.is_target_Q else solution.W_dot_net

        n_intervals = TARGET_GRID_DEFAULT if tar.use_default_res else TARGET_GRID_FINE
        P_low = tar.lowest_pressure
        P_high = min(tar.highest_pressure, TARGET_P_CAP)

        left_residual, right_residual = -1.0e12, 1.0e12
        lower_found = upper_found = False
        biggest_value, biggest_P = 0.0, math.nan

        for P_guess in np.linspace(P_low, P_high, n_intervals + 1):
            od.P_mc_in = float(P_guess)
            solution = self._try_solve(od)
            if solution is not None:
                if self.states[2].P > self.P_high_limit * TARGET_P2_MARGIN:
                    break

                value = value_of(solution)
                residual = value - tar.target
                if value > biggest_value:
                    biggest_value, biggest_P = value, od.P_mc_in

                if residual >= 0.0:
                    if residual < right_residual:
                        P_high, right_residual, upper_found = od.P_mc_in, residual, True
                elif residual > left_residual:
                    P_low, left_residual, lower_found = od.P_mc_in, residual, True

            if lower_found and upper_found:
                break

        if not (lower_found and upper_found):
            raise CycleError(
                TARGET_NOT_BRACKETED,
                f"Target {tar.target:.1f} kW not bracketed; largest value {biggest_value:.1f} kW "
                f"at P_mc_in={biggest_P:.1f} kPa",
            )

        bracket = Bracket(lower=P_low, upper=P_high)
        for _ in range(TARGET_MAX_ITER):
            od.P_mc_in = bracket.guess
            solution = self._try_solve(od)
            if solution is None:
                # Restart from a random point inside the bracket
                bracket.guess = bracket.lower + self._rng.random() * bracket.width
                continue

            residual = value_of(solution) - tar.target
            if abs(residual) / tar.target <= tar.tol:
                break
            bracket.update(residual, root_above=residual < 0.0)
            if bracket.width < TARGET_P_WINDOW:
                break
        else:
            raise CycleError(TARGET_NOT_CONVERGED, "Target off-design inlet pressure did not converge")

        logger.debug("Target off-design: P_mc_in=%.1f kPa, value=%.1f kW", od.P_mc_in, value_of(solution))
        return OffDesignPoint(params=od, solution=solution)

    def off_design_point_value(self, opt: OptOffDesignParameters, x: dict[str, float], best: list) -> float:
        """Objective of :meth:`optimal`; ``best`` holds the best point so far."""
        od = OffDesignParameters(
            T_mc_in=opt.T_mc_in,
            T_t_in=opt.T_t_in,
            P_mc_in=x.get("P_mc_in", opt.P_mc_in_guess),
            recomp_frac=x.get("recomp_frac", opt.recomp_frac_guess),
            N_mc=x.get("N_mc", opt.N_mc_guess),
            N_t=x.get("N_t", opt.N_t_guess),
            N_sub_hxrs=opt.N_sub_hxrs,
            tol=opt.tol,
        )
        if od.N_t <= 0.0:
            od.N_t = od.N_mc  # shafts linked
        if od.recomp_frac < 0.0:
            return 0.0

        solution = self._try_solve(od)
        if solution is None:
            return 0.0

        value = solution.W_dot_net if opt.is_max_W_dot else solution.eta_thermal
        value = pressure_penalty(value, self.states[2].P, self.P_high_limit)

        if value > (best[0][0] if best else 0.0):
            best[:] = [(value, od)]
        return value

    def optimal(self, opt: OptOffDesignParameters) -> OffDesignPoint:
        """Maximize net power (or efficiency) over the free operating variables.

        With every variable fixed the point is solved once.

        Raises:
            CycleError: Code 111 if no point produced a positive objective,
                or the error of the final solve.
            PropertyError: From the final solve.
        """
        search = BoundedSearch()
        if not opt.fixed_P_mc_in:
            search.add_variable(
                DesignVariable("P_mc_in", 100.0, self.P_high_limit, opt.P_mc_in_guess, step=50.0, unit="kPa")
            )
        if not opt.fixed_recomp_frac:
            search.add_variable(DesignVariable("recomp_frac", 0.0, 1.0, opt.recomp_frac_guess, step=0.05))
        if not opt.fixed_N_mc:
            search.add_variable(
                DesignVariable("N_mc", 1.0, math.inf, opt.N_mc_guess, step=0.25 * opt.N_mc_guess, unit="rpm")
            )
        if not opt.fixed_N_t:
            search.add_variable(DesignVariable("N_t", 1.0, math.inf, opt.N_t_guess, step=100.0, unit="rpm"))

        if search.n_variables == 0:
            od = OffDesignParameters(
                T_mc_in=opt.T_mc_in,
                T_t_in=opt.T_t_in,
                P_mc_in=opt.P_mc_in_guess,
                recomp_frac=opt.recomp_frac_guess,
                N_mc=opt.N_mc_guess,
                N_t=opt.N_t_guess if opt.N_t_guess > 0.0 else opt.N_mc_guess,
                N_sub_hxrs=opt.N_sub_hxrs,
                tol=opt.tol,
            )
            return OffDesignPoint(params=od, solution=self.solve(od))

        best: list[tuple[float, OffDesignParameters]] = []
        search.maximize(lambda x: self.off_design_point_value(opt, x, best), xtol=opt.opt_tol)
        if not best:
            raise CycleError(OFF_DESIGN_OPT_NO_SOLUTION, "Off-design optimization found no feasible point")

        od = best[0][1]
        return OffDesignPoint(params=od, solution=self.solve(od))

    def max_output(self, opt_tar: OptTargetOffDesignParameters) -> tuple[float, OffDesignPoint]:
        """Largest net power (or PHX duty) reachable at these inlet temperatures.

        Runs the net-power optimization from rising inlet pressures until
        two starting points have succeeded; the second restarts from the
        first optimum.

        Raises:
            CycleError: Code 99 if no optimization succeeded.
        """
        opt = OptOffDesignParameters(
            T_mc_in=opt_tar.T_mc_in,
            T_t_in=opt_tar.T_t_in,
            is_max_W_dot=True,
            N_sub_hxrs=opt_tar.N_sub_hxrs,
            fixed_P_mc_in=False,
            recomp_frac_guess=opt_tar.recomp_frac_guess,
            fixed_recomp_frac=opt_tar.fixed_recomp_frac,
            N_mc_guess=opt_tar.N_mc_guess * MAX_OUTPUT_N_MC_FACTOR,
            fixed_N_mc=opt_tar.fixed_N_mc,
            N_t_guess=opt_tar.N_t_guess,
            fixed_N_t=opt_tar.fixed_N_t,
            tol=opt_tar.tol,
            opt_tol=opt_tar.opt_tol,
        )

        P_low = opt_tar.lowest_pressure
        found: OffDesignPoint | None = None
        while True:
            opt.P_mc_in_guess = P_low
            try:
                point = self.optimal(opt)
            except (CycleError, PropertyError) as exc:
                logger.debug("Max-output start at %.1f kPa failed (%s)", P_low, exc)
                P_low *= MAX_OUTPUT_P_STEP
            else:
                opt.recomp_frac_guess = point.params.recomp_frac
                opt.N_mc_guess = point.params.N_mc
                opt.N_t_guess = point.params.N_t
                P_low = point.params.P_mc_in
                if found is not None:
                    found = point
                    break
                found = point

            if P_low > opt_tar.highest_pressure:
                break

        if found is None:
            raise CycleError(MAX_OUTPUT_NOT_FOUND, "Maximum off-design output not found")

        # Leave the state vector on the reported point
        solution = self.solve(found.params)
        found = OffDesignPoint(params=found.params, solution=solution)
        biggest = solution.Q_dot_PHX if opt_tar.is_target_Q else solution.W_dot_net
        logger.debug("Maximum off-design output %.1f kW at P_mc_in=%.1f kPa", biggest, found.params.P_mc_in)
        return biggest, found

    def eta_at_target(self, opt_tar: OptTargetOffDesignParameters, x: dict[str, float], best: list) -> float:
        """Efficiency at the target output for one set of operating variables."""
        tar = TargetOffDesignParameters(
            T_mc_in=opt_tar.T_mc_in,
            T_t_in=opt_tar.T_t_in,
            recomp_frac=x.get("recomp_frac", opt_tar.recomp_frac_guess),
            N_mc=x.get("N_mc", opt_tar.N_mc_guess),
            N_t=x.get("N_t", opt_tar.N_t_guess),
            N_sub_hxrs=opt_tar.N_sub_hxrs,
            tol=opt_tar.tol,
            target=opt_tar.target,
            is_target_Q=opt_tar.is_target_Q,
            lowest_pressure=opt_tar.lowest_pressure,
            highest_pressure=opt_tar.highest_pressure,
            use_default_res=opt_tar.use_default_res,
        )
        if tar.N_t <= 0.0:
            tar.N_t = tar.N_mc
        if tar.recomp_frac < 0.0:
            return 0.0

        try:
            point = self.target(tar)
        except (CycleError, PropertyError) as exc:
            logger.debug("No target solution (%s)", exc)
            return 0.0

        eta = pressure_penalty(point.solution.eta_thermal, self.states[2].P, self.P_high_limit)
        if eta > (best[0][0] if best else 0.0):
            best[:] = [(eta, replace(point.params))]
        return eta

    def optimal_target_no_check(self, opt_tar: OptTargetOffDesignParameters) -> OffDesignPoint:
        """Most efficient operating point delivering the target output.

        Raises:
            CycleError: Code 98 if no point reached the target, or the
                error of the final solve.
        """
        search = BoundedSearch()
        if not opt_tar.fixed_recomp_frac:
            search.add_variable(DesignVariable("recomp_frac", 0.0, 1.0, opt_tar.recomp_frac_guess, step=0.01))
        if not opt_tar.fixed_N_mc:
            search.add_variable(
                DesignVariable("N_mc", 1.0, math.inf, opt_tar.N_mc_guess, step=0.25 * opt_tar.N_mc_guess, unit="rpm")
            )
        if not opt_tar.fixed_N_t:
            search.add_variable(DesignVariable("N_t", 1.0, math.inf, opt_tar.N_t_guess, step=100.0, unit="rpm"))

        best: list[tuple[float, OffDesignParameters]] = []
        if search.n_variables > 0:
            search.maximize(lambda x: self.eta_at_target(opt_tar, x, best), xtol=opt_tar.opt_tol)
        else:
            self.eta_at_target(opt_tar, {}, best)

        if not best:
            raise CycleError(TARGET_OPT_NO_SOLUTION, "No operating point reaches the off-design target")

        od = best[0][1]
        return OffDesignPoint(params=od, solution=self.solve(od))

    def optimal_target(self, opt_tar: OptTargetOffDesignParameters) -> OffDesignPoint:
        """Like :meth:`optimal_target_no_check`, first checking a net-power target is reachable.

        Raises:
            CycleError: Code 99 if the maximum output is not found, 123 if
                the target exceeds it.
        """
        if not opt_tar.is_target_Q:
            biggest, _ = self.max_output(opt_tar)
            if biggest < opt_tar.target:
                raise CycleError(
                    TARGET_ABOVE_MAX_OUTPUT,
                    f"Target {opt_tar.target:.1f} kW exceeds the maximum output {biggest:.1f} kW",
                )
        return self.optimal_target_no_check(opt_tar)

    def phx_coupled_eta(
        self,
        od_base: OffDesignParameters,
        phx: PHXOffDesignParameters,
        x: dict[str, float],
        best: PHXPoint,
    ) -> float:
        """Efficiency with the turbine inlet temperature set by the PHX.

        For each operating point the turbine inlet temperature is iterated
        until the PHX, rated by its NTU effectiveness, heats the CO2 to it.
        The efficiency is discounted exponentially for a missed fluid
        return temperature, an unconverged turbine inlet temperature and a
        compressor outlet above the pressure limit.
        """
        od = replace(
            od_base,
            P_mc_in=x["P_mc_in"],
            recomp_frac=x.get("recomp_frac", 0.0),
            N_mc=x["N_mc"],
        )

        T_upper = phx.T_htf_hot - PHX_T_T_IN_APPROACH
        T_lower = phx.T_htf_hot - PHX_T_T_IN_WINDOW
        know_upper = know_lower = False
        T_guess = od.T_t_in
        diff_T_t_in = 2.0 * od.tol

        failed = False
        last: OffDesignSolution | None = None
        last_T_t_in = T_guess
        P_mc_out = Q_dot_PHX = 0.0
        C_dot_htf = phx.cp_htf * phx.m_dot_htf

        for iteration in range(PHX_T_T_IN_MAX_ITER):
            if abs(diff_T_t_in) <= od.tol:
                break
            if iteration > 0:
                if failed:
                    # A failed solve counts as a guess that is too cold
                    T_lower, know_lower = T_guess, True
                    T_guess = 0.5 * (T_lower + T_upper)
                elif diff_T_t_in > 0.0:
                    T_lower, know_lower = T_guess, True
                    T_guess = 0.5 * (T_lower + T_upper) if know_upper else T_upper
                else:
                    T_upper, know_upper = T_guess, True
                    T_guess = 0.5 * (T_lower + T_upper) if know_lower else T_guess - PHX_T_T_IN_STEP

            if abs(T_upper - T_lower) < 0.1:
                break

            od.T_t_in = T_guess
            try:
                solution = self.solve(od)
                s5, s6 = self.states[5], self.states[6]
                m_dot_PHX = solution.m_dot_t

                m_dot_ratio = 0.5 * (phx.m_dot_htf / phx.m_dot_htf_des + m_dot_PHX / self.design.m_dot_t)
                UA_PHX = phx.UA_PHX_des * m_dot_ratio**0.8

                C_dot_co2 = m_dot_PHX * (s6.h - s5.h) / (s6.T - s5.T)
                C_dot_min = min(C_dot_co2, C_dot_htf)
                C_dot_max = max(C_dot_co2, C_dot_htf)
                eff = counterflow_effectiveness(UA_PHX / C_dot_min, C_dot_min / C_dot_max)

                Q_dot = eff * C_dot_min * (phx.T_htf_hot - s5.T)
                T_t_in_calc = state_from_PH(s6.P, s5.h + Q_dot / m_dot_PHX).temp
            except (CycleError, PropertyError) as exc:
                if iteration == 0:
                    return 0.0
                logger.debug("PHX iteration failed at T_t_in=%.2f K (%s)", T_guess, exc)
                failed = True
                continue

            failed = False
            last, last_T_t_in = solution, T_guess
            P_mc_out, Q_dot_PHX = self.states[2].P, Q_dot
            diff_T_t_in = (T_t_in_calc - T_guess) / T_guess

        if last is None:
            return 0.0

        T_htf_cold = phx.T_htf_hot - Q_dot_PHX / C_dot_htf
        diff_T_cold = max(0.0, abs(phx.T_htf_cold - T_htf_cold) / T_htf_cold - od.tol)
        over_dT = max(0.0, abs(diff_T_t_in) - od.tol)
        over_dP = max(0.0, P_mc_out - self.P_high_limit)

        value = last.eta_thermal * math.exp(-diff_T_cold) * math.exp(-over_dP) * math.exp(-over_dT)
        found = diff_T_cold == 0.0 and over_dT == 0.0 and over_dP == 0.0

        if value > best.objective:
            best.objective = value
            best.point = OffDesignPoint(params=replace(od, T_t_in=last_T_t_in), solution=last)
            best.found = found
            best.T_htf_cold = T_htf_cold
        return value

    def optimal_for_phx(self, od_base: OffDesignParameters, phx: PHXOffDesignParameters) -> PHXPoint:
        """Most efficient operating point consistent with the PHX fluid conditions.

        Free variables are the inlet pressure, the recompression fraction
        (when the design has a recompressor) and the main compressor
        speed.  When no point meets every condition the search is
        repeated from a faster compressor speed.  The returned point is
        always re-solved; ``found`` reports whether it met the conditions.
        """
        N_des = self.design.mc.N_design if self.design.mc is not None else od_base.N_mc

        def build(N_start: float, N_lower: float, N_upper: float, N_step: float) -> BoundedSearch:
            search = BoundedSearch()
            search.add_variable(
                DesignVariable(
                    "P_mc_in", PHX_P_MC_IN_START, PHX_P_MC_IN_MAX, PHX_P_MC_IN_START, step=PHX_P_MC_IN_STEP, unit="kPa"
                )
            )
            if self.design.is_rc:
                search.add_variable(DesignVariable("recomp_frac", 0.0, 1.0, self.design.recomp_frac, step=-0.02))
            search.add_variable(DesignVariable("N_mc", N_lower, N_upper, N_start, step=N_step, unit="rpm"))
            return search

        best = PHXPoint()
        xtol = self.design.params.tol

        build(N_des, 0.1 * N_des, 1.5 * N_des, 0.1 * N_des).maximize(
            lambda x: self.phx_coupled_eta(od_base, phx, x, best), xtol=xtol
        )
        if not best.found:
            logger.debug("PHX-coupled search restarting from a faster compressor speed")
            retry = PHXPoint()
            build(1.5 * N_des, 0.5 * N_des, 1.75 * N_des, -0.1 * N_des).maximize(
                lambda x: self.phx_coupled_eta(od_base, phx, x, retry), xtol=xtol
            )
            if retry.found or best.point is None:
                best = retry

        if best.point is not None:
            solution = self.solve(best.point.params)
            best.point = OffDesignPoint(params=best.point.params, solution=solution)
        return best
