"""Design-point optimization of the recompression cycle.

Three levels, each built on the one below:

1. :meth:`CycleDesignOptimizer.optimize` maximizes the thermal efficiency
   over any subset of compressor outlet pressure, pressure ratio,
   recompression fraction and LTR share of the recuperator conductance.
2. :meth:`CycleDesignOptimizer.auto_optimize` sweeps the high-side
   pressure and compares a recompression layout against a simple
   recuperated layout at each pressure.
3. :meth:`CycleDesignOptimizer.hit_eta` iterates the total recuperator
   conductance until the auto-optimized cycle reaches a target efficiency.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace

from sco2_cycle.core.co2_props import (
    P_UPPER_LIMIT,
    T_CRIT,
    T_UPPER_LIMIT,
    PropertyError,
    p_pseudocritical,
)
from sco2_cycle.cycle.components.base import CycleStateVector
from sco2_cycle.cycle.design import DesignSolution, design_core
from sco2_cycle.cycle.errors import DESIGN_OPT_NO_SOLUTION, HIT_ETA_FAILED, CycleError
from sco2_cycle.cycle.parameters import (
    AutoOptDesignParameters,
    DesignLimits,
    DesignParameters,
    HitEtaParameters,
    OptDesignParameters,
)
from sco2_cycle.optimization.optimizer import BoundedSearch, DesignVariable, minimize_bounded_scalar
from sco2_cycle.utils.constants import T_CELSIUS_OFFSET
from sco2_cycle.utils.validation import ValidationResult, clamp_efficiency, clamp_pressure_limit

logger = logging.getLogger(__name__)

P_MC_OUT_MIN = 100.0  # kPa
P_MC_IN_MIN = 100.0  # kPa
PR_MC_MIN = 1.0e-4
PR_MC_MAX = 50.0
PR_MC_SUBCRITICAL_GUESS = 1.1
RECOMP_FRAC_GUESS = 0.3
LT_FRAC_GUESS = 0.5
P_HIGH_SWEEP_LOWER = 0.2  # fraction of the high-pressure limit
P_HIGH_SWEEP_XATOL = 1.0  # kPa

T_MC_IN_MAX = 70.0 + T_CELSIUS_OFFSET  # K
T_T_IN_MIN = 300.0 + T_CELSIUS_OFFSET  # K
P_HIGH_LIMIT_MIN = 10.0e3  # kPa
ETA_COMPONENT_MIN = 0.1
UA_GUESS_PER_POWER = 0.1  # kW/K per kW
HIT_ETA_BLIND_CALLS = 5
HIT_ETA_MAX_CALLS = 50


@dataclass
class DesignOptimum:
    """Best design found and its converged solution."""

    params: DesignParameters
    solution: DesignSolution


@dataclass
class HitEtaOutcome:
    """Result of the efficiency-target search.

    ``code`` is 0 on success and -1 otherwise; ``message`` collects
    every clamped input and the failure reason.
    """

    code: int = 0
    message: str = ""
    optimum: DesignOptimum | None = None
    UA_rec_total: float = math.nan  # kW/K


def design_parameters(
    opt: OptDesignParameters,
    P_mc_out: float,
    PR_mc: float,
    recomp_frac: float,
    LT_frac: float,
) -> DesignParameters:
    """Complete design inputs from the optimization inputs and one point."""
    return DesignParameters(
        W_dot_net=opt.W_dot_net,
        T_mc_in=opt.T_mc_in,
        T_t_in=opt.T_t_in,
        DP_LT=list(opt.DP_LT),
        DP_HT=list(opt.DP_HT),
        DP_PC=list(opt.DP_PC),
        DP_PHX=list(opt.DP_PHX),
        eta_mc=opt.eta_mc,
        eta_rc=opt.eta_rc,
        eta_t=opt.eta_t,
        P_mc_in=P_mc_out / PR_mc,
        P_mc_out=P_mc_out,
        recomp_frac=recomp_frac,
        UA_LT=opt.UA_rec_total * LT_frac,
        UA_HT=opt.UA_rec_total * (1.0 - LT_frac),
        N_sub_hxrs=opt.N_sub_hxrs,
        tol=opt.tol,
        P_high_limit=opt.P_high_limit,
        N_turbine=opt.N_turbine,
        topology=opt.topology,
        bypass_frac=opt.bypass_frac,
        bypass_target=opt.bypass_target,
    )


def fixed_pressure_candidates(
    auto: AutoOptDesignParameters, P_mc_out: float, PR_mc_guess: float
) -> list[OptDesignParameters]:
    """Recompression and simple-cycle optimizations at a fixed outlet pressure."""
    common = dict(
        W_dot_net=auto.W_dot_net,
        T_mc_in=auto.T_mc_in,
        T_t_in=auto.T_t_in,
        DP_LT=list(auto.DP_LT),
        DP_HT=list(auto.DP_HT),
        DP_PC=list(auto.DP_PC),
        DP_PHX=list(auto.DP_PHX),
        UA_rec_total=auto.UA_rec_total,
        eta_mc=auto.eta_mc,
        eta_rc=auto.eta_rc,
        eta_t=auto.eta_t,
        N_sub_hxrs=auto.N_sub_hxrs,
        P_high_limit=auto.P_high_limit,
        tol=auto.tol,
        opt_tol=auto.opt_tol,
        N_turbine=auto.N_turbine,
        topology=auto.topology,
        bypass_frac=auto.bypass_frac,
        bypass_target=auto.bypass_target,
        P_mc_out_guess=P_mc_out,
        fixed_P_mc_out=True,
        PR_mc_guess=PR_mc_guess,
        fixed_PR_mc=False,
        LT_frac_guess=LT_FRAC_GUESS,
    )
    recompression = OptDesignParameters(
        recomp_frac_guess=RECOMP_FRAC_GUESS, fixed_recomp_frac=False, fixed_LT_frac=False, **common
    )
    simple = OptDesignParameters(recomp_frac_guess=0.0, fixed_recomp_frac=True, fixed_LT_frac=True, **common)
    return [recompression, simple]


def validate_hit_eta(params: HitEtaParameters) -> tuple[HitEtaParameters, ValidationResult]:
    """Check the efficiency-target inputs, clamping the recoverable ones.

    Returns:
        Tuple of (possibly clamped copy of the inputs, validation result).
        Clamped inputs produce warnings, unusable inputs errors.
    """
    result = ValidationResult()
    p = replace(params, DP_LT=list(params.DP_LT), DP_HT=list(params.DP_HT),
                DP_PC=list(params.DP_PC), DP_PHX=list(params.DP_PHX))

    if p.T_mc_in <= T_CRIT:
        result.error(
            "T_mc_in",
            "Only single phase cycle operation is allowed in this model. "
            f"The compressor inlet temperature ({p.T_mc_in - T_CELSIUS_OFFSET:g} [C]) must be greater "
            f"than the critical temperature: {T_CRIT - T_CELSIUS_OFFSET:g} [C]",
            value=p.T_mc_in,
            limit=T_CRIT,
        )
        return p, result

    if p.T_mc_in > T_MC_IN_MAX:
        result.warning(
            "T_mc_in",
            f"The compressor inlet temperature input was {p.T_mc_in - T_CELSIUS_OFFSET:g} [C]. This value was "
            f"reset internally to the max allowable inlet temperature: {T_MC_IN_MAX - T_CELSIUS_OFFSET:g} [C]",
            value=p.T_mc_in,
            limit=T_MC_IN_MAX,
        )
        p.T_mc_in = T_MC_IN_MAX

    if p.T_t_in < T_T_IN_MIN:
        result.warning(
            "T_t_in",
            f"The turbine inlet temperature input was {p.T_t_in - T_CELSIUS_OFFSET:g} [C]. This value was "
            f"reset internally to the min allowable inlet temperature: {T_T_IN_MIN - T_CELSIUS_OFFSET:g} [C]",
            value=p.T_t_in,
            limit=T_T_IN_MIN,
        )
        p.T_t_in = T_T_IN_MIN

    if p.T_t_in <= p.T_mc_in:
        result.error(
            "T_t_in",
            f"The turbine inlet temperature, {p.T_t_in - T_CELSIUS_OFFSET:g} [C], is colder than the "
            f"specified compressor inlet temperature {p.T_mc_in - T_CELSIUS_OFFSET:g} [C]",
        )
        return p, result

    if p.T_t_in >= T_UPPER_LIMIT:
        result.error(
            "T_t_in",
            f"The turbine inlet temperature, {p.T_t_in - T_CELSIUS_OFFSET:g} [C], is hotter than the maximum "
            f"allowed temperature in the CO2 property code {T_UPPER_LIMIT - T_CELSIUS_OFFSET:g} [C]",
        )
        return p, result

    for attr, label in (("eta_mc", "main compressor"), ("eta_rc", "re-compressor"), ("eta_t", "turbine")):
        setattr(p, attr, clamp_efficiency(attr, label, getattr(p, attr), ETA_COMPONENT_MIN, result))

    p.P_high_limit = clamp_pressure_limit(p.P_high_limit, P_UPPER_LIMIT, P_HIGH_LIMIT_MIN, result)
    if not result.is_valid:
        return p, result

    if p.eta_thermal <= 0.0:
        result.error(
            "eta_thermal",
            f"The design cycle thermal efficiency, {p.eta_thermal:g}, must be at least greater than 0",
        )
        return p, result

    eta_carnot = 1.0 - p.T_mc_in / p.T_t_in
    if p.eta_thermal >= eta_carnot:
        result.error(
            "eta_thermal",
            "To solve the cycle within the allowable recuperator conductance, the design cycle thermal "
            f"efficiency, {p.eta_thermal:g}, must be at least less than the Carnot efficiency: {eta_carnot:g}",
        )

    return p, result


class CycleDesignOptimizer:
    """Efficiency maximization against the design-point solver.

    Args:
        states: State vector the design solves write into.  After every
            public method returns, it holds the returned optimum.
    """

    def __init__(self, states: CycleStateVector | None = None):
        self.states = states if states is not None else CycleStateVector()
        self.n_design_calls = 0
        self._best: DesignOptimum | None = None
        self._best_auto: DesignOptimum | None = None

    def _solve(self, params: DesignParameters) -> DesignSolution:
        self.n_design_calls += 1
        return design_core(params, self.states)

    def design_point_eta(self, opt: OptDesignParameters, x: dict[str, float]) -> float:
        """Efficiency at one optimizer point; 0 when infeasible."""
        if "P_mc_out" in x:
            P_mc_out = x["P_mc_out"]
            if P_mc_out > opt.P_high_limit:
                return 0.0
        else:
            P_mc_out = opt.P_mc_out_guess

        if "PR_mc" in x:
            PR_mc = x["PR_mc"]
            if PR_mc > PR_MC_MAX:
                return 0.0
        else:
            PR_mc = opt.PR_mc_guess

        P_mc_in = P_mc_out / PR_mc
        if P_mc_in >= P_mc_out or P_mc_in <= P_MC_IN_MIN:
            return 0.0

        if "recomp_frac" in x:
            recomp_frac = x["recomp_frac"]
            if recomp_frac < 0.0:
                return 0.0
        else:
            recomp_frac = opt.recomp_frac_guess

        if "LT_frac" in x:
            LT_frac = x["LT_frac"]
            if LT_frac > 1.0 or LT_frac < 0.0:
                return 0.0
        else:
            LT_frac = opt.LT_frac_guess

        params = design_parameters(opt, P_mc_out, PR_mc, recomp_frac, LT_frac)
        try:
            solution = self._solve(params)
        except (CycleError, PropertyError) as exc:
            logger.debug("Design point infeasible (%s)", exc)
            return 0.0

        best_eta = self._best.solution.eta_thermal if self._best is not None else 0.0
        if solution.eta_thermal > best_eta:
            self._best = DesignOptimum(params=params, solution=solution)

        return solution.eta_thermal

    def optimize(self, opt: OptDesignParameters) -> DesignOptimum:
        """Maximize the design efficiency over the free variables of ``opt``.

        With every variable fixed the design is solved once from the guesses.

        Raises:
            CycleError: Code 87 if no feasible point was found, or the
                design error when every variable is fixed.
            PropertyError: From the final re-solve.
        """
        search = BoundedSearch()
        if not opt.fixed_P_mc_out:
            search.add_variable(
                DesignVariable("P_mc_out", P_MC_OUT_MIN, opt.P_high_limit, opt.P_mc_out_guess, step=500.0, unit="kPa")
            )
        if not opt.fixed_PR_mc:
            search.add_variable(DesignVariable("PR_mc", PR_MC_MIN, opt.P_high_limit / 100.0, opt.PR_mc_guess, step=0.2))
        if not opt.fixed_recomp_frac:
            search.add_variable(DesignVariable("recomp_frac", 0.0, 1.0, opt.recomp_frac_guess, step=0.05))
        if not opt.fixed_LT_frac:
            search.add_variable(DesignVariable("LT_frac", 0.0, 1.0, opt.LT_frac_guess, step=0.05))

        self._best = None
        if search.n_variables > 0:
            result = search.maximize(lambda x: self.design_point_eta(opt, x), xtol=opt.opt_tol)
            if self._best is None:
                raise CycleError(DESIGN_OPT_NO_SOLUTION, "Design optimization found no feasible cycle")
            params = self._best.params
            logger.debug(
                "Design optimization: eta=%.5f after %d evaluations", self._best.solution.eta_thermal, result.n_evaluations
            )
        else:
            params = design_parameters(
                opt, opt.P_mc_out_guess, opt.PR_mc_guess, opt.recomp_frac_guess, opt.LT_frac_guess
            )

        # Re-solve so the state vector holds the optimum
        solution = self._solve(params)
        optimum = DesignOptimum(params=params, solution=solution)
        self._best = optimum
        return optimum

    def _best_at_pressure(self, auto: AutoOptDesignParameters, P_mc_out: float, PR_mc_guess: float) -> float:
        """Better of the recompression and simple layouts at one pressure."""
        best_eta = 0.0
        for opt in fixed_pressure_candidates(auto, P_mc_out, PR_mc_guess):
            try:
                optimum = self.optimize(opt)
            except (CycleError, PropertyError) as exc:
                logger.debug("Layout infeasible at P_mc_out=%.1f kPa (%s)", P_mc_out, exc)
                continue
            eta = optimum.solution.eta_thermal
            best_eta = max(best_eta, eta)
            auto_eta = self._best_auto.solution.eta_thermal if self._best_auto is not None else 0.0
            if eta > auto_eta:
                self._best_auto = optimum
        return best_eta

    def _opt_eta(self, auto: AutoOptDesignParameters, P_mc_out: float) -> float:
        P_pc = p_pseudocritical(auto.T_mc_in)
        PR_mc_guess = P_mc_out / P_pc if P_mc_out > P_pc else PR_MC_SUBCRITICAL_GUESS
        return -self._best_at_pressure(auto, P_mc_out, PR_mc_guess)

    def auto_optimize(self, auto: AutoOptDesignParameters) -> DesignOptimum:
        """Find the most efficient cycle for a given total recuperator UA.

        Raises:
            CycleError: Code 87 if no layout is feasible at any pressure,
                or the error of the final re-solve.
        """
        self._best_auto = None
        P_high = auto.P_high_limit

        minimize_bounded_scalar(
            lambda P: self._opt_eta(auto, P), P_HIGH_SWEEP_LOWER * P_high, P_high, xatol=P_HIGH_SWEEP_XATOL
        )
        if self._best_auto is None:
            raise CycleError(DESIGN_OPT_NO_SOLUTION, "Automatic design optimization found no feasible cycle")

        # Check both layouts with the outlet pressure at its limit
        best_params = self._best_auto.params
        self._best_at_pressure(auto, P_high, best_params.P_mc_out / best_params.P_mc_in)

        params = self._best_auto.params
        solution = self._solve(params)
        logger.info(
            "Auto-optimized design: P_mc_out=%.0f kPa, PR=%.3f, f_rc=%.3f, eta=%.5f",
            params.P_mc_out,
            params.P_mc_out / params.P_mc_in,
            params.recomp_frac,
            solution.eta_thermal,
        )
        return DesignOptimum(params=params, solution=solution)

    def hit_eta(self, params: HitEtaParameters, limits: DesignLimits | None = None) -> HitEtaOutcome:
        """Find the recuperator UA whose auto-optimized cycle reaches ``params.eta_thermal``.

        False position on the total UA once the target is bracketed;
        before that the UA is halved or multiplied by 2.5, jumping to the
        UA-per-power limit after five unbracketed calls.
        """
        limits = limits or DesignLimits()
        p, checks = validate_hit_eta(params)
        messages = [m.message for m in checks.messages]

        def outcome(code: int, optimum: DesignOptimum | None = None, UA: float = math.nan) -> HitEtaOutcome:
            return HitEtaOutcome(code=code, message="\n".join(messages), optimum=optimum, UA_rec_total=UA)

        if not checks.is_valid:
            return outcome(HIT_ETA_FAILED)
        for msg in checks.warnings:
            logger.warning("%s", msg.message)

        auto = AutoOptDesignParameters(
            W_dot_net=p.W_dot_net,
            T_mc_in=p.T_mc_in,
            T_t_in=p.T_t_in,
            DP_LT=p.DP_LT,
            DP_HT=p.DP_HT,
            DP_PC=p.DP_PC,
            DP_PHX=p.DP_PHX,
            eta_mc=p.eta_mc,
            eta_rc=p.eta_rc,
            eta_t=p.eta_t,
            N_sub_hxrs=p.N_sub_hxrs,
            P_high_limit=p.P_high_limit,
            tol=p.tol,
            opt_tol=p.opt_tol,
            N_turbine=p.N_turbine,
        )

        UA_guess = UA_GUESS_PER_POWER * p.W_dot_net
        auto.UA_rec_total = UA_guess
        try:
            optimum = self.auto_optimize(auto)
        except (CycleError, PropertyError):
            messages.append("Can't optimize sCO2 power cycle with current inputs")
            return outcome(HIT_ETA_FAILED)

        diff_eta = optimum.solution.eta_thermal - p.eta_thermal
        x_lower = y_lower = x_upper = y_upper = math.nan
        low_flag = high_flag = False
        n_calls = 1

        while abs(diff_eta) > p.tol:
            n_calls += 1
            if n_calls > HIT_ETA_MAX_CALLS:
                messages.append(
                    f"The recuperator conductance search did not converge on the design thermal efficiency "
                    f"{p.eta_thermal:g} [-]; the last solved efficiency is {optimum.solution.eta_thermal:g} [-]"
                )
                return outcome(HIT_ETA_FAILED)

            if diff_eta > 0.0:
                # Efficiency too high: less conductance
                low_flag = True
                x_lower, y_lower = UA_guess, diff_eta
                if high_flag:
                    UA_guess = -y_upper * (x_lower - x_upper) / (y_lower - y_upper) + x_upper
                elif n_calls > HIT_ETA_BLIND_CALLS:
                    UA_guess = limits.UA_net_power_ratio_min * p.W_dot_net
                else:
                    UA_guess *= 0.5

                if x_lower / p.W_dot_net <= limits.UA_net_power_ratio_min:
                    messages.append(
                        f"The design thermal efficiency, {p.eta_thermal:g} [-], is too small to achieve with the "
                        "available cycle model and inputs. The lowest possible thermal efficiency for these "
                        f"inputs is roughly {optimum.solution.eta_thermal:g} [-]"
                    )
                    return outcome(HIT_ETA_FAILED)
            else:
                high_flag = True
                x_upper, y_upper = UA_guess, diff_eta
                if low_flag:
                    UA_guess = -y_upper * (x_lower - x_upper) / (y_lower - y_upper) + x_upper
                elif n_calls > HIT_ETA_BLIND_CALLS:
                    UA_guess = limits.UA_net_power_ratio_max * p.W_dot_net
                else:
                    UA_guess *= 2.5

                if x_upper / p.W_dot_net >= limits.UA_net_power_ratio_max:
                    messages.append(
                        f"The design thermal efficiency, {p.eta_thermal:g} [-], is too large to achieve with the "
                        "available cycle model and inputs. The largest possible thermal efficiency for these "
                        f"inputs is roughly {optimum.solution.eta_thermal:g} [-]"
                    )
                    return outcome(HIT_ETA_FAILED)

            auto.UA_rec_total = UA_guess
            try:
                optimum = self.auto_optimize(auto)
            except (CycleError, PropertyError):
                messages.append("Can't optimize sCO2 power cycle with current inputs")
                return outcome(HIT_ETA_FAILED)
            diff_eta = optimum.solution.eta_thermal - p.eta_thermal
            logger.debug("Hit-eta: UA=%.1f kW/K, eta=%.5f", UA_guess, optimum.solution.eta_thermal)

        return outcome(0, optimum, UA_guess)
