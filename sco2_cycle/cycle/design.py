"""Design-point solver for the recompression cycle.

The compressor inlet, turbine inlet and all pressures are fixed by the
design parameters.  What remains unknown are the hot-side outlet
temperatures of the two recuperators, T8 (HTR) and T9 (LTR).  They are
found with two nested bracketed secant/bisection loops so that the
conductance each recuperator needs for its duty equals the specified
``UA_HT`` and ``UA_LT``:

    for T8 in HTR bracket:                 (outer, caps at code 35)
        for T9 in LTR bracket:             (inner, caps at code 31)
            recompressor outlet, mass flow from the power balance,
            LTR duty -> UA_LT residual
        LTR cold outlet, mixing valve, HTR duty -> UA_HT residual

A second-law violation inside a recuperator means the temperature guess
is too low and only narrows the bracket.

The same skeleton serves all :class:`~sco2_cycle.cycle.parameters.Topology`
variants; the HTR bypass variants route a share of the turbine flow
around the HTR cold side, to be heated by a secondary source.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any

from sco2_cycle.core.co2_props import state_from_PH, state_from_TP
from sco2_cycle.cycle.components.base import CycleNode, CycleStateVector
from sco2_cycle.cycle.components.compressor import CompressorDesign
from sco2_cycle.cycle.components.heat_exchanger import HxDesignRecord, calculate_hxr_UA
from sco2_cycle.cycle.components.recompressor import RecompressorDesign
from sco2_cycle.cycle.components.turbine import TurbineDesign
from sco2_cycle.cycle.components.turbomachinery import (
    TurbomachineryOutlet,
    calculate_turbomachinery_outlet,
    isen_eta_from_poly_eta,
)
from sco2_cycle.cycle.errors import (
    NON_POSITIVE_MASS_FLOW,
    NON_POSITIVE_NET_WORK,
    T8_NOT_CONVERGED,
    T9_NOT_CONVERGED,
    CycleError,
    SecondLawViolation,
)
from sco2_cycle.cycle.iteration import Bracket
from sco2_cycle.cycle.parameters import DesignParameters, Topology

logger = logging.getLogger(__name__)

MAX_ITER = 500
TEMPERATURE_TOLERANCE = 1.0e-6  # K, smaller differences count as zero
ZERO_UA = 1.0e-12  # kW/K, smaller conductances mean no recuperator
ZERO_RECOMP = 1.0e-12

# Bypass-share search for Topology.HTR_BYPASS_TARGET
BYPASS_FRAC_MIN = 0.01
BYPASS_FRAC_MAX = 0.8
BYPASS_FRAC_START = 0.25
BYPASS_MAX_ITER = 50
BYPASS_FRAC_WINDOW = 0.005


@dataclass
class DesignSolution:
    """Scalar results of a converged design-point solve.

    Node states are written to the :class:`CycleStateVector` passed to
    :func:`design_core`.
    """

    W_dot_net: float = 0.0  # kW
    eta_thermal: float = 0.0
    Q_dot_PHX: float = 0.0  # kW
    Q_dot_PC: float = 0.0  # kW, heat rejected
    Q_dot_bypass: float = 0.0  # kW, secondary heat input
    m_dot_mc: float = 0.0  # kg/s
    m_dot_rc: float = 0.0  # kg/s
    m_dot_t: float = 0.0  # kg/s
    bypass_frac: float = 0.0
    bypass_converged: bool = True
    LT: HxDesignRecord = field(default_factory=HxDesignRecord)
    HT: HxDesignRecord = field(default_factory=HxDesignRecord)
    PHX: HxDesignRecord = field(default_factory=HxDesignRecord)
    PC: HxDesignRecord = field(default_factory=HxDesignRecord)


@dataclass
class DesignSolved:
    """Converged and sized design point, the reference for off-design runs."""

    params: DesignParameters = field(default_factory=DesignParameters)
    states: CycleStateVector = field(default_factory=CycleStateVector)
    eta_thermal: float = 0.0
    W_dot_net: float = 0.0  # kW
    Q_dot_PHX: float = 0.0  # kW
    Q_dot_PC: float = 0.0  # kW
    Q_dot_bypass: float = 0.0  # kW
    m_dot_mc: float = 0.0  # kg/s
    m_dot_rc: float = 0.0  # kg/s
    m_dot_t: float = 0.0  # kg/s
    recomp_frac: float = 0.0  # m_dot_rc / m_dot_t
    bypass_frac: float = 0.0
    UA_LT: float = 0.0  # kW/K
    UA_HT: float = 0.0  # kW/K
    is_rc: bool = False
    mc: CompressorDesign | None = None
    rc: RecompressorDesign | None = None
    t: TurbineDesign | None = None
    hx: dict[str, HxDesignRecord] = field(default_factory=dict)

    def summary(self) -> dict[str, Any]:
        """Scalar performance and component records as plain dicts."""
        return {
            "performance": {
                "W_dot_net_kW": self.W_dot_net,
                "eta_thermal": self.eta_thermal,
                "Q_dot_PHX_kW": self.Q_dot_PHX,
                "Q_dot_PC_kW": self.Q_dot_PC,
                "Q_dot_bypass_kW": self.Q_dot_bypass,
                "m_dot_mc_kg_s": self.m_dot_mc,
                "m_dot_rc_kg_s": self.m_dot_rc,
                "m_dot_t_kg_s": self.m_dot_t,
                "recomp_frac": self.recomp_frac,
                "bypass_frac": self.bypass_frac,
                "UA_LT_kW_K": self.UA_LT,
                "UA_HT_kW_K": self.UA_HT,
                "is_rc": self.is_rc,
            },
            "main_compressor": asdict(self.mc) if self.mc is not None else {},
            "recompressor": asdict(self.rc) if self.rc is not None else {},
            "turbine": asdict(self.t) if self.t is not None else {},
            "heat_exchangers": {name: asdict(rec) for name, rec in self.hx.items()},
        }


def outlet_pressure(P_in: float, DP: float) -> float:
    """Outlet pressure for a drop ``DP`` (negative = relative, positive = kPa)."""
    if DP < 0.0:
        return P_in - P_in * abs(DP)
    return P_in - DP


def inlet_pressure(P_out: float, DP: float) -> float:
    """Inlet pressure that yields ``P_out`` after a drop ``DP``."""
    if DP < 0.0:
        return P_out / (1.0 - abs(DP))
    return P_out + DP


def apply_design_pressures(params: DesignParameters, states: CycleStateVector) -> None:
    """Fix all ten node pressures from the compressor pressures and drops.

    A recuperator with zero conductance carries no pressure drop.
    """
    no_LT = params.UA_LT < ZERO_UA
    no_HT = params.UA_HT < ZERO_UA

    states[1].P = params.P_mc_in
    states[2].P = params.P_mc_out
    states[3].P = states[2].P if no_LT else outlet_pressure(states[2].P, params.DP_LT[0])
    states[4].P = states[3].P  # mixing valve
    states[10].P = states[3].P
    states[5].P = states[4].P if no_HT else outlet_pressure(states[4].P, params.DP_HT[0])
    states[6].P = outlet_pressure(states[5].P, params.DP_PHX[0])
    states[9].P = inlet_pressure(states[1].P, params.DP_PC[1])
    states[8].P = states[9].P if no_LT else inlet_pressure(states[9].P, params.DP_LT[1])
    states[7].P = states[8].P if no_HT else inlet_pressure(states[8].P, params.DP_HT[1])


def isentropic_efficiency(eta: float, T_in: float, P_in: float, P_out: float, is_comp: bool) -> float:
    """Isentropic efficiency from a signed (negative = polytropic) input."""
    if eta < 0.0:
        return isen_eta_from_poly_eta(T_in, P_in, P_out, abs(eta), is_comp)
    return eta


def _set_process(inlet: CycleNode, outlet: CycleNode, result: TurbomachineryOutlet) -> None:
    inlet.h, inlet.s, inlet.D = result.h_in, result.s_in, result.rho_in
    outlet.T, outlet.h, outlet.s, outlet.D = result.T_out, result.h_out, result.s_out, result.rho_out


def copy_properties(src: CycleNode, dst: CycleNode) -> None:
    """Copy T, h, s and D (not P) across a lossless connection."""
    dst.T, dst.h, dst.s, dst.D = src.T, src.h, src.s, src.D


def ua_converged(residual: float, UA_target: float, tol: float, min_DT: float) -> bool:
    """Convergence test shared by the recuperator loops.

    A positive residual (conductance still too small) is also accepted
    once the pinch has closed, which catches very large UA targets.
    """
    if residual < 0.0:
        return abs(residual) / UA_target < tol
    return residual / UA_target < tol or min_DT < TEMPERATURE_TOLERANCE


def recuperator_bracket(T_cold_in: float, T_hot_in: float, UA_target: float) -> Bracket:
    """Bracket on a recuperator hot outlet temperature.

    With no recuperator the outlet equals the inlet and no iteration is
    needed.  Otherwise the first secant point is the known zero-duty
    solution (T_hot_out = T_hot_in, UA = 0).
    """
    if UA_target < ZERO_UA:
        return Bracket(
            lower=T_hot_in, upper=T_hot_in, guess=T_hot_in, last_guess=T_hot_in, last_residual=0.0
        )
    return Bracket(lower=T_cold_in, upper=T_hot_in, last_guess=T_hot_in, last_residual=UA_target)


def capacitance_rate(m_dot: float, dh: float, dT: float) -> float:
    """Mean capacitance rate [kW/K] of a stream over an enthalpy change."""
    if dT == 0.0:
        return math.inf
    return m_dot * dh / dT


def recuperator_effectiveness(Q_dot: float, C_dot_hot: float, C_dot_cold: float, dT_max: float) -> float:
    if Q_dot <= 0.0:
        return 0.0
    return Q_dot / (min(C_dot_hot, C_dot_cold) * dT_max)


def design_core(params: DesignParameters, states: CycleStateVector) -> DesignSolution:
    """Solve the design point for ``params.topology``.

    Args:
        params: Design parameters.
        states: State vector overwritten with the solved nodes.

    Returns:
        DesignSolution with performance and heat exchanger records.

    Raises:
        CycleError: Infeasible inputs or a loop that did not converge.
        PropertyError: A node state outside the property envelope.
    """
    if params.topology is Topology.STANDARD:
        return _design_pass(params, states, 0.0)
    if params.topology is Topology.HTR_BYPASS:
        return _design_pass(params, states, params.bypass_frac)
    return _solve_bypass_target(params, states)


def _solve_bypass_target(params: DesignParameters, states: CycleStateVector) -> DesignSolution:
    """Bisect the bypass fraction until the secondary heat share hits its target.

    An unreachable target returns the last solve with ``eta_thermal = 0``.
    """
    f_low, f_high = BYPASS_FRAC_MIN, BYPASS_FRAC_MAX
    f_bypass = BYPASS_FRAC_START

    n_pass = 0
    while True:
        n_pass += 1
        solution = _design_pass(params, states, f_bypass)

        Q_total = solution.Q_dot_PHX + solution.Q_dot_bypass
        diff = solution.Q_dot_bypass / Q_total - params.bypass_target
        if abs(diff) <= params.tol:
            return solution

        if diff > 0.0:
            f_high = f_bypass
        else:
            f_low = f_bypass
        f_bypass = 0.5 * (f_low + f_high)

        if BYPASS_FRAC_MAX - f_low < BYPASS_FRAC_WINDOW or f_high - BYPASS_FRAC_MIN < BYPASS_FRAC_WINDOW:
            break
        if n_pass > BYPASS_MAX_ITER:
            break

    logger.warning(
        "Bypass heat share %.4f not reachable (last bypass fraction %.4f)",
        params.bypass_target,
        solution.bypass_frac,
    )
    solution.eta_thermal = 0.0
    solution.bypass_converged = False
    return solution


def _design_pass(params: DesignParameters, states: CycleStateVector, bypass_frac: float) -> DesignSolution:
    """One design solve with a fixed HTR bypass fraction."""
    states.reset()
    f = params.recomp_frac
    has_rc = f >= ZERO_RECOMP

    states[1].T = params.T_mc_in
    states[6].T = params.T_t_in
    apply_design_pressures(params, states)
    s1, s2, s3, s4, s5 = states[1], states[2], states[3], states[4], states[5]
    s6, s7, s8, s9, s10 = states[6], states[7], states[8], states[9], states[10]

    # Main compressor and turbine
    eta_mc = isentropic_efficiency(params.eta_mc, s1.T, s1.P, s2.P, True)
    eta_t = isentropic_efficiency(params.eta_t, s6.T, s6.P, s7.P, False)

    mc = calculate_turbomachinery_outlet(s1.T, s1.P, s2.P, eta_mc, True)
    _set_process(s1, s2, mc)
    w_mc = mc.spec_work

    t = calculate_turbomachinery_outlet(s6.T, s6.P, s7.P, eta_t, False)
    _set_process(s6, s7, t)
    w_t = t.spec_work

    # Feasibility check with the recompressor inlet estimated at T2
    w_rc = 0.0
    if has_rc:
        eta_rc = isentropic_efficiency(params.eta_rc, s2.T, s9.P, s10.P, True)
        w_rc = calculate_turbomachinery_outlet(s2.T, s9.P, s10.P, eta_rc, True).spec_work

    if w_mc + w_rc + w_t <= 0.0:
        raise CycleError(NON_POSITIVE_NET_WORK, "Positive net power is impossible with these inputs")

    m_dot_t = m_dot_mc = m_dot_rc = 0.0
    Q_dot_LT = Q_dot_HT = 0.0
    UA_LT_calc = UA_HT_calc = 0.0
    min_DT_LT = min_DT_HT = math.nan

    T8 = recuperator_bracket(s2.T, s7.T, params.UA_HT)
    for _ in range(MAX_ITER):
        s8.T = T8.guess
        s8.set_state(state_from_TP(s8.T, s8.P))

        T9 = recuperator_bracket(s2.T, s8.T, params.UA_LT)
        for _ in range(MAX_ITER):
            s9.T = T9.guess
            if has_rc:
                eta_rc = isentropic_efficiency(params.eta_rc, s9.T, s9.P, s10.P, True)
                rc = calculate_turbomachinery_outlet(s9.T, s9.P, s10.P, eta_rc, True)
                _set_process(s9, s10, rc)
                w_rc = rc.spec_work
            else:
                w_rc = 0.0
                s9.set_state(state_from_TP(s9.T, s9.P))
                copy_properties(s9, s10)

            m_dot_t = params.W_dot_net / (w_mc * (1.0 - f) + w_rc * f + w_t)
            if m_dot_t <= 0.0:
                raise CycleError(NON_POSITIVE_MASS_FLOW, f"Turbine mass flow {m_dot_t:.4g} kg/s is not positive")
            m_dot_rc = m_dot_t * f
            m_dot_mc = m_dot_t - m_dot_rc

            Q_dot_LT = 0.0 if params.UA_LT < ZERO_UA else m_dot_t * (s8.h - s9.h)

            try:
                LT = calculate_hxr_UA(
                    params.N_sub_hxrs, Q_dot_LT, m_dot_mc, m_dot_t, s2.T, s8.T, s2.P, s3.P, s8.P, s9.P
                )
            except SecondLawViolation:
                T9.bisect_up()
                continue
            UA_LT_calc, min_DT_LT = LT.UA, LT.min_DT

            residual = params.UA_LT - UA_LT_calc
            if abs(residual) < ZERO_UA or ua_converged(residual, params.UA_LT, params.tol, min_DT_LT):
                break
            # Conductance too big -> T9 must rise
            T9.update(residual, root_above=residual < 0.0)
        else:
            raise CycleError(T9_NOT_CONVERGED, "LTR hot outlet temperature (T9) did not converge")

        # LTR cold outlet and mixing valve
        s3.h = s2.h + Q_dot_LT / m_dot_mc
        s3.set_state(state_from_PH(s3.P, s3.h))

        if has_rc:
            s4.h = (1.0 - f) * s3.h + f * s10.h
            s4.set_state(state_from_PH(s4.P, s4.h))
        else:
            copy_properties(s3, s4)

        if s4.T >= s8.T:
            T8.bisect_up()
            continue

        m_dot_HT_cold = (1.0 - bypass_frac) * m_dot_t
        Q_dot_HT = 0.0 if params.UA_HT < ZERO_UA else m_dot_t * (s7.h - s8.h)

        try:
            HT = calculate_hxr_UA(
                params.N_sub_hxrs, Q_dot_HT, m_dot_HT_cold, m_dot_t, s4.T, s7.T, s4.P, s5.P, s7.P, s8.P
            )
        except SecondLawViolation:
            T8.bisect_up()
            continue
        UA_HT_calc, min_DT_HT = HT.UA, HT.min_DT

        residual = params.UA_HT - UA_HT_calc
        if abs(residual) < ZERO_UA or ua_converged(residual, params.UA_HT, params.tol, min_DT_HT):
            break
        T8.update(residual, root_above=residual < 0.0)
    else:
        raise CycleError(T8_NOT_CONVERGED, "HTR hot outlet temperature (T8) did not converge")

    m_dot_HT_cold = (1.0 - bypass_frac) * m_dot_t
    s5.h = s4.h + Q_dot_HT / m_dot_HT_cold
    s5.set_state(state_from_PH(s5.P, s5.h))

    LT_record = HxDesignRecord(
        DP_design=[s2.P - s3.P, s8.P - s9.P],
        m_dot_design=[m_dot_mc, m_dot_t],
        UA_design=UA_LT_calc,
        Q_dot_design=Q_dot_LT,
        eff_design=recuperator_effectiveness(
            Q_dot_LT,
            capacitance_rate(m_dot_t, s8.h - s9.h, s8.T - s9.T),
            capacitance_rate(m_dot_mc, s3.h - s2.h, s3.T - s2.T),
            s8.T - s2.T,
        ),
        min_DT_design=min_DT_LT,
        N_sub=params.N_sub_hxrs,
    )
    HT_record = HxDesignRecord(
        DP_design=[s4.P - s5.P, s7.P - s8.P],
        m_dot_design=[m_dot_HT_cold, m_dot_t],
        UA_design=UA_HT_calc,
        Q_dot_design=Q_dot_HT,
        eff_design=recuperator_effectiveness(
            Q_dot_HT,
            capacitance_rate(m_dot_t, s7.h - s8.h, s7.T - s8.T),
            capacitance_rate(m_dot_HT_cold, s5.h - s4.h, s5.T - s4.T),
            s7.T - s4.T,
        ),
        min_DT_design=min_DT_HT,
        N_sub=params.N_sub_hxrs,
    )
    PHX_record = HxDesignRecord(
        DP_design=[s5.P - s6.P, 0.0],
        m_dot_design=[m_dot_t, 0.0],
        Q_dot_design=m_dot_t * (s6.h - s5.h),
        N_sub=params.N_sub_hxrs,
    )
    PC_record = HxDesignRecord(
        DP_design=[0.0, s9.P - s1.P],
        m_dot_design=[0.0, m_dot_mc],
        Q_dot_design=m_dot_mc * (s9.h - s1.h),
        N_sub=params.N_sub_hxrs,
    )

    Q_dot_bypass = bypass_frac * m_dot_t * (s5.h - s4.h)
    W_dot_net = w_mc * m_dot_mc + w_rc * m_dot_rc + w_t * m_dot_t
    eta_thermal = W_dot_net / (PHX_record.Q_dot_design + Q_dot_bypass)

    logger.debug(
        "Design pass: eta=%.5f, m_dot_t=%.3f kg/s, T8=%.2f K, T9=%.2f K",
        eta_thermal,
        m_dot_t,
        s8.T,
        s9.T,
    )

    return DesignSolution(
        W_dot_net=W_dot_net,
        eta_thermal=eta_thermal,
        Q_dot_PHX=PHX_record.Q_dot_design,
        Q_dot_PC=PC_record.Q_dot_design,
        Q_dot_bypass=Q_dot_bypass,
        m_dot_mc=m_dot_mc,
        m_dot_rc=m_dot_rc,
        m_dot_t=m_dot_t,
        bypass_frac=bypass_frac,
        LT=LT_record,
        HT=HT_record,
        PHX=PHX_record,
        PC=PC_record,
    )
