"""Off-design solver for a sized recompression cycle.

Component efficiencies now follow their performance maps, so the mass
flow is an unknown.  An outer loop on the turbine mass flow matches the
flow the main compressor delivers at its shaft speed to the flow the
turbine nozzle passes at the resulting pressure ratio.  The recuperator
temperatures are then solved with the same nested T8/T9 loops as the
design point, against conductances scaled to the off-design flows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sco2_cycle.core.co2_props import state_from_PH, state_from_TP
from sco2_cycle.cycle.components.base import CycleComponent, CycleStateVector
from sco2_cycle.cycle.components.compressor import PHI_DESIGN, PHI_MAX, RPM_TO_RAD_S, Compressor
from sco2_cycle.cycle.components.heat_exchanger import HeatExchanger, calculate_hxr_UA
from sco2_cycle.cycle.components.recompressor import Recompressor
from sco2_cycle.cycle.components.turbine import Turbine
from sco2_cycle.cycle.design import ZERO_RECOMP, ZERO_UA, copy_properties, recuperator_bracket, ua_converged
from sco2_cycle.cycle.errors import (
    COMPRESSOR_OUT_OF_MAP,
    COMPRESSOR_OUTLET_FAILED,
    MASS_FLOW_NOT_CONVERGED,
    RECOMPRESSOR_NOT_CONVERGED,
    T8_NOT_CONVERGED,
    T9_NOT_CONVERGED,
    CycleError,
    SecondLawViolation,
)
from sco2_cycle.cycle.iteration import Bracket
from sco2_cycle.cycle.parameters import OffDesignParameters

logger = logging.getLogger(__name__)

MASS_FLOW_MAX_ITER = 100
TEMPERATURE_MAX_ITER = 100
MASS_FLOW_SAFETY = 1.2  # on the choke-limited compressor flow


@dataclass
class CycleComponents:
    """The sized hardware of one cycle."""

    mc: Compressor = field(default_factory=Compressor)
    rc: Recompressor = field(default_factory=Recompressor)
    t: Turbine = field(default_factory=Turbine)
    LT: HeatExchanger = field(default_factory=lambda: HeatExchanger("LTR"))
    HT: HeatExchanger = field(default_factory=lambda: HeatExchanger("HTR"))
    PHX: HeatExchanger = field(default_factory=lambda: HeatExchanger("PHX"))
    PC: HeatExchanger = field(default_factory=lambda: HeatExchanger("PC"))

    def all(self) -> list[CycleComponent]:
        return [self.mc, self.rc, self.t, self.LT, self.HT, self.PHX, self.PC]


@dataclass
class OffDesignSolution:
    """Scalar results of a converged off-design solve."""

    eta_thermal: float = 0.0
    W_dot_net: float = 0.0  # kW
    Q_dot_PHX: float = 0.0  # kW
    Q_dot_PC: float = 0.0  # kW
    m_dot_mc: float = 0.0  # kg/s
    m_dot_rc: float = 0.0  # kg/s
    m_dot_t: float = 0.0  # kg/s
    recomp_frac: float = 0.0
    N_mc: float = 0.0  # rpm
    N_t: float = 0.0  # rpm
    UA_LT: float = 0.0  # kW/K, scaled conductance
    UA_HT: float = 0.0  # kW/K


def off_design_core(
    params: OffDesignParameters,
    parts: CycleComponents,
    states: CycleStateVector,
) -> OffDesignSolution:
    """Solve the cycle at an off-design operating point.

    Args:
        params: Operating point (inlet temperatures and pressure,
            recompression fraction, shaft speeds).
        parts: Components sized at the design point.
        states: State vector overwritten with the solved nodes.

    Raises:
        CycleError: A loop did not converge (42 mass flow, 31 T9, 35 T8) or a
            component map failed.
        PropertyError: A node state outside the property envelope.
    """
    states.reset()
    f = params.recomp_frac
    has_rc = f >= ZERO_RECOMP
    if f >= 1.0:
        raise CycleError(MASS_FLOW_NOT_CONVERGED, f"Recompression fraction {f} leaves no main compressor flow")
    if has_rc and not parts.rc.is_sized:
        raise CycleError(RECOMPRESSOR_NOT_CONVERGED, "Recompressor was not sized at the design point")

    s1, s2, s3, s4, s5 = states[1], states[2], states[3], states[4], states[5]
    s6, s7, s8, s9, s10 = states[6], states[7], states[8], states[9], states[10]
    s1.T, s1.P = params.T_mc_in, params.P_mc_in
    s6.T = params.T_t_in

    # Mass flow loop
    rho_in = state_from_TP(s1.T, s1.P).dens
    D_rotor = parts.mc.design.D_rotor
    U_tip = D_rotor * 0.5 * params.N_mc * RPM_TO_RAD_S
    partial_phi = rho_in * D_rotor**2 * U_tip

    m_dot = Bracket(
        lower=0.0,
        upper=PHI_MAX * partial_phi * MASS_FLOW_SAFETY / (1.0 - f),
        guess=PHI_DESIGN * partial_phi / (1.0 - f),
    )

    m_dot_t = m_dot_mc = m_dot_rc = 0.0
    for _ in range(MASS_FLOW_MAX_ITER):
        m_dot_t = m_dot.guess
        m_dot_rc = m_dot_t * f
        m_dot_mc = m_dot_t - m_dot_rc

        try:
            mc_od = parts.mc.off_design(s1.T, s1.P, m_dot_mc, params.N_mc)
        except CycleError as exc:
            if exc.code == COMPRESSOR_OUT_OF_MAP:  # flow not reachable at this speed
                m_dot.bisect_down()
                continue
            if exc.code == COMPRESSOR_OUTLET_FAILED:  # outlet pressure beyond the envelope
                m_dot.bisect_up()
                continue
            raise
        s2.T, s2.P = mc_od.T_out, mc_od.P_out

        DP_LT = parts.LT.pressure_drops([m_dot_mc, m_dot_t])
        DP_HT = parts.HT.pressure_drops([m_dot_t, m_dot_t])
        DP_PHX = parts.PHX.pressure_drops([m_dot_t, 0.0])
        DP_PC = parts.PC.pressure_drops([0.0, m_dot_mc])

        s3.P = s2.P - DP_LT[0]
        s4.P = s3.P
        s10.P = s3.P
        s5.P = s4.P - DP_HT[0]
        s6.P = s5.P - DP_PHX[0]
        s9.P = s1.P + DP_PC[1]
        s8.P = s9.P + DP_LT[1]
        s7.P = s8.P + DP_HT[1]

        t_od = parts.t.off_design(s6.T, s6.P, s7.P, params.N_t)
        s7.T = t_od.T_out

        # Positive residual: pressure rise too small, so the flow is too big
        residual = m_dot_t - t_od.m_dot
        if abs(residual) / m_dot_t < params.tol:
            break
        m_dot.update(residual, root_above=residual < 0.0)
    else:
        raise CycleError(MASS_FLOW_NOT_CONVERGED, "Off-design mass flow did not converge")

    for node in (s1, s2, s6, s7):
        node.set_state(state_from_TP(node.T, node.P))

    UA_LT = parts.LT.conductance([m_dot_mc, m_dot_t])
    UA_HT = parts.HT.conductance([m_dot_t, m_dot_t])

    Q_dot_LT = Q_dot_HT = 0.0
    T8 = recuperator_bracket(s2.T, s7.T, UA_HT)
    for _ in range(TEMPERATURE_MAX_ITER):
        s8.T = T8.guess
        s8.set_state(state_from_TP(s8.T, s8.P))

        T9 = recuperator_bracket(s2.T, s8.T, UA_LT)
        for _ in range(TEMPERATURE_MAX_ITER):
            s9.T = T9.guess
            s9.set_state(state_from_TP(s9.T, s9.P))

            if has_rc:
                rc_od = parts.rc.off_design(s9.T, s9.P, m_dot_rc, s10.P)
                s10.T = rc_od.T_out
                s10.set_state(state_from_TP(s10.T, s10.P))
            else:
                copy_properties(s9, s10)

            Q_dot_LT = 0.0 if UA_LT < ZERO_UA else m_dot_t * (s8.h - s9.h)

            try:
                LT = calculate_hxr_UA(
                    params.N_sub_hxrs, Q_dot_LT, m_dot_mc, m_dot_t, s2.T, s8.T, s2.P, s3.P, s8.P, s9.P
                )
            except SecondLawViolation:
                T9.bisect_up()
                continue

            residual = UA_LT - LT.UA
            if abs(residual) < ZERO_UA or ua_converged(residual, UA_LT, params.tol, LT.min_DT):
                break
            T9.update(residual, root_above=residual < 0.0)
        else:
            raise CycleError(T9_NOT_CONVERGED, "Off-design LTR hot outlet temperature (T9) did not converge")

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

        Q_dot_HT = 0.0 if UA_HT < ZERO_UA else m_dot_t * (s7.h - s8.h)

        try:
            HT = calculate_hxr_UA(
                params.N_sub_hxrs, Q_dot_HT, m_dot_t, m_dot_t, s4.T, s7.T, s4.P, s5.P, s7.P, s8.P
            )
        except SecondLawViolation:
            T8.bisect_up()
            continue

        residual = UA_HT - HT.UA
        if abs(residual) < ZERO_UA or ua_converged(residual, UA_HT, params.tol, HT.min_DT):
            break
        T8.update(residual, root_above=residual < 0.0)
    else:
        raise CycleError(T8_NOT_CONVERGED, "Off-design HTR hot outlet temperature (T8) did not converge")

    s5.h = s4.h + Q_dot_HT / m_dot_t
    s5.set_state(state_from_PH(s5.P, s5.h))

    w_mc = s1.h - s2.h
    w_t = s6.h - s7.h
    w_rc = s9.h - s10.h if f > 0.0 else 0.0

    Q_dot_PHX = m_dot_t * (s6.h - s5.h)
    W_dot_net = w_mc * m_dot_mc + w_rc * m_dot_rc + w_t * m_dot_t

    logger.debug(
        "Off-design: P_mc_in=%.1f kPa, m_dot_t=%.3f kg/s, W=%.1f kW, eta=%.5f",
        s1.P,
        m_dot_t,
        W_dot_net,
        W_dot_net / Q_dot_PHX,
    )

    return OffDesignSolution(
        eta_thermal=W_dot_net / Q_dot_PHX,
        W_dot_net=W_dot_net,
        Q_dot_PHX=Q_dot_PHX,
        Q_dot_PC=m_dot_mc * (s9.h - s1.h),
        m_dot_mc=m_dot_mc,
        m_dot_rc=m_dot_rc,
        m_dot_t=m_dot_t,
        recomp_frac=f,
        N_mc=params.N_mc,
        N_t=params.N_t,
        UA_LT=UA_LT,
        UA_HT=UA_HT,
    )
