"""Compression and expansion process calculations.

Stateless functions shared by the design solver and the component sizing
routines: the outlet state of a compressor or turbine at a given
isentropic efficiency, and conversion from polytropic to isentropic
efficiency.
"""

from __future__ import annotations

from dataclasses import dataclass

from sco2_cycle.core.co2_props import state_from_PH, state_from_PS, state_from_TP

N_POLYTROPIC_STAGES = 200


@dataclass
class TurbomachineryOutlet:
    """Inlet and outlet properties of a compression/expansion process."""

    h_in: float  # kJ/kg
    s_in: float  # kJ/(kg·K)
    rho_in: float  # kg/m³
    T_out: float  # K
    h_out: float  # kJ/kg
    s_out: float  # kJ/(kg·K)
    rho_out: float  # kg/m³
    spec_work: float  # kJ/kg, negative for compression


def calculate_turbomachinery_outlet(
    T_in: float,
    P_in: float,
    P_out: float,
    eta: float,
    is_comp: bool,
) -> TurbomachineryOutlet:
    """Outlet state of a compressor or turbine with isentropic efficiency ``eta``.

    Args:
        T_in: Inlet temperature [K].
        P_in: Inlet pressure [kPa].
        P_out: Outlet pressure [kPa].
        eta: Isentropic efficiency (0–1).
        is_comp: True for compression, False for expansion.

    Returns:
        TurbomachineryOutlet with the specific work ``h_in - h_out``.

    Raises:
        PropertyError: If any state lies outside the property envelope.
    """
    inlet = state_from_TP(T_in, P_in)
    h_s_out = state_from_PS(P_out, inlet.entr).enth

    w_s = inlet.enth - h_s_out  # kJ/kg
    w = w_s / eta if is_comp else w_s * eta
    h_out = inlet.enth - w

    outlet = state_from_PH(P_out, h_out)

    return TurbomachineryOutlet(
        h_in=inlet.enth,
        s_in=inlet.entr,
        rho_in=inlet.dens,
        T_out=outlet.temp,
        h_out=h_out,
        s_out=outlet.entr,
        rho_out=outlet.dens,
        spec_work=w,
    )


def isen_eta_from_poly_eta(
    T_in: float,
    P_in: float,
    P_out: float,
    poly_eta: float,
    is_comp: bool,
) -> float:
    """Equivalent isentropic efficiency of a polytropic process.

    The process is integrated in 200 equal pressure steps, each applying
    ``poly_eta`` as a stage efficiency.  The overall enthalpy change is
    then compared with the single-step isentropic enthalpy change.

    Returns:
        Isentropic efficiency (0–1).
    """
    inlet = state_from_TP(T_in, P_in)
    h_in, s_in = inlet.enth, inlet.entr

    h_s_out = state_from_PS(P_out, s_in).enth

    stage_P_in = P_in
    stage_h_in = h_in
    stage_s_in = s_in
    stage_DP = (P_out - P_in) / N_POLYTROPIC_STAGES

    for _ in range(N_POLYTROPIC_STAGES):
        stage_P_out = stage_P_in + stage_DP
        stage_h_s_out = state_from_PS(stage_P_out, stage_s_in).enth
        w_s = stage_h_in - stage_h_s_out
        w = w_s / poly_eta if is_comp else w_s * poly_eta
        stage_h_out = stage_h_in - w

        stage_s_in = state_from_PH(stage_P_out, stage_h_out).entr
        stage_h_in = stage_h_out
        stage_P_in = stage_P_out

    if is_comp:
        return (h_s_out - h_in) / (stage_h_in - h_in)
    return (stage_h_in - h_in) / (h_s_out - h_in)
