"""Parameter sets for the recompression cycle solver.

Every solver entry point consumes one of these dataclasses.  Defaults
describe a 10 MWe recompression cycle with a 550 °C turbine inlet and a
near-critical compressor inlet.

Sign conventions shared by the design parameter sets:

* Pressure drops are ``[cold, hot]`` pairs; a negative value is a
  fraction of the inlet pressure, a positive value is absolute [kPa].
* A negative turbomachinery efficiency is polytropic, positive is
  isentropic.
* ``N_turbine <= 0`` links the turbine to the main compressor shaft.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Topology(Enum):
    """Design-point cycle layout."""

    STANDARD = "standard"
    HTR_BYPASS = "htr_bypass"  # fixed share of flow heated by a secondary source
    HTR_BYPASS_TARGET = "htr_bypass_target"  # bypass share solved for a heat split


BYPASS_HEAT_TARGET = 10.0 / 65.0  # secondary heat / total heat input


def _no_drop() -> list[float]:
    return [0.0, 0.0]


@dataclass
class DesignParameters:
    """Inputs of a single design-point solve."""

    W_dot_net: float = 10.0e3  # kW
    T_mc_in: float = 305.15  # K
    T_t_in: float = 823.15  # K
    DP_LT: list[float] = field(default_factory=_no_drop)
    DP_HT: list[float] = field(default_factory=_no_drop)
    DP_PC: list[float] = field(default_factory=_no_drop)
    DP_PHX: list[float] = field(default_factory=_no_drop)
    eta_mc: float = 0.89
    eta_rc: float = 0.89
    eta_t: float = 0.90
    P_mc_in: float = 7690.0  # kPa
    P_mc_out: float = 25000.0  # kPa
    recomp_frac: float = 0.3
    UA_LT: float = 500.0  # kW/K
    UA_HT: float = 500.0  # kW/K
    N_sub_hxrs: int = 10
    tol: float = 1.0e-6
    P_high_limit: float = 25000.0  # kPa
    N_turbine: float = 3600.0  # rpm

    topology: Topology = Topology.STANDARD
    bypass_frac: float = 0.0  # HTR_BYPASS only
    bypass_target: float = BYPASS_HEAT_TARGET  # HTR_BYPASS_TARGET only


@dataclass
class OptDesignParameters:
    """Design optimization: any of the four free variables may be pinned."""

    W_dot_net: float = 10.0e3  # kW
    T_mc_in: float = 305.15  # K
    T_t_in: float = 823.15  # K
    DP_LT: list[float] = field(default_factory=_no_drop)
    DP_HT: list[float] = field(default_factory=_no_drop)
    DP_PC: list[float] = field(default_factory=_no_drop)
    DP_PHX: list[float] = field(default_factory=_no_drop)
    UA_rec_total: float = 1000.0  # kW/K
    eta_mc: float = 0.89
    eta_rc: float = 0.89
    eta_t: float = 0.90
    N_sub_hxrs: int = 10
    P_high_limit: float = 25000.0  # kPa
    tol: float = 1.0e-6
    opt_tol: float = 1.0e-6
    N_turbine: float = 3600.0  # rpm

    P_mc_out_guess: float = 25000.0  # kPa
    fixed_P_mc_out: bool = False
    PR_mc_guess: float = 3.0
    fixed_PR_mc: bool = False
    recomp_frac_guess: float = 0.3
    fixed_recomp_frac: bool = False
    LT_frac_guess: float = 0.5
    fixed_LT_frac: bool = False

    topology: Topology = Topology.STANDARD
    bypass_frac: float = 0.0
    bypass_target: float = BYPASS_HEAT_TARGET


@dataclass
class AutoOptDesignParameters:
    """Fully automatic design optimization for a given recuperator UA."""

    W_dot_net: float = 10.0e3  # kW
    T_mc_in: float = 305.15  # K
    T_t_in: float = 823.15  # K
    DP_LT: list[float] = field(default_factory=_no_drop)
    DP_HT: list[float] = field(default_factory=_no_drop)
    DP_PC: list[float] = field(default_factory=_no_drop)
    DP_PHX: list[float] = field(default_factory=_no_drop)
    UA_rec_total: float = 1000.0  # kW/K
    eta_mc: float = 0.89
    eta_rc: float = 0.89
    eta_t: float = 0.90
    N_sub_hxrs: int = 10
    P_high_limit: float = 25000.0  # kPa
    tol: float = 1.0e-6
    opt_tol: float = 1.0e-6
    N_turbine: float = 3600.0  # rpm

    topology: Topology = Topology.STANDARD
    bypass_frac: float = 0.0
    bypass_target: float = BYPASS_HEAT_TARGET


@dataclass
class HitEtaParameters:
    """Automatic design optimization sized to reach a thermal efficiency.

    The total recuperator conductance is the unknown.
    """

    W_dot_net: float = 10.0e3  # kW
    T_mc_in: float = 305.15  # K
    T_t_in: float = 823.15  # K
    DP_LT: list[float] = field(default_factory=_no_drop)
    DP_HT: list[float] = field(default_factory=_no_drop)
    DP_PC: list[float] = field(default_factory=_no_drop)
    DP_PHX: list[float] = field(default_factory=_no_drop)
    eta_mc: float = 0.89
    eta_rc: float = 0.89
    eta_t: float = 0.90
    N_sub_hxrs: int = 10
    P_high_limit: float = 25000.0  # kPa
    tol: float = 1.0e-6
    opt_tol: float = 1.0e-6
    N_turbine: float = 3600.0  # rpm
    eta_thermal: float = 0.45  # target


@dataclass
class DesignLimits:
    """Search range of total recuperator UA per unit net power [kW/K per kW]."""

    UA_net_power_ratio_max: float = 2.0
    UA_net_power_ratio_min: float = 1.0e-5


@dataclass
class OffDesignParameters:
    """Inputs of a single off-design solve against a sized cycle."""

    T_mc_in: float = 305.15  # K
    T_t_in: float = 823.15  # K
    P_mc_in: float = 7690.0  # kPa
    recomp_frac: float = 0.3
    N_mc: float = 0.0  # rpm
    N_t: float = 0.0  # rpm
    N_sub_hxrs: int = 10
    tol: float = 1.0e-6


@dataclass
class TargetOffDesignParameters:
    """Off-design solve that finds the compressor inlet pressure for a target output."""

    T_mc_in: float = 305.15  # K
    T_t_in: float = 823.15  # K
    recomp_frac: float = 0.3
    N_mc: float = 0.0  # rpm
    N_t: float = 0.0  # rpm
    N_sub_hxrs: int = 10
    tol: float = 1.0e-6
    target: float = 10.0e3  # kW
    is_target_Q: bool = False  # target is PHX duty instead of net power
    lowest_pressure: float = 1000.0  # kPa
    highest_pressure: float = 12000.0  # kPa
    use_default_res: bool = True


@dataclass
class OptOffDesignParameters:
    """Off-design optimization of net power or efficiency."""

    T_mc_in: float = 305.15  # K
    T_t_in: float = 823.15  # K
    is_max_W_dot: bool = True
    N_sub_hxrs: int = 10

    P_mc_in_guess: float = 7690.0  # kPa
    fixed_P_mc_in: bool = False
    recomp_frac_guess: float = 0.3
    fixed_recomp_frac: bool = False
    N_mc_guess: float = 0.0  # rpm
    fixed_N_mc: bool = False
    N_t_guess: float = 0.0  # rpm
    fixed_N_t: bool = False

    tol: float = 1.0e-6
    opt_tol: float = 1.0e-6


@dataclass
class OptTargetOffDesignParameters:
    """Off-design optimization of efficiency at a target output."""

    T_mc_in: float = 305.15  # K
    T_t_in: float = 823.15  # K
    target: float = 10.0e3  # kW
    is_target_Q: bool = False
    N_sub_hxrs: int = 10
    lowest_pressure: float = 1000.0  # kPa
    highest_pressure: float = 12000.0  # kPa

    recomp_frac_guess: float = 0.3
    fixed_recomp_frac: bool = False
    N_mc_guess: float = 0.0  # rpm
    fixed_N_mc: bool = False
    N_t_guess: float = 0.0  # rpm
    fixed_N_t: bool = False

    tol: float = 1.0e-6
    opt_tol: float = 1.0e-6
    use_default_res: bool = True


@dataclass
class PHXOffDesignParameters:
    """Heat-transfer-fluid side of the primary heat exchanger at off-design."""

    T_htf_hot: float = 848.15  # K
    T_htf_cold: float = 700.0  # K, target return temperature
    m_dot_htf: float = 50.0  # kg/s
    m_dot_htf_des: float = 50.0  # kg/s
    UA_PHX_des: float = 500.0  # kW/K
    cp_htf: float = 1.5  # kJ/(kg·K)
