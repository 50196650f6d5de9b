"""Radial inflow turbine model for the recompression cycle.

Sizing fixes the rotor diameter from the design velocity ratio
ν = U_tip / C_s and the effective nozzle area from the design flow.  At
off-design the efficiency follows a quartic in ν, and the allowable mass
flow is the choked-nozzle estimate ṁ = C_s · A_nozzle · ρ_in.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from sco2_cycle.core.co2_props import state_from_PH, state_from_PS, state_from_TD, state_from_TP
from sco2_cycle.cycle.components.base import CycleComponent, CycleNode
from sco2_cycle.cycle.components.compressor import RPM_TO_RAD_S
from sco2_cycle.cycle.errors import TURBINE_SPEED_UNDEFINED, CycleError

logger = logging.getLogger(__name__)

NU_DESIGN = 0.7476  # design tip speed / spouting velocity


def turbine_efficiency_ratio(nu: float) -> float:
    """Efficiency relative to design at velocity ratio ``nu``, clipped to [0, 1]."""
    eta_0 = (((1.0626 * nu - 3.0874) * nu + 1.3668) * nu + 1.3567) * nu + 0.179921180
    return min(max(eta_0, 0.0), 1.0)


@dataclass
class TurbineDesign:
    """Sized turbine."""

    D_rotor: float = 0.0  # m
    A_nozzle: float = 0.0  # m²
    N_design: float = 0.0  # rpm
    nu_design: float = NU_DESIGN
    w_tip_ratio: float = 0.0  # tip speed / inlet speed of sound
    eta: float = 0.0  # design isentropic efficiency


@dataclass
class TurbineOffDesign:
    """Turbine operating point."""

    m_dot: float = 0.0  # kg/s, allowable flow
    T_out: float = math.nan  # K
    N: float = 0.0  # rpm
    nu: float = 0.0
    eta: float = 0.0
    w_tip_ratio: float = 0.0


class Turbine(CycleComponent):
    """Radial inflow turbine.

    Args:
        name: Component name.
    """

    component_type = "turbine"

    def __init__(self, name: str = "turbine"):
        self.name = name
        self._design: TurbineDesign | None = None
        self._od: TurbineOffDesign | None = None

    @property
    def design(self) -> TurbineDesign:
        if self._design is None:
            raise RuntimeError("Turbine has not been sized")
        return self._design

    @property
    def od_solved(self) -> TurbineOffDesign | None:
        return self._od

    @property
    def is_sized(self) -> bool:
        return self._design is not None

    def size(
        self,
        inlet: CycleNode,
        outlet: CycleNode,
        m_dot: float,
        N_design: float,
        N_comp_if_linked: float = 0.0,
    ) -> TurbineDesign:
        """Size the rotor and nozzle for the design-point expansion.

        Args:
            inlet: Converged design inlet node.
            outlet: Converged design outlet node.
            m_dot: Design mass flow [kg/s].
            N_design: Design shaft speed [rpm]; ``<= 0`` links the turbine
                to the main compressor shaft.
            N_comp_if_linked: Main compressor design speed [rpm].

        Raises:
            CycleError: Code 7 if no positive shaft speed is available.
        """
        N = N_design if N_design > 0.0 else N_comp_if_linked
        if N <= 0.0:
            raise CycleError(TURBINE_SPEED_UNDEFINED, "Turbine shaft speed is undefined")

        ssnd_in = state_from_TD(inlet.T, inlet.D).ssnd
        h_s_out = state_from_PS(outlet.P, inlet.s).enth

        w_i = inlet.h - h_s_out  # kJ/kg
        C_s = math.sqrt(2.0 * w_i * 1000.0)  # m/s, spouting velocity
        U_tip = NU_DESIGN * C_s

        self._design = TurbineDesign(
            D_rotor=U_tip / (0.5 * N * RPM_TO_RAD_S),
            A_nozzle=m_dot / (C_s * inlet.D),
            N_design=N,
            w_tip_ratio=U_tip / ssnd_in,
            eta=(inlet.h - outlet.h) / w_i,
        )
        logger.debug("Sized turbine: D=%.4f m, N=%.0f rpm", self._design.D_rotor, N)
        return self._design

    def off_design(self, T_in: float, P_in: float, P_out: float, N: float) -> TurbineOffDesign:
        """Allowable mass flow and outlet temperature at an operating point."""
        des = self.design
        inlet = state_from_TP(T_in, P_in)
        h_s_out = state_from_PS(P_out, inlet.entr).enth

        C_s = math.sqrt(2.0 * (inlet.enth - h_s_out) * 1000.0)
        U_tip = des.D_rotor * 0.5 * N * RPM_TO_RAD_S
        nu = U_tip / C_s

        eta = turbine_efficiency_ratio(nu) * des.eta
        h_out = inlet.enth - eta * (inlet.enth - h_s_out)
        T_out = state_from_PH(P_out, h_out).temp

        self._od = TurbineOffDesign(
            m_dot=C_s * des.A_nozzle * inlet.dens,
            T_out=T_out,
            N=N,
            nu=nu,
            eta=eta,
            w_tip_ratio=U_tip / inlet.ssnd,
        )
        return self._od

    def design_summary(self) -> dict[str, Any]:
        des = self.design
        return {
            "D_rotor_m": des.D_rotor,
            "A_nozzle_m2": des.A_nozzle,
            "N_design_rpm": des.N_design,
            "eta_design": des.eta,
            "w_tip_ratio": des.w_tip_ratio,
        }
