"""Main compressor model for the recompression cycle.

Single-stage radial compressor described by the non-dimensional head and
efficiency curves of the Sandia sCO2 test compressor.  Sizing fixes the
rotor diameter and design shaft speed at the design flow coefficient;
off-design evaluation maps a (mass flow, shaft speed) pair to an outlet
state through the modified flow coefficient.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from sco2_cycle.core.co2_props import (
    PropertyError,
    state_from_HS,
    state_from_PH,
    state_from_PS,
    state_from_TD,
    state_from_TP,
)
from sco2_cycle.cycle.components.base import CycleComponent, CycleNode
from sco2_cycle.cycle.errors import COMPRESSOR_OUT_OF_MAP, COMPRESSOR_OUTLET_FAILED, CycleError

logger = logging.getLogger(__name__)

PHI_DESIGN = 0.02971  # design-point flow coefficient
PHI_MIN = 0.02  # surge limit
PHI_MAX = 0.05  # choke limit

RPM_TO_RAD_S = 0.104719755
RAD_S_TO_RPM = 9.549296590


def snl_psi(phi: float) -> float:
    """Modified head coefficient at modified flow coefficient ``phi``."""
    return ((((-498626.0 * phi) + 53224.0) * phi - 2505.0) * phi + 54.6) * phi + 0.04049


def snl_eta_star(phi: float) -> float:
    """Modified efficiency at modified flow coefficient ``phi``."""
    return ((((-1.638e6 * phi) + 182725.0) * phi - 8089.0) * phi + 168.6) * phi - 0.7069


def snl_map(phi: float, N: float, N_design: float) -> tuple[float, float, float]:
    """Evaluate the speed-corrected compressor map.

    Returns:
        (phi_star, psi, eta_0) where ``eta_0`` is the efficiency
        normalised to 1.0 at the design flow coefficient.
    """
    phi_star = phi * (N / N_design) ** 0.2
    psi_star = snl_psi(phi_star)
    eta_star = snl_eta_star(phi_star)
    psi = psi_star / (N_design / N) ** ((20.0 * phi_star) ** 3.0)
    eta_0 = eta_star * 1.47528 / (N_design / N) ** ((20.0 * phi_star) ** 5.0)
    return phi_star, psi, eta_0


@dataclass
class CompressorDesign:
    """Sized main compressor."""

    D_rotor: float = 0.0  # m
    N_design: float = 0.0  # rpm
    w_tip_ratio: float = 0.0  # tip speed / outlet speed of sound
    eta_design: float = 0.0
    phi_design: float = PHI_DESIGN


@dataclass
class CompressorOffDesign:
    """Main compressor operating point."""

    T_out: float = math.nan  # K
    P_out: float = math.nan  # kPa
    eta: float = 0.0
    phi: float = 0.0
    surge: bool = False
    w_tip_ratio: float = 0.0


class Compressor(CycleComponent):
    """Single-stage radial main compressor.

    Args:
        name: Component name.
    """

    component_type = "compressor"

    def __init__(self, name: str = "main_compressor"):
        self.name = name
        self._design: CompressorDesign | None = None
        self._od: CompressorOffDesign | None = None

    @property
    def design(self) -> CompressorDesign:
        if self._design is None:
            raise RuntimeError("Compressor has not been sized")
        return self._design

    @property
    def od_solved(self) -> CompressorOffDesign | None:
        return self._od

    @property
    def is_sized(self) -> bool:
        return self._design is not None

    def size(self, inlet: CycleNode, outlet: CycleNode, m_dot: float) -> CompressorDesign:
        """Size the rotor for the design-point process ``inlet`` -> ``outlet``.

        Args:
            inlet: Converged design inlet node.
            outlet: Converged design outlet node.
            m_dot: Design mass flow [kg/s].

        Returns:
            The new design record (also stored on the component).
        """
        ssnd_out = state_from_TD(outlet.T, outlet.D).ssnd
        h_s_out = state_from_PS(outlet.P, inlet.s).enth

        psi_design = snl_psi(PHI_DESIGN)

        w_i = h_s_out - inlet.h  # kJ/kg, positive isentropic work
        U_tip = math.sqrt(1000.0 * w_i / psi_design)  # m/s
        D_rotor = math.sqrt(m_dot / (PHI_DESIGN * inlet.D * U_tip))
        N_rad_s = U_tip * 2.0 / D_rotor

        self._design = CompressorDesign(
            D_rotor=D_rotor,
            N_design=N_rad_s * RAD_S_TO_RPM,
            w_tip_ratio=U_tip / ssnd_out,
            eta_design=w_i / (outlet.h - inlet.h),
        )
        logger.debug(
            "Sized main compressor: D=%.4f m, N=%.0f rpm", D_rotor, self._design.N_design
        )
        return self._design

    def off_design(self, T_in: float, P_in: float, m_dot: float, N: float) -> CompressorOffDesign:
        """Outlet state for a given inlet, mass flow and shaft speed.

        A flow coefficient below the surge limit is clamped and flagged.

        Raises:
            CycleError: Code 1 if the inlet is invalid or the flow is not
                reachable at this speed (non-positive head), code 2 if the
                outlet state cannot be resolved.
        """
        des = self.design
        try:
            inlet = state_from_TP(T_in, P_in)
        except PropertyError as exc:
            raise CycleError(COMPRESSOR_OUT_OF_MAP, "Compressor inlet state invalid") from exc

        U_tip = des.D_rotor * 0.5 * N * RPM_TO_RAD_S  # m/s
        phi = m_dot / (inlet.dens * U_tip * des.D_rotor**2)
        surge = phi < PHI_MIN
        if surge:
            phi = PHI_MIN

        _, psi, eta_0 = snl_map(phi, N, des.N_design)
        eta = max(eta_0 * des.eta_design, 0.0)

        if psi <= 0.0:
            raise CycleError(COMPRESSOR_OUT_OF_MAP, f"Non-positive head coefficient at phi={phi:.4f}")

        if eta <= 0.0:
            raise CycleError(COMPRESSOR_OUTLET_FAILED, "Compressor efficiency fell to zero")

        dh_s = psi * U_tip**2 * 0.001  # kJ/kg
        h_s_out = inlet.enth + dh_s
        h_out = inlet.enth + dh_s / eta

        try:
            P_out = state_from_HS(h_s_out, inlet.entr).pres
            outlet = state_from_PH(P_out, h_out)
        except PropertyError as exc:
            raise CycleError(COMPRESSOR_OUTLET_FAILED, "Compressor outlet state invalid") from exc

        self._od = CompressorOffDesign(
            T_out=outlet.temp,
            P_out=P_out,
            eta=eta,
            phi=phi,
            surge=surge,
            w_tip_ratio=U_tip / outlet.ssnd,
        )
        return self._od

    def design_summary(self) -> dict[str, Any]:
        des = self.design
        return {
            "D_rotor_m": des.D_rotor,
            "N_design_rpm": des.N_design,
            "eta_design": des.eta_design,
            "phi_design": des.phi_design,
            "w_tip_ratio": des.w_tip_ratio,
        }
