"""Two-stage recompressor model.

The recompressor is built from two stages of the main compressor's
non-dimensional map on a common shaft.  Sizing finds the intermediate
pressure at which both stages run at the design flow coefficient while
delivering the overall design efficiency; off-design evaluation finds the
first-stage flow coefficient (and hence the shaft speed) that delivers
the required outlet pressure.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from sco2_cycle.core.co2_props import state_from_HS, state_from_PH, state_from_PS, state_from_TP
from sco2_cycle.cycle.components.base import CycleComponent, CycleNode
from sco2_cycle.cycle.components.compressor import (
    PHI_DESIGN,
    PHI_MIN,
    RAD_S_TO_RPM,
    RPM_TO_RAD_S,
    snl_map,
    snl_psi,
)
from sco2_cycle.cycle.errors import RECOMPRESSOR_NOT_CONVERGED, CycleError
from sco2_cycle.cycle.iteration import Bracket, secant_guess

logger = logging.getLogger(__name__)

SIZING_MAX_ITER = 100
SIZING_TOL = 1.0e-8
OFF_DESIGN_MAX_ITER = 100
OFF_DESIGN_REL_TOL = 1.0e-9


@dataclass
class RecompressorDesign:
    """Sized two-stage recompressor."""

    D_rotor: float = 0.0  # m, first stage
    D_rotor_2: float = 0.0  # m, second stage
    N_design: float = 0.0  # rpm
    eta_design: float = 0.0  # stage efficiency
    phi_design: float = PHI_DESIGN


@dataclass
class RecompressorOffDesign:
    """Recompressor operating point."""

    T_out: float = math.nan  # K
    N: float = 0.0  # rpm
    eta: float = 0.0  # overall isentropic efficiency
    phi: float = 0.0  # first stage
    phi_2: float = 0.0  # second stage
    surge: bool = False
    w_tip_ratio: float = 0.0


class Recompressor(CycleComponent):
    """Two-stage radial recompressor.

    Args:
        name: Component name.
    """

    component_type = "recompressor"

    def __init__(self, name: str = "recompressor"):
        self.name = name
        self._design: RecompressorDesign | None = None
        self._od: RecompressorOffDesign | None = None

    @property
    def design(self) -> RecompressorDesign:
        if self._design is None:
            raise RuntimeError("Recompressor has not been sized")
        return self._design

    @property
    def od_solved(self) -> RecompressorOffDesign | None:
        return self._od

    @property
    def is_sized(self) -> bool:
        return self._design is not None

    def size(self, inlet: CycleNode, outlet: CycleNode, m_dot: float) -> RecompressorDesign:
        """Size both stages for the design-point process ``inlet`` -> ``outlet``.

        Iterates on the intermediate pressure until the second stage runs
        at the design flow coefficient and both stages share the same
        efficiency.

        Raises:
            CycleError: Code 1 if the intermediate pressure does not converge.
        """
        h_s_out = state_from_PS(outlet.P, inlet.s).enth

        eta_design = (h_s_out - inlet.h) / (outlet.h - inlet.h)
        psi_design = snl_psi(PHI_DESIGN)

        bracket = Bracket(
            lower=inlet.P + 1.0e-6,
            upper=outlet.P - 1.0e-6,
            last_guess=1.0e12,
            last_residual=0.0,
            limit_step=True,
        )
        eta_stage = eta_design

        D_rotor_1 = D_rotor_2 = N_design = math.nan
        for _ in range(SIZING_MAX_ITER):
            P_int = bracket.guess

            # First stage
            w_i = state_from_PS(P_int, inlet.s).enth - inlet.h
            U_tip_1 = math.sqrt(1000.0 * w_i / psi_design)
            D_rotor_1 = math.sqrt(m_dot / (PHI_DESIGN * inlet.D * U_tip_1))
            N_design = (U_tip_1 * 2.0 / D_rotor_1) * RAD_S_TO_RPM
            h_int = inlet.h + w_i / eta_stage
            intermediate = state_from_PH(P_int, h_int)

            # Second stage on the same shaft
            w_i = state_from_PS(outlet.P, intermediate.entr).enth - h_int
            U_tip_2 = math.sqrt(1000.0 * w_i / psi_design)
            D_rotor_2 = 2.0 * U_tip_2 / (N_design * RPM_TO_RAD_S)
            phi = m_dot / (intermediate.dens * U_tip_2 * D_rotor_2**2)
            eta_2_req = w_i / (outlet.h - h_int)

            residual = PHI_DESIGN - phi
            if abs(residual) <= SIZING_TOL and abs(eta_stage - eta_2_req) <= SIZING_TOL:
                break

            # A negative residual means the intermediate pressure is too high
            bracket.update(residual, root_above=residual >= 0.0)
            eta_stage = 0.5 * (eta_stage + eta_2_req)
        else:
            raise CycleError(RECOMPRESSOR_NOT_CONVERGED, "Recompressor sizing did not converge")

        self._design = RecompressorDesign(
            D_rotor=D_rotor_1,
            D_rotor_2=D_rotor_2,
            N_design=N_design,
            eta_design=eta_stage,
        )
        logger.debug(
            "Sized recompressor: D1=%.4f m, D2=%.4f m, N=%.0f rpm", D_rotor_1, D_rotor_2, N_design
        )
        return self._design

    def _stage(self, phi: float, N: float) -> tuple[float, float]:
        """Head coefficient and stage efficiency at flow coefficient ``phi``."""
        des = self.design
        _, psi, eta_0 = snl_map(phi, N, des.N_design)
        eta_stage = max(eta_0 * des.eta_design, 0.0)
        if eta_stage <= 0.0:
            raise CycleError(RECOMPRESSOR_NOT_CONVERGED, f"Recompressor stage efficiency is zero at phi={phi:.4f}")
        return psi, eta_stage

    def off_design(self, T_in: float, P_in: float, m_dot: float, P_out: float) -> RecompressorOffDesign:
        """Operating point delivering ``P_out`` from the given inlet and flow.

        The shaft speed is free: the first-stage flow coefficient is
        iterated with the secant method until the computed outlet pressure
        matches ``P_out``.

        Raises:
            CycleError: Code 1 if the iteration does not converge.
            PropertyError: If an intermediate state is invalid.
        """
        des = self.design
        inlet = state_from_TP(T_in, P_in)

        phi_1 = PHI_DESIGN
        last_phi_1 = last_residual = math.nan
        first_pass = True

        for _ in range(OFF_DESIGN_MAX_ITER):
            # First stage
            U_tip_1 = m_dot / (phi_1 * inlet.dens * des.D_rotor**2)
            N = (U_tip_1 * 2.0 / des.D_rotor) * RAD_S_TO_RPM
            psi, eta_stage_1 = self._stage(phi_1, N)
            dh_s = psi * U_tip_1**2 * 0.001
            h_int = inlet.enth + dh_s / eta_stage_1

            P_int = state_from_HS(inlet.enth + dh_s, inlet.entr).pres
            intermediate = state_from_PH(P_int, h_int)

            # Second stage
            U_tip_2 = des.D_rotor_2 * 0.5 * N * RPM_TO_RAD_S
            phi_2 = m_dot / (intermediate.dens * U_tip_2 * des.D_rotor_2**2)
            psi, eta_stage_2 = self._stage(phi_2, N)
            dh_s = psi * U_tip_2**2 * 0.001
            h_out = h_int + dh_s / eta_stage_2

            P_out_calc = state_from_HS(h_int + dh_s, intermediate.entr).pres

            residual = P_out - P_out_calc
            if abs(residual) / P_out <= OFF_DESIGN_REL_TOL:
                break

            if first_pass:
                next_phi = phi_1 * 1.0001
                first_pass = False
            else:
                next_phi = secant_guess(phi_1, residual, last_phi_1, last_residual)
                if not math.isfinite(next_phi) or next_phi <= 0.0:
                    raise CycleError(RECOMPRESSOR_NOT_CONVERGED, "Recompressor flow coefficient diverged")

            last_phi_1, last_residual = phi_1, residual
            phi_1 = next_phi
        else:
            raise CycleError(RECOMPRESSOR_NOT_CONVERGED, "Recompressor off-design did not converge")

        outlet = state_from_PH(P_out_calc, h_out)
        h_s_out = state_from_PS(P_out_calc, inlet.entr).enth

        self._od = RecompressorOffDesign(
            T_out=outlet.temp,
            N=N,
            eta=(h_s_out - inlet.enth) / (h_out - inlet.enth),
            phi=phi_1,
            phi_2=phi_2,
            surge=phi_1 < PHI_MIN or phi_2 < PHI_MIN,
            w_tip_ratio=max(U_tip_1 / intermediate.ssnd, U_tip_2 / outlet.ssnd),
        )
        return self._od

    def design_summary(self) -> dict[str, Any]:
        des = self.design
        return {
            "D_rotor_1_m": des.D_rotor,
            "D_rotor_2_m": des.D_rotor_2,
            "N_design_rpm": des.N_design,
            "eta_design": des.eta_design,
        }
