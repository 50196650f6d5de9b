"""CO2 property oracle wrapping CoolProp.

Every cycle calculation resolves its thermodynamic states through the
``state_from_*`` functions in this module.  Each takes two independent
intensive properties and returns a full :class:`CO2State`, or raises
:class:`PropertyError` carrying an integer code that identifies the
failing input pair.  The cycle solver forwards these codes unchanged.

Units follow the cycle solver convention rather than SI:

    T [K], P [kPa], h [kJ/kg], s [kJ/(kg·K)], D [kg/m³], ssnd [m/s]
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import lru_cache

import CoolProp.CoolProp as CP

logger = logging.getLogger(__name__)

# Critical point and validity envelope
T_CRIT = 304.1282  # K
P_CRIT = 7377.3  # kPa
T_LOWER_LIMIT = 216.592  # K, triple point
T_UPPER_LIMIT = 1100.0  # K
P_UPPER_LIMIT = 30000.0  # kPa

# Error codes, one per input pair
TP_ERROR = 101
PS_ERROR = 102
PH_ERROR = 103
HS_ERROR = 104
TD_ERROR = 105


class PropertyError(Exception):
    """Raised when a CO2 state lies outside the valid property envelope.

    Attributes:
        code: Integer code of the failing input pair (101..105).
    """

    def __init__(self, code: int, message: str = ""):
        self.code = code
        super().__init__(message or f"CO2 property evaluation failed (code {code})")


@dataclass
class CO2State:
    """A fully resolved CO2 state."""

    temp: float = math.nan  # K
    pres: float = math.nan  # kPa
    enth: float = math.nan  # kJ/kg
    entr: float = math.nan  # kJ/(kg·K)
    dens: float = math.nan  # kg/m³
    ssnd: float = math.nan  # m/s


class CO2Fluid:
    """Low-level CoolProp state for carbon dioxide.

    Wraps a single ``AbstractState`` instance, so an instance must not be
    shared between threads.

    Args:
        backend: CoolProp backend string (``"HEOS"`` or ``"REFPROP"``).
    """

    def __init__(self, backend: str = "HEOS"):
        self.backend = backend
        self._state = CP.AbstractState(backend, "CO2")

    def _update(self, code: int, input_pair: int, val1: float, val2: float) -> CO2State:
        if not (math.isfinite(val1) and math.isfinite(val2)):
            raise PropertyError(code, f"Non-finite inputs ({val1}, {val2})")
        try:
            self._state.update(input_pair, val1, val2)
            T = self._state.T()
            P = self._state.p() * 1e-3
            h = self._state.hmass() * 1e-3
            s = self._state.smass() * 1e-3
            D = self._state.rhomass()
        except ValueError as exc:
            raise PropertyError(code, f"CO2 state update failed: {exc}") from exc

        if not (T_LOWER_LIMIT <= T <= T_UPPER_LIMIT) or not (0.0 < P <= P_UPPER_LIMIT):
            raise PropertyError(code, f"CO2 state T={T:.2f} K, P={P:.1f} kPa outside envelope")

        if self._state.phase() == CP.iphase_twophase:
            ssnd = math.nan
        else:
            try:
                ssnd = self._state.speed_sound()
            except ValueError:
                ssnd = math.nan

        return CO2State(temp=T, pres=P, enth=h, entr=s, dens=D, ssnd=ssnd)

    def from_TP(self, T: float, P: float) -> CO2State:
        """State at temperature [K] and pressure [kPa]."""
        if not (T_LOWER_LIMIT <= T <= T_UPPER_LIMIT) or not (0.0 < P <= P_UPPER_LIMIT):
            raise PropertyError(TP_ERROR, f"T={T} K, P={P} kPa outside envelope")
        return self._update(TP_ERROR, CP.PT_INPUTS, P * 1e3, T)

    def from_PS(self, P: float, s: float) -> CO2State:
        """State at pressure [kPa] and entropy [kJ/(kg·K)]."""
        return self._update(PS_ERROR, CP.PSmass_INPUTS, P * 1e3, s * 1e3)

    def from_PH(self, P: float, h: float) -> CO2State:
        """State at pressure [kPa] and enthalpy [kJ/kg]."""
        return self._update(PH_ERROR, CP.HmassP_INPUTS, h * 1e3, P * 1e3)

    def from_HS(self, h: float, s: float) -> CO2State:
        """State at enthalpy [kJ/kg] and entropy [kJ/(kg·K)]."""
        return self._update(HS_ERROR, CP.HmassSmass_INPUTS, h * 1e3, s * 1e3)

    def from_TD(self, T: float, D: float) -> CO2State:
        """State at temperature [K] and density [kg/m³]."""
        if D <= 0.0:
            raise PropertyError(TD_ERROR, f"Density must be positive, got {D}")
        return self._update(TD_ERROR, CP.DmassT_INPUTS, D, T)


@lru_cache(maxsize=1)
def get_co2() -> CO2Fluid:
    """Return the shared module-level CO2 fluid."""
    logger.debug("Creating shared CO2 property state")
    return CO2Fluid()


def state_from_TP(T: float, P: float) -> CO2State:
    return get_co2().from_TP(T, P)


def state_from_PS(P: float, s: float) -> CO2State:
    return get_co2().from_PS(P, s)


def state_from_PH(P: float, h: float) -> CO2State:
    return get_co2().from_PH(P, h)


def state_from_HS(h: float, s: float) -> CO2State:
    return get_co2().from_HS(h, s)


def state_from_TD(T: float, D: float) -> CO2State:
    return get_co2().from_TD(T, D)


def p_pseudocritical(T: float) -> float:
    """Pseudo-critical pressure [kPa] of CO2 at temperature T [K].

    Quadratic fit of the locus of maximum isobaric heat capacity above
    the critical point.
    """
    return (0.191448 * T + 45.6661) * T - 24213.3
