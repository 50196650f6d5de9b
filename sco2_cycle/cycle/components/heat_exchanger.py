"""Heat exchanger model for the recompression cycle.

Two pieces live here:

* :func:`calculate_hxr_UA` — the conductance a counter-flow exchanger
  needs to transfer a given duty, found by splitting it into ``N``
  equal-duty sub-exchangers and summing effectiveness-NTU conductances
  over the segments.  Real-fluid property variation near the critical
  point is captured by resolving every node temperature from (P, h).
* :class:`HeatExchanger` — the design record of a recuperator, PHX or
  precooler, and its off-design scaling of conductance and pressure
  drop with mass flow.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

from sco2_cycle.core.co2_props import PropertyError, state_from_PH, state_from_TP
from sco2_cycle.cycle.components.base import CycleComponent
from sco2_cycle.cycle.errors import (
    HX_COLD_NODE_STATE,
    HX_COLD_PRESSURE_RISE,
    HX_HOT_INLET_STATE,
    HX_HOT_NODE_STATE,
    HX_HOT_PRESSURE_RISE,
    HX_INLET_TEMPERATURES,
    HX_NEGATIVE_DUTY,
    HX_UA_NOT_FINITE,
    CycleError,
    SecondLawViolation,
)

logger = logging.getLogger(__name__)

ZERO_DUTY = 1.0e-14  # kW


@dataclass
class HxrUAResult:
    """Conductance required for a duty, and the pinch temperature difference."""

    UA: float  # kW/K
    min_DT: float  # K


def _segment_ntu(eff: float, C_R: float) -> float:
    """Counter-flow NTU of one sub-exchanger; NaN when not defined."""
    if eff == 1.0:
        return math.nan
    if C_R != 1.0:
        arg = (1.0 - eff * C_R) / (1.0 - eff)
        if arg <= 0.0:
            return math.nan
        return math.log(arg) / (1.0 - C_R)
    return eff / (1.0 - eff)


def calculate_hxr_UA(
    N_sub: int,
    Q_dot: float,
    m_dot_c: float,
    m_dot_h: float,
    T_c_in: float,
    T_h_in: float,
    P_c_in: float,
    P_c_out: float,
    P_h_in: float,
    P_h_out: float,
) -> HxrUAResult:
    """Conductance of a counter-flow heat exchanger from its duty.

    Args:
        N_sub: Number of equal-duty sub-exchangers.
        Q_dot: Heat transfer rate [kW], must be non-negative.
        m_dot_c: Cold stream mass flow [kg/s].
        m_dot_h: Hot stream mass flow [kg/s].
        T_c_in: Cold inlet temperature [K].
        T_h_in: Hot inlet temperature [K].
        P_c_in: Cold inlet pressure [kPa].
        P_c_out: Cold outlet pressure [kPa].
        P_h_in: Hot inlet pressure [kPa].
        P_h_out: Hot outlet pressure [kPa].

    Returns:
        HxrUAResult with total UA [kW/K] and minimum node ΔT [K].

    Raises:
        SecondLawViolation: A cold node is at or above the hot node.
        CycleError: Non-physical inputs or a failed node state.
        PropertyError: The cold inlet state is invalid.
    """
    if Q_dot < 0.0:
        raise CycleError(HX_NEGATIVE_DUTY, f"Negative heat exchanger duty {Q_dot}")
    if T_h_in <= T_c_in:
        raise CycleError(
            HX_INLET_TEMPERATURES,
            f"Hot inlet {T_h_in:.2f} K is not above cold inlet {T_c_in:.2f} K",
        )
    if P_h_in < P_h_out:
        raise CycleError(HX_HOT_PRESSURE_RISE, "Hot side outlet pressure exceeds inlet")
    if P_c_in < P_c_out:
        raise CycleError(HX_COLD_PRESSURE_RISE, "Cold side outlet pressure exceeds inlet")

    if Q_dot <= ZERO_DUTY:
        return HxrUAResult(UA=0.0, min_DT=T_h_in - T_c_in)

    h_c_in = state_from_TP(T_c_in, P_c_in).enth
    try:
        h_h_in = state_from_TP(T_h_in, P_h_in).enth
    except PropertyError as exc:
        raise CycleError(HX_HOT_INLET_STATE, f"Hot inlet state failed: {exc}") from exc

    h_c_out = h_c_in + Q_dot / m_dot_c
    h_h_out = h_h_in - Q_dot / m_dot_h

    UA = 0.0
    min_DT = T_h_in
    h_h_prev = T_h_prev = h_c_prev = T_c_prev = 0.0

    for i in range(N_sub + 1):
        # Linear pressure and enthalpy profiles, node 0 at the hot inlet
        P_c = P_c_out + i * (P_c_in - P_c_out) / N_sub
        P_h = P_h_in - i * (P_h_in - P_h_out) / N_sub
        h_c = h_c_out + i * (h_c_in - h_c_out) / N_sub
        h_h = h_h_in - i * (h_h_in - h_h_out) / N_sub

        try:
            T_h = state_from_PH(P_h, h_h).temp
        except PropertyError as exc:
            raise CycleError(HX_HOT_NODE_STATE, f"Hot node {i} state failed") from exc
        try:
            T_c = state_from_PH(P_c, h_c).temp
        except PropertyError as exc:
            raise CycleError(HX_COLD_NODE_STATE, f"Cold node {i} state failed") from exc

        if T_c >= T_h:
            raise SecondLawViolation(f"Node {i}: T_cold {T_c:.2f} K >= T_hot {T_h:.2f} K")

        min_DT = min(min_DT, T_h - T_c)

        if i > 0:
            dT_h = T_h_prev - T_h
            dT_c = T_c_prev - T_c
            C_dot_h = m_dot_h * (h_h_prev - h_h) / dT_h if dT_h != 0.0 else math.inf  # kW/K
            C_dot_c = m_dot_c * (h_c_prev - h_c) / dT_c if dT_c != 0.0 else math.inf  # kW/K
            C_dot_min = min(C_dot_h, C_dot_c)
            C_dot_max = max(C_dot_h, C_dot_c)
            C_R = C_dot_min / C_dot_max if math.isfinite(C_dot_max) else 0.0
            eff = (Q_dot / N_sub) / (C_dot_min * (T_h_prev - T_c))
            UA += _segment_ntu(eff, C_R) * C_dot_min

        h_h_prev, T_h_prev, h_c_prev, T_c_prev = h_h, T_h, h_c, T_c

    if not math.isfinite(UA):
        raise CycleError(HX_UA_NOT_FINITE, "Heat exchanger UA is not finite")

    return HxrUAResult(UA=UA, min_DT=min_DT)


@dataclass
class HxDesignRecord:
    """Design point of a heat exchanger.

    Index 0 of the paired lists is the cold stream, index 1 the hot stream.
    """

    DP_design: list[float] = field(default_factory=lambda: [0.0, 0.0])  # kPa
    m_dot_design: list[float] = field(default_factory=lambda: [0.0, 0.0])  # kg/s
    UA_design: float = 0.0  # kW/K
    Q_dot_design: float = 0.0  # kW
    eff_design: float = 0.0
    min_DT_design: float = 0.0  # K
    N_sub: int = 10


class HeatExchanger(CycleComponent):
    """Heat exchanger scaled from its design record.

    Off-design conductance and pressure drop follow the usual
    turbulent-flow scaling:

        UA = UA_design · (½ (ṁ_c/ṁ_c,des + ṁ_h/ṁ_h,des))^0.8
        ΔP_i = ΔP_i,design · (ṁ_i/ṁ_i,des)^1.75

    Args:
        name: Component name (``"LTR"``, ``"HTR"``, ``"PHX"``, ``"PC"``).
    """

    component_type = "heat_exchanger"

    def __init__(self, name: str = "heat_exchanger"):
        self.name = name
        self._design: HxDesignRecord | None = None

    def initialize(self, record: HxDesignRecord) -> None:
        """Replace the design record."""
        self._design = record

    @property
    def design(self) -> HxDesignRecord | None:
        return self._design

    @property
    def is_sized(self) -> bool:
        return self._design is not None

    def _require_design(self) -> HxDesignRecord:
        if self._design is None:
            raise RuntimeError(f"Heat exchanger '{self.name}' has no design record")
        return self._design

    def pressure_drops(self, m_dots: list[float]) -> list[float]:
        """Off-design pressure drops [kPa] for stream flows ``m_dots``."""
        des = self._require_design()
        drops = []
        for DP, m_dot, m_dot_des in zip(des.DP_design, m_dots, des.m_dot_design):
            if m_dot_des <= 0.0:
                drops.append(0.0)
            else:
                drops.append(DP * (m_dot / m_dot_des) ** 1.75)
        return drops

    def conductance(self, m_dots: list[float]) -> float:
        """Off-design conductance [kW/K] for stream flows ``m_dots``."""
        des = self._require_design()
        m_dot_ratio = 0.5 * (m_dots[0] / des.m_dot_design[0] + m_dots[1] / des.m_dot_design[1])
        return des.UA_design * m_dot_ratio**0.8

    def design_summary(self) -> dict[str, Any]:
        des = self._require_design()
        return {
            "UA_kW_K": des.UA_design,
            "Q_dot_kW": des.Q_dot_design,
            "effectiveness": des.eff_design,
            "min_DT_K": des.min_DT_design,
            "dp_cold_kPa": des.DP_design[0],
            "dp_hot_kPa": des.DP_design[1],
        }
