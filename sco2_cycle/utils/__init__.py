"""Utility modules for the sCO2 cycle package."""

from sco2_cycle.utils.constants import P_ATM, R_AIR, T_CELSIUS_OFFSET
from sco2_cycle.utils.units import power_to_kw, pressure_to_kpa, temperature_to_k

__all__ = ["P_ATM", "R_AIR", "T_CELSIUS_OFFSET", "power_to_kw", "pressure_to_kpa", "temperature_to_k"]
