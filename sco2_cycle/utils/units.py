"""Unit conversion utilities.

A thin layer over pint with helpers for the quantities the cycle solver
consumes in its internal units: K, kPa and kW.
"""

from __future__ import annotations

import pint

# Module-level unit registry (singleton)
_ureg = pint.UnitRegistry()

Q_ = _ureg.Quantity


def pressure_to_kpa(value: float, unit: str) -> float:
    """Convert a pressure to kPa.

    Args:
        value: Numeric pressure value.
        unit: Source unit string (e.g. "bar", "psi", "MPa").

    Returns:
        Pressure in kPa.
    """
    return Q_(value, unit).to("kPa").magnitude


def temperature_to_k(value: float, unit: str) -> float:
    """Convert a temperature to Kelvin.

    Args:
        value: Numeric temperature value.
        unit: Source unit string (e.g. "degC", "degF").

    Returns:
        Temperature in K.
    """
    return Q_(value, unit).to("K").magnitude


def power_to_kw(value: float, unit: str) -> float:
    """Convert a power to kW."""
    return Q_(value, unit).to("kW").magnitude

