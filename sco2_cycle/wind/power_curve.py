"""Single wind-turbine power model.

Looks up the turbine power curve at hub height and corrects it for air
density, control mode and losses.  The thrust coefficient follows from
the power coefficient through a cubic fit, so wake models only need the
power curve table.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import IntEnum

import numpy as np
from scipy.special import gammaln

from sco2_cycle.utils.constants import HOURS_PER_YEAR, P_ATM, R_AIR, RHO_AIR_STD, T_CELSIUS_OFFSET
from sco2_cycle.utils.interpolation import linear_interp_1d

logger = logging.getLogger(__name__)

DEFAULT_SHEAR_EXPONENT = 1.0 / 7.0
MIN_OUTPUT_FRACTION = 0.01  # of rated power; below this the turbine reports nothing
WEIBULL_REFERENCE_HEIGHT = 50.0  # m, height of the resource class wind speed

# Thrust coefficient as a cubic in the power coefficient
CT_FIT = (-1.453989e-2, 1.473506, -2.330823, 3.885123)


class WindFarmError(ValueError):
    """Invalid wind-farm or turbine input."""


class ControlMode(IntEnum):
    """Turbine power regulation."""

    VARIABLE_SPEED = 0
    PITCH = 1
    STALL = 2  # density ratio only


@dataclass
class PowerCurve:
    """Turbine power curve table, ascending in wind speed.

    Args:
        wind_speed: Hub-height wind speeds [m/s].
        power: Electrical output at each speed [kW].
        rpm: Rotor speed at each wind speed [rpm] (optional).
    """

    wind_speed: np.ndarray
    power: np.ndarray
    rpm: np.ndarray | None = None

    def __post_init__(self) -> None:
        self.wind_speed = np.asarray(self.wind_speed, dtype=float)
        self.power = np.asarray(self.power, dtype=float)
        if self.rpm is not None:
            self.rpm = np.asarray(self.rpm, dtype=float)

        if self.wind_speed.ndim != 1 or len(self.wind_speed) < 2:
            raise WindFarmError("Power curve needs at least two wind speeds")
        if self.power.shape != self.wind_speed.shape:
            raise WindFarmError("Power curve wind speed and power arrays differ in length")
        if self.rpm is not None and self.rpm.shape != self.wind_speed.shape:
            raise WindFarmError("Power curve wind speed and rpm arrays differ in length")
        if np.any(np.diff(self.wind_speed) < 0.0):
            raise WindFarmError("Power curve wind speeds must be ascending")

    def __len__(self) -> int:
        return len(self.wind_speed)

    def lookup(self, wind_speed: float) -> float:
        """Tabulated power at ``wind_speed`` [kW].

        Zero below the first table speed, the last tabulated power at or
        above the last speed.
        """
        ws = self.wind_speed
        if wind_speed >= ws[-1]:
            return float(self.power[-1])
        if wind_speed <= ws[0]:
            return 0.0
        return linear_interp_1d(ws, self.power, wind_speed)


def _default_curve() -> PowerCurve:
    ws = np.arange(0.0, 26.0)
    kw = np.array(
        [0, 0, 0, 0, 80, 230, 440, 720, 1080, 1500, 1900, 2100, 2150]
        + [2150] * 13,
        dtype=float,
    )
    return PowerCurve(wind_speed=ws, power=kw)


@dataclass
class TurbineSpec:
    """Turbine model shared by every turbine of a farm."""

    rotor_diameter: float = 90.0  # m
    hub_height: float = 80.0  # m
    power_curve: PowerCurve = field(default_factory=_default_curve)
    control_mode: ControlMode = ControlMode.PITCH
    cut_in_speed: float = 4.0  # m/s
    rated_power: float = 2150.0  # kW
    rated_speed: float = 12.0  # m/s
    losses_percent: float = 0.0  # fraction of output
    losses_absolute: float = 0.0  # kW
    shear_exponent: float = DEFAULT_SHEAR_EXPONENT
    measurement_height: float = 80.0  # m

    @property
    def rotor_radius(self) -> float:
        return 0.5 * self.rotor_diameter

    @property
    def rotor_area(self) -> float:
        return math.pi / 4.0 * self.rotor_diameter**2


@dataclass
class TurbineOutput:
    """Operating point of one turbine."""

    power: float = 0.0  # kW
    thrust_coeff: float = 0.0


def air_density(air_pressure_atm: float, air_temp_C: float) -> float:
    """Dry-air density [kg/m³] from pressure [atm] and temperature [°C]."""
    return air_pressure_atm * P_ATM / (R_AIR * (air_temp_C + T_CELSIUS_OFFSET))


def hub_height_wind_speed(spec: TurbineSpec, wind_speed: float) -> float:
    """Shear-correct a measured wind speed to hub height.

    Shear exponents above 1 are treated as unset and replaced with 1/7.
    """
    alpha = spec.shear_exponent if spec.shear_exponent <= 1.0 else DEFAULT_SHEAR_EXPONENT
    return wind_speed * (spec.hub_height / spec.measurement_height) ** alpha


def thrust_coefficient(power_coeff: float) -> float:
    c0, c1, c2, c3 = CT_FIT
    return max(0.0, c0 + c1 * power_coeff + c2 * power_coeff**2 + c3 * power_coeff**3)


def turbine_power(spec: TurbineSpec, wind_speed: float, rho_air: float) -> TurbineOutput:
    """Power and thrust coefficient of one turbine.

    Args:
        spec: Turbine model.
        wind_speed: Wind speed at the measurement height [m/s].
        rho_air: Air density [kg/m³].

    Returns:
        TurbineOutput; both values are zero when the output is below 1 %
        of rated power.
    """
    v_hub = hub_height_wind_speed(spec, wind_speed)

    power = spec.power_curve.lookup(v_hub)
    if v_hub < spec.cut_in_speed:
        power = 0.0

    density_ratio = rho_air / RHO_AIR_STD
    power *= density_ratio

    if spec.control_mode in (ControlMode.PITCH, ControlMode.VARIABLE_SPEED):
        v_rated = spec.rated_speed * density_ratio ** (1.0 / 3.0)
        if power > spec.rated_power or v_hub > v_rated:
            power = spec.rated_power

    if power <= MIN_OUTPUT_FRACTION * spec.rated_power:
        return TurbineOutput()

    power = power * (1.0 - spec.losses_percent) - spec.losses_absolute
    p_density = 0.5 * rho_air * v_hub**3
    power_coeff = max(0.0, 1000.0 * power / (p_density * spec.rotor_area))
    return TurbineOutput(power=power, thrust_coeff=thrust_coefficient(power_coeff))


def annual_energy_weibull(spec: TurbineSpec, weibull_k: float, resource_class: float) -> float:
    """Annual energy of one turbine from a Weibull wind distribution [kWh].

    Args:
        spec: Turbine model; the power curve is used without density or
            loss corrections.
        weibull_k: Weibull shape factor.
        resource_class: Mean wind speed at 50 m [m/s].
    """
    if weibull_k <= 0.0:
        raise WindFarmError(f"Weibull shape factor must be positive, got {weibull_k}")

    v_mean = (spec.hub_height / WEIBULL_REFERENCE_HEIGHT) ** spec.shear_exponent * resource_class
    scale = v_mean / math.exp(gammaln(1.0 + 1.0 / weibull_k))

    curve = spec.power_curve
    cumulative = 1.0 - np.exp(-((curve.wind_speed / scale) ** weibull_k))
    # First bin collects every speed up to the second table entry
    cumulative[0] = 0.0
    bins = np.diff(cumulative)
    energy = float(np.sum(HOURS_PER_YEAR * bins * curve.power[1:]))
    logger.debug("Weibull energy: k=%.2f, scale=%.2f m/s, %.0f kWh", weibull_k, scale, energy)
    return energy
