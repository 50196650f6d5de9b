"""Wind-farm power evaluation.

:class:`WakeEngine` evaluates a :class:`FarmInput` at one wind speed and
direction:

1. check the turbine count,
2. evaluate a free-stream turbine; zero output means a zero farm,
3. rotate coordinates into downwind/crosswind axes, shift them to start
   at zero, scale to rotor radii and sort turbines downwind,
4. run the selected wake model,
5. restore the input turbine order and sum the farm power.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from sco2_cycle.wind.power_curve import TurbineSpec, WindFarmError, air_density, turbine_power
from sco2_cycle.wind.wake_models import (
    EddyViscosityWake,
    EVSettings,
    TurbineArrays,
    WakeModel,
    coordtrans,
    run_wake_model,
)

logger = logging.getLogger(__name__)

MAX_WIND_TURBINES = 1000


@dataclass
class FarmInput:
    """Farm layout and wake model configuration."""

    turbine: TurbineSpec = field(default_factory=TurbineSpec)
    x: np.ndarray = field(default_factory=lambda: np.array([0.0]))  # m, east
    y: np.ndarray = field(default_factory=lambda: np.array([0.0]))  # m, north
    wake_model: WakeModel = WakeModel.PQ_MODIFIED
    turbulence_intensity: float = 0.1
    wake_decay: float = 0.07  # Park model wake expansion
    ev: EVSettings = field(default_factory=EVSettings)

    def __post_init__(self) -> None:
        self.x = np.atleast_1d(np.asarray(self.x, dtype=float))
        self.y = np.atleast_1d(np.asarray(self.y, dtype=float))

    @property
    def n_turbines(self) -> int:
        return len(self.x)

    def validate(self) -> None:
        """Raise :class:`WindFarmError` for an unusable layout."""
        n = self.n_turbines
        if n < 1 or n > MAX_WIND_TURBINES:
            raise WindFarmError(
                f"Number of wind turbines must be between 1 and {MAX_WIND_TURBINES}, got {n}"
            )
        if len(self.y) != n:
            raise WindFarmError(f"Layout has {n} x coordinates but {len(self.y)} y coordinates")
        if self.turbine.rotor_diameter <= 0.0:
            raise WindFarmError("Rotor diameter must be positive")


@dataclass
class FarmResult:
    """Farm output at one wind condition, per-turbine arrays in input order."""

    farm_power: float  # kW
    power: np.ndarray  # kW
    thrust: np.ndarray
    eff: np.ndarray  # %, relative to the most upwind turbine
    wind_speed: np.ndarray  # m/s
    turb_intensity: np.ndarray

    def summary(self) -> dict[str, float]:
        return {
            "farm_power_kW": self.farm_power,
            "n_turbines": len(self.power),
            "min_eff_pct": float(np.min(self.eff)),
            "mean_wind_speed_m_s": float(np.mean(self.wind_speed)),
        }


class WakeEngine:
    """Reusable farm evaluator.

    The eddy-viscosity wake tables are allocated once here and refilled
    on every call, so an engine is not reentrant.

    Args:
        farm: Farm layout and model selection.

    Raises:
        WindFarmError: Invalid layout.
    """

    def __init__(self, farm: FarmInput):
        farm.validate()
        self.farm = farm
        self._wakes: EddyViscosityWake | None = None
        if farm.wake_model is WakeModel.EDDY_VISCOSITY:
            self._wakes = EddyViscosityWake(farm.n_turbines, farm.turbine.rotor_diameter, farm.ev)

    def wind_power(
        self,
        wind_speed: float,
        wind_dir: float,
        air_temp: float = 15.0,
        air_pressure: float = 1.0,
    ) -> FarmResult:
        """Evaluate the farm.

        Args:
            wind_speed: Wind speed at the measurement height [m/s].
            wind_dir: Direction the wind blows from [deg, 0 = north].
            air_temp: Dry-bulb temperature [°C].
            air_pressure: Barometric pressure [atm].

        Returns:
            FarmResult in input turbine order.
        """
        farm = self.farm
        spec = farm.turbine
        n = farm.n_turbines
        rho = air_density(air_pressure, air_temp)

        out = TurbineArrays.initial(n, wind_speed, farm.turbulence_intensity)
        free = turbine_power(spec, wind_speed, rho)

        if n == 1 or free.power <= 0.0:
            # A single turbine sees no wakes; a stopped upwind turbine stops them all
            if free.power > 0.0:
                out.power[0] = free.power
                out.thrust[0] = free.thrust_coeff
                out.eff[0] = 0.0 if free.power < 1.0 else 100.0
            return self._result(out)

        downwind = np.empty(n)
        crosswind = np.empty(n)
        for i in range(n):
            downwind[i], crosswind[i] = coordtrans(farm.y[i], farm.x[i], wind_dir)

        radius = spec.rotor_radius
        downwind = (downwind - downwind.min()) / radius
        crosswind = (crosswind - crosswind.min()) / radius

        order = np.argsort(downwind, kind="stable")
        downwind = downwind[order]
        crosswind = crosswind[order]

        out.power[0] = free.power
        out.thrust[0] = free.thrust_coeff
        out.eff[0] = 0.0 if free.power < 1.0 else 100.0

        run_wake_model(farm.wake_model, spec, rho, downwind, crosswind, out, farm.wake_decay, self._wakes)

        inverse = np.empty(n, dtype=int)
        inverse[order] = np.arange(n)
        result = self._result(out.reorder(inverse))
        logger.debug(
            "Farm of %d turbines (%s): %.1f kW at %.1f m/s from %.0f deg",
            n,
            farm.wake_model.display_name,
            result.farm_power,
            wind_speed,
            wind_dir,
        )
        return result

    @staticmethod
    def _result(out: TurbineArrays) -> FarmResult:
        return FarmResult(
            farm_power=float(np.sum(out.power)),
            power=out.power,
            thrust=out.thrust,
            eff=out.eff,
            wind_speed=out.wind_speed,
            turb_intensity=out.turb_intensity,
        )


def wind_power(
    farm: FarmInput,
    wind_speed: float,
    wind_dir: float,
    air_temp: float = 15.0,
    air_pressure: float = 1.0,
) -> FarmResult:
    """Evaluate a farm once; see :meth:`WakeEngine.wind_power`."""
    return WakeEngine(farm).wind_power(wind_speed, wind_dir, air_temp, air_pressure)
