"""Wake models for wind-farm power evaluation.

All models work on turbines already sorted from most upwind to most
downwind, with coordinates in rotor radii.  Turbine 0 is evaluated
before the model runs; each model fills the remaining entries of a
:class:`TurbineArrays` in place.

- ``PQ_MODIFIED`` (Pat Quinlan): Gaussian deficits compounded
  multiplicatively over all upwind turbines.
- ``PARK``: top-hat wake expanding linearly with the wake decay
  constant; the largest upwind deficit wins.
- ``EDDY_VISCOSITY``: simplified Ainslie eddy-viscosity wake, marched
  downstream per turbine; the largest upwind deficit wins.
- ``PQ_ORIGINAL``: the original Pat Quinlan sweep, pushing each turbine's
  wake onto every downwind turbine in turn.

The Pat Quinlan added turbulence depends only on the axial spacing, not
on the crosswind offset.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum

import numpy as np

from sco2_cycle.utils.constants import DEG_TO_RAD
from sco2_cycle.wind.power_curve import TurbineSpec, WindFarmError, turbine_power

logger = logging.getLogger(__name__)

PQ_MAX_CROSSWIND = 20.0  # rotor radii; wakes further to the side are ignored
PQ_MIN_EXPONENT = -99.0
EFF_OFFSET = 0.0001  # kW, keeps the efficiency finite at zero output

# Eddy-viscosity model (Ainslie 1988)
MIN_DIAM_EV = 2.0  # rotor diameters, start of the far wake
VON_KARMAN = 0.4
K1_EV = 0.015
MAX_CT_EV = 0.999
MAX_TI_EV = 50.0  # %
EV_PROFILE_STEPS = 25
GAUSS_WIDTH_FACTOR = 3.56


class WakeModel(Enum):
    """Selectable wake model."""

    PQ_MODIFIED = "pq_modified"
    PARK = "park"
    EDDY_VISCOSITY = "eddy_viscosity"
    PQ_ORIGINAL = "pq_original"

    @property
    def display_name(self) -> str:
        return {
            WakeModel.PQ_MODIFIED: "Pat Quinlan Model",
            WakeModel.PARK: "Park Wake Model",
            WakeModel.EDDY_VISCOSITY: "Fast Eddy Viscosity",
            WakeModel.PQ_ORIGINAL: "Old Pat Quinlan Model",
        }[self]


@dataclass
class EVSettings:
    """Eddy-viscosity wake discretization."""

    axial_resolution: float = 0.5  # rotor diameters per column
    max_rotor_diameters: float = 50.0  # wake length stored
    ev_scale: float = 1.0
    min_deficit: float = 0.0002  # stop marching below this deficit
    min_thrust_coeff: float = 0.02
    use_filter: bool = True

    @property
    def n_columns(self) -> int:
        return int(self.max_rotor_diameters / self.axial_resolution) + 1


@dataclass
class TurbineArrays:
    """Per-turbine results in downwind order."""

    power: np.ndarray  # kW
    thrust: np.ndarray
    eff: np.ndarray  # %
    wind_speed: np.ndarray  # m/s
    turb_intensity: np.ndarray

    @classmethod
    def initial(cls, n: int, wind_speed: float, turb_intensity: float) -> TurbineArrays:
        return cls(
            power=np.zeros(n),
            thrust=np.zeros(n),
            eff=np.zeros(n),
            wind_speed=np.full(n, wind_speed, dtype=float),
            turb_intensity=np.full(n, turb_intensity, dtype=float),
        )

    def reorder(self, order: np.ndarray) -> TurbineArrays:
        return TurbineArrays(
            power=self.power[order],
            thrust=self.thrust[order],
            eff=self.eff[order],
            wind_speed=self.wind_speed[order],
            turb_intensity=self.turb_intensity[order],
        )

    def set_operating_point(self, i: int, spec: TurbineSpec, rho_air: float) -> None:
        """Evaluate turbine ``i`` at its wind speed and rate it against turbine 0."""
        out = turbine_power(spec, float(self.wind_speed[i]), rho_air)
        self.power[i] = out.power
        self.thrust[i] = out.thrust_coeff
        if self.power[0] < 0.0:
            self.eff[i] = 0.0
        else:
            self.eff[i] = 100.0 * (out.power + EFF_OFFSET) / (self.power[0] + EFF_OFFSET)


def coordtrans(north: float, east: float, wind_dir_deg: float) -> tuple[float, float]:
    """Rotate map coordinates into (downwind, crosswind) for a wind from ``wind_dir_deg``."""
    theta = (wind_dir_deg + 90.0) * DEG_TO_RAD
    downwind = east * math.cos(theta) - north * math.sin(theta)
    crosswind = east * math.sin(theta) + north * math.cos(theta)
    return downwind, crosswind


def circle_overlap(dist: float, r1: float, r2: float) -> float:
    """Overlap area of two circles with centres ``dist`` apart."""
    if dist < 0.0 or r1 < 0.0 or r2 < 0.0:
        return 0.0
    if dist > r1 + r2:
        return 0.0
    if r1 >= dist + r2:
        return math.pi * r2**2
    if r2 >= dist + r1:
        return math.pi * r1**2

    t1 = r1**2 * math.acos((dist**2 + r1**2 - r2**2) / (2.0 * dist * r1))
    t2 = r2**2 * math.acos((dist**2 + r2**2 - r1**2) / (2.0 * dist * r2))
    t3 = 0.5 * math.sqrt((-dist + r1 + r2) * (dist + r1 - r2) * (dist - r1 + r2) * (dist + r1 + r2))
    return t1 + t2 - t3


def simple_intersect(dist: float, r_turbine: float, r_wake: float) -> float:
    """Approximate fraction of a rotor inside a wake."""
    if dist < 0.0 or r_turbine < 0.0 or r_wake < 0.0:
        return 0.0
    if dist > r_turbine + r_wake:
        return 0.0
    if r_wake >= dist + r_turbine:
        return 1.0
    return min(1.0, max(0.0, (r_turbine + r_wake - dist) / (2.0 * r_turbine)))


def vel_delta_pq(crosswind: float, axial: float, thrust_coeff: float, turb_intensity: float) -> tuple[float, float]:
    """Pat Quinlan velocity deficit of one upwind turbine.

    Args:
        crosswind: Crosswind offset [rotor radii].
        axial: Downwind spacing [rotor radii].
        thrust_coeff: Upwind turbine thrust coefficient.
        turb_intensity: Turbulence intensity at the downwind turbine so far.

    Returns:
        Tuple of (deficit in [0, 1], updated turbulence intensity).
    """
    if crosswind > PQ_MAX_CROSSWIND or turb_intensity <= 0.0 or axial <= 0.0 or thrust_coeff <= 0.0:
        return 0.0, turb_intensity

    # Independent of the crosswind offset
    added = (thrust_coeff / 7.0) * (1.0 - 0.4 * math.log(2.0 * axial))
    ti = math.sqrt(added**2 + turb_intensity**2)

    aa = ti**2 * axial**2
    exponent = max(PQ_MIN_EXPONENT, -(crosswind**2) / (2.0 * aa))
    deficit = (thrust_coeff / (4.0 * aa)) * math.exp(exponent)
    return max(min(deficit, 1.0), 0.0), ti


def wake_deficit_park(crosswind: float, downwind: float, r_up: float, r_down: float, thrust_coeff: float, k: float) -> float:
    """Park model deficit; distances and radii in metres, ``k`` the wake decay constant."""
    if thrust_coeff > 1.0:
        return 0.0
    r_wake = r_up + k * downwind
    overlap = circle_overlap(crosswind, r_down, r_wake)
    return (1.0 - math.sqrt(1.0 - thrust_coeff)) * (r_up / r_wake) ** 2 * (overlap / (math.pi * r_down**2))


def pat_quinlan_modified(
    spec: TurbineSpec, rho_air: float, downwind: np.ndarray, crosswind: np.ndarray, out: TurbineArrays
) -> None:
    n = len(downwind)
    for i in range(1, n):
        speed_ratio = 1.0
        for j in range(i):
            deficit, out.turb_intensity[i] = vel_delta_pq(
                abs(crosswind[j] - crosswind[i]),
                abs(downwind[j] - downwind[i]),
                out.thrust[j],
                out.turb_intensity[i],
            )
            speed_ratio *= 1.0 - deficit
        out.wind_speed[i] *= speed_ratio
        out.set_operating_point(i, spec, rho_air)


def park(
    spec: TurbineSpec, rho_air: float, downwind: np.ndarray, crosswind: np.ndarray, out: TurbineArrays, k: float
) -> None:
    r = spec.rotor_radius
    for i in range(1, len(downwind)):
        deficit = 0.0
        for j in range(i):
            deficit = max(
                deficit,
                wake_deficit_park(
                    r * abs(crosswind[i] - crosswind[j]), r * abs(downwind[i] - downwind[j]), r, r, out.thrust[j], k
                ),
            )
        out.wind_speed[i] *= 1.0 - deficit
        out.set_operating_point(i, spec, rho_air)


def pat_quinlan_original(
    spec: TurbineSpec, rho_air: float, downwind: np.ndarray, crosswind: np.ndarray, out: TurbineArrays
) -> None:
    n = len(downwind)
    for i in range(n - 1):
        for j in range(i + 1, n):
            deficit, out.turb_intensity[j] = vel_delta_pq(
                abs(crosswind[j] - crosswind[i]),
                downwind[j] - downwind[i],
                out.thrust[i],
                out.turb_intensity[j],
            )
            out.wind_speed[j] *= 1.0 - deficit
            # Every turbine upwind of j has pushed its wake by now
            if j == i + 1:
                out.set_operating_point(j, spec, rho_air)


def _ev_filter(x: float, use_filter: bool) -> float:
    if x >= 5.5 or not use_filter:
        return 1.0
    if x < 4.5:
        return 0.65 - (-(x - 4.5) / 23.32) ** (1.0 / 3.0)
    return 0.65 + ((x - 4.5) / 23.32) ** (1.0 / 3.0)


class EddyViscosityWake:
    """Per-turbine centreline deficit and wake width tables.

    Row ``i`` describes the wake of the i-th most upwind turbine; column
    0 is the near wake at two rotor diameters, each further column one
    ``axial_resolution`` downstream.

    Args:
        n_turbines: Number of turbines in the farm.
        rotor_diameter: Rotor diameter [m].
        settings: Discretization and limits.
    """

    def __init__(self, n_turbines: int, rotor_diameter: float, settings: EVSettings | None = None):
        self.settings = settings or EVSettings()
        self.rotor_diameter = rotor_diameter
        shape = (n_turbines, self.settings.n_columns)
        self.deficits = np.zeros(shape)
        self.widths = np.zeros(shape)

    def reset(self) -> None:
        self.deficits.fill(0.0)
        self.widths.fill(0.0)

    def _interpolate(self, table: np.ndarray, turbine: int, axial_diam: float) -> float | None:
        """Linear interpolation along a row; ``None`` past the stored wake."""
        steps = (axial_diam - MIN_DIAM_EV) / self.settings.axial_resolution
        lower = int(steps)
        upper = lower + 1
        if upper >= table.shape[1]:
            return None
        frac = steps - lower
        return table[turbine, lower] * (1.0 - frac) + table[turbine, upper] * frac

    def velocity_deficit(self, turbine: int, axial_diam: float) -> float:
        """Centreline deficit ``axial_diam`` rotor diameters behind ``turbine``."""
        if axial_diam < MIN_DIAM_EV:
            # Near wake: stored deficit times the rotor diameter
            return self.rotor_diameter * self.deficits[turbine, 0]
        value = self._interpolate(self.deficits, turbine, axial_diam)
        return 0.0 if value is None else value

    def wake_width(self, turbine: int, axial_diam: float) -> float:
        """Wake half-width [m] ``axial_diam`` rotor diameters behind ``turbine``."""
        if axial_diam < MIN_DIAM_EV:
            return self.rotor_diameter * self.widths[turbine, 0]
        value = self._interpolate(self.widths, turbine, axial_diam)
        return 0.0 if value is None else self.rotor_diameter * max(1.0, value)

    def rotor_deficit(self, turbine: int, radial_diam: float, axial_diam: float) -> float:
        """Deficit averaged across a downwind rotor with a Gaussian profile."""
        centre = self.velocity_deficit(turbine, axial_diam)
        if centre <= 0.0:
            return 0.0

        D = self.rotor_diameter
        offset = radial_diam * D
        width = self.wake_width(turbine, axial_diam)
        step = D / EV_PROFILE_STEPS

        total = 0.0
        y = offset - 0.5 * D
        while y <= offset + 0.5 * D:
            total += centre * math.exp(-GAUSS_WIDTH_FACTOR * (y * y) / (width * width))
            y += step
        return total / (EV_PROFILE_STEPS + 1.0)

    def added_turbulence(self, thrust_coeff: float, axial_m: float) -> float:
        return max(0.0, (thrust_coeff / 7.0) * (1.0 - 0.4 * math.log(axial_m / self.rotor_diameter)))

    @staticmethod
    def total_turbulence(ambient: float, added: float, u_free: float, u_waked: float, overlap: float) -> float:
        if u_waked <= 0.0:
            return ambient
        f = math.sqrt(max(0.0, ambient**2 + added**2)) * u_free / u_waked
        return (1.0 - overlap) * ambient + overlap * f

    def fill(
        self,
        turbine: int,
        u_ambient: float,
        u_turbine: float,
        power: float,
        thrust_coeff: float,
        turb_intensity: float,
        dist_to_last_diam: float,
    ) -> None:
        """March the wake of ``turbine`` downstream and store it.

        Turbines that produce nothing or have no thrust leave their rows
        at zero.

        Args:
            turbine: Row to fill.
            u_ambient: Free-stream wind speed [m/s].
            u_turbine: Wind speed at the turbine [m/s].
            power: Turbine output [kW].
            thrust_coeff: Turbine thrust coefficient.
            turb_intensity: Turbulence intensity at the turbine [%].
            dist_to_last_diam: Spacing to the most downwind turbine [rotor diameters].
        """
        if power <= 0.0 or thrust_coeff <= 0.0:
            return

        cfg = self.settings
        ct = max(cfg.min_thrust_coeff, min(MAX_CT_EV, thrust_coeff))
        ti = min(turb_intensity, MAX_TI_EV)

        F = _ev_filter(MIN_DIAM_EV, cfg.use_filter)
        dm_initial = max(0.0, ct - 0.05 - ((16.0 * ct - 0.5) * ti / 1000.0))
        if dm_initial <= 0.0:
            return

        # Initial deficit relative to the free stream
        u_centre = u_turbine - dm_initial * u_turbine
        dm = (u_ambient - u_centre) / u_ambient
        bw = math.sqrt(GAUSS_WIDTH_FACTOR * ct / (8.0 * dm * (1.0 - 0.5 * dm)))

        n_cols = self.deficits.shape[1]
        u = np.zeros(n_cols)
        u[0] = cfg.ev_scale * (1.0 - dm)
        self.deficits[turbine, 0] = dm
        self.widths[turbine, 0] = bw

        for j in range(n_cols - 1):
            x = MIN_DIAM_EV + j * cfg.axial_resolution
            F = _ev_filter(x, cfg.use_filter)
            Km = F * VON_KARMAN**2 * ti / 100.0
            E = F * K1_EV * bw * (dm * cfg.ev_scale) + Km

            dudx = 16.0 * (u[j] ** 3 - u[j] ** 2 - u[j] + 1.0) * E / (u[j] * ct)
            u[j + 1] = u[j] + dudx * cfg.axial_resolution

            dm = (cfg.ev_scale - u[j + 1]) / cfg.ev_scale
            if dm > 0.0:
                bw = math.sqrt(GAUSS_WIDTH_FACTOR * ct / (8.0 * dm * (1.0 - 0.5 * dm)))

            self.deficits[turbine, j + 1] = dm
            self.widths[turbine, j + 1] = bw

            if dm <= cfg.min_deficit or x > dist_to_last_diam + cfg.axial_resolution or j >= n_cols - 2:
                break


def eddy_viscosity(
    spec: TurbineSpec,
    rho_air: float,
    downwind: np.ndarray,
    crosswind: np.ndarray,
    out: TurbineArrays,
    wakes: EddyViscosityWake,
) -> None:
    """Eddy-viscosity wake model.

    Turbines are processed strictly upwind to downwind: each turbine's
    wake table is filled right after its own operating point, before
    any turbine behind it is evaluated.
    """
    n = len(downwind)
    D = spec.rotor_diameter
    r = spec.rotor_radius
    u0 = float(out.wind_speed[0])

    wakes.reset()
    for i in range(n):
        deficit = 0.0
        total_ti = float(out.turb_intensity[i])
        for j in range(i):
            axial = abs(downwind[i] - downwind[j]) / 2.0
            radial = abs(crosswind[i] - crosswind[j]) / 2.0

            r_wake = wakes.wake_width(j, axial)
            if r_wake <= 0.0:
                continue

            d = wakes.rotor_deficit(j, radial, axial)
            u_waked = u0 * (1.0 - d)
            deficit = max(deficit, d)

            added = wakes.added_turbulence(out.thrust[j], axial * D)
            overlap = simple_intersect(radial * D, r, r_wake)
            total_ti = max(
                total_ti, wakes.total_turbulence(float(out.turb_intensity[i]), added, u0, u_waked, overlap)
            )

        out.wind_speed[i] = u0 * (1.0 - deficit)
        out.turb_intensity[i] = total_ti
        out.set_operating_point(i, spec, rho_air)

        dist_to_last = abs(downwind[n - 1] - downwind[i]) / 2.0
        wakes.fill(
            i, u0, float(out.wind_speed[i]), float(out.power[i]), float(out.thrust[i]), total_ti, dist_to_last
        )

    logger.debug("Eddy-viscosity wakes filled for %d turbines", n)


def run_wake_model(
    model: WakeModel,
    spec: TurbineSpec,
    rho_air: float,
    downwind: np.ndarray,
    crosswind: np.ndarray,
    out: TurbineArrays,
    wake_decay: float,
    wakes: EddyViscosityWake | None = None,
) -> None:
    """Dispatch to one wake model."""
    if model is WakeModel.PQ_MODIFIED:
        pat_quinlan_modified(spec, rho_air, downwind, crosswind, out)
    elif model is WakeModel.PARK:
        park(spec, rho_air, downwind, crosswind, out, wake_decay)
    elif model is WakeModel.EDDY_VISCOSITY:
        if wakes is None:
            raise WindFarmError("Eddy-viscosity model needs wake tables")
        eddy_viscosity(spec, rho_air, downwind, crosswind, out, wakes)
    elif model is WakeModel.PQ_ORIGINAL:
        pat_quinlan_original(spec, rho_air, downwind, crosswind, out)
    else:
        raise WindFarmError(f"Unknown wake model: {model}")
