"""Tests for the wind-farm wake engine."""

import math

import numpy as np
import pytest

from sco2_cycle.utils.constants import RHO_AIR_STD
from sco2_cycle.wind.farm import MAX_WIND_TURBINES, FarmInput, WakeEngine, wind_power
from sco2_cycle.wind.power_curve import (
    PowerCurve,
    TurbineSpec,
    WindFarmError,
    air_density,
    annual_energy_weibull,
    hub_height_wind_speed,
    thrust_coefficient,
    turbine_power,
)
from sco2_cycle.wind.wake_models import (
    WakeModel,
    circle_overlap,
    coordtrans,
    simple_intersect,
    vel_delta_pq,
    wake_deficit_park,
)

ALL_MODELS = list(WakeModel)


def _row(n: int = 3, spacing: float = 630.0, model: WakeModel = WakeModel.PQ_MODIFIED) -> FarmInput:
    """Turbines in a west-east line."""
    return FarmInput(x=np.arange(n) * spacing, y=np.zeros(n), wake_model=model)


class TestPowerCurve:
    def setup_method(self):
        self.curve = TurbineSpec().power_curve

    def test_below_table(self):
        assert self.curve.lookup(-1.0) == 0.0
        assert self.curve.lookup(0.0) == 0.0

    def test_above_table(self):
        assert self.curve.lookup(30.0) == pytest.approx(2150.0)

    def test_interpolation(self):
        assert self.curve.lookup(4.5) == pytest.approx(155.0)

    def test_descending_rejected(self):
        with pytest.raises(WindFarmError):
            PowerCurve(wind_speed=[5.0, 4.0], power=[1.0, 2.0])

    def test_length_mismatch_rejected(self):
        with pytest.raises(WindFarmError):
            PowerCurve(wind_speed=[4.0, 5.0, 6.0], power=[1.0, 2.0])


class TestTurbine:
    """Single-turbine operating point."""

    def test_air_density(self):
        assert air_density(1.0, 15.0) == pytest.approx(1.225, rel=1e-3)

    def test_shear_correction(self):
        spec = TurbineSpec(hub_height=160.0, measurement_height=80.0)
        assert hub_height_wind_speed(spec, 10.0) == pytest.approx(10.0 * 2.0 ** (1.0 / 7.0))

    def test_unset_shear_exponent(self):
        spec = TurbineSpec(hub_height=160.0, measurement_height=80.0, shear_exponent=5.0)
        assert hub_height_wind_speed(spec, 10.0) == pytest.approx(10.0 * 2.0 ** (1.0 / 7.0))

    def test_below_cut_in(self):
        out = turbine_power(TurbineSpec(), 3.0, RHO_AIR_STD)
        assert out.power == 0.0
        assert out.thrust_coeff == 0.0

    def test_rated(self):
        out = turbine_power(TurbineSpec(), 20.0, RHO_AIR_STD)
        assert out.power == pytest.approx(2150.0)

    def test_losses(self):
        spec = TurbineSpec(losses_percent=0.1, losses_absolute=5.0)
        assert turbine_power(spec, 20.0, RHO_AIR_STD).power == pytest.approx(2150.0 * 0.9 - 5.0)

    def test_thrust_coefficient(self):
        assert thrust_coefficient(0.0) == 0.0
        assert 0.0 < thrust_coefficient(0.45) < 1.0


class TestGeometry:
    def test_coordtrans_westerly(self):
        downwind, crosswind = coordtrans(0.0, 100.0, 270.0)
        assert downwind == pytest.approx(100.0)
        assert crosswind == pytest.approx(0.0, abs=1e-9)

    def test_coordtrans_northerly(self):
        downwind, _ = coordtrans(-100.0, 0.0, 0.0)
        assert downwind == pytest.approx(100.0)

    def test_overlap_disjoint(self):
        assert circle_overlap(10.0, 2.0, 3.0) == 0.0

    def test_overlap_contained(self):
        assert circle_overlap(0.5, 5.0, 1.0) == pytest.approx(math.pi)
        assert circle_overlap(0.5, 1.0, 5.0) == pytest.approx(math.pi)

    def test_overlap_symmetric(self):
        assert circle_overlap(1.5, 1.0, 2.0) == pytest.approx(circle_overlap(1.5, 2.0, 1.0))

    def test_overlap_equal_circles(self):
        # Lens of two unit circles one radius apart
        expected = 2.0 * math.pi / 3.0 - math.sqrt(3.0) / 2.0
        assert circle_overlap(1.0, 1.0, 1.0) == pytest.approx(expected)

    def test_simple_intersect(self):
        assert simple_intersect(10.0, 1.0, 2.0) == 0.0
        assert simple_intersect(0.0, 1.0, 2.0) == 1.0
        assert simple_intersect(2.0, 1.0, 2.0) == pytest.approx(0.5)


class TestWakeDeficits:
    def test_pq_no_thrust(self):
        assert vel_delta_pq(0.0, 14.0, 0.0, 0.1) == (0.0, 0.1)

    def test_pq_far_to_the_side(self):
        assert vel_delta_pq(25.0, 14.0, 0.8, 0.1) == (0.0, 0.1)

    def test_pq_turbulence_independent_of_offset(self):
        _, ti_inline = vel_delta_pq(0.0, 14.0, 0.8, 0.1)
        _, ti_offset = vel_delta_pq(15.0, 14.0, 0.8, 0.1)
        assert ti_inline == pytest.approx(ti_offset)
        assert ti_inline > 0.1

    def test_park_fully_waked(self):
        r, k, ct = 45.0, 0.07, 0.8
        r_wake = r + k * 630.0
        expected = (1.0 - math.sqrt(1.0 - ct)) * (r / r_wake) ** 2
        assert wake_deficit_park(0.0, 630.0, r, r, ct, k) == pytest.approx(expected)

    def test_park_outside_wake(self):
        assert wake_deficit_park(500.0, 630.0, 45.0, 45.0, 0.8, 0.07) == 0.0


class TestFarm:
    """Whole-farm evaluations."""

    @pytest.mark.parametrize("model", ALL_MODELS)
    def test_single_turbine(self, model):
        farm = FarmInput(wake_model=model)
        result = wind_power(farm, 10.0, 270.0)
        free = turbine_power(farm.turbine, 10.0, air_density(1.0, 15.0))
        assert result.farm_power == pytest.approx(free.power)
        assert result.eff[0] == pytest.approx(100.0)

    @pytest.mark.parametrize("model", ALL_MODELS)
    def test_downstream_turbines_waked(self, model):
        result = wind_power(_row(model=model), 10.0, 270.0)
        assert result.power[0] > result.power[1]
        assert result.eff[0] == pytest.approx(100.0)
        assert np.all(result.eff[1:] < 100.0)
        assert result.farm_power == pytest.approx(result.power.sum())

    @pytest.mark.parametrize("model", ALL_MODELS)
    def test_input_order_irrelevant(self, model):
        forward = wind_power(_row(model=model), 10.0, 270.0)
        farm = _row(model=model)
        farm.x = farm.x[::-1].copy()
        backward = wind_power(farm, 10.0, 270.0)
        np.testing.assert_allclose(backward.power, forward.power[::-1])
        assert backward.farm_power == pytest.approx(forward.farm_power)

    def test_crosswind_row_unwaked(self):
        """Wind along the row's normal leaves every turbine in free stream."""
        result = wind_power(_row(), 10.0, 0.0)
        np.testing.assert_allclose(result.power, result.power[0])

    def test_park_inline_speed(self):
        farm = _row(n=2, model=WakeModel.PARK)
        result = wind_power(farm, 10.0, 270.0)
        r = farm.turbine.rotor_radius
        r_wake = r + farm.wake_decay * 630.0
        expected = 10.0 * (1.0 - (1.0 - math.sqrt(1.0 - result.thrust[0])) * (r / r_wake) ** 2)
        assert result.wind_speed[1] == pytest.approx(expected)

    def test_pq_turbulence_raised_off_axis(self):
        farm = FarmInput(x=np.array([0.0, 630.0]), y=np.array([0.0, 450.0]))
        result = wind_power(farm, 10.0, 270.0)
        assert result.turb_intensity[0] == pytest.approx(0.1)
        assert result.turb_intensity[1] > 0.1

    def test_calm(self):
        result = wind_power(_row(), 0.0, 270.0)
        assert result.farm_power == 0.0
        assert np.all(result.power == 0.0)

    def test_engine_reuse(self):
        engine = WakeEngine(_row(model=WakeModel.EDDY_VISCOSITY))
        first = engine.wind_power(10.0, 270.0)
        second = engine.wind_power(10.0, 270.0)
        np.testing.assert_allclose(first.power, second.power)

    def test_summary(self):
        summary = wind_power(_row(), 10.0, 270.0).summary()
        assert summary["n_turbines"] == 3
        assert summary["min_eff_pct"] < 100.0


class TestFarmValidation:
    def test_too_many_turbines(self):
        n = MAX_WIND_TURBINES + 1
        with pytest.raises(WindFarmError):
            WakeEngine(FarmInput(x=np.zeros(n), y=np.zeros(n)))

    def test_coordinate_mismatch(self):
        with pytest.raises(WindFarmError):
            WakeEngine(FarmInput(x=np.zeros(3), y=np.zeros(2)))

    def test_bad_rotor(self):
        with pytest.raises(WindFarmError):
            WakeEngine(FarmInput(turbine=TurbineSpec(rotor_diameter=0.0)))


class TestWeibullEnergy:
    def test_invalid_shape(self):
        with pytest.raises(WindFarmError):
            annual_energy_weibull(TurbineSpec(), 0.0, 7.0)

    def test_better_site_more_energy(self):
        spec = TurbineSpec()
        low = annual_energy_weibull(spec, 2.0, 6.0)
        high = annual_energy_weibull(spec, 2.0, 8.0)
        assert 0.0 < low < high

    def test_below_rated_capacity(self):
        spec = TurbineSpec()
        assert annual_energy_weibull(spec, 2.0, 7.0) < spec.rated_power * 8760.0

    def test_first_bin_starts_at_zero_speed(self):
        """Speeds below the first table entry fall into the first bin."""
        curve = PowerCurve(wind_speed=[3.0, 10.0, 25.0], power=[0.0, 1000.0, 2000.0])
        spec = TurbineSpec(power_curve=curve, hub_height=50.0, shear_exponent=0.0)
        scale = 7.0 / math.gamma(1.5)
        F10 = 1.0 - math.exp(-((10.0 / scale) ** 2))
        F25 = 1.0 - math.exp(-((25.0 / scale) ** 2))
        expected = 8760.0 * (F10 * 1000.0 + (F25 - F10) * 2000.0)
        assert annual_energy_weibull(spec, 2.0, 7.0) == pytest.approx(expected, rel=1e-9)
