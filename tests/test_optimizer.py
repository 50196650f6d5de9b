"""Tests for the bounded search wrappers."""

import math

import pytest

from sco2_cycle.optimization.optimizer import (
    BoundedSearch,
    DesignVariable,
    OptimizationResult,
    minimize_bounded_scalar,
)


def _quadratic(x: dict[str, float]) -> float:
    """Concave bowl with its peak of 10 at (3, 2)."""
    return 10.0 - (x["x"] - 3.0) ** 2 - (x["y"] - 2.0) ** 2


class TestDesignVariable:
    def test_bounds(self):
        v = DesignVariable("x", 1.0, 10.0)
        assert v.bounds == (1.0, 10.0)

    def test_default_initial(self):
        assert DesignVariable("x", 0.0, 10.0).initial == 5.0

    def test_unbounded_initial_is_lower(self):
        assert DesignVariable("N", 1.0, math.inf).initial == 1.0

    def test_scale_from_step(self):
        assert DesignVariable("x", 0.0, 1.0, 0.5, step=-0.05).scale == pytest.approx(0.05)

    def test_scale_default(self):
        assert DesignVariable("x", 0.0, 100.0, 40.0).scale == pytest.approx(4.0)


class TestBoundedSearch:
    """Test the bounded Nelder-Mead maximizer."""

    def test_no_variables(self):
        with pytest.raises(ValueError):
            BoundedSearch().maximize(_quadratic)

    def test_unconstrained_peak(self):
        search = BoundedSearch()
        search.add_variable(DesignVariable("x", -10.0, 10.0, 0.0, step=0.5))
        search.add_variable(DesignVariable("y", -10.0, 10.0, 0.0, step=0.5))
        result = search.maximize(_quadratic, xtol=1e-8)

        assert isinstance(result, OptimizationResult)
        assert result.x["x"] == pytest.approx(3.0, abs=1e-3)
        assert result.x["y"] == pytest.approx(2.0, abs=1e-3)
        assert result.value == pytest.approx(10.0, abs=1e-5)
        assert result.n_evaluations > 0

    def test_active_bound(self):
        """With the peak outside the box the optimum sits on the bound."""
        search = BoundedSearch()
        search.add_variable(DesignVariable("x", 0.0, 1.0, 0.5, step=0.1))
        search.add_variable(DesignVariable("y", 0.0, 5.0, 1.0, step=0.1))
        result = search.maximize(_quadratic, xtol=1e-8)

        assert result.x["x"] == pytest.approx(1.0, abs=1e-3)
        assert result.x["y"] == pytest.approx(2.0, abs=1e-3)

    def test_step_reversed_at_bound(self):
        """A start on the upper bound still searches into the box."""
        search = BoundedSearch()
        search.add_variable(DesignVariable("x", 0.0, 5.0, 5.0, step=0.5))
        search.add_variable(DesignVariable("y", 0.0, 5.0, 2.0, step=0.5))
        result = search.maximize(_quadratic, xtol=1e-8)
        assert result.x["x"] == pytest.approx(3.0, abs=1e-3)

    def test_zero_plateau(self):
        """Infeasible points return 0; the best feasible point is kept."""

        def objective(x: dict[str, float]) -> float:
            return 0.0 if x["x"] > 2.0 else 1.0 + x["x"]

        search = BoundedSearch()
        search.add_variable(DesignVariable("x", 0.0, 4.0, 1.0, step=0.25))
        result = search.maximize(objective, xtol=1e-6)
        assert 1.0 < result.value <= 3.0
        assert result.x["x"] <= 2.0


class TestScalarSearch:
    def test_minimum(self):
        x, f = minimize_bounded_scalar(lambda p: (p - 12000.0) ** 2, 5000.0, 25000.0, xatol=0.1)
        assert x == pytest.approx(12000.0, abs=1.0)
        assert f == pytest.approx(0.0, abs=10.0)
