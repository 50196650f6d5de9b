"""Tests for the bracketed secant/bisection iteration."""

import math

import pytest

from sco2_cycle.cycle.iteration import Bracket, secant_guess


class TestSecantGuess:
    def test_linear_root(self):
        # f(x) = x - 2 through (0, -2) and (4, 2)
        assert secant_guess(4.0, 2.0, 0.0, -2.0) == pytest.approx(2.0)

    def test_equal_residuals(self):
        assert math.isnan(secant_guess(1.0, 3.0, 2.0, 3.0))

    def test_nan_residual(self):
        assert math.isnan(secant_guess(1.0, math.nan, 2.0, 3.0))


class TestBracket:
    """Test bracket bookkeeping."""

    def test_default_guess_is_midpoint(self):
        b = Bracket(lower=0.0, upper=10.0)
        assert b.guess == 5.0
        assert b.width == 10.0

    def test_bisect_up(self):
        b = Bracket(lower=0.0, upper=10.0)
        assert b.bisect_up() == 7.5
        assert b.lower == 5.0

    def test_bisect_down(self):
        b = Bracket(lower=0.0, upper=10.0)
        assert b.bisect_down() == 2.5
        assert b.upper == 5.0

    def test_update_narrows_bracket(self):
        b = Bracket(lower=0.0, upper=10.0)
        b.update(residual=1.0, root_above=True)
        assert b.lower == 5.0
        assert b.upper == 10.0
        assert b.lower <= b.guess <= b.upper

    def test_prediction_outside_bracket_bisects(self):
        b = Bracket(lower=0.0, upper=10.0, guess=5.0, last_guess=4.0, last_residual=1.0)
        # Secant through (4, 1) and (5, 2) predicts 3, below the new lower bound 5
        assert b.update(residual=2.0, root_above=True) == pytest.approx(7.5)

    def test_limit_step(self):
        b = Bracket(lower=0.0, upper=100.0, guess=50.0, last_guess=49.0, last_residual=-1.0, limit_step=True)
        # Secant through (49, -1) and (50, -0.9) predicts 59 which is inside
        # the bracket [50, 100] and within half its width
        assert b.update(residual=-0.9, root_above=True) == pytest.approx(59.0)

    def test_converges_on_monotone_function(self):
        def f(x: float) -> float:
            return x**3 - 20.0

        b = Bracket(lower=0.0, upper=10.0)
        for _ in range(100):
            r = f(b.guess)
            if abs(r) < 1e-10:
                break
            b.update(r, root_above=r < 0.0)
        assert b.guess == pytest.approx(20.0 ** (1.0 / 3.0), rel=1e-8)
