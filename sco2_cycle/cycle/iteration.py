"""Bracketed secant/bisection iteration.

Every nested loop in the cycle solvers (recuperator temperatures, mass
flow, compressor inlet pressure, recompressor intermediate pressure)
follows the same policy: keep a bracket around the root, predict the
next guess with the secant through the current and previous
(guess, residual) pairs, and fall back to bisection whenever the
prediction leaves the bracket or is not finite.  :class:`Bracket` holds
that state explicitly so each loop level can be tested on its own.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


def secant_guess(x: float, residual: float, x_last: float, residual_last: float) -> float:
    """Root estimate through (x_last, residual_last) and (x, residual).

    Returns NaN when the two residuals are equal (or either is NaN).
    """
    denom = residual_last - residual
    if denom == 0.0 or math.isnan(denom):
        return math.nan
    return x - residual * (x_last - x) / denom


@dataclass
class Bracket:
    """State of one bracketed root search.

    Args:
        lower: Lowest value the root can take.
        upper: Highest value the root can take.
        guess: Current guess (midpoint if not given).
        last_guess: Previous guess, for the first secant step.
        last_residual: Residual at ``last_guess``.
        limit_step: Also bisect when the secant step is longer than half
            the bracket width.
    """

    lower: float
    upper: float
    guess: float | None = None
    last_guess: float = math.nan
    last_residual: float = math.nan
    limit_step: bool = False

    def __post_init__(self) -> None:
        if self.guess is None:
            self.guess = self.midpoint

    @property
    def midpoint(self) -> float:
        return 0.5 * (self.lower + self.upper)

    @property
    def width(self) -> float:
        return self.upper - self.lower

    def bisect_up(self) -> float:
        """Current guess is known too low: raise the lower bound and bisect."""
        self.lower = self.guess
        self.guess = self.midpoint
        return self.guess

    def bisect_down(self) -> float:
        """Current guess is known too high: lower the upper bound and bisect."""
        self.upper = self.guess
        self.guess = self.midpoint
        return self.guess

    def update(self, residual: float, root_above: bool) -> float:
        """Advance after evaluating ``residual`` at the current guess.

        Args:
            residual: Residual at the current guess.
            root_above: True when the root lies above the current guess
                (the guess becomes the new lower bound), False when below.

        Returns:
            The next guess.
        """
        x = self.guess
        predicted = secant_guess(x, residual, self.last_guess, self.last_residual)

        if root_above:
            self.lower = x
        else:
            self.upper = x

        self.last_guess = x
        self.last_residual = residual

        if not math.isfinite(predicted) or predicted <= self.lower or predicted >= self.upper:
            self.guess = self.midpoint
        elif self.limit_step and abs(predicted - x) > abs(0.5 * self.width):
            self.guess = self.midpoint
        else:
            self.guess = predicted
        return self.guess
