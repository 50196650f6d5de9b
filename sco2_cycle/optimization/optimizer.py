"""Bounded derivative-free search used by the cycle optimizers.

Every cycle evaluation is a full nested-loop solve, and failed points
return a flat zero, so the searches are derivative-free:

- :class:`BoundedSearch` maximizes an objective of named variables with
  SciPy's bounded Nelder-Mead, starting from an explicit simplex whose
  edges are the per-variable initial steps.
- :func:`minimize_bounded_scalar` wraps the bounded Brent search for the
  one-dimensional high-pressure sweep.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable

import numpy as np
from scipy.optimize import Bounds, minimize, minimize_scalar

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVALUATIONS = 400


@dataclass
class DesignVariable:
    """A single free variable with bounds and an initial step.

    Args:
        name: Variable name (key in the dict passed to the objective).
        lower: Lower bound.
        upper: Upper bound (may be ``math.inf``).
        initial: Initial value (midpoint if not provided and both bounds
            are finite, else the lower bound).
        step: Initial simplex edge.  The sign gives the first search
            direction; it is reversed when it would leave the bounds.
        unit: Physical unit string (for display).
    """

    name: str
    lower: float
    upper: float
    initial: float | None = None
    step: float = 0.0
    unit: str = ""

    def __post_init__(self) -> None:
        if self.initial is None:
            if math.isfinite(self.upper):
                self.initial = 0.5 * (self.lower + self.upper)
            else:
                self.initial = self.lower

    @property
    def bounds(self) -> tuple[float, float]:
        return (self.lower, self.upper)

    @property
    def scale(self) -> float:
        """Positive length of the initial step."""
        if self.step != 0.0:
            return abs(self.step)
        return 0.1 * max(abs(self.initial or 0.0), 1.0)


@dataclass
class OptimizationResult:
    """Result of a bounded search."""

    x: dict[str, float] = field(default_factory=dict)
    value: float = 0.0
    n_evaluations: int = 0
    converged: bool = False
    message: str = ""


ObjectiveFunction = Callable[[dict[str, float]], float]


class BoundedSearch:
    """Bounded Nelder-Mead maximizer over named variables.

    Usage::

        search = BoundedSearch()
        search.add_variable(DesignVariable("P_mc_out", 100.0, 25e3, 20e3, step=500.0, unit="kPa"))
        search.add_variable(DesignVariable("recomp_frac", 0.0, 1.0, 0.3, step=0.05))
        result = search.maximize(objective, xtol=1e-6)

    The search works in coordinates normalized by each variable's step,
    so ``xtol`` is relative to the step sizes.  The best point ever
    evaluated is returned, which is not necessarily the final simplex
    vertex.
    """

    def __init__(self) -> None:
        self._variables: list[DesignVariable] = []

    def add_variable(self, var: DesignVariable) -> None:
        self._variables.append(var)

    @property
    def variables(self) -> list[DesignVariable]:
        return self._variables

    @property
    def n_variables(self) -> int:
        return len(self._variables)

    def _array_to_dict(self, x: np.ndarray) -> dict[str, float]:
        return {v.name: float(x[i]) for i, v in enumerate(self._variables)}

    def _initial_simplex(self, x0: np.ndarray, scale: np.ndarray, lb: np.ndarray, ub: np.ndarray) -> np.ndarray:
        n = self.n_variables
        simplex = np.zeros((n + 1, n))
        for i, var in enumerate(self._variables):
            direction = -1.0 if var.step < 0.0 else 1.0
            trial = x0[i] + direction * scale[i]
            if trial > ub[i] or trial < lb[i]:
                direction = -direction
            simplex[i + 1, i] = direction
        return simplex

    def maximize(
        self,
        objective: ObjectiveFunction,
        xtol: float = 1.0e-6,
        max_evaluations: int = DEFAULT_MAX_EVALUATIONS,
    ) -> OptimizationResult:
        """Maximize ``objective`` within the variable bounds.

        Args:
            objective: Maps a dict of variable values to the value to
                maximize.  Infeasible points should return 0.
            xtol: Convergence tolerance in step-normalized coordinates.
            max_evaluations: Cap on objective evaluations.

        Returns:
            OptimizationResult with the best point evaluated.
        """
        if not self._variables:
            raise ValueError("No design variables defined")

        lb = np.array([v.lower for v in self._variables], dtype=float)
        ub = np.array([v.upper for v in self._variables], dtype=float)
        scale = np.array([v.scale for v in self._variables], dtype=float)
        x0 = np.clip(np.array([v.initial for v in self._variables], dtype=float), lb, ub)

        best_x = x0.copy()
        best_value = -math.inf
        n_evals = 0

        def to_physical(z: np.ndarray) -> np.ndarray:
            return np.clip(x0 + z * scale, lb, ub)

        def cost(z: np.ndarray) -> float:
            nonlocal best_x, best_value, n_evals
            x = to_physical(z)
            value = objective(self._array_to_dict(x))
            n_evals += 1
            if value > best_value:
                best_value = value
                best_x = x.copy()
            return -value

        result = minimize(
            cost,
            np.zeros(self.n_variables),
            method="Nelder-Mead",
            bounds=Bounds((lb - x0) / scale, (ub - x0) / scale),
            options={
                "initial_simplex": self._initial_simplex(x0, scale, lb, ub),
                "xatol": xtol,
                "fatol": xtol,
                "maxfev": max_evaluations,
            },
        )

        logger.debug(
            "Bounded search: %d evaluations, best %.6g (%s)", n_evals, best_value, result.message
        )

        return OptimizationResult(
            x=self._array_to_dict(best_x),
            value=best_value,
            n_evaluations=n_evals,
            converged=bool(result.success),
            message=str(result.message),
        )


def minimize_bounded_scalar(
    fn: Callable[[float], float],
    lower: float,
    upper: float,
    xatol: float = 1.0,
) -> tuple[float, float]:
    """Bounded Brent minimization of a scalar function.

    Returns:
        Tuple of (x_min, f_min).
    """
    result = minimize_scalar(fn, bounds=(lower, upper), method="bounded", options={"xatol": xatol})
    logger.debug("Scalar search on [%.1f, %.1f]: x=%.3f, f=%.6g", lower, upper, result.x, result.fun)
    return float(result.x), float(result.fun)
