"""Interpolation and curve-fitting helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
from numpy.polynomial import polynomial as P
from scipy import interpolate

logger = logging.getLogger(__name__)

MIN_FIT_POINTS = 5
MAX_FIT_COEFS = 5


def linear_interp_1d(
    x: np.ndarray,
    y: np.ndarray,
    x_new: float | np.ndarray,
    extrapolate: bool = False,
) -> float | np.ndarray:
    """One-dimensional linear interpolation.

    Args:
        x: Known x-coordinates (must be monotonically increasing).
        y: Known y-values.
        x_new: Query point(s).
        extrapolate: If True, allow extrapolation beyond data range.

    Returns:
        Interpolated value(s).
    """
    fill = "extrapolate" if extrapolate else (y[0], y[-1])
    f = interpolate.interp1d(x, y, kind="linear", fill_value=fill, bounds_error=False)
    return float(f(x_new)) if np.isscalar(x_new) else f(x_new)


@dataclass
class PolynomialFit:
    """Least-squares polynomial, coefficients in ascending powers."""

    coefs: list[float] = field(default_factory=list)
    r_squared: float = -999.9
    success: bool = False

    def __call__(self, x: float | np.ndarray) -> float | np.ndarray:
        return P.polyval(x, self.coefs)


def r_squared(x: np.ndarray, y: np.ndarray, coefs: np.ndarray) -> float:
    """Coefficient of determination of ``coefs`` against the data."""
    ss_tot = float(np.sum((y - np.mean(y)) ** 2))
    ss_res = float(np.sum((y - P.polyval(x, coefs)) ** 2))
    if ss_tot == 0.0:
        return 1.0 if ss_res == 0.0 else -np.inf
    return 1.0 - ss_res / ss_tot


def find_polynomial_coefs(x_data: list[float], y_data: list[float], n_coefs: int) -> PolynomialFit:
    """Fit ``n_coefs`` polynomial coefficients maximizing R².

    The fit is accepted only when ``0.01 < R² <= 1``.  At least five data
    points and one to five coefficients are required; otherwise the
    returned fit is unsuccessful and its coefficients are NaN.
    """
    if n_coefs < 1 or n_coefs > MAX_FIT_COEFS:
        return PolynomialFit()

    fit = PolynomialFit(coefs=[float("nan")] * n_coefs)
    x = np.asarray(x_data, dtype=float)
    y = np.asarray(y_data, dtype=float)
    if x.size != y.size or x.size < MIN_FIT_POINTS:
        return fit

    coefs = P.polyfit(x, y, n_coefs - 1)
    r2 = r_squared(x, y, coefs)
    if 0.01 < r2 <= 1.0:
        return PolynomialFit(coefs=[float(c) for c in coefs], r_squared=r2, success=True)

    logger.debug("Polynomial fit rejected: R²=%.4f", r2)
    return fit
