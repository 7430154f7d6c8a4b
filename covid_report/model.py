"""Single-predictor ordinary least squares for the state-level comparison.

The fit is decoupled from data loading: :func:`fit_linear` takes paired
predictor/response sequences and returns an immutable :class:`LinearFit`
carrying coefficients, standard errors, p-values and a ``predict`` method.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd
import statsmodels.api as sm

from .config import GRID_POINTS, GRID_START, GRID_STOP
from .exceptions import DegenerateFit


@dataclass(frozen=True)
class LinearFit:
    """Coefficients of ``y = intercept + slope * x``."""

    intercept: float
    slope: float
    intercept_se: float
    slope_se: float
    intercept_pvalue: float
    slope_pvalue: float
    r_squared: float
    n_obs: int

    def predict(self, x: Sequence[float] | float) -> np.ndarray:
        """Evaluate the fitted line at ``x``."""
        return self.intercept + self.slope * np.asarray(x, dtype=float)


def fit_linear(x: Sequence[float], y: Sequence[float]) -> LinearFit:
    """Fit ``y ~ x`` by OLS with an intercept.

    Pairs where either value is missing or infinite are dropped first.
    Raises :class:`DegenerateFit` when fewer than two distinct predictor
    values remain, and ``ValueError`` when ``x`` and ``y`` differ in length.
    """
    x_arr = np.asarray(x, dtype=float)
    y_arr = np.asarray(y, dtype=float)
    if x_arr.shape != y_arr.shape:
        raise ValueError(
            f"x and y must have the same length (got {x_arr.size} and {y_arr.size})."
        )

    finite = np.isfinite(x_arr) & np.isfinite(y_arr)
    x_arr, y_arr = x_arr[finite], y_arr[finite]
    if np.unique(x_arr).size < 2:
        raise DegenerateFit(
            f"Need at least 2 distinct predictor values, got {np.unique(x_arr).size}."
        )

    design = sm.add_constant(x_arr, has_constant="add")
    result = sm.OLS(y_arr, design).fit()

    intercept, slope = result.params
    intercept_se, slope_se = result.bse
    intercept_p, slope_p = result.pvalues
    return LinearFit(
        intercept=float(intercept),
        slope=float(slope),
        intercept_se=float(intercept_se),
        slope_se=float(slope_se),
        intercept_pvalue=float(intercept_p),
        slope_pvalue=float(slope_p),
        r_squared=float(result.rsquared),
        n_obs=int(result.nobs),
    )


def prediction_grid(
    fit: LinearFit,
    start: float = GRID_START,
    stop: float = GRID_STOP,
    num: int = GRID_POINTS,
) -> pd.DataFrame:
    """Evenly spaced ``cases_per_thousand`` values with the fitted ``pred``."""
    grid = np.linspace(start, stop, num)
    return pd.DataFrame({"cases_per_thousand": grid, "pred": fit.predict(grid)})


def predict_states(summary: pd.DataFrame, fit: LinearFit) -> pd.DataFrame:
    """Return a copy of the state summary with the fitted ``pred`` per state."""
    out = summary.copy()
    out["pred"] = fit.predict(out["cases_per_thousand"])
    return out
