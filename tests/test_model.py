"""
Tests for the single-predictor OLS fit
"""

import dataclasses

import numpy as np
import pandas as pd
import pytest

from covid_report.exceptions import DegenerateFit
from covid_report.model import LinearFit, fit_linear, predict_states, prediction_grid


@pytest.fixture
def exact_line():
    x = np.linspace(0, 20, 11)
    return x, 2 + 0.5 * x


class TestFitLinear:
    """Test fit_linear"""

    def test_recovers_noise_free_line(self, exact_line):
        x, y = exact_line

        fit = fit_linear(x, y)

        assert fit.intercept == pytest.approx(2.0, abs=1e-9)
        assert fit.slope == pytest.approx(0.5, abs=1e-9)
        assert fit.r_squared == pytest.approx(1.0)
        assert fit.n_obs == 11

    def test_reports_standard_errors_and_pvalues(self):
        rng = np.random.default_rng(0)
        x = np.arange(30, dtype=float)
        y = 1 + 0.3 * x + rng.normal(0, 0.5, size=30)

        fit = fit_linear(x, y)

        assert fit.slope == pytest.approx(0.3, abs=0.05)
        assert fit.slope_se > 0
        assert fit.intercept_se > 0
        assert fit.slope_pvalue < 1e-6
        assert 0 <= fit.intercept_pvalue <= 1

    def test_accepts_series_and_drops_missing_pairs(self, exact_line):
        x, y = exact_line
        xs = pd.Series(np.append(x, np.nan))
        ys = pd.Series(np.append(y, 100.0))

        fit = fit_linear(xs, ys)

        assert fit.n_obs == 11
        assert fit.slope == pytest.approx(0.5, abs=1e-9)

    def test_constant_predictor_is_degenerate(self):
        with pytest.raises(DegenerateFit):
            fit_linear([3.0, 3.0, 3.0], [1.0, 2.0, 3.0])

    def test_single_point_is_degenerate(self):
        with pytest.raises(DegenerateFit):
            fit_linear([1.0], [2.0])

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="same length"):
            fit_linear([1.0, 2.0, 3.0], [1.0, 2.0])

    def test_fit_is_immutable(self, exact_line):
        fit = fit_linear(*exact_line)

        with pytest.raises(dataclasses.FrozenInstanceError):
            fit.slope = 1.0


class TestPredictions:
    """Test LinearFit.predict, prediction_grid and predict_states"""

    @pytest.fixture
    def fit(self):
        return LinearFit(
            intercept=2.0,
            slope=0.5,
            intercept_se=0.0,
            slope_se=0.0,
            intercept_pvalue=0.0,
            slope_pvalue=0.0,
            r_squared=1.0,
            n_obs=3,
        )

    def test_predict(self, fit):
        assert fit.predict([0.0, 4.0]).tolist() == [2.0, 4.0]
        assert float(fit.predict(10)) == 7.0

    def test_grid_is_evenly_spaced(self, fit):
        grid = prediction_grid(fit)

        assert len(grid) == 151
        assert grid["cases_per_thousand"].iloc[0] == 1.0
        assert grid["cases_per_thousand"].iloc[-1] == 151.0
        assert np.allclose(np.diff(grid["cases_per_thousand"]), 1.0)
        assert np.allclose(grid["pred"], 2 + 0.5 * grid["cases_per_thousand"])

    def test_custom_grid(self, fit):
        grid = prediction_grid(fit, start=0, stop=10, num=5)

        assert grid["cases_per_thousand"].tolist() == [0.0, 2.5, 5.0, 7.5, 10.0]

    def test_predict_states(self, fit):
        summary = pd.DataFrame({"province_state": ["A", "B"], "cases_per_thousand": [2.0, 6.0]})

        out = predict_states(summary, fit)

        assert out["pred"].tolist() == [3.0, 5.0]
        assert "pred" not in summary.columns
