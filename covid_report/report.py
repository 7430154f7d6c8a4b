"""Report views over the pipeline payload and the script entry point.

Run ``python -m covid_report.report`` to download the sources, build every
table and print a short summary.
"""

from __future__ import annotations

import logging
from typing import Dict, Tuple

import pandas as pd

from .config import RANKING_SIZE
from .pipeline import run_pipeline


def state_series(us_by_state: pd.DataFrame, state: str) -> pd.DataFrame:
    """Daily rows for one state, restricted to dates with reported cases."""
    mask = (us_by_state["province_state"] == state) & (us_by_state["cases"] > 0)
    rows = us_by_state.loc[mask].sort_values("date").reset_index(drop=True)
    if rows.empty:
        raise ValueError(f"No rows with cases found for state {state!r}.")
    return rows


def best_and_worst_states(
    summary: pd.DataFrame,
    n: int = RANKING_SIZE,
    by: str = "deaths_per_thousand",
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Return the ``n`` states with the lowest and the highest ``by`` rate."""
    if by not in summary.columns:
        raise KeyError(f"Missing expected columns: {[by]}")
    lowest = summary.nsmallest(n, by).reset_index(drop=True)
    highest = summary.nlargest(n, by).reset_index(drop=True)
    return lowest, highest


def latest_totals(us_totals: pd.DataFrame) -> Dict[str, object]:
    """Cumulative cases and deaths on the most recent date."""
    if us_totals.empty:
        raise ValueError("No national totals to report.")
    row = us_totals.loc[us_totals["date"].idxmax()]
    return {"date": row["date"], "cases": row["cases"], "deaths": row["deaths"]}


def main() -> Dict[str, object]:
    """
    Orchestrator:

    1. Fetch the five sources and run the pipeline.
    2. Print the latest national totals and the state rankings.
    3. Print the regression coefficients and return the payload.
    """
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    payload = run_pipeline()

    latest = latest_totals(payload["us_totals"])
    print("\n--- REPORT SUMMARY ---")
    print(
        f"US through {latest['date']:%Y-%m-%d}: "
        f"{latest['cases']:,.0f} cases, {latest['deaths']:,.0f} deaths"
    )
    print(f"Global region/day rows with cases: {len(payload['global'])}")

    lowest, highest = best_and_worst_states(payload["state_summary"])
    cols = ["province_state", "cases_per_thousand", "deaths_per_thousand"]
    print("\nLowest deaths per thousand:")
    print(lowest[cols])
    print("\nHighest deaths per thousand:")
    print(highest[cols])

    fit = payload["model"]
    print("\n--- MODEL: deaths_per_thousand ~ cases_per_thousand ---")
    print(
        f"intercept = {fit.intercept:.4f} "
        f"(se {fit.intercept_se:.4f}, p {fit.intercept_pvalue:.3g})"
    )
    print(
        f"slope     = {fit.slope:.4f} "
        f"(se {fit.slope_se:.4f}, p {fit.slope_pvalue:.3g})"
    )
    print(f"R^2 = {fit.r_squared:.3f} over {fit.n_obs} states")

    return payload


if __name__ == "__main__":
    main()
