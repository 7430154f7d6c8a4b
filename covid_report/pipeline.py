"""Core pipeline logic: tidy, join and aggregate the JHU CSSE time series.

This module orchestrates the reshaping, joining and aggregation of five
source tables:

* The global confirmed and deaths time series, one row per province or
  country with one column per day.
* The US confirmed and deaths time series, one row per county with one
  column per day (the deaths file also carries county population).
* The UID/ISO/FIPS lookup table, used for global population.

The primary entry point is :func:`run_pipeline`, which returns the
combined global and US tables, the per-state and national daily
aggregates, the per-state summary and the fitted deaths-on-cases
regression.  Every stage takes DataFrames and returns new ones; inputs
are never modified in place.
"""

from __future__ import annotations

import logging
import warnings
from typing import Dict, List, Mapping, Optional, Sequence

import pandas as pd

from .config import (
    COLUMN_RENAMES,
    DATE_FORMATS,
    DROP_COLUMNS,
    GLOBAL_ID_COLUMNS,
    GLOBAL_KEYS,
    PER_MILLION,
    PER_THOUSAND,
    POPULATION_KEYS,
    SOURCES,
    US_CASES_ID_COLUMNS,
    US_DEATHS_ID_COLUMNS,
    US_KEYS,
)
from .exceptions import JoinMismatch, ParseError
from .jhu_fetch import fetch_all_sources
from .model import fit_linear, predict_states, prediction_grid

# Module‑level logger
logger = logging.getLogger(__name__)

MEASURES: List[str] = ["cases", "deaths", "population"]
DAILY_COLUMNS: List[str] = [
    "cases",
    "deaths",
    "population",
    "deaths_per_million",
    "new_cases",
    "new_deaths",
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def ensure_columns(df: pd.DataFrame, required: Sequence[str]) -> None:
    """Raise an error if the DataFrame lacks any of the required columns."""
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise KeyError(f"Missing expected columns: {missing}")


def parse_date_headers(headers: Sequence[str]) -> Dict[str, pd.Timestamp]:
    """Map month/day/year column headers to timestamps.

    Two- and four-digit years are accepted (``"1/22/20"`` and
    ``"1/22/2020"``).  Any header matching neither format raises
    :class:`ParseError` listing every offending header.
    """
    text = pd.Series([str(header).strip() for header in headers], dtype=object)
    parsed = pd.Series(pd.NaT, index=text.index, dtype="datetime64[ns]")
    for fmt in DATE_FORMATS:
        missing = parsed.isna()
        if not missing.any():
            break
        parsed[missing] = pd.to_datetime(text[missing], format=fmt, errors="coerce")

    bad = [header for header, ok in zip(headers, parsed.notna()) if not ok]
    if bad:
        raise ParseError(f"Column headers are not month/day/year dates: {bad[:10]}")
    return dict(zip(headers, parsed))


def combined_key(province: pd.Series, country: pd.Series) -> pd.Series:
    """Build ``"Province, Country"`` labels, omitting a missing province."""
    province = province.astype(object).where(province.notna(), "")
    joined = province.astype(str) + ", " + country.astype(str)
    return joined.str.removeprefix(", ")


# ---------------------------------------------------------------------------
# Tidy
# ---------------------------------------------------------------------------


def tidy_time_series(
    wide: pd.DataFrame,
    id_cols: Sequence[str],
    value_name: str,
    *,
    drop_cols: Sequence[str] = DROP_COLUMNS,
) -> pd.DataFrame:
    """Unpivot a wide time-series table into one row per entity and date.

    Parameters
    ----------
    wide : pd.DataFrame
        Raw table with identifier columns followed by one column per day,
        headed by a month/day/year string.
    id_cols : Sequence[str]
        Identifier columns to keep on every row (raw header names).
    value_name : str
        Name of the measure column, e.g. ``"cases"`` or ``"deaths"``.
    drop_cols : Sequence[str], optional
        Geometry and code columns discarded before reshaping.  Columns
        that are absent are ignored.

    Returns
    -------
    pd.DataFrame
        Columns: the renamed identifiers, ``date`` and ``value_name``.
        Exactly ``len(wide) * n_dates`` rows; nothing is deduplicated or
        aggregated.
    """
    ensure_columns(wide, id_cols)
    id_cols = list(id_cols)
    df = wide.drop(columns=[c for c in drop_cols if c not in id_cols], errors="ignore")

    date_cols = [c for c in df.columns if c not in id_cols]
    dates = parse_date_headers(date_cols)

    long = df.melt(
        id_vars=id_cols, value_vars=date_cols, var_name="date", value_name=value_name
    )
    long["date"] = pd.to_datetime(long["date"].map(dates))

    try:
        long[value_name] = pd.to_numeric(long[value_name], errors="raise")
    except (ValueError, TypeError) as exc:
        raise ParseError(f"Non-numeric {value_name!r} value: {exc}") from exc

    return long.rename(columns=COLUMN_RENAMES)


def find_decreasing_counts(
    long: pd.DataFrame, id_cols: Sequence[str], value_name: str
) -> pd.DataFrame:
    """Return entities whose cumulative ``value_name`` drops from one date to the next.

    Upstream revisions occasionally lower a cumulative count.  Offending
    entities are logged as a warning and returned; the run continues.
    """
    id_cols = list(id_cols)
    ordered = long.sort_values([*id_cols, "date"], kind="mergesort")
    steps = ordered.groupby(id_cols, sort=False, dropna=False)[value_name].diff()
    offenders = ordered.loc[steps < 0, id_cols].drop_duplicates().reset_index(drop=True)
    if len(offenders):
        logger.warning(
            "%d entities have decreasing cumulative %s, e.g. %s",
            len(offenders),
            value_name,
            offenders.head(5).to_dict("records"),
        )
    return offenders


# ---------------------------------------------------------------------------
# Joins
# ---------------------------------------------------------------------------


def filter_positive_cases(df: pd.DataFrame) -> pd.DataFrame:
    """Keep only rows with a positive case count (missing counts are dropped)."""
    return df.loc[df["cases"] > 0].reset_index(drop=True)


def join_global(cases: pd.DataFrame, deaths: pd.DataFrame) -> pd.DataFrame:
    """Full outer join of global cases and deaths, then drop non-positive cases.

    A region/date present on one side only keeps that side's measure and a
    missing value for the other before the case filter is applied.
    """
    joined = cases.merge(deaths, on=GLOBAL_KEYS, how="outer")
    filtered = filter_positive_cases(joined)
    logger.info(
        "Global join: %d rows, %d with positive cases", len(joined), len(filtered)
    )
    return filtered[[*GLOBAL_KEYS, "cases", "deaths"]]


def join_us(cases: pd.DataFrame, deaths: pd.DataFrame) -> pd.DataFrame:
    """Full outer join of US county cases and deaths.

    Unlike :func:`join_global`, no case filter is applied; zero-case
    county rows are kept.
    """
    joined = cases.merge(deaths, on=US_KEYS, how="outer")
    logger.info("US join: %d county/day rows", len(joined))
    return joined[[*US_KEYS, "cases", "deaths", "population"]]


def attach_population(global_df: pd.DataFrame, lookup: pd.DataFrame) -> pd.DataFrame:
    """Add ``combined_key`` and left join population from the UID lookup.

    Population is matched on the exact (province, country) names.  County
    rows of the lookup (non-null ``Admin2``) are ignored and duplicate keys
    keep their first row, so each global row matches at most once.
    Key columns are compared as object dtype so an all-missing province
    column still joins against the lookup's text names.  Regions with no
    match, or whose lookup row has no population, keep a missing
    population and a :class:`JoinMismatch` warning names them.
    """
    ensure_columns(lookup, ["Province_State", "Country_Region", "Population"])
    pop = lookup
    if "Admin2" in pop.columns:
        pop = pop.loc[pop["Admin2"].isna()]
    pop = (
        pop[["Province_State", "Country_Region", "Population"]]
        .rename(columns=COLUMN_RENAMES)
        .drop_duplicates(subset=POPULATION_KEYS, keep="first")
        .astype({key: object for key in POPULATION_KEYS})
    )

    out = global_df.copy()
    out["combined_key"] = combined_key(out["province_state"], out["country_region"])
    out = out.astype({key: object for key in POPULATION_KEYS}).merge(
        pop, on=POPULATION_KEYS, how="left", validate="many_to_one", indicator=True
    )

    no_match = out.loc[out["_merge"] == "left_only", "combined_key"].unique()
    no_value = out.loc[
        (out["_merge"] == "both") & out["population"].isna(), "combined_key"
    ].unique()
    for regions, reason in ((no_match, "no lookup row"), (no_value, "no population")):
        if len(regions):
            warnings.warn(
                f"{len(regions)} regions have {reason}: {list(regions[:10])}",
                JoinMismatch,
                stacklevel=2,
            )

    return out[[*GLOBAL_KEYS, "cases", "deaths", "population", "combined_key"]]


# ---------------------------------------------------------------------------
# Aggregation Helpers
# ---------------------------------------------------------------------------


def add_deaths_per_million(df: pd.DataFrame) -> pd.DataFrame:
    """Add ``deaths_per_million``; missing where population is zero or missing."""
    out = df.copy()
    population = out["population"].where(out["population"] > 0)
    out["deaths_per_million"] = out["deaths"] * PER_MILLION / population
    return out


def add_new_counts(df: pd.DataFrame, group_cols: Sequence[str]) -> pd.DataFrame:
    """Add day-over-day ``new_cases`` and ``new_deaths`` within each group.

    Rows are sorted by group and date first, so the result does not depend
    on input order.  The first date of every group has no predecessor and
    gets a missing value.
    """
    group_cols = list(group_cols)
    out = df.sort_values([*group_cols, "date"], kind="mergesort").reset_index(
        drop=True
    )
    grouped = out.groupby(group_cols, sort=False, dropna=False)
    out["new_cases"] = grouped["cases"].diff()
    out["new_deaths"] = grouped["deaths"].diff()
    return out


def _aggregate_daily(df: pd.DataFrame, group_cols: List[str]) -> pd.DataFrame:
    """Sum measures per group and date, then derive rates and daily deltas."""
    daily = df.groupby([*group_cols, "date"], as_index=False)[MEASURES].sum()
    daily = add_deaths_per_million(daily)
    daily = add_new_counts(daily, group_cols)
    return daily[[*group_cols, "date", *DAILY_COLUMNS]]


# ---------------------------------------------------------------------------
# Aggregation Functions
# ---------------------------------------------------------------------------


def aggregate_us_by_state(us: pd.DataFrame) -> pd.DataFrame:
    """Sum county rows into one row per state and date."""
    return _aggregate_daily(us, ["province_state", "country_region"])


def aggregate_us_totals(us_by_state: pd.DataFrame) -> pd.DataFrame:
    """Sum state rows into one national row per date."""
    return _aggregate_daily(us_by_state, ["country_region"])


def aggregate_global_by_country(global_df: pd.DataFrame) -> pd.DataFrame:
    """Sum province rows of the global table into one row per country and date.

    Population is fixed per country: each province contributes its own
    population once, whatever dates it has rows for, so the per-million
    rate always uses the whole country.
    """
    population = (
        global_df.groupby(["province_state", "country_region"], dropna=False)[
            "population"
        ]
        .max()
        .groupby(level="country_region")
        .sum(min_count=1)
        .reset_index()
    )
    daily = global_df.groupby(["country_region", "date"], as_index=False)[
        ["cases", "deaths"]
    ].sum()
    daily = daily.merge(population, on="country_region", how="left")
    daily = add_deaths_per_million(daily)
    daily = add_new_counts(daily, ["country_region"])
    return daily[["country_region", "date", *DAILY_COLUMNS]]


def summarize_states(us_by_state: pd.DataFrame) -> pd.DataFrame:
    """Collapse each state to its latest cumulative counts and per-thousand rates.

    Counts are cumulative, so the maximum over all dates is the most
    recent total.  States with no cases or no population are excluded.

    Returns
    -------
    pd.DataFrame
        Columns: ``province_state``, ``deaths``, ``cases``, ``population``,
        ``cases_per_thousand`` and ``deaths_per_thousand``.
    """
    summary = us_by_state.groupby("province_state", as_index=False).agg(
        deaths=("deaths", "max"),
        cases=("cases", "max"),
        population=("population", "max"),
    )
    summary = summary.loc[
        (summary["cases"] > 0) & (summary["population"] > 0)
    ].reset_index(drop=True)
    summary["cases_per_thousand"] = (
        summary["cases"] * PER_THOUSAND / summary["population"]
    )
    summary["deaths_per_thousand"] = (
        summary["deaths"] * PER_THOUSAND / summary["population"]
    )
    return summary


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


def run_pipeline(raw: Optional[Mapping[str, pd.DataFrame]] = None) -> Dict[str, object]:
    """Run the full report pipeline.

    Parameters
    ----------
    raw : Mapping[str, pd.DataFrame], optional
        Raw source tables keyed like ``config.SOURCES``.  When omitted every
        source is downloaded with :func:`jhu_fetch.fetch_all_sources`.

    Returns
    -------
    Dict[str, object]
        ``"global"``, ``"global_by_country"``, ``"us"``, ``"us_by_state"``,
        ``"us_totals"``, ``"state_summary"``, ``"prediction_grid"`` and
        ``"state_predictions"`` DataFrames, plus the fitted
        :class:`model.LinearFit` under ``"model"``.
    """
    # 1. Load raw inputs
    if raw is None:
        raw = fetch_all_sources()
    missing = [name for name in SOURCES if name not in raw]
    if missing:
        raise KeyError(f"Missing raw source tables: {missing}")

    # 2. Reshape wide -> long
    global_cases = tidy_time_series(raw["global_cases"], GLOBAL_ID_COLUMNS, "cases")
    global_deaths = tidy_time_series(raw["global_deaths"], GLOBAL_ID_COLUMNS, "deaths")
    us_cases = tidy_time_series(raw["us_cases"], US_CASES_ID_COLUMNS, "cases")
    us_deaths = tidy_time_series(raw["us_deaths"], US_DEATHS_ID_COLUMNS, "deaths")
    for long, keys, value_name in (
        (global_cases, GLOBAL_KEYS, "cases"),
        (global_deaths, GLOBAL_KEYS, "deaths"),
        (us_cases, US_KEYS, "cases"),
        (us_deaths, US_KEYS, "deaths"),
    ):
        find_decreasing_counts(long, [key for key in keys if key != "date"], value_name)

    # 3. Joins
    global_df = attach_population(
        join_global(global_cases, global_deaths), raw["uid_lookup"]
    )
    us = join_us(us_cases, us_deaths)

    # 4. Aggregates
    global_by_country = aggregate_global_by_country(global_df)
    us_by_state = aggregate_us_by_state(us)
    us_totals = aggregate_us_totals(us_by_state)
    summary = summarize_states(us_by_state)

    # 5. Model
    fit = fit_linear(summary["cases_per_thousand"], summary["deaths_per_thousand"])
    logger.info(
        "deaths_per_thousand ~ cases_per_thousand over %d states: "
        "intercept=%.4f slope=%.4f (p=%.3g)",
        fit.n_obs,
        fit.intercept,
        fit.slope,
        fit.slope_pvalue,
    )

    return {
        "global": global_df,
        "global_by_country": global_by_country,
        "us": us,
        "us_by_state": us_by_state,
        "us_totals": us_totals,
        "state_summary": summary,
        "model": fit,
        "prediction_grid": prediction_grid(fit),
        "state_predictions": predict_states(summary, fit),
    }
