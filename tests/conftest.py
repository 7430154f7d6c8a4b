"""
Pytest configuration and fixtures for the report pipeline tests.

The fixtures mirror the layout of the JHU CSSE files with a handful of
regions and three days so expected values can be worked out by hand.
"""

import numpy as np
import pandas as pd
import pytest

DATES = ["1/22/20", "1/23/20", "1/24/20"]


def _global_wide(rows):
    records = []
    for province, country, values in rows:
        record = {"Province/State": province, "Country/Region": country, "Lat": 0.0, "Long": 0.0}
        record.update(dict(zip(DATES, values)))
        records.append(record)
    return pd.DataFrame(records)


def _us_wide(rows, with_population=False):
    records = []
    for uid, (county, state, population, values) in enumerate(rows, start=84000001):
        record = {
            "UID": uid,
            "iso2": "US",
            "iso3": "USA",
            "code3": 840,
            "FIPS": float(uid % 100000),
            "Admin2": county,
            "Province_State": state,
            "Country_Region": "US",
            "Lat": 0.0,
            "Long_": 0.0,
            "Combined_Key": f"{county}, {state}, US",
        }
        if with_population:
            record["Population"] = population
        record.update(dict(zip(DATES, values)))
        records.append(record)
    return pd.DataFrame(records)


@pytest.fixture
def global_cases_wide():
    """Global confirmed cases: one province row and two country rows."""
    return _global_wide(
        [
            (np.nan, "Afghanistan", [0, 1, 2]),
            ("Ontario", "Canada", [1, 2, 3]),
            (np.nan, "Atlantis", [5, 5, 6]),
        ]
    )


@pytest.fixture
def global_deaths_wide():
    """Global deaths matching ``global_cases_wide`` row for row."""
    return _global_wide(
        [
            (np.nan, "Afghanistan", [0, 0, 1]),
            ("Ontario", "Canada", [0, 1, 1]),
            (np.nan, "Atlantis", [0, 0, 0]),
        ]
    )


@pytest.fixture
def uid_lookup():
    """Lookup table; Atlantis is deliberately absent."""
    return pd.DataFrame(
        {
            "UID": [4, 12406, 84001001],
            "iso2": ["AF", "CA", "US"],
            "iso3": ["AFG", "CAN", "USA"],
            "code3": [4, 124, 840],
            "FIPS": [np.nan, np.nan, 1001.0],
            "Admin2": [np.nan, np.nan, "Autauga"],
            "Province_State": [np.nan, "Ontario", "Alabama"],
            "Country_Region": ["Afghanistan", "Canada", "US"],
            "Lat": [33.9, 51.2, 32.5],
            "Long_": [67.7, -85.3, -86.6],
            "Combined_Key": ["Afghanistan", "Ontario, Canada", "Autauga, Alabama, US"],
            "Population": [38928341, 14570000, 55869],
        }
    )


# Alpha: two counties, population 10,000, final deaths 10 and cases 10.
# Beta: one county, population 20,000, final deaths 5 and cases 40.
# Gamma: one county, population 3,000, final deaths 3 and cases 9.
US_COUNTIES = [
    ("North", "Alpha", 6000, [1, 3, 6], [0, 1, 4]),
    ("South", "Alpha", 4000, [0, 2, 4], [0, 2, 6]),
    ("East", "Beta", 20000, [5, 10, 40], [1, 2, 5]),
    ("West", "Gamma", 3000, [2, 3, 9], [0, 0, 3]),
]


@pytest.fixture
def us_cases_wide():
    return _us_wide([(c, s, p, cases) for c, s, p, cases, _ in US_COUNTIES])


@pytest.fixture
def us_deaths_wide():
    return _us_wide(
        [(c, s, p, deaths) for c, s, p, _, deaths in US_COUNTIES], with_population=True
    )


@pytest.fixture
def raw_sources(
    global_cases_wide, global_deaths_wide, us_cases_wide, us_deaths_wide, uid_lookup
):
    """All five raw tables keyed like ``config.SOURCES``."""
    return {
        "global_cases": global_cases_wide,
        "global_deaths": global_deaths_wide,
        "us_cases": us_cases_wide,
        "us_deaths": us_deaths_wide,
        "uid_lookup": uid_lookup,
    }
