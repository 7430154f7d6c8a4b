"""
Configuration constants for the JHU CSSE COVID-19 report pipeline.
"""

from typing import Dict, List, Tuple

# ======================================================
#  DATA SOURCES / CONSTANTS
# ======================================================
BASE_URL: str = (
    "https://raw.githubusercontent.com/CSSEGISandData/COVID-19/master/"
    "csse_covid_19_data/csse_covid_19_time_series/"
)

LOOKUP_URL: str = (
    "https://raw.githubusercontent.com/CSSEGISandData/COVID-19/master/"
    "csse_covid_19_data/UID_ISO_FIPS_LookUp_Table.csv"
)

# Source name -> URL (fetched in this order)
SOURCES: Dict[str, str] = {
    "global_cases": BASE_URL + "time_series_covid19_confirmed_global.csv",
    "global_deaths": BASE_URL + "time_series_covid19_deaths_global.csv",
    "us_cases": BASE_URL + "time_series_covid19_confirmed_US.csv",
    "us_deaths": BASE_URL + "time_series_covid19_deaths_US.csv",
    "uid_lookup": LOOKUP_URL,
}

REQUEST_TIMEOUT: int = 60

# ======================================================
#  SCHEMA
# ======================================================
# Identifier columns as they appear in the raw wide files
GLOBAL_ID_COLUMNS: List[str] = ["Province/State", "Country/Region"]
US_CASES_ID_COLUMNS: List[str] = [
    "Admin2",
    "Province_State",
    "Country_Region",
    "Combined_Key",
]
US_DEATHS_ID_COLUMNS: List[str] = [*US_CASES_ID_COLUMNS, "Population"]

# Geometry and code columns carried by the raw files but not needed downstream
DROP_COLUMNS: List[str] = [
    "Lat",
    "Long",
    "Long_",
    "UID",
    "iso2",
    "iso3",
    "code3",
    "FIPS",
]

COLUMN_RENAMES: Dict[str, str] = {
    "Province/State": "province_state",
    "Province_State": "province_state",
    "Country/Region": "country_region",
    "Country_Region": "country_region",
    "Admin2": "admin2",
    "Combined_Key": "combined_key",
    "Population": "population",
}

# Header formats tried in order for date columns (JHU uses e.g. "1/22/20")
DATE_FORMATS: Tuple[str, ...] = ("%m/%d/%y", "%m/%d/%Y")

# Join keys after renaming
GLOBAL_KEYS: List[str] = ["province_state", "country_region", "date"]
US_KEYS: List[str] = [
    "admin2",
    "province_state",
    "country_region",
    "combined_key",
    "date",
]
POPULATION_KEYS: List[str] = ["province_state", "country_region"]

# ======================================================
#  DERIVED MEASURES / MODEL DEFAULTS
# ======================================================
PER_MILLION: int = 1_000_000
PER_THOUSAND: int = 1_000

# Evenly spaced cases-per-thousand values used to draw the fitted line
GRID_START: float = 1.0
GRID_STOP: float = 151.0
GRID_POINTS: int = 151

RANKING_SIZE: int = 10
