"""
Handles retrieval of the JHU CSSE time-series files and lookup table.
"""

from __future__ import annotations

import logging
from io import BytesIO
from typing import Dict, Mapping

import pandas as pd
import requests

from .config import REQUEST_TIMEOUT, SOURCES
from .exceptions import NetworkError

logger = logging.getLogger(__name__)


def fetch_csv(url: str, *, timeout: int = REQUEST_TIMEOUT) -> pd.DataFrame:
    """Download one CSV with a single GET and parse it into a DataFrame.

    There is no retry: any HTTP failure or unreadable body raises
    :class:`NetworkError` and aborts the run.
    """
    logger.info("Fetching %s", url)
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise NetworkError(f"GET {url} failed: {exc}") from exc

    try:
        df = pd.read_csv(BytesIO(response.content))
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise NetworkError(f"{url} did not return a readable CSV: {exc}") from exc

    logger.info("-> %d rows x %d columns from %s", len(df), df.shape[1], url)
    return df


def fetch_all_sources(
    sources: Mapping[str, str] = SOURCES, *, timeout: int = REQUEST_TIMEOUT
) -> Dict[str, pd.DataFrame]:
    """Main entry point to fetch every configured source, keyed by name."""
    logger.info("Beginning data collection (%d sources)", len(sources))
    return {name: fetch_csv(url, timeout=timeout) for name, url in sources.items()}
