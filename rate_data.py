# rate_data.py
"""
Historical room rate data for the UW HFS rate recovery dashboard.

Rates are maintained in a Google Sheet and served as JSON by an Apps Script
web app. Two payload shapes are accepted:
- Legacy: a bare list of historical records
- Current: {"historicalData": [...], "currentRates": {"single": ..., "double": ...}}

Any failure (network, HTTP status, bad JSON, unexpected shape) falls back to
the reconciled default table below so the dashboard always renders.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import pandas as pd
import requests

logger = logging.getLogger(__name__)

# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_SOURCE_URL = (
    "https://script.google.com/macros/s/"
    "AKfycbxAuhixB_XwnU_MRtvG049ah5FjPS8CZSTqbuKsfPzDwiN4gEi19QR_zj0HAKYGC7I9/exec"
)
RATES_SOURCE_URL = os.environ.get("HOUSING_RATES_SOURCE_URL", DEFAULT_SOURCE_URL)
REQUEST_TIMEOUT_SECONDS = float(os.environ.get("HOUSING_RATES_TIMEOUT", "10"))

# Auto-refresh interval for the cached remote load
REFRESH_INTERVAL_SECONDS = 5 * 60

# Number of most recent fiscal years shown on the history chart
CHART_WINDOW_YEARS = 8

# =============================================================================
# RECONCILED DEFAULT DATA
# Source: HFS rate history spreadsheet. actualCPI is a fraction (0.0349 = 3.49%);
# future years carry 0.
# =============================================================================

DEFAULT_HISTORICAL_ROOM_RATES: List[Dict[str, Any]] = [
    {"year": "FY11", "single": 3748.55, "double": 2987.57, "actualCPI": 0.0102},
    {"year": "FY12", "single": 3804.78, "double": 3032.38, "actualCPI": 0.0231},
    {"year": "FY13", "single": 3918.92, "double": 3123.36, "actualCPI": 0.0227},
    {"year": "FY14", "single": 3985.54, "double": 3985.54, "actualCPI": 0.0284},
    {"year": "FY15", "single": 4045.32, "double": 3224.10, "actualCPI": 0.0290},
    {"year": "FY16", "single": 4077.69, "double": 3249.89, "actualCPI": 0.0336},
    {"year": "FY17", "single": 4106.23, "double": 3272.64, "actualCPI": 0.0335},
    {"year": "FY18", "single": 4192.46, "double": 3341.37, "actualCPI": 0.0349},
    {"year": "FY19", "single": 4280.50, "double": 3411.54, "actualCPI": 0.0333},
    {"year": "FY20", "single": 4361.83, "double": 3476.35, "actualCPI": 0.0251},
    {"year": "FY21", "single": 4462.15, "double": 3556.31, "actualCPI": 0.0220},
    {"year": "FY22", "single": 4524.62, "double": 3606.10, "actualCPI": 0.0545},
    {"year": "FY23", "single": 4841.35, "double": 3858.53, "actualCPI": 0.0802},
    {"year": "FY24", "single": 5156.03, "double": 4109.33, "actualCPI": 0.0539},
    {"year": "FY25", "single": 5305.56, "double": 4228.50, "actualCPI": 0.0387},
    {"year": "FY26", "single": 5438.20, "double": 4334.21, "actualCPI": 0},
    {"year": "FY27", "single": 5563.28, "double": 4433.90, "actualCPI": 0},
    {"year": "FY28", "single": 5685.67, "double": 4531.45, "actualCPI": 0},
    {"year": "FY29", "single": 5805.07, "double": 4626.61, "actualCPI": 0},
    {"year": "FY30", "single": 5921.32, "double": 4719.26, "actualCPI": 0},
]

# Current rates (sheet cells I45/I46) used when the sheet is unreachable
DEFAULT_CURRENT_RATES: Dict[str, float] = {"single": 4192.0, "double": 3341.0}

# 2010 baselines the inflation-adjusted recovery target is built from
BASELINE_2010_RATES: Dict[str, float] = {"single": 3748.55, "double": 2987.57}
BOARD_BASELINE_2010 = 2500.0

# Targets (FY25 historical rates) for the gap metrics
TARGET_RATES: Dict[str, float] = {"single": 5305.56, "double": 4228.50}
BOARD_TARGET = 4200.0
DEFAULT_BOARD_RATE = 3500.0

HISTORICAL_COLUMNS = ["year", "single", "double", "actualCPI"]


class RateSourceError(Exception):
    """Raised when the remote rate source cannot supply a usable payload."""


@dataclass(frozen=True, eq=False)
class RateData:
    """Everything the dashboard needs from the data source."""

    historical: pd.DataFrame = field(repr=False)
    current_rates: Dict[str, float]
    source: str  # 'remote' or 'default'
    loaded_at: datetime
    error: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.source == "default"


# =============================================================================
# PAYLOAD PARSING
# =============================================================================


def _finite_float(value: Any, raw: Any) -> float:
    out = float(value)
    if not np.isfinite(out):
        raise RateSourceError(f"Non-finite rate in {raw!r}")
    return out


def _coerce_record(raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, Mapping) or not raw.get("year"):
        raise RateSourceError(f"Historical record is missing a year: {raw!r}")
    try:
        return {
            "year": str(raw["year"]),
            "single": _finite_float(raw.get("single") or 0.0, raw),
            "double": _finite_float(raw.get("double") or 0.0, raw),
            "actualCPI": _finite_float(raw.get("actualCPI") or 0.0, raw),
        }
    except (TypeError, ValueError) as exc:
        raise RateSourceError(f"Non-numeric rate in record {raw!r}") from exc


def _coerce_current_rates(raw: Any) -> Dict[str, float]:
    if not isinstance(raw, Mapping):
        raise RateSourceError(f"currentRates must be an object, got {type(raw).__name__}")
    rates = dict(DEFAULT_CURRENT_RATES)
    try:
        for key in ("single", "double"):
            if raw.get(key) is not None:
                rates[key] = _finite_float(raw[key], raw)
    except (TypeError, ValueError) as exc:
        raise RateSourceError(f"Non-numeric current rate in {raw!r}") from exc
    return rates


def parse_rate_payload(
    payload: Any,
) -> tuple[List[Dict[str, Any]], Optional[Dict[str, float]]]:
    """
    Validate an Apps Script payload.

    Args:
        payload: Decoded JSON body

    Returns:
        Tuple of (historical records, current rates or None if the payload
        is the legacy list format or carries no currentRates)

    Raises:
        RateSourceError: payload reports an error or has an unknown shape
    """
    if isinstance(payload, list):
        return [_coerce_record(r) for r in payload], None

    if not isinstance(payload, Mapping):
        raise RateSourceError("Invalid data structure from Apps Script")

    if payload.get("error"):
        raise RateSourceError(str(payload["error"]))

    if "historicalData" not in payload or not isinstance(payload["historicalData"], list):
        raise RateSourceError("Invalid data structure from Apps Script")

    records = [_coerce_record(r) for r in payload["historicalData"]]
    current = None
    if payload.get("currentRates"):
        current = _coerce_current_rates(payload["currentRates"])
    return records, current


# =============================================================================
# REMOTE FETCH
# =============================================================================


def fetch_rate_data(
    url: str = RATES_SOURCE_URL,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
) -> RateData:
    """
    Fetch and parse the remote rate sheet.

    Raises:
        RateSourceError: on any transport, HTTP, JSON or payload problem
    """
    try:
        resp = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        raise RateSourceError(f"Request failed: {exc}") from exc

    if not resp.ok:
        raise RateSourceError(f"HTTP error! status: {resp.status_code}")

    try:
        payload = resp.json()
    except ValueError as exc:
        raise RateSourceError("Response body is not valid JSON") from exc

    records, current = parse_rate_payload(payload)
    if current is not None:
        logger.info("Current rates from sheet: %s", current)
    logger.info("Loaded %d historical rate records from %s", len(records), url)

    return RateData(
        historical=historical_frame(records),
        current_rates=current if current is not None else dict(DEFAULT_CURRENT_RATES),
        source="remote",
        loaded_at=datetime.now(),
    )


def default_rate_data(error: Optional[str] = None) -> RateData:
    """The reconciled fallback dataset."""
    return RateData(
        historical=historical_frame(DEFAULT_HISTORICAL_ROOM_RATES),
        current_rates=dict(DEFAULT_CURRENT_RATES),
        source="default",
        loaded_at=datetime.now(),
        error=error,
    )


def load_rate_data(
    url: str = RATES_SOURCE_URL,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
) -> RateData:
    """Fetch remote rates, falling back to the default table on failure."""
    try:
        return fetch_rate_data(url, timeout=timeout)
    except RateSourceError as exc:
        logger.warning("Error fetching rate sheet, using default data: %s", exc)
        return default_rate_data(error=str(exc))


# =============================================================================
# TABLE SHAPING
# =============================================================================


def historical_frame(records: List[Mapping[str, Any]]) -> pd.DataFrame:
    """
    Build the historical rate table with year-over-year percent increases.

    Returns:
        DataFrame with columns: year, single, double, actualCPI,
        Single % Increase, Double % Increase
    """
    df = pd.DataFrame(list(records), columns=HISTORICAL_COLUMNS)
    for col in ("single", "double", "actualCPI"):
        df[col] = pd.to_numeric(df[col], errors="coerce").astype(float)
    df["year"] = df["year"].astype(str)

    with np.errstate(divide="ignore", invalid="ignore"):
        single_prev = df["single"].shift(1)
        double_prev = df["double"].shift(1)
        df["Single % Increase"] = (df["single"] / single_prev - 1.0) * 100.0
        df["Double % Increase"] = (df["double"] / double_prev - 1.0) * 100.0

    pct_cols = ["Single % Increase", "Double % Increase"]
    df[pct_cols] = df[pct_cols].replace([np.inf, -np.inf], np.nan)
    return df.reset_index(drop=True)


def build_chart_frame(
    historical: pd.DataFrame,
    approved_rates: Mapping[str, float],
    window: int = CHART_WINDOW_YEARS,
) -> pd.DataFrame:
    """
    Chart table for the most recent fiscal years.

    Args:
        historical: Output of historical_frame()
        approved_rates: Fiscal year -> BOR approved increase (percent)
        window: Number of trailing years to keep

    Returns:
        DataFrame with columns: year, Room Single, Room Double, BOR Rate,
        Single % Increase, Double % Increase
    """
    if historical.empty:
        return pd.DataFrame(
            columns=[
                "year",
                "Room Single",
                "Room Double",
                "BOR Rate",
                "Single % Increase",
                "Double % Increase",
            ]
        )

    recent = historical.tail(window).copy()
    out = pd.DataFrame(
        {
            "year": recent["year"].astype(str),
            "Room Single": recent["single"].fillna(0.0).round(0),
            "Room Double": recent["double"].fillna(0.0).round(0),
            "BOR Rate": [
                float(approved_rates[y]) if y in approved_rates else np.nan
                for y in recent["year"]
            ],
            "Single % Increase": recent["Single % Increase"].round(2),
            "Double % Increase": recent["Double % Increase"].round(2),
        }
    )
    return out.reset_index(drop=True)


def projection_years(historical: pd.DataFrame, start_year: str = "FY25") -> List[str]:
    """Target-year dropdown options: historical years from start_year onward."""
    if historical.empty:
        return [start_year]
    years = historical["year"].astype(str).tolist()
    if start_year not in years:
        return [start_year]
    return years[years.index(start_year):]
