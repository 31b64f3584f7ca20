# housing_rates_dashboard.py
"""
UW HFS Room & Board Rate Recovery Dashboard

Shows historical room rates against Board of Regents (BOR) approved
increases, the gap between current and target rates, and how far BOR and
what-if increases get each rate toward its inflation-adjusted 2010 baseline.

Data:
- Loaded from the HFS rate sheet (Apps Script JSON), cached and refreshed
  every 5 minutes. Falls back to the reconciled default table when the
  sheet is unreachable.

Run:
    streamlit run housing_rates_dashboard.py
"""

from __future__ import annotations

import logging
import os
from io import StringIO
from typing import Dict, List, Tuple

import altair as alt
import numpy as np
import pandas as pd
import streamlit as st

from rate_data import (
    BASELINE_2010_RATES,
    BOARD_BASELINE_2010,
    BOARD_TARGET,
    DEFAULT_BOARD_RATE,
    REFRESH_INTERVAL_SECONDS,
    TARGET_RATES,
    RateData,
    build_chart_frame,
    load_rate_data,
    projection_years,
)
from rate_projector import (
    BOR_APPROVED_RATES,
    FISCAL_YEARS,
    INFLATION_RECOVERY_MULTIPLIER,
    ProjectionInput,
    ProjectionResult,
    effective_annual_rate,
    format_pct,
    has_approved_rate,
    project,
    rate_gap,
)

# =============================================================================
# STREAMLIT PAGE CONFIG
# Note: Must be the first Streamlit command for stability.
# =============================================================================
st.set_page_config(
    page_title="UW HFS Room & Board Rate Recovery Dashboard",
    layout="wide",
)

LOG_FORMAT = "%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s"
logging.basicConfig(
    level=os.environ.get("HOUSING_RATES_LOG_LEVEL", "INFO").upper(),
    format=LOG_FORMAT,
)
logger = logging.getLogger("housing_rates_dashboard")


# =============================================================================
# CONSTANTS AND CONFIGURATION
# =============================================================================

START_YEAR = FISCAL_YEARS[0]
DEFAULT_TARGET_YEAR = "FY30"
DEFAULT_CUSTOM_RATE_PCT = 5.0

# Slider bounds (dollars per year)
RATE_SLIDERS: Dict[str, Dict[str, int]] = {
    "single": {"min": 3500, "max": 10000},
    "double": {"min": 2800, "max": 8000},
    "board": {"min": 2500, "max": 5000},
}

ROOM_TYPE_LABELS: Dict[str, str] = {
    "single": "Room Single",
    "double": "Room Double",
    "board": "Board",
}

# Board what-if breakdown only shows the last few steps
BOARD_BREAKDOWN_TAIL = 3

SERIES_COLORS: Dict[str, str] = {
    "Room Single": "#10b981",
    "Room Double": "#3b82f6",
    "BOR Rate": "#8b5cf6",
    "Single % Increase": "#f59e0b",
    "Double % Increase": "#ef4444",
}


# =============================================================================
# DATA LOADING
# =============================================================================


@st.cache_data(ttl=REFRESH_INTERVAL_SECONDS)
def cached_rate_data() -> RateData:
    """Rate sheet load, cached so reruns do not refetch (refreshes every 5 min)."""
    return load_rate_data()


# =============================================================================
# NUMERICAL AND FORMAT HELPERS
# =============================================================================


def clamp_int(x: float, lo: int, hi: int) -> int:
    """Round and clamp a value into an integer slider range."""
    return int(np.clip(int(round(float(x))), lo, hi))


def fmt_currency(x: float | None) -> str:
    """Dollar format with thousands separators; '$0' for missing values."""
    if x is None or not np.isfinite(x):
        return "$0"
    if float(x).is_integer():
        return f"${float(x):,.0f}"
    return f"${float(x):,.2f}"


def fmt_num(x: float | None, decimals: int = 1) -> str:
    if x is None or not np.isfinite(x):
        return "0"
    return f"{float(x):.{decimals}f}"


def finite_minmax(vals: np.ndarray) -> Tuple[float, float]:
    """Min/max of finite values only, or (nan, nan) if there are none."""
    v = np.asarray(vals, dtype=float)
    v = v[np.isfinite(v)]
    if v.size == 0:
        return (np.nan, np.nan)
    return float(np.min(v)), float(np.max(v))


def padded_domain(vals: np.ndarray, pad_abs: float, clamp_low: float | None = None) -> Tuple[float, float] | None:
    """
    Y-axis domain that fits the data with absolute padding.

    Args:
        vals: Data values to fit
        pad_abs: Padding added above and below the data range
        clamp_low: Optional minimum for the lower bound

    Returns:
        Tuple of (domain_min, domain_max) or None if no finite data
    """
    vmin, vmax = finite_minmax(vals)
    if not np.isfinite(vmin) or not np.isfinite(vmax):
        return None
    lo = vmin - pad_abs
    hi = vmax + pad_abs
    if clamp_low is not None:
        lo = max(lo, float(clamp_low))
    if hi <= lo:
        hi = lo + max(1e-6, pad_abs)
    return (lo, hi)


def recovery_text(result: ProjectionResult) -> str:
    if result.fully_recovered:
        return "✓ Fully Recovered"
    return fmt_currency(result.still_to_recover)


def gap_caption(gap: float, gap_pct: float) -> str:
    direction = "below target" if gap > 0 else "above target"
    if gap == 0:
        return "At target"
    return f"{fmt_currency(abs(gap))} ({fmt_num(abs(gap_pct))}%) {direction}"


def on_custom_rate_change() -> None:
    """Callback when the custom rate input changes."""
    st.session_state["custom_rate_pct"] = float(st.session_state.get("custom_rate_input") or 0.0)


def breakdown_display(result: ProjectionResult, tail: int | None = None) -> pd.DataFrame:
    bd = result.breakdown_frame()
    if tail is not None:
        bd = bd.tail(tail)
    bd["Rate"] = bd["Rate"].map(fmt_currency)
    return bd.reset_index(drop=True)


# =============================================================================
# ALTAIR CHART HELPERS
# =============================================================================


def x_fiscal_year(order: List[str]) -> alt.X:
    """X encoding for fiscal-year labels in data order (not string order)."""
    return alt.X("year:N", title="Fiscal Year", sort=order, axis=alt.Axis(labelAngle=0))


def history_chart(chart_df: pd.DataFrame) -> alt.LayerChart:
    """
    Dual-axis history chart: dollar rates on the left, percents on the right.
    """
    order = chart_df["year"].tolist()

    dollars = chart_df.melt(
        "year",
        value_vars=["Room Single", "Room Double"],
        var_name="Series",
        value_name="Rate",
    )
    percents = chart_df.melt(
        "year",
        value_vars=["BOR Rate", "Single % Increase", "Double % Increase"],
        var_name="Series",
        value_name="Percent",
    ).dropna(subset=["Percent"])

    series = list(SERIES_COLORS.keys())
    color = alt.Color(
        "Series:N",
        title="",
        scale=alt.Scale(domain=series, range=[SERIES_COLORS[s] for s in series]),
    )

    y_dollar_dom = padded_domain(dollars["Rate"].to_numpy(dtype=float), pad_abs=250.0, clamp_low=0.0)
    _, pct_max = finite_minmax(percents["Percent"].to_numpy(dtype=float))
    pct_top = (pct_max + 2.0) if np.isfinite(pct_max) else 10.0

    rate_lines = (
        alt.Chart(dollars)
        .mark_line(point=True, strokeWidth=2)
        .encode(
            x=x_fiscal_year(order),
            y=alt.Y(
                "Rate:Q",
                title="Rate ($)",
                axis=alt.Axis(orient="left", format="$,.0f"),
                scale=alt.Scale(domain=y_dollar_dom) if y_dollar_dom else alt.Undefined,
            ),
            color=color,
            tooltip=[
                alt.Tooltip("year:N", title="Year"),
                "Series:N",
                alt.Tooltip("Rate:Q", format="$,.0f"),
            ],
        )
    )

    pct_lines = (
        alt.Chart(percents)
        .mark_line(point=True, strokeWidth=2, strokeDash=[5, 5])
        .encode(
            x=x_fiscal_year(order),
            y=alt.Y(
                "Percent:Q",
                title="Increase (%)",
                axis=alt.Axis(orient="right"),
                scale=alt.Scale(domain=[0.0, pct_top]),
            ),
            color=color,
            tooltip=[
                alt.Tooltip("year:N", title="Year"),
                "Series:N",
                alt.Tooltip("Percent:Q", format=".2f", title="%"),
            ],
        )
    )

    return (
        alt.layer(rate_lines, pct_lines)
        .resolve_scale(y="independent")
        .properties(height=360)
    )


# =============================================================================
# PAGE HEADER AND DATA
# =============================================================================

st.title("UW HFS Room & Board Rate Recovery Dashboard")
st.caption(
    "Historical rates vs. Board of Regents approved increases, with what-if "
    "projections toward the inflation-adjusted 2010 baseline."
)

head_l, head_r = st.columns([4, 1])
with head_r:
    if st.button("Refresh Data", use_container_width=True):
        cached_rate_data.clear()
        st.rerun()

with st.spinner("Loading rate data..."):
    data = cached_rate_data()

with head_l:
    if data.is_fallback:
        st.warning(
            "Rate sheet unavailable; showing the default rate table. "
            f"({data.error})"
        )
    else:
        st.caption(f"Last updated: {data.loaded_at.strftime('%Y-%m-%d %H:%M:%S')}")

with st.expander("About This Dashboard (Plain English)", expanded=False):
    st.markdown(
        f"""
**What is a BOR rate?**
The Board of Regents pre-approves the annual increase for each fiscal year. Where an
approved rate exists, projections always use it; the custom rate only applies to later years.

**What does "recovery" mean?**
Rates are compared to the 2010 baseline grown by cumulative inflation
(baseline × {INFLATION_RECOVERY_MULTIPLIER}). A rate at or above that value is fully recovered.

**Where does the data come from?**
The HFS rate sheet, refreshed every {REFRESH_INTERVAL_SECONDS // 60} minutes. If the sheet
cannot be reached, a reconciled default table is shown instead.
        """.strip()
    )

# =============================================================================
# SESSION STATE INITIALIZATION
# Sliders start at the sheet's current rates; a new load resets them.
# =============================================================================

if st.session_state.get("data_loaded_at") != data.loaded_at:
    for key in ("single", "double"):
        bounds = RATE_SLIDERS[key]
        st.session_state[f"{key}_rate"] = clamp_int(
            data.current_rates.get(key, 0.0), bounds["min"], bounds["max"]
        )
    st.session_state["data_loaded_at"] = data.loaded_at
    logger.info("Session rates reset from %s data", data.source)

if "board_rate" not in st.session_state:
    st.session_state["board_rate"] = int(DEFAULT_BOARD_RATE)

if "custom_rate_pct" not in st.session_state:
    st.session_state["custom_rate_pct"] = DEFAULT_CUSTOM_RATE_PCT

year_options = projection_years(data.historical, start_year=START_YEAR)
if st.session_state.get("target_year") not in year_options:
    st.session_state["target_year"] = (
        DEFAULT_TARGET_YEAR if DEFAULT_TARGET_YEAR in year_options else year_options[-1]
    )

# =============================================================================
# BOR APPROVED RATES
# =============================================================================

st.subheader("Board of Regents Approved Increases")

bor_cols = st.columns(len(BOR_APPROVED_RATES) + 1)
for col, (year, pct) in zip(bor_cols, BOR_APPROVED_RATES.items()):
    with col:
        st.metric(year, f"{format_pct(pct)}%")
with bor_cols[-1]:
    st.metric("FY30+", "Not approved")

# =============================================================================
# RATE ADJUSTMENT CONTROLS
# =============================================================================

st.subheader("Current Rates vs. Target")

r1, r2, r3 = st.columns(3)

with r1:
    st.slider(
        "Room Single Rate",
        min_value=RATE_SLIDERS["single"]["min"],
        max_value=RATE_SLIDERS["single"]["max"],
        step=1,
        key="single_rate",
        format="$%d",
        help="Current annual single-room rate (defaults to the rate sheet's current value).",
    )
with r2:
    st.slider(
        "Room Double Rate",
        min_value=RATE_SLIDERS["double"]["min"],
        max_value=RATE_SLIDERS["double"]["max"],
        step=1,
        key="double_rate",
        format="$%d",
        help="Current annual double-room rate (defaults to the rate sheet's current value).",
    )
with r3:
    st.slider(
        "Board Rate",
        min_value=RATE_SLIDERS["board"]["min"],
        max_value=RATE_SLIDERS["board"]["max"],
        step=1,
        key="board_rate",
        format="$%d",
        help="Adjusted annual board (dining) rate.",
    )

current_rates: Dict[str, float] = {
    "single": float(st.session_state["single_rate"]),
    "double": float(st.session_state["double_rate"]),
    "board": float(st.session_state["board_rate"]),
}
target_rates: Dict[str, float] = {
    "single": TARGET_RATES["single"],
    "double": TARGET_RATES["double"],
    "board": BOARD_TARGET,
}
baseline_rates: Dict[str, float] = {
    "single": BASELINE_2010_RATES["single"],
    "double": BASELINE_2010_RATES["double"],
    "board": BOARD_BASELINE_2010,
}

g1, g2, g3 = st.columns(3)
for col, key in zip((g1, g2, g3), ("single", "double", "board")):
    gap, gap_pct = rate_gap(target_rates[key], current_rates[key])
    with col:
        st.metric(
            f"{ROOM_TYPE_LABELS[key]} Gap to Target",
            fmt_currency(abs(gap)),
            delta=f"{fmt_num(-gap_pct)}%",
        )
        st.caption(
            f"Target {fmt_currency(target_rates[key])}: {gap_caption(gap, gap_pct)}"
        )

# =============================================================================
# PROJECTION CONTROLS
# =============================================================================

st.subheader("Projection Settings")

p1, p2 = st.columns(2)

with p1:
    st.selectbox(
        "Target Fiscal Year",
        options=year_options,
        key="target_year",
        help="Project each rate from FY25 through this year.",
    )

target_year = str(st.session_state["target_year"])
target_has_bor = has_approved_rate(target_year, BOR_APPROVED_RATES)

with p2:
    if target_has_bor:
        st.text_input(
            f"Rate for {target_year} (BOR Fixed)",
            value=f"{format_pct(BOR_APPROVED_RATES[target_year])}% (Board Approved - Cannot Change)",
            disabled=True,
        )
    else:
        # Separate widget key so the value survives while the input is locked
        st.number_input(
            "Custom Annual Rate (%)",
            min_value=0.0,
            max_value=50.0,
            step=0.5,
            value=float(st.session_state["custom_rate_pct"]),
            key="custom_rate_input",
            on_change=on_custom_rate_change,
            help="Applied to every year after the last BOR-approved year.",
        )

custom_rate_pct = float(st.session_state.get("custom_rate_pct") or 0.0)

if target_has_bor:
    rate_note = f"Uses BOR rate: {format_pct(BOR_APPROVED_RATES[target_year])}%"
else:
    approved_years = [y for y in FISCAL_YEARS if has_approved_rate(y, BOR_APPROVED_RATES)]
    rate_note = (
        f"Uses BOR rates {approved_years[0]}-{approved_years[-1][2:]}, "
        f"then {format_pct(effective_annual_rate(target_year, BOR_APPROVED_RATES, custom_rate_pct))}%"
        if approved_years
        else f"Uses {format_pct(custom_rate_pct)}%"
    )

# =============================================================================
# RUN PROJECTIONS
# =============================================================================

inputs: Dict[str, ProjectionInput] = {
    key: ProjectionInput(
        current_rate=current_rates[key],
        baseline_rate=baseline_rates[key],
        custom_annual_rate_pct=custom_rate_pct,
        target_year=target_year,
    )
    for key in ("single", "double", "board")
}

bor_results: Dict[str, ProjectionResult] = {
    key: project(inp, BOR_APPROVED_RATES, FISCAL_YEARS, allow_custom=False)
    for key, inp in inputs.items()
}
what_if_results: Dict[str, ProjectionResult] = {
    key: project(inp, BOR_APPROVED_RATES, FISCAL_YEARS, allow_custom=True)
    for key, inp in inputs.items()
}

if target_year not in FISCAL_YEARS:
    st.info(
        f"{target_year} is outside the projection window "
        f"({FISCAL_YEARS[0]}-{FISCAL_YEARS[-1]}); showing current rates."
    )


def render_projection_card(
    key: str,
    result: ProjectionResult,
    note: str | None = None,
    tail: int | None = None,
) -> None:
    st.markdown(f"**{ROOM_TYPE_LABELS[key]}**")
    if note:
        st.caption(note)
    st.metric(f"Projected Rate ({target_year})", fmt_currency(result.projected_rate))
    st.caption(
        f"Inflation-adjusted baseline: {fmt_currency(result.inflation_adjusted_baseline)}"
    )
    if result.fully_recovered:
        st.success(recovery_text(result))
    else:
        st.warning(f"Still to recover: {recovery_text(result)}")
    st.dataframe(breakdown_display(result, tail=tail), hide_index=True, use_container_width=True)


# =============================================================================
# DASHBOARD TABS
# =============================================================================

tabs = st.tabs(["BOR Projections", "What-If Calculator", "Rate History", "Data Export"])

with tabs[0]:
    st.caption(f"Board-approved increases only, {START_YEAR} through {target_year}.")
    c1, c2, c3 = st.columns(3)
    for col, key in zip((c1, c2, c3), ("single", "double", "board")):
        with col:
            render_projection_card(key, bor_results[key])

with tabs[1]:
    st.caption(
        "BOR increases where approved; the custom rate covers later years. "
        "Approved rates cannot be overridden."
    )
    c1, c2, c3 = st.columns(3)
    for col, key in zip((c1, c2, c3), ("single", "double", "board")):
        with col:
            render_projection_card(
                key,
                what_if_results[key],
                note=rate_note,
                tail=BOARD_BREAKDOWN_TAIL if key == "board" else None,
            )

with tabs[2]:
    st.subheader("Room Rates vs. BOR Approved Increases")
    chart_df = build_chart_frame(data.historical, BOR_APPROVED_RATES)
    if chart_df.empty:
        st.info("No historical rates to chart.")
    else:
        st.altair_chart(history_chart(chart_df), use_container_width=True)
        st.caption(
            "Solid lines: annual room rates (left axis). Dashed lines: BOR approved "
            "increase and actual year-over-year increases (right axis)."
        )

    st.subheader("Current Totals (Room + Board)")
    t1, t2 = st.columns(2)
    with t1:
        st.metric(
            "Single + Board",
            fmt_currency(current_rates["single"] + current_rates["board"]),
        )
    with t2:
        st.metric(
            "Double + Board",
            fmt_currency(current_rates["double"] + current_rates["board"]),
        )

# =============================================================================
# DATA EXPORT TAB
# =============================================================================

with tabs[3]:
    st.subheader("Historical Rates")
    hist_display = data.historical.rename(
        columns={
            "year": "Fiscal Year",
            "single": "Room Single",
            "double": "Room Double",
            "actualCPI": "Actual CPI",
        }
    ).round(
        {
            "Room Single": 2,
            "Room Double": 2,
            "Actual CPI": 4,
            "Single % Increase": 2,
            "Double % Increase": 2,
        }
    )
    st.dataframe(hist_display, use_container_width=True, height=420, hide_index=True)

    csv_buffer = StringIO()
    hist_display.to_csv(csv_buffer, index=False)
    st.download_button(
        label="Download Historical CSV",
        data=csv_buffer.getvalue(),
        file_name="uw_hfs_room_rates.csv",
        mime="text/csv",
    )

    st.subheader("Projection Summary")
    summary_rows = []
    for key in ("single", "double", "board"):
        for kind, result in (("BOR", bor_results[key]), ("What-If", what_if_results[key])):
            summary_rows.append(
                {
                    "Rate Type": ROOM_TYPE_LABELS[key],
                    "Projection": kind,
                    "Target Year": target_year,
                    "Projected Rate": round(result.projected_rate, 2),
                    "Inflation-Adjusted Baseline": round(result.inflation_adjusted_baseline, 2),
                    "Fully Recovered": result.fully_recovered,
                    "Still To Recover": round(result.still_to_recover, 2),
                }
            )
    summary_df = pd.DataFrame(summary_rows)
    st.dataframe(summary_df, use_container_width=True, hide_index=True)

    summary_buffer = StringIO()
    summary_df.to_csv(summary_buffer, index=False)
    st.download_button(
        label="Download Projection CSV",
        data=summary_buffer.getvalue(),
        file_name=f"uw_hfs_rate_projection_{target_year}.csv",
        mime="text/csv",
    )


# =============================================================================
# FOOTER
# =============================================================================

st.divider()
st.caption(
    "UW HFS Room & Board Rate Recovery Dashboard | "
    f"Data source: {'rate sheet' if not data.is_fallback else 'default table'} | "
    "Questions? Contact HFS Finance"
)
