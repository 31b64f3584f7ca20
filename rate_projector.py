# rate_projector.py
"""
UW HFS Room & Board Rate Projector

Pure projection math behind the rate recovery dashboard:
- Compounds a current rate forward year by year using Board of Regents (BOR)
  approved increases, optionally falling back to a custom annual rate for
  years the Board has not approved yet.
- Compares the projected rate against the 2010 baseline adjusted for
  cumulative inflation.

Nothing here touches Streamlit or the network. Every function returns a
new immutable result for the same inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Sequence, Tuple

import pandas as pd

# =============================================================================
# CONSTANTS AND CONFIGURATION
# =============================================================================

# Fiscal years the projector walks, in order. The first entry is the
# starting year (no compounding applied).
FISCAL_YEARS: Tuple[str, ...] = ("FY25", "FY26", "FY27", "FY28", "FY29", "FY30")

# BOR pre-approved annual increases (percent). FY30+ not yet approved.
BOR_APPROVED_RATES: Mapping[str, float] = MappingProxyType(
    {
        "FY25": 5.5,
        "FY26": 5.0,
        "FY27": 4.5,
        "FY28": 6.0,
        "FY29": 9.0,
    }
)

# Cumulative CPI from the 2010 baseline, pre-computed.
INFLATION_RECOVERY_MULTIPLIER = 1.415

STARTING_RATE_LABEL = "Starting Rate"
NO_APPROVED_RATE_LABEL = "No BOR Rate"


# =============================================================================
# DATA TYPES
# =============================================================================


@dataclass(frozen=True)
class ProjectionInput:
    """One set of what-if inputs gathered from the dashboard controls."""

    current_rate: float
    baseline_rate: float
    custom_annual_rate_pct: float
    target_year: str


@dataclass(frozen=True)
class YearStep:
    """One year of a projection breakdown."""

    year: str
    rate: float
    applied_rate_label: str


@dataclass(frozen=True)
class ProjectionResult:
    """Projected rate and recovery status against the inflation-adjusted baseline."""

    projected_rate: float
    inflation_adjusted_baseline: float
    fully_recovered: bool
    still_to_recover: float
    breakdown: Tuple[YearStep, ...]

    def breakdown_frame(self) -> pd.DataFrame:
        """Breakdown as a display table (Year, Rate, Applied Rate)."""
        return pd.DataFrame(
            {
                "Year": [s.year for s in self.breakdown],
                "Rate": [s.rate for s in self.breakdown],
                "Applied Rate": [s.applied_rate_label for s in self.breakdown],
            }
        )


# =============================================================================
# RATE LOOKUP HELPERS
# =============================================================================


def format_pct(pct: float) -> str:
    """Shortest percent text: 5.0 -> '5', 5.5 -> '5.5'."""
    return f"{float(pct):g}"


def bor_label(pct: float) -> str:
    return f"{format_pct(pct)}% (BOR)"


def custom_label(pct: float) -> str:
    return f"{format_pct(pct)}% (Custom)"


def has_approved_rate(year: str, approved_rates: Mapping[str, float]) -> bool:
    """True if the Board has approved an increase for this fiscal year."""
    return year in approved_rates


def effective_annual_rate(
    year: str,
    approved_rates: Mapping[str, float],
    custom_annual_rate_pct: float,
) -> float:
    """
    Annual increase (percent) a year compounds by in the what-if projection.

    Approved rates always win over the custom rate.
    """
    if has_approved_rate(year, approved_rates):
        return float(approved_rates[year])
    return float(custom_annual_rate_pct)


def rate_gap(target_rate: float, current_rate: float) -> Tuple[float, float]:
    """
    Gap between a target rate and the current rate.

    Args:
        target_rate: Rate we want to reach
        current_rate: Rate today

    Returns:
        Tuple of (signed gap in dollars, gap as % of current rate).
        The percent is 0 when the current rate is 0.
    """
    gap = float(target_rate) - float(current_rate)
    if current_rate == 0:
        return gap, 0.0
    return gap, gap / float(current_rate) * 100.0


# =============================================================================
# CORE PROJECTIONS
# =============================================================================


def _recovery_result(
    projected_rate: float,
    baseline_rate: float,
    breakdown: Sequence[YearStep],
) -> ProjectionResult:
    inflation_adjusted_baseline = baseline_rate * INFLATION_RECOVERY_MULTIPLIER
    return ProjectionResult(
        projected_rate=projected_rate,
        inflation_adjusted_baseline=inflation_adjusted_baseline,
        fully_recovered=projected_rate >= inflation_adjusted_baseline,
        still_to_recover=max(0.0, inflation_adjusted_baseline - projected_rate),
        breakdown=tuple(breakdown),
    )


def _projection_window(years: Sequence[str], target_year: str) -> Sequence[str] | None:
    """
    Years to walk from the start year through target_year inclusive.

    Returns None when target_year is unknown or not after the start year.
    """
    if not years or target_year not in years:
        return None
    target_idx = list(years).index(target_year)
    if target_idx <= 0:
        return None
    return list(years)[: target_idx + 1]


def project_with_approved_rates(
    current_rate: float,
    baseline_rate: float,
    approved_rates: Mapping[str, float],
    target_year: str,
    years: Sequence[str] = FISCAL_YEARS,
) -> ProjectionResult:
    """
    Project a rate forward using only BOR-approved increases.

    A year in the walk with no approved increase holds the prior year's
    rate and is labelled "No BOR Rate". An unknown target year, or one not
    after the start year, returns the starting rate as a single step.

    Args:
        current_rate: Rate in the start year (dollars)
        baseline_rate: 2010 baseline rate (dollars)
        approved_rates: Fiscal year -> approved increase (percent)
        target_year: Last fiscal year to project
        years: Ordered fiscal years; the first is the start year

    Returns:
        ProjectionResult with one breakdown step per year walked
    """
    window = _projection_window(years, target_year)
    start_year = years[0] if years else target_year
    if window is None:
        return _recovery_result(
            current_rate,
            baseline_rate,
            [YearStep(start_year, current_rate, STARTING_RATE_LABEL)],
        )

    projected = current_rate
    breakdown = [YearStep(window[0], projected, STARTING_RATE_LABEL)]
    for year in window[1:]:
        if has_approved_rate(year, approved_rates):
            pct = approved_rates[year]
            projected = projected * (1 + (pct / 100))
            breakdown.append(YearStep(year, projected, bor_label(pct)))
        else:
            breakdown.append(YearStep(year, projected, NO_APPROVED_RATE_LABEL))

    return _recovery_result(projected, baseline_rate, breakdown)


def project_with_custom_fallback(
    current_rate: float,
    baseline_rate: float,
    approved_rates: Mapping[str, float],
    custom_annual_rate_pct: float,
    target_year: str,
    years: Sequence[str] = FISCAL_YEARS,
) -> ProjectionResult:
    """
    Project a rate forward using BOR increases where approved, and a custom
    annual increase for every other year.

    Args:
        current_rate: Rate in the start year (dollars)
        baseline_rate: 2010 baseline rate (dollars)
        approved_rates: Fiscal year -> approved increase (percent)
        custom_annual_rate_pct: Increase (percent) for years without approval
        target_year: Last fiscal year to project
        years: Ordered fiscal years; the first is the start year

    Returns:
        ProjectionResult with one breakdown step per year walked
    """
    window = _projection_window(years, target_year)
    start_year = years[0] if years else target_year
    if window is None:
        return _recovery_result(
            current_rate,
            baseline_rate,
            [YearStep(start_year, current_rate, STARTING_RATE_LABEL)],
        )

    projected = current_rate
    breakdown = [YearStep(window[0], projected, STARTING_RATE_LABEL)]
    for year in window[1:]:
        if has_approved_rate(year, approved_rates):
            pct = approved_rates[year]
            label = bor_label(pct)
        else:
            pct = custom_annual_rate_pct
            label = custom_label(pct)
        projected = projected * (1 + (pct / 100))
        breakdown.append(YearStep(year, projected, label))

    return _recovery_result(projected, baseline_rate, breakdown)


def project(
    inputs: ProjectionInput,
    approved_rates: Mapping[str, float] = BOR_APPROVED_RATES,
    years: Sequence[str] = FISCAL_YEARS,
    allow_custom: bool = True,
) -> ProjectionResult:
    """Run one projection from an immutable input struct.

    allow_custom=False restricts the walk to BOR-approved increases.
    """
    if allow_custom:
        return project_with_custom_fallback(
            inputs.current_rate,
            inputs.baseline_rate,
            approved_rates,
            inputs.custom_annual_rate_pct,
            inputs.target_year,
            years=years,
        )
    return project_with_approved_rates(
        inputs.current_rate,
        inputs.baseline_rate,
        approved_rates,
        inputs.target_year,
        years=years,
    )
